"""MCP server for landmark-based sagittal spine deformity planning."""

__version__ = "1.0.0"

from spinealign_mcp.landmarks import AnnotationSession
from spinealign_mcp.measurements import extract_measurements
from spinealign_mcp.server import main
from spinealign_mcp.simulation import simulate_correction
from spinealign_mcp.spine_constants import Region, SeverityTier
from spinealign_mcp.targets import compute_targets
from spinealign_mcp.tools import ValidationError

__all__ = [
    "__version__",
    "main",
    "AnnotationSession",
    "Region",
    "SeverityTier",
    "ValidationError",
    "compute_targets",
    "extract_measurements",
    "simulate_correction",
]

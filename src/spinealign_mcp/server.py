"""SpineAlign MCP server entry point."""

import logging
import os
import sys
from typing import Optional

from mcp.server.fastmcp import FastMCP

# Import tools and resources
from spinealign_mcp import resources, tools
from spinealign_mcp.constants import DEFAULT_LOG_LEVEL, LOG_LEVEL_ENV_VAR
from spinealign_mcp.spine_constants import Region

# Configure logging to stderr (stdout reserved for MCP protocol)
logging.basicConfig(
    level=os.environ.get(LOG_LEVEL_ENV_VAR, DEFAULT_LOG_LEVEL).upper(),
    format='{"timestamp":"%(asctime)s","level":"%(levelname)s","message":"%(message)s"}',
    stream=sys.stderr,
)
logger = logging.getLogger("spinealign-mcp")

# Initialize FastMCP server
mcp = FastMCP("spinealign")

logger.info("Initializing SpineAlign MCP server")


# Register Tools
# ==============


@mcp.tool()
def list_landmarks(region: str) -> dict:
    """List the ordered landmark catalog to place on a lateral radiograph.

    Args:
        region: "cervical" (10 landmarks) or "lumbar" (8 landmarks)

    Returns:
        Dict with ordered landmark definitions (index, id, label, short_label), override key and minimum count
    """
    return tools.list_landmarks(region)


@mcp.tool()
def measure_landmarks(
    region: str,
    landmarks: list,
    overrides: Optional[dict] = None,
    pixels_per_mm: Optional[float] = None,
) -> dict:
    """Measure sagittal parameters (cervical: CL, cSVA, T1S, CBVA; lumbar: LL, SVA, PI, PT).

    Args:
        region: "cervical" or "lumbar"
        landmarks: Ordered [x, y] image-pixel coordinates in catalog order; a prefix of the catalog is allowed
        overrides: Optional manual mm values, {"csva": mm} or {"sva": mm}; non-positive values are ignored
        pixels_per_mm: Optional calibration; when given, SVA/cSVA are reported in mm instead of pixels

    Returns:
        Dict with rounded results, unrounded values (null = pending), overrides and landmark status
    """
    return tools.measure_landmarks(region, landmarks, overrides, pixels_per_mm)


@mcp.tool()
def compute_correction_targets(
    region: str,
    age: float,
    landmarks: list,
    overrides: Optional[dict] = None,
    pixels_per_mm: Optional[float] = None,
) -> dict:
    """Compute age-adjusted correction targets and severity grades from placed landmarks.

    Args:
        region: "cervical" or "lumbar"
        age: Patient age in years
        landmarks: Ordered [x, y] image-pixel coordinates in catalog order
        overrides: Optional manual mm values, {"csva": mm} or {"sva": mm}
        pixels_per_mm: Optional calibration factor

    Returns:
        Dict with per-parameter targets, correction text and severity, overall severity and comparison rows
    """
    return tools.compute_correction_targets(region, age, landmarks, overrides, pixels_per_mm)


@mcp.tool()
def simulate_correction(
    region: str,
    age: float,
    landmarks: list,
    overrides: Optional[dict] = None,
    pixels_per_mm: Optional[float] = None,
) -> dict:
    """Project an illustrative corrected landmark layout for side-by-side display.

    The projection applies a conservative fraction of each correction and is not a
    biomechanical prediction.

    Args:
        region: "cervical" or "lumbar"
        age: Patient age in years
        landmarks: Ordered [x, y] image-pixel coordinates in catalog order
        overrides: Optional manual mm values, {"csva": mm} or {"sva": mm}
        pixels_per_mm: Optional calibration; otherwise an anthropometric prior is used

    Returns:
        Dict with original and corrected landmarks, applied steps, pixel scale and disclaimer
    """
    return tools.simulate_correction(region, age, landmarks, overrides, pixels_per_mm)


# Register Resources
# ==================


@mcp.resource("spinealign://landmarks/cervical")
def get_cervical_landmarks() -> str:
    """Get the ordered cervical landmark catalog.

    Returns:
        JSON string with 10 cervical landmark definitions
    """
    return resources.get_landmark_catalog_resource(Region.CERVICAL)


@mcp.resource("spinealign://landmarks/lumbar")
def get_lumbar_landmarks() -> str:
    """Get the ordered lumbar landmark catalog.

    Returns:
        JSON string with 8 lumbar landmark definitions
    """
    return resources.get_landmark_catalog_resource(Region.LUMBAR)


@mcp.resource("spinealign://normative-table")
def get_normative_table() -> str:
    """Get the versioned clinical reference table used for targets and severity.

    Returns:
        JSON string with age buckets, age-adjusted targets, corridors and severity thresholds
    """
    return resources.get_normative_table_resource()


# Main Entry Point
# ================


def main():
    """Run the SpineAlign MCP server with stdio transport."""
    logger.info("Starting SpineAlign MCP server")
    logger.info(
        "Registered 4 tools: list_landmarks, measure_landmarks, "
        "compute_correction_targets, simulate_correction"
    )
    logger.info(
        "Registered 3 resources: spinealign://landmarks/cervical, "
        "spinealign://landmarks/lumbar, spinealign://normative-table"
    )

    try:
        mcp.run(transport="stdio")
    except KeyboardInterrupt:
        logger.info("Server shutdown requested")
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        raise


if __name__ == "__main__":
    main()

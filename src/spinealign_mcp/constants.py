"""Centralized constants for SpineAlign MCP."""

# =============================================================================
# Environment Configuration
# =============================================================================
METRICS_ENV_VAR = "SPINEALIGN_METRICS_ENABLED"
LOG_LEVEL_ENV_VAR = "SPINEALIGN_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"

# =============================================================================
# Annotation
# =============================================================================
HIT_TEST_RADIUS_PX = 12.0
OVERRIDE_KEYS = frozenset(["csva", "sva"])

# =============================================================================
# Geometry
# =============================================================================
DEGENERATE_LENGTH_EPSILON = 1e-9

# =============================================================================
# Display
# =============================================================================
DISPLAY_DECIMALS = 1
WITHIN_TARGET_TEXT = "Within target"
PENDING_TEXT = "Pending landmarks"

SIMULATION_DISCLAIMER = (
    "Illustrative first-order projection only. Corrected landmarks depict a "
    "conservative partial correction and do not satisfy the computed targets; "
    "they are not a biomechanical prediction."
)

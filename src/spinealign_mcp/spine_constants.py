"""Clinical reference tables for sagittal deformity planning.

All thresholds below are external clinical reference values, not derived
logic. They are kept in one versioned table so that the target engine and
its tests read exactly the same numbers.
"""

from enum import Enum

NORMATIVE_TABLE_VERSION = "1.0"
"""Bump whenever any value in this module changes."""


# =============================================================================
# Regions and Severity
# =============================================================================


class Region(Enum):
    """Spine region selecting landmark catalog, formulas and target tables."""

    CERVICAL = "cervical"
    LUMBAR = "lumbar"


class SeverityTier(Enum):
    """Ordinal severity grade shared by every parameter.

    Lumbar SVA and PI-LL grades correspond to SRS-Schwab modifiers
    (+, ++, +++) once the age-adjusted target is exceeded.
    """

    NORMAL = 0
    MILD = 1
    MODERATE = 2
    SEVERE = 3


# =============================================================================
# Age Buckets
# =============================================================================
# Source: Lafage R et al. "Defining spino-pelvic alignment thresholds:
# should operative goals in adult spinal deformity surgery account for
# age?" Spine. 2016;41(1):62-68.

# Strict lower bounds of buckets 1..4; ages below the first fall into bucket 0
AGE_BUCKET_BREAKPOINTS: tuple[float, ...] = (45.0, 55.0, 65.0, 75.0)

AGE_BUCKET_LABELS: tuple[str, ...] = ("<45", "45-54", "55-64", "65-74", ">=75")


# =============================================================================
# Lumbar Age-Adjusted Targets
# =============================================================================
# Source: Schwab F et al. "Scoliosis Research Society-Schwab adult spinal
# deformity classification." Spine. 2012;37(12):1077-82.
# Lafage R et al. Spine 2016 (age-adjusted alignment targets).

# One entry per age bucket: SVA (mm), PT (deg), PI-LL (deg)
LUMBAR_AGE_TARGETS: tuple[dict[str, float], ...] = (
    {"sva_mm": 25.0, "pt_deg": 12.0, "pi_ll_deg": 0.0},
    {"sva_mm": 30.0, "pt_deg": 15.0, "pi_ll_deg": 5.0},
    {"sva_mm": 40.0, "pt_deg": 20.0, "pi_ll_deg": 10.0},
    {"sva_mm": 50.0, "pt_deg": 22.0, "pi_ll_deg": 12.0},
    {"sva_mm": 60.0, "pt_deg": 25.0, "pi_ll_deg": 15.0},
)


# =============================================================================
# Cervical Targets and Corridors
# =============================================================================
# Sources:
# Hyun SJ et al. "Relationship between T1 slope and cervical alignment
#   following multilevel posterior cervical fusion surgery." Spine. 2017.
# Tang JA et al. "The impact of standing regional cervical sagittal
#   alignment on outcomes in posterior cervical fusion surgery."
#   Neurosurgery. 2012;71(3):662-9.
# Lee SH et al. "The relationship between T1 slope and cervical sagittal
#   balance." Spine. 2012.
# Suk KS et al. "Recommendation of proper chin-brow vertical angle for
#   correction osteotomy." Spine. 2003;28(17):2001-5.

# Age-adjusted cSVA target per age bucket (mm)
CERVICAL_CSVA_TARGETS_MM: tuple[float, ...] = (17.0, 20.0, 25.0, 30.0, 35.0)

# Target CL = -(T1S - offset); lordosis is negative
CL_T1S_OFFSET_DEG = 16.5

DEFAULT_T1_SLOPE_DEG = 25.0
"""T1 slope assumed for the CL target while T1S is not yet measurable."""

T1S_CL_CORRIDOR_DEG: tuple[float, float] = (16.0, 26.0)
T1S_CL_TARGET_DEG = 21.0  # corridor midpoint

CBVA_CORRIDOR_DEG: tuple[float, float] = (-10.0, 10.0)
CBVA_TARGET_DEG = 0.0

CL_WITHIN_TARGET_TOLERANCE_DEG = 3.0
"""CL counts as on target inside this band; other parameters compare exactly."""


# =============================================================================
# Severity Breakpoints
# =============================================================================
# Each "*_max" is an exclusive upper bound unless noted otherwise.

# |CL - target CL| (deg)
CL_SEVERITY_THRESHOLDS: dict[str, float] = {
    "normal_max": 5.0,
    "mild_max": 15.0,
    "moderate_max": 25.0,
}

# Absolute cSVA (mm); the mild band reads as normal from the elderly age on
CSVA_SEVERITY_THRESHOLDS: dict[str, float] = {
    "normal_max": 20.0,
    "mild_max": 40.0,
    "moderate_max": 60.0,
}
CSVA_ELDERLY_AGE = 65.0

# Distance outside the T1S-CL corridor (deg)
T1S_CL_SEVERITY_THRESHOLDS: dict[str, float] = {
    "mild_max": 8.0,
    "moderate_max": 15.0,
}

# |CBVA| (deg), inclusive upper bounds
CBVA_SEVERITY_THRESHOLDS: dict[str, float] = {
    "normal_max": 10.0,
    "mild_max": 17.0,
    "moderate_max": 25.0,
}

# Excess over the age-adjusted target
SVA_SEVERITY_THRESHOLDS: dict[str, float] = {
    "mild_max": 25.0,
    "moderate_max": 60.0,
}

PI_LL_SEVERITY_THRESHOLDS: dict[str, float] = {
    "mild_max": 10.0,
    "moderate_max": 20.0,
}

PT_SEVERITY_THRESHOLDS: dict[str, float] = {
    "mild_max": 8.0,
    "moderate_max": 15.0,
}


# =============================================================================
# Anthropometric Scale Priors
# =============================================================================
# Used only when no explicit calibration is supplied.

# Assumed true length of the reference segment, keyed by region value (mm):
#   lumbar: L1 superior endplate midpoint to S1 superior endplate midpoint
#   cervical: C2 superior endplate midpoint to C7 inferior endplate midpoint
ANTHROPOMETRIC_REFERENCE_MM: dict[str, float] = {
    "lumbar": 150.0,
    "cervical": 100.0,
}

FALLBACK_PIXELS_PER_MM = 1.0


# =============================================================================
# Simulated Correction Coefficients
# =============================================================================
# Fractions of the full correction drawn on the illustrative postop layout.

SIMULATION_COEFFICIENTS: dict[str, dict[str, float]] = {
    "lumbar": {
        "translation_partial": 0.4,  # L1 endplate share of the C7 shift
        "rotation_cluster": 0.3,  # L1 endplate share of the LL delta
        "rotation_distal": 0.2,  # C7 centroid share of the LL delta
    },
    "cervical": {
        "translation_partial": 0.8,  # C2 endplate share of the C2 centroid shift
        "rotation_cluster": 0.3,  # C2 endplate share of the CL delta
        "rotation_distal": 0.2,  # C2 centroid share of the CL delta
    },
}

CL_ROTATION_MIN_DELTA_DEG = 2.0
"""CL rotation is skipped when the CL delta does not exceed this."""


# =============================================================================
# Aggregated Table
# =============================================================================

NORMATIVE_TABLE: dict[str, object] = {
    "version": NORMATIVE_TABLE_VERSION,
    "age_buckets": {
        "breakpoints": list(AGE_BUCKET_BREAKPOINTS),
        "labels": list(AGE_BUCKET_LABELS),
    },
    "lumbar_targets": [dict(row) for row in LUMBAR_AGE_TARGETS],
    "cervical_csva_targets_mm": list(CERVICAL_CSVA_TARGETS_MM),
    "cervical_cl": {
        "t1s_offset_deg": CL_T1S_OFFSET_DEG,
        "default_t1s_deg": DEFAULT_T1_SLOPE_DEG,
        "within_target_tolerance_deg": CL_WITHIN_TARGET_TOLERANCE_DEG,
    },
    "t1s_cl_corridor_deg": list(T1S_CL_CORRIDOR_DEG),
    "cbva_corridor_deg": list(CBVA_CORRIDOR_DEG),
    "severity_thresholds": {
        "cl": dict(CL_SEVERITY_THRESHOLDS),
        "csva": dict(CSVA_SEVERITY_THRESHOLDS, elderly_age=CSVA_ELDERLY_AGE),
        "t1s_cl": dict(T1S_CL_SEVERITY_THRESHOLDS),
        "cbva": dict(CBVA_SEVERITY_THRESHOLDS),
        "sva": dict(SVA_SEVERITY_THRESHOLDS),
        "pi_ll": dict(PI_LL_SEVERITY_THRESHOLDS),
        "pt": dict(PT_SEVERITY_THRESHOLDS),
    },
    "anthropometric_reference_mm": dict(ANTHROPOMETRIC_REFERENCE_MM),
    "simulation_coefficients": {k: dict(v) for k, v in SIMULATION_COEFFICIENTS.items()},
}

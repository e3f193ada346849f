"""Age-adjusted correction targets and severity grading.

Stateless rule engine: measured parameters plus patient age in, targets,
correction texts and per-parameter severity out. All reference values
come from spine_constants.

References:
    - Schwab F et al. Spine 2012 (SRS-Schwab classification)
    - Lafage R et al. Spine 2016 (age-adjusted alignment targets)
    - Hyun SJ et al. Spine 2017 (T1S - CL relationship)
    - Tang JA et al. Neurosurgery 2012 (cSVA and HRQOL)
    - Suk KS et al. Spine 2003 (CBVA)
"""

import bisect
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, NamedTuple

from spinealign_mcp.constants import PENDING_TEXT, WITHIN_TARGET_TEXT
from spinealign_mcp.spine_constants import (
    AGE_BUCKET_BREAKPOINTS,
    AGE_BUCKET_LABELS,
    CBVA_CORRIDOR_DEG,
    CBVA_SEVERITY_THRESHOLDS,
    CBVA_TARGET_DEG,
    CERVICAL_CSVA_TARGETS_MM,
    CL_SEVERITY_THRESHOLDS,
    CL_T1S_OFFSET_DEG,
    CL_WITHIN_TARGET_TOLERANCE_DEG,
    CSVA_ELDERLY_AGE,
    CSVA_SEVERITY_THRESHOLDS,
    DEFAULT_T1_SLOPE_DEG,
    LUMBAR_AGE_TARGETS,
    NORMATIVE_TABLE_VERSION,
    PI_LL_SEVERITY_THRESHOLDS,
    PT_SEVERITY_THRESHOLDS,
    SVA_SEVERITY_THRESHOLDS,
    T1S_CL_CORRIDOR_DEG,
    T1S_CL_SEVERITY_THRESHOLDS,
    T1S_CL_TARGET_DEG,
    Region,
    SeverityTier,
)

logger = logging.getLogger("spinealign-mcp")


class Severity(NamedTuple):
    """Display text plus ordinal tier (None while pending)."""

    text: str
    tier: SeverityTier | None


PENDING = Severity("Pending", None)


@dataclass(frozen=True)
class ClinicalParameter:
    """One graded parameter as consumed by rendering and export layers."""

    id: str
    label: str
    current: float
    unit: str
    target_expression: str
    target_val: float
    correction_text: str
    severity: Severity
    explanation: str

    def to_dict(self) -> dict[str, Any]:
        """JSON-safe form; NaN becomes None."""
        return {
            "id": self.id,
            "label": self.label,
            "current": _json_number(self.current),
            "unit": self.unit,
            "target": self.target_expression,
            "target_val": _json_number(self.target_val),
            "correction": self.correction_text,
            "severity": {
                "text": self.severity.text,
                "tier": self.severity.tier.name.lower() if self.severity.tier else None,
            },
            "explanation": self.explanation,
        }


@dataclass(frozen=True)
class CorrectionTargets:
    """Output of compute_targets for one region."""

    region: Region
    age: float
    age_bucket: int
    parameters: tuple[ClinicalParameter, ...]
    targets: dict[str, float] = field(default_factory=dict)

    def get(self, param_id: str) -> ClinicalParameter | None:
        for param in self.parameters:
            if param.id == param_id:
                return param
        return None


def _json_number(value: float) -> float | None:
    if value is None or math.isnan(value):
        return None
    return round(value, 2)


def _fmt(value: float, decimals: int = 1) -> str:
    return "--" if math.isnan(value) else f"{value:.{decimals}f}"


# =============================================================================
# Age Buckets
# =============================================================================


def age_bucket(age: float) -> int:
    """Index of the age bucket: <45, 45-54, 55-64, 65-74, >=75.

    Ages below or above the nominal range land in the first or last bucket.
    """
    return bisect.bisect_right(AGE_BUCKET_BREAKPOINTS, age)


def age_bucket_label(age: float) -> str:
    return AGE_BUCKET_LABELS[age_bucket(age)]


# =============================================================================
# Severity Classifiers
# =============================================================================


def classify_cl(cl: float, target: float) -> Severity:
    """Grade CL by its deviation from the T1S-derived target."""
    if math.isnan(cl):
        return PENDING
    diff = abs(cl - target)
    if diff < CL_SEVERITY_THRESHOLDS["normal_max"]:
        return Severity("Normal", SeverityTier.NORMAL)
    if diff < CL_SEVERITY_THRESHOLDS["mild_max"]:
        return Severity("Mild", SeverityTier.MILD)
    if diff < CL_SEVERITY_THRESHOLDS["moderate_max"]:
        return Severity("Moderate", SeverityTier.MODERATE)
    return Severity("Severe", SeverityTier.SEVERE)


def classify_csva(csva: float, age: float) -> Severity:
    """Grade cSVA on absolute thresholds; the mild band is normal for the elderly."""
    if math.isnan(csva):
        return PENDING
    if csva < CSVA_SEVERITY_THRESHOLDS["normal_max"]:
        return Severity("Normal", SeverityTier.NORMAL)
    if csva < CSVA_SEVERITY_THRESHOLDS["mild_max"]:
        if age >= CSVA_ELDERLY_AGE:
            return Severity("Normal", SeverityTier.NORMAL)
        return Severity("Mild", SeverityTier.MILD)
    if csva < CSVA_SEVERITY_THRESHOLDS["moderate_max"]:
        return Severity("Moderate", SeverityTier.MODERATE)
    return Severity("Severe", SeverityTier.SEVERE)


def classify_t1s_cl(mismatch: float) -> Severity:
    """Grade T1S-CL by distance outside the normative corridor."""
    if math.isnan(mismatch):
        return PENDING
    low, high = T1S_CL_CORRIDOR_DEG
    if low <= mismatch <= high:
        return Severity("Normal", SeverityTier.NORMAL)
    diff = mismatch - high if mismatch > high else low - mismatch
    if diff < T1S_CL_SEVERITY_THRESHOLDS["mild_max"]:
        return Severity("Mild", SeverityTier.MILD)
    if diff < T1S_CL_SEVERITY_THRESHOLDS["moderate_max"]:
        return Severity("Moderate", SeverityTier.MODERATE)
    return Severity("Severe", SeverityTier.SEVERE)


def classify_cbva(cbva: float) -> Severity:
    """Grade CBVA by magnitude (inclusive bounds)."""
    if math.isnan(cbva):
        return PENDING
    magnitude = abs(cbva)
    if magnitude <= CBVA_SEVERITY_THRESHOLDS["normal_max"]:
        return Severity("Normal", SeverityTier.NORMAL)
    if magnitude <= CBVA_SEVERITY_THRESHOLDS["mild_max"]:
        return Severity("Mild", SeverityTier.MILD)
    if magnitude <= CBVA_SEVERITY_THRESHOLDS["moderate_max"]:
        return Severity("Moderate", SeverityTier.MODERATE)
    return Severity("Severe", SeverityTier.SEVERE)


def classify_sva(sva: float, target: float) -> Severity:
    """Grade SVA by its excess over the age-adjusted target (Schwab modifiers)."""
    if math.isnan(sva):
        return PENDING
    if sva <= target:
        return Severity("Normal", SeverityTier.NORMAL)
    excess = sva - target
    if excess < SVA_SEVERITY_THRESHOLDS["mild_max"]:
        return Severity("Mild (Schwab +)", SeverityTier.MILD)
    if excess < SVA_SEVERITY_THRESHOLDS["moderate_max"]:
        return Severity("Moderate (Schwab ++)", SeverityTier.MODERATE)
    return Severity("Severe (Schwab +++)", SeverityTier.SEVERE)


def classify_pi_ll(pi_ll: float, target: float) -> Severity:
    """Grade PI-LL mismatch by its excess over the age-adjusted target."""
    if math.isnan(pi_ll) or math.isnan(target):
        return PENDING
    if pi_ll <= target:
        return Severity("Matched", SeverityTier.NORMAL)
    excess = pi_ll - target
    if excess < PI_LL_SEVERITY_THRESHOLDS["mild_max"]:
        return Severity("Mild (Schwab +)", SeverityTier.MILD)
    if excess < PI_LL_SEVERITY_THRESHOLDS["moderate_max"]:
        return Severity("Moderate (Schwab ++)", SeverityTier.MODERATE)
    return Severity("Severe (Schwab +++)", SeverityTier.SEVERE)


def classify_ll_deficit(ll: float, target_ll: float) -> Severity:
    """Grade LL by its shortfall from target LL, on the PI-LL breakpoints."""
    if math.isnan(ll) or math.isnan(target_ll):
        return PENDING
    deficit = target_ll - ll
    if deficit <= 0:
        return Severity("Normal", SeverityTier.NORMAL)
    if deficit < PI_LL_SEVERITY_THRESHOLDS["mild_max"]:
        return Severity("Mild", SeverityTier.MILD)
    if deficit < PI_LL_SEVERITY_THRESHOLDS["moderate_max"]:
        return Severity("Moderate", SeverityTier.MODERATE)
    return Severity("Severe", SeverityTier.SEVERE)


def classify_pt(pt: float, target: float) -> Severity:
    """Grade pelvic tilt by its excess over the age-adjusted target."""
    if math.isnan(pt):
        return PENDING
    if pt <= target:
        return Severity("Normal", SeverityTier.NORMAL)
    excess = pt - target
    if excess < PT_SEVERITY_THRESHOLDS["mild_max"]:
        return Severity("Mild", SeverityTier.MILD)
    if excess < PT_SEVERITY_THRESHOLDS["moderate_max"]:
        return Severity("Moderate", SeverityTier.MODERATE)
    return Severity("Severe", SeverityTier.SEVERE)


# =============================================================================
# Cervical Targets
# =============================================================================


def _excess_correction(current: float, target: float, template: str) -> str:
    """Correction text for "lower is better" parameters (exact comparison)."""
    if math.isnan(current) or math.isnan(target):
        return PENDING_TEXT
    if current > target:
        return template.format(current - target)
    return WITHIN_TARGET_TEXT


def compute_cervical_targets(measured: Mapping[str, float], age: float) -> CorrectionTargets:
    """Targets for CL, cSVA, T1S-CL and CBVA."""
    cl = measured.get("cl", math.nan)
    csva = measured.get("csva", math.nan)
    t1s = measured.get("t1s", math.nan)
    cbva = measured.get("cbva", math.nan)
    bucket = age_bucket(age)

    t1s_ref = DEFAULT_T1_SLOPE_DEG if math.isnan(t1s) else t1s
    target_cl = -(t1s_ref - CL_T1S_OFFSET_DEG)
    target_csva = CERVICAL_CSVA_TARGETS_MM[bucket]
    t1s_cl = t1s - abs(cl)
    low, high = T1S_CL_CORRIDOR_DEG

    params = []

    # 1. Cervical lordosis (3 deg tolerance band)
    cl_diff = cl - target_cl
    if math.isnan(cl):
        cl_correction = PENDING_TEXT
    elif abs(cl_diff) < CL_WITHIN_TARGET_TOLERANCE_DEG:
        cl_correction = WITHIN_TARGET_TEXT
    else:
        cl_correction = f"{cl_diff:.1f}° correction needed"
    params.append(
        ClinicalParameter(
            id="cl",
            label="Cervical Lordosis (CL)",
            current=cl,
            unit="°",
            target_expression=f"{target_cl:.1f}°",
            target_val=target_cl,
            correction_text=cl_correction,
            severity=classify_cl(cl, target_cl),
            explanation=(
                f"Target: CL ≈ T1S({_fmt(t1s_ref)}°) − {CL_T1S_OFFSET_DEG}° = {target_cl:.1f}°"
            ),
        )
    )

    # 2. Cervical SVA
    params.append(
        ClinicalParameter(
            id="csva",
            label="Cervical SVA (cSVA)",
            current=csva,
            unit="mm",
            target_expression=f"< {target_csva:g} mm",
            target_val=target_csva,
            correction_text=_excess_correction(csva, target_csva, "{:.1f} mm reduction needed"),
            severity=classify_csva(csva, age),
            explanation=(
                f"Threshold < {CSVA_SEVERITY_THRESHOLDS['mild_max']:g}mm (HRQOL); "
                f"age-adjusted target: {target_csva:g}mm"
            ),
        )
    )

    # 3. T1S - CL mismatch
    if math.isnan(t1s_cl):
        t1s_cl_correction = PENDING_TEXT
    elif t1s_cl > high:
        t1s_cl_correction = f"{t1s_cl - high:.1f}° excess — increase lordosis"
    elif t1s_cl < low:
        t1s_cl_correction = f"{low - t1s_cl:.1f}° deficit"
    else:
        t1s_cl_correction = WITHIN_TARGET_TEXT
    params.append(
        ClinicalParameter(
            id="t1s_cl",
            label="T1S – CL Mismatch",
            current=t1s_cl,
            unit="°",
            target_expression=f"{low:g}° – {high:g}°",
            target_val=T1S_CL_TARGET_DEG,
            correction_text=t1s_cl_correction,
            severity=classify_t1s_cl(t1s_cl),
            explanation=f"T1S({_fmt(t1s)}°) − |CL|({_fmt(abs(cl))}°) = {_fmt(t1s_cl)}°",
        )
    )

    # 4. Chin-brow vertical angle; positive = downward gaze
    cbva_low, cbva_high = CBVA_CORRIDOR_DEG
    if math.isnan(cbva):
        cbva_correction = PENDING_TEXT
    elif cbva_low <= cbva <= cbva_high:
        cbva_correction = WITHIN_TARGET_TEXT
    elif cbva > cbva_high:
        cbva_correction = f"{cbva - cbva_high:.1f}° extension correction needed"
    else:
        cbva_correction = f"{cbva_low - cbva:.1f}° flexion correction needed"
    params.append(
        ClinicalParameter(
            id="cbva",
            label="Chin-Brow Vertical Angle (CBVA)",
            current=cbva,
            unit="°",
            target_expression=f"−{abs(cbva_low):g}° to +{cbva_high:g}°",
            target_val=CBVA_TARGET_DEG,
            correction_text=cbva_correction,
            severity=classify_cbva(cbva),
            explanation="Neutral horizontal gaze window",
        )
    )

    return CorrectionTargets(
        region=Region.CERVICAL,
        age=age,
        age_bucket=bucket,
        parameters=tuple(params),
        targets={
            "cl": target_cl,
            "csva": target_csva,
            "t1s_cl": T1S_CL_TARGET_DEG,
            "cbva": CBVA_TARGET_DEG,
        },
    )


# =============================================================================
# Lumbar Targets
# =============================================================================


def compute_lumbar_targets(measured: Mapping[str, float], age: float) -> CorrectionTargets:
    """Targets for SVA, PI-LL, PT and LL."""
    pi = measured.get("pi", math.nan)
    ll = measured.get("ll", math.nan)
    sva = measured.get("sva", math.nan)
    pt = measured.get("pt", math.nan)
    bucket = age_bucket(age)

    row = LUMBAR_AGE_TARGETS[bucket]
    target_sva = row["sva_mm"]
    target_pt = row["pt_deg"]
    target_pi_ll = row["pi_ll_deg"]
    target_ll = pi - target_pi_ll
    pi_ll = pi - ll

    params = []

    # 1. Sagittal vertical axis
    params.append(
        ClinicalParameter(
            id="sva",
            label="Sagittal Vertical Axis (SVA)",
            current=sva,
            unit="mm",
            target_expression=f"< {target_sva:g} mm",
            target_val=target_sva,
            correction_text=_excess_correction(sva, target_sva, "{:.1f} mm reduction needed"),
            severity=classify_sva(sva, target_sva),
            explanation="Age-adjusted threshold (Schwab-SRS/Lafage)",
        )
    )

    # 2. PI-LL mismatch
    params.append(
        ClinicalParameter(
            id="pill",
            label="PI-LL Mismatch",
            current=pi_ll,
            unit="°",
            target_expression=f"< {target_pi_ll:g}°",
            target_val=target_pi_ll,
            correction_text=_excess_correction(
                pi_ll,
                target_pi_ll,
                "{:.1f}° of additional lordosis needed (target LL ≈ "
                + _fmt(target_ll, 0)
                + "°)",
            ),
            severity=classify_pi_ll(pi_ll, target_pi_ll),
            explanation=(
                f"PI = {_fmt(pi)}° | Current LL = {_fmt(ll)}° | "
                f"Target LL ≈ {_fmt(target_ll, 0)}°"
            ),
        )
    )

    # 3. Pelvic tilt
    params.append(
        ClinicalParameter(
            id="pt",
            label="Pelvic Tilt (PT)",
            current=pt,
            unit="°",
            target_expression=f"< {target_pt:g}°",
            target_val=target_pt,
            correction_text=_excess_correction(
                pt, target_pt, "{:.1f}° reduction expected with lordosis restoration"
            ),
            severity=classify_pt(pt, target_pt),
            explanation="Compensatory retroversion indicator; normalizes with LL correction",
        )
    )

    # 4. Lumbar lordosis
    if math.isnan(ll) or math.isnan(target_ll):
        ll_correction = PENDING_TEXT
    elif ll < target_ll:
        ll_correction = f"{target_ll - ll:.1f}° lordosis increase needed"
    else:
        ll_correction = WITHIN_TARGET_TEXT
    params.append(
        ClinicalParameter(
            id="ll",
            label="Lumbar Lordosis (LL)",
            current=ll,
            unit="°",
            target_expression=f"{_fmt(target_ll)}°",
            target_val=target_ll,
            correction_text=ll_correction,
            severity=classify_ll_deficit(ll, target_ll),
            explanation=f"Target LL = PI({_fmt(pi)}°) − {target_pi_ll:g}°",
        )
    )

    return CorrectionTargets(
        region=Region.LUMBAR,
        age=age,
        age_bucket=bucket,
        parameters=tuple(params),
        targets={
            "sva": target_sva,
            "pill": target_pi_ll,
            "pt": target_pt,
            "ll": target_ll,
        },
    )


# =============================================================================
# Entry Points
# =============================================================================


def compute_targets(region: Region, measured: Mapping[str, float], age: float) -> CorrectionTargets:
    """Age-adjusted targets and severities for the region's parameters."""
    if region is Region.CERVICAL:
        result = compute_cervical_targets(measured, age)
    else:
        result = compute_lumbar_targets(measured, age)

    logger.debug(
        f"Computed {region.value} targets for age {age} "
        f"(bucket {AGE_BUCKET_LABELS[result.age_bucket]}, table v{NORMATIVE_TABLE_VERSION})"
    )
    return result


def overall_severity(results: list[CorrectionTargets]) -> str:
    """Worst graded tier across all regions: none/normal/mild/moderate/severe."""
    tiers = [
        param.severity.tier
        for result in results
        for param in result.parameters
        if param.severity.tier is not None
    ]
    if not tiers:
        return "none"
    return max(tiers, key=lambda tier: tier.value).name.lower()


def comparison_rows(result: CorrectionTargets) -> list[dict[str, Any]]:
    """Preop vs target rows for external tables and exports."""
    return [
        {
            "label": p.label,
            "current": _json_number(p.current),
            "unit": p.unit,
            "target": p.target_expression,
            "correction": p.correction_text,
            "severity": p.severity.text,
        }
        for p in result.parameters
    ]


def age_note(age: float) -> str:
    """Human-readable note on which normative bucket produced the targets."""
    return (
        f"Targets computed for age {age:g} (bucket {age_bucket_label(age)}) using "
        f"age-adjusted Schwab-SRS/Lafage thresholds, normative table "
        f"v{NORMATIVE_TABLE_VERSION}. Patient-specific anatomy and comorbidities "
        f"must guide final correction goals."
    )

"""Illustrative postoperative landmark projection.

Applies a conservative fraction of the computed corrections back onto a
copy of the landmark set so the renderer can draw a "corrected" spine
next to the preop one. This is a first-order picture, not a prediction:
re-measuring the output does not reach the targets by design.

Two independent steps, each applied only when the current value misses
its target:

1. Translation (SVA / cSVA): shift the top reference landmark by the full
   mm excess converted to pixels, and the adjacent endplate by a partial
   share. The shift always points toward the lower reference but is not
   clamped to it: without a calibration the offset is measured in pixels
   and then scaled by the anthropometric prior, so the top reference can
   land past the lower one.
2. Rotation (LL / CL): rotate the upper endplate (and, by a smaller share,
   the top reference) about the midpoint of the lower endplate.
"""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass

from spinealign_mcp.geometry import (
    Point,
    distance,
    midpoint,
    rotate_point,
    signed_angle_between,
    translate_point,
)
from spinealign_mcp.landmarks import AnnotationSession
from spinealign_mcp.measurements import film_facing
from spinealign_mcp.metrics import record_simulation_step
from spinealign_mcp.spine_constants import (
    ANTHROPOMETRIC_REFERENCE_MM,
    CL_ROTATION_MIN_DELTA_DEG,
    FALLBACK_PIXELS_PER_MM,
    SIMULATION_COEFFICIENTS,
    Region,
)
from spinealign_mcp.targets import CorrectionTargets

logger = logging.getLogger("spinealign-mcp")

SCALE_SOURCE_CALIBRATION = "calibration"
SCALE_SOURCE_PRIOR = "anthropometric_prior"
SCALE_SOURCE_FALLBACK = "fallback"

# Landmarks defining the anthropometric reference segment per region
SCALE_REFERENCE_LANDMARKS: dict[Region, tuple[str, str, str, str]] = {
    Region.LUMBAR: ("l1_sup_ant", "l1_sup_post", "s1_sup_ant", "s1_sup_post"),
    Region.CERVICAL: ("c2_sup_ant", "c2_sup_post", "c7_inf_ant", "c7_inf_post"),
}

# Translation: (measurement id, top reference, lower reference, partial-shift endplate)
TRANSLATION_LANDMARKS: dict[Region, tuple[str, str, str, tuple[str, ...]]] = {
    Region.LUMBAR: ("sva", "c7_centroid", "s1_post_sup", ("l1_sup_ant", "l1_sup_post")),
    Region.CERVICAL: ("csva", "c2_centroid", "c7_sup_post", ("c2_sup_ant", "c2_sup_post")),
}

# Rotation: (upper endplate, distal reference, lower endplate pivot pair)
ROTATION_LANDMARKS: dict[Region, tuple[tuple[str, str], str, tuple[str, str]]] = {
    Region.LUMBAR: (("l1_sup_ant", "l1_sup_post"), "c7_centroid", ("s1_sup_ant", "s1_sup_post")),
    Region.CERVICAL: (("c2_sup_ant", "c2_sup_post"), "c2_centroid", ("c7_inf_ant", "c7_inf_post")),
}


@dataclass(frozen=True)
class SimulationResult:
    """Corrected landmark layout plus how it was produced.

    Attributes:
        landmarks: Corrected points, same order and count as the input.
        pixels_per_mm: Scale used to convert mm corrections to pixels.
        scale_source: "calibration", "anthropometric_prior" or "fallback".
        applied_steps: Names of the steps that moved points.
    """

    landmarks: tuple[Point, ...]
    pixels_per_mm: float
    scale_source: str
    applied_steps: tuple[str, ...]


# =============================================================================
# Pixel Scale
# =============================================================================


def estimate_pixel_scale(session: AnnotationSession) -> tuple[float, str]:
    """Pixels per mm for converting mm corrections to image shifts.

    Uses the session calibration when present, otherwise assumes the
    region's reference segment has its average adult length.

    Returns:
        (pixels_per_mm, source)
    """
    if session.pixels_per_mm:
        return session.pixels_per_mm, SCALE_SOURCE_CALIBRATION

    lm = session.landmark_map()
    upper_a, upper_b, lower_a, lower_b = SCALE_REFERENCE_LANDMARKS[session.region]
    if all(key in lm for key in (upper_a, upper_b, lower_a, lower_b)):
        pix_dist = distance(midpoint(lm[upper_a], lm[upper_b]), midpoint(lm[lower_a], lm[lower_b]))
        if pix_dist > 0:
            return pix_dist / ANTHROPOMETRIC_REFERENCE_MM[session.region.value], SCALE_SOURCE_PRIOR

    return FALLBACK_PIXELS_PER_MM, SCALE_SOURCE_FALLBACK


# =============================================================================
# Correction Steps
# =============================================================================


def _apply_translation(
    points: dict[str, Point],
    region: Region,
    measured: Mapping[str, float],
    targets: CorrectionTargets,
    pixels_per_mm: float,
) -> bool:
    param_id, top_id, ref_id, partial_ids = TRANSLATION_LANDMARKS[region]
    current = measured.get(param_id, math.nan)
    target = targets.targets.get(param_id, math.nan)

    if top_id not in points or ref_id not in points:
        return False
    if math.isnan(current) or math.isnan(target) or current <= target:
        return False

    shift_px = (current - target) * pixels_per_mm
    # Toward the lower reference; an uncalibrated offset scaled by the prior can overshoot it
    direction = 1.0 if points[ref_id].x > points[top_id].x else -1.0
    partial = SIMULATION_COEFFICIENTS[region.value]["translation_partial"]

    points[top_id] = translate_point(points[top_id], direction * shift_px)
    for key in partial_ids:
        if key in points:
            points[key] = translate_point(points[key], direction * shift_px * partial)

    logger.debug(f"{region.value} translation: {param_id} {current:.1f} -> {target:.1f}, {shift_px:.1f}px")
    return True


def _lordosis_rotation_sign(points: dict[str, Point], region: Region) -> float:
    """Rotation sense (+1/-1) that moves the measured lordosis toward its target.

    For LL the Cobb magnitude grows when the upper endplate turns away
    from the lower one. For the signed CL, a positive rotation of the C2
    endplate raises CL on a right-facing film and lowers it on a
    left-facing one.
    """
    (upper_a, upper_b), _, (lower_a, lower_b) = ROTATION_LANDMARKS[region]
    if region is Region.CERVICAL:
        return film_facing(points[upper_a], points[upper_b], points[lower_a], points[lower_b])
    relative = signed_angle_between(points[upper_a], points[upper_b], points[lower_a], points[lower_b])
    return -1.0 if relative >= 0 else 1.0


def _apply_rotation(
    points: dict[str, Point],
    region: Region,
    measured: Mapping[str, float],
    targets: CorrectionTargets,
) -> bool:
    (upper_a, upper_b), distal_id, (lower_a, lower_b) = ROTATION_LANDMARKS[region]
    if not all(key in points for key in (upper_a, upper_b, lower_a, lower_b)):
        return False

    param_id = "cl" if region is Region.CERVICAL else "ll"
    current = measured.get(param_id, math.nan)
    target = targets.targets.get(param_id, math.nan)
    if math.isnan(current) or math.isnan(target):
        return False

    delta = target - current
    if region is Region.CERVICAL:
        if abs(delta) <= CL_ROTATION_MIN_DELTA_DEG:
            return False
        # signed CL: rotation sense follows the sign of the delta
        sense = _lordosis_rotation_sign(points, region) * (1.0 if delta > 0 else -1.0)
    else:
        if delta <= 0:
            return False
        sense = _lordosis_rotation_sign(points, region)

    coeffs = SIMULATION_COEFFICIENTS[region.value]
    delta_rad = math.radians(abs(delta))
    pivot = midpoint(points[lower_a], points[lower_b])

    for key in (upper_a, upper_b):
        points[key] = rotate_point(points[key], pivot, sense * delta_rad * coeffs["rotation_cluster"])
    if distal_id in points:
        points[distal_id] = rotate_point(
            points[distal_id], pivot, sense * delta_rad * coeffs["rotation_distal"]
        )

    logger.debug(f"{region.value} rotation: {param_id} {current:.1f} -> {target:.1f}")
    return True


# =============================================================================
# Entry Point
# =============================================================================


def simulate_correction(
    session: AnnotationSession,
    measured: Mapping[str, float],
    targets: CorrectionTargets,
) -> SimulationResult:
    """Project an illustrative corrected landmark layout.

    Args:
        session: Source annotation (never modified).
        measured: Unrounded parameters from extract_measurements(session).
        targets: Output of compute_targets for the same region.

    Returns:
        SimulationResult whose landmarks match the input count and order.
    """
    region = session.region
    pixels_per_mm, scale_source = estimate_pixel_scale(session)
    points = session.landmark_map()

    applied = []
    translated = _apply_translation(points, region, measured, targets, pixels_per_mm)
    record_simulation_step(region.value, "translation", translated)
    if translated:
        applied.append("translation")

    rotated = _apply_rotation(points, region, measured, targets)
    record_simulation_step(region.value, "rotation", rotated)
    if rotated:
        applied.append("rotation")

    corrected = tuple(points[d.id] for d in session.catalog[: len(session.landmarks)])
    return SimulationResult(
        landmarks=corrected,
        pixels_per_mm=pixels_per_mm,
        scale_source=scale_source,
        applied_steps=tuple(applied),
    )

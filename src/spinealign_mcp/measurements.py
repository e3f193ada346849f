"""Landmark -> clinical parameter extraction.

Maps an annotation session to the region's four measured parameters.
Parameters whose landmarks are not all placed are NaN ("pending"); that
is a normal state while annotating, never an error.

Angles are unaffected by radiographic magnification. Horizontal offsets
(SVA, cSVA) are in pixels unless the session carries a calibration or a
manual mm override.
"""

import logging
import math

from spinealign_mcp.constants import DISPLAY_DECIMALS
from spinealign_mcp.geometry import (
    angle_to_vertical,
    cobb_angle,
    compute_pi,
    compute_pt,
    line_angle,
    midpoint,
    signed_angle_between,
)
from spinealign_mcp.landmarks import AnnotationSession
from spinealign_mcp.spine_constants import Region

logger = logging.getLogger("spinealign-mcp")

CERVICAL_PARAMETERS = ("cl", "csva", "t1s", "cbva")
LUMBAR_PARAMETERS = ("ll", "sva", "pi", "pt")

REGION_PARAMETERS: dict[Region, tuple[str, ...]] = {
    Region.CERVICAL: CERVICAL_PARAMETERS,
    Region.LUMBAR: LUMBAR_PARAMETERS,
}

# Landmark ids each parameter needs
PARAMETER_PREREQUISITES: dict[str, tuple[str, ...]] = {
    "cl": ("c2_sup_ant", "c2_sup_post", "c7_inf_ant", "c7_inf_post"),
    "csva": ("c2_centroid", "c7_sup_post"),
    "t1s": ("t1_sup_ant", "t1_sup_post"),
    "cbva": ("chin", "brow"),
    "ll": ("l1_sup_ant", "l1_sup_post", "s1_sup_ant", "s1_sup_post"),
    "sva": ("s1_post_sup", "c7_centroid"),
    "pi": ("s1_sup_ant", "s1_sup_post", "fh_left", "fh_right"),
    "pt": ("s1_sup_ant", "s1_sup_post", "fh_left", "fh_right"),
}


def _has(lm: dict, param_id: str) -> bool:
    return all(key in lm for key in PARAMETER_PREREQUISITES[param_id])


def film_facing(c2_ant, c2_post, c7_ant, c7_post) -> float:
    """+1 when the patient faces right (anterior corners right of posterior), else -1."""
    return 1.0 if (c2_post[0] - c2_ant[0]) + (c7_post[0] - c7_ant[0]) <= 0 else -1.0


def signed_cervical_lordosis(c2_ant, c2_post, c7_ant, c7_post) -> float:
    """Signed C2-C7 Cobb angle; lordosis negative, kyphosis positive.

    The sign comes from the rotation carrying the C2 superior endplate onto
    the C7 inferior endplate (both taken anterior -> posterior), mirrored
    for left-facing films so both facings give the same sign. The
    magnitude always equals cobb_angle of the same endplates.
    """
    rotation = signed_angle_between(c2_ant, c2_post, c7_ant, c7_post)
    return -film_facing(c2_ant, c2_post, c7_ant, c7_post) * rotation


def _horizontal_offset(session: AnnotationSession, key: str, p1, p2) -> float:
    override = session.override_for(key)
    if override is not None:
        return override
    offset = abs(p1[0] - p2[0])
    if session.pixels_per_mm:
        offset /= session.pixels_per_mm
    return offset


def extract_cervical(session: AnnotationSession) -> dict[str, float]:
    """Cervical CL, cSVA, T1S and CBVA from a cervical session."""
    lm = session.landmark_map()
    result = dict.fromkeys(CERVICAL_PARAMETERS, math.nan)

    if _has(lm, "cl"):
        result["cl"] = signed_cervical_lordosis(
            lm["c2_sup_ant"], lm["c2_sup_post"], lm["c7_inf_ant"], lm["c7_inf_post"]
        )

    if _has(lm, "csva"):
        result["csva"] = _horizontal_offset(session, "csva", lm["c2_centroid"], lm["c7_sup_post"])

    if _has(lm, "t1s"):
        result["t1s"] = line_angle(lm["t1_sup_ant"], lm["t1_sup_post"])

    if _has(lm, "cbva"):
        result["cbva"] = angle_to_vertical(lm["chin"], lm["brow"])

    return result


def extract_lumbar(session: AnnotationSession) -> dict[str, float]:
    """Lumbar LL, SVA, PI and PT from a lumbar session."""
    lm = session.landmark_map()
    result = dict.fromkeys(LUMBAR_PARAMETERS, math.nan)

    if _has(lm, "ll"):
        result["ll"] = cobb_angle(
            lm["l1_sup_ant"], lm["l1_sup_post"], lm["s1_sup_ant"], lm["s1_sup_post"]
        )

    if _has(lm, "sva"):
        result["sva"] = _horizontal_offset(session, "sva", lm["c7_centroid"], lm["s1_post_sup"])

    if _has(lm, "pi"):
        hip_center = midpoint(lm["fh_left"], lm["fh_right"])
        s1_mid = midpoint(lm["s1_sup_ant"], lm["s1_sup_post"])
        result["pi"] = compute_pi(lm["s1_sup_ant"], lm["s1_sup_post"], hip_center)
        result["pt"] = compute_pt(s1_mid, hip_center)

    return result


def extract_measurements(session: AnnotationSession) -> dict[str, float]:
    """Unrounded region parameters for a session (NaN = pending).

    These are the values the target engine consumes.
    """
    if session.region is Region.CERVICAL:
        result = extract_cervical(session)
    else:
        result = extract_lumbar(session)

    if logger.isEnabledFor(logging.DEBUG):
        computed = [k for k, v in result.items() if not math.isnan(v)]
        logger.debug(
            f"Extracted {session.region.value} parameters from "
            f"{len(session.landmarks)} landmarks: computed={computed}"
        )
    return result


def round_for_display(value: float) -> float:
    """One-decimal display value; NaN passes through."""
    if math.isnan(value):
        return value
    return round(value, DISPLAY_DECIMALS)


def get_results(session: AnnotationSession) -> dict[str, float]:
    """Display-rounded parameters keyed as {cl, csva, t1s, cbva} or {ll, sva, pi, pt}.

    A manual override is returned exactly as entered.
    """
    raw = extract_measurements(session)
    results = {k: round_for_display(v) for k, v in raw.items()}
    key = "csva" if session.region is Region.CERVICAL else "sva"
    override = session.override_for(key)
    if override is not None and not math.isnan(raw[key]):
        results[key] = override
    return results

"""MCP tool implementations for SpineAlign.

Each tool validates untyped JSON input, builds an AnnotationSession and
runs the landmark -> measurement -> target -> simulation pipeline.
Only this layer raises: the pipeline itself reports missing landmarks
as pending (NaN / None) values.
"""

import logging
import math
from typing import Any, Optional

from spinealign_mcp.constants import SIMULATION_DISCLAIMER
from spinealign_mcp.geometry import Point
from spinealign_mcp.landmarks import (
    LANDMARK_CATALOG,
    MINIMUM_LANDMARKS,
    REGION_OVERRIDE_KEY,
    AnnotationSession,
)
from spinealign_mcp.measurements import extract_measurements, get_results
from spinealign_mcp.metrics import track_operation
from spinealign_mcp.simulation import simulate_correction as run_simulation
from spinealign_mcp.spine_constants import NORMATIVE_TABLE_VERSION, Region
from spinealign_mcp.targets import (
    age_bucket_label,
    age_note,
    comparison_rows,
    compute_targets,
    overall_severity,
)

logger = logging.getLogger("spinealign-mcp")

VALID_REGIONS = frozenset(r.value for r in Region)


class ValidationError(Exception):
    """Raised when input validation fails."""

    def __init__(self, message: str, field: str, value: str):
        self.message = message
        self.field = field
        self.value = value
        super().__init__(self.message)


# =============================================================================
# Input Validation
# =============================================================================


def validate_region(region: str) -> Region:
    """Validate a region name.

    Raises:
        ValidationError: If region is not "cervical" or "lumbar"
    """
    if not isinstance(region, str) or region.strip().lower() not in VALID_REGIONS:
        raise ValidationError(
            f"Invalid region '{region}'. Must be one of: {', '.join(sorted(VALID_REGIONS))}",
            field="region",
            value=str(region),
        )
    return Region(region.strip().lower())


def _validate_coordinate(value: Any, field: str) -> float:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be numeric", field=field, value=str(value))
    try:
        num = float(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be numeric", field=field, value=str(value))
    if not math.isfinite(num):
        raise ValidationError(f"{field} must be finite", field=field, value=str(value))
    return num


def validate_landmarks(region: Region, landmarks: Any) -> tuple[Point, ...]:
    """Validate an ordered landmark list of [x, y] pairs or {"x", "y"} objects.

    Args:
        region: Region whose catalog bounds the list length.
        landmarks: Ordered coordinates; element i is catalog landmark i.

    Returns:
        Tuple of Points.

    Raises:
        ValidationError: If the list is malformed or longer than the catalog.
    """
    if landmarks is None:
        return ()
    if not isinstance(landmarks, (list, tuple)):
        raise ValidationError(
            "landmarks must be a list of [x, y] coordinates",
            field="landmarks",
            value=type(landmarks).__name__,
        )

    capacity = len(LANDMARK_CATALOG[region])
    if len(landmarks) > capacity:
        raise ValidationError(
            f"too many {region.value} landmarks ({len(landmarks)} > {capacity})",
            field="landmarks",
            value=str(len(landmarks)),
        )

    points = []
    for idx, coord in enumerate(landmarks):
        field = f"landmarks[{idx}]"
        if isinstance(coord, dict):
            if "x" not in coord or "y" not in coord:
                raise ValidationError(
                    f"{field} must have 'x' and 'y' keys", field=field, value=str(coord)
                )
            x, y = coord["x"], coord["y"]
        elif isinstance(coord, (list, tuple)) and len(coord) == 2:
            x, y = coord
        else:
            raise ValidationError(f"{field} must be [x, y], got: {coord}", field=field, value=str(coord))
        points.append(Point(_validate_coordinate(x, f"{field}.x"), _validate_coordinate(y, f"{field}.y")))
    return tuple(points)


def validate_age(age: Any) -> float:
    """Validate patient age in years.

    Any finite number is accepted; out-of-range ages fall into the boundary
    age bucket.
    """
    return _validate_coordinate(age, "age")


def validate_pixels_per_mm(pixels_per_mm: Any) -> Optional[float]:
    """Validate an optional calibration factor (pixels per millimetre)."""
    if pixels_per_mm is None:
        return None
    value = _validate_coordinate(pixels_per_mm, "pixels_per_mm")
    if value <= 0:
        raise ValidationError(
            "pixels_per_mm must be positive", field="pixels_per_mm", value=str(pixels_per_mm)
        )
    return value


def build_session(
    region: str,
    landmarks: Any,
    overrides: Optional[dict[str, Any]] = None,
    pixels_per_mm: Any = None,
) -> AnnotationSession:
    """Validate tool inputs into an AnnotationSession.

    Override values that are non-numeric or <= 0 are silently dropped.
    """
    region_enum = validate_region(region)
    points = validate_landmarks(region_enum, landmarks)
    if overrides is not None and not isinstance(overrides, dict):
        raise ValidationError(
            "overrides must be an object mapping parameter id to mm",
            field="overrides",
            value=type(overrides).__name__,
        )

    session = AnnotationSession(region=region_enum, landmarks=points)
    for key, value in (overrides or {}).items():
        session = session.with_override(key, value)
    return session.with_calibration(validate_pixels_per_mm(pixels_per_mm))


def _json_value(value: float) -> Optional[float]:
    return None if math.isnan(value) else value


def _landmark_status(session: AnnotationSession) -> dict[str, Any]:
    next_def = session.next_landmark()
    return {
        "placed": len(session.landmarks),
        "required": len(session.catalog),
        "minimum": MINIMUM_LANDMARKS[session.region],
        "complete": session.is_complete(),
        "has_minimum_data": session.has_minimum_data(),
        "next_landmark": next_def.id if next_def else None,
    }


# =============================================================================
# Tools
# =============================================================================


def list_landmarks(region: str) -> dict[str, Any]:
    """Ordered landmark catalog for a region.

    Args:
        region: "cervical" or "lumbar"

    Returns:
        Dict with region, landmark definitions (index, id, label, short_label),
        accepted override key and minimum landmark count
    """
    with track_operation("list_landmarks"):
        region_enum = validate_region(region)
        return {
            "region": region_enum.value,
            "landmarks": [
                {"index": idx, "id": d.id, "label": d.label, "short_label": d.short_label}
                for idx, d in enumerate(LANDMARK_CATALOG[region_enum])
            ],
            "override_key": REGION_OVERRIDE_KEY[region_enum],
            "minimum_landmarks": MINIMUM_LANDMARKS[region_enum],
        }


def measure_landmarks(
    region: str,
    landmarks: list,
    overrides: Optional[dict[str, Any]] = None,
    pixels_per_mm: Optional[float] = None,
) -> dict[str, Any]:
    """Measure region parameters from placed landmarks.

    Returns:
        Dict with display-rounded results, unrounded values (None = pending),
        distance unit, active overrides and landmark placement status
    """
    with track_operation("measure_landmarks"):
        session = build_session(region, landmarks, overrides, pixels_per_mm)
        raw = extract_measurements(session)
        results = get_results(session)

        logger.info(
            f"Measured {session.region.value} landmarks: "
            f"{len(session.landmarks)}/{len(session.catalog)} placed, "
            + ", ".join(f"{k}={'--' if math.isnan(v) else f'{v:.1f}'}" for k, v in results.items())
        )

        return {
            "success": True,
            "region": session.region.value,
            "results": {k: _json_value(v) for k, v in results.items()},
            "unrounded": {k: _json_value(v) for k, v in raw.items()},
            "distance_unit": "mm" if session.pixels_per_mm else "px",
            "overrides": dict(session.overrides),
            "landmark_status": _landmark_status(session),
        }


def compute_correction_targets(
    region: str,
    age: float,
    landmarks: list,
    overrides: Optional[dict[str, Any]] = None,
    pixels_per_mm: Optional[float] = None,
) -> dict[str, Any]:
    """Age-adjusted correction targets and severity per parameter.

    Returns:
        Dict with parameters (ClinicalParameter shape), overall severity,
        comparison rows, age bucket and note
    """
    with track_operation("compute_correction_targets"):
        age_value = validate_age(age)
        session = build_session(region, landmarks, overrides, pixels_per_mm)
        result = compute_targets(session.region, extract_measurements(session), age_value)
        severity = overall_severity([result])

        logger.info(
            f"Computed {session.region.value} targets for age {age_value:g}: "
            f"overall severity={severity}"
        )

        return {
            "success": True,
            "region": session.region.value,
            "age": age_value,
            "age_bucket": age_bucket_label(age_value),
            "normative_table_version": NORMATIVE_TABLE_VERSION,
            "parameters": [p.to_dict() for p in result.parameters],
            "overall_severity": severity,
            "comparison": comparison_rows(result),
            "note": age_note(age_value),
            "landmark_status": _landmark_status(session),
        }


def simulate_correction(
    region: str,
    age: float,
    landmarks: list,
    overrides: Optional[dict[str, Any]] = None,
    pixels_per_mm: Optional[float] = None,
) -> dict[str, Any]:
    """Project an illustrative corrected landmark layout.

    Returns:
        Dict with original and corrected landmarks (same count and order),
        applied steps, pixel scale and its source, targets used and disclaimer
    """
    with track_operation("simulate_correction"):
        age_value = validate_age(age)
        session = build_session(region, landmarks, overrides, pixels_per_mm)
        measured = extract_measurements(session)
        targets = compute_targets(session.region, measured, age_value)
        simulation = run_simulation(session, measured, targets)

        logger.info(
            f"Simulated {session.region.value} correction: "
            f"steps={list(simulation.applied_steps)}, scale={simulation.pixels_per_mm:.3f}px/mm "
            f"({simulation.scale_source})"
        )

        ids = [d.id for d in session.catalog]
        return {
            "success": True,
            "region": session.region.value,
            "original_landmarks": [
                {"id": ids[i], "x": p.x, "y": p.y} for i, p in enumerate(session.landmarks)
            ],
            "corrected_landmarks": [
                {"id": ids[i], "x": p.x, "y": p.y} for i, p in enumerate(simulation.landmarks)
            ],
            "applied_steps": list(simulation.applied_steps),
            "pixels_per_mm": simulation.pixels_per_mm,
            "scale_source": simulation.scale_source,
            "targets": {k: _json_value(v) for k, v in targets.targets.items()},
            "disclaimer": SIMULATION_DISCLAIMER,
        }

"""Landmark catalogs and the immutable annotation session.

A landmark set is positional: element i of a session's landmarks is the
point for definition i of the region's catalog. Sessions never mutate;
every edit returns a new session so the measurement pipeline can be fed
snapshots safely.
"""

import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import NamedTuple

from spinealign_mcp.constants import HIT_TEST_RADIUS_PX, OVERRIDE_KEYS
from spinealign_mcp.geometry import Point, distance
from spinealign_mcp.spine_constants import Region

logger = logging.getLogger("spinealign-mcp")


class LandmarkDefinition(NamedTuple):
    """Identity of one anatomical landmark in a region catalog."""

    id: str
    label: str
    short_label: str


# =============================================================================
# Landmark Catalogs
# =============================================================================
# Order is identity: downstream rendering and export address landmarks by
# these ids in exactly this order.

CERVICAL_LANDMARKS: tuple[LandmarkDefinition, ...] = (
    LandmarkDefinition("c2_sup_ant", "C2 Superior Endplate (Anterior)", "C2 Sup Ant"),
    LandmarkDefinition("c2_sup_post", "C2 Superior Endplate (Posterior)", "C2 Sup Post"),
    LandmarkDefinition("c2_centroid", "C2 Centroid", "C2 Center"),
    LandmarkDefinition("c7_inf_ant", "C7 Inferior Endplate (Anterior)", "C7 Inf Ant"),
    LandmarkDefinition("c7_inf_post", "C7 Inferior Endplate (Posterior)", "C7 Inf Post"),
    LandmarkDefinition("c7_sup_post", "C7 Posterior-Superior Corner", "C7 Post-Sup"),
    LandmarkDefinition("t1_sup_ant", "T1 Superior Endplate (Anterior)", "T1 Sup Ant"),
    LandmarkDefinition("t1_sup_post", "T1 Superior Endplate (Posterior)", "T1 Sup Post"),
    LandmarkDefinition("chin", "Chin Point", "Chin"),
    LandmarkDefinition("brow", "Brow Point", "Brow"),
)

LUMBAR_LANDMARKS: tuple[LandmarkDefinition, ...] = (
    LandmarkDefinition("l1_sup_ant", "L1 Superior Endplate (Anterior)", "L1 Sup Ant"),
    LandmarkDefinition("l1_sup_post", "L1 Superior Endplate (Posterior)", "L1 Sup Post"),
    LandmarkDefinition("s1_sup_ant", "S1 Superior Endplate (Anterior)", "S1 Sup Ant"),
    LandmarkDefinition("s1_sup_post", "S1 Superior Endplate (Posterior)", "S1 Sup Post"),
    LandmarkDefinition("s1_post_sup", "S1 Posterior-Superior Corner", "S1 Post-Sup"),
    LandmarkDefinition("c7_centroid", "C7 Centroid (on full-spine film)", "C7 Center"),
    LandmarkDefinition("fh_left", "Left Femoral Head Center", "FH Left"),
    LandmarkDefinition("fh_right", "Right Femoral Head Center", "FH Right"),
)

LANDMARK_CATALOG: dict[Region, tuple[LandmarkDefinition, ...]] = {
    Region.CERVICAL: CERVICAL_LANDMARKS,
    Region.LUMBAR: LUMBAR_LANDMARKS,
}

# Landmarks needed before anything is measurable (CL / LL)
MINIMUM_LANDMARKS: dict[Region, int] = {
    Region.CERVICAL: 5,
    Region.LUMBAR: 4,
}

# Which override key each region accepts
REGION_OVERRIDE_KEY: dict[Region, str] = {
    Region.CERVICAL: "csva",
    Region.LUMBAR: "sva",
}


def get_catalog(region: Region) -> tuple[LandmarkDefinition, ...]:
    """Return the ordered landmark catalog for a region."""
    return LANDMARK_CATALOG[region]


def landmark_index(region: Region, landmark_id: str) -> int:
    """Catalog position of landmark_id within region.

    Raises:
        KeyError: If the id is not part of the region catalog.
    """
    for idx, definition in enumerate(LANDMARK_CATALOG[region]):
        if definition.id == landmark_id:
            return idx
    raise KeyError(f"Unknown {region.value} landmark id: {landmark_id}")


def parse_override(value: object) -> float | None:
    """Parse a manual mm override; None for anything non-numeric or <= 0."""
    if isinstance(value, bool) or value is None:
        return None
    try:
        num = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(num) or num <= 0:
        return None
    return num


# =============================================================================
# Annotation Session
# =============================================================================


@dataclass(frozen=True)
class AnnotationSession:
    """Snapshot of one annotation: region, placed landmarks, overrides, calibration.

    Attributes:
        region: Active region; selects catalog and formulas.
        landmarks: Placed points in catalog order (prefix of the catalog).
        overrides: Manual mm values keyed by "csva" or "sva".
        pixels_per_mm: Optional explicit calibration. None means
            distances stay in pixels and simulation falls back to the
            anthropometric prior.
    """

    region: Region
    landmarks: tuple[Point, ...] = ()
    overrides: Mapping[str, float] = field(default_factory=dict)
    pixels_per_mm: float | None = None

    def __post_init__(self):
        points = tuple(Point(float(p[0]), float(p[1])) for p in self.landmarks)
        capacity = len(LANDMARK_CATALOG[self.region])
        if len(points) > capacity:
            logger.debug(
                f"Dropping {len(points) - capacity} landmarks beyond the "
                f"{self.region.value} catalog"
            )
            points = points[:capacity]
        overrides = {}
        for key, value in dict(self.overrides).items():
            parsed = parse_override(value)
            if key not in OVERRIDE_KEYS or parsed is None:
                logger.debug(f"Discarding invalid override {key}={value!r}")
                continue
            overrides[key] = parsed
        object.__setattr__(self, "landmarks", points)
        object.__setattr__(self, "overrides", MappingProxyType(overrides))

    def __hash__(self):
        return hash(
            (self.region, self.landmarks, tuple(sorted(self.overrides.items())), self.pixels_per_mm)
        )

    # -- catalog accessors ----------------------------------------------------

    @property
    def catalog(self) -> tuple[LandmarkDefinition, ...]:
        return LANDMARK_CATALOG[self.region]

    def next_landmark(self) -> LandmarkDefinition | None:
        """Definition awaiting placement, or None when the catalog is complete."""
        if self.is_complete():
            return None
        return self.catalog[len(self.landmarks)]

    def is_complete(self) -> bool:
        return len(self.landmarks) >= len(self.catalog)

    def has_minimum_data(self) -> bool:
        """True once the first region parameter (CL or LL) is computable."""
        return len(self.landmarks) >= MINIMUM_LANDMARKS[self.region]

    def landmark_map(self) -> dict[str, Point]:
        """Placed landmarks keyed by catalog id."""
        return {d.id: p for d, p in zip(self.catalog, self.landmarks)}

    def nearest_landmark(self, point: Point, threshold: float = HIT_TEST_RADIUS_PX) -> int:
        """Index of the placed landmark within threshold of point, else -1.

        The most recently placed landmark wins when several are in range.
        """
        for idx in range(len(self.landmarks) - 1, -1, -1):
            if distance(self.landmarks[idx], point) < threshold:
                return idx
        return -1

    # -- edits (each returns a new session) ------------------------------------

    def place(self, point: Point) -> "AnnotationSession":
        """Append the next landmark; no-op once the catalog is complete."""
        if self.is_complete():
            return self
        return replace(self, landmarks=self.landmarks + (Point(*point),))

    def move(self, index: int, point: Point) -> "AnnotationSession":
        """Move an already placed landmark; no-op for an unplaced index."""
        if not 0 <= index < len(self.landmarks):
            return self
        points = list(self.landmarks)
        points[index] = Point(*point)
        return replace(self, landmarks=tuple(points))

    def undo(self) -> "AnnotationSession":
        """Remove the most recently placed landmark."""
        if not self.landmarks:
            return self
        return replace(self, landmarks=self.landmarks[:-1])

    def clear(self) -> "AnnotationSession":
        """Remove all landmarks; overrides and calibration are kept."""
        return replace(self, landmarks=())

    def with_override(self, key: str, value: object) -> "AnnotationSession":
        """Set a manual mm override; invalid values remove the override."""
        if key not in OVERRIDE_KEYS:
            logger.debug(f"Ignoring override for unsupported parameter '{key}'")
            return self
        overrides = dict(self.overrides)
        parsed = parse_override(value)
        if parsed is None:
            if key in overrides:
                logger.debug(f"Discarding invalid {key} override {value!r}")
            overrides.pop(key, None)
        else:
            overrides[key] = parsed
        return replace(self, overrides=overrides)

    def with_calibration(self, pixels_per_mm: float | None) -> "AnnotationSession":
        """Attach (or clear) an explicit pixel-per-mm calibration."""
        if pixels_per_mm is not None and not (
            math.isfinite(pixels_per_mm) and pixels_per_mm > 0
        ):
            pixels_per_mm = None
        return replace(self, pixels_per_mm=pixels_per_mm)

    def override_for(self, key: str) -> float | None:
        """The active override for key, if it applies to this region."""
        if REGION_OVERRIDE_KEY[self.region] != key:
            return None
        return self.overrides.get(key)

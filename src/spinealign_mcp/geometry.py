"""2D geometry primitives for landmark measurements.

All functions operate on image-pixel coordinates where y increases
downward. They are pure and never raise; zero-length segments are guarded
so angle helpers return 0.0 instead of an arbitrary direction.
"""

import math
from typing import NamedTuple

from spinealign_mcp.constants import DEGENERATE_LENGTH_EPSILON


class Point(NamedTuple):
    """Landmark position in image pixels."""

    x: float
    y: float


# =============================================================================
# Basic Primitives
# =============================================================================


def midpoint(p1: Point, p2: Point) -> Point:
    """Midpoint of the segment p1-p2."""
    return Point((p1[0] + p2[0]) / 2, (p1[1] + p2[1]) / 2)


def distance(p1: Point, p2: Point) -> float:
    """Euclidean distance between two points."""
    return math.hypot(p2[0] - p1[0], p2[1] - p1[1])


def is_degenerate(p1: Point, p2: Point) -> bool:
    """True when p1 and p2 are too close to define a direction."""
    return distance(p1, p2) < DEGENERATE_LENGTH_EPSILON


def _direction(p1: Point, p2: Point) -> float:
    """Direction of p1->p2 against the +x axis (radians, -pi..pi)."""
    return math.atan2(p2[1] - p1[1], p2[0] - p1[0])


def _fold_angle(rad: float) -> float:
    """Fold an angle difference (radians) into [0, pi]."""
    folded = abs(rad) % (2 * math.pi)
    if folded > math.pi:
        folded = 2 * math.pi - folded
    return folded


# =============================================================================
# Line Angles
# =============================================================================


def line_angle(p1: Point, p2: Point) -> float:
    """Unsigned angle of p1->p2 against the horizontal, in degrees [0, 180]."""
    return abs(math.degrees(_direction(p1, p2)))


def angle_to_vertical(p1: Point, p2: Point) -> float:
    """Complement of line_angle: 90 - line_angle, in degrees [-90, 90].

    The sign is kept so that a chin-brow line leaning forward and one
    leaning backward stay distinguishable.
    """
    return 90.0 - line_angle(p1, p2)


def cobb_angle(a1: Point, a2: Point, b1: Point, b2: Point) -> float:
    """Cobb angle between line a1->a2 and line b1->b2, in degrees [0, 180].

    Symmetric in its two lines. Returns 0.0 when either line is degenerate.
    """
    if is_degenerate(a1, a2) or is_degenerate(b1, b2):
        return 0.0
    return math.degrees(_fold_angle(_direction(a1, a2) - _direction(b1, b2)))


def signed_angle_between(a1: Point, a2: Point, b1: Point, b2: Point) -> float:
    """Signed angle rotating direction a1->a2 onto b1->b2, in degrees (-180, 180].

    Positive follows increasing atan2 direction in image coordinates.
    Returns 0.0 when either line is degenerate.
    """
    if is_degenerate(a1, a2) or is_degenerate(b1, b2):
        return 0.0
    ax, ay = a2[0] - a1[0], a2[1] - a1[1]
    bx, by = b2[0] - b1[0], b2[1] - b1[1]
    cross = ax * by - ay * bx
    dot = ax * bx + ay * by
    return math.degrees(math.atan2(cross, dot))


def perpendicular_angle(p1: Point, p2: Point) -> float:
    """Direction perpendicular to the endplate p1->p2 (radians)."""
    return _direction(p1, p2) - math.pi / 2


# =============================================================================
# Pelvic Parameters
# =============================================================================
# Source: Legaye J et al. "Pelvic incidence: a fundamental pelvic parameter
# for three-dimensional regulation of spinal sagittal curves."
# Eur Spine J. 1998;7(2):99-103.


def compute_pi(s1_ant: Point, s1_post: Point, hip_center: Point) -> float:
    """Pelvic incidence in degrees [0, 180].

    Angle between the perpendicular to the S1 superior endplate at its
    midpoint and the line from that midpoint to the bicoxofemoral axis.
    """
    s1_mid = midpoint(s1_ant, s1_post)
    if is_degenerate(s1_ant, s1_post) or is_degenerate(s1_mid, hip_center):
        return 0.0
    perp = perpendicular_angle(s1_ant, s1_post)
    hip = _direction(s1_mid, hip_center)
    return math.degrees(_fold_angle(perp - hip))


def compute_pt(s1_mid: Point, hip_center: Point) -> float:
    """Pelvic tilt in degrees, always non-negative.

    Angle of the hip-center -> S1-midpoint line against the vertical.
    Whether S1 lies left or right of the hip axis is discarded.
    """
    dx = s1_mid[0] - hip_center[0]
    dy = hip_center[1] - s1_mid[1]  # positive = S1 above hips
    return math.degrees(math.atan2(abs(dx), dy))


# =============================================================================
# Transforms
# =============================================================================


def rotate_point(point: Point, pivot: Point, angle_rad: float) -> Point:
    """Rotate point about pivot; positive angles increase atan2 direction."""
    dx = point[0] - pivot[0]
    dy = point[1] - pivot[1]
    cos_a = math.cos(angle_rad)
    sin_a = math.sin(angle_rad)
    return Point(pivot[0] + dx * cos_a - dy * sin_a, pivot[1] + dx * sin_a + dy * cos_a)


def translate_point(point: Point, dx: float, dy: float = 0.0) -> Point:
    """Shift point by (dx, dy) pixels."""
    return Point(point[0] + dx, point[1] + dy)

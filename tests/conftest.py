"""Shared pytest fixtures for SpineAlign MCP tests.

The landmark sets below are hand-built so every parameter has a closed form:

Lumbar (patient facing right):
    L1 endplate horizontal, S1 endplate at 45 deg  -> LL = 45
    C7 centroid 65 px anterior of S1 post-sup      -> SVA = 65 px
    hip center (300, 600), S1 midpoint (250, 450)  -> PT = atan(50/150),
                                                      PI = 45 + PT

Cervical (patient facing left):
    C2 endplate slope 0.1, C7 endplate slope -0.2  -> CL = -(atan 0.1 + atan 0.2)
    C2 centroid 45 px from C7 post-sup             -> cSVA = 45 px
    T1 endplate slope 0.4                          -> T1S = atan 0.4
    brow 20 px forward, 60 px above chin           -> CBVA = atan(20/60)
"""

import math

import pytest

from spinealign_mcp.geometry import Point
from spinealign_mcp.landmarks import AnnotationSession
from spinealign_mcp.spine_constants import Region

LUMBAR_POINTS = [
    Point(300.0, 100.0),  # l1_sup_ant
    Point(200.0, 100.0),  # l1_sup_post
    Point(300.0, 500.0),  # s1_sup_ant
    Point(200.0, 400.0),  # s1_sup_post
    Point(190.0, 400.0),  # s1_post_sup
    Point(255.0, 20.0),  # c7_centroid
    Point(290.0, 600.0),  # fh_left
    Point(310.0, 600.0),  # fh_right
]

CERVICAL_POINTS = [
    Point(100.0, 100.0),  # c2_sup_ant
    Point(200.0, 110.0),  # c2_sup_post
    Point(140.0, 130.0),  # c2_centroid
    Point(100.0, 400.0),  # c7_inf_ant
    Point(200.0, 380.0),  # c7_inf_post
    Point(185.0, 350.0),  # c7_sup_post
    Point(100.0, 440.0),  # t1_sup_ant
    Point(200.0, 400.0),  # t1_sup_post
    Point(120.0, 520.0),  # chin
    Point(140.0, 460.0),  # brow
]

EXPECTED_LUMBAR = {
    "ll": 45.0,
    "sva": 65.0,
    "pt": math.degrees(math.atan2(50, 150)),
    "pi": 45.0 + math.degrees(math.atan2(50, 150)),
}

EXPECTED_CERVICAL = {
    "cl": -(math.degrees(math.atan(0.1)) + math.degrees(math.atan(0.2))),
    "csva": 45.0,
    "t1s": math.degrees(math.atan(0.4)),
    "cbva": math.degrees(math.atan2(20, 60)),
}


def mirror(points, width=1000.0):
    """Mirror a landmark list across a vertical axis (flip film facing)."""
    return [Point(width - p.x, p.y) for p in points]


@pytest.fixture
def lumbar_points():
    """Complete lumbar landmark list in catalog order."""
    return list(LUMBAR_POINTS)


@pytest.fixture
def cervical_points():
    """Complete cervical landmark list in catalog order."""
    return list(CERVICAL_POINTS)


@pytest.fixture
def lumbar_session():
    """Complete lumbar annotation session."""
    return AnnotationSession(region=Region.LUMBAR, landmarks=LUMBAR_POINTS)


@pytest.fixture
def cervical_session():
    """Complete cervical annotation session."""
    return AnnotationSession(region=Region.CERVICAL, landmarks=CERVICAL_POINTS)

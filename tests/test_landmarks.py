"""Unit tests for landmark catalogs and the annotation session."""

import math

import pytest
from conftest import CERVICAL_POINTS

from spinealign_mcp.geometry import Point
from spinealign_mcp.landmarks import (
    CERVICAL_LANDMARKS,
    LUMBAR_LANDMARKS,
    AnnotationSession,
    get_catalog,
    landmark_index,
    parse_override,
)
from spinealign_mcp.measurements import get_results
from spinealign_mcp.spine_constants import Region


class TestCatalogs:
    """Test catalog contents and ordering."""

    def test_cervical_ids_in_order(self):
        """Cervical catalog ids must keep their exact order."""
        assert [d.id for d in CERVICAL_LANDMARKS] == [
            "c2_sup_ant",
            "c2_sup_post",
            "c2_centroid",
            "c7_inf_ant",
            "c7_inf_post",
            "c7_sup_post",
            "t1_sup_ant",
            "t1_sup_post",
            "chin",
            "brow",
        ]

    def test_lumbar_ids_in_order(self):
        """Lumbar catalog ids must keep their exact order."""
        assert [d.id for d in LUMBAR_LANDMARKS] == [
            "l1_sup_ant",
            "l1_sup_post",
            "s1_sup_ant",
            "s1_sup_post",
            "s1_post_sup",
            "c7_centroid",
            "fh_left",
            "fh_right",
        ]

    def test_labels(self):
        """Spot-check display labels."""
        assert CERVICAL_LANDMARKS[5].label == "C7 Posterior-Superior Corner"
        assert LUMBAR_LANDMARKS[5].label == "C7 Centroid (on full-spine film)"
        assert LUMBAR_LANDMARKS[6].short_label == "FH Left"

    def test_get_catalog(self):
        """get_catalog should return the region catalog."""
        assert get_catalog(Region.CERVICAL) is CERVICAL_LANDMARKS
        assert get_catalog(Region.LUMBAR) is LUMBAR_LANDMARKS

    def test_landmark_index(self):
        """landmark_index should return the catalog position."""
        assert landmark_index(Region.LUMBAR, "c7_centroid") == 5
        assert landmark_index(Region.CERVICAL, "brow") == 9

    def test_landmark_index_unknown(self):
        """Ids from another region are unknown."""
        with pytest.raises(KeyError):
            landmark_index(Region.CERVICAL, "fh_left")


class TestParseOverride:
    """Test manual override parsing."""

    @pytest.mark.parametrize("value,expected", [(15, 15.0), ("22.5", 22.5), (0.1, 0.1)])
    def test_valid_values(self, value, expected):
        """Positive numbers and numeric strings are accepted."""
        assert parse_override(value) == expected

    @pytest.mark.parametrize("value", [0, -1, "abc", "", None, True, float("nan"), float("inf"), [3]])
    def test_invalid_values(self, value):
        """Zero, negatives, non-numerics and non-finite values give None."""
        assert parse_override(value) is None


class TestSessionPlacement:
    """Test place, move, undo and clear."""

    def test_new_session_is_empty(self):
        """A fresh session has nothing placed."""
        session = AnnotationSession(region=Region.LUMBAR)
        assert session.landmarks == ()
        assert session.next_landmark().id == "l1_sup_ant"
        assert not session.has_minimum_data()

    def test_place_appends_in_catalog_order(self):
        """place should fill the next catalog slot and return a new session."""
        session = AnnotationSession(region=Region.CERVICAL)
        placed = session.place(Point(1, 2))
        assert session.landmarks == ()
        assert placed.landmarks == (Point(1, 2),)
        assert placed.next_landmark().id == "c2_sup_post"

    def test_place_when_complete_is_noop(self, cervical_session):
        """Placing on a complete session changes nothing."""
        assert cervical_session.is_complete()
        assert cervical_session.next_landmark() is None
        assert cervical_session.place(Point(0, 0)) is cervical_session

    def test_minimum_data(self, lumbar_points):
        """Lumbar has minimum data from 4 landmarks, cervical from 5."""
        lumbar = AnnotationSession(region=Region.LUMBAR, landmarks=lumbar_points[:3])
        assert not lumbar.has_minimum_data()
        assert lumbar.place(lumbar_points[3]).has_minimum_data()

        cervical = AnnotationSession(region=Region.CERVICAL, landmarks=[(0, 0)] * 4)
        assert not cervical.has_minimum_data()
        assert cervical.place(Point(1, 1)).has_minimum_data()

    def test_move(self, lumbar_session):
        """move should replace one landmark and leave the rest."""
        moved = lumbar_session.move(2, Point(1, 1))
        assert moved.landmarks[2] == Point(1, 1)
        assert moved.landmarks[:2] == lumbar_session.landmarks[:2]
        assert lumbar_session.landmarks[2] == Point(300, 500)

    def test_move_unplaced_index_is_noop(self):
        """Moving an index that was never placed does nothing."""
        session = AnnotationSession(region=Region.LUMBAR, landmarks=[(1, 1)])
        assert session.move(3, Point(5, 5)) is session
        assert session.move(-1, Point(5, 5)) is session

    def test_undo(self, lumbar_session):
        """undo removes the last placed landmark."""
        undone = lumbar_session.undo()
        assert len(undone.landmarks) == 7
        assert undone.next_landmark().id == "fh_right"

    def test_undo_empty_is_noop(self):
        """Undo on an empty session is a no-op."""
        session = AnnotationSession(region=Region.CERVICAL)
        assert session.undo() is session

    def test_clear_keeps_overrides(self, cervical_session):
        """clear removes landmarks but keeps overrides and calibration."""
        session = cervical_session.with_override("csva", 12).with_calibration(3.0)
        cleared = session.clear()
        assert cleared.landmarks == ()
        assert cleared.overrides == {"csva": 12.0}
        assert cleared.pixels_per_mm == 3.0

    def test_excess_landmarks_truncated(self, lumbar_points):
        """Points beyond the catalog capacity are dropped."""
        session = AnnotationSession(region=Region.LUMBAR, landmarks=lumbar_points + [Point(0, 0)])
        assert len(session.landmarks) == 8

    def test_landmarks_coerced_to_points(self):
        """Plain pairs become Points with float coordinates."""
        session = AnnotationSession(region=Region.LUMBAR, landmarks=[[1, 2]])
        assert isinstance(session.landmarks[0], Point)
        assert session.landmarks[0].x == 1.0

    def test_landmark_map(self, lumbar_session):
        """landmark_map keys placed points by catalog id."""
        lm = lumbar_session.undo().landmark_map()
        assert lm["c7_centroid"] == Point(255, 20)
        assert "fh_right" not in lm


class TestHitTest:
    """Test nearest_landmark."""

    def test_hit_within_radius(self, lumbar_session):
        """A click within 12 px selects the landmark."""
        assert lumbar_session.nearest_landmark(Point(258, 25)) == 5

    def test_miss(self, lumbar_session):
        """A click far from every landmark returns -1."""
        assert lumbar_session.nearest_landmark(Point(0, 0)) == -1

    def test_radius_is_exclusive(self):
        """A click exactly 12 px away is a miss."""
        session = AnnotationSession(region=Region.LUMBAR, landmarks=[(100, 100)])
        assert session.nearest_landmark(Point(112, 100)) == -1
        assert session.nearest_landmark(Point(111.9, 100)) == 0

    def test_latest_wins(self):
        """When several landmarks are in range the latest placed wins."""
        session = AnnotationSession(region=Region.LUMBAR, landmarks=[(100, 100), (104, 100)])
        assert session.nearest_landmark(Point(100, 100)) == 1

    def test_custom_threshold(self, lumbar_session):
        """The threshold can be overridden."""
        assert lumbar_session.nearest_landmark(Point(275, 20), threshold=25) == 5


class TestOverrides:
    """Test manual overrides and calibration."""

    def test_set_override(self):
        """A valid override is stored as float."""
        session = AnnotationSession(region=Region.CERVICAL).with_override("csva", "15")
        assert session.overrides == {"csva": 15.0}
        assert session.override_for("csva") == 15.0

    def test_invalid_override_removes(self):
        """An invalid value clears a previously set override."""
        session = AnnotationSession(region=Region.CERVICAL).with_override("csva", 15)
        assert session.with_override("csva", -1).overrides == {}
        assert session.with_override("csva", "abc").overrides == {}

    def test_unknown_key_ignored(self):
        """Only csva and sva can be overridden."""
        session = AnnotationSession(region=Region.LUMBAR)
        assert session.with_override("ll", 40) is session

    def test_override_for_other_region(self):
        """An sva override does not apply to a cervical session."""
        session = AnnotationSession(region=Region.CERVICAL).with_override("sva", 40)
        assert session.override_for("sva") is None

    def test_overrides_read_only(self):
        """Session overrides cannot be mutated in place."""
        session = AnnotationSession(region=Region.LUMBAR).with_override("sva", 40)
        with pytest.raises(TypeError):
            session.overrides["sva"] = 1.0

    def test_with_calibration(self):
        """Valid calibrations are stored; invalid ones clear the calibration."""
        session = AnnotationSession(region=Region.LUMBAR).with_calibration(2.5)
        assert session.pixels_per_mm == 2.5
        assert session.with_calibration(0).pixels_per_mm is None
        assert session.with_calibration(math.nan).pixels_per_mm is None
        assert session.with_calibration(None).pixels_per_mm is None

    def test_constructor_drops_invalid_overrides(self):
        """Overrides passed to the constructor follow the with_override rules."""
        session = AnnotationSession(
            region=Region.CERVICAL,
            landmarks=CERVICAL_POINTS,
            overrides={"csva": -1, "ll": 5, "sva": "abc"},
        )
        assert session.overrides == {}
        assert get_results(session)["csva"] == pytest.approx(45.0)

    def test_constructor_parses_overrides(self):
        """A numeric string override given to the constructor is stored as float."""
        session = AnnotationSession(region=Region.CERVICAL, overrides={"csva": "15"})
        assert session.overrides == {"csva": 15.0}
        assert session == AnnotationSession(region=Region.CERVICAL).with_override("csva", 15)


class TestSessionHashing:
    """Test sessions as hashable values."""

    def test_hash_with_overrides(self):
        """A session carrying overrides can be hashed."""
        session = AnnotationSession(region=Region.LUMBAR).with_override("sva", 40)
        assert isinstance(hash(session), int)

    def test_equal_sessions_share_hash(self):
        """Equal sessions hash alike and collapse in a set."""
        first = AnnotationSession(region=Region.CERVICAL, landmarks=CERVICAL_POINTS[:3], overrides={"csva": 12})
        second = AnnotationSession(region=Region.CERVICAL, landmarks=CERVICAL_POINTS[:3]).with_override(
            "csva", "12"
        )
        assert first == second
        assert hash(first) == hash(second)
        assert len({first, second}) == 1
        assert {first: "cached"}[second] == "cached"

"""Tests for the justification tracker."""

from justification import JustificationTracker, justification_code
from print_tasks import Justification


def test_codes_match_esc_a_n():
    assert justification_code(Justification.LEFT) == b"\x1ba\x00"
    assert justification_code(Justification.CENTER) == b"\x1ba\x01"
    assert justification_code(Justification.RIGHT) == b"\x1ba\x02"


def test_default_left_is_emitted_once_before_first_content():
    tracker = JustificationTracker()
    assert tracker.sync() == b"\x1ba\x00"
    assert tracker.sync() == b""


def test_select_same_as_current_emits_nothing():
    tracker = JustificationTracker()
    assert tracker.select(Justification.LEFT) == b""
    # Still owed to the printer before the first content element
    assert tracker.sync() == b"\x1ba\x00"


def test_select_change_emits_immediately():
    tracker = JustificationTracker()
    assert tracker.select(Justification.CENTER) == b"\x1ba\x01"
    assert tracker.sync() == b""
    assert tracker.select(Justification.CENTER) == b""


def test_each_tracker_starts_unsynced():
    first = JustificationTracker()
    first.select(Justification.CENTER)
    assert JustificationTracker().sync() == b"\x1ba\x00"


def test_switching_back_emits_again():
    tracker = JustificationTracker()
    tracker.select(Justification.RIGHT)
    assert tracker.select(Justification.LEFT) == b"\x1ba\x00"
    assert tracker.current is Justification.LEFT


def test_parse():
    assert Justification.parse("Center") is Justification.CENTER

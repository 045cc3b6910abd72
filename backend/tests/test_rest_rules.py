from datetime import date

from tournament_engine.utils.rest_rules import RestStateTracker

DAY = date(2026, 5, 1)


def test_new_participant_is_rested():
    tracker = RestStateTracker()
    assert tracker.unrested([1, 2], DAY, 0) == []
    assert tracker.get_participant_state(1) is None


def test_one_full_slot_of_rest():
    tracker = RestStateTracker()
    tracker.update_participant_state(1, DAY, 2)

    assert tracker.unrested([1], DAY, 3) == [1]
    assert tracker.unrested([1], DAY, 4) == []
    assert tracker.get_participant_state(1).has_previous_match()


def test_new_day_resets_rest():
    tracker = RestStateTracker()
    tracker.update_participant_state(1, DAY, 5)
    assert tracker.unrested([1], date(2026, 5, 2), 0) == []

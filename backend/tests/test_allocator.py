"""
Time/court allocation: no double booking, feeders first, rest between
matches, day rollover and per-date overrides.
"""
import logging
from collections import defaultdict
from datetime import date, datetime, time, timedelta

import pytest

from tournament_engine.errors import InvalidConfigurationError
from tournament_engine.models.category import Category
from tournament_engine.models.match import STATUS_COMPLETED
from tournament_engine.models.participant import Participant
from tournament_engine.services.allocator import (
    CalendarConfig,
    DayWindow,
    allocate_schedule,
    iter_slots,
    reschedule_remaining,
)
from tournament_engine.services.bracket_graph import make_match
from tournament_engine.services.knockout_tree import generate_knockout_tree
from tournament_engine.services.match_generation import generate_category_matches

DAY1 = date(2026, 5, 1)


def _calendar(start="09:00", end="17:00", duration=60, overrides=None):
    return CalendarConfig(
        start_date=DAY1,
        default_window=DayWindow(time.fromisoformat(start), time.fromisoformat(end)),
        match_duration_minutes=duration,
        overrides=overrides or {},
    )


def _single(code, a, b, number, category_id=1, round_tag="group_A"):
    return make_match(code, round_tag, 1, number, 1, slots={1: a, 2: b}, category_id=category_id)


def _round_robin_category(category_id, first_id):
    category = Category(
        id=category_id,
        tournament_id=1,
        name=f"Cat {category_id}",
        format="round_robin",
        participant_arity="team",
    )
    base = datetime(2026, 4, 1)
    participants = [
        Participant(
            id=first_id + i,
            category_id=category_id,
            display_name=f"Team {first_id + i}",
            created_at=base + timedelta(minutes=i),
        )
        for i in range(4)
    ]
    return generate_category_matches(category, participants)


def test_no_participant_or_court_double_booked():
    matches = _round_robin_category(1, 1) + _round_robin_category(2, 11)
    ordered = allocate_schedule(matches, 2, _calendar())

    assert len(ordered) == 12
    cells = set()
    busy = defaultdict(set)
    for m in ordered:
        assert m.scheduled_time is not None
        assert m.court in (1, 2)
        assert (m.scheduled_time, m.court) not in cells
        cells.add((m.scheduled_time, m.court))
        for pid in m.participant_ids():
            assert pid not in busy[m.scheduled_time]
            busy[m.scheduled_time].add(pid)

    assert ordered == sorted(ordered, key=lambda m: (m.scheduled_time, m.court))


def test_feeders_scheduled_strictly_before_dependents():
    matches = generate_knockout_tree([1, 2, 3, 4], "semifinals", category_id=1)
    allocate_schedule(matches, 4, _calendar())
    by_code = {m.match_code: m for m in matches}

    semis = max(by_code["SF1"].scheduled_time, by_code["SF2"].scheduled_time)
    assert by_code["F"].scheduled_time > semis
    assert by_code["3P"].scheduled_time > semis


def test_rest_slot_between_matches():
    m1 = _single("GA-1", 1, 2, 1)
    m2 = _single("GA-2", 1, 3, 2)
    m3 = _single("GA-3", 4, 5, 3)
    allocate_schedule([m1, m2, m3], 1, _calendar())

    assert m1.scheduled_time == datetime(2026, 5, 1, 9, 0)
    assert m3.scheduled_time == datetime(2026, 5, 1, 10, 0)
    assert m2.scheduled_time == datetime(2026, 5, 1, 11, 0)


def test_rest_relaxed_when_nothing_else_fits(caplog):
    m1 = _single("GA-1", 1, 2, 1)
    m2 = _single("GA-2", 1, 3, 2)
    with caplog.at_level(logging.WARNING, logger="tournament_engine.services.allocator"):
        allocate_schedule([m1, m2], 1, _calendar())

    assert m2.scheduled_time == m1.scheduled_time + timedelta(hours=1)
    assert any("forced" in r.getMessage() for r in caplog.records)


def test_categories_take_turns_on_a_shared_court():
    matches = [
        _single("GA-1", 1, 2, 1, category_id=1),
        _single("GA-2", 3, 4, 2, category_id=1),
        _single("GA-1", 11, 12, 1, category_id=2),
        _single("GA-2", 13, 14, 2, category_id=2),
    ]
    ordered = allocate_schedule(matches, 1, _calendar())
    assert [(m.category_id, m.match_code) for m in ordered] == [
        (1, "GA-1"),
        (2, "GA-1"),
        (1, "GA-2"),
        (2, "GA-2"),
    ]


def test_rolls_over_to_next_day():
    matches = [_single(f"GA-{i}", 10 * i, 10 * i + 1, i) for i in range(1, 6)]
    allocate_schedule(matches, 1, _calendar("09:00", "12:00"))

    times = [m.scheduled_time for m in matches]
    assert times[:3] == [datetime(2026, 5, 1, h) for h in (9, 10, 11)]
    assert times[3:] == [datetime(2026, 5, 2, 9), datetime(2026, 5, 2, 10)]


def test_closed_day_and_window_override():
    overrides = {
        date(2026, 5, 2): None,
        date(2026, 5, 3): DayWindow(time(14, 0), time(16, 0)),
    }
    matches = [_single(f"GA-{i}", 10 * i, 10 * i + 1, i) for i in range(1, 5)]
    allocate_schedule(matches, 1, _calendar("09:00", "11:00", overrides=overrides))

    assert [m.scheduled_time for m in matches] == [
        datetime(2026, 5, 1, 9),
        datetime(2026, 5, 1, 10),
        datetime(2026, 5, 3, 14),
        datetime(2026, 5, 3, 15),
    ]


def test_overnight_window_wraps_past_midnight():
    calendar = _calendar("22:00", "02:00")
    assert calendar.slots_per_day(DAY1) == 4

    slots = [s.start for s, _ in zip(iter_slots(calendar), range(4))]
    assert slots[-1] == datetime(2026, 5, 2, 1, 0)


@pytest.mark.parametrize(
    "courts,calendar",
    [
        (0, _calendar()),
        (1, _calendar(duration=0)),
        (1, _calendar("09:00", "09:30", duration=60)),
    ],
)
def test_invalid_configuration_touches_nothing(courts, calendar):
    m = _single("GA-1", 1, 2, 1)
    with pytest.raises(InvalidConfigurationError):
        allocate_schedule([m], courts, calendar)
    assert m.scheduled_time is None
    assert m.court is None


def test_duplicate_codes_rejected():
    with pytest.raises(InvalidConfigurationError):
        allocate_schedule([_single("GA-1", 1, 2, 1), _single("GA-1", 3, 4, 2)], 1, _calendar())


def test_reschedule_moves_placeholders_after_their_feeders():
    matches = generate_knockout_tree([1, 2, 3, 4], "semifinals", category_id=1)
    allocate_schedule(matches, 2, _calendar())
    by_code = {m.match_code: m for m in matches}
    assert by_code["F"].scheduled_time == datetime(2026, 5, 1, 10, 0)

    by_code["SF1"].status = STATUS_COMPLETED
    by_code["SF1"].winner_side = "A"
    ordered = reschedule_remaining(matches, 2, _calendar())

    assert [m.match_code for m in ordered] == ["SF2", "F", "3P"]
    assert by_code["SF1"].scheduled_time == datetime(2026, 5, 1, 9, 0)
    assert by_code["SF2"].scheduled_time == datetime(2026, 5, 1, 10, 0)
    assert by_code["F"].scheduled_time > by_code["SF2"].scheduled_time
    assert by_code["3P"].scheduled_time > by_code["SF2"].scheduled_time

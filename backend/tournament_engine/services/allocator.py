"""
Time/Court Allocator

Greedy slot-by-slot allocation of every category's matches onto a shared
court pool.

Calendar:
- Each date has a playing window (default or per-date override; None = closed)
- slots_per_day = floor(window_minutes / match_duration); an overnight window
  (end <= start) wraps past midnight
- Dates roll over until every match is placed (past the nominal end if needed)

Per slot, courts 1..N are filled left to right. Each court takes the next
eligible match from the categories in round-robin order; the starting category
rotates with the slot index.

Eligible:
- No participant already busy in this slot (hard)
- Every in-set match it depends on sits in a strictly earlier slot (hard)
- Every participant rested one full slot since their last match that day
  (relaxed: if nothing qualifies, the slot is redone without it and logged)

Queue order within a category: group matches, resolved knockout matches,
placeholders; then round depth, then match_number.

Placeholders are scheduled like any other match; their slots are filled later.
"""
import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta
from typing import Dict, Iterator, List, Optional, Sequence, Set, Tuple

from tournament_engine.errors import InconsistentBracketStateError, InvalidConfigurationError
from tournament_engine.models.match import Match
from tournament_engine.models.tournament import Tournament
from tournament_engine.models.tournament_day import TournamentDay
from tournament_engine.services.bracket_graph import dependency_codes
from tournament_engine.utils.rest_rules import RestStateTracker

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60

# Consecutive closed dates tolerated before the calendar is considered empty
MAX_CLOSED_DAYS = 366

PHASE_GROUP = 0
PHASE_RESOLVED = 1
PHASE_PLACEHOLDER = 2

MatchKey = Tuple[Optional[int], str]


@dataclass(frozen=True)
class DayWindow:
    start: time
    end: time

    @property
    def minutes(self) -> int:
        start_min = self.start.hour * 60 + self.start.minute
        end_min = self.end.hour * 60 + self.end.minute
        if end_min <= start_min:
            return MINUTES_PER_DAY - start_min + end_min
        return end_min - start_min


@dataclass
class CalendarConfig:
    start_date: date
    default_window: DayWindow
    match_duration_minutes: int
    overrides: Dict[date, Optional[DayWindow]] = field(default_factory=dict)

    def window_for(self, day: date) -> Optional[DayWindow]:
        if day in self.overrides:
            return self.overrides[day]
        return self.default_window

    def slots_per_day(self, day: date) -> int:
        window = self.window_for(day)
        if window is None:
            return 0
        return window.minutes // self.match_duration_minutes

    def slot_times(self, day: date) -> List[datetime]:
        window = self.window_for(day)
        if window is None:
            return []
        first = datetime.combine(day, window.start)
        step = timedelta(minutes=self.match_duration_minutes)
        return [first + i * step for i in range(self.slots_per_day(day))]


@dataclass(frozen=True)
class Slot:
    index: int  # Global, 0-based
    day: date
    slot_in_day: int
    start: datetime


def calendar_from_tournament(tournament: Tournament, days: Sequence[TournamentDay] = ()) -> CalendarConfig:
    """Calendar from the tournament defaults plus its per-date overrides."""
    default = DayWindow(tournament.day_start_time, tournament.day_end_time)
    overrides: Dict[date, Optional[DayWindow]] = {}
    for day in days:
        if not day.is_active:
            overrides[day.date] = None
        elif day.start_time or day.end_time:
            overrides[day.date] = DayWindow(day.start_time or default.start, day.end_time or default.end)
    return CalendarConfig(
        start_date=tournament.start_date,
        default_window=default,
        match_duration_minutes=tournament.match_duration_minutes,
        overrides=overrides,
    )


def validate_calendar(court_count: int, calendar: CalendarConfig) -> None:
    if court_count < 1:
        raise InvalidConfigurationError("court_count must be >= 1")
    if calendar.match_duration_minutes <= 0:
        raise InvalidConfigurationError("match_duration_minutes must be > 0")
    if calendar.default_window.minutes < calendar.match_duration_minutes:
        raise InvalidConfigurationError(
            f"Default window of {calendar.default_window.minutes} minutes cannot fit a "
            f"{calendar.match_duration_minutes}-minute match"
        )


def iter_slots(calendar: CalendarConfig, start_at: Optional[datetime] = None) -> Iterator[Slot]:
    """Every playable slot from the calendar start (or start_at) onwards, forever."""
    day = calendar.start_date
    if start_at is not None and start_at.date() > day:
        day = start_at.date()
    index = 0
    closed_run = 0
    while True:
        times = calendar.slot_times(day)
        if not times:
            closed_run += 1
            if closed_run > MAX_CLOSED_DAYS:
                raise InvalidConfigurationError(f"No playable date within {MAX_CLOSED_DAYS} days of {day}")
        else:
            closed_run = 0
        for slot_in_day, start in enumerate(times):
            if start_at is not None and start < start_at:
                continue
            yield Slot(index=index, day=day, slot_in_day=slot_in_day, start=start)
            index += 1
        day += timedelta(days=1)


# ============================================================================
# Queues
# ============================================================================


def _key(match: Match) -> MatchKey:
    return (match.category_id, match.match_code)


def queue_sort_key(match: Match) -> Tuple[int, int, int]:
    if match.is_group_match:
        phase = PHASE_GROUP
    elif match.is_resolved:
        phase = PHASE_RESOLVED
    else:
        phase = PHASE_PLACEHOLDER
    return (phase, match.round_number, match.match_number)


class _Queues:
    def __init__(self, matches: Sequence[Match]):
        by_category: Dict[Optional[int], List[Match]] = OrderedDict()
        for m in sorted(matches, key=lambda m: (m.category_id is None, m.category_id or 0)):
            by_category.setdefault(m.category_id, []).append(m)
        self.categories = list(by_category)
        self.queues = {c: sorted(ms, key=queue_sort_key) for c, ms in by_category.items()}

        in_set = {_key(m) for m in matches}
        self.dependencies: Dict[MatchKey, Set[MatchKey]] = {}
        for category_id, category_matches in by_category.items():
            for m in category_matches:
                deps = {(category_id, code) for code in dependency_codes(m, category_matches)}
                self.dependencies[_key(m)] = deps & in_set

    def remaining(self) -> int:
        return sum(len(q) for q in self.queues.values())

    def remove(self, match: Match) -> None:
        self.queues[match.category_id].remove(match)


# ============================================================================
# Allocation
# ============================================================================


def _fill_slot(
    slot: Slot,
    court_count: int,
    queues: _Queues,
    placed_slot: Dict[MatchKey, int],
    rest: RestStateTracker,
    forced: bool,
) -> List[Tuple[int, Match]]:
    busy: Set[int] = set()
    chosen: List[Tuple[int, Match]] = []
    taken: Set[MatchKey] = set()
    k = len(queues.categories)
    pointer = slot.index % k if k else 0

    for court in range(1, court_count + 1):
        picked = None
        for step in range(k):
            category = queues.categories[(pointer + step) % k]
            for match in queues.queues[category]:
                key = _key(match)
                if key in taken:
                    continue
                if any(placed_slot.get(dep, slot.index) >= slot.index for dep in queues.dependencies[key]):
                    continue
                participants = match.participant_ids()
                if busy.intersection(participants):
                    continue
                if not forced and rest.unrested(participants, slot.day, slot.slot_in_day):
                    continue
                picked = match
                break
            if picked is not None:
                pointer = (pointer + step + 1) % k
                break
        if picked is None:
            break
        busy.update(picked.participant_ids())
        taken.add(_key(picked))
        chosen.append((court, picked))

    return chosen


def allocate_schedule(
    matches: Sequence[Match],
    court_count: int,
    calendar: CalendarConfig,
    start_at: Optional[datetime] = None,
) -> List[Match]:
    """
    Assign scheduled_time and court to every match.

    Raises InvalidConfigurationError before touching any match. Always
    terminates: the feeder graph is acyclic, so each slot places at least one
    match once rest is relaxed. Returns the matches ordered by (time, court).
    """
    validate_calendar(court_count, calendar)
    matches = list(matches)
    if not matches:
        return []
    keys = [_key(m) for m in matches]
    if len(set(keys)) != len(keys):
        raise InvalidConfigurationError("Match codes must be unique within a category")

    queues = _Queues(matches)
    placed_slot: Dict[MatchKey, int] = {}
    assignments: Dict[MatchKey, Tuple[datetime, int]] = {}
    rest = RestStateTracker()
    forced_slots = 0
    last_day: Optional[date] = None

    for slot in iter_slots(calendar, start_at):
        if not queues.remaining():
            break
        chosen = _fill_slot(slot, court_count, queues, placed_slot, rest, False)
        if not chosen:
            chosen = _fill_slot(slot, court_count, queues, placed_slot, rest, True)
            if not chosen:
                raise InconsistentBracketStateError(
                    "allocator", f"no match can be placed at {slot.start}; feeder graph has a cycle"
                )
            forced_slots += 1
            logger.warning(
                "Slot %s forced: rest relaxed for %s",
                slot.start.isoformat(),
                [m.match_code for _, m in chosen],
            )

        for court, match in chosen:
            placed_slot[_key(match)] = slot.index
            assignments[_key(match)] = (slot.start, court)
            queues.remove(match)
            for pid in match.participant_ids():
                rest.update_participant_state(pid, slot.day, slot.slot_in_day)
        last_day = slot.day

    for match in matches:
        match.scheduled_time, match.court = assignments[_key(match)]

    ordered = sorted(matches, key=lambda m: (m.scheduled_time, m.court))
    logger.info(
        "Allocated %d matches on %d courts from %s to %s (%d forced slots)",
        len(ordered),
        court_count,
        ordered[0].scheduled_time.isoformat(),
        last_day.isoformat() if last_day else "-",
        forced_slots,
    )
    return ordered


def reschedule_remaining(
    matches: Sequence[Match],
    court_count: int,
    calendar: CalendarConfig,
) -> List[Match]:
    """
    Re-allocate every match not yet COMPLETED, starting after the latest completed one.

    Placeholders move with their feeders: a feeder that is completed keeps its
    time and imposes nothing, the rest are re-placed in dependency order.
    """
    completed = [m for m in matches if m.is_completed and m.scheduled_time is not None]
    start_at = None
    if completed:
        start_at = max(m.scheduled_time for m in completed) + timedelta(minutes=calendar.match_duration_minutes)

    pending = [m for m in matches if not m.is_completed]
    logger.info("Rescheduling %d pending matches from %s", len(pending), start_at or calendar.start_date)
    return allocate_schedule(pending, court_count, calendar, start_at=start_at)

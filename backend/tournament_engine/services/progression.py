"""
Bracket Progression Engine (pure)

Resolves placeholder matches from completed results by walking the feeder refs
declared at generation time (see bracket_graph).

State per placeholder: AwaitingFeeders → Populated (still SCHEDULED) → Completed
- AwaitingFeeders → Populated fires only when every match it depends on is
  COMPLETED (all group matches of the category, for standings refs)
- All still-unresolved target slots are written together
- Idempotent: a populated placeholder re-checked with the same data is a no-op
- A target slot already holding a different participant is an inconsistency

Winner of a completed match: explicit winner_side, else more sets, else more
games. Level score where a winner is required → AmbiguousResultError. Completed
without winner_side and without a parsable score → InconsistentBracketStateError.

The functions here never touch storage; AdvancementService wraps them with the
persistence adapter and the per-bracket lock.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional

from tournament_engine.errors import AmbiguousResultError, InconsistentBracketStateError
from tournament_engine.models.match import SIDE_A, SIDE_B, Match
from tournament_engine.services.bracket_graph import (
    ROLE_GROUP_RANK,
    ROLE_LOSER,
    ROLE_LOSER_RANK,
    ROLE_WILDCARD,
    ROLE_WINNER,
    ROLE_WINNER_RANK,
    STANDINGS_ROLES,
    FeederRef,
    dependents_of,
    feeders_of,
    target_slots,
)
from tournament_engine.services.score_parser import parse_score
from tournament_engine.services.standings import StandingRow, rank_wildcards

logger = logging.getLogger(__name__)

StandingsLoader = Callable[[], Dict[str, List[StandingRow]]]


@dataclass
class MatchOutcome:
    match_code: str
    winner_side: str
    winner_ids: List[Optional[int]]
    loser_ids: List[Optional[int]]
    winner_games: int
    loser_games: int

    @property
    def winner_game_diff(self) -> int:
        return self.winner_games - self.loser_games


@dataclass
class MatchUpdate:
    """A placeholder that was newly populated (for the caller to persist)."""

    match_id: Optional[int]
    match_code: str
    round: str
    slots: Dict[int, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "match_id": self.match_id,
            "match_code": self.match_code,
            "round": self.round,
            "slots": {str(k): v for k, v in sorted(self.slots.items())},
        }


def determine_outcome(match: Match) -> MatchOutcome:
    """Winner/loser sides of a completed match."""
    if not match.is_completed:
        raise InconsistentBracketStateError(match.match_code, "match is not completed")

    parsed = parse_score(match.score_json)
    winner = match.winner_side if match.winner_side in (SIDE_A, SIDE_B) else None
    if winner is None:
        if parsed is None:
            raise InconsistentBracketStateError(match.match_code, "completed without a winner or a parsable score")
        winner = parsed.winner_side
        if winner is None:
            raise AmbiguousResultError(match.match_code)

    loser = SIDE_B if winner == SIDE_A else SIDE_A
    return MatchOutcome(
        match_code=match.match_code,
        winner_side=winner,
        winner_ids=match.side_ids(winner),
        loser_ids=match.side_ids(loser),
        winner_games=parsed.games_for(winner) if parsed else 0,
        loser_games=parsed.games_for(loser) if parsed else 0,
    )


class BracketState:
    """All matches of one bracket (category), indexed by code, with lazy standings."""

    def __init__(self, matches: Iterable[Match], standings_loader: Optional[StandingsLoader] = None):
        self.matches: List[Match] = sorted(matches, key=lambda m: (m.match_number, m.match_code))
        self.by_code: Dict[str, Match] = {m.match_code: m for m in self.matches}
        self._standings_loader = standings_loader
        self._standings: Optional[Dict[str, List[StandingRow]]] = None
        self._outcomes: Dict[str, MatchOutcome] = {}

    def source(self, placeholder: Match, code: str) -> Match:
        match = self.by_code.get(code)
        if match is None:
            raise InconsistentBracketStateError(placeholder.match_code, f"unknown feeder match {code}")
        return match

    def outcome(self, placeholder: Match, code: str) -> MatchOutcome:
        if code not in self._outcomes:
            self._outcomes[code] = determine_outcome(self.source(placeholder, code))
        return self._outcomes[code]

    def group_matches(self) -> List[Match]:
        return [m for m in self.matches if m.is_group_match]

    def standings(self, placeholder: Match) -> Dict[str, List[StandingRow]]:
        if self._standings is None:
            if self._standings_loader is None:
                raise InconsistentBracketStateError(placeholder.match_code, "group standings are unavailable")
            self._standings = self._standings_loader()
        return self._standings


# ============================================================================
# Readiness
# ============================================================================


def is_ready(match: Match, state: BracketState) -> bool:
    """True when every match this placeholder depends on is completed."""
    refs = feeders_of(match)
    for ref in refs:
        for code in ref.sources:
            if not state.source(match, code).is_completed:
                return False
    if any(ref.role in STANDINGS_ROLES for ref in refs):
        groups = state.group_matches()
        if not groups:
            raise InconsistentBracketStateError(match.match_code, "group qualifier refs but no group matches")
        if not all(m.is_completed for m in groups):
            return False
    return True


# ============================================================================
# Ref resolution
# ============================================================================


def _ranked(outcomes: List[MatchOutcome], role: str) -> List[MatchOutcome]:
    # sorted() is stable: equal keys keep source order (first listed feeder wins ties)
    if role == ROLE_WINNER_RANK:
        return sorted(outcomes, key=lambda o: (-o.winner_game_diff, -o.winner_games))
    return sorted(outcomes, key=lambda o: (-o.loser_games, o.winner_game_diff))


def resolve_ref(match: Match, ref: FeederRef, state: BracketState) -> List[Optional[int]]:
    """Participant ids for the ref's target slots, in slot order."""
    if ref.role == ROLE_WINNER:
        return state.outcome(match, ref.sources[0]).winner_ids
    if ref.role == ROLE_LOSER:
        return state.outcome(match, ref.sources[0]).loser_ids
    if ref.role in (ROLE_WINNER_RANK, ROLE_LOSER_RANK):
        outcomes = _ranked([state.outcome(match, code) for code in ref.sources], ref.role)
        if ref.rank > len(outcomes):
            raise InconsistentBracketStateError(match.match_code, f"rank {ref.rank} exceeds {len(outcomes)} feeders")
        chosen = outcomes[ref.rank - 1]
        return chosen.winner_ids if ref.role == ROLE_WINNER_RANK else chosen.loser_ids
    if ref.role == ROLE_GROUP_RANK:
        rows = state.standings(match).get(ref.group, [])
        if len(rows) < ref.rank:
            raise InconsistentBracketStateError(
                match.match_code, f"group {ref.group} has {len(rows)} ranked participants, need {ref.rank}"
            )
        return [rows[ref.rank - 1].participant_id]
    if ref.role == ROLE_WILDCARD:
        candidates = rank_wildcards(state.standings(match), ref.position or 1)
        if len(candidates) < ref.rank:
            raise InconsistentBracketStateError(
                match.match_code, f"only {len(candidates)} wildcard candidates at position {ref.position}"
            )
        return [candidates[ref.rank - 1].participant_id]
    raise InconsistentBracketStateError(match.match_code, f"unknown feeder role {ref.role}")


def populate_placeholder(match: Match, state: BracketState) -> Optional[MatchUpdate]:
    """
    Fill the placeholder's unresolved slots if its feeders are all completed.

    Returns the update, or None when nothing changed (not ready, or already populated).
    """
    refs = feeders_of(match)
    if not refs:
        return None

    pending = [ref for ref in refs if any(match.get_slot(s) is None for s in target_slots(match, ref))]
    if not pending:
        return None
    if not is_ready(match, state):
        return None

    values: Dict[int, int] = {}
    for ref in refs:
        slots = target_slots(match, ref)
        ids = resolve_ref(match, ref, state)
        if len(ids) != len(slots) or any(pid is None for pid in ids):
            raise InconsistentBracketStateError(
                match.match_code, f"{ref.label()} resolved to an incomplete side {ids}"
            )
        for slot, pid in zip(slots, ids):
            values[slot] = pid

    seen = list(values.values())
    if len(set(seen)) != len(seen):
        raise InconsistentBracketStateError(match.match_code, f"participant placed twice: {seen}")

    update = MatchUpdate(match_id=match.id, match_code=match.match_code, round=match.round)
    for slot, pid in sorted(values.items()):
        current = match.get_slot(slot)
        if current is None:
            match.set_slot(slot, pid)
            update.slots[slot] = pid
        elif current != pid:
            raise InconsistentBracketStateError(
                match.match_code, f"slot{slot} holds {current} but feeders resolve to {pid}"
            )

    if not update.slots:
        return None
    logger.info("Populated %s (%s): %s", match.match_code, match.round, update.slots)
    return update


# ============================================================================
# Entry points
# ============================================================================


def on_match_completed(
    completed: Match,
    category_matches: Iterable[Match],
    standings_loader: Optional[StandingsLoader] = None,
) -> List[MatchUpdate]:
    """
    Re-check every placeholder that depends on `completed`.

    Raises AmbiguousResultError when `completed` feeds a bracket slot but has no
    winner. Re-delivery of the same event returns [] (idempotent).
    """
    state = BracketState(category_matches, standings_loader)
    match = state.by_code.get(completed.match_code, completed)
    if not match.is_completed:
        return []

    dependents = dependents_of(match.match_code, match.is_group_match, state.matches)
    if any(match.match_code in ref.sources for d in dependents for ref in feeders_of(d)):
        # Feeds a winner/loser slot: validate the result now, even if siblings are pending
        state.outcome(match, match.match_code)

    updates = []
    for dependent in dependents:
        update = populate_placeholder(dependent, state)
        if update:
            updates.append(update)
    return updates


def resolve_bracket(
    category_matches: Iterable[Match],
    standings_loader: Optional[StandingsLoader] = None,
) -> List[MatchUpdate]:
    """Evaluate every placeholder in bracket order (walkovers, batch imports, repair)."""
    state = BracketState(category_matches, standings_loader)
    updates = []
    for match in state.matches:
        update = populate_placeholder(match, state)
        if update:
            updates.append(update)
    return updates

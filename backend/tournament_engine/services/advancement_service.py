"""
Runtime advancement: when a match is completed, populate the placeholders it feeds.

Wraps the pure progression engine with the persistence adapter. Every
read-check-write for a category runs under that category's lock, and the
adapter commits before the lock is released, so two results arriving together
for the same bracket never interleave.
"""
import logging
import threading
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from tournament_engine.errors import (
    AmbiguousResultError,
    EngineError,
    InconsistentBracketStateError,
    InvalidConfigurationError,
)
from tournament_engine.models.match import SIDE_A, SIDE_B, STATUS_COMPLETED, Match
from tournament_engine.services import progression
from tournament_engine.services.persistence import PersistenceAdapter
from tournament_engine.services.progression import MatchUpdate
from tournament_engine.services.score_parser import parse_score

logger = logging.getLogger(__name__)

SLOTS = (1, 2, 3, 4)


class BracketLockRegistry:
    """One re-entrant lock per category id, handed out process-wide."""

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: Dict[Optional[int], threading.RLock] = {}

    def lock_for(self, category_id: Optional[int]) -> threading.RLock:
        with self._guard:
            if category_id not in self._locks:
                self._locks[category_id] = threading.RLock()
            return self._locks[category_id]


bracket_locks = BracketLockRegistry()


class MatchNotFoundError(LookupError):
    pass


def _unresolved_count(matches: List[Match]) -> int:
    return sum(1 for m in matches if not m.is_resolved)


class AdvancementService:
    def __init__(self, adapter: PersistenceAdapter, locks: BracketLockRegistry = bracket_locks):
        self.adapter = adapter
        self.locks = locks

    def _standings_loader(self, category_id: Optional[int]):
        return lambda: self.adapter.load_group_standings(category_id)

    def _changed(self, matches: List[Match], updates: List[MatchUpdate]) -> List[Match]:
        codes = {u.match_code for u in updates}
        return [m for m in matches if m.match_code in codes]

    def on_match_completed(self, match_id: int) -> List[MatchUpdate]:
        """
        Populate every placeholder whose feeders are now all completed.

        Idempotent: re-delivering the same completion returns [] and writes nothing.
        """
        match = self.adapter.load_match(match_id)
        if match is None:
            raise MatchNotFoundError(f"Match {match_id} not found")

        with self.locks.lock_for(match.category_id):
            category_matches = self.adapter.load_category_matches(match.category_id)
            updates = progression.on_match_completed(
                match, category_matches, self._standings_loader(match.category_id)
            )
            if updates:
                self.adapter.save_matches(self._changed(category_matches, updates))
                logger.info(
                    "Match %s completed: populated %s", match.match_code, [u.match_code for u in updates]
                )
        return updates

    def resolve_all_dependencies(self, tournament_id: int) -> Dict[str, Any]:
        """
        Evaluate every placeholder of the tournament (walkovers, batch imports, repair).

        Returns:
            Dict with:
            - categories_processed: number of brackets evaluated
            - matches_populated: number of placeholders that received participants
            - unresolved_before / unresolved_after: matches with an empty slot
        """
        all_matches = self.adapter.load_matches(tournament_id)
        unresolved_before = _unresolved_count(all_matches)

        by_category: Dict[Optional[int], List[Match]] = defaultdict(list)
        for m in all_matches:
            by_category[m.category_id].append(m)

        populated = 0
        for category_id in sorted(by_category, key=lambda c: (c is None, c or 0)):
            with self.locks.lock_for(category_id):
                category_matches = self.adapter.load_category_matches(category_id)
                updates = progression.resolve_bracket(category_matches, self._standings_loader(category_id))
                if updates:
                    self.adapter.save_matches(self._changed(category_matches, updates))
                    populated += len(updates)

        unresolved_after = _unresolved_count(self.adapter.load_matches(tournament_id))
        logger.info(
            "Resolve dependencies for tournament %s: %d populated, unresolved %d → %d",
            tournament_id,
            populated,
            unresolved_before,
            unresolved_after,
        )
        return {
            "categories_processed": len(by_category),
            "matches_populated": populated,
            "unresolved_before": unresolved_before,
            "unresolved_after": unresolved_after,
        }

    def complete_match(
        self,
        match_id: int,
        score: Optional[Dict[str, Any]] = None,
        winner_side: Optional[str] = None,
    ) -> Tuple[Match, List[MatchUpdate]]:
        """
        Record a result, mark the match COMPLETED and advance.

        Progression runs on the loaded objects first; the result and the populated
        placeholders are saved together, and nothing is written when it raises.
        COMPLETED is terminal: re-posting the identical result is a no-op, a
        different result raises InconsistentBracketStateError. A level score on a
        knockout match is rejected before anything is written.
        """
        match = self.adapter.load_match(match_id)
        if match is None:
            raise MatchNotFoundError(f"Match {match_id} not found")
        if winner_side is not None and winner_side not in (SIDE_A, SIDE_B):
            raise InvalidConfigurationError(f"winner_side must be '{SIDE_A}' or '{SIDE_B}'")

        parsed = parse_score(score) if score is not None else None
        if score is not None and parsed is None:
            raise InvalidConfigurationError(f"Unparsable score for {match.match_code}: {score}")

        with self.locks.lock_for(match.category_id):
            if match.is_completed:
                same_score = score is None or score == match.score_json
                same_winner = winner_side is None or winner_side == match.winner_side
                if same_score and same_winner:
                    return match, []
                raise InconsistentBracketStateError(match.match_code, "result already recorded; COMPLETED is terminal")

            if not match.is_resolved:
                raise InconsistentBracketStateError(match.match_code, "cannot complete a match with unresolved slots")

            winner = winner_side or (parsed.winner_side if parsed else None)
            if parsed is None and winner is None:
                raise InvalidConfigurationError(f"{match.match_code}: a score or winner_side is required")
            if winner is None and not match.is_group_match:
                raise AmbiguousResultError(match.match_code)

            category_matches = self.adapter.load_category_matches(match.category_id)
            recorded = (match.score_json, match.winner_side, match.status, match.completed_at)
            open_slots = {m.match_code: [m.get_slot(s) for s in SLOTS] for m in category_matches if not m.is_resolved}

            match.score_json = score if score is not None else match.score_json
            match.winner_side = winner
            match.status = STATUS_COMPLETED
            match.completed_at = datetime.utcnow()
            try:
                updates = progression.on_match_completed(
                    match, category_matches, self._standings_loader(match.category_id)
                )
            except EngineError:
                # Nothing was saved; put the result and any half-filled placeholder back
                match.score_json, match.winner_side, match.status, match.completed_at = recorded
                for m in category_matches:
                    for slot, pid in zip(SLOTS, open_slots.get(m.match_code, ())):
                        m.set_slot(slot, pid)
                raise

            changed = [m for m in self._changed(category_matches, updates) if m is not match]
            self.adapter.save_matches([match] + changed)
            if updates:
                logger.info("Match %s completed: populated %s", match.match_code, [u.match_code for u in updates])
        return match, updates

"""
Partner Rotation ("American" doubles) Generators

Individuals rotate partners; every match is 2 vs 2.

Greedy generator (generate_partner_rotation):
- Built round by round; within a round only participants who have not played yet are considered
- Every grouping (i,j) vs (k,l) of the unplayed participants is scored:
    score = -100 * partner repeats - 50 * opponent repeats - 10 * sum(match counts)
- Best grouping wins (first in iteration order on ties), then repeat until < 4 unplayed remain
- Stops when every participant reached the target or the round bound (2 * target) is hit

Exhaustive generator (generate_exhaustive_rotation):
- Backtracking over all C(n,2) pairs; a match is two disjoint pairs
- Maximizes the number of matches with every pair partnering at most once
- Branch-and-bound: prune when len(solution) + remaining_pairs // 2 <= best
- Bounded by a node budget; returns the best schedule found

Mixed generator (generate_mixed_rotation):
- Every side is one man and one woman; same scoring, restricted to (man, woman) sides
- Each round seats the players of each gender with the fewest matches
- Runs until every player reached the target with identical match counts

Tallies live in an explicit RotationState that each round step receives and returns.
No module-level state.
"""
import logging
from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, FrozenSet, Hashable, List, Optional, Sequence, Tuple

from tournament_engine.config import DEFAULT_TARGET_MATCHES, EXHAUSTIVE_NODE_BUDGET
from tournament_engine.errors import InvalidConfigurationError

logger = logging.getLogger(__name__)

PARTNER_REPEAT_PENALTY = 100
OPPONENT_REPEAT_PENALTY = 50
MATCH_COUNT_PENALTY = 10

MIN_PARTICIPANTS = 4

Pair = Tuple[Hashable, Hashable]


@dataclass
class RotationMatch:
    round_number: int
    side_a: Pair
    side_b: Pair

    def participants(self) -> Tuple[Hashable, Hashable, Hashable, Hashable]:
        return (self.side_a[0], self.side_a[1], self.side_b[0], self.side_b[1])


@dataclass
class RotationState:
    """Partnership/opponent/match tallies accumulated across rounds."""

    partner_counts: Dict[FrozenSet, int] = field(default_factory=dict)
    opponent_counts: Dict[FrozenSet, int] = field(default_factory=dict)
    match_counts: Dict[Hashable, int] = field(default_factory=dict)

    @classmethod
    def initial(cls, participants: Sequence[Hashable]) -> "RotationState":
        return cls(match_counts={p: 0 for p in participants})

    def partner_count(self, a: Hashable, b: Hashable) -> int:
        return self.partner_counts.get(frozenset((a, b)), 0)

    def opponent_count(self, a: Hashable, b: Hashable) -> int:
        return self.opponent_counts.get(frozenset((a, b)), 0)

    def min_matches(self) -> int:
        return min(self.match_counts.values()) if self.match_counts else 0

    def record(self, match: RotationMatch) -> "RotationState":
        """Return a new state with the match counted."""
        partners = dict(self.partner_counts)
        opponents = dict(self.opponent_counts)
        counts = dict(self.match_counts)

        for a, b in (match.side_a, match.side_b):
            key = frozenset((a, b))
            partners[key] = partners.get(key, 0) + 1
        for a in match.side_a:
            for b in match.side_b:
                key = frozenset((a, b))
                opponents[key] = opponents.get(key, 0) + 1
        for p in match.participants():
            counts[p] = counts.get(p, 0) + 1

        return RotationState(partner_counts=partners, opponent_counts=opponents, match_counts=counts)


def _validate_participants(participants: Sequence[Hashable]) -> List[Hashable]:
    entries = list(participants)
    if len(entries) < MIN_PARTICIPANTS:
        raise InvalidConfigurationError(
            f"Partner rotation requires at least {MIN_PARTICIPANTS} participants, got {len(entries)}"
        )
    if len(set(entries)) != len(entries):
        raise InvalidConfigurationError("Partner rotation participants must be unique")
    return entries


# ============================================================================
# Greedy generator
# ============================================================================


def score_grouping(state: RotationState, side_a: Pair, side_b: Pair) -> int:
    """Weighted penalty for playing side_a against side_b given the tallies so far."""
    score = 0
    score -= (state.partner_count(*side_a) + state.partner_count(*side_b)) * PARTNER_REPEAT_PENALTY
    score -= sum(state.opponent_count(a, b) for a in side_a for b in side_b) * OPPONENT_REPEAT_PENALTY
    score -= sum(state.match_counts.get(p, 0) for p in side_a + side_b) * MATCH_COUNT_PENALTY
    return score


def _best_grouping(available: List[Hashable], state: RotationState) -> Optional[Tuple[Pair, Pair]]:
    best: Optional[Tuple[Pair, Pair]] = None
    best_score: Optional[int] = None
    n = len(available)

    for i in range(n):
        for j in range(i + 1, n):
            for k in range(n):
                if k in (i, j):
                    continue
                for l in range(k + 1, n):
                    if l in (i, j):
                        continue
                    side_a = (available[i], available[j])
                    side_b = (available[k], available[l])
                    score = score_grouping(state, side_a, side_b)
                    if best_score is None or score > best_score:
                        best = (side_a, side_b)
                        best_score = score
    return best


def build_round(
    participants: Sequence[Hashable],
    state: RotationState,
    round_number: int,
    target: Optional[int] = None,
) -> Tuple[List[RotationMatch], RotationState]:
    """
    Build one round from participants who have not played in it yet.

    Stops early once every participant has reached `target` (when given).
    Returns (matches, updated_state); the input state is not mutated.
    """
    available = list(participants)
    matches: List[RotationMatch] = []

    while len(available) >= MIN_PARTICIPANTS:
        if target is not None and state.min_matches() >= target:
            break
        best = _best_grouping(available, state)
        if best is None:
            break
        match = RotationMatch(round_number=round_number, side_a=best[0], side_b=best[1])
        state = state.record(match)
        matches.append(match)
        played = set(match.participants())
        available = [p for p in available if p not in played]

    return matches, state


def generate_partner_rotation(
    participants: Sequence[Hashable],
    target_matches_per_participant: int = DEFAULT_TARGET_MATCHES,
    max_rounds: Optional[int] = None,
) -> List[RotationMatch]:
    """Greedy American schedule. See module docstring for the scoring rules."""
    entries = _validate_participants(participants)
    if target_matches_per_participant < 1:
        raise InvalidConfigurationError("target_matches_per_participant must be >= 1")
    if max_rounds is None:
        max_rounds = 2 * target_matches_per_participant

    state = RotationState.initial(entries)
    matches: List[RotationMatch] = []

    for round_number in range(1, max_rounds + 1):
        if state.min_matches() >= target_matches_per_participant:
            break
        round_matches, state = build_round(entries, state, round_number, target_matches_per_participant)
        matches.extend(round_matches)

    counts = state.match_counts
    logger.info(
        "Partner rotation: %d participants, %d matches, matches/participant min=%d max=%d (target %d)",
        len(entries),
        len(matches),
        min(counts.values()),
        max(counts.values()),
        target_matches_per_participant,
    )
    return matches


# ============================================================================
# Bounded-exhaustive generator
# ============================================================================


class _SearchBudget:
    def __init__(self, limit: int):
        self.limit = limit
        self.nodes = 0

    def spend(self) -> bool:
        self.nodes += 1
        return self.nodes <= self.limit


def generate_exhaustive_rotation(
    participants: Sequence[Hashable],
    node_budget: int = EXHAUSTIVE_NODE_BUDGET,
) -> List[RotationMatch]:
    """
    Maximal partnership-diverse schedule: every pair partners at most once.

    Intended for small groups (the composer switches to the greedy generator above
    EXHAUSTIVE_MAX_PARTICIPANTS). Matches are packed into rounds afterwards.
    """
    entries = _validate_participants(participants)
    pairs: List[Pair] = list(combinations(entries, 2))
    upper_bound = len(pairs) // 2

    budget = _SearchBudget(node_budget)
    used = [False] * len(pairs)
    current: List[Tuple[int, int]] = []
    best: List[Tuple[int, int]] = []

    def remaining_from(start: int) -> int:
        return sum(1 for idx in range(start, len(pairs)) if not used[idx])

    def search(start: int) -> bool:
        """Returns True when the search should stop (bound reached or budget spent)."""
        nonlocal best
        if len(current) > len(best):
            best = list(current)
            if len(best) == upper_bound:
                return True
        if not budget.spend():
            return True

        first = start
        while first < len(pairs) and used[first]:
            first += 1
        if first >= len(pairs):
            return False
        if len(current) + remaining_from(first) // 2 <= len(best):
            return False

        a = set(pairs[first])
        used[first] = True
        for second in range(first + 1, len(pairs)):
            if used[second] or a & set(pairs[second]):
                continue
            used[second] = True
            current.append((first, second))
            stop = search(first + 1)
            current.pop()
            used[second] = False
            if stop:
                used[first] = False
                return True
        used[first] = False

        # Leave this pair unused and continue with the next one
        return search(first + 1)

    search(0)
    if budget.nodes > budget.limit:
        logger.warning(
            "Exhaustive rotation hit node budget (%d) for %d participants; best found %d/%d matches",
            node_budget,
            len(entries),
            len(best),
            upper_bound,
        )

    matches = _pack_rounds([(pairs[i], pairs[j]) for i, j in best])
    logger.info("Exhaustive rotation: %d participants, %d matches", len(entries), len(matches))
    return matches


def _pack_rounds(groupings: List[Tuple[Pair, Pair]]) -> List[RotationMatch]:
    """Assign each grouping to the first round where none of its players already plays."""
    rounds: List[set] = []
    packed: List[RotationMatch] = []
    for side_a, side_b in groupings:
        players = set(side_a) | set(side_b)
        for idx, busy in enumerate(rounds):
            if not busy & players:
                busy.update(players)
                round_number = idx + 1
                break
        else:
            rounds.append(set(players))
            round_number = len(rounds)
        packed.append(RotationMatch(round_number=round_number, side_a=side_a, side_b=side_b))
    packed.sort(key=lambda m: m.round_number)
    return packed


# ============================================================================
# Mixed generator
# ============================================================================


def _best_mixed_grouping(
    men: List[Hashable], women: List[Hashable], state: RotationState
) -> Optional[Tuple[Pair, Pair]]:
    best: Optional[Tuple[Pair, Pair]] = None
    best_score: Optional[int] = None

    for mi in range(len(men)):
        for mj in range(mi + 1, len(men)):
            for wi in range(len(women)):
                for wj in range(wi + 1, len(women)):
                    m1, m2, w1, w2 = men[mi], men[mj], women[wi], women[wj]
                    for side_a, side_b in (((m1, w1), (m2, w2)), ((m1, w2), (m2, w1))):
                        score = score_grouping(state, side_a, side_b)
                        if best_score is None or score > best_score:
                            best = (side_a, side_b)
                            best_score = score
    return best


def generate_mixed_rotation(
    men: Sequence[Hashable],
    women: Sequence[Hashable],
    target_matches_per_participant: int = DEFAULT_TARGET_MATCHES,
) -> List[RotationMatch]:
    """
    Mixed American schedule: every side is (man, woman), partners rotate.

    Each round seats the men and the women with the fewest matches so far
    (input order on ties), two of each per match, and groups them with the
    same scoring as the greedy generator. Rounds continue until everyone reached
    the target and all players have the same match count; with an odd number
    per gender one man and one woman sit out each round in turn.
    """
    men, women = list(men), list(women)
    if len(men) < 2 or len(women) < 2:
        raise InvalidConfigurationError(
            f"Mixed rotation requires at least 2 men and 2 women, got {len(men)} and {len(women)}"
        )
    if len(men) != len(women):
        raise InvalidConfigurationError(
            f"Mixed rotation requires as many men as women, got {len(men)} and {len(women)}"
        )
    players = _validate_participants(men + women)
    if target_matches_per_participant < 1:
        raise InvalidConfigurationError("target_matches_per_participant must be >= 1")

    order = {p: i for i, p in enumerate(players)}
    seated = len(men) // 2 * 2
    max_rounds = 2 * target_matches_per_participant + len(men)

    state = RotationState.initial(players)
    matches: List[RotationMatch] = []

    for round_number in range(1, max_rounds + 1):
        counts = state.match_counts
        if state.min_matches() >= target_matches_per_participant and max(counts.values()) == state.min_matches():
            break
        round_men = sorted(men, key=lambda p: (counts[p], order[p]))[:seated]
        round_women = sorted(women, key=lambda p: (counts[p], order[p]))[:seated]

        while round_men and round_women:
            side_a, side_b = _best_mixed_grouping(round_men, round_women, state)
            match = RotationMatch(round_number=round_number, side_a=side_a, side_b=side_b)
            state = state.record(match)
            matches.append(match)
            played = set(match.participants())
            round_men = [p for p in round_men if p not in played]
            round_women = [p for p in round_women if p not in played]

    counts = state.match_counts
    if max(counts.values()) != min(counts.values()):
        logger.warning("Mixed rotation stopped after %d rounds with uneven match counts", max_rounds)
    logger.info(
        "Mixed rotation: %d men, %d women, %d matches, matches/player min=%d max=%d (target %d)",
        len(men),
        len(women),
        len(matches),
        min(counts.values()),
        max(counts.values()),
        target_matches_per_participant,
    )
    return matches


# ============================================================================
# Rest ordering
# ============================================================================


def order_for_rest(matches: List[RotationMatch]) -> List[RotationMatch]:
    """
    Reorder matches so each participant's minimum gap between appearances is maximized.

    Greedy: repeatedly take the remaining match whose closest-played participant
    played longest ago (participants not seen yet count as fully rested).
    Ties keep the original order.
    """
    if len(matches) <= 1:
        return list(matches)

    fresh = len(matches) + 1
    remaining = list(matches)
    ordered: List[RotationMatch] = []
    last_played: Dict[Hashable, int] = {}

    while remaining:
        best_idx = 0
        best_gap = -1
        for idx, match in enumerate(remaining):
            gaps = [len(ordered) - last_played[p] for p in match.participants() if p in last_played]
            gap = min(gaps) if gaps else fresh
            if gap > best_gap:
                best_gap = gap
                best_idx = idx
        chosen = remaining.pop(best_idx)
        for p in chosen.participants():
            last_played[p] = len(ordered)
        ordered.append(chosen)

    return ordered

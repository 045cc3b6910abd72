"""
Knockout Tree Generator

Builds single-elimination brackets from the final backwards:
- round 0 = final, 1 = semifinal, 2 = quarterfinal, else round_of_<2^(round+1)>
- Only the first generated round carries entries; every later round is an
  all-unresolved placeholder fed by WINNER refs of the two matches below it
- 3rd_place placeholder (semifinal losers) whenever the bracket has >= 2 rounds

Entries are sides: one participant (team format) or two (doubles from individuals).
A side is either concrete (participant ids) or a set of feeder refs (group
qualifiers), so the same builder serves the plain knockout generator and the
group+knockout composer.

Byes (concrete entries only): a first-round match with an empty side is emitted
COMPLETED with winner_side "A" (walkover); the bulk resolver advances it.

Non-power-of-two ref entries (e.g. individual quarterfinals from 3 groups):
the first round pairs entries 1 v n, 2 v n-1, ...; the next round takes every
first-round winner ranked by game difference plus the best losers needed to fill
a power-of-two bracket.
"""
import logging
import math
from dataclasses import dataclass, replace
from typing import Hashable, List, Optional, Sequence, Tuple

from tournament_engine.errors import InvalidConfigurationError
from tournament_engine.models.match import SIDE_A, STATUS_COMPLETED, Match
from tournament_engine.services.bracket_graph import (
    FeederRef,
    loser_of,
    make_match,
    ranked_loser,
    ranked_winner,
    set_feeders,
    winner_of,
)
from tournament_engine.services.qualification import KNOCKOUT_DEPTH_ROUNDS, normalize_depth
from tournament_engine.utils.seeding import first_round_pairs, fold_pairs

logger = logging.getLogger(__name__)

ROUND_FINAL = "final"
ROUND_SEMIFINAL = "semifinal"
ROUND_QUARTERFINAL = "quarterfinal"
ROUND_THIRD_PLACE = "3rd_place"


@dataclass(frozen=True)
class SideEntry:
    """One side of a first-round match: concrete ids or slot-relative refs (slot = offset 0/1)."""

    participant_ids: Tuple[Hashable, ...] = ()
    refs: Tuple[FeederRef, ...] = ()

    @property
    def is_concrete(self) -> bool:
        return not self.refs


def round_name(round_index: int) -> str:
    if round_index == 0:
        return ROUND_FINAL
    if round_index == 1:
        return ROUND_SEMIFINAL
    if round_index == 2:
        return ROUND_QUARTERFINAL
    return f"round_of_{2 ** (round_index + 1)}"


def round_code(round_index: int, match_index: int, prefix: str = "") -> str:
    """F, SF1, QF3, R16-5 (match_index is 0-based)."""
    if round_index == 0:
        return f"{prefix}F"
    if round_index == 1:
        return f"{prefix}SF{match_index + 1}"
    if round_index == 2:
        return f"{prefix}QF{match_index + 1}"
    return f"{prefix}R{2 ** (round_index + 1)}-{match_index + 1}"


def knockout_round_count(entry_count: int, knockout_depth: str) -> int:
    """rounds = min(ceil(log2(entries)), depth bound)."""
    depth = normalize_depth(knockout_depth)
    natural = math.ceil(math.log2(max(entry_count, 2)))
    return min(natural, KNOCKOUT_DEPTH_ROUNDS[depth])


# ============================================================================
# Builder
# ============================================================================


class _Numbering:
    def __init__(self, start: int):
        self.next = start

    def take(self) -> int:
        value = self.next
        self.next += 1
        return value


def _place_side(match: Match, side_start: int, entry: Optional[SideEntry]) -> List[FeederRef]:
    """Write a concrete entry into the match, or return its refs shifted to the side's slots."""
    if entry is None:
        return []
    if entry.is_concrete:
        for offset, pid in enumerate(entry.participant_ids):
            match.set_slot(side_start + offset, pid)
        return []
    return [replace(ref, slot=side_start + ref.slot) for ref in entry.refs]


def build_bracket(
    entries: Sequence[SideEntry],
    rounds: int,
    slots_per_side: int,
    seeding: str = "straight",
    code_prefix: str = "",
    start_number: int = 1,
    first_round_number: int = 1,
    category_id: Optional[int] = None,
    tournament_id: Optional[int] = None,
    third_place: bool = True,
) -> List[Match]:
    """
    Build a power-of-two bracket of `rounds` rounds over the given side entries.

    Entries beyond the bracket capacity are left out (logged). Returns matches in
    play order: first round, ..., final, 3rd place.
    """
    if rounds < 1:
        raise InvalidConfigurationError("A knockout needs at least one round")
    capacity = 2 ** rounds
    if len(entries) < 2:
        raise InvalidConfigurationError("A knockout needs at least 2 entries")
    if len(entries) > capacity:
        logger.warning(
            "Knockout capacity %d sides < %d entries; seeds %d+ do not advance",
            capacity,
            len(entries),
            capacity + 1,
        )
        entries = list(entries)[:capacity]

    numbering = _Numbering(start_number)
    side_b_start = 1 + slots_per_side
    matches: List[Match] = []
    previous_codes: List[str] = []

    for depth_index, round_index in enumerate(range(rounds - 1, -1, -1)):
        round_tag = round_name(round_index)
        round_number = first_round_number + depth_index
        codes: List[str] = []

        if depth_index == 0:
            for i, (seed_a, seed_b) in enumerate(first_round_pairs(seeding, capacity, len(entries))):
                code = round_code(round_index, i, code_prefix)
                entry_a = entries[seed_a - 1] if seed_a else None
                entry_b = entries[seed_b - 1] if seed_b else None
                match = make_match(
                    code, round_tag, round_number, numbering.take(), slots_per_side,
                    category_id=category_id, tournament_id=tournament_id,
                )
                refs = _place_side(match, 1, entry_a) + _place_side(match, side_b_start, entry_b)
                set_feeders(match, refs)
                if entry_b is None:
                    if entry_a is None or not entry_a.is_concrete:
                        raise InvalidConfigurationError(f"{code}: byes require a concrete opponent")
                    # Walkover: side A advances without playing
                    match.status = STATUS_COMPLETED
                    match.winner_side = SIDE_A
                matches.append(match)
                codes.append(code)
        else:
            for i in range(2 ** round_index):
                code = round_code(round_index, i, code_prefix)
                refs = [winner_of(1, previous_codes[2 * i]), winner_of(side_b_start, previous_codes[2 * i + 1])]
                matches.append(
                    make_match(
                        code, round_tag, round_number, numbering.take(), slots_per_side,
                        refs=refs, category_id=category_id, tournament_id=tournament_id,
                    )
                )
                codes.append(code)

        previous_codes = codes

    if third_place and rounds >= 2:
        semis = [m for m in matches if m.round == ROUND_SEMIFINAL]
        matches.append(
            make_match(
                f"{code_prefix}3P",
                ROUND_THIRD_PLACE,
                first_round_number + rounds - 1,
                numbering.take(),
                slots_per_side,
                refs=[loser_of(1, semis[0].match_code), loser_of(side_b_start, semis[1].match_code)],
                category_id=category_id,
                tournament_id=tournament_id,
            )
        )

    return matches


def build_ranked_bracket(
    entries: Sequence[SideEntry],
    slots_per_side: int,
    code_prefix: str = "",
    start_number: int = 1,
    category_id: Optional[int] = None,
    tournament_id: Optional[int] = None,
) -> List[Match]:
    """
    Bracket over any even number of entries (power of two or not).

    Power of two → build_bracket with crossed seeding. Otherwise a first round of
    1 v n, 2 v n-1, ... then a ranked round (winners + best losers) into a
    power-of-two bracket.
    """
    n = len(entries)
    if n < 2:
        raise InvalidConfigurationError("A knockout needs at least 2 entries")
    rounds = math.ceil(math.log2(n))
    if n == 2 ** rounds:
        return build_bracket(
            entries, rounds, slots_per_side, seeding="crossed", code_prefix=code_prefix,
            start_number=start_number, category_id=category_id, tournament_id=tournament_id,
        )
    if n % 2:
        raise InvalidConfigurationError(f"Cannot build a ranked bracket over an odd number of entries ({n})")

    numbering = _Numbering(start_number)
    side_b_start = 1 + slots_per_side
    first_index = rounds - 1
    first_tag = round_name(first_index)
    matches: List[Match] = []
    codes: List[str] = []

    for i, (seed_a, seed_b) in enumerate(fold_pairs(n)):
        code = round_code(first_index, i, code_prefix)
        match = make_match(
            code, first_tag, 1, numbering.take(), slots_per_side,
            category_id=category_id, tournament_id=tournament_id,
        )
        refs = _place_side(match, 1, entries[seed_a - 1]) + _place_side(match, side_b_start, entries[seed_b - 1])
        set_feeders(match, refs)
        matches.append(match)
        codes.append(code)

    winners = len(codes)
    next_capacity = 2 ** (rounds - 1)
    best_losers = next_capacity - winners
    ranked_entries = [SideEntry(refs=(ranked_winner(0, codes, r),)) for r in range(1, winners + 1)]
    ranked_entries += [SideEntry(refs=(ranked_loser(0, codes, r),)) for r in range(1, best_losers + 1)]

    logger.info(
        "Ranked bracket: %d entries → %d winners + %d best losers into %d-side bracket",
        n,
        winners,
        best_losers,
        next_capacity,
    )

    matches.extend(
        build_bracket(
            ranked_entries,
            rounds - 1,
            slots_per_side,
            seeding="crossed",
            code_prefix=code_prefix,
            start_number=numbering.next,
            first_round_number=2,
            category_id=category_id,
            tournament_id=tournament_id,
        )
    )
    return matches


# ============================================================================
# Public generator
# ============================================================================


def generate_knockout_tree(
    participants: Sequence[Hashable],
    depth: str,
    doubles_from_individuals: bool = False,
    category_id: Optional[int] = None,
    tournament_id: Optional[int] = None,
    seeding: str = "straight",
    start_number: int = 1,
) -> List[Match]:
    """
    Single-elimination bracket over participants already sorted by seed.

    doubles_from_individuals: consecutive participants (1+2, 3+4, ...) form a side.
    """
    entries_ids = list(participants)
    if len(set(entries_ids)) != len(entries_ids):
        raise InvalidConfigurationError("Knockout participants must be unique")

    if doubles_from_individuals:
        if len(entries_ids) < 4:
            raise InvalidConfigurationError("Doubles knockout requires at least 4 individuals")
        if len(entries_ids) % 2:
            raise InvalidConfigurationError("Doubles knockout requires an even number of individuals")
        slots_per_side = 2
        entries = [
            SideEntry(participant_ids=(entries_ids[i], entries_ids[i + 1])) for i in range(0, len(entries_ids), 2)
        ]
    else:
        if len(entries_ids) < 2:
            raise InvalidConfigurationError("Knockout requires at least 2 participants")
        slots_per_side = 1
        entries = [SideEntry(participant_ids=(pid,)) for pid in entries_ids]

    rounds = knockout_round_count(len(entries), depth)
    matches = build_bracket(
        entries,
        rounds,
        slots_per_side,
        seeding=seeding,
        start_number=start_number,
        category_id=category_id,
        tournament_id=tournament_id,
    )
    logger.info(
        "Knockout tree: %d entries, depth=%s, rounds=%d, matches=%d",
        len(entries),
        depth,
        rounds,
        len(matches),
    )
    return matches

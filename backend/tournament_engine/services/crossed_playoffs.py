"""
Crossed Playoffs (individual format)

Three-round playoff drawn from group standings, two players per side:

R1  J1, J2, J3      sides assembled from group positions (table below)
R2  SF1 = W(J1) v W(J2)
    SF2 = W(J3) v best loser of J1/J2
    5th = L(J3) v worst loser of J1/J2
R3  final = W(SF1) v W(SF2), 3rd = L(SF1) v L(SF2)

Best/worst loser compares games won by the losing side (J1 wins ties).

3 groups (>= 4 each):  J1 (A1+C4) v (A2+C3)  J2 (A3+B1) v (A4+B2)  J3 (B3+C2) v (B4+C1)
2 groups (>= 6 each):  J1 (A1+B6) v (A2+B5)  J2 (A3+B4) v (A4+B3)  J3 (A5+B2) v (A6+B1)
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple

from tournament_engine.errors import InvalidConfigurationError
from tournament_engine.models.match import Match
from tournament_engine.services.bracket_graph import group_rank, loser_of, make_match, ranked_loser, winner_of

logger = logging.getLogger(__name__)

SLOTS_PER_SIDE = 2

# (group, rank) for slots 1..4 of J1, J2, J3
Seat = Tuple[str, int]

CROSSED_TABLES: Dict[int, Tuple[int, List[Tuple[Seat, Seat, Seat, Seat]]]] = {
    3: (
        4,
        [
            (("A", 1), ("C", 4), ("A", 2), ("C", 3)),
            (("A", 3), ("B", 1), ("A", 4), ("B", 2)),
            (("B", 3), ("C", 2), ("B", 4), ("C", 1)),
        ],
    ),
    2: (
        6,
        [
            (("A", 1), ("B", 6), ("A", 2), ("B", 5)),
            (("A", 3), ("B", 4), ("A", 4), ("B", 3)),
            (("A", 5), ("B", 2), ("A", 6), ("B", 1)),
        ],
    ),
}

ROUND_R1 = "crossed_r1_j{n}"
ROUND_R2_SEMIFINAL = "crossed_r2_semifinal{n}"
ROUND_R2_FIFTH = "crossed_r2_5th_place"
ROUND_R3_FINAL = "crossed_r3_final"
ROUND_R3_THIRD = "crossed_r3_3rd_place"


def validate_crossed_groups(group_sizes: Dict[str, int]) -> int:
    """Check group count and sizes; returns the minimum size required per group."""
    count = len(group_sizes)
    if count not in CROSSED_TABLES:
        raise InvalidConfigurationError(f"Crossed playoffs support 2 or 3 groups, got {count}")
    minimum, _ = CROSSED_TABLES[count]
    short = {label: size for label, size in sorted(group_sizes.items()) if size < minimum}
    if short:
        raise InvalidConfigurationError(
            f"Crossed playoffs with {count} groups need at least {minimum} participants per group; short: {short}"
        )
    return minimum


def generate_crossed_playoffs(
    group_sizes: Dict[str, int],
    category_id: Optional[int] = None,
    tournament_id: Optional[int] = None,
    start_number: int = 1,
) -> List[Match]:
    """
    Build the 8 playoff placeholders (3 + 3 + 2) for the given groups.

    group_sizes maps group label → participant count; labels must be A, B(, C).
    """
    validate_crossed_groups(group_sizes)
    labels = sorted(group_sizes)
    expected = ["A", "B", "C"][: len(labels)]
    if labels != expected:
        raise InvalidConfigurationError(f"Crossed playoffs expect groups {expected}, got {labels}")

    _, table = CROSSED_TABLES[len(labels)]
    number = start_number
    matches: List[Match] = []

    def add(code: str, round_tag: str, round_number: int, refs: Sequence) -> Match:
        nonlocal number
        match = make_match(
            code, round_tag, round_number, number, SLOTS_PER_SIDE,
            refs=refs, category_id=category_id, tournament_id=tournament_id,
        )
        number += 1
        matches.append(match)
        return match

    j_codes = []
    for i, seats in enumerate(table, start=1):
        code = f"X1-J{i}"
        refs = [group_rank(slot, group, rank) for slot, (group, rank) in enumerate(seats, start=1)]
        add(code, ROUND_R1.format(n=i), 1, refs)
        j_codes.append(code)

    j1, j2, j3 = j_codes
    add("X2-SF1", ROUND_R2_SEMIFINAL.format(n=1), 2, [winner_of(1, j1), winner_of(3, j2)])
    add("X2-SF2", ROUND_R2_SEMIFINAL.format(n=2), 2, [winner_of(1, j3), ranked_loser(3, [j1, j2], 1)])
    add("X2-5P", ROUND_R2_FIFTH, 2, [loser_of(1, j3), ranked_loser(3, [j1, j2], 2)])

    add("X3-F", ROUND_R3_FINAL, 3, [winner_of(1, "X2-SF1"), winner_of(3, "X2-SF2")])
    add("X3-3P", ROUND_R3_THIRD, 3, [loser_of(1, "X2-SF1"), loser_of(3, "X2-SF2")])

    logger.info("Crossed playoffs: %d groups, %d placeholder matches", len(labels), len(matches))
    return matches

"""
Round Robin Generator (circle method)

Rules:
- Odd participant count: a synthetic BYE is appended; pairings touching it are dropped
- Participant 0 stays fixed, the rest rotate one position per round
- Each round pairs position i with position (n-1-i)

Guarantees:
- Every unordered pair meets exactly once across n-1 rounds (n counted after BYE)
- Each round is a perfect one-to-one pairing of the non-bye participants
- Deterministic (same input order → same rounds)
"""
from dataclasses import dataclass, field
from typing import Hashable, List, Sequence, Tuple

from tournament_engine.errors import InvalidConfigurationError

_BYE = object()


@dataclass
class RoundRobinRound:
    round_number: int  # 1-based
    pairings: List[Tuple[Hashable, Hashable]] = field(default_factory=list)
    bye: Hashable = None  # Participant sitting out this round (odd counts only)


def rr_match_count(participant_count: int) -> int:
    """C(n, 2) = n*(n-1)/2."""
    return (participant_count * (participant_count - 1)) // 2


def rr_round_count(participant_count: int) -> int:
    """Even n: n-1 rounds. Odd n: n rounds (with BYE)."""
    if participant_count % 2 == 0:
        return participant_count - 1
    return participant_count


def generate_round_robin(participants: Sequence[Hashable]) -> List[RoundRobinRound]:
    """
    Generate round-robin rounds for the given participants (ids or any hashable).

    Raises InvalidConfigurationError for fewer than 2 participants or duplicates.
    """
    entries = list(participants)
    if len(entries) < 2:
        raise InvalidConfigurationError("Round robin requires at least 2 participants")
    if len(set(entries)) != len(entries):
        raise InvalidConfigurationError("Round robin participants must be unique")

    if len(entries) % 2 == 1:
        entries.append(_BYE)

    n = len(entries)
    half = n // 2
    positions = list(entries)
    rounds: List[RoundRobinRound] = []

    for round_num in range(1, n):
        current = RoundRobinRound(round_number=round_num)
        for i in range(half):
            a, b = positions[i], positions[n - 1 - i]
            if a is _BYE or b is _BYE:
                current.bye = b if a is _BYE else a
                continue
            current.pairings.append((a, b))
        rounds.append(current)
        # Rotate: keep 0, move last to second, shift others
        positions = [positions[0]] + [positions[-1]] + positions[1:-1]

    return rounds

"""
Seeding tables and group assignment.

Seed-to-slot placement is data, not array position. Each table maps a bracket
capacity (power of two) and an entry count to first-round pairs of 1-based
seeds; None marks a bye.

- straight: match i takes the next seeds in order (1v2, 3v4, ...). Byes go to
  the top seeds first (1vBYE, 2vBYE, then the rest pair off in order).
- crossed: standard bracket order (1v8, 4v5, 2v7, 3v6 for 8). Seeds 1 and 2 can
  only meet in the final; seeds above the entry count are byes.

    capacity 2:  (1,2)
    capacity 4:  (1,4) (2,3)
    capacity 8:  (1,8) (4,5) (2,7) (3,6)
    capacity 16: (1,16) (8,9) (4,13) (5,12) (2,15) (7,10) (3,14) (6,11)
"""
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from tournament_engine.errors import InvalidConfigurationError
from tournament_engine.models.participant import Participant

SeedPair = Tuple[Optional[int], Optional[int]]

GROUP_LABELS = "ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def bracket_order(capacity: int) -> List[int]:
    """Seed numbers in bracket position order for a power-of-two capacity."""
    if capacity < 2 or capacity & (capacity - 1):
        raise InvalidConfigurationError(f"Bracket capacity must be a power of two >= 2, got {capacity}")
    order = [1, 2]
    while len(order) < capacity:
        size = len(order) * 2
        order = [seed for s in order for seed in (s, size + 1 - s)]
    return order


def straight_pairs(capacity: int, entry_count: int) -> List[SeedPair]:
    byes = max(0, capacity - entry_count)
    pairs: List[SeedPair] = []
    seed = 1
    for i in range(capacity // 2):
        if i < byes:
            pairs.append((seed, None))
            seed += 1
        else:
            pairs.append((seed, seed + 1))
            seed += 2
    return pairs


def crossed_pairs(capacity: int, entry_count: int) -> List[SeedPair]:
    order = bracket_order(capacity)
    pairs: List[SeedPair] = []
    for i in range(0, capacity, 2):
        a, b = order[i], order[i + 1]
        pairs.append((a if a <= entry_count else None, b if b <= entry_count else None))
    return pairs


SEED_TABLES: Dict[str, Callable[[int, int], List[SeedPair]]] = {
    "straight": straight_pairs,
    "crossed": crossed_pairs,
}


def first_round_pairs(table: str, capacity: int, entry_count: int) -> List[SeedPair]:
    if table not in SEED_TABLES:
        raise InvalidConfigurationError(f"Unknown seeding table: {table}")
    return SEED_TABLES[table](capacity, entry_count)


def fold_pairs(entry_count: int) -> List[Tuple[int, int]]:
    """Pair seed i with seed n+1-i (1+n, 2+(n-1), ...). Used to form doubles sides from individuals."""
    if entry_count % 2:
        raise InvalidConfigurationError("Cannot fold an odd number of entries into pairs")
    return [(i, entry_count + 1 - i) for i in range(1, entry_count // 2 + 1)]


# ============================================================================
# Participants
# ============================================================================


def seed_sort_key(participant: Participant) -> Tuple:
    """Seeded first (ascending), then registration order, then id."""
    return (
        participant.seed is None,
        participant.seed or 0,
        participant.created_at.isoformat() if participant.created_at else "",
        participant.id or 0,
    )


def group_labels(count: int) -> List[str]:
    if count < 1 or count > len(GROUP_LABELS):
        raise InvalidConfigurationError(f"number_of_groups must be between 1 and {len(GROUP_LABELS)}")
    return list(GROUP_LABELS[:count])


def assign_groups(participants: Sequence[Participant], number_of_groups: int) -> Dict[str, List[Participant]]:
    """
    Distribute participants into groups A, B, C, ...

    Participants that already carry a group_label keep it. The rest, in seed order,
    go to the currently smallest group (label order on ties), which is a plain
    A, B, C, A, B, C rotation when nobody is pre-assigned. group_label is written back.
    """
    labels = group_labels(number_of_groups)
    groups: Dict[str, List[Participant]] = defaultdict(list)
    for label in labels:
        groups[label] = []

    unassigned = []
    for p in sorted(participants, key=seed_sort_key):
        if p.group_label:
            if p.group_label not in groups:
                raise InvalidConfigurationError(
                    f"Participant {p.display_name} has group {p.group_label}, expected one of {labels}"
                )
            groups[p.group_label].append(p)
        else:
            unassigned.append(p)

    for p in unassigned:
        label = min(labels, key=lambda lbl: (len(groups[lbl]), lbl))
        p.group_label = label
        groups[label].append(p)

    return dict(groups)


# ============================================================================
# Group-mate separation
# ============================================================================


def separate_group_mates(
    seed_groups: Sequence[Optional[str]],
    tier_size: int,
    neighbours: Sequence[Tuple[int, int]],
) -> List[int]:
    """
    Reorder seeds inside each tier so that neighbouring seeds come from different groups.

    seed_groups[i] is the group of seed i+1, or None when it is only known once the
    group stage ends (wildcards). Tiers are consecutive runs of `tier_size` seeds. The
    first tier keeps its order; a tier holding an unknown group is left alone.
    `neighbours` lists 1-based seed pairs that meet (or partner) in the first round.

    Each tier takes the first arrangement, in seed order, with the fewest same-group
    neighbours among the seeds already placed. Returns 0-based indices into seed_groups.
    """
    if tier_size < 1:
        raise InvalidConfigurationError("tier_size must be >= 1")
    adjacent: Dict[int, List[int]] = defaultdict(list)
    for a, b in neighbours:
        adjacent[a - 1].append(b - 1)
        adjacent[b - 1].append(a - 1)

    order = list(range(len(seed_groups)))
    placed: Dict[int, Optional[str]] = {}
    for start in range(0, len(seed_groups), tier_size):
        positions = list(range(start, min(start + tier_size, len(seed_groups))))
        if start > 0 and all(seed_groups[i] is not None for i in positions):
            for pos, idx in zip(positions, _arrange_tier(positions, seed_groups, adjacent, placed)):
                order[pos] = idx
        for pos in positions:
            placed[pos] = seed_groups[order[pos]]
    return order


def _arrange_tier(
    positions: List[int],
    seed_groups: Sequence[Optional[str]],
    adjacent: Dict[int, List[int]],
    placed: Dict[int, Optional[str]],
) -> List[int]:
    local = dict(placed)
    chosen: List[int] = []
    best = list(positions)
    best_clashes: Optional[int] = None

    def search(depth: int, clashes: int) -> bool:
        """Returns True once a clash-free arrangement is found."""
        nonlocal best, best_clashes
        if best_clashes is not None and clashes >= best_clashes:
            return False
        if depth == len(positions):
            best, best_clashes = list(chosen), clashes
            return clashes == 0
        pos = positions[depth]
        for idx in positions:
            if idx in chosen:
                continue
            group = seed_groups[idx]
            added = sum(1 for other in adjacent[pos] if local.get(other) == group)
            chosen.append(idx)
            local[pos] = group
            stop = search(depth + 1, clashes + added)
            chosen.pop()
            del local[pos]
            if stop:
                return True
        return False

    search(0, 0)
    return best

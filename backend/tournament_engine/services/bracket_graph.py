"""
Bracket dependency graph.

Every placeholder match declares, at generation time, where each of its
unresolved slots comes from. Declarations are stored on Match.feeders_json and
read back as FeederRef values; the progression engine and the allocator walk
these refs instead of pattern-matching round names.

Roles:
- WINNER / LOSER            side of sources[0]                      → fills a side
- WINNER_RANK / LOSER_RANK  rank-th best winner/loser among sources  → fills a side
- GROUP_RANK                rank-th of group standings               → fills one slot
- WILDCARD                  rank-th best at position `position`     → fills one slot
                            across all groups
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from tournament_engine.models.match import Match

ROLE_WINNER = "WINNER"
ROLE_LOSER = "LOSER"
ROLE_WINNER_RANK = "WINNER_RANK"
ROLE_LOSER_RANK = "LOSER_RANK"
ROLE_GROUP_RANK = "GROUP_RANK"
ROLE_WILDCARD = "WILDCARD"

SIDE_ROLES = frozenset({ROLE_WINNER, ROLE_LOSER, ROLE_WINNER_RANK, ROLE_LOSER_RANK})
STANDINGS_ROLES = frozenset({ROLE_GROUP_RANK, ROLE_WILDCARD})
VALID_ROLES = SIDE_ROLES | STANDINGS_ROLES


@dataclass(frozen=True)
class FeederRef:
    slot: int  # First target slot (1..4); side roles fill slots_per_side slots from here
    role: str
    sources: Tuple[str, ...] = ()  # Feeder match codes (side roles)
    group: Optional[str] = None  # GROUP_RANK
    rank: int = 1  # 1-based
    position: Optional[int] = None  # WILDCARD: group position wildcards are drawn from

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"slot": self.slot, "role": self.role, "rank": self.rank}
        if self.sources:
            data["sources"] = list(self.sources)
        if self.group is not None:
            data["group"] = self.group
        if self.position is not None:
            data["position"] = self.position
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FeederRef":
        return cls(
            slot=int(data["slot"]),
            role=data["role"],
            sources=tuple(data.get("sources") or ()),
            group=data.get("group"),
            rank=int(data.get("rank", 1)),
            position=data.get("position"),
        )

    def label(self) -> str:
        """Human-readable placeholder text ("Winner SF1", "A1", "Best loser X1-J1/X1-J2")."""
        if self.role == ROLE_WINNER:
            return f"Winner {self.sources[0]}"
        if self.role == ROLE_LOSER:
            return f"Loser {self.sources[0]}"
        if self.role == ROLE_WINNER_RANK:
            return f"Winner #{self.rank} of {'/'.join(self.sources)}"
        if self.role == ROLE_LOSER_RANK:
            return f"Loser #{self.rank} of {'/'.join(self.sources)}"
        if self.role == ROLE_GROUP_RANK:
            return f"{self.group}{self.rank}"
        return f"Wildcard #{self.rank} (position {self.position})"


# ============================================================================
# Constructors
# ============================================================================


def winner_of(slot: int, code: str) -> FeederRef:
    return FeederRef(slot=slot, role=ROLE_WINNER, sources=(code,))


def loser_of(slot: int, code: str) -> FeederRef:
    return FeederRef(slot=slot, role=ROLE_LOSER, sources=(code,))


def ranked_winner(slot: int, codes: Sequence[str], rank: int) -> FeederRef:
    return FeederRef(slot=slot, role=ROLE_WINNER_RANK, sources=tuple(codes), rank=rank)


def ranked_loser(slot: int, codes: Sequence[str], rank: int) -> FeederRef:
    return FeederRef(slot=slot, role=ROLE_LOSER_RANK, sources=tuple(codes), rank=rank)


def group_rank(slot: int, group: str, rank: int) -> FeederRef:
    return FeederRef(slot=slot, role=ROLE_GROUP_RANK, group=group, rank=rank)


def wildcard(slot: int, position: int, rank: int) -> FeederRef:
    return FeederRef(slot=slot, role=ROLE_WILDCARD, rank=rank, position=position)


# ============================================================================
# Match accessors
# ============================================================================


def feeders_of(match: Match) -> List[FeederRef]:
    return [FeederRef.from_dict(d) for d in (match.feeders_json or [])]


def set_feeders(match: Match, refs: Iterable[FeederRef]) -> None:
    refs = list(refs)
    match.feeders_json = [r.to_dict() for r in refs] or None


def target_slots(match: Match, ref: FeederRef) -> List[int]:
    """Slots a ref writes: a whole side for side roles, one slot for standings roles."""
    if ref.role in SIDE_ROLES:
        return list(range(ref.slot, ref.slot + match.slots_per_side))
    return [ref.slot]


def depends_on_standings(match: Match) -> bool:
    return any(ref.role in STANDINGS_ROLES for ref in feeders_of(match))


def dependency_codes(match: Match, category_matches: Iterable[Match]) -> Set[str]:
    """
    Codes of every match that must be completed before `match` can be populated.

    Standings roles depend on all group matches of the category.
    """
    refs = feeders_of(match)
    codes: Set[str] = set()
    for ref in refs:
        codes.update(ref.sources)
    if any(ref.role in STANDINGS_ROLES for ref in refs):
        codes.update(m.match_code for m in category_matches if m.is_group_match)
    return codes


def dependents_of(code: str, is_group_match: bool, category_matches: Iterable[Match]) -> List[Match]:
    """Placeholders whose refs mention `code` (or any standings ref, for a group match)."""
    result = []
    for m in category_matches:
        refs = feeders_of(m)
        if not refs:
            continue
        if any(code in ref.sources for ref in refs) or (
            is_group_match and any(ref.role in STANDINGS_ROLES for ref in refs)
        ):
            result.append(m)
    return result


def placeholder_text(match: Match) -> Dict[int, str]:
    """Slot → label for every slot a ref will fill."""
    labels: Dict[int, str] = {}
    for ref in feeders_of(match):
        for slot in target_slots(match, ref):
            labels[slot] = ref.label()
    return labels


def make_match(
    code: str,
    round_tag: str,
    round_number: int,
    match_number: int,
    slots_per_side: int,
    slots: Optional[Dict[int, Optional[int]]] = None,
    refs: Iterable[FeederRef] = (),
    category_id: Optional[int] = None,
    tournament_id: Optional[int] = None,
) -> Match:
    """Build an unsaved Match with concrete slots and/or feeder refs."""
    match = Match(
        tournament_id=tournament_id,
        category_id=category_id,
        match_code=code,
        round=round_tag,
        round_number=round_number,
        match_number=match_number,
        slots_per_side=slots_per_side,
    )
    for slot, participant_id in (slots or {}).items():
        match.set_slot(slot, participant_id)
    set_feeders(match, refs)
    return match

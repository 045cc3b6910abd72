"""
Qualification Calculator (single source of truth)

Maps (number_of_groups, knockout_depth, participant_arity) to how many participants
advance from each group. The composer sizes placeholder matches with it and the
progression engine fills them with it; both must import from here.

Totals advancing to the knockout:
- team / doubles (a fixed pair is one entity): final 2, semifinals 4, quarterfinals 8, round_of_16 16
- individual (rotating partners, two per side): final 4, semifinals 8,
  quarterfinals = everyone in a fixed 4 per group, round_of_16 32

qualified_per_group = floor(total / groups)
extra_wildcards_needed = total - qualified_per_group * groups
wildcard_rank_threshold = qualified_per_group + 1 (the group position wildcards come from)
"""
from dataclasses import asdict, dataclass
from functools import lru_cache
from typing import Any, Dict, Union

from tournament_engine.errors import InvalidConfigurationError
from tournament_engine.models.category import ParticipantArity

# Depth → number of knockout rounds it allows (final = 1 round)
KNOCKOUT_DEPTH_ROUNDS: Dict[str, int] = {
    "final": 1,
    "semifinals": 2,
    "quarterfinals": 3,
    "round_of_16": 4,
}

_DEPTH_ALIASES = {
    "round16": "round_of_16",
    "round_16": "round_of_16",
    "semifinal": "semifinals",
    "quarterfinal": "quarterfinals",
}

TEAM_QUALIFIERS: Dict[str, int] = {
    "final": 2,
    "semifinals": 4,
    "quarterfinals": 8,
    "round_of_16": 16,
}

INDIVIDUAL_QUALIFIERS: Dict[str, int] = {
    "final": 4,
    "semifinals": 8,
    "round_of_16": 32,
}

# Individual quarterfinals: all players advance, fixed 4 per group
INDIVIDUAL_QUARTERFINAL_PER_GROUP = 4


@dataclass(frozen=True)
class QualificationConfig:
    qualified_per_group: int
    extra_wildcards_needed: int
    total_qualified: int
    wildcard_rank_threshold: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def normalize_depth(knockout_depth: str) -> str:
    depth = (knockout_depth or "").strip().lower()
    depth = _DEPTH_ALIASES.get(depth, depth)
    if depth not in KNOCKOUT_DEPTH_ROUNDS:
        raise InvalidConfigurationError(
            f"Unknown knockout depth '{knockout_depth}'; expected one of {sorted(KNOCKOUT_DEPTH_ROUNDS)}"
        )
    return depth


def normalize_arity(participant_arity: Union[str, ParticipantArity]) -> ParticipantArity:
    try:
        return ParticipantArity(getattr(participant_arity, "value", participant_arity))
    except ValueError:
        raise InvalidConfigurationError(f"Unknown participant arity '{participant_arity}'") from None


def compute_qualification(
    number_of_groups: int,
    knockout_depth: str,
    participant_arity: Union[str, ParticipantArity],
) -> QualificationConfig:
    """Pure: identical inputs always give an identical (cached) result."""
    return _compute_qualification(number_of_groups, normalize_depth(knockout_depth), normalize_arity(participant_arity))


@lru_cache(maxsize=None)
def _compute_qualification(
    number_of_groups: int, depth: str, arity: ParticipantArity
) -> QualificationConfig:
    if number_of_groups < 1:
        raise InvalidConfigurationError("number_of_groups must be >= 1")

    if arity == ParticipantArity.individual:
        if depth == "quarterfinals":
            total = INDIVIDUAL_QUARTERFINAL_PER_GROUP * number_of_groups
        else:
            total = INDIVIDUAL_QUALIFIERS[depth]
    else:
        total = TEAM_QUALIFIERS[depth]

    qualified_per_group = total // number_of_groups
    if qualified_per_group < 1:
        raise InvalidConfigurationError(
            f"{number_of_groups} groups cannot feed a {depth} knockout of {total} qualifiers"
        )
    extra = total - qualified_per_group * number_of_groups

    return QualificationConfig(
        qualified_per_group=qualified_per_group,
        extra_wildcards_needed=extra,
        total_qualified=total,
        wildcard_rank_threshold=qualified_per_group + 1,
    )

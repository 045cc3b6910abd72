"""
Category match composer.

Turns a category (format + participant arity) and its participants into the
full list of unsaved Match rows:

- round_robin      one round robin per group (rotation for individuals)
- american         partner rotation per group (individual arity only)
- mixed_american   partner rotation with one man and one woman per side
- knockout         single-elimination tree over seeded participants
- groups_knockout  group stage + knockout fed by GROUP_RANK / WILDCARD refs
- crossed_playoffs group stage + crossed 3-round playoff (individual arity only)

Group stage codes are G<label>-<n> with round "group_<label>"; knockout codes
are F, SF1, QF1, R16-1, 3P; crossed playoff codes are X1-J1 ... X3-3P.
match_number runs continuously through the category.

Participants must already be persisted (ids are written into slots). Group
labels are assigned and written back onto the participants.
"""
import logging
from dataclasses import replace
from typing import Dict, List, Sequence, Tuple

from tournament_engine.config import EXHAUSTIVE_MAX_PARTICIPANTS, EXHAUSTIVE_NODE_BUDGET
from tournament_engine.errors import InvalidConfigurationError
from tournament_engine.models.category import Category, CategoryFormat, ParticipantArity
from tournament_engine.models.match import GROUP_ROUND_PREFIX, Match
from tournament_engine.models.participant import GENDER_FEMALE, GENDER_MALE, GENDERS, Participant
from tournament_engine.services.bracket_graph import group_rank, make_match, wildcard
from tournament_engine.services.crossed_playoffs import generate_crossed_playoffs
from tournament_engine.services.knockout_tree import SideEntry, build_ranked_bracket, generate_knockout_tree
from tournament_engine.services.qualification import QualificationConfig, compute_qualification, normalize_arity
from tournament_engine.utils.partner_rotation import (
    MIN_PARTICIPANTS,
    generate_exhaustive_rotation,
    generate_mixed_rotation,
    generate_partner_rotation,
    order_for_rest,
)
from tournament_engine.utils.round_robin import generate_round_robin
from tournament_engine.utils.seeding import (
    assign_groups,
    crossed_pairs,
    fold_pairs,
    group_labels,
    seed_sort_key,
    separate_group_mates,
)

logger = logging.getLogger(__name__)


def _format(category: Category) -> CategoryFormat:
    try:
        return CategoryFormat(getattr(category.format, "value", category.format))
    except ValueError:
        raise InvalidConfigurationError(f"Unknown category format '{category.format}'") from None


# ============================================================================
# Group stage
# ============================================================================


def _group_matches(
    category: Category,
    label: str,
    members: Sequence[Participant],
    arity: ParticipantArity,
    start_number: int,
    mixed: bool = False,
) -> List[Match]:
    ordered = sorted(members, key=seed_sort_key)
    ids = [p.id for p in ordered]
    if any(pid is None for pid in ids):
        raise InvalidConfigurationError("Participants must be saved before generating matches")
    round_tag = f"{GROUP_ROUND_PREFIX}{label}"
    matches: List[Match] = []

    def add(round_number: int, slots: Dict[int, int], slots_per_side: int) -> None:
        matches.append(
            make_match(
                f"G{label}-{len(matches) + 1}",
                round_tag,
                round_number,
                start_number + len(matches),
                slots_per_side,
                slots=slots,
                category_id=category.id,
                tournament_id=category.tournament_id,
            )
        )

    if arity == ParticipantArity.individual:
        if len(ids) < MIN_PARTICIPANTS:
            raise InvalidConfigurationError(
                f"Group {label} has {len(ids)} players; rotating doubles needs at least {MIN_PARTICIPANTS}"
            )
        if mixed:
            rotation = generate_mixed_rotation(
                [p.id for p in ordered if p.gender == GENDER_MALE],
                [p.id for p in ordered if p.gender == GENDER_FEMALE],
                category.target_matches_per_participant,
            )
        elif len(ids) <= EXHAUSTIVE_MAX_PARTICIPANTS:
            rotation = generate_exhaustive_rotation(ids, node_budget=EXHAUSTIVE_NODE_BUDGET)
        else:
            rotation = generate_partner_rotation(ids, category.target_matches_per_participant)
        for m in order_for_rest(rotation):
            a1, a2, b1, b2 = m.participants()
            add(m.round_number, {1: a1, 2: a2, 3: b1, 4: b2}, 2)
    else:
        for rr_round in generate_round_robin(ids):
            for a, b in rr_round.pairings:
                add(rr_round.round_number, {1: a, 2: b}, 1)

    return matches


def _mixed_groups(participants: Sequence[Participant], number_of_groups: int) -> Dict[str, List[Participant]]:
    """Men and women are spread over the groups separately so every group stays balanced."""
    missing = [p.display_name for p in participants if p.gender not in GENDERS]
    if missing:
        raise InvalidConfigurationError(f"mixed_american needs a gender (M or F) for every player: {missing}")
    groups: Dict[str, List[Participant]] = {label: [] for label in group_labels(number_of_groups)}
    for gender in GENDERS:
        same = [p for p in participants if p.gender == gender]
        for label, members in assign_groups(same, number_of_groups).items():
            groups[label].extend(members)
    return groups


def _group_stage(
    category: Category,
    participants: Sequence[Participant],
    arity: ParticipantArity,
    mixed: bool = False,
) -> Tuple[Dict[str, List[Participant]], List[Match]]:
    number_of_groups = max(1, category.number_of_groups)
    if mixed:
        groups = _mixed_groups(participants, number_of_groups)
    else:
        groups = assign_groups(participants, number_of_groups)
    matches: List[Match] = []
    for label in sorted(groups):
        matches.extend(_group_matches(category, label, groups[label], arity, len(matches) + 1, mixed))
    return groups, matches


# ============================================================================
# Group qualifiers → knockout
# ============================================================================


def first_round_sides(seed_count: int, arity: ParticipantArity) -> List[Tuple[Tuple[int, ...], Tuple[int, ...]]]:
    """Seed numbers on each side of every first knockout round match, as the bracket builder lays them out."""
    if arity == ParticipantArity.individual:
        entries: List[Tuple[int, ...]] = fold_pairs(seed_count)
    else:
        entries = [(seed,) for seed in range(1, seed_count + 1)]
    n = len(entries)
    pairs = crossed_pairs(n, n) if n & (n - 1) == 0 else fold_pairs(n)
    return [(entries[a - 1], entries[b - 1]) for a, b in pairs]


def qualifier_seeds(
    labels: Sequence[str],
    qualification: QualificationConfig,
    arity: ParticipantArity = ParticipantArity.team,
) -> List:
    """
    Qualifier refs in seed order: one tier per group position, then the wildcards.

    Individuals from three or more groups are ranked across groups inside each tier
    (wins, game difference, games won) once the group stage ends. Otherwise a tier
    lists every group, arranged so that no first-round match puts group-mates against
    each other (or, for individuals, on the same side).
    """
    ranked_tiers = arity == ParticipantArity.individual and len(labels) >= 3
    seeds = []
    for rank in range(1, qualification.qualified_per_group + 1):
        if ranked_tiers:
            seeds += [wildcard(0, rank, i) for i in range(1, len(labels) + 1)]
        else:
            seeds += [group_rank(0, label, rank) for label in labels]
    seeds += [
        wildcard(0, qualification.wildcard_rank_threshold, rank)
        for rank in range(1, qualification.extra_wildcards_needed + 1)
    ]
    if ranked_tiers:
        return seeds

    sides = first_round_sides(len(seeds), arity)
    if arity == ParticipantArity.individual:
        neighbours = [tuple(side) for match in sides for side in match]
    else:
        neighbours = [(side_a[0], side_b[0]) for side_a, side_b in sides]
    order = separate_group_mates([ref.group for ref in seeds], len(labels), neighbours)
    return [seeds[i] for i in order]


def _check_group_sizes(groups: Dict[str, List[Participant]], qualification: QualificationConfig) -> None:
    short = sorted(label for label, members in groups.items() if len(members) < qualification.qualified_per_group)
    if short:
        raise InvalidConfigurationError(
            f"Groups {short} have fewer than {qualification.qualified_per_group} participants to qualify"
        )
    deep = sum(1 for members in groups.values() if len(members) >= qualification.wildcard_rank_threshold)
    if deep < qualification.extra_wildcards_needed:
        raise InvalidConfigurationError(
            f"{qualification.extra_wildcards_needed} wildcards needed from position "
            f"{qualification.wildcard_rank_threshold} but only {deep} groups are that deep"
        )


def _qualifier_entries(seeds: List, arity: ParticipantArity) -> List[SideEntry]:
    if arity != ParticipantArity.individual:
        return [SideEntry(refs=(ref,)) for ref in seeds]
    # Two individuals per side: seed i partners seed T+1-i
    entries = []
    for a, b in fold_pairs(len(seeds)):
        first, second = seeds[a - 1], seeds[b - 1]
        entries.append(SideEntry(refs=(first, replace(second, slot=1))))
    return entries


def _groups_knockout(category: Category, participants: Sequence[Participant], arity: ParticipantArity) -> List[Match]:
    if not category.knockout_depth:
        raise InvalidConfigurationError("groups_knockout requires a knockout_depth")
    qualification = compute_qualification(max(1, category.number_of_groups), category.knockout_depth, arity)
    groups, matches = _group_stage(category, participants, arity)
    _check_group_sizes(groups, qualification)

    seeds = qualifier_seeds(sorted(groups), qualification, arity)
    entries = _qualifier_entries(seeds, arity)
    matches.extend(
        build_ranked_bracket(
            entries,
            category.slots_per_side,
            start_number=len(matches) + 1,
            category_id=category.id,
            tournament_id=category.tournament_id,
        )
    )
    return matches


# ============================================================================
# Entry point
# ============================================================================


def generate_category_matches(category: Category, participants: Sequence[Participant]) -> List[Match]:
    """All matches of a category, unsaved. Raises InvalidConfigurationError before building anything partial."""
    fmt = _format(category)
    arity = normalize_arity(category.participant_arity)
    participants = list(participants)

    if fmt == CategoryFormat.knockout:
        if not category.knockout_depth:
            raise InvalidConfigurationError("knockout requires a knockout_depth")
        ids = [p.id for p in sorted(participants, key=seed_sort_key)]
        matches = generate_knockout_tree(
            ids,
            category.knockout_depth,
            doubles_from_individuals=arity == ParticipantArity.individual,
            category_id=category.id,
            tournament_id=category.tournament_id,
        )
    elif fmt == CategoryFormat.american:
        if arity != ParticipantArity.individual:
            raise InvalidConfigurationError("american format requires individual participants")
        _, matches = _group_stage(category, participants, arity)
    elif fmt == CategoryFormat.mixed_american:
        if arity != ParticipantArity.individual:
            raise InvalidConfigurationError("mixed_american format requires individual participants")
        _, matches = _group_stage(category, participants, arity, mixed=True)
    elif fmt == CategoryFormat.round_robin:
        _, matches = _group_stage(category, participants, arity)
    elif fmt == CategoryFormat.groups_knockout:
        matches = _groups_knockout(category, participants, arity)
    else:
        if arity != ParticipantArity.individual:
            raise InvalidConfigurationError("crossed_playoffs requires individual participants")
        groups, matches = _group_stage(category, participants, arity)
        matches.extend(
            generate_crossed_playoffs(
                {label: len(members) for label, members in groups.items()},
                category_id=category.id,
                tournament_id=category.tournament_id,
                start_number=len(matches) + 1,
            )
        )

    logger.info(
        "Generated %d matches for category %s (%s, %s)",
        len(matches),
        category.name,
        fmt.value,
        arity.value,
    )
    return matches

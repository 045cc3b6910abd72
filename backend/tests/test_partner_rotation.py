"""American doubles: greedy partner rotation, bounded-exhaustive search, mixed rotation, rest ordering."""
from collections import Counter

import pytest

from tournament_engine.errors import InvalidConfigurationError
from tournament_engine.utils.partner_rotation import (
    RotationMatch,
    RotationState,
    build_round,
    generate_exhaustive_rotation,
    generate_mixed_rotation,
    generate_partner_rotation,
    order_for_rest,
    score_grouping,
)


def _match_counts(matches):
    return Counter(p for m in matches for p in m.participants())


def _partner_counts(matches):
    return Counter(frozenset(side) for m in matches for side in (m.side_a, m.side_b))


# ============================================================================
# Greedy
# ============================================================================


@pytest.mark.parametrize("n", [4, 8, 12])
def test_greedy_fairness(n):
    players = [f"P{i}" for i in range(1, n + 1)]
    matches = generate_partner_rotation(players, target_matches_per_participant=7)

    counts = _match_counts(matches)
    assert set(counts) == set(players)
    assert max(counts.values()) - min(counts.values()) <= 1
    assert min(counts.values()) >= 7


def test_greedy_matches_are_two_vs_two_with_distinct_players():
    for m in generate_partner_rotation(list(range(8)), 5):
        assert len(set(m.participants())) == 4


def test_greedy_prefers_new_partners():
    # 8 players, 2 matches each: nobody needs to repeat a partner yet
    matches = generate_partner_rotation(list(range(8)), 2)
    assert max(_partner_counts(matches).values()) == 1


def test_greedy_no_player_twice_in_a_round():
    matches = generate_partner_rotation(list(range(12)), 4)
    by_round = {}
    for m in matches:
        by_round.setdefault(m.round_number, []).extend(m.participants())
    for players in by_round.values():
        assert len(players) == len(set(players))


def test_greedy_is_deterministic():
    players = list(range(1, 9))
    assert generate_partner_rotation(players, 4) == generate_partner_rotation(players, 4)


def test_round_bound_stops_generation():
    matches = generate_partner_rotation(list(range(4)), target_matches_per_participant=7, max_rounds=2)
    assert len(matches) == 2


def test_build_round_does_not_mutate_input_state():
    players = list(range(8))
    state = RotationState.initial(players)
    matches, new_state = build_round(players, state, 1)

    assert len(matches) == 2
    assert state.min_matches() == 0
    assert new_state.min_matches() == 1


def test_score_grouping_penalties():
    state = RotationState.initial([1, 2, 3, 4])
    assert score_grouping(state, (1, 2), (3, 4)) == 0

    state = state.record(RotationMatch(round_number=1, side_a=(1, 2), side_b=(3, 4)))
    # partner repeat 1-2 and 3-4, four opponent repeats, four players with one match
    assert score_grouping(state, (1, 2), (3, 4)) == -200 - 200 - 40
    # 1-3 / 2-4: no partner repeat, opponents 1v2 (0) 1v4 (1) 3v2 (1) 3v4 (0)
    assert score_grouping(state, (1, 3), (2, 4)) == -100 - 40


@pytest.mark.parametrize("players,target", [([1, 2, 3], 7), ([1, 2, 3, 3], 7), ([1, 2, 3, 4], 0)])
def test_greedy_rejects_invalid_input(players, target):
    with pytest.raises(InvalidConfigurationError):
        generate_partner_rotation(players, target)


# ============================================================================
# Bounded exhaustive
# ============================================================================


def test_exhaustive_four_players_three_matches():
    matches = generate_exhaustive_rotation([1, 2, 3, 4])
    assert len(matches) == 3
    assert max(_partner_counts(matches).values()) == 1
    assert [m.round_number for m in matches] == [1, 2, 3]


def test_exhaustive_five_players_every_pair_partners_once():
    matches = generate_exhaustive_rotation([1, 2, 3, 4, 5])
    assert len(matches) == 5
    partners = _partner_counts(matches)
    assert len(partners) == 10
    assert max(partners.values()) == 1


def test_exhaustive_eight_players_never_repeats_partner():
    matches = generate_exhaustive_rotation(list(range(8)))
    assert max(_partner_counts(matches).values()) == 1
    assert len(matches) >= 10


def test_exhaustive_respects_node_budget():
    matches = generate_exhaustive_rotation(list(range(8)), node_budget=5)
    assert matches
    assert max(_partner_counts(matches).values()) == 1


def test_exhaustive_rejects_too_few_players():
    with pytest.raises(InvalidConfigurationError):
        generate_exhaustive_rotation([1, 2, 3])


# ============================================================================
# Mixed
# ============================================================================


def _mixed(n):
    return [f"M{i}" for i in range(1, n + 1)], [f"W{i}" for i in range(1, n + 1)]


@pytest.mark.parametrize("n", [2, 3, 4, 5])
def test_mixed_sides_are_one_man_and_one_woman(n):
    men, women = _mixed(n)
    for m in generate_mixed_rotation(men, women, 4):
        assert len(set(m.participants())) == 4
        for man, woman in (m.side_a, m.side_b):
            assert man in men
            assert woman in women


@pytest.mark.parametrize("n", [2, 3, 4, 5, 6])
def test_mixed_everyone_plays_the_same_number_of_matches(n):
    men, women = _mixed(n)
    matches = generate_mixed_rotation(men, women, target_matches_per_participant=7)

    counts = _match_counts(matches)
    assert set(counts) == set(men + women)
    assert len(set(counts.values())) == 1
    assert min(counts.values()) >= 7


def test_mixed_partners_rotate():
    men, women = _mixed(4)
    matches = generate_mixed_rotation(men, women, 4)
    assert len(_partner_counts(matches)) >= 6


def test_mixed_odd_count_sits_out_in_turn():
    men, women = _mixed(3)
    matches = generate_mixed_rotation(men, women, 2)
    by_round = Counter(m.round_number for m in matches)
    assert set(by_round.values()) == {1}
    sitting_out = [set(men) - set(m.participants()) for m in matches[:3]]
    assert sitting_out == [{"M3"}, {"M2"}, {"M1"}]


@pytest.mark.parametrize(
    "men,women",
    [
        (["M1"], ["W1", "W2"]),
        (["M1", "M2", "M3"], ["W1", "W2"]),
        (["M1", "M1"], ["W1", "W2"]),
    ],
)
def test_mixed_rejects_invalid_input(men, women):
    with pytest.raises(InvalidConfigurationError):
        generate_mixed_rotation(men, women, 3)


# ============================================================================
# Rest ordering
# ============================================================================


def test_order_for_rest_is_a_permutation():
    matches = generate_exhaustive_rotation(list(range(8)))
    ordered = order_for_rest(matches)
    assert sorted(map(id, ordered)) == sorted(map(id, matches))


def test_order_for_rest_spreads_appearances():
    matches = [
        RotationMatch(1, (1, 2), (3, 4)),
        RotationMatch(2, (1, 3), (2, 4)),
        RotationMatch(3, (5, 6), (7, 8)),
    ]
    ordered = order_for_rest(matches)
    assert ordered[0] is matches[0]
    assert ordered[1] is matches[2]
    assert ordered[2] is matches[1]

"""Seed tables and group assignment."""
from datetime import datetime, timedelta

import pytest

from tournament_engine.errors import InvalidConfigurationError
from tournament_engine.models.participant import Participant
from tournament_engine.utils.seeding import (
    assign_groups,
    bracket_order,
    crossed_pairs,
    fold_pairs,
    separate_group_mates,
    straight_pairs,
)


def test_bracket_order():
    assert bracket_order(2) == [1, 2]
    assert bracket_order(4) == [1, 4, 2, 3]
    assert bracket_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]


def test_bracket_order_rejects_non_power_of_two():
    with pytest.raises(InvalidConfigurationError):
        bracket_order(6)


def test_straight_pairs_with_byes():
    assert straight_pairs(8, 8) == [(1, 2), (3, 4), (5, 6), (7, 8)]
    assert straight_pairs(8, 5) == [(1, None), (2, None), (3, None), (4, 5)]


def test_crossed_pairs_with_byes():
    assert crossed_pairs(8, 8) == [(1, 8), (4, 5), (2, 7), (3, 6)]
    assert crossed_pairs(8, 6) == [(1, None), (4, 5), (2, None), (3, 6)]


def test_fold_pairs():
    assert fold_pairs(6) == [(1, 6), (2, 5), (3, 4)]
    with pytest.raises(InvalidConfigurationError):
        fold_pairs(5)


def _players(n, **overrides):
    base = datetime(2026, 1, 1)
    return [
        Participant(id=i, category_id=1, display_name=f"P{i}", created_at=base + timedelta(minutes=i), **overrides)
        for i in range(1, n + 1)
    ]


def test_assign_groups_rotates_in_seed_order():
    players = _players(6)
    groups = assign_groups(players, 2)
    assert [p.id for p in groups["A"]] == [1, 3, 5]
    assert [p.id for p in groups["B"]] == [2, 4, 6]
    assert players[1].group_label == "B"


def test_assign_groups_keeps_preassigned_labels():
    players = _players(4)
    players[0].group_label = "B"
    players[1].group_label = "B"
    groups = assign_groups(players, 2)
    assert [p.id for p in groups["A"]] == [3, 4]
    assert [p.id for p in groups["B"]] == [1, 2]


def test_seeded_players_go_first():
    players = _players(4)
    players[3].seed = 1
    groups = assign_groups(players, 2)
    assert groups["A"][0].id == 4


def test_assign_groups_rejects_unknown_label():
    players = _players(2)
    players[0].group_label = "Z"
    with pytest.raises(InvalidConfigurationError):
        assign_groups(players, 2)


def test_separate_group_mates_across_tiers():
    # 3 groups x 5 positions + 1 wildcard into a 16 bracket
    groups = [g for _ in range(5) for g in "ABC"] + [None]
    neighbours = crossed_pairs(16, 16)
    order = separate_group_mates(groups, 3, neighbours)

    arranged = [groups[i] for i in order]
    assert arranged[:3] == ["A", "B", "C"]
    assert arranged[-1] is None
    for tier in range(5):
        assert sorted(arranged[tier * 3:tier * 3 + 3]) == ["A", "B", "C"]
    for a, b in neighbours:
        assert arranged[a - 1] is None or arranged[a - 1] != arranged[b - 1]


def test_separate_group_mates_keeps_order_when_unavoidable():
    assert separate_group_mates(["A", "A", "A", "A"], 1, [(1, 4), (2, 3)]) == [0, 1, 2, 3]

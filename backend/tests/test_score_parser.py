"""Score parser: structured sets, strings, winner by sets then games."""
import pytest

from tournament_engine.services.score_parser import parse_score, score_from_sets


def test_structured_sets():
    parsed = parse_score(score_from_sets([(6, 3), (4, 6), (10, 7)]))
    assert parsed.sets == [(6, 3), (4, 6), (10, 7)]
    assert (parsed.side_a_sets_won, parsed.side_b_sets_won) == (2, 1)
    assert (parsed.side_a_games, parsed.side_b_games) == (20, 16)
    assert parsed.winner_side == "A"


@pytest.mark.parametrize(
    "raw,winner",
    [("8-4", "A"), ("6-3 4-6 10-7", "A"), ("6-3, 4-6, 3-6", "B"), ({"display": "2-8"}, "B")],
)
def test_string_formats(raw, winner):
    assert parse_score(raw).winner_side == winner


def test_level_sets_fall_back_to_games():
    parsed = parse_score("6-4 3-6")
    assert (parsed.side_a_sets_won, parsed.side_b_sets_won) == (1, 1)
    assert parsed.winner_side == "B"


def test_level_sets_and_games_is_a_draw():
    assert parse_score("6-4 4-6").winner_side is None
    assert parse_score("3-3").winner_side is None


@pytest.mark.parametrize("raw", [None, "", "   ", "six-four", "6-4-2", {"sets": []}, {"sets": [{"a": -1, "b": 2}]}])
def test_unparsable(raw):
    assert parse_score(raw) is None


def test_games_for_side():
    parsed = parse_score("6-2 6-3")
    assert parsed.games_for("A") == 12
    assert parsed.games_for("B") == 5

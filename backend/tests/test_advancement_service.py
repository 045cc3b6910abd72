"""
AdvancementService over the in-memory adapter: result validation, terminal
COMPLETED state, per-bracket locks.
"""
import pytest

from tournament_engine.errors import InconsistentBracketStateError, InvalidConfigurationError
from tournament_engine.services.advancement_service import (
    AdvancementService,
    BracketLockRegistry,
    MatchNotFoundError,
)
from tournament_engine.services.bracket_graph import loser_of, make_match, winner_of
from tournament_engine.services.persistence import InMemoryAdapter


@pytest.fixture
def bracket():
    sf1 = make_match("SF1", "semifinal", 1, 1, 1, slots={1: 1, 2: 2}, category_id=1, tournament_id=1)
    sf2 = make_match("SF2", "semifinal", 1, 2, 1, slots={1: 3, 2: 4}, category_id=1, tournament_id=1)
    final = make_match(
        "F", "final", 2, 3, 1, refs=[winner_of(1, "SF1"), winner_of(2, "SF2")], category_id=1, tournament_id=1
    )
    third = make_match(
        "3P", "3rd_place", 2, 4, 1, refs=[loser_of(1, "SF1"), loser_of(2, "SF2")], category_id=1, tournament_id=1
    )
    group = make_match("GA-1", "group_A", 1, 5, 1, slots={1: 5, 2: 6}, category_id=2, tournament_id=1)
    adapter = InMemoryAdapter(matches=[sf1, sf2, final, third, group])
    return adapter, AdvancementService(adapter, BracketLockRegistry())


def test_unknown_match(bracket):
    _, service = bracket
    with pytest.raises(MatchNotFoundError):
        service.complete_match(999, {"sets": [{"a": 6, "b": 0}]})


def test_invalid_winner_side(bracket):
    _, service = bracket
    with pytest.raises(InvalidConfigurationError):
        service.complete_match(1, winner_side="C")


def test_unparsable_score(bracket):
    adapter, service = bracket
    with pytest.raises(InvalidConfigurationError):
        service.complete_match(1, {"display": "six-love"})
    assert not adapter.load_match(1).is_completed


def test_score_or_winner_required(bracket):
    _, service = bracket
    with pytest.raises(InvalidConfigurationError):
        service.complete_match(1)


def test_unresolved_match_cannot_complete(bracket):
    _, service = bracket
    with pytest.raises(InconsistentBracketStateError):
        service.complete_match(3, winner_side="A")


def test_winner_side_only(bracket):
    adapter, service = bracket
    match, updates = service.complete_match(1, winner_side="B")
    assert match.is_completed
    assert match.winner_side == "B"
    assert match.completed_at is not None
    assert updates == []


def test_both_semis_populate_final_and_third(bracket):
    adapter, service = bracket
    service.complete_match(1, "6-3 6-4")
    _, updates = service.complete_match(2, "4-6 6-3 7-10")

    assert [u.match_code for u in updates] == ["F", "3P"]
    assert updates[0].to_dict() == {"match_id": 3, "match_code": "F", "round": "final", "slots": {"1": 1, "2": 4}}
    third = adapter.load_match(4)
    assert (third.slot1, third.slot2) == (2, 3)


def test_group_draw_is_allowed(bracket):
    _, service = bracket
    match, _ = service.complete_match(5, {"sets": [{"a": 6, "b": 6}]})
    assert match.is_completed
    assert match.winner_side is None


def test_resolve_all_dependencies_reports_counts(bracket):
    adapter, service = bracket
    for match_id in (1, 2):
        adapter.load_match(match_id).status = "COMPLETED"
        adapter.load_match(match_id).winner_side = "A"

    result = service.resolve_all_dependencies(1)
    assert result == {
        "categories_processed": 2,
        "matches_populated": 2,
        "unresolved_before": 2,
        "unresolved_after": 0,
    }
    assert service.resolve_all_dependencies(1)["matches_populated"] == 0


def test_lock_per_category():
    locks = BracketLockRegistry()
    assert locks.lock_for(1) is locks.lock_for(1)
    assert locks.lock_for(1) is not locks.lock_for(2)

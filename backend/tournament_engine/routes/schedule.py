"""
Schedule: allocate every match of a tournament onto courts and time slots,
check capacity, reschedule what is left, list matches.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session, select

from tournament_engine.database import get_session
from tournament_engine.errors import EngineError
from tournament_engine.models.match import Match
from tournament_engine.models.tournament import Tournament
from tournament_engine.models.tournament_day import TournamentDay
from tournament_engine.routes.errors import to_http_exception
from tournament_engine.services.allocator import allocate_schedule, calendar_from_tournament, reschedule_remaining
from tournament_engine.services.bracket_graph import placeholder_text
from tournament_engine.services.capacity_resolver import check_schedule_capacity

router = APIRouter()


class MatchResponse(BaseModel):
    id: int
    tournament_id: int
    category_id: int
    match_code: str
    round: str
    round_number: int
    match_number: int
    slots_per_side: int
    slot1: Optional[int] = None
    slot2: Optional[int] = None
    slot3: Optional[int] = None
    slot4: Optional[int] = None
    placeholders: Dict[str, str] = {}
    scheduled_time: Optional[datetime] = None
    court: Optional[int] = None
    status: str
    score_json: Optional[Dict[str, Any]] = None
    winner_side: Optional[str] = None
    completed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


def match_to_response(m: Match) -> MatchResponse:
    return MatchResponse(
        id=m.id,
        tournament_id=m.tournament_id,
        category_id=m.category_id,
        match_code=m.match_code,
        round=m.round,
        round_number=m.round_number,
        match_number=m.match_number,
        slots_per_side=m.slots_per_side,
        slot1=m.slot1,
        slot2=m.slot2,
        slot3=m.slot3,
        slot4=m.slot4,
        placeholders={f"slot{slot}": text for slot, text in placeholder_text(m).items() if m.get_slot(slot) is None},
        scheduled_time=m.scheduled_time,
        court=m.court,
        status=m.status,
        score_json=m.score_json,
        winner_side=m.winner_side,
        completed_at=m.completed_at,
    )


def _get_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


def _calendar(session: Session, tournament: Tournament):
    days = session.exec(select(TournamentDay).where(TournamentDay.tournament_id == tournament.id)).all()
    return calendar_from_tournament(tournament, days)


def _tournament_matches(session: Session, tournament_id: int) -> List[Match]:
    return list(
        session.exec(
            select(Match)
            .where(Match.tournament_id == tournament_id)
            .order_by(Match.category_id, Match.match_number)
        ).all()
    )


@router.post("/tournaments/{tournament_id}/schedule/allocate", response_model=List[MatchResponse])
def allocate(tournament_id: int, session: Session = Depends(get_session)):
    """Assign a time and court to every match of the tournament (all categories share the courts)"""
    tournament = _get_tournament(session, tournament_id)
    matches = _tournament_matches(session, tournament_id)
    try:
        ordered = allocate_schedule(matches, tournament.court_count, _calendar(session, tournament))
    except EngineError as e:
        session.rollback()
        raise to_http_exception(e)

    for m in ordered:
        session.add(m)
    session.commit()
    return [match_to_response(m) for m in ordered]


@router.get("/tournaments/{tournament_id}/schedule/capacity", response_model=Dict[str, Any])
def get_capacity(tournament_id: int, session: Session = Depends(get_session)):
    """Whether the generated matches fit between start_date and end_date"""
    tournament = _get_tournament(session, tournament_id)
    match_count = len(_tournament_matches(session, tournament_id))
    try:
        check = check_schedule_capacity(
            match_count,
            tournament.court_count,
            _calendar(session, tournament),
            tournament.end_date,
            tournament.transition_minutes,
        )
    except EngineError as e:
        raise to_http_exception(e)
    return {"match_count": match_count, **check.to_dict()}


@router.post("/tournaments/{tournament_id}/schedule/reschedule", response_model=List[MatchResponse])
def reschedule(tournament_id: int, session: Session = Depends(get_session)):
    """Re-allocate every unplayed match, placeholders included, after the latest completed match"""
    tournament = _get_tournament(session, tournament_id)
    matches = _tournament_matches(session, tournament_id)
    try:
        ordered = reschedule_remaining(matches, tournament.court_count, _calendar(session, tournament))
    except EngineError as e:
        session.rollback()
        raise to_http_exception(e)

    for m in ordered:
        session.add(m)
    session.commit()
    return [match_to_response(m) for m in ordered]


@router.get("/tournaments/{tournament_id}/matches", response_model=List[MatchResponse])
def list_matches(tournament_id: int, category_id: Optional[int] = None, session: Session = Depends(get_session)):
    """List matches; scheduled ones first by (time, court), then unscheduled by category and number"""
    _get_tournament(session, tournament_id)
    matches = _tournament_matches(session, tournament_id)
    if category_id is not None:
        matches = [m for m in matches if m.category_id == category_id]
    matches.sort(
        key=lambda m: (
            m.scheduled_time is None,
            m.scheduled_time or datetime.min,
            m.court or 0,
            m.category_id,
            m.match_number,
        )
    )
    return [match_to_response(m) for m in matches]

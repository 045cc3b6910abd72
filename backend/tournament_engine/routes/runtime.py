"""
Runtime: record match results and advance the bracket.

Completing a match populates every placeholder whose feeders are now all
completed. COMPLETED is terminal; re-posting the same result is a no-op.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session

from tournament_engine.database import get_session
from tournament_engine.errors import EngineError
from tournament_engine.models.match import SIDE_A, SIDE_B, Match
from tournament_engine.models.tournament import Tournament
from tournament_engine.routes.errors import to_http_exception
from tournament_engine.routes.schedule import MatchResponse, match_to_response
from tournament_engine.services.advancement_service import AdvancementService
from tournament_engine.services.persistence import SqlModelAdapter

router = APIRouter()


class MatchResultUpdate(BaseModel):
    score: Optional[Dict[str, Any]] = None
    winner_side: Optional[str] = None

    @field_validator("winner_side")
    @classmethod
    def validate_winner_side(cls, v):
        if v is not None and v not in (SIDE_A, SIDE_B):
            raise ValueError(f"winner_side must be '{SIDE_A}' or '{SIDE_B}'")
        return v

    @model_validator(mode="after")
    def validate_result(self):
        if self.score is None and self.winner_side is None:
            raise ValueError("score or winner_side is required")
        return self


class MatchResultResponse(BaseModel):
    match: MatchResponse
    advanced_count: int = 0
    updates: List[Dict[str, Any]] = []


def _get_match(session: Session, tournament_id: int, match_id: int) -> Match:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")

    match = session.get(Match, match_id)
    if not match or match.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Match not found")
    return match


@router.patch(
    "/tournaments/{tournament_id}/runtime/matches/{match_id}",
    response_model=MatchResultResponse,
)
def update_match_result(
    tournament_id: int,
    match_id: int,
    payload: MatchResultUpdate,
    session: Session = Depends(get_session),
) -> MatchResultResponse:
    """Record a score (and/or winner side), complete the match and advance the bracket."""
    _get_match(session, tournament_id, match_id)
    service = AdvancementService(SqlModelAdapter(session))
    try:
        match, updates = service.complete_match(match_id, payload.score, payload.winner_side)
    except EngineError as e:
        session.rollback()
        raise to_http_exception(e)

    session.refresh(match)
    return MatchResultResponse(
        match=match_to_response(match),
        advanced_count=len(updates),
        updates=[u.to_dict() for u in updates],
    )


@router.post(
    "/tournaments/{tournament_id}/runtime/matches/{match_id}/advance",
    response_model=Dict[str, Any],
)
def advance_match(
    tournament_id: int,
    match_id: int,
    session: Session = Depends(get_session),
) -> Dict[str, Any]:
    """Manually run advancement for a completed match (repair/testing)."""
    match = _get_match(session, tournament_id, match_id)
    if not match.is_completed:
        raise HTTPException(status_code=422, detail="Match must be COMPLETED to run advancement")

    try:
        updates = AdvancementService(SqlModelAdapter(session)).on_match_completed(match_id)
    except EngineError as e:
        session.rollback()
        raise to_http_exception(e)
    return {"advanced_count": len(updates), "updates": [u.to_dict() for u in updates]}


@router.post(
    "/tournaments/{tournament_id}/runtime/resolve-dependencies",
    response_model=Dict[str, Any],
)
def resolve_dependencies(tournament_id: int, session: Session = Depends(get_session)) -> Dict[str, Any]:
    """Evaluate every placeholder of the tournament. Idempotent."""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    try:
        return AdvancementService(SqlModelAdapter(session)).resolve_all_dependencies(tournament_id)
    except EngineError as e:
        session.rollback()
        raise to_http_exception(e)

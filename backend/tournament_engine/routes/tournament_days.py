from datetime import date, time
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, model_validator
from sqlmodel import Session, select

from tournament_engine.database import get_session
from tournament_engine.models.tournament import Tournament
from tournament_engine.models.tournament_day import TournamentDay

router = APIRouter()


class DayUpdate(BaseModel):
    is_active: bool
    start_time: Optional[time] = None
    end_time: Optional[time] = None

    @model_validator(mode="after")
    def validate_day(self):
        # end <= start is allowed: the window runs past midnight
        if self.is_active and self.start_time and self.end_time and self.start_time == self.end_time:
            raise ValueError("start_time and end_time must differ")
        return self


class DayResponse(BaseModel):
    id: int
    tournament_id: int
    date: date
    is_active: bool
    start_time: Optional[time]
    end_time: Optional[time]

    class Config:
        from_attributes = True


@router.get("/tournaments/{tournament_id}/days", response_model=List[DayResponse])
def get_tournament_days(tournament_id: int, session: Session = Depends(get_session)):
    """Get all days for a tournament"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")

    return session.exec(
        select(TournamentDay).where(TournamentDay.tournament_id == tournament_id).order_by(TournamentDay.date)
    ).all()


@router.put("/tournaments/{tournament_id}/days/{day_date}", response_model=DayResponse)
def update_tournament_day(
    tournament_id: int, day_date: date, update_data: DayUpdate, session: Session = Depends(get_session)
):
    """Override the playing window of one date (or close it with is_active=false)"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")

    day = session.exec(
        select(TournamentDay).where(TournamentDay.tournament_id == tournament_id, TournamentDay.date == day_date)
    ).first()
    if not day:
        raise HTTPException(status_code=404, detail=f"Day {day_date} not found for tournament {tournament_id}")

    day.is_active = update_data.is_active
    day.start_time = update_data.start_time
    day.end_time = update_data.end_time
    session.add(day)
    session.commit()
    session.refresh(day)
    return day

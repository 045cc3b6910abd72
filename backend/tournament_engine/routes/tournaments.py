from datetime import date, datetime, time, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session, select

from tournament_engine.config import DEFAULT_MATCH_DURATION_MINUTES, DEFAULT_TRANSITION_MINUTES
from tournament_engine.database import get_session
from tournament_engine.models.tournament import Tournament
from tournament_engine.models.tournament_day import TournamentDay

router = APIRouter()


class TournamentCreate(BaseModel):
    name: str
    start_date: date
    end_date: date
    notes: Optional[str] = None
    court_count: int = 1
    match_duration_minutes: int = DEFAULT_MATCH_DURATION_MINUTES
    transition_minutes: int = DEFAULT_TRANSITION_MINUTES
    day_start_time: time = time(9, 0)
    day_end_time: time = time(21, 0)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("court_count", "match_duration_minutes")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("transition_minutes")
    @classmethod
    def validate_transition(cls, v):
        if v < 0:
            raise ValueError("transition_minutes must be >= 0")
        return v

    @model_validator(mode="after")
    def validate_date_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must be >= start_date")
        return self


class TournamentUpdate(BaseModel):
    name: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    notes: Optional[str] = None
    court_count: Optional[int] = None
    match_duration_minutes: Optional[int] = None
    transition_minutes: Optional[int] = None
    day_start_time: Optional[time] = None
    day_end_time: Optional[time] = None

    @model_validator(mode="after")
    def validate_fields(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must be >= start_date")
        if self.court_count is not None and self.court_count < 1:
            raise ValueError("court_count must be >= 1")
        if self.match_duration_minutes is not None and self.match_duration_minutes < 1:
            raise ValueError("match_duration_minutes must be >= 1")
        return self


class TournamentResponse(BaseModel):
    id: int
    name: str
    start_date: date
    end_date: date
    notes: Optional[str]
    court_count: int
    match_duration_minutes: int
    transition_minutes: int
    day_start_time: time
    day_end_time: time
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


def generate_tournament_days(session: Session, tournament_id: int, start_date: date, end_date: date):
    """Generate tournament days for the date range (active, tournament default window)"""
    current_date = start_date
    while current_date <= end_date:
        existing = session.exec(
            select(TournamentDay).where(
                TournamentDay.tournament_id == tournament_id, TournamentDay.date == current_date
            )
        ).first()

        if not existing:
            session.add(TournamentDay(tournament_id=tournament_id, date=current_date, is_active=True))
        current_date += timedelta(days=1)
    session.commit()


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament).order_by(Tournament.id)).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a new tournament and auto-generate days"""
    tournament = Tournament(**tournament_data.model_dump())
    session.add(tournament)
    session.commit()
    session.refresh(tournament)

    generate_tournament_days(session, tournament.id, tournament.start_date, tournament.end_date)
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


@router.put("/tournaments/{tournament_id}", response_model=TournamentResponse)
def update_tournament(tournament_id: int, tournament_data: TournamentUpdate, session: Session = Depends(get_session)):
    """Update a tournament and manage days based on date range changes"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")

    old_start = tournament.start_date
    old_end = tournament.end_date

    update_data = tournament_data.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(tournament, field, value)
    if tournament.end_date < tournament.start_date:
        raise HTTPException(status_code=422, detail="end_date must be >= start_date")

    tournament.updated_at = datetime.utcnow()
    session.add(tournament)
    session.commit()

    new_start = tournament.start_date
    new_end = tournament.end_date

    if old_start != new_start or old_end != new_end:
        # Remove days outside the new range
        days_to_remove = session.exec(
            select(TournamentDay).where(
                TournamentDay.tournament_id == tournament_id,
                (TournamentDay.date < new_start) | (TournamentDay.date > new_end),
            )
        ).all()
        for day in days_to_remove:
            session.delete(day)

        generate_tournament_days(session, tournament_id, new_start, new_end)

    session.refresh(tournament)
    return tournament

from datetime import date, datetime, time
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

from tournament_engine.config import DEFAULT_MATCH_DURATION_MINUTES, DEFAULT_TRANSITION_MINUTES

if TYPE_CHECKING:
    from tournament_engine.models.category import Category
    from tournament_engine.models.match import Match
    from tournament_engine.models.tournament_day import TournamentDay


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    start_date: date
    end_date: date
    notes: Optional[str] = None

    # Shared court pool and default daily window (per-date overrides live in TournamentDay)
    court_count: int = Field(default=1)
    match_duration_minutes: int = Field(default=DEFAULT_MATCH_DURATION_MINUTES)
    transition_minutes: int = Field(default=DEFAULT_TRANSITION_MINUTES)
    day_start_time: time = Field(default=time(9, 0))
    day_end_time: time = Field(default=time(21, 0))

    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    days: List["TournamentDay"] = Relationship(back_populates="tournament")
    categories: List["Category"] = Relationship(back_populates="tournament")
    matches: List["Match"] = Relationship(back_populates="tournament")

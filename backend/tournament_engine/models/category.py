from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import String
from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

from tournament_engine.config import DEFAULT_TARGET_MATCHES

if TYPE_CHECKING:
    from tournament_engine.models.match import Match
    from tournament_engine.models.participant import Participant
    from tournament_engine.models.tournament import Tournament


class CategoryFormat(str, Enum):
    round_robin = "round_robin"
    american = "american"
    mixed_american = "mixed_american"  # Americano with one man and one woman per side
    knockout = "knockout"
    groups_knockout = "groups_knockout"
    crossed_playoffs = "crossed_playoffs"


class ParticipantArity(str, Enum):
    # A team (or fixed doubles pair) occupies one slot per side; individuals pair up two per side.
    team = "team"
    doubles = "doubles"
    individual = "individual"


class Category(SQLModel, table=True):
    """A bracket: one partition of the tournament's participants and matches."""

    __table_args__ = (SAUniqueConstraint("tournament_id", "name", name="uq_tournament_category"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id")
    name: str
    format: CategoryFormat = Field(sa_column=Column(String))
    participant_arity: ParticipantArity = Field(sa_column=Column(String))
    number_of_groups: int = Field(default=1)
    knockout_depth: Optional[str] = Field(default=None)  # final | semifinals | quarterfinals | round_of_16
    target_matches_per_participant: int = Field(default=DEFAULT_TARGET_MATCHES)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="categories")
    participants: List["Participant"] = Relationship(back_populates="category")
    matches: List["Match"] = Relationship(back_populates="category")

    @property
    def slots_per_side(self) -> int:
        return 2 if self.participant_arity == ParticipantArity.individual else 1

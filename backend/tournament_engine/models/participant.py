from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tournament_engine.models.category import Category

GENDER_MALE = "M"
GENDER_FEMALE = "F"
GENDERS = (GENDER_MALE, GENDER_FEMALE)


class Participant(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("category_id", "display_name", name="uq_category_participant_name"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    category_id: int = Field(foreign_key="category.id", index=True)
    display_name: str  # Team name or player name
    seed: Optional[int] = Field(default=None)  # 1-based; ordering only
    group_label: Optional[str] = Field(default=None, index=True)  # "A", "B", ... (written back by composer)
    gender: Optional[str] = Field(default=None)  # "M" | "F"; required by mixed_american
    created_at: datetime = Field(default_factory=datetime.utcnow)  # Registration order (final tie-break)

    # Relationships
    category: "Category" = Relationship(back_populates="participants")

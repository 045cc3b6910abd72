from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tournament_engine.models.category import Category
    from tournament_engine.models.tournament import Tournament

STATUS_SCHEDULED = "SCHEDULED"
STATUS_COMPLETED = "COMPLETED"

SIDE_A = "A"
SIDE_B = "B"

GROUP_ROUND_PREFIX = "group_"


class Match(SQLModel, table=True):
    __table_args__ = (SAUniqueConstraint("category_id", "match_code", name="uq_match_category_code"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: Optional[int] = Field(default=None, foreign_key="tournament.id", index=True)
    category_id: Optional[int] = Field(default=None, foreign_key="category.id", index=True)
    match_code: str  # Stable within a category: "GA-3", "QF2", "SF1", "F", "3P", "X2-SF1"
    round: str  # "group_A" | "round_of_16" | "quarterfinal" | "semifinal" | "final" | "3rd_place" | "crossed_r1_j1" ...
    round_number: int = Field(default=1)  # 1 = first round played within the bracket
    match_number: int  # Ordering hint only

    # Slots: side A = slot1(+slot2), side B = slot3+slot4 for pairs-of-individuals;
    # single-entity format uses slot1 (A) and slot2 (B). None = unresolved.
    slots_per_side: int = Field(default=1)
    slot1: Optional[int] = Field(default=None, foreign_key="participant.id")
    slot2: Optional[int] = Field(default=None, foreign_key="participant.id")
    slot3: Optional[int] = Field(default=None, foreign_key="participant.id")
    slot4: Optional[int] = Field(default=None, foreign_key="participant.id")

    # Typed feeder declarations (see services.bracket_graph.FeederRef); empty for concrete matches
    feeders_json: Optional[List[Dict[str, Any]]] = Field(default=None, sa_column=Column(JSON, nullable=True))

    # Allocation
    scheduled_time: Optional[datetime] = Field(default=None)
    court: Optional[int] = Field(default=None)

    # Runtime
    status: str = Field(default=STATUS_SCHEDULED)  # SCHEDULED | COMPLETED
    score_json: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    winner_side: Optional[str] = Field(default=None)  # "A" | "B"; explicit for walkovers
    completed_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: Optional["Tournament"] = Relationship(back_populates="matches")
    category: Optional["Category"] = Relationship(back_populates="matches")

    # ------------------------------------------------------------------
    # Slot helpers
    # ------------------------------------------------------------------

    def side_slots(self, side: str) -> List[int]:
        """Slot numbers making up a side."""
        if self.slots_per_side == 2:
            return [1, 2] if side == SIDE_A else [3, 4]
        return [1] if side == SIDE_A else [2]

    def get_slot(self, slot: int) -> Optional[int]:
        return getattr(self, f"slot{slot}")

    def set_slot(self, slot: int, participant_id: Optional[int]) -> None:
        setattr(self, f"slot{slot}", participant_id)

    def side_ids(self, side: str) -> List[Optional[int]]:
        return [self.get_slot(s) for s in self.side_slots(side)]

    def participant_ids(self) -> List[int]:
        """Concrete participant ids on both sides (unresolved slots skipped)."""
        ids = []
        for side in (SIDE_A, SIDE_B):
            ids.extend(pid for pid in self.side_ids(side) if pid is not None)
        return ids

    @property
    def is_resolved(self) -> bool:
        return all(pid is not None for side in (SIDE_A, SIDE_B) for pid in self.side_ids(side))

    @property
    def is_completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    @property
    def is_group_match(self) -> bool:
        return (self.round or "").startswith(GROUP_ROUND_PREFIX)

    @property
    def group_label(self) -> Optional[str]:
        if not self.is_group_match:
            return None
        return self.round[len(GROUP_ROUND_PREFIX):]

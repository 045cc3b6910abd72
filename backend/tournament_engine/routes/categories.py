"""
Categories: brackets inside a tournament, their participants, match generation,
qualification preview and group standings.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, field_validator, model_validator
from sqlmodel import Session, select

from tournament_engine.config import DEFAULT_TARGET_MATCHES
from tournament_engine.database import get_session
from tournament_engine.errors import EngineError, InvalidConfigurationError
from tournament_engine.models.category import Category, CategoryFormat, ParticipantArity
from tournament_engine.models.match import Match
from tournament_engine.models.participant import GENDERS, Participant
from tournament_engine.models.tournament import Tournament
from tournament_engine.routes.errors import to_http_exception
from tournament_engine.services.advancement_service import AdvancementService
from tournament_engine.services.match_generation import generate_category_matches
from tournament_engine.services.persistence import SqlModelAdapter
from tournament_engine.services.qualification import compute_qualification, normalize_depth
from tournament_engine.services.standings import compute_group_standings

logger = logging.getLogger(__name__)

router = APIRouter()

KNOCKOUT_FORMATS = (CategoryFormat.knockout, CategoryFormat.groups_knockout)


class CategoryCreate(BaseModel):
    name: str
    format: CategoryFormat
    participant_arity: ParticipantArity
    number_of_groups: int = 1
    knockout_depth: Optional[str] = None
    target_matches_per_participant: int = DEFAULT_TARGET_MATCHES

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("knockout_depth")
    @classmethod
    def validate_depth(cls, v):
        if v is None:
            return v
        try:
            return normalize_depth(v)
        except InvalidConfigurationError as e:
            raise ValueError(str(e))

    @model_validator(mode="after")
    def validate_category(self):
        if self.number_of_groups < 1:
            raise ValueError("number_of_groups must be >= 1")
        if self.target_matches_per_participant < 1:
            raise ValueError("target_matches_per_participant must be >= 1")
        if self.format in KNOCKOUT_FORMATS and not self.knockout_depth:
            raise ValueError(f"knockout_depth is required for {self.format.value}")
        return self


class CategoryResponse(BaseModel):
    id: int
    tournament_id: int
    name: str
    format: CategoryFormat
    participant_arity: ParticipantArity
    number_of_groups: int
    knockout_depth: Optional[str]
    target_matches_per_participant: int
    created_at: datetime

    class Config:
        from_attributes = True


class ParticipantCreate(BaseModel):
    display_name: str
    seed: Optional[int] = None
    group_label: Optional[str] = None
    gender: Optional[str] = None

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, v):
        if not v or not v.strip():
            raise ValueError("display_name is required")
        return v.strip()

    @field_validator("seed")
    @classmethod
    def validate_seed(cls, v):
        if v is not None and v < 1:
            raise ValueError("seed must be >= 1")
        return v

    @field_validator("group_label")
    @classmethod
    def normalize_group_label(cls, v):
        return v.strip().upper() if v else None

    @field_validator("gender")
    @classmethod
    def validate_gender(cls, v):
        if v is None:
            return v
        gender = v.strip().upper()
        if gender not in GENDERS:
            raise ValueError(f"gender must be one of {list(GENDERS)}")
        return gender


class ParticipantResponse(BaseModel):
    id: int
    category_id: int
    display_name: str
    seed: Optional[int]
    group_label: Optional[str]
    gender: Optional[str]
    created_at: datetime

    class Config:
        from_attributes = True


class GenerateResponse(BaseModel):
    category_id: int
    matches_generated: int
    matches_populated: int


def _get_category(session: Session, category_id: int) -> Category:
    category = session.get(Category, category_id)
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


def _participants(session: Session, category_id: int) -> List[Participant]:
    return list(
        session.exec(
            select(Participant).where(Participant.category_id == category_id).order_by(Participant.id)
        ).all()
    )


@router.post("/tournaments/{tournament_id}/categories", response_model=CategoryResponse, status_code=201)
def create_category(tournament_id: int, category_data: CategoryCreate, session: Session = Depends(get_session)):
    """Create a category (bracket) inside a tournament"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")

    existing = session.exec(
        select(Category).where(Category.tournament_id == tournament_id, Category.name == category_data.name)
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail=f"Category '{category_data.name}' already exists")

    category = Category(tournament_id=tournament_id, **category_data.model_dump())
    session.add(category)
    session.commit()
    session.refresh(category)
    return category


@router.get("/tournaments/{tournament_id}/categories", response_model=List[CategoryResponse])
def list_categories(tournament_id: int, session: Session = Depends(get_session)):
    """List categories of a tournament"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return session.exec(select(Category).where(Category.tournament_id == tournament_id).order_by(Category.id)).all()


@router.post("/categories/{category_id}/participants", response_model=ParticipantResponse, status_code=201)
def add_participant(category_id: int, participant_data: ParticipantCreate, session: Session = Depends(get_session)):
    """Register a team, fixed pair or player in a category"""
    _get_category(session, category_id)

    existing = session.exec(
        select(Participant).where(
            Participant.category_id == category_id,
            Participant.display_name == participant_data.display_name,
        )
    ).first()
    if existing:
        raise HTTPException(status_code=409, detail=f"Participant '{participant_data.display_name}' already exists")

    participant = Participant(category_id=category_id, **participant_data.model_dump())
    session.add(participant)
    session.commit()
    session.refresh(participant)
    return participant


@router.get("/categories/{category_id}/participants", response_model=List[ParticipantResponse])
def list_participants(category_id: int, session: Session = Depends(get_session)):
    """List participants of a category in registration order"""
    _get_category(session, category_id)
    return _participants(session, category_id)


@router.post("/categories/{category_id}/generate", response_model=GenerateResponse)
def generate_matches(category_id: int, session: Session = Depends(get_session)):
    """
    (Re)generate every match of the category.

    Existing matches are replaced unless one of them is already completed.
    Walkovers are advanced immediately.
    """
    category = _get_category(session, category_id)

    existing = session.exec(select(Match).where(Match.category_id == category_id)).all()
    if any(m.is_completed and m.winner_side is not None and m.score_json is not None for m in existing):
        raise HTTPException(status_code=409, detail="Category has completed matches; generation is locked")

    participants = _participants(session, category_id)
    try:
        matches = generate_category_matches(category, participants)
    except EngineError as e:
        session.rollback()
        raise to_http_exception(e)

    for m in existing:
        session.delete(m)
    session.flush()
    for p in participants:
        session.add(p)
    for m in matches:
        session.add(m)
    session.commit()

    try:
        result = AdvancementService(SqlModelAdapter(session)).resolve_all_dependencies(category.tournament_id)
    except EngineError as e:
        raise to_http_exception(e)

    logger.info("Category %s: %d matches generated", category_id, len(matches))
    return GenerateResponse(
        category_id=category_id,
        matches_generated=len(matches),
        matches_populated=result["matches_populated"],
    )


@router.get("/categories/{category_id}/qualification", response_model=Dict[str, Any])
def get_qualification(category_id: int, session: Session = Depends(get_session)):
    """How many participants advance per group into the knockout"""
    category = _get_category(session, category_id)
    if category.format != CategoryFormat.groups_knockout:
        raise HTTPException(status_code=422, detail="Qualification applies to groups_knockout categories only")
    try:
        config = compute_qualification(category.number_of_groups, category.knockout_depth, category.participant_arity)
    except EngineError as e:
        raise to_http_exception(e)
    return config.to_dict()


@router.get("/categories/{category_id}/standings", response_model=Dict[str, List[Dict[str, Any]]])
def get_standings(category_id: int, session: Session = Depends(get_session)):
    """Group standings from the completed group matches so far"""
    _get_category(session, category_id)
    matches = session.exec(select(Match).where(Match.category_id == category_id)).all()
    try:
        standings = compute_group_standings(_participants(session, category_id), matches)
    except EngineError as e:
        raise to_http_exception(e)
    return {label: [row.to_dict() for row in rows] for label, rows in standings.items()}

"""
Persistence adapter between the engine and storage.

The progression engine only sees this protocol, so it runs the same against the
SQLModel session (live service) and an in-memory store (tests, batch imports).
"""
from typing import Dict, Iterable, List, Optional, Protocol

from sqlmodel import Session, select

from tournament_engine.models.category import Category
from tournament_engine.models.match import Match
from tournament_engine.models.participant import Participant
from tournament_engine.services.standings import StandingRow, compute_group_standings


class PersistenceAdapter(Protocol):
    def load_participants(self, category_id: int) -> List[Participant]:
        ...

    def load_matches(self, tournament_id: int) -> List[Match]:
        ...

    def load_category_matches(self, category_id: int) -> List[Match]:
        ...

    def load_match(self, match_id: int) -> Optional[Match]:
        ...

    def load_category(self, category_id: int) -> Optional[Category]:
        ...

    def save_matches(self, matches: Iterable[Match]) -> None:
        ...

    def load_group_standings(self, category_id: int) -> Dict[str, List[StandingRow]]:
        ...


class SqlModelAdapter:
    """Adapter over a SQLModel session; save_matches commits."""

    def __init__(self, session: Session):
        self.session = session

    def load_participants(self, category_id: int) -> List[Participant]:
        return list(
            self.session.exec(
                select(Participant).where(Participant.category_id == category_id).order_by(Participant.id)
            ).all()
        )

    def load_matches(self, tournament_id: int) -> List[Match]:
        return list(
            self.session.exec(
                select(Match).where(Match.tournament_id == tournament_id).order_by(Match.match_number, Match.id)
            ).all()
        )

    def load_category_matches(self, category_id: int) -> List[Match]:
        return list(
            self.session.exec(
                select(Match).where(Match.category_id == category_id).order_by(Match.match_number, Match.id)
            ).all()
        )

    def load_match(self, match_id: int) -> Optional[Match]:
        return self.session.get(Match, match_id)

    def load_category(self, category_id: int) -> Optional[Category]:
        return self.session.get(Category, category_id)

    def save_matches(self, matches: Iterable[Match]) -> None:
        for match in matches:
            self.session.add(match)
        self.session.commit()

    def load_group_standings(self, category_id: int) -> Dict[str, List[StandingRow]]:
        return compute_group_standings(
            self.load_participants(category_id), self.load_category_matches(category_id)
        )


class InMemoryAdapter:
    """Dict-backed adapter; assigns ids to unsaved objects on insert."""

    def __init__(
        self,
        participants: Iterable[Participant] = (),
        matches: Iterable[Match] = (),
        categories: Iterable[Category] = (),
    ):
        self.participants: Dict[int, Participant] = {}
        self.matches: Dict[int, Match] = {}
        self.categories: Dict[int, Category] = {}
        for category in categories:
            self.categories[self._assign_id(category, self.categories)] = category
        for participant in participants:
            self.participants[self._assign_id(participant, self.participants)] = participant
        for match in matches:
            self.matches[self._assign_id(match, self.matches)] = match
        self.save_count = 0

    @staticmethod
    def _assign_id(obj, store: Dict[int, object]) -> int:
        if obj.id is None:
            obj.id = max(store, default=0) + 1
        return obj.id

    def load_participants(self, category_id: int) -> List[Participant]:
        return sorted(
            (p for p in self.participants.values() if p.category_id == category_id), key=lambda p: p.id
        )

    def load_matches(self, tournament_id: int) -> List[Match]:
        return sorted(
            (m for m in self.matches.values() if m.tournament_id == tournament_id),
            key=lambda m: (m.match_number, m.id),
        )

    def load_category_matches(self, category_id: int) -> List[Match]:
        return sorted(
            (m for m in self.matches.values() if m.category_id == category_id),
            key=lambda m: (m.match_number, m.id),
        )

    def load_match(self, match_id: int) -> Optional[Match]:
        return self.matches.get(match_id)

    def load_category(self, category_id: int) -> Optional[Category]:
        return self.categories.get(category_id)

    def save_matches(self, matches: Iterable[Match]) -> None:
        for match in matches:
            self.matches[self._assign_id(match, self.matches)] = match
        self.save_count += 1

    def load_group_standings(self, category_id: int) -> Dict[str, List[StandingRow]]:
        return compute_group_standings(
            self.load_participants(category_id), self.load_category_matches(category_id)
        )

from tournament_engine.models.category import Category, CategoryFormat, ParticipantArity
from tournament_engine.models.match import Match
from tournament_engine.models.participant import Participant
from tournament_engine.models.tournament import Tournament
from tournament_engine.models.tournament_day import TournamentDay

__all__ = [
    "Tournament",
    "TournamentDay",
    "Category",
    "CategoryFormat",
    "ParticipantArity",
    "Participant",
    "Match",
]

# Force SQLModel table registration at test discovery time, against the in-memory database
import os

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from tournament_engine.models.category import Category  # noqa: E402,F401
from tournament_engine.models.match import Match  # noqa: E402,F401
from tournament_engine.models.participant import Participant  # noqa: E402,F401
from tournament_engine.models.tournament import Tournament  # noqa: E402,F401
from tournament_engine.models.tournament_day import TournamentDay  # noqa: E402,F401

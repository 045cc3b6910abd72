"""
Runtime configuration, read once from the environment (.env supported).

Engine defaults live here so the generators, the allocator and the routes
agree on them. Database settings are consumed by tournament_engine.database.
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return int(raw)


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./tournament.db")
SQL_ECHO = _env_bool("SQL_ECHO")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]

# Scheduling defaults
DEFAULT_MATCH_DURATION_MINUTES = _env_int("DEFAULT_MATCH_DURATION_MINUTES", 90)
DEFAULT_TRANSITION_MINUTES = _env_int("DEFAULT_TRANSITION_MINUTES", 5)

# American (partner rotation) defaults
DEFAULT_TARGET_MATCHES = _env_int("DEFAULT_TARGET_MATCHES", 7)
EXHAUSTIVE_MAX_PARTICIPANTS = _env_int("EXHAUSTIVE_MAX_PARTICIPANTS", 8)
EXHAUSTIVE_NODE_BUDGET = _env_int("EXHAUSTIVE_NODE_BUDGET", 200000)

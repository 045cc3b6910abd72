import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from tournament_engine.config import CORS_ORIGINS, LOG_LEVEL
from tournament_engine.database import init_db
from tournament_engine.routes import categories, runtime, schedule, tournament_days, tournaments

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Tournament Engine API")

_cors_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]
_cors_origins.extend(CORS_ORIGINS)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(tournaments.router, prefix="/api", tags=["tournaments"])
app.include_router(tournament_days.router, prefix="/api", tags=["tournament_days"])
app.include_router(categories.router, prefix="/api", tags=["categories"])
app.include_router(schedule.router, prefix="/api", tags=["schedule"])
# Runtime (results + bracket advancement)
app.include_router(runtime.router, prefix="/api", tags=["runtime"])


@app.on_event("startup")
def on_startup():
    init_db()  # Use centralized init_db() which imports models and creates tables
    logger.info("Tournament Engine API started with %d routes", len(app.routes))


@app.get("/api/health")
def health_check():
    return {"app_name": "Tournament Engine API", "status": "healthy"}

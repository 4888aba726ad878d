"""
api/main.py — FastAPI application entry point.

Run with:
    uvicorn api.main:app --reload
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from api.endpoints.followup_routes import router as followup_router
from api.endpoints.profile_routes import router as profile_router
from api.endpoints.session_routes import router as session_router
from qualifier.config import settings
from qualifier.db.models import Base
from qualifier.db.session import engine
from qualifier.errors import InvalidResponseError, LeadNotFoundError

logger = logging.getLogger(__name__)


# ── Lifespan ─────────────────────────────────────────────────────────────────

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup / shutdown logic."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    # Verify DB is reachable and the schema exists
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    Base.metadata.create_all(bind=engine)
    logger.info("Database connection verified.")
    yield
    logger.info("Application shutting down.")


# ── App ───────────────────────────────────────────────────────────────────────

app = FastAPI(
    title="Lead Qualifier",
    description=(
        "Runs lead-qualification questionnaires, scores and categorizes leads, "
        "keeps their answer history and decides when to ask follow-up questions."
    ),
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Error mapping ────────────────────────────────────────────────────────────

@app.exception_handler(LeadNotFoundError)
async def lead_not_found_handler(request: Request, exc: LeadNotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(InvalidResponseError)
async def invalid_response_handler(request: Request, exc: InvalidResponseError):
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "question_id": exc.question_id},
    )


# ── Routers ──────────────────────────────────────────────────────────────────

app.include_router(session_router, prefix="/sessions", tags=["Sessions"])
app.include_router(profile_router, prefix="/profiles", tags=["Profiles"])
app.include_router(followup_router, prefix="/follow-up", tags=["Follow-up"])


# ── Health check ─────────────────────────────────────────────────────────────

@app.get("/health", tags=["System"])
def health_check():
    """Returns service liveness status."""
    return {"status": "ok", "service": "lead-qualifier"}

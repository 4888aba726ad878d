"""
tests/conftest.py — Shared pytest configuration and fixtures.

Sets dummy environment variables BEFORE any qualifier module is imported,
so that pydantic-settings doesn't fail on missing required fields.
"""

import os
from datetime import datetime, timedelta

import pytest

# ── Set dummy env vars before any qualifier module is imported ───────────────
# This runs at collection time, before tests execute.
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("FOLLOW_UP_MAX_QUESTIONS", "2")
os.environ.setdefault("DEFAULT_SNOOZE_HOURS", "24")

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from qualifier.catalog.models import (
    Question,
    QuestionnaireConfig,
    QuestionOption,
    QuestionType,
    ScoringRules,
)
from qualifier.db.models import Base
from qualifier.db.session import session_scope


# ── In-memory DB ─────────────────────────────────────────────────────────────

@pytest.fixture
def engine():
    """A fresh in-memory SQLite database per test; one shared connection."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def session_factory(engine):
    """get_session-style context manager bound to the test database."""
    return session_scope(sessionmaker(bind=engine, autoflush=False, expire_on_commit=False))


@pytest.fixture
def db(engine):
    Session = sessionmaker(bind=engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()


# ── Time ─────────────────────────────────────────────────────────────────────

class FakeClock:
    """Wall clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeTimer:
    """Monotonic seconds source for per-question timing."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock(datetime(2025, 3, 3, 9, 0, 0))


@pytest.fixture
def timer():
    return FakeTimer()


# ── A small three-question catalog ───────────────────────────────────────────

@pytest.fixture
def three_questions():
    """
    q1 required single choice (urgent = 40, urgency 1.0)
    q2 optional multiple choice (fit 0.5)
    q3 optional free text (engagement 1.0)
    """
    return (
        Question(
            id="q1",
            type=QuestionType.SINGLE_CHOICE,
            required=True,
            question="How urgent is it?",
            options=(
                QuestionOption(value="urgent", label="Urgent", score=40),
                QuestionOption(value="calm", label="No rush", score=10),
            ),
            scoring_weight={"urgency": 1.0},
        ),
        Question(
            id="q2",
            type=QuestionType.MULTIPLE_CHOICE,
            question="What do you need?",
            options=(
                QuestionOption(value="a", label="A"),
                QuestionOption(value="b", label="B"),
                QuestionOption(value="c", label="C"),
            ),
            allow_other=True,
            scoring_weight={"fit": 0.5},
        ),
        Question(
            id="q3",
            type=QuestionType.TEXT_AREA,
            question="Anything else?",
            max_length=200,
            scoring_weight={"engagement": 1.0},
        ),
    )


@pytest.fixture
def three_question_config(three_questions):
    return QuestionnaireConfig(
        version=1,
        questions=three_questions,
        scoring=ScoringRules(components={"urgency": 1.0, "fit": 1.0, "engagement": 1.0}),
    )


@pytest.fixture
def scoring_config(three_question_config):
    return three_question_config.scoring_config()

"""
qualifier/db/models.py — SQLAlchemy ORM models for the qualification system.

Tables:
  - LeadProfileRow         → the durable lead aggregate (merged answers + derived metrics)
  - EditHistoryRow         → append-only log of answer edits
  - QuestionnaireSessionRow → one row per completed questionnaire pass
  - QuestionnaireDraftRow  → in-progress session snapshot, keyed by lead/organization

All timestamps are naive UTC.
"""

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import DeclarativeBase, relationship

from qualifier.catalog.models import LeadCategory, SessionType
from qualifier.utils import utcnow


# ── Base ─────────────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


# ── Models ───────────────────────────────────────────────────────────────────

class LeadProfileRow(Base):
    __tablename__ = "lead_profiles"

    id = Column(String(64), primary_key=True)
    email = Column(String(255), nullable=True)

    initial_responses = Column(JSON, nullable=False, default=dict)
    follow_up_responses = Column(JSON, nullable=False, default=dict)

    profile_completeness = Column(Integer, nullable=False, default=0)     # 0 – 100
    lead_score = Column(Integer, nullable=False, default=0)
    lead_category = Column(Enum(LeadCategory), nullable=False, default=LeadCategory.D1)

    created_at = Column(DateTime, default=utcnow, nullable=False)
    last_questionnaire_at = Column(DateTime, nullable=True)
    last_edit_at = Column(DateTime, nullable=True)
    snoozed_until = Column(DateTime, nullable=True)

    questionnaire_version = Column(Integer, nullable=True)         # version initial_responses follow
    archived_responses = Column(JSON, nullable=True)              # answers set aside by a FULL_REFRESH migration

    # Relationships
    edits = relationship(
        "EditHistoryRow",
        back_populates="lead",
        cascade="all, delete-orphan",
        order_by="EditHistoryRow.id",
    )
    sessions = relationship(
        "QuestionnaireSessionRow", back_populates="lead", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<LeadProfileRow id={self.id!r} score={self.lead_score} category={self.lead_category}>"


class EditHistoryRow(Base):
    __tablename__ = "edit_history"

    id = Column(Integer, primary_key=True, autoincrement=True)    # tie-breaker for commit order
    lead_id = Column(String(64), ForeignKey("lead_profiles.id", ondelete="CASCADE"), nullable=False)
    question_id = Column(String(128), nullable=False, index=True)
    edited_at = Column(DateTime, nullable=False)
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)

    lead = relationship("LeadProfileRow", back_populates="edits")

    def __repr__(self) -> str:
        return f"<EditHistoryRow lead={self.lead_id!r} question={self.question_id!r} at={self.edited_at}>"


class QuestionnaireSessionRow(Base):
    __tablename__ = "questionnaire_sessions"

    id = Column(String(64), primary_key=True)
    lead_id = Column(String(64), ForeignKey("lead_profiles.id", ondelete="CASCADE"), nullable=False)
    type = Column(Enum(SessionType), nullable=False)
    channel = Column(String(50), nullable=False, default="platform")
    responses = Column(JSON, nullable=False, default=dict)
    session_metadata = Column(JSON, nullable=True)     # completion time, time per question, ...
    completion_time_seconds = Column(Float, nullable=True)
    completed_at = Column(DateTime, nullable=False)

    lead = relationship("LeadProfileRow", back_populates="sessions")

    def __repr__(self) -> str:
        return f"<QuestionnaireSessionRow id={self.id!r} lead={self.lead_id!r} type={self.type}>"


class QuestionnaireDraftRow(Base):
    __tablename__ = "questionnaire_drafts"

    key = Column(String(255), primary_key=True)
    data = Column(JSON, nullable=False, default=dict)
    other_text = Column(JSON, nullable=False, default=dict)
    current_index = Column(Integer, nullable=False, default=0)
    last_saved = Column(DateTime, nullable=False)

    def __repr__(self) -> str:
        return f"<QuestionnaireDraftRow key={self.key!r} index={self.current_index}>"

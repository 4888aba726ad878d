"""
qualifier/db/repository.py — All database read/write operations.

Business logic should never write ORM queries directly — everything goes
through this module. This keeps DB logic centralized and easy to test/mock.
"""

import logging
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from qualifier.catalog.models import SessionType
from qualifier.db.models import (
    EditHistoryRow,
    LeadProfileRow,
    QuestionnaireDraftRow,
    QuestionnaireSessionRow,
)

logger = logging.getLogger(__name__)


# ── Lead profile ─────────────────────────────────────────────────────────────

def get_profile(db: Session, lead_id: str, for_update: bool = False) -> Optional[LeadProfileRow]:
    """Fetch a profile by lead id. `for_update` takes a row lock where the backend supports it."""
    query = db.query(LeadProfileRow).filter(LeadProfileRow.id == lead_id)
    if for_update:
        query = query.with_for_update()
    return query.first()


def list_profile_ids(db: Session) -> list[str]:
    return [row.id for row in db.query(LeadProfileRow.id).order_by(LeadProfileRow.created_at.asc())]


def create_profile(
    db: Session,
    lead_id: str,
    email: Optional[str] = None,
    created_at: Optional[datetime] = None,
    questionnaire_version: Optional[int] = None,
) -> LeadProfileRow:
    """Create an empty profile. Metrics are filled in by the profile service."""
    row = LeadProfileRow(
        id=lead_id,
        email=email,
        initial_responses={},
        follow_up_responses={},
        questionnaire_version=questionnaire_version,
    )
    if created_at is not None:
        row.created_at = created_at
    db.add(row)
    db.flush()
    logger.debug("Created lead profile %s", lead_id)
    return row


# ── Edit history ─────────────────────────────────────────────────────────────

def append_edit(
    db: Session,
    lead_id: str,
    question_id: str,
    edited_at: datetime,
    old_value: Any,
    new_value: Any,
) -> EditHistoryRow:
    """Append one entry to the edit log. Existing entries are never touched."""
    entry = EditHistoryRow(
        lead_id=lead_id,
        question_id=question_id,
        edited_at=edited_at,
        old_value=old_value,
        new_value=new_value,
    )
    db.add(entry)
    db.flush()
    return entry


def get_edit_history(
    db: Session,
    lead_id: str,
    question_id: Optional[str] = None,
) -> list[EditHistoryRow]:
    """Edits for a lead in commit order, optionally for one question."""
    query = db.query(EditHistoryRow).filter(EditHistoryRow.lead_id == lead_id)
    if question_id is not None:
        query = query.filter(EditHistoryRow.question_id == question_id)
    return query.order_by(EditHistoryRow.edited_at.asc(), EditHistoryRow.id.asc()).all()


# ── Questionnaire sessions ───────────────────────────────────────────────────

def save_session(
    db: Session,
    session_id: str,
    lead_id: str,
    session_type: SessionType,
    responses: dict[str, Any],
    metadata: Optional[dict[str, Any]],
    completed_at: datetime,
    channel: str = "platform",
) -> QuestionnaireSessionRow:
    """Record a completed questionnaire pass."""
    row = QuestionnaireSessionRow(
        id=session_id,
        lead_id=lead_id,
        type=session_type,
        channel=channel,
        responses=responses,
        session_metadata=metadata,
        completion_time_seconds=(metadata or {}).get("completion_time"),
        completed_at=completed_at,
    )
    db.add(row)
    db.flush()
    return row


def get_session_record(db: Session, session_id: str) -> Optional[QuestionnaireSessionRow]:
    return db.query(QuestionnaireSessionRow).filter(QuestionnaireSessionRow.id == session_id).first()


def get_sessions(db: Session, lead_id: str) -> list[QuestionnaireSessionRow]:
    return (
        db.query(QuestionnaireSessionRow)
        .filter(QuestionnaireSessionRow.lead_id == lead_id)
        .order_by(QuestionnaireSessionRow.completed_at.asc())
        .all()
    )


# ── Drafts ───────────────────────────────────────────────────────────────────

def get_draft(db: Session, key: str) -> Optional[QuestionnaireDraftRow]:
    return db.query(QuestionnaireDraftRow).filter(QuestionnaireDraftRow.key == key).first()


def upsert_draft(
    db: Session,
    key: str,
    data: dict[str, Any],
    other_text: dict[str, str],
    current_index: int,
    last_saved: datetime,
) -> QuestionnaireDraftRow:
    """Insert or overwrite the draft stored under `key`."""
    row = get_draft(db, key)
    if row is None:
        row = QuestionnaireDraftRow(key=key)
        db.add(row)
    row.data = data
    row.other_text = other_text
    row.current_index = current_index
    row.last_saved = last_saved
    db.flush()
    return row


def delete_draft(db: Session, key: str) -> None:
    db.query(QuestionnaireDraftRow).filter(QuestionnaireDraftRow.key == key).delete()

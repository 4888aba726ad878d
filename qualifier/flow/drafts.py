"""
qualifier/flow/drafts.py — Ephemeral persistence for in-progress questionnaires.

A draft lets a lead reload the page (or reconnect) and resume where they were.
Stores are injected into the flow controller; failures there are logged and
never block the session.

Usage:
    store = SqlDraftStore(get_session)
    key = draft_key(lead_id="lead-1", organization_id="org-9")
    store.save(key, snapshot)
"""

import logging
import threading
from datetime import datetime
from typing import Any, Callable, ContextManager, Protocol

from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from qualifier.catalog.models import SessionType
from qualifier.config import settings
from qualifier.db import repository
from qualifier.utils import utcnow

logger = logging.getLogger(__name__)


class DraftSnapshot(BaseModel):
    """Serializable state of a session in progress."""

    data: dict[str, Any] = Field(default_factory=dict)        # the response buffer
    other_text: dict[str, str] = Field(default_factory=dict)  # "<qid>_other" companions
    current_index: int = 0
    last_saved: datetime = Field(default_factory=utcnow)


class DraftStore(Protocol):
    def load(self, key: str) -> DraftSnapshot | None: ...

    def save(self, key: str, snapshot: DraftSnapshot) -> None: ...

    def clear(self, key: str) -> None: ...


def draft_key(
    lead_id: str,
    organization_id: str | None = None,
    session_type: SessionType = SessionType.INITIAL,
    prefix: str | None = None,
) -> str:
    """Key a draft by organization and lead so two leads never share one."""
    prefix = prefix or settings.draft_key_prefix
    key = f"{prefix}:{organization_id or '-'}:{lead_id}"
    if session_type != SessionType.INITIAL:
        key = f"{key}:{session_type.value}"
    return key


# ── Implementations ──────────────────────────────────────────────────────────

class InMemoryDraftStore:
    """Process-local store. Good for tests and single-process deployments."""

    def __init__(self):
        self._drafts: dict[str, dict] = {}
        self._lock = threading.Lock()

    def load(self, key: str) -> DraftSnapshot | None:
        with self._lock:
            raw = self._drafts.get(key)
        return DraftSnapshot.model_validate(raw) if raw is not None else None

    def save(self, key: str, snapshot: DraftSnapshot) -> None:
        # Store a JSON-mode dump so later mutation of the live buffer can't leak in
        with self._lock:
            self._drafts[key] = snapshot.model_dump(mode="json")

    def clear(self, key: str) -> None:
        with self._lock:
            self._drafts.pop(key, None)


class SqlDraftStore:
    """Drafts kept in the questionnaire_drafts table."""

    def __init__(self, session_factory: Callable[[], ContextManager[Session]]):
        self._session_factory = session_factory

    def load(self, key: str) -> DraftSnapshot | None:
        with self._session_factory() as db:
            row = repository.get_draft(db, key)
            if row is None:
                return None
            return DraftSnapshot(
                data=row.data or {},
                other_text=row.other_text or {},
                current_index=row.current_index,
                last_saved=row.last_saved,
            )

    def save(self, key: str, snapshot: DraftSnapshot) -> None:
        payload = snapshot.model_dump(mode="json")
        with self._session_factory() as db:
            repository.upsert_draft(
                db,
                key=key,
                data=payload["data"],
                other_text=payload["other_text"],
                current_index=snapshot.current_index,
                last_saved=snapshot.last_saved,
            )
        logger.debug("Draft %s saved at index %d.", key, snapshot.current_index)

    def clear(self, key: str) -> None:
        with self._session_factory() as db:
            repository.delete_draft(db, key)

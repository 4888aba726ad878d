"""
api/dependencies.py — Shared services injected into the routes with Depends().

Tests swap any of these through app.dependency_overrides.
"""

import logging
import threading
from functools import lru_cache

from fastapi import HTTPException

from qualifier.db.session import get_session
from qualifier.flow.controller import QuestionnaireFlowController
from qualifier.flow.drafts import DraftStore, SqlDraftStore
from qualifier.services.followup import FollowUpScheduler
from qualifier.services.profile_service import ProfileService

logger = logging.getLogger(__name__)


class SessionRegistry:
    """
    Live flow controllers by session id. Process-local; a restart resumes from drafts.

    A controller is dropped once its session completes. Starting a session
    under a draft key that already has a live controller replaces it.
    """

    def __init__(self):
        self._sessions: dict[str, QuestionnaireFlowController] = {}
        self._by_key: dict[str, str] = {}
        self._lock = threading.Lock()

    def add(self, controller: QuestionnaireFlowController, key: str | None = None) -> None:
        with self._lock:
            if key is not None:
                previous = self._by_key.pop(key, None)
                if previous is not None and self._sessions.pop(previous, None) is not None:
                    logger.info("Session %s replaced by %s (draft %s).", previous, controller.session_id, key)
                self._by_key[key] = controller.session_id
            self._sessions[controller.session_id] = controller

    def get(self, session_id: str) -> QuestionnaireFlowController:
        with self._lock:
            controller = self._sessions.get(session_id)
        if controller is None:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found.")
        return controller

    def remove(self, session_id: str) -> None:
        with self._lock:
            self._sessions.pop(session_id, None)
            for key, sid in list(self._by_key.items()):
                if sid == session_id:
                    del self._by_key[key]

    def __len__(self) -> int:
        return len(self._sessions)


@lru_cache
def get_profile_service() -> ProfileService:
    return ProfileService(session_factory=get_session)


@lru_cache
def get_scheduler() -> FollowUpScheduler:
    return FollowUpScheduler()


@lru_cache
def get_draft_store() -> DraftStore:
    return SqlDraftStore(get_session)


@lru_cache
def get_registry() -> SessionRegistry:
    return SessionRegistry()

"""
qualifier/services/profile_service.py — Lead profile & edit-history manager.

Holds the durable view of a lead:
  - merges answers from the initial and follow-up questionnaires
  - records every answer edit (old → new) in an append-only log
  - recomputes completeness, score and category whenever an answer changes
  - carries stored initial answers forward when the questionnaire version moves

Recording a questionnaire is idempotent per session id: a retried
completion (for example after a downstream sink failed) is not merged twice.

Writes for one lead are serialized with a process-local lock, so two edits
racing on the same question both land in the history in commit order and
the later commit wins. There is no cross-process conflict detection.
"""

import logging
import threading
import uuid
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Callable, ContextManager, Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from qualifier.catalog.answers import invalid_reason
from qualifier.catalog.models import LeadCategory, Question, QuestionnaireConfig, SessionType
from qualifier.catalog.questionnaires import (
    DEFAULT_QUESTIONNAIRE,
    FOLLOW_UP_QUESTIONS,
    QUESTIONNAIRE_VERSIONS,
)
from qualifier.catalog.versioning import (
    QuestionnaireVersion,
    is_version_compatible,
    migrate_across,
    validate_responses,
)
from qualifier.config import settings
from qualifier.db import repository
from qualifier.db.models import LeadProfileRow
from qualifier.db.session import get_session
from qualifier.errors import InvalidResponseError, LeadNotFoundError
from qualifier.flow.controller import METADATA_KEY
from qualifier.services.scoring import profile_completeness, score_breakdown
from qualifier.utils import is_empty_value, merge_responses, utcnow

logger = logging.getLogger(__name__)

_LEAD_LOCKS: defaultdict[str, threading.Lock] = defaultdict(threading.Lock)
_LEAD_LOCKS_GUARD = threading.Lock()


def _lead_lock(lead_id: str) -> threading.Lock:
    with _LEAD_LOCKS_GUARD:
        return _LEAD_LOCKS[lead_id]


# ── Domain models ────────────────────────────────────────────────────────────

class LeadProfile(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None = None
    initial_responses: dict[str, Any] = Field(default_factory=dict)
    follow_up_responses: dict[str, Any] = Field(default_factory=dict)
    profile_completeness: int = 0
    lead_score: int = 0
    lead_category: LeadCategory = LeadCategory.D1
    created_at: datetime | None = None
    last_questionnaire_at: datetime | None = None
    last_edit_at: datetime | None = None
    snoozed_until: datetime | None = None
    questionnaire_version: int | None = None

    @property
    def merged_responses(self) -> dict[str, Any]:
        return merge_responses(self.initial_responses, self.follow_up_responses)


class EditHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    question_id: str
    edited_at: datetime
    old_value: Any = None
    new_value: Any = None


class SessionRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    type: SessionType
    channel: str
    completion_time_seconds: float | None = None
    completed_at: datetime


class ProfileReadModel(BaseModel):
    """What dashboards and reports get to see."""

    profile_completeness: int
    lead_score: int
    lead_category: LeadCategory
    last_edit_at: datetime | None = None


# ── Service ──────────────────────────────────────────────────────────────────

class ProfileService:
    def __init__(
        self,
        session_factory: Callable[[], ContextManager[Session]] = get_session,
        questionnaire: QuestionnaireConfig = DEFAULT_QUESTIONNAIRE,
        extra_questions: tuple[Question, ...] = FOLLOW_UP_QUESTIONS,
        engagement_question_id: str | None = None,
        clock: Callable[[], datetime] = utcnow,
        versions: Iterable[QuestionnaireVersion] = QUESTIONNAIRE_VERSIONS,
    ):
        self._session_factory = session_factory
        self.questionnaire_version = questionnaire.version
        self.versions = tuple(versions)
        self.scoring_config = questionnaire.scoring_config(extra_questions)
        self.questions = self.scoring_config.question_map()
        self.engagement_question_id = engagement_question_id or settings.engagement_question_id
        self._clock = clock

    @property
    def total_questions(self) -> int:
        return len(self.questions)

    # ── Reads ────────────────────────────────────────────────────────────────

    def find_profile(self, lead_id: str) -> LeadProfile | None:
        with self._session_factory() as db:
            row = repository.get_profile(db, lead_id)
            return LeadProfile.model_validate(row) if row else None

    def get_profile(self, lead_id: str) -> LeadProfile:
        profile = self.find_profile(lead_id)
        if profile is None:
            raise LeadNotFoundError(lead_id)
        return profile

    def read_model(self, lead_id: str) -> ProfileReadModel:
        profile = self.get_profile(lead_id)
        return ProfileReadModel(
            profile_completeness=profile.profile_completeness,
            lead_score=profile.lead_score,
            lead_category=profile.lead_category,
            last_edit_at=profile.last_edit_at,
        )

    def edit_history(self, lead_id: str, question_id: str | None = None) -> list[EditHistoryEntry]:
        with self._session_factory() as db:
            rows = repository.get_edit_history(db, lead_id, question_id)
            return [EditHistoryEntry.model_validate(r) for r in rows]

    def last_edit(self, lead_id: str, question_id: str) -> EditHistoryEntry | None:
        history = self.edit_history(lead_id, question_id)
        return history[-1] if history else None

    def sessions(self, lead_id: str) -> list[SessionRecord]:
        """Completed questionnaire passes, oldest first."""
        with self._session_factory() as db:
            if repository.get_profile(db, lead_id) is None:
                raise LeadNotFoundError(lead_id)
            return [SessionRecord.model_validate(r) for r in repository.get_sessions(db, lead_id)]

    # ── Writes ───────────────────────────────────────────────────────────────

    def record_questionnaire(
        self,
        lead_id: str,
        payload: Mapping[str, Any],
        session_type: SessionType,
        email: str | None = None,
    ) -> LeadProfile:
        """
        Merge a finished questionnaire into the lead's profile.

        Creates the profile on first completion. Initial answers go into
        initial_responses, every other session type into follow_up_responses.
        A session id that is already stored is not merged again; the current
        profile is returned instead.
        """
        metadata = dict(payload.get(METADATA_KEY) or {})
        answers = {k: v for k, v in payload.items() if k != METADATA_KEY}
        session_id = metadata.get("session_id") or uuid.uuid4().hex
        now = self._clock()

        with _lead_lock(lead_id), self._session_factory() as db:
            if repository.get_session_record(db, session_id) is not None:
                logger.info("Session %s already stored for lead %s, not merging again.", session_id, lead_id)
                row = repository.get_profile(db, lead_id)
                if row is None:
                    raise LeadNotFoundError(lead_id)
                return LeadProfile.model_validate(row)

            row = repository.get_profile(db, lead_id, for_update=True)
            if row is None:
                row = repository.create_profile(
                    db, lead_id, email=email, created_at=now,
                    questionnaire_version=self.questionnaire_version,
                )
                logger.info("Created profile for lead %s.", lead_id)
            else:
                self._migrate(row)
                if email and not row.email:
                    row.email = email

            if session_type == SessionType.INITIAL:
                row.initial_responses = {**(row.initial_responses or {}), **answers}
            else:
                row.follow_up_responses = {**(row.follow_up_responses or {}), **answers}
            row.last_questionnaire_at = now
            self._recompute(row)

            repository.save_session(
                db,
                session_id=session_id,
                lead_id=lead_id,
                session_type=session_type,
                responses=answers,
                metadata=metadata,
                completed_at=now,
                channel=metadata.get("channel") or "platform",
            )
            profile = LeadProfile.model_validate(row)

        logger.info(
            "Lead %s %s questionnaire stored: score=%d category=%s completeness=%d%%",
            lead_id, session_type.value, profile.lead_score,
            profile.lead_category.value, profile.profile_completeness,
        )
        return profile

    def edit_response(self, lead_id: str, question_id: str, new_value: Any) -> EditHistoryEntry:
        """
        Change one answer and log the edit.

        The value is written into whichever map currently holds the question
        (follow-up first, since it wins on merge), or into follow_up_responses
        if the question was never answered. Raises LeadNotFoundError or
        InvalidResponseError; nothing is written in that case.
        """
        question = self.questions.get(question_id)
        if question is not None:
            reason = invalid_reason(question, new_value)
            if reason:
                raise InvalidResponseError(question_id, reason)
            if question.required and is_empty_value(new_value):
                raise InvalidResponseError(question_id, "this question is required")

        with _lead_lock(lead_id), self._session_factory() as db:
            row = repository.get_profile(db, lead_id, for_update=True)
            if row is None:
                raise LeadNotFoundError(lead_id)

            initial = dict(row.initial_responses or {})
            follow_up = dict(row.follow_up_responses or {})
            old_value = merge_responses(initial, follow_up).get(question_id)
            now = self._clock()

            entry = repository.append_edit(db, lead_id, question_id, now, old_value, new_value)

            if question_id in follow_up or question_id not in initial:
                follow_up[question_id] = new_value
            else:
                initial[question_id] = new_value
            row.initial_responses = initial
            row.follow_up_responses = follow_up
            row.last_edit_at = now
            self._recompute(row)
            result = EditHistoryEntry.model_validate(entry)

        logger.info("Lead %s edited %s: %r → %r", lead_id, question_id, old_value, new_value)
        return result

    def snooze(self, lead_id: str, hours: float | None = None) -> LeadProfile:
        """Hide follow-up prompts for `hours` (default from settings)."""
        hours = settings.default_snooze_hours if hours is None else hours
        until = self._clock() + timedelta(hours=hours)
        with _lead_lock(lead_id), self._session_factory() as db:
            row = repository.get_profile(db, lead_id)
            if row is None:
                raise LeadNotFoundError(lead_id)
            row.snoozed_until = until
            db.flush()
            profile = LeadProfile.model_validate(row)
        logger.info("Lead %s snoozed follow-ups until %s.", lead_id, until)
        return profile

    def dismiss(self, lead_id: str) -> LeadProfile:
        """A dismissal is not a snooze: nothing is stored and the prompt may come back."""
        profile = self.get_profile(lead_id)
        logger.info("Lead %s dismissed the follow-up prompt.", lead_id)
        return profile

    def recompute(self, lead_id: str) -> LeadProfile:
        with _lead_lock(lead_id), self._session_factory() as db:
            row = repository.get_profile(db, lead_id, for_update=True)
            if row is None:
                raise LeadNotFoundError(lead_id)
            self._migrate(row)
            self._recompute(row)
            return LeadProfile.model_validate(row)

    def recompute_all(self) -> int:
        with self._session_factory() as db:
            lead_ids = repository.list_profile_ids(db)
        for lead_id in lead_ids:
            self.recompute(lead_id)
        logger.info("Recomputed %d profiles.", len(lead_ids))
        return len(lead_ids)

    # ── Internals ────────────────────────────────────────────────────────────

    def _catalog_answers(self, responses: Mapping[str, Any] | None) -> dict[str, Any]:
        """Only catalog questions count; "<id>_other" companions and unknown keys do not."""
        return {k: v for k, v in (responses or {}).items() if k in self.questions}

    def _migrate(self, row: LeadProfileRow) -> None:
        """Bring initial_responses up to the current questionnaire version."""
        if row.questionnaire_version is None:
            row.questionnaire_version = self.questionnaire_version
            return
        if row.questionnaire_version == self.questionnaire_version:
            return

        if not is_version_compatible(row.questionnaire_version, self.questionnaire_version):
            logger.warning(
                "Lead %s answered questionnaire v%d, now v%d; migrating across every step.",
                row.id, row.questionnaire_version, self.questionnaire_version,
            )
        result = migrate_across(
            row.initial_responses or {}, row.questionnaire_version, self.questionnaire_version, self.versions
        )
        row.initial_responses = result.migrated_responses
        if result.archived_responses is not None:
            row.archived_responses = {**(row.archived_responses or {}), **result.archived_responses}
        logger.info(
            "Lead %s responses migrated v%d → v%d (re-ask: %s)",
            row.id, row.questionnaire_version, self.questionnaire_version,
            result.questions_to_re_ask or "none",
        )
        row.questionnaire_version = self.questionnaire_version

        current = next((v for v in self.versions if v.version == self.questionnaire_version), None)
        if current is not None:
            report = validate_responses(self._catalog_answers(row.initial_responses), current)
            if not report.valid:
                logger.info("Lead %s after migration: %s", row.id, "; ".join(report.errors))

    def _recompute(self, row: LeadProfileRow) -> None:
        initial = self._catalog_answers(row.initial_responses)
        follow_up = self._catalog_answers(row.follow_up_responses)
        breakdown = score_breakdown(
            merge_responses(initial, follow_up),
            self.scoring_config,
            self.engagement_question_id,
        )
        row.profile_completeness = profile_completeness(initial, follow_up, self.total_questions)
        row.lead_score = breakdown.score
        row.lead_category = breakdown.category
        logger.debug(
            "Lead %s recomputed: components=%s text=%d",
            row.id, breakdown.components, breakdown.text_engagement_score,
        )

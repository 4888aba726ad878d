"""
qualifier/flow/controller.py — Questionnaire flow controller.

Owns one interactive pass over an ordered list of questions:

    ANSWERING(i) --next/skip--> ANSWERING(i+1)
    ANSWERING(i) --back-------> ANSWERING(max(0, i-1))
    ANSWERING(N-1) --next-----> SUBMITTING --sink ok----> COMPLETED
                                SUBMITTING --sink fails--> ANSWERING(N-1)

Every transition returns a TransitionResult instead of raising, so a blocked
"next" on a required question or a click while a submission is in flight is
an ordinary, recoverable outcome. The response buffer is never discarded.
"""

import enum
import logging
import threading
import time
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable

from pydantic import BaseModel, Field

from qualifier.catalog.answers import invalid_reason
from qualifier.catalog.models import (
    OTHER_VALUE,
    Question,
    QuestionType,
    SessionType,
    TextEngagementBonus,
)
from qualifier.config import settings
from qualifier.flow.drafts import DraftSnapshot, DraftStore
from qualifier.services.scoring import text_engagement_score
from qualifier.utils import is_empty_value, round_half_up, utcnow

logger = logging.getLogger(__name__)

METADATA_KEY = "_metadata"
OTHER_SUFFIX = "_other"

CompletionSink = Callable[[dict[str, Any]], None]


# ── States and results ───────────────────────────────────────────────────────

class FlowState(str, enum.Enum):
    ANSWERING = "answering"
    SUBMITTING = "submitting"
    COMPLETED = "completed"


class Rejection(str, enum.Enum):
    REQUIRED_UNANSWERED = "required_unanswered"
    NOT_SKIPPABLE = "not_skippable"
    INVALID_OPTION = "invalid_option"
    BUSY = "busy"                       # a submission is in flight
    COMPLETED = "completed"
    SUBMISSION_FAILED = "submission_failed"


@dataclass(frozen=True)
class TransitionResult:
    accepted: bool
    state: FlowState
    current_index: int
    rejection: Rejection | None = None
    detail: str | None = None
    payload: dict[str, Any] | None = None    # set once the session completes


class QuestionnaireSession(BaseModel):
    """Read-only view of a session; frozen in practice once completed_at is set."""

    id: str
    lead_id: str
    type: SessionType
    current_index: int
    responses: dict[str, Any] = Field(default_factory=dict)
    started_at: datetime
    completed_at: datetime | None = None
    channel: str = "platform"


def other_key(question_id: str) -> str:
    return f"{question_id}{OTHER_SUFFIX}"


# ── Controller ───────────────────────────────────────────────────────────────

class QuestionnaireFlowController:
    """
    Drives one questionnaire session.

    Args:
        questions:                 Ordered catalog questions. Only the first
                                   `max_questions_per_session` are used.
        on_complete:               Sink receiving the finalization payload.
                                   Raising from it rolls the session back to
                                   the last question.
        lead_id:                   Lead the session belongs to.
        draft_store / draft_key:   Optional draft persistence. Loaded on
                                   construction unless `start_fresh` is set,
                                   in which case the stored draft is deleted.
        previous_responses:        Answers to pre-fill the buffer with.
        timer:                     Monotonic seconds source for elapsed time.
        clock:                     Wall clock for session timestamps.
    """

    def __init__(
        self,
        questions: Iterable[Question],
        on_complete: CompletionSink,
        *,
        lead_id: str,
        session_type: SessionType = SessionType.INITIAL,
        channel: str = "platform",
        max_questions_per_session: int | None = None,
        allow_skip: bool = True,
        draft_store: DraftStore | None = None,
        draft_key: str | None = None,
        start_fresh: bool = False,
        previous_responses: dict[str, Any] | None = None,
        engagement_question_id: str | None = None,
        text_bonus: TextEngagementBonus | None = None,
        session_id: str | None = None,
        timer: Callable[[], float] = time.monotonic,
        clock: Callable[[], datetime] = utcnow,
    ):
        questions = tuple(questions)
        limit = len(questions) if max_questions_per_session is None else max_questions_per_session
        self.questions: tuple[Question, ...] = questions[: max(0, limit)]
        if not self.questions:
            raise ValueError("A questionnaire session needs at least one question.")

        self.session_id = session_id or uuid.uuid4().hex
        self.lead_id = lead_id
        self.session_type = session_type
        self.channel = channel
        self.allow_skip = allow_skip
        self.engagement_question_id = engagement_question_id or settings.engagement_question_id
        self.text_bonus = text_bonus

        self._on_complete = on_complete
        self._draft_store = draft_store
        self._draft_key = draft_key
        self._timer = timer
        self._clock = clock
        self._lock = threading.Lock()

        self._state = FlowState.ANSWERING
        self._current_index = 0
        self._responses: dict[str, Any] = dict(previous_responses or {})
        self._other_text: dict[str, str] = {}
        self._time_per_question: dict[str, int] = {}
        self.started_at = clock()
        self.completed_at: datetime | None = None

        self._restore_draft(start_fresh)

        self._session_started = timer()
        self._question_started = self._session_started

    # ── Read side ────────────────────────────────────────────────────────────

    @property
    def state(self) -> FlowState:
        return self._state

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def current_question(self) -> Question:
        return self.questions[self._current_index]

    @property
    def is_last_question(self) -> bool:
        return self._current_index == len(self.questions) - 1

    @property
    def responses(self) -> dict[str, Any]:
        return dict(self._responses)

    @property
    def other_text(self) -> dict[str, str]:
        return dict(self._other_text)

    @property
    def time_per_question(self) -> dict[str, int]:
        return dict(self._time_per_question)

    def is_answered(self, question: Question) -> bool:
        return question.id in self._responses

    def can_proceed(self) -> bool:
        question = self.current_question
        return self._state == FlowState.ANSWERING and (
            not question.required or self.is_answered(question)
        )

    def can_skip(self) -> bool:
        return (
            self._state == FlowState.ANSWERING
            and self.allow_skip
            and not self.current_question.required
            and not self.is_last_question
        )

    def progress(self) -> int:
        """Percent of the session reached, counting the current question."""
        return round_half_up((self._current_index + 1) / len(self.questions) * 100)

    def session(self) -> QuestionnaireSession:
        with self._lock:
            return QuestionnaireSession(
                id=self.session_id,
                lead_id=self.lead_id,
                type=self.session_type,
                current_index=self._current_index,
                responses=dict(self._responses),
                started_at=self.started_at,
                completed_at=self.completed_at,
                channel=self.channel,
            )

    def snapshot(self) -> DraftSnapshot:
        with self._lock:
            return DraftSnapshot(
                data=dict(self._responses),
                other_text=dict(self._other_text),
                current_index=self._current_index,
                last_saved=self._clock(),
            )

    # ── Transitions ──────────────────────────────────────────────────────────

    def answer(self, value: Any) -> TransitionResult:
        """Set the answer for the current question. Empty values clear it."""
        with self._lock:
            blocked = self._blocked()
            if blocked:
                return blocked

            question = self.current_question
            reason = invalid_reason(question, value)
            if reason:
                return self._reject(Rejection.INVALID_OPTION, reason)

            if is_empty_value(value):
                self._responses.pop(question.id, None)
            elif question.type == QuestionType.MULTIPLE_CHOICE:
                self._responses[question.id] = list(value) if isinstance(value, (list, tuple)) else [value]
            else:
                self._responses[question.id] = value

            if question.allow_other and not self._selects_other(question):
                self._other_text.pop(other_key(question.id), None)

            result = self._accept()

        self._save_draft()
        return result

    def set_other_text(self, text: str | None) -> TransitionResult:
        """
        Update the free-text companion of an "other" option.

        Non-empty text selects "other" if it is not already selected.
        """
        with self._lock:
            blocked = self._blocked()
            if blocked:
                return blocked

            question = self.current_question
            if not question.allow_other:
                return self._reject(Rejection.INVALID_OPTION, "question has no 'other' option")

            key = other_key(question.id)
            if text:
                self._other_text[key] = text
                if question.type == QuestionType.MULTIPLE_CHOICE:
                    selected = list(self._responses.get(question.id) or [])
                    if OTHER_VALUE not in selected:
                        selected.append(OTHER_VALUE)
                    self._responses[question.id] = selected
                else:
                    self._responses[question.id] = OTHER_VALUE
            else:
                self._other_text.pop(key, None)

            result = self._accept()

        self._save_draft()
        return result

    def next(self) -> TransitionResult:
        """Advance, or finish the session when on the last question."""
        with self._lock:
            blocked = self._blocked()
            if blocked:
                return blocked

            question = self.current_question
            if question.required and not self.is_answered(question):
                logger.debug("Next blocked: %s is required and unanswered.", question.id)
                return self._reject(Rejection.REQUIRED_UNANSWERED, question.id)

            self._record_elapsed(question)
            if self.is_last_question:
                payload = self._begin_submission()
            else:
                self._move_to(self._current_index + 1)
                payload = None
                result = self._accept()

        if payload is not None:
            return self._submit(payload)
        self._save_draft()
        return result

    def skip(self) -> TransitionResult:
        """Move past an optional, non-final question without answering it."""
        with self._lock:
            blocked = self._blocked()
            if blocked:
                return blocked
            if not self.can_skip():
                return self._reject(Rejection.NOT_SKIPPABLE, self.current_question.id)

            self._record_elapsed(self.current_question)
            self._move_to(self._current_index + 1)
            result = self._accept()

        self._save_draft()
        return result

    def back(self) -> TransitionResult:
        """Go to the previous question. Never touches the response buffer."""
        with self._lock:
            blocked = self._blocked()
            if blocked:
                return blocked
            if self._current_index > 0:
                self._record_elapsed(self.current_question)
                self._move_to(self._current_index - 1)
            result = self._accept()

        self._save_draft()
        return result

    # ── Internals ────────────────────────────────────────────────────────────

    def _blocked(self) -> TransitionResult | None:
        if self._state == FlowState.SUBMITTING:
            return self._reject(Rejection.BUSY)
        if self._state == FlowState.COMPLETED:
            return self._reject(Rejection.COMPLETED)
        return None

    def _accept(self, payload: dict[str, Any] | None = None) -> TransitionResult:
        return TransitionResult(True, self._state, self._current_index, payload=payload)

    def _reject(self, rejection: Rejection, detail: str | None = None) -> TransitionResult:
        return TransitionResult(False, self._state, self._current_index, rejection, detail)

    def _selects_other(self, question: Question) -> bool:
        value = self._responses.get(question.id)
        if isinstance(value, list):
            return OTHER_VALUE in value
        return value == OTHER_VALUE

    def _move_to(self, index: int) -> None:
        self._current_index = index
        self._question_started = self._timer()

    def _record_elapsed(self, question: Question) -> None:
        elapsed_ms = (self._timer() - self._question_started) * 1000
        self._time_per_question[question.id] = round_half_up(elapsed_ms)

    def _begin_submission(self) -> dict[str, Any]:
        self._state = FlowState.SUBMITTING
        engagement_text = self._responses.get(self.engagement_question_id)
        return {
            **self._responses,
            **self._other_text,
            METADATA_KEY: {
                "session_id": self.session_id,
                "session_type": self.session_type.value,
                "channel": self.channel,
                "completion_time": round_half_up(self._timer() - self._session_started),
                "time_per_question": dict(self._time_per_question),
                "questions_answered": len(self._responses),
                "text_engagement_score": text_engagement_score(
                    engagement_text if isinstance(engagement_text, str) else None,
                    self.text_bonus,
                ),
                "is_follow_up": self.session_type != SessionType.INITIAL,
            },
        }

    def _submit(self, payload: dict[str, Any]) -> TransitionResult:
        # The sink runs outside the lock; any transition attempted meanwhile sees SUBMITTING
        try:
            self._on_complete(payload)
        except Exception as e:
            logger.warning("Session %s submission failed, back to last question: %s", self.session_id, e)
            with self._lock:
                self._state = FlowState.ANSWERING
                self._move_to(len(self.questions) - 1)
                return self._reject(Rejection.SUBMISSION_FAILED, str(e))

        with self._lock:
            self._state = FlowState.COMPLETED
            self.completed_at = self._clock()
            result = self._accept(payload)

        logger.info(
            "Session %s (%s) completed for lead %s: %d answers.",
            self.session_id, self.session_type.value, self.lead_id, len(self._responses),
        )
        self._clear_draft()
        return result

    # ── Draft persistence (never fatal) ──────────────────────────────────────

    def _restore_draft(self, start_fresh: bool) -> None:
        if not self._draft_store or not self._draft_key:
            return
        if start_fresh:
            self._clear_draft()
            return
        try:
            snapshot = self._draft_store.load(self._draft_key)
        except Exception as e:
            logger.warning("Could not load draft %s, starting blank: %s", self._draft_key, e)
            return
        if snapshot is None:
            return

        self._responses.update(snapshot.data)
        self._other_text.update(snapshot.other_text)
        self._current_index = min(max(0, snapshot.current_index), len(self.questions) - 1)
        logger.info("Resumed draft %s at question %d.", self._draft_key, self._current_index)

    def _save_draft(self) -> None:
        if not self._draft_store or not self._draft_key:
            return
        try:
            self._draft_store.save(self._draft_key, self.snapshot())
        except Exception as e:
            logger.warning("Could not save draft %s: %s", self._draft_key, e)

    def _clear_draft(self) -> None:
        if not self._draft_store or not self._draft_key:
            return
        try:
            self._draft_store.clear(self._draft_key)
        except Exception as e:
            logger.warning("Could not clear draft %s: %s", self._draft_key, e)

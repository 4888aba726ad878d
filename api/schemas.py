"""
api/schemas.py — Pydantic request/response models for all API endpoints.

These are the API contract — separate from the domain and ORM models so we
can control exactly what data is exposed over HTTP.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from qualifier.catalog.models import LeadCategory, Question, QuestionType, SessionType
from qualifier.flow.controller import FlowState, QuestionnaireFlowController, Rejection, TransitionResult


# ── Shared ────────────────────────────────────────────────────────────────────

class OKResponse(BaseModel):
    """Generic success acknowledgement."""
    status: str = "ok"
    message: str


class OptionOut(BaseModel):
    value: str
    label: str

    model_config = {"from_attributes": True}


class QuestionOut(BaseModel):
    """A question as the client renders it. Option scores stay server-side."""
    id: str
    type: QuestionType
    question: str
    required: bool
    options: Optional[list[OptionOut]] = None
    allow_other: bool = False
    placeholder: Optional[str] = None
    max_length: Optional[int] = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_question(cls, question: Question) -> "QuestionOut":
        return cls.model_validate(question)


# ── Sessions ──────────────────────────────────────────────────────────────────

class SessionStartRequest(BaseModel):
    lead_id: str = Field(..., min_length=1)
    email: Optional[str] = None
    organization_id: Optional[str] = None
    session_type: SessionType = SessionType.INITIAL
    channel: str = "platform"
    start_fresh: bool = Field(default=False, description="Discard any saved draft")
    question_ids: Optional[list[str]] = Field(
        default=None,
        description="Ask only these questions (e.g. the ones a follow-up prompt picked)",
    )


class AnswerRequest(BaseModel):
    value: Any = None


class OtherTextRequest(BaseModel):
    text: Optional[str] = None


class SessionOut(BaseModel):
    id: str
    lead_id: str
    type: SessionType
    state: FlowState
    current_index: int
    total_questions: int
    progress: int
    can_skip: bool
    current_question: QuestionOut
    responses: dict[str, Any]
    other_text: dict[str, str]
    started_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def from_controller(cls, controller: QuestionnaireFlowController) -> "SessionOut":
        session = controller.session()
        return cls(
            id=session.id,
            lead_id=session.lead_id,
            type=session.type,
            state=controller.state,
            current_index=session.current_index,
            total_questions=len(controller.questions),
            progress=controller.progress(),
            can_skip=controller.can_skip(),
            current_question=QuestionOut.from_question(controller.current_question),
            responses=session.responses,
            other_text=controller.other_text,
            started_at=session.started_at,
            completed_at=session.completed_at,
        )


class TransitionOut(BaseModel):
    accepted: bool
    rejection: Optional[Rejection] = None
    detail: Optional[str] = None
    session: SessionOut

    @classmethod
    def from_result(cls, result: TransitionResult, controller: QuestionnaireFlowController) -> "TransitionOut":
        return cls(
            accepted=result.accepted,
            rejection=result.rejection,
            detail=result.detail,
            session=SessionOut.from_controller(controller),
        )


# ── Profiles ──────────────────────────────────────────────────────────────────

class ProfileOut(BaseModel):
    id: str
    email: Optional[str] = None
    profile_completeness: int
    lead_score: int
    lead_category: LeadCategory
    last_edit_at: Optional[datetime] = None
    last_questionnaire_at: Optional[datetime] = None
    snoozed_until: Optional[datetime] = None
    questionnaire_version: Optional[int] = None
    responses: dict[str, Any]
    section_completeness: dict[str, int]


class EditRequest(BaseModel):
    value: Any = None


class EditHistoryOut(BaseModel):
    question_id: str
    edited_at: datetime
    old_value: Any = None
    new_value: Any = None

    model_config = {"from_attributes": True}


class SessionRecordOut(BaseModel):
    id: str
    type: SessionType
    channel: str
    completion_time_seconds: Optional[float] = None
    completed_at: datetime

    model_config = {"from_attributes": True}


# ── Follow-up ─────────────────────────────────────────────────────────────────

class FollowUpOut(BaseModel):
    lead_id: str
    show: bool
    reason: Optional[str] = None
    session_type: Optional[SessionType] = None
    questions: list[QuestionOut] = Field(default_factory=list)
    optimal_delay_hours: int


class SnoozeRequest(BaseModel):
    hours: Optional[float] = Field(default=None, gt=0, description="Defaults to DEFAULT_SNOOZE_HOURS")


class TriggerOut(BaseModel):
    action: str
    questions: list[QuestionOut]

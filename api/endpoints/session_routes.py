"""
api/endpoints/session_routes.py — Routes that drive a questionnaire session.

POST /sessions                      — Start (or resume from draft) a session
GET  /sessions/{id}                 — Current state of a session
POST /sessions/{id}/answer          — Answer the current question
POST /sessions/{id}/other-text      — Set the "other" free text
POST /sessions/{id}/next            — Next, or Finish on the last question
POST /sessions/{id}/back            — Previous question
POST /sessions/{id}/skip            — Skip an optional question

Blocked transitions are not HTTP errors: they come back with accepted=false
and a rejection reason so the client can show it and let the user fix it.
A completed session is dropped from the registry; later lookups get 404.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException

from api.dependencies import SessionRegistry, get_draft_store, get_profile_service, get_registry
from api.schemas import (
    AnswerRequest,
    OtherTextRequest,
    SessionOut,
    SessionStartRequest,
    TransitionOut,
)
from qualifier.catalog.questionnaires import questions_for
from qualifier.config import settings
from qualifier.flow.controller import FlowState, QuestionnaireFlowController
from qualifier.flow.drafts import DraftStore, draft_key
from qualifier.flow.sinks import ProfileCompletionSink, WebhookCompletionSink, fan_out
from qualifier.services.profile_service import ProfileService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=SessionOut, status_code=201, summary="Start a questionnaire session")
def start_session(
    payload: SessionStartRequest,
    profiles: ProfileService = Depends(get_profile_service),
    drafts: DraftStore = Depends(get_draft_store),
    registry: SessionRegistry = Depends(get_registry),
):
    """
    Create a flow controller for the lead. A saved draft for the same
    lead/organization is resumed unless start_fresh is set.
    """
    if payload.question_ids:
        unknown = [qid for qid in payload.question_ids if qid not in profiles.questions]
        if unknown:
            raise HTTPException(status_code=422, detail=f"Unknown question ids: {unknown}")
        questions = [profiles.questions[qid] for qid in payload.question_ids]
    else:
        questions = list(questions_for(payload.session_type))

    key = draft_key(payload.lead_id, payload.organization_id, payload.session_type)
    sink = ProfileCompletionSink(profiles, payload.lead_id, payload.session_type, email=payload.email)
    if settings.completion_webhook_url:
        sink = fan_out(sink, WebhookCompletionSink())

    controller = QuestionnaireFlowController(
        questions,
        sink,
        lead_id=payload.lead_id,
        session_type=payload.session_type,
        channel=payload.channel,
        draft_store=drafts,
        draft_key=key,
        start_fresh=payload.start_fresh,
        text_bonus=profiles.scoring_config.text_engagement_bonus,
    )
    registry.add(controller, key=key)
    logger.info(
        "Session %s started for lead %s (%s, %d questions).",
        controller.session_id, payload.lead_id, payload.session_type.value, len(controller.questions),
    )
    return SessionOut.from_controller(controller)


@router.get("/{session_id}", response_model=SessionOut, summary="Get session state")
def get_session_state(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    return SessionOut.from_controller(registry.get(session_id))


@router.post("/{session_id}/answer", response_model=TransitionOut, summary="Answer the current question")
def answer(session_id: str, payload: AnswerRequest, registry: SessionRegistry = Depends(get_registry)):
    controller = registry.get(session_id)
    return TransitionOut.from_result(controller.answer(payload.value), controller)


@router.post("/{session_id}/other-text", response_model=TransitionOut, summary="Set 'other' free text")
def other_text(session_id: str, payload: OtherTextRequest, registry: SessionRegistry = Depends(get_registry)):
    controller = registry.get(session_id)
    return TransitionOut.from_result(controller.set_other_text(payload.text), controller)


@router.post("/{session_id}/next", response_model=TransitionOut, summary="Next question or finish")
def next_question(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    controller = registry.get(session_id)
    result = TransitionOut.from_result(controller.next(), controller)
    if controller.state == FlowState.COMPLETED:
        registry.remove(session_id)
    return result


@router.post("/{session_id}/back", response_model=TransitionOut, summary="Previous question")
def previous_question(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    controller = registry.get(session_id)
    return TransitionOut.from_result(controller.back(), controller)


@router.post("/{session_id}/skip", response_model=TransitionOut, summary="Skip an optional question")
def skip_question(session_id: str, registry: SessionRegistry = Depends(get_registry)):
    controller = registry.get(session_id)
    return TransitionOut.from_result(controller.skip(), controller)

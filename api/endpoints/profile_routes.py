"""
api/endpoints/profile_routes.py — Lead profile read model and answer edits.

GET  /profiles/{lead_id}                          — Score, category, completeness, answers
GET  /profiles/{lead_id}/history                  — Edit log (optionally ?question_id=)
GET  /profiles/{lead_id}/sessions                 — Completed questionnaire passes
PUT  /profiles/{lead_id}/responses/{question_id}  — Edit one answer

LeadNotFoundError → 404 and InvalidResponseError → 422 are mapped in api/main.py.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_profile_service
from api.schemas import EditHistoryOut, EditRequest, ProfileOut, SessionRecordOut
from qualifier.catalog.questionnaires import DEFAULT_QUESTIONNAIRE, FOLLOW_UP_SETS
from qualifier.services.profile_service import ProfileService
from qualifier.services.scoring import section_completeness

logger = logging.getLogger(__name__)
router = APIRouter()

SECTIONS = {
    "initial": DEFAULT_QUESTIONNAIRE.questions,
    **{session_type.value: questions for session_type, questions in FOLLOW_UP_SETS.items()},
}


@router.get("/{lead_id}", response_model=ProfileOut, summary="Get lead profile")
def get_profile(lead_id: str, profiles: ProfileService = Depends(get_profile_service)):
    profile = profiles.get_profile(lead_id)
    responses = profile.merged_responses
    return ProfileOut(
        id=profile.id,
        email=profile.email,
        profile_completeness=profile.profile_completeness,
        lead_score=profile.lead_score,
        lead_category=profile.lead_category,
        last_edit_at=profile.last_edit_at,
        last_questionnaire_at=profile.last_questionnaire_at,
        snoozed_until=profile.snoozed_until,
        questionnaire_version=profile.questionnaire_version,
        responses=responses,
        section_completeness={
            name: section_completeness(responses, questions) for name, questions in SECTIONS.items()
        },
    )


@router.get("/{lead_id}/history", response_model=list[EditHistoryOut], summary="Edit history")
def get_history(
    lead_id: str,
    question_id: Optional[str] = Query(default=None, description="Only edits to this question"),
    profiles: ProfileService = Depends(get_profile_service),
):
    profiles.get_profile(lead_id)
    return profiles.edit_history(lead_id, question_id)


@router.get("/{lead_id}/sessions", response_model=list[SessionRecordOut], summary="Questionnaire sessions")
def get_sessions(lead_id: str, profiles: ProfileService = Depends(get_profile_service)):
    return profiles.sessions(lead_id)


@router.put(
    "/{lead_id}/responses/{question_id}",
    response_model=EditHistoryOut,
    summary="Edit one answer",
)
def edit_response(
    lead_id: str,
    question_id: str,
    payload: EditRequest,
    profiles: ProfileService = Depends(get_profile_service),
):
    """Change an answer, log the edit and re-score the lead."""
    entry = profiles.edit_response(lead_id, question_id, payload.value)
    logger.info("Answer %s of lead %s edited via API.", question_id, lead_id)
    return entry

"""
api/endpoints/followup_routes.py — Follow-up prompts.

GET  /follow-up/{lead_id}            — Should a prompt show now, and with which questions
POST /follow-up/{lead_id}/snooze     — Hide prompts for N hours
POST /follow-up/{lead_id}/dismiss    — Close the prompt without snoozing
GET  /follow-up/triggers/{action}    — Questions suggested by a user action
"""

import logging

from fastapi import APIRouter, Depends

from api.dependencies import get_profile_service, get_scheduler
from api.schemas import FollowUpOut, OKResponse, QuestionOut, SnoozeRequest, TriggerOut
from qualifier.services.followup import FollowUpScheduler
from qualifier.services.profile_service import ProfileService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/triggers/{action}", response_model=TriggerOut, summary="Questions for a user action")
def behavioral_trigger(action: str, scheduler: FollowUpScheduler = Depends(get_scheduler)):
    questions = scheduler.behavioral_triggers(action)
    return TriggerOut(action=action, questions=[QuestionOut.from_question(q) for q in questions])


@router.get("/{lead_id}", response_model=FollowUpOut, summary="Evaluate follow-up prompt")
def evaluate(
    lead_id: str,
    profiles: ProfileService = Depends(get_profile_service),
    scheduler: FollowUpScheduler = Depends(get_scheduler),
):
    profile = profiles.get_profile(lead_id)
    delay = scheduler.optimal_delay_hours(profile.lead_category)
    reason = scheduler.suppression_reason(profile)
    prompt = None if reason else scheduler.evaluate(profile)
    if prompt is None:
        return FollowUpOut(
            lead_id=lead_id,
            show=False,
            reason=reason or "nothing_to_ask",
            optimal_delay_hours=delay,
        )
    return FollowUpOut(
        lead_id=lead_id,
        show=True,
        session_type=prompt.session_type,
        questions=[QuestionOut.from_question(q) for q in prompt.questions],
        optimal_delay_hours=delay,
    )


@router.post("/{lead_id}/snooze", response_model=OKResponse, summary="Snooze follow-up prompts")
def snooze(
    lead_id: str,
    payload: SnoozeRequest,
    profiles: ProfileService = Depends(get_profile_service),
):
    profile = profiles.snooze(lead_id, payload.hours)
    return OKResponse(message=f"Follow-ups snoozed until {profile.snoozed_until.isoformat()}.")


@router.post("/{lead_id}/dismiss", response_model=OKResponse, summary="Dismiss the prompt")
def dismiss(lead_id: str, profiles: ProfileService = Depends(get_profile_service)):
    profiles.dismiss(lead_id)
    return OKResponse(message="Prompt dismissed.")

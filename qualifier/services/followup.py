"""
qualifier/services/followup.py — Follow-up scheduler.

Decides whether a lead should see a follow-up prompt, which question set it
is drawn from and which (at most `max_questions_per_session`) questions it
contains. Pure decisions over a LeadProfile; persisting a snooze is the
profile service's job.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Iterable

from qualifier.catalog.models import LeadCategory, Question, SessionType, Thresholds
from qualifier.catalog.questionnaires import (
    DEFAULT_QUESTIONNAIRE,
    FOLLOW_UP_QUESTIONS,
    FOLLOW_UP_SETS,
    QUALIFIED_LEAD_FOLLOW_UP,
)
from qualifier.config import settings
from qualifier.services.profile_service import LeadProfile
from qualifier.utils import utcnow

logger = logging.getLogger(__name__)

# Questions sales cares about most come first in a prompt
QUESTION_PRIORITY: tuple[str, ...] = (
    "security_budget",
    "decision_capacity",
    "role",
    "it_team",
    "sector",
    "critical_systems",
    "sensitive_data",
    "mfa_status",
    "backup_status",
    "incident_plan",
    "security_training",
    "third_parties",
    "previous_audits",
    "cyber_insurance",
    "critical_users",
)

INFO_SEEKER_QUESTION_IDS = ("role", "sector")

MIN_DAYS_SINCE_CREATION = {
    LeadCategory.A1: 2,
    LeadCategory.B1: 3,
    LeadCategory.C1: 7,
    LeadCategory.D1: 14,
}
COOLDOWN_HOURS = {
    LeadCategory.A1: 48,
    LeadCategory.B1: 72,
    LeadCategory.C1: 120,
    LeadCategory.D1: 168,
}
OPTIMAL_DELAY_HOURS = {
    LeadCategory.A1: 4,
    LeadCategory.B1: 24,
    LeadCategory.C1: 72,
    LeadCategory.D1: 168,
}
DEFAULT_MIN_DAYS = 3
DEFAULT_COOLDOWN_HOURS = 72
DEFAULT_DELAY_HOURS = 48

COMPLETE_ENOUGH = 90          # completeness at which we stop asking
INFO_SEEKER_MIN_COMPLETENESS = 20

BEHAVIORAL_TRIGGERS: dict[str, tuple[str, ...]] = {
    "viewed_pricing": ("security_budget", "decision_capacity"),
    "completed_assessment": ("implementation_timeline", "it_team"),
    "downloaded_resource": ("role", "sector"),
    "viewed_compliance_page": ("compliance", "sensitive_data"),
    "reported_incident": ("incident_plan", "security_training"),
}


@dataclass(frozen=True)
class FollowUpPrompt:
    lead_id: str
    session_type: SessionType
    questions: tuple[Question, ...]

    @property
    def question_ids(self) -> list[str]:
        return [q.id for q in self.questions]


class FollowUpScheduler:
    """
    Args:
        max_questions_per_session: Upper bound on questions in one prompt
                                   (defaults to settings.follow_up_max_questions).
        thresholds:                Score cut-offs used to pick the question set.
        clock:                     Wall clock; injected so tests control time.
    """

    def __init__(
        self,
        max_questions_per_session: int | None = None,
        thresholds: Thresholds | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.max_questions_per_session = (
            max_questions_per_session
            if max_questions_per_session is not None
            else settings.follow_up_max_questions
        )
        self.thresholds = thresholds or DEFAULT_QUESTIONNAIRE.scoring.thresholds
        self._clock = clock

    # ── Question selection ───────────────────────────────────────────────────

    def select_question_set(
        self,
        score: int | None = None,
        category: LeadCategory | None = None,
    ) -> tuple[SessionType, tuple[Question, ...]]:
        """Pick the follow-up set for a lead by score, falling back to its category."""
        score = -1 if score is None else score
        if score >= self.thresholds.A1 or category == LeadCategory.A1:
            session_type = SessionType.FOLLOW_UP_QUALIFIED
        elif score >= self.thresholds.B1 or category == LeadCategory.B1:
            session_type = SessionType.TECHNICAL_ASSESSMENT
        elif score >= self.thresholds.C1 or category == LeadCategory.C1:
            session_type = SessionType.COMPLIANCE_DEEP_DIVE
        else:
            # Info seekers only get the two cheapest questions
            questions = tuple(q for q in QUALIFIED_LEAD_FOLLOW_UP if q.id in INFO_SEEKER_QUESTION_IDS)
            return SessionType.FOLLOW_UP_QUALIFIED, questions
        return session_type, FOLLOW_UP_SETS[session_type]

    @staticmethod
    def prioritize(questions: Iterable[Question]) -> list[Question]:
        """Known priority ids first (in priority order), then required before optional."""

        def _key(question: Question) -> tuple[int, int]:
            if question.id in QUESTION_PRIORITY:
                return (0, QUESTION_PRIORITY.index(question.id))
            return (1, 0 if question.required else 1)

        return sorted(questions, key=_key)

    def next_questions(
        self,
        profile: LeadProfile,
        candidates: Iterable[Question] | None = None,
    ) -> list[Question]:
        """Unanswered candidates, prioritized and cut to the per-session maximum."""
        if candidates is None:
            _, candidates = self.select_question_set(profile.lead_score, profile.lead_category)
        answered = profile.merged_responses
        pending = [q for q in candidates if q.id not in answered]
        return self.prioritize(pending)[: self.max_questions_per_session]

    # ── Timing ───────────────────────────────────────────────────────────────

    def suppression_reason(self, profile: LeadProfile) -> str | None:
        """Why a prompt must not be shown right now, or None if it may be."""
        now = self._clock()
        category = profile.lead_category

        if profile.snoozed_until is not None and profile.snoozed_until > now:
            return "snoozed"
        if profile.profile_completeness >= COMPLETE_ENOUGH:
            return "complete"
        if profile.created_at is not None:
            min_days = MIN_DAYS_SINCE_CREATION.get(category, DEFAULT_MIN_DAYS)
            if now - profile.created_at < timedelta(days=min_days):
                return "too_new"
        if profile.last_questionnaire_at is not None:
            cooldown = COOLDOWN_HOURS.get(category, DEFAULT_COOLDOWN_HOURS)
            if now - profile.last_questionnaire_at < timedelta(hours=cooldown):
                return "cooldown"
        if category == LeadCategory.D1 and profile.profile_completeness < INFO_SEEKER_MIN_COMPLETENESS:
            return "low_engagement"
        return None

    def should_show(self, profile: LeadProfile) -> bool:
        return self.suppression_reason(profile) is None

    @staticmethod
    def optimal_delay_hours(category: LeadCategory | None) -> int:
        """Hours to wait after a questionnaire before sending a follow-up."""
        return OPTIMAL_DELAY_HOURS.get(category, DEFAULT_DELAY_HOURS)

    # ── Decisions ────────────────────────────────────────────────────────────

    def evaluate(
        self,
        profile: LeadProfile,
        candidates: Iterable[Question] | None = None,
    ) -> FollowUpPrompt | None:
        """Build the prompt to show now, if any."""
        reason = self.suppression_reason(profile)
        if reason:
            logger.debug("No follow-up for lead %s: %s", profile.id, reason)
            return None

        session_type, default_candidates = self.select_question_set(
            profile.lead_score, profile.lead_category
        )
        questions = self.next_questions(
            profile, default_candidates if candidates is None else candidates
        )
        if not questions:
            logger.debug("No follow-up for lead %s: nothing left to ask", profile.id)
            return None

        logger.info(
            "Follow-up for lead %s (%s): %s",
            profile.id, session_type.value, [q.id for q in questions],
        )
        return FollowUpPrompt(lead_id=profile.id, session_type=session_type, questions=tuple(questions))

    def snooze(self, profile: LeadProfile, hours: float | None = None) -> LeadProfile:
        """Copy of `profile` with snoozed_until = now + hours."""
        hours = settings.default_snooze_hours if hours is None else hours
        return profile.model_copy(update={"snoozed_until": self._clock() + timedelta(hours=hours)})

    @staticmethod
    def behavioral_triggers(action: str) -> list[Question]:
        """Questions worth asking after a user action (e.g. viewing pricing)."""
        catalog = {q.id: q for q in (*DEFAULT_QUESTIONNAIRE.questions, *FOLLOW_UP_QUESTIONS)}
        return [catalog[qid] for qid in BEHAVIORAL_TRIGGERS.get(action, ()) if qid in catalog]

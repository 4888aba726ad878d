"""
tests/test_followup.py — Unit tests for the follow-up scheduler.

Profiles are built in memory; the scheduler never touches the database.
"""

from datetime import timedelta

import pytest

from qualifier.catalog.models import LeadCategory, SessionType
from qualifier.catalog.questionnaires import COMPLIANCE_DEEP_DIVE, QUALIFIED_LEAD_FOLLOW_UP
from qualifier.services.followup import FollowUpScheduler
from qualifier.services.profile_service import LeadProfile


@pytest.fixture
def scheduler(clock):
    return FollowUpScheduler(max_questions_per_session=2, clock=clock)


@pytest.fixture
def hot_lead(clock):
    """An A1 lead that is old enough and out of cooldown."""
    return LeadProfile(
        id="lead-hot",
        initial_responses={"recent_incidents": "urgent"},
        profile_completeness=30,
        lead_score=85,
        lead_category=LeadCategory.A1,
        created_at=clock.now - timedelta(days=10),
        last_questionnaire_at=clock.now - timedelta(hours=49),
    )


# ── Question selection ───────────────────────────────────────────────────────

class TestSelectQuestionSet:
    @pytest.mark.parametrize(
        "score, expected",
        [
            (85, SessionType.FOLLOW_UP_QUALIFIED),
            (80, SessionType.FOLLOW_UP_QUALIFIED),
            (60, SessionType.TECHNICAL_ASSESSMENT),
            (35, SessionType.COMPLIANCE_DEEP_DIVE),
        ],
    )
    def test_by_score(self, scheduler, score, expected):
        session_type, questions = scheduler.select_question_set(score)
        assert session_type == expected
        assert questions

    def test_category_used_when_score_is_low(self, scheduler):
        session_type, _ = scheduler.select_question_set(10, LeadCategory.B1)
        assert session_type == SessionType.TECHNICAL_ASSESSMENT

    def test_info_seeker_gets_role_and_sector_only(self, scheduler):
        session_type, questions = scheduler.select_question_set(10, LeadCategory.D1)
        assert session_type == SessionType.FOLLOW_UP_QUALIFIED
        assert sorted(q.id for q in questions) == ["role", "sector"]

    def test_prioritize(self, scheduler):
        ordered = scheduler.prioritize(QUALIFIED_LEAD_FOLLOW_UP)
        assert [q.id for q in ordered] == [
            "security_budget",
            "decision_capacity",
            "role",
            "it_team",
            "sector",
        ]

    def test_unlisted_questions_go_last_required_first(self, scheduler, three_questions):
        ordered = scheduler.prioritize([*three_questions[1:], COMPLIANCE_DEEP_DIVE[0], three_questions[0]])
        assert [q.id for q in ordered] == ["sensitive_data", "q1", "q2", "q3"]


class TestNextQuestions:
    def test_capped_at_max(self, scheduler, hot_lead):
        questions = scheduler.next_questions(hot_lead)
        assert [q.id for q in questions] == ["security_budget", "decision_capacity"]

    def test_already_answered_follow_ups_are_not_reshown(self, scheduler, hot_lead):
        hot_lead.follow_up_responses = {"security_budget": "50k+", "decision_capacity": "final"}
        questions = scheduler.next_questions(hot_lead)
        assert [q.id for q in questions] == ["role", "it_team"]

    def test_never_more_than_max(self, clock, hot_lead):
        scheduler = FollowUpScheduler(max_questions_per_session=1, clock=clock)
        assert len(scheduler.next_questions(hot_lead)) == 1

    def test_default_max_from_settings(self):
        assert FollowUpScheduler().max_questions_per_session == 2


# ── Timing rules ─────────────────────────────────────────────────────────────

class TestShouldShow:
    def test_eligible_lead(self, scheduler, hot_lead):
        assert scheduler.should_show(hot_lead)

    def test_snoozed(self, scheduler, hot_lead, clock):
        hot_lead.snoozed_until = clock.now + timedelta(hours=1)
        assert scheduler.suppression_reason(hot_lead) == "snoozed"

    def test_expired_snooze(self, scheduler, hot_lead, clock):
        hot_lead.snoozed_until = clock.now - timedelta(seconds=1)
        assert scheduler.should_show(hot_lead)

    def test_complete_profile(self, scheduler, hot_lead):
        hot_lead.profile_completeness = 90
        assert scheduler.suppression_reason(hot_lead) == "complete"

    def test_too_new(self, scheduler, hot_lead, clock):
        hot_lead.created_at = clock.now - timedelta(days=1)
        assert scheduler.suppression_reason(hot_lead) == "too_new"

    def test_cooldown(self, scheduler, hot_lead, clock):
        hot_lead.last_questionnaire_at = clock.now - timedelta(hours=47)
        assert scheduler.suppression_reason(hot_lead) == "cooldown"

    def test_cooldown_depends_on_category(self, scheduler, hot_lead, clock):
        hot_lead.lead_category = LeadCategory.C1
        hot_lead.lead_score = 35
        hot_lead.last_questionnaire_at = clock.now - timedelta(hours=100)
        assert scheduler.suppression_reason(hot_lead) == "cooldown"

    def test_info_seeker_with_low_completeness(self, scheduler, hot_lead, clock):
        hot_lead.lead_category = LeadCategory.D1
        hot_lead.lead_score = 10
        hot_lead.profile_completeness = 15
        hot_lead.created_at = clock.now - timedelta(days=30)
        hot_lead.last_questionnaire_at = clock.now - timedelta(days=8)
        assert scheduler.suppression_reason(hot_lead) == "low_engagement"


class TestEvaluate:
    def test_prompt(self, scheduler, hot_lead):
        prompt = scheduler.evaluate(hot_lead)
        assert prompt.lead_id == "lead-hot"
        assert prompt.session_type == SessionType.FOLLOW_UP_QUALIFIED
        assert prompt.question_ids == ["security_budget", "decision_capacity"]

    def test_nothing_left_to_ask(self, scheduler, hot_lead):
        hot_lead.follow_up_responses = {q.id: "x" for q in QUALIFIED_LEAD_FOLLOW_UP}
        assert scheduler.evaluate(hot_lead) is None

    def test_snooze_hides_prompt(self, scheduler, hot_lead, clock):
        snoozed = scheduler.snooze(hot_lead, 5)
        assert snoozed.snoozed_until == clock.now + timedelta(hours=5)
        assert hot_lead.snoozed_until is None
        assert scheduler.evaluate(snoozed) is None

        clock.advance(hours=5, seconds=1)
        assert scheduler.evaluate(snoozed) is not None

    def test_default_snooze(self, scheduler, hot_lead, clock):
        assert scheduler.snooze(hot_lead).snoozed_until == clock.now + timedelta(hours=24)


class TestDelaysAndTriggers:
    @pytest.mark.parametrize(
        "category, hours",
        [(LeadCategory.A1, 4), (LeadCategory.B1, 24), (LeadCategory.C1, 72), (LeadCategory.D1, 168), (None, 48)],
    )
    def test_optimal_delay(self, category, hours):
        assert FollowUpScheduler.optimal_delay_hours(category) == hours

    def test_pricing_trigger(self):
        ids = [q.id for q in FollowUpScheduler.behavioral_triggers("viewed_pricing")]
        assert ids == ["security_budget", "decision_capacity"]

    def test_trigger_can_point_at_initial_questions(self):
        ids = [q.id for q in FollowUpScheduler.behavioral_triggers("completed_assessment")]
        assert ids == ["implementation_timeline", "it_team"]

    def test_unknown_action(self):
        assert FollowUpScheduler.behavioral_triggers("clicked_logo") == []

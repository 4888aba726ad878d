"""
qualifier/services/scoring.py — Lead scoring engine.

Pure functions, no state and no I/O:
  text_engagement_score(text)                    → int in [0, 50]
  lead_score(responses, config, text_score)      → int
  lead_category(score, thresholds)               → LeadCategory
  profile_completeness(initial, follow_up, n)    → int in [0, 100]

Called by the flow controller (finalization metadata) and by the profile
service whenever an answer changes.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from qualifier.catalog.answers import MultipleChoice, SingleChoice, Text, to_answer
from qualifier.catalog.models import (
    LeadCategory,
    Question,
    ScoringConfig,
    TextEngagementBonus,
    Thresholds,
    thresholds_value,
)
from qualifier.utils import round_half_up

logger = logging.getLogger(__name__)

POINTS_PER_SELECTION = 5


@dataclass
class ScoreBreakdown:
    score: int
    category: LeadCategory
    text_engagement_score: int
    components: dict[str, float] = field(default_factory=dict)


# ── Text engagement ──────────────────────────────────────────────────────────

def text_engagement_score(text: str | None, bonus: TextEngagementBonus | None = None) -> int:
    """
    Heuristic for how much effort a lead put into a free-text answer.

    Base points for writing anything, a bonus past 50 and again past 200
    characters, plus points for each keyword that appears (case-insensitive,
    each keyword counted at most once). Capped at `bonus.max_score`.
    """
    if not text:
        return 0

    bonus = bonus or TextEngagementBonus()
    score = bonus.has_text
    if len(text) > 50:
        score += bonus.over_50_chars
    if len(text) > 200:
        score += bonus.over_200_chars

    lowered = text.lower()
    for keyword, points in bonus.keywords.items():
        if keyword.lower() in lowered:
            score += points

    return max(0, min(score, bonus.max_score))


# ── Lead score ───────────────────────────────────────────────────────────────

def _raw_question_score(question: Question, raw: Any, text_score: int) -> float:
    answer = to_answer(question, raw)
    match answer:
        case None:
            return 0
        case SingleChoice(value=value):
            option = question.option(value)
            return option.score if option and option.score else 0
        case MultipleChoice(values=values):
            return POINTS_PER_SELECTION * len(values)
        case Text():
            return text_score


def component_totals(
    responses: Mapping[str, Any],
    config: ScoringConfig,
    text_engagement_score: int = 0,
) -> dict[str, float]:
    """
    Accumulate raw × weight into per-component totals.

    Iteration follows the config's question order, so the result does not
    depend on the key order of `responses`. Responses for ids the config does
    not know contribute nothing.
    """
    totals: dict[str, float] = {name: 0.0 for name in config.components}

    for question in config.questions:
        if question.id not in responses or not question.scoring_weight:
            continue
        raw = _raw_question_score(question, responses[question.id], text_engagement_score)
        if not raw:
            continue
        for component, weight in question.scoring_weight.items():
            totals[component] = totals.get(component, 0.0) + raw * weight
        logger.debug("Scored %s: raw=%s weights=%s", question.id, raw, question.scoring_weight)

    return totals


def lead_score(
    responses: Mapping[str, Any],
    config: ScoringConfig,
    text_engagement_score: int = 0,
) -> int:
    """
    Weighted lead score.

    Per question: single choice → the chosen option's score, multiple choice →
    5 per selected value, free text → `text_engagement_score`. Each raw score
    is spread over the question's components by `scoring_weight`; the final
    score is Σ component_total × global component weight, rounded.
    """
    totals = component_totals(responses, config, text_engagement_score)
    weighted = sum(total * config.components.get(name, 0.0) for name, total in totals.items())
    return round_half_up(weighted)


def lead_category(score: float, thresholds: Thresholds | Mapping[str, float]) -> LeadCategory:
    """Map a score onto A1/B1/C1/D1, checking the highest tier first."""
    if score >= thresholds_value(thresholds, "A1"):
        return LeadCategory.A1
    if score >= thresholds_value(thresholds, "B1"):
        return LeadCategory.B1
    if score >= thresholds_value(thresholds, "C1"):
        return LeadCategory.C1
    return LeadCategory.D1


def score_breakdown(
    responses: Mapping[str, Any],
    config: ScoringConfig,
    engagement_question_id: str | None = None,
) -> ScoreBreakdown:
    """Score, category and component totals in one pass, deriving the text score from `responses`."""
    text_value = responses.get(engagement_question_id) if engagement_question_id else None
    text_score = text_engagement_score(
        text_value if isinstance(text_value, str) else None,
        config.text_engagement_bonus,
    )
    totals = component_totals(responses, config, text_score)
    score = round_half_up(
        sum(total * config.components.get(name, 0.0) for name, total in totals.items())
    )
    return ScoreBreakdown(
        score=score,
        category=lead_category(score, config.thresholds),
        text_engagement_score=text_score,
        components=totals,
    )


# ── Completeness ─────────────────────────────────────────────────────────────

def profile_completeness(
    initial_responses: Mapping[str, Any] | None,
    follow_up_responses: Mapping[str, Any] | None,
    total_questions: int,
) -> int:
    """
    Percentage of catalog questions answered across both response maps.

    A key counts as answered by existence, even when its value is empty.
    """
    if total_questions <= 0:
        return 0
    answered = set(initial_responses or {}) | set(follow_up_responses or {})
    return min(100, round_half_up(len(answered) / total_questions * 100))


def section_completeness(responses: Mapping[str, Any], questions: Iterable[Question]) -> int:
    """Share of one question group that has an answer, for grouped profile views."""
    questions = list(questions)
    if not questions:
        return 0
    answered = sum(1 for q in questions if q.id in responses)
    return round_half_up(answered / len(questions) * 100)

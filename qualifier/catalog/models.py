"""
qualifier/catalog/models.py — Pydantic models for questions and scoring configuration.

These are immutable snapshots: a session or a scoring pass receives them by
value and never mutates them. Validation happens once, when a config is built.
"""

import enum
from typing import Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator


# ── Enums ────────────────────────────────────────────────────────────────────

class QuestionType(str, enum.Enum):
    SINGLE_CHOICE = "single_choice"
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT = "text"
    TEXT_AREA = "text_area"


class Component(str, enum.Enum):
    URGENCY = "urgency"
    BUDGET = "budget"
    FIT = "fit"
    ENGAGEMENT = "engagement"
    DECISION = "decision"


COMPONENTS: frozenset[str] = frozenset(c.value for c in Component)

OTHER_VALUE = "other"


class LeadCategory(str, enum.Enum):
    A1 = "A1"   # hot, contact immediately
    B1 = "B1"   # warm, contact within 24h
    C1 = "C1"   # cold, nurturing
    D1 = "D1"   # info seeker


class SessionType(str, enum.Enum):
    INITIAL = "initial"
    FOLLOW_UP_QUALIFIED = "follow_up_qualified"
    TECHNICAL_ASSESSMENT = "technical_assessment"
    COMPLIANCE_DEEP_DIVE = "compliance_deep_dive"


# ── Questions ────────────────────────────────────────────────────────────────

class QuestionOption(BaseModel):
    model_config = ConfigDict(frozen=True)

    value: str
    label: str
    score: float | None = None
    service: str | None = None              # service this answer points sales at


class Question(BaseModel):
    """A single catalog entry. Read-only to everything in this package."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    type: QuestionType
    question: str = ""
    required: bool = False
    options: tuple[QuestionOption, ...] | None = None
    allow_other: bool = False
    scoring_weight: dict[str, float] = Field(default_factory=dict)
    placeholder: str | None = None
    max_length: int | None = Field(default=None, alias="maxLength")

    @model_validator(mode="after")
    def _check_definition(self) -> "Question":
        if self.is_choice and not self.options:
            raise ValueError(f"Choice question {self.id!r} needs at least one option.")
        unknown = set(self.scoring_weight) - COMPONENTS
        if unknown:
            raise ValueError(
                f"Question {self.id!r} weights unknown components: {sorted(unknown)}"
            )
        return self

    @property
    def is_choice(self) -> bool:
        return self.type in (QuestionType.SINGLE_CHOICE, QuestionType.MULTIPLE_CHOICE)

    @property
    def is_text(self) -> bool:
        return self.type in (QuestionType.TEXT, QuestionType.TEXT_AREA)

    def option(self, value: str) -> QuestionOption | None:
        for opt in self.options or ():
            if opt.value == value:
                return opt
        return None

    def option_values(self) -> set[str]:
        return {opt.value for opt in self.options or ()}


# ── Scoring configuration ────────────────────────────────────────────────────

DEFAULT_ENGAGEMENT_KEYWORDS: dict[str, int] = {
    "urgente": 10,
    "inmediato": 10,
    "hackeado": 15,
    "nis-2": 10,
    "nis2": 10,
    "iso": 5,
    "27001": 5,
    "gdpr": 5,
    "rgpd": 5,
    "auditoría": 8,
    "pentest": 8,
    "incidente": 10,
}


class Thresholds(BaseModel):
    model_config = ConfigDict(frozen=True)

    A1: float = 80
    B1: float = 55
    C1: float = 30
    D1: float = 0

    def is_ordered(self) -> bool:
        return self.A1 >= self.B1 >= self.C1 >= self.D1


class TextEngagementBonus(BaseModel):
    model_config = ConfigDict(frozen=True)

    has_text: int = 10
    over_50_chars: int = 5
    over_200_chars: int = 5
    max_score: int = 50
    keywords: dict[str, int] = Field(default_factory=lambda: dict(DEFAULT_ENGAGEMENT_KEYWORDS))


class ScoringRules(BaseModel):
    """Thresholds, global component weights and the free-text bonus table."""

    model_config = ConfigDict(frozen=True)

    thresholds: Thresholds = Field(default_factory=Thresholds)
    components: dict[str, float] = Field(
        default_factory=lambda: {c.value: 1.0 for c in Component}
    )
    text_engagement_bonus: TextEngagementBonus = Field(default_factory=TextEngagementBonus)

    @model_validator(mode="after")
    def _check_rules(self) -> "ScoringRules":
        unknown = set(self.components) - COMPONENTS
        if unknown:
            raise ValueError(f"Unknown scoring components: {sorted(unknown)}")
        if not self.thresholds.is_ordered():
            raise ValueError(
                "Category thresholds must satisfy A1 >= B1 >= C1 >= D1, got "
                f"{self.thresholds.model_dump()}"
            )
        return self


class ScoringConfig(ScoringRules):
    """Everything the scoring engine needs: the scored questions plus the rules."""

    questions: tuple[Question, ...] = ()

    def question_map(self) -> dict[str, Question]:
        return {q.id: q for q in self.questions}


class QuestionnaireConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: int = 1
    questions: tuple[Question, ...]
    scoring: ScoringRules = Field(default_factory=ScoringRules)

    def scoring_config(self, extra_questions: tuple[Question, ...] | list[Question] = ()) -> ScoringConfig:
        """
        Build a ScoringConfig over this questionnaire plus any extra questions
        (e.g. follow-up sets). The first definition of an id wins.
        """
        seen: dict[str, Question] = {}
        for q in (*self.questions, *extra_questions):
            seen.setdefault(q.id, q)
        return ScoringConfig(
            questions=tuple(seen.values()),
            thresholds=self.scoring.thresholds,
            components=self.scoring.components,
            text_engagement_bonus=self.scoring.text_engagement_bonus,
        )


def thresholds_value(thresholds: Thresholds | Mapping[str, float], name: str) -> float:
    """Read a threshold from either a Thresholds model or a plain mapping."""
    if isinstance(thresholds, Thresholds):
        return getattr(thresholds, name)
    return thresholds[name]

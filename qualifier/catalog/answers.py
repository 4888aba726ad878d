"""
qualifier/catalog/answers.py — Tagged answer variants.

Raw response maps hold JSON-ish values (str / list[str]). Scoring and
validation convert them into one of three variants, selected by the
question type, and then dispatch on the variant.
"""

from dataclasses import dataclass
from typing import Any

from qualifier.catalog.models import OTHER_VALUE, Question, QuestionType
from qualifier.utils import is_empty_value


@dataclass(frozen=True)
class SingleChoice:
    value: str


@dataclass(frozen=True)
class MultipleChoice:
    values: tuple[str, ...]


@dataclass(frozen=True)
class Text:
    text: str


Answer = SingleChoice | MultipleChoice | Text


def to_answer(question: Question, raw: Any) -> Answer | None:
    """Interpret a raw stored value for `question`. Returns None when unanswered."""
    if is_empty_value(raw):
        return None

    match question.type:
        case QuestionType.SINGLE_CHOICE:
            return SingleChoice(str(raw))
        case QuestionType.MULTIPLE_CHOICE:
            values = raw if isinstance(raw, (list, tuple)) else [raw]
            return MultipleChoice(tuple(str(v) for v in values))
        case QuestionType.TEXT | QuestionType.TEXT_AREA:
            return Text(str(raw))


def invalid_reason(question: Question, raw: Any) -> str | None:
    """
    Check a raw value against the question definition.

    Returns a human-readable reason when the value does not fit, None when it does.
    Empty values are always accepted here; required-ness is checked by callers.
    """
    answer = to_answer(question, raw)
    if answer is None:
        return None

    allowed = question.option_values()
    if question.allow_other:
        allowed.add(OTHER_VALUE)

    match answer:
        case SingleChoice(value=value):
            if isinstance(raw, (list, tuple, dict)):
                return "expected a single value"
            if value not in allowed:
                return f"{value!r} is not an option"
        case MultipleChoice(values=values):
            unknown = [v for v in values if v not in allowed]
            if unknown:
                return f"not options: {unknown}"
        case Text(text=text):
            if not isinstance(raw, str):
                return "expected text"
            if question.max_length is not None and len(text) > question.max_length:
                return f"longer than {question.max_length} characters"
    return None

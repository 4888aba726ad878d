"""
qualifier/catalog/versioning.py — Moving stored responses between questionnaire versions.

Each QuestionnaireVersion may carry a migration strategy describing how
answers given against the previous version are carried into it:

  APPEND_ONLY   keep everything; new questions are simply unanswered
  REMAP         rename question ids through a mapping
  RE_ASK        drop the listed answers and ask those questions again
  FULL_REFRESH  archive every answer and start from an empty map
"""

import enum
import logging
from datetime import datetime
from typing import Any, Iterable, Mapping

from pydantic import BaseModel, ConfigDict, Field

from qualifier.catalog.models import Question, QuestionnaireConfig
from qualifier.utils import utcnow

logger = logging.getLogger(__name__)

MAX_COMPATIBLE_VERSION_GAP = 2


class MigrationStrategyType(str, enum.Enum):
    APPEND_ONLY = "APPEND_ONLY"
    REMAP = "REMAP"
    RE_ASK = "RE_ASK"
    FULL_REFRESH = "FULL_REFRESH"


class MigrationStrategy(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: MigrationStrategyType
    mapping: dict[str, str] = Field(default_factory=dict)        # REMAP: old id → new id
    question_ids: tuple[str, ...] = ()                           # RE_ASK
    new_questions: tuple[str, ...] = ()


class QuestionnaireVersion(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: int
    questions: tuple[Question, ...]
    migration_strategy: MigrationStrategy | None = None
    created_at: datetime = Field(default_factory=utcnow)
    deprecated_at: datetime | None = None

    @classmethod
    def from_config(
        cls,
        config: QuestionnaireConfig,
        migration_strategy: MigrationStrategy | None = None,
    ) -> "QuestionnaireVersion":
        return cls(
            version=config.version,
            questions=config.questions,
            migration_strategy=migration_strategy,
        )


class MigrationResult(BaseModel):
    migrated_responses: dict[str, Any]
    questions_to_re_ask: list[str] = Field(default_factory=list)
    archived_responses: dict[str, Any] | None = None


class ValidationReport(BaseModel):
    valid: bool
    errors: list[str] = Field(default_factory=list)


def migrate_responses(
    responses: Mapping[str, Any],
    to_version: QuestionnaireVersion,
) -> MigrationResult:
    """Apply `to_version`'s strategy to responses given against the version before it."""
    strategy = to_version.migration_strategy
    if strategy is None:
        return MigrationResult(migrated_responses=dict(responses))

    match strategy.type:
        case MigrationStrategyType.APPEND_ONLY:
            return MigrationResult(migrated_responses=dict(responses))
        case MigrationStrategyType.REMAP:
            remapped = {strategy.mapping.get(qid, qid): value for qid, value in responses.items()}
            return MigrationResult(migrated_responses=remapped)
        case MigrationStrategyType.RE_ASK:
            kept = {qid: v for qid, v in responses.items() if qid not in strategy.question_ids}
            return MigrationResult(
                migrated_responses=kept,
                questions_to_re_ask=list(strategy.question_ids),
            )
        case MigrationStrategyType.FULL_REFRESH:
            return MigrationResult(migrated_responses={}, archived_responses=dict(responses))
        case _:
            raise ValueError(f"Unknown migration strategy: {strategy.type}")


def is_version_compatible(from_version: int, to_version: int) -> bool:
    return abs(to_version - from_version) <= MAX_COMPATIBLE_VERSION_GAP


def migration_path(
    from_version: int,
    to_version: int,
    versions: Iterable[QuestionnaireVersion],
) -> list[QuestionnaireVersion]:
    """
    Versions to step through, in travel direction.

    Excludes `from_version`, includes `to_version`; empty when they are equal.
    """
    if from_version == to_version:
        return []
    if from_version < to_version:
        steps = [v for v in versions if from_version < v.version <= to_version]
        return sorted(steps, key=lambda v: v.version)
    steps = [v for v in versions if to_version <= v.version < from_version]
    return sorted(steps, key=lambda v: v.version, reverse=True)


def migrate_across(
    responses: Mapping[str, Any],
    from_version: int,
    to_version: int,
    versions: Iterable[QuestionnaireVersion],
) -> MigrationResult:
    """Run every step of the migration path, collecting re-asks and archives along the way."""
    current = dict(responses)
    re_ask: list[str] = []
    archived: dict[str, Any] | None = None

    for step in migration_path(from_version, to_version, versions):
        result = migrate_responses(current, step)
        current = result.migrated_responses
        re_ask.extend(q for q in result.questions_to_re_ask if q not in re_ask)
        if result.archived_responses is not None:
            archived = {**(archived or {}), **result.archived_responses}
        logger.debug("Migrated responses to questionnaire v%d", step.version)

    return MigrationResult(
        migrated_responses=current,
        questions_to_re_ask=re_ask,
        archived_responses=archived,
    )


def validate_responses(responses: Mapping[str, Any], version: QuestionnaireVersion) -> ValidationReport:
    """Check stored responses against a version: no unknown ids, all required ids present."""
    errors: list[str] = []
    known = {q.id for q in version.questions}

    for qid in responses:
        if qid not in known and not qid.startswith("_"):
            errors.append(f"Response for unknown question: {qid}")

    for question in version.questions:
        if question.required and question.id not in responses:
            errors.append(f"Missing required question: {question.id}")

    return ValidationReport(valid=not errors, errors=errors)

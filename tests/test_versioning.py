"""
tests/test_versioning.py — Unit tests for moving responses between questionnaire versions.
"""

import pytest
from pydantic import ValidationError

from qualifier.catalog.models import Question, QuestionOption, QuestionType
from qualifier.catalog.questionnaires import DEFAULT_QUESTIONNAIRE, QUESTIONNAIRE_VERSIONS
from qualifier.catalog.versioning import (
    MigrationStrategy,
    MigrationStrategyType,
    QuestionnaireVersion,
    is_version_compatible,
    migrate_across,
    migrate_responses,
    migration_path,
    validate_responses,
)

RESPONSES = {"old_size": "11-50", "recent_incidents": "urgent", "_metadata": {"x": 1}}


def _version(number: int, strategy: MigrationStrategy | None = None) -> QuestionnaireVersion:
    return QuestionnaireVersion(
        version=number,
        questions=DEFAULT_QUESTIONNAIRE.questions,
        migration_strategy=strategy,
    )


# ── Strategies ───────────────────────────────────────────────────────────────

class TestMigrateResponses:
    def test_no_strategy_keeps_everything(self):
        result = migrate_responses(RESPONSES, _version(2))
        assert result.migrated_responses == RESPONSES
        assert result.questions_to_re_ask == []

    def test_append_only(self):
        strategy = MigrationStrategy(type=MigrationStrategyType.APPEND_ONLY, new_questions=("sector",))
        result = migrate_responses(RESPONSES, _version(2, strategy))
        assert result.migrated_responses == RESPONSES
        assert result.migrated_responses is not RESPONSES

    def test_remap(self):
        strategy = MigrationStrategy(type=MigrationStrategyType.REMAP, mapping={"old_size": "company_size"})
        result = migrate_responses(RESPONSES, _version(2, strategy))
        assert result.migrated_responses["company_size"] == "11-50"
        assert "old_size" not in result.migrated_responses
        assert result.migrated_responses["recent_incidents"] == "urgent"

    def test_re_ask(self):
        strategy = MigrationStrategy(type=MigrationStrategyType.RE_ASK, question_ids=("recent_incidents",))
        result = migrate_responses(RESPONSES, _version(2, strategy))
        assert "recent_incidents" not in result.migrated_responses
        assert result.questions_to_re_ask == ["recent_incidents"]

    def test_full_refresh_archives(self):
        strategy = MigrationStrategy(type=MigrationStrategyType.FULL_REFRESH)
        result = migrate_responses(RESPONSES, _version(2, strategy))
        assert result.migrated_responses == {}
        assert result.archived_responses == RESPONSES

    def test_unknown_strategy_is_rejected(self):
        with pytest.raises(ValidationError):
            MigrationStrategy(type="SHUFFLE")


# ── Version bookkeeping ──────────────────────────────────────────────────────

class TestVersionPath:
    @pytest.mark.parametrize("a, b, ok", [(1, 3, True), (3, 1, True), (1, 4, False), (2, 2, True)])
    def test_compatibility(self, a, b, ok):
        assert is_version_compatible(a, b) is ok

    def test_forward_path(self):
        versions = [_version(n) for n in (4, 1, 3, 2)]
        assert [v.version for v in migration_path(1, 3, versions)] == [2, 3]

    def test_backward_path(self):
        versions = [_version(n) for n in (1, 2, 3, 4)]
        assert [v.version for v in migration_path(4, 2, versions)] == [3, 2]

    def test_same_version(self):
        assert migration_path(2, 2, [_version(2)]) == []

    def test_migrate_across_chains_strategies(self):
        versions = [
            _version(2, MigrationStrategy(type=MigrationStrategyType.REMAP, mapping={"old_size": "company_size"})),
            _version(3, MigrationStrategy(type=MigrationStrategyType.RE_ASK, question_ids=("company_size",))),
        ]
        result = migrate_across({"old_size": "11-50", "recent_incidents": "urgent"}, 1, 3, versions)
        assert result.migrated_responses == {"recent_incidents": "urgent"}
        assert result.questions_to_re_ask == ["company_size"]
        assert result.archived_responses is None


# ── Validation ───────────────────────────────────────────────────────────────

class TestValidateResponses:
    VERSION = QuestionnaireVersion(
        version=1,
        questions=(
            Question(
                id="size",
                type=QuestionType.SINGLE_CHOICE,
                required=True,
                options=(QuestionOption(value="s", label="S"),),
            ),
            Question(id="notes", type=QuestionType.TEXT),
        ),
    )

    def test_valid(self):
        report = validate_responses({"size": "s", "_metadata": {}}, self.VERSION)
        assert report.valid
        assert report.errors == []

    def test_unknown_and_missing(self):
        report = validate_responses({"colour": "red"}, self.VERSION)
        assert not report.valid
        assert report.errors == [
            "Response for unknown question: colour",
            "Missing required question: size",
        ]

    def test_from_config(self):
        version = QuestionnaireVersion.from_config(DEFAULT_QUESTIONNAIRE)
        assert version.version == DEFAULT_QUESTIONNAIRE.version
        assert not validate_responses({}, version).valid


# ── Built-in release history ─────────────────────────────────────────────────

class TestQuestionnaireVersions:
    def test_latest_release_is_the_default_questionnaire(self):
        assert QUESTIONNAIRE_VERSIONS[-1].version == DEFAULT_QUESTIONNAIRE.version
        assert QUESTIONNAIRE_VERSIONS[-1].questions == DEFAULT_QUESTIONNAIRE.questions

    def test_v1_answers_carry_over_and_stay_valid(self):
        v1_answers = {
            "recent_incidents": "urgent",
            "main_concern": "no_team",
            "company_size": "200+",
            "implementation_timeline": "immediate",
            "compliance": ["gdpr"],
        }
        result = migrate_across(v1_answers, 1, DEFAULT_QUESTIONNAIRE.version, QUESTIONNAIRE_VERSIONS)
        assert result.migrated_responses == v1_answers
        assert validate_responses(result.migrated_responses, QUESTIONNAIRE_VERSIONS[-1]).valid

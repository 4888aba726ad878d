"""
tests/test_db.py — Unit tests for the repository and database layer.

Uses an in-memory SQLite database (via SQLAlchemy) so no real database
server is required. Tests run fast and fully in isolation.

NOTE: conftest.py injects dummy env vars before any qualifier module is
imported, preventing pydantic-settings from failing on missing required fields.
"""

from datetime import datetime, timedelta

import pytest
from sqlalchemy.pool import StaticPool

from qualifier.catalog.models import LeadCategory, SessionType
from qualifier.db.repository import (
    append_edit,
    create_profile,
    delete_draft,
    get_draft,
    get_edit_history,
    get_profile,
    get_session_record,
    get_sessions,
    list_profile_ids,
    save_session,
    upsert_draft,
)
from qualifier.db.session import build_engine

T0 = datetime(2025, 3, 3, 9, 0, 0)


# ── Lead profiles ─────────────────────────────────────────────────────────────

class TestProfiles:
    def test_create_and_get(self, db):
        create_profile(db, "lead-1", email="ana@example.com", created_at=T0)
        row = get_profile(db, "lead-1")
        assert row.email == "ana@example.com"
        assert row.initial_responses == {}
        assert row.follow_up_responses == {}
        assert row.lead_category == LeadCategory.D1
        assert row.lead_score == 0
        assert row.created_at == T0

    def test_created_at_defaults_to_now(self, db):
        row = create_profile(db, "lead-1")
        assert row.created_at is not None

    def test_get_missing_returns_none(self, db):
        assert get_profile(db, "nobody") is None
        assert get_profile(db, "nobody", for_update=True) is None

    def test_questionnaire_version_is_stored(self, db):
        create_profile(db, "lead-1", questionnaire_version=2)
        row = get_profile(db, "lead-1")
        assert row.questionnaire_version == 2
        assert row.archived_responses is None

    def test_list_profile_ids_oldest_first(self, db):
        create_profile(db, "late", created_at=T0 + timedelta(days=1))
        create_profile(db, "early", created_at=T0)
        assert list_profile_ids(db) == ["early", "late"]


# ── Edit history ──────────────────────────────────────────────────────────────

class TestEditHistory:
    def test_append_and_read_in_order(self, db):
        create_profile(db, "lead-1")
        append_edit(db, "lead-1", "q1", T0 + timedelta(minutes=2), "b", "c")
        append_edit(db, "lead-1", "q1", T0, "a", "b")
        history = get_edit_history(db, "lead-1")
        assert [(e.old_value, e.new_value) for e in history] == [("a", "b"), ("b", "c")]

    def test_same_timestamp_keeps_insert_order(self, db):
        create_profile(db, "lead-1")
        append_edit(db, "lead-1", "q1", T0, "a", "b")
        append_edit(db, "lead-1", "q1", T0, "b", "c")
        assert [e.new_value for e in get_edit_history(db, "lead-1")] == ["b", "c"]

    def test_filter_by_question(self, db):
        create_profile(db, "lead-1")
        append_edit(db, "lead-1", "q1", T0, None, "x")
        append_edit(db, "lead-1", "q2", T0, None, ["a", "b"])
        history = get_edit_history(db, "lead-1", "q2")
        assert len(history) == 1
        assert history[0].new_value == ["a", "b"]

    def test_relationship_lists_edits(self, db):
        row = create_profile(db, "lead-1")
        append_edit(db, "lead-1", "q1", T0, None, "x")
        db.refresh(row)
        assert [e.question_id for e in row.edits] == ["q1"]


# ── Questionnaire sessions ────────────────────────────────────────────────────

class TestSessions:
    def test_save_session(self, db):
        create_profile(db, "lead-1")
        save_session(
            db,
            session_id="s-1",
            lead_id="lead-1",
            session_type=SessionType.TECHNICAL_ASSESSMENT,
            responses={"mfa_status": "partial"},
            metadata={"completion_time": 31},
            completed_at=T0,
            channel="email",
        )
        sessions = get_sessions(db, "lead-1")
        assert len(sessions) == 1
        assert sessions[0].type == SessionType.TECHNICAL_ASSESSMENT
        assert sessions[0].channel == "email"
        assert sessions[0].completion_time_seconds == 31

    def test_get_session_record(self, db):
        create_profile(db, "lead-1")
        save_session(db, "s-1", "lead-1", SessionType.INITIAL, {"q1": "a"}, None, T0)
        assert get_session_record(db, "s-1").lead_id == "lead-1"
        assert get_session_record(db, "s-2") is None

    def test_no_metadata(self, db):
        create_profile(db, "lead-1")
        save_session(db, "s-1", "lead-1", SessionType.INITIAL, {}, None, T0)
        assert get_sessions(db, "lead-1")[0].completion_time_seconds is None


# ── Drafts ────────────────────────────────────────────────────────────────────

class TestDrafts:
    def test_upsert_overwrites(self, db):
        upsert_draft(db, "k", {"q1": "a"}, {}, 0, T0)
        upsert_draft(db, "k", {"q1": "b"}, {"q2_other": "x"}, 1, T0 + timedelta(seconds=5))
        row = get_draft(db, "k")
        assert row.data == {"q1": "b"}
        assert row.other_text == {"q2_other": "x"}
        assert row.current_index == 1

    def test_delete(self, db):
        upsert_draft(db, "k", {}, {}, 0, T0)
        delete_draft(db, "k")
        assert get_draft(db, "k") is None

    def test_delete_missing_is_noop(self, db):
        delete_draft(db, "missing")


# ── Engine ────────────────────────────────────────────────────────────────────

class TestBuildEngine:
    def test_memory_sqlite_uses_static_pool(self):
        engine = build_engine("sqlite:///:memory:")
        assert isinstance(engine.pool, StaticPool)
        engine.dispose()

    @pytest.mark.parametrize("url", ["sqlite:///./local.db"])
    def test_file_sqlite_is_not_static(self, url):
        engine = build_engine(url)
        assert not isinstance(engine.pool, StaticPool)
        engine.dispose()

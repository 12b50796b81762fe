"""Tests for the engagement recalc job executor (idempotency, rate limit, single-flight)."""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest
from fastapi import HTTPException

from app.config import get_settings
from app.models import DEFAULT_WORKSPACE_ID, JobRun
from app.pipeline.executor import run_engagement_recalc_job
from app.pipeline.rate_limits import check_workspace_rate_limit, find_running_job
from app.services.engagement.recompute import JOB_TYPE_ENGAGEMENT_RECALC


def _job(db, **kwargs) -> JobRun:
    kwargs.setdefault("job_type", JOB_TYPE_ENGAGEMENT_RECALC)
    kwargs.setdefault("workspace_id", DEFAULT_WORKSPACE_ID)
    kwargs.setdefault("status", "completed")
    job = JobRun(**kwargs)
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


class TestRunEngagementRecalcJob:
    def test_runs_batch_and_returns_counts(
        self, db, make_contact, cadence_table_file, fixed_clock
    ) -> None:
        contact = make_contact(last_contacted_at=datetime(2024, 2, 19, 15, 0, tzinfo=UTC))

        result = run_engagement_recalc_job(db, DEFAULT_WORKSPACE_ID)

        assert result["status"] == "completed"
        assert result["updated"] == 1
        assert result["total"] == 1
        assert result["errors"] == 0
        assert result["job_run_id"] is not None
        db.refresh(contact)
        assert contact.next_engagement_date == date(2024, 2, 26)

    def test_idempotency_key_returns_cached_result(self, db) -> None:
        existing = _job(
            db,
            idempotency_key="nightly-2024-02-19",
            contacts_total=12,
            contacts_updated=3,
            contacts_cleared=1,
            error_count=2,
            error_message="Contact 7: boom; Contact 9: bang",
        )

        result = run_engagement_recalc_job(
            db, DEFAULT_WORKSPACE_ID, idempotency_key="nightly-2024-02-19"
        )

        assert result["job_run_id"] == existing.id
        assert result["total"] == 12
        assert result["updated"] == 3
        assert result["cleared"] == 1
        assert result["errors"] == 2
        assert result["error_messages"] == ["Contact 7: boom", "Contact 9: bang"]
        assert db.query(JobRun).count() == 1

    def test_idempotency_key_is_scoped_to_workspace(self, db, other_workspace) -> None:
        _job(db, workspace_id=other_workspace.id, idempotency_key="k")

        result = run_engagement_recalc_job(db, DEFAULT_WORKSPACE_ID, idempotency_key="k")

        assert result["total"] == 0
        assert db.query(JobRun).count() == 2

    def test_failed_run_with_same_key_is_retried(self, db) -> None:
        _job(db, idempotency_key="k", status="failed")

        result = run_engagement_recalc_job(db, DEFAULT_WORKSPACE_ID, idempotency_key="k")

        assert result["status"] == "completed"
        assert db.query(JobRun).count() == 2

    def test_rate_limit_exceeded_raises_429(self, db, monkeypatch) -> None:
        monkeypatch.setenv("WORKSPACE_JOB_RATE_LIMIT_PER_HOUR", "1")
        get_settings.cache_clear()
        _job(db)

        with pytest.raises(HTTPException) as exc_info:
            run_engagement_recalc_job(db, DEFAULT_WORKSPACE_ID)

        assert exc_info.value.status_code == 429

    def test_running_job_raises_409(self, db) -> None:
        running = _job(db, status="running")

        with pytest.raises(HTTPException) as exc_info:
            run_engagement_recalc_job(db, DEFAULT_WORKSPACE_ID)

        assert exc_info.value.status_code == 409
        assert str(running.id) in exc_info.value.detail

    def test_global_run_not_blocked_by_workspace_run(self, db) -> None:
        _job(db, status="running")

        result = run_engagement_recalc_job(db, None)

        assert result["status"] == "completed"


class TestRateLimits:
    def test_disabled_when_zero(self, db) -> None:
        _job(db)
        assert check_workspace_rate_limit(db, DEFAULT_WORKSPACE_ID, JOB_TYPE_ENGAGEMENT_RECALC)

    def test_old_runs_do_not_count(self, db, monkeypatch) -> None:
        monkeypatch.setenv("WORKSPACE_JOB_RATE_LIMIT_PER_HOUR", "1")
        get_settings.cache_clear()
        _job(db, started_at=datetime.now(UTC) - timedelta(hours=2))
        assert check_workspace_rate_limit(db, DEFAULT_WORKSPACE_ID, JOB_TYPE_ENGAGEMENT_RECALC)

    def test_stale_running_job_ignored(self, db) -> None:
        """A worker that died an hour ago must not block forever."""
        _job(db, status="running", started_at=datetime.now(UTC) - timedelta(hours=1))
        assert find_running_job(db, DEFAULT_WORKSPACE_ID, JOB_TYPE_ENGAGEMENT_RECALC) is None

    def test_guard_disabled(self, db, monkeypatch) -> None:
        monkeypatch.setenv("RECALC_RUNNING_GUARD_MINUTES", "0")
        get_settings.cache_clear()
        _job(db, status="running")
        assert find_running_job(db, DEFAULT_WORKSPACE_ID, JOB_TYPE_ENGAGEMENT_RECALC) is None

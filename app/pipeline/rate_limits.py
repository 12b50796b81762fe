"""Per-workspace rate limits for batch jobs."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.job_run import JobRun

logger = logging.getLogger(__name__)


def workspace_scope_clause(workspace_id: UUID | None):
    if workspace_id is None:
        return JobRun.workspace_id.is_(None)
    return JobRun.workspace_id == workspace_id


def check_workspace_rate_limit(
    db: Session,
    workspace_id: UUID | None,
    job_type: str,
) -> bool:
    """Return True if workspace is within rate limit, False if exceeded.

    Disabled when WORKSPACE_JOB_RATE_LIMIT_PER_HOUR is 0 or negative.
    ``workspace_id=None`` is the global scope and is limited on its own.
    """
    limit = get_settings().workspace_job_rate_limit_per_hour
    if limit <= 0:
        return True

    cutoff = datetime.now(UTC) - timedelta(hours=1)
    count = (
        db.scalar(
            select(func.count(JobRun.id)).where(
                workspace_scope_clause(workspace_id),
                JobRun.job_type == job_type,
                JobRun.started_at >= cutoff,
            )
        )
        or 0
    )

    if count >= limit:
        logger.warning(
            "Rate limit exceeded: workspace_id=%s job_type=%s count=%d limit=%d",
            workspace_id or "all",
            job_type,
            count,
            limit,
        )
        return False
    return True


def find_running_job(
    db: Session,
    workspace_id: UUID | None,
    job_type: str,
) -> JobRun | None:
    """Return a recent ``running`` job for the same scope, if any.

    Runs older than RECALC_RUNNING_GUARD_MINUTES are ignored; a worker that
    died mid-run leaves its row ``running`` and must not block forever.
    Disabled when the guard is 0 or negative.
    """
    minutes = get_settings().recalc_running_guard_minutes
    if minutes <= 0:
        return None
    cutoff = datetime.now(UTC) - timedelta(minutes=minutes)
    return db.scalars(
        select(JobRun)
        .where(
            workspace_scope_clause(workspace_id),
            JobRun.job_type == job_type,
            JobRun.status == "running",
            JobRun.started_at >= cutoff,
        )
        .order_by(JobRun.started_at.desc())
        .limit(1)
    ).first()

"""Job executor: idempotency, rate limits and single-flight for engagement recalculation."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import HTTPException
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.models.job_run import JobRun
from app.pipeline.rate_limits import (
    workspace_scope_clause,
    check_workspace_rate_limit,
    find_running_job,
)
from app.services.engagement.recompute import (
    JOB_TYPE_ENGAGEMENT_RECALC,
    recalculate_for_tenant,
)

logger = logging.getLogger(__name__)


def run_engagement_recalc_job(
    db: Session,
    workspace_id: str | UUID | None = None,
    idempotency_key: str | None = None,
) -> dict:
    """Run a batch recalculation with idempotency, rate limit and overlap checks.

    Returns cached result if idempotency_key matches a completed run for the
    same scope. Raises HTTPException 429 if the rate limit is exceeded and
    409 if a run for the same scope is still in progress.

    StoreUnavailableError from the batch propagates to the caller.
    """
    ws_uuid = (
        None
        if workspace_id is None
        else workspace_id if isinstance(workspace_id, UUID) else UUID(str(workspace_id))
    )

    if idempotency_key:
        existing = db.scalars(
            select(JobRun)
            .where(
                JobRun.idempotency_key == idempotency_key,
                JobRun.job_type == JOB_TYPE_ENGAGEMENT_RECALC,
                workspace_scope_clause(ws_uuid),
            )
            .order_by(JobRun.started_at.desc())
            .limit(1)
        ).first()
        if existing and existing.status == "completed":
            logger.info(
                "Idempotent skip: job_type=%s idempotency_key=%s job_run_id=%s",
                JOB_TYPE_ENGAGEMENT_RECALC,
                idempotency_key,
                existing.id,
            )
            return _cached_result(existing)

    if not check_workspace_rate_limit(db, ws_uuid, JOB_TYPE_ENGAGEMENT_RECALC):
        raise HTTPException(
            status_code=429,
            detail="Workspace job rate limit exceeded",
        )

    running = find_running_job(db, ws_uuid, JOB_TYPE_ENGAGEMENT_RECALC)
    if running is not None:
        raise HTTPException(
            status_code=409,
            detail=f"Engagement recalculation already running (job_run_id={running.id})",
        )

    summary = recalculate_for_tenant(db, ws_uuid, idempotency_key=idempotency_key)
    return summary.to_dict()


def _cached_result(job: JobRun) -> dict:
    """Build response dict from a completed JobRun.

    Note: only the first error messages are stored on the JobRun, so the
    cached ``error_messages`` is the stored sample.
    """
    return {
        "status": job.status,
        "job_run_id": job.id,
        "updated": job.contacts_updated or 0,
        "errors": job.error_count or 0,
        "total": job.contacts_total or 0,
        "cleared": job.contacts_cleared or 0,
        "error_messages": job.error_message.split("; ") if job.error_message else [],
    }

"""Internal job endpoints for cron/scripts.

These endpoints are secured with a static token (X-Internal-Token header),
NOT cookie-based auth.  They are meant for automated triggers only.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import parse_uuid_or_422
from app.config import get_settings
from app.db.session import get_db
from app.services.engagement.errors import StoreUnavailableError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/internal", include_in_schema=False)


# ── Token dependency ────────────────────────────────────────────────


def _require_internal_token(x_internal_token: str = Header(...)) -> None:
    """Validate the internal job token from the request header.

    Uses constant-time comparison to prevent timing attacks.
    Raises 403 if the token is empty or does not match the configured value.
    """
    expected = get_settings().internal_job_token
    if not expected or not secrets.compare_digest(x_internal_token, expected):
        logger.warning("Internal endpoint auth failed: invalid or missing token")
        raise HTTPException(status_code=403, detail="Invalid internal token")


# ── Endpoints ───────────────────────────────────────────────────────


@router.post("/run_engagement_recalc")
def run_engagement_recalc(
    db: Session = Depends(get_db),
    _token: None = Depends(_require_internal_token),
    x_idempotency_key: str | None = Header(None, alias="X-Idempotency-Key"),
    workspace_id: str | None = Query(
        None, description="Workspace ID; recalculates every workspace if omitted"
    ),
):
    """Trigger the nightly next-engagement reconciliation.

    Recomputes every eligible contact in the workspace (or all workspaces)
    and returns counts: updated, errors, total, cleared.

    Idempotency: Pass X-Idempotency-Key to skip duplicate runs. Use
    workspace-scoped keys (e.g. ``{workspace_id}:{date}``) to avoid
    collisions across workspaces.

    Returns 503 when the database is unreachable; per-contact failures are
    reported in ``errors`` with status 200.
    """
    from app.pipeline.executor import run_engagement_recalc_job

    ws_uuid = parse_uuid_or_422(workspace_id, "workspace_id")

    try:
        return run_engagement_recalc_job(
            db,
            workspace_id=ws_uuid,
            idempotency_key=x_idempotency_key,
        )
    except HTTPException:
        raise
    except StoreUnavailableError as exc:
        logger.error("Engagement recalculation aborted: %s", exc)
        raise HTTPException(status_code=503, detail="Database unavailable") from exc

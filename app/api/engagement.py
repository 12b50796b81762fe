"""Engagement API routes.

Thin handlers over the recompute and query services. Every write goes
through :mod:`app.services.engagement.recompute`; reads never compute a date.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import date

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from sqlalchemy.orm import Session

from app.api.deps import require_auth, require_workspace_access
from app.db.session import get_db
from app.models.contact import Contact
from app.models.user import User
from app.pipeline.executor import run_engagement_recalc_job
from app.schemas.engagement import (
    ClassificationUpdate,
    EngagementAlertsResponse,
    EngagementBucketRead,
    EngagementList,
    EngagementRowRead,
    NextContactUpdate,
    RecalculationSummaryRead,
    RecomputeResponse,
    RemindMeUpdate,
    ResponseCreate,
    TouchCreate,
)
from app.services.engagement import query_service, recompute
from app.services.engagement.civil_clock import get_clock
from app.services.engagement.errors import NotFoundError, StoreUnavailableError, store_guard
from app.services.engagement.query_service import EngagementRow, purpose_label
from app.services.engagement.recompute import RecomputeResult
from app.services.workspace_access import visible_contact

logger = logging.getLogger(__name__)

router = APIRouter()


@contextmanager
def _service_errors() -> Iterator[None]:
    """Map engagement service errors onto HTTP status codes."""
    try:
        yield
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except StoreUnavailableError as exc:
        logger.error("Store unavailable: %s", exc)
        raise HTTPException(status_code=503, detail="Database unavailable") from exc
    except ValueError as exc:
        # ConfigurationError subclasses ValueError
        raise HTTPException(status_code=422, detail=str(exc)) from exc


def _accessible_contact_or_404(db: Session, user: User, contact_id: int) -> Contact:
    """Return the contact if it lives in a workspace the user can access.

    Contacts in other workspaces are reported as missing, not forbidden.
    """
    with _service_errors(), store_guard(f"load contact {contact_id}"):
        contact = visible_contact(db, user, contact_id)
    if contact is None:
        raise HTTPException(status_code=404, detail=f"Contact not found: {contact_id}")
    return contact


def _recompute_response(contact_id: int, result: RecomputeResult) -> RecomputeResponse:
    return RecomputeResponse(
        contact_id=contact_id,
        updated=result.updated,
        next_engagement_date=result.next_engagement_date,
        next_engagement_purpose=result.next_engagement_purpose,
    )


def _row_read(row: EngagementRow) -> EngagementRowRead:
    return EngagementRowRead(
        contact_id=row.contact_id,
        next_engagement_date=row.next_engagement_date,
        next_engagement_purpose=row.next_engagement_purpose,
        purpose_label=purpose_label(row.next_engagement_purpose),
        next_contact_note=row.next_contact_note,
        last_contacted_at=row.last_contacted_at,
        last_responded_at=row.last_responded_at,
        first_name=row.first_name,
        last_name=row.last_name,
        email=row.email,
    )


# ── Writes (single contact) ─────────────────────────────────────────


@router.post("/contacts/{contact_id}/recompute", response_model=RecomputeResponse)
def api_recompute_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> RecomputeResponse:
    """Recompute and store the next engagement date for one contact."""
    _accessible_contact_or_404(db, user, contact_id)
    with _service_errors():
        result = recompute.compute_and_persist(db, contact_id)
    return _recompute_response(contact_id, result)


@router.put("/contacts/{contact_id}/remind-me", response_model=RecomputeResponse)
def api_set_remind_me(
    contact_id: int,
    body: RemindMeUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> RecomputeResponse:
    """Set or clear (``remind_me_on: null``) a manual reminder date.

    ``note`` is only touched when present in the body.
    """
    _accessible_contact_or_404(db, user, contact_id)
    kwargs = {}
    if "note" in body.model_fields_set:
        kwargs["note"] = body.note
    with _service_errors():
        result = recompute.set_manual_reminder(db, contact_id, body.remind_me_on, **kwargs)
    return _recompute_response(contact_id, result)


@router.put("/contacts/{contact_id}/next-contact", response_model=RecomputeResponse)
def api_update_next_contact(
    contact_id: int,
    body: NextContactUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> RecomputeResponse:
    """Update the opt-out flag and/or the next-contact note.

    Setting ``do_not_contact_again`` clears the stored date, reminder and note.
    """
    _accessible_contact_or_404(db, user, contact_id)
    kwargs = {}
    if "next_contact_note" in body.model_fields_set:
        kwargs["next_contact_note"] = body.next_contact_note
    with _service_errors():
        result = recompute.update_contact_preferences(
            db,
            contact_id,
            do_not_contact_again=body.do_not_contact_again,
            **kwargs,
        )
    return _recompute_response(contact_id, result)


@router.put("/contacts/{contact_id}/classification", response_model=RecomputeResponse)
def api_update_classification(
    contact_id: int,
    body: ClassificationUpdate,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> RecomputeResponse:
    """Reclassify a contact. Unknown axis values return 422 and nothing is stored."""
    _accessible_contact_or_404(db, user, contact_id)
    with _service_errors():
        result = recompute.update_classification(
            db,
            contact_id,
            body.relationship_nature,
            body.relationship_recency,
            body.relationship_awareness,
        )
    return _recompute_response(contact_id, result)


@router.post("/contacts/{contact_id}/touches", response_model=RecomputeResponse)
def api_record_touch(
    contact_id: int,
    body: TouchCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> RecomputeResponse:
    """Record an outbound touch (e.g. an email was sent)."""
    _accessible_contact_or_404(db, user, contact_id)
    with _service_errors():
        result = recompute.record_outbound_touch(db, contact_id, body.sent_at)
    return _recompute_response(contact_id, result)


@router.post("/contacts/{contact_id}/responses", response_model=RecomputeResponse)
def api_record_response(
    contact_id: int,
    body: ResponseCreate,
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> RecomputeResponse:
    """Record an inbound response from the contact."""
    _accessible_contact_or_404(db, user, contact_id)
    with _service_errors():
        result = recompute.record_response(db, contact_id, body.responded_at)
    return _recompute_response(contact_id, result)


# ── Reads ───────────────────────────────────────────────────────────


@router.get("/next", response_model=EngagementList)
def api_next_engagements(
    workspace_id: str | None = Query(None, description="Workspace ID; uses default if omitted"),
    limit: int | None = Query(None, description="Max rows. Default and cap are server-side."),
    date_from: date | None = Query(None, description="Inclusive lower bound (YYYY-MM-DD)"),
    date_to: date | None = Query(None, description="Inclusive upper bound (YYYY-MM-DD)"),
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> EngagementList:
    """Scheduled contacts, soonest first."""
    ws_uuid = require_workspace_access(db, user, workspace_id)
    with _service_errors():
        if date_from is not None and date_to is not None:
            rows = query_service.reminders_for_date_range(
                db, ws_uuid, date_from, date_to, limit=limit
            )
        else:
            rows = query_service.contacts_with_next_engagement(
                db, ws_uuid, limit=limit, date_from=date_from, date_to=date_to
            )
    return EngagementList(workspace_id=str(ws_uuid), items=[_row_read(r) for r in rows])


@router.get("/due-today", response_model=EngagementList)
def api_due_today(
    workspace_id: str | None = Query(None, description="Workspace ID; uses default if omitted"),
    limit: int | None = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> EngagementList:
    """Contacts due today in the reference timezone, overdue included."""
    ws_uuid = require_workspace_access(db, user, workspace_id)
    today = get_clock().today()
    with _service_errors():
        rows = query_service.contacts_due_today(db, ws_uuid, today=today, limit=limit)
    return EngagementList(
        workspace_id=str(ws_uuid),
        as_of=today,
        items=[_row_read(r) for r in rows],
    )


@router.get("/alerts", response_model=EngagementAlertsResponse)
def api_engagement_alerts(
    workspace_id: str | None = Query(None, description="Workspace ID; uses default if omitted"),
    limit: int | None = Query(None),
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> EngagementAlertsResponse:
    """Scheduled contacts grouped by date ("Due today", "Due tomorrow", ...)."""
    ws_uuid = require_workspace_access(db, user, workspace_id)
    today = get_clock().today()
    with _service_errors():
        buckets = query_service.engagement_alerts(db, ws_uuid, today=today, limit=limit)
    return EngagementAlertsResponse(
        workspace_id=str(ws_uuid),
        as_of=today,
        buckets=[
            EngagementBucketRead(
                date=b.date,
                label=b.label,
                items=[_row_read(r) for r in b.rows],
            )
            for b in buckets
        ],
    )


# ── Batch ───────────────────────────────────────────────────────────


@router.post("/recalculate", response_model=RecalculationSummaryRead)
def api_recalculate(
    workspace_id: str | None = Query(None, description="Workspace ID; uses default if omitted"),
    x_idempotency_key: str | None = Header(None, alias="X-Idempotency-Key"),
    db: Session = Depends(get_db),
    user: User = Depends(require_auth),
) -> RecalculationSummaryRead:
    """Recompute every contact in a workspace.

    Returns counts; per-contact failures are counted, not raised.
    429 when the workspace hourly limit is hit, 409 while a run is in progress.
    """
    ws_uuid = require_workspace_access(db, user, workspace_id)
    with _service_errors():
        result = run_engagement_recalc_job(db, ws_uuid, idempotency_key=x_idempotency_key)
    return RecalculationSummaryRead(**result)

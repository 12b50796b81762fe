"""Engagement recompute service.

The only writer of ``Contact.next_engagement_date`` and
``Contact.next_engagement_purpose``. Every other write path (touches,
responses, reminders, opt-out, reclassification) changes the *inputs* and
then recomputes through here, so the stored date is always what the current
inputs imply.

Recompute is idempotent: the row is written only when the computed values
differ from the stored ones. The batch is a reconciliation pass and can be
re-run at any time.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from datetime import UTC, date, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.contact import Contact
from app.models.job_run import JobRun
from app.services.engagement.cadence_resolver import CadenceResolver, get_resolver
from app.services.engagement.civil_clock import (
    CivilClock,
    CivilDateLike,
    add_days,
    as_utc,
    get_clock,
    parse_civil_date,
)
from app.services.engagement.classification import (
    PURPOSE_GENERAL_CHECK_IN,
    RelationshipClassification,
)
from app.services.engagement.errors import (
    NotFoundError,
    StoreUnavailableError,
    store_guard,
)

logger = logging.getLogger(__name__)

JOB_TYPE_ENGAGEMENT_RECALC = "engagement_recalc"

# Per-contact error messages kept on the summary / JobRun
ERROR_SAMPLE_LIMIT = 10

_UNSET: Any = object()


@dataclass(frozen=True)
class RecomputeResult:
    """Outcome of recomputing one contact."""

    updated: bool
    next_engagement_date: date | None
    next_engagement_purpose: str | None


@dataclass
class RecalculationSummary:
    """Accumulator for a batch run.

    ``updated`` counts contacts whose stored values actually changed;
    ``errors`` counts contacts that failed and were skipped; ``total`` is the
    size of the candidate set. ``cleared`` counts opted-out contacts whose
    stale date was removed (not part of ``total``).
    """

    updated: int = 0
    errors: int = 0
    total: int = 0
    cleared: int = 0
    status: str = "completed"
    job_run_id: int | None = None
    error_messages: list[str] = field(default_factory=list)

    def record_error(self, contact_id: int, exc: Exception) -> None:
        self.errors += 1
        if len(self.error_messages) < ERROR_SAMPLE_LIMIT:
            self.error_messages.append(f"Contact {contact_id}: {exc}")

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ── Single contact ──────────────────────────────────────────────────


def _load_contact(db: Session, contact_id: int) -> Contact:
    with store_guard(f"load contact {contact_id}"):
        contact = db.get(Contact, contact_id)
    if contact is None:
        raise NotFoundError(contact_id)
    return contact


def _target_for(
    contact: Contact,
    clock: CivilClock,
    resolver: CadenceResolver | None,
) -> tuple[date | None, str | None]:
    """Date and purpose the current inputs imply."""
    if contact.do_not_contact_again:
        return None, None

    if contact.remind_me_on is not None:
        return contact.remind_me_on, PURPOSE_GENERAL_CHECK_IN

    decision = (resolver or get_resolver()).resolve_for_contact(contact)
    anchor = contact.last_contacted_at or clock.now()
    return add_days(clock.civil_date_of(anchor), decision.cadence_days), decision.purpose


def _recompute(
    contact: Contact,
    clock: CivilClock,
    resolver: CadenceResolver | None,
) -> RecomputeResult:
    """Apply computed values to ``contact`` in the session; caller commits."""
    target_date, purpose = _target_for(contact, clock, resolver)
    changed = (
        contact.next_engagement_date != target_date
        or contact.next_engagement_purpose != purpose
    )
    if changed:
        contact.next_engagement_date = target_date
        contact.next_engagement_purpose = purpose
    return RecomputeResult(
        updated=changed,
        next_engagement_date=target_date,
        next_engagement_purpose=purpose,
    )


def compute_and_persist(
    db: Session,
    contact_id: int,
    *,
    clock: CivilClock | None = None,
    resolver: CadenceResolver | None = None,
) -> RecomputeResult:
    """Compute and store the next engagement date for one contact.

    Opted-out contacts have any date cleared without a cadence lookup.
    Otherwise the date is ``civil_date_of(last_contacted_at or now) + cadence``,
    or the manual reminder date when one is set.

    Returns:
        RecomputeResult; ``updated`` is False when the stored values already
        matched (nothing written).

    Raises:
        NotFoundError: contact does not exist.
        ConfigurationError: classification has no cadence mapping.
        StoreUnavailableError: database unreachable.
    """
    clock = clock or get_clock()
    contact = _load_contact(db, contact_id)
    result = _recompute(contact, clock, resolver)
    if result.updated:
        with store_guard(f"persist contact {contact_id}"):
            db.commit()
        logger.debug(
            "Next engagement updated: contact_id=%s date=%s purpose=%s",
            contact_id,
            result.next_engagement_date,
            result.next_engagement_purpose,
        )
    return result


def _commit_inputs_and_recompute(
    db: Session,
    contact: Contact,
    clock: CivilClock | None,
    resolver: CadenceResolver | None,
) -> RecomputeResult:
    """Recompute after an input change and commit both in one transaction."""
    try:
        result = _recompute(contact, clock or get_clock(), resolver)
    except Exception:
        db.rollback()
        raise
    with store_guard(f"persist contact {contact.id}"):
        db.commit()
    return result


def record_outbound_touch(
    db: Session,
    contact_id: int,
    sent_at: datetime,
    *,
    clock: CivilClock | None = None,
    resolver: CadenceResolver | None = None,
) -> RecomputeResult:
    """Record an outbound touch and recompute.

    ``last_contacted_at`` only moves forward; an older touch logged late
    leaves it unchanged.
    """
    contact = _load_contact(db, contact_id)
    if contact.last_contacted_at is None or as_utc(contact.last_contacted_at) < as_utc(sent_at):
        contact.last_contacted_at = sent_at
    return _commit_inputs_and_recompute(db, contact, clock, resolver)


def record_response(
    db: Session,
    contact_id: int,
    responded_at: datetime,
    *,
    clock: CivilClock | None = None,
    resolver: CadenceResolver | None = None,
) -> RecomputeResult:
    """Record an inbound response and recompute. ``last_responded_at`` only moves forward."""
    contact = _load_contact(db, contact_id)
    if contact.last_responded_at is None or as_utc(contact.last_responded_at) < as_utc(
        responded_at
    ):
        contact.last_responded_at = responded_at
    return _commit_inputs_and_recompute(db, contact, clock, resolver)


def set_manual_reminder(
    db: Session,
    contact_id: int,
    remind_on: CivilDateLike | None,
    *,
    note: str | None = _UNSET,
    clock: CivilClock | None = None,
    resolver: CadenceResolver | None = None,
) -> RecomputeResult:
    """Set (or clear with None) a manual "remind me on" date and recompute.

    While set, the reminder date is the next engagement date. Clearing it
    returns the contact to its cadence.
    """
    contact = _load_contact(db, contact_id)
    contact.remind_me_on = parse_civil_date(remind_on) if remind_on is not None else None
    if note is not _UNSET:
        contact.next_contact_note = note or None
    return _commit_inputs_and_recompute(db, contact, clock, resolver)


def update_contact_preferences(
    db: Session,
    contact_id: int,
    *,
    do_not_contact_again: bool | None = None,
    next_contact_note: str | None = _UNSET,
    clock: CivilClock | None = None,
    resolver: CadenceResolver | None = None,
) -> RecomputeResult:
    """Update opt-out flag and/or note, then recompute.

    Opting out clears the manual reminder and the note; the recompute then
    clears the stored date. A note sent together with an opt-out is ignored.
    """
    contact = _load_contact(db, contact_id)
    if do_not_contact_again is not None:
        contact.do_not_contact_again = do_not_contact_again
        if do_not_contact_again:
            contact.remind_me_on = None
            contact.next_contact_note = None
    if next_contact_note is not _UNSET and not contact.do_not_contact_again:
        contact.next_contact_note = next_contact_note or None
    return _commit_inputs_and_recompute(db, contact, clock, resolver)


def update_classification(
    db: Session,
    contact_id: int,
    nature: str,
    recency: str,
    awareness: str,
    *,
    clock: CivilClock | None = None,
    resolver: CadenceResolver | None = None,
) -> RecomputeResult:
    """Store a new relationship classification and recompute.

    Raises:
        ConfigurationError: any axis value is unknown (nothing is stored).
    """
    classification = RelationshipClassification.from_values(nature, recency, awareness)
    contact = _load_contact(db, contact_id)
    contact.relationship_nature = classification.nature.value
    contact.relationship_recency = classification.recency.value
    contact.relationship_awareness = classification.awareness.value
    return _commit_inputs_and_recompute(db, contact, clock, resolver)


# ── Batch ───────────────────────────────────────────────────────────


def _coerce_workspace_id(workspace_id: str | UUID | None) -> UUID | None:
    if workspace_id is None:
        return None
    return workspace_id if isinstance(workspace_id, UUID) else UUID(str(workspace_id))


def _scope_filter(workspace_id: UUID | None):
    if workspace_id is not None:
        return Contact.workspace_id == workspace_id
    return Contact.workspace_id.isnot(None)


def _candidate_ids(db: Session, workspace_id: UUID | None) -> list[int]:
    """Contacts eligible for scheduling, in primary-key order."""
    stmt = (
        select(Contact.id)
        .where(_scope_filter(workspace_id), Contact.do_not_contact_again.is_(False))
        .order_by(Contact.id)
    )
    return list(db.scalars(stmt).all())


def _stale_opted_out_ids(db: Session, workspace_id: UUID | None) -> list[int]:
    """Opted-out contacts that still carry a date or purpose."""
    stmt = (
        select(Contact.id)
        .where(
            _scope_filter(workspace_id),
            Contact.do_not_contact_again.is_(True),
            or_(
                Contact.next_engagement_date.isnot(None),
                Contact.next_engagement_purpose.isnot(None),
            ),
        )
        .order_by(Contact.id)
    )
    return list(db.scalars(stmt).all())


def _recompute_isolated(
    db: Session,
    contact_id: int,
    summary: RecalculationSummary,
    clock: CivilClock,
    resolver: CadenceResolver | None,
) -> RecomputeResult | None:
    """Recompute one contact; row-level failures are counted, store failures propagate."""
    try:
        return compute_and_persist(db, contact_id, clock=clock, resolver=resolver)
    except StoreUnavailableError:
        raise
    except Exception as exc:
        db.rollback()
        logger.exception("Engagement recompute failed for contact %s", contact_id)
        summary.record_error(contact_id, exc)
        return None


def _mark_failed(
    db: Session, job: JobRun, summary: RecalculationSummary, exc: Exception
) -> None:
    """Close an aborted run as ``failed`` so it stops counting as running.

    The store may still be down; if this commit fails too, the running guard
    expires the row after ``RECALC_RUNNING_GUARD_MINUTES``.
    """
    summary.status = "failed"
    try:
        db.rollback()
        job.finished_at = datetime.now(UTC)
        job.status = "failed"
        job.contacts_total = summary.total
        job.contacts_updated = summary.updated
        job.contacts_cleared = summary.cleared
        job.error_count = summary.errors
        job.error_message = str(exc)
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.warning("Could not mark job_run_id=%s failed", summary.job_run_id, exc_info=True)


def recalculate_for_tenant(
    db: Session,
    workspace_id: str | UUID | None = None,
    *,
    clock: CivilClock | None = None,
    resolver: CadenceResolver | None = None,
    idempotency_key: str | None = None,
) -> RecalculationSummary:
    """Recompute next engagement dates for a workspace, or globally when None.

    Candidates are contacts with ``do_not_contact_again = false`` (global
    runs take every contact with a workspace). Opted-out contacts still
    holding a date are cleared first. Contacts are processed sequentially in
    id order; each one commits on its own, so an interrupted run keeps its
    progress and the next run picks up the rest.

    One contact's failure never aborts the run. Creates a JobRun record for audit.

    Raises:
        StoreUnavailableError: the database is unreachable. The run stops and
            its JobRun is closed as ``failed``.
    """
    ws_uuid = _coerce_workspace_id(workspace_id)
    clock = clock or get_clock()
    summary = RecalculationSummary()

    with store_guard("start engagement recalculation"):
        job = JobRun(
            job_type=JOB_TYPE_ENGAGEMENT_RECALC,
            status="running",
            workspace_id=ws_uuid,
            idempotency_key=idempotency_key,
        )
        db.add(job)
        db.commit()
        db.refresh(job)
        summary.job_run_id = job.id

        stale_ids = _stale_opted_out_ids(db, ws_uuid)
        contact_ids = _candidate_ids(db, ws_uuid)

    summary.total = len(contact_ids)
    logger.info(
        "Engagement recalculation started: job_run_id=%s workspace_id=%s candidates=%d stale_opted_out=%d",
        job.id,
        ws_uuid or "all",
        summary.total,
        len(stale_ids),
    )

    try:
        for contact_id in stale_ids:
            result = _recompute_isolated(db, contact_id, summary, clock, resolver)
            if result is not None and result.updated:
                summary.cleared += 1

        for contact_id in contact_ids:
            result = _recompute_isolated(db, contact_id, summary, clock, resolver)
            if result is not None and result.updated:
                summary.updated += 1
    except StoreUnavailableError as exc:
        logger.exception("Engagement recalculation aborted: job_run_id=%s", summary.job_run_id)
        _mark_failed(db, job, summary, exc)
        raise

    with store_guard("finish engagement recalculation"):
        job.finished_at = datetime.now(UTC)
        job.status = summary.status
        job.contacts_total = summary.total
        job.contacts_updated = summary.updated
        job.contacts_cleared = summary.cleared
        job.error_count = summary.errors
        job.error_message = "; ".join(summary.error_messages) if summary.error_messages else None
        db.commit()

    logger.info(
        "Engagement recalculation completed: job_run_id=%s updated=%d errors=%d total=%d cleared=%d",
        job.id,
        summary.updated,
        summary.errors,
        summary.total,
        summary.cleared,
    )
    return summary

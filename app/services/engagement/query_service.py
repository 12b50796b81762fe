"""Engagement query service.

Read-only projections over ``Contact.next_engagement_date``. Every view is
built on :func:`contacts_with_next_engagement` so the dashboard, the
due-today list and the reminder digest always agree. Nothing here computes
or writes a date.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import get_settings
from app.models.contact import Contact
from app.services.engagement.civil_clock import (
    LABEL_TODAY,
    LABEL_TOMORROW,
    CivilClock,
    CivilDateLike,
    day_diff,
    get_clock,
    parse_civil_date,
    relative_label,
)
from app.services.engagement.classification import (
    PURPOSE_GENERAL_CHECK_IN,
    PURPOSE_PERIODIC_CHECK_IN,
    PURPOSE_REFERRAL_NO_CONTACT,
    PURPOSE_UNRESPONSIVE,
)
from app.services.engagement.errors import store_guard

PURPOSE_LABELS: dict[str, str] = {
    PURPOSE_GENERAL_CHECK_IN: "General check-in",
    PURPOSE_UNRESPONSIVE: "Unresponsive",
    PURPOSE_PERIODIC_CHECK_IN: "Periodic check-in",
    PURPOSE_REFERRAL_NO_CONTACT: "Referral (no contact)",
}


@dataclass(frozen=True)
class EngagementRow:
    """One scheduled contact."""

    contact_id: int
    next_engagement_date: date
    next_engagement_purpose: str | None
    next_contact_note: str | None
    last_contacted_at: datetime | None
    last_responded_at: datetime | None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None


@dataclass
class EngagementBucket:
    """Rows sharing one civil date, with a dashboard label."""

    date: date
    label: str
    rows: list[EngagementRow] = field(default_factory=list)


def purpose_label(purpose: str | None) -> str:
    if not purpose:
        return "Follow-up"
    return PURPOSE_LABELS.get(purpose, purpose)


def resolve_limit(limit: int | None) -> int:
    """Apply the default and the server-side cap.

    Raises:
        ValueError: limit below 1.
    """
    settings = get_settings()
    if limit is None:
        return settings.engagement_query_default_limit
    if limit < 1:
        raise ValueError(f"limit must be >= 1, got {limit}")
    return min(limit, settings.engagement_query_max_limit)


def contacts_with_next_engagement(
    db: Session,
    workspace_id: str | UUID,
    *,
    limit: int | None = None,
    date_from: CivilDateLike | None = None,
    date_to: CivilDateLike | None = None,
) -> list[EngagementRow]:
    """Scheduled contacts for a workspace, soonest first.

    Filters: workspace match, not opted out, date set, and the optional
    inclusive ``date_from``/``date_to`` window (same query, no second trip).
    Ties on date are broken by contact id so limits page deterministically.

    Raises:
        ValueError: bad limit or malformed date bound.
        StoreUnavailableError: database unreachable.
    """
    ws_uuid = workspace_id if isinstance(workspace_id, UUID) else UUID(str(workspace_id))
    effective_limit = resolve_limit(limit)

    filters = [
        Contact.workspace_id == ws_uuid,
        Contact.do_not_contact_again.is_(False),
        Contact.next_engagement_date.isnot(None),
    ]
    if date_from is not None:
        filters.append(Contact.next_engagement_date >= parse_civil_date(date_from))
    if date_to is not None:
        filters.append(Contact.next_engagement_date <= parse_civil_date(date_to))

    stmt = (
        select(Contact)
        .where(*filters)
        .order_by(Contact.next_engagement_date.asc(), Contact.id.asc())
        .limit(effective_limit)
    )
    with store_guard("query next engagements"):
        contacts = db.scalars(stmt).all()

    return [
        EngagementRow(
            contact_id=c.id,
            next_engagement_date=c.next_engagement_date,
            next_engagement_purpose=c.next_engagement_purpose,
            next_contact_note=c.next_contact_note,
            last_contacted_at=c.last_contacted_at,
            last_responded_at=c.last_responded_at,
            first_name=c.first_name,
            last_name=c.last_name,
            email=c.email,
        )
        for c in contacts
    ]


def contacts_due_today(
    db: Session,
    workspace_id: str | UUID,
    *,
    today: CivilDateLike | None = None,
    limit: int | None = None,
    clock: CivilClock | None = None,
) -> list[EngagementRow]:
    """Contacts due on or before today (overdue included)."""
    as_of = parse_civil_date(today) if today is not None else (clock or get_clock()).today()
    return contacts_with_next_engagement(db, workspace_id, limit=limit, date_to=as_of)


def reminders_for_date_range(
    db: Session,
    workspace_id: str | UUID,
    date_from: CivilDateLike,
    date_to: CivilDateLike,
    *,
    limit: int | None = None,
) -> list[EngagementRow]:
    """Contacts whose date falls in ``[date_from, date_to]`` (digest emails, calendars)."""
    if day_diff(date_from, date_to) < 0:
        raise ValueError("date_from must not be after date_to")
    return contacts_with_next_engagement(
        db, workspace_id, limit=limit, date_from=date_from, date_to=date_to
    )


def bucket_label(today: CivilDateLike, value: CivilDateLike) -> str:
    label = relative_label(today, value)
    if label == LABEL_TODAY:
        return "Due today"
    if label == LABEL_TOMORROW:
        return "Due tomorrow"
    return label


def group_by_date(rows: list[EngagementRow], today: CivilDateLike) -> list[EngagementBucket]:
    """Group rows into date buckets, ascending by date."""
    buckets: dict[date, EngagementBucket] = {}
    for row in rows:
        bucket = buckets.get(row.next_engagement_date)
        if bucket is None:
            bucket = EngagementBucket(
                date=row.next_engagement_date,
                label=bucket_label(today, row.next_engagement_date),
            )
            buckets[row.next_engagement_date] = bucket
        bucket.rows.append(row)
    return [buckets[d] for d in sorted(buckets)]


def engagement_alerts(
    db: Session,
    workspace_id: str | UUID,
    *,
    today: CivilDateLike | None = None,
    limit: int | None = None,
    clock: CivilClock | None = None,
) -> list[EngagementBucket]:
    """All scheduled contacts grouped by date for the follow-up alerts panel."""
    as_of = parse_civil_date(today) if today is not None else (clock or get_clock()).today()
    rows = contacts_with_next_engagement(db, workspace_id, limit=limit)
    return group_by_date(rows, as_of)


def days_until_due(contact: Contact, today: CivilDateLike) -> int | None:
    """Days from ``today`` to the stored date; None when unscheduled or opted out."""
    if contact.do_not_contact_again or contact.next_engagement_date is None:
        return None
    return day_diff(today, contact.next_engagement_date)


def is_due_for_follow_up(contact: Contact, today: CivilDateLike) -> bool:
    days = days_until_due(contact, today)
    return days is not None and days <= 0

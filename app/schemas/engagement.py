"""Engagement API schemas."""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field


class RecomputeResponse(BaseModel):
    """Result of a single-contact recompute or input change."""

    model_config = ConfigDict(from_attributes=True)

    contact_id: int
    updated: bool
    next_engagement_date: date | None = None
    next_engagement_purpose: str | None = None


class RemindMeUpdate(BaseModel):
    """PUT body for /contacts/{id}/remind-me. null clears the reminder."""

    remind_me_on: date | None = None
    note: str | None = None


class NextContactUpdate(BaseModel):
    """PUT body for /contacts/{id}/next-contact."""

    do_not_contact_again: bool | None = None
    next_contact_note: str | None = Field(default=None, max_length=2000)


class ClassificationUpdate(BaseModel):
    """PUT body for /contacts/{id}/classification."""

    relationship_nature: str
    relationship_recency: str
    relationship_awareness: str


class TouchCreate(BaseModel):
    sent_at: datetime


class ResponseCreate(BaseModel):
    responded_at: datetime


class EngagementRowRead(BaseModel):
    """One scheduled contact."""

    model_config = ConfigDict(from_attributes=True)

    contact_id: int
    next_engagement_date: date
    next_engagement_purpose: str | None = None
    purpose_label: str
    next_contact_note: str | None = None
    last_contacted_at: datetime | None = None
    last_responded_at: datetime | None = None
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None


class EngagementList(BaseModel):
    """Response for GET /api/engagement/next and /due-today."""

    workspace_id: str
    as_of: date | None = None
    items: list[EngagementRowRead]


class EngagementBucketRead(BaseModel):
    date: date
    label: str
    items: list[EngagementRowRead]


class EngagementAlertsResponse(BaseModel):
    """Response for GET /api/engagement/alerts."""

    workspace_id: str
    as_of: date
    buckets: list[EngagementBucketRead]


class RecalculationSummaryRead(BaseModel):
    """Batch recompute counts."""

    status: str
    job_run_id: int | None = None
    updated: int
    errors: int
    total: int
    cleared: int = 0
    error_messages: list[str] = Field(default_factory=list)

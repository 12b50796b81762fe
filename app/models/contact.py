"""Contact model.

Only the engagement-related subset of the CRM contact record is mapped here.
``next_engagement_date`` and ``next_engagement_purpose`` are owned by
``app.services.engagement.recompute``; nothing else writes them.
"""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from app.db.session import Base


class Contact(Base):
    """Person in a workspace's address book."""

    __tablename__ = "contacts"
    __table_args__ = (
        Index("ix_contacts_workspace_next_engagement", "workspace_id", "next_engagement_date"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    workspace_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid,
        ForeignKey("workspaces.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    first_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)

    # Relationship classification (three independent axes)
    relationship_nature: Mapped[str] = mapped_column(
        String(64), default="unknown", nullable=False
    )
    relationship_recency: Mapped[str] = mapped_column(String(64), default="new", nullable=False)
    relationship_awareness: Mapped[str] = mapped_column(
        String(64), default="unaware", nullable=False
    )

    last_contacted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_responded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    do_not_contact_again: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Manual "remind me on" override; an input to recompute, not the canonical date
    remind_me_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Canonical field: civil date in the reference timezone
    next_engagement_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    next_engagement_purpose: Mapped[str | None] = mapped_column(String(64), nullable=True)
    next_contact_note: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False,
    )

    @property
    def display_name(self) -> str:
        name = " ".join(p for p in (self.first_name, self.last_name) if p).strip()
        return name or (self.email or "")

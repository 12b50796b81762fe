"""Relationship classification: nature x recency x awareness."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from itertools import product
from typing import TYPE_CHECKING

from app.services.engagement.errors import ConfigurationError

if TYPE_CHECKING:
    from app.models.contact import Contact


class RelationshipNature(str, Enum):
    """How the sender knows the contact."""

    UNKNOWN = "unknown"
    PRIOR_COLLEAGUE = "prior_colleague"
    PRIOR_CLIENT = "prior_client"
    REFERRAL = "referral"
    CURRENT_CLIENT = "current_client"
    FRIEND = "friend"


class RecencyBucket(str, Enum):
    """How recently the relationship was active."""

    NEW = "new"
    RECENT = "recent"
    STALE = "stale"
    LONG_DORMANT = "long_dormant"


class CounterpartyAwareness(str, Enum):
    """How well the contact knows the sender's organization."""

    UNAWARE = "unaware"
    AWARE = "aware"
    FAMILIAR = "familiar"


# Purposes written alongside the date
PURPOSE_GENERAL_CHECK_IN = "GENERAL_CHECK_IN"
PURPOSE_UNRESPONSIVE = "UNRESPONSIVE"
PURPOSE_PERIODIC_CHECK_IN = "PERIODIC_CHECK_IN"
PURPOSE_REFERRAL_NO_CONTACT = "REFERRAL_NO_CONTACT"


@dataclass(frozen=True)
class RelationshipClassification:
    """Composite key into the cadence table."""

    nature: RelationshipNature
    recency: RecencyBucket
    awareness: CounterpartyAwareness

    @classmethod
    def from_values(
        cls, nature: str | None, recency: str | None, awareness: str | None
    ) -> RelationshipClassification:
        """Build from stored strings.

        Raises:
            ConfigurationError: when any axis is missing or not a known value.
        """
        return cls(
            nature=_coerce(RelationshipNature, nature, "nature"),
            recency=_coerce(RecencyBucket, recency, "recency"),
            awareness=_coerce(CounterpartyAwareness, awareness, "awareness"),
        )

    @classmethod
    def of_contact(cls, contact: Contact) -> RelationshipClassification:
        return cls.from_values(
            contact.relationship_nature,
            contact.relationship_recency,
            contact.relationship_awareness,
        )

    def key(self) -> tuple[str, str, str]:
        return (self.nature.value, self.recency.value, self.awareness.value)

    def __str__(self) -> str:
        return "/".join(self.key())


def _coerce(enum_cls, value: str | None, axis: str):
    if value is None:
        raise ConfigurationError(f"Relationship {axis} is not set")
    try:
        return enum_cls(value.strip().lower())
    except ValueError:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ConfigurationError(
            f"Unknown relationship {axis} {value!r} (expected one of: {allowed})"
        ) from None


def all_classifications() -> list[RelationshipClassification]:
    """Every valid triple; the cadence table must cover all of them."""
    return [
        RelationshipClassification(n, r, a)
        for n, r, a in product(RelationshipNature, RecencyBucket, CounterpartyAwareness)
    ]

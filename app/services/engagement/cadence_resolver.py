"""Cadence resolver: relationship classification -> days until next engagement.

The lookup is total by contract. A classification with no rule is a
configuration bug and raises ConfigurationError; there is no fallback default.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from app.services.engagement.civil_clock import as_utc
from app.services.engagement.classification import (
    PURPOSE_GENERAL_CHECK_IN,
    PURPOSE_PERIODIC_CHECK_IN,
    PURPOSE_UNRESPONSIVE,
    RelationshipClassification,
)
from app.services.engagement.errors import ConfigurationError

if TYPE_CHECKING:
    from app.models.contact import Contact


@dataclass(frozen=True)
class CadenceRule:
    """One row of the cadence table."""

    cadence_days: int
    responded_cadence_days: int | None = None
    purpose: str | None = None


@dataclass(frozen=True)
class CadenceDecision:
    """Resolved cadence for one contact."""

    cadence_days: int
    purpose: str
    responded: bool
    classification: RelationshipClassification


def has_responded(
    last_contacted_at: datetime | None,
    last_responded_at: datetime | None,
) -> bool:
    """True when the latest response is not older than the latest outbound touch."""
    if last_responded_at is None:
        return False
    if last_contacted_at is None:
        return True
    return as_utc(last_responded_at) >= as_utc(last_contacted_at)


class CadenceResolver:
    """Stateless lookup over an immutable rule mapping; safe to share."""

    def __init__(self, rules: Mapping[RelationshipClassification, CadenceRule]) -> None:
        self._rules = dict(rules)

    @classmethod
    def from_table(cls, table: dict[str, Any]) -> CadenceResolver:
        """Build from a validated cadence table (see app.cadence_table)."""
        rules: dict[RelationshipClassification, CadenceRule] = {}
        for row in table.get("rules") or []:
            classification = RelationshipClassification.from_values(
                row["nature"], row["recency"], row["awareness"]
            )
            rules[classification] = CadenceRule(
                cadence_days=int(row["cadence_days"]),
                responded_cadence_days=(
                    int(row["responded_cadence_days"])
                    if row.get("responded_cadence_days") is not None
                    else None
                ),
                purpose=row.get("purpose"),
            )
        return cls(rules)

    def __len__(self) -> int:
        return len(self._rules)

    def rule_for(self, classification: RelationshipClassification) -> CadenceRule:
        try:
            return self._rules[classification]
        except KeyError:
            raise ConfigurationError(
                f"No cadence rule configured for classification {classification}"
            ) from None

    def resolve(
        self,
        classification: RelationshipClassification,
        *,
        last_contacted_at: datetime | None = None,
        last_responded_at: datetime | None = None,
    ) -> CadenceDecision:
        """Resolve cadence days and purpose.

        A response since the last touch can only shorten the cadence:
        ``min(cadence_days, responded_cadence_days)``.

        Raises:
            ConfigurationError: no rule for ``classification``.
        """
        rule = self.rule_for(classification)
        responded = has_responded(last_contacted_at, last_responded_at)

        days = rule.cadence_days
        if responded and rule.responded_cadence_days is not None:
            days = min(days, rule.responded_cadence_days)

        if rule.purpose:
            purpose = rule.purpose
        elif responded:
            purpose = PURPOSE_PERIODIC_CHECK_IN
        elif last_contacted_at is not None:
            purpose = PURPOSE_UNRESPONSIVE
        else:
            purpose = PURPOSE_GENERAL_CHECK_IN

        return CadenceDecision(
            cadence_days=days,
            purpose=purpose,
            responded=responded,
            classification=classification,
        )

    def resolve_for_contact(self, contact: Contact) -> CadenceDecision:
        """Resolve from a contact row. Raises ConfigurationError on bad axes or no rule."""
        return self.resolve(
            RelationshipClassification.of_contact(contact),
            last_contacted_at=contact.last_contacted_at,
            last_responded_at=contact.last_responded_at,
        )


@lru_cache(maxsize=1)
def get_resolver() -> CadenceResolver:
    """Resolver over the configured cadence table (cached).

    Raises:
        ConfigurationError: table not configured or invalid.
    """
    from app.cadence_table.loader import load_cadence_table

    try:
        table = load_cadence_table()
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Cadence table file not found: {exc.filename}") from exc
    return CadenceResolver.from_table(table)

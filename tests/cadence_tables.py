"""Cadence table builders for tests.

Day counts here are arbitrary test values, not business policy.
"""

from __future__ import annotations

from typing import Any

import yaml

from app.services.engagement.classification import all_classifications


def full_cadence_table(
    cadence_days: int = 30,
    *,
    responded_cadence_days: int | None = None,
    overrides: dict[tuple[str, str, str], dict[str, Any]] | None = None,
    version: str | None = "test-1",
) -> dict[str, Any]:
    """Return a total table with every triple mapped to ``cadence_days``.

    ``overrides`` maps (nature, recency, awareness) to fields replacing the
    defaults for that one rule.
    """
    overrides = overrides or {}
    rules = []
    for classification in all_classifications():
        rule: dict[str, Any] = {
            "nature": classification.nature.value,
            "recency": classification.recency.value,
            "awareness": classification.awareness.value,
            "cadence_days": cadence_days,
        }
        if responded_cadence_days is not None:
            rule["responded_cadence_days"] = responded_cadence_days
        rule.update(overrides.get(classification.key(), {}))
        rules.append(rule)
    table: dict[str, Any] = {"rules": rules}
    if version is not None:
        table["version"] = version
    return table


def dump_cadence_table(table: dict[str, Any]) -> str:
    return yaml.safe_dump(table, sort_keys=False)

"""Cadence table schema validation.

Validates that the cadence YAML has the required structure:
- rules: non-empty list of mappings
- each rule: nature, recency, awareness (known values), cadence_days (int >= 0),
  optional responded_cadence_days (int >= 0), optional purpose (non-empty str)
- no two rules for the same (nature, recency, awareness) triple
- every triple is covered (the mapping is total)
"""

from __future__ import annotations

from typing import Any

from app.services.engagement.classification import (
    RelationshipClassification,
    all_classifications,
)
from app.services.engagement.errors import ConfigurationError

_REQUIRED_KEYS = ("nature", "recency", "awareness", "cadence_days")
_ALLOWED_KEYS = frozenset(_REQUIRED_KEYS) | {"responded_cadence_days", "purpose"}


class CadenceTableValidationError(ConfigurationError):
    """Raised when the cadence table is structurally invalid or not total."""


def _check_days(value: Any, field: str, index: int) -> None:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise CadenceTableValidationError(
            f"cadence table rules[{index}].{field} must be a non-negative integer, got {value!r}"
        )


def validate_cadence_table(table: dict[str, Any], *, require_total: bool = True) -> None:
    """Validate cadence table structure.

    Args:
        table: Loaded YAML content.
        require_total: When True, every classification triple must have a rule.

    Raises:
        CadenceTableValidationError: When structure, uniqueness or totality fails.
    """
    if not isinstance(table, dict):
        raise CadenceTableValidationError("cadence table must be a dict")

    rules = table.get("rules")
    if not isinstance(rules, list) or not rules:
        raise CadenceTableValidationError("cadence table must have a non-empty 'rules' list")

    version = table.get("version")
    if version is not None and not isinstance(version, (str, int)):
        raise CadenceTableValidationError("cadence table 'version' must be a string")

    seen: set[tuple[str, str, str]] = set()
    for index, rule in enumerate(rules):
        if not isinstance(rule, dict):
            raise CadenceTableValidationError(f"cadence table rules[{index}] must be a mapping")
        missing = [k for k in _REQUIRED_KEYS if k not in rule]
        if missing:
            raise CadenceTableValidationError(
                f"cadence table rules[{index}] missing keys: {', '.join(missing)}"
            )
        unknown = sorted(set(rule) - _ALLOWED_KEYS)
        if unknown:
            raise CadenceTableValidationError(
                f"cadence table rules[{index}] has unknown keys: {', '.join(unknown)}"
            )
        try:
            classification = RelationshipClassification.from_values(
                rule["nature"], rule["recency"], rule["awareness"]
            )
        except ConfigurationError as exc:
            raise CadenceTableValidationError(f"cadence table rules[{index}]: {exc}") from exc

        _check_days(rule["cadence_days"], "cadence_days", index)
        if rule.get("responded_cadence_days") is not None:
            _check_days(rule["responded_cadence_days"], "responded_cadence_days", index)
        purpose = rule.get("purpose")
        if purpose is not None and (not isinstance(purpose, str) or not purpose.strip()):
            raise CadenceTableValidationError(
                f"cadence table rules[{index}].purpose must be a non-empty string"
            )

        key = classification.key()
        if key in seen:
            raise CadenceTableValidationError(
                f"cadence table has duplicate rule for {classification}"
            )
        seen.add(key)

    if require_total:
        missing_keys = [c for c in all_classifications() if c.key() not in seen]
        if missing_keys:
            sample = ", ".join(str(c) for c in missing_keys[:5])
            raise CadenceTableValidationError(
                f"cadence table is not total: {len(missing_keys)} classification(s) "
                f"have no rule (e.g. {sample})"
            )

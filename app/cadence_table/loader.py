"""Cadence table loader.

The cadence-day values are business policy maintained outside this
repository. The table is read from the YAML file named by
``CADENCE_TABLE_PATH`` and validated before first use.
"""

from __future__ import annotations

import hashlib
from functools import lru_cache
from pathlib import Path
from typing import Any

import yaml

from app.services.engagement.errors import ConfigurationError


def _configured_path() -> Path:
    from app.config import get_settings

    raw = get_settings().cadence_table_path
    if not raw:
        raise ConfigurationError("CADENCE_TABLE_PATH is not set; no cadence table configured")
    return Path(raw)


def load_cadence_table_from_path(path: str | Path) -> dict[str, Any]:
    """Load and validate a cadence table YAML file (uncached).

    Raises:
        FileNotFoundError: If the file is missing.
        CadenceTableValidationError: If YAML is malformed or the table is invalid.
    """
    from app.cadence_table.validator import (
        CadenceTableValidationError,
        validate_cadence_table,
    )

    try:
        with Path(path).open() as f:
            data: dict[str, Any] = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise CadenceTableValidationError(f"Cadence table YAML is malformed: {exc}") from exc
    validate_cadence_table(data)
    return data


@lru_cache(maxsize=1)
def load_cadence_table() -> dict[str, Any]:
    """Load the configured cadence table (cached after first call).

    Raises:
        ConfigurationError: If no path is configured or the table is invalid.
        FileNotFoundError: If the configured file is missing.
    """
    return load_cadence_table_from_path(_configured_path())


@lru_cache(maxsize=1)
def get_cadence_table_version() -> str:
    """Return the table's ``version``, or a SHA-256 of the file when absent."""
    data = load_cadence_table()
    version = data.get("version")
    if version is not None and str(version).strip():
        return str(version).strip()
    return hashlib.sha256(_configured_path().read_bytes()).hexdigest()

"""Cadence table: externally configured classification -> cadence-days policy."""

from app.cadence_table.loader import (
    get_cadence_table_version,
    load_cadence_table,
    load_cadence_table_from_path,
)
from app.cadence_table.validator import CadenceTableValidationError, validate_cadence_table

__all__ = [
    "CadenceTableValidationError",
    "get_cadence_table_version",
    "load_cadence_table",
    "load_cadence_table_from_path",
    "validate_cadence_table",
]

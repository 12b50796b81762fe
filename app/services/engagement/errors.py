"""Engagement engine error taxonomy.

NotFoundError and ConfigurationError are per-contact data errors: a batch
counts them and moves on. StoreUnavailableError means the data path itself
is broken and always propagates.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy.exc import DBAPIError, DisconnectionError, InterfaceError, OperationalError


class EngagementError(Exception):
    """Base class for engagement engine errors."""


class NotFoundError(EngagementError):
    """Referenced contact does not exist."""

    def __init__(self, contact_id: int) -> None:
        self.contact_id = contact_id
        super().__init__(f"Contact not found: {contact_id}")


class ConfigurationError(EngagementError, ValueError):
    """Cadence configuration is missing or invalid for a classification.

    Subclasses ValueError so loaders can be guarded with ``except ValueError``
    alongside ``FileNotFoundError``.
    """


class StoreUnavailableError(EngagementError):
    """Persistence layer is unreachable."""


def is_store_unavailable(exc: BaseException) -> bool:
    """Return True if a SQLAlchemy error means the store itself is unreachable."""
    if isinstance(exc, (OperationalError, InterfaceError, DisconnectionError)):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


@contextmanager
def store_guard(operation: str) -> Iterator[None]:
    """Translate connection-level SQLAlchemy failures into StoreUnavailableError."""
    try:
        yield
    except DBAPIError as exc:
        if is_store_unavailable(exc):
            raise StoreUnavailableError(f"{operation}: {exc.orig or exc}") from exc
        raise
    except DisconnectionError as exc:
        raise StoreUnavailableError(f"{operation}: {exc}") from exc

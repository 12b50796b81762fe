"""
Pytest configuration and fixtures.
"""

from __future__ import annotations

import os
import uuid
from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from tests.test_constants import (
    TEST_INTERNAL_JOB_TOKEN,
    TEST_REFERENCE_TIMEZONE,
    TEST_SECRET_KEY,
    TEST_USERNAME,
)

# Force an in-memory SQLite store when pytest runs; don't inherit from .env
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["REFERENCE_TIMEZONE"] = TEST_REFERENCE_TIMEZONE
os.environ.pop("CADENCE_TABLE_PATH", None)
os.environ.setdefault("SECRET_KEY", TEST_SECRET_KEY)
os.environ.setdefault("INTERNAL_JOB_TOKEN", TEST_INTERNAL_JOB_TOKEN)
os.environ.setdefault("WORKSPACE_JOB_RATE_LIMIT_PER_HOUR", "0")  # Disable for tests

from tests.cadence_tables import dump_cadence_table, full_cadence_table  # noqa: E402

# Monday 2024-02-19, 10:00 in New York
FIXED_NOW = datetime(2024, 2, 19, 15, 0, tzinfo=UTC)


def _clear_caches() -> None:
    from app.cadence_table.loader import get_cadence_table_version, load_cadence_table
    from app.config import get_settings
    from app.services.engagement.cadence_resolver import get_resolver
    from app.services.engagement.civil_clock import get_clock

    get_settings.cache_clear()
    load_cadence_table.cache_clear()
    get_cadence_table_version.cache_clear()
    get_resolver.cache_clear()
    get_clock.cache_clear()


@pytest.fixture(autouse=True)
def _clear_engine_caches() -> None:
    """Clear lru_cache on settings, cadence table, resolver and clock around each test.

    Tests that point CADENCE_TABLE_PATH at a temp file or patch env vars
    must not leak cached state into later tests.
    """
    _clear_caches()
    yield
    _clear_caches()


@pytest.fixture(scope="session")
def _schema() -> None:
    """Create all tables once on the shared in-memory engine."""
    import app.models  # noqa: F401  registers tables
    from app.db import Base, engine

    Base.metadata.create_all(engine)


@pytest.fixture
def db(_schema: None) -> Session:
    """Database session. All changes are rolled back after each test.

    The default workspace is seeded inside the transaction.
    """
    from app.db import engine
    from app.models import DEFAULT_WORKSPACE_ID, Workspace

    connection = engine.connect()
    transaction = connection.begin()
    session = Session(
        bind=connection,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    session.add(Workspace(id=DEFAULT_WORKSPACE_ID, name="Default"))
    session.commit()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def client() -> TestClient:
    """FastAPI test client."""
    from app.main import app

    return TestClient(app)


@pytest.fixture
def client_with_db(db: Session) -> TestClient:
    """TestClient with get_db overridden to use the test db session."""
    from app.db.session import get_db
    from app.main import app

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    c = TestClient(app)
    yield c
    app.dependency_overrides.pop(get_db, None)


# ── Engine collaborators ────────────────────────────────────────────


@pytest.fixture
def clock():
    """Clock pinned to FIXED_NOW in the reference timezone."""
    from app.services.engagement.civil_clock import CivilClock

    return CivilClock(TEST_REFERENCE_TIMEZONE, now=lambda: FIXED_NOW)


@pytest.fixture
def resolver():
    """Resolver over a total table: 7 days, 14 after a response (min wins)."""
    from app.services.engagement.cadence_resolver import CadenceResolver

    return CadenceResolver.from_table(full_cadence_table(7, responded_cadence_days=14))


@pytest.fixture
def cadence_table_file(tmp_path, monkeypatch: pytest.MonkeyPatch):
    """Write a total cadence table (7 days) to disk and point CADENCE_TABLE_PATH at it."""
    path = tmp_path / "cadence.yaml"
    path.write_text(dump_cadence_table(full_cadence_table(7)))
    monkeypatch.setenv("CADENCE_TABLE_PATH", str(path))
    _clear_caches()
    return path


@pytest.fixture
def fixed_clock(clock, monkeypatch: pytest.MonkeyPatch):
    """Make every get_clock() caller see the pinned clock."""
    import app.api.engagement
    import app.services.engagement.query_service
    import app.services.engagement.recompute

    for module in (
        app.services.engagement.recompute,
        app.services.engagement.query_service,
        app.api.engagement,
    ):
        monkeypatch.setattr(module, "get_clock", lambda: clock)
    return clock


# ── Data builders ───────────────────────────────────────────────────


@pytest.fixture
def make_contact(db: Session):
    """Factory: insert a contact in the default workspace (override any column)."""
    from app.models import DEFAULT_WORKSPACE_ID, Contact

    def _make(**kwargs) -> Contact:
        kwargs.setdefault("workspace_id", DEFAULT_WORKSPACE_ID)
        kwargs.setdefault("first_name", "Test")
        kwargs.setdefault("last_name", "Contact")
        contact = Contact(**kwargs)
        db.add(contact)
        db.commit()
        db.refresh(contact)
        return contact

    return _make


@pytest.fixture
def other_workspace(db: Session):
    """A second workspace with no members."""
    from app.models import Workspace

    ws = Workspace(id=uuid.uuid4(), name="Other")
    db.add(ws)
    db.commit()
    return ws


@pytest.fixture
def test_user(db: Session):
    from app.models import User

    user = User(username=TEST_USERNAME)
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def auth_headers(test_user) -> dict[str, str]:
    """Bearer header for test_user."""
    from app.services.identity import issue_token

    return {"Authorization": f"Bearer {issue_token(test_user.username)}"}

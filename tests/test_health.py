"""
Health endpoint and startup tests.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from app.services.engagement.errors import ConfigurationError


@pytest.fixture
def keep_engine():
    """Lifespan shutdown disposes the engine; keep the shared in-memory database alive."""
    from app.db import engine

    with patch.object(engine, "dispose"):
        yield


def test_health_reports_connected_database(client: TestClient) -> None:
    """In-memory SQLite answers SELECT 1."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["database"] == "connected"
    assert "version" in data


def test_health_returns_503_when_db_unreachable(client: TestClient) -> None:
    """Health endpoint returns 503 when database is unreachable."""
    from app.db import engine

    with patch.object(engine, "connect", side_effect=Exception("Connection refused")):
        response = client.get("/health")
    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["database"] == "disconnected"


def test_startup_validates_cadence_table(cadence_table_file, keep_engine) -> None:
    """Lifespan loads the configured table; a valid one lets the app serve."""
    from app.main import app

    with TestClient(app) as c:
        assert c.get("/health").status_code == 200


def test_startup_fails_on_invalid_cadence_table(cadence_table_file, keep_engine) -> None:
    """A table missing rules stops startup instead of failing on first recompute."""
    from app.main import app

    cadence_table_file.write_text("rules:\n  - nature: referral\n    recency: recent\n")
    with pytest.raises(ConfigurationError):
        with TestClient(app):
            pass


def test_startup_without_table_only_warns(keep_engine) -> None:
    from app.main import app

    with patch("app.main.logger") as mock_logger:
        with TestClient(app) as c:
            assert c.get("/health").status_code == 200
    assert mock_logger.warning.called


def test_startup_fails_when_db_unreachable(keep_engine) -> None:
    from app.main import app

    with patch("app.main.check_db_connection", side_effect=Exception("refused")):
        with pytest.raises(Exception, match="refused"):
            with TestClient(app):
                pass

"""Tests for scripts/run_engagement_recalc.py and app.scripts.create_user."""

from __future__ import annotations

import importlib.util
import sys
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from app.services.engagement.errors import StoreUnavailableError
from app.services.engagement.recompute import RecalculationSummary

_SCRIPT = Path(__file__).resolve().parent.parent / "scripts" / "run_engagement_recalc.py"


@pytest.fixture
def recalc_script():
    spec = importlib.util.spec_from_file_location("run_engagement_recalc", _SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestRunEngagementRecalcScript:
    def test_success_prints_counts(self, recalc_script, capsys):
        summary = RecalculationSummary(updated=2, errors=1, total=5, cleared=1, job_run_id=9)
        summary.error_messages.append("Contact 3: boom")
        session = MagicMock()
        with (
            patch.object(recalc_script, "SessionLocal", return_value=session),
            patch.object(recalc_script, "recalculate_for_tenant", return_value=summary) as run,
        ):
            code = recalc_script.main([])

        assert code == 0
        assert run.call_args[0][1] is None
        out = capsys.readouterr()
        assert "updated=2" in out.out
        assert "total=5" in out.out
        assert "Contact 3: boom" in out.err
        session.close.assert_called_once()

    def test_workspace_id_forwarded(self, recalc_script):
        ws = "00000000-0000-0000-0000-000000000001"
        with (
            patch.object(recalc_script, "SessionLocal", return_value=MagicMock()),
            patch.object(
                recalc_script, "recalculate_for_tenant", return_value=RecalculationSummary()
            ) as run,
        ):
            assert recalc_script.main(["--workspace-id", ws]) == 0
        assert str(run.call_args[0][1]) == ws

    def test_invalid_workspace_id(self, recalc_script, capsys):
        assert recalc_script.main(["--workspace-id", "nope"]) == 1
        assert "invalid workspace id" in capsys.readouterr().err

    def test_store_unavailable_exits_1(self, recalc_script):
        with (
            patch.object(recalc_script, "SessionLocal", return_value=MagicMock()),
            patch.object(
                recalc_script,
                "recalculate_for_tenant",
                side_effect=StoreUnavailableError("refused"),
            ),
        ):
            assert recalc_script.main([]) == 1


class TestCreateUserScript:
    def test_creates_user_and_grants_workspace(self, db, other_workspace, monkeypatch, capsys):
        from app.models import User, UserWorkspace
        from app.scripts import create_user

        monkeypatch.setattr(create_user, "SessionLocal", lambda: db)
        monkeypatch.setattr(db, "close", lambda: None)
        monkeypatch.setattr(
            sys,
            "argv",
            [
                "create_user",
                "--username",
                "carol",
                "--workspace-id",
                str(other_workspace.id),
                "--print-token",
            ],
        )

        create_user.main()

        user = db.query(User).filter(User.username == "carol").one()
        assert db.get(UserWorkspace, (user.id, other_workspace.id)) is not None
        out = capsys.readouterr().out
        assert "created" in out
        assert out.strip().splitlines()[-1].count(".") == 2  # JWT

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest
from typer.testing import CliRunner

from group_ledger.cli import (
    app,
    cmd_ai_summary,
    cmd_classify,
    cmd_edit_contribution,
    cmd_load_snapshot,
    cmd_member_statement,
    cmd_tax_summary,
    cmd_void_contribution,
)
from group_ledger.store import SqlRecordSource
from tests.helpers import records as r
from tests.helpers.db import bootstrap_sqlite_db


@pytest.fixture()
def snapshot(tmp_path: Path) -> Path:
    path = tmp_path / "export.json"
    payload = {
        "users": [r.member()],
        "contributions": [
            r.contribution("c1", date_paid="2024-01-10", months=["2024-01"], amount=5000),
            r.contribution("c2", date_paid="2024-02-15", months=["2024-01"], amount=1000),
        ],
        "expenses": [r.expense()],
    }
    path.write_text(json.dumps(payload), encoding="utf-8")
    return path


def test_member_statement_prints_report_json(snapshot, capsys) -> None:
    code = cmd_member_statement(
        "m1", snapshot=snapshot, start=date(2024, 2, 1), end=date(2024, 2, 29)
    )

    assert code == 0
    out = json.loads(capsys.readouterr().out)
    assert out["title"] == "Member Statement"
    assert [row["balance"] for row in out["data"]] == ["6000"]
    assert {"label": "Opening Balance", "value": "5000"} in out["summary"]


def test_tax_summary_reports_missing_snapshot(tmp_path, capsys) -> None:
    code = cmd_tax_summary(2024, snapshot=tmp_path / "missing.json")
    assert code == 1
    assert capsys.readouterr().err.startswith("Error: tax summary failed")


def test_classify_prints_verdict(snapshot, capsys) -> None:
    assert cmd_classify("c2", snapshot=snapshot) == 0
    assert json.loads(capsys.readouterr().out) == {
        "id": "c2",
        "lateness": "late",
        "label": "Late",
    }
    assert cmd_classify("nope", snapshot=snapshot) == 1
    assert "contribution not found" in capsys.readouterr().err


def test_void_writes_back_to_the_snapshot(snapshot, capsys) -> None:
    assert cmd_void_contribution("c2", actor_id="admin", reason="dup", snapshot=snapshot) == 0

    saved = json.loads(snapshot.read_text(encoding="utf-8"))
    c2 = next(c for c in saved["contributions"] if c["id"] == "c2")
    assert c2["status"] == "voided"
    assert saved["auditLog"][0]["actionType"] == "CONTRIBUTION_VOIDED"
    assert saved["auditLog"][0]["userName"] == "admin"

    capsys.readouterr()
    assert cmd_void_contribution("c2", actor_id="admin", snapshot=snapshot) == 1
    assert "already voided" in capsys.readouterr().err


def test_edit_applies_settings_limits(snapshot, capsys) -> None:
    code = cmd_edit_contribution("c1", {"amount": "50"}, actor_id="admin", snapshot=snapshot)
    assert code == 1
    assert "at least 1000" in capsys.readouterr().err

    code = cmd_edit_contribution(
        "c2", {"datePaid": "2024-02-01"}, actor_id="admin", snapshot=snapshot
    )
    assert code == 0
    assert json.loads(capsys.readouterr().out)["isLate"] is False


def test_edit_requires_changes(snapshot, capsys) -> None:
    assert cmd_edit_contribution("c1", {}, actor_id="admin", snapshot=snapshot) == 1
    assert "nothing to change" in capsys.readouterr().err


def test_load_snapshot_into_sql(snapshot, tmp_path, capsys) -> None:
    url = bootstrap_sqlite_db(tmp_path / "ledger.sqlite")

    assert cmd_load_snapshot(snapshot, database_url=url) == 0
    assert "Imported 4 document(s)" in capsys.readouterr().out
    assert [d["id"] for d in SqlRecordSource(url).fetch("contributions")] == ["c1", "c2"]


def test_load_snapshot_reports_missing_file(tmp_path, capsys) -> None:
    assert cmd_load_snapshot(tmp_path / "nope.json") == 1
    assert "File not found" in capsys.readouterr().err


def test_ai_summary_requires_api_key(monkeypatch, snapshot, capsys) -> None:
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    assert cmd_ai_summary("Admin", snapshot=snapshot) == 1
    assert "OPENAI_API_KEY" in capsys.readouterr().err


def test_typer_app_parses_options(snapshot, monkeypatch, tmp_path) -> None:
    monkeypatch.chdir(tmp_path)
    runner = CliRunner()

    result = runner.invoke(
        app,
        [
            "--log-level",
            "WARNING",
            "contribution-details",
            "--snapshot",
            str(snapshot),
            "--start",
            "2024-02-01",
            "--lateness",
            "late",
        ],
    )
    assert result.exit_code == 0, result.output
    out = json.loads(result.stdout)
    assert out["dateRange"] == "From February 1, 2024"
    assert [row["status"] for row in out["data"]] == ["Late"]

    result = runner.invoke(app, ["void-contribution", "c1", "--snapshot", str(snapshot)])
    assert result.exit_code != 0

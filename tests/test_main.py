import json
from datetime import date

import pytest

import main
from database.db_manager import DatabaseManager

from conftest import TENANT


@pytest.fixture
def db_path(tmp_path, monkeypatch):
    monkeypatch.setenv("BIZLEDGER_CONFIG", str(tmp_path / "config.json"))
    path = str(tmp_path / "cli.db")
    db = DatabaseManager(path)
    db.initialize()
    services = main.Services(db)
    account = services.accounts.create(TENANT, "Operating", "bank")
    services.recurring.create(
        TENANT, "Hosting", "expense", 20.0, "monthly", "2024-01-01",
        account_id=account.id, as_of=date(2024, 1, 1),
    )
    services.budgets.create_budget(
        TENANT, "Year", "annual", "2024-01-01", "2024-12-31",
        items=[{"name": "Infra", "amount": 240.0}],
    )
    db.close()
    return path


def _run(capsys, *argv):
    code = main.main(list(argv))
    return code, capsys.readouterr()


def test_process_due_command(capsys, db_path):
    code, out = _run(capsys, "--db", db_path, "process-due", "--tenant", TENANT, "--date", "2024-01-01")
    assert code == 0
    summary = json.loads(out.out)
    assert (summary["processed"], summary["successful"]) == (1, 1)

    code, out = _run(capsys, "--db", db_path, "recalculate", "--tenant", TENANT)
    assert code == 0
    [row] = json.loads(out.out)
    assert row["balance"] == -20.0


def test_budget_stats_command(capsys, db_path):
    code, out = _run(capsys, "--db", db_path, "budget-stats", "--budget", "1")
    assert code == 0
    assert json.loads(out.out)["total_budget"] == 240.0


def test_reminders_command(capsys, db_path):
    code, out = _run(capsys, "--db", db_path, "reminders", "--tenant", TENANT, "--date", "2023-12-30")
    assert code == 0
    [reminder] = json.loads(out.out)
    assert reminder["title"] == "Hosting due in 2 days"


def test_forecast_command(capsys, db_path):
    code, out = _run(capsys, "--db", db_path, "forecast", "--tenant", TENANT, "--months", "2")
    assert code == 0
    assert len(json.loads(out.out)) == 2


def test_unknown_budget_exits_non_zero(capsys, db_path):
    code, out = _run(capsys, "--db", db_path, "budget-stats", "--budget", "99")
    assert code == 1
    assert out.out == ""


def test_recalculate_rejects_foreign_account(capsys, db_path):
    code, _ = _run(capsys, "--db", db_path, "recalculate", "--tenant", "globex", "--account", "1")
    assert code == 1

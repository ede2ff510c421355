from datetime import date

import pytest

from utils.errors import NotFoundError

from conftest import TENANT


def test_reminders_combine_schedules_and_budgets(services, make_schedule):
    make_schedule(name="Payroll", start_date="2024-03-01", as_of=date(2024, 3, 1))
    make_schedule(name="Insurance", start_date="2024-03-08", as_of=date(2024, 3, 5))
    make_schedule(name="Far away", start_date="2024-06-01", as_of=date(2024, 3, 5))
    budget = services.budgets.create_budget(
        TENANT, "March", "monthly", "2024-03-01", "2024-03-31",
        items=[{"name": "Travel", "amount": 100.0}],
    )
    services.budgets.update_item(budget.items[0].id, spent=120.0)

    reminders = services.reminders.get_reminders(TENANT, ref_date=date(2024, 3, 5))

    assert [r.severity for r in reminders] == ["error", "error", "warning", "info"]
    assert {r.type for r in reminders[:2]} == {"over_budget"}
    assert reminders[2].type == "overdue_recurring"
    assert reminders[2].title == "Payroll is overdue"
    assert reminders[3].title == "Insurance due in 3 days"
    assert reminders[3].key.startswith("recurring:")


def test_paused_schedules_are_not_reminded(services, make_schedule):
    schedule = make_schedule(start_date="2024-03-06", as_of=date(2024, 3, 5))
    services.recurring.pause(schedule.id)
    assert services.reminders.get_reminders(TENANT, ref_date=date(2024, 3, 5)) == []


def test_upcoming_window_is_configurable(services, make_schedule):
    make_schedule(start_date="2024-03-20", as_of=date(2024, 3, 5))
    assert services.reminders.get_reminders(TENANT, ref_date=date(2024, 3, 5)) == []
    [reminder] = services.reminders.get_reminders(
        TENANT, ref_date=date(2024, 3, 5), upcoming_days=15
    )
    assert reminder.title.endswith("in 15 days")


def test_project_balance_runs_forward_from_current_balance(services, make_schedule):
    account = services.accounts.create(TENANT, "Checking", "bank", opening_balance=1000.0)
    income = make_schedule(
        name="Retainer", type_="income", amount=500.0, start_date="2024-01-15",
        account_id=account.id,
    )
    expense = make_schedule(
        name="Contractor", amount=200.0, frequency="weekly", start_date="2024-01-05",
        account_id=account.id,
    )
    make_schedule(name="Unbound", amount=999.0, start_date="2024-01-10")

    projection = services.forecast.project_balance(account.id, "2024-01-31", as_of=date(2024, 1, 1))

    assert [(p["date"], p["schedule_id"], p["balance"]) for p in projection] == [
        ("2024-01-05", expense.id, 800.0),
        ("2024-01-12", expense.id, 600.0),
        ("2024-01-15", income.id, 1100.0),
        ("2024-01-19", expense.id, 900.0),
        ("2024-01-26", expense.id, 700.0),
    ]
    assert projection[2]["delta"] == 500.0


def test_project_balance_credit_account_inverts(services, make_schedule):
    card = services.accounts.create(TENANT, "Card", "credit")
    make_schedule(name="SaaS", amount=30.0, start_date="2024-01-02", account_id=card.id)

    projection = services.forecast.project_balance(card.id, date(2024, 2, 28), as_of=date(2024, 1, 1))

    assert [p["balance"] for p in projection] == [30.0, 60.0]


def test_project_balance_unknown_account(services):
    with pytest.raises(NotFoundError):
        services.forecast.project_balance(404, "2024-01-31")


def test_monthly_cash_flow(services, make_schedule):
    make_schedule(name="Retainer", type_="income", amount=500.0, start_date="2024-01-15")
    make_schedule(name="Contractor", amount=200.0, frequency="weekly", start_date="2024-01-05")

    flow = services.forecast.monthly_cash_flow(TENANT, months=3, as_of=date(2024, 1, 1))

    assert flow == [
        {"month": "2024-01", "income": 500.0, "expense": 800.0, "net": -300.0},
        {"month": "2024-02", "income": 500.0, "expense": 800.0, "net": -300.0},
        {"month": "2024-03", "income": 500.0, "expense": 1000.0, "net": -500.0},
    ]


def test_monthly_cash_flow_requires_positive_months(services):
    with pytest.raises(ValueError):
        services.forecast.monthly_cash_flow(TENANT, months=0)

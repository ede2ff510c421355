from datetime import date

import pytest

from database.transaction_dao import TransactionDAO
from utils.errors import InvalidRecurrenceRule, NotFoundError, WriteConflict

from conftest import OTHER_TENANT, TENANT


def test_month_end_schedule_clamps_into_leap_february(services, bank, make_schedule):
    schedule = make_schedule(
        account_id=bank.id, start_date="2024-01-31", day_of_month=31, as_of=date(2024, 1, 31)
    )
    assert schedule.next_due_date == "2024-01-31"

    batch = services.recurring.process_due(TENANT, now=date(2024, 2, 5))

    [result] = batch.results
    assert result.success
    assert result.next_due_date == "2024-02-29"
    assert result.status == "active"
    assert services.recurring.get_by_id(schedule.id).last_processed_date == "2024-02-05"
    tx = services.transactions.get_by_id(result.transaction_id)
    assert (tx.date, tx.type, tx.amount, tx.status) == ("2024-01-31", "expense", 100.0, "completed")
    assert tx.recurring and tx.recurring_schedule_id == schedule.id
    assert services.accounts.get_by_id(bank.id).balance == -100.0

    services.recurring.process_due(TENANT, now=date(2024, 2, 29))
    refreshed = services.recurring.get_by_id(schedule.id)
    assert refreshed.next_due_date == "2024-03-31"
    assert refreshed.last_processed_date == "2024-02-29"


def test_materialized_description_combines_name_and_description(services, bank, make_schedule):
    make_schedule(account_id=bank.id, description="Office lease")
    batch = services.recurring.process_due(TENANT, now=date(2024, 1, 1))
    tx = services.transactions.get_by_id(batch.results[0].transaction_id)
    assert tx.description == "Rent - Office lease"


def test_nothing_due_yet(services, make_schedule):
    make_schedule(start_date="2024-02-01")
    batch = services.recurring.process_due(TENANT, now=date(2024, 1, 31))
    assert batch.processed_count == 0


def test_one_failing_schedule_does_not_stop_the_batch(services, make_schedule, monkeypatch):
    accounts = [services.accounts.create(TENANT, f"Account {i}", "bank") for i in range(10)]
    schedules = [
        make_schedule(name=f"Obligation {i}", account_id=a.id) for i, a in enumerate(accounts)
    ]
    failing_account = accounts[4].id
    real_apply = services.ledger.apply_delta

    def flaky_apply(account_id, transaction, reason=None):
        if account_id == failing_account:
            raise WriteConflict("simulated concurrent update")
        return real_apply(account_id, transaction, reason)

    monkeypatch.setattr(services.ledger, "apply_delta", flaky_apply)
    batch = services.recurring.process_due(TENANT, now=date(2024, 1, 1))

    assert batch.processed_count == 10
    assert batch.success_count == 9
    assert batch.failure_count == 1
    failed = [r for r in batch.results if not r.success]
    assert failed[0].schedule_id == schedules[4].id
    assert "simulated concurrent update" in failed[0].error

    for i, schedule in enumerate(schedules):
        refreshed = services.recurring.get_by_id(schedule.id)
        balance = services.accounts.get_by_id(accounts[i].id).balance
        if i == 4:
            assert refreshed.next_due_date == "2024-01-01"
            assert balance == 0.0
            assert TransactionDAO(services.db).get_by_schedule(schedule.id) == []
        else:
            assert refreshed.next_due_date == "2024-02-01"
            assert balance == -100.0

    monkeypatch.undo()
    retry = services.recurring.process_due(TENANT, now=date(2024, 1, 1))
    assert [r.schedule_id for r in retry.results] == [schedules[4].id]
    assert retry.results[0].success
    assert services.accounts.get_by_id(failing_account).balance == -100.0


def test_already_materialized_occurrence_is_not_applied_twice(services, bank, make_schedule):
    schedule = make_schedule(account_id=bank.id, type_="income", amount=250.0)
    existing = TransactionDAO(services.db).create(
        tenant_id=TENANT,
        account_id=bank.id,
        type_="income",
        amount=250.0,
        date="2024-01-01",
        recurring=True,
        recurring_schedule_id=schedule.id,
    )

    batch = services.recurring.process_due(TENANT, now=date(2024, 1, 1))

    [result] = batch.results
    assert result.success and result.duplicate
    assert result.transaction_id == existing.id
    assert services.recurring.get_by_id(schedule.id).next_due_date == "2024-02-01"
    assert len(TransactionDAO(services.db).get_by_schedule(schedule.id)) == 1
    assert services.accounts.get_by_id(bank.id).balance == 0.0


def test_overdue_schedule_catches_up_one_period_per_run(services, bank, make_schedule):
    schedule = make_schedule(account_id=bank.id)
    services.recurring.process_due(TENANT, now=date(2024, 3, 15))
    assert services.recurring.get_by_id(schedule.id).next_due_date == "2024-02-01"
    services.recurring.process_due(TENANT, now=date(2024, 3, 15))
    services.recurring.process_due(TENANT, now=date(2024, 3, 15))
    assert services.recurring.get_by_id(schedule.id).next_due_date == "2024-04-01"
    assert services.accounts.get_by_id(bank.id).balance == -300.0


def test_schedule_completes_after_end_date(services, bank, make_schedule):
    schedule = make_schedule(
        account_id=bank.id, frequency="daily", end_date="2024-01-02"
    )
    services.recurring.process_due(TENANT, now=date(2024, 1, 1))
    assert services.recurring.get_by_id(schedule.id).status == "active"

    batch = services.recurring.process_due(TENANT, now=date(2024, 1, 2))
    assert batch.results[0].status == "completed"

    assert services.recurring.process_due(TENANT, now=date(2024, 1, 5)).processed_count == 0
    assert len(TransactionDAO(services.db).get_by_schedule(schedule.id)) == 2


def test_schedule_without_account_only_creates_transaction(services, make_schedule):
    make_schedule()
    batch = services.recurring.process_due(TENANT, now=date(2024, 1, 1))
    tx = services.transactions.get_by_id(batch.results[0].transaction_id)
    assert tx.account_id is None


def test_processing_is_scoped_to_tenant(services, make_schedule):
    make_schedule()
    assert services.recurring.process_due(OTHER_TENANT, now=date(2024, 1, 1)).processed_count == 0


def test_batch_summary_dict(services, make_schedule):
    make_schedule()
    summary = services.recurring.process_due(TENANT, now=date(2024, 1, 1)).to_dict()
    assert summary["run_date"] == "2024-01-01"
    assert (summary["processed"], summary["successful"], summary["failed"]) == (1, 1, 0)
    assert summary["results"][0]["next_due_date"] == "2024-02-01"


@pytest.mark.parametrize(
    "start, as_of, expected",
    [
        ("2024-01-15", date(2024, 3, 10), "2024-03-15"),
        ("2024-05-01", date(2024, 3, 10), "2024-05-01"),
        ("2024-03-10", date(2024, 3, 10), "2024-03-10"),
    ],
)
def test_initial_due_date(make_schedule, start, as_of, expected):
    schedule = make_schedule(start_date=start, as_of=as_of)
    assert schedule.next_due_date == expected
    assert schedule.status == "active"


def test_create_with_end_before_first_occurrence_is_completed(make_schedule):
    schedule = make_schedule(
        start_date="2024-01-15", end_date="2024-02-01", as_of=date(2024, 3, 1)
    )
    assert schedule.status == "completed"


@pytest.mark.parametrize(
    "overrides, error",
    [
        ({"interval": 0}, InvalidRecurrenceRule),
        ({"frequency": "fortnightly"}, InvalidRecurrenceRule),
        ({"day_of_month": 40}, InvalidRecurrenceRule),
        ({"amount": 0}, ValueError),
        ({"type_": "transfer"}, ValueError),
        ({"end_date": "2023-12-01"}, ValueError),
        ({"account_id": 999}, NotFoundError),
    ],
)
def test_invalid_schedules_are_rejected(make_schedule, overrides, error):
    with pytest.raises(error):
        make_schedule(**overrides)


def test_pause_and_resume_skips_missed_occurrences(services, make_schedule):
    schedule = make_schedule(frequency="weekly")
    services.recurring.pause(schedule.id)
    assert services.recurring.process_due(TENANT, now=date(2024, 1, 20)).processed_count == 0

    resumed = services.recurring.resume(schedule.id, as_of=date(2024, 1, 20))

    assert resumed.status == "active"
    assert resumed.next_due_date == "2024-01-22"


def test_completed_schedule_cannot_be_paused(services, make_schedule):
    schedule = make_schedule(end_date="2024-01-01")
    services.recurring.process_due(TENANT, now=date(2024, 1, 1))
    with pytest.raises(ValueError):
        services.recurring.pause(schedule.id)


def test_update_keeps_due_date_unless_rule_changes(services, make_schedule):
    schedule = make_schedule(start_date="2024-01-10", as_of=date(2024, 1, 1))

    same_rule = services.recurring.update(
        schedule.id, "Rent", "expense", 120.0, "monthly", "2024-01-10", as_of=date(2024, 1, 5)
    )
    assert same_rule.amount == 120.0
    assert same_rule.next_due_date == "2024-01-10"

    weekly = services.recurring.update(
        schedule.id, "Rent", "expense", 120.0, "weekly", "2024-01-10", as_of=date(2024, 1, 12)
    )
    assert weekly.next_due_date == "2024-01-17"


def test_delete_schedule_keeps_materialized_transactions(services, bank, make_schedule):
    schedule = make_schedule(account_id=bank.id)
    batch = services.recurring.process_due(TENANT, now=date(2024, 1, 1))
    assert services.recurring.delete(schedule.id) == 1

    with pytest.raises(NotFoundError):
        services.recurring.get_by_id(schedule.id)
    tx = services.transactions.get_by_id(batch.results[0].transaction_id)
    assert tx.recurring_schedule_id is None


def test_upcoming_occurrences(services, make_schedule):
    schedule = make_schedule(frequency="weekly", end_date="2024-01-20")
    got = services.recurring.upcoming_occurrences(schedule, date(2024, 2, 1))
    assert got == [date(2024, 1, 1), date(2024, 1, 8), date(2024, 1, 15)]


def test_schedule_paused_after_listing_is_skipped(services, bank, make_schedule, monkeypatch):
    schedule = make_schedule(account_id=bank.id)
    dao = services.recurring._dao
    real_get_due = dao.get_due

    def get_due_then_pause(tenant_id, as_of):
        due = real_get_due(tenant_id, as_of)
        services.recurring.pause(schedule.id)
        return due

    monkeypatch.setattr(dao, "get_due", get_due_then_pause)
    batch = services.recurring.process_due(TENANT, now=date(2024, 1, 1))

    [result] = batch.results
    assert result.success and result.skipped
    assert (batch.success_count, batch.skipped_count, batch.failure_count) == (0, 1, 0)
    refreshed = services.recurring.get_by_id(schedule.id)
    assert (refreshed.status, refreshed.next_due_date) == ("paused", "2024-01-01")
    assert services.accounts.get_by_id(bank.id).balance == 0.0
    assert TransactionDAO(services.db).get_by_schedule(schedule.id) == []


def test_overlapping_run_does_not_move_due_date_back(services, bank, make_schedule, monkeypatch):
    schedule = make_schedule(account_id=bank.id)
    dao = services.recurring._dao
    real_get_due = dao.get_due
    calls = []

    def get_due_with_overlap(tenant_id, as_of):
        due = real_get_due(tenant_id, as_of)
        calls.append(as_of)
        if len(calls) == 1:
            services.recurring.process_due(tenant_id, now=date(2024, 1, 1))
        return due

    monkeypatch.setattr(dao, "get_due", get_due_with_overlap)
    batch = services.recurring.process_due(TENANT, now=date(2024, 1, 1))

    assert batch.results[0].skipped
    assert batch.to_dict()["skipped"] == 1
    assert services.recurring.get_by_id(schedule.id).next_due_date == "2024-02-01"
    assert len(TransactionDAO(services.db).get_by_schedule(schedule.id)) == 1
    assert services.accounts.get_by_id(bank.id).balance == -100.0

import pytest

from database.account_dao import AccountDAO
from database.db_manager import DatabaseManager
from main import Services
from utils.errors import WriteConflict

from conftest import TENANT


@pytest.fixture
def file_dbs(tmp_path):
    """Two managers on the same file: a normal one and one that gives up fast."""
    path = str(tmp_path / "ledger.db")
    holder = DatabaseManager(path)
    holder.initialize()
    contender = DatabaseManager(path, timeout=0.05)
    yield holder, contender
    contender.close()
    holder.close()


def test_initialize_seeds_settings(db):
    assert float(db.get_setting("budget_alert_threshold")) == 90.0
    assert int(db.get_setting("upcoming_reminder_days")) == 7
    assert db.get_setting("missing", "fallback") == "fallback"


def test_initialize_is_repeatable(db):
    db.set_setting("budget_alert_threshold", "75")
    db.initialize()
    assert db.get_setting("budget_alert_threshold") == "75"


def test_atomic_rolls_back_on_error(db):
    dao = AccountDAO(db)
    with pytest.raises(RuntimeError):
        with db.atomic():
            dao.create(TENANT, "Ghost")
            raise RuntimeError("boom")
    assert dao.get_all(TENANT) == []


def test_nested_block_rolls_back_alone(db):
    dao = AccountDAO(db)
    with db.atomic():
        dao.create(TENANT, "Kept")
        with pytest.raises(RuntimeError):
            with db.atomic():
                dao.create(TENANT, "Dropped")
                raise RuntimeError("inner")
    assert [a.name for a in dao.get_all(TENANT)] == ["Kept"]


def test_locked_store_raises_write_conflict(file_dbs):
    holder, contender = file_dbs
    with holder.atomic():
        with pytest.raises(WriteConflict):
            with contender.atomic():
                pass


def test_balance_update_during_lock_is_rejected_without_change(file_dbs):
    holder, contender = file_dbs
    account = Services(holder).accounts.create(TENANT, "Shared", "bank")
    contender_services = Services(contender)

    with holder.atomic():
        with pytest.raises(WriteConflict):
            contender_services.transactions.create(TENANT, account.id, "income", 10.0, "2024-01-05")

    assert contender_services.accounts.get_by_id(account.id).balance == 0.0
    assert contender_services.transactions.get_for_tenant(TENANT) == []
    contender_services.transactions.create(TENANT, account.id, "income", 10.0, "2024-01-05")
    assert Services(holder).accounts.get_by_id(account.id).balance == 10.0

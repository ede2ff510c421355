from datetime import date

import pytest

from database.db_manager import DatabaseManager
from main import Services

TENANT = "acme"
OTHER_TENANT = "globex"


@pytest.fixture
def db():
    manager = DatabaseManager(":memory:")
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def services(db):
    return Services(db)


@pytest.fixture
def bank(services):
    return services.accounts.create(TENANT, "Operating", "bank")


@pytest.fixture
def make_schedule(services):
    """Create a schedule with sensible defaults; keyword arguments override them."""

    def _make(**overrides):
        fields = {
            "tenant_id": TENANT,
            "name": "Rent",
            "type_": "expense",
            "amount": 100.0,
            "frequency": "monthly",
            "start_date": "2024-01-01",
            "as_of": date(2024, 1, 1),
        }
        fields.update(overrides)
        return services.recurring.create(**fields)

    return _make

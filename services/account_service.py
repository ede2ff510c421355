import logging

from database.db_manager import DatabaseManager
from database.account_dao import AccountDAO
from models.account import Account, ACCOUNT_TYPES
from services.transaction_service import TransactionService
from utils.constants import DEFAULT_CURRENCY
from utils.currency import round_money
from utils.date_helpers import today
from utils.errors import NotFoundError

logger = logging.getLogger("bizledger.ledger")


class AccountService:
    def __init__(
        self,
        db: DatabaseManager,
        account_dao: AccountDAO,
        tx_service: TransactionService,
    ):
        self._db = db
        self._dao = account_dao
        self._tx_service = tx_service

    def get_all(self, tenant_id: str) -> list[Account]:
        return self._dao.get_all(tenant_id)

    def get_by_id(self, account_id: int) -> Account:
        account = self._dao.get_by_id(account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account

    def create(
        self,
        tenant_id: str,
        name: str,
        account_type: str = "bank",
        currency: str = DEFAULT_CURRENCY,
        description: str = "",
        opening_balance: float = 0.0,
    ) -> Account:
        """New accounts start at zero; an opening balance is posted as a transaction."""
        name = name.strip()
        if not name:
            raise ValueError("Account name cannot be empty.")
        self._validate_type(account_type)
        currency = self._validate_currency(currency)
        with self._db.atomic():
            if self._dao.get_by_name(tenant_id, name):
                raise ValueError(f"An account named '{name}' already exists.")
            account = self._dao.create(
                tenant_id, name, account_type, currency, description.strip()
            )
            if opening_balance:
                account = self.adjust_balance(
                    account.id, opening_balance, reason="Opening balance"
                )
        return account

    def update(
        self,
        account_id: int,
        name: str,
        account_type: str,
        currency: str = DEFAULT_CURRENCY,
        description: str = "",
    ) -> Account:
        name = name.strip()
        if not name:
            raise ValueError("Account name cannot be empty.")
        self._validate_type(account_type)
        currency = self._validate_currency(currency)
        with self._db.atomic():
            current = self.get_by_id(account_id)
            existing = self._dao.get_by_name(current.tenant_id, name)
            if existing and existing.id != account_id:
                raise ValueError(f"An account named '{name}' already exists.")
            # Type drives the sign rule applied to existing history.
            if current.account_type != account_type and self._dao.has_transactions(account_id):
                raise ValueError(
                    "Cannot change account type when the account has existing transactions."
                )
            return self._dao.update(account_id, name, account_type, currency, description.strip())

    def adjust_balance(
        self,
        account_id: int,
        target_balance: float,
        reason: str = "Balance adjustment",
    ) -> Account:
        """Post a completed transaction that moves the balance exactly to ``target_balance``."""
        target_balance = round_money(target_balance)
        with self._db.atomic():
            account = self.get_by_id(account_id)
            difference = round_money(target_balance - account.balance)
            if difference == 0:
                return account
            # Credit accounts grow with expenses.
            type_ = "expense" if (difference < 0) != account.is_inverted else "income"
            self._tx_service.create(
                tenant_id=account.tenant_id,
                account_id=account.id,
                type_=type_,
                amount=abs(difference),
                date=today(),
                description=reason,
                status="completed",
                category="Balance Adjustment",
            )
            updated = self.get_by_id(account_id)
        logger.info("Adjusted account %s by %+.2f (%s)", account_id, difference, reason)
        return updated

    def delete(self, account_id: int):
        with self._db.atomic():
            self.get_by_id(account_id)
            if self._dao.has_transactions(account_id):
                raise ValueError(
                    "Cannot delete an account with existing transactions. "
                    "Remove all transactions first."
                )
            self._dao.delete(account_id)

    # ── Helpers ──────────────────────────────────────────────────────────────

    @staticmethod
    def _validate_type(account_type: str):
        if account_type not in ACCOUNT_TYPES:
            raise ValueError(
                f"Invalid account type '{account_type}'. "
                f"Must be one of: {', '.join(ACCOUNT_TYPES)}."
            )

    @staticmethod
    def _validate_currency(currency: str) -> str:
        currency = (currency or "").strip().upper()
        if len(currency) != 3 or not currency.isalpha():
            raise ValueError(f"Invalid currency code '{currency}'.")
        return currency

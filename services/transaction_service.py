import logging

from database.db_manager import DatabaseManager
from database.transaction_dao import TransactionDAO
from database.account_dao import AccountDAO
from models.transaction import Transaction
from services.ledger_service import LedgerService
from utils.constants import TRANSACTION_STATUSES, TRANSACTION_TYPES
from utils.currency import round_money
from utils.date_helpers import format_date, require_date
from utils.errors import NotFoundError, TrackingRejected

logger = logging.getLogger("bizledger.transactions")


class TransactionService:
    def __init__(
        self,
        db: DatabaseManager,
        tx_dao: TransactionDAO,
        account_dao: AccountDAO,
        ledger: LedgerService,
    ):
        self._db = db
        self._dao = tx_dao
        self._account_dao = account_dao
        self._ledger = ledger

    def get_by_id(self, tx_id: int) -> Transaction:
        tx = self._dao.get_by_id(tx_id)
        if tx is None:
            raise NotFoundError("Transaction", tx_id)
        return tx

    def get_for_account(self, account_id: int, status: str | None = None) -> list[Transaction]:
        return self._dao.get_by_account(account_id, status)

    def get_for_tenant(
        self,
        tenant_id: str,
        type_filter: str | None = None,
        status: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        search: str | None = None,
    ) -> list[Transaction]:
        return self._dao.get_by_tenant(
            tenant_id, type_filter, status, start_date, end_date, search
        )

    def create(
        self,
        tenant_id: str,
        account_id: int | None,
        type_: str,
        amount: float,
        date,
        description: str = "",
        status: str = "completed",
        category: str | None = None,
        notes: str | None = None,
    ) -> Transaction:
        date_str = self._validate(type_, amount, date, status)
        with self._db.atomic():
            self._check_account(tenant_id, account_id)
            tx = self._dao.create(
                tenant_id=tenant_id,
                account_id=account_id,
                type_=type_,
                amount=round_money(amount),
                date=date_str,
                description=description.strip(),
                status=status,
                category=category,
                notes=notes,
            )
            if account_id is not None:
                self._ledger.apply_delta(account_id, tx)
        logger.debug("Created transaction %s (%s %.2f, %s)", tx.id, type_, tx.amount, status)
        return tx

    def update(
        self,
        tx_id: int,
        account_id: int | None,
        type_: str,
        amount: float,
        date,
        description: str = "",
        status: str = "completed",
        category: str | None = None,
        notes: str | None = None,
    ) -> Transaction:
        """Reverse the old effect, rewrite the row, apply the new effect."""
        date_str = self._validate(type_, amount, date, status)
        with self._db.atomic():
            existing = self.get_by_id(tx_id)
            self._check_account(existing.tenant_id, account_id)
            if existing.budget_item_id is not None and (
                type_ != existing.type or round_money(amount) < existing.amount
            ):
                raise TrackingRejected(
                    f"Transaction {tx_id} is tracked against a budget item; "
                    "its type cannot change and its amount cannot decrease."
                )
            if existing.account_id is not None:
                self._ledger.reverse(existing.account_id, existing)
            tx = self._dao.update(
                tx_id,
                account_id=account_id,
                type_=type_,
                amount=round_money(amount),
                date=date_str,
                description=description.strip(),
                status=status,
                category=category,
                notes=notes,
            )
            if account_id is not None:
                self._ledger.apply_delta(account_id, tx)
        return tx

    def delete(self, tx_id: int):
        with self._db.atomic():
            existing = self.get_by_id(tx_id)
            if existing.budget_item_id is not None:
                raise TrackingRejected(
                    f"Transaction {tx_id} is tracked against a budget item and cannot be deleted."
                )
            if existing.account_id is not None:
                self._ledger.reverse(existing.account_id, existing)
            self._dao.delete(tx_id)
        logger.debug("Deleted transaction %s", tx_id)

    def _check_account(self, tenant_id: str, account_id: int | None):
        if account_id is None:
            return
        account = self._account_dao.get_by_id(account_id)
        if account is None or account.tenant_id != tenant_id:
            raise NotFoundError("Account", account_id)

    def _validate(self, type_: str, amount: float, date, status: str) -> str:
        if type_ not in TRANSACTION_TYPES:
            raise ValueError(f"Invalid type: {type_}")
        if status not in TRANSACTION_STATUSES:
            raise ValueError(f"Invalid status: {status}")
        if amount is None or amount <= 0:
            raise ValueError("Amount must be positive.")
        return format_date(require_date(date))

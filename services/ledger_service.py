"""Account balance mutation and reconciliation.

Every money-affecting path goes through LedgerService so that the stored
balance always equals the replay of the account's completed transactions
under ``balance_change``.
"""
import logging

from database.db_manager import DatabaseManager
from database.account_dao import AccountDAO
from database.audit_log_dao import AuditLogDAO
from database.transaction_dao import TransactionDAO
from models.account import Account
from models.audit_log import AuditLogEntry
from utils.constants import INVERTED_ACCOUNT_TYPES
from utils.currency import round_money
from utils.errors import NotFoundError

logger = logging.getLogger("bizledger.ledger")


def balance_change(amount: float, type_: str, status: str, account_type: str) -> float:
    """Signed effect of one transaction on an account balance.

    Only completed transactions count. Income adds, expense subtracts, and
    the result is inverted once more for credit-type accounts.
    """
    if status != "completed":
        return 0.0
    change = float(amount)
    if type_ == "expense":
        change = -change
    if account_type in INVERTED_ACCOUNT_TYPES:
        change = -change
    return round_money(change)


class LedgerService:
    def __init__(
        self,
        db: DatabaseManager,
        account_dao: AccountDAO,
        tx_dao: TransactionDAO,
        audit_dao: AuditLogDAO,
    ):
        self._db = db
        self._account_dao = account_dao
        self._tx_dao = tx_dao
        self._audit_dao = audit_dao

    def apply_delta(self, account_id: int, transaction, reason: str | None = None) -> Account:
        """Apply ``transaction``'s sign-rule delta to the account.

        ``transaction`` is anything with ``amount``, ``type`` and ``status``.
        Read, balance write and audit append happen in one atomic block.
        A zero delta returns the account untouched and writes no audit entry.
        """
        with self._db.atomic():
            account = self._get_account(account_id)
            delta = balance_change(
                transaction.amount, transaction.type, transaction.status, account.account_type
            )
            if delta == 0:
                return account
            return self._post(account, delta, reason or _describe(transaction), transaction)

    def reverse(self, account_id: int, transaction, reason: str | None = None) -> Account:
        """Undo what apply_delta() did for ``transaction``."""
        with self._db.atomic():
            account = self._get_account(account_id)
            delta = -balance_change(
                transaction.amount, transaction.type, transaction.status, account.account_type
            )
            if delta == 0:
                return account
            return self._post(
                account, delta, reason or f"Reversal of {_describe(transaction)}", transaction
            )

    def recalculate(self, account_id: int) -> Account:
        """Rebuild the balance from every completed transaction of the account."""
        with self._db.atomic():
            account = self._get_account(account_id)
            transactions = self._tx_dao.get_completed_for_account(account_id)
            total = 0.0
            for tx in transactions:
                total = round_money(
                    total + balance_change(tx.amount, tx.type, tx.status, account.account_type)
                )
            updated = self._account_dao.set_balance(account, total)
            change = round_money(total - account.balance)
            self._audit_dao.append(
                account_id=account.id,
                previous_balance=account.balance,
                new_balance=total,
                change_amount=change,
                description=f"Balance recalculation based on {len(transactions)} transactions",
                transaction_count=len(transactions),
            )
        if change:
            logger.warning(
                "Account %s drifted by %s; balance reset to %s", account.id, change, total
            )
        else:
            logger.info("Account %s reconciled, no drift (%d transactions)", account.id, len(transactions))
        return updated

    def recalculate_all(self, tenant_id: str) -> list[dict]:
        """Recalculate every account of a tenant; one failure does not stop the rest."""
        results = []
        for account in self._account_dao.get_all(tenant_id):
            try:
                updated = self.recalculate(account.id)
            except Exception as exc:
                logger.exception("Recalculation failed for account %s", account.id)
                results.append({
                    "account_id": account.id,
                    "account_name": account.name,
                    "success": False,
                    "error": str(exc),
                })
            else:
                results.append({
                    "account_id": account.id,
                    "account_name": account.name,
                    "success": True,
                    "balance": updated.balance,
                })
        return results

    def get_audit_log(self, account_id: int) -> list[AuditLogEntry]:
        self._get_account(account_id)
        return self._audit_dao.get_for_account(account_id)

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _get_account(self, account_id: int) -> Account:
        account = self._account_dao.get_by_id(account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        return account

    def _post(self, account: Account, delta: float, reason: str, transaction) -> Account:
        new_balance = round_money(account.balance + delta)
        updated = self._account_dao.set_balance(account, new_balance)
        self._audit_dao.append(
            account_id=account.id,
            previous_balance=account.balance,
            new_balance=new_balance,
            change_amount=delta,
            description=reason,
            transaction_id=getattr(transaction, "id", None),
        )
        logger.debug(
            "Account %s: %s -> %s (%+.2f) %s",
            account.id, account.balance, new_balance, delta, reason,
        )
        return updated


def _describe(transaction) -> str:
    tx_id = getattr(transaction, "id", None)
    description = getattr(transaction, "description", "") or ""
    label = f"Transaction {tx_id}" if tx_id is not None else "Transaction"
    return f"{label}: {description}" if description else label

from typing import Optional
from database.db_manager import DatabaseManager
from models.account import Account
from utils.errors import WriteConflict


class AccountDAO:
    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> Account:
        return Account(
            id=row["id"],
            tenant_id=row["tenant_id"],
            name=row["name"],
            account_type=row["account_type"],
            balance=row["balance"],
            currency=row["currency"],
            description=row["description"],
            version=row["version"],
            created_at=row["created_at"],
        )

    def get_all(self, tenant_id: str) -> list[Account]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM accounts WHERE tenant_id = ? ORDER BY name",
            (tenant_id,),
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_id(self, account_id: int) -> Optional[Account]:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM accounts WHERE id = ?", (account_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def get_by_name(self, tenant_id: str, name: str) -> Optional[Account]:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM accounts WHERE tenant_id = ? AND name = ?", (tenant_id, name)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def create(
        self,
        tenant_id: str,
        name: str,
        account_type: str = "bank",
        currency: str = "USD",
        description: str = "",
    ) -> Account:
        with self._db.atomic() as conn:
            cursor = conn.execute(
                """INSERT INTO accounts(tenant_id, name, account_type, currency, description)
                   VALUES (?, ?, ?, ?, ?)""",
                (tenant_id, name, account_type, currency, description),
            )
            return self.get_by_id(cursor.lastrowid)

    def update(
        self,
        account_id: int,
        name: str,
        account_type: str,
        currency: str,
        description: str = "",
    ) -> Account:
        """Metadata only. Balance changes go through set_balance()."""
        with self._db.atomic() as conn:
            conn.execute(
                """UPDATE accounts SET name = ?, account_type = ?, currency = ?, description = ?
                   WHERE id = ?""",
                (name, account_type, currency, description, account_id),
            )
            return self.get_by_id(account_id)

    def set_balance(self, account: Account, new_balance: float) -> Account:
        """Compare-and-set on the version read together with ``account``."""
        with self._db.atomic() as conn:
            cursor = conn.execute(
                """UPDATE accounts SET balance = ?, version = version + 1
                   WHERE id = ? AND version = ?""",
                (new_balance, account.id, account.version),
            )
            if cursor.rowcount != 1:
                raise WriteConflict(
                    f"Account {account.id} changed since version {account.version} was read"
                )
            return self.get_by_id(account.id)

    def delete(self, account_id: int):
        with self._db.atomic() as conn:
            conn.execute("DELETE FROM accounts WHERE id = ?", (account_id,))

    def has_transactions(self, account_id: int) -> bool:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT COUNT(*) as cnt FROM transactions WHERE account_id = ?",
            (account_id,),
        ).fetchone()
        return row["cnt"] > 0

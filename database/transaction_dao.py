from typing import Optional
from database.db_manager import DatabaseManager
from models.transaction import Transaction


class TransactionDAO:
    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> Transaction:
        return Transaction(
            id=row["id"],
            tenant_id=row["tenant_id"],
            account_id=row["account_id"],
            type=row["type"],
            amount=row["amount"],
            date=row["date"],
            description=row["description"],
            status=row["status"],
            category=row["category"],
            notes=row["notes"],
            recurring=bool(row["recurring"]),
            recurring_schedule_id=row["recurring_schedule_id"],
            budget_item_id=row["budget_item_id"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def get_by_id(self, tx_id: int) -> Optional[Transaction]:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM transactions WHERE id = ?", (tx_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def get_by_account(
        self,
        account_id: int,
        status: str | None = None,
    ) -> list[Transaction]:
        conn = self._db.get_connection()
        sql = "SELECT * FROM transactions WHERE account_id = ?"
        params: list = [account_id]
        if status:
            sql += " AND status = ?"
            params.append(status)
        sql += " ORDER BY date ASC, id ASC"
        rows = conn.execute(sql, params).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_completed_for_account(self, account_id: int) -> list[Transaction]:
        return self.get_by_account(account_id, status="completed")

    def get_by_tenant(
        self,
        tenant_id: str,
        type_filter: str | None = None,
        status: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
        search: str | None = None,
    ) -> list[Transaction]:
        conn = self._db.get_connection()
        sql = "SELECT * FROM transactions WHERE tenant_id = ?"
        params: list = [tenant_id]

        if type_filter and type_filter != "all":
            sql += " AND type = ?"
            params.append(type_filter)
        if status:
            sql += " AND status = ?"
            params.append(status)
        if start_date:
            sql += " AND date >= ?"
            params.append(start_date)
        if end_date:
            sql += " AND date <= ?"
            params.append(end_date)
        if search:
            sql += " AND (description LIKE ? OR COALESCE(category,'') LIKE ?)"
            params.extend([f"%{search}%", f"%{search}%"])

        sql += " ORDER BY date ASC, id ASC"
        rows = conn.execute(sql, params).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_schedule_occurrence(self, schedule_id: int, date: str) -> Optional[Transaction]:
        """Lookup by the (recurring_schedule_id, date) idempotency key."""
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM transactions WHERE recurring_schedule_id = ? AND date = ?",
            (schedule_id, date),
        ).fetchone()
        return self._row_to_model(row) if row else None

    def get_by_schedule(self, schedule_id: int) -> list[Transaction]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM transactions WHERE recurring_schedule_id = ? ORDER BY date ASC",
            (schedule_id,),
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def create(
        self,
        tenant_id: str,
        account_id: int | None,
        type_: str,
        amount: float,
        date: str,
        description: str = "",
        status: str = "completed",
        category: str | None = None,
        notes: str | None = None,
        recurring: bool = False,
        recurring_schedule_id: int | None = None,
    ) -> Transaction:
        with self._db.atomic() as conn:
            cursor = conn.execute(
                """INSERT INTO transactions
                   (tenant_id, account_id, type, amount, date, description, status,
                    category, notes, recurring, recurring_schedule_id)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    tenant_id, account_id, type_, amount, date, description, status,
                    category, notes, 1 if recurring else 0, recurring_schedule_id,
                ),
            )
            return self.get_by_id(cursor.lastrowid)

    def update(
        self,
        tx_id: int,
        account_id: int | None,
        type_: str,
        amount: float,
        date: str,
        description: str = "",
        status: str = "completed",
        category: str | None = None,
        notes: str | None = None,
    ) -> Transaction:
        with self._db.atomic() as conn:
            conn.execute(
                """UPDATE transactions
                   SET account_id=?, type=?, amount=?, date=?, description=?, status=?,
                       category=?, notes=?, updated_at=datetime('now')
                   WHERE id=?""",
                (account_id, type_, amount, date, description, status, category, notes, tx_id),
            )
            return self.get_by_id(tx_id)

    def set_budget_item(self, tx_id: int, budget_item_id: int) -> bool:
        """Tag an untracked transaction. Returns False if it was already tagged."""
        with self._db.atomic() as conn:
            cursor = conn.execute(
                """UPDATE transactions SET budget_item_id = ?, updated_at = datetime('now')
                   WHERE id = ? AND budget_item_id IS NULL""",
                (budget_item_id, tx_id),
            )
            return cursor.rowcount == 1

    def delete(self, tx_id: int):
        with self._db.atomic() as conn:
            conn.execute("DELETE FROM transactions WHERE id = ?", (tx_id,))

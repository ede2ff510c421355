from typing import Optional
from database.db_manager import DatabaseManager
from models.budget import Budget, BudgetItem


class BudgetDAO:
    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row, items: list[BudgetItem] | None = None) -> Budget:
        return Budget(
            id=row["id"],
            tenant_id=row["tenant_id"],
            name=row["name"],
            budget_type=row["budget_type"],
            start_date=row["start_date"],
            end_date=row["end_date"],
            status=row["status"],
            description=row["description"],
            total_budget=row["total_budget"],
            total_spent=row["total_spent"],
            items=items or [],
            created_at=row["created_at"],
        )

    def _row_to_item(self, row) -> BudgetItem:
        return BudgetItem(
            id=row["id"],
            budget_id=row["budget_id"],
            name=row["name"],
            amount=row["amount"],
            spent=row["spent"],
            category=row["category"],
            notes=row["notes"],
            created_at=row["created_at"],
        )

    # ── Budgets ──────────────────────────────────────────────────────────────

    def get_by_id(self, budget_id: int, with_items: bool = True) -> Optional[Budget]:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM budgets WHERE id = ?", (budget_id,)
        ).fetchone()
        if not row:
            return None
        items = self.get_items(budget_id) if with_items else []
        return self._row_to_model(row, items)

    def get_all(
        self,
        tenant_id: str,
        budget_type: str | None = None,
        status: str | None = None,
        active_on: str | None = None,
    ) -> list[Budget]:
        conn = self._db.get_connection()
        sql = "SELECT * FROM budgets WHERE tenant_id = ?"
        params: list = [tenant_id]
        if budget_type:
            sql += " AND budget_type = ?"
            params.append(budget_type)
        if status:
            sql += " AND status = ?"
            params.append(status)
        if active_on:
            sql += " AND start_date <= ? AND end_date >= ?"
            params.extend([active_on, active_on])
        sql += " ORDER BY start_date DESC, id ASC"
        rows = conn.execute(sql, params).fetchall()
        return [self._row_to_model(r, self.get_items(r["id"])) for r in rows]

    def create(
        self,
        tenant_id: str,
        name: str,
        budget_type: str,
        start_date: str,
        end_date: str,
        status: str = "active",
        description: str = "",
    ) -> Budget:
        with self._db.atomic() as conn:
            cursor = conn.execute(
                """INSERT INTO budgets
                   (tenant_id, name, budget_type, start_date, end_date, status, description)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (tenant_id, name, budget_type, start_date, end_date, status, description),
            )
            return self.get_by_id(cursor.lastrowid)

    def update(
        self,
        budget_id: int,
        name: str,
        budget_type: str,
        start_date: str,
        end_date: str,
        status: str,
        description: str = "",
    ) -> Budget:
        """Metadata only; totals move through adjust_totals()."""
        with self._db.atomic() as conn:
            conn.execute(
                """UPDATE budgets SET name = ?, budget_type = ?, start_date = ?, end_date = ?,
                   status = ?, description = ? WHERE id = ?""",
                (name, budget_type, start_date, end_date, status, description, budget_id),
            )
            return self.get_by_id(budget_id)

    def adjust_totals(self, budget_id: int, budget_delta: float = 0.0, spent_delta: float = 0.0):
        with self._db.atomic() as conn:
            conn.execute(
                """UPDATE budgets
                   SET total_budget = ROUND(total_budget + ?, 2),
                       total_spent  = ROUND(total_spent + ?, 2)
                   WHERE id = ?""",
                (budget_delta, spent_delta, budget_id),
            )

    def delete(self, budget_id: int):
        with self._db.atomic() as conn:
            conn.execute("DELETE FROM budgets WHERE id = ?", (budget_id,))

    # ── Items ────────────────────────────────────────────────────────────────

    def get_items(self, budget_id: int) -> list[BudgetItem]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM budget_items WHERE budget_id = ? ORDER BY id",
            (budget_id,),
        ).fetchall()
        return [self._row_to_item(r) for r in rows]

    def get_item(self, item_id: int) -> Optional[BudgetItem]:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM budget_items WHERE id = ?", (item_id,)
        ).fetchone()
        return self._row_to_item(row) if row else None

    def create_item(
        self,
        budget_id: int,
        name: str,
        amount: float,
        category: str | None = None,
        notes: str | None = None,
    ) -> BudgetItem:
        with self._db.atomic() as conn:
            cursor = conn.execute(
                """INSERT INTO budget_items(budget_id, name, amount, category, notes)
                   VALUES (?, ?, ?, ?, ?)""",
                (budget_id, name, amount, category, notes),
            )
            return self.get_item(cursor.lastrowid)

    def update_item(
        self,
        item_id: int,
        name: str,
        amount: float,
        spent: float,
        category: str | None = None,
        notes: str | None = None,
    ) -> BudgetItem:
        with self._db.atomic() as conn:
            conn.execute(
                """UPDATE budget_items SET name = ?, amount = ?, spent = ?, category = ?, notes = ?
                   WHERE id = ?""",
                (name, amount, spent, category, notes, item_id),
            )
            return self.get_item(item_id)

    def add_spent(self, item_id: int, amount: float) -> BudgetItem:
        with self._db.atomic() as conn:
            conn.execute(
                "UPDATE budget_items SET spent = ROUND(spent + ?, 2) WHERE id = ?",
                (amount, item_id),
            )
            return self.get_item(item_id)

    def delete_item(self, item_id: int):
        with self._db.atomic() as conn:
            conn.execute("DELETE FROM budget_items WHERE id = ?", (item_id,))

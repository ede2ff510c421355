from typing import Optional
from database.db_manager import DatabaseManager
from models.recurring_schedule import RecurringSchedule

_RULE_COLUMNS = (
    "name", "type", "amount", "account_id", "category", "description",
    "frequency", "interval", "day_of_week", "day_of_month", "month_of_year",
    "start_date", "end_date", "next_due_date", "status",
)


class RecurringDAO:
    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> RecurringSchedule:
        return RecurringSchedule(
            id=row["id"],
            tenant_id=row["tenant_id"],
            name=row["name"],
            type=row["type"],
            amount=row["amount"],
            frequency=row["frequency"],
            interval=row["interval"],
            start_date=row["start_date"],
            next_due_date=row["next_due_date"],
            status=row["status"],
            account_id=row["account_id"],
            category=row["category"],
            description=row["description"],
            day_of_week=row["day_of_week"],
            day_of_month=row["day_of_month"],
            month_of_year=row["month_of_year"],
            end_date=row["end_date"],
            last_processed_date=row["last_processed_date"],
            created_at=row["created_at"],
        )

    def get_all(
        self,
        tenant_id: str,
        status: str | None = None,
        type_: str | None = None,
    ) -> list[RecurringSchedule]:
        conn = self._db.get_connection()
        sql = "SELECT * FROM recurring_schedules WHERE tenant_id = ?"
        params: list = [tenant_id]
        if status:
            sql += " AND status = ?"
            params.append(status)
        if type_:
            sql += " AND type = ?"
            params.append(type_)
        sql += " ORDER BY next_due_date ASC, id ASC"
        rows = conn.execute(sql, params).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_active(self, tenant_id: str) -> list[RecurringSchedule]:
        return self.get_all(tenant_id, status="active")

    def get_due(self, tenant_id: str, as_of: str) -> list[RecurringSchedule]:
        """Active schedules whose next_due_date is on or before ``as_of``."""
        conn = self._db.get_connection()
        rows = conn.execute(
            """SELECT * FROM recurring_schedules
               WHERE tenant_id = ? AND status = 'active' AND next_due_date <= ?
               ORDER BY next_due_date ASC, id ASC""",
            (tenant_id, as_of),
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_id(self, schedule_id: int) -> Optional[RecurringSchedule]:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM recurring_schedules WHERE id = ?", (schedule_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def create(self, tenant_id: str, **fields) -> RecurringSchedule:
        values = [fields.get(col) for col in _RULE_COLUMNS]
        placeholders = ", ".join("?" * (len(_RULE_COLUMNS) + 1))
        with self._db.atomic() as conn:
            cursor = conn.execute(
                f"""INSERT INTO recurring_schedules (tenant_id, {", ".join(_RULE_COLUMNS)})
                    VALUES ({placeholders})""",
                [tenant_id, *values],
            )
            return self.get_by_id(cursor.lastrowid)

    def update(self, schedule_id: int, **fields) -> RecurringSchedule:
        assignments = ", ".join(f"{col} = ?" for col in _RULE_COLUMNS)
        values = [fields.get(col) for col in _RULE_COLUMNS]
        with self._db.atomic() as conn:
            conn.execute(
                f"UPDATE recurring_schedules SET {assignments} WHERE id = ?",
                [*values, schedule_id],
            )
            return self.get_by_id(schedule_id)

    def set_status(self, schedule_id: int, status: str, next_due_date: str | None = None):
        with self._db.atomic() as conn:
            if next_due_date is None:
                conn.execute(
                    "UPDATE recurring_schedules SET status = ? WHERE id = ?",
                    (status, schedule_id),
                )
            else:
                conn.execute(
                    "UPDATE recurring_schedules SET status = ?, next_due_date = ? WHERE id = ?",
                    (status, next_due_date, schedule_id),
                )

    def advance(
        self,
        schedule_id: int,
        next_due_date: str,
        last_processed_date: str,
        status: str,
    ) -> RecurringSchedule:
        """Write the three fields the materializer owns in one statement."""
        with self._db.atomic() as conn:
            conn.execute(
                """UPDATE recurring_schedules
                   SET next_due_date = ?, last_processed_date = ?, status = ?
                   WHERE id = ?""",
                (next_due_date, last_processed_date, status, schedule_id),
            )
            return self.get_by_id(schedule_id)

    def delete(self, schedule_id: int):
        with self._db.atomic() as conn:
            conn.execute("DELETE FROM recurring_schedules WHERE id = ?", (schedule_id,))

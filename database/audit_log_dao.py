from database.db_manager import DatabaseManager
from models.audit_log import AuditLogEntry


class AuditLogDAO:
    """Append-only: entries are inserted and read, never updated or deleted."""

    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> AuditLogEntry:
        return AuditLogEntry(
            id=row["id"],
            account_id=row["account_id"],
            previous_balance=row["previous_balance"],
            new_balance=row["new_balance"],
            change_amount=row["change_amount"],
            description=row["description"],
            performed_at=row["performed_at"],
            transaction_id=row["transaction_id"],
            transaction_count=row["transaction_count"],
        )

    def append(
        self,
        account_id: int,
        previous_balance: float,
        new_balance: float,
        change_amount: float,
        description: str,
        transaction_id: int | None = None,
        transaction_count: int | None = None,
    ) -> AuditLogEntry:
        with self._db.atomic() as conn:
            cursor = conn.execute(
                """INSERT INTO audit_log
                   (account_id, previous_balance, new_balance, change_amount,
                    description, transaction_id, transaction_count)
                   VALUES (?, ?, ?, ?, ?, ?, ?)""",
                (
                    account_id, previous_balance, new_balance, change_amount,
                    description, transaction_id, transaction_count,
                ),
            )
            row = conn.execute(
                "SELECT * FROM audit_log WHERE id = ?", (cursor.lastrowid,)
            ).fetchone()
            return self._row_to_model(row)

    def get_for_account(self, account_id: int) -> list[AuditLogEntry]:
        """Newest first."""
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM audit_log WHERE account_id = ? ORDER BY id DESC",
            (account_id,),
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

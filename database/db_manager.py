import logging
import sqlite3
from contextlib import contextmanager

from utils.constants import DB_BUSY_TIMEOUT, DB_FILE, DEFAULT_SETTINGS
from utils.errors import WriteConflict

logger = logging.getLogger("bizledger.db")

_LOCK_MESSAGES = ("database is locked", "database is busy", "database table is locked")


def is_lock_error(exc: BaseException) -> bool:
    return isinstance(exc, sqlite3.OperationalError) and any(
        msg in str(exc).lower() for msg in _LOCK_MESSAGES
    )


class DatabaseManager:
    def __init__(self, db_path: str | None = None, timeout: float = DB_BUSY_TIMEOUT):
        self.db_path = db_path or DB_FILE
        self.timeout = timeout
        self._conn: sqlite3.Connection | None = None
        self._depth = 0

    def get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            # isolation_level=None: transactions are opened explicitly by atomic()
            self._conn = sqlite3.connect(
                self.db_path,
                timeout=self.timeout,
                check_same_thread=False,
                isolation_level=None,
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA foreign_keys = ON")
            if self.db_path != ":memory:":
                self._conn.execute("PRAGMA journal_mode = WAL")
        return self._conn

    @contextmanager
    def atomic(self):
        """All writes in the block commit together or not at all.

        The outermost block takes the write lock up front (BEGIN IMMEDIATE) so
        a read-modify-write cannot interleave with another writer. Nested
        blocks become savepoints. Lock timeouts surface as WriteConflict.
        """
        conn = self.get_connection()
        if self._depth:
            yield from self._savepoint(conn)
            return

        try:
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.OperationalError as exc:
            if is_lock_error(exc):
                logger.warning("Could not acquire write lock on %s: %s", self.db_path, exc)
                raise WriteConflict(f"Store is busy: {exc}") from exc
            raise
        self._depth += 1
        try:
            yield conn
            conn.execute("COMMIT")
        except sqlite3.OperationalError as exc:
            self._rollback(conn)
            if is_lock_error(exc):
                raise WriteConflict(f"Store is busy: {exc}") from exc
            raise
        except BaseException:
            self._rollback(conn)
            raise
        finally:
            self._depth -= 1

    def _savepoint(self, conn: sqlite3.Connection):
        name = f"sp_{self._depth}"
        conn.execute(f"SAVEPOINT {name}")
        self._depth += 1
        try:
            yield conn
        except BaseException:
            conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
            conn.execute(f"RELEASE SAVEPOINT {name}")
            raise
        else:
            conn.execute(f"RELEASE SAVEPOINT {name}")
        finally:
            self._depth -= 1

    @staticmethod
    def _rollback(conn: sqlite3.Connection):
        if conn.in_transaction:
            conn.execute("ROLLBACK")

    def initialize(self):
        """Create schema and seed defaults."""
        with self.atomic() as conn:
            self._create_schema(conn)
            self._seed_defaults(conn)
        logger.debug("Initialized schema in %s", self.db_path)

    def _create_schema(self, conn: sqlite3.Connection):
        # executescript() would COMMIT the surrounding transaction; run one by one.
        for statement in _SCHEMA:
            conn.execute(statement)

    def _seed_defaults(self, conn: sqlite3.Connection):
        for key, value in DEFAULT_SETTINGS:
            conn.execute(
                "INSERT OR IGNORE INTO app_settings(key, value) VALUES (?, ?)",
                (key, value),
            )

    def get_setting(self, key: str, default: str = "") -> str:
        conn = self.get_connection()
        row = conn.execute(
            "SELECT value FROM app_settings WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else default

    def set_setting(self, key: str, value: str):
        with self.atomic() as conn:
            conn.execute(
                "INSERT OR REPLACE INTO app_settings(key, value) VALUES (?, ?)",
                (key, value),
            )

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None


_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS app_settings (
        key   TEXT PRIMARY KEY,
        value TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS accounts (
        id           INTEGER PRIMARY KEY AUTOINCREMENT,
        tenant_id    TEXT    NOT NULL,
        name         TEXT    NOT NULL,
        account_type TEXT    NOT NULL
                     CHECK(account_type IN ('bank','cash','credit','investment','other')),
        balance      REAL    NOT NULL DEFAULT 0.0,
        currency     TEXT    NOT NULL DEFAULT 'USD',
        description  TEXT    NOT NULL DEFAULT '',
        version      INTEGER NOT NULL DEFAULT 0,
        created_at   TEXT    NOT NULL DEFAULT (datetime('now')),
        UNIQUE(tenant_id, name)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS recurring_schedules (
        id                  INTEGER PRIMARY KEY AUTOINCREMENT,
        tenant_id           TEXT    NOT NULL,
        name                TEXT    NOT NULL,
        type                TEXT    NOT NULL CHECK(type IN ('income','expense')),
        amount              REAL    NOT NULL CHECK(amount >= 0),
        account_id          INTEGER REFERENCES accounts(id) ON DELETE SET NULL,
        category            TEXT,
        description         TEXT    NOT NULL DEFAULT '',
        frequency           TEXT    NOT NULL
                            CHECK(frequency IN ('daily','weekly','monthly','yearly')),
        interval            INTEGER NOT NULL DEFAULT 1 CHECK(interval >= 1),
        day_of_week         INTEGER,
        day_of_month        INTEGER,
        month_of_year       INTEGER,
        start_date          TEXT    NOT NULL,
        end_date            TEXT,
        next_due_date       TEXT    NOT NULL,
        last_processed_date TEXT,
        status              TEXT    NOT NULL DEFAULT 'active'
                            CHECK(status IN ('active','paused','completed')),
        created_at          TEXT    NOT NULL DEFAULT (datetime('now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS budgets (
        id           INTEGER PRIMARY KEY AUTOINCREMENT,
        tenant_id    TEXT NOT NULL,
        name         TEXT NOT NULL,
        description  TEXT NOT NULL DEFAULT '',
        budget_type  TEXT NOT NULL
                     CHECK(budget_type IN ('annual','monthly','quarterly','project')),
        start_date   TEXT NOT NULL,
        end_date     TEXT NOT NULL,
        status       TEXT NOT NULL DEFAULT 'active'
                     CHECK(status IN ('active','archived','draft')),
        total_budget REAL NOT NULL DEFAULT 0.0,
        total_spent  REAL NOT NULL DEFAULT 0.0,
        created_at   TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS budget_items (
        id         INTEGER PRIMARY KEY AUTOINCREMENT,
        budget_id  INTEGER NOT NULL REFERENCES budgets(id) ON DELETE CASCADE,
        name       TEXT NOT NULL,
        amount     REAL NOT NULL CHECK(amount >= 0),
        spent      REAL NOT NULL DEFAULT 0.0 CHECK(spent >= 0),
        category   TEXT,
        notes      TEXT,
        created_at TEXT NOT NULL DEFAULT (datetime('now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS transactions (
        id                    INTEGER PRIMARY KEY AUTOINCREMENT,
        tenant_id             TEXT    NOT NULL,
        account_id            INTEGER REFERENCES accounts(id) ON DELETE RESTRICT,
        type                  TEXT    NOT NULL CHECK(type IN ('income','expense')),
        amount                REAL    NOT NULL CHECK(amount >= 0),
        date                  TEXT    NOT NULL,
        description           TEXT    NOT NULL DEFAULT '',
        status                TEXT    NOT NULL DEFAULT 'completed'
                              CHECK(status IN ('pending','completed','failed')),
        category              TEXT,
        notes                 TEXT,
        recurring             INTEGER NOT NULL DEFAULT 0,
        recurring_schedule_id INTEGER REFERENCES recurring_schedules(id) ON DELETE SET NULL,
        budget_item_id        INTEGER REFERENCES budget_items(id) ON DELETE SET NULL,
        created_at            TEXT    NOT NULL DEFAULT (datetime('now')),
        updated_at            TEXT    NOT NULL DEFAULT (datetime('now'))
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS audit_log (
        id                INTEGER PRIMARY KEY AUTOINCREMENT,
        account_id        INTEGER NOT NULL,
        previous_balance  REAL    NOT NULL,
        new_balance       REAL    NOT NULL,
        change_amount     REAL    NOT NULL,
        description       TEXT    NOT NULL DEFAULT '',
        transaction_id    INTEGER,
        transaction_count INTEGER,
        performed_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f', 'now'))
    )
    """,
    # Idempotency key for materialized occurrences.
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_transactions_schedule_occurrence
        ON transactions(recurring_schedule_id, date)
    """,
    "CREATE INDEX IF NOT EXISTS idx_transactions_account_id ON transactions(account_id)",
    "CREATE INDEX IF NOT EXISTS idx_transactions_tenant_date ON transactions(tenant_id, date)",
    """
    CREATE INDEX IF NOT EXISTS idx_schedules_due
        ON recurring_schedules(tenant_id, status, next_due_date)
    """,
    "CREATE INDEX IF NOT EXISTS idx_budget_items_budget ON budget_items(budget_id)",
    "CREATE INDEX IF NOT EXISTS idx_audit_log_account ON audit_log(account_id)",
]

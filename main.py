import argparse
import json
import logging
import os
import sys
from dataclasses import asdict

# Ensure project root is on sys.path when run directly
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from database.db_manager import DatabaseManager
from database.account_dao import AccountDAO
from database.audit_log_dao import AuditLogDAO
from database.transaction_dao import TransactionDAO
from database.budget_dao import BudgetDAO
from database.recurring_dao import RecurringDAO

from services.ledger_service import LedgerService
from services.transaction_service import TransactionService
from services.account_service import AccountService
from services.budget_service import BudgetService
from services.recurring_service import RecurringService
from services.reminder_service import ReminderService
from services.forecast_service import ForecastService

from utils.app_config import get_busy_timeout, get_db_path, get_log_level
from utils.constants import APP_NAME, BUDGET_ALERT_THRESHOLD, UPCOMING_REMINDER_DAYS
from utils.date_helpers import require_date
from utils.errors import LedgerError

logger = logging.getLogger("bizledger")


class Services:
    """Wires DAOs and services over one DatabaseManager."""

    def __init__(self, db: DatabaseManager):
        self.db = db

        # ── DAOs ─────────────────────────────────────────────────────────────
        account_dao = AccountDAO(db)
        tx_dao = TransactionDAO(db)
        audit_dao = AuditLogDAO(db)
        budget_dao = BudgetDAO(db)
        recurring_dao = RecurringDAO(db)

        # ── Services ─────────────────────────────────────────────────────────
        self.ledger = LedgerService(db, account_dao, tx_dao, audit_dao)
        self.transactions = TransactionService(db, tx_dao, account_dao, self.ledger)
        self.accounts = AccountService(db, account_dao, self.transactions)
        self.budgets = BudgetService(db, budget_dao, tx_dao)
        self.recurring = RecurringService(db, recurring_dao, tx_dao, account_dao, self.ledger)
        self.reminders = ReminderService(self.recurring, self.budgets)
        self.forecast = ForecastService(self.recurring, account_dao)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bizledger", description=f"{APP_NAME} ledger jobs")
    parser.add_argument("--db", help="SQLite database path (overrides config)")
    parser.add_argument("--log-level", help="Logging level (overrides config)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("process-due", help="Materialize due recurring schedules")
    p.add_argument("--tenant", required=True)
    p.add_argument("--date", help="Run date YYYY-MM-DD (default today)")

    p = sub.add_parser("recalculate", help="Rebuild balances from transaction history")
    p.add_argument("--tenant", required=True)
    p.add_argument("--account", type=int, help="Only this account")

    p = sub.add_parser("budget-stats", help="Budget statistics")
    p.add_argument("--budget", type=int, required=True)

    p = sub.add_parser("reminders", help="Overdue/upcoming schedules and budget alerts")
    p.add_argument("--tenant", required=True)
    p.add_argument("--date", help="Reference date YYYY-MM-DD (default today)")

    p = sub.add_parser("forecast", help="Projected monthly cash flow")
    p.add_argument("--tenant", required=True)
    p.add_argument("--months", type=int, default=12)
    return parser


def run_command(args: argparse.Namespace, services: Services):
    if args.command == "process-due":
        run_date = require_date(args.date, "date") if args.date else None
        return services.recurring.process_due(args.tenant, run_date).to_dict()

    if args.command == "recalculate":
        if args.account is not None:
            account = services.accounts.get_by_id(args.account)
            if account.tenant_id != args.tenant:
                raise LedgerError(f"Account {args.account} does not belong to {args.tenant}.")
            account = services.ledger.recalculate(args.account)
            return [{
                "account_id": account.id,
                "account_name": account.name,
                "success": True,
                "balance": account.balance,
            }]
        return services.ledger.recalculate_all(args.tenant)

    if args.command == "budget-stats":
        return services.budgets.get_statistics(args.budget)

    if args.command == "reminders":
        db = services.db
        ref = require_date(args.date, "date") if args.date else None
        reminders = services.reminders.get_reminders(
            args.tenant,
            ref_date=ref,
            upcoming_days=int(db.get_setting("upcoming_reminder_days", str(UPCOMING_REMINDER_DAYS))),
            threshold=float(db.get_setting("budget_alert_threshold", str(BUDGET_ALERT_THRESHOLD))),
        )
        return [asdict(r) for r in reminders]

    if args.command == "forecast":
        return services.forecast.monthly_cash_flow(args.tenant, months=args.months)

    raise ValueError(f"Unknown command: {args.command}")


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    # ── Bootstrap: logging and DB location from pre-DB config ─────────────────
    logging.basicConfig(
        level=(args.log_level or get_log_level()).upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )
    db = DatabaseManager(args.db or get_db_path(), timeout=get_busy_timeout())
    try:
        db.initialize()
        result = run_command(args, Services(db))
    except (LedgerError, ValueError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1
    finally:
        db.close()

    json.dump(result, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    return 0


if __name__ == "__main__":
    sys.exit(main())

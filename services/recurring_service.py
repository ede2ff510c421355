import logging
from dataclasses import asdict, dataclass, field
from datetime import date

from database.db_manager import DatabaseManager
from database.account_dao import AccountDAO
from database.recurring_dao import RecurringDAO
from database.transaction_dao import TransactionDAO
from models.recurring_schedule import RecurringSchedule
from models.transaction import Transaction
from services.ledger_service import LedgerService
from utils.constants import SCHEDULE_STATUSES, TRANSACTION_TYPES
from utils.currency import round_money
from utils.date_helpers import format_date, parse_date, require_date, today
from utils.errors import NotFoundError
from utils.recurrence import first_on_or_after, next_occurrence, occurrences_between, validate_rule

logger = logging.getLogger("bizledger.recurring")

_RULE_FIELDS = ("frequency", "interval", "day_of_week", "day_of_month", "month_of_year", "start_date")


@dataclass
class ScheduleResult:
    schedule_id: int
    name: str
    success: bool
    transaction_id: int | None = None
    next_due_date: str | None = None
    status: str | None = None
    duplicate: bool = False
    skipped: bool = False
    error: str | None = None


@dataclass
class BatchResult:
    tenant_id: str
    run_date: str
    results: list[ScheduleResult] = field(default_factory=list)

    @property
    def processed_count(self) -> int:
        return len(self.results)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success and not r.skipped)

    @property
    def skipped_count(self) -> int:
        return sum(1 for r in self.results if r.skipped)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> dict:
        return {
            "tenant_id": self.tenant_id,
            "run_date": self.run_date,
            "processed": self.processed_count,
            "successful": self.success_count,
            "failed": self.failure_count,
            "skipped": self.skipped_count,
            "results": [asdict(r) for r in self.results],
        }


class RecurringService:
    def __init__(
        self,
        db: DatabaseManager,
        recurring_dao: RecurringDAO,
        tx_dao: TransactionDAO,
        account_dao: AccountDAO,
        ledger: LedgerService,
    ):
        self._db = db
        self._dao = recurring_dao
        self._tx_dao = tx_dao
        self._account_dao = account_dao
        self._ledger = ledger

    def get_all(
        self,
        tenant_id: str,
        status: str | None = None,
        type_: str | None = None,
    ) -> list[RecurringSchedule]:
        return self._dao.get_all(tenant_id, status, type_)

    def get_active(self, tenant_id: str) -> list[RecurringSchedule]:
        return self._dao.get_active(tenant_id)

    def get_by_id(self, schedule_id: int) -> RecurringSchedule:
        schedule = self._dao.get_by_id(schedule_id)
        if schedule is None:
            raise NotFoundError("Recurring schedule", schedule_id)
        return schedule

    def create(
        self,
        tenant_id: str,
        name: str,
        type_: str,
        amount: float,
        frequency: str,
        start_date,
        interval: int = 1,
        account_id: int | None = None,
        category: str | None = None,
        description: str = "",
        day_of_week: int | None = None,
        day_of_month: int | None = None,
        month_of_year: int | None = None,
        end_date=None,
        status: str = "active",
        as_of: date | None = None,
    ) -> RecurringSchedule:
        fields = self._validate(
            tenant_id, name, type_, amount, frequency, interval, start_date,
            account_id, day_of_week, day_of_month, month_of_year, end_date, status,
        )
        fields.update(category=category, description=description.strip())
        fields["next_due_date"], fields["status"] = self._initial_due(fields, as_of)
        schedule = self._dao.create(tenant_id, **fields)
        logger.info(
            "Created schedule %s '%s' (%s x%d), next due %s",
            schedule.id, schedule.name, schedule.frequency, schedule.interval,
            schedule.next_due_date,
        )
        return schedule

    def update(
        self,
        schedule_id: int,
        name: str,
        type_: str,
        amount: float,
        frequency: str,
        start_date,
        interval: int = 1,
        account_id: int | None = None,
        category: str | None = None,
        description: str = "",
        day_of_week: int | None = None,
        day_of_month: int | None = None,
        month_of_year: int | None = None,
        end_date=None,
        status: str | None = None,
        as_of: date | None = None,
    ) -> RecurringSchedule:
        """Rewrite a schedule. next_due_date is recomputed only if the rule changed."""
        with self._db.atomic():
            existing = self.get_by_id(schedule_id)
            fields = self._validate(
                existing.tenant_id, name, type_, amount, frequency, interval, start_date,
                account_id, day_of_week, day_of_month, month_of_year, end_date,
                status or existing.status,
            )
            fields.update(category=category, description=description.strip())
            rule_changed = any(
                fields[f] != getattr(existing, f) for f in _RULE_FIELDS
            )
            if rule_changed:
                fields["next_due_date"], fields["status"] = self._initial_due(fields, as_of)
            else:
                fields["next_due_date"] = existing.next_due_date
                end = parse_date(fields["end_date"])
                if fields["status"] == "active" and end and parse_date(existing.next_due_date) > end:
                    fields["status"] = "completed"
            return self._dao.update(schedule_id, **fields)

    def pause(self, schedule_id: int) -> RecurringSchedule:
        with self._db.atomic():
            schedule = self.get_by_id(schedule_id)
            if schedule.status == "completed":
                raise ValueError("A completed schedule cannot be paused.")
            self._dao.set_status(schedule_id, "paused")
            return self.get_by_id(schedule_id)

    def resume(self, schedule_id: int, as_of: date | None = None) -> RecurringSchedule:
        """Reactivate a paused schedule; occurrences missed while paused are skipped."""
        with self._db.atomic():
            schedule = self.get_by_id(schedule_id)
            if schedule.status == "completed":
                raise ValueError("A completed schedule cannot be resumed.")
            ref = as_of or today()
            next_due = parse_date(schedule.next_due_date)
            if next_due < ref:
                next_due = first_on_or_after(next_due, ref, **schedule.rule_kwargs())
            end = parse_date(schedule.end_date)
            status = "completed" if end and next_due > end else "active"
            self._dao.set_status(schedule_id, status, format_date(next_due))
            return self.get_by_id(schedule_id)

    def delete(self, schedule_id: int) -> int:
        """Delete a schedule; its materialized transactions stay. Returns how many."""
        with self._db.atomic():
            self.get_by_id(schedule_id)
            kept = len(self._tx_dao.get_by_schedule(schedule_id))
            self._dao.delete(schedule_id)
        logger.info("Deleted schedule %s, %d materialized transactions kept", schedule_id, kept)
        return kept

    def upcoming_occurrences(self, schedule: RecurringSchedule, until: date) -> list[date]:
        """Future occurrence dates from next_due_date through ``until``."""
        if schedule.status == "completed":
            return []
        return occurrences_between(
            parse_date(schedule.next_due_date),
            until,
            end_date=parse_date(schedule.end_date),
            **schedule.rule_kwargs(),
        )

    # ── Materialization ──────────────────────────────────────────────────────

    def process_due(self, tenant_id: str, now: date | None = None) -> BatchResult:
        """Materialize one occurrence of every due schedule of the tenant.

        Each schedule is handled in its own atomic block; a failure is
        recorded in the result and the batch moves on. A schedule that is
        several periods behind advances by one period per run.
        """
        ref = now or today()
        run_date = format_date(ref)
        batch = BatchResult(tenant_id=tenant_id, run_date=run_date)
        due = self._dao.get_due(tenant_id, run_date)
        logger.info("Found %d due recurring schedules for tenant %s", len(due), tenant_id)

        for schedule in due:
            try:
                result = self._process_one(schedule, run_date)
            except Exception as exc:
                logger.exception("Error processing recurring schedule %s", schedule.id)
                result = ScheduleResult(
                    schedule_id=schedule.id,
                    name=schedule.name,
                    success=False,
                    error=str(exc) or exc.__class__.__name__,
                )
            batch.results.append(result)

        logger.info(
            "Recurring run for tenant %s: %d processed, %d ok, %d failed",
            tenant_id, batch.processed_count, batch.success_count, batch.failure_count,
        )
        return batch

    def _process_one(self, listed: RecurringSchedule, run_date: str) -> ScheduleResult:
        with self._db.atomic():
            # The due list was read outside this block; act only on the current row.
            schedule = self._dao.get_by_id(listed.id)
            if schedule is None or schedule.status != "active" or schedule.next_due_date > run_date:
                logger.info("Schedule %s is no longer due, skipping", listed.id)
                return ScheduleResult(
                    schedule_id=listed.id,
                    name=listed.name,
                    success=True,
                    next_due_date=schedule.next_due_date if schedule else None,
                    status=schedule.status if schedule else None,
                    skipped=True,
                )
            tx, duplicate = self._materialize(schedule)
            if schedule.account_id is not None and not duplicate:
                self._ledger.apply_delta(schedule.account_id, tx)

            next_due = next_occurrence(parse_date(schedule.next_due_date), **schedule.rule_kwargs())
            end = parse_date(schedule.end_date)
            status = "completed" if end and next_due > end else "active"
            updated = self._dao.advance(schedule.id, format_date(next_due), run_date, status)

        if duplicate:
            logger.warning(
                "Schedule %s occurrence %s was already materialized as transaction %s",
                schedule.id, schedule.next_due_date, tx.id,
            )
        return ScheduleResult(
            schedule_id=schedule.id,
            name=schedule.name,
            success=True,
            transaction_id=tx.id,
            next_due_date=updated.next_due_date,
            status=updated.status,
            duplicate=duplicate,
        )

    def _materialize(self, schedule: RecurringSchedule) -> tuple[Transaction, bool]:
        """Create the occurrence's transaction, or return the one already created."""
        existing = self._tx_dao.get_by_schedule_occurrence(schedule.id, schedule.next_due_date)
        if existing is not None:
            return existing, True
        description = schedule.name
        if schedule.description:
            description = f"{schedule.name} - {schedule.description}"
        tx = self._tx_dao.create(
            tenant_id=schedule.tenant_id,
            account_id=schedule.account_id,
            type_=schedule.type,
            amount=schedule.amount,
            date=schedule.next_due_date,
            description=description,
            status="completed",
            category=schedule.category,
            recurring=True,
            recurring_schedule_id=schedule.id,
        )
        return tx, False

    # ── Helpers ──────────────────────────────────────────────────────────────

    def _initial_due(self, fields: dict, as_of: date | None) -> tuple[str, str]:
        """First occurrence on or after ``as_of``, walking from start_date."""
        start = parse_date(fields["start_date"])
        ref = as_of or today()
        first = start if start >= ref else first_on_or_after(
            start,
            ref,
            frequency=fields["frequency"],
            interval=fields["interval"],
            day_of_week=fields["day_of_week"],
            day_of_month=fields["day_of_month"],
            month_of_year=fields["month_of_year"],
        )
        status = fields["status"]
        end = parse_date(fields["end_date"])
        if end and first > end:
            status = "completed"
        return format_date(first), status

    def _validate(
        self, tenant_id, name, type_, amount, frequency, interval, start_date,
        account_id, day_of_week, day_of_month, month_of_year, end_date, status,
    ) -> dict:
        if not name or not name.strip():
            raise ValueError("Name cannot be empty.")
        if type_ not in TRANSACTION_TYPES:
            raise ValueError("Type must be income or expense.")
        if amount is None or amount <= 0:
            raise ValueError("Amount must be positive.")
        if status not in SCHEDULE_STATUSES:
            raise ValueError(f"Invalid status: {status}")
        validate_rule(frequency, interval, day_of_week, day_of_month, month_of_year)
        start = require_date(start_date, "start date")
        end = require_date(end_date, "end date") if end_date else None
        if end and end < start:
            raise ValueError("End date must not be before the start date.")
        if account_id is not None:
            account = self._account_dao.get_by_id(account_id)
            if account is None or account.tenant_id != tenant_id:
                raise NotFoundError("Account", account_id)
        return {
            "name": name.strip(),
            "type": type_,
            "amount": round_money(amount),
            "account_id": account_id,
            "frequency": frequency,
            "interval": interval,
            "day_of_week": day_of_week,
            "day_of_month": day_of_month,
            "month_of_year": month_of_year,
            "start_date": format_date(start),
            "end_date": format_date(end) if end else None,
            "status": status,
        }

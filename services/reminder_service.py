from dataclasses import dataclass
from datetime import date, timedelta

from services.budget_service import BudgetService
from services.recurring_service import RecurringService
from utils.constants import BUDGET_ALERT_THRESHOLD, UPCOMING_REMINDER_DAYS
from utils.currency import format_currency
from utils.date_helpers import parse_date, today

_SEVERITY_ORDER = {"error": 0, "warning": 1, "info": 2}


@dataclass
class Reminder:
    type: str       # 'upcoming_recurring' | 'overdue_recurring' | 'over_budget' | 'near_budget'
    severity: str   # 'info' | 'warning' | 'error'
    title: str
    detail: str
    key: str = ""   # e.g. "budget:3", "item:7" or "recurring:5"


class ReminderService:
    def __init__(
        self,
        recurring_service: RecurringService,
        budget_service: BudgetService,
    ):
        self._recurring = recurring_service
        self._budget = budget_service

    def get_reminders(
        self,
        tenant_id: str,
        ref_date: date | None = None,
        upcoming_days: int = UPCOMING_REMINDER_DAYS,
        threshold: float = BUDGET_ALERT_THRESHOLD,
    ) -> list[Reminder]:
        ref = ref_date or today()
        reminders: list[Reminder] = []
        reminders += self._check_recurring(tenant_id, ref, upcoming_days)
        reminders += self._check_budgets(tenant_id, ref, threshold)
        return sorted(reminders, key=lambda r: _SEVERITY_ORDER[r.severity])

    def _check_recurring(self, tenant_id: str, ref: date, upcoming_days: int) -> list[Reminder]:
        reminders = []
        horizon = ref + timedelta(days=upcoming_days)
        for schedule in self._recurring.get_active(tenant_id):
            next_due = parse_date(schedule.next_due_date)
            amount = format_currency(schedule.amount)
            if next_due < ref:
                reminders.append(Reminder(
                    type="overdue_recurring",
                    severity="warning",
                    title=f"{schedule.name} is overdue",
                    detail=f"Was due on {next_due.strftime('%b %d')} · {amount} {schedule.type}",
                    key=f"recurring:{schedule.id}",
                ))
            elif next_due <= horizon:
                days_away = (next_due - ref).days
                day_label = "today" if days_away == 0 else (
                    "tomorrow" if days_away == 1 else f"in {days_away} days"
                )
                reminders.append(Reminder(
                    type="upcoming_recurring",
                    severity="info",
                    title=f"{schedule.name} due {day_label}",
                    detail=f"Due on {next_due.strftime('%b %d')} · {amount} {schedule.type}",
                    key=f"recurring:{schedule.id}",
                ))
        return reminders

    def _check_budgets(self, tenant_id: str, ref: date, threshold: float) -> list[Reminder]:
        reminders = []
        for alert in self._budget.get_alerts(tenant_id, threshold=threshold, on=ref):
            label = alert["item_name"] or alert["budget_name"]
            critical = alert["severity"] == "critical"
            key = (
                f"item:{alert['item_id']}" if alert["item_id"] is not None
                else f"budget:{alert['budget_id']}"
            )
            reminders.append(Reminder(
                type="over_budget" if critical else "near_budget",
                severity="error" if critical else "warning",
                title=f"{label} is over budget" if critical else f"{label} near budget limit",
                detail=alert["message"],
                key=key,
            ))
        return reminders

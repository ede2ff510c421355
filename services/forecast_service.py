from datetime import date

from database.account_dao import AccountDAO
from services.ledger_service import balance_change
from services.recurring_service import RecurringService
from utils.currency import round_money
from utils.date_helpers import add_months, format_month, month_range, parse_date, require_date, today
from utils.errors import NotFoundError


class ForecastService:
    """Forward projections built from active recurring schedules.

    Nothing here writes to the store; projected occurrences are never
    materialized.
    """

    def __init__(self, recurring_svc: RecurringService, account_dao: AccountDAO):
        self._recurring_svc = recurring_svc
        self._account_dao = account_dao

    def project_balance(self, account_id: int, until, as_of: date | None = None) -> list[dict]:
        """
        [{date:'YYYY-MM-DD', schedule_id:int, delta:float, balance:float}]
        for every projected occurrence on the account from ``as_of`` through
        ``until``, with a running balance starting at the current balance.
        """
        account = self._account_dao.get_by_id(account_id)
        if account is None:
            raise NotFoundError("Account", account_id)
        ref = as_of or today()
        until = require_date(until, "until")

        events = []
        for schedule in self._recurring_svc.get_active(account.tenant_id):
            if schedule.account_id != account_id:
                continue
            delta = balance_change(schedule.amount, schedule.type, "completed", account.account_type)
            for occurrence in self._recurring_svc.upcoming_occurrences(schedule, until):
                if occurrence >= ref:
                    events.append((occurrence, schedule.id, delta))
        events.sort(key=lambda e: (e[0], e[1]))

        balance = account.balance
        result = []
        for occurrence, schedule_id, delta in events:
            balance = round_money(balance + delta)
            result.append({
                "date": occurrence.isoformat(),
                "schedule_id": schedule_id,
                "delta": delta,
                "balance": balance,
            })
        return result

    def monthly_cash_flow(self, tenant_id: str, months: int = 12, as_of: date | None = None) -> list[dict]:
        """
        [{month:'YYYY-MM', income:float, expense:float, net:float}]
        from the month of ``as_of`` for ``months`` months.
        """
        if months < 1:
            raise ValueError("months must be at least 1.")
        ref = as_of or today()
        periods = [format_month(add_months(ref.replace(day=1), i)) for i in range(months)]
        totals = {p: {"income": 0.0, "expense": 0.0} for p in periods}
        _, horizon = month_range(periods[-1])

        for schedule in self._recurring_svc.get_active(tenant_id):
            for occurrence in self._recurring_svc.upcoming_occurrences(schedule, parse_date(horizon)):
                if occurrence < ref:
                    continue
                bucket = totals[format_month(occurrence)]
                bucket[schedule.type] = round_money(bucket[schedule.type] + schedule.amount)

        return [
            {
                "month": p,
                "income": totals[p]["income"],
                "expense": totals[p]["expense"],
                "net": round_money(totals[p]["income"] - totals[p]["expense"]),
            }
            for p in periods
        ]

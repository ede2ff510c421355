from dataclasses import dataclass
from typing import Optional


@dataclass
class RecurringSchedule:
    id: int
    tenant_id: str
    name: str
    type: str               # 'income' | 'expense'
    amount: float
    frequency: str          # 'daily' | 'weekly' | 'monthly' | 'yearly'
    interval: int
    start_date: str         # 'YYYY-MM-DD'
    next_due_date: str
    status: str = "active"  # 'active' | 'paused' | 'completed'
    account_id: Optional[int] = None
    category: Optional[str] = None
    description: str = ""
    day_of_week: Optional[int] = None    # 0=Sun..6=Sat
    day_of_month: Optional[int] = None   # 1-31, clamped to month length
    month_of_year: Optional[int] = None  # 1-12
    end_date: Optional[str] = None
    last_processed_date: Optional[str] = None
    created_at: str = ""

    def rule_kwargs(self) -> dict:
        """Arguments for utils.recurrence.next_occurrence."""
        return {
            "frequency": self.frequency,
            "interval": self.interval,
            "day_of_week": self.day_of_week,
            "day_of_month": self.day_of_month,
            "month_of_year": self.month_of_year,
        }

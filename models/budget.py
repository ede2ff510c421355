from dataclasses import dataclass, field
from typing import Optional

from utils.constants import BUDGET_OVER_PERCENT, BUDGET_WARNING_PERCENT


def spent_percentage(spent: float, amount: float) -> float:
    if amount <= 0:
        return 0.0
    return spent / amount * 100


def classify(percentage: float) -> str:
    if percentage >= BUDGET_OVER_PERCENT:
        return "over-budget"
    if percentage >= BUDGET_WARNING_PERCENT:
        return "warning"
    return "good"


@dataclass
class BudgetItem:
    id: int
    budget_id: int
    name: str
    amount: float           # allocated
    spent: float = 0.0
    category: Optional[str] = None
    notes: Optional[str] = None
    created_at: str = ""

    @property
    def percentage(self) -> float:
        return spent_percentage(self.spent, self.amount)

    @property
    def remaining(self) -> float:
        return self.amount - self.spent

    @property
    def status(self) -> str:
        return classify(self.percentage)


@dataclass
class Budget:
    id: int
    tenant_id: str
    name: str
    budget_type: str        # 'annual' | 'monthly' | 'quarterly' | 'project'
    start_date: str
    end_date: str
    status: str = "active"  # 'active' | 'archived' | 'draft'
    description: str = ""
    total_budget: float = 0.0
    total_spent: float = 0.0
    items: list[BudgetItem] = field(default_factory=list)
    created_at: str = ""

    @property
    def percentage(self) -> float:
        return spent_percentage(self.total_spent, self.total_budget)

    @property
    def remaining(self) -> float:
        return self.total_budget - self.total_spent

    @property
    def spend_status(self) -> str:
        return classify(self.percentage)

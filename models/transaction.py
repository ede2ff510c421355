from dataclasses import dataclass
from typing import Optional


@dataclass
class Transaction:
    id: int
    tenant_id: str
    account_id: Optional[int]
    type: str               # 'income' | 'expense'
    amount: float
    date: str               # 'YYYY-MM-DD'
    description: str = ""
    status: str = "completed"   # 'pending' | 'completed' | 'failed'
    category: Optional[str] = None
    notes: Optional[str] = None
    recurring: bool = False
    recurring_schedule_id: Optional[int] = None
    budget_item_id: Optional[int] = None
    created_at: str = ""
    updated_at: str = ""

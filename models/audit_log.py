from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AuditLogEntry:
    id: int
    account_id: int
    previous_balance: float
    new_balance: float
    change_amount: float
    description: str
    performed_at: str
    transaction_id: Optional[int] = None
    transaction_count: Optional[int] = None

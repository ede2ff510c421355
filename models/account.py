from dataclasses import dataclass

from utils.constants import ACCOUNT_TYPES, INVERTED_ACCOUNT_TYPES


@dataclass
class Account:
    id: int
    tenant_id: str
    name: str
    account_type: str = "bank"
    balance: float = 0.0
    currency: str = "USD"
    description: str = ""
    version: int = 0
    created_at: str = ""

    @property
    def is_inverted(self) -> bool:
        """Credit-style accounts move opposite to cash/bank for the same kind."""
        return self.account_type in INVERTED_ACCOUNT_TYPES

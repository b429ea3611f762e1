from dataclasses import dataclass
from typing import Optional


@dataclass
class Transaction:
    id: str
    date: str               # 'YYYY-MM-DD'
    amount: float           # magnitude, always >= 0
    type: str               # 'income' | 'expense'
    category: str
    account: str            # 'bank' | 'cash'
    status: str = "pending"  # 'pending' | 'completed'
    method: str = "digital"  # 'digital' | 'cash'
    is_recurring: bool = False
    recurring_id: Optional[str] = None
    note: str = ""
    created_at: str = ""

    @property
    def signed_amount(self) -> float:
        return self.amount if self.type == "income" else -self.amount

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    @property
    def month(self) -> str:
        return self.date[:7]

from dataclasses import dataclass
from datetime import date
from typing import Optional


@dataclass
class BalanceSummary:
    bank_balance: float = 0.0
    cash_balance: float = 0.0
    income: float = 0.0     # reference month only
    expense: float = 0.0    # reference month only

    @property
    def total(self) -> float:
        return self.bank_balance + self.cash_balance

    @property
    def net(self) -> float:
        return self.income - self.expense


@dataclass
class Stability:
    """When the simulated bank balance stops going negative."""
    achievable: bool
    date: Optional[date] = None
    immediate: bool = False

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PotDefinition:
    id: str
    display_name: str
    category: str
    trigger_days: tuple[int, ...]   # days of month the limit is drawn on
    default_limit: float

    @classmethod
    def from_dict(cls, data: dict) -> "PotDefinition":
        return cls(
            id=data["id"],
            display_name=data["display_name"],
            category=data["category"],
            trigger_days=tuple(int(d) for d in data["trigger_days"]),
            default_limit=float(data["default_limit"]),
        )


@dataclass
class PotConfig:
    id: int
    category: str
    month: Optional[str]    # 'YYYY-MM', or None for the category default
    limit_amount: float


@dataclass
class PotStatus:
    pot: PotDefinition
    month: str
    limit_amount: float
    spent_amount: float = 0.0

    @property
    def percentage(self) -> float:
        if self.limit_amount <= 0:
            return 0.0
        return self.spent_amount / self.limit_amount

    @property
    def remaining(self) -> float:
        return self.limit_amount - self.spent_amount

    @property
    def is_exhausted(self) -> bool:
        return self.spent_amount >= self.limit_amount

from dataclasses import dataclass, field


@dataclass
class RecurringRule:
    id: str
    type: str               # 'income' | 'expense'
    category: str
    amount: float
    account: str            # 'bank' | 'cash'
    day_of_month: int       # 1-31, clamped to the month's last day
    note: str = ""
    method: str = "digital"
    active: bool = True
    frequency: str = "monthly"
    created_at: str = ""


@dataclass(frozen=True)
class MaterializationPolicy:
    """Declarative tables consulted when rules are turned into transactions."""
    auto_complete_categories: frozenset[str] = field(default_factory=frozenset)
    skips: frozenset[tuple[str, str]] = field(default_factory=frozenset)  # (category, 'YYYY-MM')

    def initial_status(self, category: str) -> str:
        return "completed" if category in self.auto_complete_categories else "pending"

    def is_skipped(self, category: str, month: str) -> bool:
        return (category, month) in self.skips

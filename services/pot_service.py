from typing import Iterable

from models.pot import PotConfig, PotDefinition, PotStatus
from models.transaction import Transaction
from database.errors import NotFound
from database.pot_config_dao import PotConfigDAO
from database.transaction_dao import TransactionDAO
from services.balance_service import money_sum
from utils.constants import DEFAULT_POTS
from utils.currency import is_valid_amount
from utils.date_helpers import clamp_day_to_month, parse_month


def default_pots() -> list[PotDefinition]:
    return [PotDefinition.from_dict(p) for p in DEFAULT_POTS]


def resolve_pot_limit(pot: PotDefinition, month: str, configs: Iterable[PotConfig]) -> float:
    """Limit for pot in month: month override, then category default, then pot default."""
    category_default = None
    for c in configs:
        if c.category != pot.category:
            continue
        if c.month == month:
            return c.limit_amount
        if c.month is None:
            category_default = c.limit_amount
    return category_default if category_default is not None else pot.default_limit


def trigger_days_in_month(pot: PotDefinition, year: int, month: int) -> list[int]:
    """Pot trigger days clamped to the month length, without duplicates."""
    return sorted({clamp_day_to_month(year, month, d) for d in pot.trigger_days})


def pot_spending(transactions: Iterable[Transaction], category: str, month: str) -> float:
    return money_sum(
        tx.amount for tx in transactions
        if tx.category == category and tx.type == "expense" and tx.month == month
    )


class PotService:
    def __init__(
        self,
        pot_config_dao: PotConfigDAO,
        tx_dao: TransactionDAO,
        pots: list[PotDefinition] | None = None,
    ):
        self._dao = pot_config_dao
        self._tx_dao = tx_dao
        self._pots = pots if pots is not None else default_pots()

    def get_pots(self) -> list[PotDefinition]:
        return list(self._pots)

    def get_pot(self, pot_id: str) -> PotDefinition:
        for pot in self._pots:
            if pot.id == pot_id:
                return pot
        raise NotFound("Pot", pot_id)

    def get_configs(self) -> list[PotConfig]:
        return self._dao.get_all()

    def get_limit(self, pot: PotDefinition, month: str) -> float:
        return resolve_pot_limit(pot, month, self._dao.get_for_category(pot.category))

    def get_pot_status(self, month: str) -> list[PotStatus]:
        """Limit, spent and remaining for every pot in the given YYYY-MM month."""
        if parse_month(month) is None:
            raise ValueError(f"Invalid month: {month}")
        configs = self._dao.get_all()
        transactions = self._tx_dao.get_by_month(month)
        return [
            PotStatus(
                pot=pot,
                month=month,
                limit_amount=resolve_pot_limit(pot, month, configs),
                spent_amount=pot_spending(transactions, pot.category, month),
            )
            for pot in self._pots
        ]

    def set_limit(self, category: str, limit_amount: float, month: str | None = None) -> PotConfig:
        """Override a pot limit, for one month or (month=None) as the category default."""
        if not is_valid_amount(limit_amount):
            raise ValueError("Pot limit must be a non-negative number.")
        if month is not None and parse_month(month) is None:
            raise ValueError(f"Invalid month: {month}")
        return self._dao.upsert(category, month, limit_amount)

    def clear_limit(self, category: str, month: str | None = None):
        config = self._dao.get(category, month)
        if config is None:
            raise NotFound("Pot config", f"{category}/{month or 'default'}")
        self._dao.delete(config.id)

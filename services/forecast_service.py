import logging
import math
from collections import defaultdict
from datetime import date, timedelta
from typing import Iterable

from models.balance import Stability
from models.pot import PotConfig, PotDefinition
from models.recurring_rule import MaterializationPolicy, RecurringRule
from models.transaction import Transaction
from database.pot_config_dao import PotConfigDAO
from database.recurring_dao import RecurringDAO
from database.transaction_dao import TransactionDAO
from services.balance_service import compute_balances
from services.pot_service import default_pots, resolve_pot_limit, trigger_days_in_month
from utils.constants import SIMULATION_HORIZON_DAYS
from utils.date_helpers import (
    clamp_day_to_month, first_of_month, format_date, format_month, iter_days, parse_date,
)

logger = logging.getLogger(__name__)


def simulate(
    transactions: Iterable[Transaction],
    rules: Iterable[RecurringRule],
    from_date: date,
    to_date: date,
    pots: Iterable[PotDefinition] = (),
    pot_configs: Iterable[PotConfig] = (),
    *,
    today: date,
    skips: frozenset[tuple[str, str]] = frozenset(),
) -> list[dict]:
    """Day-by-day bank balance from from_date to to_date inclusive.

    Returns [{date:'YYYY-MM-DD', balance:float, is_future:bool}].

    Days up to `today` replay completed bank transactions. Later days apply the
    active bank rules due that day (unless skipped, or already materialized for
    that month), pending bank transactions dated that day, and each pot's limit
    split evenly over its trigger days. The window is capped at
    SIMULATION_HORIZON_DAYS; to_date before from_date gives [].
    """
    if to_date < from_date:
        return []
    horizon_end = from_date + timedelta(days=SIMULATION_HORIZON_DAYS)
    if to_date > horizon_end:
        logger.warning("Forecast window truncated to %s", format_date(horizon_end))
        to_date = horizon_end

    transactions = list(transactions)
    pots = list(pots)
    pot_configs = list(pot_configs)
    bank_rules = [r for r in rules if r.active and r.account == "bank"]

    start = format_date(from_date)
    completed_by_day: dict[str, list[float]] = defaultdict(list)
    scheduled_by_day: dict[str, list[float]] = defaultdict(list)
    opening: list[float] = []
    materialized: set[tuple[str, str]] = set()

    for tx in transactions:
        if tx.recurring_id:
            materialized.add((tx.recurring_id, tx.month))
        if tx.account != "bank":
            continue
        if tx.is_completed:
            if tx.date < start:
                opening.append(tx.signed_amount)
            else:
                completed_by_day[tx.date].append(tx.signed_amount)
        else:
            scheduled_by_day[tx.date].append(tx.signed_amount)

    running = math.fsum(opening)
    series = []
    for day in iter_days(from_date, to_date):
        key = format_date(day)
        is_future = day > today
        if not is_future:
            running += math.fsum(completed_by_day.get(key, ()))
        else:
            month = format_month(day)
            events: list[float] = []

            for rule in bank_rules:
                if clamp_day_to_month(day.year, day.month, rule.day_of_month) != day.day:
                    continue
                if (rule.category, month) in skips or (rule.id, month) in materialized:
                    continue
                events.append(rule.amount if rule.type == "income" else -rule.amount)

            events.extend(scheduled_by_day.get(key, ()))

            for pot in pots:
                days = trigger_days_in_month(pot, day.year, day.month)
                if day.day in days:
                    events.append(-resolve_pot_limit(pot, month, pot_configs) / len(days))

            running += math.fsum(events)

        series.append({
            "date": key,
            "balance": round(running, 2) + 0.0,
            "is_future": is_future,
        })
    return series


def stable_from(series: list[dict]) -> Stability:
    """Find when the balance becomes permanently non-negative within the series."""
    if not series:
        return Stability(achievable=False)

    last_negative = None
    for i, point in enumerate(series):
        if point["balance"] < 0:
            last_negative = i

    if last_negative is None:
        return Stability(achievable=True, date=parse_date(series[0]["date"]), immediate=True)
    if last_negative == len(series) - 1:
        return Stability(achievable=False)
    return Stability(achievable=True, date=parse_date(series[last_negative + 1]["date"]))


def find_stable_date(
    transactions: Iterable[Transaction],
    rules: Iterable[RecurringRule],
    from_date: date,
    pots: Iterable[PotDefinition] = (),
    pot_configs: Iterable[PotConfig] = (),
    *,
    today: date,
    skips: frozenset[tuple[str, str]] = frozenset(),
    horizon_days: int = SIMULATION_HORIZON_DAYS,
) -> Stability:
    horizon_days = min(horizon_days, SIMULATION_HORIZON_DAYS)
    series = simulate(
        transactions, rules, from_date, from_date + timedelta(days=horizon_days),
        pots, pot_configs, today=today, skips=skips,
    )
    return stable_from(series)


class ForecastService:
    def __init__(
        self,
        tx_dao: TransactionDAO,
        recurring_dao: RecurringDAO,
        pot_config_dao: PotConfigDAO,
        pots: list[PotDefinition] | None = None,
        policy: MaterializationPolicy | None = None,
    ):
        self._tx_dao = tx_dao
        self._recurring_dao = recurring_dao
        self._pot_config_dao = pot_config_dao
        self._pots = pots if pots is not None else default_pots()
        self._policy = policy or MaterializationPolicy()

    def get_daily_series(
        self, to_date: date, today: date, from_date: date | None = None
    ) -> list[dict]:
        """Simulated bank balance per day; starts at the first of today's month by default."""
        return simulate(
            self._tx_dao.get_all(),
            self._recurring_dao.get_all(),
            from_date or first_of_month(today),
            to_date,
            self._pots,
            self._pot_config_dao.get_all(),
            today=today,
            skips=self._policy.skips,
        )

    def get_projected_balance(self, to_date: date, today: date) -> float:
        """Bank balance on to_date; the actual bank balance when to_date is in the past."""
        series = self.get_daily_series(to_date, today)
        if series:
            return series[-1]["balance"]
        return compute_balances(self._tx_dao.get_all(), "actual", today).bank_balance

    def get_month_end_balances(self, to_date: date, today: date) -> list[dict]:
        """[{month:'YYYY-MM', balance:float}] using each month's last simulated day."""
        by_month: dict[str, float] = {}
        for point in self.get_daily_series(to_date, today):
            by_month[point["date"][:7]] = point["balance"]
        return [{"month": m, "balance": b} for m, b in by_month.items()]

    def get_stable_date(
        self, today: date, horizon_days: int = SIMULATION_HORIZON_DAYS
    ) -> Stability:
        return find_stable_date(
            self._tx_dao.get_all(),
            self._recurring_dao.get_all(),
            today,
            self._pots,
            self._pot_config_dao.get_all(),
            today=today,
            skips=self._policy.skips,
            horizon_days=horizon_days,
        )

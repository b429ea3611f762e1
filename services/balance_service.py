import math
from datetime import date
from typing import Iterable

from models.balance import BalanceSummary
from models.transaction import Transaction
from database.transaction_dao import TransactionDAO
from utils.constants import BALANCE_MODES
from utils.date_helpers import format_month


def money_sum(values: Iterable[float]) -> float:
    """Order-independent sum rounded to cents."""
    return round(math.fsum(values), 2) + 0.0


def compute_balances(
    transactions: Iterable[Transaction], mode: str, reference_date: date
) -> BalanceSummary:
    """Aggregate transactions into per-account balances and monthly totals.

    mode 'actual' counts only completed transactions; 'forecast' counts every
    transaction as if all pending ones clear. Transactions dated after
    reference_date's month are ignored in both modes. income/expense cover
    reference_date's month only.
    """
    if mode not in BALANCE_MODES:
        raise ValueError(f"Invalid mode: {mode}")

    ref_month = format_month(reference_date)
    bank: list[float] = []
    cash: list[float] = []
    income: list[float] = []
    expense: list[float] = []

    for tx in transactions:
        if tx.month > ref_month:
            continue
        if mode == "actual" and not tx.is_completed:
            continue
        if tx.account == "bank":
            bank.append(tx.signed_amount)
        else:
            cash.append(tx.signed_amount)
        if tx.month == ref_month:
            if tx.type == "income":
                income.append(tx.amount)
            else:
                expense.append(tx.amount)

    return BalanceSummary(
        bank_balance=money_sum(bank),
        cash_balance=money_sum(cash),
        income=money_sum(income),
        expense=money_sum(expense),
    )


class BalanceService:
    def __init__(self, tx_dao: TransactionDAO):
        self._tx_dao = tx_dao

    def get_balances(self, mode: str, reference_date: date) -> BalanceSummary:
        return compute_balances(self._tx_dao.get_all(), mode, reference_date)

    def get_overview(self, reference_date: date) -> dict[str, BalanceSummary]:
        """{'actual': ..., 'forecast': ...} from a single read of the store."""
        transactions = self._tx_dao.get_all()
        return {
            mode: compute_balances(transactions, mode, reference_date)
            for mode in BALANCE_MODES
        }

from datetime import date
from typing import Iterable

from models.transaction import Transaction
from database.transaction_dao import TransactionDAO
from services.balance_service import money_sum
from utils.date_helpers import format_date, format_month, last_day_of_month, parse_month

VIEWS = ("month", "day")


def _in_period(tx: Transaction, anchor: date, view: str) -> bool:
    if view == "month":
        return tx.month == format_month(anchor)
    return tx.date == format_date(anchor)


def _check_view(view: str):
    if view not in VIEWS:
        raise ValueError(f"Invalid view: {view}")


def period_summary(transactions: Iterable[Transaction], anchor: date, view: str = "month") -> dict:
    """{balance, income, expense} over anchor's month or day, any status, both accounts."""
    _check_view(view)
    selected = [tx for tx in transactions if _in_period(tx, anchor, view)]
    income = money_sum(tx.amount for tx in selected if tx.type == "income")
    expense = money_sum(tx.amount for tx in selected if tx.type == "expense")
    return {
        "balance": money_sum(tx.signed_amount for tx in selected),
        "income": income,
        "expense": expense,
    }


def daily_breakdown(transactions: Iterable[Transaction], month: str) -> list[dict]:
    """[{day, income, expense}] for every day of a YYYY-MM month, empty days included."""
    first = parse_month(month)
    if first is None:
        raise ValueError(f"Invalid month: {month}")
    days = last_day_of_month(first.year, first.month)
    income: dict[int, list[float]] = {d: [] for d in range(1, days + 1)}
    expense: dict[int, list[float]] = {d: [] for d in range(1, days + 1)}
    for tx in transactions:
        if tx.month != month:
            continue
        day = int(tx.date[8:10])
        (income if tx.type == "income" else expense)[day].append(tx.amount)
    return [
        {"day": d, "income": money_sum(income[d]), "expense": money_sum(expense[d])}
        for d in range(1, days + 1)
    ]


def category_breakdown(
    transactions: Iterable[Transaction], anchor: date, view: str = "month"
) -> list[dict]:
    """[{category, income, expense}] for the period, largest expense first."""
    _check_view(view)
    grouped: dict[str, dict[str, list[float]]] = {}
    for tx in transactions:
        if not _in_period(tx, anchor, view):
            continue
        entry = grouped.setdefault(tx.category, {"income": [], "expense": []})
        entry[tx.type].append(tx.amount)
    rows = [
        {
            "category": category,
            "income": money_sum(amounts["income"]),
            "expense": money_sum(amounts["expense"]),
        }
        for category, amounts in grouped.items()
    ]
    rows.sort(key=lambda r: (-r["expense"], r["category"]))
    return rows


class ReportService:
    def __init__(self, tx_dao: TransactionDAO):
        self._tx_dao = tx_dao

    def get_summary(self, anchor: date, view: str = "month") -> dict:
        return period_summary(self._tx_dao.get_by_month(format_month(anchor)), anchor, view)

    def get_daily_chart_data(self, month: str) -> list[dict]:
        return daily_breakdown(self._tx_dao.get_by_month(month), month)

    def get_category_breakdown(self, anchor: date, view: str = "month") -> list[dict]:
        return category_breakdown(self._tx_dao.get_by_month(format_month(anchor)), anchor, view)

import sqlite3
from dataclasses import replace
from datetime import date, datetime

from models.pot import PotDefinition
from models.recurring_rule import RecurringRule
from models.transaction import Transaction
from database.db_manager import DatabaseManager
from database.errors import DuplicateRecord, NotFound
from database.recurring_dao import RecurringDAO
from database.transaction_dao import TransactionDAO
from services.balance_service import compute_balances
from services.recurring_service import new_id
from utils.constants import (
    ACCOUNT_METHODS, ACCOUNTS, BALANCE_EPSILON, CORRECTION_CATEGORY,
    POT_WITHDRAWAL_NOTE, STATUSES, TRANSACTION_TYPES,
)
from utils.currency import is_valid_amount
from utils.date_helpers import format_date, parse_date


class TransactionService:
    def __init__(self, db: DatabaseManager, tx_dao: TransactionDAO, recurring_dao: RecurringDAO):
        self._db = db
        self._dao = tx_dao
        self._recurring_dao = recurring_dao

    def get_all(self) -> list[Transaction]:
        return self._dao.get_all()

    def get_for_month(self, month: str) -> list[Transaction]:
        return self._dao.get_by_month(month)

    def get_by_id(self, tx_id: str) -> Transaction:
        tx = self._dao.get_by_id(tx_id)
        if tx is None:
            raise NotFound("Transaction", tx_id)
        return tx

    def create(
        self,
        date: str,
        amount: float,
        type_: str,
        category: str,
        account: str,
        status: str = "completed",
        note: str = "",
        method: str | None = None,
        now: datetime | None = None,
    ) -> Transaction:
        """Record a one-off transaction. New entries default to completed."""
        tx = Transaction(
            id=new_id(),
            date=date,
            amount=amount,
            type=type_,
            category=category,
            account=account,
            status=status,
            method=method or ACCOUNT_METHODS.get(account, "digital"),
            note=note,
            created_at=(now or datetime.now()).isoformat(),
        )
        self._validate(tx)
        return self._dao.add(tx)

    def add(self, tx: Transaction, rule: RecurringRule | None = None) -> Transaction:
        """Store a transaction, optionally together with the rule it starts.

        When a rule is given it is stored active and the transaction is linked
        to it. Both are written in one sqlite transaction.
        """
        if rule is not None:
            rule = replace(rule, active=True)
            tx = replace(tx, is_recurring=True, recurring_id=rule.id)
            self._validate_rule(rule)
        self._validate(tx)

        if rule is None:
            return self._dao.add(tx)

        try:
            with self._db.unit_of_work() as conn:
                self._recurring_dao.insert(conn, rule)
                self._dao.insert(conn, tx)
        except sqlite3.IntegrityError:
            if self._recurring_dao.get_by_id(rule.id) is not None:
                raise DuplicateRecord("Recurring rule", rule.id)
            if self._dao.get_by_id(tx.id) is not None:
                raise DuplicateRecord("Transaction", tx.id)
            raise
        return tx

    def update(self, tx: Transaction) -> Transaction:
        self._validate(tx)
        return self._dao.update(tx)

    def edit(self, tx_id: str, amount: float | None = None, date: str | None = None) -> Transaction:
        """Change amount and/or date of an existing transaction."""
        tx = self.get_by_id(tx_id)
        if amount is not None:
            tx.amount = amount
        if date is not None:
            tx.date = date
        return self.update(tx)

    def set_status(self, tx_id: str, status: str):
        if status not in STATUSES:
            raise ValueError(f"Invalid status: {status}")
        self._dao.set_status(tx_id, status)

    def toggle_status(self, tx_id: str) -> str:
        """Flip pending <-> completed. Returns the new status."""
        tx = self.get_by_id(tx_id)
        new_status = "pending" if tx.is_completed else "completed"
        self._dao.set_status(tx_id, new_status)
        return new_status

    def delete(self, tx_id: str):
        self._dao.delete(tx_id)

    def spend_from_pot(
        self,
        pot: PotDefinition,
        amount: float,
        date: str,
        account: str = "cash",
        now: datetime | None = None,
    ) -> Transaction:
        """Record a completed withdrawal against a pot's category."""
        if amount <= 0:
            raise ValueError("Amount must be positive.")
        return self.create(
            date=date,
            amount=amount,
            type_="expense",
            category=pot.category,
            account=account,
            status="completed",
            note=POT_WITHDRAWAL_NOTE.format(name=pot.display_name),
            now=now,
        )

    def record_correction(
        self,
        account: str,
        target_balance: float,
        reference_date: date,
        now: datetime | None = None,
    ) -> Transaction | None:
        """Add one completed transaction that brings the actual balance to target_balance.

        Existing records are left untouched. Returns None when the balance is
        already within BALANCE_EPSILON of the target.
        """
        if account not in ACCOUNTS:
            raise ValueError("Account must be bank or cash.")
        summary = compute_balances(self._dao.get_all(), "actual", reference_date)
        current = summary.bank_balance if account == "bank" else summary.cash_balance
        diff = round(target_balance - current, 2)
        if abs(diff) < BALANCE_EPSILON:
            return None
        return self.create(
            date=format_date(reference_date),
            amount=abs(diff),
            type_="income" if diff > 0 else "expense",
            category=CORRECTION_CATEGORY,
            account=account,
            status="completed",
            note=f"Correction to {target_balance:.2f}",
            now=now,
        )

    def _validate(self, tx: Transaction):
        if tx.type not in TRANSACTION_TYPES:
            raise ValueError(f"Invalid type: {tx.type}")
        if not is_valid_amount(tx.amount):
            raise ValueError("Amount must be a non-negative number.")
        parsed = parse_date(tx.date)
        if parsed is None or format_date(parsed) != tx.date:
            raise ValueError("Invalid date format. Use YYYY-MM-DD.")
        if tx.account not in ACCOUNTS:
            raise ValueError("Account must be bank or cash.")
        if tx.status not in STATUSES:
            raise ValueError(f"Invalid status: {tx.status}")
        if tx.is_recurring != bool(tx.recurring_id):
            raise ValueError("Recurring transactions must reference their rule.")

    def _validate_rule(self, rule: RecurringRule):
        if rule.type not in TRANSACTION_TYPES:
            raise ValueError("Type must be income or expense.")
        if not is_valid_amount(rule.amount):
            raise ValueError("Amount must be a non-negative number.")
        if rule.account not in ACCOUNTS:
            raise ValueError("Account must be bank or cash.")
        if not 1 <= rule.day_of_month <= 31:
            raise ValueError("Day of month must be between 1 and 31.")

import logging
import sqlite3
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Iterable

from models.recurring_rule import MaterializationPolicy, RecurringRule
from models.transaction import Transaction
from database.errors import BudgetError, ConcurrentDuplicate
from database.recurring_dao import RecurringDAO
from database.transaction_dao import TransactionDAO
from utils.constants import (
    ACCOUNT_METHODS, ACCOUNTS, AUTO_CREATED_SUFFIX, DEFAULT_RULES,
    OPENING_BALANCE, OPENING_BALANCE_CATEGORY, TRANSACTION_TYPES,
)
from utils.currency import is_valid_amount
from utils.date_helpers import clamp_day_to_month, format_date, format_month

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


def effective_date(rule: RecurringRule, reference_date: date) -> date:
    """The day the rule falls on in reference_date's month, clamped to the month end."""
    day = clamp_day_to_month(reference_date.year, reference_date.month, rule.day_of_month)
    return reference_date.replace(day=day)


def build_instance(
    rule: RecurringRule,
    reference_date: date,
    policy: MaterializationPolicy,
    created_at: str = "",
) -> Transaction:
    return Transaction(
        id=new_id(),
        date=format_date(effective_date(rule, reference_date)),
        amount=rule.amount,
        type=rule.type,
        category=rule.category,
        account=rule.account,
        status=policy.initial_status(rule.category),
        method=rule.method,
        is_recurring=True,
        recurring_id=rule.id,
        note=rule.note + AUTO_CREATED_SUFFIX,
        created_at=created_at,
    )


def materialize(
    rules: Iterable[RecurringRule],
    existing_transactions: Iterable[Transaction],
    reference_date: date,
    policy: MaterializationPolicy | None = None,
    created_at: str = "",
) -> list[Transaction]:
    """Return the instances missing for reference_date's month, one per active rule.

    Rules that already have a transaction dated in that month, inactive rules and
    (category, month) pairs on the policy's skip list produce nothing. Pure: nothing
    is written and the clock is never read.
    """
    policy = policy or MaterializationPolicy()
    month = format_month(reference_date)
    done = {
        tx.recurring_id for tx in existing_transactions
        if tx.recurring_id and tx.month == month
    }

    result: list[Transaction] = []
    for rule in rules:
        if not rule.active or rule.id in done:
            continue
        if policy.is_skipped(rule.category, month):
            continue
        result.append(build_instance(rule, reference_date, policy, created_at))
        done.add(rule.id)
    return result


@dataclass
class MaterializationReport:
    month: str
    created: list[Transaction] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)              # rule ids already done
    failed: list[tuple[str, str]] = field(default_factory=list)   # (rule id, error)

    @property
    def ok(self) -> bool:
        return not self.failed


class RecurringService:
    def __init__(
        self,
        recurring_dao: RecurringDAO,
        tx_dao: TransactionDAO,
        policy: MaterializationPolicy | None = None,
    ):
        self._dao = recurring_dao
        self._tx_dao = tx_dao
        self._policy = policy or MaterializationPolicy()

    @property
    def policy(self) -> MaterializationPolicy:
        return self._policy

    def get_all(self) -> list[RecurringRule]:
        return self._dao.get_all()

    def get_active(self) -> list[RecurringRule]:
        return self._dao.get_active()

    def get_by_id(self, rule_id: str) -> RecurringRule | None:
        return self._dao.get_by_id(rule_id)

    def create_rule(
        self,
        type_: str,
        category: str,
        amount: float,
        account: str,
        day_of_month: int,
        note: str = "",
        active: bool = True,
        method: str | None = None,
        created_at: str | None = None,
    ) -> RecurringRule:
        self._validate(type_, category, amount, account, day_of_month)
        rule = RecurringRule(
            id=new_id(),
            type=type_,
            category=category.strip(),
            amount=float(amount),
            account=account,
            day_of_month=int(day_of_month),
            note=note,
            method=method or ACCOUNT_METHODS[account],
            active=active,
            created_at=created_at if created_at is not None else datetime.now().isoformat(),
        )
        return self._dao.add(rule)

    def update_rule(self, rule: RecurringRule) -> RecurringRule:
        self._validate(rule.type, rule.category, rule.amount, rule.account, rule.day_of_month)
        return self._dao.update(rule)

    def set_active(self, rule_id: str, active: bool):
        self._dao.set_active(rule_id, active)

    def delete_rule(self, rule_id: str):
        """Remove a rule. Transactions it already created are kept."""
        self._dao.delete(rule_id)

    def set_amount(self, rule_id: str, amount: float):
        if not is_valid_amount(amount):
            raise ValueError("Amount must be a non-negative number.")
        self._dao.set_amount(rule_id, amount)

    def apply_due_rules(
        self, reference_date: date, now: datetime | None = None
    ) -> MaterializationReport:
        """Materialize every active rule for reference_date's month.

        Each instance is written on its own; a failure is logged and recorded
        in the report and the remaining rules are still processed.
        """
        month = format_month(reference_date)
        created_at = (now or datetime.now()).isoformat()
        candidates = materialize(
            self._dao.get_all(),
            self._tx_dao.get_by_month(month),
            reference_date,
            self._policy,
            created_at,
        )

        report = MaterializationReport(month=month)
        for tx in candidates:
            try:
                self._tx_dao.add_for_rule_month(tx)
            except ConcurrentDuplicate:
                logger.debug("Rule %s already materialized for %s", tx.recurring_id, month)
                report.skipped.append(tx.recurring_id)
                continue
            except (sqlite3.Error, BudgetError) as e:
                logger.exception("Could not materialize rule %s for %s", tx.recurring_id, month)
                report.failed.append((tx.recurring_id, str(e)))
                continue
            report.created.append(tx)

        if report.created:
            logger.info("Materialized %d recurring transaction(s) for %s", len(report.created), month)
        return report

    def seed_defaults(self, reference_date: date, now: datetime | None = None) -> bool:
        """First run only: add the default rules and an opening balance.

        Returns False (and writes nothing) when any rule already exists.
        """
        if self._dao.count() > 0:
            return False

        created_at = (now or datetime.now()).isoformat()
        for entry in DEFAULT_RULES:
            self.create_rule(
                type_=entry["type"],
                category=entry["category"],
                amount=entry["amount"],
                account=entry["account"],
                day_of_month=entry["day_of_month"],
                note=entry.get("note", ""),
                active=entry.get("active", True),
                created_at=created_at,
            )

        self._tx_dao.add(Transaction(
            id=new_id(),
            date=format_date(reference_date),
            amount=OPENING_BALANCE,
            type="income",
            category=OPENING_BALANCE_CATEGORY,
            account="bank",
            status="completed",
            method=ACCOUNT_METHODS["bank"],
            note="Carried over from previous month",
            created_at=created_at,
        ))
        logger.info("Seeded %d default rules", len(DEFAULT_RULES))
        return True

    def _validate(self, type_, category, amount, account, day_of_month):
        if type_ not in TRANSACTION_TYPES:
            raise ValueError("Type must be income or expense.")
        if not category or not category.strip():
            raise ValueError("Category cannot be empty.")
        if not is_valid_amount(amount):
            raise ValueError("Amount must be a non-negative number.")
        if account not in ACCOUNTS:
            raise ValueError("Account must be bank or cash.")
        if not isinstance(day_of_month, int) or not 1 <= day_of_month <= 31:
            raise ValueError("Day of month must be between 1 and 31.")

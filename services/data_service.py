"""Export and import user data as JSON.

Transactions travel as a flat list of camelCase records. A full backup
additionally carries recurring rules and pot limit overrides.
"""
import json
import logging
import sqlite3
from datetime import date, datetime, timezone
from pathlib import Path

from models.pot import PotConfig
from models.recurring_rule import RecurringRule
from models.transaction import Transaction
from database.db_manager import DatabaseManager
from database.errors import BudgetError
from database.pot_config_dao import PotConfigDAO
from database.recurring_dao import RecurringDAO
from database.transaction_dao import TransactionDAO
from utils.constants import ACCOUNT_METHODS, ACCOUNTS, STATUSES, TRANSACTION_TYPES
from utils.currency import is_valid_amount
from utils.date_helpers import format_date, parse_date, parse_month

logger = logging.getLogger(__name__)

BACKUP_VERSION = 1


class MalformedImport(BudgetError):
    """Import data has the wrong shape. Nothing was written."""


def default_export_name(on: date) -> str:
    return f"finance-flow-backup-{format_date(on)}.json"


def to_record(tx: Transaction) -> dict:
    return {
        "id": tx.id,
        "date": tx.date,
        "amount": tx.amount,
        "type": tx.type,
        "category": tx.category,
        "account": tx.account,
        "method": tx.method,
        "status": tx.status,
        "isRecurring": tx.is_recurring,
        "recurringId": tx.recurring_id,
        "note": tx.note,
        "createdAt": tx.created_at,
    }


def _created_at(value) -> str:
    """Epoch milliseconds (older exports) become an ISO timestamp in UTC."""
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc).isoformat()
        except (OverflowError, OSError, ValueError) as e:
            raise MalformedImport(f"invalid createdAt {value!r}") from e
    return str(value or "")


def from_record(record, index: int = 0) -> Transaction:
    """Build a Transaction from one import record. Raises MalformedImport.

    Older exports may lack account or status: account follows the payment
    method and status defaults to completed.
    """
    def bad(msg: str):
        return MalformedImport(f"Record {index}: {msg}")

    if not isinstance(record, dict):
        raise bad("expected an object")

    tx_id = record.get("id")
    if not isinstance(tx_id, str) or not tx_id:
        raise bad("missing id")

    date_str = record.get("date")
    parsed = parse_date(date_str) if isinstance(date_str, str) else None
    if parsed is None or format_date(parsed) != date_str:
        raise bad(f"invalid date {date_str!r}")

    amount = record.get("amount")
    if not is_valid_amount(amount):
        raise bad(f"invalid amount {amount!r}")

    type_ = record.get("type")
    if type_ not in TRANSACTION_TYPES:
        raise bad(f"invalid type {type_!r}")

    method = record.get("method") or "digital"
    account = record.get("account") or ("cash" if method == "cash" else "bank")
    if account not in ACCOUNTS:
        raise bad(f"invalid account {account!r}")

    status = record.get("status") or "completed"
    if status not in STATUSES:
        raise bad(f"invalid status {status!r}")

    recurring_id = record.get("recurringId") or None
    if recurring_id is not None and not isinstance(recurring_id, str):
        raise bad("recurringId must be a string")

    return Transaction(
        id=tx_id,
        date=date_str,
        amount=float(amount),
        type=type_,
        category=str(record.get("category") or ""),
        account=account,
        status=status,
        method=str(method),
        is_recurring=recurring_id is not None,
        recurring_id=recurring_id,
        note=str(record.get("note") or ""),
        created_at=_created_at(record.get("createdAt")),
    )


def parse_transactions(data) -> list[Transaction]:
    if not isinstance(data, list):
        raise MalformedImport("Invalid format: root must be a list.")
    transactions = [from_record(r, i) for i, r in enumerate(data)]
    seen: set[str] = set()
    for i, tx in enumerate(transactions):
        if tx.id in seen:
            raise MalformedImport(f"Record {i}: duplicate id {tx.id!r}")
        seen.add(tx.id)
    return transactions


def rule_to_record(rule: RecurringRule) -> dict:
    return {
        "id": rule.id,
        "type": rule.type,
        "category": rule.category,
        "amount": rule.amount,
        "account": rule.account,
        "method": rule.method,
        "dayOfMonth": rule.day_of_month,
        "note": rule.note,
        "active": rule.active,
        "frequency": rule.frequency,
        "createdAt": rule.created_at,
    }


def rule_from_record(record, index: int = 0) -> RecurringRule:
    if not isinstance(record, dict):
        raise MalformedImport(f"Rule {index}: expected an object")
    rule_id = record.get("id")
    amount = record.get("amount")
    day = record.get("dayOfMonth")
    account = record.get("account")
    if not isinstance(rule_id, str) or not rule_id:
        raise MalformedImport(f"Rule {index}: missing id")
    if record.get("type") not in TRANSACTION_TYPES:
        raise MalformedImport(f"Rule {index}: invalid type")
    if not is_valid_amount(amount):
        raise MalformedImport(f"Rule {index}: invalid amount")
    if account not in ACCOUNTS:
        raise MalformedImport(f"Rule {index}: invalid account")
    if not isinstance(day, int) or isinstance(day, bool) or not 1 <= day <= 31:
        raise MalformedImport(f"Rule {index}: dayOfMonth must be between 1 and 31")
    return RecurringRule(
        id=rule_id,
        type=record["type"],
        category=str(record.get("category") or ""),
        amount=float(amount),
        account=account,
        day_of_month=day,
        note=str(record.get("note") or ""),
        method=str(record.get("method") or ACCOUNT_METHODS[account]),
        active=bool(record.get("active", True)),
        frequency="monthly",
        created_at=_created_at(record.get("createdAt")),
    )


def pot_config_from_record(record, index: int = 0) -> PotConfig:
    if not isinstance(record, dict):
        raise MalformedImport(f"Pot config {index}: expected an object")
    category = record.get("category")
    month = record.get("month") or None
    limit = record.get("limitAmount")
    if not isinstance(category, str) or not category:
        raise MalformedImport(f"Pot config {index}: missing category")
    if month is not None and (not isinstance(month, str) or parse_month(month) is None):
        raise MalformedImport(f"Pot config {index}: invalid month {month!r}")
    if not is_valid_amount(limit):
        raise MalformedImport(f"Pot config {index}: invalid limitAmount")
    return PotConfig(id=0, category=category, month=month, limit_amount=float(limit))


class DataService:
    def __init__(
        self,
        db: DatabaseManager,
        tx_dao: TransactionDAO,
        recurring_dao: RecurringDAO,
        pot_config_dao: PotConfigDAO,
    ):
        self._db = db
        self._tx_dao = tx_dao
        self._recurring_dao = recurring_dao
        self._pot_config_dao = pot_config_dao

    # ── Transactions ──────────────────────────────────────────────────────────

    def export_transactions(self) -> list[dict]:
        return [to_record(tx) for tx in self._tx_dao.get_all()]

    def import_transactions(self, data) -> int:
        """Replace all transactions with data. Returns the number imported.

        Raises MalformedImport and leaves the store untouched when data is not
        a list or any record is invalid.
        """
        transactions = parse_transactions(data)
        try:
            count = self._tx_dao.replace_all(transactions)
        except sqlite3.IntegrityError as e:
            raise MalformedImport(f"Import rejected: {e}") from e
        logger.info("Imported %d transaction(s)", count)
        return count

    def export_json(self, path: str | Path) -> int:
        records = self.export_transactions()
        Path(path).write_text(json.dumps(records, indent=2), encoding="utf-8")
        return len(records)

    def import_json(self, path: str | Path) -> int:
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except ValueError as e:
            raise MalformedImport(f"Not valid JSON: {e}") from e
        return self.import_transactions(data)

    # ── Full backup ───────────────────────────────────────────────────────────

    def export_backup(self) -> dict:
        return {
            "version": BACKUP_VERSION,
            "exportedAt": datetime.now().isoformat(),
            "transactions": self.export_transactions(),
            "recurringRules": [rule_to_record(r) for r in self._recurring_dao.get_all()],
            "potConfigs": [
                {"category": c.category, "month": c.month, "limitAmount": c.limit_amount}
                for c in self._pot_config_dao.get_all()
            ],
        }

    def import_backup(self, data) -> dict:
        """Replace transactions, rules and pot configs in one sqlite transaction.

        Returns counts per section.
        """
        if not isinstance(data, dict):
            raise MalformedImport("Invalid format: backup root must be an object.")
        transactions = parse_transactions(data.get("transactions", []))
        raw_rules = data.get("recurringRules", [])
        raw_configs = data.get("potConfigs", [])
        if not isinstance(raw_rules, list) or not isinstance(raw_configs, list):
            raise MalformedImport("recurringRules and potConfigs must be lists.")
        rules = [rule_from_record(r, i) for i, r in enumerate(raw_rules)]
        configs = [pot_config_from_record(c, i) for i, c in enumerate(raw_configs)]

        try:
            with self._db.unit_of_work() as conn:
                self._tx_dao.write_all(conn, transactions)
                self._recurring_dao.write_all(conn, rules)
                self._pot_config_dao.write_all(conn, configs)
        except sqlite3.IntegrityError as e:
            raise MalformedImport(f"Backup rejected: {e}") from e

        stats = {
            "transactions": len(transactions),
            "recurring_rules": len(rules),
            "pot_configs": len(configs),
        }
        logger.info("Restored backup: %s", stats)
        return stats

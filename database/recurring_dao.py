import sqlite3
from typing import Iterable, Optional
from database.db_manager import DatabaseManager
from database.errors import DuplicateRecord, NotFound
from models.recurring_rule import RecurringRule


class RecurringDAO:
    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> RecurringRule:
        return RecurringRule(
            id=row["id"],
            type=row["type"],
            category=row["category"],
            amount=row["amount"],
            account=row["account"],
            day_of_month=row["day_of_month"],
            note=row["note"],
            method=row["method"],
            active=bool(row["active"]),
            frequency=row["frequency"],
            created_at=row["created_at"],
        )

    def _params(self, rule: RecurringRule) -> tuple:
        return (
            rule.id, rule.type, rule.category, rule.amount, rule.account,
            rule.method, rule.day_of_month, rule.note,
            1 if rule.active else 0, rule.frequency, rule.created_at,
        )

    _INSERT = """INSERT INTO recurring_rules
                 (id, type, category, amount, account, method, day_of_month,
                  note, active, frequency, created_at)
                 VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"""

    def get_all(self) -> list[RecurringRule]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM recurring_rules ORDER BY day_of_month, category, id"
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_active(self) -> list[RecurringRule]:
        conn = self._db.get_connection()
        rows = conn.execute(
            """SELECT * FROM recurring_rules WHERE active = 1
               ORDER BY day_of_month, category, id"""
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_id(self, rule_id: str) -> Optional[RecurringRule]:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM recurring_rules WHERE id = ?", (rule_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def count(self) -> int:
        conn = self._db.get_connection()
        return conn.execute("SELECT COUNT(*) FROM recurring_rules").fetchone()[0]

    def add(self, rule: RecurringRule) -> RecurringRule:
        conn = self._db.get_connection()
        try:
            conn.execute(self._INSERT, self._params(rule))
            conn.commit()
        except sqlite3.IntegrityError:
            conn.rollback()
            if self.get_by_id(rule.id) is not None:
                raise DuplicateRecord("Recurring rule", rule.id)
            raise
        return rule

    def update(self, rule: RecurringRule) -> RecurringRule:
        conn = self._db.get_connection()
        cursor = conn.execute(
            """UPDATE recurring_rules SET
               type=?, category=?, amount=?, account=?, method=?,
               day_of_month=?, note=?, active=?, frequency=?
               WHERE id=?""",
            (
                rule.type, rule.category, rule.amount, rule.account, rule.method,
                rule.day_of_month, rule.note, 1 if rule.active else 0,
                rule.frequency, rule.id,
            ),
        )
        conn.commit()
        if cursor.rowcount == 0:
            raise NotFound("Recurring rule", rule.id)
        return self.get_by_id(rule.id)

    def set_active(self, rule_id: str, active: bool):
        conn = self._db.get_connection()
        cursor = conn.execute(
            "UPDATE recurring_rules SET active = ? WHERE id = ?",
            (1 if active else 0, rule_id),
        )
        conn.commit()
        if cursor.rowcount == 0:
            raise NotFound("Recurring rule", rule_id)

    def set_amount(self, rule_id: str, amount: float):
        conn = self._db.get_connection()
        cursor = conn.execute(
            "UPDATE recurring_rules SET amount = ? WHERE id = ?",
            (amount, rule_id),
        )
        conn.commit()
        if cursor.rowcount == 0:
            raise NotFound("Recurring rule", rule_id)

    def delete(self, rule_id: str):
        conn = self._db.get_connection()
        cursor = conn.execute("DELETE FROM recurring_rules WHERE id = ?", (rule_id,))
        conn.commit()
        if cursor.rowcount == 0:
            raise NotFound("Recurring rule", rule_id)

    def clear(self):
        conn = self._db.get_connection()
        conn.execute("DELETE FROM recurring_rules")
        conn.commit()

    def insert(self, conn: sqlite3.Connection, rule: RecurringRule):
        """Insert on conn without committing. The caller owns the transaction."""
        conn.execute(self._INSERT, self._params(rule))

    def write_all(self, conn: sqlite3.Connection, rules: Iterable[RecurringRule]) -> int:
        """Delete every rule and insert rules on conn. The caller owns the transaction."""
        conn.execute("DELETE FROM recurring_rules")
        count = 0
        for rule in rules:
            self.insert(conn, rule)
            count += 1
        return count

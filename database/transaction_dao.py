import sqlite3
from typing import Iterable, Optional
from database.db_manager import DatabaseManager
from database.errors import ConcurrentDuplicate, DuplicateRecord, NotFound
from models.transaction import Transaction
from utils.date_helpers import month_range


class TransactionDAO:
    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> Transaction:
        return Transaction(
            id=row["id"],
            date=row["date"],
            amount=row["amount"],
            type=row["type"],
            category=row["category"],
            account=row["account"],
            status=row["status"],
            method=row["method"],
            is_recurring=bool(row["is_recurring"]),
            recurring_id=row["recurring_id"],
            note=row["note"],
            created_at=row["created_at"],
        )

    def _params(self, tx: Transaction) -> tuple:
        return (
            tx.id, tx.date, tx.amount, tx.type, tx.category, tx.account,
            tx.method, tx.status, 1 if tx.is_recurring else 0,
            tx.recurring_id, tx.note, tx.created_at,
        )

    _INSERT = """INSERT INTO transactions
                 (id, date, amount, type, category, account, method, status,
                  is_recurring, recurring_id, note, created_at)
                 VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)"""

    def get_all(self) -> list[Transaction]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM transactions ORDER BY date ASC, id ASC"
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_by_id(self, tx_id: str) -> Optional[Transaction]:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM transactions WHERE id = ?", (tx_id,)
        ).fetchone()
        return self._row_to_model(row) if row else None

    def get_by_month(self, month: str) -> list[Transaction]:
        first, last = month_range(month)
        conn = self._db.get_connection()
        rows = conn.execute(
            """SELECT * FROM transactions
               WHERE date BETWEEN ? AND ?
               ORDER BY date ASC, id ASC""",
            (first, last),
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def exists_for_rule_month(self, rule_id: str, month: str) -> bool:
        first, last = month_range(month)
        conn = self._db.get_connection()
        row = conn.execute(
            """SELECT 1 FROM transactions
               WHERE recurring_id = ? AND date BETWEEN ? AND ?
               LIMIT 1""",
            (rule_id, first, last),
        ).fetchone()
        return row is not None

    def count(self) -> int:
        conn = self._db.get_connection()
        return conn.execute("SELECT COUNT(*) FROM transactions").fetchone()[0]

    def add(self, tx: Transaction) -> Transaction:
        """Insert a new transaction. Raises DuplicateRecord if the id is taken."""
        conn = self._db.get_connection()
        try:
            conn.execute(self._INSERT, self._params(tx))
            conn.commit()
        except sqlite3.IntegrityError:
            conn.rollback()
            if self.get_by_id(tx.id) is not None:
                raise DuplicateRecord("Transaction", tx.id)
            raise
        return tx

    def add_for_rule_month(self, tx: Transaction) -> Transaction:
        """Insert a materialized instance unless its rule already has one that month.

        The existence check and the insert run in one sqlite transaction.
        Raises ConcurrentDuplicate when an instance exists.
        """
        first, last = month_range(tx.month)
        with self._db.unit_of_work() as conn:
            row = conn.execute(
                """SELECT 1 FROM transactions
                   WHERE recurring_id = ? AND date BETWEEN ? AND ?
                   LIMIT 1""",
                (tx.recurring_id, first, last),
            ).fetchone()
            if row is not None:
                raise ConcurrentDuplicate(tx.recurring_id, tx.month)
            conn.execute(self._INSERT, self._params(tx))
        return tx

    def put(self, tx: Transaction) -> Transaction:
        """Insert or replace by id."""
        conn = self._db.get_connection()
        conn.execute(
            """INSERT INTO transactions
               (id, date, amount, type, category, account, method, status,
                is_recurring, recurring_id, note, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
               ON CONFLICT(id) DO UPDATE SET
                   date=excluded.date, amount=excluded.amount, type=excluded.type,
                   category=excluded.category, account=excluded.account,
                   method=excluded.method, status=excluded.status,
                   is_recurring=excluded.is_recurring, recurring_id=excluded.recurring_id,
                   note=excluded.note, created_at=excluded.created_at""",
            self._params(tx),
        )
        conn.commit()
        return tx

    def update(self, tx: Transaction) -> Transaction:
        """Overwrite an existing transaction. Raises NotFound for an unknown id."""
        conn = self._db.get_connection()
        cursor = conn.execute(
            """UPDATE transactions
               SET date=?, amount=?, type=?, category=?, account=?, method=?,
                   status=?, is_recurring=?, recurring_id=?, note=?
               WHERE id=?""",
            (
                tx.date, tx.amount, tx.type, tx.category, tx.account, tx.method,
                tx.status, 1 if tx.is_recurring else 0, tx.recurring_id, tx.note,
                tx.id,
            ),
        )
        conn.commit()
        if cursor.rowcount == 0:
            raise NotFound("Transaction", tx.id)
        return self.get_by_id(tx.id)

    def set_status(self, tx_id: str, status: str):
        conn = self._db.get_connection()
        cursor = conn.execute(
            "UPDATE transactions SET status=? WHERE id=?", (status, tx_id)
        )
        conn.commit()
        if cursor.rowcount == 0:
            raise NotFound("Transaction", tx_id)

    def delete(self, tx_id: str):
        conn = self._db.get_connection()
        cursor = conn.execute("DELETE FROM transactions WHERE id = ?", (tx_id,))
        conn.commit()
        if cursor.rowcount == 0:
            raise NotFound("Transaction", tx_id)

    def clear(self):
        conn = self._db.get_connection()
        conn.execute("DELETE FROM transactions")
        conn.commit()

    def insert(self, conn: sqlite3.Connection, tx: Transaction):
        """Insert on conn without committing. The caller owns the transaction."""
        conn.execute(self._INSERT, self._params(tx))

    def write_all(self, conn: sqlite3.Connection, transactions: Iterable[Transaction]) -> int:
        """Delete every transaction and insert transactions on conn. The caller owns the transaction."""
        conn.execute("DELETE FROM transactions")
        count = 0
        for tx in transactions:
            self.insert(conn, tx)
            count += 1
        return count

    def replace_all(self, transactions: Iterable[Transaction]) -> int:
        """Atomically replace every stored transaction. Returns the new count.

        On any error (e.g. a duplicate id in the input) the previous data is kept.
        """
        with self._db.unit_of_work() as conn:
            return self.write_all(conn, transactions)

import sqlite3
import os
from contextlib import contextmanager
from database.errors import BudgetError, StoreUnavailable
from utils.constants import DB_FILE


class DatabaseManager:
    def __init__(self, db_path: str | None = None):
        self.db_path = db_path or DB_FILE
        self._conn: sqlite3.Connection | None = None

    def get_connection(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreUnavailable(
                f"Database '{self.db_path}' is not initialized; call initialize() first."
            )
        return self._conn

    def initialize(self):
        """Open the connection, create schema and seed settings."""
        if self._conn is None:
            try:
                conn = sqlite3.connect(self.db_path)
            except sqlite3.Error as e:
                raise StoreUnavailable(f"Could not open database '{self.db_path}': {e}") from e
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode = WAL")
            self._conn = conn
        conn = self._conn
        self._create_schema(conn)
        self._migrate_schema(conn)
        self._seed_defaults(conn)
        conn.commit()

    @contextmanager
    def unit_of_work(self):
        """Run the enclosed statements as one sqlite transaction.

        Commits on success; rolls back and re-raises on any error. Raises
        BudgetError if the connection already has uncommitted work.
        """
        conn = self.get_connection()
        if conn.in_transaction:
            raise BudgetError("Uncommitted changes are pending on this connection.")
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        else:
            conn.commit()

    def _migrate_schema(self, conn: sqlite3.Connection):
        """Idempotent ALTER TABLE for columns added after initial release."""
        cols = {row[1] for row in conn.execute("PRAGMA table_info(transactions)").fetchall()}
        if "method" not in cols:
            conn.execute(
                "ALTER TABLE transactions ADD COLUMN method TEXT NOT NULL DEFAULT 'digital'"
            )
        if "account" not in cols:
            conn.execute(
                "ALTER TABLE transactions ADD COLUMN account TEXT NOT NULL DEFAULT 'bank'"
            )

    def _create_schema(self, conn: sqlite3.Connection):
        conn.executescript("""
            CREATE TABLE IF NOT EXISTS recurring_rules (
                id            TEXT PRIMARY KEY,
                type          TEXT NOT NULL CHECK(type IN ('income','expense')),
                category      TEXT NOT NULL DEFAULT '',
                amount        REAL NOT NULL CHECK(amount >= 0),
                account       TEXT NOT NULL CHECK(account IN ('bank','cash')),
                method        TEXT NOT NULL DEFAULT 'digital',
                day_of_month  INTEGER NOT NULL CHECK(day_of_month BETWEEN 1 AND 31),
                note          TEXT NOT NULL DEFAULT '',
                active        INTEGER NOT NULL DEFAULT 1,
                frequency     TEXT NOT NULL DEFAULT 'monthly' CHECK(frequency IN ('monthly')),
                created_at    TEXT NOT NULL DEFAULT ''
            );

            CREATE TABLE IF NOT EXISTS transactions (
                id            TEXT PRIMARY KEY,
                date          TEXT NOT NULL,
                amount        REAL NOT NULL CHECK(amount >= 0),
                type          TEXT NOT NULL CHECK(type IN ('income','expense')),
                category      TEXT NOT NULL DEFAULT '',
                account       TEXT NOT NULL DEFAULT 'bank' CHECK(account IN ('bank','cash')),
                method        TEXT NOT NULL DEFAULT 'digital',
                status        TEXT NOT NULL DEFAULT 'pending' CHECK(status IN ('pending','completed')),
                is_recurring  INTEGER NOT NULL DEFAULT 0,
                recurring_id  TEXT,
                note          TEXT NOT NULL DEFAULT '',
                created_at    TEXT NOT NULL DEFAULT ''
            );

            CREATE INDEX IF NOT EXISTS idx_transactions_date         ON transactions(date);
            CREATE INDEX IF NOT EXISTS idx_transactions_recurring_id ON transactions(recurring_id);
            CREATE INDEX IF NOT EXISTS idx_recurring_rules_active    ON recurring_rules(active);

            CREATE TABLE IF NOT EXISTS pot_configs (
                id           INTEGER PRIMARY KEY AUTOINCREMENT,
                category     TEXT NOT NULL,
                month        TEXT NOT NULL DEFAULT '',
                limit_amount REAL NOT NULL CHECK(limit_amount >= 0),
                UNIQUE(category, month)
            );

            CREATE TABLE IF NOT EXISTS app_settings (
                key   TEXT PRIMARY KEY,
                value TEXT NOT NULL
            );
        """)

    def _seed_defaults(self, conn: sqlite3.Connection):
        defaults = [
            ("currency_symbol", "€"),
            ("last_materialized", ""),
        ]
        for key, value in defaults:
            conn.execute(
                "INSERT OR IGNORE INTO app_settings(key, value) VALUES (?, ?)",
                (key, value),
            )

    def get_setting(self, key: str, default: str = "") -> str:
        conn = self.get_connection()
        row = conn.execute(
            "SELECT value FROM app_settings WHERE key = ?", (key,)
        ).fetchone()
        return row["value"] if row else default

    def set_setting(self, key: str, value: str):
        conn = self.get_connection()
        conn.execute(
            "INSERT OR REPLACE INTO app_settings(key, value) VALUES (?, ?)",
            (key, value),
        )
        conn.commit()

    @staticmethod
    def open(db_folder: str | None = None) -> "DatabaseManager":
        """Startup factory: opens (creating if needed) the database file.

        db_folder: if provided, the DB file is stored in that directory instead of CWD.
        """
        if db_folder:
            os.makedirs(db_folder, exist_ok=True)
            path = os.path.join(db_folder, DB_FILE)
        else:
            path = DB_FILE
        db = DatabaseManager(path)
        db.initialize()
        return db

    def close(self):
        if self._conn:
            self._conn.close()
            self._conn = None

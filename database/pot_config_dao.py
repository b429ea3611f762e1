import sqlite3
from typing import Iterable, Optional
from database.db_manager import DatabaseManager
from database.errors import NotFound
from models.pot import PotConfig


class PotConfigDAO:
    """Per-category pot limit overrides. month '' in the table is the category default."""

    def __init__(self, db: DatabaseManager):
        self._db = db

    def _row_to_model(self, row) -> PotConfig:
        return PotConfig(
            id=row["id"],
            category=row["category"],
            month=row["month"] or None,
            limit_amount=row["limit_amount"],
        )

    def get_all(self) -> list[PotConfig]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM pot_configs ORDER BY category, month"
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get_for_category(self, category: str) -> list[PotConfig]:
        conn = self._db.get_connection()
        rows = conn.execute(
            "SELECT * FROM pot_configs WHERE category = ? ORDER BY month",
            (category,),
        ).fetchall()
        return [self._row_to_model(r) for r in rows]

    def get(self, category: str, month: str | None = None) -> Optional[PotConfig]:
        conn = self._db.get_connection()
        row = conn.execute(
            "SELECT * FROM pot_configs WHERE category = ? AND month = ?",
            (category, month or ""),
        ).fetchone()
        return self._row_to_model(row) if row else None

    def upsert(self, category: str, month: str | None, limit_amount: float) -> PotConfig:
        conn = self._db.get_connection()
        conn.execute(
            """INSERT INTO pot_configs(category, month, limit_amount)
               VALUES (?, ?, ?)
               ON CONFLICT(category, month)
               DO UPDATE SET limit_amount = excluded.limit_amount""",
            (category, month or "", limit_amount),
        )
        conn.commit()
        return self.get(category, month)

    def delete(self, config_id: int):
        conn = self._db.get_connection()
        cursor = conn.execute("DELETE FROM pot_configs WHERE id = ?", (config_id,))
        conn.commit()
        if cursor.rowcount == 0:
            raise NotFound("Pot config", config_id)

    def clear(self):
        conn = self._db.get_connection()
        conn.execute("DELETE FROM pot_configs")
        conn.commit()

    def write_all(self, conn: sqlite3.Connection, configs: Iterable[PotConfig]) -> int:
        conn.execute("DELETE FROM pot_configs")
        count = 0
        for c in configs:
            conn.execute(
                "INSERT INTO pot_configs(category, month, limit_amount) VALUES (?, ?, ?)",
                (c.category, c.month or "", c.limit_amount),
            )
            count += 1
        return count

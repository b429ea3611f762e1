import sqlite3

import pytest

from database.db_manager import DatabaseManager
from database.errors import (
    BudgetError, ConcurrentDuplicate, DuplicateRecord, NotFound, StoreUnavailable,
)
from database.transaction_dao import TransactionDAO

from factories import make_rule, make_tx


def test_store_used_before_initialize_raises():
    dao = TransactionDAO(DatabaseManager(":memory:"))
    with pytest.raises(StoreUnavailable):
        dao.get_all()


def test_initialize_is_idempotent(db):
    db.initialize()
    assert db.get_setting("currency_symbol") == "€"
    assert db.get_setting("last_materialized") == ""


def test_settings_round_trip(db):
    db.set_setting("last_materialized", "2026-03")
    assert db.get_setting("last_materialized") == "2026-03"
    assert db.get_setting("missing", "fallback") == "fallback"


def test_add_rejects_existing_id(tx_dao):
    tx_dao.add(make_tx("t1", "2026-03-01", 10.0))
    with pytest.raises(DuplicateRecord):
        tx_dao.add(make_tx("t1", "2026-03-02", 20.0))
    assert tx_dao.get_by_id("t1").amount == 10.0


def test_put_inserts_or_replaces(tx_dao):
    tx_dao.put(make_tx("t1", "2026-03-01", 10.0))
    tx_dao.put(make_tx("t1", "2026-03-01", 15.0))
    assert tx_dao.count() == 1
    assert tx_dao.get_by_id("t1").amount == 15.0


def test_missing_records_raise_not_found(tx_dao, recurring_dao):
    with pytest.raises(NotFound):
        tx_dao.delete("nope")
    with pytest.raises(NotFound):
        tx_dao.set_status("nope", "completed")
    with pytest.raises(NotFound):
        tx_dao.update(make_tx("nope", "2026-03-01", 1.0))
    with pytest.raises(NotFound):
        recurring_dao.set_active("nope", False)


def test_transactions_are_ordered_by_date(tx_dao):
    tx_dao.add(make_tx("b", "2026-03-05", 1.0))
    tx_dao.add(make_tx("a", "2026-03-01", 1.0))
    tx_dao.add(make_tx("c", "2026-04-01", 1.0))
    assert [t.id for t in tx_dao.get_all()] == ["a", "b", "c"]
    assert [t.id for t in tx_dao.get_by_month("2026-03")] == ["a", "b"]


def test_replace_all_keeps_old_data_on_failure(tx_dao):
    tx_dao.add(make_tx("keep", "2026-03-01", 10.0))
    with pytest.raises(sqlite3.IntegrityError):
        tx_dao.replace_all([
            make_tx("x", "2026-03-01", 1.0),
            make_tx("x", "2026-03-02", 2.0),
        ])
    assert [t.id for t in tx_dao.get_all()] == ["keep"]


def test_replace_all_swaps_contents(tx_dao):
    tx_dao.add(make_tx("old", "2026-03-01", 10.0))
    count = tx_dao.replace_all([make_tx("n1", "2026-03-01", 1.0), make_tx("n2", "2026-03-02", 2.0)])
    assert count == 2
    assert {t.id for t in tx_dao.get_all()} == {"n1", "n2"}


def test_add_for_rule_month_refuses_second_instance(tx_dao):
    first = make_tx("i1", "2026-03-01", 5.0, status="pending", recurring_id="r1", is_recurring=True)
    second = make_tx("i2", "2026-03-28", 5.0, status="pending", recurring_id="r1", is_recurring=True)
    tx_dao.add_for_rule_month(first)
    with pytest.raises(ConcurrentDuplicate):
        tx_dao.add_for_rule_month(second)
    assert tx_dao.exists_for_rule_month("r1", "2026-03")
    assert not tx_dao.exists_for_rule_month("r1", "2026-04")
    assert tx_dao.count() == 1


def test_recurring_rules_round_trip(recurring_dao):
    recurring_dao.add(make_rule("r1", "Rent", 500.0, 1))
    recurring_dao.add(make_rule("r2", "Insurance", 40.0, 15, active=False))
    assert [r.id for r in recurring_dao.get_active()] == ["r1"]
    recurring_dao.set_amount("r1", 520.0)
    assert recurring_dao.get_by_id("r1").amount == 520.0
    with pytest.raises(DuplicateRecord):
        recurring_dao.add(make_rule("r1", "Rent", 1.0, 1))


def test_pot_config_default_and_month_rows_are_distinct(pot_config_dao):
    pot_config_dao.upsert("Smoking", None, 50.0)
    pot_config_dao.upsert("Smoking", "2026-04", 30.0)
    pot_config_dao.upsert("Smoking", None, 60.0)
    configs = pot_config_dao.get_for_category("Smoking")
    assert {(c.month, c.limit_amount) for c in configs} == {(None, 60.0), ("2026-04", 30.0)}


def test_unit_of_work_refuses_to_publish_pending_changes(db):
    conn = db.get_connection()
    conn.execute("INSERT INTO app_settings(key, value) VALUES ('draft', 'x')")
    with pytest.raises(BudgetError):
        with db.unit_of_work():
            pass
    conn.rollback()
    assert db.get_setting("draft", "missing") == "missing"


def test_unit_of_work_rolls_back_on_error(db, tx_dao):
    with pytest.raises(RuntimeError):
        with db.unit_of_work() as conn:
            tx_dao.insert(conn, make_tx("t1", "2026-03-01", 1.0))
            raise RuntimeError("abort")
    assert tx_dao.count() == 0


def test_recurring_rule_delete(recurring_dao):
    recurring_dao.add(make_rule("r1", "Rent", 500.0, 1))
    recurring_dao.delete("r1")
    assert recurring_dao.get_by_id("r1") is None
    with pytest.raises(NotFound):
        recurring_dao.delete("r1")

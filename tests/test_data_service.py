import json
import sqlite3
from collections import Counter
from datetime import date

import pytest

from services.data_service import (
    DataService, MalformedImport, default_export_name, from_record, to_record,
)

from factories import make_rule, make_tx


@pytest.fixture
def service(db, tx_dao, recurring_dao, pot_config_dao):
    return DataService(db, tx_dao, recurring_dao, pot_config_dao)


def sample():
    return [
        make_tx("a", "2026-03-01", 1000.0, "income", category="Salary"),
        make_tx("b", "2026-03-02", 12.5, account="cash", method="cash", note="coffee"),
        make_tx("c", "2026-03-28", 59.0, status="pending", recurring_id="r1",
                is_recurring=True, created_at="2026-03-01T08:00:00"),
    ]


def records_key(records):
    return Counter(json.dumps(r, sort_keys=True) for r in records)


def test_export_uses_flat_camel_case_records(service, tx_dao):
    tx_dao.add(sample()[2])
    [record] = service.export_transactions()
    assert record == {
        "id": "c", "date": "2026-03-28", "amount": 59.0, "type": "expense",
        "category": "Misc", "account": "bank", "method": "digital", "status": "pending",
        "isRecurring": True, "recurringId": "r1", "note": "", "createdAt": "2026-03-01T08:00:00",
    }


def test_import_of_export_restores_the_same_transactions(service, tx_dao):
    for tx in sample():
        tx_dao.add(tx)
    exported = service.export_transactions()
    tx_dao.clear()
    assert service.import_transactions(exported) == 3
    assert records_key(service.export_transactions()) == records_key(exported)


def test_import_replaces_existing_transactions(service, tx_dao):
    tx_dao.add(make_tx("old", "2026-01-01", 5.0))
    service.import_transactions([to_record(t) for t in sample()])
    assert {t.id for t in tx_dao.get_all()} == {"a", "b", "c"}


@pytest.mark.parametrize("data", [
    {"transactions": []},
    "not a list",
    [{"id": "x", "date": "2026-03-01", "amount": -1, "type": "expense"}],
    [{"id": "x", "date": "01.03.2026", "amount": 1, "type": "expense"}],
    [{"id": "x", "date": "2026-03-01", "amount": 1, "type": "transfer"}],
    [{"date": "2026-03-01", "amount": 1, "type": "expense"}],
    [{"id": "x", "date": "2026-03-01", "amount": "1", "type": "expense"}],
    [{"id": "x", "date": "2026-03-01", "amount": float("nan"), "type": "expense"}],
    [{"id": "x", "date": "2026-03-01", "amount": float("inf"), "type": "expense"}],
    [{"id": "x", "date": "2026-03-01", "amount": 1, "type": "expense", "status": "done"}],
    [{"id": "x", "date": "2026-03-01", "amount": 1, "type": "expense"},
     {"id": "x", "date": "2026-03-02", "amount": 2, "type": "expense"}],
])
def test_malformed_import_leaves_store_untouched(service, tx_dao, data):
    tx_dao.add(make_tx("keep", "2026-03-01", 10.0))
    with pytest.raises(MalformedImport):
        service.import_transactions(data)
    assert [t.id for t in tx_dao.get_all()] == ["keep"]


def test_missing_account_and_status_fall_back():
    tx = from_record({"id": "x", "date": "2026-03-01", "amount": 3, "type": "expense",
                      "method": "cash"})
    assert tx.account == "cash"
    assert tx.status == "completed"
    assert tx.amount == 3.0
    assert tx.is_recurring is False


def test_json_file_round_trip(service, tx_dao, tmp_path):
    for tx in sample():
        tx_dao.add(tx)
    path = tmp_path / "export.json"
    assert service.export_json(path) == 3
    tx_dao.clear()
    assert service.import_json(path) == 3
    assert tx_dao.count() == 3


def test_invalid_json_file_is_malformed(service, tmp_path):
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(MalformedImport):
        service.import_json(path)


def test_backup_restores_rules_and_pot_configs(service, tx_dao, recurring_dao, pot_config_dao):
    for tx in sample():
        tx_dao.add(tx)
    recurring_dao.add(make_rule("r1", "Phone", 59.0, 28))
    pot_config_dao.upsert("Smoking", None, 50.0)
    pot_config_dao.upsert("Smoking", "2026-04", 20.0)
    backup = json.loads(json.dumps(service.export_backup()))

    tx_dao.clear()
    recurring_dao.clear()
    pot_config_dao.clear()
    stats = service.import_backup(backup)

    assert stats == {"transactions": 3, "recurring_rules": 1, "pot_configs": 2}
    assert recurring_dao.get_by_id("r1").day_of_month == 28
    assert pot_config_dao.get("Smoking", "2026-04").limit_amount == 20.0
    assert pot_config_dao.get("Smoking").limit_amount == 50.0


def test_bad_backup_rule_aborts_everything(service, tx_dao, recurring_dao):
    tx_dao.add(make_tx("keep", "2026-03-01", 10.0))
    backup = {
        "transactions": [],
        "recurringRules": [{"id": "r", "type": "expense", "amount": 1, "account": "bank",
                            "dayOfMonth": 40}],
        "potConfigs": [],
    }
    with pytest.raises(MalformedImport):
        service.import_backup(backup)
    assert tx_dao.count() == 1


def test_default_export_name():
    assert default_export_name(date(2026, 3, 1)) == "finance-flow-backup-2026-03-01.json"


def test_nan_and_infinity_from_json_text_are_rejected(service, tx_dao):
    for literal in ("NaN", "Infinity"):
        data = json.loads(
            '[{"id": "x", "date": "2026-03-01", "amount": %s, "type": "expense"}]' % literal
        )
        with pytest.raises(MalformedImport):
            service.import_transactions(data)
    assert tx_dao.count() == 0


def test_store_constraint_failure_becomes_malformed_import(service, tx_dao, monkeypatch):
    def reject(transactions):
        raise sqlite3.IntegrityError("CHECK constraint failed")

    monkeypatch.setattr(tx_dao, "replace_all", reject)
    with pytest.raises(MalformedImport):
        service.import_transactions([to_record(sample()[0])])


def test_epoch_millisecond_created_at_becomes_iso_timestamp():
    tx = from_record({"id": "x", "date": "2026-03-01", "amount": 1, "type": "income",
                      "createdAt": 1772323200000})
    assert tx.created_at == "2026-03-01T00:00:00+00:00"
    assert to_record(tx)["createdAt"] == "2026-03-01T00:00:00+00:00"


def test_backup_rejects_infinite_pot_limit(service, pot_config_dao):
    backup = {"transactions": [], "recurringRules": [],
              "potConfigs": [{"category": "Smoking", "month": None, "limitAmount": float("inf")}]}
    with pytest.raises(MalformedImport):
        service.import_backup(backup)
    assert pot_config_dao.get_all() == []

import pytest

from database.errors import NotFound
from models.pot import PotConfig, PotDefinition
from services.pot_service import (
    PotService, default_pots, pot_spending, resolve_pot_limit, trigger_days_in_month,
)

from factories import make_tx

GROCERIES = PotDefinition("pot_groceries", "Groceries", "Groceries", (1, 15), 150.0)


def test_default_pots_are_loaded():
    assert [p.display_name for p in default_pots()] == ["Groceries", "Weekend", "Weekdays", "Smoking"]


def test_limit_falls_back_from_month_to_category_to_pot_default():
    assert resolve_pot_limit(GROCERIES, "2026-03", []) == 150.0
    configs = [PotConfig(1, "Groceries", None, 200.0)]
    assert resolve_pot_limit(GROCERIES, "2026-03", configs) == 200.0
    configs.append(PotConfig(2, "Groceries", "2026-03", 90.0))
    assert resolve_pot_limit(GROCERIES, "2026-03", configs) == 90.0
    assert resolve_pot_limit(GROCERIES, "2026-04", configs) == 200.0


def test_trigger_days_are_clamped_and_deduplicated():
    pot = PotDefinition("p", "P", "P", (29, 30, 31), 30.0)
    assert trigger_days_in_month(pot, 2026, 2) == [28]
    assert trigger_days_in_month(pot, 2026, 3) == [29, 30, 31]


def test_spending_counts_expenses_of_the_month_only():
    txs = [
        make_tx("a", "2026-03-02", 20.0, category="Groceries"),
        make_tx("b", "2026-03-03", 15.0, category="Groceries", status="pending"),
        make_tx("c", "2026-03-04", 99.0, "income", category="Groceries"),
        make_tx("d", "2026-04-01", 50.0, category="Groceries"),
        make_tx("e", "2026-03-05", 7.0, category="Smoking"),
    ]
    assert pot_spending(txs, "Groceries", "2026-03") == 35.0


def test_pot_status_and_overrides(pot_config_dao, tx_dao):
    service = PotService(pot_config_dao, tx_dao, pots=[GROCERIES])
    tx_dao.add(make_tx("a", "2026-03-02", 120.0, category="Groceries"))
    service.set_limit("Groceries", 100.0, "2026-03")
    assert service.get_pots() == [GROCERIES]
    assert [(c.category, c.month) for c in service.get_configs()] == [("Groceries", "2026-03")]

    [status] = service.get_pot_status("2026-03")
    assert status.limit_amount == 100.0
    assert status.spent_amount == 120.0
    assert status.remaining == -20.0
    assert status.is_exhausted

    service.clear_limit("Groceries", "2026-03")
    assert service.get_limit(GROCERIES, "2026-03") == 150.0
    with pytest.raises(NotFound):
        service.clear_limit("Groceries", "2026-03")


def test_invalid_input_is_rejected(pot_config_dao, tx_dao):
    service = PotService(pot_config_dao, tx_dao)
    with pytest.raises(ValueError):
        service.set_limit("Groceries", -5.0)
    with pytest.raises(ValueError):
        service.set_limit("Groceries", float("inf"))
    with pytest.raises(ValueError):
        service.set_limit("Groceries", 5.0, "March")
    with pytest.raises(ValueError):
        service.get_pot_status("2026-3x")
    with pytest.raises(NotFound):
        service.get_pot("pot_unknown")
    assert service.get_pot("pot_smoking").default_limit == 40.0

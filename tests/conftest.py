import pytest

from database.db_manager import DatabaseManager
from database.pot_config_dao import PotConfigDAO
from database.recurring_dao import RecurringDAO
from database.transaction_dao import TransactionDAO


@pytest.fixture
def db():
    manager = DatabaseManager(":memory:")
    manager.initialize()
    yield manager
    manager.close()


@pytest.fixture
def tx_dao(db):
    return TransactionDAO(db)


@pytest.fixture
def recurring_dao(db):
    return RecurringDAO(db)


@pytest.fixture
def pot_config_dao(db):
    return PotConfigDAO(db)

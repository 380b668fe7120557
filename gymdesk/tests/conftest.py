from datetime import datetime

import pytest

from gymdesk.app_api import AppAPI
from gymdesk.database_manager import DatabaseManager
from gymdesk.dates import FixedClock
from gymdesk.store import SQLiteTableStore


@pytest.fixture(scope="function")
def store(tmp_path):
    store = SQLiteTableStore.open(str(tmp_path / "test_gymdesk.db"))
    yield store
    store.conn.close()


@pytest.fixture
def db_manager(store):
    return DatabaseManager(store)


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 15, 10, 30, 0))


@pytest.fixture
def api(db_manager, clock):
    return AppAPI(db_manager=db_manager, clock=clock)

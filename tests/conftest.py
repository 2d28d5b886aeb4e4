from datetime import datetime

import pytest

from showtimes.models.base import init_db, make_engine, make_session_factory
from showtimes.stores.memory import MemoryScheduleStore, MemoryTheaterStore
from showtimes.stores.sqlalchemy_store import SqlAlchemyScheduleStore, SqlAlchemyTheaterStore

NOW = datetime(2026, 10, 19, 15, 0)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def session_factory():
    """Fresh in-memory SQLite database per test"""
    engine = make_engine('sqlite://')
    init_db(engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def sql_stores(session_factory):
    return SqlAlchemyTheaterStore(session_factory), SqlAlchemyScheduleStore(session_factory)


@pytest.fixture
def memory_stores():
    theaters = MemoryTheaterStore()
    return theaters, MemoryScheduleStore(theaters)


@pytest.fixture(params=['memory', 'sql'])
def stores(request):
    """Run the test against both store implementations"""
    if request.param == 'memory':
        return request.getfixturevalue('memory_stores')
    return request.getfixturevalue('sql_stores')

"""Database base configuration"""
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute('PRAGMA foreign_keys=ON')
    cursor.close()


def make_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; SQLite connections get foreign keys switched on"""
    kwargs = {'echo': echo}
    if database_url in ('sqlite://', 'sqlite:///:memory:'):
        # One shared connection, otherwise every session sees an empty database
        kwargs['connect_args'] = {'check_same_thread': False}
        kwargs['poolclass'] = StaticPool

    engine = create_engine(database_url, **kwargs)

    if engine.dialect.name == 'sqlite':
        event.listen(engine, 'connect', _enable_sqlite_foreign_keys)

    return engine


def make_session_factory(engine: Engine):
    """Session factory bound to the given engine"""
    return sessionmaker(autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine):
    """Initialize database tables"""
    # Models must be imported so they register with Base.metadata
    from . import schedule, theater  # noqa: F401
    Base.metadata.create_all(bind=engine)


def ensure_database_directory(database_url: str):
    """Make sure the directory holding a file-based SQLite database exists"""
    url = make_url(database_url)
    if url.get_backend_name() != 'sqlite' or not url.database or url.database == ':memory:':
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def setup_database(database_url: str):
    """Engine and session factory with tables created"""
    ensure_database_directory(database_url)
    engine = make_engine(database_url)
    init_db(engine)
    return engine, make_session_factory(engine)

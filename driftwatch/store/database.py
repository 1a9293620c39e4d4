# -*- coding: utf-8 -*-
"""Monitor store database configuration.

- SQLite WAL mode: the scheduler workers and the edit API read and write at
  the same time.
- busy_timeout: brief write contention waits instead of failing.
- Any other SQLAlchemy URL (PostgreSQL, MySQL) is used as-is.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from driftwatch.config import DatabaseConfig

Base = declarative_base()


def make_engine(config: DatabaseConfig) -> Engine:
    """Creates an engine, applying SQLite pragmas on every new connection."""
    is_sqlite = config.url.startswith("sqlite")
    connect_args = {"check_same_thread": False} if is_sqlite else {}
    engine = create_engine(
        config.url,
        echo=config.echo,
        connect_args=connect_args,
        pool_pre_ping=True,
    )

    if is_sqlite:
        @event.listens_for(engine, "connect")
        def _set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            # readers and writers do not block each other
            cursor.execute("PRAGMA journal_mode=WAL;")
            cursor.execute(f"PRAGMA busy_timeout={int(config.busy_timeout_ms)};")
            cursor.execute("PRAGMA synchronous=NORMAL;")
            cursor.execute("PRAGMA foreign_keys=ON;")
            cursor.close()

    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine: Engine) -> None:
    """Creates all tables (idempotent)."""
    from driftwatch.store import models  # noqa: F401  registers the tables
    Base.metadata.create_all(bind=engine)

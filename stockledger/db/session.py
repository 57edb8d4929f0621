"""SQLAlchemy engine and session helpers."""

from __future__ import annotations

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from ..core.config import settings

Base = declarative_base()


# Connection execution option that marks a transaction as a ledger write.
WRITE_TRANSACTION = "stockledger_write"


def _install_sqlite_transaction_hooks(engine: Engine) -> None:
    """Take the write lock up front for ledger writes and only for them.

    pysqlite defers ``BEGIN`` until the first write, so two writers can both
    read, then fight over the upgrade and fail with "database is locked"
    instead of waiting. Transactions opened with :data:`WRITE_TRANSACTION`
    issue ``BEGIN IMMEDIATE`` and queue on the busy timeout. Everything else
    gets a plain deferred ``BEGIN``; with WAL journaling those readers never
    block a writer and are never blocked by one.
    """

    @event.listens_for(engine, "connect")
    def _prepare_connection(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        try:
            # In-memory databases answer "memory" and keep their journal.
            cursor.execute("PRAGMA journal_mode=WAL")
        finally:
            cursor.close()

    @event.listens_for(engine, "begin")
    def _begin(conn):
        if conn.get_execution_options().get(WRITE_TRANSACTION):
            conn.exec_driver_sql("BEGIN IMMEDIATE")
        else:
            conn.exec_driver_sql("BEGIN")


def build_engine(url: str, **kwargs) -> Engine:
    """Create an engine for ``url`` with the SQLite adjustments applied when relevant."""

    if url.startswith("sqlite"):
        connect_args = dict(kwargs.pop("connect_args", {}))
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", settings.SQLITE_BUSY_TIMEOUT)
        engine = create_engine(url, connect_args=connect_args, **kwargs)
        _install_sqlite_transaction_hooks(engine)
        return engine
    kwargs.setdefault("pool_pre_ping", True)
    return create_engine(url, **kwargs)


engine = build_engine(settings.DB_URL)
# One session per request or worker. Sessions are never shared across threads.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """FastAPI dependency that yields a session and guarantees cleanup."""

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

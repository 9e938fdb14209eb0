"""
Module: ledger_kernel.db.engine
Responsibility: Process-scoped owner of the SQLAlchemy engine and session
    factory for one embedded store, with an explicit open/close contract and
    the transactional scope every ledger operation runs in.
Architecture position: Kernel > DB.  May import from db/ and domain/clock.py.
    MUST NOT import from services/, selectors/, or outer layers.

Invariants enforced:
    - Startup barrier: ``open()`` runs the SchemaManager to completion before
      any session is handed out.  ``session_scope()`` raises
      StoreNotReadyError until then.
    - Serialized writers: every transaction starts with ``BEGIN IMMEDIATE``,
      so two execution contexts never interleave writes to the same store.
      The loser waits (busy timeout) and then sees the winner's state.
    - Foreign keys are enforced on every connection (``PRAGMA foreign_keys``).
    - SAVEPOINTs work because pysqlite's implicit transaction handling is
      switched off and SQLAlchemy emits BEGIN itself.

Failure modes:
    - SchemaUpgradeError from ``open()`` is fatal.  The store stays closed.
    - OperationalError ("database is locked") when a writer holds the lock
      longer than the busy timeout.
"""

import atexit
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from ledger_kernel.db.migrations import LATEST_SCHEMA_VERSION, SchemaManager
from ledger_kernel.domain.clock import ClockService
from ledger_kernel.exceptions import StoreNotReadyError
from ledger_kernel.logging_config import get_logger

logger = get_logger("db.engine")

DEFAULT_BUSY_TIMEOUT_SECONDS = 30

_open_stores: set["LedgerStore"] = set()


def _is_memory_url(database_url: str) -> bool:
    return database_url in ("sqlite://", "sqlite:///:memory:") or "mode=memory" in database_url


def create_sqlite_engine(
    database_url: str,
    echo: bool = False,
    busy_timeout: int = DEFAULT_BUSY_TIMEOUT_SECONDS,
) -> Engine:
    """
    Create an engine configured for the ledger's transaction model.

    In-memory URLs share one connection (StaticPool) so every session sees
    the same database.
    """
    kwargs: dict = {
        "echo": echo,
        "connect_args": {"check_same_thread": False, "timeout": busy_timeout},
    }
    if _is_memory_url(database_url):
        kwargs["poolclass"] = StaticPool

    engine = create_engine(database_url, **kwargs)
    file_backed = not _is_memory_url(database_url)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Hand transaction control to SQLAlchemy
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        if file_backed:
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


class LedgerStore:
    """
    One embedded ledger store.

    Contract:
        ``open()`` -> any number of ``session_scope()`` blocks -> ``close()``.
        Services receive the Session yielded by ``session_scope()``; they
        never reach for the store themselves.

    Guarantees:
        - ``open()`` is idempotent.
        - ``close()`` disposes pooled connections and may be followed by
          another ``open()``.
    """

    def __init__(
        self,
        database_url: str,
        *,
        schema_version: int = LATEST_SCHEMA_VERSION,
        clock_service: ClockService | None = None,
        echo: bool = False,
        busy_timeout: int = DEFAULT_BUSY_TIMEOUT_SECONDS,
    ):
        self.database_url = database_url
        self.schema_version = schema_version
        self.clock_service = clock_service or ClockService()
        self._echo = echo
        self._busy_timeout = busy_timeout
        self._engine: Engine | None = None
        self._session_factory: sessionmaker[Session] | None = None

    @property
    def is_open(self) -> bool:
        return self._session_factory is not None

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise StoreNotReadyError(self.database_url)
        return self._engine

    def open(self) -> "LedgerStore":
        """
        Create the engine, migrate to ``schema_version``, then admit sessions.

        Raises:
            SchemaUpgradeError: the store cannot be opened at that version.
        """
        if self.is_open:
            return self

        from ledger_kernel.db.immutability import register_immutability_listeners

        engine = create_sqlite_engine(
            self.database_url, echo=self._echo, busy_timeout=self._busy_timeout
        )
        try:
            SchemaManager(engine, self.clock_service).upgrade(self.schema_version)
        except Exception:
            engine.dispose()
            raise

        register_immutability_listeners()
        self._engine = engine
        self._session_factory = sessionmaker(bind=engine, expire_on_commit=False)
        _open_stores.add(self)

        logger.info(
            "store_opened",
            extra={
                "database_url": self.database_url,
                "schema_version": self.schema_version,
            },
        )
        return self

    def close(self) -> None:
        """Dispose the engine.  Safe to call on a closed store."""
        if self._engine is not None:
            self._engine.dispose()
            logger.info("store_closed", extra={"database_url": self.database_url})
        self._engine = None
        self._session_factory = None
        _open_stores.discard(self)

    def __enter__(self) -> "LedgerStore":
        return self.open()

    def __exit__(self, *exc) -> None:
        self.close()

    def session_factory(self) -> sessionmaker[Session]:
        """
        Session factory for callers that manage their own sessions,
        e.g. one session per worker thread.
        """
        if self._session_factory is None:
            raise StoreNotReadyError(self.database_url)
        return self._session_factory

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Postconditions: On normal exit, session is committed and closed.
            On exception, session is rolled back and closed.  The exception
            is re-raised to the caller.

        Usage:
            with store.session_scope() as session:
                InvoiceProcessor(session, ...).create_invoice(...)
        """
        session = self.session_factory()()
        logger.debug("transaction_started")
        try:
            yield session
            session.commit()
            logger.debug("transaction_committed")
        except Exception:
            session.rollback()
            logger.warning("transaction_rolled_back", exc_info=True)
            raise
        finally:
            session.close()


def _atexit_dispose():
    """Dispose open stores on process exit to release file handles."""
    for store in list(_open_stores):
        store.close()


atexit.register(_atexit_dispose)

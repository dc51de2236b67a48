"""Engine and transaction scope shared by the stores."""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from ..exceptions import ConfigurationError
from .models import Base

logger = logging.getLogger(__name__)


def _enable_sqlite_immediate_transactions(engine: Engine) -> None:
    """Make every SQLite transaction take the write lock at BEGIN.

    pysqlite defers BEGIN until the first write, so two read-then-write
    transactions can both read stale state. BEGIN IMMEDIATE serializes writers.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """Owns the SQLAlchemy engine and hands out transactional sessions."""

    def __init__(self, url: str, echo: bool = False, busy_timeout: float = 30.0):
        if not url:
            raise ConfigurationError("DATABASE_URL")
        parsed = make_url(url)
        connect_args = {}
        self._is_sqlite = parsed.get_backend_name() == "sqlite"
        if self._is_sqlite:
            connect_args = {"timeout": busy_timeout, "check_same_thread": False}
            if parsed.database and parsed.database != ":memory:":
                Path(parsed.database).parent.mkdir(parents=True, exist_ok=True)
        self._engine = create_engine(url, echo=echo, connect_args=connect_args)
        if self._is_sqlite:
            _enable_sqlite_immediate_transactions(self._engine)
        self._sessions = sessionmaker(bind=self._engine, expire_on_commit=False)

    @property
    def engine(self) -> Engine:
        return self._engine

    def create_all(self) -> None:
        """Create tables and indexes if missing."""
        Base.metadata.create_all(self._engine)
        logger.info("Database schema ready (%s)", self._engine.url.render_as_string(hide_password=True))

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session in one transaction: commit on success, rollback on any exception."""
        with self._sessions.begin() as session:
            yield session

    def dispose(self) -> None:
        self._engine.dispose()

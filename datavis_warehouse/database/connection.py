"""
Database Connection Management

The WarehouseStore owns one SQLAlchemy engine and session factory. It is
created by whoever runs the pipeline or serves queries and passed explicitly
to every component; there is no module-level connection.
"""

import time
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, Iterator, Optional

import structlog
from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, sessionmaker

from datavis_warehouse.config import Settings, get_settings
from datavis_warehouse.exceptions import StoreNotOpenError

logger = structlog.get_logger(__name__)


def _read_only_sqlite_url(url: str) -> str:
    """Rewrite a SQLite file URL to open the file through a mode=ro URI"""
    parsed = make_url(url)
    database = parsed.database
    if not database or database == ":memory:":
        raise ValueError("A read-only store needs a SQLite file, not an in-memory database")
    if database.startswith("file:"):
        database = database.split("?", 1)[0][len("file:"):]
    return f"sqlite:///file:{database}?mode=ro&uri=true"


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys = ON")
    cursor.close()


class WarehouseStore:
    """
    Explicitly owned handle on the warehouse database.

    Lifecycle is open at construction, close() at pipeline end or process
    shutdown. Each session() is one transaction: committed when the block
    exits normally, rolled back when it raises.

    Example:
        store = WarehouseStore("sqlite:///warehouse.db")
        with store.session() as session:
            session.execute(...)
        store.close()
    """

    def __init__(self, url: str, read_only: bool = False, echo: bool = False):
        self.url = url
        self.read_only = read_only
        self.dialect = make_url(url).get_backend_name()

        engine_url = url
        engine_kwargs: Dict[str, Any] = {"echo": echo, "pool_pre_ping": True}
        if self.dialect == "sqlite":
            if read_only:
                engine_url = _read_only_sqlite_url(url)
            # the API serves from a threadpool
            engine_kwargs["connect_args"] = {"check_same_thread": False}

        engine = create_engine(engine_url, **engine_kwargs)
        if self.dialect == "sqlite":
            event.listen(engine, "connect", _enable_sqlite_foreign_keys)
        elif read_only and self.dialect == "postgresql":
            engine = engine.execution_options(postgresql_readonly=True)

        self._engine: Optional[Engine] = engine
        self._session_factory: Optional[sessionmaker[Session]] = sessionmaker(
            bind=engine,
            expire_on_commit=False,
            autoflush=False,
        )

        logger.info(
            "Warehouse store opened",
            dialect=self.dialect,
            read_only=read_only,
        )

    @property
    def engine(self) -> Engine:
        """
        Get the database engine.

        Raises:
            StoreNotOpenError: If the store has been closed
        """
        if self._engine is None:
            raise StoreNotOpenError("Warehouse store is closed")
        return self._engine

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @contextmanager
    def session(self) -> Iterator[Session]:
        """
        Open a session wrapping one transaction.

        Yields:
            Session: Database session, committed on success and rolled back on error
        """
        if self._session_factory is None:
            raise StoreNotOpenError("Warehouse store is closed")

        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception as e:
            logger.error("Database session error, rolling back", error=str(e), error_type=type(e).__name__)
            session.rollback()
            raise
        finally:
            session.close()

    def close(self) -> None:
        """Dispose the engine and every pooled connection."""
        if self._engine is not None:
            self._engine.dispose()
            self._engine = None
            self._session_factory = None
            logger.info("Warehouse store closed")

    def check_health(self) -> Dict[str, Any]:
        """
        Check database health status.

        Returns:
            dict: Health status with latency information
        """
        try:
            start = time.perf_counter()
            with self.session() as session:
                session.execute(text("SELECT 1"))
            latency_ms = (time.perf_counter() - start) * 1000
            return {
                "status": "healthy",
                "dialect": self.dialect,
                "read_only": self.read_only,
                "latency_ms": round(latency_ms, 2),
            }
        except Exception as e:
            return {
                "status": "unhealthy",
                "error": str(e),
            }

    def __enter__(self) -> "WarehouseStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_store(settings: Optional[Settings] = None, read_only: bool = False) -> WarehouseStore:
    """Open a store from application settings, creating the SQLite directory if needed."""
    settings = settings or get_settings()
    if settings.database.url is None and not read_only:
        Path(settings.database.path).parent.mkdir(parents=True, exist_ok=True)
    return WarehouseStore(
        settings.database.sync_url,
        read_only=read_only,
        echo=settings.database.echo,
    )

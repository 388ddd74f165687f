"""
==============================================================================
Database Connection Management Module
==============================================================================

SQLAlchemy engine and session management.

    ┌─────────────────┐
    │ DatabaseManager │ (Singleton)
    └────────┬────────┘
             │
    ┌────────▼────────┐
    │     Engine      │ (Connection pool)
    └────────┬────────┘
             │
    ┌────────▼────────┐
    │ session_factory │ ──▶ request-scoped Session (REST)
    └─────────────────┘ ──▶ per-call Session (scan session workers)

The scan session runs store calls in worker threads; every such call opens
its own session from the factory, so sessions are never shared between
threads.

==============================================================================
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from productscan.config import get_settings


# Module logger
logger = logging.getLogger(__name__)

# Declarative base for all models
Base = declarative_base()

# Anything that returns a new Session when called
SessionFactory = Callable[[], Session]


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class DatabaseManager:
    """
    Centralized database connection manager.

    The engine is created lazily on first access so settings can be changed
    before anything connects.

    Example:
        >>> db_manager = DatabaseManager()
        >>> with db_manager.session_scope() as session:
        ...     session.query(Product).count()
    """

    _instance: Optional[DatabaseManager] = None

    def __new__(cls) -> DatabaseManager:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self) -> None:
        if getattr(self, "_initialized", False):
            return

        self._settings = get_settings()
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._initialized = True

        logger.debug("DatabaseManager initialized")

    # =========================================================================
    # ENGINE MANAGEMENT
    # =========================================================================

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            self._engine = create_engine(self._settings.database_url, **self._engine_options())
            if self._is_sqlite:
                event.listen(self._engine, "connect", _enable_sqlite_foreign_keys)
            logger.info(f"Database engine ready: {self._settings.database_url}")
        return self._engine

    @property
    def _is_sqlite(self) -> bool:
        return self._settings.database_url.startswith("sqlite")

    def _engine_options(self) -> Dict[str, Any]:
        """
        Engine keyword arguments for the configured URL.

        SQLite sessions are opened from worker threads, so the same-thread
        check is off; an in-memory SQLite database must live on a single
        connection. Server databases get a recycled, pre-pinged pool.
        """
        options: Dict[str, Any] = {"echo": self._settings.debug}

        if not self._is_sqlite:
            options.update(pool_size=5, max_overflow=10, pool_recycle=1800, pool_pre_ping=True)
            return options

        options["connect_args"] = {"check_same_thread": False}

        if make_url(self._settings.database_url).database in (None, "", ":memory:"):
            options["poolclass"] = StaticPool

        return options

    # =========================================================================
    # SESSION MANAGEMENT
    # =========================================================================

    @property
    def session_factory(self) -> sessionmaker:
        if self._session_factory is None:
            self._session_factory = sessionmaker(
                bind=self.engine,
                autocommit=False,
                autoflush=False,
                expire_on_commit=False,
            )
        return self._session_factory

    def get_session(self) -> Session:
        """Get a new session. The caller closes it."""
        return self.session_factory()

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """
        Provide a transactional scope around a series of operations.

        Commits on success, rolls back on exception, always closes.
        """
        session = self.get_session()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    # =========================================================================
    # TABLE MANAGEMENT
    # =========================================================================

    def create_tables(self) -> None:
        Base.metadata.create_all(bind=self.engine)
        logger.info("Database tables created/verified")

    def dispose(self) -> None:
        """Dispose of the connection pool on shutdown."""
        if self._engine is not None:
            self._engine.dispose()
            logger.info("Database connection pool disposed")

    def __repr__(self) -> str:
        return f"DatabaseManager(url={self._settings.database_url!r})"


# =============================================================================
# CONVENIENCE FUNCTIONS
# =============================================================================

def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a request-scoped database session.

    Usage:
        @router.get("/scanners")
        async def list_scanners(db: Session = Depends(get_db)):
            ...
    """
    session = DatabaseManager().get_session()
    try:
        yield session
    finally:
        session.close()


def get_session_factory() -> SessionFactory:
    """
    FastAPI dependency that returns the session factory.

    Long-lived scan sessions open a fresh session per store call instead of
    holding one request-scoped session for the whole connection.
    """
    return DatabaseManager().session_factory

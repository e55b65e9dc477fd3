"""
Database utilities and connection management.

WHAT: SQLAlchemy engine, session scope and lifecycle helpers
WHY: Every client action is a stateless request against the shared store;
     all coordination between requests goes through its atomicity
HOW: Sync SQLAlchemy 2 engine; on SQLite, WAL mode plus BEGIN IMMEDIATE so
     each write transaction holds the write lock from its first statement.
     Read-only sessions use a deferred BEGIN and never wait on a writer
"""

from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine, text, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, declarative_base

from .config import Settings
from ..utils.exceptions import PersistenceException
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Base for models
Base = declarative_base()

# Execution option marking connections whose transactions only read
READ_ONLY_OPTION = "negotiator_read_only"


class Database:
    """Engine plus session factory for one configured store."""

    def __init__(self, settings: Settings):
        self.url = settings.DATABASE_URL
        self.is_sqlite = self.url.startswith("sqlite")

        connect_args = {}
        if self.is_sqlite:
            self._ensure_sqlite_dir()
            connect_args = {
                "check_same_thread": False,  # Allow multi-threaded access
                "timeout": settings.DATABASE_BUSY_TIMEOUT,
            }

        self.engine = create_engine(
            self.url,
            connect_args=connect_args,
            echo=settings.DEBUG,
        )

        if self.is_sqlite:
            self._install_sqlite_hooks()

        self.SessionLocal = sessionmaker(
            bind=self.engine,
            expire_on_commit=False,
            autoflush=False,
            autocommit=False
        )
        self.read_engine = self.engine.execution_options(**{READ_ONLY_OPTION: True})
        self.ReadSessionLocal = sessionmaker(
            bind=self.read_engine,
            expire_on_commit=False,
            autoflush=False,
        )

    def _ensure_sqlite_dir(self):
        path = self.url.replace("sqlite:///", "")
        if path in ("", ":memory:") or path.startswith("file:"):
            return
        Path(path).parent.mkdir(parents=True, exist_ok=True)

    def _install_sqlite_hooks(self):
        @event.listens_for(self.engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            """Enable WAL and FKs; hand transaction control to SQLAlchemy."""
            # pysqlite's implicit BEGIN is disabled so the "begin" hook owns it
            dbapi_conn.isolation_level = None
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(self.engine, "begin")
        def begin_immediate(conn):
            """Take the write lock at BEGIN so read-modify-write is serialized."""
            if conn.get_execution_options().get(READ_ONLY_OPTION):
                # WAL readers see a snapshot without blocking on the writer
                conn.exec_driver_sql("BEGIN")
            else:
                conn.exec_driver_sql("BEGIN IMMEDIATE")

    @contextmanager
    def session(self, operation: str = "database operation", *, read_only: bool = False):
        """
        Context manager for a transactional session.

        Usage:
            with db.session("propose") as session:
                # use session
                pass

        Commits on success, rolls back on any exception. With read_only=True
        the transaction does not take the SQLite write lock; use it only for
        sessions that never write. Store failures are
        re-raised as PersistenceException (retryable); everything else
        propagates unchanged.

        Yields:
            Session: SQLAlchemy session
        """
        session = self.ReadSessionLocal() if read_only else self.SessionLocal()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            logger.error(f"Persistence failure during {operation}: {e}")
            raise PersistenceException(operation, str(e)) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def ping(self) -> dict:
        """
        Check database connectivity.

        Returns:
            Dict with status and info
        """
        try:
            with self.read_engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            return {"available": True, "error": None}
        except SQLAlchemyError as e:
            logger.error(f"Database ping failed: {e}")
            return {"available": False, "error": str(e)}

    def init(self):
        """Create all tables."""
        # Import for side effect: registers tables on Base.metadata
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine)
        logger.info(f"Database initialized ({'sqlite/WAL' if self.is_sqlite else self.engine.dialect.name})")

    def close(self):
        """Close database connections."""
        self.engine.dispose()
        logger.info("Database connections closed")

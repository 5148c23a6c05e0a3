"""
Database service for Jeopardy Trainer
"""

import sqlite3
from pathlib import Path
from typing import Optional
import weakref
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import sessionmaker, Session

from ..models import Base
from .settings_config_service import get_settings_service


def _to_database_url(database: str) -> str:
    """Accept either an SQLAlchemy URL or a bare SQLite file path."""
    if "://" in database:
        return database
    return f"sqlite:///{Path(database)}"


class DatabaseService:
    """Database service owning the engine and session factory"""

    def __init__(self, database: Optional[str] = None):
        """Initialize database service from a URL or SQLite path"""
        settings = get_settings_service()
        self.database_url = _to_database_url(database or settings.get_database_url())
        self.echo = settings.getboolean("database", "echo", False)
        self.engine: Optional[Engine] = None
        self.SessionLocal: Optional[sessionmaker[Session]] = None
        self._session: Optional[Session] = None

        from .logging import get_logging_service

        self.logger = get_logging_service().get_logger("database")

        self._setup_engine()
        self._create_tables()

    @property
    def is_sqlite(self) -> bool:
        return make_url(self.database_url).get_backend_name() == "sqlite"

    def _setup_engine(self):
        """Set up SQLAlchemy engine, with SQLite pragmas when applicable"""
        if self.is_sqlite:
            db_file = make_url(self.database_url).database
            if db_file and db_file != ":memory:":
                Path(db_file).parent.mkdir(parents=True, exist_ok=True)
            self.engine = create_engine(
                self.database_url,
                echo=self.echo,
                connect_args={"check_same_thread": False},
                pool_pre_ping=True,
            )

            @event.listens_for(self.engine, "connect")
            def set_sqlite_pragma(dbapi_connection, connection_record):
                if isinstance(dbapi_connection, sqlite3.Connection):
                    cursor = dbapi_connection.cursor()
                    cursor.execute("PRAGMA journal_mode=WAL")
                    cursor.execute("PRAGMA synchronous=NORMAL")
                    cursor.execute("PRAGMA foreign_keys=ON")
                    cursor.execute("PRAGMA cache_size=-64000")  # 64MB cache
                    cursor.execute("PRAGMA temp_store=MEMORY")
                    cursor.close()

        else:
            self.engine = create_engine(
                self.database_url,
                echo=self.echo,
                pool_pre_ping=True,
                pool_recycle=3600,
            )

        weakref.finalize(self, self.engine.dispose)

        self.SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=self.engine
        )

    def _create_tables(self):
        """Create all database tables"""
        if self.engine is None:
            raise RuntimeError("Database engine not initialized")
        Base.metadata.create_all(bind=self.engine)
        safe_url = make_url(self.database_url).render_as_string(hide_password=True)
        self.logger.info("database.ready", url=safe_url)

    def get_session(self) -> Session:
        """Get a database session"""
        if self.SessionLocal is None:
            raise RuntimeError("Database session factory not initialized")
        return self.SessionLocal()

    @property
    def session(self) -> Session:
        """Memoized session for scripts and test fixtures.

        ``get_session()`` returns a new Session each call; fixtures that do
        ``db.session.add(); db.session.commit(); db.session.refresh()`` need
        the same instance across calls.
        """
        if self._session is None:
            self._session = self.get_session()
        return self._session

    def close(self):
        """Close database connections"""
        if self._session is not None:
            self._session.close()
            self._session = None
        if self.engine:
            self.engine.dispose()


# Global database service instance
_db_service: Optional[DatabaseService] = None


def get_db_service() -> DatabaseService:
    """Get the global database service instance"""
    global _db_service
    if _db_service is None:
        _db_service = DatabaseService()
    return _db_service


def init_db_service(database: Optional[str] = None) -> DatabaseService:
    """Initialize (or replace) the global database service"""
    global _db_service
    if _db_service is not None:
        _db_service.close()
    _db_service = DatabaseService(database)
    return _db_service

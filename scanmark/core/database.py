"""Database connection and session management."""

import logging
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from typing import Annotated, Any

from fastapi import Depends
from sqlalchemy import Engine, create_engine, event, func
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from scanmark.core.config import settings
from scanmark.core.exceptions import StoreError

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


def build_engine(database_url: str) -> Engine:
    """Create an engine with pool options suited to the backend."""
    if database_url.startswith("sqlite"):
        kwargs: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            # One shared connection so every session sees the same in-memory db
            kwargs["poolclass"] = StaticPool
        sqlite_engine = create_engine(database_url, echo=False, **kwargs)

        @event.listens_for(sqlite_engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        return sqlite_engine

    return create_engine(
        database_url,
        echo=False,
        pool_pre_ping=True,
        pool_size=10,
        max_overflow=20,
    )


engine = build_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(
    bind=engine,
    class_=Session,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


def get_db() -> Generator[Session, None, None]:
    """Get database session dependency."""
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


# Type alias for dependency injection
DbSession = Annotated[Session, Depends(get_db)]


def create_tables(bind: Engine | None = None) -> None:
    """Create all tables directly (SQLite / tests). PostgreSQL uses Alembic."""
    import scanmark.models  # noqa: F401  registers mappers on Base.metadata

    Base.metadata.create_all(bind=bind or engine)


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Wrap backend failures into StoreError so callers can tell them from bad data."""
    try:
        yield
    except SQLAlchemyError as e:
        logger.error(f"[STORE] {operation} failed: {e}")
        raise StoreError(
            f"Database error during {operation}: {e.__class__.__name__}",
            details={"operation": operation},
        ) from e


def dialect_name(session: Session) -> str:
    return session.get_bind().dialect.name


def upsert(session: Session, model: Any):
    """Return a dialect-specific INSERT supporting ON CONFLICT for ``model``."""
    name = dialect_name(session)
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    raise StoreError(f"Upsert is not supported on the '{name}' backend")


def greatest(session: Session, left: Any, right: Any):
    """Scalar maximum of two column expressions."""
    if dialect_name(session) == "sqlite":
        # SQLite's multi-argument max() is a scalar function
        return func.max(left, right)
    return func.greatest(left, right)

"""
Storefront Database Connection Factory

Provides engine creation, session factory, both a context-managed
``get_db()`` and a FastAPI-compatible ``get_db_session()`` dependency, and
``store_errors()`` which turns driver timeouts into ``StoreUnavailable``.
"""

import logging
from contextlib import contextmanager
from functools import lru_cache
from typing import Generator, Iterator

from sqlalchemy import create_engine, Engine
from sqlalchemy.engine import make_url
from sqlalchemy.exc import OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session, sessionmaker

from storefront.config import get_settings
from storefront.errors import StoreUnavailable

logger = logging.getLogger(__name__)


def build_engine(url: str, timeout_secs: int) -> Engine:
    """
    Create an Engine whose connect and pool checkout are bounded by *timeout_secs*.

    * SQLite: ``timeout`` is the busy-wait on a locked database file.
    * PostgreSQL (psycopg2): ``connect_timeout`` plus a server-side
      ``statement_timeout``.
    """
    backend = make_url(url).get_backend_name()
    if backend == "sqlite":
        return create_engine(
            url,
            connect_args={"timeout": timeout_secs, "check_same_thread": False},
        )
    return create_engine(
        url,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_timeout=timeout_secs,
        connect_args={
            "connect_timeout": timeout_secs,
            "options": f"-c statement_timeout={timeout_secs * 1000}",
        },
    )


@lru_cache()
def get_engine() -> Engine:
    """Create and cache the application Engine from ``Settings.database_url``."""
    settings = get_settings()
    return build_engine(settings.database_url, settings.STORE_TIMEOUT_SECS)


@lru_cache()
def get_session_factory() -> sessionmaker[Session]:
    """Return a cached ``sessionmaker`` bound to the application engine."""
    return sessionmaker(bind=get_engine(), expire_on_commit=False)


@contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """
    Translate connection/lock timeouts raised inside the block into
    ``StoreUnavailable``.  Constraint violations pass through untouched.
    """
    try:
        yield
    except (OperationalError, PoolTimeoutError) as exc:
        logger.error("Store operation '%s' failed: %s", operation, exc.__class__.__name__)
        raise StoreUnavailable(f"Store unavailable during {operation}") from exc


@contextmanager
def get_db() -> Generator[Session, None, None]:
    """
    Context manager that yields a SQLAlchemy ``Session``.

    Automatically commits on clean exit or rolls back on exception.

    Usage::

        with get_db() as db:
            db.add(some_model)
    """
    factory = get_session_factory()
    session: Session = factory()
    try:
        yield session
        with store_errors("commit"):
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def get_db_session() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a SQLAlchemy ``Session``.

    Usage in a route::

        @router.get("/foo")
        def foo(db: Session = Depends(get_db_session)):
            ...
    """
    with get_db() as session:
        yield session

"""
SQLAlchemy engine factory with production-ready connection pooling.

Engines are created explicitly and passed to the services that need them.
``get_engine()`` builds the process-wide engine for ``DATABASE_URL`` lazily,
on first use, so importing this module never opens a connection and tests can
hand services an engine of their own.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.pool import StaticPool


def create_db_engine(url: str, **overrides: Any) -> Engine:
    """
    Create a SQLAlchemy engine for the given database URL.

    PostgreSQL (and any server database) gets a pooled engine sized for
    concurrent request handlers. SQLite URLs are given a single shared
    connection so an in-memory database survives across transactions.

    Args:
        url: SQLAlchemy database URL
        **overrides: Extra keyword arguments passed to create_engine

    Returns:
        Engine: Configured SQLAlchemy engine

    Example:
        >>> engine = create_db_engine("sqlite+pysqlite://")
        >>> with engine.begin() as conn:
        ...     conn.execute(text("SELECT 1"))
    """
    if url.startswith("sqlite"):
        options: dict[str, Any] = {
            "poolclass": StaticPool,
            "connect_args": {"check_same_thread": False},
        }
    else:
        options = {
            "pool_size": 10,  # Number of connections to maintain in the pool
            "max_overflow": 20,  # Additional connections when pool is exhausted
            "pool_pre_ping": True,  # Verify connections before using
            "pool_recycle": 3600,  # Recycle connections after 1 hour
        }
    options.update(overrides)
    return create_engine(url, future=True, echo=False, **options)


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Return the engine for the configured DATABASE_URL, creating it on first call."""
    from booking_core.config import DATABASE_URL

    return create_db_engine(str(DATABASE_URL))


def check_engine_health(engine: Engine) -> bool:
    """
    Check if database engine is healthy and connections are working.

    This function is used by the /ready endpoint to verify database
    connectivity before allowing traffic to the service.

    Returns:
        bool: True if database is reachable and healthy, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        return False

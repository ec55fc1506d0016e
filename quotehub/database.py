"""Database engine factory.

The inbox engine is read-only: store calls borrow pooled connections from
the engine directly so that concurrent lookups never share one Session.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from .config import settings


def build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_size=10,
        max_overflow=20,
        pool_pre_ping=True,
        pool_recycle=3600,
        connect_args={"connect_timeout": 10},
    )


engine = build_engine(settings.database_url)

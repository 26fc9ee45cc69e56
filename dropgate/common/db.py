"""Order database bootstrap helpers.

Engines are built on demand so importing models never opens a connection or
requires a driver for the configured DSN.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, sessionmaker
from sqlalchemy.pool import StaticPool


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""

    pass


def build_engine(dsn: str) -> Engine:
    if dsn.startswith("sqlite"):
        # One shared connection so in-memory databases survive across sessions.
        return create_engine(dsn, connect_args={"check_same_thread": False}, poolclass=StaticPool)
    return create_engine(dsn, pool_pre_ping=True)


def build_session_factory(engine: Engine) -> sessionmaker:
    """Session factory used by repositories; ORM rows stay readable after commit."""

    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

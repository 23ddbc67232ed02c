"""
SQLAlchemy engine and session setup for the flight-plan store.

SQLAlchemy 2.0 declarative style. SQLite is the default backend; an
in-memory SQLite URL shares a single connection across threads so the
API and its tests see the same database.
"""

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker
from sqlalchemy.pool import StaticPool

from flightviz.config import config


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def _build_engine(url: str):
    kwargs = {'echo': config.debug}

    if url.startswith('sqlite'):
        kwargs['connect_args'] = {'check_same_thread': False}
        if ':memory:' in url or url in ('sqlite://', 'sqlite:///'):
            kwargs['poolclass'] = StaticPool

    new_engine = create_engine(url, **kwargs)

    if url.startswith('sqlite'):
        @event.listens_for(new_engine, 'connect')
        def enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            cursor.execute('PRAGMA foreign_keys=ON')
            cursor.close()

    return new_engine


engine = _build_engine(config.database.url)

SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Transactional session scope.

    Commits on success, rolls back and re-raises on error.
    """
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create tables that do not exist yet."""
    Base.metadata.create_all(bind=engine)

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import Engine
from sqlalchemy.orm import Session

from later_ladder.core.config import settings
from later_ladder.db import DatabaseConfig, create_db_engine, create_session_factory
from later_ladder.db.sink import GameStoreSink


def make_engine() -> Engine:
    return create_db_engine(
        DatabaseConfig(database_url=settings.database_url, echo=settings.db_echo)
    )


def make_sink() -> GameStoreSink:
    return GameStoreSink(create_session_factory(make_engine()))


@contextmanager
def session_scope() -> Iterator[Session]:
    """
    Context-managed DB session for CLI commands.
    Ensures proper close and rolls back on exception.
    """
    SessionLocal = create_session_factory(make_engine())
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import UTC, datetime

from sqlalchemy.exc import (
    DataError,
    DisconnectionError,
    IntegrityError,
    InterfaceError,
    OperationalError,
    SQLAlchemyError,
)
from sqlalchemy.orm import Session, sessionmaker

from later_ladder.db.repos.core.game_repo import GameRepository
from later_ladder.ingestion.types import FixtureRecord

logger = logging.getLogger(__name__)


class SinkError(RuntimeError):
    """Persistence failure."""


class SinkConnectivityError(SinkError):
    """Database unreachable / connection dropped. Worth retrying later."""


class SinkConstraintError(SinkError):
    """Rows rejected by the database (constraint or data error). Retrying will not help."""


def _classify(exc: SQLAlchemyError) -> SinkError:
    if isinstance(exc, (IntegrityError, DataError)):
        return SinkConstraintError(str(exc))
    if isinstance(exc, (OperationalError, InterfaceError, DisconnectionError)):
        return SinkConnectivityError(str(exc))
    return SinkError(str(exc))


class GameStoreSink:
    """SQLAlchemy-backed persistence sink; one short transaction per call."""

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise _classify(e) from e
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    def upsert_all(self, records: Sequence[FixtureRecord]) -> None:
        if not records:
            return
        now = datetime.now(tz=UTC)
        rows = [{**r.as_row(), "source_last_seen_at": now} for r in records]
        with self._transaction() as session:
            written = GameRepository(session).upsert_many(rows)
        logger.debug("Upserted %d games", written)

    def remove(self, game_id: int) -> None:
        with self._transaction() as session:
            found = GameRepository(session).mark_removed(game_id)
        if not found:
            logger.info("removeGame for unknown game id=%d; nothing to tombstone", game_id)

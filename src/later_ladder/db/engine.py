from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool


@dataclass(frozen=True)
class DatabaseConfig:
    database_url: str
    echo: bool = False


def create_db_engine(cfg: DatabaseConfig) -> Engine:
    if cfg.database_url.startswith("sqlite") and ":memory:" in cfg.database_url:
        # One shared connection, otherwise every session sees an empty database.
        return create_engine(
            cfg.database_url,
            echo=cfg.echo,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_engine(cfg.database_url, echo=cfg.echo, pool_pre_ping=True)


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)

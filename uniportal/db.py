from __future__ import annotations

from contextlib import contextmanager
from functools import lru_cache
from typing import Iterator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from uniportal.config import Settings, get_settings
from uniportal.models import Base


def _connect_args(url: str, timeout_ms: int) -> dict:
    if url.startswith("postgresql"):
        return {"options": f"-c statement_timeout={timeout_ms}", "connect_timeout": max(1, timeout_ms // 1000)}
    if url.startswith("sqlite"):
        return {"timeout": timeout_ms / 1000}
    return {}


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_pragma(dbapi_connection, _connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_engine(settings: Settings, **kwargs) -> Engine:
    url = settings.database_url
    connect_args = _connect_args(url, settings.STATEMENT_TIMEOUT_MS)
    connect_args.update(kwargs.pop("connect_args", {}))
    engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args, **kwargs)
    enable_sqlite_foreign_keys(engine)
    return engine


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return build_engine(get_settings())


def make_session_factory(engine: Engine) -> sessionmaker:
    # Records leave the session as plain data, but keep loaded attributes
    # readable after commit for code that still holds ORM rows.
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@lru_cache(maxsize=1)
def get_session_factory() -> sessionmaker:
    return make_session_factory(get_engine())


@contextmanager
def db_session(factory: sessionmaker | None = None) -> Iterator[Session]:
    factory = factory or get_session_factory()
    session: Session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_schema(engine: Engine | None = None) -> None:
    Base.metadata.create_all(bind=engine or get_engine())

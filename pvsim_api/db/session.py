from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from pvsim_api.config import settings


def build_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine for *url*.

    SQLite connections are shared with worker threads (ticks hand their writes
    over via ``asyncio.to_thread``), so same-thread checking is disabled.  An
    in-memory SQLite URL gets a single static connection; otherwise every
    connection would see its own empty database.
    """
    kwargs: dict = {"echo": echo}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
    return create_engine(url, **kwargs)


def build_session_factory(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autocommit=False, autoflush=False)


engine = build_engine(settings.DATABASE_URL, echo=settings.DEBUG)

SessionLocal: sessionmaker[Session] = build_session_factory(engine)


@contextmanager
def get_session(factory: sessionmaker[Session] | None = None) -> Generator[Session, None, None]:
    """Yield a session that commits on success and rolls back on any error."""
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()

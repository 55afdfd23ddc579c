from __future__ import annotations

import asyncio
from typing import Callable, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from pvsim_api.services.errors import PersistenceError

T = TypeVar("T")


async def call_db(fn: Callable[..., T], *args) -> T:
    """Run a blocking :class:`DatabaseClient` call in a worker thread.

    Keeps the event loop free while SQLAlchemy talks to the database, and
    turns driver errors into :class:`PersistenceError`.
    """
    try:
        return await asyncio.to_thread(fn, *args)
    except SQLAlchemyError as exc:
        raise PersistenceError(str(exc)) from exc

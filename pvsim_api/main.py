from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from pvsim_api.config import settings
from pvsim_api.db.client import DatabaseClient
from pvsim_api.router import router
from pvsim_api.services.publisher import Publisher
from pvsim_api.services.simulation import SimulationRegistry

log = logging.getLogger(__name__)


def configure_logging(level: str = settings.LOG_LEVEL) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s  %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    # APScheduler logs every job run at INFO; ticks already log their own line.
    logging.getLogger("apscheduler.executors").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    scheduler = AsyncIOScheduler(event_loop=asyncio.get_running_loop())
    scheduler.start()
    log.info("APScheduler started.")

    publisher = Publisher(queue_size=settings.SUBSCRIBER_QUEUE_SIZE)
    registry = SimulationRegistry(
        app.state.db,
        publisher,
        scheduler,
        default_interval_ms=settings.SIM_INTERVAL_MS,
    )
    app.state.publisher = publisher
    app.state.registry = registry

    yield

    registry.shutdown_all()
    publisher.close_all()
    scheduler.shutdown(wait=False)
    log.info("APScheduler stopped.")


def create_app(db: DatabaseClient | None = None) -> FastAPI:
    configure_logging()

    app = FastAPI(title="PV plant simulator", lifespan=lifespan)
    app.state.db = db or DatabaseClient()
    app.state.seed_points = settings.SEED_POINTS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Optional

from apscheduler.schedulers.base import BaseScheduler

from pvsim_api.db.client import DatabaseClient, sim_device_name
from pvsim_api.services.errors import (
    AlreadyRunningError,
    NotRunningError,
    SiteNotFoundError,
)
from pvsim_api.services.live import Clock, LiveDriver
from pvsim_api.services.publisher import Publisher
from pvsim_api.services.seed import seed_site
from pvsim_api.services.storage import call_db
from pvsim_lib.time_util import local_now
from pvsim_lib.types import SeedResult, status_event

log = logging.getLogger(__name__)


@dataclass
class ClearResult:
    site_id: int
    telemetry_deleted: int
    weather_deleted: int


class SimulationRegistry:
    """Single source of truth for which sites are simulating live.

    Owns the ``site_id -> LiveDriver`` map and enforces at most one driver
    per site.  All methods run on the application's event loop; a slot is
    reserved before the first ``await`` in :meth:`start`, so two concurrent
    starts for the same site cannot both pass admission.

    Args:
        db:                  Persistence collaborator.
        publisher:           Receives live samples and STATUS events.
        scheduler:           APScheduler instance the drivers' jobs are
                             added to.  Its own lifecycle is the caller's.
        clock:               ``clock(tz_name) -> naive local datetime``.
        rng:                 Random source for sample noise.
        default_interval_ms: Tick period used when ``start`` gets none.
    """

    def __init__(
        self,
        db: DatabaseClient,
        publisher: Publisher,
        scheduler: BaseScheduler,
        clock: Clock = local_now,
        rng: Optional[random.Random] = None,
        default_interval_ms: int = 15000,
    ) -> None:
        self._db = db
        self._publisher = publisher
        self._scheduler = scheduler
        self._clock = clock
        self._rng = rng
        self.default_interval_ms = default_interval_ms

        # None marks a slot reserved by a start() that has not finished yet.
        self._drivers: dict[int, LiveDriver | None] = {}
        self._shut_down = False

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def status(self, site_id: int) -> bool:
        return self._drivers.get(site_id) is not None

    def get(self, site_id: int) -> LiveDriver | None:
        return self._drivers.get(site_id)

    def running_sites(self) -> list[int]:
        return sorted(site_id for site_id, d in self._drivers.items() if d is not None)

    def __len__(self) -> int:
        return len(self._drivers)

    @property
    def is_shut_down(self) -> bool:
        return self._shut_down

    # ------------------------------------------------------------------
    # Live lifecycle
    # ------------------------------------------------------------------

    async def start(self, site_id: int, interval_ms: int | None = None) -> LiveDriver:
        if self._shut_down:
            raise RuntimeError("simulation registry has been shut down")
        interval_ms = self.default_interval_ms if interval_ms is None else interval_ms
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        if site_id in self._drivers:
            raise AlreadyRunningError(site_id)

        self._drivers[site_id] = None
        try:
            site = await call_db(self._db.get_site, site_id)
            if site is None:
                raise SiteNotFoundError(site_id)
            device = await call_db(self._db.find_or_create_device, sim_device_name(site_id))
            if self._shut_down:
                raise RuntimeError("simulation registry has been shut down")

            driver = LiveDriver(
                site,
                device.device_id,
                interval_ms,
                self._db,
                self._publisher,
                clock=self._clock,
                rng=self._rng,
            )
            driver.schedule(self._scheduler)
        except BaseException:
            self._drivers.pop(site_id, None)
            raise

        self._drivers[site_id] = driver
        log.info("Started simulation for site %d every %d ms", site_id, interval_ms)
        self._publisher.publish(status_event(site_id, True))
        return driver

    def stop(self, site_id: int) -> None:
        driver = self._drivers.get(site_id)
        if driver is None:
            raise NotRunningError(site_id)

        driver.cancel()
        del self._drivers[site_id]
        log.info("Stopped simulation for site %d after %d tick(s)", site_id, driver.ticks)
        self._publisher.publish(status_event(site_id, False))

    def shutdown_all(self) -> None:
        """Cancel every driver and empty the registry.  Safe to call repeatedly."""
        if self._shut_down:
            return
        self._shut_down = True

        for site_id, driver in list(self._drivers.items()):
            if driver is not None:
                driver.cancel()
                log.info("Stopped simulation for site %d", site_id)
        self._drivers.clear()
        log.info("Simulation registry shut down.")

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    async def seed(self, site_id: int, points: int = 24) -> SeedResult:
        return await seed_site(self._db, site_id, points, clock=self._clock, rng=self._rng)

    async def clear(self, site_id: int) -> ClearResult:
        """Delete the simulated history for a site that is not running."""
        if site_id in self._drivers:
            raise AlreadyRunningError(site_id)

        site = await call_db(self._db.get_site, site_id)
        if site is None:
            raise SiteNotFoundError(site_id)

        telemetry_deleted = 0
        device = await call_db(self._db.get_device_by_name, sim_device_name(site_id))
        if device is not None:
            telemetry_deleted = await call_db(self._db.delete_telemetry_for_device, device.device_id)
        weather_deleted = await call_db(self._db.delete_weather_for_site, site_id)

        log.info(
            "Cleared site %d: %d telemetry row(s), %d weather row(s)",
            site_id, telemetry_deleted, weather_deleted,
        )
        return ClearResult(site_id, telemetry_deleted, weather_deleted)

"""Per-site periodic simulation loop.

A :class:`LiveDriver` is the lifecycle handle for one running site.  It is
scheduled as an APScheduler interval job on the application's event loop and
moves through exactly two states, stopped and running.

Tick overlap
------------
APScheduler fires ticks on a fixed period regardless of how long the previous
tick took.  The job is registered with ``coalesce=True`` and the driver keeps
its own busy flag, so a tick that fires while another is still persisting
returns immediately and is counted in ``skipped_ticks`` rather than queued.  At most
two job instances exist at once: the working one and the skipped one.  A
fire beyond that is dropped by APScheduler itself; the driver listens for
``EVENT_JOB_MAX_INSTANCES`` on its job and counts those too.

Cancellation
------------
:meth:`LiveDriver.cancel` removes the job immediately.  A tick already in
flight finishes its database write; its publication is suppressed.
"""

from __future__ import annotations

import logging
import random
from datetime import datetime
from typing import Callable, Optional

from apscheduler.events import EVENT_JOB_MAX_INSTANCES, JobSubmissionEvent
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.base import BaseScheduler

from pvsim_api.db.client import DatabaseClient
from pvsim_api.services.publisher import Publisher
from pvsim_api.services.storage import call_db
from pvsim_api.simulators.sample import generate_sample
from pvsim_lib.time_util import local_now
from pvsim_lib.types import Sample

log = logging.getLogger(__name__)

Clock = Callable[[Optional[str]], datetime]


class LiveDriver:
    def __init__(
        self,
        site,
        device_id: int,
        interval_ms: int,
        db: DatabaseClient,
        publisher: Publisher,
        clock: Clock = local_now,
        rng: Optional[random.Random] = None,
    ) -> None:
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        self.site = site
        self.site_id: int = site.site_id
        self.device_id = device_id
        self.interval_ms = interval_ms
        self._db = db
        self._publisher = publisher
        self._clock = clock
        self._rng = rng

        self.running = False
        self._busy = False
        self._scheduler: BaseScheduler | None = None

        self.ticks = 0
        self.failed_ticks = 0
        self.skipped_ticks = 0
        self.last_sample: Sample | None = None

    @property
    def job_id(self) -> str:
        return f"simulate-site-{self.site_id}"

    @property
    def busy(self) -> bool:
        return self._busy

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def schedule(self, scheduler: BaseScheduler) -> None:
        scheduler.add_job(
            self.tick,
            "interval",
            seconds=self.interval_ms / 1000.0,
            id=self.job_id,
            name=f"live simulation for site {self.site_id}",
            # A second instance reaches tick() so the busy guard can count the overlap.
            max_instances=2,
            coalesce=True,
            replace_existing=True,
        )
        scheduler.add_listener(self._on_max_instances, EVENT_JOB_MAX_INSTANCES)
        self._scheduler = scheduler
        self.running = True

    def cancel(self) -> None:
        self.running = False
        if self._scheduler is None:
            return
        try:
            self._scheduler.remove_job(self.job_id)
        except JobLookupError:
            log.debug("Job %s already gone", self.job_id)
        self._scheduler.remove_listener(self._on_max_instances)
        self._scheduler = None

    def _on_max_instances(self, event: JobSubmissionEvent) -> None:
        if event.job_id != self.job_id:
            return
        self.skipped_ticks += 1
        log.warning("Site %d: scheduler dropped a tick, earlier ticks still running", self.site_id)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    async def tick(self) -> Sample | None:
        """Generate, persist and publish one sample.

        Never raises: a failed tick is logged and the next one runs on
        schedule.
        """
        if not self.running:
            return None
        if self._busy:
            self.skipped_ticks += 1
            log.warning("Site %d: previous tick still running, skipping", self.site_id)
            return None

        self._busy = True
        try:
            sample = generate_sample(self.site, self._clock(self.site.timezone), self._rng)
            await call_db(self._db.insert_sample, self.device_id, sample)
            self.ticks += 1
            self.last_sample = sample
            log.info(
                "sim: %d %s %.3f kW", self.site_id, sample.timestamp.isoformat(), sample.power_kw
            )
            if self.running:
                self._publisher.publish(sample.to_event())
            return sample
        except Exception:
            self.failed_ticks += 1
            log.exception("sim error for site %d", self.site_id)
            return None
        finally:
            self._busy = False

    def __repr__(self) -> str:
        return (
            f"<LiveDriver site={self.site_id} interval_ms={self.interval_ms}"
            f" running={self.running} ticks={self.ticks}>"
        )

from __future__ import annotations

import logging
import random
from typing import Optional

from pvsim_api.db.client import DatabaseClient, sim_device_name
from pvsim_api.services.errors import PersistenceError, SiteNotFoundError
from pvsim_api.services.live import Clock
from pvsim_api.services.storage import call_db
from pvsim_api.simulators.sample import generate_sample
from pvsim_lib.time_util import date_to_datetime, local_now, seed_timestamps
from pvsim_lib.types import SeedResult

log = logging.getLogger(__name__)


async def seed_site(
    db: DatabaseClient,
    site_id: int,
    points: int = 24,
    clock: Clock = local_now,
    rng: Optional[random.Random] = None,
) -> SeedResult:
    """Backfill one synthetic day of history for *site_id*.

    Samples are spaced ``24 / points`` hours apart starting at local midnight
    of the site's current day.  Nothing is published.  A persistence failure
    stops the batch; the returned :class:`SeedResult` carries the number of
    points already committed and the error message.
    """
    if points <= 0:
        raise ValueError("points must be positive")

    site = await call_db(db.get_site, site_id)
    if site is None:
        raise SiteNotFoundError(site_id)

    result = SeedResult(site_id=site_id, requested=points, created=0)
    try:
        device = await call_db(db.find_or_create_device, sim_device_name(site_id))
    except PersistenceError as exc:
        result.error = str(exc)
        log.error("Seeding site %d aborted before the first point: %s", site_id, exc)
        return result

    base = date_to_datetime(clock(site.timezone).date())

    for ts in seed_timestamps(base, points):
        sample = generate_sample(site, ts, rng)
        try:
            await call_db(db.insert_sample, device.device_id, sample)
        except PersistenceError as exc:
            result.error = str(exc)
            log.error(
                "Seeding site %d aborted after %d/%d points: %s",
                site_id, result.created, points, exc,
            )
            break
        result.created += 1

    if result.error is None:
        log.info("Seeded %d point(s) for site %d starting %s", result.created, site_id, base)
    return result

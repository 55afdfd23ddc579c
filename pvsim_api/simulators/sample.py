from __future__ import annotations

import random
from datetime import datetime
from typing import Optional

from pvsim_api.services.errors import SiteNotFoundError
from pvsim_api.simulators.physics import site_physics
from pvsim_lib.constants import (
    DEFAULT_CAPACITY_KW,
    POWER_DECIMALS,
    POWER_NOISE_KW,
    WEATHER_DECIMALS,
    WIND_DIR_MAX,
    WIND_SPEED_MAX,
)
from pvsim_lib.time_util import hour_of_day
from pvsim_lib.types import Sample


def site_capacity_kw(site) -> float:
    if site.capacity_kw is None:
        return DEFAULT_CAPACITY_KW
    return float(site.capacity_kw)


def generate_sample(
    site,
    timestamp: datetime,
    rng: Optional[random.Random] = None,
    site_id: Optional[int] = None,
) -> Sample:
    """Produce one weather + power sample for *site* at *timestamp*.

    The physics is deterministic; power gets a small positive jitter, capped
    at the site's rating, and wind is drawn independently of the irradiance
    model.  Values are rounded
    before they leave this function so persisted and published copies agree.

    Raises:
        SiteNotFoundError: If *site* is ``None``.  *site_id* is only used to
                           label the error in that case.
    """
    if site is None:
        raise SiteNotFoundError(site_id)
    rng = rng or random

    capacity_kw = site_capacity_kw(site)
    point = site_physics(capacity_kw, hour_of_day(timestamp))

    # Jitter never pushes output past the nameplate rating.
    power_kw = min(capacity_kw, max(0.0, point.power_kw + rng.uniform(0.0, POWER_NOISE_KW)))
    wind_speed = rng.uniform(0.0, WIND_SPEED_MAX)
    wind_dir = rng.uniform(0.0, WIND_DIR_MAX)

    return Sample(
        site_id=site.site_id,
        timestamp=timestamp,
        irradiance=round(point.irradiance, WEATHER_DECIMALS),
        ambient_temp=round(point.ambient_temp, WEATHER_DECIMALS),
        module_temp=round(point.module_temp, WEATHER_DECIMALS),
        wind_speed=round(wind_speed, WEATHER_DECIMALS),
        wind_dir=round(wind_dir, WEATHER_DECIMALS),
        power_kw=round(power_kw, POWER_DECIMALS),
    )

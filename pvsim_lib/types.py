from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class Sample:
    """One simulated reading for a site.

    Produced once by the sample generator and never mutated; it is split into
    a weather row, a telemetry row and (in live mode) a published event.
    """

    site_id: int
    timestamp: datetime
    irradiance: float
    ambient_temp: float
    module_temp: float
    wind_speed: float
    wind_dir: float
    power_kw: float

    def to_event(self) -> dict:
        return {
            "siteId": self.site_id,
            "timestamp": self.timestamp.isoformat(),
            "powerKw": self.power_kw,
            "irradiance": self.irradiance,
            "temp": self.ambient_temp,
            "moduleTemp": self.module_temp,
        }


@dataclass(frozen=True)
class PhysicsPoint:
    irradiance: float
    ambient_temp: float
    module_temp: float
    power_kw: float


@dataclass
class SeedResult:
    site_id: int
    requested: int
    created: int
    error: Optional[str] = None

    @property
    def complete(self) -> bool:
        return self.error is None and self.created == self.requested


def status_event(site_id: int, running: bool) -> dict:
    return {"type": "STATUS", "siteId": site_id, "running": running}

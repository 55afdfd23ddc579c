from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from pvsim_api.db.models import Device, Site, Telemetry, WeatherData
from pvsim_api.db.session import get_session
from pvsim_lib.constants import POWER_PARAMETER, POWER_UNIT, SIM_DEVICE_TYPE
from pvsim_lib.types import Sample


def sim_device_name(site_id: int) -> str:
    return f"sim-site-{site_id}"


class DatabaseClient:
    """Typed interface for reading and writing PV plant data.

    All methods open and close their own session using the shared
    :func:`~pvsim_api.db.session.get_session` context manager, so no session
    management is required by the caller.  Pass ``session_factory`` to bind
    the client to an engine other than the configured one.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._factory = session_factory

    def _session(self):
        return get_session(self._factory)

    # ------------------------------------------------------------------
    # Sites
    # ------------------------------------------------------------------

    def add_site(
        self,
        name: str,
        capacity_kw: float | None,
        timezone: str | None = None,
        location: str | None = None,
    ) -> Site:
        with self._session() as db:
            site = Site(name=name, capacity_kw=capacity_kw, timezone=timezone, location=location)
            db.add(site)
            db.flush()  # populate site_id before session closes
            db.expunge(site)
        return site

    def get_site(self, site_id: int) -> Site | None:
        with self._session() as db:
            site = db.get(Site, site_id)
            if site is not None:
                db.expunge(site)
        return site

    def list_sites(self) -> list[Site]:
        with self._session() as db:
            rows = db.execute(select(Site).order_by(Site.site_id)).scalars().all()
            for row in rows:
                db.expunge(row)
        return list(rows)

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------

    def get_device_by_name(self, name: str) -> Device | None:
        with self._session() as db:
            device = db.execute(
                select(Device).where(Device.name == name).order_by(Device.device_id).limit(1)
            ).scalar_one_or_none()
            if device is not None:
                db.expunge(device)
        return device

    def find_or_create_device(
        self,
        name: str,
        device_type: str = SIM_DEVICE_TYPE,
        manufacturer: str = "sim",
        model: str = "virtual",
    ) -> Device:
        """Return the device called *name*, creating it on first use.

        ``device.name`` is unique, so when two callers race past the lookup
        the loser's insert fails and it returns the winner's row instead.
        """
        existing = self.get_device_by_name(name)
        if existing is not None:
            return existing
        try:
            with self._session() as db:
                device = Device(type=device_type, name=name, manufacturer=manufacturer, model=model)
                db.add(device)
                db.flush()
                db.expunge(device)
        except IntegrityError:
            existing = self.get_device_by_name(name)
            if existing is None:
                raise
            return existing
        return device

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def _weather_row(
        site_id: int,
        timestamp: datetime,
        irradiance: float,
        ambient_temp: float,
        module_temp: float,
        wind_speed: float,
        wind_dir: float,
    ) -> WeatherData:
        return WeatherData(
            site_id=site_id,
            timestamp=timestamp,
            irradiance_wm2=irradiance,
            ambient_temp_c=ambient_temp,
            module_temp_c=module_temp,
            wind_speed_ms=wind_speed,
            wind_dir_deg=wind_dir,
        )

    def insert_weather_sample(
        self,
        site_id: int,
        timestamp: datetime,
        irradiance: float,
        ambient_temp: float,
        module_temp: float,
        wind_speed: float,
        wind_dir: float,
    ) -> None:
        with self._session() as db:
            db.add(
                self._weather_row(
                    site_id, timestamp, irradiance, ambient_temp, module_temp, wind_speed, wind_dir
                )
            )

    def insert_telemetry_sample(
        self,
        device_id: int,
        timestamp: datetime,
        parameter: str,
        value: float,
        unit: str,
        device_type: str = SIM_DEVICE_TYPE,
    ) -> None:
        with self._session() as db:
            db.add(
                Telemetry(
                    device_type=device_type,
                    device_id=device_id,
                    timestamp=timestamp,
                    parameter=parameter,
                    value=value,
                    unit=unit,
                )
            )

    def insert_sample(self, device_id: int, sample: Sample) -> None:
        """Write the weather and power facets of *sample* in one transaction."""
        with self._session() as db:
            db.add(
                self._weather_row(
                    sample.site_id,
                    sample.timestamp,
                    sample.irradiance,
                    sample.ambient_temp,
                    sample.module_temp,
                    sample.wind_speed,
                    sample.wind_dir,
                )
            )
            db.add(
                Telemetry(
                    device_type=SIM_DEVICE_TYPE,
                    device_id=device_id,
                    timestamp=sample.timestamp,
                    parameter=POWER_PARAMETER,
                    value=sample.power_kw,
                    unit=POWER_UNIT,
                )
            )

    def delete_telemetry_for_device(self, device_id: int) -> int:
        with self._session() as db:
            result = db.execute(delete(Telemetry).where(Telemetry.device_id == device_id))
        return result.rowcount

    def delete_weather_for_site(self, site_id: int) -> int:
        with self._session() as db:
            result = db.execute(delete(WeatherData).where(WeatherData.site_id == site_id))
        return result.rowcount

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_telemetry_series(
        self,
        device_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 200,
    ) -> list[Telemetry]:
        """Return the newest *limit* readings for *device_id*, newest first."""
        stmt = select(Telemetry).where(Telemetry.device_id == device_id)
        if start is not None:
            stmt = stmt.where(Telemetry.timestamp >= start)
        if end is not None:
            stmt = stmt.where(Telemetry.timestamp <= end)
        stmt = stmt.order_by(Telemetry.timestamp.desc(), Telemetry.telemetry_id.desc()).limit(limit)
        with self._session() as db:
            rows = db.execute(stmt).scalars().all()
            for row in rows:
                db.expunge(row)
        return list(rows)

    def get_weather_series(
        self,
        site_id: int,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 200,
    ) -> list[WeatherData]:
        """Return the newest *limit* weather rows for *site_id*, newest first."""
        stmt = select(WeatherData).where(WeatherData.site_id == site_id)
        if start is not None:
            stmt = stmt.where(WeatherData.timestamp >= start)
        if end is not None:
            stmt = stmt.where(WeatherData.timestamp <= end)
        stmt = stmt.order_by(WeatherData.timestamp.desc(), WeatherData.weather_id.desc()).limit(limit)
        with self._session() as db:
            rows = db.execute(stmt).scalars().all()
            for row in rows:
                db.expunge(row)
        return list(rows)

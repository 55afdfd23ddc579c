from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Float, ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


# ---------------------------------------------------------------------------
# Reference
# ---------------------------------------------------------------------------


class Site(Base):
    """A PV plant.  ``capacity_kw`` is the rated AC output."""

    __tablename__ = "site"

    site_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[Optional[str]] = mapped_column(String(255))
    location: Mapped[Optional[str]] = mapped_column(String(255))
    capacity_kw: Mapped[Optional[float]] = mapped_column(Float)
    timezone: Mapped[Optional[str]] = mapped_column(String(255))

    weather: Mapped[list[WeatherData]] = relationship(
        "WeatherData", back_populates="site", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Site id={self.site_id} name={self.name!r} capacity_kw={self.capacity_kw}>"


class Device(Base):
    """A physical or virtual device that emits telemetry."""

    __tablename__ = "device"

    device_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    type: Mapped[Optional[str]] = mapped_column(String(255))
    reference_id: Mapped[Optional[int]] = mapped_column(Integer)
    name: Mapped[Optional[str]] = mapped_column(String(255), index=True, unique=True)
    manufacturer: Mapped[Optional[str]] = mapped_column(String(255))
    model: Mapped[Optional[str]] = mapped_column(String(255))

    telemetry: Mapped[list[Telemetry]] = relationship(
        "Telemetry", back_populates="device", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Device id={self.device_id} type={self.type!r} name={self.name!r}>"


# ---------------------------------------------------------------------------
# Time series
# ---------------------------------------------------------------------------

# BigInteger only autoincrements on SQLite as a plain INTEGER primary key.
_BigIntId = BigInteger().with_variant(Integer, "sqlite")


class WeatherData(Base):
    """Weather observations per site."""

    __tablename__ = "weather_data"

    weather_id: Mapped[int] = mapped_column(_BigIntId, primary_key=True, autoincrement=True)
    site_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("site.site_id", ondelete="CASCADE"),
        index=True,
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    irradiance_wm2: Mapped[Optional[float]] = mapped_column(Float)
    ambient_temp_c: Mapped[Optional[float]] = mapped_column(Float)
    module_temp_c: Mapped[Optional[float]] = mapped_column(Float)
    wind_speed_ms: Mapped[Optional[float]] = mapped_column(Float)
    wind_dir_deg: Mapped[Optional[float]] = mapped_column(Float)

    site: Mapped[Site] = relationship("Site", back_populates="weather")

    def __repr__(self) -> str:
        return (
            f"<WeatherData site={self.site_id} ts={self.timestamp}"
            f" irr={self.irradiance_wm2} temp={self.ambient_temp_c}>"
        )


class Telemetry(Base):
    """A single device reading: one parameter, one value, one unit."""

    __tablename__ = "telemetry"

    telemetry_id: Mapped[int] = mapped_column(_BigIntId, primary_key=True, autoincrement=True)
    device_type: Mapped[Optional[str]] = mapped_column(String(255))
    device_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("device.device_id", ondelete="CASCADE"),
        index=True,
    )
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    parameter: Mapped[Optional[str]] = mapped_column(String(255))
    value: Mapped[Optional[float]] = mapped_column(Float)
    unit: Mapped[Optional[str]] = mapped_column(String(255))

    device: Mapped[Device] = relationship("Device", back_populates="telemetry")

    def __repr__(self) -> str:
        return (
            f"<Telemetry device={self.device_id} ts={self.timestamp}"
            f" {self.parameter}={self.value} {self.unit}>"
        )

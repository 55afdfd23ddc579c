import asyncio
import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse
from pydantic import BaseModel, Field

from pvsim_api.db.client import DatabaseClient, sim_device_name
from pvsim_api.services.errors import (
    AlreadyRunningError,
    NotRunningError,
    PersistenceError,
    SiteNotFoundError,
)
from pvsim_api.services.publisher import Publisher, Subscription
from pvsim_api.services.simulation import SimulationRegistry
from pvsim_api.services.storage import call_db
from pvsim_lib.time_util import to_naive_local
from pvsim_lib.types import status_event

log = logging.getLogger(__name__)

router = APIRouter()


def get_registry(request: Request) -> SimulationRegistry:
    return request.app.state.registry


def get_db(request: Request) -> DatabaseClient:
    return request.app.state.db


# ---------------------------------------------------------------------------
# Request / response models
# ---------------------------------------------------------------------------


class StartRequest(BaseModel):
    intervalMs: Optional[int] = Field(default=None, gt=0)


class SeedRequest(BaseModel):
    points: Optional[int] = Field(default=None, gt=0)


class StartResponse(BaseModel):
    started: bool
    siteId: int
    intervalMs: int


class StopResponse(BaseModel):
    stopped: bool
    siteId: int


class StatusResponse(BaseModel):
    siteId: int
    running: bool


class SeedResponse(BaseModel):
    siteId: int
    created: int


class ClearResponse(BaseModel):
    siteId: int
    telemetryDeleted: int
    weatherDeleted: int


class TelemetryPoint(BaseModel):
    telemetry_id: str
    timestamp: datetime
    parameter: Optional[str]
    value: Optional[str]
    unit: Optional[str]


class WeatherPoint(BaseModel):
    timestamp: datetime
    irradiance_wm2: Optional[float]
    ambient_temp_c: Optional[float]
    module_temp_c: Optional[float]
    wind_speed_ms: Optional[float]
    wind_dir_deg: Optional[float]


# ---------------------------------------------------------------------------
# Liveness
# ---------------------------------------------------------------------------


@router.get("/", response_class=PlainTextResponse)
def root():
    return "Server is running"


@router.get("/health")
def health_check():
    return {"status": "ok"}


# ---------------------------------------------------------------------------
# Simulation control
# ---------------------------------------------------------------------------


@router.post("/sites/{site_id}/simulate/start", response_model=StartResponse)
async def start_simulation(
    site_id: int,
    body: Optional[StartRequest] = None,
    registry: SimulationRegistry = Depends(get_registry),
):
    """Start writing (and broadcasting) one sample every ``intervalMs``."""
    interval_ms = body.intervalMs if body and body.intervalMs else registry.default_interval_ms
    try:
        driver = await registry.start(site_id, interval_ms)
    except SiteNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except AlreadyRunningError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except PersistenceError as exc:
        log.error("Failed to start simulation for site %d: %s", site_id, exc)
        raise HTTPException(status_code=500, detail="Failed to start simulation") from exc

    return StartResponse(started=True, siteId=site_id, intervalMs=driver.interval_ms)


@router.post("/sites/{site_id}/simulate/stop", response_model=StopResponse)
async def stop_simulation(site_id: int, registry: SimulationRegistry = Depends(get_registry)):
    try:
        registry.stop(site_id)
    except NotRunningError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return StopResponse(stopped=True, siteId=site_id)


@router.get("/sites/{site_id}/simulate/status", response_model=StatusResponse)
async def simulation_status(site_id: int, registry: SimulationRegistry = Depends(get_registry)):
    return StatusResponse(siteId=site_id, running=registry.status(site_id))


@router.post("/sites/{site_id}/simulate/seed", response_model=SeedResponse)
async def seed_simulation(
    site_id: int,
    request: Request,
    body: Optional[SeedRequest] = None,
    registry: SimulationRegistry = Depends(get_registry),
):
    """Backfill today's history with evenly spaced points (default 24)."""
    points = body.points if body and body.points else request.app.state.seed_points
    try:
        result = await registry.seed(site_id, points)
    except SiteNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except PersistenceError as exc:
        log.error("Failed to seed site %d: %s", site_id, exc)
        raise HTTPException(status_code=500, detail="Failed to seed telemetry") from exc

    if result.error is not None:
        raise HTTPException(
            status_code=500,
            detail={"error": "Failed to seed telemetry", "created": result.created},
        )
    return SeedResponse(siteId=site_id, created=result.created)


@router.post("/sites/{site_id}/simulate/clear", response_model=ClearResponse)
async def clear_simulation(site_id: int, registry: SimulationRegistry = Depends(get_registry)):
    try:
        result = await registry.clear(site_id)
    except SiteNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except AlreadyRunningError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except PersistenceError as exc:
        log.error("Failed to clear site %d: %s", site_id, exc)
        raise HTTPException(status_code=500, detail="Failed to clear telemetry") from exc

    return ClearResponse(
        siteId=site_id,
        telemetryDeleted=result.telemetry_deleted,
        weatherDeleted=result.weather_deleted,
    )


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------


@router.get("/sites/{site_id}/telemetry", response_model=list[TelemetryPoint])
async def site_telemetry(
    site_id: int,
    start: Optional[datetime] = Query(default=None, alias="from"),
    end: Optional[datetime] = Query(default=None, alias="to"),
    limit: int = Query(default=200, gt=0, le=10000),
    db: DatabaseClient = Depends(get_db),
):
    """Return the simulated inverter's newest readings, newest first.

    Values are serialised as strings to keep the stored precision.  An unknown
    site (or one that has never been simulated) yields an empty list.
    """
    try:
        device = await call_db(db.get_device_by_name, sim_device_name(site_id))
        if device is None:
            return []
        rows = await call_db(
            db.get_telemetry_series,
            device.device_id,
            to_naive_local(start),
            to_naive_local(end),
            limit,
        )
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail="Failed to read telemetry") from exc

    return [
        TelemetryPoint(
            telemetry_id=str(r.telemetry_id),
            timestamp=r.timestamp,
            parameter=r.parameter,
            value=str(r.value) if r.value is not None else None,
            unit=r.unit,
        )
        for r in rows
    ]


@router.get("/sites/{site_id}/weather", response_model=list[WeatherPoint])
async def site_weather(
    site_id: int,
    start: Optional[datetime] = Query(default=None, alias="from"),
    end: Optional[datetime] = Query(default=None, alias="to"),
    limit: int = Query(default=200, gt=0, le=10000),
    db: DatabaseClient = Depends(get_db),
):
    try:
        rows = await call_db(
            db.get_weather_series, site_id, to_naive_local(start), to_naive_local(end), limit
        )
    except PersistenceError as exc:
        raise HTTPException(status_code=500, detail="Failed to read weather") from exc

    return [
        WeatherPoint(
            timestamp=r.timestamp,
            irradiance_wm2=r.irradiance_wm2,
            ambient_temp_c=r.ambient_temp_c,
            module_temp_c=r.module_temp_c,
            wind_speed_ms=r.wind_speed_ms,
            wind_dir_deg=r.wind_dir_deg,
        )
        for r in rows
    ]


# ---------------------------------------------------------------------------
# Live feed
# ---------------------------------------------------------------------------


async def _pump(websocket: WebSocket, sub: Subscription) -> None:
    while True:
        event = await sub.get()
        await websocket.send_json(event)


async def _stop_pump(task: asyncio.Task) -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass
    except Exception as exc:
        # The client usually vanished mid-send; the disconnect is already handled.
        log.debug("WebSocket sender ended with %r", exc)


@router.websocket("/ws")
async def live_feed(websocket: WebSocket):
    """Stream samples and STATUS events for every site to one client."""
    publisher: Publisher = websocket.app.state.publisher
    registry: SimulationRegistry = websocket.app.state.registry

    # Subscribe before accepting so no event published after the handshake is missed.
    sub = publisher.subscribe()
    await websocket.accept()
    for site_id in registry.running_sites():
        sub.offer(status_event(site_id, True))

    sender = asyncio.create_task(_pump(websocket, sub))
    try:
        while True:
            await websocket.receive_text()  # clients don't talk; this just detects disconnects
    except WebSocketDisconnect:
        log.debug("WebSocket subscriber %d went away", sub.token)
    finally:
        await _stop_pump(sender)
        publisher.unsubscribe(sub)

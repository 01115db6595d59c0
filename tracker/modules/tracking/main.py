"""Tracking Module: FastAPI service fed by the OwnTracks endpoint."""

from __future__ import annotations

import structlog
from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse

from modules.tracking.geocoding import build_geocoder
from modules.tracking.models import Anchors, Coordinate
from modules.tracking.publisher import LocationPublisher, build_publisher
from modules.tracking.routing import build_routing_client
from modules.tracking.session import TrackingSession, not_found_message
from modules.tracking.source import PositionSource
from shared.config import get_settings
from shared.redis import close_redis, get_redis
from shared.schemas.common import HealthResponse, Point
from shared.schemas.notifications import Notice
from shared.schemas.tracking import (
    PublishedLocation,
    SearchRequest,
    SearchResponse,
    SearchResultState,
    TrackingState,
)

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.JSONRenderer(),
    ],
)

logger = structlog.get_logger()
app = FastAPI(title="Tracking Module", version="1.0.0")

source = PositionSource()
session: TrackingSession | None = None
publisher: LocationPublisher | None = None


@app.on_event("startup")
async def startup():
    global session, publisher
    settings = get_settings()
    store_config = settings.store_config()

    redis_client = await get_redis(store_config)
    publisher = build_publisher(store_config, redis_client)
    anchors = Anchors(
        start=Coordinate(settings.start_lat, settings.start_lon),
        end=Coordinate(settings.end_lat, settings.end_lon),
    )
    session = TrackingSession(
        agent_id=settings.agent_id,
        anchors=anchors,
        source=source,
        geocoder=build_geocoder(settings),
        routing=build_routing_client(settings),
        publisher=publisher,
        partial_route_updates=settings.route_partial_updates,
    )
    await session.start()
    logger.info(
        "tracking_module_ready",
        agent_id=settings.agent_id,
        semantics=store_config.semantics,
    )


@app.on_event("shutdown")
async def shutdown():
    if session is not None:
        await session.stop()
    if publisher is not None:
        await publisher.close()
    await close_redis()


def _not_ready() -> JSONResponse:
    return JSONResponse(status_code=503, content={"error": "Module not ready"})


# --- OwnTracks endpoint (called by the phone app) ---


@app.post("/pub")
async def owntracks_publish(request: Request):
    """Receive OwnTracks payloads and feed location samples to the tracker."""
    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(status_code=400, content={"error": "Invalid JSON"})

    if not isinstance(payload, dict):
        return JSONResponse(status_code=400, content={"error": "Expected a JSON object"})

    if payload.get("_type") == "location":
        try:
            coordinate = Coordinate(float(payload["lat"]), float(payload["lon"]))
        except (KeyError, TypeError, ValueError):
            return JSONResponse(status_code=400, content={"error": "lat and lon are required"})
        source.push(coordinate)
    else:
        logger.debug("owntracks_payload_ignored", type=payload.get("_type"))

    # OwnTracks expects a JSON array response
    return JSONResponse(content=[])


# --- Session control ---


@app.post("/tracking/start")
async def start_tracking():
    if session is None:
        return _not_ready()
    await session.start()
    return {"tracking": session.tracking}


@app.post("/tracking/stop")
async def stop_tracking():
    if session is None:
        return _not_ready()
    await session.stop()
    return {"tracking": session.tracking}


@app.get("/state", response_model=TrackingState)
async def state():
    if session is None:
        return _not_ready()
    return session.snapshot()


@app.post("/view/consume", response_model=Point | None)
async def consume_center():
    """One render cycle: return the pending center target, if any."""
    if session is None:
        return _not_ready()
    target = session.consume_center()
    return target.to_point() if target is not None else None


@app.post("/search", response_model=SearchResponse)
async def search(body: SearchRequest):
    if session is None:
        return _not_ready()
    results = await session.search(body.query)
    notice = None
    if body.query.strip() and not results:
        notice = not_found_message(body.query.strip())
    return SearchResponse(
        query=body.query,
        results=[
            SearchResultState(label=r.label, point=r.coordinate.to_point()) for r in results
        ],
        notice=notice,
    )


@app.get("/notices", response_model=list[Notice])
async def notices():
    if session is None:
        return _not_ready()
    return session.drain_notices()


# --- Observers of the shared store ---


@app.get("/locations/{agent_id}", response_model=PublishedLocation)
async def latest_location(agent_id: str):
    if publisher is None:
        return _not_ready()
    record = await publisher.store.latest(agent_id)
    if record is None:
        return JSONResponse(status_code=404, content={"error": f"No location for {agent_id}"})
    return record


@app.get("/locations/{agent_id}/history", response_model=list[PublishedLocation])
async def location_history(agent_id: str, count: int | None = Query(default=None, ge=1)):
    if publisher is None:
        return _not_ready()
    return await publisher.store.history(agent_id, count)


@app.get("/health", response_model=HealthResponse)
async def health():
    return HealthResponse(status="ok")

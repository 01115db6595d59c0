"""Shared test fixtures for the tracking module.

Provides an in-memory Redis stand-in, scripted routing and geocoding
collaborators and factory helpers, so tests run without network or Docker
infrastructure.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from modules.tracking.errors import GeocodingError, RouteError, SearchError
from modules.tracking.models import Anchors, Coordinate, SearchResult
from modules.tracking.publisher import LocationPublisher
from modules.tracking.session import TrackingSession
from modules.tracking.source import PositionSource
from modules.tracking.store import AppendStore, OverwriteStore

START = Coordinate(23.013487532235562, 72.50403242503077)
END = Coordinate(23.164423073637163, 72.8092796894774)


# ---------------------------------------------------------------------------
# Redis
# ---------------------------------------------------------------------------


class FakeRedis:
    """The slice of the redis.asyncio API used by the location stores."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.streams: dict[str, list[tuple[str, dict]]] = {}
        self.down = False
        self._seq = 0

    def _check(self):
        if self.down:
            raise RedisConnectionError("Connection refused")

    async def set(self, key, value):
        self._check()
        self.values[key] = value

    async def get(self, key):
        self._check()
        return self.values.get(key)

    async def xadd(self, key, fields):
        self._check()
        self._seq += 1
        entry_id = f"1700000000000-{self._seq}"
        self.streams.setdefault(key, []).append((entry_id, {k: str(v) for k, v in fields.items()}))
        return entry_id

    async def xrange(self, key):
        self._check()
        return list(self.streams.get(key, []))

    async def xrevrange(self, key, count=None):
        self._check()
        entries = list(reversed(self.streams.get(key, [])))
        return entries[:count] if count is not None else entries


@pytest.fixture
def fake_redis():
    return FakeRedis()


@pytest.fixture
def mock_redis():
    """Mock async Redis client with common operations."""
    redis = AsyncMock()
    redis.get = AsyncMock(return_value=None)
    redis.set = AsyncMock()
    redis.xadd = AsyncMock(return_value="1700000000000-0")
    redis.xrange = AsyncMock(return_value=[])
    redis.xrevrange = AsyncMock(return_value=[])
    return redis


# ---------------------------------------------------------------------------
# Routing / geocoding collaborators
# ---------------------------------------------------------------------------


class FakeRouting:
    """Routes as straight lines; legs can be failed or held open."""

    def __init__(self):
        self.calls: list[tuple[Coordinate, Coordinate]] = []
        self.failures: set[tuple[Coordinate, Coordinate]] = set()
        # coordinate → event that must be set before legs touching it resolve
        self.holds: dict[Coordinate, asyncio.Event] = {}

    def fail(self, origin: Coordinate, destination: Coordinate) -> None:
        self.failures.add((origin, destination))

    def hold(self, coordinate: Coordinate) -> asyncio.Event:
        event = asyncio.Event()
        self.holds[coordinate] = event
        return event

    async def route(self, origin: Coordinate, destination: Coordinate) -> list[Coordinate]:
        self.calls.append((origin, destination))
        for coordinate, event in list(self.holds.items()):
            if coordinate in (origin, destination):
                await event.wait()
        if (origin, destination) in self.failures:
            raise RouteError(f"No route {origin} -> {destination}")
        if origin == destination:
            return [origin]
        middle = Coordinate((origin.lat + destination.lat) / 2, (origin.lon + destination.lon) / 2)
        return [origin, middle, destination]


class FakeGeocoder:
    """Labels every coordinate; searches answer from a table."""

    def __init__(self):
        self.unknown: set[Coordinate] = set()
        self.search_table: dict[str, list[SearchResult]] = {}
        self.search_down = False
        self.reverse_calls: list[Coordinate] = []

    async def reverse_geocode(self, coordinate: Coordinate) -> str:
        self.reverse_calls.append(coordinate)
        if coordinate in self.unknown:
            raise GeocodingError(f"No address found for {coordinate}")
        return f"Place at {coordinate}"

    async def search(self, query: str, limit: int = 5) -> list[SearchResult]:
        if self.search_down:
            raise SearchError(f"Search failed for '{query}'")
        return self.search_table.get(query, [])


@pytest.fixture
def anchors():
    return Anchors(start=START, end=END)


@pytest.fixture
def routing():
    return FakeRouting()


@pytest.fixture
def geocoder():
    return FakeGeocoder()


@pytest.fixture
def source():
    return PositionSource()


# ---------------------------------------------------------------------------
# Publisher / session factories
# ---------------------------------------------------------------------------


@pytest.fixture
async def append_publisher(fake_redis):
    publisher = LocationPublisher(AppendStore(fake_redis))
    yield publisher
    await publisher.close()


@pytest.fixture
async def overwrite_publisher(fake_redis):
    publisher = LocationPublisher(OverwriteStore(fake_redis))
    yield publisher
    await publisher.close()


@pytest.fixture
async def make_session(anchors, source, geocoder, routing, fake_redis):
    """Factory for TrackingSession instances wired to the fakes."""
    created: list[TrackingSession] = []

    def _make(
        agent_id: str = "courier-7",
        semantics: str = "append",
        partial_route_updates: bool = False,
    ) -> TrackingSession:
        store = AppendStore(fake_redis) if semantics == "append" else OverwriteStore(fake_redis)
        session = TrackingSession(
            agent_id=agent_id,
            anchors=anchors,
            source=source,
            geocoder=geocoder,
            routing=routing,
            publisher=LocationPublisher(store),
            partial_route_updates=partial_route_updates,
        )
        created.append(session)
        return session

    yield _make

    for session in created:
        await session.stop()
        await session.publisher.close()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def mock_http_client(mock_client_cls, *, json_data=None, side_effect=None):
    """Wire a patched ``httpx.AsyncClient`` class to return ``json_data``.

    Usage::

        with patch("modules.tracking.routing.httpx.AsyncClient") as cls:
            client = mock_http_client(cls, json_data=OSRM_ROUTE_RESPONSE)
    """
    mock_client = AsyncMock()
    if side_effect is not None:
        mock_client.get.side_effect = side_effect
    else:
        mock_resp = MagicMock()
        mock_resp.status_code = 200
        mock_resp.json.return_value = json_data
        mock_resp.raise_for_status = MagicMock()
        mock_client.get.return_value = mock_resp
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    mock_client_cls.return_value = mock_client
    return mock_client

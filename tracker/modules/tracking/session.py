"""Tracking session: wires the pipeline for one agent.

Position source -> deduplicator -> {route segmentation, publisher, view
centering}, plus reverse-geocoded labels for the start, end and current points
and the location search that competes for the view center.
"""

from __future__ import annotations

import asyncio
from collections import deque
from collections.abc import Callable, Coroutine

import structlog

from modules.tracking.dedup import PositionDeduplicator
from modules.tracking.errors import GeocodingError, SearchError, SourceError
from modules.tracking.geocoding import Geocoder
from modules.tracking.models import Anchors, Coordinate, SearchResult, TrackedPosition
from modules.tracking.publisher import LocationPublisher
from modules.tracking.routing import RoutingClient
from modules.tracking.segments import RouteSegmentationEngine
from modules.tracking.source import PositionSource, Subscription
from modules.tracking.view_center import ViewCenterController
from shared.schemas.notifications import Notice
from shared.schemas.tracking import (
    CenterState,
    LabelledPoint,
    SearchResultState,
    SegmentState,
    TrackingState,
)

logger = structlog.get_logger()

LOCATION_UNAVAILABLE = "Couldn't get your location"
MAX_NOTICES = 50


def not_found_message(query: str) -> str:
    return f"This map can't find {query}"


class TrackingSession:
    """Runs the tracking pipeline for a single agent identifier."""

    def __init__(
        self,
        agent_id: str,
        anchors: Anchors,
        source: PositionSource,
        geocoder: Geocoder,
        routing: RoutingClient,
        publisher: LocationPublisher,
        partial_route_updates: bool = False,
    ):
        self.agent_id = agent_id
        self.anchors = anchors
        self.source = source
        self.geocoder = geocoder
        self.publisher = publisher

        self.dedup = PositionDeduplicator()
        self.engine = RouteSegmentationEngine(anchors, routing, partial_route_updates)
        self.view = ViewCenterController()

        self.current: TrackedPosition | None = None
        self.labels: dict[str, str | None] = {"start": None, "end": None, "current": None}
        self.search_results: list[SearchResult] = []
        self.notices: deque[Notice] = deque(maxlen=MAX_NOTICES)

        self._subscription: Subscription | None = None
        self._consumer: asyncio.Task | None = None
        self._tasks: set[asyncio.Task] = set()
        self._sequence = 0

    @property
    def tracking(self) -> bool:
        return self._subscription is not None and self._subscription.active

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to the position source. A no-op while already tracking."""
        if self.tracking:
            return
        if self._consumer is not None:
            await self._consumer

        self.dedup.reset()
        self._subscription = self.source.subscribe()
        self._consumer = asyncio.create_task(self._consume(self._subscription))

        for name in ("start", "end"):
            if self.labels[name] is None:
                self._spawn(self._resolve_label(name, getattr(self.anchors, name)))

        logger.info("tracking_started", agent_id=self.agent_id)

    async def stop(self) -> None:
        """Unsubscribe. Requests already in flight finish on their own."""
        if self._subscription is not None:
            self.source.unsubscribe(self._subscription)
        if self._consumer is not None:
            await self._consumer
            self._consumer = None
        logger.info("tracking_stopped", agent_id=self.agent_id)

    async def settle(self) -> None:
        """Wait for in-flight lookups, route recomputes and queued publishes."""
        while self.tracking and self._subscription.backlog:
            await asyncio.sleep(0)
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.publisher.drain()

    # ------------------------------------------------------------------
    # Position stream
    # ------------------------------------------------------------------

    async def _consume(self, subscription: Subscription) -> None:
        try:
            async for coordinate in self.dedup.filter(subscription):
                self._on_position(coordinate)
        except SourceError as e:
            logger.warning("position_source_error", agent_id=self.agent_id, error=str(e))
            self._notify(LOCATION_UNAVAILABLE)

    def _on_position(self, coordinate: Coordinate) -> None:
        """React to a distinct position, all within one event-loop turn."""
        self._sequence += 1
        self.current = TrackedPosition(coordinate, self._sequence)
        self.labels["current"] = None
        logger.info(
            "position_accepted",
            agent_id=self.agent_id,
            sequence=self._sequence,
            lat=coordinate.lat,
            lon=coordinate.lon,
        )

        self._spawn(self.engine.recompute(coordinate))
        self.publisher.submit(self.agent_id, coordinate)
        self.view.request_center(coordinate, "tracking")
        self._spawn(self._resolve_label("current", coordinate))

    async def _resolve_label(self, name: str, coordinate: Coordinate) -> None:
        try:
            label = await self.geocoder.reverse_geocode(coordinate)
        except GeocodingError as e:
            logger.warning("reverse_geocode_failed", point=name, error=str(e))
            return

        # A newer position owns the current label
        if name == "current" and (self.current is None or self.current.coordinate != coordinate):
            return
        self.labels[name] = label

    # ------------------------------------------------------------------
    # Search and view
    # ------------------------------------------------------------------

    async def search(self, query: str) -> list[SearchResult]:
        """Search for a place and center the view on the best match."""
        query = query.strip()
        if not query:
            return []

        try:
            results = await self.geocoder.search(query)
        except SearchError as e:
            logger.warning("location_search_failed", query=query, error=str(e))
            results = []

        self.search_results = results
        if not results:
            self._notify(not_found_message(query))
            return []

        self.view.request_center(results[0].coordinate, "search")
        logger.info("location_search_matched", query=query, results=len(results))
        return results

    def consume_center(
        self, apply: Callable[[Coordinate], None] | None = None
    ) -> Coordinate | None:
        """Run one render cycle of the view-centering state machine."""
        return self.view.consume(apply)

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    def drain_notices(self) -> list[Notice]:
        notices = list(self.notices)
        self.notices.clear()
        return notices

    def snapshot(self) -> TrackingState:
        pair = self.engine.segments
        current = None
        if self.current is not None:
            current = LabelledPoint(
                point=self.current.coordinate.to_point(), label=self.labels["current"]
            )
        return TrackingState(
            agent_id=self.agent_id,
            tracking=self.tracking,
            start=LabelledPoint(point=self.anchors.start.to_point(), label=self.labels["start"]),
            end=LabelledPoint(point=self.anchors.end.to_point(), label=self.labels["end"]),
            current=current,
            completed=SegmentState(
                role=pair.completed.role.value,
                points=[c.to_point() for c in pair.completed.points],
            ),
            remaining=SegmentState(
                role=pair.remaining.role.value,
                points=[c.to_point() for c in pair.remaining.points],
            ),
            center=CenterState(
                pending=self.view.pending,
                target=self.view.target.to_point() if self.view.target else None,
                source=self.view.source,
            ),
            search_results=[
                SearchResultState(label=r.label, point=r.coordinate.to_point())
                for r in self.search_results
            ],
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _notify(self, content: str) -> None:
        self.notices.append(Notice(content=content))

    def _spawn(self, coro: Coroutine) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("session_task_failed", agent_id=self.agent_id, error=str(exc))

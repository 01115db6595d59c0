"""Route segmentation: split the route at the current position.

Every distinct position spawns a recompute that routes start -> current and
current -> end concurrently. Recomputes can overlap and finish in any order,
so each one carries a generation number; a result is only committed if no
newer recompute has been requested since it started.
"""

from __future__ import annotations

import asyncio

import structlog

from modules.tracking.errors import RouteError
from modules.tracking.models import Anchors, Coordinate, RouteSegment, SegmentPair, SegmentRole
from modules.tracking.routing import RoutingClient

logger = structlog.get_logger()


class RouteSegmentationEngine:
    """Owns the completed and remaining route segments."""

    def __init__(
        self,
        anchors: Anchors,
        routing: RoutingClient,
        partial_updates: bool = False,
    ):
        self.anchors = anchors
        self.routing = routing
        # When False a leg is only committed together with its sibling
        self.partial_updates = partial_updates

        self.completed = RouteSegment(SegmentRole.COMPLETED)
        self.remaining = RouteSegment(SegmentRole.REMAINING)
        self.generation = 0  # last committed
        self._requested = 0  # last issued

    @property
    def segments(self) -> SegmentPair:
        return SegmentPair(self.completed, self.remaining, self.generation)

    async def recompute(self, current: Coordinate) -> SegmentPair | None:
        """Re-derive both segments for ``current``.

        Returns the committed pair, or None when nothing was committed (a leg
        failed, or a newer position superseded this one).
        """
        self._requested += 1
        generation = self._requested

        completed_leg, remaining_leg = await asyncio.gather(
            self.routing.route(self.anchors.start, current),
            self.routing.route(current, self.anchors.end),
            return_exceptions=True,
        )
        for leg in (completed_leg, remaining_leg):
            if isinstance(leg, BaseException) and not isinstance(leg, RouteError):
                raise leg

        if generation != self._requested:
            logger.info(
                "route_result_stale",
                generation=generation,
                latest=self._requested,
                lat=current.lat,
                lon=current.lon,
            )
            return None

        failed = [
            role.value
            for role, leg in (
                (SegmentRole.COMPLETED, completed_leg),
                (SegmentRole.REMAINING, remaining_leg),
            )
            if isinstance(leg, RouteError)
        ]
        if failed:
            logger.warning(
                "route_recompute_failed",
                failed_legs=failed,
                errors=[str(leg) for leg in (completed_leg, remaining_leg) if isinstance(leg, RouteError)],
                lat=current.lat,
                lon=current.lon,
            )
            if not self.partial_updates or len(failed) == 2:
                return None

        if not isinstance(completed_leg, RouteError):
            self.completed = RouteSegment(SegmentRole.COMPLETED, tuple(completed_leg), current)
        if not isinstance(remaining_leg, RouteError):
            self.remaining = RouteSegment(SegmentRole.REMAINING, tuple(remaining_leg), current)
        self.generation = generation

        logger.debug(
            "route_segments_updated",
            generation=generation,
            completed_points=len(self.completed),
            remaining_points=len(self.remaining),
        )
        return self.segments

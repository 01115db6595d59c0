"""Position deduplication: collapse repeated samples into distinct events."""

from __future__ import annotations

from collections.abc import AsyncIterable, AsyncIterator

import structlog

from modules.tracking.models import Coordinate

logger = structlog.get_logger()


class PositionDeduplicator:
    """Pass a coordinate through only when it differs from the last one accepted.

    Comparison is exact on latitude and longitude. The last-accepted value is
    updated before the caller dispatches, so a burst of duplicates yields one
    emission however slow the downstream work is.
    """

    def __init__(self) -> None:
        self.last_accepted: Coordinate | None = None
        self.accepted_count = 0
        self.dropped_count = 0

    def accept(self, coordinate: Coordinate) -> bool:
        if coordinate == self.last_accepted:
            self.dropped_count += 1
            return False
        self.last_accepted = coordinate
        self.accepted_count += 1
        return True

    def reset(self) -> None:
        self.last_accepted = None

    async def filter(self, samples: AsyncIterable[Coordinate]) -> AsyncIterator[Coordinate]:
        """Yield only the distinct coordinates of ``samples``.

        Errors raised by ``samples`` (e.g. ``SourceError``) propagate to the
        caller and end this iteration.
        """
        async for coordinate in samples:
            if self.accept(coordinate):
                yield coordinate
            else:
                logger.debug("position_duplicate", lat=coordinate.lat, lon=coordinate.lon)

"""Value types shared across the tracking pipeline."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime, timezone

from shared.schemas.common import Point


@dataclass(frozen=True)
class Coordinate:
    """A position in degrees. Equality is exact on both fields."""

    lat: float
    lon: float

    @classmethod
    def parse(cls, text: str) -> Coordinate:
        """Parse ``"lat,lon"``."""
        lat, lon = text.split(",", 1)
        return cls(float(lat), float(lon))

    def to_point(self) -> Point:
        return Point(lat=self.lat, lon=self.lon)

    def __str__(self) -> str:
        return f"{self.lat},{self.lon}"


@dataclass(frozen=True)
class Anchors:
    """The fixed start and end of the tracked route."""

    start: Coordinate
    end: Coordinate


@dataclass(frozen=True)
class TrackedPosition:
    """A distinct position accepted from the stream.

    ``sequence`` is the arrival order within the session.
    """

    coordinate: Coordinate
    sequence: int
    received_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SegmentRole(str, enum.Enum):
    COMPLETED = "completed"
    REMAINING = "remaining"


@dataclass(frozen=True)
class RouteSegment:
    """A route polyline. Replaced wholesale, never mutated."""

    role: SegmentRole
    points: tuple[Coordinate, ...] = ()
    # The current position this segment was derived from
    origin: Coordinate | None = None

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class SegmentPair:
    """The completed and remaining segments for one current position."""

    completed: RouteSegment
    remaining: RouteSegment
    generation: int = 0


@dataclass(frozen=True)
class SearchResult:
    """A location-search match."""

    label: str
    coordinate: Coordinate

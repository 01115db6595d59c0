"""Pydantic schemas for the tracker services."""

from shared.schemas.common import HealthResponse, Point
from shared.schemas.notifications import Notice
from shared.schemas.tracking import (
    CenterState,
    LabelledPoint,
    PublishedLocation,
    SearchRequest,
    SearchResponse,
    SearchResultState,
    SegmentState,
    TrackingState,
)

__all__ = [
    "CenterState",
    "HealthResponse",
    "LabelledPoint",
    "Notice",
    "Point",
    "PublishedLocation",
    "SearchRequest",
    "SearchResponse",
    "SearchResultState",
    "SegmentState",
    "TrackingState",
]

"""Schemas for tracking state, published locations and search."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from shared.schemas.common import Point


class PublishedLocation(BaseModel):
    """A position record as written to the shared location store."""

    agent_id: str
    lat: float
    lon: float
    published_at: datetime
    entry_id: str | None = None  # stream entry id, append semantics only


class SegmentState(BaseModel):
    """One route polyline as seen by observers."""

    role: str  # "completed" | "remaining"
    points: list[Point]


class CenterState(BaseModel):
    """The view-centering request, if one is pending."""

    pending: bool
    target: Point | None = None
    source: str | None = None


class LabelledPoint(BaseModel):
    """A point of interest with its reverse-geocoded label."""

    point: Point
    label: str | None = None


class SearchResultState(BaseModel):
    label: str
    point: Point


class TrackingState(BaseModel):
    """Snapshot of a tracking session."""

    agent_id: str
    tracking: bool
    start: LabelledPoint
    end: LabelledPoint
    current: LabelledPoint | None = None
    completed: SegmentState
    remaining: SegmentState
    center: CenterState
    search_results: list[SearchResultState] = []


class SearchRequest(BaseModel):
    query: str


class SearchResponse(BaseModel):
    query: str
    results: list[SearchResultState]
    notice: str | None = None

"""Error taxonomy for the tracking pipeline.

Every error here is recovered at a component boundary; none of them is allowed
to end a tracking session.
"""

from __future__ import annotations


class TrackingError(Exception):
    """Base class for tracking pipeline errors."""


class SourceError(TrackingError):
    """The position stream is unavailable or permission was denied."""


class GeocodingError(TrackingError, LookupError):
    """Reverse geocoding found no match or the service could not be reached."""


class RouteError(TrackingError):
    """The routing service returned no path or could not be reached."""


class PublishError(TrackingError):
    """A write to the shared location store failed."""


class SearchError(TrackingError):
    """A location search failed."""

"""Test fixtures and mock data for tracking module tests."""

from __future__ import annotations

NOMINATIM_REVERSE_RESPONSE = {
    "place_id": 1234,
    "lat": "23.0134875",
    "lon": "72.5040324",
    "display_name": "Satellite Road, Ahmedabad, Gujarat, 380015, India",
}

NOMINATIM_REVERSE_NOT_FOUND = {"error": "Unable to geocode"}

NOMINATIM_SEARCH_RESPONSE = [
    {
        "place_id": 1,
        "lat": "23.0225",
        "lon": "72.5714",
        "display_name": "Ahmedabad, Gujarat, India",
    },
    {
        "place_id": 2,
        "lat": "23.0300",
        "lon": "72.5800",
        "display_name": "Ahmedabad Railway Station, Gujarat, India",
    },
]

ORS_REVERSE_RESPONSE = {
    "type": "FeatureCollection",
    "features": [
        {
            "type": "Feature",
            "properties": {"label": "Sabarmati Riverfront, Ahmedabad, GJ, India"},
        }
    ],
}

# Coordinates are (lon, lat), as OSRM returns them
OSRM_ROUTE_RESPONSE = {
    "code": "Ok",
    "routes": [
        {
            "geometry": {
                "type": "LineString",
                "coordinates": [
                    [72.504032, 23.013487],
                    [72.507, 23.0145],
                    [72.51, 23.01],
                ],
            },
            "distance": 1234.5,
            "duration": 180.2,
        }
    ],
    "waypoints": [],
}

OSRM_NO_ROUTE_RESPONSE = {"code": "NoRoute", "message": "Impossible route between points"}

OSRM_EMPTY_ROUTES_RESPONSE = {"code": "Ok", "routes": []}

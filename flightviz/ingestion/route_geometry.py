"""
Route geometry ingestion.

Normalizes the route service's GeoJSON response into typed waypoints.

Expected input:
    {
        "type": "FeatureCollection",
        "features": [
            {"type": "Feature",
             "geometry": {"type": "Point", "coordinates": [lon, lat]},
             "properties": {"time": "2024-06-15T12:00:00Z",
                            "style": {...}, "popup": "KJFK", ...}},
            ...
            {"type": "Feature",
             "geometry": {"type": "LineString", "coordinates": [[lon, lat], ...]},
             "properties": {...}}
        ],
        "properties": {"storm_detected": true, "risk_level": "medium", ...}
    }

Structural problems (wrong type, no features) raise InvalidGeometryError
before anything else happens. Individual malformed features are dropped.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from flightviz.errors import InvalidGeometryError

logger = logging.getLogger(__name__)

DEFAULT_ICON_SIZE = (28, 28)


class WaypointRole(str, Enum):
    """Position of a waypoint within the route."""
    DEPARTURE = 'departure'
    WAYPOINT = 'waypoint'
    DESTINATION = 'destination'


@dataclass
class RouteWaypoint:
    """A timestamped point along the route with rendering metadata."""
    coordinates: Tuple[float, float]  # (lon, lat)
    timestamp: datetime
    style: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)
    role: WaypointRole = WaypointRole.WAYPOINT

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]

    @property
    def label(self) -> str:
        return str(self.metadata.get('popup') or self.metadata.get('name') or '')

    @property
    def is_airport(self) -> bool:
        return self.role != WaypointRole.WAYPOINT

    @property
    def icon_size(self) -> Tuple[float, float]:
        """(width, height) from style.iconSize, or the default when it is not two positive numbers."""
        size = self.style.get('iconSize')
        if isinstance(size, (list, tuple)) and len(size) == 2:
            if all(
                isinstance(v, (int, float)) and not isinstance(v, bool) and math.isfinite(v) and v > 0
                for v in size
            ):
                return (size[0], size[1])
        return DEFAULT_ICON_SIZE


@dataclass
class RouteGeometry:
    """Parsed route response: ordered waypoints, filed route, risk summary."""
    waypoints: List[RouteWaypoint]
    filed_route: Optional[List[Tuple[float, float]]] = None
    summary: Dict[str, Any] = field(default_factory=dict)
    dropped: int = 0

    @property
    def departure(self) -> Optional[RouteWaypoint]:
        return self.waypoints[0] if self.waypoints else None

    @property
    def destination(self) -> Optional[RouteWaypoint]:
        return self.waypoints[-1] if self.waypoints else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (Z suffix allowed) into an aware UTC datetime."""
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
        except ValueError:
            return None
    else:
        return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_coordinate(value: Any) -> Optional[Tuple[float, float]]:
    """Return (lon, lat) if value holds two finite numbers, else None."""
    if not isinstance(value, (list, tuple)) or len(value) < 2:
        return None
    lon, lat = value[0], value[1]
    # bool is an int subclass; reject it explicitly
    for v in (lon, lat):
        if isinstance(v, bool) or not isinstance(v, (int, float)):
            return None
    if not (math.isfinite(lon) and math.isfinite(lat)):
        return None
    return (float(lon), float(lat))


def _waypoint_from_feature(feature: Dict[str, Any], geometry: Dict[str, Any]) -> Optional[RouteWaypoint]:
    coordinates = parse_coordinate(geometry.get('coordinates'))
    if coordinates is None:
        return None

    properties = feature.get('properties')
    if not isinstance(properties, dict):
        return None

    timestamp = parse_timestamp(properties.get('time'))
    if timestamp is None:
        return None

    style = properties.get('style')
    return RouteWaypoint(
        coordinates=coordinates,
        timestamp=timestamp,
        style=style if isinstance(style, dict) else {},
        metadata=dict(properties),
    )


def parse_route_geometry(data: Any) -> RouteGeometry:
    """
    Validate a route response and extract its waypoints.

    Raises:
        InvalidGeometryError if the response is not a non-empty FeatureCollection.
    """
    if not isinstance(data, dict) or data.get('type') != 'FeatureCollection':
        raise InvalidGeometryError('route response is not a FeatureCollection')

    features = data.get('features')
    if not isinstance(features, list) or not features:
        raise InvalidGeometryError('route response has no features')

    waypoints: List[RouteWaypoint] = []
    filed_route = None
    dropped = 0

    for feature in features:
        geometry = feature.get('geometry') if isinstance(feature, dict) else None
        if not isinstance(geometry, dict):
            dropped += 1
            continue
        geometry_type = geometry.get('type')

        if geometry_type == 'Point':
            waypoint = _waypoint_from_feature(feature, geometry)
            if waypoint is None:
                dropped += 1
                continue
            waypoints.append(waypoint)

        elif geometry_type == 'LineString' and filed_route is None:
            line = geometry.get('coordinates')
            if not isinstance(line, list):
                dropped += 1
                continue
            coords = [parse_coordinate(c) for c in line]
            filed_route = [c for c in coords if c is not None] or None

    if dropped:
        logger.warning(f'Dropped {dropped} malformed route feature(s)')

    # Stable sort keeps feature order for equal timestamps
    waypoints.sort(key=lambda w: w.timestamp)

    if waypoints:
        waypoints[0].role = WaypointRole.DEPARTURE
        if len(waypoints) > 1:
            waypoints[-1].role = WaypointRole.DESTINATION

    summary = data.get('properties')

    return RouteGeometry(
        waypoints=waypoints,
        filed_route=filed_route,
        summary=dict(summary) if isinstance(summary, dict) else {},
        dropped=dropped,
    )

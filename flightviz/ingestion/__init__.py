"""
Data ingestion module for FlightViz.

Turns raw upstream inputs into typed structures: ICAO flight-plan text,
route GeoJSON responses, and storm cell snapshots.
"""

from flightviz.ingestion.fpl_parser import FlightPlanRecord, ParseFailure, parse_flight_plan
from flightviz.ingestion.route_geometry import (
    RouteGeometry,
    RouteWaypoint,
    WaypointRole,
    parse_route_geometry,
)
from flightviz.ingestion.weather_feed import WeatherFeed

__all__ = [
    'FlightPlanRecord',
    'ParseFailure',
    'parse_flight_plan',
    'RouteGeometry',
    'RouteWaypoint',
    'WaypointRole',
    'parse_route_geometry',
    'WeatherFeed',
]

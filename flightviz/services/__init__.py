"""
External integration services.

Handles third-party API calls (airport risk, route computation) with
timeouts, caching, and errors the caller can recover from.
"""

from flightviz.services.airport_risk import AirportRiskLookup, RiskSnapshot
from flightviz.services.route_service import RouteService

__all__ = ['AirportRiskLookup', 'RiskSnapshot', 'RouteService']

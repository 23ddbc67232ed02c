"""
Exception hierarchy for FlightViz.

Structural input problems (bad route geometry) and upstream failures the
caller must report (airport risk, route service) are raised as these.
Storm feed problems never raise; they degrade to an empty weather layer.
"""


class FlightVizError(Exception):
    """Base class for all FlightViz errors."""


class InvalidGeometryError(FlightVizError):
    """Route geometry response is not a usable FeatureCollection."""


class AirportRiskError(FlightVizError):
    """Airport risk lookup failed (network, HTTP status, or payload)."""

    def __init__(self, icao: str, message: str):
        super().__init__(f'{icao}: {message}')
        self.icao = icao


class RouteServiceError(FlightVizError):
    """Upstream route service could not produce a route geometry."""

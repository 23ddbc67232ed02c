"""
Visualization orchestrator.

Composes the playback controller, storm weather layer and airport risk
lookup into one state machine:

    IDLE -> LOADING -> READY
                    -> ERROR

- LOADING validates the route geometry before touching anything. Invalid
  geometry (not a FeatureCollection, no features, no valid waypoints)
  moves to ERROR and leaves the current scene exactly as it was.
- A successful load tears the previous route down first, in order:
  stop the clock, reset the storm cache, clear the weather layer, forget
  airport markers, clear the scene. Only then is the new track built.
  Resetting the cache bumps its epoch, so storm fetches still in flight
  for the previous route can never land in the new scene.
- If building the new route fails after teardown, the scene is cleared
  again and the state moves to ERROR. LOADING is never left behind.
- A flight plan that fails to parse is not fatal: playback starts from
  the current time instead of the planned departure.
"""

import logging
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from flightviz.cache import WeatherCache
from flightviz.errors import InvalidGeometryError, RouteServiceError
from flightviz.ingestion.fpl_parser import FlightPlanRecord, ParseFailure, parse_flight_plan
from flightviz.ingestion.route_geometry import RouteGeometry, parse_route_geometry
from flightviz.playback.clock import ClockRange
from flightviz.playback.controller import ROUTE_LAYER, RoutePlaybackController
from flightviz.scene.graph import EntityKind, InMemoryScene, SceneEntity, SceneGraph
from flightviz.scene.layers import WeatherLayerManager
from flightviz.services.airport_risk import AirportRiskLookup
from flightviz.services.route_service import RouteService

logger = logging.getLogger(__name__)


class VisualizationState(str, Enum):
    IDLE = 'idle'
    LOADING = 'loading'
    READY = 'ready'
    ERROR = 'error'


@dataclass
class RiskPanel:
    """Dismissible risk-detail panel fed by airport picks."""
    icao: str
    status: str = 'loading'  # loading | ready | error
    snapshot: Optional[Any] = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            'icao': self.icao,
            'status': self.status,
            'data': self.snapshot.to_dict() if self.snapshot else None,
            'error': self.error,
        }


class VisualizationOrchestrator:
    """
    Entry point for visualizing one route at a time.

    All collaborators are injectable; defaults are built from config.
    """

    def __init__(
        self,
        scene: Optional[SceneGraph] = None,
        cache: Optional[WeatherCache] = None,
        risk_lookup: Optional[AirportRiskLookup] = None,
        route_service: Optional[RouteService] = None,
        rng=None,
        multiplier: Optional[float] = None,
        clock_range: ClockRange = ClockRange.CLAMPED,
    ):
        self.scene = scene if scene is not None else InMemoryScene()
        self.cache = cache or WeatherCache()
        self.risk_lookup = risk_lookup or AirportRiskLookup()
        self.route_service = route_service

        self.layers = WeatherLayerManager(self.scene, self.cache, rng=rng)
        self.controller = RoutePlaybackController(
            self.scene,
            risk_lookup=self.risk_lookup,
            multiplier=multiplier,
            clock_range=clock_range,
        )
        self.controller.on_tick(self.layers.sync)

        self.state = VisualizationState.IDLE
        self.error: Optional[str] = None
        self.flight_plan: Optional[FlightPlanRecord] = None
        self.parse_failure: Optional[ParseFailure] = None
        self.route: Optional[RouteGeometry] = None
        self.risk_panel: Optional[RiskPanel] = None

        self._lock = threading.RLock()

    @property
    def is_busy(self) -> bool:
        return self.state == VisualizationState.LOADING

    def _set_state(self, state: VisualizationState) -> None:
        if state != self.state:
            logger.info(f'Visualization state {self.state.value} -> {state.value}')
        self.state = state

    def _fail(self, message: str) -> VisualizationState:
        logger.warning(f'Route rejected: {message}')
        self.error = message
        self._set_state(VisualizationState.ERROR)
        return self.state

    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------

    def visualize(
        self,
        fpl_text: str,
        route_response: Any,
        now: Optional[datetime] = None,
    ) -> VisualizationState:
        """
        Load a route and start playback.

        Args:
            fpl_text: Originating ICAO flight plan
            route_response: Route GeoJSON FeatureCollection
            now: Reference time for plans without DOF and for the parse
                failure fallback (defaults to current UTC)

        Returns:
            READY on success, ERROR if the geometry was rejected or could
            not be rendered.
        """
        with self._lock:
            self._set_state(VisualizationState.LOADING)
            self.error = None

            try:
                route = parse_route_geometry(route_response)
            except InvalidGeometryError as e:
                return self._fail(str(e))

            if not route.waypoints:
                return self._fail('route has no valid waypoints')

            now = now or datetime.now(timezone.utc)
            parsed = parse_flight_plan(fpl_text, now=now)
            if isinstance(parsed, ParseFailure):
                logger.warning(f'Flight plan not parsed ({parsed.reason}), playing from current time')
                record, departure_time = None, now
            else:
                record, departure_time = parsed, parsed.departure_time

            self._teardown()

            try:
                self._build(route, record, departure_time)
            except Exception as e:
                logger.exception('Route rendering failed')
                # Leave an empty scene rather than a half-built one
                self._teardown()
                self.flight_plan = None
                self.parse_failure = None
                self.route = None
                return self._fail(f'route could not be rendered: {e}')

            self.flight_plan = record
            self.parse_failure = parsed if record is None else None
            self.route = route
            self._set_state(VisualizationState.READY)

        # Seed the weather layer for the start bucket
        self.controller.tick(0)
        return self.state

    def _build(
        self,
        route: RouteGeometry,
        record: Optional[FlightPlanRecord],
        departure_time: datetime,
    ) -> None:
        airport_ids = (record.departure_id, record.destination_id) if record else (None, None)
        self.controller.build_track(route.waypoints, departure_time, airport_ids=airport_ids)

        if route.filed_route:
            self.controller.add_static_entity(SceneEntity(
                kind=EntityKind.POLYLINE,
                layer=ROUTE_LAYER,
                properties={
                    'positions': [[lon, lat, 0.0] for lon, lat in route.filed_route],
                    'width': 2,
                    'material': {'rgba': [255, 255, 255, 160]},
                    'clamp_to_ground': True,
                },
                tags={'route': 'filed'},
            ))

    def visualize_flight_plan(self, fpl_text: str, now: Optional[datetime] = None) -> VisualizationState:
        """
        Fetch the route for a flight plan from the route service, then visualize it.

        Raises:
            RouteServiceError after moving to ERROR if the route could not be fetched.
        """
        if self.route_service is None:
            raise RuntimeError('no route service configured')

        with self._lock:
            self._set_state(VisualizationState.LOADING)
            self.error = None

        try:
            route_response = self.route_service.fetch_route(fpl_text)
        except RouteServiceError as e:
            with self._lock:
                self._fail(str(e))
            raise

        return self.visualize(fpl_text, route_response, now=now)

    def _teardown(self) -> None:
        """Remove every trace of the current route."""
        self.controller.teardown()
        self.cache.reset()
        self.layers.reset()
        self.risk_lookup.clear()
        self.scene.clear()
        self.risk_panel = None

    def reset(self) -> None:
        """Tear everything down and return to IDLE."""
        with self._lock:
            self._teardown()
            self.flight_plan = None
            self.parse_failure = None
            self.route = None
            self.error = None
            self._set_state(VisualizationState.IDLE)

    # -------------------------------------------------------------------------
    # Playback and picking
    # -------------------------------------------------------------------------

    def tick(self, wall_seconds: float) -> Optional[datetime]:
        """Apply storm fetches that finished since the last tick, then advance playback."""
        self.layers.apply_resolved()
        return self.controller.tick(wall_seconds)

    def wait_for_weather(self, timeout: Optional[float] = None) -> bool:
        """Block until in-flight storm fetches resolve and apply them."""
        return self.layers.wait(timeout)

    def pick(self, handle: str) -> Optional[Future]:
        """
        Handle a pick on a scene entity.

        Airport markers start a risk lookup and open the risk panel;
        anything else is ignored (returns None).
        """
        future = self.risk_lookup.on_pick(handle)
        if future is None:
            return None

        panel = RiskPanel(icao=self.risk_lookup.identifier_for(handle))
        self.risk_panel = panel

        def _resolved(done: Future) -> None:
            error = done.exception()
            if error is not None:
                logger.warning(f'Risk lookup failed: {error}')
                panel.status, panel.error = 'error', str(error)
            else:
                panel.status, panel.snapshot = 'ready', done.result()

        future.add_done_callback(_resolved)
        return future

    def dismiss_risk_panel(self) -> None:
        self.risk_panel = None

    def status(self) -> dict:
        """Current state for the UI: busy flag, clock, aircraft, weather."""
        clock = self.controller.clock
        return {
            'state': self.state.value,
            'busy': self.is_busy,
            'error': self.error,
            'flight_plan': self.flight_plan.to_dict() if self.flight_plan else None,
            'parse_error': self.parse_failure.reason if self.parse_failure else None,
            'clock': clock.to_dict() if clock else None,
            'aircraft': self.controller.aircraft_state(),
            'weather': {
                'active_bucket': self.layers.active_bucket,
                'applied_bucket': self.layers.applied_bucket,
                'entities': len(self.layers.handles),
                'cache': self.cache.stats,
            },
            'summary': self.route.summary if self.route else {},
            'risk_panel': self.risk_panel.to_dict() if self.risk_panel else None,
        }

    def shutdown(self) -> None:
        """Stop background work and release worker pools."""
        self.controller.stop()
        self.cache.shutdown()
        self.risk_lookup.shutdown()

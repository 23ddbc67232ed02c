"""
Route playback controller.

Owns the simulation clock and the aircraft's track:
1. Build: turn ordered waypoints into a FlightTrack and clock bounds
2. Render: airport markers, waypoint markers, flown-route line, aircraft
3. Tick: advance the clock and notify tick listeners with simulated time

Clock bounds: start is the departure time (or the first waypoint if that
is earlier), stop is the last waypoint. The default range is clamped and
the default multiplier is 30x.

Tick listeners run on the ticking thread and must not block. The weather
layer's sync() is the main listener.

Can run as a background thread for continuous playback, in the same way
the ingestion loop polls.
"""

import logging
import threading
import time
from datetime import datetime
from typing import Callable, List, Optional, Sequence, Tuple

from flightviz.config import config
from flightviz.ingestion.route_geometry import RouteWaypoint, WaypointRole
from flightviz.playback.clock import ClockRange, PlaybackClock
from flightviz.playback.track import FlightTrack
from flightviz.scene.graph import EntityKind, SceneEntity, SceneGraph
from flightviz.services.airport_risk import AirportRiskLookup

logger = logging.getLogger(__name__)

ROUTE_LAYER = 'route'

AIRCRAFT_MODEL_URI = '/models/Cesium_Air.glb'


def _is_icao(value) -> bool:
    return isinstance(value, str) and len(value) == 4 and value.isalpha()


class RoutePlaybackController:
    """
    Drives the aircraft along its route against a simulation clock.

    Args:
        scene: Scene that receives route entities
        risk_lookup: Airport markers are registered here for picking
        multiplier: Simulated seconds per wall-clock second
        clock_range: Behavior at the end of the route
    """

    def __init__(
        self,
        scene: SceneGraph,
        risk_lookup: Optional[AirportRiskLookup] = None,
        multiplier: Optional[float] = None,
        cruise_altitude_m: Optional[float] = None,
        clock_range: ClockRange = ClockRange.CLAMPED,
    ):
        self.scene = scene
        self.risk_lookup = risk_lookup
        self.multiplier = multiplier or config.playback.multiplier
        self.cruise_altitude_m = cruise_altitude_m or config.playback.cruise_altitude_m
        self.clock_range = clock_range

        self.clock: Optional[PlaybackClock] = None
        self.track: Optional[FlightTrack] = None
        self.aircraft_handle: Optional[str] = None
        self._handles: List[str] = []
        self._listeners: List[Callable[[datetime], None]] = []
        self._lock = threading.RLock()

        # Background loop state
        self._running = False
        self._thread: Optional[threading.Thread] = None
        self._tick_count = 0
        self._listener_errors = 0

    # -------------------------------------------------------------------------
    # Track construction
    # -------------------------------------------------------------------------

    def build_track(
        self,
        waypoints: Sequence[RouteWaypoint],
        departure_time: Optional[datetime] = None,
        airport_ids: Tuple[Optional[str], Optional[str]] = (None, None),
    ) -> PlaybackClock:
        """
        Build the track, render route entities and initialise the clock.

        Args:
            waypoints: Valid waypoints sorted by timestamp
            departure_time: Parsed departure time (None = first waypoint)
            airport_ids: (departure, destination) identifiers used when the
                waypoints themselves do not carry an ICAO code

        Returns:
            The new playback clock, positioned at its start.
        """
        if not waypoints:
            raise ValueError('cannot build a track without waypoints')

        with self._lock:
            self.teardown()

            self.track = FlightTrack(
                [w.timestamp for w in waypoints],
                [w.coordinates for w in waypoints],
                altitude_m=self.cruise_altitude_m,
            )

            first, last = waypoints[0].timestamp, waypoints[-1].timestamp
            start = min(departure_time, first) if departure_time else first

            self.clock = PlaybackClock(
                start=start,
                stop=last,
                multiplier=self.multiplier,
                clock_range=self.clock_range,
            )

            self._render_waypoints(waypoints, airport_ids)
            self._render_route(waypoints)
            self._render_aircraft()

            logger.info(
                f'Track built: {len(waypoints)} waypoints, '
                f'{self.clock.start.isoformat()} -> {self.clock.stop.isoformat()}'
            )
            return self.clock

    def _airport_identifier(self, waypoint: RouteWaypoint, fallback: Optional[str]) -> Optional[str]:
        for candidate in (waypoint.metadata.get('icao'), fallback, waypoint.label.strip().upper()):
            if _is_icao(candidate):
                return candidate.upper()
        return None

    def _render_waypoints(self, waypoints: Sequence[RouteWaypoint], airport_ids) -> None:
        departure_id, destination_id = airport_ids

        for waypoint in waypoints:
            position = [waypoint.longitude, waypoint.latitude, self.cruise_altitude_m]
            properties = {
                'position': position,
                'label': waypoint.label,
                'time': waypoint.timestamp.isoformat(),
            }
            icon = waypoint.style.get('iconUrl')
            if isinstance(icon, str) and icon:
                width, height = waypoint.icon_size
                properties['billboard'] = {'image': icon, 'width': width, 'height': height}

            if not waypoint.is_airport:
                self._add(SceneEntity(kind=EntityKind.MARKER, layer=ROUTE_LAYER, properties=properties))
                continue

            fallback = departure_id if waypoint.role == WaypointRole.DEPARTURE else destination_id
            icao = self._airport_identifier(waypoint, fallback)
            handle = self._add(SceneEntity(
                kind=EntityKind.AIRPORT,
                layer=ROUTE_LAYER,
                properties=properties,
                tags={'role': waypoint.role.value, 'icao': icao},
            ))
            if icao and self.risk_lookup is not None:
                self.risk_lookup.register(handle, icao)

    def _render_route(self, waypoints: Sequence[RouteWaypoint]) -> None:
        self._add(SceneEntity(
            kind=EntityKind.POLYLINE,
            layer=ROUTE_LAYER,
            properties={
                'positions': [[w.longitude, w.latitude, self.cruise_altitude_m] for w in waypoints],
                'width': 3,
                'material': {'rgba': [0, 255, 255, 255]},
            },
            tags={'route': 'flown'},
        ))

    def _render_aircraft(self) -> None:
        self.aircraft_handle = self._add(SceneEntity(
            kind=EntityKind.AIRCRAFT,
            layer=ROUTE_LAYER,
            properties={
                'availability': [self.clock.start.isoformat(), self.clock.stop.isoformat()],
                'position': {
                    'interpolation': 'linear',
                    'samples': self.track.samples(),
                },
                'orientation': 'velocity',
                'model': {'uri': AIRCRAFT_MODEL_URI, 'minimumPixelSize': 64, 'maximumScale': 10000},
                'path': {'resolution': 1, 'width': 2, 'material': {'rgba': [255, 255, 0, 255]}},
            },
        ))

    def _add(self, entity: SceneEntity) -> str:
        handle = self.scene.add(entity)
        self._handles.append(handle)
        return handle

    def add_static_entity(self, entity: SceneEntity) -> str:
        """Add an entity owned by this route (removed on teardown)."""
        with self._lock:
            return self._add(entity)

    # -------------------------------------------------------------------------
    # Clock control
    # -------------------------------------------------------------------------

    def on_tick(self, listener: Callable[[datetime], None]) -> None:
        """Register a callback invoked with the simulated time on every tick."""
        self._listeners.append(listener)

    def tick(self, wall_seconds: float) -> Optional[datetime]:
        """
        Advance the clock by wall_seconds (scaled by the multiplier).

        Listeners are notified even when time did not move (paused or at
        the end), so they can apply work that finished in the background.
        Returns the simulated time, or None when no track is loaded.
        """
        with self._lock:
            if self.clock is None:
                return None
            now = self.clock.advance(wall_seconds)
            self._tick_count += 1

            for listener in self._listeners:
                try:
                    listener(now)
                except Exception as e:
                    self._listener_errors += 1
                    logger.error(f'Tick listener error: {e}')
            return now

    def play(self) -> None:
        with self._lock:
            if self.clock:
                self.clock.playing = True

    def pause(self) -> None:
        with self._lock:
            if self.clock:
                self.clock.playing = False

    def seek(self, ts: datetime) -> Optional[datetime]:
        with self._lock:
            if self.clock is None:
                return None
            self.clock.seek(ts)
        return self.tick(0)

    @property
    def current_time(self) -> Optional[datetime]:
        return self.clock.current if self.clock else None

    def aircraft_state(self) -> Optional[dict]:
        """Interpolated aircraft position and heading at the current clock time."""
        with self._lock:
            if self.clock is None or self.track is None:
                return None
            now = self.clock.current
            lon, lat, alt = self.track.position_at(now)
            heading = self.track.heading_at(now)
            return {
                'time': now.isoformat(),
                'longitude': round(lon, 6),
                'latitude': round(lat, 6),
                'altitude_m': alt,
                'heading': round(heading, 1) if heading is not None else None,
            }

    def teardown(self) -> None:
        """Stop the clock and remove every entity this route created."""
        with self._lock:
            for handle in self._handles:
                self.scene.remove(handle)
            self._handles = []
            self.clock = None
            self.track = None
            self.aircraft_handle = None

    # -------------------------------------------------------------------------
    # Background playback
    # -------------------------------------------------------------------------

    def run_continuous(self, interval: Optional[float] = None) -> None:
        """
        Tick continuously using measured wall-clock time.

        This method blocks - use start_background() for non-blocking.
        """
        interval = interval or config.playback.tick_seconds
        self._running = True
        last = time.monotonic()

        logger.info(f'Starting playback loop (interval={interval}s)')

        while self._running:
            time.sleep(interval)
            now = time.monotonic()
            self.tick(now - last)
            last = now

        logger.info('Playback loop stopped')

    def start_background(self, interval: Optional[float] = None) -> None:
        """Start the playback loop in a background thread."""
        if self._thread and self._thread.is_alive():
            logger.warning('Playback loop already running')
            return

        self._thread = threading.Thread(
            target=self.run_continuous,
            args=(interval,),
            daemon=True,
        )
        self._thread.start()
        logger.info('Background playback started')

    def stop(self) -> None:
        """Stop background playback."""
        self._running = False
        if self._thread:
            self._thread.join(timeout=5)
            self._thread = None

    @property
    def stats(self) -> dict:
        """Get playback statistics."""
        return {
            'tick_count': self._tick_count,
            'listener_errors': self._listener_errors,
            'running': self._running,
            'entities': len(self._handles),
            'loaded': self.clock is not None,
        }

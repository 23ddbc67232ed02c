"""
Continuous flight track built from discrete timestamped waypoints.

Positions are linearly interpolated in time with NumPy (the same sampled
position model the browser renderer uses), and orientation follows the
instantaneous velocity along the interpolated path, so the aircraft
always faces its direction of travel.

Longitudes are unwrapped before interpolation so routes crossing the
antimeridian do not swing the long way around the globe.
"""

import math
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Tuple

import numpy as np

EARTH_RADIUS_M = 6371000.0


def _wrap_longitude(lon: float) -> float:
    return ((lon + 180.0) % 360.0) - 180.0


class FlightTrack:
    """
    Time-keyed position function for the aircraft.

    Samples sharing a timestamp collapse to the first one, since a
    position function cannot take two values at one instant.
    """

    def __init__(
        self,
        times: Sequence[datetime],
        positions: Sequence[Tuple[float, float]],
        altitude_m: float = 10600.0,
    ):
        if len(times) != len(positions):
            raise ValueError('times and positions must have the same length')
        if not times:
            raise ValueError('a track needs at least one sample')

        t = np.array([ts.timestamp() for ts in times], dtype=float)
        order = np.argsort(t, kind='stable')
        t = t[order]
        coords = np.array(positions, dtype=float)[order]

        t, first_index = np.unique(t, return_index=True)
        coords = coords[first_index]

        self._t = t
        self._lon = np.degrees(np.unwrap(np.radians(coords[:, 0])))
        self._lat = coords[:, 1]
        self.altitude_m = altitude_m

    def __len__(self) -> int:
        return len(self._t)

    @property
    def start(self) -> datetime:
        return datetime.fromtimestamp(self._t[0], tz=timezone.utc)

    @property
    def stop(self) -> datetime:
        return datetime.fromtimestamp(self._t[-1], tz=timezone.utc)

    def position_at(self, ts: datetime) -> Tuple[float, float, float]:
        """(lon, lat, altitude_m) at a time; held at the ends outside the range."""
        x = ts.timestamp()
        lon = float(np.interp(x, self._t, self._lon))
        lat = float(np.interp(x, self._t, self._lat))
        return _wrap_longitude(lon), lat, self.altitude_m

    def velocity_at(self, ts: datetime) -> Optional[Tuple[float, float]]:
        """
        Ground velocity (east m/s, north m/s) along the active segment.

        Returns None for a single-sample track.
        """
        if len(self._t) < 2:
            return None

        x = ts.timestamp()
        i = int(np.searchsorted(self._t, x, side='right')) - 1
        i = min(max(i, 0), len(self._t) - 2)

        dt = self._t[i + 1] - self._t[i]
        mean_lat = math.radians((self._lat[i] + self._lat[i + 1]) / 2.0)
        east = math.radians(self._lon[i + 1] - self._lon[i]) * math.cos(mean_lat) * EARTH_RADIUS_M
        north = math.radians(self._lat[i + 1] - self._lat[i]) * EARTH_RADIUS_M
        return east / dt, north / dt

    def heading_at(self, ts: datetime) -> Optional[float]:
        """True heading in degrees (0 = north), or None when not moving."""
        velocity = self.velocity_at(ts)
        if velocity is None:
            return None
        east, north = velocity
        if math.hypot(east, north) < 1e-9:
            return None
        return math.degrees(math.atan2(east, north)) % 360.0

    def samples(self) -> List[List[float]]:
        """[[epoch_seconds, lon, lat, alt], ...] for the front-end sampled property."""
        return [
            [float(t), _wrap_longitude(float(lon)), float(lat), self.altitude_m]
            for t, lon, lat in zip(self._t, self._lon, self._lat)
        ]

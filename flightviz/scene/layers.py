"""
Storm weather layer.

Keeps the scene's storm volumes in step with the playback clock.

Each storm cell polygon is extruded into a volume:
- one wall per consecutive pair of boundary vertices, from a fixed base
  altitude up to a randomized top altitude
- a bottom cap polygon at the base and a top cap polygon at the top

Storm cells carry no stable ids between snapshots, so the layer is never
diffed: the whole previous set of handles is swapped for the new set in a
single SceneGraph.replace() call.

Per tick, sync() floors the simulated time to its bucket. Only a bucket
change triggers a cache request, and the request is not awaited; the
result is applied by a later apply_resolved() call on the tick thread.
A result whose bucket is no longer the active one is discarded, so a slow
fetch for an earlier bucket can never overwrite newer weather.
"""

import logging
import random
import threading
from concurrent.futures import Future, wait as wait_futures
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from flightviz.cache import WeatherCache, time_bucket
from flightviz.config import config
from flightviz.ingestion.route_geometry import parse_coordinate
from flightviz.scene.graph import EntityKind, SceneEntity, SceneGraph

logger = logging.getLogger(__name__)

WEATHER_LAYER = 'weather'

STORM_FILL = {'rgba': [255, 0, 0, 77]}  # red, alpha 0.3
STORM_OUTLINE = {'rgba': [255, 0, 0, 255]}


def _polygon_rings(geometry: Any) -> List[List[Tuple[float, float]]]:
    """Exterior rings of a Polygon/MultiPolygon geometry, closed and cleaned. Malformed parts are skipped."""
    if not isinstance(geometry, dict):
        return []
    geometry_type = geometry.get('type')
    coordinates = geometry.get('coordinates')
    if not isinstance(coordinates, list):
        return []

    if geometry_type == 'Polygon':
        polygons = [coordinates]
    elif geometry_type == 'MultiPolygon':
        polygons = coordinates
    else:
        return []

    rings = []
    for polygon in polygons:
        if not isinstance(polygon, list) or not polygon or not isinstance(polygon[0], list):
            continue
        ring = [c for c in (parse_coordinate(v) for v in polygon[0]) if c is not None]
        if len(ring) < 3:
            continue
        if ring[0] != ring[-1]:
            ring.append(ring[0])
        if len(ring) < 4:
            continue
        rings.append(ring)
    return rings


class WeatherLayerManager:
    """
    Owns the storm volume entities currently in the scene.

    Args:
        scene: Scene to draw into
        cache: Storm cache used by sync()
        rng: Source of storm top heights (anything with .uniform(a, b))
    """

    def __init__(
        self,
        scene: SceneGraph,
        cache: WeatherCache,
        rng: Optional[random.Random] = None,
        base_altitude_m: float = None,
        top_band_m: Tuple[float, float] = None,
    ):
        self.scene = scene
        self.cache = cache
        self.rng = rng or random.Random()
        self.base_altitude_m = base_altitude_m if base_altitude_m is not None else config.playback.storm_base_altitude_m
        self.top_band_m = top_band_m or config.playback.storm_top_band_m

        self._handles: List[str] = []
        self._pending: Dict[str, Tuple[Future, int]] = {}
        self._active_bucket: Optional[str] = None
        self._applied_bucket: Optional[str] = None
        self._lock = threading.RLock()

    @property
    def handles(self) -> List[str]:
        with self._lock:
            return list(self._handles)

    @property
    def active_bucket(self) -> Optional[str]:
        return self._active_bucket

    @property
    def applied_bucket(self) -> Optional[str]:
        """Bucket whose weather is currently drawn (None if nothing applied yet)."""
        return self._applied_bucket

    def _build_volume(self, ring: List[Tuple[float, float]]) -> List[SceneEntity]:
        base = self.base_altitude_m
        top = self.rng.uniform(*self.top_band_m)

        entities = []
        for (lon1, lat1), (lon2, lat2) in zip(ring, ring[1:]):
            entities.append(SceneEntity(
                kind=EntityKind.WALL,
                layer=WEATHER_LAYER,
                properties={
                    'positions': [
                        [lon1, lat1, base],
                        [lon2, lat2, base],
                        [lon2, lat2, top],
                        [lon1, lat1, top],
                        [lon1, lat1, base],
                    ],
                    'material': STORM_FILL,
                    'outline_color': STORM_OUTLINE,
                },
            ))

        for height, cap in ((top, 'top'), (base, 'bottom')):
            entities.append(SceneEntity(
                kind=EntityKind.POLYGON,
                layer=WEATHER_LAYER,
                properties={
                    'positions': [[lon, lat, height] for lon, lat in ring],
                    'height': height,
                    'material': STORM_FILL,
                    'outline_color': STORM_OUTLINE,
                },
                tags={'cap': cap},
            ))
        return entities

    def refresh_weather_layer(self, geometry: Optional[Dict[str, Any]]) -> List[str]:
        """
        Replace the whole layer with volumes built from `geometry`.

        None or an empty collection clears the layer.
        Returns the new handles.
        """
        features = geometry.get('features') if isinstance(geometry, dict) else None
        if not isinstance(features, list):
            features = []

        new_entities: List[SceneEntity] = []
        for feature in features:
            if not isinstance(feature, dict):
                continue
            for ring in _polygon_rings(feature.get('geometry')):
                new_entities.extend(self._build_volume(ring))

        with self._lock:
            self._handles = self.scene.replace(self._handles, new_entities)
            count = len(self._handles)

        logger.debug(f'Weather layer now holds {count} entities')
        return self.handles

    def clear(self) -> None:
        """Remove every storm entity from the scene."""
        self.refresh_weather_layer(None)

    def sync(self, sim_time: datetime) -> None:
        """
        Tick hook: request weather when the simulated time enters a new bucket.

        Never blocks on the network.
        """
        bucket = time_bucket(sim_time)
        with self._lock:
            if bucket != self._active_bucket:
                self._active_bucket = bucket
                if bucket not in self._pending:
                    self._pending[bucket] = (self.cache.request(bucket), self.cache.epoch)
                logger.debug(f'Active weather bucket is now {bucket}')
        self.apply_resolved()

    def apply_resolved(self) -> bool:
        """
        Apply any finished fetch for the active bucket; drop the rest.

        Returns True if the layer was redrawn.
        """
        applied = False
        with self._lock:
            for bucket, (future, epoch) in list(self._pending.items()):
                if not future.done():
                    continue
                del self._pending[bucket]

                if bucket != self._active_bucket or epoch != self.cache.epoch:
                    logger.debug(f'Discarding superseded weather for {bucket}')
                    continue

                self.refresh_weather_layer(future.result())
                self._applied_bucket = bucket
                applied = True
        return applied

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until pending fetches finish, then apply them."""
        with self._lock:
            futures = [f for f, _ in self._pending.values()]
        if futures:
            wait_futures(futures, timeout=timeout)
        return self.apply_resolved()

    def reset(self) -> None:
        """Clear the layer and forget pending fetches and the active bucket."""
        with self._lock:
            self._pending.clear()
            self._active_bucket = None
            self._applied_bucket = None
            self.clear()

"""
Time-bucketed cache for storm geometry.

The playback clock runs at 30x real time and ticks many times per second.
Storm snapshots only change on 5-minute boundaries, so every simulated
timestamp is floored to a bucket key and the cache guarantees:
- At most one entry per bucket (a cached None means "no weather there")
- At most one in-flight fetch per bucket, however often it is requested
- Nothing from a previous route survives reset()

Fetches run on a small thread pool so the tick loop never blocks on the
network. reset() bumps an epoch counter; a fetch that resolves after a
reset belongs to an older epoch and its result is not stored.
"""

import logging
import threading
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from flightviz.config import config
from flightviz.ingestion.weather_feed import WeatherFeed

logger = logging.getLogger(__name__)

BUCKET_SECONDS = config.storms.bucket_minutes * 60
BUCKET_FORMAT = '%Y-%m-%dT%H:%M:%S.000Z'

Geometry = Dict[str, Any]


def floor_to_bucket(ts: datetime) -> datetime:
    """Floor an aware datetime to the start of its 5-minute bucket (UTC)."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    epoch_seconds = int(ts.timestamp() // BUCKET_SECONDS) * BUCKET_SECONDS
    return datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)


def time_bucket(ts: datetime) -> str:
    """Bucket key for a timestamp, in the storm API's wire format."""
    return floor_to_bucket(ts).strftime(BUCKET_FORMAT)


def bucket_start(bucket: str) -> datetime:
    """Inverse of time_bucket(): the aware datetime a bucket key starts at."""
    return datetime.strptime(bucket, BUCKET_FORMAT).replace(tzinfo=timezone.utc)


def bucket_end(bucket: str) -> datetime:
    return bucket_start(bucket) + timedelta(seconds=BUCKET_SECONDS)


class WeatherCache:
    """
    Thread-safe bucket -> geometry cache with fetch deduplication.

    Owns its worker pool unless one is injected.
    """

    def __init__(
        self,
        feed: Optional[WeatherFeed] = None,
        executor: Optional[Executor] = None,
        max_workers: int = None,
    ):
        self.feed = feed or WeatherFeed.from_config()

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers or config.storms.max_workers,
            thread_name_prefix='storm-fetch',
        )

        self._entries: Dict[str, Optional[Geometry]] = {}
        self._in_flight: Dict[str, Future] = {}
        self._lock = threading.RLock()
        self._epoch = 0

        # Statistics
        self._hits = 0
        self._misses = 0
        self._fetches = 0

    @property
    def epoch(self) -> int:
        return self._epoch

    def get(self, bucket: str) -> Optional[Geometry]:
        """
        Get cached geometry for a bucket without fetching.

        Returns None both for "not cached" and "cached as empty";
        use contains() to tell them apart.
        """
        with self._lock:
            return self._entries.get(bucket)

    def contains(self, bucket: str) -> bool:
        with self._lock:
            return bucket in self._entries

    def request(self, bucket: str) -> Future:
        """
        Get a future for the bucket's geometry.

        Cache hits return an already-resolved future. Misses share the
        single in-flight fetch for that bucket, starting one if needed.
        """
        with self._lock:
            if bucket in self._entries:
                self._hits += 1
                logger.debug(f'Storm cache hit for {bucket}')
                resolved: Future = Future()
                resolved.set_result(self._entries[bucket])
                return resolved

            in_flight = self._in_flight.get(bucket)
            if in_flight is not None:
                logger.debug(f'Storm fetch for {bucket} already in flight')
                return in_flight

            self._misses += 1
            self._fetches += 1
            future = self._executor.submit(self._fetch, bucket, self._epoch)
            # Inline executors finish before submit() returns
            if not future.done():
                self._in_flight[bucket] = future
            return future

    def get_or_fetch(self, bucket: str, timeout: Optional[float] = None) -> Optional[Geometry]:
        """Blocking lookup: cached geometry, or the result of one fetch."""
        return self.request(bucket).result(timeout=timeout)

    def _fetch(self, bucket: str, epoch: int) -> Optional[Geometry]:
        """Worker body. Never raises; failures are cached as None."""
        try:
            geometry = self.feed.fetch(bucket)
        except Exception as e:
            logger.error(f'Unexpected storm feed error for {bucket}: {e}')
            geometry = None

        with self._lock:
            if epoch != self._epoch:
                logger.debug(f'Discarding storm result for {bucket} from stale epoch {epoch}')
                return geometry
            self._entries[bucket] = geometry
            self._in_flight.pop(bucket, None)

        return geometry

    def reset(self) -> None:
        """Drop all entries and forget in-flight fetches (new route loaded)."""
        with self._lock:
            self._entries.clear()
            self._in_flight.clear()
            self._epoch += 1
        logger.debug(f'Storm cache reset (epoch {self._epoch})')

    def shutdown(self, wait: bool = False) -> None:
        """Release the worker pool if this cache created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    @property
    def stats(self) -> dict:
        """Get cache statistics."""
        with self._lock:
            return {
                'entries': len(self._entries),
                'in_flight': len(self._in_flight),
                'hits': self._hits,
                'misses': self._misses,
                'fetches': self._fetches,
                'hit_rate': self._hits / (self._hits + self._misses) if (self._hits + self._misses) > 0 else 0,
                'epoch': self._epoch,
            }

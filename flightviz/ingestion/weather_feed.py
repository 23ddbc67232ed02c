"""
Storm feed client.

Fetches severe-weather cell geometry for a single 5-minute time bucket:

    GET {base_url}/storms?from_time=2024-06-15T12:05:00.000Z

Expected response is a GeoJSON FeatureCollection of Polygon (or
MultiPolygon) features, one per storm cell. An empty collection means
"no weather in that bucket".

Unlike the other upstream clients, this one never raises. Playback must
keep running when the storm service is slow or down, so every failure
mode (timeout, connection error, HTTP error, bad JSON, empty result) is
logged and reported as None.
"""

import logging
from typing import Any, Dict, Optional

import requests

from flightviz.config import config

logger = logging.getLogger(__name__)

POLYGONAL_TYPES = ('Polygon', 'MultiPolygon')


class WeatherFeed:
    """
    Client for the storm cell API.

    Handles:
    - GET requests to /storms with a bucket timestamp
    - Hard request timeout (the upstream can be very slow)
    - Filtering responses down to polygonal storm cells
    """

    def __init__(
        self,
        base_url: str = 'https://demo.flyclim.com/api',
        timeout: float = 180.0,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

        # Statistics
        self._requests = 0
        self._failures = 0

    @classmethod
    def from_config(cls) -> 'WeatherFeed':
        """Create client from application configuration."""
        return cls(
            base_url=config.storms.base_url,
            timeout=config.storms.timeout_seconds,
        )

    def fetch(self, bucket: str) -> Optional[Dict[str, Any]]:
        """
        Fetch storm geometry for a time bucket.

        Args:
            bucket: ISO-8601 timestamp already floored to a bucket boundary

        Returns:
            FeatureCollection containing only polygonal features, or None
            if the bucket has no weather or the request failed.
        """
        url = f'{self.base_url}/storms'
        self._requests += 1

        logger.debug(f'Fetching storms for bucket {bucket}')

        try:
            response = self.session.get(
                url,
                params={'from_time': bucket},
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()

        except requests.exceptions.Timeout:
            self._failures += 1
            logger.warning(f'Storm fetch for {bucket} timed out after {self.timeout:.0f}s')
            return None
        except requests.exceptions.HTTPError as e:
            self._failures += 1
            logger.warning(f'Storm API error for {bucket}: {e.response.status_code}')
            return None
        except requests.exceptions.RequestException as e:
            self._failures += 1
            logger.warning(f'Storm fetch for {bucket} failed: {e}')
            return None
        except ValueError:
            self._failures += 1
            logger.warning(f'Storm API returned invalid JSON for {bucket}')
            return None

        if not isinstance(data, dict):
            return None

        features = [
            f for f in data.get('features') or []
            if isinstance(f, dict)
            and (f.get('geometry') or {}).get('type') in POLYGONAL_TYPES
        ]
        if not features:
            logger.debug(f'No storm cells for bucket {bucket}')
            return None

        logger.info(f'Received {len(features)} storm cells for bucket {bucket}')
        return {'type': 'FeatureCollection', 'features': features}

    @property
    def stats(self) -> dict:
        """Get client statistics."""
        return {
            'requests': self._requests,
            'failures': self._failures,
        }

"""
Airport risk lookups for picked airport markers.

When the user picks a departure/destination marker in the scene, the
airport's ICAO identifier is sent to the risk API:

    GET {base_url}/airport_risk/KJFK

which answers with a METAR excerpt and per-factor risk percentages:

    {"icao": "KJFK",
     "metar": {"raw": "...", ...},
     "risk": {"wind_risk": 12, "temp_risk": 3, "pressure_risk": 5,
              "visibility_risk": 40, "total_risk": 18,
              "risk_classification": "low"},
     "flight_delay": {"delay_probability": "15%", "delay_risk": "low"}}

Lookups run off the tick thread. Failures are reported to the caller as a
recoverable AirportRiskError; the scene is never affected.
"""

import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import requests

from flightviz.config import config
from flightviz.errors import AirportRiskError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RiskSnapshot:
    """Point-risk assessment for one airport."""
    icao: str
    wind_risk: float
    temp_risk: float
    pressure_risk: float
    visibility_risk: float
    total_risk: float
    classification: str
    metar_raw: Optional[str] = None
    delay_probability: Optional[str] = None
    delay_risk: Optional[str] = None

    @classmethod
    def from_payload(cls, icao: str, data: Dict[str, Any]) -> 'RiskSnapshot':
        """
        Build a snapshot from the API payload.

        Raises:
            AirportRiskError if the risk block is missing or malformed.
        """
        risk = data.get('risk') if isinstance(data, dict) else None
        if not isinstance(risk, dict):
            raise AirportRiskError(icao, 'response has no risk block')

        try:
            values = {
                key: float(risk.get(key) or 0)
                for key in ('wind_risk', 'temp_risk', 'pressure_risk', 'visibility_risk', 'total_risk')
            }
        except (TypeError, ValueError):
            raise AirportRiskError(icao, 'risk values are not numeric')

        metar = data.get('metar') or {}
        delay = data.get('flight_delay') or {}

        return cls(
            icao=data.get('icao') or icao,
            classification=str(risk.get('risk_classification') or 'unknown'),
            metar_raw=metar.get('raw') if isinstance(metar, dict) else None,
            delay_probability=delay.get('delay_probability') if isinstance(delay, dict) else None,
            delay_risk=delay.get('delay_risk') if isinstance(delay, dict) else None,
            **values,
        )

    @property
    def level(self) -> str:
        """Color band for the total risk, as shown in the risk panel."""
        if self.total_risk >= 75:
            return 'extreme'
        if self.total_risk >= 50:
            return 'high'
        if self.total_risk >= 25:
            return 'medium'
        return 'low'

    def to_dict(self) -> dict:
        return {
            'icao': self.icao,
            'metar': self.metar_raw,
            'risk': {
                'wind': self.wind_risk,
                'temperature': self.temp_risk,
                'pressure': self.pressure_risk,
                'visibility': self.visibility_risk,
                'total': self.total_risk,
                'classification': self.classification,
                'level': self.level,
            },
            'flight_delay': {
                'probability': self.delay_probability,
                'risk': self.delay_risk,
            },
        }


class AirportRiskLookup:
    """
    Resolves picks on airport markers to risk snapshots.

    Keeps a registry of which scene handles are airports, and a short
    TTL cache of successful lookups. Failed lookups are not cached, so
    the next pick retries.
    """

    def __init__(
        self,
        base_url: str = None,
        timeout: float = None,
        cache_ttl: int = None,
        session: Optional[requests.Session] = None,
        executor: Optional[Executor] = None,
    ):
        self.base_url = (base_url or config.airport_risk.base_url).rstrip('/')
        self.timeout = timeout or config.airport_risk.timeout_seconds
        self._cache_ttl = cache_ttl if cache_ttl is not None else config.airport_risk.cache_ttl_seconds
        self.session = session or requests.Session()

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix='airport-risk')

        # handle -> ICAO identifier
        self._airports: Dict[str, str] = {}
        # ICAO -> (snapshot, fetched_at)
        self._cache: Dict[str, Tuple[RiskSnapshot, float]] = {}
        self._lock = threading.RLock()

    def register(self, handle: str, icao: str) -> None:
        """Tag a scene handle as an airport marker."""
        with self._lock:
            self._airports[handle] = icao.strip().upper()

    def clear(self) -> None:
        """Forget all airport registrations (scene torn down)."""
        with self._lock:
            self._airports.clear()

    def is_airport(self, handle: str) -> bool:
        with self._lock:
            return handle in self._airports

    def identifier_for(self, handle: str) -> Optional[str]:
        with self._lock:
            return self._airports.get(handle)

    def on_pick(self, handle: str) -> Optional[Future]:
        """
        Start a risk lookup for a picked entity.

        Returns None if the handle is not a registered airport marker,
        otherwise a Future resolving to a RiskSnapshot (or raising
        AirportRiskError).
        """
        icao = self.identifier_for(handle)
        if icao is None:
            return None
        logger.info(f'Airport {icao} picked, fetching risk')
        return self._executor.submit(self.lookup, icao)

    def lookup(self, icao: str) -> RiskSnapshot:
        """
        Fetch the risk snapshot for an airport (blocking).

        Raises:
            AirportRiskError on network failure, bad status, or bad payload.
        """
        icao = icao.strip().upper()
        if len(icao) != 4 or not icao.isalpha():
            raise AirportRiskError(icao, 'not a 4-letter ICAO identifier')

        cached = self._get_cached(icao)
        if cached is not None:
            logger.debug(f'Risk cache hit for {icao}')
            return cached

        try:
            response = self.session.get(
                f'{self.base_url}/airport_risk/{icao}',
                timeout=self.timeout,
            )
        except requests.exceptions.Timeout:
            logger.warning(f'Risk lookup for {icao} timed out')
            raise AirportRiskError(icao, 'request timed out')
        except requests.RequestException as e:
            logger.warning(f'Risk lookup for {icao} failed: {e}')
            raise AirportRiskError(icao, 'request failed')

        if response.status_code != 200:
            logger.warning(f'Risk API error for {icao}: {response.status_code}')
            raise AirportRiskError(icao, f'risk API returned {response.status_code}')

        try:
            data = response.json()
        except ValueError:
            raise AirportRiskError(icao, 'risk API returned invalid JSON')

        snapshot = RiskSnapshot.from_payload(icao, data)
        self._set_cached(icao, snapshot)
        logger.info(f'Risk for {icao}: {snapshot.classification} ({snapshot.total_risk:.0f}%)')
        return snapshot

    def _get_cached(self, icao: str) -> Optional[RiskSnapshot]:
        with self._lock:
            if icao in self._cache:
                snapshot, fetched_at = self._cache[icao]
                if time.time() - fetched_at < self._cache_ttl:
                    return snapshot
                del self._cache[icao]
        return None

    def _set_cached(self, icao: str, snapshot: RiskSnapshot) -> None:
        with self._lock:
            self._cache[icao] = (snapshot, time.time())

    def shutdown(self, wait: bool = False) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    @property
    def stats(self) -> dict:
        """Get service statistics."""
        with self._lock:
            return {
                'registered_airports': len(self._airports),
                'cache_size': len(self._cache),
            }

"""
Upstream route service.

Turns a flight-plan string into the route GeoJSON the visualization plays:

    POST {base_url}/route  {"fpl": "(FPL-..."}

Used when a client submits only the flight plan; clients that already
hold a route response pass it straight to the orchestrator.
"""

import logging
from typing import Any, Dict, Optional

import requests

from flightviz.config import config
from flightviz.errors import RouteServiceError

logger = logging.getLogger(__name__)


class RouteService:
    """Client for the route computation endpoint."""

    def __init__(
        self,
        base_url: str = None,
        timeout: float = None,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = (base_url or config.routes.base_url).rstrip('/')
        self.timeout = timeout or config.routes.timeout_seconds
        self.session = session or requests.Session()

    def fetch_route(self, fpl: str) -> Dict[str, Any]:
        """
        Request route geometry for a flight plan.

        Raises:
            RouteServiceError on network failure, non-200 status or invalid JSON.
        """
        logger.info('Requesting route geometry from route service')
        try:
            response = self.session.post(
                f'{self.base_url}/route',
                json={'fpl': fpl},
                timeout=self.timeout,
            )
            response.raise_for_status()
            return response.json()

        except requests.exceptions.Timeout:
            logger.error('Route service timeout')
            raise RouteServiceError('route service timed out')
        except requests.exceptions.HTTPError as e:
            logger.error(f'Route service error: {e.response.status_code}')
            raise RouteServiceError(f'route service returned {e.response.status_code}')
        except requests.exceptions.RequestException as e:
            logger.error(f'Route request failed: {e}')
            raise RouteServiceError('route request failed')
        except ValueError:
            raise RouteServiceError('route service returned invalid JSON')

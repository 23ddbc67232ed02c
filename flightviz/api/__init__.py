"""
API module for FlightViz.

Provides REST endpoints for:
- Route visualization, playback control, scene snapshots and picking
- Stored flight plans
- System status
"""

from flightviz.api.flights import flights_bp
from flightviz.api.metrics import metrics_bp
from flightviz.api.visualization import visualization_bp

__all__ = ['flights_bp', 'metrics_bp', 'visualization_bp']

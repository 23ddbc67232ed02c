"""
Status API endpoints.

Provides endpoints for:
- GET /api/metrics/status - System health: database, storm cache, playback, upstream config
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from flightviz.config import config
from flightviz.models.base import SessionLocal

logger = logging.getLogger(__name__)

metrics_bp = Blueprint('metrics', __name__, url_prefix='/api/metrics')


@metrics_bp.route('/status', methods=['GET'])
def get_system_status():
    """
    Get system health and status information.

    Storm feed failures do not make the system unhealthy (playback
    degrades to no weather); only a database failure does.
    """
    start_time = time.perf_counter()
    orchestrator = current_app.config['ORCHESTRATOR']

    db_ok = True
    try:
        with SessionLocal() as session:
            session.execute(text('SELECT 1'))
    except Exception as e:
        db_ok = False
        logger.error(f'Database health check failed: {e}')

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'status': 'healthy' if db_ok else 'degraded',
        'database': {
            'connected': db_ok,
            'type': 'sqlite' if config.database.is_sqlite else 'postgresql',
        },
        'visualization': orchestrator.state.value,
        'playback': orchestrator.controller.stats,
        'storm_cache': orchestrator.cache.stats,
        'storm_feed': orchestrator.cache.feed.stats,
        'airport_risk': orchestrator.risk_lookup.stats,
        'config': {
            'storm_api': config.storms.base_url,
            'storm_timeout_seconds': config.storms.timeout_seconds,
            'playback_multiplier': config.playback.multiplier,
        },
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })

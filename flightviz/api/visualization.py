"""
Visualization API endpoints.

Provides endpoints for:
- POST /api/visualize               - Load a route (flight plan + optional route GeoJSON)
- GET  /api/visualize/state         - Orchestrator state, clock, aircraft, weather
- POST /api/playback/tick           - Advance playback by wall-clock seconds
- POST /api/playback/play|pause     - Start/stop the clock
- POST /api/playback/seek           - Jump to a simulated time
- GET  /api/scene                   - Entity snapshot for the browser renderer
- POST /api/scene/pick              - Pick an entity (airport markers open risk)
- GET/DELETE /api/risk-panel        - Read or dismiss the risk panel
- GET  /api/airports/<icao>/risk    - Direct airport risk lookup
"""

import logging
import time

from flask import Blueprint, current_app, jsonify, request

from flightviz.errors import AirportRiskError, RouteServiceError
from flightviz.ingestion.route_geometry import parse_timestamp
from flightviz.orchestrator import VisualizationOrchestrator, VisualizationState

logger = logging.getLogger(__name__)

visualization_bp = Blueprint('visualization', __name__, url_prefix='/api')


def _orchestrator() -> VisualizationOrchestrator:
    return current_app.config['ORCHESTRATOR']


@visualization_bp.route('/visualize', methods=['POST'])
def visualize():
    """
    Load a route and start playback.

    Body:
    - fpl: ICAO flight plan text (required)
    - route: route GeoJSON; fetched from the route service when omitted

    Returns 400 when the route geometry is rejected, 502 when the route
    service fails.
    """
    start_time = time.perf_counter()
    body = request.get_json(silent=True) or {}

    fpl = body.get('fpl')
    if not fpl or not isinstance(fpl, str):
        return jsonify({'error': 'fpl is required'}), 400

    orchestrator = _orchestrator()
    if 'route' in body:
        state = orchestrator.visualize(fpl, body['route'])
    elif orchestrator.route_service is not None:
        try:
            state = orchestrator.visualize_flight_plan(fpl)
        except RouteServiceError as e:
            return jsonify({'error': str(e), 'state': orchestrator.state.value}), 502
    else:
        return jsonify({'error': 'route is required'}), 400

    result = orchestrator.status()
    result['query_time_ms'] = round((time.perf_counter() - start_time) * 1000, 2)

    if state == VisualizationState.ERROR:
        return jsonify(result), 400
    return jsonify(result)


@visualization_bp.route('/visualize/state', methods=['GET'])
def get_state():
    return jsonify(_orchestrator().status())


@visualization_bp.route('/playback/tick', methods=['POST'])
def tick():
    """Advance playback. Body: {"seconds": wall-clock seconds, default 1}."""
    body = request.get_json(silent=True) or {}
    try:
        seconds = float(body.get('seconds', 1.0))
    except (TypeError, ValueError):
        return jsonify({'error': 'seconds must be a number'}), 400

    orchestrator = _orchestrator()
    if orchestrator.tick(seconds) is None:
        return jsonify({'error': 'No route loaded'}), 409
    return jsonify(orchestrator.status())


@visualization_bp.route('/playback/play', methods=['POST'])
def play():
    orchestrator = _orchestrator()
    orchestrator.controller.play()
    return jsonify(orchestrator.status())


@visualization_bp.route('/playback/pause', methods=['POST'])
def pause():
    orchestrator = _orchestrator()
    orchestrator.controller.pause()
    return jsonify(orchestrator.status())


@visualization_bp.route('/playback/seek', methods=['POST'])
def seek():
    """Jump to a simulated time. Body: {"time": ISO-8601}."""
    body = request.get_json(silent=True) or {}
    target = parse_timestamp(body.get('time'))
    if target is None:
        return jsonify({'error': 'time must be an ISO-8601 timestamp'}), 400

    orchestrator = _orchestrator()
    if orchestrator.controller.seek(target) is None:
        return jsonify({'error': 'No route loaded'}), 409
    return jsonify(orchestrator.status())


@visualization_bp.route('/scene', methods=['GET'])
def get_scene():
    """
    Snapshot of every entity in the scene.

    The revision number changes whenever entities are added or removed,
    so clients can skip redraws when nothing changed.
    """
    return jsonify(_orchestrator().scene.snapshot())


@visualization_bp.route('/scene/pick', methods=['POST'])
def pick():
    """Pick an entity. Body: {"handle": entity id}."""
    body = request.get_json(silent=True) or {}
    handle = body.get('handle')
    if not handle:
        return jsonify({'error': 'handle is required'}), 400

    orchestrator = _orchestrator()
    if orchestrator.pick(handle) is None:
        return jsonify({'picked': handle, 'airport': False})

    return jsonify({
        'picked': handle,
        'airport': True,
        'risk_panel': orchestrator.risk_panel.to_dict(),
    }), 202


@visualization_bp.route('/risk-panel', methods=['GET'])
def get_risk_panel():
    panel = _orchestrator().risk_panel
    return jsonify({'risk_panel': panel.to_dict() if panel else None})


@visualization_bp.route('/risk-panel', methods=['DELETE'])
def dismiss_risk_panel():
    _orchestrator().dismiss_risk_panel()
    return jsonify({'risk_panel': None})


@visualization_bp.route('/airports/<icao>/risk', methods=['GET'])
def get_airport_risk(icao: str):
    """Direct risk lookup for an airport by ICAO identifier."""
    try:
        snapshot = _orchestrator().risk_lookup.lookup(icao)
    except AirportRiskError as e:
        return jsonify({'error': str(e)}), 502
    return jsonify(snapshot.to_dict())

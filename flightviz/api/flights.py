"""
Flight plan API endpoints.

Provides endpoints for:
- GET  /api/flights - List stored flight plans (newest first)
- POST /api/flights - Parse and store a flight plan
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, jsonify, request
from sqlalchemy import select

from flightviz.ingestion.fpl_parser import ParseFailure, parse_flight_plan
from flightviz.models import FlightPlan, get_session
from flightviz.models.base import SessionLocal

logger = logging.getLogger(__name__)

flights_bp = Blueprint('flights', __name__, url_prefix='/api/flights')


@flights_bp.route('', methods=['GET'])
def list_flights():
    """
    List stored flight plans.

    Query parameters:
    - limit: int, max results to return (default 50, max 500)
    - adep / ades: filter by departure / destination aerodrome
    """
    start_time = time.perf_counter()

    try:
        limit = min(int(request.args.get('limit', 50)), 500)
    except ValueError:
        return jsonify({'error': 'limit must be an integer'}), 400

    query = select(FlightPlan).order_by(FlightPlan.created_at.desc(), FlightPlan.id.desc())
    adep = request.args.get('adep')
    if adep:
        query = query.where(FlightPlan.adep == adep.upper())
    ades = request.args.get('ades')
    if ades:
        query = query.where(FlightPlan.ades == ades.upper())

    with SessionLocal() as session:
        flights = session.scalars(query.limit(limit)).all()
        flight_dicts = [f.to_dict() for f in flights]

    query_time_ms = (time.perf_counter() - start_time) * 1000

    return jsonify({
        'flights': flight_dicts,
        'count': len(flight_dicts),
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'query_time_ms': round(query_time_ms, 2),
    })


@flights_bp.route('', methods=['POST'])
def store_flight():
    """
    Parse and store a flight plan.

    Body:
    - fpl: ICAO flight plan text (required)
    - route: optional route GeoJSON; its top-level properties supply the
      risk level and storm flag
    """
    body = request.get_json(silent=True) or {}
    fpl = body.get('fpl')
    if not fpl or not isinstance(fpl, str):
        return jsonify({'error': 'fpl is required'}), 400

    parsed = parse_flight_plan(fpl)
    if isinstance(parsed, ParseFailure):
        return jsonify({'error': 'Invalid FPL format', 'reason': parsed.reason}), 400

    route = body.get('route')
    summary = route.get('properties') if isinstance(route, dict) else None

    with get_session() as session:
        flight = FlightPlan.from_record(parsed, summary if isinstance(summary, dict) else None)
        session.add(flight)
        session.flush()
        result = flight.to_dict()

    logger.info(f'Stored flight plan {result["id"]}: {parsed.departure_id} -> {parsed.destination_id}')
    return jsonify({'success': True, 'flight': result}), 201

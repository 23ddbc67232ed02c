"""
Database models for FlightViz.

Only submitted flight plans are persisted; everything about a running
visualization (clock, scene, storm cache) lives in memory.
"""

from flightviz.models.base import Base, engine, SessionLocal, init_db, get_session
from flightviz.models.flight_plan import FlightPlan

__all__ = [
    'Base',
    'engine',
    'SessionLocal',
    'init_db',
    'get_session',
    'FlightPlan',
]

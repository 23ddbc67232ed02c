"""
FlightViz Package.

Temporal flight-and-storm playback engine built with Flask, NumPy,
requests and SQLAlchemy.

Modules:
    ingestion/      ICAO flight-plan parser, route GeoJSON ingestion, storm feed client
    cache.py        Time-bucketed weather cache with in-flight fetch deduplication
    scene/          Renderer capability surface and the storm volume layer
    playback/       Simulation clock, interpolated flight track, playback controller
    services/       Airport risk lookups and upstream route service
    orchestrator.py Visualization state machine composing the above
    models/         SQLAlchemy ORM models (stored flight plans)
    api/            REST endpoints driving the visualization from a browser
    config.py       Centralized configuration from environment variables
"""

__version__ = '1.0.0'

"""
FlightViz Flask Application.

Main entry point for the web application. Initializes:
- Database schema (stored flight plans)
- Visualization orchestrator (scene, storm cache, playback, risk lookups)
- Background playback loop
- API routes

Usage:
    python -m flightviz.app

Or with gunicorn (single worker; the scene lives in process memory):
    gunicorn 'flightviz.app:create_app()'
"""

import logging
import os
from typing import Optional

from flask import Flask
from flask_cors import CORS

from flightviz.api import flights_bp, metrics_bp, visualization_bp
from flightviz.config import config
from flightviz.models import init_db
from flightviz.orchestrator import VisualizationOrchestrator
from flightviz.services.route_service import RouteService

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if config.debug else logging.INFO,
    format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S',
)
logger = logging.getLogger(__name__)


def create_app(
    orchestrator: Optional[VisualizationOrchestrator] = None,
    start_playback: bool = True,
) -> Flask:
    """
    Application factory for Flask.

    Args:
        orchestrator: Pre-built orchestrator (tests inject one with mocked
                      upstreams). Built from config when None.
        start_playback: Whether to start the background playback loop.
                        Set to False for testing and tick via the API.

    Returns:
        Configured Flask application instance.
    """
    app = Flask(__name__)
    app.config['SECRET_KEY'] = config.secret_key

    # Enable CORS for API endpoints
    CORS(app, resources={r'/api/*': {'origins': '*'}})

    logger.info('Initializing database...')
    init_db()

    app.register_blueprint(visualization_bp)
    app.register_blueprint(flights_bp)
    app.register_blueprint(metrics_bp)

    if orchestrator is None:
        orchestrator = VisualizationOrchestrator(route_service=RouteService())
    app.config['ORCHESTRATOR'] = orchestrator

    if start_playback:
        orchestrator.controller.start_background()
        logger.info(f'Playback loop started at {config.playback.multiplier:g}x')

    @app.route('/health')
    def health():
        """Simple health check endpoint."""
        return {'status': 'ok'}

    # -------------------------------------------------------------------------
    # Error handlers
    # -------------------------------------------------------------------------

    @app.errorhandler(404)
    def not_found(e):
        return {'error': 'Not found'}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {'error': 'Method not allowed'}, 405

    @app.errorhandler(500)
    def server_error(e):
        logger.error(f'Server error: {e}')
        return {'error': 'Internal server error'}, 500

    return app


def run_development_server():
    """Run the development server."""
    app = create_app()

    port = int(os.environ.get('PORT', 5000))

    logger.info(f'Starting FlightViz on http://localhost:{port}')

    app.run(
        host='0.0.0.0',
        port=port,
        debug=config.debug,
        use_reloader=False,  # Disable reloader to prevent duplicate playback threads
    )


if __name__ == '__main__':
    run_development_server()

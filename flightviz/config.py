"""
Configuration management for FlightViz.

Loads settings from environment variables with sensible defaults.
All configuration is centralized here to avoid magic strings scattered
throughout the codebase.
"""

import os
from dataclasses import dataclass
from typing import Tuple

from dotenv import load_dotenv

load_dotenv()


@dataclass(frozen=True)
class StormFeedConfig:
    """Severe-weather (storm cell) feed configuration."""
    base_url: str = os.getenv('STORM_API_URL', 'https://demo.flyclim.com/api')
    # Upstream storm service can take minutes to build a snapshot
    timeout_seconds: float = float(os.getenv('STORM_FETCH_TIMEOUT_SECONDS', '180'))
    max_workers: int = int(os.getenv('STORM_FETCH_WORKERS', '4'))
    bucket_minutes: int = 5


@dataclass(frozen=True)
class RouteServiceConfig:
    """Route geometry service configuration."""
    base_url: str = os.getenv('ROUTE_API_URL', 'https://demo.flyclim.com/api')
    timeout_seconds: float = float(os.getenv('ROUTE_TIMEOUT_SECONDS', '60'))


@dataclass(frozen=True)
class AirportRiskConfig:
    """Airport risk API configuration."""
    base_url: str = os.getenv('RISK_API_URL', 'https://amss.xtreme-weather.com/api')
    timeout_seconds: float = float(os.getenv('RISK_TIMEOUT_SECONDS', '30'))
    cache_ttl_seconds: int = int(os.getenv('RISK_CACHE_TTL_SECONDS', '300'))


@dataclass(frozen=True)
class PlaybackConfig:
    """Simulation clock and scene geometry settings."""
    multiplier: float = float(os.getenv('PLAYBACK_MULTIPLIER', '30'))
    tick_seconds: float = float(os.getenv('PLAYBACK_TICK_SECONDS', '0.1'))

    # Aircraft is flown at a fixed cruise altitude
    cruise_altitude_m: float = 10600.0

    # Storm volumes are extruded between these altitudes (meters)
    storm_base_altitude_m: float = 600.0
    storm_top_band_m: Tuple[float, float] = (9500.0, 12000.0)


@dataclass(frozen=True)
class DatabaseConfig:
    """Database configuration."""
    url: str = os.getenv('DATABASE_URL', 'sqlite:///flightviz.db')

    @property
    def is_sqlite(self) -> bool:
        return self.url.startswith('sqlite')


@dataclass(frozen=True)
class AppConfig:
    """Main application configuration."""
    storms: StormFeedConfig
    routes: RouteServiceConfig
    airport_risk: AirportRiskConfig
    playback: PlaybackConfig
    database: DatabaseConfig

    # Flask settings
    secret_key: str
    debug: bool


def load_config() -> AppConfig:
    """Load and validate all configuration."""
    return AppConfig(
        storms=StormFeedConfig(),
        routes=RouteServiceConfig(),
        airport_risk=AirportRiskConfig(),
        playback=PlaybackConfig(),
        database=DatabaseConfig(),
        secret_key=os.getenv('SECRET_KEY', 'dev-key-change-in-prod'),
        debug=os.getenv('FLASK_DEBUG', '0') == '1',
    )


# Singleton instance
config = load_config()

"""
Playback module for FlightViz.

Simulation clock, NumPy-interpolated flight track, and the controller
that drives the aircraft entity along it.
"""

from flightviz.playback.clock import ClockRange, PlaybackClock
from flightviz.playback.controller import ROUTE_LAYER, RoutePlaybackController
from flightviz.playback.track import FlightTrack

__all__ = [
    'ClockRange',
    'PlaybackClock',
    'ROUTE_LAYER',
    'RoutePlaybackController',
    'FlightTrack',
]

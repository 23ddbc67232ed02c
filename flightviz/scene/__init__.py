"""
Scene module for FlightViz.

Renderer capability surface and the storm weather layer drawn into it.
"""

from flightviz.scene.graph import EntityKind, InMemoryScene, SceneEntity, SceneGraph
from flightviz.scene.layers import WEATHER_LAYER, WeatherLayerManager

__all__ = [
    'EntityKind',
    'InMemoryScene',
    'SceneEntity',
    'SceneGraph',
    'WEATHER_LAYER',
    'WeatherLayerManager',
]

"""Shared fixtures for the FlightViz test suite."""

from concurrent.futures import Executor, Future
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

T0 = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)

SCENARIO_A_FPL = '(FPL-TEST01-VG -C172/L -KJFK1200 N0120A080 DCT -KLAX0630 DOF/240615)'


class InlineExecutor(Executor):
    """Runs submitted work synchronously, so futures are done on return."""

    def submit(self, fn, *args, **kwargs):
        future = Future()
        try:
            future.set_result(fn(*args, **kwargs))
        except Exception as e:
            future.set_exception(e)
        return future


def iso(ts: datetime) -> str:
    return ts.strftime('%Y-%m-%dT%H:%M:%SZ')


def point_feature(lon, lat, ts, popup='', **extra):
    properties = {'time': iso(ts) if isinstance(ts, datetime) else ts, 'popup': popup}
    properties.update(extra)
    return {
        'type': 'Feature',
        'geometry': {'type': 'Point', 'coordinates': [lon, lat]},
        'properties': properties,
    }


def make_route(start=T0, count=3, step=timedelta(minutes=1), lon0=-73.78, lat0=40.64, labels=None):
    """Route FeatureCollection with `count` points `step` apart, heading east."""
    labels = labels or (['KJFK'] + [f'WPT{i}' for i in range(1, count - 1)] + ['KLAX'])
    features = [
        point_feature(lon0 + i * 0.5, lat0, start + i * step, popup=labels[i])
        for i in range(count)
    ]
    return {
        'type': 'FeatureCollection',
        'features': features,
        'properties': {'storm_detected': True, 'risk_level': 'medium', 'risk_score': 42},
    }


def square_storm(lon, lat, size=0.5, closed=True):
    ring = [[lon, lat], [lon + size, lat], [lon + size, lat + size], [lon, lat + size]]
    if closed:
        ring.append([lon, lat])
    return {
        'type': 'Feature',
        'geometry': {'type': 'Polygon', 'coordinates': [ring]},
        'properties': {},
    }


def storm_collection(*features):
    return {'type': 'FeatureCollection', 'features': list(features)}


def json_response(payload, status_code=200):
    """A requests.Response stand-in returning `payload` from .json()."""
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


def fixed_rng(value=10000.0):
    rng = MagicMock()
    rng.uniform.return_value = value
    return rng


RISK_PAYLOAD = {
    'icao': 'KJFK',
    'metar': {'raw': 'KJFK 151151Z 18012KT 10SM FEW250 27/17 A3002'},
    'risk': {
        'wind_risk': 12,
        'temp_risk': 3,
        'pressure_risk': 5,
        'visibility_risk': 40,
        'total_risk': 55,
        'risk_classification': 'elevated',
    },
    'flight_delay': {'delay_probability': '15%', 'delay_risk': 'low'},
}

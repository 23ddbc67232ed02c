import unittest
from unittest.mock import MagicMock, Mock, patch

import requests

from flightviz.errors import AirportRiskError, RouteServiceError
from flightviz.services.airport_risk import AirportRiskLookup, RiskSnapshot
from flightviz.services.route_service import RouteService
from tests.helpers import RISK_PAYLOAD, InlineExecutor, json_response, make_route


class TestRiskSnapshot(unittest.TestCase):

    def test_from_payload(self):
        snapshot = RiskSnapshot.from_payload('KJFK', RISK_PAYLOAD)

        self.assertEqual(snapshot.icao, 'KJFK')
        self.assertEqual(snapshot.visibility_risk, 40.0)
        self.assertEqual(snapshot.total_risk, 55.0)
        self.assertEqual(snapshot.classification, 'elevated')
        self.assertEqual(snapshot.delay_probability, '15%')
        self.assertTrue(snapshot.metar_raw.startswith('KJFK'))

    def test_level_bands(self):
        def level(total):
            return RiskSnapshot.from_payload('KJFK', {'risk': {'total_risk': total}}).level

        self.assertEqual(level(10), 'low')
        self.assertEqual(level(25), 'medium')
        self.assertEqual(level(50), 'high')
        self.assertEqual(level(75), 'extreme')

    def test_missing_risk_block(self):
        with self.assertRaises(AirportRiskError) as ctx:
            RiskSnapshot.from_payload('KJFK', {'icao': 'KJFK'})
        self.assertEqual(ctx.exception.icao, 'KJFK')

    def test_non_numeric_risk(self):
        with self.assertRaises(AirportRiskError):
            RiskSnapshot.from_payload('KJFK', {'risk': {'total_risk': 'high'}})

    def test_to_dict(self):
        data = RiskSnapshot.from_payload('KJFK', RISK_PAYLOAD).to_dict()
        self.assertEqual(data['risk']['level'], 'high')
        self.assertEqual(data['flight_delay']['risk'], 'low')


class TestAirportRiskLookup(unittest.TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.session.get.return_value = json_response(RISK_PAYLOAD)
        self.lookup = AirportRiskLookup(
            base_url='http://risk.test/api',
            timeout=30,
            cache_ttl=300,
            session=self.session,
            executor=InlineExecutor(),
        )

    def test_lookup(self):
        snapshot = self.lookup.lookup('kjfk')

        self.session.get.assert_called_once_with('http://risk.test/api/airport_risk/KJFK', timeout=30)
        self.assertEqual(snapshot.total_risk, 55.0)

    def test_successful_lookup_is_cached(self):
        self.lookup.lookup('KJFK')
        self.lookup.lookup('KJFK')
        self.assertEqual(self.session.get.call_count, 1)

    def test_cache_expires(self):
        with patch('flightviz.services.airport_risk.time.time', return_value=1000.0):
            self.lookup.lookup('KJFK')
        with patch('flightviz.services.airport_risk.time.time', return_value=1000.0 + 301):
            self.lookup.lookup('KJFK')
        self.assertEqual(self.session.get.call_count, 2)

    def test_failure_is_not_cached(self):
        self.session.get.return_value = json_response({}, status_code=500)
        with self.assertRaises(AirportRiskError):
            self.lookup.lookup('KJFK')

        self.session.get.return_value = json_response(RISK_PAYLOAD)
        self.assertEqual(self.lookup.lookup('KJFK').icao, 'KJFK')
        self.assertEqual(self.session.get.call_count, 2)

    def test_invalid_identifier_makes_no_request(self):
        with self.assertRaises(AirportRiskError):
            self.lookup.lookup('KJ1')
        self.session.get.assert_not_called()

    def test_timeout(self):
        self.session.get.side_effect = requests.exceptions.Timeout()
        with self.assertRaises(AirportRiskError) as ctx:
            self.lookup.lookup('KLAX')
        self.assertEqual(ctx.exception.icao, 'KLAX')

    def test_connection_error(self):
        self.session.get.side_effect = requests.exceptions.ConnectionError()
        with self.assertRaises(AirportRiskError):
            self.lookup.lookup('KLAX')

    def test_invalid_json(self):
        response = json_response(None)
        response.json.side_effect = ValueError('bad json')
        self.session.get.return_value = response
        with self.assertRaises(AirportRiskError):
            self.lookup.lookup('KLAX')

    def test_pick_on_airport(self):
        self.lookup.register('e1', 'kjfk')

        future = self.lookup.on_pick('e1')

        self.assertEqual(future.result().icao, 'KJFK')
        self.assertTrue(self.lookup.is_airport('e1'))
        self.assertEqual(self.lookup.identifier_for('e1'), 'KJFK')

    def test_pick_on_other_entity(self):
        self.assertIsNone(self.lookup.on_pick('e99'))
        self.session.get.assert_not_called()

    def test_pick_failure_surfaces_through_future(self):
        self.session.get.side_effect = requests.exceptions.Timeout()
        self.lookup.register('e1', 'KJFK')

        future = self.lookup.on_pick('e1')

        self.assertIsInstance(future.exception(), AirportRiskError)

    def test_clear(self):
        self.lookup.register('e1', 'KJFK')
        self.lookup.clear()
        self.assertFalse(self.lookup.is_airport('e1'))
        self.assertEqual(self.lookup.stats['registered_airports'], 0)


class TestRouteService(unittest.TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.service = RouteService(base_url='http://routes.test/api', timeout=60, session=self.session)

    def test_fetch_route(self):
        route = make_route()
        self.session.post.return_value = json_response(route)

        self.assertEqual(self.service.fetch_route('(FPL-...)'), route)
        self.session.post.assert_called_once_with(
            'http://routes.test/api/route', json={'fpl': '(FPL-...)'}, timeout=60
        )

    def test_timeout(self):
        self.session.post.side_effect = requests.exceptions.Timeout()
        with self.assertRaises(RouteServiceError):
            self.service.fetch_route('(FPL-...)')

    def test_http_error(self):
        response = json_response({}, status_code=502)
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(response=Mock(status_code=502))
        self.session.post.return_value = response

        with self.assertRaises(RouteServiceError) as ctx:
            self.service.fetch_route('(FPL-...)')
        self.assertIn('502', str(ctx.exception))

    def test_invalid_json(self):
        response = json_response(None)
        response.json.side_effect = ValueError('bad json')
        self.session.post.return_value = response

        with self.assertRaises(RouteServiceError):
            self.service.fetch_route('(FPL-...)')


if __name__ == '__main__':
    unittest.main()

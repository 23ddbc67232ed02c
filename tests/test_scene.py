import unittest
from concurrent.futures import Future
from datetime import timedelta
from unittest.mock import Mock

from flightviz.cache import WeatherCache, time_bucket
from flightviz.scene.graph import EntityKind, InMemoryScene, SceneEntity
from flightviz.scene.layers import WEATHER_LAYER, WeatherLayerManager
from tests.helpers import T0, InlineExecutor, fixed_rng, square_storm, storm_collection


class TestInMemoryScene(unittest.TestCase):

    def setUp(self):
        self.scene = InMemoryScene()

    def test_add_get_remove(self):
        handle = self.scene.add(SceneEntity(kind=EntityKind.MARKER, properties={'label': 'X'}))

        self.assertEqual(self.scene.get(handle).properties['label'], 'X')
        self.assertTrue(self.scene.remove(handle))
        self.assertFalse(self.scene.remove(handle))
        self.assertIsNone(self.scene.get(handle))

    def test_handles_are_unique(self):
        handles = [self.scene.add(SceneEntity(kind=EntityKind.MARKER)) for _ in range(3)]
        self.assertEqual(len(set(handles)), 3)
        self.assertEqual(sorted(self.scene.handles()), sorted(handles))

    def test_replace_swaps_sets(self):
        keep = self.scene.add(SceneEntity(kind=EntityKind.MARKER))
        old = [self.scene.add(SceneEntity(kind=EntityKind.WALL)) for _ in range(2)]

        new = self.scene.replace(old, [SceneEntity(kind=EntityKind.POLYGON)])

        self.assertEqual(sorted(self.scene.handles()), sorted([keep] + new))

    def test_entities_filter(self):
        self.scene.add(SceneEntity(kind=EntityKind.WALL, layer='weather'))
        self.scene.add(SceneEntity(kind=EntityKind.POLYGON, layer='weather'))
        self.scene.add(SceneEntity(kind=EntityKind.MARKER, layer='route'))

        self.assertEqual(len(self.scene.entities(layer='weather')), 2)
        self.assertEqual(len(self.scene.entities(layer='weather', kind=EntityKind.WALL)), 1)
        self.assertEqual(len(self.scene), 3)

    def test_snapshot_revision_advances(self):
        first = self.scene.snapshot()['revision']
        handle = self.scene.add(SceneEntity(kind=EntityKind.MARKER, properties={'label': 'X'}, tags={'a': 1}))
        snapshot = self.scene.snapshot()

        self.assertGreater(snapshot['revision'], first)
        self.assertEqual(snapshot['entities'], [{
            'id': handle, 'kind': 'marker', 'layer': None, 'tags': {'a': 1}, 'label': 'X',
        }])


class TestWeatherLayerRendering(unittest.TestCase):

    def setUp(self):
        self.scene = InMemoryScene()
        self.rng = fixed_rng(10000.0)
        self.layer = WeatherLayerManager(self.scene, cache=Mock(), rng=self.rng)

    def weather(self, kind=None):
        return self.scene.entities(layer=WEATHER_LAYER, kind=kind)

    def test_square_storm_becomes_volume(self):
        handles = self.layer.refresh_weather_layer(storm_collection(square_storm(10, 20)))

        self.assertEqual(len(handles), 6)
        self.assertEqual(len(self.weather(EntityKind.WALL)), 4)
        caps = self.weather(EntityKind.POLYGON).values()
        self.assertEqual(sorted(c.tags['cap'] for c in caps), ['bottom', 'top'])
        self.rng.uniform.assert_called_once_with(9500, 12000)

    def test_wall_heights(self):
        self.layer.refresh_weather_layer(storm_collection(square_storm(10, 20)))

        for wall in self.weather(EntityKind.WALL).values():
            heights = {p[2] for p in wall.properties['positions']}
            self.assertEqual(heights, {600, 10000.0})
        for cap in self.weather(EntityKind.POLYGON).values():
            expected = 10000.0 if cap.tags['cap'] == 'top' else 600
            self.assertEqual(cap.properties['height'], expected)

    def test_open_ring_is_closed(self):
        self.layer.refresh_weather_layer(storm_collection(square_storm(10, 20, closed=False)))
        self.assertEqual(len(self.weather(EntityKind.WALL)), 4)

    def test_multipolygon_gets_one_top_per_cell(self):
        a = square_storm(0, 0)['geometry']['coordinates']
        b = square_storm(5, 5)['geometry']['coordinates']
        feature = {'type': 'Feature', 'geometry': {'type': 'MultiPolygon', 'coordinates': [a, b]}}

        self.layer.refresh_weather_layer(storm_collection(feature))

        self.assertEqual(len(self.weather(EntityKind.WALL)), 8)
        self.assertEqual(self.rng.uniform.call_count, 2)

    def test_degenerate_ring_is_skipped(self):
        feature = {
            'type': 'Feature',
            'geometry': {'type': 'Polygon', 'coordinates': [[[0, 0], [1, 1], [0, 0]]]},
        }
        self.assertEqual(self.layer.refresh_weather_layer(storm_collection(feature)), [])

    def test_malformed_polygon_coordinates_clear_layer(self):
        self.layer.refresh_weather_layer(storm_collection(square_storm(0, 0)))
        malformed = [
            {'type': 'Feature', 'geometry': {'type': 'Polygon', 'coordinates': [None]}},
            {'type': 'Feature', 'geometry': {'type': 'Polygon', 'coordinates': 5}},
            {'type': 'Feature', 'geometry': {'type': 'Polygon', 'coordinates': [[None, 'x', [1]]]}},
            {'type': 'Feature', 'geometry': {'type': 'MultiPolygon', 'coordinates': [None, 3, [7]]}},
            {'type': 'Feature', 'geometry': 'Polygon'},
        ]

        handles = self.layer.refresh_weather_layer(storm_collection(*malformed))

        self.assertEqual(handles, [])
        self.assertEqual(self.weather(), {})

    def test_malformed_cell_does_not_hide_valid_ones(self):
        bad = {'type': 'Feature', 'geometry': {'type': 'Polygon', 'coordinates': [None]}}

        self.layer.refresh_weather_layer(storm_collection(bad, square_storm(10, 20)))

        self.assertEqual(len(self.weather(EntityKind.WALL)), 4)

    def test_only_newest_geometry_is_visible(self):
        first = self.layer.refresh_weather_layer(storm_collection(square_storm(0, 0)))
        second = self.layer.refresh_weather_layer(storm_collection(square_storm(50, 50)))

        self.assertTrue(set(first).isdisjoint(self.scene.handles()))
        self.assertEqual(sorted(self.weather()), sorted(second))
        for entity in self.weather().values():
            self.assertGreaterEqual(entity.properties['positions'][0][0], 50)

    def test_none_clears_layer(self):
        self.layer.refresh_weather_layer(storm_collection(square_storm(0, 0)))
        self.layer.refresh_weather_layer(None)
        self.layer.refresh_weather_layer(None)

        self.assertEqual(self.weather(), {})
        self.assertEqual(self.layer.handles, [])

    def test_other_layers_are_untouched(self):
        marker = self.scene.add(SceneEntity(kind=EntityKind.MARKER, layer='route'))

        self.layer.refresh_weather_layer(storm_collection(square_storm(0, 0)))
        self.layer.clear()

        self.assertEqual(self.scene.handles(), [marker])


class TestWeatherLayerSync(unittest.TestCase):

    def setUp(self):
        self.scene = InMemoryScene()
        self.feed = Mock()
        self.feed.fetch.return_value = storm_collection(square_storm(0, 0))
        self.cache = WeatherCache(feed=self.feed, executor=InlineExecutor())
        self.layer = WeatherLayerManager(self.scene, self.cache, rng=fixed_rng())

    def test_sync_draws_active_bucket(self):
        self.layer.sync(T0 + timedelta(seconds=90))

        bucket = time_bucket(T0)
        self.feed.fetch.assert_called_once_with(bucket)
        self.assertEqual(self.layer.active_bucket, bucket)
        self.assertEqual(self.layer.applied_bucket, bucket)
        self.assertEqual(len(self.layer.handles), 6)

    def test_same_bucket_does_not_refetch(self):
        for seconds in (0, 60, 120, 299):
            self.layer.sync(T0 + timedelta(seconds=seconds))
        self.assertEqual(self.feed.fetch.call_count, 1)

        self.layer.sync(T0 + timedelta(minutes=5))
        self.assertEqual(self.feed.fetch.call_count, 2)

    def test_empty_bucket_clears_previous_weather(self):
        self.layer.sync(T0)
        self.feed.fetch.return_value = None

        self.layer.sync(T0 + timedelta(minutes=5))

        self.assertEqual(self.layer.handles, [])
        self.assertEqual(self.scene.entities(layer=WEATHER_LAYER), {})

    def test_malformed_bucket_clears_previous_weather(self):
        self.layer.sync(T0)
        self.feed.fetch.return_value = storm_collection(
            {'type': 'Feature', 'geometry': {'type': 'Polygon', 'coordinates': [None]}}
        )

        self.layer.sync(T0 + timedelta(minutes=5))

        self.assertEqual(self.layer.applied_bucket, time_bucket(T0 + timedelta(minutes=5)))
        self.assertEqual(self.scene.entities(layer=WEATHER_LAYER), {})

    def test_reset(self):
        self.layer.sync(T0)
        self.layer.reset()

        self.assertIsNone(self.layer.active_bucket)
        self.assertIsNone(self.layer.applied_bucket)
        self.assertEqual(len(self.scene), 0)


class TestWeatherLayerOrdering(unittest.TestCase):
    """Results arriving out of order must never overwrite newer weather."""

    def setUp(self):
        self.scene = InMemoryScene()
        self.futures = {}

        def request(bucket):
            self.futures[bucket] = Future()
            return self.futures[bucket]

        self.cache = Mock()
        self.cache.epoch = 0
        self.cache.request.side_effect = request
        self.layer = WeatherLayerManager(self.scene, self.cache, rng=fixed_rng())

    def test_late_result_for_old_bucket_is_discarded(self):
        old, new = time_bucket(T0), time_bucket(T0 + timedelta(minutes=5))
        self.layer.sync(T0)
        self.layer.sync(T0 + timedelta(minutes=5))

        self.futures[new].set_result(storm_collection(square_storm(50, 50)))
        self.assertTrue(self.layer.apply_resolved())

        self.futures[old].set_result(storm_collection(square_storm(0, 0)))
        self.assertFalse(self.layer.apply_resolved())

        self.assertEqual(self.layer.applied_bucket, new)
        for entity in self.scene.entities(layer=WEATHER_LAYER).values():
            self.assertGreaterEqual(entity.properties['positions'][0][0], 50)

    def test_old_result_arriving_first_is_not_drawn(self):
        self.layer.sync(T0)
        self.layer.sync(T0 + timedelta(minutes=5))

        self.futures[time_bucket(T0)].set_result(storm_collection(square_storm(0, 0)))

        self.assertFalse(self.layer.apply_resolved())
        self.assertEqual(len(self.scene), 0)

    def test_result_from_previous_epoch_is_discarded(self):
        self.layer.sync(T0)
        self.cache.epoch = 1

        self.futures[time_bucket(T0)].set_result(storm_collection(square_storm(0, 0)))

        self.assertFalse(self.layer.apply_resolved())
        self.assertEqual(len(self.scene), 0)

    def test_sync_does_not_wait_for_fetch(self):
        self.layer.sync(T0)
        self.assertIsNone(self.layer.applied_bucket)
        self.assertEqual(len(self.scene), 0)

        self.futures[time_bucket(T0)].set_result(storm_collection(square_storm(0, 0)))
        self.layer.sync(T0 + timedelta(seconds=10))

        self.assertEqual(self.layer.applied_bucket, time_bucket(T0))
        self.assertEqual(len(self.scene), 6)


if __name__ == '__main__':
    unittest.main()

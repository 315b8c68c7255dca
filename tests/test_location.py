import unittest
from unittest.mock import MagicMock

from connector.geocoding import Coordinate, GeocodingError
from connector.records import LocationInfo
from matching.location import LocationResolver, haversine_km

BENGALURU = Coordinate(12.9716, 77.5946)
MYSURU = Coordinate(12.2958, 76.6394)


class HaversineTests(unittest.TestCase):
    def test_same_point_is_zero(self) -> None:
        self.assertAlmostEqual(haversine_km(BENGALURU, BENGALURU), 0.0)

    def test_known_distance(self) -> None:
        self.assertAlmostEqual(haversine_km(BENGALURU, MYSURU), 128.0, delta=2.0)


class LocationResolverTests(unittest.TestCase):
    def setUp(self) -> None:
        self.geocoder = MagicMock()
        self.geocoder.search.return_value = BENGALURU
        self.sleep = MagicMock()
        self.resolver = LocationResolver(self.geocoder, throttle_seconds=0, sleep=self.sleep)

    def test_results_are_cached(self) -> None:
        self.assertEqual(self.resolver.resolve("Koramangala, Bengaluru"), BENGALURU)
        self.assertEqual(self.resolver.resolve("koramangala,   BENGALURU"), BENGALURU)

        self.geocoder.search.assert_called_once_with("Koramangala, Bengaluru")
        self.assertEqual(len(self.resolver.cache), 1)

    def test_failures_are_cached_as_unknown(self) -> None:
        self.geocoder.search.side_effect = GeocodingError("service down")

        self.assertIsNone(self.resolver.resolve("Nowhere"))
        self.assertIsNone(self.resolver.resolve("Nowhere"))
        self.geocoder.search.assert_called_once()

    def test_blank_address_skips_lookup(self) -> None:
        self.assertIsNone(self.resolver.resolve("   "))
        self.geocoder.search.assert_not_called()

    def test_lookups_are_spaced_by_the_throttle(self) -> None:
        clock = MagicMock(side_effect=[100.0, 100.05, 100.2])
        resolver = LocationResolver(self.geocoder, throttle_seconds=0.2, sleep=self.sleep, clock=clock)

        resolver.resolve("Koramangala")
        resolver.resolve("Indiranagar")

        self.sleep.assert_called_once()
        self.assertAlmostEqual(self.sleep.call_args[0][0], 0.15)

    def test_distance_between_locations(self) -> None:
        self.geocoder.search.side_effect = lambda address: BENGALURU if "Koramangala" in address else MYSURU

        distance = self.resolver.distance_km(
            LocationInfo(area="Koramangala"), LocationInfo(full_address="Mysuru Palace")
        )

        self.assertAlmostEqual(distance, haversine_km(BENGALURU, MYSURU))

    def test_distance_unknown_when_a_location_is_missing(self) -> None:
        self.assertIsNone(self.resolver.distance_km(LocationInfo(), LocationInfo(area="Koramangala")))
        self.geocoder.search.assert_not_called()

    def test_distance_unknown_when_lookup_fails(self) -> None:
        self.geocoder.search.return_value = None

        self.assertIsNone(
            self.resolver.distance_km(LocationInfo(area="Koramangala"), LocationInfo(area="Whitefield"))
        )


if __name__ == "__main__":
    unittest.main()

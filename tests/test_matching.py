import unittest
from unittest.mock import MagicMock

from connector.records import LocationInfo, Specialization
from matching.proximity import area_score, distance_score, pincode_proximity
from matching.ranking import MatchRanker, composite_score, neutral_match
from matching.specialization import score_specialization
from tests.support import make_practitioner


class SpecializationScoreTests(unittest.TestCase):
    def test_each_matched_keyword_adds_the_weight(self) -> None:
        result = score_specialization(Specialization.ORTHODONTIST, "Crooked teeth, need BRACES")

        self.assertEqual(result.score, 10)
        self.assertEqual(result.matched_keywords, ("braces", "crooked"))
        self.assertIn("braces", result.reason)

    def test_overlapping_keywords_each_count(self) -> None:
        result = score_specialization("Periodontist", "gum disease")

        self.assertEqual(result.matched_keywords, ("gum", "gum disease"))
        self.assertEqual(result.score, 8)

    def test_general_practitioners_use_lower_weight(self) -> None:
        result = score_specialization(Specialization.GENERAL, "routine cleaning")

        self.assertEqual(result.score, 4)

    def test_no_match(self) -> None:
        result = score_specialization(Specialization.COSMETIC_DENTIST, "")

        self.assertEqual(result.score, 0)
        self.assertEqual(result.reason, "No specific keywords matched for Cosmetic Dentist")

    def test_unknown_label_uses_general_profile(self) -> None:
        self.assertEqual(score_specialization("Astrologer", "checkup").score, 2)


class ProximityTests(unittest.TestCase):
    def test_area_score_sequence(self) -> None:
        patient = LocationInfo(area="Koramangala", city="Bengaluru", pincode="560034")
        cases = [
            (LocationInfo(area="koramangala "), 10),
            (LocationInfo(area="Indiranagar", city="bengaluru"), 6),
            (LocationInfo(area="Indiranagar", pincode="560095"), 7),
            (LocationInfo(pincode="561203"), 4),
            (LocationInfo(pincode="580001"), 2),
            (LocationInfo(pincode="110001"), 0),
        ]

        self.assertEqual([area_score(patient, other).score for other, _ in cases], [s for _, s in cases])

    def test_same_city_ranks_below_pincode_prefix(self) -> None:
        patient = LocationInfo(city="Bengaluru", pincode="560034")
        same_city = area_score(patient, LocationInfo(city="Bengaluru", pincode="560095"))

        self.assertEqual(same_city.score, 6)
        self.assertEqual(same_city.reason, "Same city")

    def test_pincode_proximity_requires_both_codes(self) -> None:
        self.assertEqual(pincode_proximity(None, "560034"), 0)
        self.assertEqual(pincode_proximity("560034", "560034"), 10)

    def test_distance_bands(self) -> None:
        cases = [(None, 1), (0.0, 10), (3, 10), (5, 10), (5.01, 8), (10, 8), (20, 6), (50, 4), (100, 2), (100.5, 1), (500, 1)]
        for distance, expected in cases:
            with self.subTest(distance=distance):
                self.assertEqual(distance_score(distance).score, expected)
        self.assertEqual(distance_score(None).reason, "Distance unknown")


class RankingTests(unittest.TestCase):
    def test_composite_score_weights(self) -> None:
        self.assertAlmostEqual(composite_score(5, 10, 10), 8.0)
        self.assertAlmostEqual(composite_score(10, 0, 1), 4.3)

    def test_specialist_outranks_general_practitioner(self) -> None:
        ranker = MatchRanker()
        general = make_practitioner("dr-g", area="Koramangala")
        orthodontist = make_practitioner(
            "dr-o", specialization=Specialization.ORTHODONTIST, area="Whitefield"
        )

        ranked = ranker.rank([general, orthodontist], "crooked teeth need braces", LocationInfo(area="Koramangala"))

        self.assertEqual([match.practitioner.practitioner_id for match in ranked], ["dr-o", "dr-g"])
        self.assertAlmostEqual(ranked[0].score, 10 * 0.4 + 0 * 0.3 + 1 * 0.3)
        self.assertAlmostEqual(ranked[1].score, 0 * 0.4 + 10 * 0.3 + 1 * 0.3)

    def test_ties_keep_input_order(self) -> None:
        practitioners = [make_practitioner(f"dr-{index}") for index in range(5)]

        ranked = MatchRanker().rank(practitioners, "", LocationInfo())

        self.assertEqual([match.practitioner for match in ranked], practitioners)

    def test_resolver_distance_feeds_the_score(self) -> None:
        resolver = MagicMock()
        resolver.distance_km.return_value = 3.0
        practitioner = make_practitioner("dr-a", area="HSR Layout")

        match = MatchRanker(resolver).score(practitioner, "", LocationInfo(area="Koramangala"))

        self.assertEqual(match.distance_score, 10)
        self.assertAlmostEqual(match.score, 3.0)
        self.assertEqual(match.to_dict()["distance_km"], 3.0)
        resolver.distance_km.assert_called_once()

    def test_neutral_match(self) -> None:
        match = neutral_match(make_practitioner("dr-a"))

        self.assertEqual(match.score, 1.0)
        self.assertIsNone(match.distance_km)


if __name__ == "__main__":
    unittest.main()

import unittest
from unittest.mock import MagicMock

import requests

from spotiprofile.enrich import enrich_events
from spotiprofile.models import ListeningEvent, Nationality
from spotiprofile.nationality import (
    LocalTableStrategy,
    MusicBrainzStrategy,
    NationalityResolver,
    WikidataStrategy,
    calculate_country_distribution,
)


def _response(payload, ok=True):
    resp = MagicMock()
    resp.ok = ok
    resp.json.return_value = payload
    return resp


def _event(artist, i):
    return ListeningEvent(
        ts=f"2024-01-01T10:{i:02d}:00Z", ms_played=200_000, shuffle=False, skipped=False,
        track_name=f"t{i}", artist_name=artist, track_uri=f"spotify:track:{i}",
    )


class TestStrategies(unittest.TestCase):
    def test_local_table_is_case_insensitive(self):
        strategy = LocalTableStrategy()
        self.assertEqual(strategy("  Bad Bunny "), Nationality("Puerto Rico", "630"))
        self.assertIsNone(strategy("Nobody Knows Me"))

    def test_wikidata(self):
        session = MagicMock()
        session.get.side_effect = [
            _response({"search": [{"id": "Q1"}]}),
            _response({"entities": {"Q1": {"claims": {
                "P27": [{"mainsnak": {"datavalue": {"value": {"id": "Q30"}}}}],
            }}}}),
            _response({"entities": {"Q30": {
                "claims": {"P297": [{"mainsnak": {"datavalue": {"value": "US"}}}]},
                "labels": {"en": {"value": "United States of America"}},
            }}}),
        ]
        result = WikidataStrategy(session)("Some Artist")
        self.assertEqual(result, Nationality("United States of America", "840"))
        self.assertEqual(session.get.call_count, 3)

    def test_wikidata_no_match(self):
        session = MagicMock()
        session.get.return_value = _response({"search": []})
        self.assertIsNone(WikidataStrategy(session)("Nobody"))

    def test_musicbrainz_area(self):
        session = MagicMock()
        session.get.return_value = _response({"artists": [
            {"area": {"name": "Sweden", "iso-3166-1-codes": ["SE"]}},
        ]})
        strategy = MusicBrainzStrategy(session, user_agent="test/1.0")
        self.assertEqual(strategy("ABBA"), Nationality("Sweden", "752"))
        self.assertEqual(session.get.call_args.kwargs["headers"]["User-Agent"], "test/1.0")

    def test_musicbrainz_country_fallback(self):
        session = MagicMock()
        session.get.return_value = _response({"artists": [{"country": "JP"}]})
        self.assertEqual(MusicBrainzStrategy(session)("X"), Nationality("JP", "392"))

    def test_musicbrainz_error_status(self):
        session = MagicMock()
        session.get.return_value = _response({}, ok=False)
        self.assertIsNone(MusicBrainzStrategy(session)("X"))


class TestResolver(unittest.TestCase):
    def setUp(self):
        self.sleeps = []

    def test_first_answer_wins(self):
        second = MagicMock(return_value=Nationality("France", "250"))
        third = MagicMock()
        resolver = NationalityResolver([LocalTableStrategy({}), second, third], delay=0.1, sleep=self.sleeps.append)

        self.assertEqual(resolver.resolve("Daft Punk"), Nationality("France", "250"))
        third.assert_not_called()
        self.assertEqual(self.sleeps, [0.1])

    def test_network_errors_fall_through(self):
        failing = MagicMock(side_effect=requests.ConnectionError("offline"))
        backup = MagicMock(return_value=Nationality("Japan", "392"))
        resolver = NationalityResolver([failing, backup], delay=0, sleep=self.sleeps.append)
        self.assertEqual(resolver.resolve("X"), Nationality("Japan", "392"))

    def test_unknown_everywhere(self):
        resolver = NationalityResolver([MagicMock(return_value=None)], sleep=self.sleeps.append)
        self.assertIsNone(resolver.resolve("X"))


class TestCountryDistribution(unittest.TestCase):
    def test_counts_listens_per_country(self):
        lookup = MagicMock(side_effect=lambda name: {
            "Drake": Nationality("Canada", "124"),
            "The Weeknd": Nationality("Canada", "124"),
            "Adele": Nationality("United Kingdom", "826"),
        }.get(name))
        resolver = NationalityResolver([lookup], delay=0)

        events = enrich_events([
            _event("Adele", 0), _event("Drake", 1), _event("Drake", 2),
            _event("The Weeknd", 3), _event("Unknown Band", 4),
        ])
        result = calculate_country_distribution(events, resolver)

        self.assertEqual([(c.country, c.iso, c.count) for c in result],
                         [("Canada", "124", 3), ("United Kingdom", "826", 1)])
        # Each artist looked up once
        self.assertEqual(lookup.call_count, 4)

    def test_no_events(self):
        self.assertEqual(calculate_country_distribution([], NationalityResolver([])), ())


if __name__ == "__main__":
    unittest.main()

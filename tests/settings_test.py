"""
Verification scenarios for settings persistence and the profile model.
"""

import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from scholar.errors import InvalidURL
from scholar.models import Profile, parse_profile_id, profile_url
from history.models import Observation
from refresh.models import RefreshInterval
from refresh.settings import SettingsStore


class TestProfile(unittest.TestCase):

    def test_identity_is_the_id(self):
        a = Profile(id="_5pgNWgAAAAJ", name="Test User")
        b = Profile(id="_5pgNWgAAAAJ", name="Renamed", enabled=False, sort_order=9)
        self.assertEqual(a, b)
        self.assertEqual(len({a, b}), 1)
        self.assertNotEqual(a, Profile(id="other_id", name="Test User"))

    def test_url_from_id(self):
        profile = Profile(id="_5pgNWgAAAAJ", name="Test User")
        self.assertEqual(profile.url, "https://scholar.google.com/citations?user=_5pgNWgAAAAJ&hl=en")
        self.assertEqual(profile_url("_5pgNWgAAAAJ"), profile.url)

    def test_parse_id_from_profile_url(self):
        url = "https://scholar.google.com/citations?hl=de&user=_5pgNWgAAAAJ&view_op=list_works"
        self.assertEqual(parse_profile_id(url), "_5pgNWgAAAAJ")
        self.assertEqual(parse_profile_id("  abc-DEF_123 "), "abc-DEF_123")

    def test_invalid_ids(self):
        for value in ("", "has space", "semi;colon", "https://scholar.google.com/citations?hl=en"):
            with self.subTest(value=value):
                with self.assertRaises(InvalidURL):
                    parse_profile_id(value)

    def test_refresh_interval_seconds(self):
        self.assertEqual(RefreshInterval.FIFTEEN_MINUTES.seconds, 900)
        self.assertEqual(RefreshInterval.HOURLY.seconds, 3600)
        self.assertEqual(RefreshInterval.DAILY.seconds, 86400)
        self.assertEqual(RefreshInterval("3hours").display_name, "Every 3 hours")

    def test_observation_rejects_negative_counts(self):
        with self.assertRaises(ValueError):
            Observation("A", -1)
        with self.assertRaises(ValueError):
            Observation("A", 1, h_index=-2)

    def test_naive_timestamp_is_utc(self):
        observation = Observation("A", 1, timestamp=datetime(2025, 1, 1, 9, 30))
        self.assertEqual(observation.timestamp.tzinfo, timezone.utc)


class TestSettingsStore(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.path = Path(self._tmp.name) / "settings.json"

    def tearDown(self):
        self._tmp.cleanup()

    def test_defaults(self):
        settings = SettingsStore(self.path)
        self.assertEqual(settings.profiles, [])
        self.assertEqual(settings.refresh_interval, RefreshInterval.HOURLY)
        self.assertTrue(settings.show_notifications)
        self.assertIsNone(settings.last_update_time)

    def test_round_trip(self):
        settings = SettingsStore(self.path)
        settings.add_profile(Profile(id="AAAAAAAAAAAA", name="Alice", sort_order=1))
        settings.add_profile(Profile(id="BBBBBBBBBBBB", name="Bob", enabled=False))
        settings.set_refresh_interval(RefreshInterval.SIX_HOURS)
        settings.set_notifications(False)
        when = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
        settings.mark_updated(when)

        reloaded = SettingsStore(self.path)
        self.assertEqual([p.id for p in reloaded.profiles], ["AAAAAAAAAAAA", "BBBBBBBBBBBB"])
        self.assertEqual(reloaded.get_profile("BBBBBBBBBBBB").enabled, False)
        self.assertEqual(reloaded.refresh_interval, RefreshInterval.SIX_HOURS)
        self.assertFalse(reloaded.show_notifications)
        self.assertEqual(reloaded.last_update_time, when)

    def test_duplicate_profile_rejected(self):
        settings = SettingsStore(self.path)
        settings.add_profile(Profile(id="AAAAAAAAAAAA", name="Alice"))
        with self.assertRaises(ValueError):
            settings.add_profile(Profile(id="AAAAAAAAAAAA", name="Alice again"))

    def test_update_and_remove(self):
        settings = SettingsStore(self.path)
        settings.add_profile(Profile(id="AAAAAAAAAAAA", name="Alice"))

        self.assertTrue(settings.update_profile(Profile(id="AAAAAAAAAAAA", name="Alice B.", enabled=False)))
        self.assertEqual(settings.get_profile("AAAAAAAAAAAA").name, "Alice B.")
        self.assertFalse(settings.update_profile(Profile(id="CCCCCCCCCCCC", name="Nobody")))

        self.assertTrue(settings.remove_profile("AAAAAAAAAAAA"))
        self.assertFalse(settings.remove_profile("AAAAAAAAAAAA"))
        self.assertEqual(SettingsStore(self.path).profiles, [])

    def test_enabled_profiles_sorted(self):
        settings = SettingsStore(self.path)
        settings.add_profile(Profile(id="CCCCCCCCCCCC", name="Carol", sort_order=3))
        settings.add_profile(Profile(id="AAAAAAAAAAAA", name="Alice", sort_order=1))
        settings.add_profile(Profile(id="BBBBBBBBBBBB", name="Bob", sort_order=2, enabled=False))
        self.assertEqual([p.name for p in settings.enabled_profiles()], ["Alice", "Carol"])

    def test_invalid_entries_are_skipped(self):
        self.path.write_text(json.dumps({
            "profiles": [
                {"id": "AAAAAAAAAAAA", "name": "Alice", "isEnabled": True, "sortOrder": 0},
                {"id": "bad id!", "name": "Broken"},
                {"name": "No id"},
            ],
            "refreshInterval": "2days",
        }), encoding="utf-8")
        settings = SettingsStore(self.path)
        self.assertEqual([p.id for p in settings.profiles], ["AAAAAAAAAAAA"])
        self.assertEqual(settings.refresh_interval, RefreshInterval.HOURLY)

    def test_unreadable_file_uses_defaults(self):
        self.path.write_text("[1, 2", encoding="utf-8")
        self.assertEqual(SettingsStore(self.path).profiles, [])


if __name__ == "__main__":
    unittest.main()

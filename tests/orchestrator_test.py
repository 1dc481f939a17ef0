"""
Verification scenarios for refresh cycle orchestration.
"""

import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock

from scholar.errors import CitationCountNotFound, NetworkError, NoDataAvailable
from scholar.models import Profile, profile_url
from history.json_storage import JsonObservationStore
from history.models import Observation
from refresh.listener import CycleListener
from refresh.models import CycleState
from refresh.orchestrator import RefreshOrchestrator
from refresh.settings import SettingsStore

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)
ALICE = "AAAAAAAAAAAA"
BOB = "BBBBBBBBBBBB"


def page(citations, h_index=None):
    rows = f"<tr><td>Citations</td><td>{citations}</td><td>1</td></tr>"
    if h_index is not None:
        rows += f"<tr><td>h-index</td><td>{h_index}</td><td>1</td></tr>"
    return f"<html><body><table id='gsc_rsb_st'>{rows}</table></body></html>".encode("utf-8")


class OrchestratorTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)
        self.store = JsonObservationStore(root / "history.json", clock=lambda: NOW, load_async=False)
        self.settings = SettingsStore(root / "settings.json")
        self.listener = MagicMock(spec=CycleListener)
        self.sleep = MagicMock()
        self.pages = {}

    def tearDown(self):
        self._tmp.cleanup()

    def fake_fetch(self, url):
        outcome = self.pages[url]
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def build(self, fetcher=None):
        return RefreshOrchestrator(
            self.store,
            self.settings,
            listener=self.listener,
            fetcher=fetcher or MagicMock(side_effect=self.fake_fetch),
            pacing_seconds=2.0,
            sleep=self.sleep,
            clock=lambda: NOW,
        )

    def track(self, profile_id, name, sort_order=0, enabled=True, outcome=None):
        self.settings.add_profile(Profile(id=profile_id, name=name, sort_order=sort_order, enabled=enabled))
        if outcome is not None:
            self.pages[profile_url(profile_id)] = outcome


class TestCycle(OrchestratorTestCase):

    def test_partial_failure_publishes_successes_only(self):
        """Scenario: one profile returns 50 citations, the other fails on the network."""
        self.track(ALICE, "Alice", 0, outcome=page(50))
        self.track(BOB, "Bob", 1, outcome=NetworkError(detail="HTTP 503"))

        results = self.build().run_cycle()

        self.assertEqual(list(results), [ALICE])
        self.assertEqual(results[ALICE].citation_count, 50)
        self.listener.on_cycle_started.assert_called_once()
        self.listener.on_cycle_finished.assert_called_once_with(results)
        self.listener.on_cycle_failed.assert_not_called()

    def test_success_is_stored_with_growth(self):
        self.store.append(Observation(ALICE, 40, 3, NOW - timedelta(days=10)))
        self.track(ALICE, "Alice", outcome=page(52, h_index=4))

        results = self.build().run_cycle()

        result = results[ALICE]
        self.assertEqual((result.citation_count, result.h_index, result.recent_growth), (52, 4, 12))
        latest = self.store.latest(ALICE)
        self.assertEqual((latest.citation_count, latest.h_index, latest.timestamp), (52, 4, NOW))

    def test_first_observation_has_unavailable_growth(self):
        self.track(ALICE, "Alice", outcome=page(52))
        results = self.build().run_cycle()
        self.assertIsNone(results[ALICE].recent_growth)

    def test_profiles_run_in_sort_order_with_pacing(self):
        self.track(BOB, "Bob", 2, outcome=page(7))
        self.track(ALICE, "Alice", 1, outcome=page(9))
        self.track("CCCCCCCCCCCC", "Carol", 0, enabled=False, outcome=page(11))
        fetcher = MagicMock(side_effect=self.fake_fetch)

        self.build(fetcher).run_cycle()

        self.assertEqual([c.args[0] for c in fetcher.call_args_list], [profile_url(ALICE), profile_url(BOB)])
        self.sleep.assert_called_once_with(2.0)

    def test_pacing_applies_after_failed_profile(self):
        self.track(ALICE, "Alice", 0, outcome=NetworkError())
        self.track(BOB, "Bob", 1, outcome=page(7))
        self.build().run_cycle()
        self.sleep.assert_called_once_with(2.0)

    def test_parse_and_unexpected_failures_are_swallowed(self):
        self.track(ALICE, "Alice", 0, outcome=CitationCountNotFound())
        self.track(BOB, "Bob", 1, outcome=RuntimeError("boom"))
        self.track("CCCCCCCCCCCC", "Carol", 2, outcome=page(11))

        results = self.build().run_cycle()

        self.assertEqual(list(results), ["CCCCCCCCCCCC"])
        self.assertEqual(len(self.store.all_observations()), 1)

    def test_no_results_and_no_history_fails(self):
        self.track(ALICE, "Alice", outcome=NetworkError())

        results = self.build().run_cycle()

        self.assertEqual(results, {})
        self.listener.on_cycle_finished.assert_not_called()
        self.listener.on_cycle_failed.assert_called_once()
        self.assertIsInstance(self.listener.on_cycle_failed.call_args.args[0], NoDataAvailable)

    def test_no_results_with_history_stays_silent(self):
        self.store.append(Observation(ALICE, 40, None, NOW - timedelta(days=1)))
        self.track(ALICE, "Alice", outcome=NetworkError())

        self.build().run_cycle()

        self.listener.on_cycle_finished.assert_not_called()
        self.listener.on_cycle_failed.assert_not_called()

    def test_history_of_other_profiles_does_not_count(self):
        self.store.append(Observation("ZZZZZZZZZZZZ", 40, None, NOW - timedelta(days=1)))
        self.track(ALICE, "Alice", outcome=NetworkError())

        self.build().run_cycle()

        self.listener.on_cycle_failed.assert_called_once()

    def test_no_enabled_profiles(self):
        self.track(ALICE, "Alice", enabled=False, outcome=page(3))
        fetcher = MagicMock()

        results = self.build(fetcher).run_cycle()

        self.assertEqual(results, {})
        fetcher.assert_not_called()
        self.listener.on_cycle_started.assert_not_called()
        self.listener.on_cycle_finished.assert_called_once_with({})

    def test_last_update_time_recorded(self):
        self.track(ALICE, "Alice", outcome=NetworkError())
        self.build().run_cycle()
        self.assertEqual(self.settings.last_update_time, NOW)


class TestCycleState(OrchestratorTestCase):

    def test_refreshing_flag_during_cycle(self):
        seen = {}
        self.track(ALICE, "Alice")

        def fetcher(url):
            seen["refreshing"] = orchestrator.is_refreshing
            seen["state"] = orchestrator.state
            return page(10)

        orchestrator = self.build(fetcher)
        orchestrator.run_cycle()

        self.assertTrue(seen["refreshing"])
        self.assertEqual(seen["state"], CycleState.RUNNING)
        self.assertFalse(orchestrator.is_refreshing)
        self.assertEqual(
            [c.args[0] for c in self.listener.on_refreshing_changed.call_args_list],
            [True, False],
        )

    def test_overlapping_trigger_is_rejected(self):
        nested = {}
        self.track(ALICE, "Alice")

        def fetcher(url):
            nested["result"] = orchestrator.run_cycle()
            return page(10)

        orchestrator = self.build(fetcher)
        results = orchestrator.run_cycle()

        self.assertIsNone(nested["result"])
        self.assertEqual(results[ALICE].citation_count, 10)
        self.listener.on_cycle_started.assert_called_once()
        self.assertEqual(len(self.store.all_observations()), 1)

    def test_state_resets_after_crashing_store(self):
        self.track(ALICE, "Alice", outcome=page(10))
        orchestrator = self.build()
        self.store.recent_growth = MagicMock(side_effect=KeyboardInterrupt)

        with self.assertRaises(KeyboardInterrupt):
            orchestrator.run_cycle()

        self.assertEqual(orchestrator.state, CycleState.IDLE)
        del self.store.recent_growth
        self.assertIsNotNone(orchestrator.run_cycle())


class TestStoredResults(OrchestratorTestCase):

    def test_current_metrics_without_network(self):
        self.track(ALICE, "Alice")
        self.track(BOB, "Bob", 1)
        self.store.append(Observation(ALICE, 40, 3, NOW - timedelta(days=5)))
        self.store.append(Observation(ALICE, 45, 4, NOW - timedelta(days=1)))
        fetcher = MagicMock()
        orchestrator = self.build(fetcher)

        result = orchestrator.current_metrics(ALICE)
        self.assertEqual((result.name, result.citation_count, result.h_index, result.recent_growth), ("Alice", 45, 4, 5))
        self.assertIsNone(orchestrator.current_metrics(BOB))
        self.assertEqual(list(orchestrator.current_results()), [ALICE])
        fetcher.assert_not_called()


if __name__ == "__main__":
    unittest.main()

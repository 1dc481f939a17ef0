"""
FILE DESCRIPTION: Refresh cycle orchestration.
KEY FUNCTIONS/CLASSES: RefreshOrchestrator

FLOW: Reads enabled profiles -> For each, sequentially: fetch -> extract ->
append Observation -> recent_growth -> collect ProfileResult -> pause ->
Publishes the aggregate once per cycle to the listener.
"""

import threading
import time
from typing import Callable, Dict, Optional

from scholar.core import REQUEST_PACING, GROWTH_WINDOW_DAYS, logger
from scholar.errors import CitationError, NoDataAvailable
from scholar.extractor import MetricsExtractor
from scholar.fetcher import fetch
from scholar.models import Metrics, Profile
from history.models import Observation, utcnow
from history.storage import ObservationStore
from refresh.listener import CycleListener
from refresh.models import CycleState, ProfileResult


class RefreshOrchestrator:
    """
    Runs refresh cycles against one ObservationStore.
    Invariants:
    - At most one cycle runs at a time; a trigger during a running cycle is rejected.
    - Profiles are processed one after another with a pause in between; never in parallel.
    - A failing profile is logged and skipped; it never aborts the cycle.
    """

    def __init__(
        self,
        store: ObservationStore,
        settings,
        listener: Optional[CycleListener] = None,
        fetcher: Callable[[str], bytes] = fetch,
        extractor: Optional[MetricsExtractor] = None,
        pacing_seconds: float = REQUEST_PACING,
        growth_window_days: int = GROWTH_WINDOW_DAYS,
        sleep: Callable[[float], None] = time.sleep,
        clock=utcnow,
    ):
        self._store = store
        self._settings = settings
        self._listener = listener or CycleListener()
        self._fetch = fetcher
        self._extractor = extractor or MetricsExtractor()
        self._pacing_seconds = pacing_seconds
        self._growth_window_days = growth_window_days
        self._sleep = sleep
        self._clock = clock
        self._cycle_lock = threading.Lock()
        self._state = CycleState.IDLE

    @property
    def state(self) -> CycleState:
        return self._state

    @property
    def is_refreshing(self) -> bool:
        return self._state == CycleState.RUNNING

    def _set_state(self, state: CycleState) -> None:
        self._state = state
        self._listener.on_refreshing_changed(state == CycleState.RUNNING)

    # === CYCLE ===

    def run_cycle(self) -> Optional[Dict[str, ProfileResult]]:
        """
        Runs one full cycle. Returns the results keyed by profile id, or None when
        the trigger was rejected because another cycle is in flight.
        """
        if not self._cycle_lock.acquire(blocking=False):
            logger.info("[CYCLE] refresh already in progress; trigger ignored", extra={'context': 'cycle'})
            return None
        try:
            return self._run_locked()
        finally:
            self._cycle_lock.release()

    def _run_locked(self) -> Dict[str, ProfileResult]:
        profiles = self._settings.enabled_profiles()
        if not profiles:
            self._listener.on_cycle_finished({})
            return {}

        self._set_state(CycleState.RUNNING)
        self._listener.on_cycle_started()
        results: Dict[str, ProfileResult] = {}
        try:
            for index, profile in enumerate(profiles):
                if index > 0:
                    # politeness delay towards the source, also after a failed profile
                    self._sleep(self._pacing_seconds)
                result = self._refresh_profile(profile)
                if result is not None:
                    results[profile.id] = result
        finally:
            self._settings.mark_updated(self._clock())
            self._set_state(CycleState.IDLE)

        if results:
            self._listener.on_cycle_finished(results)
        elif self._has_history(profiles):
            logger.info("[CYCLE] completed without new data; keeping previous results", extra={'context': 'cycle'})
        else:
            self._listener.on_cycle_failed(NoDataAvailable())
        return results

    def _refresh_profile(self, profile: Profile) -> Optional[ProfileResult]:
        try:
            metrics = self.fetch_metrics(profile)
        except CitationError as e:
            logger.warning(f"[CYCLE] Failed to fetch citations for {profile.name}: {e}", extra={'context': 'cycle', 'profile': profile.id})
            return None
        except Exception:
            logger.exception(f"[CYCLE] Unexpected error for {profile.name}", extra={'context': 'cycle', 'profile': profile.id})
            return None

        observation = Observation(
            profile_id=profile.id,
            citation_count=metrics.citation_count,
            h_index=metrics.h_index,
            timestamp=self._clock(),
        )
        self._store.append(observation)
        growth = self._store.recent_growth(profile.id, self._growth_window_days)
        logger.info(
            f"[CYCLE] Fetched {metrics.citation_count} citations for {profile.name} (strategy: {metrics.strategy})",
            extra={'context': 'cycle', 'profile': profile.id},
        )
        return ProfileResult(
            profile_id=profile.id,
            name=profile.name,
            citation_count=observation.citation_count,
            h_index=observation.h_index,
            recent_growth=growth,
            observed_at=observation.timestamp,
        )

    def fetch_metrics(self, profile: Profile) -> Metrics:
        """Fetch and parse one profile without touching the store."""
        body = self._fetch(profile.url)
        return self._extractor.extract(body)

    def _has_history(self, profiles) -> bool:
        ids = {p.id for p in profiles}
        return any(o.profile_id in ids for o in self._store.all_observations())

    # === STORED DATA ===

    def current_metrics(self, profile_id: str) -> Optional[ProfileResult]:
        """Latest stored metrics for a profile; no network access."""
        latest = self._store.latest(profile_id)
        if latest is None:
            return None
        profile = self._settings.get_profile(profile_id)
        return ProfileResult(
            profile_id=profile_id,
            name=profile.name if profile else profile_id,
            citation_count=latest.citation_count,
            h_index=latest.h_index,
            recent_growth=self._store.recent_growth(profile_id, self._growth_window_days),
            observed_at=latest.timestamp,
        )

    def current_results(self) -> Dict[str, ProfileResult]:
        """Stored metrics of every enabled profile that has history."""
        results = {}
        for profile in self._settings.enabled_profiles():
            result = self.current_metrics(profile.id)
            if result is not None:
                results[profile.id] = result
        return results

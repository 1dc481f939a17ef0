from typing import Dict

from scholar.core import GROWTH_WINDOW_DAYS, logger
from scholar.errors import CitationError
from refresh.models import ProfileResult


class CycleListener:
    """
    Outbound interface of the refresh orchestrator.
    Each of started/finished/failed is delivered at most once per cycle, never per profile.
    Default methods do nothing so collaborators override only what they need.
    """

    def on_cycle_started(self) -> None:
        pass

    def on_cycle_finished(self, results: Dict[str, ProfileResult]) -> None:
        pass

    def on_cycle_failed(self, reason: CitationError) -> None:
        pass

    def on_refreshing_changed(self, refreshing: bool) -> None:
        pass


class LoggingListener(CycleListener):
    """Reports cycle outcomes through the tracker logger. Used by the CLI."""

    def on_cycle_started(self):
        logger.info("[CYCLE] refresh started", extra={'context': 'cycle'})

    def on_cycle_finished(self, results):
        if not results:
            logger.info("[CYCLE] no enabled profiles", extra={'context': 'cycle'})
        for result in results.values():
            growth = "n/a" if result.recent_growth is None else f"{result.recent_growth:+d}"
            h_index = "n/a" if result.h_index is None else result.h_index
            logger.info(
                f"[CYCLE] {result.name} ({result.profile_id}): {result.citation_count} citations, "
                f"h-index {h_index}, {GROWTH_WINDOW_DAYS}d growth {growth}",
                extra={'context': 'cycle'},
            )

    def on_cycle_failed(self, reason):
        logger.error(f"[CYCLE] refresh failed: {reason}", extra={'context': 'cycle'})

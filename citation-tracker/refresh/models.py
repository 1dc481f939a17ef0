from enum import Enum
from dataclasses import dataclass
from datetime import datetime
from typing import Optional


class CycleState(Enum):
    IDLE = "IDLE"
    RUNNING = "RUNNING"


class RefreshInterval(Enum):
    FIFTEEN_MINUTES = "15min"
    THIRTY_MINUTES = "30min"
    HOURLY = "1hour"
    THREE_HOURS = "3hours"
    SIX_HOURS = "6hours"
    DAILY = "24hours"

    @property
    def seconds(self) -> int:
        return _INTERVAL_SECONDS[self]

    @property
    def display_name(self) -> str:
        return _INTERVAL_NAMES[self]


_INTERVAL_SECONDS = {
    RefreshInterval.FIFTEEN_MINUTES: 15 * 60,
    RefreshInterval.THIRTY_MINUTES: 30 * 60,
    RefreshInterval.HOURLY: 60 * 60,
    RefreshInterval.THREE_HOURS: 3 * 60 * 60,
    RefreshInterval.SIX_HOURS: 6 * 60 * 60,
    RefreshInterval.DAILY: 24 * 60 * 60,
}

_INTERVAL_NAMES = {
    RefreshInterval.FIFTEEN_MINUTES: "Every 15 minutes",
    RefreshInterval.THIRTY_MINUTES: "Every 30 minutes",
    RefreshInterval.HOURLY: "Every hour",
    RefreshInterval.THREE_HOURS: "Every 3 hours",
    RefreshInterval.SIX_HOURS: "Every 6 hours",
    RefreshInterval.DAILY: "Once daily",
}


@dataclass(frozen=True)
class ProfileResult:
    """
    Output of one profile within a cycle, delivered to listeners keyed by profile id.
    recent_growth is None when the window holds fewer than two observations.
    """
    profile_id: str
    name: str
    citation_count: int
    h_index: Optional[int]
    recent_growth: Optional[int]
    observed_at: datetime

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Tuple
from history.models import Observation, StorageInfo

class ObservationStore(ABC):
    """
    Abstract interface for the citation time series.
    Implementations own the log exclusively and serialize every read and write.
    """

    @abstractmethod
    def append(self, observation: Observation) -> None:
        """
        Add an observation, enforce the per-profile cap, then persist the whole log
        before returning. A failed write is logged, never raised.
        """
        pass

    @abstractmethod
    def query(self, profile_id: str, window_days: int) -> List[Observation]:
        """Observations of the profile newer than now - window_days, oldest first."""
        pass

    @abstractmethod
    def recent_growth(self, profile_id: str, window_days: int = 30) -> Optional[int]:
        """
        Newest minus oldest citation count within the window.
        None when fewer than two observations exist; 0 is a real result.
        """
        pass

    @abstractmethod
    def latest(self, profile_id: str) -> Optional[Observation]:
        """Most recent observation regardless of window."""
        pass

    @abstractmethod
    def all_observations(self) -> List[Observation]:
        """Snapshot of the whole log."""
        pass

    @abstractmethod
    def prune(self, older_than_days: int) -> int:
        """Drop observations older than the threshold for every profile. Returns the number removed."""
        pass

    def trend(self, profile_id: str, days: int = 30) -> List[Tuple[datetime, int]]:
        """(timestamp, citation_count) pairs of the window, oldest first."""
        return [(o.timestamp, o.citation_count) for o in self.query(profile_id, days)]

    def latest_count(self, profile_id: str) -> Optional[int]:
        observation = self.latest(profile_id)
        return observation.citation_count if observation else None

    @abstractmethod
    def storage_info(self) -> StorageInfo:
        """Record count and backing file status."""
        pass

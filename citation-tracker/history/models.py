from enum import Enum
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any


class StoreState(Enum):
    LOADING = "LOADING"
    READY = "READY"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: str) -> datetime:
    """ISO-8601 with optional trailing Z; naive values are taken as UTC."""
    if not isinstance(value, str):
        raise TypeError(f"timestamp must be an ISO-8601 string, got {type(value).__name__}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    ts = datetime.fromisoformat(text)
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


@dataclass(frozen=True)
class Observation:
    """
    One timestamped measurement of a profile.
    Invariants: immutable; profile_id is not checked against configured profiles.
    """
    profile_id: str
    citation_count: int
    h_index: Optional[int] = None
    timestamp: datetime = field(default_factory=utcnow)

    def __post_init__(self):
        if self.citation_count < 0:
            raise ValueError(f"citation_count must be >= 0, got {self.citation_count}")
        if self.h_index is not None and self.h_index < 0:
            raise ValueError(f"h_index must be >= 0, got {self.h_index}")
        if self.timestamp.tzinfo is None:
            object.__setattr__(self, "timestamp", self.timestamp.replace(tzinfo=timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profileId": self.profile_id,
            "citationCount": self.citation_count,
            "hIndex": self.h_index,
            "timestamp": self.timestamp.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Observation":
        h_index = data.get("hIndex")
        return cls(
            profile_id=str(data["profileId"]),
            citation_count=int(data["citationCount"]),
            h_index=int(h_index) if h_index is not None else None,
            timestamp=parse_timestamp(data["timestamp"]),
        )


@dataclass(frozen=True)
class StorageInfo:
    record_count: int
    file_exists: bool
    file_path: Path

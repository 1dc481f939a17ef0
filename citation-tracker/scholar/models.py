import re
from dataclasses import dataclass, field
from typing import Optional, Dict, Any
from urllib.parse import urlparse, parse_qs

from scholar.core import PROFILE_URL_TEMPLATE
from scholar.errors import InvalidURL

PROFILE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")


def parse_profile_id(value: str) -> str:
    """
    Accepts a bare Scholar profile id or a full profile URL carrying ?user=<id>.
    Returns the bare id. Raises InvalidURL for anything else.
    """
    text = (value or "").strip()
    if "://" in text:
        user_vals = parse_qs(urlparse(text).query).get("user")
        if not user_vals:
            raise InvalidURL(detail=f"no user parameter in {text!r}")
        text = user_vals[0].strip()
    if not PROFILE_ID_PATTERN.match(text):
        raise InvalidURL(detail=f"malformed profile id {text!r}")
    return text


def profile_url(profile_id: str) -> str:
    return PROFILE_URL_TEMPLATE.format(user=parse_profile_id(profile_id))


@dataclass(eq=False)
class Profile:
    """
    A tracked researcher.
    Invariants: identity is the id alone; name/enabled/sort_order never take part in equality.
    """
    id: str
    name: str
    enabled: bool = True
    sort_order: int = 0
    recent_growth: Optional[int] = None  # derived, never the source of truth

    def __post_init__(self):
        self.id = parse_profile_id(self.id)

    def __eq__(self, other):
        if not isinstance(other, Profile):
            return NotImplemented
        return self.id == other.id

    def __hash__(self):
        return hash(self.id)

    @property
    def url(self) -> str:
        return profile_url(self.id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "enabled": self.enabled,
            "sortOrder": self.sort_order,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Profile":
        return cls(
            id=data["id"],
            name=data.get("name") or data["id"],
            enabled=bool(data.get("enabled", data.get("isEnabled", True))),
            sort_order=int(data.get("sortOrder", 0)),
        )


@dataclass(frozen=True)
class Metrics:
    """
    Transient parse result. Never persisted; wrapped into an Observation by the orchestrator.
    A Metrics instance only exists when a strategy actually matched, so a
    citation_count of 0 here is a validated zero, not a parse failure.
    """
    citation_count: int
    h_index: Optional[int] = None
    strategy: str = field(default="", compare=False)

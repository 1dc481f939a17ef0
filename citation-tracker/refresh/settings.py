"""
Persistent tracker settings: the profile list, refresh interval and last update time.
Stored as one JSON object next to the citation history, written atomically.
"""

import json
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from scholar.core import SETTINGS_FILE, logger
from scholar.errors import InvalidURL
from scholar.models import Profile
from history.json_storage import write_json_atomic
from history.models import parse_timestamp, utcnow
from refresh.models import RefreshInterval


class SettingsStore:
    """
    Owns the configured profiles. The refresh orchestrator only reads
    enabled_profiles() and calls mark_updated().
    """

    def __init__(self, path=SETTINGS_FILE):
        self._path = Path(path).expanduser()
        self._lock = threading.RLock()
        self.profiles: List[Profile] = []
        self.refresh_interval = RefreshInterval.HOURLY
        self.show_notifications = True
        self.last_update_time: Optional[datetime] = None
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> None:
        if not self._path.exists():
            return
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"[SETTINGS] Could not read {self._path}: {e}; using defaults", extra={'context': 'settings'})
            return
        if not isinstance(data, dict):
            logger.warning(f"[SETTINGS] {self._path} is not a JSON object; using defaults", extra={'context': 'settings'})
            return

        profiles = []
        for item in data.get("profiles", []):
            try:
                profile = Profile.from_dict(item)
            except (KeyError, TypeError, ValueError, InvalidURL) as e:
                logger.warning(f"[SETTINGS] Skipping invalid profile {item!r}: {e}", extra={'context': 'settings'})
                continue
            if profile not in profiles:
                profiles.append(profile)

        with self._lock:
            self.profiles = profiles
            try:
                self.refresh_interval = RefreshInterval(data.get("refreshInterval", RefreshInterval.HOURLY.value))
            except ValueError:
                logger.warning(f"[SETTINGS] Unknown refresh interval {data.get('refreshInterval')!r}", extra={'context': 'settings'})
            self.show_notifications = bool(data.get("showNotifications", True))
            last = data.get("lastUpdateTime")
            try:
                self.last_update_time = parse_timestamp(last) if last else None
            except (AttributeError, TypeError, ValueError):
                self.last_update_time = None

    def save(self) -> None:
        with self._lock:
            payload = {
                "profiles": [p.to_dict() for p in self.profiles],
                "refreshInterval": self.refresh_interval.value,
                "showNotifications": self.show_notifications,
                "lastUpdateTime": self.last_update_time.isoformat() if self.last_update_time else None,
            }
            try:
                write_json_atomic(self._path, payload)
            except OSError as e:
                logger.error(f"[SETTINGS] Failed to save {self._path}: {e}", extra={'context': 'settings'})

    # --- profiles ---

    def get_profile(self, profile_id: str) -> Optional[Profile]:
        with self._lock:
            return next((p for p in self.profiles if p.id == profile_id), None)

    def add_profile(self, profile: Profile) -> None:
        with self._lock:
            if profile in self.profiles:
                raise ValueError(f"Profile {profile.id} is already tracked")
            self.profiles.append(profile)
            self.save()

    def remove_profile(self, profile_id: str) -> bool:
        with self._lock:
            remaining = [p for p in self.profiles if p.id != profile_id]
            if len(remaining) == len(self.profiles):
                return False
            self.profiles = remaining
            self.save()
            return True

    def update_profile(self, profile: Profile) -> bool:
        with self._lock:
            for index, existing in enumerate(self.profiles):
                if existing == profile:
                    self.profiles[index] = profile
                    self.save()
                    return True
            return False

    def enabled_profiles(self) -> List[Profile]:
        with self._lock:
            return sorted((p for p in self.profiles if p.enabled), key=lambda p: p.sort_order)

    # --- preferences ---

    def set_refresh_interval(self, interval: RefreshInterval) -> None:
        with self._lock:
            self.refresh_interval = interval
            self.save()

    def set_notifications(self, enabled: bool) -> None:
        with self._lock:
            self.show_notifications = enabled
            self.save()

    def mark_updated(self, when: Optional[datetime] = None) -> None:
        with self._lock:
            self.last_update_time = when or utcnow()
            self.save()

"""
FILE DESCRIPTION: JSON file backed citation history.
KEY FUNCTIONS/CLASSES: JsonObservationStore, write_json_atomic

The whole log is a single JSON array rewritten on every change through a
temporary sibling file and os.replace, so the backing file is either the old
or the new version, never a partial one.
"""

import json
import os
import tempfile
import threading
from datetime import timedelta
from pathlib import Path
from typing import Optional, List

from scholar.core import HISTORY_FILE, MAX_RECORDS_PER_PROFILE, GROWTH_WINDOW_DAYS, RETENTION_DAYS, logger
from history.models import Observation, StoreState, StorageInfo, utcnow
from history.storage import ObservationStore


def write_json_atomic(path, data) -> None:
    """Write JSON to a temp file in the same directory, fsync, then replace the target."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(path.parent), prefix=path.name + ".", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except Exception:
        try:
            os.unlink(tmp)
        except OSError:
            pass
        raise


class JsonObservationStore(ObservationStore):
    """
    Exclusively owned, lock-serialized observation log.
    Invariants:
    - LOADING until the initial read finishes; every public operation waits for READY.
    - At most max_records_per_profile observations per profile; oldest dropped first.
    - In-memory log is the source of truth; the file follows it on the next successful write.
    """

    def __init__(
        self,
        path=HISTORY_FILE,
        max_records_per_profile: int = MAX_RECORDS_PER_PROFILE,
        clock=utcnow,
        load_async: bool = True,
    ):
        self._path = Path(path).expanduser()
        self._cap = max_records_per_profile
        self._clock = clock
        self._observations: List[Observation] = []
        self._lock = threading.RLock()
        self._loaded = threading.Event()
        self._state = StoreState.LOADING

        if load_async:
            loader = threading.Thread(target=self._load, name="HistoryLoader", daemon=True)
            loader.start()
        else:
            self._load()

    @property
    def state(self) -> StoreState:
        return self._state

    @property
    def path(self) -> Path:
        return self._path

    def wait_until_ready(self, timeout: Optional[float] = None) -> bool:
        return self._loaded.wait(timeout)

    # --- loading ---

    def _load(self) -> None:
        observations: List[Observation] = []
        try:
            observations = self._read_file()
        except Exception:
            logger.exception(f"[STORE] Unexpected error loading {self._path}; starting empty", extra={'context': 'store'})
            self._quarantine()
        finally:
            with self._lock:
                self._observations = observations
                self._state = StoreState.READY
            self._loaded.set()
        logger.info(f"[STORE] Loaded {len(observations)} records from {self._path}", extra={'context': 'store'})

    def _read_file(self) -> List[Observation]:
        if not self._path.exists():
            return []
        try:
            text = self._path.read_text(encoding="utf-8")
            if not text.strip():
                return []
            raw = json.loads(text)
            if not isinstance(raw, list):
                raise ValueError("expected a JSON array of records")
        except (OSError, ValueError) as e:
            logger.warning(f"[STORE] Could not decode {self._path}: {e}; starting empty", extra={'context': 'store'})
            self._quarantine()
            return []

        observations = []
        for item in raw:
            try:
                observations.append(Observation.from_dict(item))
            except (AttributeError, KeyError, TypeError, ValueError) as e:
                logger.warning(f"[STORE] Skipping malformed record {item!r}: {e}", extra={'context': 'store'})
        return observations

    def _quarantine(self) -> None:
        """Keep an undecodable file aside so the first rewrite does not destroy it."""
        target = self._path.with_name(self._path.name + ".corrupt")
        try:
            os.replace(self._path, target)
            logger.warning(f"[STORE] Moved unreadable history to {target}", extra={'context': 'store'})
        except OSError as e:
            logger.error(f"[STORE] Could not move unreadable history aside: {e}", extra={'context': 'store'})

    # --- writing ---

    def _save(self) -> bool:
        try:
            write_json_atomic(self._path, [o.to_dict() for o in self._observations])
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"[STORE] Failed to save citation history to {self._path}: {e}", extra={'context': 'store'})
            return False

    def _apply_cap(self, profile_id: str) -> None:
        indices = [i for i, o in enumerate(self._observations) if o.profile_id == profile_id]
        excess = len(indices) - self._cap
        if excess <= 0:
            return
        oldest_first = sorted(indices, key=lambda i: (self._observations[i].timestamp, i))
        dropped = set(oldest_first[:excess])
        self._observations = [o for i, o in enumerate(self._observations) if i not in dropped]

    def append(self, observation: Observation) -> None:
        self._loaded.wait()
        with self._lock:
            self._observations.append(observation)
            self._apply_cap(observation.profile_id)
            self._save()

    def prune(self, older_than_days: int = RETENTION_DAYS) -> int:
        self._loaded.wait()
        cutoff = self._clock() - timedelta(days=older_than_days)
        with self._lock:
            before = len(self._observations)
            self._observations = [o for o in self._observations if o.timestamp >= cutoff]
            removed = before - len(self._observations)
            self._save()
        logger.info(f"[STORE] Pruned {removed} records older than {older_than_days} days", extra={'context': 'store'})
        return removed

    # --- reading ---

    def query(self, profile_id: str, window_days: int = GROWTH_WINDOW_DAYS) -> List[Observation]:
        self._loaded.wait()
        cutoff = self._clock() - timedelta(days=window_days)
        with self._lock:
            matching = [o for o in self._observations if o.profile_id == profile_id and o.timestamp >= cutoff]
        return sorted(matching, key=lambda o: o.timestamp)

    def recent_growth(self, profile_id: str, window_days: int = GROWTH_WINDOW_DAYS) -> Optional[int]:
        records = self.query(profile_id, window_days)
        if len(records) < 2:
            return None
        return records[-1].citation_count - records[0].citation_count

    def latest(self, profile_id: str) -> Optional[Observation]:
        self._loaded.wait()
        with self._lock:
            matching = [o for o in self._observations if o.profile_id == profile_id]
        # reversed: on equal timestamps the later append wins
        return max(reversed(matching), key=lambda o: o.timestamp, default=None)

    def all_observations(self) -> List[Observation]:
        self._loaded.wait()
        with self._lock:
            return list(self._observations)

    def storage_info(self) -> StorageInfo:
        self._loaded.wait()
        with self._lock:
            return StorageInfo(
                record_count=len(self._observations),
                file_exists=self._path.exists(),
                file_path=self._path,
            )

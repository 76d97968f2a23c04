"""
Device Registry — presence records for every device that has registered.

Updated by: register / heartbeat / poll requests + the Presence Sweeper
Queried by: Event Fan-out Hub (snapshots) + Command Queue Store (targeting)

Behavioral Contract:
- `online` is never stored as truth. It is derived from the clock and
  `last_seen_at` on every read, and by the sweeper.
- Heartbeats and polls from unknown identities are no-ops, not errors.
- Records live until the eviction window passes (disabled with 0/None).
"""

import logging
import threading
import time
from datetime import datetime, timezone
from typing import Callable, Dict, Optional, Set

from relay_broker.errors import MissingIdentityError
from relay_broker.models.device import (
    STALE_THRESHOLD_SECONDS,
    DeviceState,
    PresenceRecord,
    is_online,
)

logger = logging.getLogger(__name__)


class DeviceRegistry:
    """
    In-memory presence registry.
    A single coarse lock guards the map; critical sections are a lookup
    and a couple of assignments.
    """

    def __init__(
        self,
        clock: Optional[Callable[[], float]] = None,
        stale_threshold_seconds: float = STALE_THRESHOLD_SECONDS,
        eviction_seconds: Optional[float] = None,
    ):
        self._clock = clock or time.monotonic
        self.stale_threshold_seconds = stale_threshold_seconds
        if eviction_seconds is not None and eviction_seconds < 0:
            raise ValueError("eviction_seconds must be >= 0")
        self.eviction_seconds = eviction_seconds
        self._records: Dict[str, PresenceRecord] = {}
        self._lock = threading.Lock()

    def now(self) -> float:
        """Current clock reading."""
        return self._clock()

    def register(self, identity: str, display_name: Optional[str] = None) -> PresenceRecord:
        """
        Insert or refresh a device. The display name is replaced only when
        a non-empty one is supplied.
        """
        if not identity:
            raise MissingIdentityError("Missing clientId")

        now = self._clock()
        wall = datetime.now(timezone.utc)
        with self._lock:
            record = self._records.get(identity)
            if record is None:
                record = PresenceRecord(
                    identity=identity,
                    display_name=display_name or None,
                    last_seen_at=now,
                    last_seen=wall,
                    registered_at=wall,
                )
                self._records[identity] = record
            else:
                record.last_seen_at = now
                record.last_seen = wall
                record.reported_online = True
                if display_name:
                    record.display_name = display_name
            return record.model_copy()

    def touch(self, identity: str) -> bool:
        """Mark a known device as seen now. Returns False for unknown identities."""
        now = self._clock()
        wall = datetime.now(timezone.utc)
        with self._lock:
            record = self._records.get(identity)
            if record is None:
                return False
            record.last_seen_at = now
            record.last_seen = wall
            record.reported_online = True
            return True

    def contains(self, identity: str) -> bool:
        with self._lock:
            return identity in self._records

    def get(self, identity: str) -> Optional[PresenceRecord]:
        """Copy of a single record, or None."""
        with self._lock:
            record = self._records.get(identity)
            return record.model_copy() if record else None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def snapshot(self, now: Optional[float] = None) -> Dict[str, DeviceState]:
        """Observer view of every record, with `online` derived from `now`."""
        if now is None:
            now = self._clock()
        with self._lock:
            return {
                identity: DeviceState(
                    name=record.display_name,
                    online=is_online(now, record.last_seen_at, self.stale_threshold_seconds),
                    last_seen=record.last_seen,
                )
                for identity, record in self._records.items()
            }

    def sweep(self, now: Optional[float] = None) -> Set[str]:
        """Recompute online for every record and return the ones that flipped."""
        if now is None:
            now = self._clock()
        changed = set()
        with self._lock:
            for identity, record in self._records.items():
                online = is_online(now, record.last_seen_at, self.stale_threshold_seconds)
                if online != record.reported_online:
                    record.reported_online = online
                    changed.add(identity)
        return changed

    def evict_stale(self, now: Optional[float] = None) -> Set[str]:
        """Remove records inactive for longer than the eviction window."""
        if not self.eviction_seconds:
            return set()
        if now is None:
            now = self._clock()
        with self._lock:
            expired = {
                identity
                for identity, record in self._records.items()
                if now - record.last_seen_at >= self.eviction_seconds
            }
            for identity in expired:
                del self._records[identity]
        if expired:
            logger.info("Evicted %d inactive device(s): %s", len(expired), sorted(expired))
        return expired

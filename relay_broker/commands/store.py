"""
Command Queue Store — per-device FIFO of commands awaiting delivery.

Behavioral Contract:
- Insertion order is delivery order.
- A command can only target a device the registry knows about.
- drain_and_swap hands the whole queue to exactly one poll; a command
  enqueued concurrently lands either in that drain or in the next one.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List
from uuid import uuid4

from relay_broker.errors import DeviceNotFoundError
from relay_broker.models.command import PendingCommand
from relay_broker.registry.store import DeviceRegistry

logger = logging.getLogger(__name__)


class CommandQueueStore:
    """In-memory command queues keyed by device identity."""

    def __init__(self, registry: DeviceRegistry):
        self.registry = registry
        self._queues: Dict[str, List[PendingCommand]] = {}
        self._lock = threading.Lock()

    def enqueue(self, identity: str, command: Any) -> PendingCommand:
        """Append a command to a registered device's queue."""
        if not identity or not self.registry.contains(identity):
            raise DeviceNotFoundError(identity)

        pending = PendingCommand(
            id=f"cmd_{uuid4().hex[:12]}",
            command=command,
            queued_at=datetime.now(timezone.utc),
        )
        with self._lock:
            queue = self._queues.setdefault(identity, [])
            queue.append(pending)
            # Eviction may have removed the device after the first check
            if not self.registry.contains(identity):
                queue.remove(pending)
                if not queue:
                    del self._queues[identity]
                raise DeviceNotFoundError(identity)
        logger.info("Queued %r for %s", command, identity)
        return pending

    def drain_and_swap(self, identity: str) -> List[PendingCommand]:
        """Take everything queued for a device, leaving it empty."""
        with self._lock:
            return self._queues.pop(identity, [])

    def pending_count(self, identity: str) -> int:
        with self._lock:
            return len(self._queues.get(identity, ()))

    def discard(self, identity: str) -> None:
        """Drop a device's queue without delivering it."""
        with self._lock:
            dropped = self._queues.pop(identity, None)
        if dropped:
            logger.info("Dropped %d undelivered command(s) for %s", len(dropped), identity)

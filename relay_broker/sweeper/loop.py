"""
Presence Sweeper — re-evaluates every device's online status on a timer.

Request traffic marks devices online eagerly. Only the sweeper notices
silence: a device that stops talking is flipped offline within one
sweep interval of crossing the stale threshold, and observers are told.
"""

import asyncio
import logging
from typing import Optional, Set

from relay_broker.commands.store import CommandQueueStore
from relay_broker.fanout.hub import EventHub
from relay_broker.registry.store import DeviceRegistry

logger = logging.getLogger(__name__)

SWEEP_INTERVAL_SECONDS = 5.0


class PresenceSweeper:
    """Periodic presence re-evaluation with broadcast on change."""

    def __init__(
        self,
        registry: DeviceRegistry,
        hub: EventHub,
        queues: Optional[CommandQueueStore] = None,
        interval_seconds: float = SWEEP_INTERVAL_SECONDS,
    ):
        self.registry = registry
        self.hub = hub
        self.queues = queues
        self.interval_seconds = interval_seconds
        self._running = False

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    async def sweep_once(self, now: Optional[float] = None) -> Set[str]:
        """
        Run one sweep. Returns the identities whose presence changed,
        including evicted ones.
        """
        if now is None:
            now = self.registry.now()

        changed = self.registry.sweep(now)
        evicted = self.registry.evict_stale(now)
        if self.queues is not None:
            for identity in evicted:
                self.queues.discard(identity)

        for identity in sorted(changed - evicted):
            record = self.registry.get(identity)
            if record is not None:
                logger.info(
                    "Device %s is now %s",
                    identity,
                    "online" if record.reported_online else "offline",
                )

        changed |= evicted
        if changed:
            await self.hub.broadcast_snapshot()
        return changed

    async def run_async(self, stop_event: Optional[asyncio.Event] = None) -> None:
        """Sweep until the stop event is set."""
        self._running = True
        if stop_event is None:
            stop_event = asyncio.Event()

        try:
            while not stop_event.is_set():
                try:
                    await self.sweep_once()
                except Exception:
                    logger.exception("Presence sweep failed")
                try:
                    await asyncio.wait_for(
                        stop_event.wait(),
                        timeout=self.interval_seconds,
                    )
                except asyncio.TimeoutError:
                    continue
        finally:
            self._running = False

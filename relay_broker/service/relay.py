"""
Relay Service — binds the registry, command queues and fan-out hub into
the five operations exposed to agents and controllers.

Per-device state machine (derived, never stored):
  UNKNOWN --register--> REGISTERED(online)
  REGISTERED --heartbeat/poll--> REGISTERED(online)
  REGISTERED(online) --no activity for the stale threshold--> REGISTERED(offline)
  REGISTERED(offline) --heartbeat/poll--> REGISTERED(online)
"""

import logging
from typing import Any, Dict, List, Optional

from relay_broker.commands.store import CommandQueueStore
from relay_broker.errors import MissingIdentityError
from relay_broker.fanout.hub import EventHub
from relay_broker.models.command import PendingCommand
from relay_broker.models.events import ResponseEvent
from relay_broker.registry.store import DeviceRegistry

logger = logging.getLogger(__name__)

OUTPUT_PREVIEW_CHARS = 100


def _require_identity(identity: Optional[str]) -> str:
    if not identity:
        raise MissingIdentityError("Missing clientId")
    return identity


def _preview(output: Any) -> str:
    text = output if isinstance(output, str) else repr(output)
    if len(text) > OUTPUT_PREVIEW_CHARS:
        return text[:OUTPUT_PREVIEW_CHARS] + "..."
    return text


class RelayService:
    """Request-facing orchestrator for the broker."""

    def __init__(
        self,
        registry: DeviceRegistry,
        queues: CommandQueueStore,
        hub: EventHub,
    ):
        self.registry = registry
        self.queues = queues
        self.hub = hub

    async def register(self, identity: Optional[str], display_name: Optional[str] = None) -> None:
        """Register or re-register a device and tell observers."""
        identity = _require_identity(identity)
        self.registry.register(identity, display_name)
        logger.info("Device registered: %s (%s)", display_name or "-", identity)
        await self.hub.broadcast_snapshot()

    async def heartbeat(self, identity: Optional[str]) -> bool:
        """Refresh a device's presence. Unknown identities are ignored."""
        identity = _require_identity(identity)
        known = self.registry.touch(identity)
        if known:
            logger.debug("Heartbeat from %s", identity)
            await self.hub.broadcast_snapshot()
        else:
            logger.debug("Ignoring heartbeat from unregistered %s", identity)
        return known

    async def poll(self, identity: Optional[str]) -> List[PendingCommand]:
        """Hand a device everything queued for it and mark it seen."""
        identity = _require_identity(identity)
        commands = self.queues.drain_and_swap(identity)
        self.registry.touch(identity)
        if commands:
            logger.info("Delivering %d command(s) to %s", len(commands), identity)
        else:
            logger.debug("Poll from %s, nothing queued", identity)
        await self.hub.broadcast_snapshot()
        return commands

    async def submit_response(self, identity: Optional[str], output: Any) -> None:
        """Relay a device's command output to observers."""
        logger.info("Response from %s: %s", identity, _preview(output))
        await self.hub.broadcast_event(
            ResponseEvent(client_id=identity or "", output=output)
        )

    async def submit_command(self, target_identity: Optional[str], command: Any) -> PendingCommand:
        """Queue a command for a registered device."""
        return self.queues.enqueue(target_identity or "", command)

    def devices(self) -> Dict[str, dict]:
        """Fleet view with pending command counts."""
        snapshot = self.registry.snapshot()
        view = {}
        for identity, state in snapshot.items():
            entry = state.model_dump(mode="json", by_alias=True)
            entry["pending"] = self.queues.pending_count(identity)
            view[identity] = entry
        return view

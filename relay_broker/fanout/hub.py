"""
Event Fan-out Hub — pushes fleet state and device events to observer consoles.

Delivery is best-effort per session. A failed, timed-out or closed session
is dropped and never affects delivery to the others or the caller.
"""

import asyncio
import json
import logging
import threading
from typing import Any, List, Optional, Protocol, Union

from fastapi import WebSocket
from pydantic import BaseModel
from starlette.websockets import WebSocketState

from relay_broker.models.events import DevicesEvent
from relay_broker.registry.store import DeviceRegistry

logger = logging.getLogger(__name__)


class ObserverSession(Protocol):
    """Anything the hub can push text frames to."""

    @property
    def is_open(self) -> bool: ...

    async def send_text(self, text: str) -> None: ...


class WebSocketObserver:
    """Observer session backed by a FastAPI WebSocket."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket

    @property
    def is_open(self) -> bool:
        return self.websocket.client_state == WebSocketState.CONNECTED

    async def send_text(self, text: str) -> None:
        await self.websocket.send_text(text)


def serialize_event(event: Union[BaseModel, dict]) -> str:
    """Render an event as a JSON text frame."""
    if isinstance(event, BaseModel):
        return event.model_dump_json(by_alias=True)
    return json.dumps(event, default=str)


class EventHub:
    """Tracks connected observers and fans events out to all of them."""

    def __init__(self, registry: DeviceRegistry, send_timeout_seconds: float = 5.0):
        self.registry = registry
        self.send_timeout_seconds = send_timeout_seconds
        self._sessions: List[Any] = []
        self._lock = threading.Lock()

    @property
    def observer_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def snapshot_event(self) -> DevicesEvent:
        """Current registry state as a devices event."""
        return DevicesEvent(devices=self.registry.snapshot())

    async def join(self, session: ObserverSession) -> None:
        """Add an observer and bring it up to date with one snapshot."""
        with self._lock:
            if session not in self._sessions:
                self._sessions.append(session)
        logger.info("Observer connected (%d total)", self.observer_count)
        await self._deliver([session], serialize_event(self.snapshot_event()))

    def leave(self, session: ObserverSession) -> None:
        """Forget an observer. Safe to call more than once."""
        with self._lock:
            if session not in self._sessions:
                return
            self._sessions.remove(session)
        logger.info("Observer disconnected (%d remaining)", self.observer_count)

    async def broadcast_snapshot(self) -> None:
        """Send the full fleet state to every observer."""
        await self.broadcast_event(self.snapshot_event())

    async def broadcast_event(self, event: Union[BaseModel, dict]) -> None:
        """Send an arbitrary event to every observer."""
        with self._lock:
            targets = list(self._sessions)
        if not targets:
            return
        await self._deliver(targets, serialize_event(event))

    async def _deliver(self, targets: List[ObserverSession], text: str) -> None:
        results = await asyncio.gather(
            *(self._send(session, text) for session in targets)
        )
        for session, ok in zip(targets, results):
            if not ok:
                self.leave(session)

    async def _send(self, session: ObserverSession, text: str) -> bool:
        if not session.is_open:
            return False
        try:
            await asyncio.wait_for(session.send_text(text), timeout=self.send_timeout_seconds)
            return True
        except Exception as exc:
            # Timeouts count as disconnects
            logger.debug("Dropping observer after failed send: %s: %s", type(exc).__name__, exc)
            return False

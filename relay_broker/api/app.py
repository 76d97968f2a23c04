"""
Relay Broker API — FastAPI endpoints.

Agents:
- POST /register, POST /heartbeat, GET /poll, POST /response
Controllers:
- POST /command, GET /devices
Observers:
- WebSocket / and /ws: initial snapshot, then live events
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Callable, Optional

from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field

from relay_broker.commands.store import CommandQueueStore
from relay_broker.errors import DeviceNotFoundError, MissingIdentityError
from relay_broker.fanout.hub import EventHub, WebSocketObserver
from relay_broker.models.config import BrokerConfig, load_config
from relay_broker.registry.store import DeviceRegistry
from relay_broker.service.relay import RelayService
from relay_broker.sweeper.loop import PresenceSweeper

logger = logging.getLogger(__name__)


# --- Request Models ---

class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_id: Optional[str] = Field(default=None, alias="clientId")
    device_name: Optional[str] = Field(default=None, alias="deviceName")


class HeartbeatRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_id: Optional[str] = Field(default=None, alias="clientId")


class ResponseRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    client_id: Optional[str] = Field(default=None, alias="clientId")
    output: Any = None


class CommandRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    target_client_id: Optional[str] = Field(default=None, alias="targetClientId")
    command: Any = None


# --- Application Factory ---

def create_app(
    config: Optional[BrokerConfig] = None,
    registry: Optional[DeviceRegistry] = None,
    queues: Optional[CommandQueueStore] = None,
    hub: Optional[EventHub] = None,
    clock: Optional[Callable[[], float]] = None,
    run_sweeper: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    config = config or load_config()

    # Initialize components
    reg = registry if registry is not None else DeviceRegistry(
        clock=clock,
        stale_threshold_seconds=config.stale_threshold_seconds,
        eviction_seconds=config.eviction_seconds,
    )
    qs = queues if queues is not None else CommandQueueStore(reg)
    eh = hub if hub is not None else EventHub(
        reg, send_timeout_seconds=config.observer_send_timeout_seconds
    )
    service = RelayService(registry=reg, queues=qs, hub=eh)
    sweeper = PresenceSweeper(
        registry=reg,
        hub=eh,
        queues=qs,
        interval_seconds=config.sweep_interval_seconds,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        stop_event = asyncio.Event()
        task = None
        if run_sweeper:
            task = asyncio.create_task(sweeper.run_async(stop_event))
        logger.info("Relay broker ready on %s:%s", config.host, config.port)
        yield
        stop_event.set()
        if task is not None:
            await task

    app = FastAPI(
        title="Relay Broker",
        description="Command-and-control relay for intermittently connected devices",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Store components on app state for access in endpoints
    app.state.config = config
    app.state.registry = reg
    app.state.queues = qs
    app.state.hub = eh
    app.state.service = service
    app.state.sweeper = sweeper

    # === AGENT PROTOCOL ===

    @app.post("/register")
    async def register_device(req: RegisterRequest):
        """Register (or re-register) a device."""
        try:
            await service.register(req.client_id, req.device_name)
        except MissingIdentityError as exc:
            raise HTTPException(400, str(exc))
        return {"status": "ok"}

    @app.post("/heartbeat")
    async def heartbeat(req: HeartbeatRequest):
        """Keep a device online."""
        try:
            await service.heartbeat(req.client_id)
        except MissingIdentityError as exc:
            raise HTTPException(400, str(exc))
        return {"status": "ok"}

    @app.get("/poll")
    async def poll(client_id: Optional[str] = Query(default=None, alias="clientId")):
        """Deliver and clear everything queued for a device."""
        try:
            commands = await service.poll(client_id)
        except MissingIdentityError as exc:
            raise HTTPException(400, str(exc))
        return [c.model_dump(mode="json", by_alias=True) for c in commands]

    @app.post("/response")
    async def submit_response(req: ResponseRequest):
        """A device reports the output of a command."""
        await service.submit_response(req.client_id, req.output)
        return {"status": "received"}

    # === CONTROLLER ===

    @app.post("/command")
    async def submit_command(req: CommandRequest):
        """Queue a command for a registered device."""
        try:
            pending = await service.submit_command(req.target_client_id, req.command)
        except DeviceNotFoundError:
            raise HTTPException(404, "Device not found")
        return {"queued": True, "id": pending.id}

    @app.get("/devices")
    def list_devices():
        """Current fleet state with pending command counts."""
        return service.devices()

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "devices": len(reg),
            "observers": eh.observer_count,
            "sweeper": sweeper.status,
        }

    # === OBSERVERS ===

    async def observer_stream(websocket: WebSocket):
        """Live fleet state for dashboards."""
        await websocket.accept()
        observer = WebSocketObserver(websocket)
        await eh.join(observer)
        try:
            while True:
                # Observers never send anything meaningful; reading detects the close
                await websocket.receive_text()
        except WebSocketDisconnect:
            pass
        finally:
            eh.leave(observer)

    app.add_api_websocket_route("/ws", observer_stream)
    app.add_api_websocket_route("/", observer_stream)

    return app


# Default application instance
app = create_app()

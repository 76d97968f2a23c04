"""Relay broker data models."""

from relay_broker.models.command import PendingCommand
from relay_broker.models.config import BrokerConfig, load_config
from relay_broker.models.device import (
    STALE_THRESHOLD_SECONDS,
    DeviceState,
    PresenceRecord,
    is_online,
)
from relay_broker.models.events import DevicesEvent, ResponseEvent

__all__ = [
    "BrokerConfig",
    "DeviceState",
    "DevicesEvent",
    "PendingCommand",
    "PresenceRecord",
    "ResponseEvent",
    "STALE_THRESHOLD_SECONDS",
    "is_online",
    "load_config",
]

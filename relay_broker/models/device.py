"""Presence Record — liveness metadata tracked for each remote device."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


STALE_THRESHOLD_SECONDS = 15.0


def is_online(now: float, last_seen_at: float, threshold: float = STALE_THRESHOLD_SECONDS) -> bool:
    """A device is online while its last activity is younger than the threshold."""
    return (now - last_seen_at) < threshold


class PresenceRecord(BaseModel):
    """A single device known to the registry."""

    identity: str
    display_name: Optional[str] = None
    last_seen_at: float                     # Clock reading (monotonic seconds)
    last_seen: datetime                     # Wall-clock time of the same moment
    registered_at: datetime
    reported_online: bool = True            # Last value published by touch/sweep


class DeviceState(BaseModel):
    """Observer-facing view of a presence record."""

    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = None
    online: bool
    last_seen: datetime = Field(alias="lastSeen")

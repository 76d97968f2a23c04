"""Pending Command — an opaque instruction waiting for its device to poll."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PendingCommand(BaseModel):
    """One queued command. The payload is never interpreted by the broker."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    command: Any
    queued_at: datetime = Field(alias="queuedAt")

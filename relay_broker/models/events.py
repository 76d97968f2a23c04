"""Observer events pushed by the fan-out hub."""

from typing import Any, Dict, Literal

from pydantic import BaseModel, ConfigDict, Field

from relay_broker.models.device import DeviceState


class DevicesEvent(BaseModel):
    """Full fleet snapshot."""

    type: Literal["devices"] = "devices"
    devices: Dict[str, DeviceState] = {}


class ResponseEvent(BaseModel):
    """Output a device reported back for a command it ran."""

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["response"] = "response"
    client_id: str = Field(alias="clientId")
    output: Any = None

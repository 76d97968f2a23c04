"""Broker configuration."""

import os
from typing import List, Optional

from pydantic import BaseModel, Field


class BrokerConfig(BaseModel):
    """Configuration for the relay broker process."""

    host: str = "0.0.0.0"
    port: int = 3000
    stale_threshold_seconds: float = Field(gt=0, default=15.0)
    sweep_interval_seconds: float = Field(gt=0, default=5.0)
    eviction_seconds: Optional[float] = Field(ge=0, default=86400.0)   # 0 or None keeps records forever
    observer_send_timeout_seconds: float = Field(gt=0, default=5.0)
    cors_origins: List[str] = ["*"]
    log_level: str = "INFO"


def load_config(environ: Optional[dict] = None) -> BrokerConfig:
    """Build a BrokerConfig from RELAY_* environment variables."""
    env = os.environ if environ is None else environ
    values = {}

    if env.get("RELAY_HOST"):
        values["host"] = env["RELAY_HOST"]
    port = env.get("RELAY_PORT") or env.get("PORT")
    if port:
        values["port"] = port
    if env.get("RELAY_STALE_THRESHOLD"):
        values["stale_threshold_seconds"] = env["RELAY_STALE_THRESHOLD"]
    if env.get("RELAY_SWEEP_INTERVAL"):
        values["sweep_interval_seconds"] = env["RELAY_SWEEP_INTERVAL"]
    if env.get("RELAY_EVICTION_SECONDS"):
        values["eviction_seconds"] = env["RELAY_EVICTION_SECONDS"]
    if env.get("RELAY_SEND_TIMEOUT"):
        values["observer_send_timeout_seconds"] = env["RELAY_SEND_TIMEOUT"]
    if env.get("RELAY_CORS_ORIGINS"):
        values["cors_origins"] = [
            o.strip() for o in env["RELAY_CORS_ORIGINS"].split(",") if o.strip()
        ]
    if env.get("RELAY_LOG_LEVEL"):
        values["log_level"] = env["RELAY_LOG_LEVEL"].upper()

    return BrokerConfig(**values)

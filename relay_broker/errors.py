"""Errors raised by the relay broker core."""


class RelayError(Exception):
    """Base class for broker errors surfaced to callers."""
    pass


class MissingIdentityError(RelayError):
    """Raised when a request carries no device identity."""
    pass


class DeviceNotFoundError(RelayError):
    """Raised when a command targets a device that never registered."""

    def __init__(self, identity: str):
        super().__init__(f"Device not found: {identity}")
        self.identity = identity

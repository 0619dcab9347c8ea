"""
Domain errors raised by the tracker hub.

Authentication failures are not modelled here; they surface as DRF
``AuthenticationFailed`` / ``NotAuthenticated`` from ``tracker_hub.auth``.
"""


class InvalidPacket(ValueError):
    """A fix packet is missing required numeric fields or carries non-finite values."""

    def __init__(self, message: str, fields: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.fields = fields or {}


class StorageFailure(RuntimeError):
    """A document could not be read from or written to durable storage."""

    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"Document '{key}': {message}")
        self.key = key

"""Error kinds raised while building feeds."""


class PodfeedError(Exception):
    """Base class for feed build failures."""


class NotFoundError(PodfeedError):
    """Upstream resource does not exist (404)."""


class UnsupportedError(PodfeedError):
    """Link cannot be classified or its source type is not handled."""


class TransientError(PodfeedError):
    """Any other upstream failure. Carries the HTTP status when one was received."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status

"""Exception classes for SpendSense."""
from typing import Optional


class SpendSenseError(Exception):
    """Base exception for SpendSense."""
    pass


class ConfigError(SpendSenseError):
    """Missing or malformed configuration."""
    pass


class RequestValidationError(SpendSenseError):
    """Caller sent an incomplete or malformed body."""
    pass


class UpstreamError(SpendSenseError):
    """The chat-completion provider could not be reached or refused the call."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)

    @property
    def retryable(self) -> bool:
        # transport failures have no status code
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


class ResponseFormatError(SpendSenseError):
    """Model output could not be parsed or has the wrong shape."""
    pass


class StorageError(SpendSenseError):
    """Image storage failed."""
    pass

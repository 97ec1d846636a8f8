"""
Challenge Exceptions
====================
Exception classes for failures that are not part of the normal challenge flow.

Session-logic outcomes (expired, mismatch, limits reached) are returned as
result values. Only infrastructure problems are raised.
"""

from typing import Optional


class ChallengeError(Exception):
    """Base exception for all OTP challenge errors."""
    pass


class ConfigurationError(ChallengeError, ValueError):
    """Raised when a ChallengeConfig holds invalid values."""
    pass


class StoreUnavailableError(ChallengeError):
    """Raised when the session store cannot be reached or fails an operation."""

    def __init__(self, message: str, recipient: Optional[str] = None):
        super().__init__(message)
        self.recipient = recipient


class StoreTimeoutError(StoreUnavailableError):
    """Raised when a store operation or identity lock exceeds its timeout."""
    pass


class DeliveryError(ChallengeError):
    """Raised by delivery channels when a code could not be transmitted."""

    def __init__(
        self,
        message: str,
        channel: str = "unknown",
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.channel = channel
        self.status_code = status_code
        super().__init__(f"[{channel}] {message}")


class DeliveryTimeoutError(DeliveryError):
    """Raised when a delivery channel does not answer in time."""
    pass

"""
Delivery Channel Interface
==========================
Base classes for transmitting a code to a recipient (email, SMS, ...).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional
import structlog

logger = structlog.get_logger(__name__)


@dataclass
class CodeMessage:
    """A code to deliver and who to deliver it to."""
    recipient: str
    code: str
    expiry_minutes: int = 5
    recipient_secondary: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        return f"CodeMessage(recipient={self.recipient!r}, expiry_minutes={self.expiry_minutes})"


@dataclass
class DeliveryReceipt:
    """Result of a delivery attempt."""
    success: bool
    channel: str = "unknown"
    provider_message_id: Optional[str] = None
    error_message: Optional[str] = None


class DeliveryChannel(ABC):
    """
    Abstract base class for delivery channels.

    ``send`` either returns a receipt (success or not) or raises
    DeliveryError. The challenge service treats both failure forms alike.
    """

    name: str = "base"

    @abstractmethod
    async def send(self, message: CodeMessage) -> DeliveryReceipt:
        """Transmit ``message.code`` to ``message.recipient``."""
        ...

    async def close(self) -> None:
        """Clean up resources (e.g., close HTTP clients)."""
        return None


class CallbackDeliveryChannel(DeliveryChannel):
    """
    Adapts an async callable into a delivery channel.

    Example:
        async def send_email(recipient, code):
            ...
            return True

        channel = CallbackDeliveryChannel(send_email)
    """

    name = "callback"

    def __init__(self, callback: Callable[[str, str], Awaitable[bool]], name: Optional[str] = None):
        self.callback = callback
        if name:
            self.name = name

    async def send(self, message: CodeMessage) -> DeliveryReceipt:
        ok = await self.callback(message.recipient, message.code)
        return DeliveryReceipt(
            success=bool(ok),
            channel=self.name,
            error_message=None if ok else "Callback reported failure",
        )

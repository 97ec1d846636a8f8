"""
Delivery Channels
=================
Channels that transmit generated codes to recipients.
"""

from .base import CallbackDeliveryChannel, CodeMessage, DeliveryChannel, DeliveryReceipt
from .emailjs import EmailJSConfig, EmailJSDeliveryChannel
from .log_channel import LogDeliveryChannel

__all__ = [
    "CodeMessage",
    "DeliveryReceipt",
    "DeliveryChannel",
    "CallbackDeliveryChannel",
    "LogDeliveryChannel",
    "EmailJSConfig",
    "EmailJSDeliveryChannel",
]

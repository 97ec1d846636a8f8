"""
OTP Challenge Core
==================
One-time passcode challenges: issue, countdown, verify with bounded
attempts, and bounded resend.
"""

__version__ = "0.1.0"

# Configuration
from otp_challenge.config import ChallengeConfig

# Errors
from otp_challenge.errors import FailureReason, NextAction, next_action, user_message
from otp_challenge.exceptions import (
    ChallengeError,
    ConfigurationError,
    DeliveryError,
    DeliveryTimeoutError,
    StoreTimeoutError,
    StoreUnavailableError,
)

# Models
from otp_challenge.models import (
    ChallengeSession,
    DeliveryResult,
    IssueResult,
    RemainingTime,
    ResendResult,
    VerifyResult,
)

# Codes
from otp_challenge.generator import generate_code, validate_code_format

# Countdowns
from otp_challenge.countdown import countdown, format_clock, remaining_for, seconds_left

# Masking
from otp_challenge.masking import mask_code, mask_email, mask_phone, mask_recipient

# Stores
from otp_challenge.store import InMemorySessionStore, RedisSessionStore, SessionStore

# Delivery
from otp_challenge.delivery import (
    CallbackDeliveryChannel,
    CodeMessage,
    DeliveryChannel,
    DeliveryReceipt,
    EmailJSConfig,
    EmailJSDeliveryChannel,
    LogDeliveryChannel,
)

# Service
from otp_challenge.service import ChallengeService, codes_match

# Logging
from otp_challenge.logging_setup import setup_logging

__all__ = [
    # Configuration
    "ChallengeConfig",
    # Errors
    "FailureReason",
    "NextAction",
    "next_action",
    "user_message",
    "ChallengeError",
    "ConfigurationError",
    "DeliveryError",
    "DeliveryTimeoutError",
    "StoreTimeoutError",
    "StoreUnavailableError",
    # Models
    "ChallengeSession",
    "DeliveryResult",
    "IssueResult",
    "RemainingTime",
    "ResendResult",
    "VerifyResult",
    # Codes
    "generate_code",
    "validate_code_format",
    # Countdowns
    "countdown",
    "format_clock",
    "remaining_for",
    "seconds_left",
    # Masking
    "mask_code",
    "mask_email",
    "mask_phone",
    "mask_recipient",
    # Stores
    "SessionStore",
    "InMemorySessionStore",
    "RedisSessionStore",
    # Delivery
    "CodeMessage",
    "DeliveryReceipt",
    "DeliveryChannel",
    "CallbackDeliveryChannel",
    "LogDeliveryChannel",
    "EmailJSConfig",
    "EmailJSDeliveryChannel",
    # Service
    "ChallengeService",
    "codes_match",
    # Logging
    "setup_logging",
]

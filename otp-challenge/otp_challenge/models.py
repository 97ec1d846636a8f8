"""
Challenge Models
================
Session record, failure reasons and operation results.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional

from .errors import FailureReason, NextAction, next_action, user_message


@dataclass
class ChallengeSession:
    """An in-flight OTP challenge for one recipient."""
    recipient_primary: str
    code: str
    issued_at: datetime
    expires_at: datetime
    session_created_at: datetime
    recipient_secondary: Optional[str] = None
    verification_attempts: int = 0
    resend_count: int = 0

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipient_primary": self.recipient_primary,
            "recipient_secondary": self.recipient_secondary,
            "code": self.code,
            "issued_at": self.issued_at.isoformat(),
            "expires_at": self.expires_at.isoformat(),
            "session_created_at": self.session_created_at.isoformat(),
            "verification_attempts": self.verification_attempts,
            "resend_count": self.resend_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChallengeSession":
        return cls(
            recipient_primary=data["recipient_primary"],
            recipient_secondary=data.get("recipient_secondary"),
            code=data["code"],
            issued_at=datetime.fromisoformat(data["issued_at"]),
            expires_at=datetime.fromisoformat(data["expires_at"]),
            session_created_at=datetime.fromisoformat(data["session_created_at"]),
            verification_attempts=int(data.get("verification_attempts", 0)),
            resend_count=int(data.get("resend_count", 0)),
        )

    def __repr__(self) -> str:
        # Keep the code out of logs and tracebacks
        return (
            f"ChallengeSession(recipient_primary={self.recipient_primary!r}, "
            f"expires_at={self.expires_at.isoformat()}, "
            f"verification_attempts={self.verification_attempts}, "
            f"resend_count={self.resend_count})"
        )


@dataclass
class IssueResult:
    """Result of issuing a challenge."""
    session_exists: bool
    delivered: bool = False
    reason: Optional[FailureReason] = None

    @property
    def message(self) -> Optional[str]:
        return user_message(self.reason) if self.reason else None


@dataclass
class VerifyResult:
    """Result of verifying a submitted code."""
    valid: bool
    reason: Optional[FailureReason] = None
    attempts_remaining: Optional[int] = None

    @property
    def message(self) -> Optional[str]:
        if self.reason is None:
            return None
        return user_message(self.reason, attempts_remaining=self.attempts_remaining)

    @property
    def next_action(self) -> Optional[NextAction]:
        return next_action(self.reason) if self.reason else None


@dataclass
class ResendResult:
    """
    Result of a resend request.

    ``ok`` reports whether a new code was generated and persisted. A new code
    whose delivery failed is still ``ok`` with ``delivered=False`` and reason
    ``DELIVERY_FAILED``.
    """
    ok: bool
    new_code: Optional[str] = None
    reason: Optional[FailureReason] = None
    delivered: bool = False
    resend_attempts_left: Optional[int] = None
    retry_after: Optional[int] = None  # Seconds until the cooldown ends
    max_resend_attempts: Optional[int] = None

    @property
    def message(self) -> Optional[str]:
        if self.reason is None:
            return None
        return user_message(self.reason, max_resend_attempts=self.max_resend_attempts)

    @property
    def next_action(self) -> Optional[NextAction]:
        return next_action(self.reason) if self.reason else None


@dataclass
class DeliveryResult:
    """Result of redelivering the current code."""
    delivered: bool
    reason: Optional[FailureReason] = None

    @property
    def message(self) -> Optional[str]:
        return user_message(self.reason) if self.reason else None


@dataclass
class RemainingTime:
    """Countdown snapshot derived from stored timestamps."""
    cooldown_seconds_left: int
    validity_seconds_left: int
    resend_attempts_left: int
    session_exists: bool = True

    @property
    def can_resend(self) -> bool:
        return (
            self.session_exists
            and self.cooldown_seconds_left == 0
            and self.resend_attempts_left > 0
        )

    @property
    def is_expired(self) -> bool:
        return self.validity_seconds_left == 0

"""
Challenge Configuration
=======================
Tunable limits and timeouts for the OTP challenge lifecycle.
"""

import os
from dataclasses import dataclass, fields

from .exceptions import ConfigurationError


@dataclass
class ChallengeConfig:
    """Configuration for OTP challenges."""
    code_length: int = 6
    session_validity_seconds: int = 300  # 5 minutes
    resend_cooldown_seconds: int = 60
    max_verify_attempts: int = 5
    max_resend_attempts: int = 3
    enforce_resend_cooldown: bool = False
    store_timeout_seconds: float = 2.0
    lock_timeout_seconds: float = 2.0
    delivery_timeout_seconds: float = 10.0
    record_ttl_seconds: int = 3600  # How long a store keeps the record around

    def validate(self) -> "ChallengeConfig":
        """
        Check the configuration for impossible combinations.

        Returns:
            self, so it can be chained after construction

        Raises:
            ConfigurationError: If any value is out of range
        """
        if not 4 <= self.code_length <= 10:
            raise ConfigurationError(
                f"code_length must be between 4 and 10, got {self.code_length}"
            )

        for name in (
            "session_validity_seconds",
            "resend_cooldown_seconds",
            "max_verify_attempts",
            "store_timeout_seconds",
            "lock_timeout_seconds",
            "delivery_timeout_seconds",
            "record_ttl_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} must be positive")

        if self.max_resend_attempts < 0:
            raise ConfigurationError("max_resend_attempts cannot be negative")

        if self.resend_cooldown_seconds >= self.session_validity_seconds:
            raise ConfigurationError(
                "resend_cooldown_seconds must be shorter than session_validity_seconds"
            )

        if self.record_ttl_seconds < self.session_validity_seconds:
            raise ConfigurationError(
                "record_ttl_seconds must cover at least one validity window"
            )

        return self

    @classmethod
    def from_env(cls, prefix: str = "OTP") -> "ChallengeConfig":
        """
        Build a configuration from environment variables.

        Each field maps to ``{PREFIX}_{FIELD_NAME}``, e.g. ``OTP_CODE_LENGTH``
        or ``OTP_MAX_RESEND_ATTEMPTS``. Unset variables keep their defaults.
        """
        p = f"{prefix}_" if prefix else ""
        values = {}

        for field in fields(cls):
            raw = os.getenv(f"{p}{field.name.upper()}")
            if raw is None or raw == "":
                continue

            try:
                if field.type in (bool, "bool"):
                    values[field.name] = raw.strip().lower() in ("1", "true", "yes", "on")
                elif field.type in (float, "float"):
                    values[field.name] = float(raw)
                else:
                    values[field.name] = int(raw)
            except ValueError:
                raise ConfigurationError(
                    f"Invalid value for {p}{field.name.upper()}: {raw!r}"
                )

        return cls(**values).validate()

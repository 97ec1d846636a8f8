"""
EmailJS Delivery Channel
========================
Sends codes by email through the EmailJS REST API.

The EmailJS template receives these variables:

    {{to_email}}, {{to_name}}, {{otp_code}}, {{company_name}}, {{expiry_minutes}}
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional
import httpx
import structlog
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..exceptions import DeliveryError, DeliveryTimeoutError
from ..masking import mask_email
from .base import CodeMessage, DeliveryChannel, DeliveryReceipt

logger = structlog.get_logger(__name__)
retry_logger = logging.getLogger(__name__)

EMAILJS_SEND_URL = "https://api.emailjs.com/api/v1.0/email/send"


class TransientDeliveryError(DeliveryError):
    """Network failure or 5xx from EmailJS; worth retrying."""
    pass


@dataclass
class EmailJSConfig:
    """Credentials and template settings for EmailJS."""
    service_id: str = ""
    template_id: str = ""
    public_key: str = ""
    private_key: Optional[str] = None
    company_name: str = "ServiceProStars"
    timeout: float = 10.0

    @classmethod
    def from_env(cls) -> "EmailJSConfig":
        return cls(
            service_id=os.getenv("EMAILJS_SERVICE_ID", ""),
            template_id=os.getenv("EMAILJS_TEMPLATE_ID", ""),
            public_key=os.getenv("EMAILJS_PUBLIC_KEY", ""),
            private_key=os.getenv("EMAILJS_PRIVATE_KEY") or None,
            company_name=os.getenv("EMAILJS_COMPANY_NAME", "ServiceProStars"),
        )


class EmailJSDeliveryChannel(DeliveryChannel):
    """
    EmailJS email channel.

    Retries connection errors, timeouts and 5xx responses with exponential
    backoff. Other failures are returned as unsuccessful receipts.
    """

    name = "emailjs"

    def __init__(
        self,
        config: Optional[EmailJSConfig] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config or EmailJSConfig.from_env()
        self._client = client or httpx.AsyncClient(timeout=self.config.timeout)

    async def close(self) -> None:
        """Close HTTP client."""
        await self._client.aclose()

    def _payload(self, message: CodeMessage) -> dict:
        payload = {
            "service_id": self.config.service_id,
            "template_id": self.config.template_id,
            "user_id": self.config.public_key,
            "template_params": {
                "to_email": message.recipient,
                "to_name": message.metadata.get("name") or message.recipient.split("@")[0],
                "otp_code": message.code,
                "company_name": self.config.company_name,
                "expiry_minutes": str(message.expiry_minutes),
            },
        }
        if self.config.private_key:
            payload["accessToken"] = self.config.private_key
        return payload

    @retry(
        retry=retry_if_exception_type(TransientDeliveryError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        before_sleep=before_sleep_log(retry_logger, logging.WARNING),
        reraise=True,
    )
    async def _post(self, payload: dict) -> httpx.Response:
        try:
            response = await self._client.post(EMAILJS_SEND_URL, json=payload)
        except httpx.TimeoutException:
            raise DeliveryTimeoutError("Request timed out", channel=self.name)
        except httpx.HTTPError as e:
            raise TransientDeliveryError(f"Failed to connect: {e}", channel=self.name)

        if response.status_code >= 500:
            raise TransientDeliveryError(
                "Server error", channel=self.name, status_code=response.status_code
            )
        return response

    async def send(self, message: CodeMessage) -> DeliveryReceipt:
        """Send the code email."""
        try:
            response = await self._post(self._payload(message))
        except DeliveryError as e:
            logger.error(
                "EmailJS delivery failed",
                to=mask_email(message.recipient),
                error=e.message,
                status_code=e.status_code,
            )
            raise

        if response.status_code == 200:
            logger.info("EmailJS delivery accepted", to=mask_email(message.recipient))
            return DeliveryReceipt(success=True, channel=self.name)

        logger.warning(
            "EmailJS rejected delivery",
            to=mask_email(message.recipient),
            status_code=response.status_code,
            body=response.text[:200],
        )
        return DeliveryReceipt(
            success=False,
            channel=self.name,
            error_message=response.text or f"HTTP {response.status_code}",
        )

"""
Log Delivery Channel
====================
Development channel that writes deliveries to the log instead of sending them.
"""

import uuid
from collections import deque
from typing import Deque
import structlog

from ..masking import mask_code, mask_recipient
from .base import CodeMessage, DeliveryChannel, DeliveryReceipt

logger = structlog.get_logger(__name__)


class LogDeliveryChannel(DeliveryChannel):
    """
    Logs each delivery with the code masked.

    With ``outbox_size`` set, the last that many messages are kept in
    ``outbox`` so tests and local tooling can read the code back. Nothing
    is kept by default.
    """

    name = "log"

    def __init__(self, outbox_size: int = 0):
        self.outbox: Deque[CodeMessage] = deque(maxlen=outbox_size)

    async def send(self, message: CodeMessage) -> DeliveryReceipt:
        self.outbox.append(message)
        message_id = str(uuid.uuid4())

        logger.info(
            "OTP dispatched",
            channel=self.name,
            to=mask_recipient(message.recipient),
            code=mask_code(message.code),
            message_id=message_id,
        )

        return DeliveryReceipt(success=True, channel=self.name, provider_message_id=message_id)

    @property
    def last_code(self):
        return self.outbox[-1].code if self.outbox else None

"""Chat echo of fund requests."""

from __future__ import annotations

import logging
from collections import deque
from datetime import datetime, timezone
from threading import Lock
from typing import Protocol
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from fundbridge.models.fund_request import FundRequest

logger = logging.getLogger(__name__)


class ChatMessage(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    sender_id: UUID
    receiver_id: UUID
    text: str
    fund_request_id: UUID | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MessagingSink(Protocol):
    def publish(self, message: ChatMessage) -> None:
        ...


MAX_RETAINED_MESSAGES = 1000


class InMemoryMessagingSink(MessagingSink):
    """Keeps the most recent published messages; stands in for the chat service."""

    def __init__(self, max_messages: int = MAX_RETAINED_MESSAGES) -> None:
        self.messages: deque[ChatMessage] = deque(maxlen=max_messages)
        self._lock = Lock()

    def publish(self, message: ChatMessage) -> None:
        with self._lock:
            self.messages.append(message)
        logger.debug("messaging.published", extra={"message_id": str(message.id)})


def format_amount(amount: float) -> str:
    if float(amount).is_integer():
        return str(int(amount))
    return f"{amount:.2f}"


def format_fund_request_message(request: FundRequest) -> str:
    """``Fund Request: EQUITY | Amount: ₹500000 | Seed round``"""
    return (
        f"Fund Request: {request.funding_type.value.upper()} | "
        f"Amount: ₹{format_amount(request.amount)} | "
        f"{request.description}"
    )

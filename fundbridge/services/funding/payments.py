"""Payment signature verification for gateway callbacks."""

from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Protocol

from fundbridge.config import settings

logger = logging.getLogger(__name__)


class PaymentVerifier(Protocol):
    def verify(self, order_id: str, payment_id: str, signature: str) -> bool:
        ...


def sign_payment(secret: str, order_id: str, payment_id: str) -> str:
    """Hex HMAC-SHA256 over ``order_id|payment_id``."""
    body = f"{order_id}|{payment_id}".encode("utf-8")
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


class HmacPaymentVerifier(PaymentVerifier):
    """Verifies gateway signatures against the server-held key secret."""

    def __init__(self, secret: str | None = None) -> None:
        self._secret = secret if secret is not None else settings.payment_key_secret

    def verify(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not self._secret:
            logger.error("payments.verifier.unconfigured")
            return False
        if not order_id or not payment_id or not signature:
            return False
        expected = sign_payment(self._secret, order_id, payment_id)
        return hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8"))

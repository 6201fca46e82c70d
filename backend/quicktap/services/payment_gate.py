"""
Payment Gate: local verification of gateway payment assertions.

The gateway's client-side checkout captures the charge and hands back
(gateway_order_id, gateway_payment_id, signature). The signature is
HMAC-SHA256 over "gateway_order_id|gateway_payment_id" keyed with the
shared secret, hex encoded. No network call is made here.

Cash payments never pass through this module.
"""

import hashlib
import hmac
from functools import lru_cache

from quicktap.core.config import get_settings
from quicktap.core.logging import get_logger
from quicktap.core.metrics import record_payment_verification

logger = get_logger(__name__)


class PaymentGate:
    def __init__(self, secret: str):
        if not secret:
            raise ValueError("Payment gateway secret must not be empty")
        self._secret = secret.encode("utf-8")

    def sign(self, gateway_order_id: str, gateway_payment_id: str) -> str:
        """Expected signature for an (order, payment) pair."""
        message = f"{gateway_order_id}|{gateway_payment_id}"
        return hmac.new(self._secret, message.encode("utf-8"), hashlib.sha256).hexdigest()

    def verify(self, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
        """
        True only when `signature` exactly matches the expected HMAC.
        Uses a constant-time comparison.
        """
        if not (gateway_order_id and gateway_payment_id and signature):
            is_valid = False
        else:
            expected = self.sign(gateway_order_id, gateway_payment_id)
            # Bytes, so non-ASCII input compares unequal instead of raising
            is_valid = hmac.compare_digest(
                expected.encode("utf-8"), signature.encode("utf-8", errors="surrogatepass")
            )

        record_payment_verification(is_valid)
        logger.info(
            "payment_signature_checked",
            gateway_order_id=gateway_order_id,
            gateway_payment_id=gateway_payment_id,
            valid=is_valid,
        )
        return is_valid


@lru_cache()
def get_payment_gate() -> PaymentGate:
    return PaymentGate(get_settings().PAYMENT_GATEWAY_KEY_SECRET)

"""Razorpay adapters

Signature verification (HMAC-SHA256) and payment lookup over the Razorpay
REST API.
"""

import hashlib
import hmac
import logging
from typing import Optional
import httpx
from src.app.services.payment_gateway import (
    GatewayPayment,
    PaymentGateway,
    PaymentGatewayError,
)
from src.app.services.signature_verifier import SignatureVerifier

logger = logging.getLogger(__name__)


def hmac_sha256_hex(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def signatures_match(expected: str, signature: str) -> bool:
    # compare_digest rejects non-ASCII str; header values are arbitrary text
    return hmac.compare_digest(
        expected.encode("utf-8"), signature.encode("utf-8", errors="replace")
    )


class RazorpaySignatureVerifier(SignatureVerifier):
    """
    Verifies Razorpay signatures

    - Webhooks: HMAC-SHA256 of the raw body with the webhook secret,
      sent in the X-Razorpay-Signature header
    - Checkout callbacks: HMAC-SHA256 of "order_id|payment_id" with the
      API key secret
    """

    def __init__(self, webhook_secret: str, key_secret: str):
        self.webhook_secret = webhook_secret
        self.key_secret = key_secret

    def verify_webhook(self, body: bytes, signature: Optional[str]) -> bool:
        if not signature or not self.webhook_secret:
            return False
        expected = hmac_sha256_hex(self.webhook_secret, body)
        return signatures_match(expected, signature)

    def verify_payment(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not signature or not self.key_secret:
            return False
        expected = hmac_sha256_hex(self.key_secret, f"{order_id}|{payment_id}".encode("utf-8"))
        return signatures_match(expected, signature)


class RazorpayPaymentGateway(PaymentGateway):
    """Fetches payments from Razorpay (basic auth with key id / key secret)"""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def fetch_payment(self, payment_id: str) -> GatewayPayment:
        url = f"{self.base_url}/payments/{payment_id}"
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.key_id, self.key_secret),
                transport=self.transport,
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            raise PaymentGatewayError(
                f"Gateway returned {e.response.status_code} for payment {payment_id}"
            ) from e
        except httpx.HTTPError as e:
            raise PaymentGatewayError(f"Gateway request for payment {payment_id} failed: {e}") from e

        logger.info(f"Fetched payment {payment_id} from gateway (status={data.get('status')})")
        return GatewayPayment(
            id=data.get("id", payment_id),
            order_id=data.get("order_id"),
            amount=int(data.get("amount", 0)),
            currency=data.get("currency", "INR"),
            method=data.get("method"),
            status=data.get("status"),
        )

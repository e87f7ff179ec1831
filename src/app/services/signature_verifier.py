"""Signature Verifier Interface

Authenticates payment gateway deliveries before their content is trusted.
Production wiring always uses the HMAC implementation; there is no
configuration switch that disables verification.
"""

from abc import ABC, abstractmethod
from typing import Optional


class SignatureVerifier(ABC):
    @abstractmethod
    def verify_webhook(self, body: bytes, signature: Optional[str]) -> bool:
        """
        Verify a webhook delivery

        Args:
            body: Raw request body exactly as received
            signature: Value of the gateway signature header

        Returns:
            True if the body was signed with the shared webhook secret
        """
        pass

    @abstractmethod
    def verify_payment(self, order_id: str, payment_id: str, signature: str) -> bool:
        """
        Verify a checkout callback (order_id|payment_id signed with the key secret)
        """
        pass

"""Payment Gateway Interface"""

from abc import ABC, abstractmethod
from typing import Optional
from pydantic import BaseModel


class GatewayPayment(BaseModel):
    """Payment as reported by the gateway; amount is in minor units"""

    id: str
    order_id: Optional[str] = None
    amount: int
    currency: str = "INR"
    method: Optional[str] = None
    status: Optional[str] = None


class PaymentGateway(ABC):
    @abstractmethod
    async def fetch_payment(self, payment_id: str) -> GatewayPayment:
        """
        Fetch payment details from the gateway

        Raises:
            PaymentGatewayError: if the gateway cannot be reached or rejects the call
        """
        pass


class PaymentGatewayError(Exception):
    pass

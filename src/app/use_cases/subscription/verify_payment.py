"""VerifySubscriptionPayment Use Case

Manual (client-side) payment confirmation. The checkout page posts back the
gateway's signed callback; after checking the signature the payment is
fetched from the gateway and the subscription is activated exactly as a
captured webhook would.
"""

import logging
from libs.result import Result, Return, Error
from src.app.repositories.subscription_repository import SubscriptionRepository
from src.app.services.payment_gateway import PaymentGateway, PaymentGatewayError
from src.app.services.signature_verifier import SignatureVerifier
from src.domain.payment_ledger import minor_to_major
from src.domain.subscription import SubscriptionStatus
from .dtos import VerifyPaymentCommandDTO, VerifyPaymentResponseDTO
from .errors import ErrorCode
from .lifecycle import SubscriptionLifecycle

logger = logging.getLogger(__name__)


class VerifySubscriptionPayment:
    """
    Use Case: verify a checkout callback and activate the subscription

    Business Rules:
    1. Invalid signature is rejected before any read or write
    2. Unknown subscription -> SUBSCRIPTION_NOT_FOUND
    3. Activation reuses the lifecycle command, so verifying a payment the
       webhook already applied succeeds without a second ledger entry
    """

    def __init__(
        self,
        lifecycle: SubscriptionLifecycle,
        subscription_repo: SubscriptionRepository,
        verifier: SignatureVerifier,
        gateway: PaymentGateway,
    ):
        self.lifecycle = lifecycle
        self.subscription_repo = subscription_repo
        self.verifier = verifier
        self.gateway = gateway

    async def execute(self, command: VerifyPaymentCommandDTO) -> Result[VerifyPaymentResponseDTO]:
        if not self.verifier.verify_payment(command.order_id, command.payment_id, command.signature):
            logger.warning(f"Invalid payment signature for subscription {command.subscription_id}")
            return Return.err(
                Error(code=ErrorCode.INVALID_SIGNATURE, message="Invalid payment signature")
            )

        snapshot = await self.subscription_repo.get_by_id(command.subscription_id)
        if snapshot is None:
            return Return.err(
                Error(
                    code=ErrorCode.SUBSCRIPTION_NOT_FOUND,
                    message=f"Subscription {command.subscription_id} not found",
                )
            )

        try:
            payment = await self.gateway.fetch_payment(command.payment_id)
        except PaymentGatewayError as e:
            logger.error(f"Failed to fetch payment {command.payment_id}: {e}")
            return Return.err(
                Error(
                    code=ErrorCode.PAYMENT_GATEWAY_ERROR,
                    message="Could not fetch payment details",
                    reason=str(e),
                )
            )

        result = await self.lifecycle.activate(
            command.subscription_id,
            payment_id=payment.id,
            amount=minor_to_major(payment.amount),
            method=payment.method,
            source="manual verification",
        )
        if result.is_err():
            return Return.err(result.error)

        if result.value.status != SubscriptionStatus.ACTIVE:
            return Return.err(
                Error(
                    code=ErrorCode.SUBSCRIPTION_NOT_PENDING,
                    message=f"Subscription is {result.value.status.value} and cannot be activated",
                )
            )

        logger.info(f"Payment {payment.id} verified for subscription {command.subscription_id}")
        return Return.ok(
            VerifyPaymentResponseDTO(
                subscription_id=command.subscription_id,
                payment_id=payment.id,
            )
        )

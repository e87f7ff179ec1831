"""Payment API Routes

Gateway-facing endpoints: the subscription payment webhook and the manual
checkout verification.
"""

from typing import Optional
from fastapi import APIRouter, Depends, Header, Request, status
from sqlmodel.ext.asyncio.session import AsyncSession

from src.adapter.repositories.subscription_repository import SqlAlchemySubscriptionRepository
from src.api.error import client_error_for
from src.api.schemas.subscription_request import VerifyPaymentRequestSchema
from src.app.services.payment_gateway import PaymentGateway
from src.app.services.signature_verifier import SignatureVerifier
from src.app.use_cases.subscription import (
    IngestPaymentEvent,
    SubscriptionLifecycle,
    VerifyPaymentCommandDTO,
    VerifyPaymentResponseDTO,
    VerifySubscriptionPayment,
    WebhookAckDTO,
)
from src.depends import (
    get_lifecycle,
    get_payment_gateway,
    get_session,
    get_signature_verifier,
)

router = APIRouter(prefix="/payment", tags=["Payments"])


@router.post(
    "/webhook/subscription",
    response_model=WebhookAckDTO,
    status_code=status.HTTP_200_OK,
)
async def subscription_payment_webhook(
    request: Request,
    x_razorpay_signature: Optional[str] = Header(default=None),
    lifecycle: SubscriptionLifecycle = Depends(get_lifecycle),
    verifier: SignatureVerifier = Depends(get_signature_verifier),
):
    """
    Receive payment events for subscriptions from the gateway.

    The signature in `X-Razorpay-Signature` is checked against the raw body
    before anything else. The response is always 200 so the gateway stops
    redelivering; failures are reported as `{"status": "error", "message"}`.

    **Handled events:** `payment.captured`, `payment.authorized`,
    `payment.failed`, `payment.refunded`
    """
    body = await request.body()
    use_case = IngestPaymentEvent(lifecycle, verifier)
    result = await use_case.execute(body, x_razorpay_signature)
    return result.value


@router.post(
    "/verify-subscription",
    response_model=VerifyPaymentResponseDTO,
    status_code=status.HTTP_200_OK,
    responses={
        400: {"description": "Missing field or invalid signature"},
        404: {"description": "Subscription not found"},
        502: {"description": "Payment gateway unavailable"},
    },
)
async def verify_subscription_payment(
    request: VerifyPaymentRequestSchema,
    session: AsyncSession = Depends(get_session),
    lifecycle: SubscriptionLifecycle = Depends(get_lifecycle),
    verifier: SignatureVerifier = Depends(get_signature_verifier),
    gateway: PaymentGateway = Depends(get_payment_gateway),
):
    """
    Verify a checkout callback and activate the subscription.

    **Request body:**
    - `paymentId`, `orderId`, `signature`: values returned by the checkout
    - `subscriptionId`: subscription being paid for

    **Returns:**
    - 200: Payment verified and subscription active
    - 400: Missing field or invalid signature
    - 404: Unknown subscription
    """
    command = VerifyPaymentCommandDTO(
        payment_id=request.payment_id,
        order_id=request.order_id,
        signature=request.signature,
        subscription_id=request.subscription_id,
    )

    use_case = VerifySubscriptionPayment(
        lifecycle=lifecycle,
        subscription_repo=SqlAlchemySubscriptionRepository(session),
        verifier=verifier,
        gateway=gateway,
    )
    result = await use_case.execute(command)

    if result.is_err():
        raise client_error_for(result.error)

    return result.value

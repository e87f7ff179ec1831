"""IngestPaymentEvent Use Case

Turns an authenticated payment gateway webhook into a lifecycle command.
The gateway redelivers events it considers unacknowledged, so this use
case always produces an acknowledgement, including for events it ignores.
"""

import logging
from enum import Enum
from typing import Optional
from pydantic import ValidationError
from libs.result import Result, Return
from src.app.services.signature_verifier import SignatureVerifier
from src.domain.payment_ledger import minor_to_major
from .dtos import PaymentEntityDTO, PaymentWebhookDTO, WebhookAckDTO
from .errors import ErrorCode
from .lifecycle import SubscriptionLifecycle

logger = logging.getLogger(__name__)


class PaymentEventKind(str, Enum):
    CAPTURED = "payment.captured"
    AUTHORIZED = "payment.authorized"
    FAILED = "payment.failed"
    REFUNDED = "payment.refunded"
    UNRECOGNIZED = "unrecognized"


def classify(event: str) -> PaymentEventKind:
    try:
        kind = PaymentEventKind(event)
    except ValueError:
        return PaymentEventKind.UNRECOGNIZED
    return kind


def subscription_id_of(entity: PaymentEntityDTO) -> Optional[str]:
    """Correlation key carried in the payment notes by the checkout flow"""
    if entity.notes.get("type") != "subscription":
        return None
    subscription_id = entity.notes.get("subscriptionId")
    return str(subscription_id) if subscription_id else None


class IngestPaymentEvent:
    """
    Use Case: apply a payment gateway webhook

    Business Rules:
    1. The signature is checked before the body is parsed or trusted
    2. Only payments tagged type=subscription are handled; others are dropped
    3. captured/authorized -> activate, failed -> record failure,
       refunded -> refund
    4. Redelivery is harmless: the lifecycle reports it as a no-op
    5. An unknown subscription is acknowledged as ok (nothing to retry)
    """

    def __init__(self, lifecycle: SubscriptionLifecycle, verifier: SignatureVerifier):
        self.lifecycle = lifecycle
        self.verifier = verifier

    async def execute(self, body: bytes, signature: Optional[str]) -> Result[WebhookAckDTO]:
        if not self.verifier.verify_webhook(body, signature):
            logger.warning("Rejected payment webhook with invalid signature")
            return Return.ok(WebhookAckDTO(status="error", message="Invalid signature"))

        try:
            webhook = PaymentWebhookDTO.model_validate_json(body)
        except ValidationError as e:
            logger.warning(f"Malformed payment webhook: {e.error_count()} validation errors")
            return Return.ok(WebhookAckDTO(status="error", message="Malformed webhook payload"))

        try:
            return Return.ok(await self._handle(webhook))
        except Exception as e:
            logger.exception(f"Error processing {webhook.event} webhook: {e}")
            return Return.ok(WebhookAckDTO(status="error", message=str(e)))

    async def _handle(self, webhook: PaymentWebhookDTO) -> WebhookAckDTO:
        kind = classify(webhook.event)
        if kind == PaymentEventKind.UNRECOGNIZED:
            logger.info(f"Unhandled webhook event: {webhook.event}")
            return WebhookAckDTO()

        if webhook.payload.payment is None:
            logger.warning(f"{webhook.event} webhook without payment entity")
            return WebhookAckDTO(status="error", message="Missing payment entity")
        entity = webhook.payload.payment.entity

        subscription_id = subscription_id_of(entity)
        if subscription_id is None:
            logger.info(f"Payment {entity.id} is not a subscription payment, skipping")
            return WebhookAckDTO()

        logger.info(f"Processing {webhook.event} for subscription {subscription_id} (payment {entity.id})")
        plan_name = entity.notes.get("planName")

        if kind in (PaymentEventKind.CAPTURED, PaymentEventKind.AUTHORIZED):
            result = await self.lifecycle.activate(
                subscription_id,
                payment_id=entity.id,
                amount=minor_to_major(entity.amount),
                method=entity.method,
                plan_name=plan_name,
            )
        elif kind == PaymentEventKind.FAILED:
            result = await self.lifecycle.record_failed_payment(
                subscription_id,
                transaction_id=entity.id,
                error_description=entity.error_description,
                plan_name=plan_name,
            )
        else:
            result = await self.lifecycle.refund(
                subscription_id,
                payment_id=entity.id,
                amount=minor_to_major(entity.amount),
            )

        if result.is_err():
            if result.error.code == ErrorCode.SUBSCRIPTION_NOT_FOUND:
                logger.warning(f"Subscription {subscription_id} not found for payment {entity.id}")
                return WebhookAckDTO()
            return WebhookAckDTO(status="error", message=result.error.message)

        outcome = result.value
        if not outcome.applied:
            logger.info(
                f"{webhook.event} for subscription {subscription_id} was a no-op ({outcome.reason})"
            )
        return WebhookAckDTO()

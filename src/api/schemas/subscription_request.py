"""Request schemas for Subscription API

Pydantic models for validating incoming HTTP requests. Field names follow
the frontend's camelCase; snake_case is accepted as well.
"""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field
from src.domain.subscription import BillingCycle


class CamelRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class VerifyPaymentRequestSchema(CamelRequest):
    """
    Request schema for manual payment verification

    Used for POST /payment/verify-subscription endpoint.
    """

    payment_id: str = Field(
        ...,
        alias="paymentId",
        min_length=1,
        description="Gateway payment id (razorpay_payment_id)"
    )

    order_id: str = Field(
        ...,
        alias="orderId",
        min_length=1,
        description="Gateway order id (razorpay_order_id)"
    )

    signature: str = Field(
        ...,
        min_length=1,
        description="Checkout callback signature (razorpay_signature)"
    )

    subscription_id: str = Field(
        ...,
        alias="subscriptionId",
        min_length=1,
        description="Subscription being paid for"
    )


class SelectPlanRequestSchema(CamelRequest):
    plan_id: str = Field(..., alias="planId", min_length=1, description="Plan to subscribe to")
    billing_cycle: BillingCycle = Field(..., alias="billingCycle", description="monthly or yearly")
    auto_renew: bool = Field(default=False, alias="autoRenew")


class CancelRequestSchema(CamelRequest):
    reason: str = Field(
        ...,
        min_length=1,
        max_length=500,
        description="Cancellation reason (max 500 characters)"
    )


class UpgradeRequestSchema(CamelRequest):
    new_plan_id: str = Field(..., alias="newPlanId", min_length=1)
    immediate: bool = Field(
        default=False,
        description="Apply now (prorated) instead of at the end of the billing period"
    )
    billing_cycle: Optional[BillingCycle] = Field(default=None, alias="billingCycle")


class AutoRenewRequestSchema(CamelRequest):
    enabled: bool = Field(..., description="Turn auto-renewal on or off")


class TriggerJobRequestSchema(CamelRequest):
    job_name: str = Field(..., alias="jobName", min_length=1)

"""Data Transfer Objects for Subscription Use Cases

Pydantic models for command inputs and response outputs.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field, field_validator
from src.domain.lifecycle import LifecycleEvent
from src.domain.subscription import (
    BillingCycle,
    SubscriptionSnapshot,
    SubscriptionStatus,
)


class TransitionOutcomeDTO(BaseModel):
    """
    Outcome of a lifecycle command

    applied=False is not a failure: the command was recognised as a
    duplicate, arrived out of order, or lost a race, and nothing changed.
    """

    subscription_id: str
    event: LifecycleEvent
    applied: bool
    reason: Optional[str] = Field(
        default=None,
        description="No-op reason when applied is False"
    )
    previous_status: SubscriptionStatus
    status: SubscriptionStatus
    subscription: SubscriptionSnapshot


# Webhook payloads ---------------------------------------------------------


class PaymentEntityDTO(BaseModel):
    """Payment entity as delivered by the gateway (amount in minor units)"""

    id: str
    order_id: Optional[str] = None
    amount: int = 0
    currency: str = "INR"
    status: Optional[str] = None
    method: Optional[str] = None
    notes: Dict[str, Any] = Field(default_factory=dict)
    error_description: Optional[str] = None

    @field_validator("notes", mode="before")
    @classmethod
    def normalize_notes(cls, v):
        """The gateway sends an empty list when a payment has no notes"""
        if v is None or isinstance(v, list):
            return {}
        return v


class PaymentWrapperDTO(BaseModel):
    entity: PaymentEntityDTO


class WebhookPayloadDTO(BaseModel):
    payment: Optional[PaymentWrapperDTO] = None


class PaymentWebhookDTO(BaseModel):
    """Envelope of a gateway webhook delivery"""

    event: str
    payload: WebhookPayloadDTO = Field(default_factory=WebhookPayloadDTO)


class WebhookAckDTO(BaseModel):
    """Acknowledgement returned to the gateway; always sent with HTTP 200"""

    status: str = "ok"
    message: Optional[str] = None


class VerifyPaymentCommandDTO(BaseModel):
    payment_id: str = Field(..., min_length=1)
    order_id: str = Field(..., min_length=1)
    signature: str = Field(..., min_length=1)
    subscription_id: str = Field(..., min_length=1)


class VerifyPaymentResponseDTO(BaseModel):
    subscription_id: str
    payment_id: str
    status: str = "verified"
    message: str = "Payment verified and subscription activated successfully"


# Admin commands -----------------------------------------------------------


class SelectPlanCommandDTO(BaseModel):
    admin_id: str = Field(..., min_length=1)
    plan_id: str = Field(..., min_length=1)
    billing_cycle: BillingCycle
    auto_renew: bool = False


class SelectPlanResponseDTO(BaseModel):
    subscription_id: str
    plan_id: str
    plan_name: str
    status: SubscriptionStatus
    billing_cycle: BillingCycle
    start_date: datetime
    end_date: datetime
    amount: Decimal
    currency: str


class SubscriptionDetailsDTO(BaseModel):
    subscription: SubscriptionSnapshot
    plan_name: Optional[str] = None
    days_remaining: int
    is_expiring_soon: bool
    is_expired: bool


class CancelCommandDTO(BaseModel):
    admin_id: str = Field(..., min_length=1)
    reason: str = Field(..., min_length=1, max_length=500)


class SetAutoRenewCommandDTO(BaseModel):
    admin_id: str = Field(..., min_length=1)
    enabled: bool


class ChangePlanCommandDTO(BaseModel):
    admin_id: str = Field(..., min_length=1)
    new_plan_id: str = Field(..., min_length=1)
    immediate: bool = False
    billing_cycle: Optional[BillingCycle] = None


class PlanChangeDTO(BaseModel):
    """Result of an upgrade/downgrade request (applied now or previewed)"""

    subscription_id: str
    change_type: str = Field(description="upgrade or downgrade")
    current_plan_id: str
    new_plan_id: str
    billing_cycle: BillingCycle
    immediate: bool
    applied: bool
    amount_due: Decimal = Decimal("0")
    current_price: Decimal
    new_price: Decimal
    price_difference: Decimal
    effective_date: datetime
    currency: str


class RenewalQuoteDTO(BaseModel):
    subscription_id: str
    plan_id: str
    plan_name: str
    billing_cycle: BillingCycle
    amount: Decimal
    currency: str
    new_start_date: datetime
    new_end_date: datetime
    description: str


# Usage --------------------------------------------------------------------


class ResourceUsageDTO(BaseModel):
    used: Union[int, float]
    limit: Union[int, float]
    percentage: float
    available: Union[int, float]


class UsageWarningDTO(BaseModel):
    resource: str
    message: str


class UsageStatsDTO(BaseModel):
    subscription_id: str
    plan_name: str
    billing_cycle: BillingCycle
    usage: Dict[str, ResourceUsageDTO]
    warnings: List[UsageWarningDTO] = Field(default_factory=list)


# Jobs ---------------------------------------------------------------------


class JobRunResultDTO(BaseModel):
    """Summary of one reconciliation job run"""

    job_name: str
    candidates: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    started_at: datetime
    finished_at: Optional[datetime] = None
    execution_time_ms: int = 0

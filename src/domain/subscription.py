"""Subscription Domain Entity

Tracks an admin-tenant's time-boxed entitlement to a plan, together with
the embedded payment history (the audit trail) and the usage counters.

The persisted row (``Subscription``) is never handed to callers for
mutation. Reads return an immutable ``SubscriptionSnapshot``; writes go
through the repository's conditional update.
"""

import math
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
from pydantic import BaseModel as ValueObject, ConfigDict, Field as ValueField
from sqlmodel import Field, Column, Index
from sqlalchemy import JSON, DateTime, String
from src.domain.base import BaseModel, generate_uuid, utc_now


class SubscriptionStatus(str, Enum):
    """Subscription lifecycle states"""
    PENDING_PAYMENT = "pending_payment"
    ACTIVE = "active"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    ARCHIVED = "archived"


class BillingCycle(str, Enum):
    MONTHLY = "monthly"
    YEARLY = "yearly"


class PaymentStatus(str, Enum):
    """Status of a single payment history entry"""
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"
    REFUNDED = "refunded"
    AUTO_RENEWED = "auto_renewed"
    CANCELLED = "cancelled"      # zero-amount marker written on admin cancellation


class PaymentMethod(str, Enum):
    RAZORPAY = "razorpay"
    STRIPE = "stripe"
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"
    OTHER = "other"
    REFUND = "refund"
    CANCELLATION = "cancellation"
    AUTO_RENEWAL = "auto_renewal"
    UPGRADE = "upgrade"
    DOWNGRADE = "downgrade"


class PaymentRecord(ValueObject):
    """One immutable entry of the payment history"""

    model_config = ConfigDict(frozen=True)

    amount: Decimal
    currency: str = "INR"
    method: PaymentMethod = PaymentMethod.RAZORPAY
    transaction_id: str
    date: datetime
    status: PaymentStatus
    note: Optional[str] = ValueField(default=None, max_length=500)


class UsageCounters(ValueObject):
    """Resource usage of a subscription; all counters are non-negative"""

    model_config = ConfigDict(frozen=True)

    hotels: int = ValueField(default=0, ge=0)
    branches: int = ValueField(default=0, ge=0)
    managers: int = ValueField(default=0, ge=0)
    staff: int = ValueField(default=0, ge=0)
    tables: int = ValueField(default=0, ge=0)
    orders_this_month: int = ValueField(default=0, ge=0)
    storage_used_gb: float = ValueField(default=0.0, ge=0)


class SubscriptionSnapshot(ValueObject):
    """Immutable view of a subscription at a given version"""

    model_config = ConfigDict(frozen=True)

    id: str
    admin_id: str
    plan_id: str
    status: SubscriptionStatus
    billing_cycle: BillingCycle
    start_date: datetime
    end_date: datetime
    auto_renew: bool
    payment_history: Tuple[PaymentRecord, ...] = ()
    usage: UsageCounters = UsageCounters()
    cancellation_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    last_updated: datetime
    version: int

    def days_remaining(self, now: datetime) -> int:
        if self.status != SubscriptionStatus.ACTIVE:
            return 0
        days = math.ceil((self.end_date - now).total_seconds() / 86400)
        return max(0, days)

    def is_expiring_soon(self, now: datetime) -> bool:
        if self.status != SubscriptionStatus.ACTIVE:
            return False
        days = math.ceil((self.end_date - now).total_seconds() / 86400)
        return 0 < days <= 7

    def is_past_end_date(self, now: datetime) -> bool:
        return now > self.end_date


class Subscription(BaseModel, table=True):
    """
    Subscription - persisted admin subscription row

    Domain Rules:
    - Created in pending_payment when an admin selects a plan
    - Status transitions only along the lifecycle edges (see src.domain.lifecycle)
    - payment_history is append-only
    - version increments on every conditional update
    - archived rows are retained for audit, never deleted
    """

    __tablename__ = "admin_subscriptions"
    __table_args__ = (
        Index('ix_admin_subscriptions_admin_id', 'admin_id'),
        Index('ix_admin_subscriptions_status', 'status'),
        Index('ix_admin_subscriptions_end_date', 'end_date'),
        Index('ix_admin_subscriptions_admin_status', 'admin_id', 'status'),
    )

    id: str = Field(
        default_factory=generate_uuid,
        primary_key=True,
        description="Unique subscription identifier (uuid4)"
    )

    admin_id: str = Field(
        description="Owning admin (tenant) identifier"
    )

    plan_id: str = Field(
        description="Referenced subscription plan identifier"
    )

    status: SubscriptionStatus = Field(
        default=SubscriptionStatus.PENDING_PAYMENT,
        description="Lifecycle status"
    )

    billing_cycle: BillingCycle = Field(
        description="Billing cycle (monthly, yearly)"
    )

    start_date: datetime = Field(
        sa_column=Column(DateTime(timezone=False), nullable=False),
        description="Start of the current billing window"
    )

    end_date: datetime = Field(
        sa_column=Column(DateTime(timezone=False), nullable=False),
        description="End of the current billing window"
    )

    auto_renew: bool = Field(
        default=False,
        description="Renew automatically at end of the billing window"
    )

    payment_history: List[Dict[str, Any]] = Field(
        default_factory=list,
        sa_column=Column(JSON, nullable=False),
        description="Append-only payment history entries"
    )

    usage: Dict[str, Any] = Field(
        default_factory=lambda: UsageCounters().model_dump(mode="json"),
        sa_column=Column(JSON, nullable=False),
        description="Resource usage counters"
    )

    cancellation_reason: Optional[str] = Field(
        default=None,
        sa_column=Column(String(500), nullable=True),
        description="Reason given on admin cancellation"
    )

    cancelled_at: Optional[datetime] = Field(
        default=None,
        sa_column=Column(DateTime(timezone=False), nullable=True),
        description="Admin cancellation timestamp"
    )

    version: int = Field(
        default=1,
        description="Optimistic concurrency counter"
    )

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=False), nullable=False),
        description="Row creation timestamp"
    )

    last_updated: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=False), nullable=False),
        description="Last mutation timestamp"
    )

    def to_snapshot(self) -> SubscriptionSnapshot:
        return SubscriptionSnapshot(
            id=self.id,
            admin_id=self.admin_id,
            plan_id=self.plan_id,
            status=self.status,
            billing_cycle=self.billing_cycle,
            start_date=self.start_date,
            end_date=self.end_date,
            auto_renew=self.auto_renew,
            payment_history=tuple(
                PaymentRecord.model_validate(entry) for entry in (self.payment_history or [])
            ),
            usage=UsageCounters.model_validate(self.usage or {}),
            cancellation_reason=self.cancellation_reason,
            cancelled_at=self.cancelled_at,
            last_updated=self.last_updated,
            version=self.version,
        )

    class Config:
        """SQLModel configuration"""
        json_schema_extra = {
            "example": {
                "id": "5f0c6a8e-3a0f-4a57-9d43-0b8f1c2f3e10",
                "admin_id": "admin_123",
                "plan_id": "plan_pro",
                "status": "active",
                "billing_cycle": "monthly",
                "start_date": "2024-01-01T10:00:00",
                "end_date": "2024-02-01T10:00:00",
                "auto_renew": True,
                "payment_history": [],
                "usage": {"hotels": 1, "orders_this_month": 120},
                "version": 3
            }
        }

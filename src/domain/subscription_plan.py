"""Subscription Plan Domain Entity

Reference data: per-cycle price, feature flags and resource limits.
Plans are referenced by id from subscriptions, never embedded.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Dict
from sqlmodel import Field, Column
from sqlalchemy import DateTime, Numeric, String
from src.domain.base import BaseModel, generate_uuid, utc_now
from src.domain.subscription import BillingCycle, UsageCounters


class ResourceType(str, Enum):
    """Quota-limited resources tracked in a subscription's usage"""
    HOTELS = "hotels"
    BRANCHES = "branches"
    MANAGERS = "managers"
    STAFF = "staff"
    TABLES = "tables"
    ORDERS_THIS_MONTH = "orders_this_month"
    STORAGE = "storage_used_gb"


class PlanFeature(str, Enum):
    ANALYTICS_ACCESS = "analytics_access"
    ADVANCED_REPORTS = "advanced_reports"
    COIN_SYSTEM = "coin_system"
    OFFER_MANAGEMENT = "offer_management"
    MULTIPLE_LOCATIONS = "multiple_locations"
    INVENTORY_MANAGEMENT = "inventory_management"
    ORDER_ASSIGNMENT = "order_assignment"
    QR_CODE_GENERATION = "qr_code_generation"
    CUSTOM_BRANDING = "custom_branding"
    API_ACCESS = "api_access"
    PRIORITY_SUPPORT = "priority_support"


class SubscriptionPlan(BaseModel, table=True):
    """
    Subscription Plan - price, features and limits of a tier

    Domain Rules:
    - id is immutable once issued
    - Prices are per billing cycle and non-negative
    - Inactive plans cannot be selected, upgraded to or renewed
    """

    __tablename__ = "subscription_plans"

    id: str = Field(
        default_factory=generate_uuid,
        primary_key=True,
        description="Plan identifier"
    )

    name: str = Field(
        sa_column=Column(String(100), nullable=False, unique=True),
        description="Plan display name"
    )

    description: str = Field(
        default="",
        sa_column=Column(String(500), nullable=False, default=""),
        description="Plan description"
    )

    price_monthly: Decimal = Field(
        sa_column=Column(Numeric(12, 2), nullable=False),
        description="Price per monthly cycle"
    )

    price_yearly: Decimal = Field(
        sa_column=Column(Numeric(12, 2), nullable=False),
        description="Price per yearly cycle"
    )

    max_hotels: int = Field(default=1, ge=1)
    max_branches: int = Field(default=1, ge=1)
    max_managers: int = Field(default=5, ge=1)
    max_staff: int = Field(default=20, ge=1)
    max_tables: int = Field(default=50, ge=1)
    orders_per_month: int = Field(default=1000, ge=0)
    storage_gb: int = Field(default=5, ge=1)

    analytics_access: bool = Field(default=False)
    advanced_reports: bool = Field(default=False)
    coin_system: bool = Field(default=False)
    offer_management: bool = Field(default=False)
    multiple_locations: bool = Field(default=False)
    inventory_management: bool = Field(default=False)
    order_assignment: bool = Field(default=False)
    qr_code_generation: bool = Field(default=False)
    custom_branding: bool = Field(default=False)
    api_access: bool = Field(default=False)
    priority_support: bool = Field(default=False)

    is_active: bool = Field(default=True)
    display_order: int = Field(default=0, ge=0)

    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=False), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=False), nullable=False),
    )

    def price_for(self, billing_cycle: BillingCycle) -> Decimal:
        if billing_cycle == BillingCycle.MONTHLY:
            return Decimal(self.price_monthly)
        return Decimal(self.price_yearly)

    def limit_for(self, resource: ResourceType):
        return getattr(self, RESOURCE_LIMIT_FIELDS[resource])

    def has_feature(self, feature: PlanFeature) -> bool:
        return bool(getattr(self, feature.value))


RESOURCE_LIMIT_FIELDS: Dict[ResourceType, str] = {
    ResourceType.HOTELS: "max_hotels",
    ResourceType.BRANCHES: "max_branches",
    ResourceType.MANAGERS: "max_managers",
    ResourceType.STAFF: "max_staff",
    ResourceType.TABLES: "max_tables",
    ResourceType.ORDERS_THIS_MONTH: "orders_per_month",
    ResourceType.STORAGE: "storage_gb",
}

# ResourceType values are API names; the counters they read are listed here
USAGE_COUNTER_FIELDS: Dict[ResourceType, str] = {
    ResourceType.HOTELS: "hotels",
    ResourceType.BRANCHES: "branches",
    ResourceType.MANAGERS: "managers",
    ResourceType.STAFF: "staff",
    ResourceType.TABLES: "tables",
    ResourceType.ORDERS_THIS_MONTH: "orders_this_month",
    ResourceType.STORAGE: "storage_used_gb",
}


def used_amount(usage: UsageCounters, resource: ResourceType):
    return getattr(usage, USAGE_COUNTER_FIELDS[resource])


def _validate_plan_mappings() -> None:
    plan_fields = SubscriptionPlan.model_fields
    missing = [r for r in ResourceType if r not in RESOURCE_LIMIT_FIELDS]
    if missing:
        raise RuntimeError(f"Resource types without a plan limit: {missing}")
    uncounted = [r for r in ResourceType if r not in USAGE_COUNTER_FIELDS]
    if uncounted:
        raise RuntimeError(f"Resource types without a usage counter: {uncounted}")
    unknown = [f for f in RESOURCE_LIMIT_FIELDS.values() if f not in plan_fields]
    unknown += [f.value for f in PlanFeature if f.value not in plan_fields]
    unknown += [f for f in USAGE_COUNTER_FIELDS.values() if f not in UsageCounters.model_fields]
    if unknown:
        raise RuntimeError(f"Plan mapping refers to unknown fields: {unknown}")


_validate_plan_mappings()

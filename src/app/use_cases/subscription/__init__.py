"""Subscription domain use cases"""
from .lifecycle import SubscriptionLifecycle
from .usage_tracker import UsageTracker
from .ingest_payment_event import IngestPaymentEvent, PaymentEventKind
from .verify_payment import VerifySubscriptionPayment
from .select_plan import SelectPlan
from .get_subscription import GetMySubscription, ListAvailablePlans
from .cancel_subscription import CancelSubscription, SetAutoRenew
from .quote_renewal import QuoteRenewal
from .change_plan import ChangePlan
from .reconciliation_jobs import (
    ReconciliationJob,
    ExpiryCheckJob,
    RenewalReminderJob,
    UsageResetJob,
    AutoRenewalJob,
    PaymentRetryJob,
    CleanupJob,
)
from .errors import ErrorCode, NoOpReason
from .dtos import (
    TransitionOutcomeDTO,
    PaymentWebhookDTO,
    WebhookAckDTO,
    VerifyPaymentCommandDTO,
    VerifyPaymentResponseDTO,
    SelectPlanCommandDTO,
    SelectPlanResponseDTO,
    SubscriptionDetailsDTO,
    CancelCommandDTO,
    SetAutoRenewCommandDTO,
    ChangePlanCommandDTO,
    PlanChangeDTO,
    RenewalQuoteDTO,
    UsageStatsDTO,
    JobRunResultDTO,
)

__all__ = [
    "SubscriptionLifecycle",
    "UsageTracker",
    "IngestPaymentEvent",
    "PaymentEventKind",
    "VerifySubscriptionPayment",
    "SelectPlan",
    "GetMySubscription",
    "ListAvailablePlans",
    "CancelSubscription",
    "SetAutoRenew",
    "QuoteRenewal",
    "ChangePlan",
    "ReconciliationJob",
    "ExpiryCheckJob",
    "RenewalReminderJob",
    "UsageResetJob",
    "AutoRenewalJob",
    "PaymentRetryJob",
    "CleanupJob",
    "ErrorCode",
    "NoOpReason",
    "TransitionOutcomeDTO",
    "PaymentWebhookDTO",
    "WebhookAckDTO",
    "VerifyPaymentCommandDTO",
    "VerifyPaymentResponseDTO",
    "SelectPlanCommandDTO",
    "SelectPlanResponseDTO",
    "SubscriptionDetailsDTO",
    "CancelCommandDTO",
    "SetAutoRenewCommandDTO",
    "ChangePlanCommandDTO",
    "PlanChangeDTO",
    "RenewalQuoteDTO",
    "UsageStatsDTO",
    "JobRunResultDTO",
]

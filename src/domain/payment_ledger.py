"""Payment Ledger

Append-only journal of monetary events embedded in a subscription.
Every entry is a ``PaymentRecord``; appending returns a new history and
never modifies or drops an existing entry. Totals are not computed here.
"""

from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Tuple
from src.domain.subscription import (
    BillingCycle,
    PaymentMethod,
    PaymentRecord,
    PaymentStatus,
)

History = Tuple[PaymentRecord, ...]

MINOR_UNITS_PER_MAJOR = Decimal("100")


def minor_to_major(amount_minor) -> Decimal:
    """Gateway amounts are in minor units (paise); the ledger stores rupees"""
    return Decimal(str(amount_minor)) / MINOR_UNITS_PER_MAJOR


def append(history: Iterable[PaymentRecord], entry: PaymentRecord) -> History:
    return tuple(history) + (entry,)


def find_by_transaction(
    history: Iterable[PaymentRecord],
    transaction_id: str,
    status: Optional[PaymentStatus] = None,
) -> Optional[PaymentRecord]:
    for entry in history:
        if entry.transaction_id != transaction_id:
            continue
        if status is None or entry.status == status:
            return entry
    return None


def failed_since(history: Iterable[PaymentRecord], since: datetime) -> History:
    return tuple(
        e for e in history if e.status == PaymentStatus.FAILED and e.date >= since
    )


def payment_entry(
    amount: Decimal,
    transaction_id: str,
    now: datetime,
    currency: str,
    method: PaymentMethod = PaymentMethod.RAZORPAY,
    note: Optional[str] = None,
) -> PaymentRecord:
    return PaymentRecord(
        amount=amount,
        currency=currency,
        method=method,
        transaction_id=transaction_id,
        date=now,
        status=PaymentStatus.SUCCESS,
        note=note,
    )


def failed_entry(
    transaction_id: str,
    now: datetime,
    currency: str,
    error_description: Optional[str] = None,
) -> PaymentRecord:
    return PaymentRecord(
        amount=Decimal("0"),
        currency=currency,
        method=PaymentMethod.RAZORPAY,
        transaction_id=transaction_id,
        date=now,
        status=PaymentStatus.FAILED,
        note=f"Payment failed: {error_description or 'Unknown error'}"[:500],
    )


def refund_entry(
    amount: Decimal, transaction_id: str, now: datetime, currency: str
) -> PaymentRecord:
    return PaymentRecord(
        amount=-abs(amount),
        currency=currency,
        method=PaymentMethod.REFUND,
        transaction_id=transaction_id,
        date=now,
        status=PaymentStatus.REFUNDED,
        note="Payment refunded",
    )


def cancellation_entry(now: datetime, currency: str, reason: Optional[str]) -> PaymentRecord:
    return PaymentRecord(
        amount=Decimal("0"),
        currency=currency,
        method=PaymentMethod.CANCELLATION,
        transaction_id=f"CANCEL-{int(now.timestamp() * 1000)}",
        date=now,
        status=PaymentStatus.CANCELLED,
        note=(reason or "Subscription cancelled by admin")[:500],
    )


def auto_renewal_entry(
    amount: Decimal,
    billing_cycle: BillingCycle,
    subscription_id: str,
    renewed_from: datetime,
    now: datetime,
    currency: str,
) -> PaymentRecord:
    # keyed by the window being renewed so a replayed renewal is recognisable
    return PaymentRecord(
        amount=amount,
        currency=currency,
        method=PaymentMethod.AUTO_RENEWAL,
        transaction_id=f"AUTO_RENEWAL-{subscription_id}-{renewed_from.strftime('%Y%m%d%H%M%S')}",
        date=now,
        status=PaymentStatus.AUTO_RENEWED,
        note=f"Auto-renewal for {billing_cycle.value} subscription",
    )


def plan_change_entry(
    amount: Decimal,
    is_upgrade: bool,
    from_plan: str,
    to_plan: str,
    now: datetime,
    currency: str,
) -> PaymentRecord:
    kind = "UPGRADE" if is_upgrade else "DOWNGRADE"
    verb = "Upgraded" if is_upgrade else "Downgraded"
    return PaymentRecord(
        amount=amount if is_upgrade else Decimal("0"),
        currency=currency,
        method=PaymentMethod.UPGRADE if is_upgrade else PaymentMethod.DOWNGRADE,
        transaction_id=f"{kind}-{int(now.timestamp() * 1000)}",
        date=now,
        status=PaymentStatus.SUCCESS,
        note=f"{verb} from {from_plan} to {to_plan}"[:500],
    )

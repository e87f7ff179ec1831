"""Subscription Lifecycle State Machine

Pure decision logic: which status a subscription may move to for a given
event, and the date arithmetic behind each edge. Nothing in this module
touches storage.

Edges:
    pending_payment -> active           ACTIVATE
    pending_payment -> pending_payment  RECORD_FAILED_PAYMENT
    active -> cancelled                 REFUND, CANCEL
    active -> expired                   EXPIRE
    active -> active                    AUTO_RENEW, UPGRADE, RESET_USAGE
    expired -> archived                 ARCHIVE

archived is terminal.
"""

import math
from calendar import monthrange
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Dict, FrozenSet, Optional
from src.domain.subscription import BillingCycle, SubscriptionStatus

ARCHIVE_COOLDOWN = timedelta(days=30)


class LifecycleEvent(str, Enum):
    ACTIVATE = "activate"
    RECORD_FAILED_PAYMENT = "record_failed_payment"
    REFUND = "refund"
    CANCEL = "cancel"
    EXPIRE = "expire"
    AUTO_RENEW = "auto_renew"
    ARCHIVE = "archive"
    UPGRADE = "upgrade"
    RESET_USAGE = "reset_usage"
    SET_AUTO_RENEW = "set_auto_renew"


@dataclass(frozen=True)
class Transition:
    """An edge: the statuses it may start from and the status it produces

    target=None keeps the current status (self-loop).
    """

    event: LifecycleEvent
    sources: FrozenSet[SubscriptionStatus]
    target: Optional[SubscriptionStatus]

    def allows(self, status: SubscriptionStatus) -> bool:
        return status in self.sources

    def resulting_status(self, current: SubscriptionStatus) -> SubscriptionStatus:
        return self.target if self.target is not None else current


_PENDING = SubscriptionStatus.PENDING_PAYMENT
_ACTIVE = SubscriptionStatus.ACTIVE
_EXPIRED = SubscriptionStatus.EXPIRED

TRANSITIONS: Dict[LifecycleEvent, Transition] = {
    LifecycleEvent.ACTIVATE: Transition(
        LifecycleEvent.ACTIVATE, frozenset({_PENDING}), _ACTIVE
    ),
    LifecycleEvent.RECORD_FAILED_PAYMENT: Transition(
        LifecycleEvent.RECORD_FAILED_PAYMENT, frozenset({_PENDING}), _PENDING
    ),
    LifecycleEvent.REFUND: Transition(
        LifecycleEvent.REFUND, frozenset({_ACTIVE}), SubscriptionStatus.CANCELLED
    ),
    LifecycleEvent.CANCEL: Transition(
        LifecycleEvent.CANCEL, frozenset({_ACTIVE}), SubscriptionStatus.CANCELLED
    ),
    LifecycleEvent.EXPIRE: Transition(
        LifecycleEvent.EXPIRE, frozenset({_ACTIVE}), _EXPIRED
    ),
    LifecycleEvent.AUTO_RENEW: Transition(
        LifecycleEvent.AUTO_RENEW, frozenset({_ACTIVE}), _ACTIVE
    ),
    LifecycleEvent.ARCHIVE: Transition(
        LifecycleEvent.ARCHIVE, frozenset({_EXPIRED}), SubscriptionStatus.ARCHIVED
    ),
    LifecycleEvent.UPGRADE: Transition(
        LifecycleEvent.UPGRADE, frozenset({_ACTIVE}), _ACTIVE
    ),
    LifecycleEvent.RESET_USAGE: Transition(
        LifecycleEvent.RESET_USAGE, frozenset({_ACTIVE}), _ACTIVE
    ),
    LifecycleEvent.SET_AUTO_RENEW: Transition(
        LifecycleEvent.SET_AUTO_RENEW, frozenset({_PENDING, _ACTIVE}), None
    ),
}


def transition_for(event: LifecycleEvent) -> Transition:
    return TRANSITIONS[event]


def next_status(
    current: SubscriptionStatus, event: LifecycleEvent
) -> Optional[SubscriptionStatus]:
    """Return the status produced by event, or None if the edge does not exist"""
    transition = TRANSITIONS[event]
    if not transition.allows(current):
        return None
    return transition.resulting_status(current)


def is_terminal(status: SubscriptionStatus) -> bool:
    return not any(t.allows(status) for t in TRANSITIONS.values())


def add_billing_cycle(start: datetime, billing_cycle: BillingCycle) -> datetime:
    """
    Add one billing cycle to start

    Months are calendar months; a day that does not exist in the target
    month is clamped to its last day (Jan 31 -> Feb 28/29, Feb 29 -> Feb 28
    on a yearly cycle).
    """
    if billing_cycle == BillingCycle.MONTHLY:
        year = start.year + (1 if start.month == 12 else 0)
        month = 1 if start.month == 12 else start.month + 1
    else:
        year = start.year + 1
        month = start.month
    _, last_day = monthrange(year, month)
    return start.replace(year=year, month=month, day=min(start.day, last_day))


def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def day_window(moment: datetime, offset_days: int = 0) -> tuple[datetime, datetime]:
    """[start, end) of the calendar day offset_days after moment's day"""
    start = start_of_day(moment) + timedelta(days=offset_days)
    return start, start + timedelta(days=1)


def cycle_length_days(billing_cycle: BillingCycle) -> int:
    return 30 if billing_cycle == BillingCycle.MONTHLY else 365


def prorated_upgrade_amount(
    current_price: Decimal,
    new_price: Decimal,
    billing_cycle: BillingCycle,
    end_date: datetime,
    now: datetime,
) -> Decimal:
    """
    Amount due for switching to a pricier plan for the rest of the window

    (new daily rate - current daily rate) * remaining days, never negative.
    """
    period_days = cycle_length_days(billing_cycle)
    remaining_days = max(0, math.ceil((end_date - now).total_seconds() / 86400))
    unused = current_price / period_days * remaining_days
    due = new_price / period_days * remaining_days - unused
    return max(Decimal("0"), due).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

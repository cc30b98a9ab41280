"""Billing-cycle date math and shared-subscription balances."""

import calendar
import logging
from collections.abc import Sequence
from datetime import date, timedelta
from decimal import Decimal

from .balances import newest_first_key
from .exceptions import InvalidRecordError
from .models import (
    BillingCycle,
    BillingStatus,
    MemberBalance,
    Person,
    PersonId,
    Subscription,
    SubscriptionPayment,
)
from .money import ZERO

logger = logging.getLogger(__name__)

WEEKS_PER_MONTH = Decimal("4.33")
DAYS_PER_MONTH = Decimal("30.44")


# ============================================================================
# Billing dates
# ============================================================================


def _add_months(day: date, months: int) -> date:
    """Calendar month arithmetic; the day is clamped to the target month's length."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def advance_billing_date(
    current: date, cycle: BillingCycle, custom_cycle_days: int | None = None
) -> date:
    """
    Move a billing date forward by exactly one cycle.

    Weekly is 7 days and custom is plain day arithmetic. Monthly and yearly
    follow the calendar: Jan 31 + 1 month is the last day of February and
    Feb 29 + 1 year is Feb 28.

    Raises:
        InvalidRecordError: If a custom cycle has no positive day count
    """
    if cycle == BillingCycle.WEEKLY:
        return current + timedelta(days=7)
    if cycle == BillingCycle.MONTHLY:
        return _add_months(current, 1)
    if cycle == BillingCycle.YEARLY:
        return _add_months(current, 12)
    if custom_cycle_days is None or custom_cycle_days < 1:
        raise InvalidRecordError(
            f"Custom billing cycle needs a positive day count, got {custom_cycle_days}"
        )
    return current + timedelta(days=custom_cycle_days)


def calculate_next_billing_date(
    subscription: Subscription, from_date: date | None = None
) -> date:
    """One cycle after ``from_date`` (today by default) for this subscription."""
    return advance_billing_date(
        from_date or date.today(),
        subscription.cycle,
        subscription.custom_cycle_days,
    )


def initial_next_billing_date(
    start_date: date,
    cycle: BillingCycle,
    custom_cycle_days: int | None = None,
    today: date | None = None,
) -> date:
    """
    First billing date strictly after ``today`` for a new subscription.

    A start date in the past is advanced one cycle at a time until it lands
    in the future. A start date already in the future is returned unchanged.
    """
    invalid_custom = custom_cycle_days is None or custom_cycle_days < 1
    if cycle == BillingCycle.CUSTOM and invalid_custom:
        raise InvalidRecordError(
            f"Custom billing cycle needs a positive day count, got {custom_cycle_days}"
        )

    today = today or date.today()
    next_date = start_date
    while next_date <= today:
        advanced = advance_billing_date(next_date, cycle, custom_cycle_days)
        if advanced <= next_date:
            raise InvalidRecordError(f"Billing cycle {cycle.value} does not advance")
        next_date = advanced
    return next_date


def days_until_next_billing(subscription: Subscription, today: date | None = None) -> int:
    today = today or date.today()
    return (subscription.next_billing_date - today).days


def billing_status(
    subscription: Subscription, today: date | None = None, due_soon_days: int = 7
) -> BillingStatus:
    """
    Evaluate the billing status at query time.

    Paused whenever the subscription is inactive. Otherwise overdue once the
    billing date has passed, due within ``due_soon_days``, upcoming after that.
    """
    if not subscription.is_active:
        return BillingStatus.PAUSED

    days = days_until_next_billing(subscription, today)
    if days < 0:
        return BillingStatus.OVERDUE
    if days <= due_soon_days:
        return BillingStatus.DUE
    return BillingStatus.UPCOMING


# ============================================================================
# Cost
# ============================================================================


def monthly_equivalent(subscription: Subscription) -> Decimal:
    if subscription.cycle == BillingCycle.WEEKLY:
        return subscription.amount * WEEKS_PER_MONTH
    if subscription.cycle == BillingCycle.YEARLY:
        return subscription.amount / 12
    if subscription.cycle == BillingCycle.CUSTOM:
        days = max(1, subscription.custom_cycle_days or 1)
        return subscription.amount * DAYS_PER_MONTH / days
    return subscription.amount


def yearly_equivalent(subscription: Subscription) -> Decimal:
    return monthly_equivalent(subscription) * 12


# ============================================================================
# Shared subscriptions
# ============================================================================


def other_members(subscription: Subscription, viewer: PersonId) -> list[PersonId]:
    """Subscribers other than the viewer, without duplicates."""
    return [pid for pid in dict.fromkeys(subscription.subscribers) if pid != viewer]


def subscriber_count(subscription: Subscription, viewer: PersonId) -> int:
    """
    Number of people sharing the bill, the viewer included.

    Always at least 1, so share calculations never divide by zero.
    """
    if not subscription.is_shared:
        return 1
    return len(other_members(subscription, viewer)) + 1


def my_share(subscription: Subscription, viewer: PersonId) -> Decimal:
    if not subscription.is_shared:
        return subscription.amount
    return subscription.amount / subscriber_count(subscription, viewer)


def member_share(subscription: Subscription, viewer: PersonId) -> Decimal:
    """Each member's share of one bill; zero unless shared and active."""
    if not (subscription.is_shared and subscription.is_active):
        return ZERO
    return subscription.amount / subscriber_count(subscription, viewer)


def _is_balanced(subscription: Subscription) -> bool:
    return subscription.is_shared and subscription.is_active


def calculate_user_balance(subscription: Subscription, viewer: PersonId) -> Decimal:
    """
    Viewer's overall position in a shared subscription.

    Every payment is split equally among the subscribers. When the viewer
    paid, everyone else owes their share; when someone else paid, the viewer
    owes theirs. Subscription settlements to or from the viewer are netted in.
    Unshared or inactive subscriptions report zero.
    """
    if not _is_balanced(subscription):
        return ZERO

    count = subscriber_count(subscription, viewer)
    balance = ZERO

    for payment in subscription.payments:
        if payment.payer is None:
            logger.debug(f"Skipping payment {payment.id} with no payer")
            continue
        per_member = payment.amount / count
        if payment.payer == viewer:
            balance += payment.amount - per_member
        else:
            balance -= per_member

    for settlement in subscription.settlements:
        if settlement.to_person == viewer:
            balance -= settlement.amount
        elif settlement.from_person == viewer:
            balance += settlement.amount

    return balance


def calculate_balance_with(
    subscription: Subscription, viewer: PersonId, member: PersonId
) -> Decimal:
    """What ``member`` owes the viewer inside this subscription (negative: viewer owes)."""
    if not _is_balanced(subscription) or member == viewer:
        return ZERO

    count = subscriber_count(subscription, viewer)
    balance = ZERO

    for payment in subscription.payments:
        if payment.payer is None:
            logger.debug(f"Skipping payment {payment.id} with no payer")
            continue
        per_member = payment.amount / count
        if payment.payer == viewer:
            balance += per_member
        elif payment.payer == member:
            balance -= per_member

    for settlement in subscription.settlements:
        if settlement.from_person == member and settlement.to_person == viewer:
            balance -= settlement.amount
        elif settlement.from_person == viewer and settlement.to_person == member:
            balance += settlement.amount

    return balance


def member_balances(
    subscription: Subscription,
    viewer: PersonId,
    people: Sequence[Person] = (),
    default_currency: str = "USD",
) -> list[MemberBalance]:
    """
    Balance and total paid for each other subscriber, sorted by name.

    Computed in one pass over payments and one over settlements. Empty for
    unshared or inactive subscriptions.
    """
    if not _is_balanced(subscription):
        return []

    members = other_members(subscription, viewer)
    count = subscriber_count(subscription, viewer)
    balances = {pid: ZERO for pid in members}
    paid = {pid: ZERO for pid in members}

    for payment in subscription.payments:
        if payment.payer is None:
            logger.debug(f"Skipping payment {payment.id} with no payer")
            continue
        per_member = payment.amount / count
        if payment.payer == viewer:
            for pid in members:
                balances[pid] += per_member
        elif payment.payer in balances:
            paid[payment.payer] += payment.amount
            balances[payment.payer] -= per_member

    for settlement in subscription.settlements:
        if settlement.to_person == viewer and settlement.from_person in balances:
            balances[settlement.from_person] -= settlement.amount
        elif settlement.from_person == viewer and settlement.to_person in balances:
            balances[settlement.to_person] += settlement.amount

    names = {person.id: person.display_name for person in people}
    currency = subscription.effective_currency(default_currency)
    rows = [
        MemberBalance(
            person_id=pid,
            name=names.get(pid, "Unknown Person"),
            balance=balances[pid],
            paid=paid[pid],
            currency=currency,
        )
        for pid in members
    ]
    return sorted(rows, key=lambda row: (row.name, row.person_id))


def recent_payments(subscription: Subscription) -> list[SubscriptionPayment]:
    """Payments, newest first."""
    return sorted(
        subscription.payments, key=lambda p: newest_first_key(p.date), reverse=True
    )

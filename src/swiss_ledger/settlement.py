"""Recording settlements against a live balance.

The balance is always recomputed from the records handed in, right before
the amount is capped and the direction is chosen. Callers never pass in a
balance they computed earlier.
"""

import logging
import uuid
from collections.abc import Iterable
from datetime import datetime
from decimal import Decimal

from .balances import net_balance
from .exceptions import InvalidRecordError, NothingToSettleError
from .models import (
    FinancialTransaction,
    PersonId,
    Settlement,
    Subscription,
    SubscriptionSettlement,
)
from .money import EPSILON, is_settled, to_decimal, whole_cents_of
from .subscriptions import calculate_balance_with

logger = logging.getLogger(__name__)


def is_over_settlement(entered: Decimal, outstanding: Decimal) -> bool:
    """True when the entered amount is more than a cent above what is owed."""
    return entered > outstanding + EPSILON


def cap_settlement_amount(entered: Decimal, balance: Decimal) -> Decimal:
    """
    Clamp an entered settlement amount to the outstanding balance.

    Over-settlement is not an error: the amount is silently reduced to
    ``abs(balance)`` truncated to whole cents, so the cap never exceeds
    what is owed.

    Raises:
        InvalidRecordError: If ``entered`` is not positive
    """
    if entered <= 0:
        raise InvalidRecordError(f"Settlement amount must be positive, got {entered}")
    outstanding = whole_cents_of(abs(balance))
    if is_over_settlement(entered, outstanding):
        logger.warning(
            f"Settlement of {entered} exceeds outstanding balance {outstanding}, "
            f"capping"
        )
    return min(entered, outstanding)


def _direction(
    balance: Decimal, viewer: PersonId, member: PersonId
) -> tuple[PersonId, PersonId]:
    # Positive: the member owes the viewer, so the member is paying
    if balance > 0:
        return member, viewer
    return viewer, member


def settle_with_person(
    viewer: PersonId,
    member: PersonId,
    entered_amount: Decimal | int | str,
    transactions: Iterable[FinancialTransaction],
    settlements: Iterable[Settlement],
    currency: str = "USD",
    default_currency: str = "USD",
    note: str | None = None,
    when: datetime | None = None,
) -> Settlement:
    """
    Build a settlement between the viewer and another person.

    Args:
        viewer: Person recording the settlement
        member: Counterparty
        entered_amount: Amount typed in by the user
        transactions: Current transactions
        settlements: Settlements already recorded
        currency: Currency being settled
        default_currency: Currency for records that carry none
        note: Optional note
        when: Settlement time, now by default

    Returns:
        A new Settlement, capped to the outstanding balance

    Raises:
        NothingToSettleError: If nothing is outstanding in ``currency``
        InvalidRecordError: If the amount is not positive or viewer == member
    """
    if viewer == member:
        raise InvalidRecordError("Cannot settle with yourself")

    entered = to_decimal(entered_amount)
    balance = net_balance(
        viewer, member, transactions, settlements, default_currency
    ).amount(currency)

    if is_settled(balance):
        raise NothingToSettleError(member)

    amount = cap_settlement_amount(entered, balance)
    from_person, to_person = _direction(balance, viewer, member)

    settlement = Settlement(
        id=str(uuid.uuid4()),
        amount=amount,
        date=when or datetime.now(),
        from_person=from_person,
        to_person=to_person,
        note=note or None,
        currency=currency,
        is_full_settlement=amount == whole_cents_of(abs(balance)),
    )

    logger.info(
        f"Settlement {settlement.id}: {from_person} -> {to_person} "
        f"{amount} {currency}"
    )
    return settlement


def settle_subscription_member(
    subscription: Subscription,
    viewer: PersonId,
    member: PersonId,
    entered_amount: Decimal | int | str,
    note: str | None = None,
    when: datetime | None = None,
) -> SubscriptionSettlement:
    """
    Build a settlement for one member's share of a shared subscription.

    Same rules as :func:`settle_with_person`, against the subscription's
    own balance with ``member``.
    """
    if viewer == member:
        raise InvalidRecordError("Cannot settle with yourself")

    entered = to_decimal(entered_amount)
    balance = calculate_balance_with(subscription, viewer, member)

    if is_settled(balance):
        raise NothingToSettleError(member)

    amount = cap_settlement_amount(entered, balance)
    from_person, to_person = _direction(balance, viewer, member)

    settlement = SubscriptionSettlement(
        id=str(uuid.uuid4()),
        amount=amount,
        date=when or datetime.now(),
        from_person=from_person,
        to_person=to_person,
        note=note or None,
    )

    logger.info(
        f"Subscription {subscription.id} settlement {settlement.id}: "
        f"{from_person} -> {to_person} {amount}"
    )
    return settlement

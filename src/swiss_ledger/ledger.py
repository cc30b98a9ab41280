"""Ledger facade over an in-memory snapshot.

Composes the pure balance, split, subscription and settlement functions
with the viewer threaded through every call. Computed balances are cached
and the whole cache is dropped on any write.
"""

import logging
import threading
from collections.abc import Callable
from datetime import date
from decimal import Decimal
from typing import Any, TypeVar

from . import balances, settlement, subscriptions
from .config import Settings
from .exceptions import InvalidRecordError, PersonNotFoundError, RecordNotFoundError
from .models import (
    AllocationStatus,
    BillingStatus,
    CurrencyBalance,
    FinancialTransaction,
    LedgerSnapshot,
    MemberBalance,
    OwedAmount,
    Person,
    PersonId,
    Settlement,
    Subscription,
    SubscriptionPayment,
    SubscriptionSettlement,
    UserGroup,
)
from .splits import allocation_status

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Ledger:
    """Balances and settlements for one ledger snapshot."""

    def __init__(
        self, snapshot: LedgerSnapshot | None = None, settings: Settings | None = None
    ):
        """Initialize the ledger with a copy of ``snapshot``."""
        snapshot = snapshot or LedgerSnapshot()
        self.settings = settings
        self.people: list[Person] = list(snapshot.people)
        self.groups: list[UserGroup] = list(snapshot.groups)
        self.transactions: list[FinancialTransaction] = list(snapshot.transactions)
        self.settlements: list[Settlement] = list(snapshot.settlements)
        self.subscriptions: list[Subscription] = list(snapshot.subscriptions)
        self._cache: dict[tuple[Any, ...], Any] = {}
        self._generation = 0
        self._lock = threading.Lock()

    @property
    def default_currency(self) -> str:
        return self.settings.default_currency if self.settings else "USD"

    @property
    def due_soon_days(self) -> int:
        return self.settings.due_soon_days if self.settings else 7

    def snapshot(self) -> LedgerSnapshot:
        """Current state as a snapshot, e.g. for saving."""
        return LedgerSnapshot(
            people=list(self.people),
            groups=list(self.groups),
            transactions=list(self.transactions),
            settlements=list(self.settlements),
            subscriptions=list(self.subscriptions),
        )

    # ========================================================================
    # Cache
    # ========================================================================

    def _cached(self, key: tuple[Any, ...], compute: Callable[[], T]) -> T:
        with self._lock:
            if key in self._cache:
                logger.debug(f"Cache hit for {key}")
                return self._cache[key]
            generation = self._generation

        logger.debug(f"Cache miss for {key}")
        value = compute()

        with self._lock:
            # A write during compute makes the value stale; return it uncached
            if generation == self._generation:
                self._cache[key] = value
        return value

    def invalidate(self) -> None:
        """Drop every cached balance and start a new write generation."""
        with self._lock:
            self._generation += 1
            if self._cache:
                logger.debug(f"Invalidating {len(self._cache)} cached balances")
            self._cache.clear()

    # ========================================================================
    # Lookups
    # ========================================================================

    def person(self, person_id: PersonId) -> Person:
        for person in self.people:
            if person.id == person_id:
                return person
        raise PersonNotFoundError(person_id)

    def group(self, group_id: str) -> UserGroup:
        for group in self.groups:
            if group.id == group_id:
                return group
        raise RecordNotFoundError(f"Group {group_id} is not in the ledger")

    def subscription(self, subscription_id: str) -> Subscription:
        for sub in self.subscriptions:
            if sub.id == subscription_id:
                return sub
        raise RecordNotFoundError(f"Subscription {subscription_id} is not in the ledger")

    def current_user(self) -> Person | None:
        for person in self.people:
            if person.is_current_user:
                return person
        return None

    # ========================================================================
    # Writes
    # ========================================================================

    def add_person(self, person: Person) -> None:
        self.people = [p for p in self.people if p.id != person.id] + [person]
        self.invalidate()

    def add_group(self, group: UserGroup) -> None:
        self.groups = [g for g in self.groups if g.id != group.id] + [group]
        self.invalidate()

    def add_transaction(self, transaction: FinancialTransaction) -> None:
        if allocation_status(transaction) == AllocationStatus.UNSETTLED:
            logger.warning(
                f"Transaction {transaction.id} payers or splits do not add up "
                f"to {transaction.amount}"
            )
        self.transactions = [
            t for t in self.transactions if t.id != transaction.id
        ] + [transaction]
        self.invalidate()

    def remove_transaction(self, transaction_id: str) -> None:
        remaining = [t for t in self.transactions if t.id != transaction_id]
        if len(remaining) == len(self.transactions):
            raise RecordNotFoundError(f"Transaction {transaction_id} is not in the ledger")
        self.transactions = remaining
        self.invalidate()

    def add_settlement(self, record: Settlement) -> None:
        self.settlements = self.settlements + [record]
        self.invalidate()

    def add_subscription(self, subscription: Subscription) -> None:
        self.subscriptions = [
            s for s in self.subscriptions if s.id != subscription.id
        ] + [subscription]
        self.invalidate()

    def record_settlement(
        self,
        viewer: PersonId,
        member: PersonId,
        amount: Decimal | int | str,
        currency: str | None = None,
        note: str | None = None,
    ) -> Settlement:
        """
        Record a settlement between the viewer and a member.

        The balance is recomputed from the stored records, not the cache,
        before the amount is capped and the direction chosen.

        Returns:
            The stored settlement
        """
        self.person(viewer)
        self.person(member)

        record = settlement.settle_with_person(
            viewer=viewer,
            member=member,
            entered_amount=amount,
            transactions=self.transactions,
            settlements=self.settlements,
            currency=currency or self.default_currency,
            default_currency=self.default_currency,
            note=note,
        )
        self.add_settlement(record)
        return record

    def record_subscription_payment(
        self, subscription_id: str, payment: SubscriptionPayment
    ) -> Subscription:
        sub = self.subscription(subscription_id)
        updated = sub.model_copy(update={"payments": [*sub.payments, payment]})
        self.add_subscription(updated)
        logger.info(f"Recorded payment {payment.id} on subscription {subscription_id}")
        return updated

    def record_subscription_settlement(
        self,
        subscription_id: str,
        viewer: PersonId,
        member: PersonId,
        amount: Decimal | int | str,
        note: str | None = None,
    ) -> SubscriptionSettlement:
        """
        Record a capped settlement against one subscription's balance.

        Raises:
            PersonNotFoundError: If either person is not in the ledger
            InvalidRecordError: If ``member`` does not share the subscription
        """
        sub = self.subscription(subscription_id)
        self.person(viewer)
        self.person(member)
        # The viewer always counts as a subscriber, listed or not
        if member not in subscriptions.other_members(sub, viewer):
            raise InvalidRecordError(
                f"{member} is not a subscriber of {sub.display_name}"
            )

        record = settlement.settle_subscription_member(
            sub, viewer, member, amount, note=note
        )
        self.add_subscription(
            sub.model_copy(update={"settlements": [*sub.settlements, record]})
        )
        return record

    # ========================================================================
    # Person balances
    # ========================================================================

    def balance_with(self, viewer: PersonId, other: PersonId) -> CurrencyBalance:
        """Net balance between the viewer and one person, per currency."""
        cached = self._cached(
            ("person", viewer, other),
            lambda: balances.net_balance(
                viewer,
                other,
                self.transactions,
                self.settlements,
                self.default_currency,
            ),
        )
        return cached.model_copy(deep=True)

    def overall_balances(self, viewer: PersonId) -> list[MemberBalance]:
        return list(
            self._cached(
                ("overall", viewer),
                lambda: balances.overall_balances(
                    viewer,
                    self.people,
                    self.transactions,
                    self.settlements,
                    self.default_currency,
                ),
            )
        )

    def people_who_owe_you(self, viewer: PersonId) -> list[OwedAmount]:
        return balances.members_who_owe_you(self.overall_balances(viewer))

    def people_you_owe(self, viewer: PersonId) -> list[OwedAmount]:
        return balances.members_you_owe(self.overall_balances(viewer))

    # ========================================================================
    # Group balances
    # ========================================================================

    def group_member_balances(
        self, viewer: PersonId, group_id: str
    ) -> list[MemberBalance]:
        group = self.group(group_id)
        return list(
            self._cached(
                ("group", viewer, group_id),
                lambda: balances.group_member_balances(
                    group,
                    viewer,
                    self.transactions,
                    self.settlements,
                    self.people,
                    self.default_currency,
                ),
            )
        )

    def group_members_who_owe_you(
        self, viewer: PersonId, group_id: str
    ) -> list[OwedAmount]:
        return balances.members_who_owe_you(self.group_member_balances(viewer, group_id))

    def group_members_you_owe(self, viewer: PersonId, group_id: str) -> list[OwedAmount]:
        return balances.members_you_owe(self.group_member_balances(viewer, group_id))

    # ========================================================================
    # Subscriptions
    # ========================================================================

    def subscription_balance(self, viewer: PersonId, subscription_id: str) -> Decimal:
        sub = self.subscription(subscription_id)
        return self._cached(
            ("subscription", viewer, subscription_id),
            lambda: subscriptions.calculate_user_balance(sub, viewer),
        )

    def subscription_balance_with(
        self, viewer: PersonId, subscription_id: str, member: PersonId
    ) -> Decimal:
        sub = self.subscription(subscription_id)
        return self._cached(
            ("subscription-member", viewer, subscription_id, member),
            lambda: subscriptions.calculate_balance_with(sub, viewer, member),
        )

    def subscription_member_balances(
        self, viewer: PersonId, subscription_id: str
    ) -> list[MemberBalance]:
        sub = self.subscription(subscription_id)
        return list(
            self._cached(
                ("subscription-members", viewer, subscription_id),
                lambda: subscriptions.member_balances(
                    sub, viewer, self.people, self.default_currency
                ),
            )
        )

    def subscription_members_who_owe_you(
        self, viewer: PersonId, subscription_id: str
    ) -> list[OwedAmount]:
        return balances.members_who_owe_you(
            self.subscription_member_balances(viewer, subscription_id)
        )

    def subscription_members_you_owe(
        self, viewer: PersonId, subscription_id: str
    ) -> list[OwedAmount]:
        return balances.members_you_owe(
            self.subscription_member_balances(viewer, subscription_id)
        )

    def billing_status(
        self, subscription_id: str, today: date | None = None
    ) -> BillingStatus:
        return subscriptions.billing_status(
            self.subscription(subscription_id), today, self.due_soon_days
        )

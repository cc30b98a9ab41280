"""Pydantic domain models for Swiss Ledger."""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from .money import ZERO, is_settled

PersonId = str

# ============================================================================
# Enums
# ============================================================================


class SplitMethod(str, Enum):
    """How a transaction's total was divided when it was created."""

    EQUAL = "equal"
    AMOUNT = "amount"
    PERCENTAGE = "percentage"
    SHARES = "shares"
    ADJUSTMENT = "adjustment"


class BillingCycle(str, Enum):
    """Recurrence interval of a subscription."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM = "custom"


class BillingStatus(str, Enum):
    """Where a subscription stands relative to its next billing date."""

    UPCOMING = "upcoming"
    DUE = "due"
    OVERDUE = "overdue"
    PAUSED = "paused"


class AllocationStatus(str, Enum):
    """Whether a transaction's payers and splits account for its total."""

    SETTLED = "settled"
    UNSETTLED = "unsettled"


# ============================================================================
# People
# ============================================================================


class Person(BaseModel):
    """Someone in the address book."""

    model_config = ConfigDict(frozen=True)

    id: PersonId
    name: str | None = None
    is_current_user: bool = False

    @property
    def display_name(self) -> str:
        """User-friendly name with a fallback for blank names."""
        if not self.name or not self.name.strip():
            return "Unknown Person"
        return self.name


class UserGroup(BaseModel):
    """A named set of people sharing expenses."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str | None = None
    members: list[PersonId] = Field(default_factory=list)

    @property
    def display_name(self) -> str:
        return self.name or "Unknown Group"


# ============================================================================
# Expenses
# ============================================================================


class TransactionSplit(BaseModel):
    """One participant's owed share of a transaction."""

    model_config = ConfigDict(frozen=True)

    owed_by: PersonId | None = None
    amount: Decimal


class TransactionPayer(BaseModel):
    """One contributor's paid amount in a multi-payer transaction."""

    model_config = ConfigDict(frozen=True)

    paid_by: PersonId | None = None
    amount: Decimal


class FinancialTransaction(BaseModel):
    """An expense event.

    Split amounts are stored as computed at creation time. ``split_method``
    only records how they were produced; nothing recomputes splits from it.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    title: str | None = None
    amount: Decimal = Field(ge=0)
    date: datetime = Field(default_factory=datetime.now)
    split_method: SplitMethod = SplitMethod.EQUAL
    payer: PersonId | None = None  # legacy single payer
    payers: list[TransactionPayer] = Field(default_factory=list)
    splits: list[TransactionSplit] = Field(default_factory=list)
    group_id: str | None = None
    currency: str | None = None
    note: str | None = None

    @property
    def is_multi_payer(self) -> bool:
        return len(self.payers) > 1

    def effective_currency(self, default: str) -> str:
        """Currency code of this transaction, or ``default`` for legacy records."""
        return self.currency or default

    def involves(self, person_id: PersonId) -> bool:
        """True when the person paid for or owes part of this transaction."""
        if self.payer == person_id:
            return True
        if any(p.paid_by == person_id for p in self.payers):
            return True
        return any(s.owed_by == person_id for s in self.splits)


class Settlement(BaseModel):
    """A payment from one person to another that reduces their net balance."""

    model_config = ConfigDict(frozen=True)

    id: str
    amount: Decimal = Field(ge=0)
    date: datetime = Field(default_factory=datetime.now)
    from_person: PersonId | None = None
    to_person: PersonId | None = None
    note: str | None = None
    currency: str | None = None
    is_full_settlement: bool = False

    def effective_currency(self, default: str) -> str:
        return self.currency or default


# ============================================================================
# Subscriptions
# ============================================================================


class SubscriptionPayment(BaseModel):
    """A subscription bill paid by one person for one billing period."""

    model_config = ConfigDict(frozen=True)

    id: str
    amount: Decimal = Field(ge=0)
    date: datetime = Field(default_factory=datetime.now)
    payer: PersonId | None = None
    billing_period_start: datetime | None = None
    billing_period_end: datetime | None = None
    note: str | None = None


class SubscriptionSettlement(BaseModel):
    """A settlement scoped to one subscription's shared balance."""

    model_config = ConfigDict(frozen=True)

    id: str
    amount: Decimal = Field(ge=0)
    date: datetime = Field(default_factory=datetime.now)
    from_person: PersonId | None = None
    to_person: PersonId | None = None
    note: str | None = None


class Subscription(BaseModel):
    """A recurring bill, optionally shared among subscribers."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str | None = None
    amount: Decimal = Field(ge=0)
    cycle: BillingCycle = BillingCycle.MONTHLY
    custom_cycle_days: int | None = None
    start_date: date
    next_billing_date: date
    is_shared: bool = False
    is_active: bool = True
    is_archived: bool = False
    subscribers: list[PersonId] = Field(default_factory=list)
    payments: list[SubscriptionPayment] = Field(default_factory=list)
    settlements: list[SubscriptionSettlement] = Field(default_factory=list)
    currency: str | None = None

    @model_validator(mode="after")
    def _check_custom_cycle(self) -> "Subscription":
        if self.cycle == BillingCycle.CUSTOM:
            if self.custom_cycle_days is None or self.custom_cycle_days < 1:
                raise ValueError(
                    "custom billing cycle needs custom_cycle_days >= 1, "
                    f"got {self.custom_cycle_days}"
                )
        return self

    @property
    def display_name(self) -> str:
        return self.name or "Unknown Subscription"

    def effective_currency(self, default: str) -> str:
        return self.currency or default


# ============================================================================
# Results
# ============================================================================


class CurrencyBalance(BaseModel):
    """Signed balance tracked separately per currency code.

    Positive amounts are owed to the viewer, negative ones are owed by the
    viewer.
    """

    balances: dict[str, Decimal] = Field(default_factory=dict)

    def add(self, amount: Decimal, currency: str) -> None:
        self.balances[currency] = self.balances.get(currency, ZERO) + amount

    def subtract(self, amount: Decimal, currency: str) -> None:
        self.balances[currency] = self.balances.get(currency, ZERO) - amount

    def merge(self, other: "CurrencyBalance") -> None:
        for code, amount in other.balances.items():
            self.add(amount, code)

    def amount(self, currency: str) -> Decimal:
        return self.balances.get(currency, ZERO)

    @property
    def non_zero(self) -> dict[str, Decimal]:
        """Entries that are not settled."""
        return {
            code: amount
            for code, amount in self.balances.items()
            if not is_settled(amount)
        }

    @property
    def sorted_currencies(self) -> list[tuple[str, Decimal]]:
        """Unsettled entries, largest absolute amount first."""
        return sorted(
            self.non_zero.items(), key=lambda item: (-abs(item[1]), item[0])
        )

    @property
    def is_settled(self) -> bool:
        return not self.non_zero

    @property
    def has_positive(self) -> bool:
        return any(amount > 0 for amount in self.non_zero.values())

    @property
    def has_negative(self) -> bool:
        return any(amount < 0 for amount in self.non_zero.values())

    @property
    def single_currency(self) -> str | None:
        """The currency code when exactly one currency is unsettled."""
        nz = self.non_zero
        return next(iter(nz)) if len(nz) == 1 else None

    @property
    def primary_amount(self) -> Decimal:
        ordered = self.sorted_currencies
        return ordered[0][1] if ordered else ZERO


class MemberBalance(BaseModel):
    """Balance between the viewer and one member in one currency."""

    model_config = ConfigDict(frozen=True)

    person_id: PersonId
    name: str
    balance: Decimal  # positive = they owe the viewer
    paid: Decimal = ZERO
    currency: str


class OwedAmount(BaseModel):
    """A positive amount owed in one direction, for list displays."""

    model_config = ConfigDict(frozen=True)

    person_id: PersonId
    name: str
    amount: Decimal
    currency: str


# ============================================================================
# Snapshot
# ============================================================================


class LedgerSnapshot(BaseModel):
    """Everything the engine reads, as handed over by the owning application."""

    version: Literal[1] = 1
    people: list[Person] = Field(default_factory=list)
    groups: list[UserGroup] = Field(default_factory=list)
    transactions: list[FinancialTransaction] = Field(default_factory=list)
    settlements: list[Settlement] = Field(default_factory=list)
    subscriptions: list[Subscription] = Field(default_factory=list)

    def person(self, person_id: PersonId) -> Person | None:
        for person in self.people:
            if person.id == person_id:
                return person
        return None

    def current_user(self) -> Person | None:
        for person in self.people:
            if person.is_current_user:
                return person
        return None

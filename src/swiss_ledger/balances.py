"""Pairwise, person and group balance calculations.

Sign convention everywhere: a positive balance means the other party owes
the viewer, a negative one means the viewer owes the other party. The viewer
is always passed in explicitly.
"""

import logging
from collections.abc import Iterable, Sequence
from datetime import datetime, timezone
from decimal import Decimal

from .models import (
    CurrencyBalance,
    FinancialTransaction,
    MemberBalance,
    OwedAmount,
    Person,
    PersonId,
    Settlement,
    UserGroup,
)
from .money import ZERO, owes_you, you_owe
from .splits import effective_payers

logger = logging.getLogger(__name__)


def net_positions(transaction: FinancialTransaction) -> dict[PersonId, Decimal]:
    """
    Compute paid minus owed for everyone in a transaction.

    Payers and splits without a person reference are skipped.
    """
    positions: dict[PersonId, Decimal] = {}

    for person_id, paid in effective_payers(transaction):
        if person_id is None:
            logger.debug(f"Skipping payer with no person on transaction {transaction.id}")
            continue
        positions[person_id] = positions.get(person_id, ZERO) + paid

    for split in transaction.splits:
        if split.owed_by is None:
            logger.debug(f"Skipping split with no person on transaction {transaction.id}")
            continue
        positions[split.owed_by] = positions.get(split.owed_by, ZERO) - split.amount

    return positions


def pairwise_balance(
    transaction: FinancialTransaction, person_a: PersonId, person_b: PersonId
) -> Decimal:
    """
    Amount person_b owes person_a inside one transaction.

    Negative when person_a owes person_b. A debtor's debt is spread over the
    creditors in proportion to what each creditor is owed, so only the part
    of B's debt that lands on A (or of A's debt that lands on B) counts.
    Third parties' shares never show up here.

    Args:
        transaction: The expense to look at
        person_a: Viewpoint person
        person_b: Counterparty

    Returns:
        Signed amount, 0 when either side is absent or nobody is owed
    """
    positions = net_positions(transaction)
    net_a = positions.get(person_a, ZERO)
    net_b = positions.get(person_b, ZERO)

    total_credit = sum((net for net in positions.values() if net > 0), ZERO)
    if total_credit <= 0:
        return ZERO

    if net_a > 0 and net_b < 0:
        return abs(net_b) * net_a / total_credit
    if net_a < 0 and net_b > 0:
        return -(abs(net_a) * net_b / total_credit)
    return ZERO


def involving_both(
    person_a: PersonId,
    person_b: PersonId,
    transactions: Iterable[FinancialTransaction],
) -> list[FinancialTransaction]:
    """Transactions involving both people, in their original order."""
    return [
        tx for tx in transactions if tx.involves(person_a) and tx.involves(person_b)
    ]


def newest_first_key(record_date: datetime) -> datetime:
    """Sort key that orders naive (local time) and aware dates together."""
    return record_date.astimezone(timezone.utc)


def mutual_transactions(
    person_a: PersonId,
    person_b: PersonId,
    transactions: Iterable[FinancialTransaction],
) -> list[FinancialTransaction]:
    """Transactions involving both people, newest first."""
    return sorted(
        involving_both(person_a, person_b, transactions),
        key=lambda tx: newest_first_key(tx.date),
        reverse=True,
    )


def settlement_effect(
    viewer: PersonId, other: PersonId, settlement: Settlement
) -> Decimal:
    """
    How a settlement moves the viewer's balance with ``other``.

    ``other`` paying the viewer lowers what they owe; the viewer paying
    ``other`` lowers what the viewer owes. Settlements involving anyone else
    have no effect.
    """
    if settlement.from_person == other and settlement.to_person == viewer:
        return -settlement.amount
    if settlement.from_person == viewer and settlement.to_person == other:
        return settlement.amount
    return ZERO


def transaction_balance(
    viewer: PersonId,
    other: PersonId,
    transactions: Iterable[FinancialTransaction],
    default_currency: str = "USD",
) -> CurrencyBalance:
    """Sum of pairwise balances over the given transactions, per currency."""
    balance = CurrencyBalance()
    for tx in transactions:
        amount = pairwise_balance(tx, viewer, other)
        if amount:
            balance.add(amount, tx.effective_currency(default_currency))
    return balance


def apply_settlements(
    balance: CurrencyBalance,
    viewer: PersonId,
    other: PersonId,
    settlements: Iterable[Settlement],
    default_currency: str = "USD",
) -> CurrencyBalance:
    """Net the settlements between ``viewer`` and ``other`` into ``balance``."""
    for settlement in settlements:
        effect = settlement_effect(viewer, other, settlement)
        if effect:
            balance.add(effect, settlement.effective_currency(default_currency))
    return balance


def net_balance(
    viewer: PersonId,
    other: PersonId,
    transactions: Iterable[FinancialTransaction],
    settlements: Iterable[Settlement],
    default_currency: str = "USD",
) -> CurrencyBalance:
    """
    Net balance between the viewer and another person.

    Covers every mutual transaction and every settlement between the two.
    Returns an empty balance when ``other`` is the viewer.
    """
    if viewer == other:
        return CurrencyBalance()

    balance = transaction_balance(
        viewer,
        other,
        involving_both(viewer, other, transactions),
        default_currency,
    )
    return apply_settlements(balance, viewer, other, settlements, default_currency)


def group_transactions(
    group: UserGroup, transactions: Iterable[FinancialTransaction]
) -> list[FinancialTransaction]:
    return [tx for tx in transactions if tx.group_id == group.id]


def amount_paid(
    person_id: PersonId,
    transactions: Iterable[FinancialTransaction],
    default_currency: str = "USD",
) -> CurrencyBalance:
    """Total a person contributed as payer, per currency."""
    paid = CurrencyBalance()
    for tx in transactions:
        for payer_id, amount in effective_payers(tx):
            if payer_id == person_id:
                paid.add(amount, tx.effective_currency(default_currency))
    return paid


def _display_name(person_id: PersonId, people: Sequence[Person]) -> str:
    for person in people:
        if person.id == person_id:
            return person.display_name
    return "Unknown Person"


def _member_rows(
    person_id: PersonId,
    name: str,
    balance: CurrencyBalance,
    paid: CurrencyBalance,
    default_currency: str,
) -> list[MemberBalance]:
    currencies = sorted(set(balance.balances) | set(paid.balances))
    if not currencies:
        currencies = [default_currency]
    return [
        MemberBalance(
            person_id=person_id,
            name=name,
            balance=balance.amount(code),
            paid=paid.amount(code),
            currency=code,
        )
        for code in currencies
    ]


def group_member_balances(
    group: UserGroup,
    viewer: PersonId,
    transactions: Iterable[FinancialTransaction],
    settlements: Iterable[Settlement],
    people: Sequence[Person] = (),
    default_currency: str = "USD",
) -> list[MemberBalance]:
    """
    Balance between the viewer and each other member of a group.

    Only the group's own transactions count; settlements between the viewer
    and a member are netted in. One row per member per currency, members
    with no activity get a zero row. Sorted by member name.

    Args:
        group: Group to report on
        viewer: Person whose viewpoint the balances are from
        transactions: Transactions to draw the group's expenses from
        settlements: Settlements to net against the group balances
        people: Address book used to resolve member names
        default_currency: Currency for records that carry none

    Returns:
        MemberBalance rows
    """
    group_txs = group_transactions(group, transactions)
    settlements = list(settlements)

    rows: list[MemberBalance] = []
    for member_id in dict.fromkeys(group.members):
        if member_id == viewer:
            continue
        balance = transaction_balance(viewer, member_id, group_txs, default_currency)
        apply_settlements(balance, viewer, member_id, settlements, default_currency)
        paid = amount_paid(member_id, group_txs, default_currency)
        rows.extend(
            _member_rows(
                member_id,
                _display_name(member_id, people),
                balance,
                paid,
                default_currency,
            )
        )

    return sorted(rows, key=lambda row: (row.name, row.person_id, row.currency))


def group_balance(
    group: UserGroup,
    viewer: PersonId,
    transactions: Iterable[FinancialTransaction],
    default_currency: str = "USD",
) -> CurrencyBalance:
    """Viewer's total position in a group from the group's transactions alone."""
    group_txs = group_transactions(group, transactions)
    balance = CurrencyBalance()
    for member_id in dict.fromkeys(group.members):
        if member_id == viewer:
            continue
        balance.merge(
            transaction_balance(viewer, member_id, group_txs, default_currency)
        )
    return balance


def overall_balances(
    viewer: PersonId,
    people: Sequence[Person],
    transactions: Iterable[FinancialTransaction],
    settlements: Iterable[Settlement],
    default_currency: str = "USD",
) -> list[MemberBalance]:
    """Viewer against everybody else in the address book, sorted by name."""
    transactions = list(transactions)
    settlements = list(settlements)

    rows: list[MemberBalance] = []
    for person in people:
        if person.id == viewer:
            continue
        mutual = involving_both(viewer, person.id, transactions)
        balance = net_balance(
            viewer, person.id, mutual, settlements, default_currency
        )
        paid = amount_paid(person.id, mutual, default_currency)
        rows.extend(
            _member_rows(
                person.id, person.display_name, balance, paid, default_currency
            )
        )

    return sorted(rows, key=lambda row: (row.name, row.person_id, row.currency))


def members_who_owe_you(rows: Iterable[MemberBalance]) -> list[OwedAmount]:
    """Unsettled positive balances, largest first, ties by name."""
    owed = [
        OwedAmount(
            person_id=row.person_id,
            name=row.name,
            amount=row.balance,
            currency=row.currency,
        )
        for row in rows
        if owes_you(row.balance)
    ]
    return sorted(owed, key=lambda item: (-item.amount, item.name, item.person_id))


def members_you_owe(rows: Iterable[MemberBalance]) -> list[OwedAmount]:
    """Unsettled negative balances as positive amounts, largest first."""
    owing = [
        OwedAmount(
            person_id=row.person_id,
            name=row.name,
            amount=abs(row.balance),
            currency=row.currency,
        )
        for row in rows
        if you_owe(row.balance)
    ]
    return sorted(owing, key=lambda item: (-item.amount, item.name, item.person_id))

"""Creation-time split resolution and payer bookkeeping for transactions."""

import logging
from collections.abc import Mapping, Sequence
from decimal import Decimal

from .exceptions import InvalidSplitError
from .models import (
    AllocationStatus,
    FinancialTransaction,
    PersonId,
    SplitMethod,
    TransactionSplit,
)
from .money import EPSILON, ZERO, amounts_match, to_cents, to_decimal

logger = logging.getLogger(__name__)

HUNDRED = Decimal("100")

# Percentages entered in the UI may be off by a rounding hair
PERCENT_TOLERANCE = Decimal("0.1")


def effective_payers(
    transaction: FinancialTransaction,
) -> list[tuple[PersonId | None, Decimal]]:
    """
    Return (person, amount paid) pairs for a transaction.

    Uses the multi-payer records when present; legacy transactions without
    them are treated as paid in full by ``transaction.payer``.
    """
    if transaction.payers:
        return [(p.paid_by, p.amount) for p in transaction.payers]
    return [(transaction.payer, transaction.amount)]


def total_paid(transaction: FinancialTransaction) -> Decimal:
    return sum((amount for _, amount in effective_payers(transaction)), ZERO)


def total_split(transaction: FinancialTransaction) -> Decimal:
    return sum((split.amount for split in transaction.splits), ZERO)


def allocation_status(transaction: FinancialTransaction) -> AllocationStatus:
    """
    Check that payers and splits both account for the transaction amount.

    Mismatches are reported, never raised: a display must keep working on
    half-entered data.
    """
    if not amounts_match(total_paid(transaction), transaction.amount):
        return AllocationStatus.UNSETTLED
    if not amounts_match(total_split(transaction), transaction.amount):
        return AllocationStatus.UNSETTLED
    return AllocationStatus.SETTLED


def _raw_amounts(
    method: SplitMethod,
    total: Decimal,
    participants: Sequence[PersonId],
    details: Mapping[PersonId, Decimal],
) -> dict[PersonId, Decimal]:
    count = Decimal(len(participants))

    if method == SplitMethod.EQUAL:
        return {pid: total / count for pid in participants}

    if method == SplitMethod.AMOUNT:
        amounts = {pid: details.get(pid, ZERO) for pid in participants}
        entered = sum(amounts.values(), ZERO)
        if not amounts_match(entered, total):
            raise InvalidSplitError(
                f"Split amounts add up to {entered}, expected {total}"
            )
        return amounts

    if method == SplitMethod.PERCENTAGE:
        percentages = {pid: details.get(pid, ZERO) for pid in participants}
        entered = sum(percentages.values(), ZERO)
        if abs(entered - HUNDRED) >= PERCENT_TOLERANCE:
            raise InvalidSplitError(f"Percentages add up to {entered}, expected 100")
        return {pid: pct / HUNDRED * total for pid, pct in percentages.items()}

    if method == SplitMethod.SHARES:
        shares = {pid: details.get(pid, Decimal(1)) for pid in participants}
        if any(share < 0 for share in shares.values()):
            raise InvalidSplitError("Share counts cannot be negative")
        total_shares = sum(shares.values(), ZERO)
        if total_shares == 0:
            # All shares zero: fall back to an equal split
            return {pid: total / count for pid in participants}
        return {pid: share / total_shares * total for pid, share in shares.items()}

    # Adjustment: equal split of what is left after the +/- adjustments
    adjustments = {pid: details.get(pid, ZERO) for pid in participants}
    base = (total - sum(adjustments.values(), ZERO)) / count
    return {pid: base + adj for pid, adj in adjustments.items()}


def build_splits(
    method: SplitMethod,
    total: Decimal | int | str,
    participants: Sequence[PersonId],
    details: Mapping[PersonId, Decimal | int | str] | None = None,
) -> list[TransactionSplit]:
    """
    Compute the stored splits for a new transaction.

    Steps:
    1. Turn the method's input into raw per-person amounts
    2. Round each amount to cents
    3. Give the rounding residual to the largest split so the splits sum
       exactly to ``total``

    The result is frozen: later edits to percentages or shares do not touch
    stored split amounts.

    Args:
        method: Split method chosen by the user
        total: Transaction amount
        participants: People sharing the expense, in display order
        details: Per-person input (fixed amount, percentage, share count or
            adjustment, depending on ``method``)

    Returns:
        One split per participant

    Raises:
        InvalidSplitError: If the input cannot produce splits for ``total``
    """
    total = to_decimal(total)
    if total <= 0:
        raise InvalidSplitError(f"Transaction amount must be positive, got {total}")
    if not participants:
        raise InvalidSplitError("A split needs at least one participant")
    if len(set(participants)) != len(participants):
        raise InvalidSplitError("Participants must be unique")

    parsed = {pid: to_decimal(value) for pid, value in (details or {}).items()}
    raw = _raw_amounts(method, total, participants, parsed)

    rounded = {pid: to_cents(raw[pid]) for pid in participants}
    residual = total - sum(rounded.values(), ZERO)

    if residual != 0:
        if abs(residual) > EPSILON * (len(participants) + 1):
            raise InvalidSplitError(
                f"Rounding residual {residual} is too large for "
                f"{len(participants)} participants"
            )
        largest = max(participants, key=lambda pid: abs(rounded[pid]))
        rounded[largest] += residual
        logger.debug(f"Applied rounding adjustment of {residual} to {largest}")

    return [TransactionSplit(owed_by=pid, amount=rounded[pid]) for pid in participants]

"""Tests for creation-time split resolution and allocation checks."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from swiss_ledger.exceptions import InvalidSplitError
from swiss_ledger.models import (
    AllocationStatus,
    FinancialTransaction,
    SplitMethod,
    TransactionPayer,
    TransactionSplit,
)
from swiss_ledger.splits import (
    allocation_status,
    build_splits,
    effective_payers,
    total_split,
)


def amounts(splits: list[TransactionSplit]) -> dict[str, Decimal]:
    return {split.owed_by: split.amount for split in splits}


class TestEqualSplit:
    """Equal splits, including ones that don't divide evenly."""

    def test_even_division(self):
        """$30 among three people is $10.00 each."""
        splits = build_splits(SplitMethod.EQUAL, "30", ["a", "b", "c"])

        assert amounts(splits) == {
            "a": Decimal("10.00"),
            "b": Decimal("10.00"),
            "c": Decimal("10.00"),
        }

    def test_residual_goes_to_one_split(self):
        """$100 among three rounds to cents and still sums to $100.00."""
        splits = build_splits(SplitMethod.EQUAL, "100", ["a", "b", "c"])

        assert sum(s.amount for s in splits) == Decimal("100.00")
        assert sorted(s.amount for s in splits) == [
            Decimal("33.33"),
            Decimal("33.33"),
            Decimal("33.34"),
        ]

    def test_preserves_participant_order(self):
        splits = build_splits(SplitMethod.EQUAL, 20, ["z", "a"])
        assert [s.owed_by for s in splits] == ["z", "a"]


class TestPercentageSplit:
    """Percentage splits are converted to amounts once, at creation."""

    def test_seventy_thirty(self):
        """$100 split 70/30 stores $70.00 and $30.00."""
        splits = build_splits(
            SplitMethod.PERCENTAGE, "100", ["a", "b"], {"a": "70", "b": "30"}
        )

        assert amounts(splits) == {"a": Decimal("70.00"), "b": Decimal("30.00")}
        assert sum(s.amount for s in splits) == Decimal("100.00")

    def test_stored_amounts_ignore_later_metadata(self):
        """Changing the recorded method does not touch stored split amounts."""
        splits = build_splits(
            SplitMethod.PERCENTAGE, "100", ["a", "b"], {"a": "70", "b": "30"}
        )
        tx = FinancialTransaction(
            id="t1",
            amount=Decimal("100"),
            payer="a",
            split_method=SplitMethod.PERCENTAGE,
            splits=splits,
        )

        edited = tx.model_copy(update={"split_method": SplitMethod.EQUAL})

        assert amounts(edited.splits) == {"a": Decimal("70.00"), "b": Decimal("30.00")}
        assert total_split(edited) == Decimal("100.00")

    def test_transactions_are_immutable(self):
        tx = FinancialTransaction(id="t1", amount=Decimal("100"), payer="a")
        with pytest.raises(ValidationError):
            tx.amount = Decimal("50")

    def test_percentages_must_total_100(self):
        with pytest.raises(InvalidSplitError, match="Percentages add up to"):
            build_splits(
                SplitMethod.PERCENTAGE, "100", ["a", "b"], {"a": "60", "b": "30"}
            )

    def test_small_percentage_drift_is_accepted(self):
        """Thirds entered as 33.33% each are close enough to 100."""
        splits = build_splits(
            SplitMethod.PERCENTAGE,
            "90",
            ["a", "b", "c"],
            {"a": "33.33", "b": "33.33", "c": "33.33"},
        )

        assert sum(s.amount for s in splits) == Decimal("90.00")


class TestAmountSplit:
    def test_exact_amounts(self):
        splits = build_splits(
            SplitMethod.AMOUNT, "50", ["a", "b"], {"a": "12.50", "b": "37.50"}
        )
        assert amounts(splits) == {"a": Decimal("12.50"), "b": Decimal("37.50")}

    def test_amounts_must_match_total(self):
        with pytest.raises(InvalidSplitError, match="Split amounts add up to"):
            build_splits(SplitMethod.AMOUNT, "50", ["a", "b"], {"a": "10", "b": "20"})


class TestSharesSplit:
    def test_weighted_shares(self):
        """Two shares against one: $90 becomes $60 and $30."""
        splits = build_splits(SplitMethod.SHARES, "90", ["a", "b"], {"a": 2, "b": 1})
        assert amounts(splits) == {"a": Decimal("60.00"), "b": Decimal("30.00")}

    def test_missing_share_count_defaults_to_one(self):
        splits = build_splits(SplitMethod.SHARES, "90", ["a", "b"], {"a": 2})
        assert amounts(splits) == {"a": Decimal("60.00"), "b": Decimal("30.00")}

    def test_all_zero_shares_fall_back_to_equal(self):
        splits = build_splits(SplitMethod.SHARES, "40", ["a", "b"], {"a": 0, "b": 0})
        assert amounts(splits) == {"a": Decimal("20.00"), "b": Decimal("20.00")}

    def test_negative_shares_rejected(self):
        with pytest.raises(InvalidSplitError):
            build_splits(SplitMethod.SHARES, "40", ["a", "b"], {"a": -1, "b": 2})


class TestAdjustmentSplit:
    def test_adjustment_on_top_of_equal_base(self):
        """$100 with +$10 for a: base is $45, a pays $55."""
        splits = build_splits(SplitMethod.ADJUSTMENT, "100", ["a", "b"], {"a": "10"})
        assert amounts(splits) == {"a": Decimal("55.00"), "b": Decimal("45.00")}


class TestSplitInputValidation:
    def test_no_participants(self):
        with pytest.raises(InvalidSplitError, match="at least one participant"):
            build_splits(SplitMethod.EQUAL, "10", [])

    def test_non_positive_total(self):
        with pytest.raises(InvalidSplitError, match="must be positive"):
            build_splits(SplitMethod.EQUAL, "0", ["a"])

    def test_duplicate_participants(self):
        with pytest.raises(InvalidSplitError, match="unique"):
            build_splits(SplitMethod.EQUAL, "10", ["a", "a"])


class TestEffectivePayers:
    def test_legacy_payer_paid_everything(self):
        tx = FinancialTransaction(id="t1", amount=Decimal("42"), payer="a")
        assert effective_payers(tx) == [("a", Decimal("42"))]

    def test_multi_payer_records_win(self):
        tx = FinancialTransaction(
            id="t1",
            amount=Decimal("100"),
            payer="a",
            payers=[
                TransactionPayer(paid_by="b", amount=Decimal("60")),
                TransactionPayer(paid_by="c", amount=Decimal("40")),
            ],
        )

        assert effective_payers(tx) == [("b", Decimal("60")), ("c", Decimal("40"))]
        assert tx.is_multi_payer

    def test_missing_legacy_payer(self):
        tx = FinancialTransaction(id="t1", amount=Decimal("10"))
        assert effective_payers(tx) == [(None, Decimal("10"))]


class TestAllocationStatus:
    """Mismatched totals are reported, never raised."""

    def test_balanced_transaction(self):
        tx = FinancialTransaction(
            id="t1",
            amount=Decimal("30"),
            payer="a",
            splits=build_splits(SplitMethod.EQUAL, "30", ["a", "b", "c"]),
        )
        assert allocation_status(tx) == AllocationStatus.SETTLED

    def test_splits_short_of_total(self):
        tx = FinancialTransaction(
            id="t1",
            amount=Decimal("30"),
            payer="a",
            splits=[TransactionSplit(owed_by="b", amount=Decimal("10"))],
        )
        assert allocation_status(tx) == AllocationStatus.UNSETTLED

    def test_payers_short_of_total(self):
        tx = FinancialTransaction(
            id="t1",
            amount=Decimal("30"),
            payers=[TransactionPayer(paid_by="a", amount=Decimal("20"))],
            splits=[TransactionSplit(owed_by="b", amount=Decimal("30"))],
        )
        assert allocation_status(tx) == AllocationStatus.UNSETTLED

    def test_sub_cent_difference_is_tolerated(self):
        tx = FinancialTransaction(
            id="t1",
            amount=Decimal("30"),
            payer="a",
            splits=[TransactionSplit(owed_by="b", amount=Decimal("29.995"))],
        )
        assert allocation_status(tx) == AllocationStatus.SETTLED

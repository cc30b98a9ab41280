"""Tests for pairwise, person and group balances."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from swiss_ledger.balances import (
    group_balance,
    group_member_balances,
    members_who_owe_you,
    members_you_owe,
    mutual_transactions,
    net_balance,
    overall_balances,
    pairwise_balance,
)
from swiss_ledger.models import (
    CurrencyBalance,
    FinancialTransaction,
    MemberBalance,
    Person,
    Settlement,
    TransactionPayer,
    TransactionSplit,
    UserGroup,
)
from swiss_ledger.money import is_settled


def expense(
    tx_id: str,
    amount: str,
    splits: dict[str | None, str],
    payer: str | None = None,
    payers: dict[str, str] | None = None,
    **kwargs,
) -> FinancialTransaction:
    return FinancialTransaction(
        id=tx_id,
        amount=Decimal(amount),
        payer=payer,
        payers=[
            TransactionPayer(paid_by=pid, amount=Decimal(value))
            for pid, value in (payers or {}).items()
        ],
        splits=[
            TransactionSplit(owed_by=pid, amount=Decimal(value))
            for pid, value in splits.items()
        ],
        **kwargs,
    )


def settlement(
    from_person: str, to_person: str, amount: str, currency: str | None = None
) -> Settlement:
    return Settlement(
        id=f"s-{from_person}-{to_person}-{amount}",
        amount=Decimal(amount),
        from_person=from_person,
        to_person=to_person,
        currency=currency,
    )


@pytest.fixture
def people():
    return [
        Person(id="me", name="Me", is_current_user=True),
        Person(id="bob", name="Bob"),
        Person(id="carol", name="Carol"),
        Person(id="dave", name="Dave"),
    ]


@pytest.fixture
def dinner():
    """Me paid $30, split equally among me, Bob and Carol."""
    return expense(
        "dinner", "30", {"me": "10", "bob": "10", "carol": "10"}, payer="me"
    )


class TestPairwiseBalance:
    """Balances inside a single transaction."""

    def test_single_payer_single_debtor(self):
        """A paid $25 and B owes all of it."""
        tx = expense("t1", "25", {"b": "25"}, payer="a")

        assert pairwise_balance(tx, "a", "b") == Decimal("25")
        assert pairwise_balance(tx, "b", "a") == Decimal("-25")

    def test_equal_split_ignores_third_parties(self, dinner):
        assert pairwise_balance(dinner, "me", "bob") == Decimal("10")
        assert pairwise_balance(dinner, "me", "carol") == Decimal("10")
        assert pairwise_balance(dinner, "bob", "carol") == Decimal("0")

    def test_multi_payer_allocates_by_credit(self):
        """Each debtor's share is spread over creditors by what they are owed."""
        tx = expense(
            "t1",
            "100",
            {"a": "25", "b": "25", "c": "25", "d": "25"},
            payers={"a": "60", "b": "40"},
        )

        # Net: a +35, b +15, c -25, d -25
        assert pairwise_balance(tx, "a", "c") == Decimal("17.5")
        assert pairwise_balance(tx, "b", "c") == Decimal("7.5")
        assert pairwise_balance(tx, "c", "a") == Decimal("-17.5")
        assert pairwise_balance(tx, "a", "b") == Decimal("0")

    def test_missing_person_references_contribute_nothing(self):
        tx = expense("t1", "20", {"b": "10", None: "10"}, payer="a")

        assert pairwise_balance(tx, "a", "b") == Decimal("10")

    def test_person_not_in_transaction(self, dinner):
        assert pairwise_balance(dinner, "me", "dave") == Decimal("0")

    def test_nobody_owed(self):
        tx = expense("t1", "20", {"a": "20"}, payer="a")

        assert pairwise_balance(tx, "a", "b") == Decimal("0")


class TestNetBalance:
    """Person balances across transactions and settlements."""

    def test_settlements_net_in_both_directions(self, dinner):
        """Bob owes $10; he pays back $4, then I send him $1."""
        settlements = [
            settlement("bob", "me", "4"),
            settlement("me", "bob", "1"),
        ]

        balance = net_balance("me", "bob", [dinner], settlements)

        assert balance.amount("USD") == Decimal("7")

    def test_balance_is_antisymmetric(self, dinner):
        settlements = [settlement("bob", "me", "4")]

        mine = net_balance("me", "bob", [dinner], settlements).amount("USD")
        theirs = net_balance("bob", "me", [dinner], settlements).amount("USD")

        assert mine == -theirs

    def test_unrelated_settlements_are_ignored(self, dinner):
        settlements = [settlement("carol", "bob", "5")]

        balance = net_balance("me", "bob", [dinner], settlements)

        assert balance.amount("USD") == Decimal("10")

    def test_currencies_kept_apart(self, dinner):
        hotel = expense(
            "hotel", "200", {"me": "100", "bob": "100"}, payer="bob", currency="EUR"
        )

        balance = net_balance("me", "bob", [dinner, hotel], [])

        assert balance.amount("USD") == Decimal("10")
        assert balance.amount("EUR") == Decimal("-100")
        assert balance.has_positive and balance.has_negative
        assert balance.single_currency is None

    def test_default_currency_applies_to_legacy_records(self, dinner):
        balance = net_balance("me", "bob", [dinner], [], default_currency="CHF")

        assert balance.amount("CHF") == Decimal("10")
        assert balance.amount("USD") == Decimal("0")

    def test_self_balance_is_empty(self, dinner):
        assert net_balance("me", "me", [dinner], []).is_settled


class TestMutualTransactions:
    def test_only_shared_transactions_newest_first(self, dinner):
        older = expense(
            "lunch",
            "20",
            {"me": "10", "bob": "10"},
            payer="bob",
            date=datetime(2024, 1, 1),
        )
        newer = dinner.model_copy(update={"date": datetime(2024, 6, 1)})
        unrelated = expense("taxi", "15", {"carol": "15"}, payer="dave")

        result = mutual_transactions("me", "bob", [older, unrelated, newer])

        assert [tx.id for tx in result] == ["dinner", "lunch"]

    def test_naive_and_aware_dates_sort_together(self, dinner):
        """A UTC-stamped transaction orders against naive local ones."""
        aware = dinner.model_copy(
            update={"date": datetime(2024, 1, 1, tzinfo=timezone.utc)}
        )
        naive = expense(
            "lunch",
            "20",
            {"me": "10", "bob": "10"},
            payer="bob",
            date=datetime(2024, 6, 1),
        )

        result = mutual_transactions("me", "bob", [aware, naive])

        assert [tx.id for tx in result] == ["lunch", "dinner"]
        assert net_balance("me", "bob", [aware, naive], []).amount("USD") == 0


class TestCurrencyBalance:
    """Per-currency totals used by every balance query."""

    def test_subtract(self):
        """Subtracting creates the currency entry when it is missing."""
        balance = CurrencyBalance()
        balance.add(Decimal("10"), "USD")
        balance.subtract(Decimal("4"), "USD")
        balance.subtract(Decimal("3"), "EUR")

        assert balance.amount("USD") == Decimal("6")
        assert balance.amount("EUR") == Decimal("-3")

    def test_primary_amount_is_largest_unsettled(self):
        """The largest absolute unsettled amount wins, whatever its sign."""
        balance = CurrencyBalance()
        balance.add(Decimal("5"), "USD")
        balance.add(Decimal("-12"), "EUR")
        balance.add(Decimal("0.004"), "CHF")

        assert balance.primary_amount == Decimal("-12")
        assert [code for code, _ in balance.sorted_currencies] == ["EUR", "USD"]

    def test_primary_amount_when_settled(self):
        """A settled balance has no primary amount."""
        balance = CurrencyBalance()
        balance.add(Decimal("0.001"), "USD")

        assert balance.primary_amount == Decimal("0")


class TestGroupMemberBalances:
    """Group balances use only the group's transactions."""

    @pytest.fixture
    def trip(self):
        return UserGroup(id="trip", name="Trip", members=["me", "bob", "carol", "dave"])

    def test_group_balances_and_ordering(self, trip, people):
        """Bob and Carol both owe $10; ties are ordered by name."""
        in_group = expense(
            "g1",
            "30",
            {"me": "10", "bob": "10", "carol": "10"},
            payer="me",
            group_id="trip",
        )
        outside = expense("o1", "50", {"bob": "50"}, payer="me")

        rows = group_member_balances(trip, "me", [in_group, outside], [], people)
        owed = members_who_owe_you(rows)

        assert [(o.name, o.amount) for o in owed] == [
            ("Bob", Decimal("10")),
            ("Carol", Decimal("10")),
        ]

    def test_members_sorted_by_amount_descending(self, trip, people):
        txs = [
            expense("g1", "20", {"bob": "20"}, payer="me", group_id="trip"),
            expense("g2", "30", {"carol": "30"}, payer="me", group_id="trip"),
        ]

        owed = members_who_owe_you(group_member_balances(trip, "me", txs, [], people))

        assert [o.person_id for o in owed] == ["carol", "bob"]

    def test_inactive_member_gets_zero_row(self, trip, people):
        tx = expense("g1", "20", {"bob": "20"}, payer="me", group_id="trip")

        rows = group_member_balances(trip, "me", [tx], [], people)

        assert [(r.name, r.balance, r.currency) for r in rows] == [
            ("Bob", Decimal("20"), "USD"),
            ("Carol", Decimal("0"), "USD"),
            ("Dave", Decimal("0"), "USD"),
        ]

    def test_settlements_reduce_group_balances(self, trip, people):
        tx = expense("g1", "20", {"bob": "20"}, payer="me", group_id="trip")

        rows = group_member_balances(
            trip, "me", [tx], [settlement("bob", "me", "20")], people
        )

        assert members_who_owe_you(rows) == []

    def test_paid_totals(self, trip, people):
        tx = expense(
            "g1", "40", {"me": "20", "bob": "20"}, payer="bob", group_id="trip"
        )

        rows = group_member_balances(trip, "me", [tx], [], people)
        bob = next(r for r in rows if r.person_id == "bob")

        assert bob.paid == Decimal("40")
        assert members_you_owe(rows)[0].amount == Decimal("20")

    def test_unknown_member_name(self, people):
        group = UserGroup(id="g", members=["me", "ghost"])

        rows = group_member_balances(group, "me", [], [], people)

        assert rows[0].name == "Unknown Person"

    def test_group_balance_total(self, trip):
        tx = expense(
            "g1",
            "30",
            {"me": "10", "bob": "10", "carol": "10"},
            payer="me",
            group_id="trip",
        )

        assert group_balance(trip, "me", [tx]).amount("USD") == Decimal("20")


class TestOverallBalances:
    def test_everyone_but_the_viewer(self, people, dinner):
        rows = overall_balances("me", people, [dinner], [])

        assert [r.person_id for r in rows] == ["bob", "carol", "dave"]
        assert [r.balance for r in rows] == [
            Decimal("10"),
            Decimal("10"),
            Decimal("0"),
        ]


class TestSettledThreshold:
    """A cent still counts as owed; anything smaller is settled."""

    def row(self, balance: str) -> MemberBalance:
        return MemberBalance(
            person_id="bob", name="Bob", balance=Decimal(balance), currency="USD"
        )

    def test_one_cent_is_unsettled(self):
        assert not is_settled(Decimal("0.01"))
        assert len(members_who_owe_you([self.row("0.01")])) == 1
        assert len(members_you_owe([self.row("-0.01")])) == 1

    def test_below_one_cent_is_settled(self):
        assert is_settled(Decimal("0.009"))
        assert is_settled(Decimal("-0.009"))
        assert members_who_owe_you([self.row("0.009")]) == []
        assert members_you_owe([self.row("-0.009")]) == []

    def test_one_list_per_sign(self):
        rows = [self.row("5"), self.row("-5")]

        assert [o.amount for o in members_who_owe_you(rows)] == [Decimal("5")]
        assert [o.amount for o in members_you_owe(rows)] == [Decimal("5")]

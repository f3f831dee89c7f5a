"""Tests for net balance computation."""

import logging
from decimal import Decimal

import pytest

from billbreak.balances import compute_balances, is_settled, total_balance
from billbreak.exceptions import MalformedSplitDataError, UnknownGroupMemberError
from billbreak.models import Expense, Member, RecordedSettlement, Split

EPSILON = Decimal("0.005")


# Helper functions for tests
def make_members(*ids: str) -> list[Member]:
    """Create members whose display name is the capitalized id."""
    return [Member(id=member_id, display_name=member_id.title()) for member_id in ids]


def make_expense(id: str, payer: str, total: str, shares: dict[str, str]) -> Expense:
    """Create an expense with explicit per-member shares."""
    return Expense.create(
        id=id,
        group_id="g1",
        payer_id=payer,
        total_amount=Decimal(total),
        splits=[
            Split(member_id=member_id, owed_amount=Decimal(amount))
            for member_id, amount in shares.items()
        ],
    )


def nets(balances) -> dict[str, Decimal]:
    return {member_id: b.net_amount for member_id, b in balances.items()}


class TestComputeBalances:
    """Tests for the basic aggregation."""

    def test_even_split_including_payer(self):
        """Payer of 90 split three ways is owed 60; the others owe 30 each."""
        members = make_members("a", "b", "c")
        expenses = [make_expense("e1", "a", "90", {"a": "30", "b": "30", "c": "30"})]

        balances = compute_balances(members, expenses)

        assert nets(balances) == {
            "a": Decimal("60"),
            "b": Decimal("-30"),
            "c": Decimal("-30"),
        }

    def test_payer_without_own_split_gets_full_credit(self):
        """Whether the payer owes a share is up to the splits given."""
        members = make_members("a", "b")
        expenses = [make_expense("e1", "a", "50", {"b": "50"})]

        balances = compute_balances(members, expenses)

        assert nets(balances) == {"a": Decimal("50"), "b": Decimal("-50")}

    def test_multiple_expenses_accumulate(self):
        members = make_members("a", "b", "c")
        expenses = [
            make_expense("e1", "a", "120", {"a": "40", "b": "40", "c": "40"}),
            make_expense("e2", "b", "60", {"b": "30", "c": "30"}),
        ]

        balances = compute_balances(members, expenses)

        assert nets(balances) == {
            "a": Decimal("80"),
            "b": Decimal("-10"),
            "c": Decimal("-70"),
        }

    def test_display_names_carried_through(self):
        members = [Member(id="u1", display_name="Alice")]

        balances = compute_balances(members, [])

        assert balances["u1"].display_name == "Alice"

    def test_no_expenses_gives_zero_balances(self):
        """A roster with no expenses has every balance at exactly zero."""
        members = make_members("a", "b", "c")

        balances = compute_balances(members, [])

        assert nets(balances) == {
            "a": Decimal("0"),
            "b": Decimal("0"),
            "c": Decimal("0"),
        }

    def test_empty_roster_returns_empty_mapping(self):
        """No members is not an error."""
        expenses = [make_expense("e1", "a", "10", {"a": "10"})]

        assert compute_balances([], expenses) == {}

    def test_result_ordered_by_member_id(self):
        members = make_members("c", "a", "b")

        balances = compute_balances(members, [])

        assert list(balances) == ["a", "b", "c"]

    def test_expense_order_does_not_matter(self):
        members = make_members("a", "b", "c")
        expenses = [
            make_expense("e1", "a", "100", {"a": "33.34", "b": "33.33", "c": "33.33"}),
            make_expense("e2", "c", "45.50", {"a": "20", "c": "25.50"}),
            make_expense("e3", "b", "10", {"a": "5", "b": "5"}),
        ]

        forward = compute_balances(members, expenses)
        backward = compute_balances(list(reversed(members)), list(reversed(expenses)))

        assert nets(forward) == nets(backward)

    def test_inputs_not_mutated(self):
        members = make_members("a", "b")
        expense = make_expense("e1", "a", "20", {"a": "10", "b": "10"})
        before = expense.model_dump()

        compute_balances(members, [expense])
        compute_balances(members, [expense])

        assert expense.model_dump() == before

    def test_splits_not_summing_to_total_are_used_as_given(self):
        """Split sums are not re-validated against the expense total."""
        members = make_members("a", "b")
        expenses = [make_expense("e1", "a", "100", {"b": "40"})]

        balances = compute_balances(members, expenses)

        assert nets(balances) == {"a": Decimal("100"), "b": Decimal("-40")}


class TestZeroSum:
    """Balances always net to zero when the roster is complete."""

    def test_uneven_thirds_sum_to_zero(self):
        members = make_members("a", "b", "c")
        third = Decimal("100") / 3
        expenses = [
            Expense.create(
                id="e1",
                group_id="g1",
                payer_id="a",
                total_amount=Decimal("100"),
                splits=[Split(member_id=m.id, owed_amount=third) for m in members],
            )
        ]

        balances = compute_balances(members, expenses)

        assert abs(total_balance(balances)) < EPSILON

    def test_many_expenses_sum_to_zero(self):
        members = make_members("a", "b", "c", "d")
        expenses = [
            make_expense("e1", "a", "80", {"a": "20", "b": "20", "c": "20", "d": "20"}),
            make_expense("e2", "b", "33.99", {"c": "11.33", "d": "22.66"}),
            make_expense("e3", "d", "7.01", {"a": "7.01"}),
            make_expense("e4", "c", "250", {"a": "125", "b": "125"}),
        ]

        balances = compute_balances(members, expenses)

        assert abs(total_balance(balances)) < EPSILON
        assert abs(total_balance(list(balances.values()))) < EPSILON


class TestUnknownMembers:
    """Contributions from members outside the roster."""

    def test_unknown_split_member_dropped_with_warning(self, caplog):
        members = make_members("a", "b")
        expenses = [make_expense("e1", "a", "90", {"a": "30", "b": "30", "x": "30"})]

        with caplog.at_level(logging.WARNING, logger="billbreak.balances"):
            balances = compute_balances(members, expenses)

        assert nets(balances) == {"a": Decimal("60"), "b": Decimal("-30")}
        assert "unknown member x" in caplog.text
        assert "e1" in caplog.text
        # Roster is incomplete, so the balances no longer net to zero
        assert total_balance(balances) == Decimal("30")

    def test_unknown_payer_dropped(self, caplog):
        members = make_members("a", "b")
        expenses = [make_expense("e1", "x", "40", {"a": "20", "b": "20"})]

        with caplog.at_level(logging.WARNING, logger="billbreak.balances"):
            balances = compute_balances(members, expenses)

        assert nets(balances) == {"a": Decimal("-20"), "b": Decimal("-20")}
        assert "payer" in caplog.text

    def test_raise_policy(self):
        members = make_members("a", "b")
        expenses = [make_expense("e1", "a", "20", {"a": "10", "zed": "10"})]

        with pytest.raises(UnknownGroupMemberError) as exc_info:
            compute_balances(members, expenses, unknown_member_policy="raise")

        assert exc_info.value.member_id == "zed"
        assert exc_info.value.expense_id == "e1"

    def test_ignore_policy_is_silent(self, caplog):
        members = make_members("a")
        expenses = [make_expense("e1", "a", "20", {"a": "10", "x": "10"})]

        with caplog.at_level(logging.WARNING, logger="billbreak.balances"):
            balances = compute_balances(
                members, expenses, unknown_member_policy="ignore"
            )

        assert nets(balances) == {"a": Decimal("10")}
        assert caplog.text == ""


class TestMalformedSplits:
    """Expenses whose split payload cannot be decoded."""

    def make_broken_expense(self) -> Expense:
        return Expense(
            id="broken",
            group_id="g1",
            payer_id="a",
            total_amount=Decimal("50"),
            split_data='[{"member_id": "b", "owed_amount": ',
        )

    def test_raises_by_default(self):
        members = make_members("a", "b")
        expenses = [
            make_expense("e1", "a", "10", {"b": "10"}),
            self.make_broken_expense(),
        ]

        with pytest.raises(MalformedSplitDataError) as exc_info:
            compute_balances(members, expenses)

        assert exc_info.value.expense_id == "broken"

    def test_warn_policy_skips_whole_expense(self, caplog):
        members = make_members("a", "b")
        expenses = [
            make_expense("e1", "a", "10", {"b": "10"}),
            self.make_broken_expense(),
        ]

        with caplog.at_level(logging.WARNING, logger="billbreak.balances"):
            balances = compute_balances(
                members, expenses, malformed_split_policy="warn"
            )

        # Payer is not credited for the skipped expense either
        assert nets(balances) == {"a": Decimal("10"), "b": Decimal("-10")}
        assert "Skipping expense broken" in caplog.text

    def test_negative_owed_amount_is_malformed(self):
        members = make_members("a", "b")
        expense = Expense(
            id="neg",
            group_id="g1",
            payer_id="a",
            total_amount=Decimal("10"),
            split_data='[{"member_id": "b", "owed_amount": "-10"}]',
        )

        with pytest.raises(MalformedSplitDataError):
            compute_balances(members, [expense])


class TestRecordedSettlements:
    """Payments already made between members."""

    def test_payment_reduces_debt(self):
        members = make_members("a", "b", "c")
        expenses = [make_expense("e1", "a", "90", {"a": "30", "b": "30", "c": "30"})]
        settlements = [
            RecordedSettlement(
                group_id="g1", from_member_id="b", to_member_id="a", amount=Decimal("30")
            )
        ]

        balances = compute_balances(members, expenses, settlements=settlements)

        assert nets(balances) == {
            "a": Decimal("30"),
            "b": Decimal("0"),
            "c": Decimal("-30"),
        }
        assert total_balance(balances) == Decimal("0")


class TestIsSettled:
    def test_within_epsilon(self):
        balances = compute_balances(make_members("a", "b"), [])
        balances["a"].net_amount = Decimal("0.004")
        balances["b"].net_amount = Decimal("-0.004")

        assert is_settled(balances, EPSILON)

    def test_outside_epsilon(self):
        balances = compute_balances(make_members("a", "b"), [])
        balances["a"].net_amount = Decimal("0.01")
        balances["b"].net_amount = Decimal("-0.01")

        assert not is_settled(balances, EPSILON)

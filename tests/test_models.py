"""Tests for expense split payload encoding and decoding."""

from decimal import Decimal

import pytest
from pydantic import ValidationError

from billbreak.exceptions import MalformedSplitDataError
from billbreak.models import Expense, ExpenseDetails, Split, encode_splits


class TestExpenseSplits:
    """Tests for Expense.get_splits and Expense.create."""

    def test_create_encodes_splits_in_order(self):
        splits = [
            Split(member_id="b", owed_amount=Decimal("12.50")),
            Split(member_id="a", owed_amount=Decimal("7.50")),
        ]

        expense = Expense.create(
            group_id="g1", payer_id="a", total_amount=Decimal("20"), splits=splits
        )

        assert expense.get_splits() == splits

    def test_legacy_payload_keys(self):
        """Payloads written as {user_id, amount} still decode."""
        expense = Expense(
            id="e1",
            group_id="g1",
            payer_id="a",
            total_amount=Decimal("10"),
            split_data='[{"user_id": "a", "amount": 4.5}, {"user_id": "b", "amount": 5.5}]',
        )

        splits = expense.get_splits()

        assert [(s.member_id, s.owed_amount) for s in splits] == [
            ("a", Decimal("4.5")),
            ("b", Decimal("5.5")),
        ]

    def test_empty_payload_has_no_splits(self):
        expense = Expense(group_id="g1", payer_id="a", total_amount=Decimal("10"))

        assert expense.get_splits() == []

    @pytest.mark.parametrize(
        "payload",
        [
            "not json",
            '{"member_id": "a", "owed_amount": "1"}',
            '[{"member_id": "a"}]',
            '[{"member_id": "a", "owed_amount": "lots"}]',
        ],
    )
    def test_malformed_payload_raises_with_expense_id(self, payload):
        expense = Expense(
            id="bad",
            group_id="g1",
            payer_id="a",
            total_amount=Decimal("10"),
            split_data=payload,
        )

        with pytest.raises(MalformedSplitDataError) as exc_info:
            expense.get_splits()

        assert exc_info.value.expense_id == "bad"
        assert "bad" in str(exc_info.value)

    def test_encode_splits_round_trip(self):
        splits = [Split(member_id="a", owed_amount=Decimal("33.33"))]

        assert Expense(
            group_id="g1",
            payer_id="a",
            total_amount=Decimal("33.33"),
            split_data=encode_splits(splits),
        ).get_splits() == splits


class TestModelValidation:
    def test_expense_total_must_be_positive(self):
        with pytest.raises(ValidationError):
            Expense(group_id="g1", payer_id="a", total_amount=Decimal("0"))

    def test_split_owed_amount_non_negative(self):
        with pytest.raises(ValidationError):
            Split(member_id="a", owed_amount=Decimal("-1"))

    def test_expense_ids_are_generated(self):
        first = Expense(group_id="g1", payer_id="a", total_amount=Decimal("1"))
        second = Expense(group_id="g1", payer_id="a", total_amount=Decimal("1"))

        assert first.id != second.id

    def test_expense_details_requires_amount(self):
        with pytest.raises(ValidationError):
            ExpenseDetails(amount=Decimal("0"), description="lunch")

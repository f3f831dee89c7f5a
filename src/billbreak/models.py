"""Pydantic domain models for BillBreak."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import AliasChoices, BaseModel, Field, TypeAdapter, ValidationError

from .exceptions import MalformedSplitDataError

ExpenseCategory = Literal[
    "food", "transport", "entertainment", "utilities", "shopping", "other"
]


def generate_id() -> str:
    """Generate an opaque identifier for ledger records."""
    return uuid.uuid4().hex


# ============================================================================
# Ledger Models
# ============================================================================


class Member(BaseModel):
    """A person who can pay for or share in expenses."""

    id: str
    display_name: str


class Group(BaseModel):
    """A group of members sharing expenses."""

    id: str = Field(default_factory=generate_id)
    name: str
    created_at: datetime = Field(default_factory=datetime.now)


class Split(BaseModel):
    """Portion of an expense's cost attributed to one member.

    Also accepts the legacy ``{"user_id", "amount"}`` payload keys.
    """

    member_id: str = Field(validation_alias=AliasChoices("member_id", "user_id"))
    owed_amount: Decimal = Field(
        ge=0, validation_alias=AliasChoices("owed_amount", "amount")
    )


_SPLIT_LIST = TypeAdapter(list[Split])


class Expense(BaseModel):
    """An expense paid by one member and shared according to its splits.

    Splits are stored as a JSON payload (``split_data``), the same way the
    ledger persists them. Nothing requires the splits to add up to
    ``total_amount``; whoever builds the record decides that, including
    whether the payer carries a split of their own.
    """

    id: str = Field(default_factory=generate_id)
    group_id: str
    payer_id: str
    total_amount: Decimal = Field(gt=0)
    split_data: str = "[]"
    category: ExpenseCategory = "other"
    description: str = ""
    date: datetime = Field(default_factory=datetime.now)

    @classmethod
    def create(cls, *, splits: list[Split], **fields) -> "Expense":
        """Build an expense, encoding the given splits into its payload."""
        return cls(split_data=encode_splits(splits), **fields)

    def get_splits(self) -> list[Split]:
        """Decode the split payload (in stored order)."""
        try:
            return _SPLIT_LIST.validate_json(self.split_data)
        except ValidationError as e:
            raise MalformedSplitDataError(
                self.id,
                f"Split data for expense {self.id} could not be decoded: "
                f"{e.error_count()} error(s), first: {e.errors()[0]['msg']}",
            ) from e


def encode_splits(splits: list[Split]) -> str:
    """Encode splits into the JSON payload stored on an expense."""
    return _SPLIT_LIST.dump_json(splits).decode()


class RecordedSettlement(BaseModel):
    """A payment that was actually made between two members."""

    id: str = Field(default_factory=generate_id)
    group_id: str
    from_member_id: str  # Member who pays
    to_member_id: str  # Member who receives
    amount: Decimal = Field(gt=0)
    created_at: datetime = Field(default_factory=datetime.now)


# ============================================================================
# Derived Models
# ============================================================================


class Balance(BaseModel):
    """A member's net position: positive is owed money, negative owes money."""

    member_id: str
    display_name: str
    net_amount: Decimal = Decimal("0")


class SettlementTransaction(BaseModel):
    """A single suggested payment from a debtor to a creditor."""

    from_member_id: str
    to_member_id: str
    amount: Decimal = Field(gt=0)
    from_name: str = ""
    to_name: str = ""


class BalanceReport(BaseModel):
    """Balances of a group together with the payments that would settle them."""

    group_id: str
    balances: list[Balance]
    settlements: list[SettlementTransaction]


# ============================================================================
# Extraction Models
# ============================================================================


class ExpenseDetails(BaseModel):
    """Expense information extracted from free text."""

    amount: Decimal = Field(gt=0)
    description: str = Field(min_length=1)
    category: ExpenseCategory = "other"
    split_with: list[str] = Field(default_factory=list)

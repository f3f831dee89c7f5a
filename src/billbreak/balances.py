"""Net balance computation for a group's expenses."""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal
from typing import Literal

from .exceptions import MalformedSplitDataError, UnknownGroupMemberError
from .models import Balance, Expense, Member, RecordedSettlement

logger = logging.getLogger(__name__)

ErrorPolicy = Literal["raise", "warn", "ignore"]


def _report_unknown_member(
    policy: ErrorPolicy, member_id: str, source_id: str, role: str
) -> None:
    """Apply the unknown-member policy to a dropped contribution."""
    if policy == "raise":
        raise UnknownGroupMemberError(member_id, source_id)
    if policy == "warn":
        logger.warning(
            f"Dropping {role} contribution of unknown member {member_id} "
            f"(record {source_id})"
        )


def compute_balances(
    members: Iterable[Member],
    expenses: Iterable[Expense],
    *,
    settlements: Iterable[RecordedSettlement] = (),
    unknown_member_policy: ErrorPolicy = "warn",
    malformed_split_policy: ErrorPolicy = "raise",
) -> dict[str, Balance]:
    """
    Compute each member's net balance from a snapshot of group expenses.

    The payer of an expense is credited with its total; each split member is
    debited their owed amount. Recorded settlement payments move the payer's
    balance up and the receiver's down. Contributions from members outside
    the roster are dropped according to ``unknown_member_policy``, which
    means the zero-sum property only holds when the roster is complete.

    Args:
        members: The group roster
        expenses: The group's expenses
        settlements: Payments already made between members
        unknown_member_policy: What to do when a record names a member that is
            not in the roster ('raise', 'warn' or 'ignore')
        malformed_split_policy: What to do when an expense's split payload
            cannot be decoded ('raise' propagates, 'warn'/'ignore' skip the
            whole expense)

    Returns:
        New mapping of member id to Balance, ordered by member id

    Raises:
        MalformedSplitDataError: If a split payload is malformed and the
            policy is 'raise'
        UnknownGroupMemberError: If a record names an unknown member and the
            policy is 'raise'
    """
    balances = {
        member.id: Balance(member_id=member.id, display_name=member.display_name)
        for member in sorted(members, key=lambda m: m.id)
    }

    if not balances:
        logger.debug("Empty roster, no balances to compute")
        return {}

    expense_count = 0
    for expense in expenses:
        try:
            splits = expense.get_splits()
        except MalformedSplitDataError:
            if malformed_split_policy == "raise":
                raise
            if malformed_split_policy == "warn":
                logger.warning(
                    f"Skipping expense {expense.id}: split data could not be decoded"
                )
            continue

        # Payer gets credit
        if expense.payer_id in balances:
            balances[expense.payer_id].net_amount += expense.total_amount
        else:
            _report_unknown_member(
                unknown_member_policy, expense.payer_id, expense.id, "payer"
            )

        # Each split member owes their share
        for split in splits:
            if split.member_id in balances:
                balances[split.member_id].net_amount -= split.owed_amount
            else:
                _report_unknown_member(
                    unknown_member_policy, split.member_id, expense.id, "split"
                )

        expense_count += 1

    for settlement in settlements:
        if settlement.from_member_id in balances:
            balances[settlement.from_member_id].net_amount += settlement.amount
        else:
            _report_unknown_member(
                unknown_member_policy,
                settlement.from_member_id,
                settlement.id,
                "settlement payer",
            )

        if settlement.to_member_id in balances:
            balances[settlement.to_member_id].net_amount -= settlement.amount
        else:
            _report_unknown_member(
                unknown_member_policy,
                settlement.to_member_id,
                settlement.id,
                "settlement receiver",
            )

    logger.debug(
        f"Computed balances for {len(balances)} members from {expense_count} expenses"
    )

    return balances


def total_balance(balances: Mapping[str, Balance] | Iterable[Balance]) -> Decimal:
    """Sum of all net amounts. Zero (within tolerance) for a complete roster."""
    values = balances.values() if isinstance(balances, Mapping) else balances
    return sum((b.net_amount for b in values), Decimal("0"))


def is_settled(
    balances: Mapping[str, Balance] | Iterable[Balance], epsilon: Decimal
) -> bool:
    """Check whether every balance is within epsilon of zero."""
    values = balances.values() if isinstance(balances, Mapping) else balances
    return all(abs(b.net_amount) <= epsilon for b in values)

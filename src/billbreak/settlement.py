"""
Settlement planning with a greedy minimum-cash-flow heuristic.

Each step pays the largest outstanding debt into the largest outstanding
credit. Every step zeroes at least one of the two balances, so a group of n
members needs at most n - 1 payments. This is an approximation: it does not
guarantee the fewest possible payments.
"""

import logging
from collections.abc import Iterable, Mapping
from decimal import Decimal

from .models import Balance, SettlementTransaction

logger = logging.getLogger(__name__)

DEFAULT_EPSILON = Decimal("0.005")  # Half a cent


def _working_copy(
    balances: Mapping[str, Balance] | Iterable[Balance],
) -> list[Balance]:
    """Copy balances, sorted by member id so ties resolve to the smallest id."""
    values = balances.values() if isinstance(balances, Mapping) else balances
    return sorted((b.model_copy() for b in values), key=lambda b: b.member_id)


def _top_creditor(working: list[Balance]) -> Balance:
    """Largest balance; first (smallest id) wins ties."""
    best = working[0]
    for balance in working[1:]:
        if balance.net_amount > best.net_amount:
            best = balance
    return best


def _top_debtor(working: list[Balance]) -> Balance:
    """Most negative balance; first (smallest id) wins ties."""
    best = working[0]
    for balance in working[1:]:
        if balance.net_amount < best.net_amount:
            best = balance
    return best


def plan_settlements(
    balances: Mapping[str, Balance] | Iterable[Balance],
    epsilon: Decimal = DEFAULT_EPSILON,
) -> list[SettlementTransaction]:
    """
    Plan an ordered list of payments that brings every balance to zero.

    The caller's balances are not modified. Output depends only on the
    member ids and amounts, never on input order.

    Args:
        balances: Balances to settle (sequence or mapping of member id to Balance)
        epsilon: Amounts within this distance of zero count as settled

    Returns:
        Payments in the order they were planned

    Raises:
        ValueError: If epsilon is negative
    """
    if epsilon < 0:
        raise ValueError(f"epsilon must not be negative, got {epsilon}")

    working = _working_copy(balances)
    transactions: list[SettlementTransaction] = []

    max_iterations = max(len(working) - 1, 0)

    for _ in range(max_iterations):
        creditor = _top_creditor(working)
        if creditor.net_amount <= epsilon:
            break

        debtor = _top_debtor(working)
        if debtor.net_amount >= -epsilon:
            break

        amount = min(creditor.net_amount, -debtor.net_amount)

        transactions.append(
            SettlementTransaction(
                from_member_id=debtor.member_id,
                to_member_id=creditor.member_id,
                amount=amount,
                from_name=debtor.display_name,
                to_name=creditor.display_name,
            )
        )

        creditor.net_amount -= amount
        debtor.net_amount += amount

    residual = [b for b in working if abs(b.net_amount) > epsilon]
    if residual:
        # Only reachable when the input does not net to zero
        logger.warning(
            f"{len(residual)} balance(s) left unsettled after "
            f"{len(transactions)} payments: "
            + ", ".join(f"{b.member_id}={b.net_amount}" for b in residual)
        )

    logger.debug(f"Planned {len(transactions)} settlement payments")

    return transactions


def apply_settlements(
    balances: Mapping[str, Balance] | Iterable[Balance],
    transactions: Iterable[SettlementTransaction],
) -> dict[str, Balance]:
    """
    Return the balances that result from making the given payments.

    Args:
        balances: Starting balances (not modified)
        transactions: Payments to apply

    Returns:
        New mapping of member id to Balance
    """
    result = {b.member_id: b for b in _working_copy(balances)}
    for transaction in transactions:
        result[transaction.from_member_id].net_amount += transaction.amount
        result[transaction.to_member_id].net_amount -= transaction.amount
    return result

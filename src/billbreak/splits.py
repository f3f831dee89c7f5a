"""Helpers for building cent-exact expense splits."""

import logging
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from .models import Split

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def to_cents(amount: Decimal) -> Decimal:
    """Quantize an amount to whole cents, rounding half up."""
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def compute_equal_splits(total: Decimal, member_ids: list[str]) -> list[Split]:
    """
    Split a total equally between members, to the cent.

    Steps:
    1. Give every member the total divided by the member count, rounded down
       to the cent
    2. Compute residual = total - sum of shares
    3. Hand the residual out one cent at a time, in the given member order

    Args:
        total: Expense total (must have at most cent precision)
        member_ids: Members sharing the expense, in order; duplicates ignored

    Returns:
        One split per member, summing exactly to the total

    Raises:
        ValueError: If there are no members or the total has sub-cent precision
    """
    ordered = list(dict.fromkeys(member_ids))
    if not ordered:
        raise ValueError("Cannot split an expense between zero members")
    if to_cents(total) != total:
        raise ValueError(f"Total {total} has more than cent precision")

    share = (total / len(ordered)).quantize(CENT, rounding=ROUND_DOWN)
    amounts = [share] * len(ordered)

    residual_cents = int((total - share * len(ordered)) / CENT)
    for i in range(residual_cents):
        amounts[i] += CENT

    if residual_cents:
        logger.debug(
            f"Distributed {residual_cents} leftover cent(s) of {total} "
            f"across {len(ordered)} members"
        )

    splits = [
        Split(member_id=member_id, owed_amount=amount)
        for member_id, amount in zip(ordered, amounts, strict=True)
    ]

    assert sum(s.owed_amount for s in splits) == total, "Split adjustment failed"

    return splits

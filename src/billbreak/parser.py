"""Keyword-based expense extraction, used when the AI extractor is unavailable."""

import logging
import re
from decimal import Decimal, InvalidOperation

from .exceptions import ExpenseParseError
from .models import ExpenseCategory, ExpenseDetails

logger = logging.getLogger(__name__)

MAX_DESCRIPTION_LENGTH = 100

_NUMBER_RE = re.compile(r"\d+(?:\.\d+)?")

# Checked in order; first category with a matching keyword wins
# fmt: off
CATEGORY_KEYWORDS: dict[ExpenseCategory, tuple[str, ...]] = {
    "food": (
        "food", "lunch", "dinner", "breakfast", "eat", "restaurant",
        "pizza", "burger", "coffee", "tea",
    ),
    "transport": (
        "taxi", "uber", "bus", "train", "cab", "auto", "ride", "fuel",
        "petrol", "gas",
    ),
    "entertainment": (
        "movie", "concert", "ticket", "show", "game", "gaming", "play", "fun",
    ),
    "utilities": (
        "bill", "electric", "water", "internet", "phone", "wifi", "rent",
        "utility",
    ),
    "shopping": (
        "shopping", "buy", "clothes", "shirt", "pants", "shoes", "shop",
        "purchase",
    ),
}
# fmt: on


def extract_json(text: str) -> str:
    """
    Extract the outermost JSON object from a model reply.

    Returns the text unchanged if it has no ``{...}`` span.
    """
    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end == -1 or start > end:
        return text
    return text[start : end + 1]


def determine_category(text: str) -> ExpenseCategory:
    """Guess an expense category from keywords in the text."""
    lower = text.lower()
    for category, keywords in CATEGORY_KEYWORDS.items():
        if any(keyword in lower for keyword in keywords):
            return category
    return "other"


def simple_parse_expense(text: str) -> ExpenseDetails:
    """
    Parse expense details without AI.

    The first number in the text is the amount, the category comes from
    keywords and the description is the trimmed text.

    Args:
        text: Free-text expense description, e.g. "paid 45.50 for lunch"

    Returns:
        Extracted expense details (split_with is always empty)

    Raises:
        ExpenseParseError: If no positive amount can be found
    """
    match = _NUMBER_RE.search(text)
    try:
        amount = Decimal(match.group(0)) if match else Decimal("0")
    except InvalidOperation as e:
        raise ExpenseParseError(f"Could not extract valid amount from: {text}") from e

    if amount <= 0:
        raise ExpenseParseError(f"Could not extract valid amount from: {text}")

    description = text.strip()[:MAX_DESCRIPTION_LENGTH]
    category = determine_category(text)

    logger.debug(f"Parsed '{description}' -> {amount} ({category})")

    return ExpenseDetails(
        amount=amount,
        description=description,
        category=category,
        split_with=[],
    )

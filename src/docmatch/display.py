"""
Display formatting for amounts and scores.

This is the only module allowed to call a currency converter; scoring
always compares raw minor-unit integers.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Callable, Optional

logger = logging.getLogger(__name__)

# (amount_minor, currency) -> (amount_minor, currency) in the display currency
CurrencyConverter = Callable[[int, str], "tuple[int, str]"]


def format_amount(
    amount_minor: Optional[int],
    currency: Optional[str] = "EUR",
    converter: Optional[CurrencyConverter] = None,
) -> str:
    """
    Format a minor-unit amount for display, e.g. -4999 -> "-49.99 EUR".

    With a converter the amount is shown in the converter's currency. A
    failing converter falls back to the original currency.
    """
    if amount_minor is None or isinstance(amount_minor, bool):
        return ""

    amount, code = int(amount_minor), currency or ""
    if converter is not None and code:
        try:
            amount, code = converter(amount, code)
        except (ValueError, KeyError, ArithmeticError) as e:
            logger.warning(f"Currency conversion {code} failed, showing original: {e}")

    value = (Decimal(amount) / 100).quantize(Decimal("0.01"))
    text = f"{value:,.2f}"
    return f"{text} {code}".strip()


def format_score(score: float, label: Optional[str] = None) -> str:
    """Format a 0-1 score as a percentage with optional label, e.g. "82% (Strong)"."""
    percent = int(round((score or 0.0) * 100))
    return f"{percent}% ({label})" if label else f"{percent}%"

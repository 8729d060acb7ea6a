"""
Text normalization for matching.

Turns partner names, booking texts, filenames and email content into
comparable tokens and amount renderings. Every function is total: missing or
unparseable input yields an empty result, never an exception.
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Iterable, Optional

# Receipt/invoice keywords (multilingual)
RECEIPT_KEYWORDS = (
    "invoice",
    "rechnung",
    "receipt",
    "beleg",
    "quittung",
    "faktura",
    "bon",
    "bill",
)

_STYLE_BLOCK = re.compile(r"<style[^>]*>[\s\S]*?</style>", re.IGNORECASE)
_SCRIPT_BLOCK = re.compile(r"<script[^>]*>[\s\S]*?</script>", re.IGNORECASE)
_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"\s+")
_NON_TOKEN = re.compile(r"[^a-z0-9]+")
_EMAIL_DOMAIN = re.compile(r"@([a-z0-9.-]+\.[a-z]{2,})", re.IGNORECASE)

# Bank statement noise, applied in order
_PAYMENT_PREFIX = re.compile(r"^(pp\*|sq\*|paypal\s*\*|ec\s+|sepa\s+|lastschrift\s+)", re.IGNORECASE)
_DOMAIN_SUFFIX = re.compile(r"\.(com|de|at|ch|eu|net|org|io)(/.*)?$", re.IGNORECASE)
_LEGAL_SUFFIX = re.compile(
    r"\s+(gmbh|ag|inc|llc|ltd|ug|sagt danke|marketplace|lastschrift|gutschrift|ab|bv|nv)\b.*$",
    re.IGNORECASE,
)
_NUMERIC_TAIL = re.compile(r"\s+\d{4,}.*$")
_MASKED_CARD = re.compile(r"\d{6,}\*+\d+")
_ASTERISK_RUN = re.compile(r"\*{3,}")
_NON_LETTER = re.compile(r"[\W\d_]+")

MIN_TOKEN_LENGTH = 3


def strip_markup(html: Optional[str]) -> str:
    """Remove style/script blocks and tags from HTML and collapse whitespace."""
    if not html:
        return ""
    text = _STYLE_BLOCK.sub(" ", html)
    text = _SCRIPT_BLOCK.sub(" ", text)
    text = _TAG.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def tokenize(text: Optional[str]) -> list[str]:
    """
    Split text into lowercase alphanumeric tokens of at least 3 characters.

    Tokens are deduplicated and keep first-seen order. They are meant for
    containment checks against candidate text, not for exact set equality.
    """
    if not text:
        return []
    tokens: list[str] = []
    seen: set[str] = set()
    for token in _NON_TOKEN.sub(" ", text.lower()).split():
        if len(token) >= MIN_TOKEN_LENGTH and token not in seen:
            seen.add(token)
            tokens.append(token)
    return tokens


def amount_variants(amount_minor: Optional[int]) -> list[str]:
    """
    Render an amount in minor units the ways a document might print it.

    Example for 123456: "1234.56", "1234,56", "1,234.56", "1.234,56".
    The sign is dropped: the same invoice can be a debit or a credit.
    """
    if amount_minor is None or isinstance(amount_minor, bool):
        return []
    try:
        amount = (abs(Decimal(int(amount_minor))) / 100).quantize(Decimal("0.01"))
    except (TypeError, ValueError, ArithmeticError):
        return []

    fixed = f"{amount:.2f}"
    with_comma = fixed.replace(".", ",")
    en_us = f"{amount:,.2f}"
    de_de = en_us.replace(",", "_").replace(".", ",").replace("_", ".")

    variants: list[str] = []
    for variant in (fixed, with_comma, en_us, de_de):
        if variant not in variants:
            variants.append(variant)
    return variants


def clean_partner_phrase(text: Optional[str]) -> str:
    """
    Reduce a noisy bank partner field to a single search keyword.

    "PP*NETFLIX.COM" -> "netflix", "REWE SAGT DANKE 12345" -> "rewe".
    Returns the first remaining word of 3+ letters, or "".
    """
    if not text:
        return ""
    cleaned = text.strip().lower()
    cleaned = _PAYMENT_PREFIX.sub("", cleaned)
    cleaned = _DOMAIN_SUFFIX.sub("", cleaned)
    cleaned = _LEGAL_SUFFIX.sub("", cleaned)
    cleaned = _NUMERIC_TAIL.sub("", cleaned)
    cleaned = _MASKED_CARD.sub("", cleaned)
    cleaned = _ASTERISK_RUN.sub("", cleaned)
    cleaned = _NON_LETTER.sub(" ", cleaned)

    for word in cleaned.split():
        if len(word) >= MIN_TOKEN_LENGTH:
            return word
    return ""


def extract_email_domain(address: Optional[str]) -> Optional[str]:
    """Get the lowercased domain of an email address, if any."""
    if not address:
        return None
    match = _EMAIL_DOMAIN.search(address.lower())
    return match.group(1) if match else None


def contains_any(haystack: str, needles: Iterable[str]) -> bool:
    """Check whether any non-empty needle is a substring of haystack."""
    if not haystack:
        return False
    return any(needle and needle in haystack for needle in needles)

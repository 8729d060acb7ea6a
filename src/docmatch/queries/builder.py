"""
Search query derivation.

Builds the default free-text query for an anchor (learned pattern, then AI
suggestion, then a cleaned partner phrase) and expands a base query into
provider-specific variants for better recall.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional, Protocol

from ..normalizer import clean_partner_phrase
from ..schemas import Anchor, LearnedPattern, PartnerProfile

logger = logging.getLogger(__name__)

SOURCE_LEARNED = "learned"
SOURCE_AI = "ai"
SOURCE_SIMPLE = "simple"
SOURCE_NONE = "none"

MIN_SIMPLE_QUERY_LENGTH = 2

_BARE_DOMAIN = re.compile(r"^[a-z0-9.-]+\.[a-z]{2,}$", re.IGNORECASE)
_BARE_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_DIGIT = re.compile(r"\d")
# Short prefix + optional dash + 3+ digits + optional ./ suffix: INV-2024012, 2024/00451
_FILENAME_TOKEN = re.compile(r"\b[A-Za-z]{0,5}-?\d{3,}(?:[./]\d+)?\b", re.ASCII)
_UNSAFE_TOKEN_CHARS = re.compile(r"[^A-Za-z0-9._-]")
_WHITESPACE = re.compile(r"\s+")


class QueryGenerator(Protocol):
    """Anything that can suggest a search keyword for an anchor."""

    def generate_query(
        self, anchor: Anchor, partner: Optional[PartnerProfile] = None
    ) -> Optional[str]:
        ...


@dataclass(frozen=True)
class QuerySuggestion:
    """Default query for an anchor and where it came from."""

    query: str
    source: str

    def to_dict(self) -> dict:
        return {"query": self.query, "source": self.source}


def select_learned_pattern(
    patterns: list[LearnedPattern],
    partner_id: Optional[str] = None,
) -> Optional[LearnedPattern]:
    """
    Pick the most useful learned pattern.

    Highest usage_count wins, ties go to the highest confidence, remaining
    ties to the first pattern in input order. Patterns belonging to a
    different partner are skipped when both sides carry a partner id.
    """
    best: Optional[LearnedPattern] = None
    for pattern in patterns or []:
        if not pattern.pattern or not pattern.pattern.strip():
            continue
        if partner_id and pattern.partner_id and pattern.partner_id != partner_id:
            continue
        if best is None or (pattern.usage_count, pattern.confidence) > (
            best.usage_count,
            best.confidence,
        ):
            best = pattern
    return best


def _simple_query(anchor: Anchor, partner: Optional[PartnerProfile]) -> str:
    sources = (
        partner.name if partner else None,
        anchor.partner,
        anchor.description,
        anchor.reference,
    )
    for source in sources:
        cleaned = clean_partner_phrase(source)
        if len(cleaned) >= MIN_SIMPLE_QUERY_LENGTH:
            return cleaned
    return ""


def build_default_query(
    anchor: Optional[Anchor],
    learned_patterns: Optional[list[LearnedPattern]] = None,
    partner: Optional[PartnerProfile] = None,
    query_generator: Optional[QueryGenerator] = None,
) -> QuerySuggestion:
    """
    Build the default search query for an anchor.

    Order of preference:
    1. Best learned pattern for the partner (source "learned")
    2. AI suggestion, if a generator is supplied and answers (source "ai")
    3. Cleaned partner phrase from partner name, anchor partner,
       description, reference (source "simple")
    4. Empty query (source "none")
    """
    if anchor is None:
        return QuerySuggestion(query="", source=SOURCE_NONE)

    learned = select_learned_pattern(learned_patterns or [], anchor.partner_id)
    if learned is not None:
        return QuerySuggestion(query=learned.pattern.strip(), source=SOURCE_LEARNED)

    if query_generator is not None:
        try:
            suggestion = query_generator.generate_query(anchor, partner)
        except Exception as e:
            logger.warning(f"Query generator failed, using simple query: {e}")
            suggestion = None
        if suggestion and suggestion.strip():
            return QuerySuggestion(query=suggestion.strip(), source=SOURCE_AI)

    simple = _simple_query(anchor, partner)
    if simple:
        return QuerySuggestion(query=simple, source=SOURCE_SIMPLE)

    return QuerySuggestion(query="", source=SOURCE_NONE)


def _filename_tokens(source: str) -> list[str]:
    tokens: list[str] = []
    for text in (source, _WHITESPACE.sub("", source)):
        for match in _FILENAME_TOKEN.findall(text):
            token = _UNSAFE_TOKEN_CHARS.sub("", match)
            if token and token not in tokens:
                tokens.append(token)
    return tokens


def build_search_queries(
    base_query: Optional[str],
    anchor: Optional[Anchor] = None,
    include_anchor_tokens: bool = False,
) -> list[str]:
    """
    Expand a base query into provider search variants.

    Returns the base query, a "from:" variant when the query is a bare
    domain or email address, then "filename:" variants for reference-like
    tokens. Only sources containing a digit are mined for tokens.
    """
    queries: list[str] = []

    def add(query: str) -> None:
        if query and query not in queries:
            queries.append(query)

    base = (base_query or "").strip()
    add(base)

    if base and ":" not in base and (_BARE_DOMAIN.match(base) or _BARE_EMAIL.match(base)):
        add(f"from:{base}")

    sources = [base]
    if include_anchor_tokens and anchor is not None:
        sources.extend([anchor.description or "", anchor.reference or ""])

    for source in sources:
        if not source or not _DIGIT.search(source):
            continue
        for token in _filename_tokens(source):
            add(f"filename:{token}")

    return queries


def _gmail_date(value: date) -> str:
    return value.strftime("%Y/%m/%d")


def build_provider_query(
    query: Optional[str],
    has_attachments: bool = False,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    sender: Optional[str] = None,
) -> str:
    """
    Build a Gmail search string.

    Gmail's before: operator is exclusive, so date_to is pushed one day
    forward to keep the range inclusive.
    """
    parts: list[str] = []
    if query and query.strip():
        parts.append(query.strip())
    if sender:
        parts.append(f"from:{sender}")
    if date_from is not None:
        parts.append(f"after:{_gmail_date(_as_date(date_from))}")
    if date_to is not None:
        parts.append(f"before:{_gmail_date(_as_date(date_to) + timedelta(days=1))}")
    if has_attachments:
        parts.append("has:attachment")
    return " ".join(parts)


def _as_date(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value

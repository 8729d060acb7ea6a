"""
Partner knowledge fed into scoring and query building.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class PatternSource(str, Enum):
    """Where a learned search pattern succeeded."""

    LOCAL = "local"
    GMAIL = "gmail"


@dataclass
class LearnedPattern:
    """A search string that previously led to a manual connection."""

    pattern: str
    source_type: PatternSource = PatternSource.LOCAL
    integration_id: str | None = None
    usage_count: int = 1
    confidence: float = 0.0
    partner_id: str | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "LearnedPattern":
        raw_source = data.get("source_type") or data.get("sourceType") or PatternSource.LOCAL.value
        try:
            source = PatternSource(raw_source)
        except ValueError:
            source = PatternSource.LOCAL
        return cls(
            pattern=data.get("pattern") or "",
            source_type=source,
            integration_id=data.get("integration_id") or data.get("integrationId"),
            usage_count=int(data.get("usage_count", data.get("usageCount", 1)) or 0),
            confidence=float(data.get("confidence", 0.0) or 0.0),
            partner_id=data.get("partner_id") or data.get("partnerId"),
        )

    def to_dict(self) -> dict:
        return {
            "pattern": self.pattern,
            "source_type": self.source_type.value,
            "integration_id": self.integration_id,
            "usage_count": self.usage_count,
            "confidence": self.confidence,
            "partner_id": self.partner_id,
        }


@dataclass
class PartnerProfile:
    """Known partner assigned to the anchor."""

    id: str | None = None
    name: str | None = None
    email_domains: list[str] = field(default_factory=list)

    @property
    def known_domains(self) -> set[str]:
        return {d.strip().lower() for d in self.email_domains if d and d.strip()}

    @classmethod
    def from_dict(cls, data: dict) -> "PartnerProfile":
        return cls(
            id=data.get("id"),
            name=data.get("name"),
            email_domains=list(data.get("email_domains") or data.get("emailDomains") or []),
        )


@dataclass
class MatchContext:
    """
    Options for scoring and ranking.

    Carries the anchor's partner (for the display name and known sender
    domains) and the learned patterns stored for that partner.
    """

    partner: PartnerProfile | None = None
    learned_patterns: list[LearnedPattern] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict | None) -> "MatchContext":
        if not data:
            return cls()
        partner_data = data.get("partner")
        return cls(
            partner=PartnerProfile.from_dict(partner_data) if partner_data else None,
            learned_patterns=[
                LearnedPattern.from_dict(p) for p in data.get("learned_patterns") or []
            ],
        )

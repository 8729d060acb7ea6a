"""
In-memory learned pattern store.
"""

from __future__ import annotations

import logging
import threading
from typing import Optional

from ..schemas import LearnedPattern, PatternSource

logger = logging.getLogger(__name__)

MIN_PATTERN_LENGTH = 2
INITIAL_CONFIDENCE = 0.6
CONFIDENCE_STEP = 0.1


class InMemoryPatternStore:
    """
    Learned patterns per partner.

    A pattern is identified by its lowercased text, source type and
    integration id. Recording a success on a known pattern increments its
    usage count and raises its confidence by CONFIDENCE_STEP, up to 1.0.
    """

    def __init__(self, patterns: Optional[list[LearnedPattern]] = None):
        self._patterns: dict[str, list[LearnedPattern]] = {}
        self._lock = threading.Lock()
        for pattern in patterns or []:
            self.add(pattern)

    def add(self, pattern: LearnedPattern) -> None:
        """Store a pattern as-is. Patterns without a partner id are ignored."""
        if not pattern.partner_id:
            logger.debug("Ignoring learned pattern without partner id")
            return
        with self._lock:
            self._patterns.setdefault(pattern.partner_id, []).append(pattern)

    def get_patterns(self, partner_id: Optional[str]) -> list[LearnedPattern]:
        """Patterns for a partner, in insertion order."""
        if not partner_id:
            return []
        with self._lock:
            return list(self._patterns.get(partner_id, []))

    def record_success(
        self,
        partner_id: str,
        pattern: str,
        source_type: PatternSource = PatternSource.LOCAL,
        integration_id: Optional[str] = None,
    ) -> Optional[LearnedPattern]:
        """
        Remember that a search led to a connection.

        Args:
            partner_id: Partner the connected transaction belongs to
            pattern: The search string that found the document
            source_type: Where the search ran
            integration_id: Mail account for gmail patterns

        Returns:
            The created or updated pattern, or None if skipped
        """
        text = (pattern or "").strip()
        if not partner_id or len(text) < MIN_PATTERN_LENGTH:
            logger.debug(f"Skipping pattern {text!r}: too short or no partner")
            return None

        normalized = text.lower()
        with self._lock:
            patterns = self._patterns.setdefault(partner_id, [])
            for existing in patterns:
                if (
                    existing.pattern.strip().lower() == normalized
                    and existing.source_type == source_type
                    and existing.integration_id == integration_id
                ):
                    existing.usage_count += 1
                    existing.confidence = min(
                        1.0, round((existing.confidence or INITIAL_CONFIDENCE) + CONFIDENCE_STEP, 4)
                    )
                    logger.info(
                        f"Pattern {text!r} for partner {partner_id} used {existing.usage_count} times"
                    )
                    return existing

            learned = LearnedPattern(
                pattern=text,
                source_type=source_type,
                integration_id=integration_id,
                usage_count=1,
                confidence=INITIAL_CONFIDENCE,
                partner_id=partner_id,
            )
            patterns.append(learned)
            logger.info(f"Learned new {source_type.value} pattern {text!r} for partner {partner_id}")
            return learned

    def to_dicts(self) -> list[dict]:
        with self._lock:
            return [p.to_dict() for patterns in self._patterns.values() for p in patterns]

"""Matching engine for scoring candidate documents against an anchor.

Scoring is a sum of independent, named signals followed by a global date
decay and a hard cap. Every point of confidence traces back to a signal and a
human-readable reason, which the UI shows in tooltips. One engine covers all
pairings (transaction or file against local files, emails or attachments);
the candidate variant decides which signals can fire.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..config import ScoringConfig
from ..normalizer import (
    RECEIPT_KEYWORDS,
    amount_variants,
    contains_any,
    extract_email_domain,
    tokenize,
)
from ..schemas import (
    Anchor,
    Candidate,
    CandidateKind,
    LearnedPattern,
    MatchContext,
    PatternSource,
    day_distance,
)

logger = logging.getLogger(__name__)

LABEL_STRONG = "Strong"
LABEL_LIKELY = "Likely"


@dataclass
class SignalScore:
    """Individual signal contribution to a match score."""

    signal: str
    score: float
    weight: float
    detail: str

    @property
    def weighted_score(self) -> float:
        """Get the weighted score for this signal."""
        return self.score * self.weight


@dataclass
class ScoreResult:
    """Result of scoring one candidate against one anchor."""

    candidate_key: str
    score: float
    label: str | None = None
    reasons: list[str] = field(default_factory=list)
    signals: list[SignalScore] = field(default_factory=list)
    date_multiplier: float = 1.0
    raw_score: float = 0.0  # Sum of signals before decay, penalty and cap

    @property
    def score_percent(self) -> int:
        """Score as a 0-100 percentage for display."""
        return int(round(self.score * 100))

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "key": self.candidate_key,
            "score": self.score,
            "score_percent": self.score_percent,
            "label": self.label,
            "date_multiplier": self.date_multiplier,
            "raw_score": self.raw_score,
            "signals": [
                {
                    "signal": s.signal,
                    "score": s.score,
                    "weight": s.weight,
                    "weighted_score": s.weighted_score,
                    "detail": s.detail,
                }
                for s in self.signals
            ],
            "reasons": self.reasons,
        }


class MatchingEngine:
    """Engine for scoring candidates (local files, emails, attachments).

    Text signals (all candidates):
    - Receipt-type prior, receipt keywords in filename/subject/text
    - Amount rendering, partner tokens, reference tokens in text
    - Sender domain and learned mail account

    Extracted-data signals (local files only):
    - Same partner id, numeric amount comparison, extracted partner name

    The accumulated score is multiplied by a date decay, optionally by an
    amount-mismatch penalty, then capped. The engine holds no mutable state
    and is safe to share between threads.
    """

    def __init__(self, config: ScoringConfig | None = None) -> None:
        """Initialize the matching engine.

        Args:
            config: Scoring configuration. Defaults to the built-in weights.
        """
        self.config = config or ScoringConfig()
        self.weights = self.config.weights

    def score_candidate(
        self,
        anchor: Anchor | None,
        candidate: Candidate | None,
        context: MatchContext | None = None,
    ) -> ScoreResult:
        """Score a single candidate against an anchor.

        Args:
            anchor: Transaction or file we are finding documents for.
            candidate: Local file, email or attachment.
            context: Partner profile and learned patterns for the anchor.

        Returns:
            ScoreResult with score in [0, score_cap], label and reasons.
        """
        if anchor is None or candidate is None:
            return ScoreResult(candidate_key=getattr(candidate, "key", ""), score=0.0)

        context = context or MatchContext()
        signals: list[SignalScore] = []
        reasons: list[str] = []
        amount_mismatch = False

        def fire(signal: str, weight: float, reason: str) -> None:
            signals.append(SignalScore(signal=signal, score=1.0, weight=weight, detail=reason))
            reasons.append(reason)

        filename = (candidate.filename or "").lower()
        subject = (candidate.subject or "").lower()
        combined = candidate.combined_text
        text_and_filename = f"{combined} {filename}".strip()

        # === EXTRACTED DATA (local files) ===
        if candidate.kind is CandidateKind.LOCAL:
            if anchor.partner_id and candidate.partner_id == anchor.partner_id:
                fire("partner_id", self.weights.partner_id, "Same partner ID")

            amount_signal, amount_mismatch = self._score_extracted_amount(
                anchor.amount, candidate.amount
            )
            if amount_signal is not None:
                signals.append(amount_signal)
                reasons.append(amount_signal.detail)
            elif amount_mismatch:
                reasons.append(self._mismatch_reason(anchor.amount, candidate.amount))

            if self._extracted_partner_matches(anchor, candidate, context):
                fire(
                    "extracted_partner",
                    self.weights.extracted_partner,
                    "File partner matches transaction",
                )

        # === TEXT SIGNALS ===
        if candidate.is_likely_receipt:
            fire("receipt_type", self.weights.receipt_type, "Likely receipt file type")

        if contains_any(filename, RECEIPT_KEYWORDS):
            fire("filename_keyword", self.weights.filename_keyword, "Filename has invoice keyword")
        if contains_any(subject, RECEIPT_KEYWORDS):
            fire("subject_keyword", self.weights.subject_keyword, "Subject has invoice keyword")
        if contains_any(combined, RECEIPT_KEYWORDS):
            fire("text_keyword", self.weights.text_keyword, "Text has invoice keyword")

        variants = [v.lower() for v in amount_variants(anchor.amount)]
        if variants and contains_any(text_and_filename, variants):
            fire("amount_text", self.weights.amount_text, "Amount appears in text or filename")

        partner_name = context.partner.name if context.partner else None
        partner_tokens = tokenize(partner_name) + tokenize(anchor.partner)
        if partner_tokens and contains_any(combined, partner_tokens):
            fire("partner_token", self.weights.partner_token, "Partner name appears in text")

        reference_tokens = tokenize(anchor.description) + tokenize(anchor.reference)
        if reference_tokens and contains_any(text_and_filename, reference_tokens):
            fire(
                "reference_token",
                self.weights.reference_token,
                "Invoice reference appears in text or filename",
            )

        sender_domain = extract_email_domain(candidate.sender)
        if (
            sender_domain
            and context.partner is not None
            and sender_domain in context.partner.known_domains
        ):
            fire("sender_domain", self.weights.sender_domain, f"Sender domain matches {sender_domain}")

        if self._learned_account_matches(anchor, candidate, context.learned_patterns):
            fire("learned_account", self.weights.learned_account, "Learned mail account pattern")

        raw_score = sum(s.weighted_score for s in signals)

        # === DATE DECAY (global) ===
        date_multiplier = 1.0
        days = day_distance(anchor.date, candidate.date)
        if days is not None:
            date_multiplier = self.config.decay_for(days)
            reasons.append(f"Date distance: {round(days)} days (×{date_multiplier:.2f})")

        score = raw_score * date_multiplier
        if amount_mismatch:
            score *= self.weights.amount_mismatch_penalty
        score = round(max(0.0, min(score, self.config.score_cap)), 4)

        result = ScoreResult(
            candidate_key=candidate.key,
            score=score,
            label=self.label_for(score),
            reasons=reasons,
            signals=signals,
            date_multiplier=date_multiplier,
            raw_score=round(raw_score, 4),
        )
        logger.debug(
            "Scored %s %s: %.4f (raw %.4f, ×%.2f)",
            candidate.kind.value,
            result.candidate_key,
            result.score,
            result.raw_score,
            date_multiplier,
        )
        return result

    def score_all(
        self,
        anchor: Anchor | None,
        candidates: list[Candidate],
        context: MatchContext | None = None,
    ) -> list[ScoreResult]:
        """Score every candidate, keeping input order."""
        return [self.score_candidate(anchor, c, context) for c in candidates]

    def label_for(self, score: float) -> str | None:
        """Categorical label for a 0-1 score."""
        if score >= self.config.strong_threshold:
            return LABEL_STRONG
        if score >= self.config.likely_threshold:
            return LABEL_LIKELY
        return None

    def is_suggestion(self, result: ScoreResult) -> bool:
        """Return True if the result is good enough to suggest or download."""
        return result.score >= self.config.suggestion_threshold

    def is_auto_connect(self, result: ScoreResult) -> bool:
        """Return True if the result may be connected without asking."""
        return result.score >= self.config.auto_connect_threshold

    def should_auto_apply_partner(self, confidence: float) -> bool:
        """Return True if a partner-match confidence is high enough to assign automatically."""
        return confidence >= self.config.partner_auto_apply_threshold

    def has_enough_great_matches(self, results: list[ScoreResult]) -> bool:
        """Return True once enough great matches exist to stop trying more queries."""
        great = sum(1 for r in results if r.score >= self.config.great_match_threshold)
        return great >= self.config.great_match_count

    def _score_extracted_amount(
        self,
        anchor_amount: int | None,
        file_amount: int | None,
    ) -> tuple[SignalScore | None, bool]:
        """Compare extracted and anchor amounts numerically.

        Returns:
            (signal or None, amount_mismatch flag)
        """
        if anchor_amount is None or file_amount is None:
            return None, False

        diff = self._amount_diff_ratio(anchor_amount, file_amount)
        bands = (
            (0.0, self.weights.amount_exact, "Exact amount match"),
            (0.01, self.weights.amount_within_1pct, "Amount ±1%"),
            (0.05, self.weights.amount_within_5pct, "Amount ±5%"),
            (0.10, self.weights.amount_within_10pct, "Amount ±10%"),
        )
        for limit, weight, detail in bands:
            if diff <= limit:
                return SignalScore(signal="amount", score=1.0, weight=weight, detail=detail), False

        return None, diff > self.weights.amount_mismatch_ratio

    @staticmethod
    def _amount_diff_ratio(anchor_amount: int, file_amount: int) -> float:
        tx_amount = abs(anchor_amount)
        fl_amount = abs(file_amount)
        if tx_amount == 0:
            return 0.0 if fl_amount == 0 else 1.0
        return abs(fl_amount - tx_amount) / tx_amount

    def _mismatch_reason(self, anchor_amount: int | None, file_amount: int | None) -> str:
        diff = self._amount_diff_ratio(anchor_amount or 0, file_amount or 0)
        return f"Amount mismatch: {diff * 100:.0f}% diff"

    @staticmethod
    def _extracted_partner_matches(
        anchor: Anchor,
        candidate: Candidate,
        context: MatchContext,
    ) -> bool:
        file_partner = (candidate.partner or "").strip().lower()
        if not file_partner:
            return False
        targets = [
            p.strip().lower()
            for p in (context.partner.name if context.partner else None, anchor.partner)
            if p and p.strip()
        ]
        return any(file_partner in t or t in file_partner for t in targets)

    @staticmethod
    def _learned_account_matches(
        anchor: Anchor,
        candidate: Candidate,
        patterns: list[LearnedPattern],
    ) -> bool:
        integration_id = candidate.integration_id
        if not integration_id:
            return False
        for pattern in patterns:
            if pattern.source_type is not PatternSource.GMAIL or not pattern.integration_id:
                continue
            if pattern.partner_id and anchor.partner_id and pattern.partner_id != anchor.partner_id:
                continue
            if pattern.integration_id == integration_id:
                return True
        return False


_default_engine = MatchingEngine()


def score_candidate(
    anchor: Anchor | None,
    candidate: Candidate | None,
    context: MatchContext | None = None,
) -> ScoreResult:
    """Score one candidate with the default configuration."""
    return _default_engine.score_candidate(anchor, candidate, context)

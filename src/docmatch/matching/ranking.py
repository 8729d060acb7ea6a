"""Deterministic ordering of candidate sets."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..schemas import Anchor, Candidate, MatchContext
from ..schemas.dates import day_distance, parse_datetime
from .engine import MatchingEngine, ScoreResult, _default_engine

logger = logging.getLogger(__name__)


@dataclass
class RankedCandidate:
    """A candidate together with the score that placed it."""

    candidate: Candidate
    result: ScoreResult

    @property
    def score(self) -> float:
        return self.result.score

    def to_dict(self) -> dict:
        data = self.candidate.to_dict()
        data["match"] = self.result.to_dict()
        return data


def _sort_key(anchor: Optional[Anchor], ranked: RankedCandidate) -> tuple:
    """
    Sort key: score desc, receipt prior first, then date proximity.

    With an anchor date, closer candidates come first; without one, newer
    candidates come first. Undated candidates go last within a tie.
    """
    candidate_date = parse_datetime(ranked.candidate.date)
    anchor_date = parse_datetime(anchor.date) if anchor is not None else None

    if candidate_date is None:
        date_key = (1, 0.0)
    elif anchor_date is not None:
        date_key = (0, day_distance(anchor_date, candidate_date))
    else:
        date_key = (0, -candidate_date.timestamp())

    return (-ranked.result.score, not ranked.candidate.is_likely_receipt, date_key)


def rank_with_scores(
    anchor: Optional[Anchor],
    candidates: list[Candidate],
    context: Optional[MatchContext] = None,
    engine: Optional[MatchingEngine] = None,
) -> list[RankedCandidate]:
    """
    Score every candidate and return them best first.

    The sort is stable: candidates equal on every key keep input order.
    """
    engine = engine or _default_engine
    ranked = [
        RankedCandidate(candidate=c, result=engine.score_candidate(anchor, c, context))
        for c in candidates
    ]
    ranked.sort(key=lambda r: _sort_key(anchor, r))
    logger.debug("Ranked %d candidates", len(ranked))
    return ranked


def rank_candidates(
    anchor: Optional[Anchor],
    candidates: list[Candidate],
    context: Optional[MatchContext] = None,
    engine: Optional[MatchingEngine] = None,
) -> list[Candidate]:
    """Return the candidates reordered best first. The input list is not modified."""
    return [r.candidate for r in rank_with_scores(anchor, candidates, context, engine)]

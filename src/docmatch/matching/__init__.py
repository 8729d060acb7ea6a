"""Signal scoring and ranking of candidate documents against an anchor."""

from docmatch.matching.engine import MatchingEngine, ScoreResult, SignalScore, score_candidate
from docmatch.matching.ranking import RankedCandidate, rank_candidates, rank_with_scores

__all__ = [
    "MatchingEngine",
    "ScoreResult",
    "SignalScore",
    "score_candidate",
    "RankedCandidate",
    "rank_candidates",
    "rank_with_scores",
]

"""
Canonical schemas shared by the matching engine, query builder and sources.

Anchors and candidates are tagged variants resolved once at the ingestion
boundary; nothing downstream probes for optional fields.
"""

from .anchor import Anchor, FileAnchor, TransactionAnchor, anchor_from_dict
from .candidate import (
    RECEIPT_MIME_TYPES,
    AttachmentCandidate,
    Candidate,
    CandidateKind,
    EmailCandidate,
    LocalFileCandidate,
    candidate_from_dict,
    candidates_from_dicts,
)
from .dates import day_distance, parse_datetime
from .patterns import LearnedPattern, MatchContext, PartnerProfile, PatternSource

__all__ = [
    # Anchors
    "Anchor",
    "TransactionAnchor",
    "FileAnchor",
    "anchor_from_dict",
    # Candidates
    "Candidate",
    "CandidateKind",
    "LocalFileCandidate",
    "EmailCandidate",
    "AttachmentCandidate",
    "RECEIPT_MIME_TYPES",
    "candidate_from_dict",
    "candidates_from_dicts",
    # Partner knowledge
    "LearnedPattern",
    "PatternSource",
    "PartnerProfile",
    "MatchContext",
    # Dates
    "parse_datetime",
    "day_distance",
]

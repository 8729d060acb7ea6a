"""Tests for candidate ranking."""

from datetime import datetime, timedelta, timezone

from docmatch.config import ScoringConfig, ScoringWeights
from docmatch.matching import MatchingEngine, rank_candidates, rank_with_scores
from docmatch.schemas import TransactionAnchor

ANCHOR_DATE = datetime(2024, 3, 10, tzinfo=timezone.utc)


class TestRankingOrder:
    """Tests for the ordering keys."""

    def test_higher_score_first(self, amazon_anchor, invoice_pdf, make_local_file):
        """A keyword-rich invoice outranks a bare scan."""
        scan = make_local_file("file-scan")
        ranked = rank_candidates(amazon_anchor, [scan, invoice_pdf])
        assert [c.id for c in ranked] == ["file-1", "file-scan"]

    def test_identical_candidates_keep_input_order(self, amazon_anchor, make_local_file):
        """Candidates equal on every key are not reordered."""
        files = [make_local_file(f"file-{i}") for i in range(4)]

        ranked = rank_candidates(amazon_anchor, files)
        assert [c.id for c in ranked] == ["file-0", "file-1", "file-2", "file-3"]

        ranked = rank_candidates(amazon_anchor, list(reversed(files)))
        assert [c.id for c in ranked] == ["file-3", "file-2", "file-1", "file-0"]

    def test_closer_date_wins_tie(self, amazon_anchor, make_local_file):
        """Within the same decay band, the candidate closer to the anchor comes first."""
        far = make_local_file("file-far", date=ANCHOR_DATE + timedelta(days=5))
        near = make_local_file("file-near", date=ANCHOR_DATE - timedelta(days=1))

        ranked = rank_with_scores(amazon_anchor, [far, near])
        assert ranked[0].score == ranked[1].score
        assert [r.candidate.id for r in ranked] == ["file-near", "file-far"]

    def test_receipt_prior_breaks_tie(self, amazon_anchor, make_local_file):
        """With equal scores, receipt-like candidates come first."""
        engine = MatchingEngine(ScoringConfig(weights=ScoringWeights(receipt_type=0.0)))
        text_file = make_local_file("file-txt", filename="notes.txt", mime_type="text/plain")
        pdf_file = make_local_file("file-pdf")

        ranked = rank_with_scores(amazon_anchor, [text_file, pdf_file], engine=engine)
        assert ranked[0].score == ranked[1].score == 0.0
        assert [r.candidate.id for r in ranked] == ["file-pdf", "file-txt"]

    def test_undated_anchor_prefers_newest(self, make_local_file):
        """Without an anchor date, newer candidates come first and undated ones last."""
        anchor = TransactionAnchor(id="tx-nodate", amount=-1000, currency="EUR")
        older = make_local_file("file-old", date=datetime(2023, 1, 1, tzinfo=timezone.utc))
        newer = make_local_file("file-new", date=datetime(2024, 1, 1, tzinfo=timezone.utc))
        undated = make_local_file("file-undated", date=None)

        ranked = rank_candidates(anchor, [undated, older, newer])
        assert [c.id for c in ranked] == ["file-new", "file-old", "file-undated"]

    def test_undated_candidate_last_within_tie(self, amazon_anchor, make_local_file):
        """An undated candidate sorts after dated ones with the same score."""
        undated = make_local_file("file-undated", date=None)
        dated = make_local_file("file-dated", date=ANCHOR_DATE + timedelta(days=3))

        ranked = rank_with_scores(amazon_anchor, [undated, dated])
        assert ranked[0].score == ranked[1].score
        assert [r.candidate.id for r in ranked] == ["file-dated", "file-undated"]

    def test_mixed_candidate_kinds(self, amazon_anchor, amazon_context, invoice_email, make_local_file):
        """Emails, attachments and local files rank together."""
        attachment = invoice_email.attachments[0]
        scan = make_local_file("file-scan")

        ranked = rank_with_scores(amazon_anchor, [scan, attachment, invoice_email], amazon_context)
        keys = [r.candidate.key for r in ranked]

        assert keys[-1] == "file-scan"
        assert set(keys[:2]) == {"msg-1", "msg-1:att-1"}
        scores = [r.score for r in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_naive_anchor_with_aware_candidates(self, make_local_file):
        """A naive anchor date ranks against aware candidate dates as UTC."""
        anchor = TransactionAnchor(id="tx-naive", date=datetime(2024, 3, 10), amount=-1000)
        far = make_local_file("file-far", date=ANCHOR_DATE + timedelta(days=5))
        near = make_local_file("file-near", date=ANCHOR_DATE + timedelta(days=1))
        naive = make_local_file("file-naive", date=datetime(2024, 3, 13))

        ranked = rank_candidates(anchor, [far, naive, near])
        assert [c.id for c in ranked] == ["file-near", "file-naive", "file-far"]


class TestRankingResults:
    """Tests for ranking output shape."""

    def test_input_list_not_modified(self, amazon_anchor, invoice_pdf, make_local_file):
        """rank_candidates returns a new list."""
        scan = make_local_file("file-scan")
        candidates = [scan, invoice_pdf]

        ranked = rank_candidates(amazon_anchor, candidates)

        assert [c.id for c in candidates] == ["file-scan", "file-1"]
        assert ranked is not candidates

    def test_empty_candidates(self, amazon_anchor):
        """No candidates gives an empty ranking."""
        assert rank_candidates(amazon_anchor, []) == []

    def test_ranked_to_dict_includes_match(self, amazon_anchor, invoice_pdf):
        """Serialized candidates carry their score under "match"."""
        ranked = rank_with_scores(amazon_anchor, [invoice_pdf])
        data = ranked[0].to_dict()

        assert data["kind"] == "local"
        assert data["id"] == "file-1"
        assert data["match"]["score"] == ranked[0].score
        assert data["match"]["label"] == "Likely"

    def test_missing_anchor_scores_zero(self, invoice_pdf, make_local_file):
        """Without an anchor everything scores zero but still ranks deterministically."""
        scan = make_local_file("file-scan", date=ANCHOR_DATE - timedelta(days=30))

        ranked = rank_with_scores(None, [scan, invoice_pdf])
        assert all(r.score == 0.0 for r in ranked)
        assert [r.candidate.id for r in ranked] == ["file-1", "file-scan"]

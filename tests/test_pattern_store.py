"""Tests for the learned pattern store."""

import threading

import pytest

from docmatch.schemas import LearnedPattern, PatternSource
from docmatch.state_store import InMemoryPatternStore


@pytest.fixture
def store() -> InMemoryPatternStore:
    return InMemoryPatternStore()


class TestRecordSuccess:
    """Tests for learning from manual connections."""

    def test_new_pattern(self, store: InMemoryPatternStore) -> None:
        """A first success creates a pattern with initial confidence."""
        learned = store.record_success(
            "partner-amazon", " Amazon Rechnung ", PatternSource.GMAIL, "acc-work"
        )

        assert learned == LearnedPattern(
            pattern="Amazon Rechnung",
            source_type=PatternSource.GMAIL,
            integration_id="acc-work",
            usage_count=1,
            confidence=0.6,
            partner_id="partner-amazon",
        )
        assert store.get_patterns("partner-amazon") == [learned]

    def test_repeat_increments(self, store: InMemoryPatternStore) -> None:
        """Repeated successes raise usage and confidence, matching case-insensitively."""
        store.record_success("partner-amazon", "amazon")
        store.record_success("partner-amazon", "AMAZON")
        learned = store.record_success("partner-amazon", "Amazon")

        assert len(store.get_patterns("partner-amazon")) == 1
        assert learned.usage_count == 3
        assert learned.confidence == 0.8

    def test_confidence_capped(self, store: InMemoryPatternStore) -> None:
        """Confidence never exceeds 1.0."""
        for _ in range(10):
            learned = store.record_success("partner-amazon", "amazon")

        assert learned.usage_count == 10
        assert learned.confidence == 1.0

    def test_source_and_account_distinguish_patterns(self, store: InMemoryPatternStore) -> None:
        """The same text in another source or account is a separate pattern."""
        store.record_success("partner-amazon", "amazon", PatternSource.LOCAL)
        store.record_success("partner-amazon", "amazon", PatternSource.GMAIL, "acc-work")
        store.record_success("partner-amazon", "amazon", PatternSource.GMAIL, "acc-home")

        assert len(store.get_patterns("partner-amazon")) == 3

    @pytest.mark.parametrize("pattern", ["", " ", "a"])
    def test_short_patterns_skipped(self, store: InMemoryPatternStore, pattern: str) -> None:
        """Patterns shorter than two characters are not learned."""
        assert store.record_success("partner-amazon", pattern) is None
        assert store.get_patterns("partner-amazon") == []

    def test_partner_required(self, store: InMemoryPatternStore) -> None:
        """Nothing is learned without a partner."""
        assert store.record_success("", "amazon") is None

    def test_concurrent_successes(self, store: InMemoryPatternStore) -> None:
        """Parallel recordings of one pattern are all counted."""
        threads = [
            threading.Thread(target=store.record_success, args=("partner-amazon", "amazon"))
            for _ in range(20)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        (learned,) = store.get_patterns("partner-amazon")
        assert learned.usage_count == 20


class TestPatternStore:
    """Tests for store reads."""

    def test_seeded_patterns(self) -> None:
        """Patterns without a partner are ignored when seeding."""
        store = InMemoryPatternStore(
            [
                LearnedPattern(pattern="amazon", partner_id="partner-amazon"),
                LearnedPattern(pattern="orphan"),
            ]
        )

        assert [p.pattern for p in store.get_patterns("partner-amazon")] == ["amazon"]
        assert [d["pattern"] for d in store.to_dicts()] == ["amazon"]

    def test_unknown_partner(self, store: InMemoryPatternStore) -> None:
        """Unknown or missing partners have no patterns."""
        assert store.get_patterns("partner-unknown") == []
        assert store.get_patterns(None) == []

    def test_returns_copy(self, store: InMemoryPatternStore) -> None:
        """Callers cannot modify the stored list."""
        store.record_success("partner-amazon", "amazon")
        store.get_patterns("partner-amazon").clear()

        assert len(store.get_patterns("partner-amazon")) == 1

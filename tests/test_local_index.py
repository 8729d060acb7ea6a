"""Tests for the local file index and display helpers."""

from datetime import datetime, timezone

import pytest

from docmatch.display import format_amount, format_score
from docmatch.schemas import LocalFileCandidate
from docmatch.sources import InMemoryFileIndex


@pytest.fixture
def index() -> InMemoryFileIndex:
    return InMemoryFileIndex(
        [
            LocalFileCandidate(
                id="f1",
                filename="Amazon_Invoice_49.99.pdf",
                mime_type="application/pdf",
                date=datetime(2024, 3, 10, tzinfo=timezone.utc),
            ),
            LocalFileCandidate(
                id="f2",
                filename="scan_0012.jpg",
                mime_type="image/jpeg",
                partner="Stadtwerke Berlin",
                text="Abschlag Strom März",
                date=datetime(2024, 1, 5, tzinfo=timezone.utc),
            ),
            LocalFileCandidate(
                id="f3",
                filename="amazon_notes.txt",
                mime_type="text/plain",
            ),
            LocalFileCandidate(
                id="f4",
                filename="undated.pdf",
                mime_type="application/pdf",
                text="Amazon EU S.a.r.l. Rechnung",
            ),
        ]
    )


class TestInMemoryFileIndex:
    """Tests for local free-text search."""

    def test_filename_match(self, index: InMemoryFileIndex) -> None:
        """Filename hits are case-insensitive; non-document files are never returned."""
        hits = index.search_with_matches("amazon")
        assert [(f.id, fields) for f, fields in hits] == [
            ("f1", ["filename"]),
            ("f4", ["document text"]),
        ]

    def test_partner_match(self, index: InMemoryFileIndex) -> None:
        """The extracted partner is searched."""
        assert [f.id for f in index.search("stadtwerke")] == ["f2"]

    def test_short_query_skips_text(self, index: InMemoryFileIndex) -> None:
        """Queries under four characters do not search document text."""
        assert index.search("str") == []
        assert [f.id for f in index.search("strom")] == ["f2"]

    def test_date_range(self, index: InMemoryFileIndex) -> None:
        """Dated files outside the range are dropped; undated files stay."""
        hits = index.search_with_matches(
            "",
            date_from=datetime(2024, 3, 1, tzinfo=timezone.utc),
            date_to=datetime(2024, 3, 31, tzinfo=timezone.utc),
        )
        assert [f.id for f, _ in hits] == ["f1", "f4"]

    def test_limit(self, index: InMemoryFileIndex) -> None:
        """At most limit files are returned."""
        assert [f.id for f in index.search("", limit=2)] == ["f1", "f2"]

    def test_add(self, index: InMemoryFileIndex) -> None:
        """Added files become searchable."""
        index.add(LocalFileCandidate(id="f5", filename="netflix.png", mime_type="image/png"))
        assert [f.id for f in index.search("netflix")] == ["f5"]

    def test_date_range_mixed_timezones(self) -> None:
        """Naive file dates and bounds are compared as UTC."""
        index = InMemoryFileIndex(
            [
                LocalFileCandidate(
                    id="naive", filename="a.pdf", mime_type="application/pdf",
                    date=datetime(2024, 3, 10),
                ),
                LocalFileCandidate(
                    id="aware", filename="b.pdf", mime_type="application/pdf",
                    date=datetime(2024, 4, 10, tzinfo=timezone.utc),
                ),
            ]
        )
        hits = index.search("", date_from=datetime(2024, 3, 1), date_to=datetime(2024, 3, 31))
        assert [f.id for f in hits] == ["naive"]


class TestDisplay:
    """Tests for display formatting."""

    @pytest.mark.parametrize(
        "amount,currency,expected",
        [
            (-4999, "EUR", "-49.99 EUR"),
            (123456, "USD", "1,234.56 USD"),
            (0, "EUR", "0.00 EUR"),
            (None, "EUR", ""),
        ],
    )
    def test_format_amount(self, amount, currency, expected) -> None:
        """Minor units render with two decimals and the currency code."""
        assert format_amount(amount, currency) == expected

    def test_format_amount_converted(self) -> None:
        """A converter switches amount and currency."""
        assert format_amount(1000, "USD", converter=lambda a, c: (920, "EUR")) == "9.20 EUR"

    def test_format_amount_failed_conversion(self) -> None:
        """A failing converter falls back to the original currency."""

        def broken(amount, currency):
            raise KeyError(currency)

        assert format_amount(1000, "CHF", converter=broken) == "10.00 CHF"

    @pytest.mark.parametrize(
        "score,label,expected",
        [(0.8249, "Strong", "82% (Strong)"), (0.4, "Likely", "40% (Likely)"), (0.1, None, "10%")],
    )
    def test_format_score(self, score, label, expected) -> None:
        """Scores render as whole percentages."""
        assert format_score(score, label) == expected

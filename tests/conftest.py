"""Test fixtures and utilities."""

import base64
from datetime import datetime, timedelta, timezone

import pytest

from docmatch.schemas import (
    AttachmentCandidate,
    EmailCandidate,
    LearnedPattern,
    LocalFileCandidate,
    MatchContext,
    PartnerProfile,
    PatternSource,
    TransactionAnchor,
)

ANCHOR_DATE = datetime(2024, 3, 10, tzinfo=timezone.utc)


def encode_body(text: str) -> str:
    """Encode text the way the Gmail API returns message bodies (base64url, unpadded)."""
    return base64.urlsafe_b64encode(text.encode("utf-8")).decode("ascii").rstrip("=")


@pytest.fixture
def anchor_date() -> datetime:
    return ANCHOR_DATE


@pytest.fixture
def amazon_anchor() -> TransactionAnchor:
    """Card payment to Amazon, 49.99 EUR debit."""
    return TransactionAnchor(
        id="tx-1",
        date=ANCHOR_DATE,
        amount=-4999,
        currency="EUR",
        partner="Amazon EU S.a.r.l.",
        name="AMAZON EU",
        partner_id="partner-amazon",
    )


@pytest.fixture
def amazon_partner() -> PartnerProfile:
    return PartnerProfile(id="partner-amazon", name="Amazon", email_domains=["amazon.de"])


@pytest.fixture
def amazon_context(amazon_partner: PartnerProfile) -> MatchContext:
    return MatchContext(
        partner=amazon_partner,
        learned_patterns=[
            LearnedPattern(
                pattern="amazon rechnung",
                source_type=PatternSource.GMAIL,
                integration_id="acc-work",
                usage_count=3,
                confidence=0.8,
                partner_id="partner-amazon",
            )
        ],
    )


@pytest.fixture
def invoice_pdf() -> LocalFileCandidate:
    """Local PDF whose filename carries keyword, partner and amount."""
    return LocalFileCandidate(
        id="file-1",
        filename="Amazon_Invoice_49.99.pdf",
        mime_type="application/pdf",
        date=ANCHOR_DATE,
    )


@pytest.fixture
def make_local_file():
    """Factory for plain local files; only the id differs by default."""

    def _make(file_id: str, **kwargs) -> LocalFileCandidate:
        defaults = {
            "filename": "scan.pdf",
            "mime_type": "application/pdf",
            "date": ANCHOR_DATE,
        }
        defaults.update(kwargs)
        return LocalFileCandidate(id=file_id, **defaults)

    return _make


@pytest.fixture
def invoice_email() -> EmailCandidate:
    """Amazon invoice email with a PDF attachment, two days after the anchor."""
    email = EmailCandidate(
        message_id="msg-1",
        subject="Ihre Rechnung zu Bestellung 302-1234567",
        sender="billing@amazon.de",
        sender_name="Amazon.de",
        snippet="Vielen Dank für Ihre Bestellung. Gesamtbetrag: 49,99 EUR",
        date=ANCHOR_DATE + timedelta(days=2),
        integration_id="acc-work",
        has_pdf=True,
    )
    email.add_attachment(
        AttachmentCandidate(
            attachment_id="att-1",
            filename="Rechnung_302-1234567.pdf",
            mime_type="application/pdf",
            size=48213,
            is_likely_receipt=True,
        )
    )
    return email


@pytest.fixture
def gmail_message() -> dict:
    """Gmail API message resource (format=full) with nested parts."""
    return {
        "id": "msg-1",
        "threadId": "thr-1",
        "internalDate": "1710058500000",
        "snippet": "Ihre Rechnung ist beigefügt",
        "payload": {
            "mimeType": "multipart/mixed",
            "headers": [
                {"name": "From", "value": '"Amazon.de" <billing@amazon.de>'},
                {"name": "Subject", "value": "Ihre Rechnung"},
                {"name": "Date", "value": "Sun, 10 Mar 2024 09:15:00 +0100"},
            ],
            "parts": [
                {
                    "partId": "0",
                    "mimeType": "multipart/alternative",
                    "filename": "",
                    "body": {"size": 0},
                    "parts": [
                        {
                            "partId": "0.0",
                            "mimeType": "text/plain",
                            "filename": "",
                            "body": {"size": 16, "data": encode_body("Invoice attached")},
                        },
                        {
                            "partId": "0.1",
                            "mimeType": "text/html",
                            "filename": "",
                            "body": {"size": 30, "data": encode_body("<p>Invoice attached</p>")},
                        },
                    ],
                },
                {
                    "partId": "1",
                    "mimeType": "application/pdf",
                    "filename": "Rechnung_2024-001.pdf",
                    "body": {"attachmentId": "att-1", "size": 1234},
                },
                {
                    "partId": "2",
                    "mimeType": "image/png",
                    "filename": "logo.png",
                    "body": {"attachmentId": "att-2", "size": 99},
                },
            ],
        },
    }

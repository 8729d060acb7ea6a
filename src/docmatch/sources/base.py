"""
Candidate source interfaces, the mail search error taxonomy and the
attachment/email classification heuristics shared by mail providers.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional, Protocol

from ..schemas import EmailCandidate, LocalFileCandidate

# Auth error codes that should drive a "reconnect" affordance
AUTH_EXPIRED = "AUTH_EXPIRED"
TOKEN_EXPIRED = "TOKEN_EXPIRED"
REAUTH_REQUIRED = "REAUTH_REQUIRED"
TOKENS_MISSING = "TOKENS_MISSING"

AUTH_ERROR_CODES = frozenset({AUTH_EXPIRED, TOKEN_EXPIRED, REAUTH_REQUIRED, TOKENS_MISSING})


class MailSearchError(Exception):
    """Base exception for mail search errors."""

    pass


class AuthExpiredError(MailSearchError):
    """Access token expired, missing or revoked. The account needs reconnecting."""

    def __init__(self, integration_id: Optional[str], code: str = AUTH_EXPIRED, message: str = ""):
        self.integration_id = integration_id
        self.code = code
        super().__init__(message or f"Mail account {integration_id} needs re-authentication ({code})")


class SearchFailedError(MailSearchError):
    """Any other search failure: network, quota, malformed response."""

    def __init__(self, integration_id: Optional[str], message: str, status_code: Optional[int] = None):
        self.integration_id = integration_id
        self.status_code = status_code
        super().__init__(message)


class MailSearchSource(Protocol):
    """One connected mail account that can be searched."""

    integration_id: str

    def search_messages(
        self,
        query: str,
        *,
        max_results: Optional[int] = None,
        has_attachments: bool = False,
    ) -> list[EmailCandidate]:
        """Search the account. Raises AuthExpiredError or SearchFailedError."""
        ...


class LocalFileSource(Protocol):
    """Local document index searchable by free text."""

    def search(self, query: str, limit: Optional[int] = None) -> list[LocalFileCandidate]:
        ...


# Filename hints for image attachments (PDFs qualify on type alone)
ATTACHMENT_KEYWORDS = (
    "invoice",
    "rechnung",
    "receipt",
    "beleg",
    "quittung",
    "faktura",
    "bon",
    "bill",
    "order",
    "confirmation",
    "payment",
    "bestellung",
    "bestätigung",
    "zahlung",
)

RECEIPT_ATTACHMENT_MIME_TYPES = frozenset(
    {"application/pdf", "image/jpeg", "image/png", "image/webp", "image/gif"}
)

# Body IS the invoice (no attachment needed)
MAIL_INVOICE_KEYWORDS = (
    "order confirmation",
    "payment received",
    "payment confirmation",
    "your purchase",
    "order summary",
    "receipt for your",
    "thank you for your order",
    "your order has been",
    "purchase confirmation",
    "bestellbestätigung",
    "zahlungsbestätigung",
    "zahlungseingang",
    "ihre bestellung",
    "kaufbestätigung",
    "vielen dank für ihre bestellung",
    "ihre zahlung",
    "buchungsbestätigung",
)

# Body links to a downloadable invoice
INVOICE_LINK_KEYWORDS = (
    "download your invoice",
    "view your invoice",
    "download invoice",
    "view invoice",
    "click here to download",
    "access your invoice",
    "get your receipt",
    "download pdf",
    "download receipt",
    "rechnung herunterladen",
    "rechnung anzeigen",
    "rechnung abrufen",
    "hier klicken",
    "pdf herunterladen",
    "beleg herunterladen",
    "rechnung ansehen",
    "zum download",
)


def _is_pdf(filename: str, mime_type: str) -> bool:
    mime = (mime_type or "").lower()
    return mime == "application/pdf" or (
        mime == "application/octet-stream" and (filename or "").lower().endswith(".pdf")
    )


def is_likely_receipt_attachment(filename: str, mime_type: str) -> bool:
    """
    Guess whether an attachment is a receipt.

    PDFs (including octet-stream files named *.pdf) always qualify. Images
    qualify only with a receipt-like word in the filename. Anything else
    never does.
    """
    if _is_pdf(filename, mime_type):
        return True
    if (mime_type or "").lower() not in RECEIPT_ATTACHMENT_MIME_TYPES:
        return False
    name = (filename or "").lower()
    return any(keyword in name for keyword in ATTACHMENT_KEYWORDS)


@dataclass
class EmailClassification:
    """Why an email might carry an invoice."""

    has_pdf_attachment: bool = False
    possible_mail_invoice: bool = False
    possible_invoice_link: bool = False
    confidence: int = 0  # 0-100
    matched_keywords: list[str] = field(default_factory=list)


def classify_email(
    subject: str,
    snippet: str,
    attachments: list[tuple[str, str]],
) -> EmailClassification:
    """
    Classify an email by subject, snippet and (filename, mime_type) pairs.

    A mail-invoice hint is only reported when there is no PDF attachment.
    """
    combined = f"{subject or ''} {snippet or ''}".lower()
    matched: list[str] = []

    has_pdf = any(_is_pdf(filename, mime) for filename, mime in attachments)

    mail_invoice = False
    for keyword in MAIL_INVOICE_KEYWORDS:
        if keyword in combined:
            mail_invoice = True
            matched.append(keyword)
            break

    invoice_link = False
    for keyword in INVOICE_LINK_KEYWORDS:
        if keyword in combined:
            invoice_link = True
            matched.append(keyword)
            break

    confidence = 0
    if has_pdf:
        confidence += 40
    if mail_invoice:
        confidence += 30
    if invoice_link:
        confidence += 25
    confidence = min(confidence, 100)
    if has_pdf and confidence < 50:
        confidence = 50

    return EmailClassification(
        has_pdf_attachment=has_pdf,
        possible_mail_invoice=mail_invoice and not has_pdf,
        possible_invoice_link=invoice_link,
        confidence=confidence,
        matched_keywords=matched,
    )

"""
Candidates: documents evaluated against an anchor.

Candidates arrive from different sources with different fields. They are
resolved once, at the ingestion boundary, into one of three variants tagged
by `kind`. The scorer reads the variant-independent views below instead of
probing optional fields.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Union

from ..normalizer import strip_markup
from .anchor import parse_minor_amount
from .dates import format_iso, parse_datetime

# MIME types that typically carry a receipt or invoice
RECEIPT_MIME_TYPES = frozenset(
    {
        "application/pdf",
        "image/jpeg",
        "image/png",
        "image/webp",
        "image/gif",
    }
)


class CandidateKind(str, Enum):
    """Discriminant of the candidate variants."""

    LOCAL = "local"
    EMAIL = "email"
    ATTACHMENT = "attachment"


@dataclass
class LocalFileCandidate:
    """File already uploaded to the local document store."""

    id: str
    filename: str = ""
    mime_type: str = ""
    date: datetime | None = None  # Extracted document date
    amount: int | None = None  # Extracted amount, minor units
    currency: str | None = None
    partner: str | None = None  # Extracted partner name
    text: str | None = None  # Extracted text, if available
    partner_id: str | None = None

    kind = CandidateKind.LOCAL

    @property
    def key(self) -> str:
        return self.id

    @property
    def subject(self) -> str:
        return ""

    @property
    def sender(self) -> str:
        return ""

    @property
    def integration_id(self) -> str | None:
        return None

    @property
    def is_likely_receipt(self) -> bool:
        return (self.mime_type or "").lower() in RECEIPT_MIME_TYPES

    @property
    def combined_text(self) -> str:
        return " ".join(p for p in (self.partner, self.text) if p).lower()

    @classmethod
    def from_dict(cls, data: dict) -> "LocalFileCandidate":
        return cls(
            id=str(data.get("id") or ""),
            filename=data.get("filename") or data.get("file_name") or "",
            mime_type=data.get("mime_type") or data.get("mimeType") or "",
            date=parse_datetime(data.get("date")),
            amount=parse_minor_amount(data.get("amount")),
            currency=data.get("currency"),
            partner=data.get("partner"),
            text=data.get("text"),
            partner_id=data.get("partner_id") or data.get("partnerId"),
        )

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "id": self.id,
            "filename": self.filename,
            "mime_type": self.mime_type,
            "date": format_iso(self.date),
            "amount": self.amount,
            "currency": self.currency,
            "partner": self.partner,
            "partner_id": self.partner_id,
        }


@dataclass
class EmailCandidate:
    """Mail message found in one connected account."""

    message_id: str
    subject: str = ""
    sender: str = ""  # Address only
    sender_name: str | None = None
    snippet: str = ""
    body: str = ""  # Text body, or HTML (stripped before scoring)
    date: datetime | None = None
    integration_id: str | None = None
    has_pdf: bool = False
    looks_like_inline_invoice: bool = False
    looks_like_invoice_link: bool = False
    attachments: list["AttachmentCandidate"] = field(default_factory=list)

    kind = CandidateKind.EMAIL

    @property
    def key(self) -> str:
        return self.message_id

    @property
    def filename(self) -> str:
        return ""

    @property
    def is_likely_receipt(self) -> bool:
        return self.has_pdf or self.looks_like_inline_invoice or self.looks_like_invoice_link

    @property
    def body_text(self) -> str:
        if "<" in self.body and ">" in self.body:
            return strip_markup(self.body)
        return self.body

    @property
    def combined_text(self) -> str:
        parts = (self.subject, self.snippet, self.sender, self.body_text)
        return " ".join(p for p in parts if p).lower()

    def add_attachment(self, attachment: "AttachmentCandidate") -> "AttachmentCandidate":
        """Attach an attachment to this email, setting its owner."""
        attachment.email = self
        self.attachments.append(attachment)
        return attachment

    @classmethod
    def from_dict(cls, data: dict) -> "EmailCandidate":
        email = cls(
            message_id=str(data.get("message_id") or data.get("messageId") or ""),
            subject=data.get("subject") or "",
            sender=data.get("sender") or data.get("from") or "",
            sender_name=data.get("sender_name") or data.get("fromName"),
            snippet=data.get("snippet") or "",
            body=data.get("body") or "",
            date=parse_datetime(data.get("date")),
            integration_id=data.get("integration_id") or data.get("integrationId"),
            has_pdf=bool(data.get("has_pdf", False)),
            looks_like_inline_invoice=bool(data.get("looks_like_inline_invoice", False)),
            looks_like_invoice_link=bool(data.get("looks_like_invoice_link", False)),
        )
        for att_data in data.get("attachments", []) or []:
            email.add_attachment(AttachmentCandidate.from_dict(att_data))
        return email

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "message_id": self.message_id,
            "subject": self.subject,
            "sender": self.sender,
            "sender_name": self.sender_name,
            "date": format_iso(self.date),
            "integration_id": self.integration_id,
            "has_pdf": self.has_pdf,
            "attachments": [a.to_dict() for a in self.attachments],
        }


@dataclass
class AttachmentCandidate:
    """Attachment of an email. Never outlives its email in a result set."""

    attachment_id: str
    filename: str = ""
    mime_type: str = ""
    size: int = 0
    is_likely_receipt: bool = False  # Supplied by the mail provider layer
    imported_file_id: str | None = None
    email: EmailCandidate | None = field(default=None, repr=False, compare=False)

    kind = CandidateKind.ATTACHMENT

    @property
    def key(self) -> str:
        message_id = self.email.message_id if self.email else ""
        return f"{message_id}:{self.attachment_id}"

    @property
    def subject(self) -> str:
        return self.email.subject if self.email else ""

    @property
    def sender(self) -> str:
        return self.email.sender if self.email else ""

    @property
    def date(self) -> datetime | None:
        return self.email.date if self.email else None

    @property
    def integration_id(self) -> str | None:
        return self.email.integration_id if self.email else None

    @property
    def combined_text(self) -> str:
        return self.email.combined_text if self.email else ""

    @classmethod
    def from_dict(cls, data: dict) -> "AttachmentCandidate":
        return cls(
            attachment_id=str(data.get("attachment_id") or data.get("attachmentId") or ""),
            filename=data.get("filename") or "",
            mime_type=data.get("mime_type") or data.get("mimeType") or "",
            size=int(data.get("size") or 0),
            is_likely_receipt=bool(
                data.get("is_likely_receipt", data.get("isLikelyReceipt", False))
            ),
            imported_file_id=data.get("imported_file_id") or data.get("existingFileId"),
        )

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "key": self.key,
            "attachment_id": self.attachment_id,
            "filename": self.filename,
            "mime_type": self.mime_type,
            "size": self.size,
            "is_likely_receipt": self.is_likely_receipt,
            "imported_file_id": self.imported_file_id,
        }


Candidate = Union[LocalFileCandidate, EmailCandidate, AttachmentCandidate]


def candidate_from_dict(data: dict) -> Candidate:
    """Resolve a loosely-typed candidate dict into its tagged variant."""
    kind = data.get("kind", CandidateKind.LOCAL.value)
    if kind == CandidateKind.EMAIL.value:
        return EmailCandidate.from_dict(data)
    if kind == CandidateKind.ATTACHMENT.value:
        attachment = AttachmentCandidate.from_dict(data)
        email_data = data.get("email")
        if email_data:
            EmailCandidate.from_dict(email_data).add_attachment(attachment)
        return attachment
    return LocalFileCandidate.from_dict(data)


def candidates_from_dicts(items: list[dict]) -> list[Candidate]:
    """Resolve a list of candidate dicts, keeping input order."""
    return [candidate_from_dict(item) for item in items]



"""
Anchors: the transaction or file we are finding documents for.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePath
from typing import Any, Union

from .dates import format_iso, parse_datetime


def parse_minor_amount(value: Any) -> int | None:
    """Amounts arrive in minor units; anything non-integral is dropped."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and not value.is_integer():
        # Covers fractions, NaN and infinity
        return None
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        return None


@dataclass
class TransactionAnchor:
    """Bank transaction. Amount is signed, in minor units (cents)."""

    id: str = ""
    date: datetime | None = None
    amount: int | None = None
    currency: str | None = None
    partner: str | None = None  # Counterparty field from the bank
    name: str | None = None  # Booking text / description
    reference: str | None = None
    iban: str | None = None
    partner_id: str | None = None

    @property
    def description(self) -> str | None:
        return self.name

    @classmethod
    def from_dict(cls, data: dict) -> "TransactionAnchor":
        """Create from a JSON-style dict."""
        return cls(
            id=str(data.get("id") or ""),
            date=parse_datetime(data.get("date")),
            amount=parse_minor_amount(data.get("amount")),
            currency=data.get("currency"),
            partner=data.get("partner"),
            name=data.get("name") or data.get("description"),
            reference=data.get("reference"),
            iban=data.get("iban"),
            partner_id=data.get("partner_id") or data.get("partnerId"),
        )

    def to_dict(self) -> dict:
        return {
            "type": "transaction",
            "id": self.id,
            "date": format_iso(self.date),
            "amount": self.amount,
            "currency": self.currency,
            "partner": self.partner,
            "name": self.name,
            "reference": self.reference,
            "iban": self.iban,
            "partner_id": self.partner_id,
        }


@dataclass
class FileAnchor:
    """
    Uploaded file looking for its transaction.

    Extraction may be incomplete, so every field except filename is optional.
    The extracted text plays the role of the description and the filename
    the role of the reference.
    """

    filename: str = ""
    date: datetime | None = None
    amount: int | None = None
    currency: str | None = None
    partner: str | None = None
    iban: str | None = None
    text: str | None = None
    partner_id: str | None = None

    @property
    def description(self) -> str | None:
        return self.text

    @property
    def reference(self) -> str | None:
        if not self.filename:
            return None
        return PurePath(self.filename).stem or None

    @classmethod
    def from_dict(cls, data: dict) -> "FileAnchor":
        """Create from a JSON-style dict."""
        return cls(
            filename=data.get("filename") or "",
            date=parse_datetime(data.get("date")),
            amount=parse_minor_amount(data.get("amount")),
            currency=data.get("currency"),
            partner=data.get("partner"),
            iban=data.get("iban"),
            text=data.get("text"),
            partner_id=data.get("partner_id") or data.get("partnerId"),
        )

    def to_dict(self) -> dict:
        return {
            "type": "file",
            "filename": self.filename,
            "date": format_iso(self.date),
            "amount": self.amount,
            "currency": self.currency,
            "partner": self.partner,
            "iban": self.iban,
            "text": self.text,
            "partner_id": self.partner_id,
        }


Anchor = Union[TransactionAnchor, FileAnchor]


def anchor_from_dict(data: dict) -> Anchor:
    """Build the right anchor variant from its "type" discriminant."""
    if data.get("type") == "file":
        return FileAnchor.from_dict(data)
    return TransactionAnchor.from_dict(data)

"""
Gmail REST API client.

Searches one connected Gmail account and turns API messages into
EmailCandidate/AttachmentCandidate objects ready for scoring.
"""

import base64
import logging
from datetime import date, datetime, timezone
from email.utils import parseaddr, parsedate_to_datetime
from typing import Any, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..queries import build_provider_query
from ..schemas import AttachmentCandidate, EmailCandidate, parse_datetime
from .base import (
    AUTH_EXPIRED,
    TOKENS_MISSING,
    AuthExpiredError,
    SearchFailedError,
    classify_email,
    is_likely_receipt_attachment,
)

logger = logging.getLogger(__name__)


def parse_from_header(value: Optional[str]) -> tuple[str, Optional[str]]:
    """Split a From header into (address, display name)."""
    if not value:
        return "", None
    name, address = parseaddr(value)
    return (address or value.strip()), (name.strip() or None)


def _header(headers: list[dict], name: str) -> Optional[str]:
    for header in headers:
        if (header.get("name") or "").lower() == name.lower():
            return header.get("value")
    return None


def _decode_body(data: Optional[str]) -> str:
    if not data:
        return ""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded).decode("utf-8", errors="replace")
    except (ValueError, TypeError):
        return ""


def _message_date(headers: list[dict], internal_date: Any) -> Optional[datetime]:
    raw = _header(headers, "Date")
    if raw:
        try:
            parsed = parsedate_to_datetime(raw)
        except (TypeError, ValueError, IndexError):
            parsed = None
        if parsed is not None:
            return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    if internal_date:
        try:
            return parse_datetime(int(internal_date))
        except (TypeError, ValueError):
            return None
    return None


def _walk_parts(payload: dict):
    for part in payload.get("parts") or []:
        yield part
        yield from _walk_parts(part)


def _extract_attachments(payload: dict) -> list[AttachmentCandidate]:
    attachments = []
    for part in _walk_parts(payload):
        body = part.get("body") or {}
        filename = part.get("filename") or ""
        if not filename or not body.get("attachmentId"):
            continue
        mime_type = part.get("mimeType") or ""
        attachments.append(
            AttachmentCandidate(
                attachment_id=body["attachmentId"],
                filename=filename,
                mime_type=mime_type,
                size=int(body.get("size") or 0),
                is_likely_receipt=is_likely_receipt_attachment(filename, mime_type),
            )
        )
    return attachments


def _extract_body(payload: dict) -> str:
    """Longest text/plain part, else the longest text/html part, else the payload body."""
    best: dict[str, str] = {}
    for part in _walk_parts(payload):
        mime_type = part.get("mimeType")
        if mime_type not in ("text/plain", "text/html"):
            continue
        decoded = _decode_body((part.get("body") or {}).get("data"))
        if len(decoded) > len(best.get(mime_type, "")):
            best[mime_type] = decoded
    if best.get("text/plain"):
        return best["text/plain"]
    if best.get("text/html"):
        return best["text/html"]
    return _decode_body((payload.get("body") or {}).get("data"))


def parse_gmail_message(
    data: dict,
    integration_id: Optional[str] = None,
    include_body: bool = True,
) -> EmailCandidate:
    """
    Convert a Gmail API message resource into an EmailCandidate.

    Attachments are owned by the returned email. Classification flags come
    from subject, snippet and attachment types.
    """
    payload = data.get("payload") or {}
    headers = payload.get("headers") or []
    sender, sender_name = parse_from_header(_header(headers, "From"))
    subject = _header(headers, "Subject") or ""
    snippet = data.get("snippet") or ""
    attachments = _extract_attachments(payload)
    classification = classify_email(
        subject, snippet, [(a.filename, a.mime_type) for a in attachments]
    )

    email = EmailCandidate(
        message_id=str(data.get("id") or ""),
        subject=subject,
        sender=sender,
        sender_name=sender_name,
        snippet=snippet,
        body=_extract_body(payload) if include_body else "",
        date=_message_date(headers, data.get("internalDate")),
        integration_id=integration_id,
        has_pdf=classification.has_pdf_attachment,
        looks_like_inline_invoice=classification.possible_mail_invoice,
        looks_like_invoice_link=classification.possible_invoice_link,
    )
    for attachment in attachments:
        email.add_attachment(attachment)
    return email


class GmailClient:
    """
    Client for the Gmail REST API of one connected account.

    Features:
    - Message search with Gmail query syntax
    - Full message fetch with body, attachments and classification
    - Automatic retry with backoff

    Errors:
    - Missing token or HTTP 401 raise AuthExpiredError
    - Everything else raises SearchFailedError
    """

    DEFAULT_API_URL = "https://gmail.googleapis.com/gmail/v1"
    DEFAULT_TIMEOUT = 30
    DEFAULT_MAX_RESULTS = 20

    def __init__(
        self,
        integration_id: str,
        access_token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: int = DEFAULT_TIMEOUT,
        max_retries: int = 3,
        backoff_factor: float = 0.5,
        max_results: int = DEFAULT_MAX_RESULTS,
    ):
        """
        Initialize Gmail client.

        Args:
            integration_id: Id of the connected account this client searches
            access_token: OAuth access token (never logged)
            api_url: Gmail API base URL
            timeout: Request timeout in seconds
            max_retries: Maximum retry attempts for transient failures
            backoff_factor: Backoff factor for retries
            max_results: Default cap on messages per search
        """
        self.integration_id = integration_id
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.max_results = max_results
        self._has_token = bool(access_token)

        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        })

        # 401 is never retried
        retry_strategy = Retry(
            total=max_retries,
            backoff_factor=backoff_factor,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
            raise_on_status=False,
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        self.session.mount("http://", adapter)
        self.session.mount("https://", adapter)

    def close(self) -> None:
        self.session.close()

    def __enter__(self) -> "GmailClient":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def _request(self, endpoint: str, params: Optional[dict] = None) -> dict:
        """Make a GET request against the account and return the JSON body."""
        if not self._has_token:
            raise AuthExpiredError(self.integration_id, TOKENS_MISSING)

        url = f"{self.api_url}/users/me{endpoint}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise SearchFailedError(self.integration_id, f"Gmail request timed out: {e}")
        except requests.exceptions.RequestException as e:
            raise SearchFailedError(self.integration_id, f"Gmail request failed: {e}")

        if response.status_code == 401:
            raise AuthExpiredError(self.integration_id, AUTH_EXPIRED, "Gmail authentication expired")
        if not response.ok:
            raise SearchFailedError(
                self.integration_id,
                f"Gmail API error ({response.status_code}): {response.reason}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as e:
            raise SearchFailedError(self.integration_id, f"Malformed Gmail response: {e}")

    def list_message_ids(self, query: str, max_results: Optional[int] = None) -> list[str]:
        """List ids of messages matching a Gmail query, following pagination up to max_results."""
        limit = max_results or self.max_results
        ids: list[str] = []
        page_token = None

        while len(ids) < limit:
            params: dict[str, Any] = {"q": query, "maxResults": min(limit - len(ids), 100)}
            if page_token:
                params["pageToken"] = page_token
            data = self._request("/messages", params=params)

            for message in data.get("messages") or []:
                if message.get("id") and message["id"] not in ids:
                    ids.append(message["id"])

            page_token = data.get("nextPageToken")
            if not page_token:
                break

        return ids[:limit]

    def get_message(self, message_id: str, include_body: bool = False) -> EmailCandidate:
        """Fetch and parse one message."""
        data = self._request(f"/messages/{message_id}", params={"format": "full"})
        return parse_gmail_message(data, self.integration_id, include_body=include_body)

    def get_email_content(self, message_id: str) -> EmailCandidate:
        """Fetch one message including its decoded body."""
        return self.get_message(message_id, include_body=True)

    def search_messages(
        self,
        query: str,
        *,
        max_results: Optional[int] = None,
        has_attachments: bool = False,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> list[EmailCandidate]:
        """
        Search the account.

        Args:
            query: Gmail query (may already contain operators)
            max_results: Cap on returned messages
            has_attachments: Restrict to messages with attachments
            date_from: Inclusive lower date bound
            date_to: Inclusive upper date bound

        Returns:
            Parsed messages in the order Gmail returned them
        """
        gmail_query = build_provider_query(
            query, has_attachments=has_attachments, date_from=date_from, date_to=date_to
        )
        logger.debug(f"Searching Gmail account {self.integration_id}: {gmail_query!r}")

        emails = [
            self.get_message(message_id, include_body=True)
            for message_id in self.list_message_ids(gmail_query, max_results)
        ]
        logger.info(f"Gmail account {self.integration_id}: {len(emails)} messages for {gmail_query!r}")
        return emails

"""
Candidate sources.

Adapters that deliver candidates to the matching engine: a Gmail REST
client, a multi-account mail search fan-out and an in-memory local file
index.
"""

from .base import (
    AuthExpiredError,
    LocalFileSource,
    MailSearchError,
    MailSearchSource,
    SearchFailedError,
    classify_email,
    is_likely_receipt_attachment,
)
from .gmail import GmailClient, parse_gmail_message
from .local import InMemoryFileIndex
from .search import AuthIssue, MailSearchResult, MailSearchService, flatten_attachments

__all__ = [
    "MailSearchError",
    "AuthExpiredError",
    "SearchFailedError",
    "MailSearchSource",
    "LocalFileSource",
    "classify_email",
    "is_likely_receipt_attachment",
    "GmailClient",
    "parse_gmail_message",
    "InMemoryFileIndex",
    "AuthIssue",
    "MailSearchResult",
    "MailSearchService",
    "flatten_attachments",
]

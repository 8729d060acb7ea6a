"""
Multi-account mail search.

Fans a list of queries out over every connected account, keeps partial
results when single accounts fail, reports accounts that need reconnecting
and deduplicates the merged result set.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..schemas import AttachmentCandidate, EmailCandidate
from .base import AUTH_ERROR_CODES, AuthExpiredError, MailSearchSource

logger = logging.getLogger(__name__)


@dataclass
class AuthIssue:
    """An account whose credentials need renewing."""

    integration_id: str
    code: str
    message: str = ""

    def to_dict(self) -> dict:
        return {"integration_id": self.integration_id, "code": self.code, "message": self.message}


@dataclass
class MailSearchResult:
    """Merged outcome of searching all accounts."""

    emails: list[EmailCandidate] = field(default_factory=list)
    auth_issues: list[AuthIssue] = field(default_factory=list)
    failed_accounts: list[str] = field(default_factory=list)
    queries_run: list[str] = field(default_factory=list)

    @property
    def attachments(self) -> list[AttachmentCandidate]:
        return flatten_attachments(self.emails)

    @property
    def needs_reconnect(self) -> bool:
        return bool(self.auth_issues)


def flatten_attachments(emails: list[EmailCandidate]) -> list[AttachmentCandidate]:
    """All attachments of the given emails, deduplicated by composite key."""
    seen: set[str] = set()
    attachments: list[AttachmentCandidate] = []
    for email in emails:
        for attachment in email.attachments:
            if attachment.key in seen:
                continue
            seen.add(attachment.key)
            attachments.append(attachment)
    return attachments


class MailSearchService:
    """
    Searches several mail accounts in parallel.

    Queries run in order; the accounts for one query are searched
    concurrently. A failing account contributes nothing and never aborts the
    others. Auth failures are collected once per account so the caller can
    offer a reconnect.
    """

    def __init__(self, sources: list[MailSearchSource], max_workers: int = 4):
        self.sources = list(sources)
        self.max_workers = max(1, max_workers)

    def _search_one(
        self,
        source: MailSearchSource,
        query: str,
        max_results: Optional[int],
        has_attachments: bool,
    ) -> list[EmailCandidate]:
        return source.search_messages(
            query, max_results=max_results, has_attachments=has_attachments
        )

    def search(
        self,
        queries: list[str],
        *,
        max_results: Optional[int] = None,
        has_attachments: bool = False,
        stop_when: Optional[Callable[[list[EmailCandidate]], bool]] = None,
    ) -> MailSearchResult:
        """
        Run every query against every account and merge the results.

        Args:
            queries: Search strings, tried in order
            max_results: Per-account, per-query cap
            has_attachments: Restrict to messages with attachments
            stop_when: Called with the merged emails after each query;
                returning True skips the remaining queries

        Returns:
            MailSearchResult with emails deduplicated by message id, in
            discovery order (query order, then account order)
        """
        result = MailSearchResult()
        seen_messages: set[str] = set()
        blocked: set[str] = set()

        if not self.sources:
            return result

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            for query in queries:
                if not query:
                    continue
                active = [s for s in self.sources if s.integration_id not in blocked]
                if not active:
                    break

                result.queries_run.append(query)
                futures = [
                    (source, executor.submit(self._search_one, source, query, max_results, has_attachments))
                    for source in active
                ]

                for source, future in futures:
                    try:
                        emails = future.result()
                    except AuthExpiredError as e:
                        code = e.code if e.code in AUTH_ERROR_CODES else "AUTH_EXPIRED"
                        logger.info(f"Mail account {source.integration_id} needs reconnect ({code})")
                        blocked.add(source.integration_id)
                        result.auth_issues.append(
                            AuthIssue(integration_id=source.integration_id, code=code, message=str(e))
                        )
                        continue
                    except Exception as e:  # SearchFailedError or any other source failure
                        logger.warning(f"Search failed for account {source.integration_id}: {e}")
                        if source.integration_id not in result.failed_accounts:
                            result.failed_accounts.append(source.integration_id)
                        continue

                    for email in emails:
                        if email.message_id in seen_messages:
                            continue
                        seen_messages.add(email.message_id)
                        result.emails.append(email)

                if stop_when is not None and stop_when(result.emails):
                    logger.debug(f"Stopping after query {query!r}: enough good matches")
                    break

        logger.info(
            f"Mail search: {len(result.emails)} emails from {len(result.queries_run)} queries, "
            f"{len(result.auth_issues)} auth issues, {len(result.failed_accounts)} failed accounts"
        )
        return result

"""
In-memory local document index.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..schemas import LocalFileCandidate
from ..schemas.dates import parse_datetime

logger = logging.getLogger(__name__)

# Shorter queries hit too much document text
MIN_TEXT_QUERY_LENGTH = 4


def matched_fields(file: LocalFileCandidate, query: str) -> list[str]:
    """Names of the file fields containing the (case-insensitive) query."""
    query_lower = query.lower()
    fields: list[str] = []
    if query_lower in (file.filename or "").lower():
        fields.append("filename")
    if file.partner and query_lower in file.partner.lower():
        fields.append("partner")
    if (
        not fields
        and len(query_lower) >= MIN_TEXT_QUERY_LENGTH
        and file.text
        and query_lower in file.text.lower()
    ):
        fields.append("document text")
    return fields


def _searchable(file: LocalFileCandidate) -> bool:
    mime_type = (file.mime_type or "").lower()
    return mime_type == "application/pdf" or mime_type.startswith("image/")


def _in_range(
    file: LocalFileCandidate,
    date_from: Optional[datetime],
    date_to: Optional[datetime],
) -> bool:
    file_date = parse_datetime(file.date)
    # Undated files always pass
    if file_date is None:
        return True
    if date_from is not None and file_date < parse_datetime(date_from):
        return False
    if date_to is not None and file_date > parse_datetime(date_to):
        return False
    return True


class InMemoryFileIndex:
    """Free-text search over local file candidates (PDFs and images only)."""

    def __init__(self, files: Optional[list[LocalFileCandidate]] = None):
        self.files = list(files or [])

    def add(self, file: LocalFileCandidate) -> None:
        self.files.append(file)

    def search_with_matches(
        self,
        query: str,
        limit: Optional[int] = None,
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
    ) -> list[tuple[LocalFileCandidate, list[str]]]:
        """
        Search files, returning each hit with the fields that matched.

        An empty query returns every searchable file with no matched fields.
        Results keep index order.
        """
        query = (query or "").strip()
        hits: list[tuple[LocalFileCandidate, list[str]]] = []
        for file in self.files:
            if not _searchable(file) or not _in_range(file, date_from, date_to):
                continue
            fields = matched_fields(file, query) if query else []
            if query and not fields:
                continue
            hits.append((file, fields))
            if limit is not None and len(hits) >= limit:
                break

        logger.debug(f"Local search {query!r}: {len(hits)} of {len(self.files)} files")
        return hits

    def search(self, query: str, limit: Optional[int] = None) -> list[LocalFileCandidate]:
        return [file for file, _ in self.search_with_matches(query, limit)]

"""
Learned pattern store.

In-memory read/write store of search patterns that previously led to a
manual connection, keyed by partner id.
"""

from .patterns import InMemoryPatternStore

__all__ = ["InMemoryPatternStore"]

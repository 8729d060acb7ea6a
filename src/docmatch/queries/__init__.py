"""Default query derivation and search query expansion."""

from .builder import (
    QueryGenerator,
    QuerySuggestion,
    build_default_query,
    build_provider_query,
    build_search_queries,
    select_learned_pattern,
)

__all__ = [
    "QueryGenerator",
    "QuerySuggestion",
    "build_default_query",
    "build_provider_query",
    "build_search_queries",
    "select_learned_pattern",
]

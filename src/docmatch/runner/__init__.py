"""
CLI runner module.

Provides commands:
- score: Rank candidates from a JSON input file
- query: Show the default search query and its variants
- search: Search connected Gmail accounts and rank the results
- init-config: Write a default config file
"""

from .main import create_cli, main

__all__ = [
    "create_cli",
    "main",
]

"""AI-assisted search query generation (optional, Ollama)."""

from docmatch.ai.prompts import QueryPrompt
from docmatch.ai.query_generator import OllamaQueryGenerator, sanitize_query

__all__ = ["OllamaQueryGenerator", "QueryPrompt", "sanitize_query"]

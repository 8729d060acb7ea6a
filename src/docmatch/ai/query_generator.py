"""AI search query generation via Ollama.

Asks a local (or proxied) Ollama model for a single brand keyword that finds
the receipt for a transaction. Any failure yields None so the caller falls
back to the rule-based query.
"""

from __future__ import annotations

import json
import logging
import re

import httpx

from ..config import LLMConfig
from ..display import format_amount
from ..schemas import Anchor, PartnerProfile
from .prompts import QueryPrompt

logger = logging.getLogger(__name__)

MAX_QUERY_LENGTH = 50
FALLBACK_WORDS = 3

_QUOTES = re.compile(r"^[\"']|[\"']$")


def sanitize_query(raw: str | None) -> str:
    """Reduce a model answer to a short lowercase query.

    Long or multi-line answers keep their first three words; surrounding
    quotes are dropped.
    """
    query = (raw or "").strip().lower()
    if len(query) > MAX_QUERY_LENGTH or "\n" in query:
        query = " ".join(query.split()[:FALLBACK_WORDS])
    return _QUOTES.sub("", query).strip()


def _build_headers(auth_header: str | None) -> dict[str, str]:
    headers: dict[str, str] = {}
    if auth_header:
        # Support formats: "Bearer token" or "Custom-Header: value"
        if ":" in auth_header:
            key, value = auth_header.split(":", 1)
            headers[key.strip()] = value.strip()
        else:
            headers["Authorization"] = auth_header
    return headers


class OllamaQueryGenerator:
    """Search keyword suggestions from an Ollama model.

    Global opt-in is config.llm.enabled; a disabled generator never calls out.
    Prompts and answers are only logged at DEBUG level.
    """

    def __init__(self, llm_config: LLMConfig, client: httpx.Client | None = None) -> None:
        """Initialize the generator.

        Args:
            llm_config: Ollama settings.
            client: Optional preconfigured httpx client (tests).
        """
        self.llm_config = llm_config
        self._prompt = QueryPrompt()
        self._owns_client = client is None
        self._client = client or httpx.Client(
            timeout=httpx.Timeout(
                connect=10.0,
                read=float(llm_config.timeout_seconds),
                write=30.0,
                pool=10.0,
            ),
            headers=_build_headers(llm_config.auth_header),
        )

    @property
    def is_enabled(self) -> bool:
        return self.llm_config.enabled

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> "OllamaQueryGenerator":
        return self

    def __exit__(self, *args) -> None:
        self.close()

    def build_user_message(self, anchor: Anchor, partner: PartnerProfile | None = None) -> str | None:
        """Prompt body for an anchor, or None if there is nothing to ask about."""
        partner_name = partner.name if partner else None
        booking_text = anchor.description
        if not any((partner_name, anchor.partner, booking_text, anchor.reference)):
            return None

        amount = None
        if anchor.amount:
            amount = format_amount(abs(anchor.amount), anchor.currency or "EUR")

        return self._prompt.format_user_message(
            partner_name=partner_name,
            counterparty=anchor.partner,
            booking_text=booking_text,
            reference=anchor.reference,
            iban=anchor.iban,
            amount=amount,
            date=anchor.date.date().isoformat() if anchor.date else None,
        )

    def generate_query(self, anchor: Anchor, partner: PartnerProfile | None = None) -> str | None:
        """Suggest a search keyword for the anchor.

        Returns:
            Sanitized keyword, or None when disabled, without input, or on failure.
        """
        if not self.is_enabled:
            return None

        user_message = self.build_user_message(anchor, partner)
        if user_message is None:
            return None

        content = self._call_ollama(user_message)
        if content is None:
            return None

        query = sanitize_query(self._extract_query(content))
        logger.debug("AI query suggestion: %r", query)
        return query or None

    @staticmethod
    def _extract_query(content: str) -> str:
        """Pull the keyword out of a JSON answer, accepting plain text too."""
        try:
            data = json.loads(content)
        except json.JSONDecodeError:
            return content
        if isinstance(data, dict):
            value = data.get("query") or data.get("keyword") or ""
            return value if isinstance(value, str) else ""
        if isinstance(data, str):
            return data
        return ""

    def _call_ollama(self, user_message: str) -> str | None:
        """Call the Ollama chat API.

        Returns:
            Message content, or None on failure.
        """
        url = f"{self.llm_config.ollama_url.rstrip('/')}/api/chat"
        payload = {
            "model": self.llm_config.model,
            "messages": [
                {"role": "system", "content": self._prompt.system_prompt},
                {"role": "user", "content": user_message},
            ],
            "stream": False,
            "format": "json",
            "options": {"temperature": 0.1, "num_predict": 50},
        }

        logger.debug("Calling Ollama model %s at %s", self.llm_config.model, self.llm_config.ollama_url)
        try:
            response = self._client.post(url, json=payload)
            response.raise_for_status()
            data = response.json()
            content = data.get("message", {}).get("content", "")
            logger.debug("Ollama %s returned %d chars", self.llm_config.model, len(content))
            return content
        except httpx.TimeoutException:
            logger.warning("Ollama request timed out after %ds", self.llm_config.timeout_seconds)
            return None
        except httpx.HTTPStatusError as e:
            logger.error(
                "Ollama API error %s for model '%s' at %s",
                e.response.status_code,
                self.llm_config.model,
                self.llm_config.ollama_url,
            )
            return None
        except httpx.RequestError as e:
            logger.error("Ollama request failed: %s (URL: %s)", e, self.llm_config.ollama_url)
            return None
        except (ValueError, AttributeError) as e:
            logger.error("Malformed Ollama response: %s", e)
            return None

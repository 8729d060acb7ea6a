"""Prompt templates for AI search query generation.

Prompts are versioned so suggestions can be traced to the prompt that
produced them.
"""

from __future__ import annotations

from dataclasses import dataclass

# v1.0: single keyword, JSON answer
PROMPT_VERSION = "v1.0"


@dataclass
class QueryPrompt:
    """Prompt template for a one-word receipt search keyword.

    Attributes:
        version: Prompt version.
        system_prompt: System message setting LLM behavior.
        user_template: Template for user message with placeholders.
    """

    version: str = PROMPT_VERSION

    system_prompt: str = """Extract ONE simple keyword to search for receipt files. Return ONLY ONE WORD.

Rules:
- Return exactly ONE word, lowercase
- Extract the company/brand name only
- Ignore: GmbH, Inc, LLC, AG, numbers, dates, locations
- Ignore payment prefixes: PP*, SQ*, EC, SEPA

Examples:
"AMAZON.DE MARKETPLACE" -> amazon
"PP*NETFLIX.COM" -> netflix
"REWE SAGT DANKE 12345" -> rewe
"Google Cloud EMEA Ltd" -> google
"LIDL SAGT DANKE" -> lidl
"Media Markt 1070 Wien" -> mediamarkt
"SPOTIFY AB" -> spotify
"Apple.com/bill" -> apple

Respond in JSON format:
{
    "query": "keyword"
}"""

    user_template: str = """Transaction:
{context}

ONE word:"""

    def format_user_message(
        self,
        partner_name: str | None = None,
        counterparty: str | None = None,
        booking_text: str | None = None,
        reference: str | None = None,
        iban: str | None = None,
        amount: str | None = None,
        date: str | None = None,
    ) -> str:
        """Format the user message with whatever transaction fields are known.

        The counterparty line is skipped when it repeats the partner name.

        Returns:
            Formatted user message.
        """
        lines = []
        if partner_name:
            lines.append(f"Matched partner name: {partner_name}")
        if counterparty and counterparty != partner_name:
            lines.append(f"Counterparty field: {counterparty}")
        if booking_text:
            lines.append(f"Booking text: {booking_text}")
        if reference:
            lines.append(f"Reference: {reference}")
        if iban:
            lines.append(f"IBAN: {iban}")
        if amount:
            lines.append(f"Amount: {amount}")
        if date:
            lines.append(f"Date: {date}")
        return self.user_template.format(context="\n".join(lines))

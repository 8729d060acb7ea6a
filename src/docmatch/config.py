"""
Configuration management (SSOT).

This module defines ALL configuration for the matching engine and its
adapters. All config keys are defined here; no other module should invent
config keys or hard-code scoring weights.

Key invariants:
- Scoring weights are tunable constants, never inline literals in the engine
- Date decay bands are ordered by max_days and non-increasing in multiplier
- Access tokens are read from config or environment and never logged
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class ScoringWeights:
    """Additive signal weights (0-1 scale).

    Defaults reproduce the production heuristics; they were tuned by hand,
    not fitted to labelled data.
    """

    # Candidate flagged as receipt-like by the ingestion layer
    receipt_type: float = 0.15
    # Receipt keyword hits, checked per field and stacked
    filename_keyword: float = 0.25
    subject_keyword: float = 0.15
    text_keyword: float = 0.10
    # Amount rendering found in candidate text or filename
    amount_text: float = 0.20
    partner_token: float = 0.10
    reference_token: float = 0.10
    sender_domain: float = 0.20
    learned_account: float = 0.10

    # Extracted-data signals (local files with OCR/extraction results)
    partner_id: float = 0.35
    amount_exact: float = 0.40
    amount_within_1pct: float = 0.38
    amount_within_5pct: float = 0.30
    amount_within_10pct: float = 0.20
    extracted_partner: float = 0.20
    # Extracted amount off by more than this ratio → mismatch penalty
    amount_mismatch_ratio: float = 0.50
    amount_mismatch_penalty: float = 0.40


@dataclass
class DateDecayBand:
    """Multiplier applied when the date distance is <= max_days."""

    max_days: float
    multiplier: float


def _default_decay_bands() -> list[DateDecayBand]:
    return [
        DateDecayBand(7, 1.0),
        DateDecayBand(14, 0.9),
        DateDecayBand(30, 0.8),
        DateDecayBand(60, 0.65),
        DateDecayBand(90, 0.5),
        DateDecayBand(180, 0.35),
    ]


@dataclass
class ScoringConfig:
    """Scoring, labelling and policy thresholds."""

    weights: ScoringWeights = field(default_factory=ScoringWeights)
    date_decay: list[DateDecayBand] = field(default_factory=_default_decay_bands)
    # Multiplier beyond the last band
    date_decay_floor: float = 0.25
    # Heuristic output never reaches 1.0; that is reserved for confirmed matches
    score_cap: float = 0.95
    strong_threshold: float = 0.75
    likely_threshold: float = 0.40
    # Minimum score to suggest/download a candidate
    suggestion_threshold: float = 0.60
    # Minimum score to connect without asking
    auto_connect_threshold: float = 0.75
    # Stop trying further queries once this many candidates reach the threshold
    great_match_threshold: float = 0.75
    great_match_count: int = 2
    # Minimum partner-match confidence to auto-assign a partner
    partner_auto_apply_threshold: float = 0.89

    def decay_for(self, days: float) -> float:
        """Look up the date decay multiplier for a distance in days."""
        for band in self.date_decay:
            if days <= band.max_days:
                return band.multiplier
        return self.date_decay_floor


@dataclass
class GmailAccountConfig:
    """One connected Gmail account."""

    integration_id: str
    access_token: str = ""


@dataclass
class GmailConfig:
    """Gmail REST API settings."""

    api_url: str = "https://gmail.googleapis.com/gmail/v1"
    timeout_seconds: int = 30
    max_retries: int = 3
    max_results: int = 20
    # Parallel account/query searches
    max_workers: int = 4
    accounts: list[GmailAccountConfig] = field(default_factory=list)


@dataclass
class LLMConfig:
    """Local LLM (Ollama) configuration for AI query generation.

    - enabled: Master switch (default OFF)
    - ollama_url: Can be localhost, LAN IP, or remote URL
    - auth_header: Optional auth header for proxied deployments
    """

    enabled: bool = False
    ollama_url: str = "http://localhost:11434"
    auth_header: str | None = None
    model: str = "qwen2.5:3b-instruct-q4_K_M"
    timeout_seconds: int = 30

    def is_remote(self) -> bool:
        """Check if Ollama URL is remote (not localhost)."""
        url_lower = self.ollama_url.lower()
        return not any(
            local in url_lower
            for local in ["localhost", "127.0.0.1", "::1", "host.docker.internal"]
        )


@dataclass
class Config:
    """Application configuration (SSOT)."""

    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    gmail: GmailConfig = field(default_factory=GmailConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []
        scoring = self.scoring

        if not 0 < scoring.score_cap <= 1:
            errors.append("scoring.score_cap must be in (0, 1]")
        if scoring.strong_threshold < scoring.likely_threshold:
            errors.append("scoring.strong_threshold must be >= likely_threshold")
        if scoring.auto_connect_threshold < scoring.suggestion_threshold:
            errors.append("scoring.auto_connect_threshold must be >= suggestion_threshold")

        # Decay must never reward a larger date distance
        previous_days = -1.0
        previous_multiplier = 1.0
        for band in scoring.date_decay:
            if band.max_days <= previous_days:
                errors.append("scoring.date_decay bands must be sorted by max_days")
                break
            if band.multiplier > previous_multiplier:
                errors.append("scoring.date_decay multipliers must be non-increasing")
                break
            previous_days = band.max_days
            previous_multiplier = band.multiplier
        if scoring.date_decay and scoring.date_decay_floor > scoring.date_decay[-1].multiplier:
            errors.append("scoring.date_decay_floor must not exceed the last band multiplier")

        if not self.gmail.api_url:
            errors.append("gmail.api_url is required")

        if self.llm.enabled:
            if not self.llm.ollama_url:
                errors.append("llm.ollama_url is required when LLM is enabled")
            elif self.llm.is_remote() and not self.llm.auth_header:
                # Remote without auth is allowed but logged
                logger.warning(
                    "LLM is enabled with remote Ollama URL %s and no auth_header",
                    self.llm.ollama_url,
                )

        return errors


def _load_weights(data: dict) -> ScoringWeights:
    defaults = ScoringWeights()
    return ScoringWeights(
        **{name: float(data.get(name, getattr(defaults, name))) for name in vars(defaults)}
    )


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - GMAIL_API_URL
    - GMAIL_ACCESS_TOKEN + GMAIL_INTEGRATION_ID (adds/overrides one account)
    - DOCMATCH_LLM_ENABLED (true/false)
    - OLLAMA_URL
    - OLLAMA_MODEL
    - OLLAMA_TIMEOUT (request timeout in seconds)
    """
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    # Scoring config
    scoring_data = data.get("scoring", {}) or {}
    scoring_defaults = ScoringConfig()
    bands_data = scoring_data.get("date_decay")
    if bands_data:
        date_decay = [
            DateDecayBand(max_days=float(b["max_days"]), multiplier=float(b["multiplier"]))
            for b in bands_data
        ]
    else:
        date_decay = _default_decay_bands()

    scoring = ScoringConfig(
        weights=_load_weights(scoring_data.get("weights", {}) or {}),
        date_decay=date_decay,
        date_decay_floor=scoring_data.get("date_decay_floor", scoring_defaults.date_decay_floor),
        score_cap=scoring_data.get("score_cap", scoring_defaults.score_cap),
        strong_threshold=scoring_data.get("strong_threshold", scoring_defaults.strong_threshold),
        likely_threshold=scoring_data.get("likely_threshold", scoring_defaults.likely_threshold),
        suggestion_threshold=scoring_data.get(
            "suggestion_threshold", scoring_defaults.suggestion_threshold
        ),
        auto_connect_threshold=scoring_data.get(
            "auto_connect_threshold", scoring_defaults.auto_connect_threshold
        ),
        great_match_threshold=scoring_data.get(
            "great_match_threshold", scoring_defaults.great_match_threshold
        ),
        great_match_count=scoring_data.get("great_match_count", scoring_defaults.great_match_count),
        partner_auto_apply_threshold=scoring_data.get(
            "partner_auto_apply_threshold", scoring_defaults.partner_auto_apply_threshold
        ),
    )

    # Gmail config
    gmail_data = data.get("gmail", {}) or {}
    accounts = [
        GmailAccountConfig(
            integration_id=str(a["integration_id"]),
            access_token=a.get("access_token", ""),
        )
        for a in gmail_data.get("accounts", []) or []
    ]
    env_token = os.environ.get("GMAIL_ACCESS_TOKEN", "")
    if env_token:
        env_integration = os.environ.get("GMAIL_INTEGRATION_ID", "default")
        accounts = [a for a in accounts if a.integration_id != env_integration]
        accounts.append(GmailAccountConfig(integration_id=env_integration, access_token=env_token))

    gmail = GmailConfig(
        api_url=os.environ.get(
            "GMAIL_API_URL", gmail_data.get("api_url", "https://gmail.googleapis.com/gmail/v1")
        ),
        timeout_seconds=gmail_data.get("timeout_seconds", 30),
        max_retries=gmail_data.get("max_retries", 3),
        max_results=gmail_data.get("max_results", 20),
        max_workers=gmail_data.get("max_workers", 4),
        accounts=accounts,
    )

    # LLM config
    llm_data = data.get("llm", {}) or {}
    llm_enabled_env = os.environ.get("DOCMATCH_LLM_ENABLED", "").lower()
    llm_enabled = llm_data.get("enabled", False)
    if llm_enabled_env == "true":
        llm_enabled = True
    elif llm_enabled_env == "false":
        llm_enabled = False

    llm = LLMConfig(
        enabled=llm_enabled,
        ollama_url=os.environ.get(
            "OLLAMA_URL", llm_data.get("ollama_url", "http://localhost:11434")
        ),
        auth_header=os.environ.get("OLLAMA_AUTH_HEADER", llm_data.get("auth_header")),
        model=os.environ.get("OLLAMA_MODEL", llm_data.get("model", "qwen2.5:3b-instruct-q4_K_M")),
        timeout_seconds=int(os.environ.get("OLLAMA_TIMEOUT", llm_data.get("timeout_seconds", 30))),
    )

    return Config(scoring=scoring, gmail=gmail, llm=llm)


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# Document matching engine configuration
#
# Scores are on a 0-1 scale. Weights are additive; the date decay multiplies
# the whole sum; the result is capped at score_cap.

scoring:
  weights:
    receipt_type: 0.15          # Candidate flagged as receipt-like (PDF/image, invoice mail)
    filename_keyword: 0.25      # "invoice", "rechnung", ... in filename
    subject_keyword: 0.15       # ... in email subject
    text_keyword: 0.10          # ... anywhere in email text
    amount_text: 0.20           # Amount rendering (12.34 / 12,34 / 1.234,56) in text or filename
    partner_token: 0.10         # Partner name token in text
    reference_token: 0.10       # Booking text / reference token in text or filename
    sender_domain: 0.20         # Sender domain is a known partner domain
    learned_account: 0.10       # Learned pattern points at the same mail account
    partner_id: 0.35            # Local file already assigned to the same partner
    amount_exact: 0.40          # Extracted amount equals transaction amount
    amount_within_1pct: 0.38
    amount_within_5pct: 0.30
    amount_within_10pct: 0.20
    extracted_partner: 0.20     # Extracted partner contains/is contained in partner name
    amount_mismatch_ratio: 0.50 # Extracted amount further off than this → penalty
    amount_mismatch_penalty: 0.40
  date_decay:                   # Multiplier for |candidate date - anchor date|
    - {max_days: 7, multiplier: 1.0}
    - {max_days: 14, multiplier: 0.9}
    - {max_days: 30, multiplier: 0.8}
    - {max_days: 60, multiplier: 0.65}
    - {max_days: 90, multiplier: 0.5}
    - {max_days: 180, multiplier: 0.35}
  date_decay_floor: 0.25
  score_cap: 0.95
  strong_threshold: 0.75
  likely_threshold: 0.40
  suggestion_threshold: 0.60
  auto_connect_threshold: 0.75
  great_match_threshold: 0.75
  great_match_count: 2
  partner_auto_apply_threshold: 0.89

gmail:
  api_url: "https://gmail.googleapis.com/gmail/v1"
  timeout_seconds: 30
  max_retries: 3
  max_results: 20
  max_workers: 4
  accounts: []                  # - {integration_id: "work", access_token: "..."}

# Local LLM settings (Ollama) for AI query generation
llm:
  enabled: false
  ollama_url: "http://localhost:11434"
  auth_header: null
  model: "qwen2.5:3b-instruct-q4_K_M"
  timeout_seconds: 30
"""

    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)

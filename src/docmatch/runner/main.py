"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Optional

from ..ai import OllamaQueryGenerator
from ..config import Config, ConfigValidationError, create_default_config, load_config
from ..display import format_amount, format_score
from ..matching import MatchingEngine, RankedCandidate, rank_with_scores
from ..queries import build_default_query, build_search_queries
from ..schemas import (
    Anchor,
    Candidate,
    CandidateKind,
    MatchContext,
    PatternSource,
    anchor_from_dict,
    candidates_from_dicts,
)
from ..sources import GmailClient, MailSearchService, flatten_attachments
from ..state_store import InMemoryPatternStore

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="docmatch",
        description="Find and rank the invoice or receipt that belongs to a transaction",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # score command
    score_parser = subparsers.add_parser(
        "score", help="Score and rank candidates from a JSON input file"
    )
    score_parser.add_argument("input", type=Path, help="JSON file with anchor, candidates, context")
    score_parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Maximum candidates to show (default: 20)",
    )
    score_parser.add_argument("--json", action="store_true", help="Print results as JSON")

    # query command
    query_parser = subparsers.add_parser(
        "query", help="Show the default search query and its variants"
    )
    query_parser.add_argument("input", type=Path, help="JSON file with anchor and context")
    query_parser.add_argument(
        "--include-anchor-tokens",
        action="store_true",
        help="Mine the anchor description/reference for filename tokens",
    )
    query_parser.add_argument("--json", action="store_true", help="Print result as JSON")

    # search command
    search_parser = subparsers.add_parser(
        "search", help="Search connected Gmail accounts and rank the results"
    )
    search_parser.add_argument("input", type=Path, help="JSON file with anchor and context")
    search_parser.add_argument(
        "--query",
        type=str,
        default=None,
        help="Base query (default: derived from the anchor)",
    )
    search_parser.add_argument(
        "--include-anchor-tokens",
        action="store_true",
        help="Mine the anchor description/reference for filename tokens",
    )
    search_parser.add_argument(
        "--has-attachments",
        action="store_true",
        help="Only return messages with attachments",
    )
    search_parser.add_argument(
        "--limit",
        type=int,
        default=20,
        help="Maximum candidates to show (default: 20)",
    )
    search_parser.add_argument("--json", action="store_true", help="Print results as JSON")

    # init-config command
    init_parser = subparsers.add_parser("init-config", help="Write a default config file")
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config file",
    )

    return parser


def load_input(path: Path) -> dict[str, Any]:
    """Read a JSON input file; raises ValueError for unusable content."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("Input must be a JSON object")
    if not isinstance(data.get("anchor"), dict):
        raise ValueError("Input needs an 'anchor' object")
    return data


def _parse_input(data: dict[str, Any]) -> tuple[Anchor, list[Candidate], MatchContext]:
    anchor = anchor_from_dict(data["anchor"])
    candidates = candidates_from_dicts(data.get("candidates") or [])
    context = MatchContext.from_dict(data.get("context"))
    return anchor, candidates, context


def _describe(candidate: Candidate) -> str:
    if candidate.kind is CandidateKind.LOCAL:
        return f"📄 {candidate.filename or candidate.key}"
    if candidate.kind is CandidateKind.EMAIL:
        return f"✉️  {candidate.subject or '(no subject)'} <{candidate.sender}>"
    return f"📎 {candidate.filename} ({candidate.subject or '(no subject)'})"


def _print_ranked(ranked: list[RankedCandidate], engine: MatchingEngine, limit: int) -> None:
    if not ranked:
        print("  (no candidates)")
        return

    for item in ranked[:limit]:
        result = item.result
        if engine.is_auto_connect(result):
            marker = "✓"
        elif engine.is_suggestion(result):
            marker = "•"
        else:
            marker = " "
        print(f"  {marker} {format_score(result.score, result.label):>14}  {_describe(item.candidate)}")
        if result.reasons:
            print(f"        {'; '.join(result.reasons)}")

    if len(ranked) > limit:
        print(f"  … {len(ranked) - limit} more")


def _print_anchor(anchor: Anchor) -> None:
    title = anchor.partner or anchor.description or anchor.reference or "(unnamed)"
    amount = format_amount(anchor.amount, anchor.currency or "EUR")
    when = anchor.date.date().isoformat() if anchor.date else "no date"
    print(f"\n🔎 {title} | {amount or 'no amount'} | {when}")


def cmd_score(config: Config, input_path: Path, limit: int, as_json: bool) -> int:
    """Score and rank candidates from an input file."""
    try:
        anchor, candidates, context = _parse_input(load_input(input_path))
    except (OSError, ValueError) as e:
        print(f"❌ Failed to read input: {e}")
        return 1

    engine = MatchingEngine(config.scoring)
    ranked = rank_with_scores(anchor, candidates, context, engine)

    if as_json:
        print(json.dumps([r.to_dict() for r in ranked[:limit]], indent=2, ensure_ascii=False))
        return 0

    _print_anchor(anchor)
    _print_ranked(ranked, engine, limit)
    print(f"\n✓ Ranked {len(ranked)} candidate(s)")
    return 0


def _query_generator(config: Config) -> Optional[OllamaQueryGenerator]:
    if not config.llm.enabled:
        return None
    return OllamaQueryGenerator(config.llm)


def cmd_query(config: Config, input_path: Path, include_anchor_tokens: bool, as_json: bool) -> int:
    """Print the default query for an anchor and its search variants."""
    try:
        anchor, _, context = _parse_input(load_input(input_path))
    except (OSError, ValueError) as e:
        print(f"❌ Failed to read input: {e}")
        return 1

    generator = _query_generator(config)
    try:
        suggestion = build_default_query(
            anchor, context.learned_patterns, context.partner, generator
        )
    finally:
        if generator is not None:
            generator.close()

    variants = build_search_queries(suggestion.query, anchor, include_anchor_tokens)

    if as_json:
        print(json.dumps({**suggestion.to_dict(), "variants": variants}, indent=2, ensure_ascii=False))
        return 0

    print(f"Query:    {suggestion.query or '(none)'}")
    print(f"Source:   {suggestion.source}")
    print("Variants:")
    for variant in variants:
        print(f"  - {variant}")
    return 0


def cmd_search(
    config: Config,
    input_path: Path,
    base_query: Optional[str],
    include_anchor_tokens: bool,
    has_attachments: bool,
    limit: int,
    as_json: bool,
) -> int:
    """Search Gmail accounts for documents matching the anchor and rank them."""
    try:
        anchor, local_candidates, context = _parse_input(load_input(input_path))
    except (OSError, ValueError) as e:
        print(f"❌ Failed to read input: {e}")
        return 1

    if not config.gmail.accounts:
        print("❌ No Gmail accounts configured (gmail.accounts or GMAIL_ACCESS_TOKEN)")
        return 1

    learned = [
        p for p in context.learned_patterns if p.partner_id == anchor.partner_id
    ] or context.learned_patterns

    if base_query is None:
        generator = _query_generator(config)
        try:
            suggestion = build_default_query(anchor, learned, context.partner, generator)
        finally:
            if generator is not None:
                generator.close()
        base_query = suggestion.query
        logger.info(f"Using {suggestion.source} query {base_query!r}")

    queries = build_search_queries(base_query, anchor, include_anchor_tokens)
    if not queries:
        print("❌ Nothing to search for: no query could be derived from the anchor")
        return 1

    engine = MatchingEngine(config.scoring)

    def enough(emails: list) -> bool:
        pool = [*emails, *flatten_attachments(emails)]
        return engine.has_enough_great_matches(engine.score_all(anchor, pool, context))

    clients = [
        GmailClient(
            integration_id=account.integration_id,
            access_token=account.access_token,
            api_url=config.gmail.api_url,
            timeout=config.gmail.timeout_seconds,
            max_retries=config.gmail.max_retries,
            max_results=config.gmail.max_results,
        )
        for account in config.gmail.accounts
    ]
    try:
        service = MailSearchService(clients, max_workers=config.gmail.max_workers)
        result = service.search(
            queries,
            max_results=config.gmail.max_results,
            has_attachments=has_attachments,
            stop_when=enough,
        )
    finally:
        for client in clients:
            client.close()

    candidates: list[Candidate] = [*local_candidates, *result.emails, *result.attachments]
    ranked = rank_with_scores(anchor, candidates, context, engine)

    # An auto-connectable mail hit teaches the base query for its account
    store = InMemoryPatternStore(context.learned_patterns)
    best_mail = next((r for r in ranked if r.candidate.integration_id), None)
    if anchor.partner_id and best_mail is not None and engine.is_auto_connect(best_mail.result):
        store.record_success(
            anchor.partner_id,
            base_query,
            source_type=PatternSource.GMAIL,
            integration_id=best_mail.candidate.integration_id,
        )

    if as_json:
        print(json.dumps(
            {
                "queries": result.queries_run,
                "results": [r.to_dict() for r in ranked[:limit]],
                "auth_issues": [issue.to_dict() for issue in result.auth_issues],
                "failed_accounts": result.failed_accounts,
                "learned_patterns": store.to_dicts(),
            },
            indent=2,
            ensure_ascii=False,
        ))
        return 0

    _print_anchor(anchor)
    print(f"   Queries: {', '.join(result.queries_run) or '(none)'}")
    _print_ranked(ranked, engine, limit)

    for issue in result.auth_issues:
        print(f"\n🔑 Reconnect Gmail account {issue.integration_id} ({issue.code})")
    for integration_id in result.failed_accounts:
        print(f"\n⚠️  Search failed for account {integration_id}; its results are missing")

    print(f"\n✓ Ranked {len(ranked)} candidate(s)")
    return 0


def cmd_init_config(config_path: Path, force: bool) -> int:
    """Write a default config file."""
    if config_path.exists() and not force:
        print(f"❌ {config_path} already exists (use --force to overwrite)")
        return 1
    create_default_config(config_path)
    print(f"✓ Wrote default config to {config_path}")
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    if parsed.command == "init-config":
        return cmd_init_config(parsed.config, parsed.force)

    # Load config
    try:
        config = load_config(parsed.config)
        errors = config.validate()
        if errors:
            raise ConfigValidationError("; ".join(errors))
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    # Route to command
    if parsed.command == "score":
        return cmd_score(config, parsed.input, parsed.limit, parsed.json)
    elif parsed.command == "query":
        return cmd_query(config, parsed.input, parsed.include_anchor_tokens, parsed.json)
    elif parsed.command == "search":
        return cmd_search(
            config,
            parsed.input,
            base_query=parsed.query,
            include_anchor_tokens=parsed.include_anchor_tokens,
            has_attachments=parsed.has_attachments,
            limit=parsed.limit,
            as_json=parsed.json,
        )
    else:
        parser.print_help()
        return 1


if __name__ == "__main__":
    sys.exit(main())

"""Tests for CLI commands.

These tests verify that all CLI commands are properly registered and callable.
"""

import json
from pathlib import Path

import pytest
import responses

from docmatch.runner.main import create_cli, main

GMAIL_API_URL = "http://gmail.test/gmail/v1"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "GMAIL_API_URL",
        "GMAIL_ACCESS_TOKEN",
        "GMAIL_INTEGRATION_ID",
        "DOCMATCH_LLM_ENABLED",
        "OLLAMA_URL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def input_file(tmp_path: Path) -> Path:
    """Anchor, candidates and context for an Amazon card payment."""
    path = tmp_path / "input.json"
    path.write_text(
        json.dumps(
            {
                "anchor": {
                    "type": "transaction",
                    "id": "tx-1",
                    "date": "2024-03-10",
                    "amount": -4999,
                    "currency": "EUR",
                    "partner": "Amazon EU S.a.r.l.",
                    "name": "AMAZON EU",
                    "partner_id": "partner-amazon",
                },
                "candidates": [
                    {"id": "file-scan", "filename": "scan.pdf", "mime_type": "application/pdf"},
                    {
                        "id": "file-1",
                        "filename": "Amazon_Invoice_49.99.pdf",
                        "mime_type": "application/pdf",
                        "date": "2024-03-10",
                    },
                ],
                "context": {
                    "partner": {
                        "id": "partner-amazon",
                        "name": "Amazon",
                        "email_domains": ["amazon.de"],
                    },
                    "learned_patterns": [
                        {
                            "pattern": "amazon rechnung",
                            "source_type": "gmail",
                            "integration_id": "acc-work",
                            "usage_count": 3,
                            "confidence": 0.8,
                            "partner_id": "partner-amazon",
                        }
                    ],
                },
            }
        )
    )
    return path


class TestCLICommandRegistry:
    """Tests for CLI command registration."""

    def test_all_commands_registered(self):
        """Verify all expected commands are registered."""
        parser = create_cli()

        subparsers_action = None
        for action in parser._actions:
            if action.dest == "command":
                subparsers_action = action
                break

        assert subparsers_action is not None
        commands = list(subparsers_action.choices.keys())

        assert "score" in commands
        assert "query" in commands
        assert "search" in commands
        assert "init-config" in commands

    def test_score_command_options(self):
        """Score command should accept --limit and --json."""
        parser = create_cli()

        args = parser.parse_args(["score", "in.json"])
        assert args.limit == 20
        assert args.json is False

        args = parser.parse_args(["score", "in.json", "--limit", "5", "--json"])
        assert args.limit == 5
        assert args.json is True

    def test_search_command_options(self):
        """Search command should accept query overrides and filters."""
        parser = create_cli()

        args = parser.parse_args(
            ["search", "in.json", "--query", "amazon", "--has-attachments", "--include-anchor-tokens"]
        )
        assert args.query == "amazon"
        assert args.has_attachments is True
        assert args.include_anchor_tokens is True

    def test_no_command_shows_help(self, capsys):
        """Running without a command prints help and fails."""
        assert main([]) == 1
        assert "usage:" in capsys.readouterr().out


class TestScoreCommand:
    """Tests for the score command."""

    def test_score_json(self, tmp_path: Path, input_file: Path, capsys):
        """Ranked candidates are printed as JSON, best first."""
        exit_code = main(["-c", str(tmp_path / "missing.yaml"), "score", str(input_file), "--json"])

        assert exit_code == 0
        results = json.loads(capsys.readouterr().out)
        assert [r["id"] for r in results] == ["file-1", "file-scan"]
        assert results[0]["match"]["label"] == "Likely"

    def test_score_text(self, tmp_path: Path, input_file: Path, capsys):
        """Human-readable output lists every candidate."""
        exit_code = main(["-c", str(tmp_path / "missing.yaml"), "score", str(input_file)])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "Amazon_Invoice_49.99.pdf" in out
        assert "Ranked 2 candidate(s)" in out

    def test_score_missing_input(self, tmp_path: Path, capsys):
        """An unreadable input file fails cleanly."""
        exit_code = main(["-c", str(tmp_path / "missing.yaml"), "score", str(tmp_path / "nope.json")])

        assert exit_code == 1
        assert "Failed to read input" in capsys.readouterr().out

    def test_score_input_without_anchor(self, tmp_path: Path, capsys):
        """Input without an anchor object is rejected."""
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"candidates": []}))

        assert main(["-c", str(tmp_path / "missing.yaml"), "score", str(path)]) == 1

    def test_score_non_finite_amount(self, tmp_path: Path, capsys):
        """A non-finite anchor amount is dropped instead of failing the command."""
        path = tmp_path / "inf.json"
        path.write_text('{"anchor": {"id": "tx-inf", "amount": Infinity}, "candidates": []}')

        exit_code = main(["-c", str(tmp_path / "missing.yaml"), "score", str(path), "--json"])

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out) == []

    def test_invalid_config(self, tmp_path: Path, input_file: Path, capsys):
        """An invalid config stops before any command runs."""
        config_path = tmp_path / "config.yaml"
        config_path.write_text("scoring:\n  score_cap: 2.0\n")

        assert main(["-c", str(config_path), "score", str(input_file)]) == 1
        assert "Failed to load config" in capsys.readouterr().out


class TestQueryCommand:
    """Tests for the query command."""

    def test_query_json(self, tmp_path: Path, input_file: Path, capsys):
        """The learned pattern is the default query."""
        exit_code = main(["-c", str(tmp_path / "missing.yaml"), "query", str(input_file), "--json"])

        assert exit_code == 0
        data = json.loads(capsys.readouterr().out)
        assert data == {
            "query": "amazon rechnung",
            "source": "learned",
            "variants": ["amazon rechnung"],
        }


class TestSearchCommand:
    """Tests for the search command against a mocked Gmail API."""

    def _write_config(self, tmp_path: Path) -> Path:
        path = tmp_path / "config.yaml"
        path.write_text(
            f"""
gmail:
  api_url: "{GMAIL_API_URL}"
  max_retries: 0
  accounts:
    - {{integration_id: acc-work, access_token: tok}}
"""
        )
        return path

    @responses.activate
    def test_search_json(self, tmp_path: Path, input_file: Path, gmail_message: dict, capsys):
        """Emails and attachments are ranked together with local candidates."""
        responses.add(
            responses.GET,
            f"{GMAIL_API_URL}/users/me/messages",
            json={"messages": [{"id": "msg-1"}]},
            status=200,
        )
        responses.add(
            responses.GET,
            f"{GMAIL_API_URL}/users/me/messages/msg-1",
            json=gmail_message,
            status=200,
        )

        exit_code = main(["-c", str(self._write_config(tmp_path)), "search", str(input_file), "--json"])

        assert exit_code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["queries"] == ["amazon rechnung"]
        assert data["auth_issues"] == []
        keys = [r["match"]["key"] for r in data["results"]]
        assert set(keys) == {"file-scan", "file-1", "msg-1", "msg-1:att-1", "msg-1:att-2"}
        assert keys.index("msg-1:att-1") < keys.index("msg-1:att-2")
        assert data["learned_patterns"] == [
            {
                "pattern": "amazon rechnung",
                "source_type": "gmail",
                "integration_id": "acc-work",
                "usage_count": 4,
                "confidence": 0.9,
                "partner_id": "partner-amazon",
            }
        ]

    @responses.activate
    def test_search_reports_reconnect(self, tmp_path: Path, input_file: Path, capsys):
        """An expired account is reported instead of failing the command."""
        responses.add(
            responses.GET,
            f"{GMAIL_API_URL}/users/me/messages",
            json={"error": {"code": 401}},
            status=401,
        )

        exit_code = main(["-c", str(self._write_config(tmp_path)), "search", str(input_file)])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "Reconnect Gmail account acc-work (AUTH_EXPIRED)" in out

    def test_search_without_accounts(self, tmp_path: Path, input_file: Path, capsys):
        """Searching needs at least one account."""
        exit_code = main(["-c", str(tmp_path / "missing.yaml"), "search", str(input_file)])

        assert exit_code == 1
        assert "No Gmail accounts configured" in capsys.readouterr().out


class TestInitConfigCommand:
    """Tests for the init-config command."""

    def test_init_config(self, tmp_path: Path, capsys):
        """A default config is written once, and overwritten only with --force."""
        config_path = tmp_path / "config.yaml"

        assert main(["-c", str(config_path), "init-config"]) == 0
        assert config_path.exists()

        assert main(["-c", str(config_path), "init-config"]) == 1
        assert "already exists" in capsys.readouterr().out

        assert main(["-c", str(config_path), "init-config", "--force"]) == 0

"""
Tests for the CLI interface.
"""
import os
import tempfile
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

from ai_credit_router.cli.main import app, EXIT_CODE_PASS, EXIT_CODE_FAIL
from ai_credit_router.core.errors import ProviderError
from ai_credit_router.storage.repository import fetch_recent_usage_records

runner = CliRunner()


@pytest.fixture
def db_path():
    """Temporary ledger database path."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield os.path.join(temp_dir, "cli.db")


@pytest.fixture
def mock_env():
    """Environment with mock responses and no real credentials."""
    with tempfile.TemporaryDirectory() as temp_dir:
        config_path = os.path.join(temp_dir, "router.yaml")
        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("mock_responses: true\n")
        yield config_path


class TestCLI:
    """Test CLI commands."""

    def test_no_command(self):
        result = runner.invoke(app, [])
        assert result.exit_code == EXIT_CODE_PASS
        assert "AI Credit Router" in result.output

    def test_init(self, db_path):
        result = runner.invoke(app, ["init", "--db", db_path])
        assert result.exit_code == EXIT_CODE_PASS
        assert "Database initialized" in result.output
        assert os.path.exists(db_path)

    def test_route_market_research(self):
        result = runner.invoke(app, ["route", "marketResearch", "--tier", "premium"])
        assert result.exit_code == EXIT_CODE_PASS
        assert "openai-mini" in result.output
        assert "gpt-4o-mini" in result.output
        assert "Web search: yes" in result.output

    def test_route_premium_planning_with_anthropic(self):
        result = runner.invoke(app, ["route", "projectPlanning", "-t", "premium", "--anthropic"])
        assert result.exit_code == EXIT_CODE_PASS
        assert "claude-standard" in result.output
        assert "Extended thinking: yes" in result.output

    def test_route_premium_planning_without_anthropic_fails(self):
        result = runner.invoke(app, ["route", "projectPlanning", "-t", "premium"])
        assert result.exit_code == EXIT_CODE_FAIL
        assert "Anthropic API key" in result.output

    def test_route_unknown_tier_fails(self):
        result = runner.invoke(app, ["route", "basicChat", "-t", "gold"])
        assert result.exit_code == EXIT_CODE_FAIL

    def test_cost(self):
        result = runner.invoke(app, [
            "cost", "claude-standard", "claude-3-sonnet",
            "--input", "2000", "--output", "1000", "--thinking", "500",
            "--extended-thinking",
        ])
        assert result.exit_code == EXIT_CODE_PASS
        assert "Credit cost: 23" in result.output

    def test_cost_with_web_search(self):
        result = runner.invoke(app, ["cost", "openai-mini", "gpt-4o-mini", "-i", "1000", "-o", "500",
                                     "--web-search"])
        assert "Credit cost: 6" in result.output

    def test_cost_negative_tokens_fails(self):
        result = runner.invoke(app, ["cost", "openai-mini", "gpt-4o-mini", "--input=-5"])
        assert result.exit_code == EXIT_CODE_FAIL

    def test_ask_mock(self, mock_env):
        result = runner.invoke(app, ["ask", "basicChat", "Hello there", "--config", mock_env])
        assert result.exit_code == EXIT_CODE_PASS
        assert "mock response" in result.output
        assert "openai-mini:gpt-4o-mini" in result.output

    def test_ask_missing_credential(self):
        with patch.dict(os.environ, {"OPENAI_API_KEY": "", "ANTHROPIC_API_KEY": ""}):
            result = runner.invoke(app, ["ask", "basicChat", "Hello"])
        assert result.exit_code == EXIT_CODE_FAIL
        assert "No credential" in result.output

    def test_ask_provider_error(self, mock_env):
        with patch('ai_credit_router.cli.main.AIRouter.invoke',
                   side_effect=ProviderError("OpenAI API error: 500 - boom", status_code=500)):
            result = runner.invoke(app, ["ask", "basicChat", "Hello", "--config", mock_env])
        assert result.exit_code == EXIT_CODE_FAIL
        assert "OpenAI API error: 500" in result.output

    def test_grant_balance_and_metered_ask(self, mock_env, db_path):
        """Full ledger flow: init, grant, billed ask, balance, usage."""
        assert runner.invoke(app, ["init", "--db", db_path]).exit_code == EXIT_CODE_PASS

        result = runner.invoke(app, ["grant", "alice", "--tier", "basic", "--db", db_path])
        assert result.exit_code == EXIT_CODE_PASS
        assert "500 credits" in result.output

        result = runner.invoke(app, ["ask", "marketResearch", "Who sells CRM to dentists?",
                                     "--user", "alice", "--config", mock_env, "--db", db_path])
        assert result.exit_code == EXIT_CODE_PASS
        assert "Credits remaining" in result.output

        records = fetch_recent_usage_records(db_path=db_path)
        assert len(records) == 1
        assert records[0].web_search is True

        result = runner.invoke(app, ["balance", "alice", "--db", db_path])
        assert result.exit_code == EXIT_CODE_PASS
        assert f"Credits remaining: {500 - records[0].credit_cost}" in result.output

        result = runner.invoke(app, ["usage", "--user", "alice", "--db", db_path])
        assert result.exit_code == EXIT_CODE_PASS
        assert "Total: 1 requests" in result.output

    def test_balance_unknown_user(self, db_path):
        runner.invoke(app, ["init", "--db", db_path])
        result = runner.invoke(app, ["balance", "nobody", "--db", db_path])
        assert result.exit_code == EXIT_CODE_FAIL

    def test_usage_empty(self, db_path):
        runner.invoke(app, ["init", "--db", db_path])
        result = runner.invoke(app, ["usage", "--db", db_path])
        assert result.exit_code == EXIT_CODE_PASS
        assert "No AI usage recorded yet" in result.output

    def test_usage_unknown_provider(self, db_path):
        result = runner.invoke(app, ["usage", "--provider", "gemini", "--db", db_path])
        assert result.exit_code == EXIT_CODE_FAIL

    def test_ledger_commands_on_uninitialized_db(self, mock_env, db_path):
        """Commands that read the ledger ask for init instead of crashing."""
        commands = [
            ["balance", "someone", "--db", db_path],
            ["grant", "someone", "--db", db_path],
            ["usage", "--db", db_path],
            ["ask", "basicChat", "Hello", "--user", "someone", "--config", mock_env, "--db", db_path],
        ]
        for args in commands:
            result = runner.invoke(app, args)
            assert result.exit_code == EXIT_CODE_FAIL, args
            assert "not initialized" in result.output
            assert "ai-credit-router init" in result.output
            assert result.exception is None or isinstance(result.exception, SystemExit)

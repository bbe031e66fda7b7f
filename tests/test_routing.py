"""
Unit tests for the routing table.

Tests route selection per task and tier, premium gating and input validation.
"""

import pytest

from ai_credit_router.core.errors import ConfigurationError, ValidationError
from ai_credit_router.core.routing import (
    CLAUDE_3_SONNET,
    ROUTING_TABLE,
    Provider,
    RouteDecision,
    RoutingRule,
    SubscriptionTier,
    TaskType,
    parse_task,
    parse_tier,
    select_route,
)


class TestParsing:
    """Test task and tier parsing."""

    def test_parse_known_task(self):
        """Verify camelCase task tags resolve to TaskType."""
        assert parse_task("marketResearch") == TaskType.MARKET_RESEARCH
        assert parse_task(TaskType.CODE_ANALYSIS) == TaskType.CODE_ANALYSIS

    def test_unrecognised_task_is_basic_chat(self):
        """Verify unknown tasks fall back to basic chat."""
        assert parse_task("translatePoem") == TaskType.BASIC_CHAT

    def test_empty_task_raises(self):
        """Verify missing task is a validation error."""
        for value in (None, "", "   "):
            with pytest.raises(ValidationError, match="task is required"):
                parse_task(value)

    def test_parse_tier_case_insensitive(self):
        """Verify tiers are matched case-insensitively."""
        assert parse_tier("Premium") == SubscriptionTier.PREMIUM

    def test_unknown_tier_raises(self):
        """Verify unknown tiers are rejected."""
        with pytest.raises(ValidationError, match="tier must be one of"):
            parse_tier("enterprise")

    def test_empty_tier_raises(self):
        """Verify missing tier is a validation error."""
        with pytest.raises(ValidationError, match="tier is required"):
            parse_tier("")


class TestSelectRoute:
    """Test the ordered routing rules."""

    def test_basic_chat_free_uses_mini(self):
        """basicChat on free routes to gpt-4o-mini."""
        route = select_route("basicChat", "free", secondary_available=True)
        assert route == RouteDecision(Provider.OPENAI_MINI, "gpt-4o-mini")

    def test_market_research_premium_enables_web_search(self):
        """marketResearch on premium uses mini with web search."""
        route = select_route("marketResearch", "premium", secondary_available=True)
        assert route.provider == Provider.OPENAI_MINI
        assert route.model == "gpt-4o-mini"
        assert route.web_search is True

    def test_market_research_free_has_no_web_search(self):
        """Free tier gets market research without web search."""
        route = select_route("marketResearch", "free", secondary_available=True)
        assert route.provider == Provider.OPENAI_MINI
        assert route.web_search is False

    def test_market_research_basic_enables_web_search(self):
        route = select_route("marketResearch", "basic", secondary_available=False)
        assert route.web_search is True

    def test_document_analysis_premium_uses_claude(self):
        """Premium document analysis routes to Claude when configured."""
        route = select_route("documentAnalysis", "premium", secondary_available=True)
        assert route.provider == Provider.CLAUDE_STANDARD
        assert route.model == CLAUDE_3_SONNET
        assert route.extended_thinking is False

    def test_document_analysis_basic_uses_mini(self):
        route = select_route("documentAnalysis", "basic", secondary_available=True)
        assert route.provider == Provider.OPENAI_MINI

    def test_document_analysis_premium_without_credential_fails(self):
        """Premium document analysis does not silently downgrade."""
        with pytest.raises(ConfigurationError) as exc_info:
            select_route("documentAnalysis", "premium", secondary_available=False)
        assert exc_info.value.task == "documentAnalysis"
        assert exc_info.value.route.provider == Provider.CLAUDE_STANDARD
        assert exc_info.value.retryable is False

    def test_project_planning_premium_uses_extended_thinking(self):
        route = select_route("projectPlanning", "premium", secondary_available=True)
        assert route.provider == Provider.CLAUDE_STANDARD
        assert route.extended_thinking is True

    def test_project_planning_premium_without_credential_fails(self):
        with pytest.raises(ConfigurationError, match="Anthropic API key"):
            select_route("projectPlanning", "premium", secondary_available=False)

    def test_project_planning_basic_uses_full(self):
        route = select_route("projectPlanning", "basic", secondary_available=True)
        assert route == RouteDecision(Provider.OPENAI_FULL, "gpt-4o")

    def test_project_planning_free_uses_mini(self):
        route = select_route("projectPlanning", "free", secondary_available=True)
        assert route.provider == Provider.OPENAI_MINI

    def test_code_analysis_premium_uses_claude(self):
        route = select_route("codeAnalysis", "premium", secondary_available=True)
        assert route.provider == Provider.CLAUDE_STANDARD
        assert route.extended_thinking is False

    def test_code_analysis_premium_without_credential_falls_back(self):
        """Code analysis keeps the silent fallback to the mini model."""
        route = select_route("codeAnalysis", "premium", secondary_available=False)
        assert route.provider == Provider.OPENAI_MINI

    def test_idea_generation_premium_uses_full(self):
        route = select_route("ideaGeneration", "premium", secondary_available=False)
        assert route.provider == Provider.OPENAI_FULL

    def test_idea_generation_basic_uses_mini(self):
        route = select_route("ideaGeneration", "basic", secondary_available=True)
        assert route.provider == Provider.OPENAI_MINI

    def test_unrecognised_task_uses_mini_for_premium(self):
        route = select_route("somethingElse", "premium", secondary_available=True)
        assert route == RouteDecision(Provider.OPENAI_MINI, "gpt-4o-mini")

    @pytest.mark.parametrize("secondary_available", [True, False])
    def test_every_pair_resolves_to_defined_route(self, secondary_available):
        """Every (task, tier) pair yields one of the defined routes."""
        allowed = {(p, m) for p, m in [
            (Provider.OPENAI_MINI, "gpt-4o-mini"),
            (Provider.OPENAI_FULL, "gpt-4o"),
            (Provider.CLAUDE_STANDARD, CLAUDE_3_SONNET),
        ]}
        for task in TaskType:
            for tier in SubscriptionTier:
                try:
                    route = select_route(task, tier, secondary_available)
                except ConfigurationError:
                    assert not secondary_available
                    assert tier == SubscriptionTier.PREMIUM
                    assert task in (TaskType.DOCUMENT_ANALYSIS, TaskType.PROJECT_PLANNING)
                    continue
                assert (route.provider, route.model) in allowed

    def test_claude_only_for_premium_with_credential(self):
        """Claude is never selected below premium or without the credential."""
        for task in TaskType:
            for tier in SubscriptionTier:
                if tier == SubscriptionTier.PREMIUM:
                    continue
                route = select_route(task, tier, secondary_available=True)
                assert route.provider != Provider.CLAUDE_STANDARD

    def test_table_ends_with_catch_all(self):
        """The last rule matches every task and tier."""
        last = ROUTING_TABLE[-1]
        assert last.task is None
        assert last.tiers == frozenset(SubscriptionTier)

    def test_custom_table_without_match_raises(self):
        """A table without a catch-all surfaces a configuration error."""
        table = (
            RoutingRule(TaskType.BASIC_CHAT, frozenset(SubscriptionTier),
                        RouteDecision(Provider.OPENAI_MINI, "gpt-4o-mini")),
        )
        with pytest.raises(ConfigurationError, match="No routing rule"):
            select_route("ideaGeneration", "free", True, table=table)

    def test_route_str(self):
        route = RouteDecision(Provider.OPENAI_FULL, "gpt-4o")
        assert str(route) == "openai-full:gpt-4o"

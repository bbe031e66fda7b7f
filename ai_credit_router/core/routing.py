"""
Task routing rules.

Maps (task, subscription tier) to a provider/model route through an explicit
ordered rule table. The first matching rule wins.

Rule order:
1. Market research - always the mini model, web search for paid tiers
2. Document analysis - Claude for premium, mini otherwise
3. Project planning - Claude with extended thinking for premium,
   full model for basic, mini for free
4. Code analysis - Claude for premium, mini otherwise
5. Idea generation - full model for premium, mini otherwise
6. Anything else - mini model for every tier
"""

from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Optional, Tuple, Union

from .errors import ConfigurationError, ValidationError


class TaskType(Enum):
    """Task categories a caller can request."""
    IDEA_GENERATION = "ideaGeneration"
    MARKET_RESEARCH = "marketResearch"
    DOCUMENT_ANALYSIS = "documentAnalysis"
    PROJECT_PLANNING = "projectPlanning"
    CODE_ANALYSIS = "codeAnalysis"
    BASIC_CHAT = "basicChat"


class SubscriptionTier(Enum):
    """User subscription levels, lowest first."""
    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"


class Provider(Enum):
    """Provider routes the router can call."""
    OPENAI_MINI = "openai-mini"
    OPENAI_FULL = "openai-full"
    CLAUDE_STANDARD = "claude-standard"


GPT_4O_MINI = "gpt-4o-mini"
GPT_4O = "gpt-4o"
CLAUDE_3_SONNET = "claude-3-sonnet-20240229"


@dataclass(frozen=True)
class RouteDecision:
    """Provider, model and feature flags chosen for a single AI call."""
    provider: Provider
    model: str
    web_search: bool = False
    extended_thinking: bool = False

    @property
    def requires_secondary(self) -> bool:
        """True when the route needs the secondary (Anthropic) credential."""
        return self.provider == Provider.CLAUDE_STANDARD

    def __str__(self) -> str:
        return f"{self.provider.value}:{self.model}"


@dataclass(frozen=True)
class RoutingRule:
    """One row of the routing table.

    A rule with ``task=None`` matches every task. Rules that need the
    secondary credential are skipped when it is absent, unless
    ``fail_if_unavailable`` is set, in which case a ConfigurationError is
    raised instead of falling through to a cheaper route.
    """
    task: Optional[TaskType]
    tiers: FrozenSet[SubscriptionTier]
    route: RouteDecision
    fail_if_unavailable: bool = False

    def matches(self, task: TaskType, tier: SubscriptionTier) -> bool:
        return (self.task is None or self.task == task) and tier in self.tiers


ALL_TIERS = frozenset(SubscriptionTier)
PAID_TIERS = frozenset({SubscriptionTier.BASIC, SubscriptionTier.PREMIUM})
PREMIUM_ONLY = frozenset({SubscriptionTier.PREMIUM})
BASIC_ONLY = frozenset({SubscriptionTier.BASIC})

MINI_ROUTE = RouteDecision(Provider.OPENAI_MINI, GPT_4O_MINI)
FULL_ROUTE = RouteDecision(Provider.OPENAI_FULL, GPT_4O)
CLAUDE_ROUTE = RouteDecision(Provider.CLAUDE_STANDARD, CLAUDE_3_SONNET)

ROUTING_TABLE: Tuple[RoutingRule, ...] = (
    RoutingRule(TaskType.MARKET_RESEARCH, PAID_TIERS,
                RouteDecision(Provider.OPENAI_MINI, GPT_4O_MINI, web_search=True)),
    RoutingRule(TaskType.MARKET_RESEARCH, ALL_TIERS, MINI_ROUTE),

    RoutingRule(TaskType.DOCUMENT_ANALYSIS, PREMIUM_ONLY, CLAUDE_ROUTE,
                fail_if_unavailable=True),
    RoutingRule(TaskType.DOCUMENT_ANALYSIS, ALL_TIERS, MINI_ROUTE),

    RoutingRule(TaskType.PROJECT_PLANNING, PREMIUM_ONLY,
                RouteDecision(Provider.CLAUDE_STANDARD, CLAUDE_3_SONNET, extended_thinking=True),
                fail_if_unavailable=True),
    RoutingRule(TaskType.PROJECT_PLANNING, BASIC_ONLY, FULL_ROUTE),
    RoutingRule(TaskType.PROJECT_PLANNING, ALL_TIERS, MINI_ROUTE),

    RoutingRule(TaskType.CODE_ANALYSIS, PREMIUM_ONLY, CLAUDE_ROUTE),
    RoutingRule(TaskType.CODE_ANALYSIS, ALL_TIERS, MINI_ROUTE),

    RoutingRule(TaskType.IDEA_GENERATION, PREMIUM_ONLY, FULL_ROUTE),
    RoutingRule(TaskType.IDEA_GENERATION, ALL_TIERS, MINI_ROUTE),

    # Basic chat and unrecognised tasks stay on the cheapest model
    RoutingRule(None, ALL_TIERS, MINI_ROUTE),
)


def parse_task(task: Union[TaskType, str, None]) -> TaskType:
    """Resolve a task tag, treating unrecognised tags as basic chat.

    Raises:
        ValidationError: If task is missing or empty
    """
    if isinstance(task, TaskType):
        return task
    if not task or not str(task).strip():
        raise ValidationError("task is required and cannot be empty")
    try:
        return TaskType(str(task).strip())
    except ValueError:
        return TaskType.BASIC_CHAT


def parse_tier(tier: Union[SubscriptionTier, str, None]) -> SubscriptionTier:
    """Resolve a subscription tier tag.

    Raises:
        ValidationError: If tier is missing, empty or unknown
    """
    if isinstance(tier, SubscriptionTier):
        return tier
    if not tier or not str(tier).strip():
        raise ValidationError("tier is required and cannot be empty")
    try:
        return SubscriptionTier(str(tier).strip().lower())
    except ValueError:
        valid_tiers = [t.value for t in SubscriptionTier]
        raise ValidationError(f"tier must be one of: {valid_tiers}")


def select_route(
    task: Union[TaskType, str],
    tier: Union[SubscriptionTier, str],
    secondary_available: bool,
    table: Tuple[RoutingRule, ...] = ROUTING_TABLE,
) -> RouteDecision:
    """Pick the route for a task and tier.

    Args:
        task: Task category (unrecognised tags route as basic chat)
        tier: Subscription tier of the requesting user
        secondary_available: Whether the Anthropic credential is configured
        table: Ordered routing rules

    Returns:
        The route of the first matching rule

    Raises:
        ValidationError: If task or tier is missing or tier is unknown
        ConfigurationError: If a premium-gated route needs the secondary
            credential and it is not configured
    """
    task_type = parse_task(task)
    sub_tier = parse_tier(tier)

    for rule in table:
        if not rule.matches(task_type, sub_tier):
            continue
        if rule.route.requires_secondary and not secondary_available:
            if rule.fail_if_unavailable:
                raise ConfigurationError(
                    f"Anthropic API key is not configured for premium {task_type.value}",
                    task=task_type.value,
                    route=rule.route,
                )
            continue
        return rule.route

    # The table ends with a catch-all, so this only triggers for custom tables
    raise ConfigurationError(
        f"No routing rule matches task {task_type.value} on tier {sub_tier.value}",
        task=task_type.value,
    )

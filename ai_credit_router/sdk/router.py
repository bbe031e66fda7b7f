"""
AI task router.

Selects a provider route from the routing table and performs the call.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Union

from ..config.loader import RouterConfig
from ..core.credits import calculate_credit_cost
from ..core.errors import ConfigurationError, ProviderError, ValidationError
from ..core.routing import (
    Provider,
    RouteDecision,
    SubscriptionTier,
    TaskType,
    parse_task,
    parse_tier,
    select_route,
)
from ..core.token_counter import TokenUsage
from .providers import (
    AnthropicChatProvider,
    ChatProvider,
    ChatRequest,
    MockChatProvider,
    OpenAIChatProvider,
)

DEFAULT_TEMPERATURE = 0.7

DEFAULT_MAX_TOKENS: Dict[Provider, int] = {
    Provider.OPENAI_MINI: 800,
    Provider.OPENAI_FULL: 1000,
    Provider.CLAUDE_STANDARD: 3000,
}


@dataclass(frozen=True)
class RouteOptions:
    """Optional request settings supplied by the caller."""
    system_prompt: Optional[str] = None
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None

    def __post_init__(self):
        """Validate option ranges."""
        if self.temperature is not None and not 0 <= self.temperature <= 1:
            raise ValidationError("temperature must be between 0 and 1")
        if self.max_tokens is not None and (
                isinstance(self.max_tokens, bool)
                or not isinstance(self.max_tokens, int)
                or self.max_tokens <= 0):
            raise ValidationError("max_tokens must be a positive integer")


@dataclass(frozen=True)
class UsageStats:
    """Token usage and feature flags of a routed call."""
    input_tokens: int
    output_tokens: int
    model: str
    provider: str
    thinking_tokens: int = 0
    web_search: bool = False
    extended_thinking: bool = False

    @property
    def token_usage(self) -> TokenUsage:
        return TokenUsage(
            input_tokens=self.input_tokens,
            output_tokens=self.output_tokens,
            thinking_tokens=self.thinking_tokens
        )

    @property
    def credit_cost(self) -> int:
        """Credits charged for this usage."""
        return calculate_credit_cost(
            self.provider,
            self.model,
            self.token_usage,
            web_search=self.web_search,
            extended_thinking=self.extended_thinking
        )


@dataclass(frozen=True)
class RouterResult:
    """Successful router response."""
    content: str
    usage: UsageStats
    route: RouteDecision
    request_id: Optional[str] = None
    success: bool = True


class AIRouter:
    """Routes AI tasks to a provider based on task type and subscription tier.

    Usage:
        router = AIRouter(load_router_config())
        result = router.invoke("marketResearch", "Who competes with Notion?", "basic")
        credits = result.usage.credit_cost

    Configuration, providers and the logger are all injected; nothing is
    read from module state.
    """

    def __init__(
        self,
        config: RouterConfig,
        providers: Optional[Dict[Provider, ChatProvider]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize the router.

        Args:
            config: Router configuration (credentials, defaults)
            providers: Explicit provider clients per route; built from the
                configured credentials when omitted
            logger: Logger for routing decisions
        """
        self.config = config
        self.logger = logger or logging.getLogger(__name__)
        self.providers = providers if providers is not None else self._build_providers()

    def _build_providers(self) -> Dict[Provider, ChatProvider]:
        if self.config.mock_responses:
            mock = MockChatProvider(log=self.logger)
            return {provider: mock for provider in Provider}

        providers: Dict[Provider, ChatProvider] = {}
        if self.config.has_primary_credential:
            openai_provider = OpenAIChatProvider(
                self.config.openai_api_key,
                timeout=self.config.timeout,
                log=self.logger
            )
            providers[Provider.OPENAI_MINI] = openai_provider
            providers[Provider.OPENAI_FULL] = openai_provider
        if self.config.has_secondary_credential:
            providers[Provider.CLAUDE_STANDARD] = AnthropicChatProvider(
                self.config.anthropic_api_key,
                timeout=self.config.timeout,
                log=self.logger
            )
        return providers

    @property
    def secondary_available(self) -> bool:
        return Provider.CLAUDE_STANDARD in self.providers

    def select_route(
        self,
        task: Union[TaskType, str],
        tier: Union[SubscriptionTier, str],
    ) -> RouteDecision:
        """Pick the route for a task and tier without calling any provider."""
        route = select_route(task, tier, secondary_available=self.secondary_available)
        self.logger.info("Routing task %s (tier %s) to %s",
                         parse_task(task).value, parse_tier(tier).value, route)
        return route

    def invoke(
        self,
        task: Union[TaskType, str],
        content: str,
        tier: Union[SubscriptionTier, str],
        options: Optional[RouteOptions] = None,
    ) -> RouterResult:
        """Route a task and perform exactly one provider call.

        Args:
            task: Task category
            content: User message (required, non-empty)
            tier: Subscription tier of the requesting user
            options: Optional system prompt, temperature and max_tokens

        Returns:
            RouterResult with content and usage statistics

        Raises:
            ValidationError: If task, content or tier is missing or invalid
            ConfigurationError: If the selected route has no credential
            ProviderError: If the provider call fails (retryable by caller)
        """
        task_type = parse_task(task)
        sub_tier = parse_tier(tier)
        if not isinstance(content, str) or not content.strip():
            raise ValidationError("content is required and cannot be empty", task=task_type.value)
        options = options or RouteOptions()

        route = self.select_route(task_type, sub_tier)

        provider = self.providers.get(route.provider)
        if provider is None:
            raise ConfigurationError(
                f"No credential configured for route {route}",
                task=task_type.value,
                route=route
            )

        request = ChatRequest(
            content=content,
            system_prompt=options.system_prompt or self.config.default_system_prompt,
            temperature=DEFAULT_TEMPERATURE if options.temperature is None else options.temperature,
            max_tokens=options.max_tokens or DEFAULT_MAX_TOKENS[route.provider],
        )

        try:
            response = provider.complete(route, request)
        except ProviderError as e:
            e.task = task_type.value
            e.route = route
            self.logger.error("Provider call failed for task %s on %s: %s", task_type.value, route, e)
            raise

        usage = UsageStats(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            thinking_tokens=response.usage.thinking_tokens,
            model=response.model,
            provider=route.provider.value,
            web_search=route.web_search,
            extended_thinking=route.extended_thinking
        )

        return RouterResult(
            content=response.content,
            usage=usage,
            route=route,
            request_id=response.request_id
        )

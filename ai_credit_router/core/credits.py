"""
Credit calculations and rate management.

Converts token usage into integer billing credits. Every partial thousand
tokens is rounded UP, feature surcharges are added on top, and a request is
never charged less than the minimum.
"""

from dataclasses import dataclass
from datetime import timedelta
from decimal import Decimal, ROUND_UP
from typing import Dict, Optional, Tuple, Union

from .errors import ValidationError
from .routing import Provider, SubscriptionTier, TaskType, parse_task
from .token_counter import TokenUsage

WEB_SEARCH_SURCHARGE = 3
MINIMUM_CHARGE = 1


@dataclass(frozen=True)
class CreditRate:
    """Credits charged per 1K tokens for a specific model."""
    input_per_1k: Decimal
    output_per_1k: Decimal
    thinking_per_1k: Decimal = Decimal("0")


@dataclass(frozen=True)
class CreditTable:
    """Fixed credit rates keyed by (provider, model family)."""
    rates: Dict[Tuple[Provider, str], CreditRate]

    def get_rate(self, provider: Provider, model: str) -> Optional[CreditRate]:
        """Get the rate for a provider/model pair.

        Dated snapshots such as ``claude-3-sonnet-20240229`` resolve to their
        model family.

        Returns:
            CreditRate, or None when the pair is not billed by the table
        """
        for (rate_provider, family), rate in self.rates.items():
            if rate_provider == provider and _is_model_of_family(model, family):
                return rate
        return None


def _is_model_of_family(model: str, family: str) -> bool:
    if model == family:
        return True
    suffix = model[len(family) + 1:] if model.startswith(family + "-") else ""
    return suffix[:1].isdigit()


# Fixed credit table - no dynamic fetching
CREDIT_TABLE = CreditTable({
    (Provider.OPENAI_MINI, "gpt-4o-mini"): CreditRate(
        input_per_1k=Decimal("1"),
        output_per_1k=Decimal("4"),
    ),
    (Provider.OPENAI_FULL, "gpt-4o"): CreditRate(
        input_per_1k=Decimal("3"),
        output_per_1k=Decimal("6"),
    ),
    (Provider.CLAUDE_STANDARD, "claude-3-sonnet"): CreditRate(
        input_per_1k=Decimal("3"),
        output_per_1k=Decimal("15"),
        thinking_per_1k=Decimal("3"),
    ),
})

# Minimum balance a task needs before it may be invoked
TASK_MINIMUM_CREDITS: Dict[TaskType, int] = {
    TaskType.IDEA_GENERATION: 5,
    TaskType.DOCUMENT_ANALYSIS: 10,
    TaskType.MARKET_RESEARCH: 15,
    TaskType.PROJECT_PLANNING: 20,
}

# Monthly credit allowance granted on each reset
TIER_MONTHLY_CREDITS: Dict[SubscriptionTier, int] = {
    SubscriptionTier.FREE: 100,
    SubscriptionTier.BASIC: 500,
    SubscriptionTier.PREMIUM: 2000,
}

CREDIT_RESET_PERIOD = timedelta(days=30)


def _per_thousand(tokens: int, rate: Decimal) -> int:
    """ceil(tokens * rate / 1000)"""
    return int((Decimal(tokens) * rate / Decimal("1000")).to_integral_value(rounding=ROUND_UP))


def calculate_credit_cost(
    provider: Union[Provider, str],
    model: str,
    usage: TokenUsage,
    web_search: bool = False,
    extended_thinking: bool = False,
) -> int:
    """Calculate the credit charge for one AI call.

    Pure function: identical inputs always produce identical output.

    Args:
        provider: Provider tag the call was routed to
        model: Model identifier reported for the call
        usage: Token counts of the call
        web_search: Whether web search was enabled (flat surcharge)
        extended_thinking: Whether thinking tokens are billable

    Returns:
        Integer credit cost, never below MINIMUM_CHARGE

    Raises:
        ValidationError: If any token count is negative
    """
    if usage.input_tokens < 0 or usage.output_tokens < 0 or usage.thinking_tokens < 0:
        raise ValidationError("token counts must be >= 0")

    try:
        provider = Provider(provider)
    except ValueError:
        provider = None

    base_cost = 0
    rate = CREDIT_TABLE.get_rate(provider, model) if provider else None
    if rate is not None:
        base_cost = (
            _per_thousand(usage.input_tokens, rate.input_per_1k)
            + _per_thousand(usage.output_tokens, rate.output_per_1k)
        )
        if extended_thinking and usage.thinking_tokens > 0:
            base_cost += _per_thousand(usage.thinking_tokens, rate.thinking_per_1k)

    surcharge = WEB_SEARCH_SURCHARGE if web_search else 0

    return max(base_cost + surcharge, MINIMUM_CHARGE)


def estimate_required_credits(task: Union[TaskType, str]) -> int:
    """Minimum balance required before invoking a task."""
    return TASK_MINIMUM_CREDITS.get(parse_task(task), MINIMUM_CHARGE)

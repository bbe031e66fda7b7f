"""
Metered router wrapper.

Runs the caller side of a routed call against the credit ledger:
pre-flight balance check, invoke, credit cost, deduction and usage record.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from ..core.credits import estimate_required_credits
from ..core.errors import InsufficientCreditsError, ValidationError
from ..core.routing import TaskType, parse_task
from ..storage.db import DEFAULT_DB_PATH
from ..storage.models import UsageRecord
from ..storage.repository import charge_usage, check_credits
from .router import AIRouter, RouteOptions, RouterResult


@dataclass(frozen=True)
class MeteredResult:
    """Router result together with the charge applied to the user."""
    result: RouterResult
    credit_cost: int
    credits_remaining: int


class MeteredRouter:
    """Router wrapper that bills every successful call.

    Failures are loud: a provider error leaves the balance and the usage log
    untouched, and a ledger failure after a successful call is propagated
    with the deduction rolled back.
    """

    def __init__(self, router: AIRouter, db_path: Optional[str] = None):
        """Initialize the metered router.

        Args:
            router: Router performing the provider calls
            db_path: Ledger database path (defaults to the router config's)
        """
        self.router = router
        self.db_path = db_path or router.config.db_path or DEFAULT_DB_PATH

    def invoke(
        self,
        user_id: str,
        task: Union[TaskType, str],
        content: str,
        options: Optional[RouteOptions] = None,
    ) -> MeteredResult:
        """Invoke a task on behalf of a user and charge their balance.

        The tier comes from the user's ledger row, not from the caller.

        Raises:
            ValidationError: If user_id is missing or the request is invalid
            LookupError: If the user has no credit balance
            InsufficientCreditsError: If the balance is below the task minimum
            ConfigurationError, ProviderError: Propagated from the router
        """
        if not user_id or not user_id.strip():
            raise ValidationError("user_id is required and cannot be empty")
        task_type = parse_task(task)

        required = estimate_required_credits(task_type)
        check = check_credits(user_id, required, self.db_path)
        if not check.has_enough_credits:
            raise InsufficientCreditsError(
                f"Task {task_type.value} needs {required} credits, "
                f"{check.credits_remaining} remaining",
                required=required,
                remaining=check.credits_remaining,
                task=task_type.value
            )

        result = self.router.invoke(task_type, content, check.tier, options)

        credit_cost = result.usage.credit_cost

        record = UsageRecord(
            timestamp=datetime.now(),
            user_id=user_id,
            task=task_type.value,
            provider=result.usage.provider,
            model=result.usage.model,
            input_tokens=result.usage.input_tokens,
            output_tokens=result.usage.output_tokens,
            thinking_tokens=result.usage.thinking_tokens,
            credit_cost=credit_cost,
            web_search=result.usage.web_search,
            extended_thinking=result.usage.extended_thinking,
            request_id=result.request_id
        )
        credits_remaining = charge_usage(record, self.db_path)

        self.router.logger.info("Charged user %s %d credits for %s (%d remaining)",
                                user_id, credit_cost, task_type.value, credits_remaining)

        return MeteredResult(
            result=result,
            credit_cost=credit_cost,
            credits_remaining=credits_remaining
        )

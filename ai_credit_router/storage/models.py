"""
Data models for storage layer.

Defines the usage log entry and credit balance records.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional


@dataclass(frozen=True)
class UsageRecord:
    """Immutable record of one routed AI call.
    
    Append-only events that create an auditable ledger of credit charges.
    Once written, these records must never be modified.
    """
    timestamp: datetime
    user_id: str
    task: str
    provider: str
    model: str
    input_tokens: int
    output_tokens: int
    credit_cost: int
    thinking_tokens: int = 0
    web_search: bool = False
    extended_thinking: bool = False
    request_id: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens + self.thinking_tokens


@dataclass(frozen=True)
class CreditBalance:
    """Current credit balance of a user."""
    user_id: str
    tier: str
    credits_remaining: int
    credits_reset_date: datetime


@dataclass(frozen=True)
class CreditCheck:
    """Result of a pre-flight balance check."""
    has_enough_credits: bool
    credits_remaining: int
    tier: str

"""
Token counting and usage tracking.

Holds exact token counts reported by providers, plus the character-based
estimate used when a provider omits its usage block.
"""

import math
from dataclasses import dataclass

# Rough characters-per-token ratio for English text
CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class TokenUsage:
    """Token usage data for credit calculation."""
    input_tokens: int
    output_tokens: int
    thinking_tokens: int = 0

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output + thinking)."""
        return self.input_tokens + self.output_tokens + self.thinking_tokens


def estimate_tokens(*texts: str) -> int:
    """Estimate the token count of one or more text fragments.

    Args:
        *texts: Text fragments; ``None`` entries are ignored

    Returns:
        ceil(total characters / 4)
    """
    length = sum(len(text) for text in texts if text)
    return math.ceil(length / CHARS_PER_TOKEN)

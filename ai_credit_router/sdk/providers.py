"""
Chat provider clients.

Thin wrappers over the provider SDKs. Each performs exactly one outbound
call per request and turns SDK failures and malformed payloads into
ProviderError. No retries happen here.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import anthropic
import openai
from anthropic import Anthropic
from openai import OpenAI

from ..core.errors import ProviderError
from ..core.routing import RouteDecision
from ..core.token_counter import TokenUsage, estimate_tokens

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChatRequest:
    """Fully resolved request sent to a provider."""
    content: str
    system_prompt: str
    temperature: float
    max_tokens: int


@dataclass(frozen=True)
class ProviderResponse:
    """Text and token usage returned by a provider."""
    content: str
    usage: TokenUsage
    model: str
    request_id: Optional[str] = None


class ChatProvider(ABC):
    """One outbound chat call per request."""

    name = "provider"

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    @abstractmethod
    def complete(self, route: RouteDecision, request: ChatRequest) -> ProviderResponse:
        """Send the request to the provider for the given route.

        Raises:
            ProviderError: On HTTP, network or payload failures
        """

    def _preview(self, text: str) -> str:
        return text[:50] + "..." if len(text) > 50 else text


def _client_kwargs(api_key: str, timeout: Optional[float]) -> Dict[str, Any]:
    kwargs: Dict[str, Any] = {"api_key": api_key}
    if timeout is not None:
        kwargs["timeout"] = timeout
    return kwargs


class OpenAIChatProvider(ChatProvider):
    """OpenAI chat completions, used by both the mini and full routes."""

    name = "openai"

    def __init__(
        self,
        api_key: str,
        timeout: Optional[float] = None,
        client: Optional[OpenAI] = None,
        log: Optional[logging.Logger] = None,
    ):
        super().__init__(log)
        self.client = client or OpenAI(**_client_kwargs(api_key, timeout))

    def complete(self, route: RouteDecision, request: ChatRequest) -> ProviderResponse:
        self.log.debug("Calling OpenAI %s with content: %s", route.model, self._preview(request.content))

        try:
            response = self.client.chat.completions.create(
                model=route.model,
                messages=[
                    {"role": "system", "content": request.system_prompt},
                    {"role": "user", "content": request.content},
                ],
                temperature=request.temperature,
                max_tokens=request.max_tokens,
            )
        except openai.APIStatusError as e:
            self.log.error("OpenAI API error status: %s", e.status_code)
            raise ProviderError(
                f"OpenAI API error: {e.status_code} - {e.message}",
                provider=route.provider.value,
                status_code=e.status_code,
            ) from e
        except openai.APIError as e:
            self.log.error("Error with OpenAI API: %s", e)
            raise ProviderError(f"OpenAI API error: {e}", provider=route.provider.value) from e

        if not response.choices or response.choices[0].message is None:
            raise ProviderError("OpenAI response missing choices", provider=route.provider.value)
        content = response.choices[0].message.content
        if content is None:
            raise ProviderError("OpenAI response missing message content", provider=route.provider.value)
        if not response.usage:
            raise ProviderError("OpenAI response missing usage information", provider=route.provider.value)

        usage = TokenUsage(
            input_tokens=response.usage.prompt_tokens,
            output_tokens=response.usage.completion_tokens,
        )
        self.log.info("OpenAI %s response tokens: in=%d out=%d",
                      route.model, usage.input_tokens, usage.output_tokens)

        return ProviderResponse(
            content=content,
            usage=usage,
            model=route.model,
            request_id=response.id,
        )


class AnthropicChatProvider(ChatProvider):
    """Anthropic messages API for the claude-standard route."""

    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        timeout: Optional[float] = None,
        client: Optional[Anthropic] = None,
        log: Optional[logging.Logger] = None,
    ):
        super().__init__(log)
        self.client = client or Anthropic(**_client_kwargs(api_key, timeout))

    def complete(self, route: RouteDecision, request: ChatRequest) -> ProviderResponse:
        self.log.debug("Calling Claude %s with content: %s", route.model, self._preview(request.content))

        try:
            response = self.client.messages.create(
                model=route.model,
                max_tokens=request.max_tokens,
                messages=[{"role": "user", "content": request.content}],
                temperature=request.temperature,
                system=request.system_prompt,
            )
        except anthropic.APIStatusError as e:
            self.log.error("Claude API error status: %s", e.status_code)
            raise ProviderError(
                f"Claude API error: {e.status_code} - {e.message}",
                provider=route.provider.value,
                status_code=e.status_code,
            ) from e
        except anthropic.APIError as e:
            self.log.error("Error with Claude API: %s", e)
            raise ProviderError(f"Claude API error: {e}", provider=route.provider.value) from e

        # Claude returns a list of content blocks
        text_parts = []
        thinking_parts = []
        for block in response.content or []:
            block_type = getattr(block, "type", None)
            if block_type == "text":
                text_parts.append(block.text)
            elif block_type == "thinking":
                thinking_parts.append(block.thinking)

        if not text_parts:
            raise ProviderError("Claude response missing text content", provider=route.provider.value)
        content = "".join(text_parts)

        thinking_tokens = estimate_tokens(*thinking_parts)
        if response.usage is not None:
            input_tokens = response.usage.input_tokens
            # Reported output_tokens include thinking; bill those at the thinking rate only
            output_tokens = max(0, response.usage.output_tokens - thinking_tokens)
        else:
            input_tokens = estimate_tokens(request.content, request.system_prompt)
            output_tokens = estimate_tokens(content)

        usage = TokenUsage(
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            thinking_tokens=thinking_tokens,
        )
        self.log.info("Claude %s response tokens: in=%d out=%d thinking=%d",
                      route.model, usage.input_tokens, usage.output_tokens, usage.thinking_tokens)

        return ProviderResponse(
            content=content,
            usage=usage,
            model=getattr(response, "model", None) or route.model,
            request_id=getattr(response, "id", None),
        )


MOCK_RESPONSE = (
    "This is a mock response from the AI router. "
    "Using mock data instead of calling the actual API."
)


class MockChatProvider(ChatProvider):
    """Canned responses for demos and offline development."""

    name = "mock"

    def __init__(self, content: str = MOCK_RESPONSE, log: Optional[logging.Logger] = None):
        super().__init__(log)
        self.content = content

    def complete(self, route: RouteDecision, request: ChatRequest) -> ProviderResponse:
        self.log.info("Returning mock response for %s", route)
        return ProviderResponse(
            content=self.content,
            usage=TokenUsage(
                input_tokens=estimate_tokens(request.content, request.system_prompt),
                output_tokens=estimate_tokens(self.content),
            ),
            model=route.model,
            request_id=None,
        )

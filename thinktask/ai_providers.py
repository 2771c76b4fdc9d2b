"""
Language model providers.

The planner treats the model as a string-in, string-out oracle. This module
wraps the Anthropic and OpenAI SDKs behind that single call_model() method and
picks a provider from whichever API keys are available.
"""

from typing import Any, Optional

import anthropic
import structlog
from openai import OpenAI

from thinktask.errors import ModelProviderError

logger = structlog.get_logger(__name__)

DEFAULT_ANTHROPIC_MODEL = "claude-3-5-sonnet-20241022"
DEFAULT_OPENAI_MODEL = "gpt-4"
DEFAULT_MAX_TOKENS = 4000


class ModelProvider:
    """Base class: send one prompt, get the raw text answer back."""

    name = "ModelProvider"

    def __init__(self, model: str, max_tokens: int = DEFAULT_MAX_TOKENS):
        self.model = model
        self.max_tokens = max_tokens

    def call_model(self, prompt: str) -> str:
        """
        Call the model with a single user prompt.

        Raises:
            ValueError: If the prompt is empty
            ModelProviderError: If the call fails or returns no text
        """
        if not prompt or not prompt.strip():
            raise ValueError(f"{self.name}: Prompt must be a non-empty string")

        try:
            text = self._complete(prompt)
        except ModelProviderError:
            raise
        except Exception as e:
            logger.error("model_call_failed", provider=self.name, model=self.model, error=str(e))
            raise ModelProviderError(f"{self.name}: AI model call failed: {e}") from e

        if not text:
            raise ModelProviderError(f"{self.name}: No response from AI")
        return text

    def _complete(self, prompt: str) -> Optional[str]:
        raise NotImplementedError


class AnthropicProvider(ModelProvider):
    """Claude via the Anthropic Messages API."""

    name = "AnthropicProvider"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_ANTHROPIC_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: Any = None,
    ):
        super().__init__(model, max_tokens)
        self.client = client or anthropic.Anthropic(api_key=api_key)

    def _complete(self, prompt: str) -> Optional[str]:
        response = self.client.messages.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )

        if not response.content:
            return None

        content = response.content[0]
        if content.type != "text":
            raise ModelProviderError(f"{self.name}: Unexpected response type from Claude: {content.type}")
        return content.text


class OpenAIProvider(ModelProvider):
    """GPT via the OpenAI Chat Completions API."""

    name = "OpenAIProvider"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_OPENAI_MODEL,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: Any = None,
    ):
        super().__init__(model, max_tokens)
        self.client = client or OpenAI(api_key=api_key)

    def _complete(self, prompt: str) -> Optional[str]:
        response = self.client.chat.completions.create(
            model=self.model,
            max_tokens=self.max_tokens,
            messages=[{"role": "user", "content": prompt}],
        )

        if not response.choices:
            return None
        return response.choices[0].message.content


def create_provider(
    anthropic_api_key: Optional[str] = None,
    openai_api_key: Optional[str] = None,
) -> ModelProvider:
    """
    Pick a provider from the available keys. Anthropic wins when both are set.

    Raises:
        ModelProviderError: If neither key is provided
    """
    if anthropic_api_key:
        return AnthropicProvider(anthropic_api_key)
    if openai_api_key:
        return OpenAIProvider(openai_api_key)
    raise ModelProviderError("No AI API key provided: set an Anthropic or OpenAI API key")

"""Backend adapter for OpenAI-compatible chat completion APIs.

Covers OpenAI itself plus providers exposing the same protocol (Zhipu,
DeepSeek, Alibaba DashScope). Each adapter instance holds one API key, so
a BackendPool of several instances spreads load across credentials.

Example:
    >>> adapter = OpenAICompatibleAdapter(Provider.ZHIPU, model="glm-4-plus")
    >>> result = await adapter.invoke(["What is a mutex?"])
    >>> print(result.tokens, result.text)
"""

import logging
import os
from typing import Any, Dict, List, Optional, Sequence

import httpx
import openai

from ..core.exceptions import BackendError, ConfigurationError
from ..core.models import AdapterResult, BusinessConfig
from ..core.retry import RETRY_QUICK, RetryConfig, with_retry
from ..core.types import Provider
from .base import BackendAdapter

__all__ = ["OpenAICompatibleAdapter"]

logger = logging.getLogger(__name__)


class OpenAICompatibleAdapter(BackendAdapter):
    """Adapter over ``openai.AsyncOpenAI``.

    Args:
        provider: Provider whose endpoint and API key env var are used
        model: Default model when the business config does not name one
        api_key: Explicit key; falls back to ``<PROVIDER>_API_KEY``
        base_url: Override for the provider's default base URL
        timeout: Request timeout in seconds
        retry: Retry policy for transient failures (None disables retries)
        name: Identifier for logs; defaults to the provider name
    """

    def __init__(
        self,
        provider: Provider,
        model: str,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: float = 60.0,
        retry: Optional[RetryConfig] = RETRY_QUICK,
        name: Optional[str] = None,
    ):
        key = api_key or self._get_api_key(provider)
        if not key:
            raise ConfigurationError(
                f"No API key for provider {provider.value}; set {provider.api_key_env}",
                details={"provider": provider.value},
            )
        self.provider = provider
        self.model = model
        self._name = name or provider.value
        self.client = openai.AsyncOpenAI(
            api_key=key,
            base_url=base_url or provider.base_url,
            timeout=httpx.Timeout(timeout, connect=min(timeout, 10.0)),
            max_retries=0,
        )
        if retry is not None:
            self._complete = with_retry(retry)(self._execute_completion)
        else:
            self._complete = self._execute_completion

    @property
    def name(self) -> str:
        return self._name

    @staticmethod
    def _get_api_key(provider: Provider) -> Optional[str]:
        """Read the provider's API key from the environment."""
        return os.getenv(provider.api_key_env)

    async def invoke(
        self, segments: Sequence[str], config: Optional[BusinessConfig] = None
    ) -> AdapterResult:
        model = config.model if config is not None and config.model else self.model
        messages = self.build_messages(segments, config)
        params: Dict[str, Any] = {}
        if config is not None:
            if config.temperature > 0:
                params["temperature"] = config.temperature
            if config.top_p > 0:
                params["top_p"] = config.top_p
            if config.max_tokens > 0:
                params["max_tokens"] = config.max_tokens
        return await self._complete(model, messages, **params)

    async def _execute_completion(
        self, model: str, messages: List[dict], **params: Any
    ) -> AdapterResult:
        """Run one chat completion and translate provider errors."""
        try:
            response = await self.client.chat.completions.create(
                model=model, messages=messages, **params
            )
        except openai.AuthenticationError as e:
            raise BackendError(
                f"Authentication failed for {self.name}: {e!s}",
                details={"backend": self.name, "model": model},
                retryable=False,
            ) from e
        except openai.RateLimitError as e:
            raise BackendError(
                f"Rate limit exceeded on {self.name}: {e!s}",
                details={"backend": self.name, "model": model},
            ) from e
        except openai.APITimeoutError as e:
            raise BackendError(
                f"Request to {self.name} timed out",
                details={"backend": self.name, "model": model},
            ) from e
        except openai.BadRequestError as e:
            raise BackendError(
                f"Request rejected by {self.name}: {e!s}",
                details={"backend": self.name, "model": model},
                retryable=False,
            ) from e
        except Exception as e:
            raise BackendError(
                f"LLM API error on {self.name}: {e!s}",
                details={"backend": self.name, "model": model},
            ) from e

        text = ""
        if response.choices:
            text = response.choices[0].message.content or ""
        tokens = response.usage.total_tokens if response.usage is not None else 0
        return AdapterResult(tokens=tokens, text=text)

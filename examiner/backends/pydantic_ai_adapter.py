"""Backend adapter that runs completions through a PydanticAI agent.

Useful for providers PydanticAI supports natively (``openai:``,
``deepseek:``, ``anthropic:`` ...) without going through the raw OpenAI
client. The agent returns plain text; grading decodes it afterwards.
"""

import logging
from typing import Any, Dict, Optional, Sequence

from pydantic_ai import Agent

from ..core.exceptions import BackendError
from ..core.models import AdapterResult, BusinessConfig
from .base import BackendAdapter

__all__ = ["PydanticAIAdapter"]

logger = logging.getLogger(__name__)


class PydanticAIAdapter(BackendAdapter):
    """Adapter over ``pydantic_ai.Agent``.

    A business config naming a model overrides the default. A bare model
    name keeps the default's provider prefix, so ``"gpt-4o"`` on an
    ``"openai:gpt-4o-mini"`` adapter runs ``"openai:gpt-4o"``.

    Args:
        model: PydanticAI model identifier, e.g. ``"openai:gpt-4o-mini"``
        name: Identifier for logs; defaults to the model identifier
    """

    def __init__(self, model: str, name: Optional[str] = None):
        self.model = model
        self._name = name or model

    @property
    def name(self) -> str:
        return self._name

    def resolve_model(self, config: Optional[BusinessConfig] = None) -> str:
        """Model identifier for a call under ``config``."""
        if config is None or not config.model:
            return self.model
        if ":" in config.model or ":" not in self.model:
            return config.model
        provider = self.model.split(":", 1)[0]
        return f"{provider}:{config.model}"

    def create_agent(self, system_prompt: str = "", model: Optional[str] = None) -> Agent:
        """Build a text-output agent for one call."""
        return Agent(model=model or self.model, output_type=str, system_prompt=system_prompt)

    async def invoke(
        self, segments: Sequence[str], config: Optional[BusinessConfig] = None
    ) -> AdapterResult:
        system_prompt = config.system_prompt if config is not None else ""
        settings: Dict[str, Any] = {}
        if config is not None:
            if config.temperature > 0:
                settings["temperature"] = config.temperature
            if config.top_p > 0:
                settings["top_p"] = config.top_p
            if config.max_tokens > 0:
                settings["max_tokens"] = config.max_tokens

        model = self.resolve_model(config)
        try:
            agent = self.create_agent(system_prompt, model)
            result = await agent.run(
                self.build_user_message(segments), model_settings=settings or None
            )
        except Exception as e:
            raise BackendError(
                f"Agent run failed on {self.name}",
                details={"backend": self.name, "model": model, "error": str(e)},
            ) from e

        return AdapterResult(tokens=result.usage().total_tokens or 0, text=str(result.output))

"""Language-model backends: adapters, round-robin pool and platform stage."""

from examiner.backends.base import BackendAdapter
from examiner.backends.openai_compat import OpenAICompatibleAdapter
from examiner.backends.platform import PlatformHandler
from examiner.backends.pool import BackendPool
from examiner.backends.pydantic_ai_adapter import PydanticAIAdapter

__all__ = [
    "BackendAdapter",
    "BackendPool",
    "OpenAICompatibleAdapter",
    "PlatformHandler",
    "PydanticAIAdapter",
]

"""Backend adapter interface.

A backend adapter wraps one concrete language-model provider (one API key,
one endpoint) behind a uniform async call: text segments in, token count
and answer text out.

## Custom Adapters:

    >>> class EchoAdapter(BackendAdapter):
    ...     @property
    ...     def name(self) -> str:
    ...         return "echo"
    ...
    ...     async def invoke(self, segments, config=None):
    ...         text = self.build_user_message(segments)
    ...         return AdapterResult(tokens=len(text), text=text)
"""

from abc import ABC, abstractmethod
from typing import List, Optional, Sequence

from ..core.models import AdapterResult, BusinessConfig

__all__ = ["BackendAdapter"]


class BackendAdapter(ABC):
    """Abstract wrapper around one language-model provider.

    Implementations must raise :class:`~examiner.core.exceptions.BackendError`
    for any provider-side failure, and must let ``asyncio.CancelledError``
    propagate so caller deadlines abort the call.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier used in logs (e.g. ``"zhipu#0"``)."""

    @abstractmethod
    async def invoke(
        self, segments: Sequence[str], config: Optional[BusinessConfig] = None
    ) -> AdapterResult:
        """Send the segments to the model and return usage plus answer text.

        Args:
            segments: Ordered text segments forming the user message
            config: Business settings (model, sampling, system prompt)

        Returns:
            AdapterResult with total tokens consumed and the answer text

        Raises:
            BackendError: If the provider call fails
        """

    @staticmethod
    def build_user_message(segments: Sequence[str]) -> str:
        """Join segments into a single user message."""
        return "\n\n".join(s for s in segments if s)

    @staticmethod
    def build_messages(
        segments: Sequence[str], config: Optional[BusinessConfig] = None
    ) -> List[dict]:
        """Build chat messages (system prompt first, when configured)."""
        messages: List[dict] = []
        if config is not None and config.system_prompt:
            messages.append({"role": "system", "content": config.system_prompt})
        messages.append({"role": "user", "content": BackendAdapter.build_user_message(segments)})
        return messages

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"

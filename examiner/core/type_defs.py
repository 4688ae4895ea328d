"""Type definitions shared by pipeline stages.

This module provides the protocol and callable aliases that describe a
pipeline handler, so middleware, the platform handler and composed
pipelines can be used interchangeably.
"""

from typing import Awaitable, Callable, Protocol

from .models import GradingRequest, GradingResponse

__all__ = ["Handler", "NextHandler"]

NextHandler = Callable[[GradingRequest], Awaitable[GradingResponse]]
"""Async callable representing the rest of the chain."""


class Handler(Protocol):
    """Anything with an async ``handle`` entry point.

    Implemented by PlatformHandler, CompositionHandler and FacadeDispatcher.
    """

    async def handle(self, request: GradingRequest) -> GradingResponse:
        ...

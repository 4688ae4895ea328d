"""Pipeline composition and business routing.

A CompositionHandler wraps a terminal handler (normally the
PlatformHandler) in an ordered list of middleware stages, once, at
construction. A FacadeDispatcher routes each request to the composed
handler registered for its business key.

## Usage:

    >>> builders = default_builders(storage, storage, storage, settings)
    >>> builders.append(PromptTemplateMiddleware())
    >>> handler = CompositionHandler(BusinessKey.QUESTION_EXAMINE, builders, platform)
    >>> dispatcher = FacadeDispatcher({BusinessKey.QUESTION_EXAMINE: handler})
    >>> response = await dispatcher.dispatch(request)
"""

import logging
from typing import Dict, List, Mapping, Optional, Sequence, Type, TypeVar

from ..storage.base import CallRecordStore, ConfigRepository, CreditLedger
from .config import PipelineSettings
from .exceptions import UnknownBusinessError
from .middleware import (
    ConfigurationMiddleware,
    CreditMiddleware,
    LoggingMiddleware,
    Middleware,
    RecordMiddleware,
)
from .models import GradingRequest, GradingResponse
from .type_defs import Handler, NextHandler
from .types import BusinessKeyLike, normalize_business_key

logger = logging.getLogger(__name__)

__all__ = ["CompositionHandler", "FacadeDispatcher", "default_builders"]

M = TypeVar("M", bound=Middleware)


def default_builders(
    config_repository: ConfigRepository,
    ledger: CreditLedger,
    record_store: CallRecordStore,
    settings: Optional[PipelineSettings] = None,
) -> List[Middleware]:
    """Return the standard stage order: logging, configuration, credit, record.

    The list is fresh on every call, so callers may append their business
    stage without affecting other pipelines.
    """
    settings = settings or PipelineSettings()
    return [
        LoggingMiddleware(settings.log_level),
        ConfigurationMiddleware(config_repository),
        CreditMiddleware(ledger, min_balance=settings.min_balance),
        RecordMiddleware(record_store),
    ]


class CompositionHandler:
    """A terminal handler wrapped in an ordered chain of stages.

    ``builders[0]`` is the outermost stage and sees the request first. The
    chain is built right to left once, so ``handle`` does no assembly work
    per call.

    Args:
        business_key: Business this pipeline serves
        builders: Stages, outermost first
        terminal: Innermost handler (usually a PlatformHandler)
    """

    def __init__(
        self,
        business_key: BusinessKeyLike,
        builders: Sequence[Middleware],
        terminal: Handler,
    ):
        self.business_key = normalize_business_key(business_key)
        self.middleware: List[Middleware] = list(builders)
        self.terminal = terminal

        chain: NextHandler = terminal.handle
        for stage in reversed(self.middleware):
            chain = stage.wrap(chain)
        self._chain = chain

    async def handle(self, request: GradingRequest) -> GradingResponse:
        return await self._chain(request)

    def get_middleware(self, middleware_type: Type[M]) -> Optional[M]:
        """Return the first stage of the given type, or None."""
        for mw in self.middleware:
            if isinstance(mw, middleware_type):
                return mw
        return None

    def __repr__(self) -> str:
        stages = " -> ".join(mw.name for mw in self.middleware)
        return f"CompositionHandler({self.business_key!r}: {stages} -> {type(self.terminal).__name__})"


class FacadeDispatcher:
    """Routes requests to the handler registered for their business key.

    An unknown key is a wiring defect, not a pipeline failure: it is logged
    at ERROR and raised as UnknownBusinessError before any stage runs.
    """

    def __init__(self, handlers: Optional[Mapping[BusinessKeyLike, Handler]] = None):
        self._handlers: Dict[str, Handler] = {}
        for key, handler in (handlers or {}).items():
            self.register(key, handler)

    def register(self, business_key: BusinessKeyLike, handler: Handler) -> None:
        """Register (or replace) the handler for a business key."""
        self._handlers[normalize_business_key(business_key)] = handler

    @property
    def business_keys(self) -> List[str]:
        return sorted(self._handlers)

    async def dispatch(self, request: GradingRequest) -> GradingResponse:
        handler = self._handlers.get(request.business_key)
        if handler is None:
            logger.error(
                f"No pipeline registered for business '{request.business_key}' "
                f"(trial {request.trial_id})"
            )
            raise UnknownBusinessError(
                f"Unknown business: {request.business_key}",
                details={
                    "business_key": request.business_key,
                    "registered": self.business_keys,
                },
            )
        return await handler.handle(request)

    async def handle(self, request: GradingRequest) -> GradingResponse:
        return await self.dispatch(request)

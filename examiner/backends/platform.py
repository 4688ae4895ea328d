"""Terminal pipeline stage that calls a language-model backend."""

import logging

from ..core.models import GradingRequest, GradingResponse
from .pool import BackendPool

__all__ = ["PlatformHandler"]

logger = logging.getLogger(__name__)


class PlatformHandler:
    """Terminal handler: pick an adapter, invoke it once, price the result.

    Errors from the adapter propagate unchanged; this layer never retries.
    A request carrying a business config is priced at that config's
    ``unit_price``. ``unit_price`` given here is fixed for the lifetime of
    the handler and prices requests that arrive without a config.

    Example:
        >>> handler = PlatformHandler(BackendPool([adapter]), unit_price=2)
        >>> response = await handler.handle(request)
        >>> response.cost_amount == response.tokens_consumed * 2
        True
    """

    def __init__(self, pool: BackendPool, unit_price: int = 0):
        if unit_price < 0:
            raise ValueError("unit_price must be non-negative")
        self._pool = pool
        self._unit_price = unit_price

    @property
    def unit_price(self) -> int:
        return self._unit_price

    @property
    def pool(self) -> BackendPool:
        return self._pool

    def price_for(self, request: GradingRequest) -> int:
        """Unit price applied to ``request``."""
        if request.config is not None:
            return request.config.unit_price
        return self._unit_price

    async def handle(self, request: GradingRequest) -> GradingResponse:
        adapter = self._pool.select()
        segments = (request.prompt,) if request.prompt else request.input_segments
        result = await adapter.invoke(segments, request.config)
        logger.debug(
            f"Backend {adapter.name} answered trial {request.trial_id} "
            f"with {result.tokens} tokens"
        )
        return GradingResponse(
            tokens_consumed=result.tokens,
            unit_price=self.price_for(request),
            answer_text=result.text,
        )

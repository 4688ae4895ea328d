"""Round-robin selection over a fixed set of backend adapters.

The rotation counter is the only shared mutable state in the pipeline.
Each ``select()`` takes its index from a single ``next()`` on an
``itertools.count``, a fetch-and-add that is indivisible both on the event
loop and across threads (it runs in C without releasing the GIL). The
counter is never read separately from that increment, so N concurrent
callers always advance the rotation by exactly N.
"""

import itertools
import logging
from typing import Iterable, Tuple

from ..core.exceptions import ConfigurationError
from .base import BackendAdapter

__all__ = ["BackendPool"]

logger = logging.getLogger(__name__)


class BackendPool:
    """Fixed, ordered pool of adapters served in rotation.

    Example:
        >>> pool = BackendPool([adapter_a, adapter_b])
        >>> pool.select() is adapter_a
        True
        >>> pool.select() is adapter_b
        True
    """

    def __init__(self, adapters: Iterable[BackendAdapter]):
        """Initialize the pool.

        Args:
            adapters: Adapters in rotation order; frozen at construction

        Raises:
            ConfigurationError: If no adapters are given
        """
        self._adapters: Tuple[BackendAdapter, ...] = tuple(adapters)
        if not self._adapters:
            raise ConfigurationError("BackendPool requires at least one adapter")
        self._counter = itertools.count()

    @property
    def adapters(self) -> Tuple[BackendAdapter, ...]:
        return self._adapters

    def __len__(self) -> int:
        return len(self._adapters)

    def select(self) -> BackendAdapter:
        """Return the next adapter in rotation order."""
        ticket = next(self._counter)
        adapter = self._adapters[ticket % len(self._adapters)]
        logger.debug(f"Selected backend {adapter.name} (ticket={ticket})")
        return adapter

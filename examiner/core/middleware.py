"""Middleware stages for the grading pipeline.

Each business runs a fixed chain of stages in front of the platform
handler. A stage can:
1. Inspect or derive a new request before passing it on
2. Short-circuit the chain by raising
3. Act on the response after the rest of the chain succeeded

## Built-in Middleware:

- **LoggingMiddleware**: Logs requests, responses, errors and timing
- **ConfigurationMiddleware**: Resolves the business config onto the request
- **CreditMiddleware**: Admission control and idempotent debit
- **RecordMiddleware**: Persists one call record per trial id
- **PromptTemplateMiddleware**: Renders the business prompt template

Stages hold only their collaborators. Nothing about an individual request
is stored on a stage, so one chain serves any number of concurrent calls.

## Custom Middleware:

    >>> class TimingMiddleware(Middleware):
    ...     async def process(self, request, next_handler):
    ...         start = time.time()
    ...         response = await next_handler(request)
    ...         print(f"Took {time.time() - start:.2f}s")
    ...         return response
"""

import logging
import string
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

from pydantic import ValidationError as PydanticValidationError

from ..storage.base import CallRecordStore, ConfigRepository, CreditLedger
from .exceptions import (
    ConfigurationError,
    InsufficientCreditError,
    ValidationError,
)
from .models import BusinessConfig, CallRecord, GradingRequest, GradingResponse
from .type_defs import NextHandler
from .types import DebitStatus

logger = logging.getLogger(__name__)

__all__ = [
    "Middleware",
    "LoggingMiddleware",
    "ConfigurationMiddleware",
    "CreditMiddleware",
    "RecordMiddleware",
    "PromptTemplateMiddleware",
]


class Middleware(ABC):
    """Abstract base class for all pipeline stages.

    A stage receives the request and the rest of the chain. It must either
    call ``next_handler`` exactly once and return (possibly after acting on)
    its response, or raise without calling it.
    """

    @property
    def name(self) -> str:
        return type(self).__name__

    @abstractmethod
    async def process(
        self, request: GradingRequest, next_handler: NextHandler
    ) -> GradingResponse:
        """Process the request through this stage.

        Args:
            request: Immutable request; derive a new one with ``model_copy``
            next_handler: Async callable for the rest of the chain

        Returns:
            GradingResponse from the rest of the chain

        Raises:
            Any exception from the rest of the chain, or one raised by this
            stage to short-circuit.
        """

    def wrap(self, next_handler: NextHandler) -> NextHandler:
        """Bind this stage in front of ``next_handler``.

        This is the builder used by CompositionHandler to assemble a chain.
        """

        async def handler(request: GradingRequest) -> GradingResponse:
            return await self.process(request, next_handler)

        handler.__qualname__ = f"{self.name}.handler"
        return handler

    def __repr__(self) -> str:
        return f"{self.name}()"


class LoggingMiddleware(Middleware):
    """Stage that logs every call passing through the pipeline.

    Logs the inbound request, then either the response (tokens, cost) or
    the error, with elapsed time. It never alters values and never
    short-circuits: errors are re-raised unchanged.

    Example:
        >>> middleware = LoggingMiddleware(log_level="DEBUG")
    """

    def __init__(self, log_level: str = "INFO"):
        """Initialize logging middleware with specified level.

        Args:
            log_level: Logging level name ("DEBUG", "INFO", "WARNING",
                "ERROR"). Case-insensitive.
        """
        self.log_level = getattr(logging, log_level.upper())

    async def process(
        self, request: GradingRequest, next_handler: NextHandler
    ) -> GradingResponse:
        start_time = time.time()
        logger.log(
            self.log_level,
            f"Request trial={request.trial_id} user={request.user_id} "
            f"business={request.business_key} segments={len(request.input_segments)}",
        )

        try:
            response = await next_handler(request)
        except Exception as e:
            elapsed = time.time() - start_time
            logger.error(
                f"Trial {request.trial_id} failed after {elapsed:.2f}s: "
                f"{type(e).__name__}: {e!s}"
            )
            raise

        elapsed = time.time() - start_time
        logger.log(
            self.log_level,
            f"Response trial={request.trial_id} tokens={response.tokens_consumed} "
            f"cost={response.cost_amount} in {elapsed:.2f}s",
        )
        return response


class ConfigurationMiddleware(Middleware):
    """Stage that attaches the business config to the request.

    Args:
        config_repository: Source of per-business configs
        overrides: Static values applied on top of the stored config and
            validated with it. A ``business_key`` entry also rewrites the
            request's business key, so later stages and records see it.
    """

    def __init__(
        self,
        config_repository: ConfigRepository,
        overrides: Optional[Dict[str, Any]] = None,
    ):
        self.config_repository = config_repository
        self.overrides: Dict[str, Any] = dict(overrides or {})

    async def process(
        self, request: GradingRequest, next_handler: NextHandler
    ) -> GradingResponse:
        business_key = self.overrides.get("business_key", request.business_key)
        config = await self.config_repository.get_config(business_key)
        if config is None:
            raise ConfigurationError(
                f"No configuration for business '{business_key}'",
                details={"business_key": business_key},
            )
        if self.overrides:
            try:
                config = BusinessConfig.model_validate(
                    {**config.model_dump(), **self.overrides}
                )
            except PydanticValidationError as e:
                raise ConfigurationError(
                    f"Invalid overrides for business '{business_key}'",
                    details={"business_key": business_key, "error": str(e)},
                ) from e

        if config.max_input and request.input_segments:
            length = len(request.input_segments[-1])
            if length > config.max_input:
                raise ValidationError(
                    f"Input too long ({length} > {config.max_input} characters)",
                    details={"max_input": config.max_input, "length": length},
                )

        return await next_handler(
            request.model_copy(update={"business_key": business_key, "config": config})
        )


class CreditMiddleware(Middleware):
    """Stage that gates on balance and debits the caller after success.

    A business priced at zero skips the stage entirely. Otherwise admission
    requires a balance of at least ``min_balance`` and at least the most the
    call can cost (``config.max_tokens * config.unit_price``); a rejected
    request never enters the rest of the chain. The debit is keyed by
    ``trial_id``, so replaying a request bills at most once. Failed calls
    are never billed.

    Args:
        ledger: Credit ledger holding balances and debits
        min_balance: Smallest balance admitted into the pipeline
    """

    def __init__(self, ledger: CreditLedger, min_balance: int = 1):
        if min_balance < 0:
            raise ValueError("min_balance must be non-negative")
        self.ledger = ledger
        self.min_balance = min_balance

    def required_balance(self, request: GradingRequest) -> int:
        """Balance needed to admit ``request``."""
        if request.config is None:
            return self.min_balance
        return max(self.min_balance, request.config.max_cost)

    async def process(
        self, request: GradingRequest, next_handler: NextHandler
    ) -> GradingResponse:
        if request.config is not None and request.config.unit_price == 0:
            return await next_handler(request)

        required = self.required_balance(request)
        balance = await self.ledger.balance(request.user_id)
        if balance < required:
            logger.info(
                f"Rejected trial {request.trial_id}: user {request.user_id} "
                f"balance {balance} below {required}"
            )
            raise InsufficientCreditError(
                "Insufficient credit",
                details={
                    "user_id": request.user_id,
                    "balance": balance,
                    "required": required,
                },
            )

        response = await next_handler(request)

        cost = response.cost_amount
        if cost <= 0:
            return response

        status = await self.ledger.debit(request.user_id, request.trial_id, cost)
        if status is DebitStatus.ALREADY_APPLIED:
            logger.debug(f"Debit for trial {request.trial_id} already applied")
        elif status is DebitStatus.INSUFFICIENT_BALANCE:
            logger.warning(
                f"Debit of {cost} for trial {request.trial_id} rejected: "
                f"user {request.user_id} balance too low"
            )
            raise InsufficientCreditError(
                "Insufficient credit",
                details={
                    "user_id": request.user_id,
                    "trial_id": request.trial_id,
                    "cost_amount": cost,
                },
            )
        return response


class RecordMiddleware(Middleware):
    """Stage that persists one call record per successful trial.

    Records are insert-once: a replayed ``trial_id`` leaves the stored
    record untouched.
    """

    def __init__(self, record_store: CallRecordStore):
        self.record_store = record_store

    async def process(
        self, request: GradingRequest, next_handler: NextHandler
    ) -> GradingResponse:
        response = await next_handler(request)

        record = CallRecord(
            trial_id=request.trial_id,
            user_id=request.user_id,
            business_key=request.business_key,
            input_segments=request.input_segments,
            prompt=request.prompt,
            tokens_consumed=response.tokens_consumed,
            cost_amount=response.cost_amount,
            answer_text=response.answer_text,
        )
        inserted = await self.record_store.insert_call_record_if_absent(record)
        if not inserted:
            logger.debug(f"Call record for trial {request.trial_id} already exists")
        return response


class PromptTemplateMiddleware(Middleware):
    """Business stage that renders the prompt template.

    The template's positional fields are filled with the input segments in
    order; the segment count must match the number of fields. A config
    without a template leaves the request unchanged.
    """

    async def process(
        self, request: GradingRequest, next_handler: NextHandler
    ) -> GradingResponse:
        config = request.config
        if config is None:
            raise ConfigurationError(
                "Prompt template stage requires a resolved business config",
                details={"business_key": request.business_key},
            )
        if not config.prompt_template:
            return await next_handler(request)

        expected = self.count_fields(config.prompt_template)
        if expected != len(request.input_segments):
            raise ValidationError(
                f"Template for '{config.business_key}' expects {expected} "
                f"segments, got {len(request.input_segments)}",
                details={"expected": expected, "actual": len(request.input_segments)},
            )
        try:
            prompt = config.prompt_template.format(*request.input_segments)
        except (IndexError, KeyError) as e:
            raise ValidationError(
                f"Cannot render template for '{config.business_key}'",
                details={"error": str(e)},
            ) from e

        return await next_handler(request.model_copy(update={"prompt": prompt}))

    @staticmethod
    def count_fields(template: str) -> int:
        """Number of replacement fields in a ``str.format`` template."""
        return sum(
            1
            for _, field, _, _ in string.Formatter().parse(template)
            if field is not None
        )

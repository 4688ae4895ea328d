"""Core components of the examination pipeline."""

from examiner.core.config import PipelineSettings
from examiner.core.exceptions import (
    BackendError,
    ConfigurationError,
    ExaminerError,
    InsufficientCreditError,
    NotFoundError,
    StorageError,
    UnknownBusinessError,
    ValidationError,
    error_code,
)
from examiner.core.models import (
    AdapterResult,
    BestResult,
    BusinessConfig,
    CallRecord,
    ExamineResult,
    GradingRequest,
    GradingResponse,
    Question,
    TrialRecord,
)
from examiner.core.retry import (
    RETRY_PERSISTENT,
    RETRY_QUICK,
    RETRY_STANDARD,
    RetryConfig,
    with_retry,
)
from examiner.core.type_defs import Handler, NextHandler
from examiner.core.types import (
    BusinessKey,
    BusinessKeyLike,
    DebitStatus,
    GradeOutcome,
    Provider,
    normalize_business_key,
)
from examiner.core.middleware import (
    ConfigurationMiddleware,
    CreditMiddleware,
    LoggingMiddleware,
    Middleware,
    PromptTemplateMiddleware,
    RecordMiddleware,
)
from examiner.core.composition import (
    CompositionHandler,
    FacadeDispatcher,
    default_builders,
)

__all__ = [
    # Config
    "PipelineSettings",
    # Exceptions
    "ExaminerError",
    "NotFoundError",
    "InsufficientCreditError",
    "BackendError",
    "ConfigurationError",
    "UnknownBusinessError",
    "ValidationError",
    "StorageError",
    "error_code",
    # Models
    "AdapterResult",
    "BestResult",
    "BusinessConfig",
    "CallRecord",
    "ExamineResult",
    "GradingRequest",
    "GradingResponse",
    "Question",
    "TrialRecord",
    # Retry
    "RetryConfig",
    "with_retry",
    "RETRY_QUICK",
    "RETRY_STANDARD",
    "RETRY_PERSISTENT",
    # Types
    "BusinessKey",
    "BusinessKeyLike",
    "DebitStatus",
    "GradeOutcome",
    "Provider",
    "normalize_business_key",
    "Handler",
    "NextHandler",
    # Pipeline
    "Middleware",
    "LoggingMiddleware",
    "ConfigurationMiddleware",
    "CreditMiddleware",
    "RecordMiddleware",
    "PromptTemplateMiddleware",
    "CompositionHandler",
    "FacadeDispatcher",
    "default_builders",
]

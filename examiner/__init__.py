"""Examiner: AI-assisted grading of free-text exam answers.

A user's answer to a published question is sent through a fixed pipeline
of stages (logging, configuration, credit, record, prompt rendering) to a
language-model backend chosen in round-robin order. The model's verdict is
decoded into a graded outcome, billed once per attempt, and tracked as the
user's best result on that question.

## Quick Start:

    >>> from examiner import (
    ...     BackendPool, ExaminationService, MemoryStorage,
    ...     OpenAICompatibleAdapter, Provider, build_dispatcher,
    ... )
    >>> storage = MemoryStorage()
    >>> pool = BackendPool([OpenAICompatibleAdapter(Provider.ZHIPU, "glm-4-plus")])
    >>> dispatcher = build_dispatcher(pool, storage, storage, storage)
    >>> service = ExaminationService(storage, dispatcher, storage)
    >>> result = await service.examine(user_id=1, question_id=7, answer_text="...")
    >>> print(result.outcome.name, result.cost_amount)

## Main Components:

- `ExaminationService`: examine, correct and result lookups
- `FacadeDispatcher` / `CompositionHandler`: business routing and stage chains
- `BackendPool` / `PlatformHandler`: round-robin backend calls with pricing
- `decode_grade()`: maps the model's answer text to a `GradeOutcome`
- `MemoryStorage` / `PostgresStorage`: ledger, records and results
"""

from dotenv import load_dotenv

from .backends import (
    BackendAdapter,
    BackendPool,
    OpenAICompatibleAdapter,
    PlatformHandler,
    PydanticAIAdapter,
)
from .core import (
    BackendError,
    BusinessConfig,
    BusinessKey,
    CompositionHandler,
    ConfigurationError,
    ConfigurationMiddleware,
    CreditMiddleware,
    ExamineResult,
    ExaminerError,
    FacadeDispatcher,
    GradeOutcome,
    GradingRequest,
    GradingResponse,
    InsufficientCreditError,
    LoggingMiddleware,
    Middleware,
    NotFoundError,
    PipelineSettings,
    PromptTemplateMiddleware,
    Provider,
    Question,
    RecordMiddleware,
    RetryConfig,
    StorageError,
    UnknownBusinessError,
    ValidationError,
    default_builders,
    error_code,
)
from .grading import decode_grade, find_first_zero_bit
from .service import ExaminationService, build_dispatcher
from .storage import MemoryStorage, PostgresStorage

# Load environment variables
load_dotenv()

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Service
    "ExaminationService",
    "build_dispatcher",
    # Grading
    "decode_grade",
    "find_first_zero_bit",
    # Backends
    "BackendAdapter",
    "BackendPool",
    "OpenAICompatibleAdapter",
    "PydanticAIAdapter",
    "PlatformHandler",
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
    # Models
    "BusinessConfig",
    "GradingRequest",
    "GradingResponse",
    "ExamineResult",
    "Question",
    # Configuration
    "PipelineSettings",
    "RetryConfig",
    # Types
    "BusinessKey",
    "GradeOutcome",
    "Provider",
    # Storage
    "MemoryStorage",
    "PostgresStorage",
    # Exceptions
    "ExaminerError",
    "BackendError",
    "ConfigurationError",
    "InsufficientCreditError",
    "NotFoundError",
    "StorageError",
    "UnknownBusinessError",
    "ValidationError",
    "error_code",
]

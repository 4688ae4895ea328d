"""Core data models for the examination pipeline.

This module defines the primary data structures passed between stages:
- BusinessConfig: Per-business model and prompt settings
- GradingRequest: Immutable request flowing down the pipeline
- GradingResponse: Result of one successful pipeline run
- AdapterResult: Raw (tokens, text) pair from a backend adapter
- CallRecord: Pipeline-level record written by the record stage
- TrialRecord / BestResult: Examination history per user and question
- Question / ExamineResult: Service-level inputs and outputs
"""

from datetime import datetime, timezone
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, computed_field

from .types import GradeOutcome

__all__ = [
    "BusinessConfig",
    "GradingRequest",
    "GradingResponse",
    "AdapterResult",
    "CallRecord",
    "Question",
    "TrialRecord",
    "BestResult",
    "ExamineResult",
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class BusinessConfig(BaseModel):
    """Settings for one business key, resolved by the configuration stage.

    Example:
        >>> config = BusinessConfig(
        ...     business_key="question_examine",
        ...     model="glm-4-plus",
        ...     unit_price=1,
        ...     prompt_template="Question: {}\\nReference: {}\\nAnswer: {}",
        ...     max_input=2000,
        ... )
    """

    model_config = ConfigDict(frozen=True)

    business_key: str = Field(..., min_length=1, description="Business this config belongs to")
    model: str = Field(..., min_length=1, description="Model name sent to the backend")
    unit_price: int = Field(
        default=0, ge=0, description="Price per token in the smallest currency unit"
    )
    temperature: float = Field(default=0.0, ge=0.0, le=2.0)
    top_p: float = Field(default=0.0, ge=0.0, le=1.0, description="0 means provider default")
    system_prompt: str = Field(default="", description="Optional system prompt")
    prompt_template: str = Field(
        default="",
        description="str.format template filled positionally with the input segments",
    )
    max_input: int = Field(
        default=0, ge=0, description="Max characters of user input (0 = unlimited)"
    )
    max_tokens: int = Field(
        default=0,
        ge=0,
        description="Completion token cap per call (0 = none); sizes the credit check",
    )

    @property
    def max_cost(self) -> int:
        """Most one call can cost, or 0 when tokens are unbounded."""
        return self.max_tokens * self.unit_price


class GradingRequest(BaseModel):
    """Request flowing through the pipeline.

    Immutable once created: stages that need to change a field derive a new
    request with ``model_copy(update=...)``. ``trial_id`` is the idempotency
    key for billing and record keeping.
    """

    model_config = ConfigDict(frozen=True)

    user_id: int = Field(..., description="Caller's user id")
    trial_id: str = Field(..., min_length=1, description="Unique id of this attempt")
    business_key: str = Field(..., min_length=1, description="Selects the pipeline")
    input_segments: Tuple[str, ...] = Field(
        default_factory=tuple, description="Ordered input texts"
    )
    config: Optional[BusinessConfig] = Field(
        None, description="Business settings injected by the configuration stage"
    )
    prompt: Optional[str] = Field(
        None, description="Rendered prompt; when unset adapters join the segments"
    )


class GradingResponse(BaseModel):
    """Result of one successful pipeline run.

    ``cost_amount`` is always derived from ``tokens_consumed * unit_price``
    and cannot be set independently.

    Example:
        >>> resp = GradingResponse(tokens_consumed=120, unit_price=2, answer_text="...")
        >>> resp.cost_amount
        240
    """

    model_config = ConfigDict(frozen=True)

    tokens_consumed: int = Field(..., ge=0, description="Tokens billed by the backend")
    unit_price: int = Field(..., ge=0, description="Price per token (smallest unit)")
    answer_text: str = Field(default="", description="Raw model answer")

    @computed_field  # type: ignore[prop-decorator]
    @property
    def cost_amount(self) -> int:
        """Total cost in the smallest currency unit."""
        return self.tokens_consumed * self.unit_price


class AdapterResult(BaseModel):
    """Uniform output of a backend adapter call."""

    tokens: int = Field(..., ge=0)
    text: str = Field(default="")


class CallRecord(BaseModel):
    """One successful pipeline call, persisted once per trial id."""

    trial_id: str
    user_id: int
    business_key: str
    input_segments: Tuple[str, ...] = Field(default_factory=tuple)
    prompt: Optional[str] = None
    tokens_consumed: int = 0
    cost_amount: int = 0
    answer_text: str = ""
    created_at: datetime = Field(default_factory=_utcnow)


class Question(BaseModel):
    """A published question together with its canonical multi-tier answer."""

    id: int
    title: str
    canonical_answer: str = Field(
        ..., description="Canonical answer, serialized as text for the prompt"
    )


class TrialRecord(BaseModel):
    """Append-only record of one graded examination attempt."""

    user_id: int
    question_id: int
    trial_id: str
    business_key: str
    outcome: GradeOutcome
    input_segments: Tuple[str, ...] = Field(default_factory=tuple)
    raw_answer_text: str = ""
    tokens_consumed: int = 0
    cost_amount: int = 0
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)


class BestResult(BaseModel):
    """Highest outcome a user has reached on a question."""

    user_id: int
    question_id: int
    outcome: GradeOutcome
    updated_at: datetime = Field(default_factory=_utcnow)


class ExamineResult(BaseModel):
    """Value returned to callers of ``ExaminationService.examine``."""

    trial_id: str
    outcome: GradeOutcome
    raw_answer_text: str
    tokens_consumed: int
    cost_amount: int

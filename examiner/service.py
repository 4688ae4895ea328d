"""Examination service: grade a user's answer and track their best result.

This is the outward-facing API of the package. It fetches the question,
sends the user's answer through the grading pipeline, decodes the model's
verdict, and records both the attempt and the per-question best outcome.

## Usage:

    >>> storage = MemoryStorage()
    >>> dispatcher = build_dispatcher(BackendPool([adapter]), storage, storage, storage)
    >>> service = ExaminationService(storage, dispatcher, storage)
    >>> result = await service.examine(user_id=1, question_id=7, answer_text="...")
    >>> print(result.outcome)
"""

import asyncio
import logging
from typing import Dict, Iterable, Optional, Sequence
from uuid import uuid4

from .backends.platform import PlatformHandler
from .backends.pool import BackendPool
from .core.composition import CompositionHandler, FacadeDispatcher, default_builders
from .core.config import PipelineSettings
from .core.exceptions import BackendError
from .core.middleware import PromptTemplateMiddleware
from .core.models import ExamineResult, GradingRequest, TrialRecord
from .core.type_defs import Handler
from .core.types import BusinessKey, BusinessKeyLike, GradeOutcome, normalize_business_key
from .grading import decode_grade
from .storage.base import CallRecordStore, ConfigRepository, CreditLedger, QuestionRepository, TrialStore

__all__ = ["ExaminationService", "build_dispatcher"]

logger = logging.getLogger(__name__)

DEFAULT_BUSINESSES = (BusinessKey.QUESTION_EXAMINE, BusinessKey.CASE_EXAMINE)


def build_dispatcher(
    pool: BackendPool,
    config_repository: ConfigRepository,
    ledger: CreditLedger,
    record_store: CallRecordStore,
    settings: Optional[PipelineSettings] = None,
    businesses: Sequence[BusinessKeyLike] = DEFAULT_BUSINESSES,
) -> FacadeDispatcher:
    """Wire the standard pipeline for each business behind one dispatcher.

    Every business gets the default stages followed by the prompt template
    stage, in front of a shared PlatformHandler. Each call is priced at the
    ``unit_price`` of its business config. All pipelines share the backend
    pool, and with it the rotation.
    """
    settings = settings or PipelineSettings()
    platform = PlatformHandler(pool)
    dispatcher = FacadeDispatcher()
    for business in businesses:
        builders = default_builders(config_repository, ledger, record_store, settings)
        builders.append(PromptTemplateMiddleware())
        dispatcher.register(business, CompositionHandler(business, builders, platform))
    return dispatcher


class ExaminationService:
    """Grades answers through the pipeline and keeps per-question results.

    Args:
        question_repository: Source of published questions
        dispatcher: Pipeline entry point (a FacadeDispatcher or a single
            CompositionHandler)
        trial_store: Store for graded trials and best results
        business_key: Business used for examine requests
        timeout: Deadline in seconds for one pipeline call
    """

    def __init__(
        self,
        question_repository: QuestionRepository,
        dispatcher: Handler,
        trial_store: TrialStore,
        business_key: BusinessKeyLike = BusinessKey.QUESTION_EXAMINE,
        timeout: float = 60.0,
    ):
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.question_repository = question_repository
        self.dispatcher = dispatcher
        self.trial_store = trial_store
        self.business_key = normalize_business_key(business_key)
        self.timeout = timeout

    async def examine(self, user_id: int, question_id: int, answer_text: str) -> ExamineResult:
        """Grade one answer to a published question.

        The deadline covers the whole pipeline, debit included. A deadline
        that fires after the debit has committed still raises BackendError;
        the charge stands under this trial id, and the call record shows
        the model answer, but no trial is stored.

        Raises:
            NotFoundError: If the question is not published
            InsufficientCreditError: If the balance cannot cover the call
            BackendError: If the model call fails or misses the deadline
        """
        question = await self.question_repository.get_published_question(question_id)

        trial_id = uuid4().hex
        request = GradingRequest(
            user_id=user_id,
            trial_id=trial_id,
            business_key=self.business_key,
            input_segments=(question.title, question.canonical_answer, answer_text),
        )

        try:
            response = await asyncio.wait_for(
                self.dispatcher.handle(request), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            logger.warning(
                f"Trial {trial_id} for question {question_id} timed out after {self.timeout}s"
            )
            raise BackendError(
                f"Grading timed out after {self.timeout}s",
                details={"trial_id": trial_id, "question_id": question_id},
                retryable=False,
            ) from e

        outcome = decode_grade(response.answer_text)
        trial = TrialRecord(
            user_id=user_id,
            question_id=question_id,
            trial_id=trial_id,
            business_key=self.business_key,
            outcome=outcome,
            input_segments=request.input_segments,
            raw_answer_text=response.answer_text,
            tokens_consumed=response.tokens_consumed,
            cost_amount=response.cost_amount,
        )
        if not await self.trial_store.insert_trial_if_absent(trial):
            logger.warning(f"Trial {trial_id} already recorded; keeping the stored copy")

        best = await self.trial_store.upsert_best_result(user_id, question_id, outcome)
        logger.info(
            f"User {user_id} question {question_id}: {outcome.name} "
            f"(best {best.name}, {response.tokens_consumed} tokens)"
        )

        return ExamineResult(
            trial_id=trial_id,
            outcome=outcome,
            raw_answer_text=response.answer_text,
            tokens_consumed=response.tokens_consumed,
            cost_amount=response.cost_amount,
        )

    async def correct(self, user_id: int, question_id: int, outcome: GradeOutcome) -> None:
        """Overwrite the best result directly, bypassing the pipeline."""
        outcome = GradeOutcome(outcome)
        await self.trial_store.overwrite_best_result(user_id, question_id, outcome)
        logger.info(f"User {user_id} question {question_id} corrected to {outcome.name}")

    async def get_results_for_questions(
        self, user_id: int, question_ids: Iterable[int]
    ) -> Dict[int, GradeOutcome]:
        """Best outcome per question; questions never attempted are omitted."""
        return await self.trial_store.get_best_results(user_id, list(question_ids))

    async def question_result(self, user_id: int, question_id: int) -> GradeOutcome:
        """Best outcome for one question, FAILED when nothing is recorded."""
        best = await self.trial_store.get_best_result(user_id, question_id)
        return best.outcome if best is not None else GradeOutcome.FAILED

"""In-memory storage backend.

Implements every storage interface with plain dictionaries. Each
read-modify-write runs without an ``await`` in between, so on a single
event loop every keyed update is atomic without any lock.

Intended for tests and single-process deployments.

Example:
    >>> storage = MemoryStorage()
    >>> storage.add_question(Question(id=1, title="What is a mutex?", canonical_answer="..."))
    >>> await storage.top_up(user_id=7, amount=1000)
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Tuple

from ..core.exceptions import NotFoundError
from ..core.models import BestResult, BusinessConfig, CallRecord, Question, TrialRecord
from ..core.types import DebitStatus, GradeOutcome
from .base import (
    CallRecordStore,
    ConfigRepository,
    CreditLedger,
    QuestionRepository,
    StorageBackend,
    TrialStore,
)

__all__ = ["MemoryStorage"]

logger = logging.getLogger(__name__)


class MemoryStorage(
    StorageBackend,
    QuestionRepository,
    ConfigRepository,
    CreditLedger,
    CallRecordStore,
    TrialStore,
):
    """Dictionary-backed implementation of all storage interfaces."""

    def __init__(self) -> None:
        self.questions: Dict[int, Question] = {}
        self.configs: Dict[str, BusinessConfig] = {}
        self.balances: Dict[int, int] = {}
        self.debits: Dict[str, Tuple[int, int]] = {}
        self.call_records: Dict[str, CallRecord] = {}
        self.trials: Dict[str, TrialRecord] = {}
        self.best_results: Dict[Tuple[int, int], BestResult] = {}

    async def connect(self) -> None:
        pass

    async def close(self) -> None:
        pass

    def add_question(self, question: Question) -> None:
        """Publish a question."""
        self.questions[question.id] = question

    # QuestionRepository

    async def get_published_question(self, question_id: int) -> Question:
        question = self.questions.get(question_id)
        if question is None:
            raise NotFoundError(
                f"Question {question_id} not found", details={"question_id": question_id}
            )
        return question

    # ConfigRepository

    async def get_config(self, business_key: str) -> Optional[BusinessConfig]:
        return self.configs.get(business_key)

    async def save_config(self, config: BusinessConfig) -> None:
        self.configs[config.business_key] = config

    # CreditLedger

    async def balance(self, user_id: int) -> int:
        return self.balances.get(user_id, 0)

    async def debit(self, user_id: int, trial_id: str, amount: int) -> DebitStatus:
        if trial_id in self.debits:
            return DebitStatus.ALREADY_APPLIED
        current = self.balances.get(user_id, 0)
        if current < amount:
            return DebitStatus.INSUFFICIENT_BALANCE
        self.balances[user_id] = current - amount
        self.debits[trial_id] = (user_id, amount)
        logger.debug(f"Debited {amount} from user {user_id} for trial {trial_id}")
        return DebitStatus.OK

    async def top_up(self, user_id: int, amount: int) -> int:
        if amount < 0:
            raise ValueError("top-up amount must be non-negative")
        self.balances[user_id] = self.balances.get(user_id, 0) + amount
        return self.balances[user_id]

    # CallRecordStore

    async def insert_call_record_if_absent(self, record: CallRecord) -> bool:
        if record.trial_id in self.call_records:
            return False
        self.call_records[record.trial_id] = record
        return True

    async def get_call_record(self, trial_id: str) -> Optional[CallRecord]:
        return self.call_records.get(trial_id)

    # TrialStore

    async def insert_trial_if_absent(self, trial: TrialRecord) -> bool:
        if trial.trial_id in self.trials:
            return False
        self.trials[trial.trial_id] = trial
        return True

    async def get_trial(self, trial_id: str) -> Optional[TrialRecord]:
        return self.trials.get(trial_id)

    async def upsert_best_result(
        self, user_id: int, question_id: int, outcome: GradeOutcome
    ) -> GradeOutcome:
        key = (user_id, question_id)
        existing = self.best_results.get(key)
        if existing is not None and existing.outcome > outcome:
            return existing.outcome
        self.best_results[key] = BestResult(
            user_id=user_id,
            question_id=question_id,
            outcome=outcome,
            updated_at=datetime.now(timezone.utc),
        )
        return outcome

    async def overwrite_best_result(
        self, user_id: int, question_id: int, outcome: GradeOutcome
    ) -> None:
        self.best_results[(user_id, question_id)] = BestResult(
            user_id=user_id,
            question_id=question_id,
            outcome=outcome,
            updated_at=datetime.now(timezone.utc),
        )

    async def get_best_result(self, user_id: int, question_id: int) -> Optional[BestResult]:
        return self.best_results.get((user_id, question_id))

    async def get_best_results(
        self, user_id: int, question_ids: Iterable[int]
    ) -> Dict[int, GradeOutcome]:
        results: Dict[int, GradeOutcome] = {}
        for qid in question_ids:
            best = self.best_results.get((user_id, qid))
            if best is not None:
                results[qid] = best.outcome
        return results

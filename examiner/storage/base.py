"""Storage interfaces used by the examination pipeline.

The pipeline only talks to these abstractions. Concrete backends live in
:mod:`examiner.storage.memory` (tests, single process) and
:mod:`examiner.storage.postgres` (production).

Every write is keyed: debits and records by ``trial_id``, best results by
``(user_id, question_id)``. Backends must make each keyed write atomic on
its own; no global lock is required or expected.
"""

from abc import ABC, abstractmethod
from typing import Dict, Iterable, Optional

from ..core.exceptions import ConnectionError, RetrievalError, SaveError, StorageError
from ..core.models import BestResult, BusinessConfig, CallRecord, Question, TrialRecord
from ..core.types import DebitStatus, GradeOutcome

__all__ = [
    "StorageBackend",
    "QuestionRepository",
    "ConfigRepository",
    "CreditLedger",
    "CallRecordStore",
    "TrialStore",
    "StorageError",
    "ConnectionError",
    "SaveError",
    "RetrievalError",
]


class StorageBackend(ABC):
    """Base class for backends that hold a connection.

    Supports ``async with`` to connect on enter and close on exit.
    """

    @abstractmethod
    async def connect(self) -> None:
        """Open connections / pools."""

    @abstractmethod
    async def close(self) -> None:
        """Release connections / pools."""

    async def __aenter__(self) -> "StorageBackend":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class QuestionRepository(ABC):
    """Read access to published questions."""

    @abstractmethod
    async def get_published_question(self, question_id: int) -> Question:
        """Return the published question.

        Raises:
            NotFoundError: If no published question has this id
        """


class ConfigRepository(ABC):
    """Per-business configuration store."""

    @abstractmethod
    async def get_config(self, business_key: str) -> Optional[BusinessConfig]:
        """Return the config for a business key, or None if absent."""

    @abstractmethod
    async def save_config(self, config: BusinessConfig) -> None:
        """Create or replace the config for ``config.business_key``."""


class CreditLedger(ABC):
    """Credit balances and idempotent debits."""

    @abstractmethod
    async def balance(self, user_id: int) -> int:
        """Current balance (0 for unknown users)."""

    @abstractmethod
    async def debit(self, user_id: int, trial_id: str, amount: int) -> DebitStatus:
        """Debit ``amount`` once per ``trial_id``.

        Returns:
            OK when applied, ALREADY_APPLIED when this trial was debited
            before (no change), INSUFFICIENT_BALANCE when the balance
            cannot cover the amount (no change)
        """

    @abstractmethod
    async def top_up(self, user_id: int, amount: int) -> int:
        """Credit the account and return the new balance."""


class CallRecordStore(ABC):
    """Pipeline-level call records written by the record stage."""

    @abstractmethod
    async def insert_call_record_if_absent(self, record: CallRecord) -> bool:
        """Insert the record unless its trial id exists. Returns True if inserted."""

    @abstractmethod
    async def get_call_record(self, trial_id: str) -> Optional[CallRecord]:
        """Fetch a record by trial id."""


class TrialStore(ABC):
    """Graded trials and per-question best results."""

    @abstractmethod
    async def insert_trial_if_absent(self, trial: TrialRecord) -> bool:
        """Insert the trial unless its trial id exists. Returns True if inserted."""

    @abstractmethod
    async def get_trial(self, trial_id: str) -> Optional[TrialRecord]:
        """Fetch a trial by id."""

    @abstractmethod
    async def upsert_best_result(
        self, user_id: int, question_id: int, outcome: GradeOutcome
    ) -> GradeOutcome:
        """Store the higher of the existing and new outcome; return the stored value."""

    @abstractmethod
    async def overwrite_best_result(
        self, user_id: int, question_id: int, outcome: GradeOutcome
    ) -> None:
        """Unconditionally set the best result (manual correction)."""

    @abstractmethod
    async def get_best_result(self, user_id: int, question_id: int) -> Optional[BestResult]:
        """Fetch the best result for one question."""

    @abstractmethod
    async def get_best_results(
        self, user_id: int, question_ids: Iterable[int]
    ) -> Dict[int, GradeOutcome]:
        """Bulk fetch best outcomes; questions without a result are omitted."""

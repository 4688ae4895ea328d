"""Unit tests for the in-memory storage backend."""

import asyncio

import pytest

from examiner.core.exceptions import NotFoundError
from examiner.core.models import CallRecord, TrialRecord
from examiner.core.types import DebitStatus, GradeOutcome
from examiner.storage.memory import MemoryStorage


def _trial(trial_id: str, outcome=GradeOutcome.BASIC) -> TrialRecord:
    return TrialRecord(
        user_id=7,
        question_id=42,
        trial_id=trial_id,
        business_key="question_examine",
        outcome=outcome,
        raw_answer_text="raw",
    )


class TestLifecycle:
    @pytest.mark.asyncio
    async def test_async_context_manager(self):
        async with MemoryStorage() as storage:
            assert isinstance(storage, MemoryStorage)


class TestQuestions:
    @pytest.mark.asyncio
    async def test_get_published_question(self, storage, mutex_question):
        assert await storage.get_published_question(42) == mutex_question

    @pytest.mark.asyncio
    async def test_missing_question(self, storage):
        with pytest.raises(NotFoundError, match="Question 5 not found"):
            await storage.get_published_question(5)


class TestConfigs:
    @pytest.mark.asyncio
    async def test_save_and_get(self, question_config):
        storage = MemoryStorage()
        assert await storage.get_config(question_config.business_key) is None

        await storage.save_config(question_config)

        assert await storage.get_config(question_config.business_key) == question_config


class TestCreditLedger:
    @pytest.mark.asyncio
    async def test_unknown_user_has_zero_balance(self):
        assert await MemoryStorage().balance(1) == 0

    @pytest.mark.asyncio
    async def test_top_up_accumulates(self):
        storage = MemoryStorage()
        assert await storage.top_up(1, 100) == 100
        assert await storage.top_up(1, 50) == 150

    @pytest.mark.asyncio
    async def test_negative_top_up_rejected(self):
        with pytest.raises(ValueError):
            await MemoryStorage().top_up(1, -5)

    @pytest.mark.asyncio
    async def test_debit_statuses(self):
        storage = MemoryStorage()
        await storage.top_up(1, 100)

        assert await storage.debit(1, "t1", 60) is DebitStatus.OK
        assert await storage.debit(1, "t1", 60) is DebitStatus.ALREADY_APPLIED
        assert await storage.debit(1, "t2", 60) is DebitStatus.INSUFFICIENT_BALANCE
        assert await storage.balance(1) == 40

    @pytest.mark.asyncio
    async def test_rejected_debit_can_be_retried(self):
        storage = MemoryStorage()

        assert await storage.debit(1, "t1", 10) is DebitStatus.INSUFFICIENT_BALANCE
        await storage.top_up(1, 10)

        assert await storage.debit(1, "t1", 10) is DebitStatus.OK

    @pytest.mark.asyncio
    async def test_concurrent_debits_same_trial(self):
        storage = MemoryStorage()
        await storage.top_up(1, 100)

        statuses = await asyncio.gather(*(storage.debit(1, "t1", 30) for _ in range(10)))

        assert statuses.count(DebitStatus.OK) == 1
        assert await storage.balance(1) == 70


class TestCallRecords:
    @pytest.mark.asyncio
    async def test_insert_if_absent(self):
        storage = MemoryStorage()
        record = CallRecord(trial_id="t1", user_id=1, business_key="question_examine")

        assert await storage.insert_call_record_if_absent(record) is True
        assert await storage.insert_call_record_if_absent(record.model_copy()) is False
        assert await storage.get_call_record("t1") is record
        assert await storage.get_call_record("t2") is None


class TestTrials:
    @pytest.mark.asyncio
    async def test_insert_if_absent(self):
        storage = MemoryStorage()
        original = _trial("t1", GradeOutcome.BASIC)

        assert await storage.insert_trial_if_absent(original) is True
        assert await storage.insert_trial_if_absent(_trial("t1", GradeOutcome.ADVANCED)) is False
        assert (await storage.get_trial("t1")).outcome == GradeOutcome.BASIC

    @pytest.mark.asyncio
    async def test_upsert_best_keeps_higher(self):
        storage = MemoryStorage()

        assert await storage.upsert_best_result(1, 2, GradeOutcome.INTERMEDIATE) == GradeOutcome.INTERMEDIATE
        assert await storage.upsert_best_result(1, 2, GradeOutcome.BASIC) == GradeOutcome.INTERMEDIATE
        assert await storage.upsert_best_result(1, 2, GradeOutcome.ADVANCED) == GradeOutcome.ADVANCED
        assert (await storage.get_best_result(1, 2)).outcome == GradeOutcome.ADVANCED

    @pytest.mark.asyncio
    async def test_overwrite_best(self):
        storage = MemoryStorage()
        await storage.upsert_best_result(1, 2, GradeOutcome.ADVANCED)

        await storage.overwrite_best_result(1, 2, GradeOutcome.FAILED)

        assert (await storage.get_best_result(1, 2)).outcome == GradeOutcome.FAILED

    @pytest.mark.asyncio
    async def test_get_best_results_omits_missing(self):
        storage = MemoryStorage()
        await storage.upsert_best_result(1, 10, GradeOutcome.BASIC)
        await storage.upsert_best_result(2, 11, GradeOutcome.BASIC)

        assert await storage.get_best_results(1, [10, 11, 12]) == {10: GradeOutcome.BASIC}
        assert await storage.get_best_results(1, []) == {}

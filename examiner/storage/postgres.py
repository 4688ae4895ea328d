"""PostgreSQL storage backend (asyncpg).

Stores credit balances, debits, business configs, call records, trials
and best results in a dedicated schema (``examiner`` by default).

Setup:
    1. pip install examiner
    2. Set DATABASE_URL in .env
    3. Run migrations: alembic upgrade head

Idempotency is enforced by unique keys: ``credit_debits.trial_id``,
``call_records.trial_id`` and ``trials.trial_id`` use
``INSERT ... ON CONFLICT DO NOTHING``; best results use an upsert keyed by
``(user_id, question_id)``. Each write is atomic at row level, so no
application-wide lock is needed.
"""

import json
import logging
import os
from typing import Any, Dict, Iterable, Optional

import asyncpg

from ..core.models import BestResult, BusinessConfig, CallRecord, TrialRecord
from ..core.types import DebitStatus, GradeOutcome
from .base import (
    CallRecordStore,
    ConfigRepository,
    ConnectionError,
    CreditLedger,
    RetrievalError,
    SaveError,
    StorageBackend,
    TrialStore,
)

__all__ = ["PostgresStorage"]

logger = logging.getLogger(__name__)


class _InsufficientBalance(Exception):
    """Raised inside a debit transaction to roll it back."""


def _decode_segments(row: Any) -> Dict[str, Any]:
    """Row as a dict with a JSON ``input_segments`` column decoded."""
    data: Dict[str, Any] = dict(row)
    segments = data.get("input_segments")
    if isinstance(segments, str):
        data["input_segments"] = json.loads(segments)
    return data


class PostgresStorage(StorageBackend, ConfigRepository, CreditLedger, CallRecordStore, TrialStore):
    """asyncpg-backed implementation of the pipeline's storage interfaces.

    Example:
        >>> storage = PostgresStorage()
        >>> async with storage:
        ...     await storage.top_up(user_id=7, amount=500)
        ...     status = await storage.debit(7, "trial-abc", 120)
    """

    def __init__(
        self,
        database_url: Optional[str] = None,
        schema: str = "examiner",
        min_pool_size: int = 2,
        max_pool_size: int = 10,
    ):
        """Initialize storage (does not connect).

        Args:
            database_url: PostgreSQL DSN; falls back to DATABASE_URL
            schema: Schema holding the examiner tables
            min_pool_size: Minimum pool connections
            max_pool_size: Maximum pool connections

        Raises:
            ValueError: If no database URL is available or schema is invalid
        """
        url = database_url or os.getenv("DATABASE_URL")
        if not url:
            raise ValueError("DATABASE_URL must be provided or set in environment")
        if not schema.isidentifier():
            raise ValueError(f"Invalid schema name: {schema!r}")

        self.database_url = url
        self.schema = schema
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self) -> None:
        """Create the connection pool and verify the schema exists.

        Raises:
            ConnectionError: If the database is unreachable or the schema is missing
        """
        try:
            self.pool = await asyncpg.create_pool(
                self.database_url,
                min_size=self.min_pool_size,
                max_size=self.max_pool_size,
            )
            async with self.pool.acquire() as conn:
                exists = await conn.fetchval(
                    "SELECT EXISTS(SELECT 1 FROM information_schema.schemata "
                    "WHERE schema_name = $1)",
                    self.schema,
                )
        except Exception as e:
            raise ConnectionError(f"PostgreSQL connection failed: {e}") from e

        if not exists:
            await self.close()
            raise ConnectionError(
                f"Schema '{self.schema}' does not exist. Run migrations: alembic upgrade head"
            )
        logger.info(f"Connected to PostgreSQL (schema={self.schema})")

    async def close(self) -> None:
        """Close the connection pool if open."""
        if self.pool is not None:
            await self.pool.close()
            self.pool = None

    def _require_pool(self) -> asyncpg.Pool:
        if self.pool is None:
            raise ConnectionError("Not connected to database. Call connect() first.")
        return self.pool

    # ConfigRepository

    async def get_config(self, business_key: str) -> Optional[BusinessConfig]:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT business_key, model, unit_price, temperature, top_p, "
                    f"system_prompt, prompt_template, max_input, max_tokens "
                    f"FROM {self.schema}.business_configs WHERE business_key = $1",
                    business_key,
                )
        except Exception as e:
            raise RetrievalError(f"Failed to retrieve config: {e}") from e
        return BusinessConfig(**dict(row)) if row else None

    async def save_config(self, config: BusinessConfig) -> None:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO {self.schema}.business_configs
                        (business_key, model, unit_price, temperature, top_p,
                         system_prompt, prompt_template, max_input, max_tokens)
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    ON CONFLICT (business_key) DO UPDATE SET
                        model = EXCLUDED.model,
                        unit_price = EXCLUDED.unit_price,
                        temperature = EXCLUDED.temperature,
                        top_p = EXCLUDED.top_p,
                        system_prompt = EXCLUDED.system_prompt,
                        prompt_template = EXCLUDED.prompt_template,
                        max_input = EXCLUDED.max_input,
                        max_tokens = EXCLUDED.max_tokens,
                        updated_at = now()
                    """,
                    config.business_key,
                    config.model,
                    config.unit_price,
                    config.temperature,
                    config.top_p,
                    config.system_prompt,
                    config.prompt_template,
                    config.max_input,
                    config.max_tokens,
                )
        except Exception as e:
            raise SaveError(f"Failed to save config: {e}") from e

    # CreditLedger

    async def balance(self, user_id: int) -> int:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                value = await conn.fetchval(
                    f"SELECT balance FROM {self.schema}.credit_accounts WHERE user_id = $1",
                    user_id,
                )
        except Exception as e:
            raise RetrievalError(f"Failed to retrieve balance: {e}") from e
        return int(value) if value is not None else 0

    async def debit(self, user_id: int, trial_id: str, amount: int) -> DebitStatus:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                async with conn.transaction():
                    debit_id = await conn.fetchval(
                        f"""
                        INSERT INTO {self.schema}.credit_debits (trial_id, user_id, amount)
                        VALUES ($1, $2, $3)
                        ON CONFLICT (trial_id) DO NOTHING
                        RETURNING id
                        """,
                        trial_id,
                        user_id,
                        amount,
                    )
                    if debit_id is None:
                        return DebitStatus.ALREADY_APPLIED
                    remaining = await conn.fetchval(
                        f"""
                        UPDATE {self.schema}.credit_accounts
                        SET balance = balance - $2, updated_at = now()
                        WHERE user_id = $1 AND balance >= $2
                        RETURNING balance
                        """,
                        user_id,
                        amount,
                    )
                    if remaining is None:
                        raise _InsufficientBalance()
        except _InsufficientBalance:
            return DebitStatus.INSUFFICIENT_BALANCE
        except Exception as e:
            raise SaveError(f"Failed to debit credits: {e}") from e
        return DebitStatus.OK

    async def top_up(self, user_id: int, amount: int) -> int:
        if amount < 0:
            raise ValueError("top-up amount must be non-negative")
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                value = await conn.fetchval(
                    f"""
                    INSERT INTO {self.schema}.credit_accounts (user_id, balance)
                    VALUES ($1, $2)
                    ON CONFLICT (user_id) DO UPDATE SET
                        balance = {self.schema}.credit_accounts.balance + EXCLUDED.balance,
                        updated_at = now()
                    RETURNING balance
                    """,
                    user_id,
                    amount,
                )
        except Exception as e:
            raise SaveError(f"Failed to top up credits: {e}") from e
        return int(value)

    # CallRecordStore

    async def insert_call_record_if_absent(self, record: CallRecord) -> bool:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                inserted = await conn.fetchval(
                    f"""
                    INSERT INTO {self.schema}.call_records
                        (trial_id, user_id, business_key, input_segments, prompt,
                         tokens_consumed, cost_amount, answer_text, created_at)
                    VALUES ($1, $2, $3, $4::jsonb, $5, $6, $7, $8, $9)
                    ON CONFLICT (trial_id) DO NOTHING
                    RETURNING trial_id
                    """,
                    record.trial_id,
                    record.user_id,
                    record.business_key,
                    json.dumps(list(record.input_segments)),
                    record.prompt,
                    record.tokens_consumed,
                    record.cost_amount,
                    record.answer_text,
                    record.created_at,
                )
        except Exception as e:
            raise SaveError(f"Failed to save call record: {e}") from e
        return inserted is not None

    async def get_call_record(self, trial_id: str) -> Optional[CallRecord]:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT trial_id, user_id, business_key, input_segments, prompt, "
                    f"tokens_consumed, cost_amount, answer_text, created_at "
                    f"FROM {self.schema}.call_records WHERE trial_id = $1",
                    trial_id,
                )
        except Exception as e:
            raise RetrievalError(f"Failed to retrieve call record: {e}") from e
        return CallRecord(**_decode_segments(row)) if row else None

    # TrialStore

    async def insert_trial_if_absent(self, trial: TrialRecord) -> bool:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                inserted = await conn.fetchval(
                    f"""
                    INSERT INTO {self.schema}.trials
                        (trial_id, user_id, question_id, business_key, outcome,
                         input_segments, raw_answer_text, tokens_consumed,
                         cost_amount, created_at, updated_at)
                    VALUES ($1, $2, $3, $4, $5, $6::jsonb, $7, $8, $9, $10, $11)
                    ON CONFLICT (trial_id) DO NOTHING
                    RETURNING trial_id
                    """,
                    trial.trial_id,
                    trial.user_id,
                    trial.question_id,
                    trial.business_key,
                    int(trial.outcome),
                    json.dumps(list(trial.input_segments)),
                    trial.raw_answer_text,
                    trial.tokens_consumed,
                    trial.cost_amount,
                    trial.created_at,
                    trial.updated_at,
                )
        except Exception as e:
            raise SaveError(f"Failed to save trial: {e}") from e
        return inserted is not None

    async def get_trial(self, trial_id: str) -> Optional[TrialRecord]:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT trial_id, user_id, question_id, business_key, outcome, input_segments, "
                    f"raw_answer_text, tokens_consumed, cost_amount, created_at, updated_at "
                    f"FROM {self.schema}.trials WHERE trial_id = $1",
                    trial_id,
                )
        except Exception as e:
            raise RetrievalError(f"Failed to retrieve trial: {e}") from e
        return TrialRecord(**_decode_segments(row)) if row else None

    async def upsert_best_result(
        self, user_id: int, question_id: int, outcome: GradeOutcome
    ) -> GradeOutcome:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                stored = await conn.fetchval(
                    f"""
                    INSERT INTO {self.schema}.best_results (user_id, question_id, outcome)
                    VALUES ($1, $2, $3)
                    ON CONFLICT (user_id, question_id) DO UPDATE SET
                        outcome = GREATEST({self.schema}.best_results.outcome, EXCLUDED.outcome),
                        updated_at = now()
                    RETURNING outcome
                    """,
                    user_id,
                    question_id,
                    int(outcome),
                )
        except Exception as e:
            raise SaveError(f"Failed to save best result: {e}") from e
        return GradeOutcome(stored)

    async def overwrite_best_result(
        self, user_id: int, question_id: int, outcome: GradeOutcome
    ) -> None:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                await conn.execute(
                    f"""
                    INSERT INTO {self.schema}.best_results (user_id, question_id, outcome)
                    VALUES ($1, $2, $3)
                    ON CONFLICT (user_id, question_id) DO UPDATE SET
                        outcome = EXCLUDED.outcome,
                        updated_at = now()
                    """,
                    user_id,
                    question_id,
                    int(outcome),
                )
        except Exception as e:
            raise SaveError(f"Failed to overwrite best result: {e}") from e

    async def get_best_result(self, user_id: int, question_id: int) -> Optional[BestResult]:
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT user_id, question_id, outcome, updated_at "
                    f"FROM {self.schema}.best_results WHERE user_id = $1 AND question_id = $2",
                    user_id,
                    question_id,
                )
        except Exception as e:
            raise RetrievalError(f"Failed to retrieve best result: {e}") from e
        return BestResult(**dict(row)) if row else None

    async def get_best_results(
        self, user_id: int, question_ids: Iterable[int]
    ) -> Dict[int, GradeOutcome]:
        ids = list(question_ids)
        if not ids:
            return {}
        pool = self._require_pool()
        try:
            async with pool.acquire() as conn:
                rows = await conn.fetch(
                    f"SELECT question_id, outcome FROM {self.schema}.best_results "
                    f"WHERE user_id = $1 AND question_id = ANY($2::bigint[])",
                    user_id,
                    ids,
                )
        except Exception as e:
            raise RetrievalError(f"Failed to retrieve best results: {e}") from e
        return {row["question_id"]: GradeOutcome(row["outcome"]) for row in rows}

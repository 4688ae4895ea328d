"""Create examiner schema and tables

Revision ID: 3f0c2a91b7d4
Revises:
Create Date: 2026-10-18 10:12:41.503117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f0c2a91b7d4'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create examiner schema with ledger, config, record and result tables."""
    op.execute("CREATE SCHEMA IF NOT EXISTS examiner")

    # Credit ledger
    op.execute("""
        CREATE TABLE examiner.credit_accounts (
            user_id BIGINT PRIMARY KEY,
            balance BIGINT NOT NULL DEFAULT 0 CHECK (balance >= 0),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # One row per billed trial; the unique trial_id makes debits idempotent
    op.execute("""
        CREATE TABLE examiner.credit_debits (
            id BIGSERIAL PRIMARY KEY,
            trial_id TEXT NOT NULL UNIQUE,
            user_id BIGINT NOT NULL,
            amount BIGINT NOT NULL CHECK (amount >= 0),
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
        )
    """)

    op.execute("""
        CREATE TABLE examiner.business_configs (
            business_key TEXT PRIMARY KEY,
            model TEXT NOT NULL,
            unit_price BIGINT NOT NULL DEFAULT 0,
            temperature DOUBLE PRECISION NOT NULL DEFAULT 0,
            top_p DOUBLE PRECISION NOT NULL DEFAULT 0,
            system_prompt TEXT NOT NULL DEFAULT '',
            prompt_template TEXT NOT NULL DEFAULT '',
            max_input INT NOT NULL DEFAULT 0,
            max_tokens INT NOT NULL DEFAULT 0,
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
        )
    """)

    op.execute("""
        CREATE TABLE examiner.call_records (
            id BIGSERIAL PRIMARY KEY,
            trial_id TEXT NOT NULL UNIQUE,
            user_id BIGINT NOT NULL,
            business_key TEXT NOT NULL,
            input_segments JSONB NOT NULL,
            prompt TEXT,
            tokens_consumed BIGINT NOT NULL DEFAULT 0,
            cost_amount BIGINT NOT NULL DEFAULT 0,
            answer_text TEXT NOT NULL DEFAULT '',
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
        )
    """)

    # outcome: 0=FAILED 1=BASIC 2=INTERMEDIATE 3=ADVANCED
    op.execute("""
        CREATE TABLE examiner.trials (
            id BIGSERIAL PRIMARY KEY,
            trial_id TEXT NOT NULL UNIQUE,
            user_id BIGINT NOT NULL,
            question_id BIGINT NOT NULL,
            business_key TEXT NOT NULL,
            outcome SMALLINT NOT NULL CHECK (outcome BETWEEN 0 AND 3),
            input_segments JSONB NOT NULL DEFAULT '[]'::jsonb,
            raw_answer_text TEXT NOT NULL DEFAULT '',
            tokens_consumed BIGINT NOT NULL DEFAULT 0,
            cost_amount BIGINT NOT NULL DEFAULT 0,
            created_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP
        )
    """)

    op.execute("""
        CREATE TABLE examiner.best_results (
            user_id BIGINT NOT NULL,
            question_id BIGINT NOT NULL,
            outcome SMALLINT NOT NULL CHECK (outcome BETWEEN 0 AND 3),
            updated_at TIMESTAMP WITH TIME ZONE DEFAULT CURRENT_TIMESTAMP,
            PRIMARY KEY (user_id, question_id)
        )
    """)

    # Indexes for common queries
    op.execute("""
        CREATE INDEX idx_trials_user_question
        ON examiner.trials (user_id, question_id, created_at DESC)
    """)
    op.execute("""
        CREATE INDEX idx_call_records_user_created
        ON examiner.call_records (user_id, created_at DESC)
    """)
    op.execute("""
        CREATE INDEX idx_credit_debits_user
        ON examiner.credit_debits (user_id)
    """)


def downgrade() -> None:
    """Drop examiner schema and all tables."""
    op.execute("DROP SCHEMA IF EXISTS examiner CASCADE")

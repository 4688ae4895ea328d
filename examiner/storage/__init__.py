"""Storage backends for the examination pipeline.

Available backends:
- MemoryStorage: Dictionary-backed, for tests and single-process use
- PostgreSQL: Persistent storage with examiner schema (requires DATABASE_URL)

Setup:
    1. Set DATABASE_URL in .env
    2. Run migrations: alembic upgrade head
    3. Pass the storage to the pipeline stages and the examination service

Example:
    >>> from examiner.storage import PostgresStorage
    >>>
    >>> storage = PostgresStorage()
    >>> async with storage:
    ...     await storage.top_up(user_id=7, amount=1000)
"""

from examiner.storage.base import (
    CallRecordStore,
    ConfigRepository,
    ConnectionError,
    CreditLedger,
    QuestionRepository,
    RetrievalError,
    SaveError,
    StorageBackend,
    StorageError,
    TrialStore,
)
from examiner.storage.memory import MemoryStorage
from examiner.storage.postgres import PostgresStorage

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
    "MemoryStorage",
    "PostgresStorage",
]

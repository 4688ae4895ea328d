"""Pipeline settings.

Settings are read from the environment (``.env`` files are loaded by
python-dotenv when the package is imported) and validated with pydantic.

Environment variables:
    EXAMINER_MIN_BALANCE: Minimum balance required to admit a request
    EXAMINER_TIMEOUT: Per-request deadline in seconds
    EXAMINER_LOG_LEVEL: Level used by the logging stage
"""

import logging
import os
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

__all__ = ["PipelineSettings"]


class PipelineSettings(BaseModel):
    """Validated settings shared by the examination pipeline.

    Example:
        >>> settings = PipelineSettings(min_balance=10, timeout=30.0)
        >>> settings = PipelineSettings.from_env()
    """

    min_balance: int = Field(
        default=1, ge=0, description="Balance required before a request is admitted"
    )
    timeout: float = Field(
        default=60.0, gt=0.0, le=600.0, description="Per-request deadline in seconds"
    )
    log_level: str = Field(default="INFO", description="Logging stage level")

    @field_validator("log_level")
    @classmethod
    def _check_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(getattr(logging, level, None), int):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "PipelineSettings":
        """Build settings from EXAMINER_* environment variables."""
        env = os.environ if environ is None else environ
        values: Dict[str, Any] = {}
        for field_name in cls.model_fields:
            raw = env.get(f"EXAMINER_{field_name.upper()}")
            if raw is not None and raw != "":
                values[field_name] = raw
        return cls(**values)

"""Core type definitions and enumerations for examiner.

This module defines the fundamental enums used throughout the pipeline:
grade outcomes, business keys, backend providers, and ledger statuses.
"""

from enum import Enum, IntEnum
from typing import Dict, Optional, Union

__all__ = [
    "GradeOutcome",
    "BusinessKey",
    "BusinessKeyLike",
    "Provider",
    "DebitStatus",
    "normalize_business_key",
]


class GradeOutcome(IntEnum):
    """Ordinal grade of an examined answer.

    Values are strictly ordered so outcomes can be compared directly
    (``GradeOutcome.ADVANCED > GradeOutcome.BASIC``). Each tier implies
    the previous one was met.

    Attributes:
        FAILED: Answer did not reach the first tier (or was unparseable)
        BASIC: Meets the 15K-tier bar
        INTERMEDIATE: Meets the 25K-tier bar
        ADVANCED: Meets the 35K-tier bar
    """

    FAILED = 0
    BASIC = 1
    INTERMEDIATE = 2
    ADVANCED = 3


class BusinessKey(str, Enum):
    """Known businesses that own an assembled pipeline.

    The set is closed at build time. Dispatch helpers also accept plain
    strings so a business registered at runtime can still be routed.
    """

    QUESTION_EXAMINE = "question_examine"
    CASE_EXAMINE = "case_examine"


BusinessKeyLike = Union[BusinessKey, str]


class Provider(str, Enum):
    """OpenAI-compatible model providers a backend adapter can target."""

    OPENAI = "openai"
    ZHIPU = "zhipu"
    DEEPSEEK = "deepseek"
    DASHSCOPE = "dashscope"

    @property
    def base_url(self) -> Optional[str]:
        """Default API base URL (None means the SDK default)."""
        return _BASE_URLS.get(self)

    @property
    def api_key_env(self) -> str:
        """Environment variable holding this provider's API key."""
        return f"{self.name}_API_KEY"


_BASE_URLS: Dict[Provider, str] = {
    Provider.ZHIPU: "https://open.bigmodel.cn/api/paas/v4/",
    Provider.DEEPSEEK: "https://api.deepseek.com/v1",
    Provider.DASHSCOPE: "https://dashscope.aliyuncs.com/compatible-mode/v1/",
}


class DebitStatus(str, Enum):
    """Result of a ledger debit keyed by trial id."""

    OK = "ok"
    INSUFFICIENT_BALANCE = "insufficient_balance"
    ALREADY_APPLIED = "already_applied"


def normalize_business_key(key: BusinessKeyLike) -> str:
    """Return the plain string form of a business key."""
    return key.value if isinstance(key, BusinessKey) else str(key)

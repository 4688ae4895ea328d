"""Shared test fixtures and utilities for examiner tests.

This module provides common fixtures used across all test files to reduce
duplication and improve maintainability.
"""

import asyncio
from typing import List, Optional, Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest

from examiner.backends.base import BackendAdapter
from examiner.core.models import AdapterResult, BusinessConfig, GradingRequest, Question
from examiner.core.types import BusinessKey
from examiner.storage.memory import MemoryStorage

QUESTION_TEMPLATE = "Question: {}\nReference answer: {}\nUser answer: {}"


class FakeAdapter(BackendAdapter):
    """Scripted backend adapter for testing.

    Returns a fixed token count and text, or raises ``error`` when set.
    Every call is recorded in ``calls`` as ``(segments, config)``.
    """

    def __init__(
        self,
        name: str = "fake",
        tokens: int = 100,
        text: str = "#### 最终评分\n  1分\n回答出来了第一个部分",
        error: Optional[BaseException] = None,
        delay: float = 0.0,
    ):
        self._name = name
        self.tokens = tokens
        self.text = text
        self.error = error
        self.delay = delay
        self.calls: List[tuple] = []

    @property
    def name(self) -> str:
        return self._name

    async def invoke(
        self, segments: Sequence[str], config: Optional[BusinessConfig] = None
    ) -> AdapterResult:
        self.calls.append((tuple(segments), config))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return AdapterResult(tokens=self.tokens, text=self.text)


class MockAgentResult:
    """Mock PydanticAI agent result for testing.

    This mock simulates the result object returned by PydanticAI agents,
    providing both the output and usage statistics.
    """

    def __init__(self, output: object, total_tokens: int = 100):
        self.output = output
        self.total_tokens = total_tokens

    def usage(self):
        """Mock usage information for token tracking."""
        mock_usage = MagicMock()
        mock_usage.total_tokens = self.total_tokens
        return mock_usage


@pytest.fixture
def fake_adapter_factory():
    """Factory for FakeAdapter instances."""
    return FakeAdapter


@pytest.fixture
def fake_adapter():
    """A FakeAdapter answering BASIC with 100 tokens."""
    return FakeAdapter()


@pytest.fixture
def mock_agent_result_factory():
    """Factory for MockAgentResult instances."""
    return MockAgentResult


@pytest.fixture
def mock_agent():
    """Create a mock PydanticAI agent for testing.

    Returns:
        AsyncMock agent that can be configured with responses
    """
    return AsyncMock()


@pytest.fixture
def question_config():
    """Config for the question_examine business."""
    return BusinessConfig(
        business_key=BusinessKey.QUESTION_EXAMINE.value,
        model="glm-4-plus",
        unit_price=1,
        system_prompt="You are a strict examiner.",
        prompt_template=QUESTION_TEMPLATE,
        max_input=2000,
        max_tokens=200,
    )


@pytest.fixture
def mutex_question():
    """A published question with a canonical answer."""
    return Question(
        id=42,
        title="What is a mutex?",
        canonical_answer="1. Mutual exclusion lock\n2. Only one holder at a time\n3. Priority inversion",
    )


@pytest.fixture
def storage(question_config, mutex_question):
    """MemoryStorage seeded with one question and the question_examine config."""
    store = MemoryStorage()
    store.add_question(mutex_question)
    store.configs[question_config.business_key] = question_config
    return store


@pytest.fixture
def grading_request():
    """A request for user 7 with three input segments."""
    return GradingRequest(
        user_id=7,
        trial_id="trial-0001",
        business_key=BusinessKey.QUESTION_EXAMINE.value,
        input_segments=("What is a mutex?", "A lock", "X"),
    )

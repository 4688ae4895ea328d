"""Tests for the PydanticAI backend adapter."""

from unittest.mock import AsyncMock, patch

import pytest

from examiner.backends.pydantic_ai_adapter import PydanticAIAdapter
from examiner.core.exceptions import BackendError
from examiner.core.models import BusinessConfig


class TestPydanticAIAdapter:
    """Test suite for PydanticAIAdapter."""

    def test_create_agent(self):
        with patch("examiner.backends.pydantic_ai_adapter.Agent") as mock_agent_class:
            adapter = PydanticAIAdapter("openai:gpt-4o-mini")

            adapter.create_agent(system_prompt="You are an examiner")

            call_kwargs = mock_agent_class.call_args[1]
            assert call_kwargs["model"] == "openai:gpt-4o-mini"
            assert call_kwargs["output_type"] is str
            assert call_kwargs["system_prompt"] == "You are an examiner"

    @pytest.mark.parametrize(
        "default,configured,expected",
        [
            ("openai:gpt-4o-mini", "gpt-4o", "openai:gpt-4o"),
            ("openai:gpt-4o-mini", "deepseek:deepseek-chat", "deepseek:deepseek-chat"),
            ("test", "gpt-4o", "gpt-4o"),
        ],
    )
    def test_resolve_model(self, default, configured, expected):
        config = BusinessConfig(business_key="question_examine", model=configured)
        adapter = PydanticAIAdapter(default)

        assert adapter.resolve_model(config) == expected
        assert adapter.resolve_model(None) == default

    @pytest.mark.asyncio
    async def test_invoke_uses_config_model(self, mock_agent, mock_agent_result_factory):
        mock_agent.run = AsyncMock(return_value=mock_agent_result_factory("ok"))
        config = BusinessConfig(business_key="question_examine", model="gpt-4o", max_tokens=256)

        with patch(
            "examiner.backends.pydantic_ai_adapter.Agent", return_value=mock_agent
        ) as mock_agent_class:
            await PydanticAIAdapter("openai:gpt-4o-mini").invoke(["x"], config)

        assert mock_agent_class.call_args[1]["model"] == "openai:gpt-4o"
        assert mock_agent.run.await_args.kwargs["model_settings"] == {"max_tokens": 256}

    def test_name_defaults_to_model(self):
        assert PydanticAIAdapter("deepseek:deepseek-chat").name == "deepseek:deepseek-chat"
        assert PydanticAIAdapter("openai:gpt-4o", name="primary").name == "primary"

    @pytest.mark.asyncio
    async def test_invoke(self, mock_agent, mock_agent_result_factory):
        mock_agent.run = AsyncMock(
            return_value=mock_agent_result_factory("#### 最终评分\n 3分\n...", total_tokens=77)
        )
        config = BusinessConfig(
            business_key="question_examine",
            model="gpt-4o-mini",
            temperature=0.2,
            system_prompt="Grade strictly.",
        )

        with patch(
            "examiner.backends.pydantic_ai_adapter.Agent", return_value=mock_agent
        ) as mock_agent_class:
            adapter = PydanticAIAdapter("openai:gpt-4o-mini")
            result = await adapter.invoke(["Question", "Answer"], config)

        assert result.tokens == 77
        assert result.text.startswith("#### 最终评分")
        assert mock_agent_class.call_args[1]["system_prompt"] == "Grade strictly."
        assert mock_agent_class.call_args[1]["model"] == "openai:gpt-4o-mini"
        args, kwargs = mock_agent.run.await_args
        assert args[0] == "Question\n\nAnswer"
        assert kwargs["model_settings"] == {"temperature": 0.2}

    @pytest.mark.asyncio
    async def test_invoke_without_config(self, mock_agent, mock_agent_result_factory):
        mock_agent.run = AsyncMock(return_value=mock_agent_result_factory("ok"))

        with patch("examiner.backends.pydantic_ai_adapter.Agent", return_value=mock_agent):
            result = await PydanticAIAdapter("openai:gpt-4o-mini").invoke(["x"])

        assert result.text == "ok"
        assert mock_agent.run.await_args.kwargs["model_settings"] is None

    @pytest.mark.asyncio
    async def test_invoke_failure_wrapped(self, mock_agent):
        mock_agent.run = AsyncMock(side_effect=RuntimeError("provider exploded"))

        with patch("examiner.backends.pydantic_ai_adapter.Agent", return_value=mock_agent):
            with pytest.raises(BackendError, match="Agent run failed") as exc_info:
                await PydanticAIAdapter("openai:gpt-4o-mini", name="p").invoke(["x"])

        assert exc_info.value.details["backend"] == "p"
        assert isinstance(exc_info.value.__cause__, RuntimeError)

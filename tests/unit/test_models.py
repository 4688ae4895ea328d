"""Unit tests for models.py and types.py."""

import pytest
from pydantic import ValidationError

from examiner.core.models import BusinessConfig, GradingRequest, GradingResponse, TrialRecord
from examiner.core.types import BusinessKey, GradeOutcome, Provider, normalize_business_key


class TestGradingResponse:
    def test_cost_is_derived(self):
        response = GradingResponse(tokens_consumed=120, unit_price=2, answer_text="x")

        assert response.cost_amount == 240
        assert response.model_dump()["cost_amount"] == 240

    def test_negative_tokens_rejected(self):
        with pytest.raises(ValidationError):
            GradingResponse(tokens_consumed=-1, unit_price=1)


class TestGradingRequest:
    def test_frozen(self, grading_request):
        with pytest.raises(ValidationError):
            grading_request.prompt = "changed"

    def test_model_copy_leaves_original(self, grading_request):
        updated = grading_request.model_copy(update={"prompt": "rendered"})

        assert updated.prompt == "rendered"
        assert grading_request.prompt is None

    def test_segments_coerced_to_tuple(self):
        request = GradingRequest(
            user_id=1, trial_id="t", business_key="question_examine", input_segments=["a", "b"]
        )
        assert request.input_segments == ("a", "b")

    def test_empty_trial_id_rejected(self):
        with pytest.raises(ValidationError):
            GradingRequest(user_id=1, trial_id="", business_key="question_examine")


class TestBusinessConfig:
    @pytest.mark.parametrize(
        "field,value",
        [("temperature", 2.5), ("top_p", 1.5), ("unit_price", -1), ("max_input", -1), ("max_tokens", -1)],
    )
    def test_bounds(self, field, value):
        with pytest.raises(ValidationError):
            BusinessConfig(business_key="question_examine", model="m", **{field: value})

    def test_max_cost(self, question_config):
        assert question_config.max_cost == 200
        assert question_config.model_copy(update={"max_tokens": 0}).max_cost == 0


class TestTrialRecord:
    def test_segments_default_empty(self):
        trial = TrialRecord(
            user_id=1, question_id=2, trial_id="t", business_key="q", outcome=GradeOutcome.BASIC
        )
        assert trial.input_segments == ()


class TestTypes:
    def test_outcomes_are_ordered(self):
        assert GradeOutcome.FAILED < GradeOutcome.BASIC < GradeOutcome.INTERMEDIATE < GradeOutcome.ADVANCED

    def test_normalize_business_key(self):
        assert normalize_business_key(BusinessKey.QUESTION_EXAMINE) == "question_examine"
        assert normalize_business_key("custom") == "custom"

    def test_provider_settings(self):
        assert Provider.ZHIPU.api_key_env == "ZHIPU_API_KEY"
        assert Provider.OPENAI.base_url is None
        assert Provider.DEEPSEEK.base_url.startswith("https://api.deepseek.com")

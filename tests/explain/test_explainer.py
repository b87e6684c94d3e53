"""Tests for LLM-backed decision explanations."""

from unittest.mock import MagicMock

import pytest

from cli.config_models import RetryConfig
from decisions.models import Decision, DecisionExplanation
from engine.models import DecisionResult
from explain import LLMExplainer, is_prescriptive, parse_explanation, template_explanation
from llm import LLMAuthError, LLMProvider, LLMRateLimitError, LLMTimeoutError
from shared_types import ValueAxis

GOOD_RESPONSE = """[SUMMARY]
Option A came out higher because several similar past records were positive.

[EVIDENCE]
The matching records describe earlier job changes.

[VALUES]
Growth separates the options most."""


def _decision():
    alignment = {axis: 0.5 for axis in ValueAxis}
    alignment[ValueAxis.GROWTH] = 0.8
    alignment[ValueAxis.STABILITY] = 0.3
    result = DecisionResult(
        probability_a=0.62,
        probability_b=0.38,
        regret_risk_a=0.2,
        regret_risk_b=0.35,
        evidence_ids=("r1", "r2"),
        value_alignment=alignment,
    )
    return Decision(user_id="u1", title="New job?", option_a="Startup", option_b="Bank", result=result)


def _llm(response=None, side_effect=None):
    llm = MagicMock(spec=LLMProvider)
    llm.provider_name = "mock"
    llm.generate.return_value = response
    llm.generate.side_effect = side_effect
    return llm


class TestIsPrescriptive:
    @pytest.mark.parametrize(
        "text",
        ["You should take the job.", "I recommend option B", "Option A is the better choice", "the BEST OPTION"],
    )
    def test_detects_advice(self, text):
        assert is_prescriptive(text)

    def test_descriptive_text_passes(self):
        assert not is_prescriptive("Option A matched more of your positive records.")


class TestParseExplanation:
    def test_sections(self):
        parsed = parse_explanation(GOOD_RESPONSE)
        assert parsed.summary.startswith("Option A came out higher")
        assert parsed.evidence_summary == "The matching records describe earlier job changes."
        assert parsed.value_summary == "Growth separates the options most."

    def test_missing_sections_fall_back(self):
        parsed = parse_explanation("Just one paragraph of prose.")
        assert parsed.summary == "Just one paragraph of prose."
        assert parsed.evidence_summary
        assert parsed.value_summary

    def test_empty(self):
        assert parse_explanation("") is None
        assert parse_explanation("   ") is None


class TestLLMExplainer:
    def test_prompt_contains_numbers_and_evidence(self):
        explainer = LLMExplainer(_llm(GOOD_RESPONSE))
        prompt = explainer.build_prompt(_decision(), ["I loved the small team", "Burned out at the big firm"])
        assert "New job?" in prompt
        assert "62.0%" in prompt
        assert "38.0%" in prompt
        assert "I loved the small team" in prompt
        assert "Growth/Learning: 0.80 (separates toward A)" in prompt
        assert "Stability/Predictability: 0.30 (separates toward B)" in prompt

    def test_prompt_without_evidence(self):
        prompt = LLMExplainer(_llm(GOOD_RESPONSE)).build_prompt(_decision(), [])
        assert "no past records matched" in prompt

    def test_long_evidence_snippet_truncated(self):
        prompt = LLMExplainer(_llm(GOOD_RESPONSE)).build_prompt(_decision(), ["x" * 300])
        assert "x" * 100 + "..." in prompt
        assert "x" * 101 not in prompt

    def test_explain_sync(self):
        llm = _llm(GOOD_RESPONSE)
        explanation = LLMExplainer(llm, max_tokens=300).explain_sync(_decision(), ["text"])
        assert explanation.value_summary == "Growth separates the options most."
        assert not explanation.is_fallback
        kwargs = llm.generate.call_args.kwargs
        assert kwargs["max_tokens"] == 300
        assert kwargs["temperature"] == 0.2
        assert "NEVER recommend" in kwargs["system"]

    def test_prescriptive_output_replaced(self):
        response = GOOD_RESPONSE.replace("Growth separates", "You should pick A. Growth separates")
        explanation = LLMExplainer(_llm(response)).explain_sync(_decision(), [])
        template = template_explanation(_decision())
        assert explanation.summary == template.summary
        assert explanation.value_summary == template.value_summary
        assert not is_prescriptive(explanation.value_summary)

    def test_llm_error_falls_back_to_template(self):
        llm = _llm(side_effect=LLMAuthError("bad key"))
        explanation = LLMExplainer(llm).explain_sync(_decision(), [])
        assert "2 past records" in explanation.summary
        assert explanation.is_fallback
        assert llm.generate.call_count == 1

    def test_empty_output_falls_back(self):
        explanation = LLMExplainer(_llm("")).explain_sync(_decision(), [])
        assert "calculated from 2 past records" in explanation.summary

    def test_rate_limit_retried(self):
        llm = _llm(side_effect=[LLMRateLimitError("slow down"), GOOD_RESPONSE])
        retry_config = RetryConfig(max_attempts=2, min_wait=0, llm_max_wait=0)
        explanation = LLMExplainer(llm, retry_config=retry_config).explain_sync(_decision(), [])
        assert llm.generate.call_count == 2
        assert explanation.evidence_summary == "The matching records describe earlier job changes."

    def test_timeout_retried(self):
        llm = _llm(side_effect=[LLMTimeoutError("timed out"), GOOD_RESPONSE])
        retry_config = RetryConfig(max_attempts=2, min_wait=0, llm_max_wait=0)
        explanation = LLMExplainer(llm, retry_config=retry_config).explain_sync(_decision(), [])
        assert llm.generate.call_count == 2
        assert explanation.summary.startswith("Option A")

    def test_rate_limit_exhausted_falls_back(self):
        llm = _llm(side_effect=LLMRateLimitError("slow down"))
        retry_config = {"max_attempts": 2, "min_wait": 0, "llm_max_wait": 0}
        explanation = LLMExplainer(llm, retry_config=retry_config).explain_sync(_decision(), [])
        assert llm.generate.call_count == 2
        assert explanation.summary == template_explanation(_decision()).summary

    @pytest.mark.asyncio
    async def test_async_explain(self):
        explanation = await LLMExplainer(_llm(GOOD_RESPONSE)).explain(_decision(), [])
        assert explanation.summary.startswith("Option A")


def test_template_explanation_is_descriptive():
    explanation = template_explanation(_decision())
    assert "62.0%" in explanation.summary
    assert "38.0%" in explanation.summary
    for text in (explanation.summary, explanation.evidence_summary, explanation.value_summary):
        assert not is_prescriptive(text)


def test_fallback_flag_survives_serialization():
    explanation = template_explanation(_decision())
    restored = DecisionExplanation.from_dict(explanation.to_dict())
    assert restored.is_fallback
    assert not DecisionExplanation.from_dict({"summary": "s", "evidence_summary": "e", "value_summary": "v"}).is_fallback

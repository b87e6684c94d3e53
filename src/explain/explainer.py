"""LLM-backed natural-language explanations of finished decisions.

The explainer reads a frozen Decision and the texts of its evidence records.
It returns prose only; numbers on the decision are never read back from the
model's output.
"""

import asyncio
import re
from typing import Any, Optional, Sequence

import structlog

from cli.retry import llm_retry, retry_from_config
from decisions.models import Decision, DecisionExplanation
from llm import LLMError, LLMProvider, LLMRateLimitError, LLMTimeoutError

from .prompts import PromptTemplates

logger = structlog.get_logger()

MAX_EVIDENCE_IN_PROMPT = 5
EVIDENCE_SNIPPET_CHARS = 100
TOP_VALUE_AXES = 3
RETRYABLE = (LLMRateLimitError, LLMTimeoutError)

PRESCRIPTIVE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\byou should\b",
        r"\byou must\b",
        r"\bi recommend\b",
        r"\bi suggest\b",
        r"\bi would (?:choose|pick|go with)\b",
        r"\bbetter (?:option|choice)\b",
        r"\bbest (?:option|choice)\b",
        r"\bthe right choice\b",
    )
]

_SECTION_RE = {
    name: re.compile(rf"\[{name}\]\s*(.+?)(?=\n\s*\[[A-Z]+\]|\Z)", re.DOTALL)
    for name in ("SUMMARY", "EVIDENCE", "VALUES")
}

_llm_retry = llm_retry(max_attempts=3, min_wait=2.0, max_wait=30.0, exceptions=RETRYABLE)


def is_prescriptive(text: str) -> bool:
    return any(p.search(text) for p in PRESCRIPTIVE_PATTERNS)


def _pct(value: float) -> str:
    return f"{value * 100:.1f}"


def template_explanation(decision: Decision) -> DecisionExplanation:
    """Explanation built from the numbers alone."""
    result = decision.result
    count = len(result.evidence_ids)
    return DecisionExplanation(
        summary=(
            f"This result was calculated from {count} past record{'s' if count != 1 else ''}. "
            f"Option A fits your recorded pattern with probability {_pct(result.probability_a)}%, "
            f"option B with {_pct(result.probability_b)}%."
        ),
        evidence_summary="The evidence was selected by similarity to your past records.",
        value_summary="Value alignment describes how strongly each value axis separates the options.",
        is_fallback=True,
    )


class LLMExplainer:
    """Explainer implementation over an LLMProvider.

    Rate-limited and timed-out calls are retried with backoff, from
    `retry_config` when given.
    """

    def __init__(
        self,
        llm: LLMProvider,
        max_tokens: int = 800,
        temperature: Optional[float] = 0.2,
        retry_config: Optional[Any] = None,
    ):
        self.llm = llm
        self.max_tokens = max_tokens
        self.temperature = temperature
        if retry_config is None:
            self._call_llm = _llm_retry(self._generate)
        else:
            self._call_llm = retry_from_config(retry_config, "llm", exceptions=RETRYABLE)(self._generate)

    def _generate(self, prompt: str) -> str:
        logger.debug("explain.llm_call", provider=self.llm.provider_name)
        return self.llm.generate(
            messages=[{"role": "user", "content": prompt}],
            system=PromptTemplates.SYSTEM,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
        )

    def build_prompt(self, decision: Decision, evidence_texts: Sequence[str]) -> str:
        result = decision.result
        ranked = sorted(
            result.value_alignment.items(),
            key=lambda item: (-abs(item[1] - 0.5), item[0].value),
        )[:TOP_VALUE_AXES]
        value_lines = "\n".join(
            f"- {axis.display_name}: {value:.2f} ({_lean(value)})" for axis, value in ranked
        )
        evidence_lines = "\n".join(
            f"  {i}. \"{_snippet(text)}\"" for i, text in enumerate(evidence_texts[:MAX_EVIDENCE_IN_PROMPT], 1)
        ) or "  (no past records matched)"
        return PromptTemplates.DECISION.format(
            title=decision.title,
            option_a=decision.option_a,
            option_b=decision.option_b,
            probability_a=_pct(result.probability_a),
            probability_b=_pct(result.probability_b),
            regret_a=_pct(result.regret_risk_a),
            regret_b=_pct(result.regret_risk_b),
            value_lines=value_lines,
            evidence_lines=evidence_lines,
        )

    def explain_sync(self, decision: Decision, evidence_texts: Sequence[str]) -> DecisionExplanation:
        try:
            response = self._call_llm(self.build_prompt(decision, evidence_texts))
        except LLMError as e:
            logger.warning("explain.llm_failed", decision_id=decision.id, error=str(e))
            return template_explanation(decision)

        parsed = parse_explanation(response)
        if parsed is None or any(
            is_prescriptive(t) for t in (parsed.summary, parsed.evidence_summary, parsed.value_summary)
        ):
            logger.warning("explain.rejected_output", decision_id=decision.id, parsed=parsed is not None)
            return template_explanation(decision)
        return parsed

    async def explain(self, decision: Decision, evidence_texts: Sequence[str]) -> DecisionExplanation:
        return await asyncio.to_thread(self.explain_sync, decision, evidence_texts)


def parse_explanation(response: str) -> Optional[DecisionExplanation]:
    """Pull the three sections out of a model response. None if the text is empty."""
    text = (response or "").strip()
    if not text:
        return None
    sections = {}
    for name, pattern in _SECTION_RE.items():
        match = pattern.search(text)
        sections[name] = match.group(1).strip() if match else None
    return DecisionExplanation(
        summary=sections["SUMMARY"] or text[:200],
        evidence_summary=sections["EVIDENCE"] or "Calculated from similarity to your past records.",
        value_summary=sections["VALUES"] or "No value summary was produced.",
    )


def _snippet(text: str) -> str:
    flat = " ".join(text.split())
    if len(flat) <= EVIDENCE_SNIPPET_CHARS:
        return flat
    return flat[:EVIDENCE_SNIPPET_CHARS] + "..."


def _lean(value: float) -> str:
    if value > 0.5:
        return "separates toward A"
    if value < 0.5:
        return "separates toward B"
    return "does not separate"

"""Natural-language explanations of decisions."""

from .explainer import LLMExplainer, is_prescriptive, parse_explanation, template_explanation
from .prompts import PromptTemplates

__all__ = [
    "LLMExplainer",
    "PromptTemplates",
    "is_prescriptive",
    "parse_explanation",
    "template_explanation",
]

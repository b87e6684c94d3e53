"""Per-axis value alignment between two options.

Alignment is descriptive. 0.5 means the axis does not separate the options;
values toward 0 or 1 mean the axis separates them strongly, leaning toward B
or A respectively. It never says which option is better.
"""

from typing import Mapping, Optional

from shared_types import ValueAxis

from .models import NEUTRAL_ALIGNMENT, AxisSignal
from .vectors import Vector, as_vector, clamp, cosine_similarity

DEFAULT_IMPORTANCE = 0.5
# amplified differences beyond this clamp to 0 or 1
MAX_AMPLIFIED_DIFF = 4.0
CONFIDENCE_SAMPLES = 10
VALENCE_INFLUENCE = 0.5


def axis_embedding_text(axis: ValueAxis) -> str:
    """Text embedded to get an axis's semantic vector."""
    return f"Value axis: {axis.display_name}. {axis.description}"


class ValueAlignmentCalculator:
    def calculate(
        self,
        option_a: Vector,
        option_b: Vector,
        axis_embeddings: Mapping[ValueAxis, Vector],
        importance: Optional[Mapping[ValueAxis, float]] = None,
        signals: Optional[Mapping[ValueAxis, AxisSignal]] = None,
    ) -> dict[ValueAxis, float]:
        """Alignment for all 8 axes; an axis without an embedding stays at 0.5."""
        importance = importance or {}
        signals = signals or {}
        vec_a = as_vector(option_a)
        vec_b = as_vector(option_b)

        result = {}
        for axis in ValueAxis:
            axis_vec = axis_embeddings.get(axis)
            if axis_vec is None:
                result[axis] = NEUTRAL_ALIGNMENT
                continue
            result[axis] = self.axis_alignment(
                cosine_similarity(vec_a, axis_vec) - cosine_similarity(vec_b, axis_vec),
                importance.get(axis, DEFAULT_IMPORTANCE),
                signals.get(axis),
            )
        return result

    @staticmethod
    def axis_alignment(
        base_diff: float,
        explicit_weight: float = DEFAULT_IMPORTANCE,
        signal: Optional[AxisSignal] = None,
    ) -> float:
        if not 0.0 <= explicit_weight <= 1.0:
            raise ValueError(f"importance must be in [0.0, 1.0], got: {explicit_weight}")

        amplified = base_diff * (1.0 + explicit_weight)
        if signal is not None and signal.sample_count > 0:
            confidence = min(signal.sample_count / CONFIDENCE_SAMPLES, 1.0)
            amplified *= 1.0 + signal.avg_valence * VALENCE_INFLUENCE * confidence

        return clamp((amplified / MAX_AMPLIFIED_DIFF + 1.0) / 2.0)

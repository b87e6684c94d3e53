"""Shared enums and types for decision-mirror."""

from enum import StrEnum


class ValueAxis(StrEnum):
    GROWTH = "growth"
    STABILITY = "stability"
    FINANCIAL = "financial"
    AUTONOMY = "autonomy"
    RELATIONSHIP = "relationship"
    ACHIEVEMENT = "achievement"
    HEALTH = "health"
    MEANING = "meaning"

    @property
    def display_name(self) -> str:
        return _AXIS_INFO[self][0]

    @property
    def description(self) -> str:
        return _AXIS_INFO[self][1]

    @classmethod
    def parse(cls, name: str) -> "ValueAxis":
        """Case-insensitive lookup. Raises ValueError for unknown axes."""
        key = (name or "").strip().lower()
        for axis in cls:
            if axis.value == key:
                return axis
        raise ValueError(f"Unknown value axis: {name!r}. Must be one of {[a.value for a in cls]}")


_AXIS_INFO = {
    ValueAxis.GROWTH: (
        "Growth/Learning",
        "The drive to learn, improve, and develop new skills or knowledge",
    ),
    ValueAxis.STABILITY: (
        "Stability/Predictability",
        "The need for security, routine, and predictable outcomes",
    ),
    ValueAxis.FINANCIAL: (
        "Financial/Reward",
        "Concerns about money, compensation, and material rewards",
    ),
    ValueAxis.AUTONOMY: (
        "Autonomy/Control",
        "The desire for independence, self-direction, and control over one's life",
    ),
    ValueAxis.RELATIONSHIP: (
        "Relationship/Belonging",
        "The need for social connection, belonging, and meaningful relationships",
    ),
    ValueAxis.ACHIEVEMENT: (
        "Achievement/Recognition",
        "The drive for accomplishment, status, and recognition from others",
    ),
    ValueAxis.HEALTH: (
        "Health/Energy",
        "Concerns about physical and mental wellbeing, vitality, and energy levels",
    ),
    ValueAxis.MEANING: (
        "Meaning/Contribution",
        "The search for purpose, meaning, and contribution to something larger than oneself",
    ),
}


class FeedbackType(StrEnum):
    SATISFIED = "satisfied"
    NEUTRAL = "neutral"
    REGRET = "regret"

    @property
    def regret_signal(self) -> float:
        """Observed regret outcome used by the parameter learner."""
        return {"satisfied": 0.0, "neutral": 0.3, "regret": 1.0}[self.value]


class DataReliability(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class FavoredOption(StrEnum):
    A = "a"
    B = "b"
    NEUTRAL = "neutral"


class Trend(StrEnum):
    RISING = "rising"
    FALLING = "falling"
    NEUTRAL = "neutral"


class EdgeType(StrEnum):
    SUPPORT = "support"
    CONFLICT = "conflict"

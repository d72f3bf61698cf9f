"""Mastery score policies and the mastery-to-difficulty mapping."""
import math
from enum import Enum
from typing import Optional, Protocol
from app.constants import (
    MIN_DIFFICULTY,
    MAX_DIFFICULTY,
    MASTERY_FLOOR,
    MASTERY_CEILING,
    DEFAULT_MASTERY,
)


class MasteryPolicyName(str, Enum):
    """Available ways of moving mastery after an answer."""
    BINARY = "binary"
    SMOOTHED = "smoothed"


def clamp_score(score: float) -> float:
    """Clamp a mastery score into [0.0, 1.0]."""
    return max(MASTERY_FLOOR, min(MASTERY_CEILING, score))


def target_difficulty(score: Optional[float]) -> int:
    """
    Map a mastery score to the question difficulty to ask next.

    Formula:
    - difficulty = clamp(floor(score * 5) + 1, 1, 5)
    - 0.0 -> 1, 0.5 -> 3, 0.99 -> 5, 1.0 -> 5

    Args:
        score: Current mastery score, or None when the student has no record

    Returns:
        Integer difficulty between 1 and 5
    """
    if score is None:
        score = DEFAULT_MASTERY
    difficulty = math.floor(score * MAX_DIFFICULTY) + 1
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, difficulty))


class MasteryPolicy(Protocol):
    name: MasteryPolicyName

    def update(self, current: Optional[float], is_correct: bool) -> float: ...


class BinaryMasteryPolicy:
    """Mastery reflects only the most recent answer: 1.0 if correct, else 0.0.

    A single answer swings the next difficulty to an extreme.
    """
    name = MasteryPolicyName.BINARY

    def update(self, current: Optional[float], is_correct: bool) -> float:
        return MASTERY_CEILING if is_correct else MASTERY_FLOOR


class SmoothedMasteryPolicy:
    """Exponential moving average towards the latest result.

    new = clamp(old + alpha * (target - old)) where target is 1.0 for a correct
    answer and 0.0 otherwise. A missing record starts from DEFAULT_MASTERY.
    """
    name = MasteryPolicyName.SMOOTHED

    def __init__(self, alpha: float = 0.3):
        if not 0.0 < alpha <= 1.0:
            raise ValueError(f"alpha must be in (0, 1], got {alpha}")
        self.alpha = alpha

    def update(self, current: Optional[float], is_correct: bool) -> float:
        previous = DEFAULT_MASTERY if current is None else current
        target = MASTERY_CEILING if is_correct else MASTERY_FLOOR
        return clamp_score(previous + self.alpha * (target - previous))


def get_mastery_policy(name: str, smoothing: float = 0.3) -> MasteryPolicy:
    """
    Build the mastery policy named in configuration.

    Args:
        name: "binary" or "smoothed" (case-insensitive)
        smoothing: Weight of the newest answer for the smoothed policy

    Returns:
        Policy instance

    Raises:
        ValueError: If the name is unknown
    """
    policy_name = MasteryPolicyName(name.lower())
    if policy_name == MasteryPolicyName.SMOOTHED:
        return SmoothedMasteryPolicy(alpha=smoothing)
    return BinaryMasteryPolicy()

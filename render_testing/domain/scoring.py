"""Scoring functions for render test results.

Pure functions and a small accumulator for blending the compatibility,
accessibility, performance and deliverability signals into one 0-100
score. Missing signals are left out of both numerator and denominator, so
they never drag the blended score toward zero.
"""

import math
from dataclasses import dataclass
from typing import Optional

from render_testing.domain.types import CompatibilityLevel

COMPATIBILITY_WEIGHT = 0.40
ACCESSIBILITY_WEIGHT = 0.25
PERFORMANCE_WEIGHT = 0.20
DELIVERABILITY_WEIGHT = 0.15


def round_half_up(value: float) -> int:
    """Round to the nearest integer with .5 going up (not banker's rounding)."""
    return int(math.floor(value + 0.5))


def compatibility_level_for(score: float) -> CompatibilityLevel:
    """Bucket a 0-100 score: >=90 excellent, >=75 good, >=60 fair, else poor."""
    if score >= 90:
        return CompatibilityLevel.EXCELLENT
    if score >= 75:
        return CompatibilityLevel.GOOD
    if score >= 60:
        return CompatibilityLevel.FAIR
    return CompatibilityLevel.POOR


@dataclass
class ScoreAccumulator:
    """Accumulates (score * weight, weight) pairs for a re-normalized average."""

    weighted_total: float = 0.0
    weight_sum: float = 0.0

    def add(self, score: Optional[float], weight: float) -> "ScoreAccumulator":
        """Contribute a signal. ``None`` means the signal is absent and is skipped."""
        if score is None:
            return self
        if weight <= 0:
            raise ValueError(f"weight must be > 0, got {weight}")
        self.weighted_total += score * weight
        self.weight_sum += weight
        return self

    @property
    def has_signal(self) -> bool:
        return self.weight_sum > 0

    def result(self) -> int:
        """Weighted average rounded half-up, 0 when no signal was contributed."""
        if not self.has_signal:
            return 0
        return round_half_up(self.weighted_total / self.weight_sum)


def blend_scores(
    compatibility: Optional[float] = None,
    accessibility: Optional[float] = None,
    performance: Optional[float] = None,
    deliverability: Optional[float] = None,
) -> int:
    """Blend whichever of the four signals are present into a 0-100 score.

    Args:
        compatibility: Average per-client compatibility score (weight 0.40)
        accessibility: Accessibility analyzer score (weight 0.25)
        performance: Performance optimization score (weight 0.20)
        deliverability: Spam/deliverability score (weight 0.15)

    Returns:
        Integer score in [0, 100]
    """
    acc = ScoreAccumulator()
    acc.add(compatibility, COMPATIBILITY_WEIGHT)
    acc.add(accessibility, ACCESSIBILITY_WEIGHT)
    acc.add(performance, PERFORMANCE_WEIGHT)
    acc.add(deliverability, DELIVERABILITY_WEIGHT)
    return acc.result()

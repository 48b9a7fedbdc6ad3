"""Tests for score blending and compatibility levels."""

import pytest

from render_testing.domain.scoring import (
    ScoreAccumulator,
    blend_scores,
    compatibility_level_for,
    round_half_up,
)
from render_testing.domain.types import CompatibilityLevel


@pytest.mark.parametrize(
    "value,expected",
    [(0.5, 1), (1.5, 2), (2.5, 3), (12.5, 13), (87.49, 87), (99.99, 100)],
)
def test_round_half_up(value, expected):
    assert round_half_up(value) == expected


@pytest.mark.parametrize(
    "score,level",
    [
        (95, CompatibilityLevel.EXCELLENT),
        (90, CompatibilityLevel.EXCELLENT),
        (89, CompatibilityLevel.GOOD),
        (74.9, CompatibilityLevel.FAIR),
        (0, CompatibilityLevel.POOR),
    ],
)
def test_compatibility_level_for(score, level):
    assert compatibility_level_for(score) == level


class TestBlendScores:
    def test_no_signal_is_zero(self):
        assert blend_scores() == 0

    def test_single_signal_is_returned_as_is(self):
        assert blend_scores(performance=64) == 64
        assert blend_scores(deliverability=12) == 12

    def test_missing_signals_renormalize(self):
        # (80 x 0.40 + 60 x 0.25) / 0.65 = 72.3
        assert blend_scores(compatibility=80, accessibility=60) == 72

    def test_all_signals(self):
        assert blend_scores(100, 100, 100, 100) == 100
        assert blend_scores(80, 100, 50, 40) == 73

    def test_zero_score_is_still_a_signal(self):
        assert blend_scores(compatibility=0, accessibility=100) == 38


class TestScoreAccumulator:
    def test_skips_none(self):
        acc = ScoreAccumulator().add(None, 0.4)
        assert not acc.has_signal
        assert acc.result() == 0

    def test_rejects_non_positive_weight(self):
        with pytest.raises(ValueError, match="weight"):
            ScoreAccumulator().add(50, 0)

    def test_chaining(self):
        acc = ScoreAccumulator().add(90, 1).add(70, 1)
        assert acc.result() == 80

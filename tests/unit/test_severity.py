"""Unit tests for metro_pipeline.regression.severity."""
from __future__ import annotations

import math

import pytest

from metro_pipeline.regression import RegressionSeverity, calculate_severity


class TestCalculateSeverity:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (0.0, RegressionSeverity.MINOR),
            (20.0, RegressionSeverity.MINOR),
            (20.5, RegressionSeverity.MAJOR),
            (50.0, RegressionSeverity.MAJOR),
            (50.1, RegressionSeverity.CRITICAL),
            (-10.0, RegressionSeverity.MINOR),
        ],
    )
    def test_bundle_size_bands(self, value: float, expected: RegressionSeverity) -> None:
        assert calculate_severity(value, 50, 20) is expected

    def test_threshold_order_does_not_matter(self) -> None:
        for value in (-1.0, 0.0, 30.0, 60.0, 75.0, 120.0, 1e9):
            assert calculate_severity(value, 100, 50) is calculate_severity(value, 50, 100)

    def test_nan_value_is_minor(self) -> None:
        assert calculate_severity(math.nan, 50, 20) is RegressionSeverity.MINOR

    def test_infinities(self) -> None:
        assert calculate_severity(math.inf, 50, 20) is RegressionSeverity.CRITICAL
        assert calculate_severity(-math.inf, 50, 20) is RegressionSeverity.MINOR

    def test_nan_threshold_never_raises(self) -> None:
        # the remaining threshold acts as both bands
        assert calculate_severity(30.0, math.nan, 20) is RegressionSeverity.CRITICAL
        assert calculate_severity(10.0, math.nan, 20) is RegressionSeverity.MINOR
        assert calculate_severity(30.0, math.nan, math.nan) is RegressionSeverity.MINOR

    def test_equal_thresholds(self) -> None:
        assert calculate_severity(10.0, 10, 10) is RegressionSeverity.MINOR
        assert calculate_severity(10.1, 10, 10) is RegressionSeverity.CRITICAL

    def test_monotonic_in_value(self) -> None:
        values = [-5.0, 0.0, 10.0, 19.9, 20.0, 20.1, 49.0, 50.0, 51.0, 500.0]
        ranks = [calculate_severity(v, 20, 50).rank for v in values]
        assert ranks == sorted(ranks)


class TestRegressionSeverity:
    def test_ranks_are_ordinal(self) -> None:
        assert RegressionSeverity.MINOR.rank < RegressionSeverity.MAJOR.rank
        assert RegressionSeverity.MAJOR.rank < RegressionSeverity.CRITICAL.rank

    def test_values(self) -> None:
        assert [s.value for s in RegressionSeverity] == ["minor", "major", "critical"]

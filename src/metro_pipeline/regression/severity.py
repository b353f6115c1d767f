"""Severity classification for performance deviations.

``calculate_severity`` maps a numeric deviation (typically a percentage
increase over a baseline) onto ``RegressionSeverity``.  It is total over
every float, including NaN and the infinities, and never raises.
"""
from __future__ import annotations

from enum import Enum


class RegressionSeverity(Enum):
    """Ordinal severity of a performance regression."""

    MINOR = "minor"
    MAJOR = "major"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        """Return the ordinal rank (``MINOR`` is 0, ``CRITICAL`` is 2)."""
        return _RANKS[self]


_RANKS: dict[RegressionSeverity, int] = {
    RegressionSeverity.MINOR: 0,
    RegressionSeverity.MAJOR: 1,
    RegressionSeverity.CRITICAL: 2,
}


def _ordered(threshold_a: float, threshold_b: float) -> tuple[float, float]:
    """Return ``(smaller, larger)`` ignoring NaN thresholds."""
    # NaN is the only value unequal to itself
    a_nan = threshold_a != threshold_a
    b_nan = threshold_b != threshold_b
    if a_nan and b_nan:
        return threshold_a, threshold_b
    if a_nan:
        return threshold_b, threshold_b
    if b_nan:
        return threshold_a, threshold_a
    if threshold_a <= threshold_b:
        return threshold_a, threshold_b
    return threshold_b, threshold_a


def calculate_severity(
    value: float, threshold_a: float, threshold_b: float
) -> RegressionSeverity:
    """Classify *value* against two thresholds.

    The larger threshold is the critical one and the smaller is the
    major one, whatever order they are passed in.

    Parameters
    ----------
    value:
        The deviation to classify.
    threshold_a, threshold_b:
        The two thresholds, in any order.

    Returns
    -------
    RegressionSeverity
        ``CRITICAL`` if ``value`` exceeds the larger threshold, ``MAJOR``
        if it exceeds the smaller one, ``MINOR`` otherwise.  NaN values
        compare false everywhere and therefore yield ``MINOR``.
    """
    major, critical = _ordered(threshold_a, threshold_b)
    if value > critical:
        return RegressionSeverity.CRITICAL
    if value > major:
        return RegressionSeverity.MAJOR
    return RegressionSeverity.MINOR

"""Bayesian shrinkage rating built on an ``Accumulator``.

An item's observed mean rating ``R`` is pulled toward a prior ``C`` with

    score = w * R + (1 - w) * C,    w = v / (v + m)

where ``v`` is the number of ratings and ``m`` a fixed threshold constant.
With many ratings ``w`` approaches 1 and the score follows the item's own
mean; with few ratings the prior dominates.  This is the posterior mean of
the item's rating when individual ratings are assumed normally distributed
around it.  Ratings are discrete and can be polarized, so treat the score as
a ranking heuristic rather than a calibrated estimate.

The prior ``C`` is the midpoint of the rating scale.
"""

from __future__ import annotations

import math

from statcounter.stats.accumulator import Accumulator


def check_bounds(lower_bound: float, upper_bound: float) -> None:
    """Raise ValueError unless ``[lower_bound, upper_bound]`` is a finite, ordered scale."""
    if not (math.isfinite(lower_bound) and math.isfinite(upper_bound)):
        raise ValueError("Rating bounds must be finite")
    if lower_bound > upper_bound:
        raise ValueError("lower_bound cannot exceed upper_bound")


def _format(value: float) -> str:
    if math.isnan(value):
        return "NaN"
    return f"{value:.2f}"


class RatingScore:
    """Ranks items by a count-weighted blend of their mean and a prior.

    Parameters
    ----------
    lower_bound : float
        Lowest value on the rating scale.
    upper_bound : float
        Highest value on the rating scale.
    """

    SHRINKAGE_WEIGHT = 1.0

    __slots__ = ("global_mean", "_counter", "_cached_n", "_cached_score")

    def __init__(self, lower_bound: float, upper_bound: float) -> None:
        check_bounds(lower_bound, upper_bound)
        self.global_mean = lower_bound + (upper_bound - lower_bound) / 2.0
        self._counter = Accumulator()
        self._cached_n: int | None = None
        self._cached_score = math.nan

    # ------------------------------------------------------------------
    # Feeding observations
    # ------------------------------------------------------------------

    def increment(self, value: float) -> None:
        self._counter.increment(value)

    def merge(self, other: Accumulator | RatingScore | None) -> None:
        """Fold in a peer accumulator, or another rating's observations."""
        if isinstance(other, RatingScore):
            other = other._counter
        self._counter.merge(other)

    def merge_bytes(self, data: bytes) -> None:
        self._counter.merge_bytes(data)

    def from_bytes(self, data: bytes) -> None:
        """Replace the observations with a decoded accumulator."""
        self._counter.from_bytes(data)
        # a decode can change the mean without changing the count
        self._cached_n = None

    @property
    def counter(self) -> Accumulator:
        """A copy of the underlying accumulator."""
        return self._counter.copy()

    # ------------------------------------------------------------------
    # Scores
    # ------------------------------------------------------------------

    def count(self) -> int:
        return self._counter.count()

    def mean_rating(self) -> float:
        """Observed mean, or the prior when nothing has been rated yet."""
        mean = self._counter.mean()
        if math.isnan(mean):
            return self.global_mean
        return mean

    def bayesian_score(self) -> float:
        n = self._counter.count()
        if self._cached_n == n:
            return self._cached_score

        v = float(n)
        w = v / (v + self.SHRINKAGE_WEIGHT)
        self._cached_score = (w * self.mean_rating()) + ((1 - w) * self.global_mean)
        self._cached_n = n
        return self._cached_score

    # ------------------------------------------------------------------
    # Ordering: higher scores sort first
    # ------------------------------------------------------------------

    def compare(self, other: RatingScore) -> int:
        """-1 if this rating ranks ahead of ``other``, 1 if behind, 0 on a tie."""
        diff = self.bayesian_score() - other.bayesian_score()
        if diff > 0:
            return -1
        if diff < 0:
            return 1
        return 0

    def __lt__(self, other: RatingScore) -> bool:
        if not isinstance(other, RatingScore):
            return NotImplemented
        return self.compare(other) < 0

    def __le__(self, other: RatingScore) -> bool:
        if not isinstance(other, RatingScore):
            return NotImplemented
        return self.compare(other) <= 0

    def __gt__(self, other: RatingScore) -> bool:
        if not isinstance(other, RatingScore):
            return NotImplemented
        return self.compare(other) > 0

    def __ge__(self, other: RatingScore) -> bool:
        if not isinstance(other, RatingScore):
            return NotImplemented
        return self.compare(other) >= 0

    # ------------------------------------------------------------------
    # Repr
    # ------------------------------------------------------------------

    def __str__(self) -> str:
        return (
            f"Rating: {_format(self.mean_rating())} ({self.count()}), "
            f"SortedBy {_format(self.bayesian_score())}"
        )

    def __repr__(self) -> str:
        return (
            f"RatingScore(global_mean={self.global_mean:.3f}, n={self.count()}, "
            f"score={self.bayesian_score():.3f})"
        )

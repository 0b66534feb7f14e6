"""Building and reducing accumulators across shards.

These helpers play the part of the aggregation driver: split raw values into
shards, build one accumulator per shard, then combine the partial results
either as a sequential fold or as a pairwise tree.  Both give the same
statistics within floating-point tolerance because the merge is associative
and commutative.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from statcounter.stats.accumulator import Accumulator
from statcounter.stats.rating import RatingScore


def from_values(values: Iterable[float]) -> Accumulator:
    """Fold values one at a time into a new accumulator."""
    acc = Accumulator()
    for value in values:
        acc.increment(value)
    return acc


def from_array(values: Sequence[float] | np.ndarray) -> Accumulator:
    """Build an accumulator from a whole shard in one vectorized pass.

    Computes the same fields as repeated ``increment`` calls, with the second
    moment taken around the shard mean: ``M2 = sum((x - mean)^2)``.

    Parameters
    ----------
    values : array-like
        1-D sequence of observations.  Empty input gives an empty accumulator.

    Returns
    -------
    Accumulator
    """
    arr = np.asarray(values, dtype=np.float64).reshape(-1)
    if arr.size == 0:
        return Accumulator()

    total = float(np.sum(arr))
    mean = total / arr.size
    m2 = float(np.sum((arr - mean) ** 2))
    return Accumulator.from_fields(
        int(arr.size), m2, total, float(np.min(arr)), float(np.max(arr))
    )


def shard(values: Sequence[float] | np.ndarray, n_shards: int) -> list[Accumulator]:
    """Split values into ``n_shards`` contiguous chunks, one accumulator each.

    Chunks follow ``numpy.array_split``, so sizes differ by at most one and
    asking for more shards than values yields some empty accumulators.
    """
    if n_shards < 1:
        raise ValueError("n_shards must be at least 1")
    arr = np.asarray(values, dtype=np.float64).reshape(-1)
    return [from_array(chunk) for chunk in np.array_split(arr, n_shards)]


def fold(accumulators: Iterable[Accumulator]) -> Accumulator:
    """Merge accumulators left to right into a fresh one."""
    result = Accumulator()
    for acc in accumulators:
        result.merge(acc)
    return result


def tree_reduce(accumulators: Sequence[Accumulator]) -> Accumulator:
    """Merge accumulators pairwise, level by level, into a fresh one.

    The inputs are copied before merging and are left unchanged.
    """
    level = [acc.copy() for acc in accumulators]
    if not level:
        return Accumulator()

    while len(level) > 1:
        merged: list[Accumulator] = []
        for i in range(0, len(level) - 1, 2):
            left = level[i]
            left.merge(level[i + 1])
            merged.append(left)
        if len(level) % 2:
            merged.append(level[-1])
        level = merged
    return level[0]


def merge_encoded(payloads: Iterable[bytes]) -> Accumulator:
    """Decode and fold a sequence of 40-byte accumulator payloads.

    Raises
    ------
    MalformedEncoding
        On the first payload that is not exactly 40 bytes.
    """
    result = Accumulator()
    for payload in payloads:
        result.merge_bytes(payload)
    return result


def rank(ratings: Iterable[RatingScore]) -> list[RatingScore]:
    """Return the ratings ordered from highest to lowest Bayesian score."""
    return sorted(ratings)

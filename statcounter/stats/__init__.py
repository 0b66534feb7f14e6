"""StatCounter statistics core.

Public API:
- Accumulator: Mergeable count/sum/mean/variance/min/max with a 40-byte encoding
- MalformedEncoding: Raised when decoding a payload of the wrong length
- CountOverflow: Raised when a merge would overflow the 64-bit count
- RatingScore: Bayesian shrinkage score over an Accumulator, ranks highest first
- from_values / from_array / shard: Build accumulators from raw observations
- fold / tree_reduce / merge_encoded: Combine partial accumulators
- rank: Order RatingScores from best to worst
"""

from statcounter.stats.accumulator import (
    COUNTER_BYTES_SIZE,
    MAX_COUNT,
    Accumulator,
    CountOverflow,
    MalformedEncoding,
)
from statcounter.stats.rating import RatingScore, check_bounds
from statcounter.stats.reduce import (
    fold,
    from_array,
    from_values,
    merge_encoded,
    rank,
    shard,
    tree_reduce,
)

__all__ = [
    "COUNTER_BYTES_SIZE",
    "MAX_COUNT",
    "Accumulator",
    "CountOverflow",
    "MalformedEncoding",
    "RatingScore",
    "check_bounds",
    "fold",
    "from_array",
    "from_values",
    "merge_encoded",
    "rank",
    "shard",
    "tree_reduce",
]

"""Mergeable fixed-size summary statistics for distributed aggregation.

An ``Accumulator`` keeps count, sum, second moment, min and max of a stream
of observations.  Two accumulators built over disjoint data combine into the
accumulator of their union without revisiting the data, using the parallel
variance update of Chan, Golub and LeVeque:

    delta = mean_b - mean_a
    M2    = M2_a + M2_b + delta^2 * n_a * n_b / (n_a + n_b)

Merging is associative and commutative, so shards can be reduced in any
order or tree shape.  The state serializes into exactly 40 bytes, which is
the payload shuffled between pipeline stages and stored by the counter store.

Undefined statistics (everything but the count of an empty accumulator) are
reported as NaN.  Callers check ``count()`` before trusting ``mean()``.
"""

from __future__ import annotations

import json
import math
import struct
from typing import Any, BinaryIO

# count, m2, sum, min, max; big-endian regardless of host byte order
_LAYOUT = struct.Struct(">Qdddd")

COUNTER_BYTES_SIZE = _LAYOUT.size  # 40

MAX_COUNT = 2**64 - 1

_NAN = float("nan")


class MalformedEncoding(ValueError):
    """Raised when a payload is not a valid 40-byte accumulator encoding."""

    def __init__(self, length: int) -> None:
        super().__init__(
            f"Accumulator encoding must be exactly {COUNTER_BYTES_SIZE} bytes, got {length}"
        )
        self.length = length


class CountOverflow(ValueError):
    """Raised when a merge would push the count past the unsigned 64-bit range."""

    def __init__(self, count: int) -> None:
        super().__init__(f"Accumulator count {count} exceeds {MAX_COUNT}")
        self.count = count


class Accumulator:
    """Count, sum, second moment, min and max of a stream of values.

    Parameters
    ----------
    data : bytes | None
        Optional 40-byte encoding to start from (see ``to_bytes``).
        Without it the accumulator starts empty.

    Raises
    ------
    MalformedEncoding
        If ``data`` is given and is not exactly 40 bytes long.
    """

    __slots__ = ("_n", "_m2", "_sum", "_min", "_max", "_variance")

    def __init__(self, data: bytes | None = None) -> None:
        self.wipe()
        if data is not None:
            self.from_bytes(data)

    @classmethod
    def from_fields(cls, count: int, m2: float, total: float, low: float, high: float) -> Accumulator:
        """Build an accumulator from precomputed statistics of a shard.

        The caller is responsible for consistent fields (``m2`` taken around
        the shard mean, ``low <= high``).  A zero ``count`` gives an empty
        accumulator whatever the other fields hold.
        """
        if count < 0:
            raise ValueError("count must be non-negative")
        acc = cls()
        acc._combine(count, m2, total, low, high)
        return acc

    def wipe(self) -> None:
        """Reset to the empty state."""
        self._n = 0
        self._m2 = _NAN
        self._sum = _NAN
        self._min = _NAN
        self._max = _NAN
        self._variance: float | None = None

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def increment(self, value: float) -> None:
        """Fold a single observation in."""
        value = float(value)
        self._combine(1, 0.0, value, value, value)

    def merge(self, other: Accumulator | None) -> None:
        """Fold the statistics of ``other`` into this accumulator.

        ``other`` is only read.  Merging ``None`` or an empty accumulator is
        a no-op; merging into an empty accumulator makes this a copy of
        ``other``.  Raises ``CountOverflow``, leaving this accumulator
        unchanged, if the combined count would not fit in 64 bits.
        """
        if other is None:
            return
        self._combine(other._n, other._m2, other._sum, other._min, other._max)

    def merge_bytes(self, data: bytes) -> None:
        """Decode a peer accumulator from its 40-byte form and merge it."""
        self._combine(*_unpack(data))

    def _combine(self, c_n: int, c_m2: float, c_sum: float, c_min: float, c_max: float) -> None:
        if c_n == 0:
            return
        if self._n + c_n > MAX_COUNT:
            raise CountOverflow(self._n + c_n)

        self._variance = None

        if self._n == 0:
            self._n = c_n
            self._m2 = c_m2
            self._sum = c_sum
            self._min = c_min
            self._max = c_max
            return

        self._min = min(self._min, c_min)
        self._max = max(self._max, c_max)

        old_n = self._n
        mean_diff = (c_sum / c_n) - (self._sum / old_n)

        self._sum += c_sum
        self._n += c_n

        self._m2 = self._m2 + c_m2 + mean_diff * mean_diff * old_n * c_n / self._n

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    def count(self) -> int:
        """Number of observations folded in."""
        return self._n

    def sum(self) -> float:
        """Total of all observations."""
        return self._sum

    def m2(self) -> float:
        """Sum of squared deviations from the mean."""
        return self._m2

    def mean(self) -> float:
        """Arithmetic mean; NaN when empty."""
        if self._n == 0:
            return _NAN
        return self._sum / self._n

    def variance(self) -> float:
        """Sample (Bessel-corrected) variance; 0.0 for one observation."""
        if self._variance is None:
            if self._n == 0:
                self._variance = _NAN
            elif self._n == 1:
                self._variance = 0.0
            else:
                self._variance = self._m2 / (self._n - 1)
        return self._variance

    def stddev(self) -> float:
        """Square root of ``variance()``."""
        variance = self.variance()
        # drifted negative variances yield NaN like any other undefined value
        if math.isnan(variance) or variance < 0:
            return _NAN
        return math.sqrt(variance)

    def min(self) -> float:
        """Smallest observation seen."""
        return self._min

    def max(self) -> float:
        """Largest observation seen."""
        return self._max

    # ------------------------------------------------------------------
    # Encoding
    # ------------------------------------------------------------------

    def to_bytes(self) -> bytes:
        """Encode as 40 bytes: count (u64), m2, sum, min, max (f64), big-endian."""
        return _LAYOUT.pack(self._n, self._m2, self._sum, self._min, self._max)

    def from_bytes(self, data: bytes) -> None:
        """Replace the current state with a decoded 40-byte encoding.

        The length is validated before anything changes, so a failed decode
        leaves the accumulator untouched.
        """
        fields = _unpack(data)
        self.wipe()
        self._combine(*fields)

    def write(self, stream: BinaryIO) -> None:
        """Write the 40-byte encoding to a binary stream."""
        stream.write(self.to_bytes())

    def read_fields(self, stream: BinaryIO) -> None:
        """Read exactly 40 bytes from a binary stream and decode them."""
        self.from_bytes(stream.read(COUNTER_BYTES_SIZE))

    def copy(self) -> Accumulator:
        return Accumulator.from_fields(self._n, self._m2, self._sum, self._min, self._max)

    # ------------------------------------------------------------------
    # Comparison / repr
    # ------------------------------------------------------------------

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Accumulator):
            return NotImplemented
        return self.to_bytes() == other.to_bytes()

    __hash__ = None  # type: ignore[assignment]

    def to_dict(self) -> dict[str, Any]:
        return {
            "n": self._n,
            "m2": self._m2,
            "sum": self._sum,
            "min": self._min,
            "max": self._max,
        }

    def __str__(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    def __repr__(self) -> str:
        return (
            f"Accumulator(n={self._n}, m2={self._m2!r}, sum={self._sum!r}, "
            f"min={self._min!r}, max={self._max!r})"
        )


def _unpack(data: bytes) -> tuple[int, float, float, float, float]:
    if len(data) != COUNTER_BYTES_SIZE:
        raise MalformedEncoding(len(data))
    return _LAYOUT.unpack(data)

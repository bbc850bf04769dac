"""Low-cardinality bucketing for raw measurements.

Every bucket is closed on its low end and open on its high end; the top
bucket is unbounded above. Inputs outside a function's natural range
(negative values, NaN, booleans) raise ``ValueError``.
"""

from __future__ import annotations

import math
from bisect import bisect_right
from typing import Sequence


class Bucketer:
    """Map a non-negative number to one label of a fixed label set.

    Args:
        lower_bounds: Inclusive lower bound of each bucket, ascending,
            starting at 0
        labels: One label per bucket

    Example:
        >>> retries = Bucketer((0, 1, 2), ("0", "1", "2+"))
        >>> retries(5)
        '2+'
    """

    def __init__(self, lower_bounds: Sequence[float], labels: Sequence[str]):
        if len(lower_bounds) != len(labels):
            raise ValueError("lower_bounds and labels must have the same length")
        if not lower_bounds or lower_bounds[0] != 0:
            raise ValueError("the first bucket must start at 0")
        if any(a >= b for a, b in zip(lower_bounds, lower_bounds[1:])):
            raise ValueError("lower_bounds must be strictly ascending")
        self._lower_bounds = tuple(lower_bounds)
        self.labels: tuple[str, ...] = tuple(labels)

    def __call__(self, value: float) -> str:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"bucketing requires a number, got {value!r}")
        if math.isnan(value) or value < 0:
            raise ValueError(f"bucketing requires a non-negative number, got {value}")
        return self.labels[bisect_right(self._lower_bounds, value) - 1]


_result_count = Bucketer((0, 1, 11, 51), ("0", "1-10", "11-50", "50+"))
_item_count = Bucketer((0, 1, 2, 4, 11), ("0", "1", "2-3", "4-10", "10+"))
_value = Bucketer((0, 25, 100, 250), ("$0-25", "$25-100", "$100-250", "$250+"))
_retry_count = Bucketer((0, 1, 2), ("0", "1", "2+"))
_payload_size = Bucketer((0, 10_240, 102_400), ("0-10KB", "10-100KB", "100KB+"))

RESULT_COUNT_BUCKETS = _result_count.labels
ITEM_COUNT_BUCKETS = _item_count.labels
VALUE_BUCKETS = _value.labels
RETRY_COUNT_BUCKETS = _retry_count.labels
PAYLOAD_SIZE_BUCKETS = _payload_size.labels


def result_count_bucket(count: int) -> str:
    """Bucket a search or listing result count."""
    return _result_count(count)


def item_count_bucket(count: int) -> str:
    """Bucket a cart item count."""
    return _item_count(count)


def value_bucket(amount: float) -> str:
    """Bucket a monetary amount in USD."""
    return _value(amount)


def retry_count_bucket(retries: int) -> str:
    """Bucket a retry count."""
    return _retry_count(retries)


def payload_size_bucket(size_in_bytes: int) -> str:
    """Bucket a payload size in bytes."""
    return _payload_size(size_in_bytes)

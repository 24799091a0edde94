"""OHLC aggregation of fee history into fixed-width time buckets.

Pure functions -- no I/O, no state. Safe to call concurrently.
"""

from collections.abc import Iterable

from gas_tracker.models import FeeSample, OHLCBucket


def bucket_start(timestamp_ms: int, bucket_width_ms: int) -> int:
    """Return the start of the bucket containing timestamp_ms."""
    return (timestamp_ms // bucket_width_ms) * bucket_width_ms


def aggregate(
    samples: Iterable[FeeSample],
    bucket_width_ms: int,
    sort_by_timestamp: bool = False,
) -> list[OHLCBucket]:
    """Bucket samples into OHLC candles over total_fee.

    Open and close are the first and last samples of each bucket in input
    order. Arrival order can disagree with timestamp order when events are
    reordered in transit; pass sort_by_timestamp=True to stably sort by
    timestamp before bucketing instead.

    Empty buckets are omitted, so consecutive candles may have gaps.

    Args:
        samples: Fee samples, normally a RetentionRing snapshot.
        bucket_width_ms: Bucket width in milliseconds.
        sort_by_timestamp: Sort by timestamp before assigning open/close.

    Returns:
        Candles sorted ascending by bucket_start_ms, one per non-empty bucket.

    Raises:
        ValueError: If bucket_width_ms is not positive.
    """
    if bucket_width_ms <= 0:
        raise ValueError(f"bucket_width_ms must be positive, got {bucket_width_ms}")

    ordered = list(samples)
    if sort_by_timestamp:
        ordered.sort(key=lambda s: s.timestamp_ms)

    # start -> [open, high, low, close]
    buckets: dict[int, list[int]] = {}
    for sample in ordered:
        start = bucket_start(sample.timestamp_ms, bucket_width_ms)
        fee = sample.total_fee
        candle = buckets.get(start)
        if candle is None:
            buckets[start] = [fee, fee, fee, fee]
            continue
        if fee > candle[1]:
            candle[1] = fee
        if fee < candle[2]:
            candle[2] = fee
        candle[3] = fee

    return [
        OHLCBucket(bucket_start_ms=start, open=o, high=h, low=lo, close=c)
        for start, (o, h, lo, c) in sorted(buckets.items())
    ]

"""Largest-Triangle-Three-Buckets downsampling.

Reduces a time-ordered point series to a target count while keeping its
visual shape. The first and last points are always kept. Each interior
bucket contributes the point that forms the largest triangle with the
previously selected point and the average of the next bucket, so peaks and
valleys survive where fixed-stride sampling would drop them.

Example:
    >>> history = store.get_speed_history(since)
    >>> chart_points = downsample(history, 300)
"""

from __future__ import annotations

import math
from datetime import datetime
from typing import Any, Callable, List, Sequence, TypeVar

T = TypeVar("T")

KeyFunc = Callable[[Any], float]


def _as_number(value: Any) -> float:
    if isinstance(value, datetime):
        return value.timestamp()
    return float(value)


def snapshot_x(point: Any) -> float:
    """X value of a speed snapshot: its timestamp in epoch seconds."""
    return _as_number(point.timestamp)


def snapshot_y(point: Any) -> float:
    """Y value of a speed snapshot: combined throughput."""
    return point.download_bps + point.upload_bps


def downsample(
    points: Sequence[T],
    target: int,
    x: KeyFunc = snapshot_x,
    y: KeyFunc = snapshot_y,
) -> List[T]:
    """Downsample ``points`` to at most ``target`` points with LTTB.

    Args:
        points: Points sorted by x ascending.
        target: Maximum number of points to return.
        x: Returns the x coordinate of a point.
        y: Returns the y coordinate of a point.

    Returns:
        A new list holding a subset of ``points`` in their original order.
        When ``len(points) <= target`` the points are returned as they are.
        Targets below 3 keep the endpoints only: ``[first, last]`` for 2,
        ``[first]`` for 1 and nothing for 0 or less.
    """
    count = len(points)
    if count <= target:
        return list(points)
    if target <= 0:
        return []
    if target == 1:
        return [points[0]]
    if target == 2:
        return [points[0], points[-1]]

    xs = [x(p) for p in points]
    ys = [y(p) for p in points]

    sampled = [points[0]]
    bucket_size = (count - 2) / (target - 2)
    a = 0

    for i in range(target - 2):
        # Average of the next bucket
        avg_start = int(math.floor((i + 1) * bucket_size)) + 1
        avg_end = min(int(math.floor((i + 2) * bucket_size)) + 1, count)
        avg_len = avg_end - avg_start
        avg_x = sum(xs[avg_start:avg_end]) / avg_len
        avg_y = sum(ys[avg_start:avg_end]) / avg_len

        range_start = int(math.floor(i * bucket_size)) + 1
        range_end = int(math.floor((i + 1) * bucket_size)) + 1

        ax, ay = xs[a], ys[a]
        max_area = -1.0
        chosen = range_start
        for j in range(range_start, range_end):
            area = abs((ax - avg_x) * (ys[j] - ay) - (ax - xs[j]) * (avg_y - ay)) * 0.5
            if area > max_area:
                max_area = area
                chosen = j

        sampled.append(points[chosen])
        a = chosen

    sampled.append(points[-1])
    return sampled


__all__ = ["downsample", "snapshot_x", "snapshot_y"]

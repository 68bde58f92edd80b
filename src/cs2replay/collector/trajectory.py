"""
Grenade trajectory compression.

Flight paths are sampled at the snapshot rate, which gives dozens of points
for a long lineup throw. The viewer only needs the shape, so paths are reduced
with largest-triangle-three-buckets (LTTB): the first and last points are
always kept and each interior bucket contributes the point that spans the
largest triangle with its neighbours, which keeps bounce and apex points that
uniform subsampling would skip.
"""

from __future__ import annotations

from collections.abc import Sequence

from cs2replay.core.constants import MAX_TRAJECTORY_POINTS
from cs2replay.models import TrajectoryPoint


def downsample_trajectory(
    points: Sequence[TrajectoryPoint],
    max_points: int = MAX_TRAJECTORY_POINTS,
) -> list[TrajectoryPoint]:
    """
    Reduce a trajectory to at most max_points points.

    Args:
        points: Trajectory in time order
        max_points: Output size for long inputs (minimum 3)

    Returns:
        The input unchanged (as a list) when it already fits, otherwise
        exactly max_points points starting and ending with the input's
        first and last points.
    """
    if max_points < 3:
        raise ValueError(f"max_points must be at least 3, got {max_points}")

    n = len(points)
    if n <= max_points:
        return list(points)

    result = [points[0]]
    bucket_size = (n - 2) / (max_points - 2)
    prev_idx = 0

    for i in range(1, max_points - 1):
        bucket_start = int((i - 1) * bucket_size) + 1
        bucket_end = min(int(i * bucket_size) + 1, n - 1)

        # Centroid of the next bucket is the third triangle vertex.
        # For the last slot the next bucket is the final point.
        next_start = int(i * bucket_size) + 1
        next_end = min(int((i + 1) * bucket_size) + 1, n)
        avg_x = avg_y = 0.0
        count = next_end - next_start
        if count > 0:
            for p in points[next_start:next_end]:
                avg_x += p.x
                avg_y += p.y
            avg_x /= count
            avg_y /= count

        prev = points[prev_idx]
        best_idx = bucket_start
        best_area = -1.0
        for j in range(bucket_start, bucket_end):
            candidate = points[j]
            area = abs(
                (prev.x - avg_x) * (candidate.y - prev.y)
                - (prev.x - candidate.x) * (avg_y - prev.y)
            )
            if area > best_area:
                best_area = area
                best_idx = j

        result.append(points[best_idx])
        prev_idx = best_idx

    result.append(points[-1])
    return result

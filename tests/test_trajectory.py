"""Tests for grenade trajectory compression."""

import pytest

from cs2replay.collector.trajectory import downsample_trajectory
from cs2replay.models import TrajectoryPoint


def _line(n):
    return [TrajectoryPoint(t=i * 0.2, x=float(i), y=0.0) for i in range(n)]


class TestDownsampleTrajectory:
    """Tests for LTTB downsampling."""

    def test_short_input_returned_unchanged(self):
        """Inputs at or under the limit come back as-is."""
        points = _line(10)
        result = downsample_trajectory(points, 10)
        assert result == points
        assert result is not points

    def test_empty_input(self):
        assert downsample_trajectory([], 10) == []

    def test_long_input_reduced_to_max(self):
        """Long inputs produce exactly max_points points."""
        points = _line(57)
        result = downsample_trajectory(points, 10)
        assert len(result) == 10

    def test_endpoints_preserved(self):
        points = _line(40)
        result = downsample_trajectory(points, 10)
        assert result[0] is points[0]
        assert result[-1] is points[-1]

    def test_output_is_subset_in_order(self):
        """Every output point is an input point, in the original time order."""
        points = _line(33)
        result = downsample_trajectory(points, 10)
        indices = [points.index(p) for p in result]
        assert indices == sorted(indices)
        assert len(set(indices)) == len(indices)

    def test_keeps_apex(self):
        """A sharp peak survives compression."""
        points = [TrajectoryPoint(t=i, x=float(i), y=0.0) for i in range(30)]
        points[15] = TrajectoryPoint(t=15, x=15.0, y=500.0)
        result = downsample_trajectory(points, 10)
        assert any(p.y == 500.0 for p in result)

    def test_max_points_below_three_rejected(self):
        with pytest.raises(ValueError):
            downsample_trajectory(_line(20), 2)

    def test_eleven_points(self):
        """One point over the limit still drops to the limit."""
        result = downsample_trajectory(_line(11), 10)
        assert len(result) == 10

"""Cost computers: how expensive executing a trajectory segment is."""

from __future__ import annotations

import math
from collections.abc import Mapping
from itertools import pairwise
from typing import Any

from viewplanner.core import CostComputer, Planner, TrajectorySegment, register_module


@register_module("NoCost")
class NoCost(CostComputer):
    """Every segment is free."""

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        """NoCost has no parameters."""

    def compute_cost(self, segment: TrajectorySegment) -> bool:
        segment.cost = 0.0
        return len(segment.trajectory) >= 2


@register_module("SegmentLength")
class SegmentLength(CostComputer):
    """Cost is the length of the piecewise linear path through the trajectory."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.accumulate = False

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        self.accumulate = self.set_param(param_map, "accumulate", False)

    def compute_cost(self, segment: TrajectorySegment) -> bool:
        if len(segment.trajectory) < 2:
            segment.cost = 0.0
            return False
        segment.cost = sum(
            math.dist(start.position, end.position)
            for start, end in pairwise(segment.trajectory)
        )
        if self.accumulate and segment.parent is not None:
            segment.cost += segment.parent.cost
        return True


@register_module("SegmentTime")
class SegmentTime(CostComputer):
    """Cost is the duration of the trajectory in seconds."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.accumulate = False

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        self.accumulate = self.set_param(param_map, "accumulate", False)

    def compute_cost(self, segment: TrajectorySegment) -> bool:
        if len(segment.trajectory) < 2:
            segment.cost = 0.0
            return False
        first, last = segment.trajectory[0], segment.trajectory[-1]
        segment.cost = (last.time_from_start_ns - first.time_from_start_ns) * 1.0e-9
        if self.accumulate and segment.parent is not None:
            segment.cost += segment.parent.cost
        return True
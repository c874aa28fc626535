"""Evaluator updaters: refresh or prune evaluated segments after execution."""

from __future__ import annotations

import math
from collections.abc import Mapping
from typing import Any

from viewplanner.core import (
    ConfigError,
    EvaluatorUpdater,
    Planner,
    TrajectorySegment,
    register_module,
)


def _following_updater(module: EvaluatorUpdater, param_map: Mapping[str, Any]) -> EvaluatorUpdater:
    return module._create_from_param(
        param_map, "following_updater_args", "/following_updater", EvaluatorUpdater
    )


@register_module("ConstrainedUpdater")
class ConstrainedUpdater(EvaluatorUpdater):
    """Passes segments on only if their gain and distance meet the constraints."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.minimum_gain = -1e9
        self.update_range = 1e9
        self.following_updater: EvaluatorUpdater | None = None

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        self.minimum_gain = self.set_param(param_map, "minimum_gain", -1e9)
        self.update_range = self.set_param(param_map, "update_range", 1e9)
        self.following_updater = _following_updater(self, param_map)

    def update_segment(self, segment: TrajectorySegment) -> bool:
        if segment.parent is None or segment.gain <= self.minimum_gain:
            return True
        end = segment.trajectory[-1].position
        if math.dist(self.planner.current_position, end) <= self.update_range:
            return self.following_updater.update_segment(segment)
        return True


@register_module("PruneDirect")
class PruneDirect(EvaluatorUpdater):
    """Removes segments whose value, gain or cost are out of bounds."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.minimum_value = -1e9
        self.minimum_gain = -1e9
        self.maximum_cost = 1e9
        self.following_updater: EvaluatorUpdater | None = None

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        self.minimum_value = self.set_param(param_map, "minimum_value", -1e9)
        self.minimum_gain = self.set_param(param_map, "minimum_gain", -1e9)
        self.maximum_cost = self.set_param(param_map, "maximum_cost", 1e9)
        self.following_updater = _following_updater(self, param_map)

    def update_segment(self, segment: TrajectorySegment) -> bool:
        if (
            segment.value < self.minimum_value
            or segment.gain < self.minimum_gain
            or segment.cost > self.maximum_cost
        ):
            return False
        return self.following_updater.update_segment(segment)


@register_module("ResetTree")
class ResetTree(EvaluatorUpdater):
    """Discards every segment."""

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        """ResetTree has no parameters."""

    def update_segment(self, segment: TrajectorySegment) -> bool:
        return False


@register_module("UpdateAll")
class UpdateAll(EvaluatorUpdater):
    """Recomputes gain, cost and value with the planner's trajectory evaluator."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.update_gain = True
        self.update_cost = True
        self.update_value = True
        self.following_updater: EvaluatorUpdater | None = None

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        self.update_gain = self.set_param(param_map, "update_gain", True)
        self.update_cost = self.set_param(param_map, "update_cost", True)
        self.update_value = self.set_param(param_map, "update_value", True)
        self.following_updater = _following_updater(self, param_map)

    def update_segment(self, segment: TrajectorySegment) -> bool:
        evaluator = self.planner.trajectory_evaluator
        if evaluator is None:
            raise ConfigError("'UpdateAll' requires the planner to have a trajectory evaluator")
        if self.update_gain:
            evaluator.compute_gain(segment)
        if self.update_cost:
            evaluator.compute_cost(segment)
        if self.update_value:
            evaluator.compute_value(segment)
        return self.following_updater.update_segment(segment)


@register_module("UpdateNothing")
class UpdateNothing(EvaluatorUpdater):
    """Keeps every segment unchanged."""

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        """UpdateNothing has no parameters."""

    def update_segment(self, segment: TrajectorySegment) -> bool:
        return True
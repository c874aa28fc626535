"""Value computers: combine gain and cost of a segment into a single value."""

from __future__ import annotations

import math
from collections.abc import Iterator, Mapping
from typing import Any

from viewplanner.core import Planner, TrajectorySegment, ValueComputer, register_module


def _ancestors(segment: TrajectorySegment) -> Iterator[TrajectorySegment]:
    current = segment.parent
    while current is not None:
        yield current
        current = current.parent


def _ratio(gain: float, cost: float) -> float:
    return 0.0 if cost == 0.0 else gain / cost


@register_module("AccumulateValue")
class AccumulateValue(ValueComputer):
    """Adds the parent's value to the value of a following computer."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.following_value_computer: ValueComputer | None = None

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        self.following_value_computer = self._create_from_param(
            param_map, "following_value_computer_args", "/following_value_computer", ValueComputer
        )

    def compute_value(self, segment: TrajectorySegment) -> bool:
        self.following_value_computer.compute_value(segment)
        if segment.parent is not None:
            segment.value += segment.parent.value
        return True


@register_module("ExponentialDiscount")
class ExponentialDiscount(ValueComputer):
    """Gain discounted exponentially by cost."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.cost_scale = 1.0
        self.accumulate_cost = False
        self.accumulate_gain = False

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        self.cost_scale = self.set_param(param_map, "cost_scale", 1.0)
        self.accumulate_cost = self.set_param(param_map, "accumulate_cost", False)
        self.accumulate_gain = self.set_param(param_map, "accumulate_gain", False)

    def compute_value(self, segment: TrajectorySegment) -> bool:
        gain, cost = segment.gain, segment.cost
        if self.accumulate_cost:
            cost += sum(node.cost for node in _ancestors(segment))
        if self.accumulate_gain:
            gain += sum(node.gain for node in _ancestors(segment))
        segment.value = gain * math.exp(-self.cost_scale * cost)
        return True


@register_module("GlobalNormalizedGain")
class GlobalNormalizedGain(ValueComputer):
    """Best gain-per-cost ratio over any path from the root through the segment."""

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        """GlobalNormalizedGain has no parameters."""

    def compute_value(self, segment: TrajectorySegment) -> bool:
        ancestors = list(_ancestors(segment))
        gain = sum(node.gain for node in ancestors)
        cost = sum(node.cost for node in ancestors)
        segment.value = self.find_best(segment, gain, cost)
        return True

    def find_best(self, current: TrajectorySegment, gain: float, cost: float) -> float:
        """Highest ratio among all paths that continue from ``current`` towards a leaf."""
        gain += current.gain
        cost += current.cost
        value = gain / cost if cost > 0 else 0.0
        for child in current.children:
            value = max(value, self.find_best(child, gain, cost))
        return value


@register_module("LinearValue")
class LinearValue(ValueComputer):
    """Weighted gain minus weighted cost."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.cost_weight = 1.0
        self.gain_weight = 1.0
        self.accumulate_cost = False
        self.accumulate_gain = False

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        self.cost_weight = self.set_param(param_map, "cost_weight", 1.0)
        self.gain_weight = self.set_param(param_map, "gain_weight", 1.0)
        self.accumulate_cost = self.set_param(param_map, "accumulate_cost", False)
        self.accumulate_gain = self.set_param(param_map, "accumulate_gain", False)

    def compute_value(self, segment: TrajectorySegment) -> bool:
        gain, cost = segment.gain, segment.cost
        if self.accumulate_cost:
            cost += sum(node.cost for node in _ancestors(segment))
        if self.accumulate_gain:
            gain += sum(node.gain for node in _ancestors(segment))
        segment.value = self.gain_weight * gain - self.cost_weight * cost
        return True


@register_module("RelativeGain")
class RelativeGain(ValueComputer):
    """Gain divided by cost, optionally summed over the path from the root."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.accumulate = True

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        self.accumulate = self.set_param(param_map, "accumulate", True)

    def compute_value(self, segment: TrajectorySegment) -> bool:
        gain, cost = segment.gain, segment.cost
        if self.accumulate:
            for node in _ancestors(segment):
                gain += node.gain
                cost += node.cost
        segment.value = _ratio(gain, cost)
        return True


@register_module("DiscountedRelativeGain")
class DiscountedRelativeGain(ValueComputer):
    """Path gain, discounted with depth from the root, divided by path cost."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.discount_factor = 0.9

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        self.discount_factor = self.set_param(param_map, "discount_factor", 0.9)

    def compute_value(self, segment: TrajectorySegment) -> bool:
        path = [segment, *_ancestors(segment)]
        path.reverse()
        gain = cost = 0.0
        factor = 1.0
        for node in path:
            gain += factor * node.gain
            cost += node.cost
            factor *= self.discount_factor
        segment.value = _ratio(gain, cost)
        return True


@register_module("TrivialGain")
class TrivialGain(ValueComputer):
    """The value is the gain."""

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        """TrivialGain has no parameters."""

    def compute_value(self, segment: TrajectorySegment) -> bool:
        segment.value = segment.gain
        return True
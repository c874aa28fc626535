"""Trajectory generator interface and its pluggable selector and updater modules."""

from __future__ import annotations

import math
from abc import abstractmethod
from collections.abc import Mapping
from typing import Any

from viewplanner.core import (
    BoundingVolume,
    Module,
    Planner,
    TrajectoryPoint,
    TrajectorySegment,
    Vector3,
)


class TrajectoryGenerator(Module):
    """Expands the trajectory tree with new candidate segments."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.bounding_volume: BoundingVolume | None = None
        self.segment_selector: SegmentSelector | None = None
        self.generator_updater: GeneratorUpdater | None = None
        self.collision_optimistic = False
        self.clearing_radius = 0.0
        self.selector_args: Any = "/segment_selector"
        self.updater_args: Any = "/generator_updater"
        self.system_constraints_args: Any = "/system_constraints"

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        self.collision_optimistic = self.set_param(param_map, "collision_optimistic", False)
        self.clearing_radius = self.set_param(param_map, "clearing_radius", 0.0)
        namespace = param_map.get("param_namespace", "")
        self.selector_args = self.set_param(
            param_map, "segment_selector_args", namespace + "/segment_selector"
        )
        self.updater_args = self.set_param(
            param_map, "generator_updater_args", namespace + "/generator_updater"
        )
        self.bounding_volume = self._create_from_param(
            param_map, "bounding_volume_args", "/bounding_volume", BoundingVolume
        )
        self.system_constraints_args = self.set_param(
            param_map, "system_constraints_args", namespace + "/system_constraints"
        )

    def check_traversable(self, position: Vector3) -> bool:
        """Whether the position is inside the bounding volume and reachable."""
        if self.bounding_volume is not None and not self.bounding_volume.contains(position):
            return False
        world = self.planner.map
        if world.is_observed(position):
            return world.is_traversable(position)
        if self.clearing_radius > 0.0:
            if math.dist(self.planner.current_position, position) < self.clearing_radius:
                return True
        return self.collision_optimistic

    def select_segment(self, root: TrajectorySegment) -> TrajectorySegment | None:
        """Choose the segment to expand, or None if there is none."""
        if self.segment_selector is None:
            self.segment_selector = self._create_submodule(self.selector_args, SegmentSelector)
        return self.segment_selector.select_segment(root)

    @abstractmethod
    def expand_segment(self, target: TrajectorySegment) -> list[TrajectorySegment]:
        """Expand the target; return the new segments, empty if none were found."""

    def update_segment(self, segment: TrajectorySegment) -> bool:
        """Update the segment after execution; False removes it from the tree."""
        if self.generator_updater is None:
            self.generator_updater = self._create_submodule(self.updater_args, GeneratorUpdater)
        return self.generator_updater.update_segment(segment)

    def extract_trajectory_to_publish(self, segment: TrajectorySegment) -> list[TrajectoryPoint]:
        """The trajectory to execute for a segment; by default its own trajectory."""
        return list(segment.trajectory)


class SegmentSelector(Module):
    """Decides which segment of the tree to expand next."""

    @abstractmethod
    def select_segment(self, root: TrajectorySegment) -> TrajectorySegment | None:
        """Return the segment to expand, or None if nothing qualifies."""


class GeneratorUpdater(Module):
    """Refreshes generated segments after a trajectory was executed."""

    @abstractmethod
    def update_segment(self, segment: TrajectorySegment) -> bool:
        """Update the segment; return False to remove it from the tree."""
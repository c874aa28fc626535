"""Evaluators that simulate a sensor to find the voxels a trajectory would observe."""

from __future__ import annotations

import itertools
import math
from abc import abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from viewplanner.core import (
    BoundingVolume,
    Color,
    ConfigError,
    EvaluatorUpdater,
    MarkerType,
    OccupancyMap,
    Planner,
    SensorModel,
    TrajectoryEvaluator,
    TrajectorySegment,
    TSDFMap,
    Vector3,
    VisualizationMarker,
    VisualizationMarkers,
    VoxelState,
    register_module,
)


def _add(a: Vector3, b: Vector3) -> Vector3:
    return (a[0] + b[0], a[1] + b[1], a[2] + b[2])


def _impact_color(frac: float, alpha: float) -> Color:
    """Red for low, green for high fractions."""
    return Color(
        r=min((0.5 - frac) * 2.0 + 1.0, 1.0),
        g=min((frac - 0.5) * 2.0 + 1.0, 1.0),
        b=0.0,
        a=alpha,
    )


@dataclass
class SimulatedSensorInfo:
    """Voxels a segment's trajectory is expected to observe."""

    visible_voxels: list[Vector3] = field(default_factory=list)


class SimulatedSensorEvaluator(TrajectoryEvaluator):
    """Computes gain from the voxels a simulated sensor sees along a trajectory."""

    LINK_NAME = "SimulatedSensorEvaluator"

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.clear_from_parents = False
        self.visualize_sensor_view = False
        self.map: OccupancyMap | None = None
        self.sensor_model: SensorModel | None = None

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        self.clear_from_parents = self.set_param(param_map, "clear_from_parents", False)
        self.visualize_sensor_view = self.set_param(param_map, "visualize_sensor_view", False)
        self.map = self._require_map(OccupancyMap)
        self.planner.factory.register_linkable_module(self.LINK_NAME, self)
        self.sensor_model = self._create_from_param(
            param_map, "sensor_model_args", "/sensor_model", SensorModel
        )
        super().setup_from_param_map(param_map)

    def compute_gain(self, segment: TrajectorySegment) -> bool:
        new_voxels = self.sensor_model.get_visible_voxels(segment)

        if self.bounding_volume is not None and self.bounding_volume.is_setup:
            new_voxels = [voxel for voxel in new_voxels if self.bounding_volume.contains(voxel)]

        if self.clear_from_parents:
            previous = segment.parent
            while previous is not None:
                if isinstance(previous.info, SimulatedSensorInfo):
                    seen = previous.info.visible_voxels
                    new_voxels = [voxel for voxel in new_voxels if voxel not in seen]
                previous = previous.parent

        self.store_trajectory_information(segment, new_voxels)
        self.compute_gain_from_visible_voxels(segment)
        return True

    def store_trajectory_information(
        self, segment: TrajectorySegment, new_voxels: Iterable[Vector3]
    ) -> bool:
        """Attach the visible voxels to the segment."""
        segment.info = SimulatedSensorInfo(list(new_voxels))
        return True

    @abstractmethod
    def compute_gain_from_visible_voxels(self, segment: TrajectorySegment) -> bool:
        """Compute the gain from the stored visible voxels; False if there are none stored."""

    def visualize_trajectory_value(
        self, markers: VisualizationMarkers, segment: TrajectorySegment
    ) -> None:
        """Show every visible voxel."""
        info = segment.info
        if info is None:
            return
        size = self.map.voxel_size
        markers.add_marker(
            VisualizationMarker(
                type=MarkerType.CUBE_LIST,
                scale=(size, size, size),
                color=Color(r=1.0, g=0.8, b=0.0, a=0.4),
                points=list(info.visible_voxels),
            )
        )
        if self.visualize_sensor_view:
            self.sensor_model.visualize_sensor_view(markers, segment)


@register_module("NaiveEvaluator")
class NaiveEvaluator(SimulatedSensorEvaluator):
    """Gain is the number of visible voxels that are not yet observed."""

    def compute_gain_from_visible_voxels(self, segment: TrajectorySegment) -> bool:
        info = segment.info
        if info is None:
            segment.gain = 0.0
            return False
        world = self.planner.map
        info.visible_voxels[:] = [v for v in info.visible_voxels if not world.is_observed(v)]
        segment.gain = float(len(info.visible_voxels))
        return True


@register_module("FrontierEvaluator")
class FrontierEvaluator(SimulatedSensorEvaluator):
    """Gain is the number of visible unobserved voxels that lie on a frontier."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.accurate_frontiers = False
        self.surface_frontiers = True
        self.checking_distance = 1.0
        self.voxel_size = 0.0
        self.neighbor_offsets: list[Vector3] = []

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        super().setup_from_param_map(param_map)
        self.accurate_frontiers = self.set_param(param_map, "accurate_frontiers", False)
        self.surface_frontiers = self.set_param(param_map, "surface_frontiers", True)
        self.checking_distance = self.set_param(param_map, "checking_distance", 1.0)
        self.map = self._require_map(OccupancyMap)

        self.voxel_size = self.map.voxel_size
        step = self.voxel_size * self.checking_distance
        if self.accurate_frontiers:
            steps = (step, 0.0, -step)
            inner = (0.0, step, -step)
            self.neighbor_offsets = [
                (dx, dy, dz)
                for dx, dz, dy in itertools.product(steps, inner, inner)
                if (dx, dy, dz) != (0.0, 0.0, 0.0)
            ]
        else:
            self.neighbor_offsets = [
                (step, 0.0, 0.0),
                (-step, 0.0, 0.0),
                (0.0, step, 0.0),
                (0.0, -step, 0.0),
                (0.0, 0.0, step),
                (0.0, 0.0, -step),
            ]

    def is_frontier_voxel(self, voxel: Vector3) -> bool:
        """Decide by the first neighbour, in offset order, whose state is known."""
        for offset in self.neighbor_offsets:
            state = self.map.get_voxel_state(_add(voxel, offset))
            if state == VoxelState.UNKNOWN:
                continue
            if self.surface_frontiers:
                return state == VoxelState.OCCUPIED
            return True
        return False

    def compute_gain_from_visible_voxels(self, segment: TrajectorySegment) -> bool:
        segment.gain = 0.0
        info = segment.info
        if info is None:
            return False
        info.visible_voxels[:] = [v for v in info.visible_voxels if not self.map.is_observed(v)]
        segment.gain = float(sum(1 for voxel in info.visible_voxels if self.is_frontier_voxel(voxel)))
        return True

    def visualize_trajectory_value(
        self, markers: VisualizationMarkers, segment: TrajectorySegment
    ) -> None:
        """Show the visible frontier voxels."""
        info = segment.info
        if info is None:
            return
        size = self.map.voxel_size
        markers.add_marker(
            VisualizationMarker(
                type=MarkerType.CUBE_LIST,
                scale=(size, size, size),
                color=Color(r=1.0, g=0.8, b=0.0, a=1.0),
                points=[v for v in info.visible_voxels if self.is_frontier_voxel(v)],
            )
        )
        if self.visualize_sensor_view:
            self.sensor_model.visualize_sensor_view(markers, segment)


# A voxel of a given state also collects the gains of the states listed after it.
_STATE_GAIN_CHAIN = {
    VoxelState.UNKNOWN: (VoxelState.UNKNOWN, VoxelState.FREE, VoxelState.OCCUPIED),
    VoxelState.FREE: (VoxelState.FREE, VoxelState.OCCUPIED),
    VoxelState.OCCUPIED: (VoxelState.OCCUPIED,),
}


@register_module("VoxelTypeEvaluator")
class VoxelTypeEvaluator(SimulatedSensorEvaluator):
    """Gain is a weighted count of visible voxels by occupancy state and region."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.gain_unknown = 1.0
        self.gain_occupied = 0.0
        self.gain_free = 0.0
        self.gain_unknown_outer = 0.0
        self.gain_occupied_outer = 0.0
        self.gain_free_outer = 0.0
        self.outer_volume: BoundingVolume | None = None
        self.min_gain = 0.0
        self.max_gain = 1.0

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        super().setup_from_param_map(param_map)
        self.gain_unknown = self.set_param(param_map, "gain_unknown", 1.0)
        self.gain_occupied = self.set_param(param_map, "gain_occupied", 0.0)
        self.gain_free = self.set_param(param_map, "gain_free", 0.0)
        self.gain_unknown_outer = self.set_param(param_map, "gain_unknown_outer", 0.0)
        self.gain_occupied_outer = self.set_param(param_map, "gain_occupied_outer", 0.0)
        self.gain_free_outer = self.set_param(param_map, "gain_free_outer", 0.0)
        self.map = self._require_map(OccupancyMap)
        self.outer_volume = self._create_from_param(
            param_map, "outer_volume_args", "/outer_volume", BoundingVolume
        )
        gains = (
            self.gain_unknown,
            self.gain_occupied,
            self.gain_free,
            self.gain_unknown_outer,
            self.gain_occupied_outer,
            self.gain_free_outer,
        )
        self.min_gain = min(gains)
        self.max_gain = max(gains)

    def compute_gain_from_visible_voxels(self, segment: TrajectorySegment) -> bool:
        segment.gain = 0.0
        info = segment.info
        if info is None:
            return False
        inner = {
            VoxelState.UNKNOWN: self.gain_unknown,
            VoxelState.FREE: self.gain_free,
            VoxelState.OCCUPIED: self.gain_occupied,
        }
        outer = {
            VoxelState.UNKNOWN: self.gain_unknown_outer,
            VoxelState.FREE: self.gain_free_outer,
            VoxelState.OCCUPIED: self.gain_occupied_outer,
        }
        for voxel in info.visible_voxels:
            state = self.map.get_voxel_state(voxel)
            gains = inner if self.bounding_volume.contains(voxel) else outer
            segment.gain += sum(gains[s] for s in _STATE_GAIN_CHAIN.get(state, ()))
        return True


@register_module("VoxelWeightEvaluator")
class VoxelWeightEvaluator(FrontierEvaluator):
    """Gain estimates how much each visible voxel's measurement weight would improve."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.frontier_voxel_weight = 1.0
        self.min_impact_factor = 0.0
        self.new_voxel_weight = 0.01
        self.ray_angle_x = 0.0025
        self.ray_angle_y = 0.0025

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        super().setup_from_param_map(param_map)
        self.frontier_voxel_weight = self.set_param(param_map, "frontier_voxel_weight", 1.0)
        self.min_impact_factor = self.set_param(param_map, "min_impact_factor", 0.0)
        self.new_voxel_weight = self.set_param(param_map, "new_voxel_weight", 0.01)
        self.ray_angle_x = self.set_param(param_map, "ray_angle_x", 0.0025)
        self.ray_angle_y = self.set_param(param_map, "ray_angle_y", 0.0025)
        self.map = self._require_map(TSDFMap)
        self.voxel_size = self.map.voxel_size

    def compute_gain_from_visible_voxels(self, segment: TrajectorySegment) -> bool:
        segment.gain = 0.0
        info = segment.info
        if info is None:
            return False
        # A single image is assumed to be taken from the end of the trajectory.
        origin = segment.trajectory[-1].position
        segment.gain = sum(self.get_voxel_value(voxel, origin) for voxel in info.visible_voxels)
        return True

    def get_voxel_value(self, voxel: Vector3, origin: Vector3) -> float:
        """Expected contribution of observing ``voxel`` from ``origin``."""
        state = self.map.get_voxel_state(voxel)
        if state == VoxelState.OCCUPIED:
            distance = math.dist(voxel, origin)
            if distance == 0.0:
                return 0.0
            spanned_angle = 2.0 * math.atan2(self.voxel_size, distance * 2.0)
            new_weight = spanned_angle**2 / (self.ray_angle_x * self.ray_angle_y) / distance**2
            gain = new_weight / (new_weight + self.map.get_voxel_weight(voxel))
            if gain > self.min_impact_factor:
                return gain
        elif state == VoxelState.UNKNOWN:
            if self.frontier_voxel_weight > 0.0 and self.is_frontier_voxel(voxel):
                return self.frontier_voxel_weight
            return self.new_voxel_weight
        return 0.0

    def visualize_trajectory_value(
        self, markers: VisualizationMarkers, segment: TrajectorySegment
    ) -> None:
        """Show contributing voxels: frontiers purple, new voxels teal, surfaces by impact."""
        info = segment.info
        if info is None:
            return
        size = self.voxel_size
        marker = VisualizationMarker(type=MarkerType.CUBE_LIST, scale=(size, size, size))
        origin = segment.trajectory[-1].position
        for voxel in info.visible_voxels:
            value = self.get_voxel_value(voxel, origin)
            if value <= 0.0:
                continue
            marker.points.append(voxel)
            if value == self.frontier_voxel_weight:
                color = Color(r=0.6, g=0.4, b=1.0, a=0.5)
            elif value == self.new_voxel_weight:
                color = Color(r=0.0, g=0.75, b=1.0, a=0.1)
            else:
                frac = (value - self.min_impact_factor) / (1.0 - self.min_impact_factor)
                color = _impact_color(frac, 0.5)
            marker.colors.append(color)
        markers.add_marker(marker)
        if self.visualize_sensor_view:
            self.sensor_model.visualize_sensor_view(markers, segment)


@register_module("SimulatedSensorUpdater")
class SimulatedSensorUpdater(EvaluatorUpdater):
    """Recomputes gains from the stored visible voxels without simulating the sensor again."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.following_updater: EvaluatorUpdater | None = None
        self.evaluator: SimulatedSensorEvaluator | None = None

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        self.following_updater = self._create_from_param(
            param_map, "following_updater_args", "/following_updater", EvaluatorUpdater
        )
        evaluator = self.planner.factory.read_linkable_module(SimulatedSensorEvaluator.LINK_NAME)
        if not isinstance(evaluator, SimulatedSensorEvaluator):
            raise ConfigError("'SimulatedSensorUpdater' requires a SimulatedSensorEvaluator")
        self.evaluator = evaluator

    def update_segment(self, segment: TrajectorySegment) -> bool:
        self.evaluator.compute_gain_from_visible_voxels(segment)
        return self.following_updater.update_segment(segment)
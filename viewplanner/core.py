"""Core data types, module plumbing and trajectory evaluator interfaces."""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any, TypeVar

_log = logging.getLogger(__name__)

Vector3 = tuple[float, float, float]

_ModuleT = TypeVar("_ModuleT", bound="Module")

_TRUE_WORDS = frozenset({"true", "1", "yes", "on"})
_FALSE_WORDS = frozenset({"false", "0", "no", "off"})


class ConfigError(Exception):
    """Raised when modules or their parameters are misconfigured."""


class VoxelState(Enum):
    """Occupancy state of a single voxel."""

    UNKNOWN = auto()
    FREE = auto()
    OCCUPIED = auto()


@dataclass
class TrajectoryPoint:
    """A single pose along a trajectory."""

    position: Vector3 = (0.0, 0.0, 0.0)
    yaw: float = 0.0
    time_from_start_ns: int = 0

    @property
    def orientation(self) -> tuple[float, float, float, float]:
        """Orientation as a (w, x, y, z) quaternion rotating about the z axis."""
        half = self.yaw / 2.0
        return (math.cos(half), 0.0, 0.0, math.sin(half))


@dataclass(eq=False)
class TrajectorySegment:
    """A node of the trajectory tree: a trajectory plus its evaluation."""

    trajectory: list[TrajectoryPoint] = field(default_factory=list)
    parent: TrajectorySegment | None = field(default=None, repr=False)
    children: list[TrajectorySegment] = field(default_factory=list, repr=False)
    gain: float = 0.0
    cost: float = 0.0
    value: float = 0.0
    info: Any = field(default=None, repr=False)
    tg_visited: bool = False

    def shallow_copy(self) -> TrajectorySegment:
        """Copy trajectory, evaluation and parent link, but neither children nor info."""
        return TrajectorySegment(
            trajectory=[replace(point) for point in self.trajectory],
            parent=self.parent,
            gain=self.gain,
            cost=self.cost,
            value=self.value,
            tg_visited=self.tg_visited,
        )

    def spawn_child(self) -> TrajectorySegment:
        """Create an empty child segment attached to this one."""
        child = TrajectorySegment(parent=self)
        self.children.append(child)
        return child


class MarkerType(Enum):
    """Shape of a visualization marker."""

    ARROW = auto()
    CUBE = auto()
    SPHERE = auto()
    LINE_STRIP = auto()
    CUBE_LIST = auto()
    SPHERE_LIST = auto()
    POINTS = auto()


@dataclass
class Color:
    """RGBA color with components in [0, 1]."""

    r: float = 0.0
    g: float = 0.0
    b: float = 0.0
    a: float = 1.0


@dataclass
class VisualizationMarker:
    """A drawable marker describing part of the planner's state."""

    type: MarkerType = MarkerType.CUBE
    action: str = "add"
    position: Vector3 = (0.0, 0.0, 0.0)
    orientation: tuple[float, float, float, float] = (1.0, 0.0, 0.0, 0.0)
    scale: Vector3 = (1.0, 1.0, 1.0)
    color: Color = field(default_factory=Color)
    points: list[Vector3] = field(default_factory=list)
    colors: list[Color] = field(default_factory=list)


@dataclass
class VisualizationMarkers:
    """An ordered collection of markers."""

    markers: list[VisualizationMarker] = field(default_factory=list)

    def add_marker(self, marker: VisualizationMarker) -> None:
        self.markers.append(marker)


def angle_scaled(angle: float) -> float:
    """Wrap an angle into the interval [-pi, pi)."""
    wrapped = math.fmod(angle + math.pi, 2.0 * math.pi)
    if wrapped < 0.0:
        wrapped += 2.0 * math.pi
    return wrapped - math.pi


class Map(ABC):
    """World representation queried by the planner."""

    @abstractmethod
    def is_observed(self, position: Vector3) -> bool:
        """Whether the position has been observed."""

    @abstractmethod
    def is_traversable(self, position: Vector3) -> bool:
        """Whether the robot can be at the position."""


class OccupancyMap(Map):
    """A voxel map that reports occupancy states."""

    def __init__(self, voxel_size: float) -> None:
        self.voxel_size = voxel_size

    @abstractmethod
    def get_voxel_state(self, position: Vector3) -> VoxelState:
        """Occupancy state of the voxel containing the position."""


class TSDFMap(OccupancyMap):
    """An occupancy map backed by a weighted signed distance field."""

    @abstractmethod
    def get_voxel_weight(self, position: Vector3) -> float:
        """Integration weight of the voxel containing the position."""


_REGISTRY: dict[str, type[Module]] = {}


def register_module(name: str) -> Callable[[type[_ModuleT]], type[_ModuleT]]:
    """Class decorator making a module creatable by its type name."""

    def decorator(cls: type[_ModuleT]) -> type[_ModuleT]:
        _REGISTRY[name] = cls
        return cls

    return decorator


class ModuleFactory:
    """Creates modules from parameter namespaces and keeps linkable modules."""

    def __init__(self, params: Mapping[str, Mapping[str, Any]] | None = None) -> None:
        self.params: dict[str, dict[str, Any]] = {
            namespace: dict(values) for namespace, values in (params or {}).items()
        }
        self._linkable: dict[str, Module] = {}

    def create_module(self, args: str | Mapping[str, Any], planner: Planner, verbose: bool) -> Module:
        """Build, configure and validate the module described by ``args``.

        ``args`` is either a parameter namespace known to the factory or a
        parameter mapping; in both cases its ``type`` entry selects the class.
        """
        if isinstance(args, Mapping):
            param_map = dict(args)
            param_map.setdefault("param_namespace", "")
        else:
            try:
                param_map = dict(self.params[args])
            except KeyError:
                raise ConfigError(f"no parameters configured for namespace '{args}'") from None
            param_map.setdefault("param_namespace", args)

        type_name = param_map.get("type")
        if type_name is None:
            raise ConfigError(f"no module type given in '{param_map['param_namespace']}'")
        try:
            cls = _REGISTRY[type_name]
        except KeyError:
            raise ConfigError(f"unknown module type '{type_name}'") from None

        module = cls(planner)
        module.verbose_modules = bool(verbose)
        module.setup_from_param_map(param_map)
        module.check_params_valid()
        if verbose:
            _log.info("created module '%s' from '%s'", type_name, param_map["param_namespace"])
        return module

    def register_linkable_module(self, name: str, module: Module) -> None:
        self._linkable[name] = module

    def read_linkable_module(self, name: str) -> Module:
        try:
            return self._linkable[name]
        except KeyError:
            raise ConfigError(f"no linkable module registered as '{name}'") from None


@dataclass(eq=False)
class Planner:
    """Shared state that all modules of one planner refer to."""

    map: Map
    factory: ModuleFactory = field(default_factory=ModuleFactory)
    current_position: Vector3 = (0.0, 0.0, 0.0)
    current_yaw: float = 0.0
    trajectory_evaluator: TrajectoryEvaluator | None = None
    trajectory_generator: Any = None
    back_tracker: BackTracker | None = None

    def print_error(self, message: str) -> None:
        _log.error(message)


def _coerce(name: str, value: Any, default: Any) -> Any:
    if default is None:
        return value
    if isinstance(default, bool):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            word = value.strip().lower()
            if word in _TRUE_WORDS:
                return True
            if word in _FALSE_WORDS:
                return False
        elif isinstance(value, int) and value in (0, 1):
            return bool(value)
        raise ConfigError(f"parameter '{name}' expects a boolean, got {value!r}")
    if isinstance(value, bool):
        raise ConfigError(f"parameter '{name}' does not take a boolean")
    if isinstance(default, int):
        if isinstance(value, int):
            return value
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, str):
            try:
                return int(value)
            except ValueError:
                pass
        raise ConfigError(f"parameter '{name}' expects an integer, got {value!r}")
    if isinstance(default, float):
        if isinstance(value, (int, float)):
            return float(value)
        if isinstance(value, str):
            try:
                return float(value)
            except ValueError:
                pass
        raise ConfigError(f"parameter '{name}' expects a number, got {value!r}")
    if isinstance(default, str):
        if isinstance(value, (str, Mapping)):
            return value
        raise ConfigError(f"parameter '{name}' expects a string, got {value!r}")
    return value


class Module(ABC):
    """Base of every configurable planner component."""

    def __init__(self, planner: Planner) -> None:
        self.planner = planner
        self.verbose_modules = False

    def set_param(self, param_map: Mapping[str, Any], name: str, default: Any) -> Any:
        """Read a parameter, converted to the type of its default."""
        if name in param_map:
            value = _coerce(name, param_map[name], default)
        else:
            value = default
        if self.verbose_modules:
            _log.info("%s: %s = %r", type(self).__name__, name, value)
        return value

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        """Read the module's parameters; the base module has none."""

    def check_params_valid(self) -> None:
        """Raise ConfigError when parameters are inconsistent."""

    def _create_submodule(self, args: str | Mapping[str, Any], expected: type[_ModuleT]) -> _ModuleT:
        module = self.planner.factory.create_module(args, self.planner, self.verbose_modules)
        if not isinstance(module, expected):
            raise ConfigError(
                f"'{type(module).__name__}' is not a {expected.__name__} as required by "
                f"'{type(self).__name__}'"
            )
        return module

    def _create_from_param(
        self, param_map: Mapping[str, Any], name: str, suffix: str, expected: type[_ModuleT]
    ) -> _ModuleT:
        namespace = param_map.get("param_namespace", "")
        args = self.set_param(param_map, name, namespace + suffix)
        return self._create_submodule(args, expected)

    def _require_map(self, map_type: type[Map]) -> Any:
        world = self.planner.map
        if not isinstance(world, map_type):
            message = f"'{type(self).__name__}' requires a map of type '{map_type.__name__}'!"
            self.planner.print_error(message)
            raise ConfigError(message)
        return world


@register_module("BoundingVolume")
class BoundingVolume(Module):
    """Axis aligned box; contains everything unless any bound is configured."""

    _BOUNDS = ("x_min", "x_max", "y_min", "y_max", "z_min", "z_max")

    def __init__(self, planner: Planner | None = None) -> None:
        super().__init__(planner)
        self.is_setup = False
        self.x_min = self.y_min = self.z_min = -math.inf
        self.x_max = self.y_max = self.z_max = math.inf

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        self.is_setup = any(bound in param_map for bound in self._BOUNDS)
        for bound in self._BOUNDS:
            default = -math.inf if bound.endswith("_min") else math.inf
            setattr(self, bound, self.set_param(param_map, bound, default))

    def check_params_valid(self) -> None:
        for axis in "xyz":
            if getattr(self, f"{axis}_min") > getattr(self, f"{axis}_max"):
                raise ConfigError(f"{axis}_min expected <= {axis}_max")

    def contains(self, point: Vector3) -> bool:
        if not self.is_setup:
            return True
        x, y, z = point
        return (
            self.x_min <= x <= self.x_max
            and self.y_min <= y <= self.y_max
            and self.z_min <= z <= self.z_max
        )


class SensorModel(Module):
    """Simulates which voxels a sensor sees along a trajectory."""

    @abstractmethod
    def get_visible_voxels(self, segment: TrajectorySegment) -> list[Vector3]:
        """Centres of the voxels visible from the segment's trajectory."""

    def visualize_sensor_view(self, markers: VisualizationMarkers, segment: TrajectorySegment) -> None:
        """Add a translucent cube list of the voxels visible from the segment."""
        world = self.planner.map if self.planner is not None else None
        size = world.voxel_size if isinstance(world, OccupancyMap) else 1.0
        marker = VisualizationMarker(
            type=MarkerType.CUBE_LIST,
            scale=(size, size, size),
            color=Color(r=0.0, g=0.5, b=1.0, a=0.2),
            points=list(self.get_visible_voxels(segment)),
        )
        markers.add_marker(marker)


class TrajectoryEvaluator(Module):
    """Computes gain, cost and value of segments and picks the next one."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.bounding_volume: BoundingVolume | None = None
        self.cost_args: Any = "/cost_computer"
        self.value_args: Any = "/value_computer"
        self.next_args: Any = "/next_selector"
        self.updater_args: Any = "/evaluator_updater"
        self.cost_computer: CostComputer | None = None
        self.value_computer: ValueComputer | None = None
        self.next_selector: NextSelector | None = None
        self.evaluator_updater: EvaluatorUpdater | None = None

    def setup_from_param_map(self, param_map: Mapping[str, Any]) -> None:
        namespace = param_map.get("param_namespace", "")
        self.cost_args = self.set_param(param_map, "cost_computer_args", namespace + "/cost_computer")
        self.value_args = self.set_param(param_map, "value_computer_args", namespace + "/value_computer")
        self.next_args = self.set_param(param_map, "next_selector_args", namespace + "/next_selector")
        self.updater_args = self.set_param(
            param_map, "evaluator_updater_args", namespace + "/evaluator_updater"
        )
        self.bounding_volume = self._create_from_param(
            param_map, "bounding_volume_args", "/bounding_volume", BoundingVolume
        )

    @abstractmethod
    def compute_gain(self, segment: TrajectorySegment) -> bool:
        """Compute and store the gain of the segment."""

    def compute_cost(self, segment: TrajectorySegment) -> bool:
        if self.cost_computer is None:
            self.cost_computer = self._create_submodule(self.cost_args, CostComputer)
        return self.cost_computer.compute_cost(segment)

    def compute_value(self, segment: TrajectorySegment) -> bool:
        if self.value_computer is None:
            self.value_computer = self._create_submodule(self.value_args, ValueComputer)
        return self.value_computer.compute_value(segment)

    def select_next_best(self, segment: TrajectorySegment) -> int:
        if self.next_selector is None:
            self.next_selector = self._create_submodule(self.next_args, NextSelector)
        return self.next_selector.select_next_best(segment)

    def update_segment(self, segment: TrajectorySegment) -> bool:
        if self.evaluator_updater is None:
            self.evaluator_updater = self._create_submodule(self.updater_args, EvaluatorUpdater)
        return self.evaluator_updater.update_segment(segment)

    def visualize_trajectory_value(self, markers: VisualizationMarkers, segment: TrajectorySegment) -> None:
        """Add markers showing the segment's gain; nothing by default."""


class CostComputer(Module):
    """Computes the cost of a segment."""

    @abstractmethod
    def compute_cost(self, segment: TrajectorySegment) -> bool:
        """Store the segment's cost."""


class ValueComputer(Module):
    """Computes the value of a segment with known gain and cost."""

    @abstractmethod
    def compute_value(self, segment: TrajectorySegment) -> bool:
        """Store the segment's value."""


class NextSelector(Module):
    """Chooses which child of a segment to execute next."""

    @abstractmethod
    def select_next_best(self, segment: TrajectorySegment) -> int:
        """Index of the most promising child."""


class EvaluatorUpdater(Module):
    """Refreshes evaluations after a trajectory was executed."""

    @abstractmethod
    def update_segment(self, segment: TrajectorySegment) -> bool:
        """Update the segment; return False to remove it from the tree."""


class BackTracker(Module):
    """Handles the situation where no new trajectories were found."""

    def __init__(self, planner: Planner) -> None:
        super().__init__(planner)
        self.last_executed: TrajectorySegment | None = None

    def segment_is_executed(self, segment: TrajectorySegment) -> bool:
        """Remember the segment that was just executed."""
        self.last_executed = segment
        return True

    @abstractmethod
    def track_back(self, target: TrajectorySegment) -> bool:
        """Fill the target with a trajectory that gets the planner going again."""
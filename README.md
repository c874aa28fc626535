# viewplanner

Building blocks for informative path planning. A planner grows a tree of
trajectory segments (`TrajectorySegment`), scores each one by the information
it is expected to gain, and weighs that against what it costs to fly. This
package holds the interfaces for those steps and a set of ready-made
components that compute cost, value and gain and that refresh or prune
segments after a trajectory was executed.

## What is in the package

- `viewplanner.core` – the data types and plumbing:
  `TrajectoryPoint`, `TrajectorySegment` (with `shallow_copy` and
  `spawn_child`), `VoxelState`, visualization types (`VisualizationMarker`,
  `VisualizationMarkers`, `MarkerType`, `Color`), `angle_scaled` for wrapping
  angles into `[-pi, pi)`, the map interfaces `Map`, `OccupancyMap` and
  `TSDFMap`, the shared `Planner` state, `ModuleFactory`, `register_module`,
  the `Module` base class, `BoundingVolume`, `SensorModel`, and the abstract
  interfaces `TrajectoryEvaluator`, `CostComputer`, `ValueComputer`,
  `NextSelector`, `EvaluatorUpdater` and `BackTracker`.
- `viewplanner.generator` – `TrajectoryGenerator`, with
  `check_traversable`, `select_segment`, `update_segment` and
  `extract_trajectory_to_publish`, plus the `SegmentSelector` and
  `GeneratorUpdater` interfaces it delegates to.
- `viewplanner.cost_computers` – `NoCost`, `SegmentLength` (path length, in
  metres) and `SegmentTime` (duration, in seconds). The last two take an
  `accumulate` option that adds the parent's cost.
- `viewplanner.value_computers` – `TrivialGain`, `LinearValue`,
  `ExponentialDiscount`, `RelativeGain`, `DiscountedRelativeGain`,
  `GlobalNormalizedGain` and `AccumulateValue`.
- `viewplanner.evaluator_updaters` – `UpdateNothing`, `ResetTree`,
  `UpdateAll`, `PruneDirect` and `ConstrainedUpdater`.
- `viewplanner.simulated_sensor` – evaluators that ask a `SensorModel` which
  voxels a segment would observe and store them in a `SimulatedSensorInfo`:
  `NaiveEvaluator` (counts unobserved voxels), `FrontierEvaluator` (counts
  unobserved frontier voxels), `VoxelTypeEvaluator` (weights voxels by
  occupancy state, inside and outside the bounding volume) and
  `VoxelWeightEvaluator` (estimates how much a view would improve a TSDF
  voxel's weight), plus `SimulatedSensorUpdater`, which recomputes gains from
  the stored voxels.

## Modules and configuration

Every component is a `Module` bound to a `Planner`. Concrete classes are
registered by type name with `register_module`; all of the classes listed
above are registered under their own class name, and `BoundingVolume` under
`"BoundingVolume"`.

`ModuleFactory.create_module(args, planner, verbose)` builds a module from
either a parameter namespace known to the factory or a parameter mapping. The
`type` entry selects the class; the module then reads its options through
`Module.set_param`, which converts values to the type of the default and
falls back to the default when a key is missing, and validates them with
`check_params_valid`. Missing namespaces, unknown types, badly typed values,
modules of the wrong kind and maps of the wrong type raise
`viewplanner.core.ConfigError`.

Modules that need further modules read their arguments from options such as
`following_updater_args`, `following_value_computer_args`,
`sensor_model_args` or `bounding_volume_args`; by default these name a
namespace below the module's own `param_namespace` (for example
`"/evaluator/bounding_volume"`). A `BoundingVolume` configured without any of
`x_min` … `z_max` contains every point.

`SimulatedSensorEvaluator` subclasses require the planner's map to be an
`OccupancyMap` (`VoxelWeightEvaluator` a `TSDFMap`) and register themselves
with the factory as a linkable module, so that `SimulatedSensorUpdater` can
find them.

## Example

```python
from viewplanner.core import Map, ModuleFactory, Planner, TrajectoryPoint, TrajectorySegment
import viewplanner.cost_computers  # registers the cost computers


class OpenSpace(Map):
    def is_observed(self, position):
        return False

    def is_traversable(self, position):
        return True


factory = ModuleFactory({"/cost": {"type": "SegmentLength", "accumulate": True}})
planner = Planner(map=OpenSpace(), factory=factory)
cost = factory.create_module("/cost", planner, False)

root = TrajectorySegment()
child = root.spawn_child()
child.trajectory = [
    TrajectoryPoint(position=(0.0, 0.0, 0.0)),
    TrajectoryPoint(position=(3.0, 4.0, 0.0)),
]
cost.compute_cost(child)
print(child.cost)  # 5.0
```

## What the package does not do

- It has no planning loop and no command line; it provides the components a
  planner is assembled from.
- It ships no concrete maps, sensor models, trajectory generators, segment
  selectors, generator updaters or back trackers. These are interfaces
  (`Map`, `OccupancyMap`, `TSDFMap`, `SensorModel`, `TrajectoryGenerator`,
  `SegmentSelector`, `GeneratorUpdater`, `BackTracker`) for you to implement
  and register.
- It ships no `NextSelector` implementation, so
  `TrajectoryEvaluator.select_next_best` works only once you register one of
  your own.
- Visualization only collects `VisualizationMarker` objects; nothing is drawn.

## Installation

```
pip install .
```

Install with the `test` extra and run `pytest` to run the test suite.
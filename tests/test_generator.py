import pytest

from viewplanner.core import (
    BoundingVolume,
    ConfigError,
    ModuleFactory,
    OccupancyMap,
    Planner,
    TrajectoryPoint,
    TrajectorySegment,
    VoxelState,
    register_module,
)
from viewplanner.generator import GeneratorUpdater, SegmentSelector, TrajectoryGenerator


class SetMap(OccupancyMap):
    def __init__(self, observed=(), traversable=()):
        super().__init__(0.1)
        self.observed = set(observed)
        self.traversable = set(traversable)

    def is_observed(self, position):
        return tuple(position) in self.observed

    def is_traversable(self, position):
        return tuple(position) in self.traversable

    def get_voxel_state(self, position):
        if tuple(position) not in self.observed:
            return VoxelState.UNKNOWN
        return VoxelState.FREE if tuple(position) in self.traversable else VoxelState.OCCUPIED


@register_module("GenTestGenerator")
class SingleChildGenerator(TrajectoryGenerator):
    def expand_segment(self, target):
        child = target.spawn_child()
        child.trajectory = [TrajectoryPoint()]
        return [child]


@register_module("GenTestFirstLeaf")
class FirstLeafSelector(SegmentSelector):
    def select_segment(self, root):
        current = root
        while current.children:
            current = current.children[0]
        return current


@register_module("GenTestKeepIfGain")
class KeepIfGain(GeneratorUpdater):
    def update_segment(self, segment):
        return segment.gain > 0.0


OBSERVED = [(1.0, 0.0, 0.0), (2.0, 0.0, 0.0), (10.0, 0.0, 0.0)]
TRAVERSABLE = [(1.0, 0.0, 0.0), (10.0, 0.0, 0.0)]


def make_generator(**overrides):
    params = {
        "gen": {"type": "GenTestGenerator", "clearing_radius": 1.0, **overrides},
        "gen/bounding_volume": {"type": "BoundingVolume", "x_min": -5.0, "x_max": 5.0},
        "gen/segment_selector": {"type": "GenTestFirstLeaf"},
        "gen/generator_updater": {"type": "GenTestKeepIfGain"},
    }
    planner = Planner(map=SetMap(OBSERVED, TRAVERSABLE), factory=ModuleFactory(params))
    return planner.factory.create_module("gen", planner, False)


def test_setup_reads_parameters_and_bounding_volume():
    generator = make_generator()
    assert generator.clearing_radius == 1.0
    assert generator.collision_optimistic is False
    assert generator.selector_args == "gen/segment_selector"
    assert generator.updater_args == "gen/generator_updater"
    assert isinstance(generator.bounding_volume, BoundingVolume)
    assert generator.bounding_volume.is_setup is True


def test_outside_bounding_volume_is_not_traversable():
    assert make_generator().check_traversable((10.0, 0.0, 0.0)) is False


def test_observed_positions_follow_the_map():
    generator = make_generator(collision_optimistic=True)
    assert generator.check_traversable((1.0, 0.0, 0.0)) is True
    assert generator.check_traversable((2.0, 0.0, 0.0)) is False


def test_unknown_space_inside_clearing_radius_is_traversable():
    assert make_generator().check_traversable((0.5, 0.0, 0.0)) is True


def test_unknown_space_outside_radius_uses_optimism():
    assert make_generator().check_traversable((3.0, 0.0, 0.0)) is False
    assert make_generator(collision_optimistic=True).check_traversable((3.0, 0.0, 0.0)) is True


def test_clearing_radius_is_measured_from_current_position():
    generator = make_generator()
    generator.planner.current_position = (3.0, 0.5, 0.0)
    assert generator.check_traversable((3.0, 0.0, 0.0)) is True
    assert generator.check_traversable((0.5, 0.0, 0.0)) is False


def test_select_segment_uses_default_selector():
    generator = make_generator()
    root = TrajectorySegment()
    first = root.spawn_child()
    root.spawn_child()
    leaf = first.spawn_child()
    assert generator.select_segment(root) is leaf
    assert isinstance(generator.segment_selector, FirstLeafSelector)


def test_update_segment_uses_default_updater():
    generator = make_generator()
    assert generator.update_segment(TrajectorySegment(gain=1.0)) is True
    assert generator.update_segment(TrajectorySegment(gain=0.0)) is False
    assert isinstance(generator.generator_updater, KeepIfGain)


def test_custom_selector_namespace():
    generator = make_generator(segment_selector_args="elsewhere")
    assert generator.selector_args == "elsewhere"
    with pytest.raises(ConfigError):
        generator.select_segment(TrajectorySegment())


def test_inline_selector_arguments():
    generator = make_generator(segment_selector_args={"type": "GenTestFirstLeaf"})
    root = TrajectorySegment()
    assert generator.select_segment(root) is root


def test_expand_segment_returns_new_children():
    generator = make_generator()
    root = TrajectorySegment()
    new_segments = generator.expand_segment(root)
    assert new_segments == root.children
    assert new_segments[0].parent is root


def test_extract_trajectory_returns_copy_of_segment_trajectory():
    generator = make_generator()
    segment = TrajectorySegment(trajectory=[TrajectoryPoint(position=(1.0, 2.0, 3.0))])
    published = generator.extract_trajectory_to_publish(segment)
    assert published == segment.trajectory
    published.append(TrajectoryPoint())
    assert len(segment.trajectory) == 1


def test_missing_bounding_volume_configuration_fails():
    params = {"gen": {"type": "GenTestGenerator"}}
    planner = Planner(map=SetMap(), factory=ModuleFactory(params))
    with pytest.raises(ConfigError):
        planner.factory.create_module("gen", planner, False)
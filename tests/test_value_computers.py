import math

import pytest

import viewplanner.cost_computers  # noqa: F401  (registers cost computers)
from viewplanner.core import ConfigError, Map, ModuleFactory, Planner, TrajectorySegment
from viewplanner.value_computers import (
    AccumulateValue,
    DiscountedRelativeGain,
    ExponentialDiscount,
    GlobalNormalizedGain,
    LinearValue,
    RelativeGain,
    TrivialGain,
)


class _OpenMap(Map):
    def is_observed(self, position):
        return True

    def is_traversable(self, position):
        return True


@pytest.fixture
def planner():
    return Planner(map=_OpenMap())


def _make(cls, planner, **params):
    module = cls(planner)
    module.setup_from_param_map(params)
    return module


def _chain(*pairs):
    """Build a root-to-leaf chain of (gain, cost) segments and return the leaf."""
    node = None
    for gain, cost in pairs:
        if node is None:
            node = TrajectorySegment(gain=gain, cost=cost)
        else:
            node = node.spawn_child()
            node.gain, node.cost = gain, cost
    return node


def test_trivial_gain_copies_gain(planner):
    segment = TrajectorySegment(gain=12.5, cost=3.0)
    assert _make(TrivialGain, planner).compute_value(segment) is True
    assert segment.value == 12.5


def test_linear_value_without_cost_is_gain(planner):
    segment = TrajectorySegment(gain=8.0, cost=0.0)
    _make(LinearValue, planner).compute_value(segment)
    assert segment.value == pytest.approx(segment.gain)


def test_linear_value_grows_with_gain_shrinks_with_cost(planner):
    computer = _make(LinearValue, planner, gain_weight=2.0, cost_weight=0.5)
    base = TrajectorySegment(gain=3.0, cost=1.0)
    richer = TrajectorySegment(gain=4.0, cost=1.0)
    pricier = TrajectorySegment(gain=3.0, cost=2.0)
    for segment in (base, richer, pricier):
        computer.compute_value(segment)
    assert richer.value > base.value > pricier.value


def test_linear_value_accumulate_gain_adds_parent_gain(planner):
    plain_leaf = _chain((6.0, 1.0), (2.0, 1.0))
    stacked_leaf = _chain((6.0, 1.0), (2.0, 1.0))
    _make(LinearValue, planner).compute_value(plain_leaf)
    _make(LinearValue, planner, accumulate_gain=True).compute_value(stacked_leaf)
    assert stacked_leaf.value - plain_leaf.value == pytest.approx(6.0)


def test_linear_value_accumulate_cost_subtracts_parent_cost(planner):
    plain_leaf = _chain((0.0, 3.0), (2.0, 1.0))
    stacked_leaf = _chain((0.0, 3.0), (2.0, 1.0))
    _make(LinearValue, planner).compute_value(plain_leaf)
    _make(LinearValue, planner, accumulate_cost=True).compute_value(stacked_leaf)
    assert plain_leaf.value - stacked_leaf.value == pytest.approx(3.0)


def test_exponential_discount_pinned(planner):
    segment = TrajectorySegment(gain=1.0, cost=1.0)
    _make(ExponentialDiscount, planner).compute_value(segment)
    assert segment.value == pytest.approx(math.exp(-1.0))


def test_exponential_discount_zero_scale_keeps_gain(planner):
    segment = TrajectorySegment(gain=9.0, cost=40.0)
    _make(ExponentialDiscount, planner, cost_scale=0.0).compute_value(segment)
    assert segment.value == pytest.approx(9.0)


def test_exponential_discount_decreases_with_cost(planner):
    computer = _make(ExponentialDiscount, planner)
    values = []
    for cost in (0.0, 1.0, 2.0, 5.0):
        segment = TrajectorySegment(gain=10.0, cost=cost)
        computer.compute_value(segment)
        values.append(segment.value)
    assert values[0] == pytest.approx(10.0)
    assert values == sorted(values, reverse=True)


def test_exponential_discount_accumulates_ancestors(planner):
    leaf = _chain((1.0, 2.0), (3.0, 4.0))
    flat = TrajectorySegment(gain=4.0, cost=6.0)
    _make(ExponentialDiscount, planner, accumulate_cost=True, accumulate_gain=True).compute_value(leaf)
    _make(ExponentialDiscount, planner).compute_value(flat)
    assert leaf.value == pytest.approx(flat.value)


def test_relative_gain_zero_cost(planner):
    segment = TrajectorySegment(gain=5.0, cost=0.0)
    _make(RelativeGain, planner).compute_value(segment)
    assert segment.value == 0.0


def test_relative_gain_accumulates_by_default(planner):
    leaf = _chain((2.0, 1.0), (4.0, 3.0))
    _make(RelativeGain, planner).compute_value(leaf)
    assert leaf.value == pytest.approx(1.5)


def test_relative_gain_scales_with_gain(planner):
    computer = _make(RelativeGain, planner, accumulate=False)
    single = TrajectorySegment(gain=3.0, cost=7.0)
    double = TrajectorySegment(gain=6.0, cost=7.0)
    computer.compute_value(single)
    computer.compute_value(double)
    assert double.value == pytest.approx(2.0 * single.value)


def test_discounted_relative_gain_without_discount_matches_relative(planner):
    leaf_a = _chain((2.0, 1.0), (4.0, 3.0), (1.0, 2.0))
    leaf_b = _chain((2.0, 1.0), (4.0, 3.0), (1.0, 2.0))
    _make(DiscountedRelativeGain, planner, discount_factor=1.0).compute_value(leaf_a)
    _make(RelativeGain, planner).compute_value(leaf_b)
    assert leaf_a.value == pytest.approx(leaf_b.value)


def test_discounted_relative_gain_zero_discount_counts_root_only(planner):
    computer = _make(DiscountedRelativeGain, planner, discount_factor=0.0)
    low = _chain((5.0, 1.0), (1.0, 1.0))
    high = _chain((5.0, 1.0), (100.0, 1.0))
    computer.compute_value(low)
    computer.compute_value(high)
    assert low.value == pytest.approx(high.value)


def test_discounted_relative_gain_discount_lowers_value(planner):
    discounted = _chain((2.0, 1.0), (4.0, 3.0))
    undiscounted = _chain((2.0, 1.0), (4.0, 3.0))
    _make(DiscountedRelativeGain, planner).compute_value(discounted)
    _make(DiscountedRelativeGain, planner, discount_factor=1.0).compute_value(undiscounted)
    assert discounted.value < undiscounted.value


def test_discounted_relative_gain_zero_cost(planner):
    segment = TrajectorySegment(gain=5.0, cost=0.0)
    _make(DiscountedRelativeGain, planner).compute_value(segment)
    assert segment.value == 0.0


def test_global_normalized_gain_leaf_matches_ratio(planner):
    leaf = _chain((2.0, 1.0), (4.0, 3.0))
    reference = _chain((2.0, 1.0), (4.0, 3.0))
    _make(GlobalNormalizedGain, planner).compute_value(leaf)
    _make(RelativeGain, planner).compute_value(reference)
    assert leaf.value == pytest.approx(reference.value)


def test_global_normalized_gain_prefers_better_descendant(planner):
    computer = _make(GlobalNormalizedGain, planner)
    segment = TrajectorySegment(gain=1.0, cost=1.0)
    computer.compute_value(segment)
    alone = segment.value
    child = segment.spawn_child()
    child.gain, child.cost = 50.0, 1.0
    computer.compute_value(segment)
    assert segment.value > alone
    assert segment.value == pytest.approx(computer.find_best(segment, 0.0, 0.0))


def test_global_normalized_gain_ignores_worse_descendant(planner):
    computer = _make(GlobalNormalizedGain, planner)
    segment = TrajectorySegment(gain=10.0, cost=1.0)
    computer.compute_value(segment)
    alone = segment.value
    child = segment.spawn_child()
    child.gain, child.cost = 0.0, 100.0
    computer.compute_value(segment)
    assert segment.value == pytest.approx(alone)


def test_global_normalized_gain_zero_cost(planner):
    assert _make(GlobalNormalizedGain, planner).find_best(TrajectorySegment(gain=3.0), 0.0, 0.0) == 0.0


def test_accumulate_value_adds_parent_value(planner):
    planner.factory = ModuleFactory({"/values/following_value_computer": {"type": "TrivialGain"}})
    computer = _make(AccumulateValue, planner, param_namespace="/values")
    parent = TrajectorySegment(gain=1.0, value=7.0)
    child = parent.spawn_child()
    child.gain = 2.0
    assert computer.compute_value(child) is True
    assert child.value == pytest.approx(9.0)


def test_accumulate_value_root_uses_following(planner):
    planner.factory = ModuleFactory({"/values/following_value_computer": {"type": "TrivialGain"}})
    computer = _make(AccumulateValue, planner, param_namespace="/values")
    root = TrajectorySegment(gain=4.0)
    computer.compute_value(root)
    assert root.value == pytest.approx(4.0)


def test_accumulate_value_explicit_following_args(planner):
    planner.factory = ModuleFactory({"/mine": {"type": "LinearValue", "cost_weight": 0.0}})
    computer = _make(AccumulateValue, planner, following_value_computer_args="/mine")
    segment = TrajectorySegment(gain=3.0, cost=10.0)
    computer.compute_value(segment)
    assert segment.value == pytest.approx(3.0)


def test_accumulate_value_missing_following(planner):
    with pytest.raises(ConfigError):
        _make(AccumulateValue, planner, param_namespace="/nowhere")


def test_accumulate_value_wrong_following_type(planner):
    planner.factory = ModuleFactory({"/values/following_value_computer": {"type": "NoCost"}})
    with pytest.raises(ConfigError):
        _make(AccumulateValue, planner, param_namespace="/values")
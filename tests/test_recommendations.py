import math

import numpy as np
import pytest

import aim_engine.expected_strokes as es
from aim_engine.config import CEMParams, FullGridParams, OptimizerConfig, RingGridParams
from aim_engine.geo import METERS_PER_DEG_LAT, METERS_PER_YARD, haversine_m, offset
from aim_engine.mask import BBox, MaskBuffer
from aim_engine.optimizer import Optimizer, OptimizerState, SearchContext, optimize
from aim_engine.strategies import STRATEGIES, full_grid_offsets, ring_offsets
from aim_engine.types import GeoPoint, SkillPreset, TerrainClass

START = GeoPoint(0.0, 0.0)
PIN = offset(START, 250 * METERS_PER_YARD, 0.0)
SKILL = SkillPreset("Test", 5.9, 4.7)


def _fairway_mask():
    box = BBox(west=-0.01, south=-0.01, east=0.01, north=0.01)
    return MaskBuffer.from_class_grid(np.full((4, 4), int(TerrainClass.FAIRWAY)), box)


def _water_circle_mask(center_north_m=110.0, radius_m=35.0):
    """Fairway everywhere except a pond straddling the start->pin line."""
    box = BBox(west=-0.0015, south=-0.0005, east=0.0015, north=0.0025)
    h, w = 150, 150
    lat = box.north - (np.arange(h) + 0.5) / h * (box.north - box.south)
    lon = box.west + (np.arange(w) + 0.5) / w * (box.east - box.west)
    north, east = np.meshgrid(lat * METERS_PER_DEG_LAT, lon * METERS_PER_DEG_LAT, indexing="ij")
    pond = (north - center_north_m) ** 2 + east ** 2 <= radius_m ** 2
    grid = np.where(pond, int(TerrainClass.WATER), int(TerrainClass.FAIRWAY))
    return MaskBuffer.from_class_grid(grid, box)


def _coarse_ring_config(**overrides):
    params = dict(
        strategy="RingGrid",
        max_distance_yards=150,
        early_sample_count=60,
        final_sample_count=120,
        ring=RingGridParams(
            ring_step_m=20,
            arc_spacing_m=20,
            min_points_per_ring=9,
            refine_top_seeds=2,
            refine_steps=3,
            random_cover=0,
        ),
    )
    params.update(overrides)
    return OptimizerConfig(**params)


def test_candidates_sorted_by_mean_then_ci():
    ranked = optimize(START, PIN, SKILL, _water_circle_mask(), _coarse_ring_config())

    assert ranked
    assert len(ranked) <= 5
    for a, b in zip(ranked, ranked[1:]):
        assert a.sort_key <= b.sort_key


def test_pond_on_the_line_is_avoided():
    ranked = optimize(START, PIN, SKILL, _water_circle_mask(), _coarse_ring_config())

    best = ranked[0].evaluation
    assert best.dominant_class != TerrainClass.WATER
    assert best.share(TerrainClass.WATER) < 0.5


def test_candidates_respect_distance_and_separation():
    config = _coarse_ring_config()
    ranked = optimize(START, PIN, SKILL, _water_circle_mask(), config)

    for c in ranked:
        assert c.distance_from_start <= config.max_distance_yards + 1e-6
        assert c.plays_like_yards == pytest.approx(c.distance_from_start)
        assert c.evaluation.n <= config.final_sample_count
    for i, a in enumerate(ranked):
        for b in ranked[i + 1:]:
            assert haversine_m(a.position, b.position) >= config.min_separation_meters


def test_worker_pool_does_not_change_results():
    serial = optimize(START, PIN, SKILL, _water_circle_mask(), _coarse_ring_config(workers=1))
    pooled = optimize(START, PIN, SKILL, _water_circle_mask(), _coarse_ring_config(workers=3))
    assert pooled == serial


def test_full_grid_prefers_the_farthest_forward_node_on_flat_fairway():
    config = OptimizerConfig(
        strategy="FullGrid",
        max_distance_yards=100,
        early_sample_count=60,
        final_sample_count=100,
        disallow_farther_than_pin=True,
        grid=FullGridParams(spacing_m=25),
    )
    ranked = optimize(START, PIN, SKILL, _fairway_mask(), config)

    assert ranked
    assert ranked[0].distance_from_start > 80
    assert all(c.position.lat > START.lat for c in ranked)


def test_cem_improves_on_laying_up_short():
    config = OptimizerConfig(
        strategy="CEM",
        max_distance_yards=100,
        early_sample_count=60,
        final_sample_count=100,
        cem=CEMParams(iterations=4, population=16),
    )
    ranked = optimize(START, PIN, SKILL, _fairway_mask(), config)

    assert ranked
    assert ranked[0].evaluation.mean < es.expected_strokes(250, surface="fairway")
    assert all(c.distance_from_start <= 100 + 1e-6 for c in ranked)


def test_cem_is_deterministic_for_a_seed():
    config = OptimizerConfig(
        strategy="CEM",
        max_distance_yards=100,
        early_sample_count=60,
        final_sample_count=100,
        seed=11,
        cem=CEMParams(iterations=3, population=12, isotropic=True),
    )
    first = optimize(START, PIN, SKILL, _fairway_mask(), config)
    second = optimize(START, PIN, SKILL, _fairway_mask(), config)
    assert first == second


def test_optimizer_state_after_run():
    optimizer = Optimizer()
    assert optimizer.state == OptimizerState.IDLE
    outcome = optimizer.run(START, PIN, SKILL, _fairway_mask(), _coarse_ring_config())
    assert outcome.state == OptimizerState.DONE
    assert optimizer.state == OptimizerState.DONE
    assert outcome.evaluations > len(outcome.candidates)


def test_full_grid_lattice_shape():
    nodes = full_grid_offsets(100.0, 10.0, forward_only=True)
    assert nodes
    assert all(1.0 <= r <= 100.0 for r, _ in nodes)
    assert all(abs(a) <= math.pi / 2 + 1e-12 for _, a in nodes)
    assert len(full_grid_offsets(100.0, 10.0)) > len(nodes)


def test_ring_layout():
    rings = ring_offsets(100.0, 10.0, 10.0, 16)
    assert len(rings) == 10
    assert len(rings[0]) == 16
    assert len(rings[-1]) == round(math.pi * 100.0 / 10.0)
    for ring in rings:
        angles = [a for _, a in ring]
        assert angles[0] == pytest.approx(-math.pi / 2)
        assert angles[-1] == pytest.approx(math.pi / 2)


@pytest.mark.parametrize("strategy", ["FullGrid", "RingGrid", "CEM"])
def test_aims_past_a_short_pin_are_never_evaluated(strategy):
    pin = offset(START, 40 * METERS_PER_YARD, 0.0)
    config = OptimizerConfig(
        strategy=strategy,
        max_distance_yards=300,
        early_sample_count=40,
        disallow_farther_than_pin=True,
        ring=RingGridParams(random_cover=50),
    )
    optimizer = Optimizer()
    ctx = SearchContext(
        optimizer, optimizer.generation, START, pin, SKILL, _fairway_mask(), config,
        lambda pct, note: None,
    )
    evaluated = STRATEGIES[config.strategy](ctx)

    assert evaluated
    assert ctx.radius_m == pytest.approx(haversine_m(START, pin))
    assert max(c.distance_from_start for c in evaluated) <= 40.0

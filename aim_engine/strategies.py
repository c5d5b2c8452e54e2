"""
Aim-point proposal strategies.

Each strategy receives a search context (see ``optimizer.SearchContext``) and
returns every candidate it evaluated with the early sample budget. Geometry is
expressed relative to the start point: a radius in meters and an angle offset
from the start->pin bearing (positive = clockwise / right of the line). R is
the context's search radius: the max shot distance, capped at the pin when aims
past it are disallowed.

  FullGrid  square lattice over the disc of radius R (forward half only when
            aims past the pin are disallowed)
  RingGrid  concentric rings over the forward half-disc, a micro-grid around
            the best seeds, then seeded random coverage of the half-disc
  CEM       cross-entropy method over a 2D Gaussian in (radius, angle)
"""

from __future__ import annotations

import math
from typing import List

import numpy as np

from .config import Strategy
from .logging import get_logger
from .types import Candidate

logger = get_logger(__name__)

HALF_PI = math.pi / 2.0


# ============================================================
# FullGrid
# ============================================================

def full_grid_offsets(radius_m, spacing_m, forward_only=False, min_radius_m=1.0):
    """(radius, angle) of every lattice node inside the disc, in row-major order.

    The lattice is axis-aligned with the start->pin line (x along it, y across).
    """
    n = int(math.ceil(radius_m / spacing_m))
    nodes = []
    for ix in range(-n, n + 1):
        for iy in range(-n, n + 1):
            along = ix * spacing_m
            across = iy * spacing_m
            r = math.hypot(along, across)
            if r < min_radius_m or r > radius_m:
                continue
            if forward_only and along < 0.0:
                continue
            nodes.append((r, math.atan2(across, along)))
    return nodes


def full_grid(ctx) -> List[Candidate]:
    params = ctx.config.grid
    forward_only = ctx.config.disallow_farther_than_pin
    nodes = full_grid_offsets(ctx.radius_m, params.spacing_m, forward_only, ctx.min_radius_m)
    logger.info("FullGrid: %d lattice nodes at %.1f m spacing", len(nodes), params.spacing_m)

    evaluated = []
    chunk = 64
    for i in range(0, len(nodes), chunk):
        batch = nodes[i:i + chunk]
        evaluated.extend(ctx.evaluate_batch([ctx.point_at(r, a) for r, a in batch]))
        done = min(len(nodes), i + chunk)
        ctx.search_progress(done / max(1, len(nodes)), f"Grid {done}/{len(nodes)}")
    return evaluated


# ============================================================
# RingGrid
# ============================================================

def ring_offsets(radius_m, ring_step_m, arc_spacing_m, min_points):
    """Rings k*step (k >= 1, <= R) across the forward half-disc, theta in [-90, +90] deg."""
    rings = []
    k = 1
    while k * ring_step_m <= radius_m + 1e-9:
        r = k * ring_step_m
        count = max(min_points, int(round(math.pi * r / arc_spacing_m)))
        rings.append([(r, (i / (count - 1)) * math.pi - HALF_PI) for i in range(count)])
        k += 1
    return rings


def _micro_grid(ctx, seed: Candidate, radius_m, steps):
    """steps x steps grid of points around `seed`, centre excluded, clipped to the disc."""
    half = steps // 2
    step = radius_m / steps
    base_r, base_a = ctx.polar_of(seed.position)
    along0 = base_r * math.cos(base_a)
    across0 = base_r * math.sin(base_a)
    points = []
    for gx in range(steps):
        for gy in range(steps):
            if gx == half and gy == half:
                continue
            along = along0 + (gx - half) * step
            across = across0 + (gy - half) * step
            r = math.hypot(along, across)
            if r < ctx.min_radius_m or r > ctx.radius_m:
                continue
            points.append(ctx.point_at(r, math.atan2(across, along)))
    return points


def ring_grid(ctx) -> List[Candidate]:
    params = ctx.config.ring
    R = ctx.radius_m
    refine_radius = params.refine_radius_m or max(0.03 * R, 9.0)

    # phase 1: rings (70% of the search progress)
    rings = ring_offsets(R, params.ring_step_m, params.arc_spacing_m, params.min_points_per_ring)
    evaluated = []
    for k, ring in enumerate(rings, start=1):
        evaluated.extend(ctx.evaluate_batch([ctx.point_at(r, a) for r, a in ring]))
        ctx.search_progress(0.7 * k / max(1, len(rings)), f"Ring {k}/{len(rings)}")

    # phase 2: micro-grid refinement around the best seeds
    seeds = sorted(evaluated, key=lambda c: c.sort_key)[:params.refine_top_seeds]
    for i, seed in enumerate(seeds, start=1):
        points = _micro_grid(ctx, seed, refine_radius, params.refine_steps)
        evaluated.extend(ctx.evaluate_batch(points))
        ctx.search_progress(0.7 + 0.2 * i / len(seeds), f"Refining {i}/{len(seeds)}")

    # phase 3: random coverage of the half-disc, sqrt-radial for uniform area
    if params.random_cover:
        u = ctx.rng.random((params.random_cover, 2))
        radii = np.sqrt(u[:, 0]) * R
        angles = (u[:, 1] - 0.5) * math.pi
        points = [
            ctx.point_at(float(r), float(a))
            for r, a in zip(radii, angles)
            if r >= ctx.min_radius_m
        ]
        evaluated.extend(ctx.evaluate_batch(points))
    ctx.search_progress(1.0, "Coverage pass complete")

    logger.info(
        "RingGrid: %d rings, %d seeds refined, %d candidates evaluated",
        len(rings), len(seeds), len(evaluated),
    )
    return evaluated


# ============================================================
# CEM
# ============================================================

def _draw_population(ctx, mean, cov, size, max_angle):
    """Gaussian draws in (radius, angle) kept only inside the feasible sector."""
    rng = ctx.rng
    kept = []
    attempts = 0
    while len(kept) < size and attempts < size * 5:
        draws = rng.multivariate_normal(mean, cov, size=size)
        attempts += size
        for r, a in draws:
            if ctx.min_radius_m <= r <= ctx.radius_m and abs(a) <= max_angle:
                kept.append((float(r), float(a)))
                if len(kept) == size:
                    break
    return kept


def _refit(elite: np.ndarray, params, floor_m):
    """Mean / covariance of the elite set with the spread floored at `floor_m`."""
    mean = elite.mean(axis=0)
    mean_r = max(float(mean[0]), floor_m)
    if params.isotropic:
        # one metric sigma shared by the radial and (arc-length) angular axes
        d_r = elite[:, 0] - mean[0]
        d_arc = (elite[:, 1] - mean[1]) * mean_r
        var_m = float(np.mean((d_r ** 2 + d_arc ** 2) / 2.0))
        var_m = max(var_m, floor_m ** 2)
        cov = np.diag([var_m, var_m / mean_r ** 2])
    else:
        if len(elite) > 1:
            cov = np.cov(elite.T, bias=True)
        else:
            cov = np.zeros((2, 2))
        cov[0, 0] = max(cov[0, 0], floor_m ** 2)
        cov[1, 1] = max(cov[1, 1], (floor_m / mean_r) ** 2)
    return mean, cov


def cem(ctx) -> List[Candidate]:
    params = ctx.config.cem
    R = ctx.radius_m
    max_angle = HALF_PI if ctx.config.disallow_farther_than_pin else math.pi

    init_r = min(params.init_ratio * ctx.pin_distance_m, 0.8 * R)
    mean = np.array([max(init_r, ctx.min_radius_m), 0.0])
    cov = np.diag([(params.init_sigma_ratio * R) ** 2, params.init_sigma_angle ** 2])
    floor_m = params.sigma_floor_m

    evaluated = []
    best = math.inf
    stagnation = 0
    iterations_run = 0
    for it in range(params.iterations):
        population = _draw_population(ctx, mean, cov, params.population, max_angle)
        if not population:
            logger.debug("CEM: empty population at iteration %d", it)
            break

        batch = ctx.evaluate_batch([ctx.point_at(r, a) for r, a in population])
        iterations_run += 1
        evaluated.extend(batch)
        ctx.search_progress((it + 1) / params.iterations, f"CEM iteration {it + 1}/{params.iterations}")
        if not batch:
            break

        ranked = sorted(batch, key=lambda c: c.sort_key)
        n_elite = max(1, int(len(ranked) * params.elite_fraction))
        elite = np.array([ctx.polar_of(c.position) for c in ranked[:n_elite]])

        current = ranked[0].evaluation.mean
        improvement = best - current
        best = min(best, current)
        stagnation = stagnation + 1 if improvement < params.convergence_threshold else 0
        if stagnation >= params.stagnation_limit:
            logger.debug("CEM: stagnated after %d iterations (best %.4f)", it + 1, best)
            break

        mean, cov = _refit(elite, params, floor_m)
        floor_m = max(params.sigma_floor_min_m, floor_m * params.sigma_floor_decay)

    ctx.search_progress(1.0, "CEM complete")
    logger.info("CEM: %d iterations, %d candidates evaluated", iterations_run, len(evaluated))
    return evaluated


STRATEGIES = {
    Strategy.FULL_GRID: full_grid,
    Strategy.RING_GRID: ring_grid,
    Strategy.CEM: cem,
}

"""
Aim-point optimizer.

Pipeline for one run:

  1. the configured strategy proposes aims and evaluates each with the early
     sample budget (CI95 stop enabled)
  2. candidates are ranked by (mean, ci95) and the best `screen_pool` are
     passed through the plays-like / separation filter
  3. the first `final_top_k` survivors are re-evaluated with the final budget
     and returned best-first

Every run carries a generation number. cancel() or starting a new run bumps the
generation; a run whose generation is stale stops at its next check, drops its
in-flight results and ends Cancelled. Progress callbacks for a stale run are
never delivered.
"""

from __future__ import annotations

import asyncio
import math
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, Iterator, List, Optional, Sequence, Tuple, Union

import numpy as np

from .config import OptimizerConfig
from .errors import EngineError, InputError, OptimizationCancelled, OptimizationFailed
from .evaluation import MIN_SHOT_METERS, evaluate_shot, validate_shot_inputs
from .expected_strokes import ExpectedStrokesModel
from .feasibility import ElevationLookup, filter_candidates
from .geo import angle_diff, bearing_rad, distance_yards, haversine_m, offset, to_local, yards_to_meters
from .logging import get_logger
from .mask import MaskBuffer
from .stats import StoppingRule
from .strategies import STRATEGIES
from .types import Candidate, GeoPoint, SkillPreset

logger = get_logger(__name__)

SEARCH_SHARE = 80.0  # percent of the progress bar spent in the strategy search
SCREEN_PCT = 82.0
FINAL_PCT = 85.0


class OptimizerState(str, Enum):
    IDLE = "Idle"
    SEARCHING = "Searching"
    DONE = "Done"
    CANCELLED = "Cancelled"
    ERRORED = "Errored"


# ============================================================
# Events
# ============================================================

@dataclass(frozen=True)
class Progress:
    pct: float
    note: str


@dataclass(frozen=True)
class Done:
    candidates: Tuple[Candidate, ...]


@dataclass(frozen=True)
class Errored:
    error: BaseException


@dataclass(frozen=True)
class Cancelled:
    pass


RunEvent = Union[Progress, Done, Errored, Cancelled]
ProgressCallback = Callable[[Progress], None]


@dataclass(frozen=True)
class OptimizationOutcome:
    state: OptimizerState
    candidates: Tuple[Candidate, ...] = ()
    error: Optional[BaseException] = None
    evaluations: int = 0

    def event(self) -> RunEvent:
        if self.state == OptimizerState.DONE:
            return Done(self.candidates)
        if self.state == OptimizerState.ERRORED:
            return Errored(self.error)
        return Cancelled()


# ============================================================
# Search context handed to strategies
# ============================================================

class SearchContext:
    """Geometry, evaluation and progress plumbing for one optimizer run."""

    def __init__(self, optimizer, generation, start, pin, skill, mask, config, progress, pool=None):
        self._optimizer = optimizer
        self._generation = generation
        self._progress = progress
        self._pool = pool
        self.start = start
        self.pin = pin
        self.skill = skill
        self.mask = mask
        self.config = config
        self.model = ExpectedStrokesModel()
        self.rng = np.random.default_rng(config.seed)
        self.evaluations = 0

        self.min_radius_m = MIN_SHOT_METERS
        self.pin_distance_m = haversine_m(start, pin)
        self.forward = bearing_rad(start, pin)
        # search radius; aims past the pin are never proposed when they are disallowed
        self.radius_m = yards_to_meters(config.max_distance_yards)
        if config.disallow_farther_than_pin:
            self.radius_m = min(self.radius_m, self.pin_distance_m)

    # ---------- geometry ----------

    def point_at(self, radius_m, angle) -> GeoPoint:
        """Point `radius_m` from start, `angle` radians clockwise of the pin line."""
        return offset(self.start, radius_m, self.forward + angle)

    def polar_of(self, point: GeoPoint):
        local = to_local(point, self.start)
        bearing = math.atan2(local.x, local.y)
        return math.hypot(local.x, local.y), angle_diff(bearing, self.forward)

    # ---------- control ----------

    def check(self):
        if not self._optimizer.is_current(self._generation):
            raise OptimizationCancelled("optimization superseded or cancelled")

    def report(self, pct, note):
        self._progress(pct, note)

    def search_progress(self, fraction, note):
        self.check()
        self.report(SEARCH_SHARE * min(1.0, max(0.0, fraction)), note)

    # ---------- evaluation ----------

    def _rule(self, budget) -> StoppingRule:
        return StoppingRule(
            max_samples=budget,
            min_samples=min(self.config.min_samples, budget),
            epsilon=self.config.ci95_stop_threshold,
        )

    def _evaluate_one(self, aim: GeoPoint, rule: StoppingRule) -> Optional[Candidate]:
        self.check()
        try:
            result = evaluate_shot(
                self.start, aim, self.pin, self.skill, self.mask, rule, self.model,
                self.config.multipliers,
            )
        except InputError:
            # aim collapsed onto the start point
            return None
        self.check()
        return Candidate(position=aim, evaluation=result, distance_from_start=result.distance_yards)

    def evaluate_batch(self, aims: Sequence[GeoPoint], budget=None) -> List[Candidate]:
        """Evaluate `aims` in input order; degenerate aims are dropped."""
        rule = self._rule(budget or self.config.early_sample_count)
        if self._pool is None:
            results = [self._evaluate_one(aim, rule) for aim in aims]
        else:
            futures = [self._pool.submit(self._evaluate_one, aim, rule) for aim in aims]
            try:
                results = [f.result() for f in futures]
            except BaseException:
                for f in futures:
                    f.cancel()
                raise
        self.evaluations += len(aims)
        return [c for c in results if c is not None]


class _ProgressReporter:
    """Monotonic, generation-gated progress delivery."""

    def __init__(self, optimizer, generation, callback: Optional[ProgressCallback]):
        self._optimizer = optimizer
        self._generation = generation
        self._callback = callback
        self._last = 0.0

    def __call__(self, pct, note):
        if self._callback is None:
            return
        # the optimizer lock is re-entrant, so a callback may call cancel()
        with self._optimizer._lock:
            if not self._optimizer.is_current(self._generation):
                return
            self._last = min(100.0, max(self._last, float(pct)))
            self._callback(Progress(self._last, note))


# ============================================================
# Optimizer
# ============================================================

class Optimizer:
    def __init__(self):
        self._lock = threading.RLock()
        self._generation = 0
        self.state = OptimizerState.IDLE

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation) -> bool:
        return generation == self._generation

    def _next_generation(self) -> int:
        with self._lock:
            self._generation += 1
            self.state = OptimizerState.SEARCHING
            return self._generation

    def cancel(self) -> None:
        """Cancel the in-flight run, if any. Idempotent."""
        with self._lock:
            self._generation += 1
            if self.state == OptimizerState.SEARCHING:
                self.state = OptimizerState.CANCELLED
                logger.info("optimization cancelled")

    def _finish(self, generation, state) -> bool:
        with self._lock:
            if not self.is_current(generation):
                return False
            self.state = state
            return True

    # ---------- entry points ----------

    def run(
        self,
        start: GeoPoint,
        pin: GeoPoint,
        skill: SkillPreset,
        mask: Optional[MaskBuffer],
        config: Optional[OptimizerConfig] = None,
        elevation_lookup: Optional[ElevationLookup] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> OptimizationOutcome:
        """
        Run one optimization on the calling thread.

        Bad inputs raise InputError before any work starts. Everything else is
        reported through the returned outcome (Done / Cancelled / Errored).
        Must not be called from inside a running event loop; use start().
        """
        config = config or OptimizerConfig()
        _validate_run(start, pin, skill, mask, config)
        generation = self._next_generation()
        return self._execute(generation, start, pin, skill, mask, config, elevation_lookup, on_progress)

    def start(
        self,
        start: GeoPoint,
        pin: GeoPoint,
        skill: SkillPreset,
        mask: Optional[MaskBuffer],
        config: Optional[OptimizerConfig] = None,
        elevation_lookup: Optional[ElevationLookup] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> "OptimizerRun":
        """Start a run on a background thread; any earlier run is superseded."""
        config = config or OptimizerConfig()
        _validate_run(start, pin, skill, mask, config)
        generation = self._next_generation()
        events: "queue.Queue[RunEvent]" = queue.Queue()

        def forward(progress: Progress):
            events.put(progress)
            if on_progress is not None:
                on_progress(progress)

        def work():
            outcome = self._execute(generation, start, pin, skill, mask, config, elevation_lookup, forward)
            events.put(outcome.event())
            return outcome

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="aim-optimizer")
        future = executor.submit(work)
        executor.shutdown(wait=False)
        return OptimizerRun(self, generation, future, events)

    # ---------- pipeline ----------

    def _execute(self, generation, start, pin, skill, mask, config, lookup, on_progress) -> OptimizationOutcome:
        progress = _ProgressReporter(self, generation, on_progress)
        t0 = time.perf_counter()
        logger.info(
            "optimization started: strategy=%s max=%.0f yds pin=%.1f yds workers=%d",
            config.strategy.value, config.max_distance_yards,
            distance_yards(start, pin), config.workers,
        )
        if mask is None:
            logger.warning("no terrain mask supplied; scoring every landing as rough")

        pool = ThreadPoolExecutor(max_workers=config.workers) if config.workers > 1 else None
        ctx = SearchContext(self, generation, start, pin, skill, mask, config, progress, pool)
        try:
            candidates = self._pipeline(ctx, lookup)
            with self._lock:
                ctx.check()
                self._finish(generation, OptimizerState.DONE)
                progress(100.0, "Done")
        except OptimizationCancelled:
            logger.info("optimization run %d cancelled after %d evaluations", generation, ctx.evaluations)
            return OptimizationOutcome(OptimizerState.CANCELLED, evaluations=ctx.evaluations)
        except Exception as exc:
            logger.exception("optimization run %d failed", generation)
            self._finish(generation, OptimizerState.ERRORED)
            error = exc if isinstance(exc, EngineError) else OptimizationFailed(str(exc), config.strategy)
            if error is not exc:
                error.__cause__ = exc
            return OptimizationOutcome(OptimizerState.ERRORED, error=error, evaluations=ctx.evaluations)
        finally:
            if pool is not None:
                pool.shutdown(wait=True, cancel_futures=True)

        logger.info(
            "optimization finished: %d candidates from %d evaluations in %.2fs",
            len(candidates), ctx.evaluations, time.perf_counter() - t0,
        )
        return OptimizationOutcome(OptimizerState.DONE, tuple(candidates), evaluations=ctx.evaluations)

    def _pipeline(self, ctx: SearchContext, lookup) -> List[Candidate]:
        config = ctx.config
        ctx.report(0.0, f"{config.strategy.value} search")
        early = STRATEGIES[config.strategy](ctx)
        ctx.check()

        ranked = sorted(early, key=lambda c: c.sort_key)[:config.screen_pool]
        ctx.report(SCREEN_PCT, f"Screening {len(ranked)} candidates")
        survivors = asyncio.run(
            filter_candidates(ranked, ctx.start, ctx.pin, lookup, config, limit=config.final_top_k)
        )
        ctx.check()
        logger.debug("%d early candidates, %d after screening", len(early), len(survivors))

        ctx.report(FINAL_PCT, f"Final pass on {len(survivors)} candidates")
        final_evals = ctx.evaluate_batch([c.position for c in survivors], budget=config.final_sample_count)
        by_position = {c.position: c for c in survivors}
        final = [
            replace(by_position[f.position], evaluation=f.evaluation)
            for f in final_evals
        ]
        final.sort(key=lambda c: c.sort_key)
        return final


class OptimizerRun:
    """Handle on a background run started with :meth:`Optimizer.start`."""

    def __init__(self, optimizer: Optimizer, generation, future, events):
        self._optimizer = optimizer
        self.generation = generation
        self._future = future
        self._events = events

    def cancel(self) -> None:
        # only this run; a newer run on the same optimizer is left alone
        with self._optimizer._lock:
            if self._optimizer.is_current(self.generation):
                self._optimizer.cancel()

    def done(self) -> bool:
        return self._future.done()

    def outcome(self, timeout=None) -> OptimizationOutcome:
        return self._future.result(timeout)

    @property
    def state(self) -> OptimizerState:
        if not self._future.done():
            if self._optimizer.is_current(self.generation):
                return OptimizerState.SEARCHING
            return OptimizerState.CANCELLED
        return self._future.result().state

    def result(self, timeout=None) -> List[Candidate]:
        """Final candidates; raises OptimizationCancelled or the run's error."""
        outcome = self.outcome(timeout)
        if outcome.state == OptimizerState.CANCELLED:
            raise OptimizationCancelled("optimization was cancelled")
        if outcome.state == OptimizerState.ERRORED:
            raise outcome.error
        return list(outcome.candidates)

    def events(self, timeout=None) -> Iterator[RunEvent]:
        """Progress events followed by exactly one terminal Done/Errored/Cancelled."""
        while True:
            event = self._events.get(timeout=timeout)
            yield event
            if not isinstance(event, Progress):
                return


def _validate_run(start, pin, skill, mask, config: OptimizerConfig):
    validate_shot_inputs(start, start, pin, skill, mask, config.multipliers)
    config.validate()


def optimize(
    start: GeoPoint,
    pin: GeoPoint,
    skill: SkillPreset,
    mask: Optional[MaskBuffer],
    config: Optional[OptimizerConfig] = None,
    elevation_lookup: Optional[ElevationLookup] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> List[Candidate]:
    """Blocking one-shot optimization returning candidates best-first."""
    outcome = Optimizer().run(start, pin, skill, mask, config, elevation_lookup, on_progress)
    if outcome.state == OptimizerState.ERRORED:
        raise outcome.error
    if outcome.state == OptimizerState.CANCELLED:
        raise OptimizationCancelled("optimization was cancelled")
    return list(outcome.candidates)

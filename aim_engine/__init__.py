"""
aim_engine: Monte-Carlo dispersion scoring and aim-point optimization for golf shots.

Typical use:

    from aim_engine import GeoPoint, OptimizerConfig, get_skill_preset, optimize

    best = optimize(start, pin, get_skill_preset("Good"), mask, OptimizerConfig())
"""

from .config import CEMParams, FullGridParams, OptimizerConfig, RingGridParams, Strategy
from .errors import (
    DataUnavailable,
    EngineError,
    InputError,
    OptimizationCancelled,
    OptimizationFailed,
)
from .evaluation import evaluate, iter_stroke_samples
from .expected_strokes import ExpectedStrokesModel, strokes_for_class
from .mask import BBox, MaskBuffer, classify
from .optimizer import (
    Cancelled,
    Done,
    Errored,
    OptimizationOutcome,
    Optimizer,
    OptimizerRun,
    OptimizerState,
    Progress,
    optimize,
)
from .sampling import generate
from .skills import SKILL_PRESETS, DispersionMultipliers, get_skill_preset
from .types import (
    Candidate,
    EllipseParams,
    EvaluationResult,
    GeoPoint,
    SkillPreset,
    TerrainClass,
)

__version__ = "0.1.0"

"""Error taxonomy for the dispersion engine.

- InputError:            bad caller input, rejected before any sampling starts
- DataUnavailable:       a collaborator (mask supplier, elevation lookup) had nothing
                         to give; the engine degrades instead of failing
- OptimizationCancelled: the run was cancelled or superseded by a newer one
- OptimizationFailed:    unexpected failure inside a run
"""


class EngineError(Exception):
    """Base class for every error raised by aim_engine."""


class InputError(EngineError, ValueError):
    pass


class DataUnavailable(EngineError):
    pass


class OptimizationCancelled(EngineError):
    pass


class OptimizationFailed(EngineError, RuntimeError):
    def __init__(self, message, strategy=None):
        super().__init__(message)
        self.strategy = strategy

"""
Exception types raised by Grove.

Every error a tuning run can surface derives from GroveError, so callers can
catch the whole family at once. Validation errors also derive from ValueError
and fit failures from RuntimeError.
"""

from typing import Any, Dict, Optional, Union


class GroveError(Exception):
    """Base class for all Grove errors."""


class InvalidGridError(GroveError, ValueError):
    """The hyperparameter grid is empty or has a name with no candidate values."""


class UnsupportedResamplingError(GroveError, ValueError):
    """The resampling plan needs a capability the model family does not have."""


class InvalidResamplingError(GroveError, ValueError):
    """The resampling plan cannot be applied to the data (e.g. k < 2 or k > rows)."""


class IncompatibleMetricError(GroveError, ValueError):
    """The metric was declared for a different task than the label implies."""


class ModelFitError(GroveError, RuntimeError):
    """
    A fit, predict or scoring step failed during tuning.
    
    Attributes:
        configuration: Hyperparameters of the configuration being evaluated
        fold: Index of the held-out fold, or None outside k-fold evaluation
        stage: Which step failed: 'cv', 'oob' or 'refit'
    """
    
    def __init__(
        self,
        message: str,
        configuration: Optional[Dict[str, Any]] = None,
        fold: Optional[int] = None,
        stage: str = "cv"
    ) -> None:
        super().__init__(message)
        self.message = message
        self.configuration = dict(configuration) if configuration else {}
        self.fold = fold
        self.stage = stage
    
    def __reduce__(self):
        # Keeps the attributes intact when raised inside a joblib worker
        return (
            self.__class__,
            (self.message, self.configuration, self.fold, self.stage)
        )
    
    def __str__(self) -> str:
        where: Union[str, int] = self.stage if self.fold is None else f"fold {self.fold}"
        return f"{self.message} [{where}, configuration={self.configuration}]"

"""
Grove: tree-ensemble tuning and comparison

Grid-search tuning with out-of-bag or k-fold resampling for decision trees,
bagging, random forests and gradient boosting, compared against linear and
logistic regression baselines.
"""

__version__ = "0.1.0"
__author__ = "Grove"

from .exceptions import (
    GroveError,
    IncompatibleMetricError,
    InvalidGridError,
    InvalidResamplingError,
    ModelFitError,
    UnsupportedResamplingError,
)
from .evaluation.resampling import KFoldResampling, OutOfBagResampling
from .tuning.grid import ParameterGrid
from .tuning.grid_tuner import CancellationToken, GridSearchTuner, TuningResult, tune

__all__ = [
    "GroveError",
    "IncompatibleMetricError",
    "InvalidGridError",
    "InvalidResamplingError",
    "ModelFitError",
    "UnsupportedResamplingError",
    "KFoldResampling",
    "OutOfBagResampling",
    "ParameterGrid",
    "CancellationToken",
    "GridSearchTuner",
    "TuningResult",
    "tune",
]

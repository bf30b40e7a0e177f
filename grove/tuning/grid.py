"""
Hyperparameter grids.

A grid is an ordered mapping of hyperparameter names to candidate values.
Configurations are enumerated as the cross product with the first name
varying slowest, in the order the names were supplied. Unlike
scikit-learn's ParameterGrid the names are never re-sorted, so the
leaderboard follows the caller's layout.
"""

import itertools
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

import numpy as np

from ..exceptions import InvalidGridError


class ParameterGrid:
    """
    Ordered cross product of candidate hyperparameter values.

    Args:
        grid: Mapping of name -> candidate values. A scalar or string value
            is treated as a single candidate.

    Raises:
        InvalidGridError: If the grid is empty or any name has no candidates
    """

    def __init__(self, grid: Mapping[str, Any]) -> None:
        if isinstance(grid, ParameterGrid):
            grid = grid.param_grid

        if not isinstance(grid, Mapping):
            raise InvalidGridError(f"Grid must be a mapping of name -> values, got {type(grid).__name__}")

        if not grid:
            raise InvalidGridError("Grid is empty; give at least one hyperparameter")

        self.param_grid: Dict[str, List[Any]] = {}
        for name, values in grid.items():
            if not isinstance(name, str) or not name:
                raise InvalidGridError(f"Hyperparameter names must be non-empty strings, got {name!r}")

            candidates = self._as_candidates(values)
            if not candidates:
                raise InvalidGridError(f"Hyperparameter {name!r} has no candidate values")
            self.param_grid[name] = candidates

    @staticmethod
    def _as_candidates(values: Any) -> List[Any]:
        if isinstance(values, (str, bytes)) or not isinstance(values, (Sequence, np.ndarray, range, set, frozenset)):
            return [values]
        if isinstance(values, (set, frozenset)):
            try:
                return sorted(values)
            except TypeError:
                # Mixed types such as {None, 2}: None first, then grouped by type
                return sorted(values, key=lambda v: (v is not None, type(v).__name__, repr(v)))
        # numpy scalars would otherwise leak into params and JSON output
        return [v.item() if isinstance(v, np.generic) else v for v in values]

    @property
    def names(self) -> List[str]:
        return list(self.param_grid)

    def __iter__(self) -> Iterator[Dict[str, Any]]:
        names = self.names
        for values in itertools.product(*(self.param_grid[name] for name in names)):
            yield dict(zip(names, values))

    def __len__(self) -> int:
        n = 1
        for values in self.param_grid.values():
            n *= len(values)
        return n

    def __getitem__(self, index: int) -> Dict[str, Any]:
        """Configuration at position ``index`` of the enumeration."""
        n = len(self)
        if index < 0:
            index += n
        if not 0 <= index < n:
            raise IndexError(f"Grid index {index} out of range for {n} configurations")

        config = {}
        # Last name varies fastest
        for name in reversed(self.names):
            values = self.param_grid[name]
            index, pos = divmod(index, len(values))
            config[name] = values[pos]
        return {name: config[name] for name in self.names}

    def __repr__(self) -> str:
        return f"ParameterGrid({self.param_grid!r})"


# Starting grids for each model family, used by the comparison workflow and
# the CLI when no grid is supplied
DEFAULT_GRIDS: Dict[str, Dict[str, Dict[str, List[Any]]]] = {
    'tree': {
        'regression': {'max_depth': [2, 4, 6, None], 'min_samples_leaf': [1, 5, 10]},
        'classification': {'max_depth': [2, 4, 6, None], 'min_samples_leaf': [1, 5, 10]},
    },
    'bagging': {
        'regression': {'n_estimators': [100, 500]},
        'classification': {'n_estimators': [100, 500]},
    },
    'random_forest': {
        'regression': {'n_estimators': [500], 'max_features': [0.2, 1.0 / 3.0, 0.5]},
        'classification': {'n_estimators': [500], 'max_features': ['sqrt', 'log2', 0.5]},
    },
    'boosting': {
        'regression': {
            'n_estimators': [100, 500],
            'max_depth': [1, 2, 4],
            'learning_rate': [0.01, 0.1],
        },
        'classification': {
            'n_estimators': [100, 500],
            'max_depth': [1, 2, 4],
            'learning_rate': [0.01, 0.1],
        },
    },
    'linear': {
        'regression': {'fit_intercept': [True]},
        'classification': {'C': [0.01, 0.1, 1.0, 10.0]},
    },
}


def default_grid(model_family: str, task: str) -> Optional[ParameterGrid]:
    """Default grid for a family/task, or None if the family has none."""
    family_grids = DEFAULT_GRIDS.get(model_family)
    if family_grids is None or task not in family_grids:
        return None
    return ParameterGrid(family_grids[task])

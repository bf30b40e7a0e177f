"""
Resampling plans for estimating generalization error during tuning.

- KFoldResampling: k disjoint, near-equal held-out folds (optionally stratified)
- OutOfBagResampling: rows left out of each bootstrap sample inside a
  bagging-style model

The tuner calls ``validate`` before fitting anything, so capability and size
mismatches surface before any model is trained.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple, Type

import numpy as np
import pandas as pd
from sklearn.model_selection import KFold, StratifiedKFold

from ..exceptions import InvalidResamplingError, UnsupportedResamplingError
from ..models.base_model import BaseModel


class ResamplingPlan(ABC):
    """Strategy interface for resampling plans."""

    name: str = "base"

    @abstractmethod
    def validate(self, model_class: Type[BaseModel], n_rows: int) -> None:
        """Raise if the plan cannot be used with this model family and data size."""
        pass

    @abstractmethod
    def describe(self) -> Dict[str, Any]:
        """Plain-dict description for logging and result files."""
        pass


class KFoldResampling(ResamplingPlan):
    """
    k-fold cross-validation.

    Every row is held out exactly once; fold sizes differ by at most one row.
    With ``shuffle`` the assignment is drawn from ``random_state``, which the
    tuner fills in from its own seed when left as None.

    Args:
        n_splits: Number of folds (k >= 2)
        shuffle: Shuffle rows before assigning folds
        random_state: Seed for the shuffle
        stratify: Keep class proportions per fold (classification labels)
    """

    name = "kfold"

    def __init__(
        self,
        n_splits: int = 5,
        shuffle: bool = True,
        random_state: Optional[int] = None,
        stratify: bool = False
    ) -> None:
        if not isinstance(n_splits, (int, np.integer)) or n_splits < 2:
            raise InvalidResamplingError(f"k-fold needs n_splits >= 2, got {n_splits!r}")

        self.n_splits = int(n_splits)
        self.shuffle = shuffle
        self.random_state = random_state
        self.stratify = stratify

    def validate(self, model_class: Type[BaseModel], n_rows: int) -> None:
        if n_rows < self.n_splits:
            raise InvalidResamplingError(
                f"Cannot split {n_rows} rows into {self.n_splits} folds"
            )

    def split(
        self,
        n_rows: int,
        y: Optional[pd.Series] = None,
        random_state: Optional[int] = None
    ) -> List[Tuple[np.ndarray, np.ndarray]]:
        """
        Train/held-out index pairs, one per fold.

        Args:
            n_rows: Number of rows to split
            y: Labels, required when stratifying
            random_state: Seed used when the plan has none of its own

        Returns:
            List of (fit_indices, held_out_indices) positional arrays
        """
        self.validate(BaseModel, n_rows)

        seed = self.random_state if self.random_state is not None else random_state
        seed = seed if self.shuffle else None
        positions = np.arange(n_rows)

        if self.stratify:
            if y is None:
                raise InvalidResamplingError("Stratified k-fold needs the labels")
            splitter = StratifiedKFold(n_splits=self.n_splits, shuffle=self.shuffle, random_state=seed)
            folds = splitter.split(positions, np.asarray(y))
        else:
            splitter = KFold(n_splits=self.n_splits, shuffle=self.shuffle, random_state=seed)
            folds = splitter.split(positions)

        # sklearn validates lazily, e.g. classes with fewer than k members
        try:
            return [(train_idx, val_idx) for train_idx, val_idx in folds]
        except ValueError as e:
            raise InvalidResamplingError(f"Cannot build {self.n_splits} folds: {e}") from e

    def partition(
        self,
        n_rows: int,
        y: Optional[pd.Series] = None,
        random_state: Optional[int] = None
    ) -> List[np.ndarray]:
        """The k disjoint held-out index sets; together they cover every row once."""
        return [val_idx for _, val_idx in self.split(n_rows, y=y, random_state=random_state)]

    def describe(self) -> Dict[str, Any]:
        return {
            'method': self.name,
            'n_splits': self.n_splits,
            'shuffle': self.shuffle,
            'random_state': self.random_state,
            'stratify': self.stratify,
        }

    def __repr__(self) -> str:
        return (
            f"KFoldResampling(n_splits={self.n_splits}, shuffle={self.shuffle}, "
            f"random_state={self.random_state}, stratify={self.stratify})"
        )


class OutOfBagResampling(ResamplingPlan):
    """
    Out-of-bag estimation: one fit on all rows, each row scored only by the
    ensemble members whose bootstrap sample left it out.

    Which rows are out of bag is decided by the model's own bootstrap, so
    the plan has no parameters. Only families with ``supports_oob`` qualify.
    """

    name = "oob"

    def validate(self, model_class: Type[BaseModel], n_rows: int) -> None:
        if not getattr(model_class, 'supports_oob', False):
            raise UnsupportedResamplingError(
                f"{model_class.__name__} does not fit on bootstrap samples, "
                f"so out-of-bag resampling is unavailable; use k-fold instead"
            )
        if n_rows < 2:
            raise InvalidResamplingError("Out-of-bag estimation needs at least 2 rows")

    def describe(self) -> Dict[str, Any]:
        return {'method': self.name}

    def __repr__(self) -> str:
        return "OutOfBagResampling()"


def make_resampling(
    method: str,
    n_splits: int = 5,
    shuffle: bool = True,
    random_state: Optional[int] = None,
    stratify: bool = False
) -> ResamplingPlan:
    """
    Build a resampling plan by name ('kfold'/'cv' or 'oob').

    Raises:
        InvalidResamplingError: If the method is unknown
    """
    method = method.lower()
    if method in ("kfold", "cv"):
        return KFoldResampling(
            n_splits=n_splits, shuffle=shuffle, random_state=random_state, stratify=stratify
        )
    if method == "oob":
        return OutOfBagResampling()
    raise InvalidResamplingError(f"Unknown resampling method {method!r}; use 'kfold' or 'oob'")

"""
Single decision tree for Grove.

Wraps scikit-learn's CART trees. Pruning is cost-complexity pruning through
``ccp_alpha``; ``pruning_path`` lists the alphas at which the fully grown
tree loses a subtree, which makes a natural grid for tuning.
"""

from typing import Any, List, Optional

import numpy as np
import pandas as pd
from sklearn.tree import DecisionTreeClassifier, DecisionTreeRegressor

from .base_model import SklearnModel


class DecisionTreeModel(SklearnModel):
    """Regression or classification tree with optional cost-complexity pruning."""

    name = "tree"

    def __init__(
        self,
        task: str = "regression",
        random_state: Optional[int] = 42,
        max_depth: Optional[int] = None,
        min_samples_split: int = 2,
        min_samples_leaf: int = 1,
        ccp_alpha: float = 0.0,
        criterion: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        """
        Args:
            task: 'regression' or 'classification'
            random_state: Seed for tie-breaking between equally good splits
            max_depth: Maximum tree depth (None grows until leaves are pure)
            min_samples_split: Minimum rows needed to split a node
            min_samples_leaf: Minimum rows in a leaf
            ccp_alpha: Cost-complexity pruning strength (0 disables pruning)
            criterion: Split criterion; defaults to squared_error / gini
            **kwargs: Additional DecisionTree* parameters
        """
        if criterion is None:
            criterion = "gini" if task == "classification" else "squared_error"

        super().__init__(
            task=task,
            random_state=random_state,
            max_depth=max_depth,
            min_samples_split=min_samples_split,
            min_samples_leaf=min_samples_leaf,
            ccp_alpha=ccp_alpha,
            criterion=criterion,
            **kwargs
        )

    def _create_model(self):
        estimator_cls = DecisionTreeClassifier if self.is_classifier else DecisionTreeRegressor
        return estimator_cls(random_state=self.random_state, **self.model_params)

    def pruning_path(self, X: pd.DataFrame, y: pd.Series) -> List[float]:
        """
        Effective alphas of the cost-complexity pruning path on (X, y).

        The largest alpha prunes the tree down to its root and is dropped;
        0.0 (the unpruned tree) is always included.

        Args:
            X: Training features
            y: Training labels

        Returns:
            Sorted list of distinct non-negative ccp_alpha candidates
        """
        self.validate_inputs(X, y)
        params = {k: v for k, v in self.model_params.items() if k != 'ccp_alpha'}
        estimator_cls = DecisionTreeClassifier if self.is_classifier else DecisionTreeRegressor
        path = estimator_cls(random_state=self.random_state, **params).cost_complexity_pruning_path(X, y)

        alphas = np.unique(np.clip(np.append(path.ccp_alphas[:-1], 0.0), 0.0, None))
        return [float(alpha) for alpha in alphas]

    def get_feature_importance(self) -> Optional[pd.Series]:
        if not self.is_fitted or self.feature_names is None:
            self.log_warning("Model not fitted, cannot get feature importance")
            return None

        return pd.Series(
            data=self.model.feature_importances_,
            index=self.feature_names,
            name='importance'
        ).sort_values(ascending=False)

    @property
    def n_leaves(self) -> int:
        self._check_fitted()
        return int(self.model.get_n_leaves())

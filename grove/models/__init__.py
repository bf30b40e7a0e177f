"""
Model families for Grove.

Includes:
- base_model: Abstract trainer interface and the scikit-learn backed base
- tree_model: Single decision tree with cost-complexity pruning
- forest_model: Random forest and bagging (out-of-bag capable)
- boosting_model: LightGBM gradient boosting
- linear_model: Least squares / logistic regression baselines
"""

from typing import Dict, List, Type, Union

from .base_model import BaseModel, SklearnModel
from .boosting_model import BoostingModel
from .forest_model import BaggingModel, RandomForestModel
from .linear_model import LinearBaselineModel
from .tree_model import DecisionTreeModel

MODEL_FAMILIES: Dict[str, Type[BaseModel]] = {
    DecisionTreeModel.name: DecisionTreeModel,
    BaggingModel.name: BaggingModel,
    RandomForestModel.name: RandomForestModel,
    BoostingModel.name: BoostingModel,
    LinearBaselineModel.name: LinearBaselineModel,
}


def available_models() -> List[str]:
    return list(MODEL_FAMILIES)


def get_model_class(model_family: Union[str, Type[BaseModel]]) -> Type[BaseModel]:
    """
    Resolve a model family name (or class) to its BaseModel subclass.

    Raises:
        ValueError: If the name is unknown or the class is not a BaseModel
    """
    if isinstance(model_family, type):
        if not issubclass(model_family, BaseModel):
            raise ValueError(f"{model_family.__name__} is not a BaseModel subclass")
        return model_family

    try:
        return MODEL_FAMILIES[model_family]
    except KeyError:
        raise ValueError(
            f"Unknown model family {model_family!r}. Available: {available_models()}"
        ) from None


__all__ = [
    "BaseModel",
    "SklearnModel",
    "DecisionTreeModel",
    "BaggingModel",
    "RandomForestModel",
    "BoostingModel",
    "LinearBaselineModel",
    "MODEL_FAMILIES",
    "available_models",
    "get_model_class",
]

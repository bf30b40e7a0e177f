"""
Tuning configuration for Grove.

A tuning run can be described in a YAML or JSON file instead of on the
command line. Process-wide defaults (seed, parallelism, MLflow URI) come
from the environment, with a ``.env`` file loaded through python-dotenv.

Example ``tune.yaml``::

    model: random_forest
    label: progression
    resampling: oob
    metric: rmse
    grid:
      max_features: [0.2, 0.33, 0.5]
      min_samples_leaf: [1, 5]
"""

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union
import json
import os

import yaml
from dotenv import find_dotenv, load_dotenv

from .evaluation.resampling import ResamplingPlan, make_resampling

ENV_RANDOM_STATE = "GROVE_RANDOM_STATE"
ENV_N_JOBS = "GROVE_N_JOBS"
ENV_MLFLOW_TRACKING_URI = "GROVE_MLFLOW_TRACKING_URI"


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got {value!r}") from None


def env_defaults() -> Dict[str, Any]:
    """Defaults read from the environment (and a .env file, if present)."""
    # Look for .env from the working directory, where the CLI is run
    load_dotenv(find_dotenv(usecwd=True))
    return {
        'random_state': _env_int(ENV_RANDOM_STATE, 42),
        'n_jobs': _env_int(ENV_N_JOBS, 1),
        'mlflow_tracking_uri': os.environ.get(ENV_MLFLOW_TRACKING_URI) or None,
    }


@dataclass
class TuningConfig:
    """Everything needed to run one grid search."""

    model: str
    label: str
    grid: Dict[str, Any] = field(default_factory=dict)
    resampling: str = "kfold"
    n_splits: int = 5
    shuffle: bool = True
    stratify: bool = False
    metric: Optional[str] = None
    task: Optional[str] = None
    random_state: Optional[int] = None
    n_jobs: Optional[int] = None
    mlflow_experiment_name: Optional[str] = None
    mlflow_tracking_uri: Optional[str] = None

    def __post_init__(self) -> None:
        defaults = env_defaults()
        if self.random_state is None:
            self.random_state = defaults['random_state']
        if self.n_jobs is None:
            self.n_jobs = defaults['n_jobs']
        if self.mlflow_tracking_uri is None:
            self.mlflow_tracking_uri = defaults['mlflow_tracking_uri']

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'TuningConfig':
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(raw) - known)
        if unknown:
            raise ValueError(f"Unknown tuning config keys: {unknown}")

        missing = [key for key in ('model', 'label') if not raw.get(key)]
        if missing:
            raise ValueError(f"Tuning config is missing required keys: {missing}")

        return cls(**raw)

    def to_resampling(self) -> ResamplingPlan:
        return make_resampling(
            self.resampling,
            n_splits=self.n_splits,
            shuffle=self.shuffle,
            random_state=self.random_state,
            stratify=self.stratify
        )


def _read_mapping(path: Union[str, Path]) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, 'r', encoding='utf-8') as f:
        if path.suffix.lower() in ('.yaml', '.yml'):
            content = yaml.safe_load(f)
        elif path.suffix.lower() == '.json':
            content = json.load(f)
        else:
            raise ValueError(f"Unsupported configuration file type {path.suffix!r}; use .yaml, .yml or .json")

    if not isinstance(content, dict):
        raise ValueError(f"{path} must contain a mapping at the top level")
    return content


def load_tuning_config(path: Union[str, Path]) -> TuningConfig:
    """Read a TuningConfig from a YAML or JSON file."""
    return TuningConfig.from_dict(_read_mapping(path))


def load_grid(path: Union[str, Path]) -> Dict[str, Any]:
    """Read a bare hyperparameter grid (name -> list of values) from YAML or JSON."""
    return _read_mapping(path)

"""
Hyperparameter tuning for Grove.

Includes:
- grid: Ordered hyperparameter grids and per-family defaults
- grid_tuner: Exhaustive grid search with k-fold or out-of-bag scoring
"""

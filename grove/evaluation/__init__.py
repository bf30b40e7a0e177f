"""
Model evaluation for Grove.

Includes:
- metrics: Scoring metrics with task and direction
- resampling: k-fold and out-of-bag resampling plans
- comparison: Holdout comparison of tuned models against baselines
"""

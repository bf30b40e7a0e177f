"""
Data loading and preparation for Grove.

Includes:
- datasets: Built-in and file datasets, feature encoding, task inference,
  train/test splitting
"""

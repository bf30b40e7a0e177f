"""
Shared utilities for Grove.

Includes:
- logging: Logging setup and the LoggingMixin used across the package
"""

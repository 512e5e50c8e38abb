"""Core mathematics and configuration for the fixture EV engine.

This package contains pure building blocks:

- ``odds_math``    — fair-price inversion, implied probability, EV%
- ``poisson``      — Poisson score grid and 1X2 / O/U / BTTS probabilities
- ``model_config`` — model constants (home advantage, blend weights, EV threshold)

Nothing in this package imports from ``ev_backend.services``.
All modules are side-effect-free and unit-testable in isolation.
"""

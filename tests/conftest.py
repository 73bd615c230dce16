"""Pytest configuration and shared fixtures for boxlbfgs tests.

This module provides:
- Deterministic RNG fixtures for numpy and torch
- Small objective/gradient pairs used across the driver tests
"""

import os
from typing import Callable, Tuple

import numpy as np
import pytest
import torch

from boxlbfgs.diagnostics import set_debug_enabled


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG seeded from TEST_RNG_SEED (default 0)."""
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    return np.random.default_rng(seed)


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds() -> None:
    """Seed the global numpy and torch generators for every test."""
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    np.random.seed(seed)
    torch.manual_seed(seed)


@pytest.fixture(scope="function", autouse=True)
def debug_off():
    """Run every test with debug mode off unless it opts in."""
    set_debug_enabled(False)
    yield
    set_debug_enabled(False)


def make_quadratic(
    target: np.ndarray, scale: np.ndarray | None = None
) -> Callable[[np.ndarray], Tuple[float, np.ndarray]]:
    """Return ``f_df`` for ``sum(scale * (x - target)**2)``."""
    weights = np.ones_like(target) if scale is None else scale

    def f_df(x: np.ndarray) -> Tuple[float, np.ndarray]:
        r = x - target
        return float(np.sum(weights * r * r)), 2.0 * weights * r

    return f_df


def rosenbrock(x: np.ndarray) -> Tuple[float, np.ndarray]:
    value = (1 - x[0]) ** 2 + 100 * (x[1] - x[0] ** 2) ** 2
    grad = np.array(
        [
            -2 * (1 - x[0]) - 400 * x[0] * (x[1] - x[0] ** 2),
            200 * (x[1] - x[0] ** 2),
        ]
    )
    return float(value), grad


@pytest.fixture
def target() -> np.ndarray:
    return np.array([1.0, -2.0, 3.0, 0.5, -1.5])


@pytest.fixture
def quadratic(target):
    return make_quadratic(target)

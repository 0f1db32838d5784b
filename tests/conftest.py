import pytest
import numpy as np


@pytest.fixture
def rng():
    """Seeded generator for reproducible samples"""
    return np.random.default_rng(42)


@pytest.fixture
def ar1_series(rng):
    """AR(1) series with strong positive dependence"""
    n = 500
    phi = 0.8
    shocks = rng.standard_normal(n)
    x = np.empty(n)
    x[0] = shocks[0]
    for t in range(1, n):
        x[t] = phi * x[t - 1] + shocks[t]
    return x

"""
Long-Run Variance Estimation

Newey-West HAC estimation of the variance of a dependent scalar series and
the block-length heuristic used by the Moving Block Bootstrap:
- Newey-West lag truncation (Andrews rule of thumb)
- HAC long-run variance with Bartlett weights (raw or centered moments)
- Fixed-lag centered HAC variance for the classic DM test
- AR(1)-based block size selection

The estimator runs once per bootstrap replicate, so the kernels are
compiled with Numba.
"""

from typing import Any
import logging

import numpy as np
from numba import jit

from ..utils.arrays import to_float_array

# Logging configuration
logger = logging.getLogger(__name__)

# Lower bound for every long-run variance estimate
LRV_FLOOR = 1e-10

# b = BLOCK_SIZE_SCALE * T^(1/3) * lambda
BLOCK_SIZE_SCALE = 1.3


@jit(nopython=True)
def _newey_west_lags_numba(n: int) -> int:
    """floor(4 * (n / 100)^(2/9))"""
    if n <= 0:
        return 0
    return int(np.floor(4.0 * (n / 100.0) ** (2.0 / 9.0)))


@jit(nopython=True)
def _long_run_variance_numba(x: np.ndarray, min_lags: int, centered: bool) -> float:
    """Fast Newey-West long-run variance with Numba"""
    n = x.shape[0]
    if n < 2:
        return LRV_FLOOR

    mean = 0.0
    for t in range(n):
        mean += x[t]
    mean /= n

    gamma_0 = 0.0
    for t in range(n):
        gamma_0 += (x[t] - mean) ** 2
    gamma_0 /= n - 1

    lags = _newey_west_lags_numba(n)
    if min_lags > lags:
        lags = min_lags

    lrv = gamma_0
    for lag in range(1, lags + 1):
        if lag >= n:
            break

        acc = 0.0
        if centered:
            for t in range(n - lag):
                acc += (x[t] - mean) * (x[t + lag] - mean)
        else:
            # Raw second moment, not an autocovariance
            for t in range(n - lag):
                acc += x[t] * x[t + lag]
        gamma_lag = acc / (n - lag)

        weight = 1.0 - lag / (lags + 1.0)
        lrv += 2.0 * weight * gamma_lag

    if not np.isfinite(lrv) or lrv < LRV_FLOOR:
        return LRV_FLOOR
    return lrv


@jit(nopython=True)
def _hac_variance_numba(x: np.ndarray, lags: int) -> float:
    """Centered Newey-West variance with a fixed lag count"""
    n = x.shape[0]
    if n == 0:
        return np.nan

    mean = 0.0
    for t in range(n):
        mean += x[t]
    mean /= n

    gamma_0 = 0.0
    for t in range(n):
        gamma_0 += (x[t] - mean) ** 2
    variance = gamma_0 / n

    for lag in range(1, lags + 1):
        if lag >= n:
            break
        acc = 0.0
        for t in range(n - lag):
            acc += (x[t] - mean) * (x[t + lag] - mean)
        variance += 2.0 * (1.0 - lag / (lags + 1.0)) * acc / (n - lag)

    return variance


def newey_west_lags(n: int) -> int:
    """Newey-West lag truncation floor(4 * (n / 100)^(2/9))"""
    return int(_newey_west_lags_numba(int(n)))


def long_run_variance(x: Any, centered: bool = False, min_lags: int = 0) -> float:
    """
    Newey-West HAC estimate of Var(sqrt(n) * mean(x))

    gamma_0 is the sample variance (ddof=1). By default the lag terms are
    the raw second moments mean(x[:-lag] * x[lag:]); centered=True uses
    mean-centered autocovariances instead. Lags run up to
    max(newey_west_lags(n), min_lags) with Bartlett weights.

    Args:
        x: Dependent scalar series
        centered: Center lag products on the sample mean
        min_lags: Lower bound on the lag truncation (e.g. h - 1)

    Returns:
        float: Long-run variance, never below LRV_FLOOR
    """
    values = to_float_array(x)
    return float(_long_run_variance_numba(values, int(max(min_lags, 0)), bool(centered)))


def hac_variance(x: Any, lags: int) -> float:
    """
    Centered Newey-West variance with an explicit lag count

    Unlike long_run_variance, no floor is applied: a constant series
    yields exactly 0.
    """
    if lags < 0:
        raise ValueError(f"lags must be non-negative, got {lags}")
    return float(_hac_variance_numba(to_float_array(x), int(lags)))


def select_block_size(d: Any) -> int:
    """
    Moving Block Bootstrap block length from an AR(1) dependence proxy

    rho is the lag-1 autocorrelation of d and
    lambda = sqrt(LRV_AR1 / Var(d)) = sqrt((1 + rho) / (1 - rho)).
    The block size is round(1.3 * T^(1/3) * lambda) clamped to
    [1, floor(T / 2)].

    This is a closed-form heuristic, not an optimal block length estimator:
    it trades statistical optimality for a single cheap pass over d.
    """
    values = to_float_array(d)
    n = values.size
    max_block = max(1, n // 2)

    rho = 0.0
    if n >= 3:
        head, tail = values[:-1], values[1:]
        if np.std(head) > 0 and np.std(tail) > 0:
            rho = float(np.corrcoef(head, tail)[0, 1])
            rho = min(max(rho, -1.0), 1.0) if np.isfinite(rho) else 0.0

    if rho >= 1.0:
        logger.debug("Lag-1 autocorrelation is 1, using the maximal block size")
        return max_block

    # AR(1) long-run variance over the marginal variance
    lam = np.sqrt((1.0 + rho) / (1.0 - rho))
    block_size = int(np.round(BLOCK_SIZE_SCALE * n ** (1.0 / 3.0) * lam))

    return int(min(max(block_size, 1), max_block))


__all__ = [
    "LRV_FLOOR",
    "BLOCK_SIZE_SCALE",
    "newey_west_lags",
    "long_run_variance",
    "hac_variance",
    "select_block_size",
]

"""
Scoring Functions for Forecast Evaluation

Per-period losses and proper scoring rules:
- Point-forecast losses (squared, absolute, absolute-percentage)
- Closed-form CRPS for Normal predictive distributions
- Sample-based CRPS for predictive distributions given by draws
- Aggregate point-forecast metrics (MSE, MAE, RMSE)

All functions are pure: no state, inputs are never modified.
"""

from typing import Any, Dict, Union
from enum import Enum
import logging

import numpy as np
from scipy import stats
from sklearn.metrics import mean_squared_error, mean_absolute_error

from .arrays import to_float_array, check_same_length

# Logging configuration
logger = logging.getLogger(__name__)

# Guards |e| / (|e| + eps) against 0 / 0
PERCENTAGE_EPS = np.finfo(np.float64).eps

_INV_SQRT_PI = 1.0 / np.sqrt(np.pi)


class LossKind(Enum):
    """Loss functions applied to forecast errors"""
    SQUARED = "squared"
    ABSOLUTE = "absolute"
    ABSOLUTE_PERCENTAGE = "absolute_percentage"


_LOSS_ALIASES = {
    "squared": LossKind.SQUARED,
    "mse": LossKind.SQUARED,
    "absolute": LossKind.ABSOLUTE,
    "mae": LossKind.ABSOLUTE,
    "absolute_percentage": LossKind.ABSOLUTE_PERCENTAGE,
    "absolute-percentage": LossKind.ABSOLUTE_PERCENTAGE,
    "ape": LossKind.ABSOLUTE_PERCENTAGE,
}


def resolve_loss_kind(kind: Union[str, LossKind]) -> LossKind:
    """
    Map a loss selector to a LossKind

    Unrecognised selectors fall back to squared loss with a warning.
    """
    if isinstance(kind, LossKind):
        return kind

    resolved = _LOSS_ALIASES.get(str(kind).strip().lower())
    if resolved is None:
        logger.warning(f"⚠️ Unknown loss kind {kind!r}, falling back to squared loss")
        return LossKind.SQUARED
    return resolved


def loss(errors: Any, kind: Union[str, LossKind] = LossKind.SQUARED) -> np.ndarray:
    """
    Per-period loss of a forecast error series

    Args:
        errors: Forecast errors, one per period
        kind: Loss selector (LossKind or alias such as "mse", "mae", "ape")

    Returns:
        np.ndarray: Loss values, same length as errors

    Note:
        The absolute-percentage loss is |e| / (|e| + eps). It is bounded in
        [0, 1] and is not proportional to the forecast target's level.
    """
    e = to_float_array(errors)
    kind = resolve_loss_kind(kind)

    if kind == LossKind.ABSOLUTE:
        return np.abs(e)
    if kind == LossKind.ABSOLUTE_PERCENTAGE:
        abs_e = np.abs(e)
        return abs_e / (abs_e + PERCENTAGE_EPS)
    return e ** 2


def _broadcast_inputs(*arrays: Any):
    converted = [np.atleast_1d(to_float_array(a)) for a in arrays]
    try:
        return np.broadcast_arrays(*converted)
    except ValueError as e:
        raise ValueError(f"Inputs cannot be aligned: {e}") from e


def crps_normal_series(y: Any, mu: Any, sigma: Any) -> np.ndarray:
    """
    Per-observation CRPS of Normal(mu, sigma) predictive distributions

    CRPS = sigma * (z * (2 * Phi(z) - 1) + 2 * phi(z) - 1 / sqrt(pi)),
    z = (y - mu) / sigma. Observations with non-finite inputs or
    sigma <= 0 are NaN in the output.
    """
    y, mu, sigma = _broadcast_inputs(y, mu, sigma)

    mask = np.isfinite(y) & np.isfinite(mu) & np.isfinite(sigma) & (sigma > 0)
    scores = np.full(y.shape, np.nan)

    if mask.any():
        s = sigma[mask]
        z = (y[mask] - mu[mask]) / s
        scores[mask] = s * (
            z * (2.0 * stats.norm.cdf(z) - 1.0) + 2.0 * stats.norm.pdf(z) - _INV_SQRT_PI
        )

    return scores


def crps_normal(y: Any, mu: Any, sigma: Any) -> float:
    """
    Mean CRPS for Normal predictive distributions

    Invalid observations are masked out before averaging. Returns NaN
    when nothing survives the mask.
    """
    scores = crps_normal_series(y, mu, sigma)
    valid = scores[np.isfinite(scores)]

    if valid.size == 0:
        logger.debug("CRPS requested with no usable observations")
        return float("nan")

    return float(np.mean(valid))


def _mean_abs_pair_difference(sorted_samples: np.ndarray) -> float:
    """E|X - X'| from sorted draws in O(n)"""
    n = sorted_samples.size
    ranks = np.arange(1, n + 1)
    return float(2.0 * np.sum((2 * ranks - n - 1) * sorted_samples) / n ** 2)


def crps_ensemble(y: Any, samples: Any) -> float:
    """
    Sample-based CRPS: mean|X - y| - 0.5 * E|X - X'|

    Args:
        y: Observations, shape (n,) or scalar
        samples: Predictive draws, either shape (m,) shared by every
            observation or shape (n, m) with one row per observation

    Returns:
        float: Mean CRPS over observations with a finite score, NaN if none
    """
    y = np.atleast_1d(to_float_array(y))
    draws = np.asarray(samples, dtype=np.float64)

    if draws.ndim == 1:
        draws = np.broadcast_to(draws, (y.size, draws.size))
    elif draws.ndim != 2 or draws.shape[0] != y.size:
        raise ValueError(
            f"samples must have shape (m,) or ({y.size}, m), got {draws.shape}"
        )

    scores = np.full(y.size, np.nan)
    shared = None

    for i in range(y.size):
        if not np.isfinite(y[i]):
            continue

        row = draws[i]
        row = np.sort(row[np.isfinite(row)])
        if row.size == 0:
            continue

        # Shared draws only need one spread term
        if draws.strides[0] == 0:
            if shared is None:
                shared = _mean_abs_pair_difference(row)
            spread = shared
        else:
            spread = _mean_abs_pair_difference(row)

        scores[i] = np.mean(np.abs(row - y[i])) - 0.5 * spread

    valid = scores[np.isfinite(scores)]
    return float(np.mean(valid)) if valid.size > 0 else float("nan")


def point_forecast_metrics(y: Any, mu: Any) -> Dict[str, float]:
    """MSE, MAE and RMSE of a mean forecast over jointly finite observations"""
    y = to_float_array(y)
    mu = to_float_array(mu)
    check_same_length(y, mu, ("outcomes", "mean forecasts"))

    mask = np.isfinite(y) & np.isfinite(mu)
    n = int(mask.sum())

    if n == 0:
        return {"mse": float("nan"), "mae": float("nan"), "rmse": float("nan"), "n_observations": 0}

    mse = mean_squared_error(y[mask], mu[mask])
    mae = mean_absolute_error(y[mask], mu[mask])

    return {
        "mse": float(mse),
        "mae": float(mae),
        "rmse": float(np.sqrt(mse)),
        "n_observations": n,
    }


__all__ = [
    "LossKind",
    "PERCENTAGE_EPS",
    "resolve_loss_kind",
    "loss",
    "crps_normal",
    "crps_normal_series",
    "crps_ensemble",
    "point_forecast_metrics",
]

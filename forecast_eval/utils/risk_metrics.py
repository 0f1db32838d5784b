"""
Risk Metrics for Forecast Evaluation

Value-at-Risk series implied by location/scale forecasts. VaR is expressed
as a lower-tail quantile of returns, so a violation is ret < VaR.
"""

from typing import Any
import logging

import numpy as np
from scipy import stats

from .arrays import to_float_array, validate_alpha

# Logging configuration
logger = logging.getLogger(__name__)


def normal_var(mu: Any, sigma: Any, alpha: float = 0.05) -> np.ndarray:
    """
    Parametric Normal VaR: mu + sigma * Phi^-1(alpha)

    Args:
        mu: Forecast means (array or scalar)
        sigma: Forecast standard deviations (array or scalar)
        alpha: Tail probability in (0, 1)

    Returns:
        np.ndarray: VaR per period, NaN where mu/sigma are unusable
    """
    alpha = validate_alpha(alpha)

    mu, sigma = np.broadcast_arrays(
        np.atleast_1d(to_float_array(mu)),
        np.atleast_1d(to_float_array(sigma))
    )

    z_alpha = stats.norm.ppf(alpha)
    valid = np.isfinite(mu) & np.isfinite(sigma) & (sigma > 0)

    var_series = np.full(mu.shape, np.nan)
    var_series[valid] = mu[valid] + sigma[valid] * z_alpha

    if not valid.all():
        logger.debug(f"Normal VaR undefined for {int((~valid).sum())} periods")

    return var_series


__all__ = ["normal_var"]

"""
VaR Backtesting Framework

Coverage tests on the violation indicator I_t = 1[ret_t < VaR_t]:
- Kupiec unconditional coverage (LR_uc, chi2 with 1 df)
- Christoffersen independence (LR_ind, chi2 with 1 df)
- Conditional coverage LR_cc = LR_uc + LR_ind (chi2 with 2 df)
- Violation clustering and Basel traffic light zones

Degenerate samples produce sentinel values (inf, 0, NaN) instead of
exceptions; only malformed inputs raise.
"""

from typing import Any, Dict
from dataclasses import dataclass, field
import logging

import numpy as np
from scipy import stats
from numba import jit

from ..utils.arrays import check_same_length, to_float_array, validate_alpha

# Logging configuration
logger = logging.getLogger(__name__)

# Floor for log() arguments in the independence likelihoods
_LOG_FLOOR = np.finfo(np.float64).tiny


@dataclass(frozen=True)
class TransitionCounts:
    """Counts of consecutive violation-indicator pairs (I_t, I_t+1)"""
    n00: int = 0
    n01: int = 0
    n10: int = 0
    n11: int = 0

    @property
    def from_no_violation(self) -> int:
        return self.n00 + self.n01

    @property
    def from_violation(self) -> int:
        return self.n10 + self.n11

    @property
    def total(self) -> int:
        return self.n00 + self.n01 + self.n10 + self.n11


@dataclass(frozen=True)
class VaRBacktestResult:
    """VaR backtesting result"""
    n_observations: int
    violations: int
    violation_rate: float
    alpha: float

    # Kupiec unconditional coverage
    lr_uc: float
    p_value_uc: float

    # Christoffersen independence
    transitions: TransitionCounts
    lr_ind: float
    p_value_ind: float

    # Conditional coverage
    lr_cc: float
    p_value_cc: float

    max_violation_cluster: int = 0
    traffic_light: str = "n/a"  # green, yellow, red

    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def p_value(self) -> float:
        """Kupiec p-value"""
        return self.p_value_uc

    @property
    def has_data(self) -> bool:
        return self.n_observations > 0

    @classmethod
    def empty(cls, alpha: float) -> "VaRBacktestResult":
        """Result for a sample with no usable observations"""
        nan = float("nan")
        return cls(
            n_observations=0,
            violations=0,
            violation_rate=nan,
            alpha=alpha,
            lr_uc=nan,
            p_value_uc=nan,
            transitions=TransitionCounts(),
            lr_ind=nan,
            p_value_ind=nan,
            lr_cc=nan,
            p_value_cc=nan,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "n_observations": self.n_observations,
            "violations": self.violations,
            "violation_rate": self.violation_rate,
            "alpha": self.alpha,
            "lr_uc": self.lr_uc,
            "p_value_uc": self.p_value_uc,
            "n00": self.transitions.n00,
            "n01": self.transitions.n01,
            "n10": self.transitions.n10,
            "n11": self.transitions.n11,
            "lr_ind": self.lr_ind,
            "p_value_ind": self.p_value_ind,
            "lr_cc": self.lr_cc,
            "p_value_cc": self.p_value_cc,
            "max_violation_cluster": self.max_violation_cluster,
            "traffic_light": self.traffic_light,
        }


@jit(nopython=True)
def _count_transitions_numba(indicator: np.ndarray):
    """Fast transition counting with Numba"""
    n00 = 0
    n01 = 0
    n10 = 0
    n11 = 0
    for t in range(indicator.shape[0] - 1):
        prev = indicator[t]
        curr = indicator[t + 1]
        if prev == 0 and curr == 0:
            n00 += 1
        elif prev == 0 and curr == 1:
            n01 += 1
        elif prev == 1 and curr == 0:
            n10 += 1
        else:
            n11 += 1
    return n00, n01, n10, n11


@jit(nopython=True)
def _max_violation_cluster_numba(indicator: np.ndarray) -> int:
    """Longest run of consecutive violations"""
    max_cluster = 0
    current = 0
    for t in range(indicator.shape[0]):
        if indicator[t] == 1:
            current += 1
            if current > max_cluster:
                max_cluster = current
        else:
            current = 0
    return max_cluster


def count_transitions(violations: Any) -> TransitionCounts:
    """Transition counts over the T - 1 consecutive pairs of a 0/1 series"""
    indicator = np.asarray(violations).astype(np.int64).ravel()
    n00, n01, n10, n11 = _count_transitions_numba(indicator)
    return TransitionCounts(n00=int(n00), n01=int(n01), n10=int(n10), n11=int(n11))


def kupiec_lr_uc(violations: int, n_observations: int, alpha: float) -> float:
    """
    Kupiec unconditional coverage likelihood ratio

    x = 0 or x = T makes the empirical rate degenerate and LR_uc = inf.
    """
    x, T = int(violations), int(n_observations)
    if T <= 0:
        return float("nan")
    if x == 0 or x == T:
        return float("inf")

    pi_hat = x / T
    log_l0 = (T - x) * np.log(1 - alpha) + x * np.log(alpha)
    log_l1 = (T - x) * np.log(1 - pi_hat) + x * np.log(pi_hat)

    return float(-2.0 * (log_l0 - log_l1))


def christoffersen_lr_ind(transitions: TransitionCounts, pi_hat: float) -> float:
    """
    Christoffersen independence likelihood ratio

    H0: i.i.d. violations with probability pi_hat. H1: first-order Markov
    chain with pi01 and pi11. With no transitions out of one state the
    Markov alternative collapses and LR_ind = 0.
    """
    n0 = transitions.from_no_violation
    n1 = transitions.from_violation

    if n0 == 0 or n1 == 0:
        return 0.0

    pi01 = transitions.n01 / n0
    pi11 = transitions.n11 / n1

    def _log(p: float) -> float:
        return np.log(max(p, _LOG_FLOOR))

    log_l0 = (
        (transitions.n00 + transitions.n10) * _log(1 - pi_hat)
        + (transitions.n01 + transitions.n11) * _log(pi_hat)
    )
    log_l1 = (
        transitions.n00 * _log(1 - pi01) + transitions.n01 * _log(pi01)
        + transitions.n10 * _log(1 - pi11) + transitions.n11 * _log(pi11)
    )

    return float(-2.0 * (log_l0 - log_l1))


def traffic_light(violations: int, n_observations: int, alpha: float) -> str:
    """Basel-style traffic light zone"""
    if n_observations <= 0:
        return "n/a"

    # Basel thresholds for 99% VaR
    if np.isclose(alpha, 0.01):
        if violations <= 4:
            return "green"
        elif violations <= 9:
            return "yellow"
        return "red"

    expected_violations = alpha * n_observations

    if violations <= expected_violations * 1.5:
        return "green"
    elif violations <= expected_violations * 2.5:
        return "yellow"
    return "red"


def var_backtest(returns: Any, var_forecasts: Any, alpha: float = 0.05) -> VaRBacktestResult:
    """
    Kupiec and Christoffersen backtests of a VaR forecast series

    Args:
        returns: Realized returns
        var_forecasts: VaR forecasts aligned with returns (lower-tail quantiles)
        alpha: Nominal tail probability, strictly inside (0, 1)

    Returns:
        VaRBacktestResult: Empty-sentinel result when no period has both a
        finite return and a finite VaR

    Raises:
        ValueError: alpha outside (0, 1)
        LengthMismatchError: returns and var_forecasts differ in length
    """
    alpha = validate_alpha(alpha)

    ret = to_float_array(returns)
    var_series = to_float_array(var_forecasts)
    check_same_length(ret, var_series, ("returns", "var_forecasts"))

    mask = np.isfinite(ret) & np.isfinite(var_series)
    if not mask.any():
        logger.warning("⚠️ VaR backtest has no usable observations")
        return VaRBacktestResult.empty(alpha)

    indicator = (ret[mask] < var_series[mask]).astype(np.int64)
    T = int(indicator.size)
    x = int(indicator.sum())
    pi_hat = x / T

    lr_uc = kupiec_lr_uc(x, T, alpha)
    p_uc = float(stats.chi2.sf(lr_uc, 1))

    transitions = count_transitions(indicator)
    lr_ind = christoffersen_lr_ind(transitions, pi_hat)
    p_ind = float(stats.chi2.sf(lr_ind, 1))

    lr_cc = lr_uc + lr_ind
    p_cc = float(stats.chi2.sf(lr_cc, 2))

    result = VaRBacktestResult(
        n_observations=T,
        violations=x,
        violation_rate=pi_hat,
        alpha=alpha,
        lr_uc=lr_uc,
        p_value_uc=p_uc,
        transitions=transitions,
        lr_ind=lr_ind,
        p_value_ind=p_ind,
        lr_cc=lr_cc,
        p_value_cc=p_cc,
        max_violation_cluster=int(_max_violation_cluster_numba(indicator)),
        traffic_light=traffic_light(x, T, alpha),
        metadata={"dropped_observations": int((~mask).sum())},
    )

    logger.info(f"✅ VaR backtest: {pi_hat:.2%} violations (expected: {alpha:.2%})")
    return result


class VaRBacktester:
    """
    VaR backtester bound to a nominal tail probability

    Stateless apart from alpha; every backtest() call returns a fresh
    VaRBacktestResult.
    """

    def __init__(self, alpha: float = 0.05):
        self.alpha = validate_alpha(alpha)

    def backtest(self, returns: Any, var_forecasts: Any) -> VaRBacktestResult:
        try:
            return var_backtest(returns, var_forecasts, self.alpha)
        except Exception as e:
            logger.error(f"❌ Error in VaR backtesting: {e}")
            raise


__all__ = [
    "TransitionCounts",
    "VaRBacktestResult",
    "VaRBacktester",
    "var_backtest",
    "kupiec_lr_uc",
    "christoffersen_lr_ind",
    "count_transitions",
    "traffic_light",
]

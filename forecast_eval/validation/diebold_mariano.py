"""
Diebold-Mariano Forecast Comparison

Tests equal predictive accuracy of two competing forecasts:
- Asymptotic DM statistic with Newey-West long-run variance
- Moving Block Bootstrap p-value, robust to fat tails and dependence
- Automatic block size from the loss differential
- Classic fixed-lag DM test on ready-made loss series

References:
- Diebold & Mariano (1995), "Comparing Predictive Accuracy"
- Kunsch (1989), "The jackknife and the bootstrap for general stationary observations"
- Andrews (1991), "Heteroskedasticity and autocorrelation consistent covariance matrix estimation"
"""

from typing import Any, Dict, Optional, Tuple, Union
from dataclasses import dataclass, field
import logging

import numpy as np
from scipy import stats

from ..estimators.bootstrap import MovingBlockBootstrap
from ..estimators.long_run_variance import (
    hac_variance,
    long_run_variance,
    select_block_size,
)
from ..utils.arrays import check_same_length, to_float_array
from ..utils.scoring import LossKind, loss, resolve_loss_kind

# Logging configuration
logger = logging.getLogger(__name__)

# Below this sample size HAC estimates are unreliable
MIN_OBSERVATIONS = 30


@dataclass(frozen=True)
class DMTestResult:
    """Diebold-Mariano test result (asymptotic and bootstrap)"""
    dm_statistic: float
    p_value_asymptotic: float
    p_value_bootstrap: float
    block_size: int
    bootstrap_reps: int
    n_observations: int

    mean_loss_differential: float
    long_run_variance: float

    loss_kind: str = LossKind.SQUARED.value
    horizon: int = 1
    confidence_level: float = 0.95

    # Replicate statistics, kept for diagnostics only
    bootstrap_distribution: Optional[np.ndarray] = field(default=None, repr=False, compare=False)

    @classmethod
    def empty(
        cls,
        bootstrap_reps: int,
        loss_kind: str = LossKind.SQUARED.value,
        horizon: int = 1,
        confidence_level: float = 0.95
    ) -> "DMTestResult":
        """Result for a comparison with no usable loss differentials"""
        nan = float("nan")
        return cls(
            dm_statistic=nan,
            p_value_asymptotic=nan,
            p_value_bootstrap=nan,
            block_size=0,
            bootstrap_reps=bootstrap_reps,
            n_observations=0,
            mean_loss_differential=nan,
            long_run_variance=nan,
            loss_kind=loss_kind,
            horizon=horizon,
            confidence_level=confidence_level,
        )

    @property
    def has_data(self) -> bool:
        return self.n_observations > 0

    @property
    def p_value(self) -> float:
        """Bootstrap p-value, the authoritative one for heavy-tailed data"""
        return self.p_value_bootstrap

    @property
    def significance_level(self) -> float:
        return 1.0 - self.confidence_level

    @property
    def is_significant(self) -> bool:
        return self.p_value_bootstrap < self.significance_level

    def critical_values(self) -> Tuple[float, float]:
        """Two-sided bootstrap critical values at the configured level"""
        if self.bootstrap_distribution is None or self.bootstrap_distribution.size == 0:
            return float("nan"), float("nan")

        alpha = self.significance_level
        lower, upper = np.quantile(self.bootstrap_distribution, [alpha / 2, 1 - alpha / 2])
        return float(lower), float(upper)

    @property
    def conclusion(self) -> str:
        if not self.has_data:
            return "NOT RUN: no finite loss differentials"
        if self.is_significant:
            better = "Model 1" if self.dm_statistic < 0 else "Model 2"
            return (
                f"REJECT H0: Models have significantly different predictive accuracy "
                f"({better} more accurate, p={self.p_value_bootstrap:.4f})"
            )
        return (
            f"FAIL TO REJECT H0: No significant difference in accuracy "
            f"(p={self.p_value_bootstrap:.4f})"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "dm_statistic": self.dm_statistic,
            "p_value_asymptotic": self.p_value_asymptotic,
            "p_value_bootstrap": self.p_value_bootstrap,
            "block_size": self.block_size,
            "bootstrap_reps": self.bootstrap_reps,
            "n_observations": self.n_observations,
            "mean_loss_differential": self.mean_loss_differential,
            "long_run_variance": self.long_run_variance,
            "loss_kind": self.loss_kind,
            "horizon": self.horizon,
            "confidence_level": self.confidence_level,
            "is_significant": self.is_significant,
            "conclusion": self.conclusion,
        }


@dataclass(frozen=True)
class ClassicDMResult:
    """Fixed-lag Diebold-Mariano test result"""
    dm_statistic: float
    p_value: float
    mean_difference: float
    n_observations: int


def _dm_statistic(d: np.ndarray, min_lags: int) -> Tuple[float, float, float]:
    """(DM, mean, LRV) of a loss differential"""
    d_bar = float(np.mean(d))
    lrv = long_run_variance(d, min_lags=min_lags)

    if lrv > 0:
        dm = float(np.sqrt(d.size) * d_bar / np.sqrt(lrv))
    else:
        dm = 0.0
    return dm, d_bar, lrv


def _asymptotic_p_value(dm: float) -> float:
    """Two-sided p-value under N(0, 1)"""
    return float(2.0 * stats.norm.sf(abs(dm)))


class DieboldMarianoTester:
    """
    Robust Diebold-Mariano test using the Moving Block Bootstrap

    Every call to test() is self-contained: the loss differential, block
    size and bootstrap distribution belong to that call only and come back
    in an immutable DMTestResult.

    Args:
        loss_kind: Loss applied to forecast errors
        horizon: Forecast horizon h; the HAC lag truncation is at least h - 1
        bootstrap_reps: Number of bootstrap replicates
        confidence_level: Level used for significance and critical values
        seed: Seed for the bootstrap streams (None draws fresh entropy)
        center_bootstrap: Center replicate means on the observed mean so the
            bootstrap distribution is taken under H0
        keep_distribution: Return replicate statistics in the result
    """

    def __init__(
        self,
        loss_kind: Union[str, LossKind] = LossKind.SQUARED,
        horizon: int = 1,
        bootstrap_reps: int = 10000,
        confidence_level: float = 0.95,
        seed: Optional[int] = None,
        center_bootstrap: bool = True,
        keep_distribution: bool = True
    ):
        if int(horizon) < 1:
            raise ValueError(f"horizon must be a positive integer, got {horizon}")
        if int(bootstrap_reps) < 1:
            raise ValueError(f"bootstrap_reps must be positive, got {bootstrap_reps}")
        if not 0.0 < float(confidence_level) < 1.0:
            raise ValueError(f"confidence_level must be in (0, 1), got {confidence_level}")

        self.loss_kind = resolve_loss_kind(loss_kind)
        self.horizon = int(horizon)
        self.bootstrap_reps = int(bootstrap_reps)
        self.confidence_level = float(confidence_level)
        self.seed = seed
        self.center_bootstrap = bool(center_bootstrap)
        self.keep_distribution = bool(keep_distribution)

    @classmethod
    def from_config(cls, config: Any) -> "DieboldMarianoTester":
        """Build a tester from an EvaluationConfig"""
        return cls(
            loss_kind=config.loss_kind,
            horizon=config.horizon,
            bootstrap_reps=config.bootstrap_reps,
            confidence_level=config.confidence_level,
            seed=config.seed,
            center_bootstrap=config.center_bootstrap,
        )

    def test(self, error1: Any, error2: Any) -> DMTestResult:
        """
        Compare two aligned forecast error series

        d_t = L(error1_t) - L(error2_t); negative DM means model 1 has the
        lower loss.
        """
        e1 = to_float_array(error1)
        e2 = to_float_array(error2)
        check_same_length(e1, e2, ("error1", "error2"))

        return self._run(loss(e1, self.loss_kind), loss(e2, self.loss_kind))

    def test_losses(self, loss1: Any, loss2: Any) -> DMTestResult:
        """Compare two aligned per-period loss series (e.g. CRPS) directly"""
        l1 = to_float_array(loss1)
        l2 = to_float_array(loss2)
        check_same_length(l1, l2, ("loss1", "loss2"))

        return self._run(l1, l2)

    def _run(self, loss1: np.ndarray, loss2: np.ndarray) -> DMTestResult:
        try:
            d = loss1 - loss2
            finite = np.isfinite(d)
            if not finite.all():
                logger.debug(f"Dropping {int((~finite).sum())} non-finite loss differentials")
                d = d[finite]

            n = d.size
            if n == 0:
                logger.warning("⚠️ Diebold-Mariano test has no finite loss differentials")
                return DMTestResult.empty(
                    self.bootstrap_reps,
                    loss_kind=self.loss_kind.value,
                    horizon=self.horizon,
                    confidence_level=self.confidence_level,
                )
            if n < MIN_OBSERVATIONS:
                logger.warning(
                    f"⚠️ Diebold-Mariano test on {n} observations; "
                    f"at least {MIN_OBSERVATIONS} are advisable"
                )

            logger.info(f"🔄 Running Diebold-Mariano test (T={n}, reps={self.bootstrap_reps})...")

            # Block size fixed once for all replicates
            block_size = select_block_size(d)
            min_lags = self.horizon - 1

            dm_stat, d_bar, lrv = _dm_statistic(d, min_lags)
            p_asymptotic = _asymptotic_p_value(dm_stat)

            bootstrap = MovingBlockBootstrap(d, block_size)
            dm_boot = bootstrap.dm_statistics(
                self.bootstrap_reps,
                seed=self.seed,
                center=self.center_bootstrap,
                min_lags=min_lags,
            )
            p_bootstrap = float(np.mean(np.abs(dm_boot) >= abs(dm_stat)))

            result = DMTestResult(
                dm_statistic=dm_stat,
                p_value_asymptotic=p_asymptotic,
                p_value_bootstrap=p_bootstrap,
                block_size=block_size,
                bootstrap_reps=self.bootstrap_reps,
                n_observations=n,
                mean_loss_differential=d_bar,
                long_run_variance=lrv,
                loss_kind=self.loss_kind.value,
                horizon=self.horizon,
                confidence_level=self.confidence_level,
                bootstrap_distribution=dm_boot if self.keep_distribution else None,
            )

            logger.info(
                f"✅ DM={dm_stat:.4f}, p_asym={p_asymptotic:.4f}, "
                f"p_boot={p_bootstrap:.4f}, block_size={block_size}"
            )
            return result

        except Exception as e:
            logger.error(f"❌ Error in Diebold-Mariano test: {e}")
            raise


def diebold_mariano_bootstrap(error1: Any, error2: Any, **kwargs) -> DMTestResult:
    """Functional form of DieboldMarianoTester(**kwargs).test(error1, error2)"""
    return DieboldMarianoTester(**kwargs).test(error1, error2)


def diebold_mariano(loss1: Any, loss2: Any, h: int = 1) -> ClassicDMResult:
    """
    Classic Diebold-Mariano test on two loss series

    Uses a centered Newey-West variance with h - 1 lags and the asymptotic
    normal p-value. Pairs with a non-finite loss are dropped.

    Raises:
        ValueError: fewer than MIN_OBSERVATIONS usable pairs or h < 1
    """
    if int(h) < 1:
        raise ValueError(f"h must be a positive integer, got {h}")

    l1 = to_float_array(loss1)
    l2 = to_float_array(loss2)
    check_same_length(l1, l2, ("loss1", "loss2"))

    mask = np.isfinite(l1) & np.isfinite(l2)
    d = l1[mask] - l2[mask]
    n = d.size

    if n < MIN_OBSERVATIONS:
        raise ValueError(f"Need at least {MIN_OBSERVATIONS} observations, got {n}")

    d_bar = float(np.mean(d))
    variance = hac_variance(d, int(h) - 1)

    dm_stat = d_bar / np.sqrt(variance / n) if variance > 0 else 0.0

    return ClassicDMResult(
        dm_statistic=float(dm_stat),
        p_value=_asymptotic_p_value(dm_stat),
        mean_difference=d_bar,
        n_observations=n,
    )


__all__ = [
    "MIN_OBSERVATIONS",
    "DMTestResult",
    "ClassicDMResult",
    "DieboldMarianoTester",
    "diebold_mariano_bootstrap",
    "diebold_mariano",
]

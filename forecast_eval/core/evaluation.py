"""
Pairwise Forecast Evaluation

Orchestrates the scoring, VaR backtests and DM comparison of two Normal
predictive forecasts of the same return stream:
- CRPS (mean and per period) for each model
- Point-forecast metrics of the mean forecasts
- Kupiec / Christoffersen backtests of each model's VaR series
- Moving Block Bootstrap DM test and classic DM test on per-period CRPS
- Summary tables and plain-text reports

Nothing is persisted; every call returns a fresh PairEvaluation.
"""

from typing import Any, Dict, List, Optional, Sequence
from dataclasses import dataclass, field
import logging

import numpy as np
import pandas as pd

from ..config import EvaluationConfig
from ..utils.arrays import check_same_length, to_float_array
from ..utils.risk_metrics import normal_var
from ..utils.scoring import crps_normal_series, point_forecast_metrics
from ..validation.diebold_mariano import (
    ClassicDMResult,
    DieboldMarianoTester,
    DMTestResult,
    diebold_mariano,
)
from ..validation.var_backtest import VaRBacktestResult, var_backtest

# Logging configuration
logger = logging.getLogger(__name__)


@dataclass
class ForecastSpec:
    """Normal predictive forecast of one model"""
    name: str
    mu: Any
    sigma: Any
    var: Optional[Any] = None

    def var_series(self, alpha: float) -> np.ndarray:
        """Explicit VaR if given, otherwise the Normal VaR at alpha"""
        if self.var is not None:
            return to_float_array(self.var)
        return normal_var(self.mu, self.sigma, alpha)


@dataclass(frozen=True)
class ModelEvaluation:
    """Scores and backtest of one model"""
    name: str
    crps_mean: float
    crps_series: np.ndarray = field(repr=False, compare=False)
    point_metrics: Dict[str, float] = field(default_factory=dict)
    var_backtest: Optional[VaRBacktestResult] = None


@dataclass(frozen=True)
class PairEvaluation:
    """Comparison of two forecasting models"""
    label: str
    alpha: float
    model1: ModelEvaluation
    model2: ModelEvaluation
    dm_crps: Optional[DMTestResult] = None
    dm_crps_classic: Optional[ClassicDMResult] = None

    metadata: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def better_model(self) -> str:
        """Model with the lower mean CRPS (empty if undecidable)"""
        c1, c2 = self.model1.crps_mean, self.model2.crps_mean
        if not (np.isfinite(c1) and np.isfinite(c2)) or c1 == c2:
            return ""
        return self.model1.name if c1 < c2 else self.model2.name

    def to_row(self) -> Dict[str, Any]:
        nan = float("nan")
        bt1, bt2 = self.model1.var_backtest, self.model2.var_backtest
        dm, classic = self.dm_crps, self.dm_crps_classic

        return {
            "label": self.label,
            "alpha": self.alpha,
            f"crps_{self.model1.name}": self.model1.crps_mean,
            f"crps_{self.model2.name}": self.model2.crps_mean,
            f"var_rate_{self.model1.name}": bt1.violation_rate if bt1 else nan,
            f"var_rate_{self.model2.name}": bt2.violation_rate if bt2 else nan,
            f"kupiec_p_{self.model1.name}": bt1.p_value_uc if bt1 else nan,
            f"kupiec_p_{self.model2.name}": bt2.p_value_uc if bt2 else nan,
            f"ind_p_{self.model1.name}": bt1.p_value_ind if bt1 else nan,
            f"ind_p_{self.model2.name}": bt2.p_value_ind if bt2 else nan,
            f"cc_p_{self.model1.name}": bt1.p_value_cc if bt1 else nan,
            f"cc_p_{self.model2.name}": bt2.p_value_cc if bt2 else nan,
            "dm_crps": dm.dm_statistic if dm else nan,
            "dm_p_asymptotic": dm.p_value_asymptotic if dm else nan,
            "dm_p_bootstrap": dm.p_value_bootstrap if dm else nan,
            "dm_block_size": dm.block_size if dm else nan,
            "dm_classic": classic.dm_statistic if classic else nan,
            "dm_classic_p": classic.p_value if classic else nan,
            "dm_mean_diff": dm.mean_loss_differential if dm else nan,
            "dm_n": dm.n_observations if dm else 0,
        }


def _evaluate_model(
    returns: np.ndarray,
    forecast: ForecastSpec,
    alpha: float
) -> ModelEvaluation:
    mu = to_float_array(forecast.mu)
    sigma = to_float_array(forecast.sigma)
    check_same_length(returns, mu, ("returns", f"{forecast.name} mu"))
    check_same_length(returns, sigma, ("returns", f"{forecast.name} sigma"))

    crps = crps_normal_series(returns, mu, sigma)
    finite = crps[np.isfinite(crps)]

    return ModelEvaluation(
        name=forecast.name,
        crps_mean=float(np.mean(finite)) if finite.size else float("nan"),
        crps_series=crps,
        point_metrics=point_forecast_metrics(returns, mu),
        var_backtest=var_backtest(returns, forecast.var_series(alpha), alpha),
    )


def evaluate_pair(
    returns: Any,
    forecast1: ForecastSpec,
    forecast2: ForecastSpec,
    config: Optional[EvaluationConfig] = None,
    label: str = ""
) -> PairEvaluation:
    """
    Evaluate two Normal predictive forecasts of one return series

    The DM comparison uses per-period CRPS as the loss, restricted to
    periods where both CRPS values are finite. Too few common periods leave
    the DM fields empty instead of raising.
    """
    config = (config or EvaluationConfig()).validate()
    ret = to_float_array(returns)

    try:
        logger.info(f"🔄 Evaluating {forecast1.name} vs {forecast2.name} {label}".rstrip() + "...")

        model1 = _evaluate_model(ret, forecast1, config.alpha)
        model2 = _evaluate_model(ret, forecast2, config.alpha)

        common = np.isfinite(model1.crps_series) & np.isfinite(model2.crps_series)
        n_common = int(common.sum())

        dm_result = None
        classic_result = None

        if n_common >= config.min_observations:
            tester = DieboldMarianoTester.from_config(config)
            dm_result = tester.test_losses(model1.crps_series[common], model2.crps_series[common])
            try:
                classic_result = diebold_mariano(
                    model1.crps_series[common], model2.crps_series[common], config.horizon
                )
            except ValueError as e:
                logger.warning(f"⚠️ Classic DM test not run: {e}")
        else:
            logger.warning(
                f"⚠️ Skipping DM test: {n_common} common CRPS observations "
                f"(need {config.min_observations})"
            )

        evaluation = PairEvaluation(
            label=label,
            alpha=config.alpha,
            model1=model1,
            model2=model2,
            dm_crps=dm_result,
            dm_crps_classic=classic_result,
            metadata={"n_common": n_common, "config": config.to_dict()},
        )

        logger.info(
            f"✅ Evaluation completed: CRPS {model1.crps_mean:.6f} vs {model2.crps_mean:.6f}"
        )
        return evaluation

    except Exception as e:
        logger.error(f"❌ Error in forecast evaluation: {e}")
        raise


def summary_table(evaluations: Sequence[PairEvaluation]) -> pd.DataFrame:
    """One row per evaluation"""
    rows: List[Dict[str, Any]] = [evaluation.to_row() for evaluation in evaluations]
    if not rows:
        return pd.DataFrame()
    return pd.DataFrame(rows).set_index("label")


def generate_backtest_report(result: VaRBacktestResult, model_name: str = "") -> str:
    """Plain-text VaR backtest report"""
    if not result.has_data:
        return f"VaR Backtest {model_name}: no usable observations".rstrip()

    t = result.transitions
    return f"""
VaR Backtesting Report {model_name}
{'='*60}

Tail probability: {result.alpha:.2%}
Traffic Light Status: {result.traffic_light.upper()}

Violation Statistics:
- Violations: {result.violations}/{result.n_observations}
- Violation Rate: {result.violation_rate:.2%}
- Maximum Consecutive Violations: {result.max_violation_cluster}
- Transitions: n00={t.n00}, n01={t.n01}, n10={t.n10}, n11={t.n11}

Statistical Tests:
- Kupiec (UC): LR={result.lr_uc:.3f}, p={result.p_value_uc:.4f}
- Christoffersen (IND): LR={result.lr_ind:.3f}, p={result.p_value_ind:.4f}
- Conditional Coverage (CC): LR={result.lr_cc:.3f}, p={result.p_value_cc:.4f}
"""


def generate_comparison_report(evaluation: PairEvaluation) -> str:
    """Plain-text model comparison report"""
    m1, m2 = evaluation.model1, evaluation.model2

    report = f"""
Model Comparison Report {evaluation.label}
{'='*60}

CRPS:
- {m1.name}: {m1.crps_mean:.6f}
- {m2.name}: {m2.crps_mean:.6f}
"""
    if evaluation.better_model:
        report += f"\nLower CRPS: {evaluation.better_model}\n"

    dm = evaluation.dm_crps
    if dm is not None:
        lower, upper = dm.critical_values()
        report += f"""
Diebold-Mariano test on CRPS (Moving Block Bootstrap):
- DM statistic: {dm.dm_statistic:.4f}
- Asymptotic p-value: {dm.p_value_asymptotic:.4f}
- Bootstrap p-value: {dm.p_value_bootstrap:.4f}
- Block size: {dm.block_size}, replicates: {dm.bootstrap_reps}
- Bootstrap critical values: [{lower:.4f}, {upper:.4f}]
- {dm.conclusion}
"""
    else:
        report += "\nDiebold-Mariano test: not run (insufficient common observations)\n"

    for model in (m1, m2):
        if model.var_backtest is not None:
            report += generate_backtest_report(model.var_backtest, model.name)

    return report


__all__ = [
    "ForecastSpec",
    "ModelEvaluation",
    "PairEvaluation",
    "evaluate_pair",
    "summary_table",
    "generate_backtest_report",
    "generate_comparison_report",
]

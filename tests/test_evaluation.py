import logging

import pytest
import numpy as np
import pandas as pd

import forecast_eval
from forecast_eval.config import EvaluationConfig
from forecast_eval.core.evaluation import (
    ForecastSpec,
    evaluate_pair,
    generate_backtest_report,
    generate_comparison_report,
    summary_table,
)
from forecast_eval.exceptions import LengthMismatchError


@pytest.fixture
def config():
    return EvaluationConfig(bootstrap_reps=500, seed=17)


@pytest.fixture
def returns(rng):
    return rng.standard_normal(400)


@pytest.fixture
def forecasts(returns):
    n = returns.size
    calibrated = ForecastSpec("calibrated", mu=np.zeros(n), sigma=np.ones(n))
    too_wide = ForecastSpec("too_wide", mu=np.zeros(n), sigma=np.full(n, 3.0))
    return calibrated, too_wide


def test_config_defaults():
    config = EvaluationConfig()

    assert config.alpha == 0.05
    assert config.bootstrap_reps == 10000
    assert config.confidence_level == 0.95
    assert config.loss_kind == "squared"


def test_config_from_dict_merges_overrides():
    config = EvaluationConfig.from_dict({"alpha": 0.01, "seed": 3})

    assert config.alpha == 0.01
    assert config.seed == 3
    assert config.horizon == 1


@pytest.mark.parametrize("overrides", [
    {"alpha": 0.0},
    {"confidence_level": 1.2},
    {"bootstrap_reps": 0},
    {"horizon": 0},
    {"unknown_key": 1},
])
def test_config_rejects_invalid_values(overrides):
    with pytest.raises(ValueError):
        EvaluationConfig.from_dict(overrides)


def test_config_with_overrides_is_a_new_object():
    base = EvaluationConfig()
    changed = base.with_overrides(alpha=0.025)

    assert base.alpha == 0.05
    assert changed.alpha == 0.025


def test_evaluate_pair_prefers_calibrated_forecast(returns, forecasts, config):
    calibrated, too_wide = forecasts

    evaluation = evaluate_pair(returns, calibrated, too_wide, config, label="SPY")

    assert evaluation.model1.crps_mean < evaluation.model2.crps_mean
    assert evaluation.better_model == "calibrated"
    assert evaluation.dm_crps is not None
    assert evaluation.dm_crps.dm_statistic < 0
    assert evaluation.dm_crps.p_value_bootstrap < 0.05
    assert evaluation.dm_crps.bootstrap_reps == 500
    assert evaluation.dm_crps_classic.n_observations == 400
    assert evaluation.metadata["n_common"] == 400


def test_evaluate_pair_backtests_normal_var(returns, forecasts, config):
    calibrated, too_wide = forecasts

    evaluation = evaluate_pair(returns, calibrated, too_wide, config)

    bt_wide = evaluation.model2.var_backtest
    assert evaluation.model1.var_backtest.n_observations == 400
    # A 3-sigma VaR at 5% is almost never breached by N(0, 1) returns
    assert bt_wide.violation_rate < evaluation.model1.var_backtest.violation_rate
    assert bt_wide.p_value_uc < 0.05


def test_explicit_var_overrides_normal_var(returns, forecasts, config):
    calibrated, _ = forecasts
    always_breached = ForecastSpec(
        "always", mu=np.zeros(returns.size), sigma=np.ones(returns.size),
        var=np.full(returns.size, 100.0)
    )

    evaluation = evaluate_pair(returns, calibrated, always_breached, config)

    assert evaluation.model2.var_backtest.violation_rate == 1.0
    assert evaluation.model2.var_backtest.lr_uc == np.inf


def test_too_few_common_observations_skip_dm(forecasts, config, caplog):
    short_returns = np.zeros(20)
    m1 = ForecastSpec("a", mu=np.zeros(20), sigma=np.ones(20))
    m2 = ForecastSpec("b", mu=np.zeros(20), sigma=np.full(20, 2.0))

    with caplog.at_level(logging.WARNING):
        evaluation = evaluate_pair(short_returns, m1, m2, config)

    assert evaluation.dm_crps is None
    assert evaluation.dm_crps_classic is None
    assert "Skipping DM test" in caplog.text
    assert "not run" in generate_comparison_report(evaluation)


def test_short_sample_keeps_bootstrap_dm_and_drops_classic(rng, caplog):
    # Lower threshold than the classic test's 30 observations
    config = EvaluationConfig(bootstrap_reps=50, seed=1, min_observations=10)
    ret = rng.standard_normal(20)
    m1 = ForecastSpec("a", mu=np.zeros(20), sigma=np.ones(20))
    m2 = ForecastSpec("b", mu=np.zeros(20), sigma=np.full(20, 2.0))

    with caplog.at_level(logging.WARNING):
        evaluation = evaluate_pair(ret, m1, m2, config)

    assert evaluation.dm_crps is not None
    assert evaluation.dm_crps.n_observations == 20
    assert evaluation.dm_crps_classic is None
    assert "Classic DM test not run" in caplog.text
    assert np.isnan(summary_table([evaluation]).iloc[0]["dm_classic"])


def test_misaligned_forecast_is_an_error(returns, config):
    good = ForecastSpec("good", mu=np.zeros(returns.size), sigma=np.ones(returns.size))
    bad = ForecastSpec("bad", mu=np.zeros(10), sigma=np.ones(10))

    with pytest.raises(LengthMismatchError):
        evaluate_pair(returns, good, bad, config)


def test_summary_table_has_one_row_per_evaluation(returns, forecasts, config):
    calibrated, too_wide = forecasts

    evaluations = [
        evaluate_pair(returns, calibrated, too_wide, config, label="A"),
        evaluate_pair(returns[::-1], calibrated, too_wide, config, label="B"),
    ]
    table = summary_table(evaluations)

    assert isinstance(table, pd.DataFrame)
    assert list(table.index) == ["A", "B"]
    assert "crps_calibrated" in table.columns
    assert "dm_p_bootstrap" in table.columns
    assert table.loc["A", "dm_n"] == 400

    bt = evaluations[0].model1.var_backtest
    assert table.loc["A", "ind_p_calibrated"] == pytest.approx(bt.p_value_ind)
    assert table.loc["A", "cc_p_calibrated"] == pytest.approx(bt.p_value_cc)


def test_summary_table_of_nothing_is_empty():
    assert summary_table([]).empty


def test_reports_mention_both_models(returns, forecasts, config):
    evaluation = evaluate_pair(returns, *forecasts, config, label="BTC")
    report = generate_comparison_report(evaluation)

    assert "calibrated" in report
    assert "too_wide" in report
    assert "Bootstrap p-value" in report
    assert "Kupiec" in report


def test_backtest_report_without_data():
    result = forecast_eval.var_backtest([np.nan], [np.nan], 0.05)
    assert "no usable observations" in generate_backtest_report(result, "m")


def test_package_exports():
    assert forecast_eval.__version__ == "1.0.0"
    assert forecast_eval.get_package_info()["name"] == "forecast-evaluation"
    for name in forecast_eval.__all__:
        assert hasattr(forecast_eval, name)

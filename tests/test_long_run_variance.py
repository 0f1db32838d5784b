import pytest
import numpy as np

from forecast_eval.estimators.long_run_variance import (
    LRV_FLOOR,
    hac_variance,
    long_run_variance,
    newey_west_lags,
    select_block_size,
)


def reference_lrv(x, centered=False):
    """Straightforward NumPy version of the raw-moment Newey-West estimator"""
    n = len(x)
    lags = int(np.floor(4 * (n / 100) ** (2 / 9)))
    lrv = np.var(x, ddof=1)
    mean = np.mean(x)
    for lag in range(1, lags + 1):
        if centered:
            gamma = np.mean((x[: n - lag] - mean) * (x[lag:] - mean))
        else:
            gamma = np.mean(x[: n - lag] * x[lag:])
        lrv += 2 * (1 - lag / (lags + 1)) * gamma
    return max(lrv, LRV_FLOOR)


@pytest.mark.parametrize("n,expected", [(50, 3), (100, 4), (200, 4), (1000, 6)])
def test_newey_west_lags(n, expected):
    assert newey_west_lags(n) == expected


def test_matches_reference_implementation(rng):
    x = rng.standard_normal(300) + 0.3

    assert long_run_variance(x) == pytest.approx(reference_lrv(x), rel=1e-10)
    assert long_run_variance(x, centered=True) == pytest.approx(
        reference_lrv(x, centered=True), rel=1e-10
    )


def test_uses_raw_lag_moments_for_constant_series():
    # Var = 0, every raw lag moment = 1, L = 4 for n = 200
    x = np.ones(200)
    expected = 2 * (0.8 + 0.6 + 0.4 + 0.2)

    assert long_run_variance(x) == pytest.approx(expected)
    assert long_run_variance(x, centered=True) == LRV_FLOOR


def test_floor_for_degenerate_series():
    assert long_run_variance(np.zeros(100)) == LRV_FLOOR
    assert long_run_variance(np.array([3.0])) == LRV_FLOOR
    assert long_run_variance(np.array([])) == LRV_FLOOR


def test_never_below_floor(rng):
    # Strong negative autocorrelation can push the raw estimate down
    x = np.tile([1.0, -1.0], 100) + 1e-6 * rng.standard_normal(200)
    assert long_run_variance(x) >= LRV_FLOOR


def test_min_lags_extends_truncation(rng):
    x = rng.standard_normal(100)
    assert long_run_variance(x, min_lags=20) != pytest.approx(long_run_variance(x))


def test_positive_dependence_raises_lrv(ar1_series, rng):
    iid = rng.standard_normal(ar1_series.size)
    ratio_ar = long_run_variance(ar1_series, centered=True) / np.var(ar1_series, ddof=1)
    ratio_iid = long_run_variance(iid, centered=True) / np.var(iid, ddof=1)

    assert ratio_ar > ratio_iid


def test_hac_variance_without_lags_is_population_variance(rng):
    x = rng.standard_normal(50)

    assert hac_variance(x, 0) == pytest.approx(np.var(x))
    assert hac_variance(np.full(40, 2.0), 3) == 0.0


def test_hac_variance_rejects_negative_lags():
    with pytest.raises(ValueError):
        hac_variance(np.ones(10), -1)


def test_block_size_for_constant_series():
    # rho undefined -> 0, lambda = 1, round(1.3 * 200^(1/3)) = 8
    assert select_block_size(np.ones(200)) == 8


def test_block_size_degenerate_lengths():
    assert select_block_size(np.array([1.0])) == 1
    assert select_block_size(np.array([1.0, 2.0])) == 1


def test_block_size_perfect_autocorrelation_is_capped():
    trend = np.arange(100, dtype=float)
    assert select_block_size(trend) == 50


def test_block_size_grows_with_dependence(ar1_series, rng):
    iid = rng.standard_normal(ar1_series.size)
    assert select_block_size(ar1_series) > select_block_size(iid)


@pytest.mark.parametrize("n", [2, 5, 10, 30, 100, 1000, 5000])
def test_block_size_stays_in_bounds(n, rng):
    shocks = rng.standard_normal(n + 4)
    x = np.convolve(shocks, np.ones(5) / 5, mode="valid")
    assert x.size == n

    block_size = select_block_size(x)

    assert 1 <= block_size <= max(1, n // 2)

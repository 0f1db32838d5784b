"""
Forecast Evaluation v1.0

Statistical comparison and calibration testing of probabilistic forecasts
for financial time series.

Key features:
- Diebold-Mariano test with Moving Block Bootstrap p-values
- Newey-West long-run variance and automatic block size selection
- VaR backtesting (Kupiec, Christoffersen, conditional coverage)
- CRPS for Normal and sample-based predictive distributions
- Pairwise evaluation pipeline with pandas summary tables

"""

from typing import Dict, Any, Optional
import sys
import logging

# Package version
__version__ = "1.0.0"
__author__ = "ML Volatility Team"
__email__ = "example@example.com"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


def configure_logging(level: int = logging.INFO, log_file: Optional[str] = None) -> None:
    """
    Configure package logging

    Args:
        level: Logging level
        log_file: Optional path of an additional log file
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=handlers)


from .exceptions import LengthMismatchError
from .config import EvaluationConfig

from .utils.scoring import (
    LossKind,
    loss,
    crps_normal,
    crps_normal_series,
    crps_ensemble,
    point_forecast_metrics,
)
from .utils.risk_metrics import normal_var

from .estimators.long_run_variance import (
    LRV_FLOOR,
    newey_west_lags,
    long_run_variance,
    hac_variance,
    select_block_size,
)
from .estimators.bootstrap import MovingBlockBootstrap

from .validation.diebold_mariano import (
    DMTestResult,
    ClassicDMResult,
    DieboldMarianoTester,
    diebold_mariano_bootstrap,
    diebold_mariano,
)
from .validation.var_backtest import (
    TransitionCounts,
    VaRBacktestResult,
    VaRBacktester,
    var_backtest,
)

from .core.evaluation import (
    ForecastSpec,
    PairEvaluation,
    evaluate_pair,
    summary_table,
    generate_comparison_report,
)

# Export main classes
__all__ = [
    # Version
    "__version__",
    "__author__",
    "__email__",
    "configure_logging",

    # Configuration and errors
    "EvaluationConfig",
    "LengthMismatchError",

    # Scoring
    "LossKind",
    "loss",
    "crps_normal",
    "crps_normal_series",
    "crps_ensemble",
    "point_forecast_metrics",
    "normal_var",

    # Estimators
    "LRV_FLOOR",
    "newey_west_lags",
    "long_run_variance",
    "hac_variance",
    "select_block_size",
    "MovingBlockBootstrap",

    # Tests
    "DMTestResult",
    "ClassicDMResult",
    "DieboldMarianoTester",
    "diebold_mariano_bootstrap",
    "diebold_mariano",
    "TransitionCounts",
    "VaRBacktestResult",
    "VaRBacktester",
    "var_backtest",

    # Pipeline
    "ForecastSpec",
    "PairEvaluation",
    "evaluate_pair",
    "summary_table",
    "generate_comparison_report",
]


def get_package_info() -> Dict[str, Any]:
    """Get package information"""
    return {
        "name": "forecast-evaluation",
        "version": __version__,
        "author": __author__,
        "email": __email__,
        "description": "Forecast comparison and calibration testing",
        "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
        "platform": sys.platform,
    }

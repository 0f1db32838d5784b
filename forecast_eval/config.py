"""
Evaluation configuration

Defaults for VaR level, DM loss, bootstrap size and seeding. Overrides are
plain dicts merged over the defaults.
"""

from typing import Any, Dict, Optional
from dataclasses import dataclass, fields, asdict, replace
import logging

import numpy as np

from .utils.scoring import resolve_loss_kind

# Logging configuration
logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EvaluationConfig:
    """Forecast evaluation configuration"""
    # VaR backtesting
    alpha: float = 0.05

    # Diebold-Mariano test
    loss_kind: str = "squared"
    horizon: int = 1
    bootstrap_reps: int = 10000
    confidence_level: float = 0.95
    center_bootstrap: bool = True

    # Reproducibility
    seed: Optional[int] = None

    # Data requirements
    min_observations: int = 30

    def validate(self) -> "EvaluationConfig":
        """Raise ValueError on out-of-range settings"""
        if not np.isfinite(self.alpha) or not 0.0 < self.alpha < 1.0:
            raise ValueError(f"alpha must be in (0, 1), got {self.alpha}")
        if not 0.0 < self.confidence_level < 1.0:
            raise ValueError(f"confidence_level must be in (0, 1), got {self.confidence_level}")
        if self.horizon < 1:
            raise ValueError(f"horizon must be >= 1, got {self.horizon}")
        if self.bootstrap_reps < 1:
            raise ValueError(f"bootstrap_reps must be >= 1, got {self.bootstrap_reps}")
        if self.min_observations < 1:
            raise ValueError(f"min_observations must be >= 1, got {self.min_observations}")

        # Warns on unknown selectors
        resolve_loss_kind(self.loss_kind)
        return self

    def with_overrides(self, **overrides: Any) -> "EvaluationConfig":
        return replace(self, **overrides).validate()

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, config: Optional[Dict[str, Any]] = None) -> "EvaluationConfig":
        """
        Merge a configuration dict over the defaults

        Args:
            config: Partial configuration

        Returns:
            EvaluationConfig: Validated configuration
        """
        default_config = cls().to_dict()

        if config:
            unknown = set(config) - {f.name for f in fields(cls)}
            if unknown:
                raise ValueError(f"Unknown configuration keys: {sorted(unknown)}")
            default_config.update(config)

        logger.debug(f"Evaluation config: {default_config}")
        return cls(**default_config).validate()


__all__ = ["EvaluationConfig"]

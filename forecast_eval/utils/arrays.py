"""Input normalisation shared by all evaluation routines"""

from typing import Any

import numpy as np
import pandas as pd

from ..exceptions import LengthMismatchError


def to_float_array(values: Any) -> np.ndarray:
    """Convert a list, ndarray or pandas Series to a flat float64 array"""
    if isinstance(values, (pd.Series, pd.DataFrame)):
        values = values.to_numpy()
    return np.asarray(values, dtype=np.float64).ravel()


def check_same_length(
    first: np.ndarray,
    second: np.ndarray,
    names: tuple = ("first series", "second series")
) -> None:
    """Raise LengthMismatchError unless both arrays have the same length"""
    if len(first) != len(second):
        raise LengthMismatchError(names[0], len(first), names[1], len(second))


def validate_alpha(alpha: float) -> float:
    """Tail probability must lie strictly inside (0, 1)"""
    alpha = float(alpha)
    if not np.isfinite(alpha) or not 0.0 < alpha < 1.0:
        raise ValueError(f"alpha must be strictly between 0 and 1, got {alpha}")
    return alpha

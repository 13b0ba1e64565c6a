"""Allometric trait conversion.

Maps a raw measurement onto a derived trait with a log-log power law,
e.g. bee body size to tongue length before it enters a fit:

    log(y) = intercept + slope · log(x)     (y = base^intercept · x^slope)
"""

from __future__ import annotations

import numpy as np

from traitmatch.types import InvalidInput


def allometric_convert(x, intercept: float, slope: float, log_base: float = 10.0) -> np.ndarray:
    """Convert measurements x (> 0) with a log-log allometric relationship.

    Args:
        x: Raw measurements, strictly positive.
        intercept: Intercept on the log scale.
        slope: Allometric exponent.
        log_base: Base of the logarithm the coefficients were fitted on.

    Returns:
        Converted values on the original (linear) scale.
    """
    x = np.asarray(x, dtype=np.float64)
    if np.any(~np.isfinite(x)) or np.any(x <= 0):
        raise InvalidInput("allometric conversion requires finite positive measurements")
    if log_base <= 0 or log_base == 1:
        raise InvalidInput(f"log_base must be positive and != 1, got {log_base}")
    log_y = intercept + slope * (np.log(x) / np.log(log_base))
    return np.power(log_base, log_y)

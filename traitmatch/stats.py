"""Weighted summary statistics for background trait distributions.

The background (community-level) distribution of trait1 is summarized by a
mean and a standard deviation, optionally weighted by independently known
abundances. The weighted sd uses the reliability-weights correction

    sd_w = sqrt( Σw / ((Σw)² − Σw²) · Σ w_i (x_i − mean_w)² )

which reduces to the ordinary sample sd (N − 1 denominator) for equal
weights, but is NOT the frequency-weights estimator.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from traitmatch.types import BackgroundSummary, DegenerateWeights, InvalidInput


def _check_weighted_sample(x, w) -> Tuple[np.ndarray, np.ndarray]:
    x = np.asarray(x, dtype=np.float64).ravel()
    w = np.asarray(w, dtype=np.float64).ravel()
    if x.size == 0:
        raise InvalidInput("Cannot summarize an empty sample")
    if x.size != w.size:
        raise InvalidInput(
            f"values and weights must have equal length, got {x.size} and {w.size}"
        )
    if not (np.all(np.isfinite(x)) and np.all(np.isfinite(w))):
        raise InvalidInput("values and weights must be finite")
    if np.any(w < 0):
        raise DegenerateWeights("weights must be non-negative")
    return x, w


def weighted_mean(x, w) -> float:
    """Weighted arithmetic mean Σ(x·w) / Σw.

    Args:
        x: Values.
        w: Non-negative weights, same length as x.

    Returns:
        The weighted mean.

    Raises:
        DegenerateWeights: If the weights sum to zero (or any is negative).
        InvalidInput: If x is empty or lengths differ.
    """
    x, w = _check_weighted_sample(x, w)
    sum_w = w.sum()
    if sum_w <= 0:
        raise DegenerateWeights("weights sum to zero; weighted mean is undefined")
    return float(np.sum(x * w) / sum_w)


def weighted_sd(x, w) -> float:
    """Weighted standard deviation with the reliability-weights correction.

    Raises:
        DegenerateWeights: If (Σw)² − Σw² <= 0, e.g. only one non-zero weight.
    """
    x, w = _check_weighted_sample(x, w)
    sum_w = w.sum()
    sum_w2 = np.sum(w ** 2)
    denom = sum_w ** 2 - sum_w2
    if sum_w <= 0 or denom <= 0:
        raise DegenerateWeights(
            "weighted sd needs at least two non-zero weights "
            f"((Σw)² − Σw² = {denom:g})"
        )
    mean_w = np.sum(x * w) / sum_w
    return float(np.sqrt((sum_w / denom) * np.sum(w * (x - mean_w) ** 2)))


def frequency_sd(x, counts) -> float:
    """Sample sd of a sample given as distinct values with repeat counts.

    Equals np.std(np.repeat(x, counts), ddof=1) without expanding the rows.
    """
    x, w = _check_weighted_sample(x, counts)
    n = w.sum()
    if n <= 1:
        raise DegenerateWeights(f"frequency sd needs a total count above 1, got {n:g}")
    mean_w = np.sum(x * w) / n
    return float(np.sqrt(np.sum(w * (x - mean_w) ** 2) / (n - 1)))


def background_summary(values, weights: Optional[np.ndarray] = None,
                       frequency_weights: bool = False) -> BackgroundSummary:
    """Summarize the background trait1 distribution.

    Unweighted: sample mean and sd (N − 1). Weighted: weighted_mean and
    weighted_sd, or frequency_sd when the weights are repeat counts
    (frequency_weights=True). The result is handed to the likelihoods verbatim.

    Raises:
        DegenerateWeights: Fewer than two usable observations, or zero spread.
    """
    if weights is not None and frequency_weights:
        mean, sd = weighted_mean(values, weights), frequency_sd(values, weights)
    elif weights is None:
        x = np.asarray(values, dtype=np.float64).ravel()
        if x.size < 2:
            raise DegenerateWeights(
                f"background sd needs at least two values, got {x.size}"
            )
        if not np.all(np.isfinite(x)):
            raise InvalidInput("background values must be finite")
        mean, sd = float(np.mean(x)), float(np.std(x, ddof=1))
    else:
        mean, sd = weighted_mean(values, weights), weighted_sd(values, weights)

    if sd <= 0:
        raise DegenerateWeights("background trait values have zero spread")
    return BackgroundSummary(mean=mean, sd=sd)

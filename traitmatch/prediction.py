"""Fitted trait-matching relationship, reconstructed for display.

Pure functions of already-fitted parameters: no fitting happens here.

  mu(trait1)    = a0 + a1·trait1
  sigma(trait1) = exp(b0 + b1·trait1)
  bands         = mu ± z·sigma,  z = Φ⁻¹(0.5 + level/2)
"""

from __future__ import annotations

from dataclasses import dataclass

import numpy as np
from scipy.stats import norm

from traitmatch.types import FitResult, InvalidInput, ModelKind, TraitParams


@dataclass(frozen=True, eq=False)
class PredictionBands:
    """Predicted optimum and spread of trait2 along a trait1 grid."""
    trait1: np.ndarray
    mu: np.ndarray
    sigma: np.ndarray
    lower: np.ndarray
    upper: np.ndarray
    level: float


def trait1_grid(trait1, n: int = 200, pad: float = 0.05) -> np.ndarray:
    """Evenly spaced grid spanning the observed trait1 range (padded)."""
    t1 = np.asarray(trait1, dtype=np.float64)
    if t1.size == 0:
        raise InvalidInput("Cannot build a grid from an empty trait1 sample")
    lo, hi = float(t1.min()), float(t1.max())
    span = hi - lo if hi > lo else 1.0
    return np.linspace(lo - pad * span, hi + pad * span, n)


def predict_niche(params, trait1, level: float = 0.95) -> PredictionBands:
    """Predicted trait2 optimum and confidence band at each trait1 value.

    Args:
        params: Fitted niche or integrated parameters.
        trait1: Trait1 values (e.g. from trait1_grid()).
        level: Central probability mass covered by the band.
    """
    if not 0 < level < 1:
        raise InvalidInput(f"level must be in (0, 1), got {level}")
    p = TraitParams.coerce(params)
    t1 = np.asarray(trait1, dtype=np.float64)
    mu = p.a0 + p.a1 * t1
    with np.errstate(over='ignore'):
        sigma = np.exp(p.b0 + p.b1 * t1)
    z = norm.ppf(0.5 + level / 2.0)
    return PredictionBands(
        trait1=t1, mu=mu, sigma=sigma,
        lower=mu - z * sigma, upper=mu + z * sigma, level=level,
    )


def interaction_probability(params, trait1, trait2) -> np.ndarray:
    """Trait-matching probability exp(-(trait2 - mu)² / (2 sigma²)) in [0, 1].

    Broadcasts, so a meshgrid of trait1/trait2 yields a probability surface.
    """
    p = TraitParams.coerce(params)
    t1 = np.asarray(trait1, dtype=np.float64)
    t2 = np.asarray(trait2, dtype=np.float64)
    with np.errstate(over='ignore', under='ignore', invalid='ignore'):
        z = (t2 - (p.a0 + p.a1 * t1)) * np.exp(-(p.b0 + p.b1 * t1))
        prob = np.exp(-0.5 * z * z)
    return np.nan_to_num(prob, nan=0.0)


def prediction_for(fit: FitResult, trait1, n: int = 200,
                   level: float = 0.95) -> PredictionBands:
    """Bands for a fitted niche/integrated model over the observed trait1 range.

    Raises:
        InvalidInput: For a neutral fit, which has no trait-matching relationship.
    """
    if not fit.model.has_parameters:
        raise InvalidInput("The neutral model has no fitted trait-matching relationship")
    return predict_niche(fit.params, trait1_grid(trait1, n=n), level=level)

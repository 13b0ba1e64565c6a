"""Negative log-likelihoods of the three interaction hypotheses.

For each observed interaction i with partner traits (trait1[i], trait2[i]):

  neutral     f_i = N(trait1[i] | bg_mean, bg_sd)
  niche       f_i = N(trait2[i] | a0 + a1·trait1[i], exp(b0 + b1·trait1[i]))
  integrated  f_i = neutral f_i × niche f_i

and each model returns  −Σ w_i · log f_i  (w_i = 1 when unweighted), so the
integrated value is exactly the niche value plus the neutral value.

All three share the signature (params, trait1, trait2, bg_mean, bg_sd,
weights=None); the neutral model ignores params. Log-densities are floored at
LOG_DENSITY_FLOOR and a non-finite total becomes DIVERGENCE_PENALTY so the
optimizer never sees NaN.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

import numpy as np

from traitmatch.types import (
    DIVERGENCE_PENALTY,
    LOG_DENSITY_FLOOR,
    BackgroundSummary,
    ModelKind,
    TraitParams,
    validate_traits,
)

_LOG_SQRT_2PI = 0.5 * np.log(2.0 * np.pi)


# ═══════════════════════════════════════════════════════════════════════
# PER-OBSERVATION LOG-DENSITIES
# ═══════════════════════════════════════════════════════════════════════

def neutral_log_density(trait1: np.ndarray, bg_mean: float, bg_sd: float) -> np.ndarray:
    """log N(trait1 | bg_mean, bg_sd), floored."""
    z = (trait1 - bg_mean) / bg_sd
    logf = -_LOG_SQRT_2PI - np.log(bg_sd) - 0.5 * z * z
    return np.maximum(logf, LOG_DENSITY_FLOOR)


def niche_log_density(params, trait1: np.ndarray, trait2: np.ndarray) -> np.ndarray:
    """log N(trait2 | mu(trait1), sigma(trait1)), floored.

    log sigma enters the log term directly, so an exp() overflow in sigma
    cannot produce log(0) or log(inf).
    """
    a0, a1, b0, b1 = np.asarray(params, dtype=np.float64)
    with np.errstate(over='ignore', invalid='ignore', under='ignore'):
        log_sigma = b0 + b1 * trait1
        z = (trait2 - (a0 + a1 * trait1)) * np.exp(-log_sigma)
        logf = -_LOG_SQRT_2PI - log_sigma - 0.5 * z * z
    return np.maximum(logf, LOG_DENSITY_FLOOR)


def _neg_sum(logf: np.ndarray, weights: Optional[np.ndarray]) -> float:
    with np.errstate(invalid='ignore', over='ignore'):
        total = -np.sum(logf) if weights is None else -np.sum(weights * logf)
    if not np.isfinite(total):
        return DIVERGENCE_PENALTY
    return float(total)


def _param_array(params) -> np.ndarray:
    if isinstance(params, np.ndarray) and params.shape == (4,):
        return params
    return TraitParams.coerce(params).as_array()


# ═══════════════════════════════════════════════════════════════════════
# MODELS
# ═══════════════════════════════════════════════════════════════════════

def neutral_model(params, trait1, trait2, bg_mean: float, bg_sd: float,
                  weights=None) -> float:
    """Neutral negative log-likelihood; params are accepted and ignored.

    Interactions occur in proportion to how common a trait1 value is in the
    background, independently of trait2.
    """
    t1, _, w = validate_traits(trait1, trait2, weights)
    bg = BackgroundSummary(float(bg_mean), float(bg_sd))
    return _neg_sum(neutral_log_density(t1, bg.mean, bg.sd), w)


def niche_model(params, trait1, trait2, bg_mean: float, bg_sd: float,
                weights=None) -> float:
    """Niche (trait-matching) negative log-likelihood.

    bg_mean and bg_sd are accepted for a uniform signature and not used.
    """
    t1, t2, w = validate_traits(trait1, trait2, weights)
    return _neg_sum(niche_log_density(_param_array(params), t1, t2), w)


def integrated_model(params, trait1, trait2, bg_mean: float, bg_sd: float,
                     weights=None) -> float:
    """Integrated negative log-likelihood: niche density × neutral density."""
    t1, t2, w = validate_traits(trait1, trait2, weights)
    bg = BackgroundSummary(float(bg_mean), float(bg_sd))
    niche = _neg_sum(niche_log_density(_param_array(params), t1, t2), w)
    neutral = _neg_sum(neutral_log_density(t1, bg.mean, bg.sd), w)
    return niche + neutral


MODEL_FUNCTIONS: Dict[ModelKind, Callable[..., float]] = {
    ModelKind.NEUTRAL: neutral_model,
    ModelKind.NICHE: niche_model,
    ModelKind.INTEGRATED: integrated_model,
}


def get_model(kind) -> Callable[..., float]:
    """Return the likelihood function for a ModelKind, its name, or itself."""
    if callable(kind) and kind in MODEL_FUNCTIONS.values():
        return kind
    return MODEL_FUNCTIONS[ModelKind.parse(kind)]


def model_kind_of(model) -> ModelKind:
    """Inverse of get_model(): accepts a function, ModelKind, or name."""
    for k, fn in MODEL_FUNCTIONS.items():
        if model is fn:
            return k
    return ModelKind.parse(model)


# ═══════════════════════════════════════════════════════════════════════
# OPTIMIZER OBJECTIVES
# ═══════════════════════════════════════════════════════════════════════

def make_objective(kind: ModelKind, trait1: np.ndarray, trait2: np.ndarray,
                   background: BackgroundSummary,
                   weights: Optional[np.ndarray] = None) -> Callable[[np.ndarray], float]:
    """Objective x -> negative log-likelihood over pre-validated arrays.

    The neutral term does not depend on the parameters, so the integrated
    objective adds its precomputed value to each niche evaluation.
    """
    neutral_term = _neg_sum(neutral_log_density(trait1, background.mean, background.sd),
                            weights)
    if kind is ModelKind.NEUTRAL:
        return lambda x: neutral_term

    def objective(x: np.ndarray) -> float:
        value = _neg_sum(niche_log_density(x, trait1, trait2), weights)
        if kind is ModelKind.INTEGRATED:
            value = value + neutral_term
        return value

    return objective

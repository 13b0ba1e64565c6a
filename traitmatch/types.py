"""Core data types for traitmatch.

This module is the single source of truth for:
  - ModelKind: the closed set of competing interaction hypotheses
  - TraitParams / ParamBounds: the four-parameter trait-matching vector and its box
  - BackgroundSummary / InteractionData: validated model inputs
  - FitResult: immutable output of one model fit
  - The error taxonomy (InvalidInput, InvalidBounds, DegenerateWeights)

All modules import these types from here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np


# ═══════════════════════════════════════════════════════════════════════
# ERRORS
# ═══════════════════════════════════════════════════════════════════════

class TraitMatchError(ValueError):
    """Base class for input errors raised by traitmatch."""


class InvalidInput(TraitMatchError):
    """Trait sequences are empty, mismatched, or otherwise unusable."""


class InvalidBounds(TraitMatchError):
    """A lower parameter bound exceeds its upper bound."""


class DegenerateWeights(TraitMatchError):
    """Weighted statistics cannot be computed from the given weights."""


# ═══════════════════════════════════════════════════════════════════════
# CONSTANTS
# ═══════════════════════════════════════════════════════════════════════

PARAM_NAMES: Tuple[str, ...] = ('a0', 'a1', 'b0', 'b1')
N_PARAMS = len(PARAM_NAMES)

# Finite stand-in for a non-finite likelihood during search.
DIVERGENCE_PENALTY: float = 1.0e10

# ≈ log of the smallest positive double; floor for per-observation log-densities.
LOG_DENSITY_FLOOR: float = -745.0

DEFAULT_TIME_BUDGET: float = 30 * 60.0   # seconds
DEFAULT_MAXITER: int = 1000


# ═══════════════════════════════════════════════════════════════════════
# MODEL SELECTOR
# ═══════════════════════════════════════════════════════════════════════

class ModelKind(str, Enum):
    """Competing hypotheses for why two species interact.

    NEUTRAL     interactions track the background abundance of trait1 only
    NICHE       trait2 is set by a trait-matching relationship to trait1
    INTEGRATED  product of the niche and neutral densities
    """
    NEUTRAL = 'neutral'
    NICHE = 'niche'
    INTEGRATED = 'integrated'

    @classmethod
    def parse(cls, value) -> 'ModelKind':
        """Resolve a ModelKind from a member or a case-insensitive name."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        valid = [m.value for m in cls]
        raise InvalidInput(f"Unknown model {value!r}; expected one of {valid}")

    @property
    def has_parameters(self) -> bool:
        return self is not ModelKind.NEUTRAL


# ═══════════════════════════════════════════════════════════════════════
# PARAMETERS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class TraitParams:
    """Trait-matching parameters.

    mu(trait1)        = a0 + a1 * trait1          (optimal trait2)
    log sigma(trait1) = b0 + b1 * trait1          (spread around the optimum)
    """
    a0: float = 0.0
    a1: float = 0.0
    b0: float = 0.0
    b1: float = 0.0

    def as_array(self) -> np.ndarray:
        return np.array([self.a0, self.a1, self.b0, self.b1], dtype=np.float64)

    def as_dict(self) -> Dict[str, float]:
        return {name: float(v) for name, v in zip(PARAM_NAMES, self.as_array())}

    @classmethod
    def from_array(cls, values: Sequence[float]) -> 'TraitParams':
        arr = np.asarray(values, dtype=np.float64).ravel()
        if arr.shape != (N_PARAMS,):
            raise InvalidInput(
                f"Parameter vector must have {N_PARAMS} elements "
                f"{PARAM_NAMES}, got shape {arr.shape}"
            )
        return cls(*(float(v) for v in arr))

    @classmethod
    def from_mapping(cls, values: Mapping[str, float]) -> 'TraitParams':
        """Build from a name → value mapping; missing names default to 0."""
        unknown = set(values) - set(PARAM_NAMES)
        if unknown:
            raise InvalidInput(f"Unknown parameter names: {sorted(unknown)}")
        return cls(**{k: float(v) for k, v in values.items()})

    @classmethod
    def coerce(cls, value) -> 'TraitParams':
        """Accept TraitParams, a name mapping, or a length-4 sequence."""
        if isinstance(value, cls):
            return value
        if isinstance(value, Mapping):
            return cls.from_mapping(value)
        return cls.from_array(value)


DEFAULT_INITIAL_GUESS = TraitParams(a0=0.0, a1=0.0, b0=0.0, b1=0.0)


@dataclass(frozen=True)
class ParamBounds:
    """Closed box [lower, upper] over the four parameters."""
    lower: TraitParams
    upper: TraitParams

    def validate(self) -> None:
        """Raise InvalidBounds unless lower <= upper element-wise and finite."""
        lo, hi = self.lower.as_array(), self.upper.as_array()
        if not (np.all(np.isfinite(lo)) and np.all(np.isfinite(hi))):
            raise InvalidBounds("Parameter bounds must be finite")
        bad = [name for name, l, h in zip(PARAM_NAMES, lo, hi) if l > h]
        if bad:
            detail = ", ".join(
                f"{n}: {getattr(self.lower, n)} > {getattr(self.upper, n)}"
                for n in bad
            )
            raise InvalidBounds(f"Lower bound exceeds upper bound ({detail})")

    def contains(self, params: TraitParams) -> bool:
        x = params.as_array()
        return bool(np.all(x >= self.lower.as_array())
                    and np.all(x <= self.upper.as_array()))


# Non-negative slope by default: a bigger partner 1 never predicts a smaller partner 2.
DEFAULT_BOUNDS = ParamBounds(
    lower=TraitParams(a0=-10.0, a1=0.0, b0=-10.0, b1=-10.0),
    upper=TraitParams(a0=10.0, a1=10.0, b0=10.0, b1=10.0),
)


# ═══════════════════════════════════════════════════════════════════════
# INPUT CONTAINERS
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class BackgroundSummary:
    """Mean and sd of the community-level trait1 distribution.

    A non-positive sd handed in by a caller is an InvalidInput; zero spread
    found while summarizing a sample is DegenerateWeights (stats.py).
    """
    mean: float
    sd: float

    def __post_init__(self):
        if not np.isfinite(self.mean):
            raise InvalidInput(f"Background mean must be finite, got {self.mean}")
        if not np.isfinite(self.sd) or self.sd <= 0:
            raise InvalidInput(
                f"Background sd must be finite and positive, got {self.sd}"
            )


def as_trait_array(values, label: str = 'trait') -> np.ndarray:
    """Convert to a 1-D float64 array, rejecting NaN and infinities."""
    arr = np.asarray(values, dtype=np.float64)
    if arr.ndim != 1:
        arr = arr.ravel()
    if not np.all(np.isfinite(arr)):
        raise InvalidInput(f"{label} contains non-finite values")
    return arr


def validate_traits(trait1, trait2, weights=None):
    """Validate a paired trait sample; returns (trait1, trait2, weights) arrays.

    Raises:
        InvalidInput: Empty or mismatched sequences, non-finite values,
            negative weights, or weights that sum to zero.
    """
    t1 = as_trait_array(trait1, 'trait1')
    t2 = as_trait_array(trait2, 'trait2')
    if t1.size == 0:
        raise InvalidInput("Trait sequences must contain at least one interaction")
    if t1.size != t2.size:
        raise InvalidInput(
            f"trait1 and trait2 must have equal length, got {t1.size} and {t2.size}"
        )
    if weights is None:
        return t1, t2, None
    w = as_trait_array(weights, 'weights')
    if w.size != t1.size:
        raise InvalidInput(
            f"weights must match trait length {t1.size}, got {w.size}"
        )
    if np.any(w < 0):
        raise InvalidInput("weights must be non-negative")
    if w.sum() <= 0:
        raise InvalidInput("weights must not all be zero")
    return t1, t2, w


@dataclass(frozen=True, eq=False)
class InteractionData:
    """Observed interactions for one system.

    trait1[i] and trait2[i] are the partners of interaction i. weights, when
    given, are per-row interaction frequencies.
    """
    trait1: np.ndarray
    trait2: np.ndarray
    weights: Optional[np.ndarray] = None
    name: str = ''

    def __post_init__(self):
        # Private read-only copies; the caller's arrays are left untouched.
        t1, t2, w = (None if a is None else a.copy()
                     for a in validate_traits(self.trait1, self.trait2, self.weights))
        for arr in (t1, t2, w):
            if arr is not None:
                arr.setflags(write=False)
        object.__setattr__(self, 'trait1', t1)
        object.__setattr__(self, 'trait2', t2)
        object.__setattr__(self, 'weights', w)

    def __len__(self) -> int:
        return int(self.trait1.size)

    @property
    def n_interactions(self) -> float:
        """Total interaction count (sum of weights, or number of rows)."""
        return float(self.weights.sum()) if self.weights is not None else float(len(self))


# ═══════════════════════════════════════════════════════════════════════
# FIT OUTPUT
# ═══════════════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class FitResult:
    """Outcome of one model fit.

    neg_log_likelihood is the minimized objective; log_likelihood is its
    negation (higher is better) for reporting.
    """
    model: ModelKind
    params: TraitParams
    neg_log_likelihood: float
    initial_neg_log_likelihood: float
    n_evaluations: int = 0
    elapsed_s: float = 0.0
    budget_exhausted: bool = False
    at_bounds: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def log_likelihood(self) -> float:
        return -self.neg_log_likelihood

    @property
    def improved(self) -> bool:
        return self.neg_log_likelihood < self.initial_neg_log_likelihood

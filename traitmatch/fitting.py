"""Model fitting: bounded simulated-annealing search for trait-matching parameters.

fit_it() minimizes one model's negative log-likelihood over the box
[par_lo, par_hi] with scipy's dual_annealing (generalized simulated
annealing plus local search), under a wall-clock budget.

Guarantees:
  - Every evaluated and returned point lies inside the box
  - The returned objective is <= the objective at the initial guess
  - Budget exhaustion is not an error: the best point so far is returned

The search trajectory depends on the supplied generator; pass an int seed or
a numpy Generator (see traitmatch.rng) for reproducible fits.

A fit whose parameters sit on a bound is flagged with a UserWarning. The
box is what keeps the search away from degenerate optima such as a vertical
slope, so fitted slopes should be inspected for biological plausibility.
"""

from __future__ import annotations

import dataclasses
import time
import warnings
from typing import Callable, Dict, Mapping, Optional

import numpy as np
from scipy.optimize import dual_annealing

from traitmatch.likelihood import get_model, make_objective, model_kind_of
from traitmatch.types import (
    DEFAULT_BOUNDS,
    DEFAULT_INITIAL_GUESS,
    DEFAULT_MAXITER,
    DEFAULT_TIME_BUDGET,
    PARAM_NAMES,
    BackgroundSummary,
    FitResult,
    InvalidBounds,
    InvalidInput,
    ModelKind,
    ParamBounds,
    TraitParams,
    validate_traits,
)
from traitmatch.rng import SeedLike, make_rng

# Relative distance to a bound below which a parameter counts as "at" it.
AT_BOUND_TOL: float = 1e-6

# Seconds between verbose progress lines.
REPORT_INTERVAL: float = 10.0


class _BudgetExhausted(Exception):
    """Raised from inside the objective to stop the search."""


class _TrackedObjective:
    """Objective over the free parameters that tracks the best in-box point.

    Candidate points are clipped to the box before evaluation. Raises
    _BudgetExhausted once the wall-clock deadline has passed.
    """

    def __init__(self, objective, template, free, lower, upper, deadline,
                 label='', verbose=False, progress_callback=None):
        self.objective = objective
        self.template = template
        self.free = free
        self.lower = lower
        self.upper = upper
        self.deadline = deadline
        self.label = label
        self.verbose = verbose
        self.progress_callback = progress_callback

        self.n_evaluations = 0
        self.best_x = template.copy()
        self.best_value = np.inf
        self.exhausted = False
        self._t0 = time.perf_counter()
        self._last_report = self._t0

    def full(self, x_free: np.ndarray) -> np.ndarray:
        x = self.template.copy()
        x[self.free] = x_free
        return x

    def offer(self, x: np.ndarray, value: float) -> None:
        inside = np.all(x >= self.lower) and np.all(x <= self.upper)
        if inside and value < self.best_value:
            self.best_value = value
            self.best_x = x.copy()

    def evaluate(self, x: np.ndarray) -> float:
        """Evaluate an in-box point, counting it and offering it as a best."""
        value = self.objective(x)
        self.n_evaluations += 1
        self.offer(x, value)
        return value

    def __call__(self, x_free: np.ndarray) -> float:
        now = time.perf_counter()
        if now >= self.deadline:
            self.exhausted = True
            raise _BudgetExhausted
        value = self.evaluate(np.clip(self.full(x_free), self.lower, self.upper))

        if now - self._last_report >= REPORT_INTERVAL:
            self._last_report = now
            elapsed = now - self._t0
            if self.verbose:
                print(f"[{self.label}] {self.n_evaluations} evaluations, "
                      f"best -logL = {self.best_value:.4f}, {elapsed:.1f}s elapsed")
            if self.progress_callback is not None:
                self.progress_callback(self.n_evaluations, self.best_value, elapsed)
        return value


def _coerce_bound(value, default: TraitParams) -> TraitParams:
    if value is None:
        return default
    if isinstance(value, Mapping):
        unknown = set(value) - set(PARAM_NAMES)
        if unknown:
            raise InvalidBounds(f"Unknown parameter names in bounds: {sorted(unknown)}")
        return dataclasses.replace(default, **{k: float(v) for k, v in value.items()})
    return TraitParams.coerce(value)


def resolve_bounds(par_lo=None, par_hi=None) -> ParamBounds:
    """Build and validate a ParamBounds, filling unspecified parts from defaults.

    Mappings may name a subset of parameters; the rest keep their defaults.

    Raises:
        InvalidBounds: If any lower bound exceeds its upper bound.
    """
    bounds = ParamBounds(
        lower=_coerce_bound(par_lo, DEFAULT_BOUNDS.lower),
        upper=_coerce_bound(par_hi, DEFAULT_BOUNDS.upper),
    )
    bounds.validate()
    return bounds


def params_at_bounds(params: TraitParams, bounds: ParamBounds,
                     tol: float = AT_BOUND_TOL) -> tuple:
    """Names of free parameters lying on (within tol·range of) a bound."""
    x = params.as_array()
    lo, hi = bounds.lower.as_array(), bounds.upper.as_array()
    span = hi - lo
    hits = []
    for name, xi, l, h, s in zip(PARAM_NAMES, x, lo, hi, span):
        if s <= 0:
            continue
        if xi - l <= tol * s or h - xi <= tol * s:
            hits.append(name)
    return tuple(hits)


def fit_model(
    model,
    trait1,
    trait2,
    bg_mean: float,
    bg_sd: float,
    initial_guess=None,
    par_lo=None,
    par_hi=None,
    time_budget: float = DEFAULT_TIME_BUDGET,
    weights=None,
    rng: SeedLike = None,
    maxiter: int = DEFAULT_MAXITER,
    no_local_search: bool = False,
    verbose: bool = False,
    progress_callback: Optional[Callable[[int, float, float], None]] = None,
) -> FitResult:
    """Fit one likelihood model and return the full FitResult.

    Args:
        model: ModelKind, its name, or one of the three model functions.
        trait1, trait2: Paired trait values (equal length >= 1).
        bg_mean, bg_sd: Background trait1 summary, used as given.
        initial_guess: Starting parameters (TraitParams, mapping, or 4-sequence).
            Defaults to all zeros.
        par_lo, par_hi: Box bounds. Mappings may override single parameters.
            Defaults: a0, b0, b1 in [-10, 10], a1 in [0, 10].
        time_budget: Wall-clock seconds for the search (default 30 minutes).
            Larger budgets give better fits; this is a trade-off, not a
            correctness requirement.
        weights: Optional per-row interaction frequencies.
        rng: Seed or Generator driving the annealing.
        maxiter: Maximum global annealing iterations.
        no_local_search: Skip the local minimizer (classic annealing only).
        verbose: Print periodic progress lines.
        progress_callback: Called as (n_evaluations, best_value, elapsed_s).

    Returns:
        FitResult for the fitted model.

    Raises:
        InvalidInput: Empty/mismatched traits, bad budget, or a bg_sd that is
            not finite and positive. A zero background sd is a bad argument
            here; DegenerateWeights is reserved for background statistics
            that cannot be computed from the sample (see stats.py).
        InvalidBounds: par_lo > par_hi for some parameter, or an initial
            guess outside the box.
    """
    kind = model_kind_of(model)
    t1, t2, w = validate_traits(trait1, trait2, weights)
    background = BackgroundSummary(float(bg_mean), float(bg_sd))
    guess = (DEFAULT_INITIAL_GUESS if initial_guess is None
             else TraitParams.coerce(initial_guess))

    objective = make_objective(kind, t1, t2, background, w)
    t_start = time.perf_counter()

    # Neutral has no free parameters: no search.
    if kind is ModelKind.NEUTRAL:
        value = objective(guess.as_array())
        return FitResult(
            model=kind, params=guess,
            neg_log_likelihood=value, initial_neg_log_likelihood=value,
            n_evaluations=1, elapsed_s=time.perf_counter() - t_start,
        )

    bounds = resolve_bounds(par_lo, par_hi)
    if not bounds.contains(guess):
        raise InvalidBounds(
            f"Initial guess {guess.as_dict()} lies outside the bounds "
            f"[{bounds.lower.as_dict()}, {bounds.upper.as_dict()}]"
        )
    if not time_budget > 0:
        raise InvalidInput(f"time_budget must be positive, got {time_budget}")
    if maxiter < 1:
        raise InvalidInput(f"maxiter must be >= 1, got {maxiter}")

    lower, upper = bounds.lower.as_array(), bounds.upper.as_array()
    x0 = guess.as_array()
    free = lower < upper

    tracked = _TrackedObjective(
        objective, template=x0, free=free, lower=lower, upper=upper,
        deadline=t_start + time_budget, label=kind.value,
        verbose=verbose, progress_callback=progress_callback,
    )
    initial_value = tracked.evaluate(x0)

    if np.any(free):
        if verbose:
            print(f"[{kind.value}] annealing over {', '.join(np.array(PARAM_NAMES)[free])} "
                  f"({len(t1)} rows, budget {time_budget:.0f}s)")
        try:
            result = dual_annealing(
                tracked,
                bounds=list(zip(lower[free], upper[free])),
                x0=x0[free],
                maxiter=maxiter,
                rng=make_rng(rng),
                no_local_search=no_local_search,
            )
            x_final = np.clip(tracked.full(result.x), lower, upper)
            tracked.evaluate(x_final)
        except _BudgetExhausted:
            if verbose:
                print(f"[{kind.value}] time budget of {time_budget:.0f}s exhausted; "
                      f"returning best point found")

    params = TraitParams.from_array(tracked.best_x)
    at_bounds = params_at_bounds(params, bounds)
    if at_bounds:
        warnings.warn(
            f"{kind.value} fit has {', '.join(at_bounds)} on a bound "
            f"({params.as_dict()}); the optimum may lie outside the box or be "
            f"degenerate. Inspect the fitted relationship.",
            UserWarning,
            stacklevel=2,
        )

    elapsed = time.perf_counter() - t_start
    if verbose:
        print(f"[{kind.value}] done: -logL = {tracked.best_value:.4f} "
              f"({tracked.n_evaluations} evaluations, {elapsed:.1f}s)")

    return FitResult(
        model=kind,
        params=params,
        neg_log_likelihood=float(tracked.best_value),
        initial_neg_log_likelihood=float(initial_value),
        n_evaluations=tracked.n_evaluations,
        elapsed_s=elapsed,
        budget_exhausted=tracked.exhausted,
        at_bounds=at_bounds,
    )


def fit_it(
    model,
    trait1,
    trait2,
    bg_mean: float,
    bg_sd: float,
    initial_guess=None,
    par_lo=None,
    par_hi=None,
    time_budget: float = DEFAULT_TIME_BUDGET,
    **kwargs,
) -> TraitParams:
    """Fit a model and return only the best parameter vector.

    See fit_model() for the arguments; extra keyword arguments (weights,
    rng, maxiter, verbose, ...) are passed through.

    Example:
        >>> params = fit_it('niche', prey_size, predator_size,
        ...                 bg.mean, bg.sd, time_budget=60, rng=1)
        >>> params.a1  # trait-matching slope
    """
    return fit_model(
        model, trait1, trait2, bg_mean, bg_sd,
        initial_guess=initial_guess, par_lo=par_lo, par_hi=par_hi,
        time_budget=time_budget, **kwargs,
    ).params


def compare_models(
    trait1,
    trait2,
    bg_mean: float,
    bg_sd: float,
    fits: Mapping,
    weights=None,
) -> Dict[str, float]:
    """Recompute log-likelihoods (higher is better) for fitted models.

    Args:
        fits: Mapping of model (ModelKind/name) to a FitResult or parameters.

    Returns:
        {model name: log-likelihood}, i.e. the negated objective.
    """
    out: Dict[str, float] = {}
    for model, fit in fits.items():
        kind = ModelKind.parse(model)
        params = fit.params if isinstance(fit, FitResult) else TraitParams.coerce(fit)
        nll = get_model(kind)(params, trait1, trait2, bg_mean, bg_sd, weights=weights)
        out[kind.value] = -nll
    return out

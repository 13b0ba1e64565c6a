"""Tabular summaries of fitted systems.

comparison_table() is the end-of-session likelihood comparison: one row per
system with the integrated, niche and neutral log-likelihoods (higher is
better) and the best-supported model.
"""

from __future__ import annotations

from pathlib import Path
from typing import Mapping, Union

import numpy as np
import pandas as pd

from traitmatch.types import PARAM_NAMES, FitResult, ModelKind

MODEL_COLUMNS = [ModelKind.INTEGRATED.value, ModelKind.NICHE.value, ModelKind.NEUTRAL.value]


def comparison_table(likelihoods: Mapping[str, Mapping[str, float]]) -> pd.DataFrame:
    """Build the likelihood comparison table.

    Args:
        likelihoods: {system name: {model name: log-likelihood}}. Models not
            fitted for a system appear as NaN.

    Returns:
        DataFrame with columns system, integrated, niche, neutral, best_model.
    """
    rows = []
    for system, by_model in likelihoods.items():
        row = {'system': system}
        for model in MODEL_COLUMNS:
            row[model] = float(by_model.get(model, np.nan))
        finite = {m: row[m] for m in MODEL_COLUMNS if np.isfinite(row[m])}
        row['best_model'] = max(finite, key=finite.get) if finite else None
        rows.append(row)
    return pd.DataFrame(rows, columns=['system', *MODEL_COLUMNS, 'best_model'])


def parameter_table(fits: Mapping[str, Mapping[str, FitResult]]) -> pd.DataFrame:
    """One row per (system, parameterized model) with fitted a0, a1, b0, b1."""
    rows = []
    for system, by_model in fits.items():
        for model, fit in by_model.items():
            if not fit.model.has_parameters:
                continue
            row = {'system': system, 'model': fit.model.value}
            row.update(fit.params.as_dict())
            row['log_likelihood'] = fit.log_likelihood
            row['at_bounds'] = ','.join(fit.at_bounds)
            row['budget_exhausted'] = fit.budget_exhausted
            rows.append(row)
    columns = ['system', 'model', *PARAM_NAMES, 'log_likelihood',
               'at_bounds', 'budget_exhausted']
    return pd.DataFrame(rows, columns=columns)


def write_table(df: pd.DataFrame, path: Union[str, Path]) -> Path:
    """Write a table as CSV, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, float_format='%.6g')
    return path

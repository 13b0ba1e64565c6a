"""Delimited-text loading of interaction and background trait data.

One row per observed interaction (or per distinct pair, with a frequency
column counting how often it was observed):

    prey_size,predator_size,n
    1.2,3.4,5
    ...

Frequencies are kept as weights rather than expanded into repeated rows.
"""

from __future__ import annotations

import warnings
from pathlib import Path
from typing import Optional, Tuple, Union

import numpy as np
import pandas as pd

from traitmatch.types import InteractionData, InvalidInput

PathLike = Union[str, Path]


def read_table(path: PathLike, delimiter: str = ',') -> pd.DataFrame:
    """Read a delimited text file into a DataFrame.

    Raises:
        FileNotFoundError: If path doesn't exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Data file not found: {path}")
    return pd.read_csv(path, sep=delimiter)


def _require_columns(df: pd.DataFrame, columns, path) -> None:
    missing = [c for c in columns if c is not None and c not in df.columns]
    if missing:
        raise ValueError(
            f"{path}: missing column(s) {missing}; available: {list(df.columns)}"
        )


def log_traits(values, log_base: float = 10.0) -> np.ndarray:
    """Log-transform trait values spanning orders of magnitude.

    Raises:
        InvalidInput: If any value is <= 0.
    """
    x = np.asarray(values, dtype=np.float64)
    if np.any(x <= 0):
        raise InvalidInput("log transform requires strictly positive trait values")
    return np.log(x) / np.log(log_base)


def load_interactions(
    path: PathLike,
    trait1_column: str,
    trait2_column: str,
    frequency_column: Optional[str] = None,
    delimiter: str = ',',
    name: Optional[str] = None,
) -> InteractionData:
    """Load paired trait values (and optional frequencies) for one system.

    Rows with a missing trait or frequency are dropped with a warning.

    Args:
        path: Delimited text file.
        trait1_column: Column with partner-1 traits (e.g. prey size).
        trait2_column: Column with partner-2 traits (e.g. predator size).
        frequency_column: Optional column of interaction counts.
        delimiter: Field separator.
        name: System name (defaults to the file stem).

    Returns:
        Validated InteractionData with raw (untransformed) values.
    """
    df = read_table(path, delimiter)
    _require_columns(df, [trait1_column, trait2_column, frequency_column], path)

    cols = [c for c in (trait1_column, trait2_column, frequency_column) if c is not None]
    clean = df[cols].dropna()
    n_dropped = len(df) - len(clean)
    if n_dropped:
        warnings.warn(
            f"{path}: dropped {n_dropped} row(s) with missing values",
            UserWarning,
            stacklevel=2,
        )

    weights = None
    if frequency_column is not None:
        weights = clean[frequency_column].to_numpy(dtype=np.float64)

    return InteractionData(
        trait1=clean[trait1_column].to_numpy(dtype=np.float64),
        trait2=clean[trait2_column].to_numpy(dtype=np.float64),
        weights=weights,
        name=name if name is not None else Path(path).stem,
    )


def load_background(
    path: PathLike,
    column: str,
    weight_column: Optional[str] = None,
    delimiter: str = ',',
) -> Tuple[np.ndarray, Optional[np.ndarray]]:
    """Load community-level trait1 values and optional abundance weights.

    Rows with a missing value or weight are dropped with a warning.

    Returns:
        (values, weights) arrays; weights is None when no column is given.
    """
    df = read_table(path, delimiter)
    _require_columns(df, [column, weight_column], path)
    cols = [c for c in (column, weight_column) if c is not None]
    clean = df[cols].dropna()
    n_dropped = len(df) - len(clean)
    if n_dropped:
        warnings.warn(
            f"{path}: dropped {n_dropped} row(s) with missing values",
            UserWarning,
            stacklevel=2,
        )
    values = clean[column].to_numpy(dtype=np.float64)
    weights = None
    if weight_column is not None:
        weights = clean[weight_column].to_numpy(dtype=np.float64)
    return values, weights

"""Configuration system for traitmatch analyses.

Hierarchical YAML configuration with deep-merge support:
  base.yaml → override file(s) → programmatic overrides

An analysis configures the search (fit), how raw data are read and
transformed (data), the interaction systems to analyse (systems) and where
results go (output).
"""

from __future__ import annotations

import dataclasses
import os
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

import yaml

from traitmatch.types import (
    DEFAULT_BOUNDS,
    DEFAULT_INITIAL_GUESS,
    DEFAULT_MAXITER,
    DEFAULT_TIME_BUDGET,
    PARAM_NAMES,
    ModelKind,
    TraitMatchError,
)


# ═══════════════════════════════════════════════════════════════════════
# CONFIGURATION DATACLASSES
# ═══════════════════════════════════════════════════════════════════════

@dataclass
class FitSection:
    """Search settings shared by every fit of the analysis."""
    time_budget: float = DEFAULT_TIME_BUDGET   # Wall-clock seconds per fit
    maxiter: int = DEFAULT_MAXITER             # Global annealing iterations
    seed: Optional[int] = 42                   # Master seed; None = fresh entropy
    models: List[str] = field(
        default_factory=lambda: [m.value for m in ModelKind]
    )
    initial_guess: Dict[str, float] = field(
        default_factory=DEFAULT_INITIAL_GUESS.as_dict
    )
    par_lo: Dict[str, float] = field(default_factory=DEFAULT_BOUNDS.lower.as_dict)
    par_hi: Dict[str, float] = field(default_factory=DEFAULT_BOUNDS.upper.as_dict)
    no_local_search: bool = False
    verbose: bool = False


@dataclass
class DataSection:
    """How delimited text is parsed and traits are transformed."""
    delimiter: str = ','
    log_transform: bool = True     # Traits spanning orders of magnitude
    log_base: float = 10.0


@dataclass
class SystemSpec:
    """One interaction system (e.g. a predator-prey web).

    Without a background file the background distribution is summarized from
    the observed trait1 values themselves.
    """
    name: str
    file: str
    trait1_column: str
    trait2_column: str
    frequency_column: Optional[str] = None
    background_file: Optional[str] = None
    background_column: Optional[str] = None
    background_weight_column: Optional[str] = None
    # {'intercept': ..., 'slope': ..., 'log_base': ...}, applied before logging
    trait1_conversion: Optional[Dict[str, float]] = None
    trait2_conversion: Optional[Dict[str, float]] = None


@dataclass
class OutputSection:
    """Output control."""
    directory: str = "results/"
    table_name: str = "likelihood_comparison.csv"
    plots: bool = True
    workers: int = 1               # Systems fitted concurrently (processes)


@dataclass
class AnalysisConfig:
    """Complete analysis configuration.

    Load from YAML via `load_config()`. Sections map 1:1 to YAML top-level keys.
    """
    fit: FitSection = field(default_factory=FitSection)
    data: DataSection = field(default_factory=DataSection)
    systems: List[SystemSpec] = field(default_factory=list)
    output: OutputSection = field(default_factory=OutputSection)


# ═══════════════════════════════════════════════════════════════════════
# YAML LOADING & MERGING
# ═══════════════════════════════════════════════════════════════════════

def deep_merge(base: Dict, override: Dict) -> Dict:
    """Recursively merge override into base. Modifies base in place.

    - Dict values are merged recursively
    - Non-dict values (including lists) are replaced
    - Keys in override but not base are added

    Returns:
        The merged base dictionary.
    """
    for key, value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(value, dict)
        ):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def _dict_to_section(section_cls, data: Dict) -> Any:
    """Convert a dict to a dataclass, ignoring unknown keys."""
    valid_fields = {f.name for f in dataclasses.fields(section_cls)}
    filtered = {k: v for k, v in data.items() if k in valid_fields}
    return section_cls(**filtered)


def _yaml_to_config(data: Dict) -> AnalysisConfig:
    """Convert a merged YAML dict to an AnalysisConfig."""
    sections = {}
    section_map = {
        'fit': FitSection,
        'data': DataSection,
        'output': OutputSection,
    }
    for key, cls in section_map.items():
        if key in data and isinstance(data[key], dict):
            sections[key] = _dict_to_section(cls, data[key])
        else:
            sections[key] = cls()

    # Parameter mappings may be partial; fill from defaults.
    fit = sections['fit']
    for attr, default in (('initial_guess', DEFAULT_INITIAL_GUESS),
                          ('par_lo', DEFAULT_BOUNDS.lower),
                          ('par_hi', DEFAULT_BOUNDS.upper)):
        merged = default.as_dict()
        merged.update(getattr(fit, attr) or {})
        setattr(fit, attr, merged)

    systems = []
    for i, sys_dict in enumerate(data.get('systems') or []):
        if not isinstance(sys_dict, dict):
            raise ValueError(f"systems[{i}] must be a mapping, got {type(sys_dict).__name__}")
        try:
            systems.append(_dict_to_section(SystemSpec, sys_dict))
        except TypeError as e:
            raise ValueError(f"systems[{i}]: {e}") from e
    sections['systems'] = systems

    return AnalysisConfig(**sections)


def _check_param_mapping(label: str, values: Dict[str, float]) -> None:
    unknown = set(values) - set(PARAM_NAMES)
    if unknown:
        raise ValueError(f"{label} has unknown parameter(s) {sorted(unknown)}")


def validate_config(config: AnalysisConfig) -> None:
    """Validate configuration constraints. Raises ValueError on failure.

    Checks:
      - Search budget and iteration count are positive
      - Models are known; bounds are consistent and contain the initial guess
      - Systems have unique names and their data files exist (warning only)
      - Output settings are sane
    """
    f = config.fit
    if f.time_budget <= 0:
        raise ValueError(f"fit.time_budget must be positive, got {f.time_budget}")
    if f.maxiter < 1:
        raise ValueError(f"fit.maxiter must be >= 1, got {f.maxiter}")
    if f.seed is not None and f.seed < 0:
        raise ValueError("fit.seed must be non-negative")
    if not f.models:
        raise ValueError("fit.models must name at least one model")
    for m in f.models:
        try:
            ModelKind.parse(m)
        except TraitMatchError as e:
            raise ValueError(f"fit.models: {e}") from e

    for label in ('initial_guess', 'par_lo', 'par_hi'):
        _check_param_mapping(f"fit.{label}", getattr(f, label))
    for name in PARAM_NAMES:
        lo, hi, x0 = f.par_lo[name], f.par_hi[name], f.initial_guess[name]
        if lo > hi:
            raise ValueError(f"fit.par_lo.{name} ({lo}) must be <= fit.par_hi.{name} ({hi})")
        if not (lo <= x0 <= hi):
            raise ValueError(
                f"fit.initial_guess.{name} ({x0}) must be in [{lo}, {hi}]"
            )

    if config.data.log_base <= 0 or config.data.log_base == 1:
        raise ValueError(f"data.log_base must be positive and != 1, got {config.data.log_base}")

    names = [s.name for s in config.systems]
    dupes = sorted({n for n in names if names.count(n) > 1})
    if dupes:
        raise ValueError(f"system names must be unique, duplicated: {dupes}")
    for i, s in enumerate(config.systems):
        if s.background_file is not None and s.background_column is None:
            raise ValueError(
                f"systems[{i}] ({s.name}): background_column required with background_file"
            )
        for label, conv in (('trait1_conversion', s.trait1_conversion),
                            ('trait2_conversion', s.trait2_conversion)):
            if conv is not None and not {'intercept', 'slope'} <= set(conv):
                raise ValueError(
                    f"systems[{i}] ({s.name}): {label} needs 'intercept' and 'slope'"
                )
        for path in (s.file, s.background_file):
            if path is not None and not os.path.exists(path):
                warnings.warn(
                    f"systems[{i}] ({s.name}): data file '{path}' does not exist. "
                    f"Loading will fail at runtime.",
                    UserWarning,
                    stacklevel=2,
                )

    if config.output.workers < 1:
        raise ValueError(f"output.workers must be >= 1, got {config.output.workers}")


def _resolve_data_path(path: Optional[str], root: Path) -> Optional[str]:
    if path is None:
        return None
    p = Path(path)
    return str(p if p.is_absolute() else root / p)


def load_config(
    base_path: Union[str, Path],
    override_paths: Optional[Sequence[Union[str, Path]]] = None,
    overrides: Optional[Dict] = None,
) -> AnalysisConfig:
    """Load and merge hierarchical YAML configuration.

    Merge order: base → each override file in turn → overrides dict.
    Each layer overrides only the fields it specifies (lists are replaced).
    Relative system data paths are resolved against the directory of
    base_path.

    Raises:
        FileNotFoundError: If base_path or an override file doesn't exist.
        ValueError: If validation fails.
    """
    base_path = Path(base_path)
    if not base_path.exists():
        raise FileNotFoundError(f"Config file not found: {base_path}")

    with open(base_path) as f:
        config_dict = yaml.safe_load(f) or {}

    for path in override_paths or ():
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Override config not found: {path}")
        with open(path) as f:
            deep_merge(config_dict, yaml.safe_load(f) or {})

    if overrides is not None:
        deep_merge(config_dict, overrides)

    config = _yaml_to_config(config_dict)
    for spec in config.systems:
        spec.file = _resolve_data_path(spec.file, base_path.parent)
        spec.background_file = _resolve_data_path(spec.background_file, base_path.parent)
    validate_config(config)
    return config


def default_config() -> AnalysisConfig:
    """Return an AnalysisConfig with all default values (and no systems)."""
    config = AnalysisConfig()
    validate_config(config)
    return config

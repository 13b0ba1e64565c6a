"""Analysis session driver: fit every configured system and report.

For each system:
  1. Load interactions (and an optional background sample) from delimited text
  2. Apply allometric conversions, then the log transform
  3. Summarize the background trait1 distribution
  4. Fit each configured model (neutral needs no search)
  5. Recompute log-likelihoods for the comparison table

Systems are independent: with output.workers > 1 they are fitted in
separate processes, each with its own name-keyed RNG streams, so results
do not depend on the number of workers.

Usage:
    python -m traitmatch --config configs/example.yaml --time-budget 120
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from multiprocessing import Pool
from pathlib import Path
from typing import Dict, List, Optional, Tuple

import numpy as np

from traitmatch.allometry import allometric_convert
from traitmatch.config import AnalysisConfig, DataSection, SystemSpec, load_config
from traitmatch.fitting import compare_models, fit_model
from traitmatch.io import load_background, load_interactions, log_traits
from traitmatch.report import comparison_table, parameter_table, write_table
from traitmatch.rng import create_rng_hierarchy, get_fit_rng
from traitmatch.stats import background_summary
from traitmatch.types import BackgroundSummary, FitResult, InteractionData, ModelKind


@dataclass
class SystemResult:
    """Fits and log-likelihoods of all models for one system."""
    name: str
    data: InteractionData
    background: BackgroundSummary
    fits: Dict[str, FitResult] = field(default_factory=dict)
    log_likelihoods: Dict[str, float] = field(default_factory=dict)
    elapsed_s: float = 0.0


# ═══════════════════════════════════════════════════════════════════════
# DATA PREPARATION
# ═══════════════════════════════════════════════════════════════════════

def _transform(values: np.ndarray, conversion: Optional[Dict[str, float]],
               data_cfg: DataSection) -> np.ndarray:
    out = values
    if conversion is not None:
        out = allometric_convert(
            out, conversion['intercept'], conversion['slope'],
            log_base=conversion.get('log_base', 10.0),
        )
    if data_cfg.log_transform:
        out = log_traits(out, data_cfg.log_base)
    return out


def prepare_system(spec: SystemSpec, data_cfg: DataSection) -> Tuple[InteractionData, BackgroundSummary]:
    """Load, convert and summarize one system's data.

    Returns:
        (interactions on the analysis scale, background summary of trait1)
    """
    raw = load_interactions(
        spec.file, spec.trait1_column, spec.trait2_column,
        frequency_column=spec.frequency_column,
        delimiter=data_cfg.delimiter, name=spec.name,
    )
    data = InteractionData(
        trait1=_transform(raw.trait1, spec.trait1_conversion, data_cfg),
        trait2=_transform(raw.trait2, spec.trait2_conversion, data_cfg),
        weights=raw.weights,
        name=spec.name,
    )

    if spec.background_file is not None:
        values, weights = load_background(
            spec.background_file, spec.background_column,
            weight_column=spec.background_weight_column,
            delimiter=data_cfg.delimiter,
        )
        values = _transform(values, spec.trait1_conversion, data_cfg)
        background = background_summary(values, weights)
    else:
        # Observed trait1 stands in for the background; counts are repeats.
        background = background_summary(data.trait1, data.weights,
                                        frequency_weights=True)
    return data, background


# ═══════════════════════════════════════════════════════════════════════
# FITTING
# ═══════════════════════════════════════════════════════════════════════

def fit_system(
    data: InteractionData,
    background: BackgroundSummary,
    config: AnalysisConfig,
    name: Optional[str] = None,
) -> SystemResult:
    """Fit every configured model to one prepared system."""
    name = name or data.name
    f = config.fit
    models = [ModelKind.parse(m) for m in f.models]
    rngs = create_rng_hierarchy(f.seed, [name], models)

    t0 = time.perf_counter()
    result = SystemResult(name=name, data=data, background=background)
    for kind in models:
        if f.verbose:
            print(f"── {name}: fitting {kind.value} model")
        result.fits[kind.value] = fit_model(
            kind, data.trait1, data.trait2, background.mean, background.sd,
            initial_guess=f.initial_guess, par_lo=f.par_lo, par_hi=f.par_hi,
            time_budget=f.time_budget, weights=data.weights,
            rng=get_fit_rng(rngs, name, kind), maxiter=f.maxiter,
            no_local_search=f.no_local_search, verbose=f.verbose,
        )
    result.log_likelihoods = compare_models(
        data.trait1, data.trait2, background.mean, background.sd,
        result.fits, weights=data.weights,
    )
    result.elapsed_s = time.perf_counter() - t0
    return result


def run_system(spec: SystemSpec, config: AnalysisConfig) -> SystemResult:
    """Load and fit one configured system."""
    data, background = prepare_system(spec, config.data)
    if config.fit.verbose:
        print(f"{spec.name}: {len(data)} rows, background mean={background.mean:.4g} "
              f"sd={background.sd:.4g}")
    return fit_system(data, background, config, name=spec.name)


def run_analysis(config: AnalysisConfig) -> List[SystemResult]:
    """Fit all configured systems, concurrently when output.workers > 1.

    Results are returned in configuration order.
    """
    systems = config.systems
    workers = min(config.output.workers, max(len(systems), 1))
    if workers <= 1:
        return [run_system(spec, config) for spec in systems]
    with Pool(processes=workers) as pool:
        return pool.starmap(run_system, [(spec, config) for spec in systems])


# ═══════════════════════════════════════════════════════════════════════
# OUTPUT
# ═══════════════════════════════════════════════════════════════════════

def write_outputs(results: List[SystemResult], config: AnalysisConfig) -> Dict[str, Path]:
    """Write the comparison/parameter tables and (optionally) plots.

    Returns:
        {label: path} of written files.
    """
    out_dir = Path(config.output.directory)
    out_dir.mkdir(parents=True, exist_ok=True)
    written: Dict[str, Path] = {}

    table = comparison_table({r.name: r.log_likelihoods for r in results})
    written['comparison'] = write_table(table, out_dir / config.output.table_name)
    params = parameter_table({r.name: r.fits for r in results})
    written['parameters'] = write_table(params, out_dir / 'fitted_parameters.csv')

    if config.output.plots:
        from traitmatch.viz.fit import plot_likelihood_comparison, plot_pred

        for r in results:
            for model, fit in r.fits.items():
                if not fit.model.has_parameters:
                    continue
                path = out_dir / f'{r.name}_{model}_fit.png'
                plot_pred(fit.params, r.data.trait1, r.data.trait2, model=model,
                          title=f'{r.name}: {model} model', save_path=str(path))
                written[f'{r.name}/{model}'] = path
            path = out_dir / f'{r.name}_likelihoods.png'
            plot_likelihood_comparison(r.log_likelihoods, title=r.name,
                                       save_path=str(path))
            written[f'{r.name}/likelihoods'] = path
    return written


# ═══════════════════════════════════════════════════════════════════════
# COMMAND LINE INTERFACE
# ═══════════════════════════════════════════════════════════════════════

def main(argv=None):
    """Command line interface for a trait-matching analysis session."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Fit neutral, niche and integrated trait-matching models",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Full analysis as configured
  python -m traitmatch --config configs/example.yaml

  # Quick look: 60 s per fit, two systems in parallel, no plots
  python -m traitmatch --config configs/example.yaml \\
    --time-budget 60 --workers 2 --no-plots
        """
    )
    parser.add_argument("--config", required=True, help="Analysis YAML file")
    parser.add_argument("--override", action="append", default=[],
                        help="Override YAML merged over --config (repeatable)")
    parser.add_argument("--time-budget", type=float,
                        help="Seconds per fit (overrides fit.time_budget)")
    parser.add_argument("--seed", type=int, help="Master seed (overrides fit.seed)")
    parser.add_argument("--workers", type=int, help="Systems fitted concurrently")
    parser.add_argument("--output", help="Output directory")
    parser.add_argument("--no-plots", action="store_true", help="Skip figures")
    parser.add_argument("--verbose", action="store_true", help="Print search progress")

    args = parser.parse_args(argv)

    overrides: Dict = {'fit': {}, 'output': {}}
    if args.time_budget is not None:
        overrides['fit']['time_budget'] = args.time_budget
    if args.seed is not None:
        overrides['fit']['seed'] = args.seed
    if args.verbose:
        overrides['fit']['verbose'] = True
    if args.workers is not None:
        overrides['output']['workers'] = args.workers
    if args.output is not None:
        overrides['output']['directory'] = args.output
    if args.no_plots:
        overrides['output']['plots'] = False

    config = load_config(args.config, override_paths=args.override, overrides=overrides)
    if not config.systems:
        parser.error(f"{args.config} defines no systems")

    print(f"Fitting {len(config.systems)} system(s): {', '.join(s.name for s in config.systems)}")
    print(f"Models: {', '.join(config.fit.models)}; budget {config.fit.time_budget:.0f}s per fit")

    results = run_analysis(config)
    written = write_outputs(results, config)

    table = comparison_table({r.name: r.log_likelihoods for r in results})
    print("\nLog-likelihoods (higher is better):")
    print(table.to_string(index=False, float_format=lambda v: f"{v:.2f}"))
    for r in results:
        for model, fit in r.fits.items():
            if fit.at_bounds:
                print(f"  ! {r.name}/{model}: {', '.join(fit.at_bounds)} at bound")
    print(f"\nResults saved to {Path(config.output.directory)} ({len(written)} files)")
    return results


if __name__ == "__main__":
    main()

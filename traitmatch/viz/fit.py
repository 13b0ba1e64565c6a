"""Visualizations of fitted trait-matching models.

Every function:
  - Accepts fitted parameters or results as input
  - Returns a matplotlib Figure
  - Has an optional ``save_path`` parameter (saves PNG when given)
  - Uses the shared dark theme from ``traitmatch.viz.style``

matplotlib backend is forced to Agg (no display) on import.
"""

from __future__ import annotations

import matplotlib
matplotlib.use('Agg')

from typing import Mapping, Optional

import matplotlib.pyplot as plt
import numpy as np

from traitmatch.prediction import interaction_probability, predict_niche, trait1_grid
from traitmatch.viz.style import (
    ACCENT_COLORS,
    MODEL_COLORS,
    OBSERVED_COLOR,
    SURFACE_CMAP,
    TEXT_COLOR,
    dark_figure,
    save_figure,
    style_legend,
)


# ═══════════════════════════════════════════════════════════════════════
# 1. OBSERVED VS PREDICTED
# ═══════════════════════════════════════════════════════════════════════

def plot_pred(
    params,
    trait1,
    trait2,
    model: str = 'niche',
    level: float = 0.95,
    xlab: str = 'Trait level 1',
    ylab: str = 'Trait level 2',
    title: Optional[str] = None,
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Observed trait pairs with the fitted optimum and its band.

    Args:
        params: Fitted niche/integrated parameters.
        trait1, trait2: Observed interaction traits.
        model: Model name, used for colour and legend.
        level: Band coverage.
        save_path: Optional path to save the figure.

    Returns:
        matplotlib Figure.
    """
    grid = trait1_grid(trait1)
    bands = predict_niche(params, grid, level=level)
    color = MODEL_COLORS.get(str(model), MODEL_COLORS['niche'])

    fig, ax = dark_figure()
    ax.scatter(trait1, trait2, s=18, color=OBSERVED_COLOR, alpha=0.6,
               edgecolors='none', label='Observed interactions', zorder=2)
    ax.plot(grid, bands.mu, color=color, linewidth=2.5,
            label=f'{model} optimum', zorder=3)
    ax.plot(grid, bands.lower, color=color, linewidth=1.2, linestyle='--', zorder=3)
    ax.plot(grid, bands.upper, color=color, linewidth=1.2, linestyle='--',
            label=f'{level:.0%} range', zorder=3)
    ax.fill_between(grid, bands.lower, bands.upper, color=color, alpha=0.12)

    ax.set_xlabel(xlab, fontsize=12)
    ax.set_ylabel(ylab, fontsize=12)
    ax.set_title(title or f'Fitted {model} model', fontsize=14, fontweight='bold')
    style_legend(ax)

    if save_path:
        save_figure(fig, save_path)
    return fig


# ═══════════════════════════════════════════════════════════════════════
# 2. INTERACTION PROBABILITY SURFACE
# ═══════════════════════════════════════════════════════════════════════

def plot_interaction_surface(
    params,
    trait1,
    trait2,
    n: int = 150,
    xlab: str = 'Trait level 1',
    ylab: str = 'Trait level 2',
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Heatmap of the trait-matching probability with observations on top."""
    g1 = trait1_grid(trait1, n=n)
    g2 = trait1_grid(trait2, n=n)
    T1, T2 = np.meshgrid(g1, g2)
    prob = interaction_probability(params, T1, T2)

    fig, ax = dark_figure()
    mesh = ax.pcolormesh(T1, T2, prob, cmap=SURFACE_CMAP, vmin=0.0, vmax=1.0,
                         shading='auto')
    cbar = fig.colorbar(mesh, ax=ax)
    cbar.set_label('Interaction probability', color=TEXT_COLOR)
    cbar.ax.tick_params(colors=TEXT_COLOR)
    ax.scatter(trait1, trait2, s=10, color='white', alpha=0.5, edgecolors='none')

    ax.set_xlabel(xlab, fontsize=12)
    ax.set_ylabel(ylab, fontsize=12)
    ax.set_title('Trait-matching probability', fontsize=14, fontweight='bold')

    if save_path:
        save_figure(fig, save_path)
    return fig


# ═══════════════════════════════════════════════════════════════════════
# 3. LIKELIHOOD COMPARISON
# ═══════════════════════════════════════════════════════════════════════

def plot_likelihood_comparison(
    log_likelihoods: Mapping[str, float],
    title: str = 'Model comparison',
    save_path: Optional[str] = None,
) -> plt.Figure:
    """Bar chart of log-likelihoods (higher is better) for one system."""
    names = list(log_likelihoods)
    values = [log_likelihoods[n] for n in names]
    colors = [MODEL_COLORS.get(n, ACCENT_COLORS[5]) for n in names]

    fig, ax = dark_figure(figsize=(7, 5))
    bars = ax.bar(names, values, color=colors, alpha=0.85)
    for bar, v in zip(bars, values):
        ax.annotate(f'{v:.1f}', (bar.get_x() + bar.get_width() / 2, v),
                    ha='center', va='bottom' if v >= 0 else 'top',
                    color=TEXT_COLOR, fontsize=10)
    ax.axhline(0, color=TEXT_COLOR, linewidth=0.8, alpha=0.5)
    ax.set_ylabel('Log-likelihood', fontsize=12)
    ax.set_title(title, fontsize=14, fontweight='bold')

    if save_path:
        save_figure(fig, save_path)
    return fig

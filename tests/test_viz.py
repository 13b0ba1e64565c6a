"""Smoke tests for traitmatch.viz — figures render and save."""

import matplotlib
matplotlib.use('Agg')

import matplotlib.pyplot as plt
import numpy as np
import pytest

from traitmatch.types import TraitParams
from traitmatch.viz import (
    MODEL_COLORS,
    dark_figure,
    plot_interaction_surface,
    plot_likelihood_comparison,
    plot_pred,
)

PARAMS = TraitParams(0.0, 0.8, np.log(0.3), 0.0)


@pytest.fixture
def traits():
    rng = np.random.default_rng(0)
    t1 = rng.normal(0.0, 1.0, 40)
    return t1, 0.8 * t1 + rng.normal(0.0, 0.3, 40)


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close('all')


class TestStyle:
    def test_dark_figure_grid(self):
        fig, axes = dark_figure(nrows=1, ncols=2)
        assert axes.shape == (2,)

    def test_model_colors(self):
        assert set(MODEL_COLORS) == {'integrated', 'niche', 'neutral'}


class TestPlots:
    def test_plot_pred(self, traits):
        t1, t2 = traits
        fig = plot_pred(PARAMS, t1, t2, model='niche')
        assert isinstance(fig, plt.Figure)
        assert len(fig.axes[0].lines) == 3

    def test_plot_pred_saves(self, traits, tmp_path):
        t1, t2 = traits
        path = tmp_path / 'pred.png'
        plot_pred(PARAMS, t1, t2, model='integrated', save_path=str(path))
        assert path.exists() and path.stat().st_size > 0

    def test_surface(self, traits, tmp_path):
        t1, t2 = traits
        path = tmp_path / 'surface.png'
        fig = plot_interaction_surface(PARAMS, t1, t2, n=30, save_path=str(path))
        assert isinstance(fig, plt.Figure)
        assert path.exists()

    def test_likelihood_bars(self):
        fig = plot_likelihood_comparison({'integrated': -40.0, 'niche': -42.5,
                                          'neutral': -80.0})
        assert len(fig.axes[0].patches) == 3

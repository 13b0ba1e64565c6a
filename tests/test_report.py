"""Tests for traitmatch.report — comparison and parameter tables."""

import numpy as np
import pandas as pd
import pytest

from traitmatch.report import comparison_table, parameter_table, write_table
from traitmatch.types import FitResult, ModelKind, TraitParams


class TestComparisonTable:
    def test_columns_and_best(self):
        table = comparison_table({
            'fish': {'neutral': -300.0, 'niche': -120.0, 'integrated': -250.0},
            'bees': {'neutral': -50.0, 'niche': -80.0, 'integrated': -45.0},
        })
        assert list(table.columns) == ['system', 'integrated', 'niche', 'neutral',
                                       'best_model']
        assert list(table['best_model']) == ['niche', 'integrated']

    def test_missing_model_is_nan(self):
        table = comparison_table({'fish': {'niche': -10.0}})
        assert np.isnan(table.loc[0, 'neutral'])
        assert table.loc[0, 'best_model'] == 'niche'

    def test_empty(self):
        assert comparison_table({}).empty


class TestParameterTable:
    def test_skips_neutral(self):
        p = TraitParams(0.1, 0.8, -1.2, 0.0)
        fits = {'fish': {
            'niche': FitResult(ModelKind.NICHE, p, 100.0, 200.0, at_bounds=('b1',)),
            'neutral': FitResult(ModelKind.NEUTRAL, TraitParams(), 300.0, 300.0),
        }}
        table = parameter_table(fits)
        assert len(table) == 1
        row = table.iloc[0]
        assert row['model'] == 'niche'
        assert row['a1'] == pytest.approx(0.8)
        assert row['log_likelihood'] == pytest.approx(-100.0)
        assert row['at_bounds'] == 'b1'


class TestWriteTable:
    def test_creates_directories(self, tmp_path):
        df = pd.DataFrame({'system': ['fish'], 'niche': [-1.234567891]})
        path = write_table(df, tmp_path / 'out' / 'nested' / 'table.csv')
        assert path.exists()
        back = pd.read_csv(path)
        assert back.loc[0, 'niche'] == pytest.approx(-1.23457)

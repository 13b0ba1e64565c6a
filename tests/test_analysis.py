"""Integration tests for traitmatch.analysis — config to comparison table."""

import numpy as np
import pandas as pd
import pytest
import yaml

from traitmatch.analysis import (
    SystemResult,
    fit_system,
    main,
    prepare_system,
    run_analysis,
    write_outputs,
)
from traitmatch.config import AnalysisConfig, DataSection, FitSection, OutputSection, SystemSpec
from traitmatch.types import DegenerateWeights, InvalidInput


@pytest.fixture
def web_files(tmp_path):
    """Body masses (g) spanning orders of magnitude, predator ≈ 10·prey^0.8."""
    rng = np.random.default_rng(31)
    prey = 10 ** rng.uniform(-1.0, 2.0, 60)
    pred = 10 ** (1.0 + 0.8 * np.log10(prey) + rng.normal(0.0, 0.2, 60))
    counts = rng.integers(1, 5, 60)
    web = tmp_path / 'web.csv'
    pd.DataFrame({'prey_g': prey, 'pred_g': pred, 'n': counts}).to_csv(web, index=False)

    community = tmp_path / 'community.csv'
    pd.DataFrame({
        'prey_g': 10 ** np.linspace(-1.5, 2.5, 25),
        'abundance': np.arange(25, 0, -1),
    }).to_csv(community, index=False)
    return web, community


def _config(web, community, tmp_path, **fit):
    fit_kw = dict(time_budget=30.0, maxiter=20, seed=3)
    fit_kw.update(fit)
    return AnalysisConfig(
        fit=FitSection(**fit_kw),
        data=DataSection(),
        systems=[
            SystemSpec(name='web', file=str(web), trait1_column='prey_g',
                       trait2_column='pred_g', frequency_column='n'),
            SystemSpec(name='web_community', file=str(web), trait1_column='prey_g',
                       trait2_column='pred_g', background_file=str(community),
                       background_column='prey_g',
                       background_weight_column='abundance'),
        ],
        output=OutputSection(directory=str(tmp_path / 'results'), plots=False),
    )


class TestPrepareSystem:
    def test_log_transform(self, web_files, tmp_path):
        web, community = web_files
        cfg = _config(web, community, tmp_path)
        data, bg = prepare_system(cfg.systems[0], cfg.data)
        raw = pd.read_csv(web)
        np.testing.assert_allclose(data.trait1, np.log10(raw['prey_g']))
        np.testing.assert_array_equal(data.weights, raw['n'])

    def test_background_from_observed_counts(self, web_files, tmp_path):
        web, community = web_files
        cfg = _config(web, community, tmp_path)
        data, bg = prepare_system(cfg.systems[0], cfg.data)
        expanded = np.repeat(data.trait1, data.weights.astype(int))
        assert bg.mean == pytest.approx(expanded.mean())
        assert bg.sd == pytest.approx(expanded.std(ddof=1))

    def test_background_file(self, web_files, tmp_path):
        web, community = web_files
        cfg = _config(web, community, tmp_path)
        data, bg = prepare_system(cfg.systems[1], cfg.data)
        assert data.weights is None
        # Abundance is skewed toward the smallest prey.
        assert bg.mean < np.mean(np.linspace(-1.5, 2.5, 25))

    def test_conversion_applied_before_log(self, web_files, tmp_path):
        web, community = web_files
        spec = SystemSpec(name='web', file=str(web), trait1_column='prey_g',
                          trait2_column='pred_g',
                          trait2_conversion={'intercept': 1.0, 'slope': 1.0})
        data, _ = prepare_system(spec, DataSection())
        raw = pd.read_csv(web)
        np.testing.assert_allclose(data.trait2, 1.0 + np.log10(raw['pred_g']))

    def test_without_log_transform_keeps_raw_scale(self, web_files, tmp_path):
        web, community = web_files
        spec = SystemSpec(name='web', file=str(web), trait1_column='prey_g',
                          trait2_column='pred_g')
        data, _ = prepare_system(spec, DataSection(log_transform=False))
        assert data.trait1.min() > 0

    def test_non_positive_trait_with_log(self, tmp_path):
        path = tmp_path / 'bad.csv'
        path.write_text('a,b\n0.0,1.0\n1.0,2.0\n2.0,3.0\n')
        spec = SystemSpec(name='bad', file=str(path), trait1_column='a',
                          trait2_column='b')
        with pytest.raises(InvalidInput):
            prepare_system(spec, DataSection())


    def test_single_weighted_background_row(self, web_files, tmp_path):
        web, _ = web_files
        community = tmp_path / 'sparse_community.csv'
        community.write_text('prey_g,abundance\n0.5,0\n2.0,5\n8.0,0\n')
        spec = SystemSpec(name='web', file=str(web), trait1_column='prey_g',
                          trait2_column='pred_g', background_file=str(community),
                          background_column='prey_g',
                          background_weight_column='abundance')
        with pytest.raises(DegenerateWeights, match='two non-zero weights'):
            prepare_system(spec, DataSection())

    def test_single_observed_interaction_count(self, tmp_path):
        path = tmp_path / 'one_visit.csv'
        path.write_text('a,b,n\n1.0,2.0,1\n3.0,4.0,0\n')
        spec = SystemSpec(name='one', file=str(path), trait1_column='a',
                          trait2_column='b', frequency_column='n')
        with pytest.raises(DegenerateWeights, match='total count'):
            prepare_system(spec, DataSection())


class TestRunAnalysis:
    def test_fits_all_models(self, web_files, tmp_path):
        web, community = web_files
        cfg = _config(web, community, tmp_path)
        results = run_analysis(cfg)
        assert [r.name for r in results] == ['web', 'web_community']
        for r in results:
            assert isinstance(r, SystemResult)
            assert set(r.fits) == {'neutral', 'niche', 'integrated'}
            assert set(r.log_likelihoods) == {'neutral', 'niche', 'integrated'}
            assert r.log_likelihoods['niche'] > r.log_likelihoods['neutral']

    def test_reproducible(self, web_files, tmp_path):
        web, community = web_files
        cfg = _config(web, community, tmp_path, models=['niche'])
        data, bg = prepare_system(cfg.systems[0], cfg.data)
        a = fit_system(data, bg, cfg, name='web')
        b = fit_system(data, bg, cfg, name='web')
        assert a.fits['niche'].params == b.fits['niche'].params

    def test_workers_do_not_change_results(self, web_files, tmp_path):
        web, community = web_files
        serial = _config(web, community, tmp_path, models=['niche'])
        parallel = _config(web, community, tmp_path, models=['niche'])
        parallel.output.workers = 2
        a = run_analysis(serial)
        b = run_analysis(parallel)
        for ra, rb in zip(a, b):
            assert ra.name == rb.name
            assert ra.fits['niche'].params == rb.fits['niche'].params


class TestOutputs:
    def test_tables_written(self, web_files, tmp_path):
        web, community = web_files
        cfg = _config(web, community, tmp_path, models=['niche', 'neutral'])
        written = write_outputs(run_analysis(cfg), cfg)
        table = pd.read_csv(written['comparison'])
        assert list(table['system']) == ['web', 'web_community']
        assert table['integrated'].isna().all()
        params = pd.read_csv(written['parameters'])
        assert set(params['model']) == {'niche'}

    def test_plots_written(self, web_files, tmp_path):
        web, community = web_files
        cfg = _config(web, community, tmp_path, models=['niche', 'neutral'])
        cfg.systems = cfg.systems[:1]
        cfg.output.plots = True
        written = write_outputs(run_analysis(cfg), cfg)
        assert written['web/niche'].exists()
        assert written['web/likelihoods'].exists()
        assert 'web/neutral' not in written


class TestMain:
    def test_cli(self, web_files, tmp_path, capsys):
        web, community = web_files
        config_path = tmp_path / 'analysis.yaml'
        config_path.write_text(yaml.safe_dump({
            'fit': {'maxiter': 10, 'models': ['niche', 'neutral']},
            'systems': [{'name': 'web', 'file': str(web), 'trait1_column': 'prey_g',
                         'trait2_column': 'pred_g', 'frequency_column': 'n'}],
        }))
        out_dir = tmp_path / 'cli_out'
        results = main(['--config', str(config_path), '--time-budget', '20',
                        '--seed', '5', '--output', str(out_dir), '--no-plots'])
        assert len(results) == 1
        assert (out_dir / 'likelihood_comparison.csv').exists()
        assert not list(out_dir.glob('*.png'))
        assert 'Log-likelihoods' in capsys.readouterr().out

    def test_no_systems(self, tmp_path):
        config_path = tmp_path / 'empty.yaml'
        config_path.write_text('fit: {seed: 1}\n')
        with pytest.raises(SystemExit):
            main(['--config', str(config_path)])

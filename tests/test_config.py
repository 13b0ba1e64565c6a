"""Tests for traitmatch.config — configuration loading and validation."""

from pathlib import Path

import pytest
import yaml

from traitmatch.config import (
    AnalysisConfig,
    DataSection,
    FitSection,
    OutputSection,
    SystemSpec,
    deep_merge,
    default_config,
    load_config,
    validate_config,
)
from traitmatch.types import DEFAULT_BOUNDS, DEFAULT_TIME_BUDGET

EXAMPLE = Path(__file__).resolve().parent.parent / 'configs' / 'example.yaml'


def _write_yaml(path: Path, data) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


def _system(tmp_path, **kw):
    csv = tmp_path / 'web.csv'
    csv.write_text('prey,pred\n1,2\n')
    spec = {'name': 'web', 'file': str(csv), 'trait1_column': 'prey',
            'trait2_column': 'pred'}
    spec.update(kw)
    return spec


# ── deep_merge tests ──────────────────────────────────────────────────

class TestDeepMerge:
    def test_nested_merge(self):
        base = {'fit': {'seed': 1, 'maxiter': 10}, 'data': {'log_base': 10}}
        result = deep_merge(base, {'fit': {'seed': 2}})
        assert result == {'fit': {'seed': 2, 'maxiter': 10}, 'data': {'log_base': 10}}

    def test_lists_replaced(self):
        base = {'fit': {'models': ['niche', 'neutral']}}
        result = deep_merge(base, {'fit': {'models': ['integrated']}})
        assert result['fit']['models'] == ['integrated']

    def test_dict_replaced_by_scalar(self):
        assert deep_merge({'a': {'b': 1}}, {'a': None}) == {'a': None}


# ── default_config tests ─────────────────────────────────────────────

class TestDefaultConfig:
    def test_sections(self):
        cfg = default_config()
        assert isinstance(cfg, AnalysisConfig)
        assert isinstance(cfg.fit, FitSection)
        assert isinstance(cfg.data, DataSection)
        assert isinstance(cfg.output, OutputSection)
        assert cfg.systems == []

    def test_defaults(self):
        cfg = default_config()
        assert cfg.fit.time_budget == DEFAULT_TIME_BUDGET
        assert cfg.fit.models == ['neutral', 'niche', 'integrated']
        assert cfg.fit.par_lo == DEFAULT_BOUNDS.lower.as_dict()
        assert cfg.fit.par_hi == DEFAULT_BOUNDS.upper.as_dict()
        assert cfg.data.log_transform is True
        assert cfg.output.workers == 1


# ── load_config tests ────────────────────────────────────────────────

class TestLoadConfig:
    def test_example_config(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        cfg = load_config(EXAMPLE)
        assert all(Path(s.file).exists() for s in cfg.systems)
        assert [s.name for s in cfg.systems] == ['fish_web', 'fish_web_community']
        assert cfg.systems[1].background_weight_column == 'abundance'
        assert cfg.output.workers == 2

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / 'nope.yaml')

    def test_missing_override(self, tmp_path):
        base = _write_yaml(tmp_path / 'base.yaml', {})
        with pytest.raises(FileNotFoundError):
            load_config(base, override_paths=[tmp_path / 'nope.yaml'])

    def test_empty_file(self, tmp_path):
        base = tmp_path / 'empty.yaml'
        base.write_text('')
        assert load_config(base).fit.seed == 42

    def test_merge_order(self, tmp_path):
        base = _write_yaml(tmp_path / 'base.yaml',
                           {'fit': {'seed': 1, 'maxiter': 50}})
        over = _write_yaml(tmp_path / 'over.yaml', {'fit': {'seed': 2}})
        cfg = load_config(base, override_paths=[over],
                          overrides={'fit': {'maxiter': 5}})
        assert cfg.fit.seed == 2
        assert cfg.fit.maxiter == 5

    def test_partial_bounds_filled(self, tmp_path):
        base = _write_yaml(tmp_path / 'base.yaml',
                           {'fit': {'par_lo': {'a1': 0.5}, 'initial_guess': {'a1': 1.0}}})
        cfg = load_config(base)
        assert cfg.fit.par_lo['a1'] == 0.5
        assert cfg.fit.par_lo['a0'] == DEFAULT_BOUNDS.lower.a0
        assert cfg.fit.initial_guess == {'a0': 0.0, 'a1': 1.0, 'b0': 0.0, 'b1': 0.0}

    def test_unknown_keys_ignored(self, tmp_path):
        base = _write_yaml(tmp_path / 'base.yaml', {'fit': {'colour': 'red'}, 'extra': 1})
        assert load_config(base).fit.seed == 42

    def test_systems(self, tmp_path):
        base = _write_yaml(tmp_path / 'base.yaml', {
            'systems': [_system(tmp_path, frequency_column='n',
                                trait1_conversion={'intercept': 0.1, 'slope': 1.2})],
        })
        cfg = load_config(base)
        spec = cfg.systems[0]
        assert isinstance(spec, SystemSpec)
        assert spec.frequency_column == 'n'
        assert spec.trait1_conversion == {'intercept': 0.1, 'slope': 1.2}
        assert spec.background_file is None

    def test_relative_data_paths_follow_config_file(self, tmp_path, monkeypatch):
        config_dir = tmp_path / 'configs'
        data_dir = tmp_path / 'data'
        config_dir.mkdir()
        data_dir.mkdir()
        (data_dir / 'web.csv').write_text('prey,pred\n1,2\n')
        (data_dir / 'community.csv').write_text('prey\n1\n')
        base = _write_yaml(config_dir / 'base.yaml', {'systems': [{
            'name': 'web', 'file': '../data/web.csv',
            'trait1_column': 'prey', 'trait2_column': 'pred',
            'background_file': '../data/community.csv',
            'background_column': 'prey',
        }]})
        elsewhere = tmp_path / 'elsewhere'
        elsewhere.mkdir()
        monkeypatch.chdir(elsewhere)
        spec = load_config(base).systems[0]
        assert Path(spec.file).resolve() == (data_dir / 'web.csv').resolve()
        assert Path(spec.background_file).resolve() == (data_dir / 'community.csv').resolve()

    def test_absolute_data_paths_unchanged(self, tmp_path):
        system = _system(tmp_path)
        base = _write_yaml(tmp_path / 'sub.yaml', {'systems': [system]})
        assert load_config(base).systems[0].file == system['file']

    def test_system_missing_required(self, tmp_path):
        base = _write_yaml(tmp_path / 'base.yaml', {'systems': [{'name': 'web'}]})
        with pytest.raises(ValueError, match='systems\\[0\\]'):
            load_config(base)

    def test_system_not_mapping(self, tmp_path):
        base = _write_yaml(tmp_path / 'base.yaml', {'systems': ['web']})
        with pytest.raises(ValueError, match='mapping'):
            load_config(base)


# ── validate_config tests ────────────────────────────────────────────

class TestValidateConfig:
    def test_bad_budget(self):
        cfg = AnalysisConfig(fit=FitSection(time_budget=0))
        with pytest.raises(ValueError, match='time_budget'):
            validate_config(cfg)

    def test_bad_maxiter(self):
        with pytest.raises(ValueError, match='maxiter'):
            validate_config(AnalysisConfig(fit=FitSection(maxiter=0)))

    def test_negative_seed(self):
        with pytest.raises(ValueError, match='seed'):
            validate_config(AnalysisConfig(fit=FitSection(seed=-1)))

    def test_unknown_model(self):
        with pytest.raises(ValueError, match='fit.models'):
            validate_config(AnalysisConfig(fit=FitSection(models=['niche', 'mixed'])))

    def test_no_models(self):
        with pytest.raises(ValueError, match='at least one'):
            validate_config(AnalysisConfig(fit=FitSection(models=[])))

    def test_unknown_parameter(self):
        fit = FitSection()
        fit.par_lo['slope'] = 0.0
        with pytest.raises(ValueError, match='unknown parameter'):
            validate_config(AnalysisConfig(fit=fit))

    def test_inverted_bounds(self):
        fit = FitSection()
        fit.par_lo['b0'] = 20.0
        with pytest.raises(ValueError, match='par_lo.b0'):
            validate_config(AnalysisConfig(fit=fit))

    def test_guess_outside_bounds(self):
        fit = FitSection()
        fit.initial_guess['a1'] = -1.0
        with pytest.raises(ValueError, match='initial_guess.a1'):
            validate_config(AnalysisConfig(fit=fit))

    @pytest.mark.parametrize('base', [0.0, 1.0, -2.0])
    def test_bad_log_base(self, base):
        with pytest.raises(ValueError, match='log_base'):
            validate_config(AnalysisConfig(data=DataSection(log_base=base)))

    def test_duplicate_systems(self, tmp_path):
        spec = SystemSpec(**_system(tmp_path))
        with pytest.raises(ValueError, match='unique'):
            validate_config(AnalysisConfig(systems=[spec, spec]))

    def test_background_needs_column(self, tmp_path):
        spec = SystemSpec(**_system(tmp_path, background_file=str(tmp_path / 'web.csv')))
        with pytest.raises(ValueError, match='background_column'):
            validate_config(AnalysisConfig(systems=[spec]))

    def test_conversion_needs_slope(self, tmp_path):
        spec = SystemSpec(**_system(tmp_path, trait2_conversion={'intercept': 1.0}))
        with pytest.raises(ValueError, match='trait2_conversion'):
            validate_config(AnalysisConfig(systems=[spec]))

    def test_missing_data_file_warns(self, tmp_path):
        spec = SystemSpec(**_system(tmp_path, file=str(tmp_path / 'gone.csv')))
        with pytest.warns(UserWarning, match='does not exist'):
            validate_config(AnalysisConfig(systems=[spec]))

    def test_bad_workers(self):
        with pytest.raises(ValueError, match='workers'):
            validate_config(AnalysisConfig(output=OutputSection(workers=0)))

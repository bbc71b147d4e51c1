"""
Tests for experiment orchestration and the command-line entry point.

Most tests replace the sampler with synthetic draws so the orchestration is
checked without running MCMC; the end-to-end test is marked slow.
"""

import re
from pathlib import Path

import matplotlib.pyplot as plt
import numpy as np
import pytest

from mpg_bayes import pipeline
from mpg_bayes.__main__ import build_parser, config_from_args, main
from mpg_bayes.config import ExperimentConfig, SamplerConfig
from mpg_bayes.errors import LoadError, SamplingError
from mpg_bayes.evaluation import Metrics
from mpg_bayes.pipeline import format_report, run_experiment


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close('all')


@pytest.fixture
def fake_sampler(monkeypatch, make_fit):
    """Replace NUTS with synthetic draws; the GP family fails numerically."""
    calls = []

    def sample(spec, data, config=None, predictor_names=None, test_ids=None, verbose=True):
        calls.append((spec, data))
        if spec.name == 'gp':
            raise SamplingError("non-finite log density at the initial point")
        return make_fit(model_name=spec.name, test_ids=test_ids,
                        predictors=predictor_names, pred_mean=float(np.mean(data['y'])))

    monkeypatch.setattr(pipeline, 'sample_posterior', sample)
    return calls


@pytest.fixture
def config(sample_data_path):
    return ExperimentConfig(
        data_uri=str(sample_data_path),
        sampler=SamplerConfig(n_chains=2, n_iter=200, cores=1, random_seed=1,
                              progressbar=False),
    )


class TestRunExperiment:

    def test_family_failure_isolated(self, fake_sampler, config):
        with pytest.warns(UserWarning, match="'gp' failed"):
            result = run_experiment(config, verbose=False)

        linear, gp = result.families['linear'], result.families['gp']
        assert linear.ok
        assert isinstance(linear.metrics, Metrics)
        assert linear.metrics.n == len(result.split.test)
        assert set(linear.convergence) == {'alpha', 'beta', 'sigma'}
        assert 'alpha' in linear.comparison

        assert not gp.ok
        assert isinstance(gp.error, SamplingError)
        assert gp.metrics is None

    def test_raise_errors(self, fake_sampler, config):
        with pytest.raises(SamplingError):
            run_experiment(config, verbose=False, raise_errors=True)

    def test_split_matches_config(self, fake_sampler, config):
        result = run_experiment(ExperimentConfig(**{**config.to_dict(), 'models': ['linear']}),
                                verbose=False)
        assert len(result.split.train) == 28
        assert len(result.split.test) == 12

    def test_gp_gets_jitter_and_scaled_target(self, fake_sampler, config, sample_dataset):
        config.jitter = 1e-4
        with pytest.warns(UserWarning):
            run_experiment(config, dataset=sample_dataset, verbose=False)

        specs = {spec.name: (spec, data) for spec, data in fake_sampler}
        gp_spec, gp_data = specs['gp']
        assert gp_spec.jitter == 1e-4
        assert abs(gp_data['y'].mean()) < 1e-10
        # The linear family keeps the target in original units
        assert specs['linear'][1]['y'].mean() > 5.0

    def test_metrics_table_and_report(self, fake_sampler, config):
        with pytest.warns(UserWarning):
            result = run_experiment(config, verbose=False)

        table = result.metrics_table()
        assert list(table['model']) == ['linear', 'ols']
        assert np.all(table['rmse'] >= table['mae'])

        report = format_report(result)
        assert 'linear' in report
        assert 'ols' in report
        assert re.search(r'gp\s+FAILED: SamplingError', report)
        assert 'beta[weight]' in report

    def test_output_artifacts(self, fake_sampler, config, tmp_path):
        config.models = ('linear',)
        config.output_dir = str(tmp_path / 'results')
        result = run_experiment(config, verbose=False)

        artifacts = result.families['linear'].artifacts
        assert len(artifacts) == 6
        for path in artifacts:
            assert Path(path).exists()
        assert (tmp_path / 'results' / 'data_pairs.png').exists()
        assert (tmp_path / 'results' / 'linear_fit.nc').exists()

    def test_store_skips_resampling(self, fake_sampler, config, tmp_path):
        config.models = ('linear',)
        config.store_dir = str(tmp_path / 'store')

        first = run_experiment(config, verbose=False)
        second = run_experiment(config, verbose=False)

        assert len(fake_sampler) == 1
        assert second.families['linear'].metrics.rmse == pytest.approx(
            first.families['linear'].metrics.rmse)

    def test_fresh_fit_report_reused(self, monkeypatch, make_fit, config):
        report = {'alpha': {'rhat': 1.0, 'ess_ratio': 0.9, 'ok': True}}

        def sample(spec, data, config=None, predictor_names=None, test_ids=None, verbose=True):
            fit = make_fit(model_name=spec.name, test_ids=test_ids, predictors=predictor_names)
            fit.convergence = report
            return fit

        def recompute(*args, **kwargs):
            raise AssertionError("convergence recomputed for a fresh fit")

        monkeypatch.setattr(pipeline, 'sample_posterior', sample)
        monkeypatch.setattr(pipeline, 'convergence_report', recompute)
        config.models = ('linear',)

        result = run_experiment(config, verbose=False)
        assert result.families['linear'].convergence is report

    def test_store_resamples_after_jitter_change(self, monkeypatch, make_fit, config, tmp_path):
        jitters = []

        def sample(spec, data, config=None, predictor_names=None, test_ids=None, verbose=True):
            jitters.append(spec.jitter)
            return make_fit(model_name=spec.name, test_ids=test_ids, predictors=predictor_names)

        monkeypatch.setattr(pipeline, 'sample_posterior', sample)
        config.models = ('gp',)
        config.store_dir = str(tmp_path / 'store')

        run_experiment(config, verbose=False)
        config.jitter = 1e-2
        run_experiment(config, verbose=False)
        run_experiment(config, verbose=False)

        assert jitters == [1e-6, 1e-2]

    def test_unusable_design_recorded(self, fake_sampler, config, sample_dataset):
        sample_dataset['horsepower'] = np.nan
        config.predictors = ['horsepower', 'weight']

        with pytest.warns(UserWarning, match="'linear' failed: ValueError"):
            result = run_experiment(config, dataset=sample_dataset, verbose=False)

        assert isinstance(result.families['linear'].error, ValueError)
        assert not result.families['gp'].ok
        assert fake_sampler == []

    def test_load_error_propagates(self, fake_sampler, tmp_path):
        config = ExperimentConfig(data_uri=str(tmp_path / 'missing.data'))
        with pytest.raises(LoadError):
            run_experiment(config, verbose=False)
        assert fake_sampler == []


class TestCommandLine:

    def test_config_from_args(self, sample_data_path):
        args = build_parser().parse_args([
            '--data', str(sample_data_path),
            '--models', 'linear',
            '--chains', '2',
            '--iter', '400',
            '--seed', '9',
            '--timeout', '120',
            '--quiet',
        ])
        config = config_from_args(args)

        assert config.data_uri == str(sample_data_path)
        assert config.models == ('linear',)
        assert config.sampler.n_chains == 2
        assert config.sampler.n_iter == 400
        assert config.sampler.random_seed == 9
        assert config.sampler.timeout_s == 120.0
        assert config.sampler.progressbar is False

    def test_config_file_with_overrides(self, tmp_path):
        path = tmp_path / 'experiment.json'
        ExperimentConfig(predictors=['weight'],
                         sampler=SamplerConfig(n_chains=3)).to_json(str(path))

        config = config_from_args(build_parser().parse_args(
            ['--config', str(path), '--iter', '600']))

        assert config.predictors == ['weight']
        assert config.sampler.n_chains == 3
        assert config.sampler.n_iter == 600

    def test_invalid_override_rejected(self):
        with pytest.raises(ValueError):
            config_from_args(build_parser().parse_args(['--chains', '0']))

    def test_main_success(self, fake_sampler, sample_data_path, capsys):
        code = main(['--data', str(sample_data_path), '--models', 'linear', '--quiet'])
        assert code == 0
        assert 'linear' in capsys.readouterr().out

    def test_main_family_failure(self, fake_sampler, sample_data_path):
        with pytest.warns(UserWarning):
            code = main(['--data', str(sample_data_path), '--quiet'])
        assert code == 1

    def test_main_load_error(self, tmp_path, capsys):
        code = main(['--data', str(tmp_path / 'missing.data'), '--quiet'])
        assert code == 2
        assert '[ERROR]' in capsys.readouterr().err


@pytest.mark.slow
class TestEndToEnd:

    def test_both_families(self, sample_data_path, tmp_path):
        config = ExperimentConfig(
            data_uri=str(sample_data_path),
            sampler=SamplerConfig(n_chains=2, n_iter=300, cores=1, random_seed=2,
                                  progressbar=False),
            output_dir=str(tmp_path / 'results'),
        )
        result = run_experiment(config, verbose=False, raise_errors=True)

        for name in ('linear', 'gp'):
            family = result.families[name]
            assert family.ok
            assert np.isfinite(family.metrics.rmse)
            assert family.metrics.rmse >= family.metrics.mae
            # Sample data noise is 2 mpg; anything far beyond means broken predictions
            assert family.metrics.rmse < 10.0

    def test_gp_failure_leaves_linear_intact(self, sample_dataset):
        # All cars share one displacement and weight: the GP covariance is
        # singular without jitter, the linear model is merely uninformed
        sample_dataset['displacement'] = 250.0
        sample_dataset['weight'] = 3000.0
        config = ExperimentConfig(
            jitter=0.0,
            sampler=SamplerConfig(n_chains=2, n_iter=100, cores=2, random_seed=3,
                                  progressbar=False),
        )

        with pytest.warns(UserWarning, match="'gp' failed: SamplingError"):
            result = run_experiment(config, dataset=sample_dataset, verbose=False)

        assert result.families['linear'].ok
        assert np.isfinite(result.families['linear'].metrics.rmse)
        assert isinstance(result.families['gp'].error, SamplingError)

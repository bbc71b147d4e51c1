"""
Tests for the model specifications and the GP covariance.

Models are built and their log-densities evaluated; nothing is sampled here.
"""

import numpy as np
import pytest

from mpg_bayes.errors import CompileError
from mpg_bayes.models import (
    GaussianProcessSpec,
    LinearRegressionSpec,
    PriorSpec,
    exp_quad_covariance,
    get_model_spec,
    make_prior,
)


@pytest.fixture
def regression_data():
    rng = np.random.default_rng(1)
    x = rng.normal(size=(12, 2))
    y = 1.0 + x @ np.array([0.5, -1.0]) + rng.normal(0, 0.1, 12)
    x_test = rng.normal(size=(4, 2))
    return {'x': x, 'y': y, 'x_test': x_test}


def free_names(model):
    return {rv.name for rv in model.free_RVs}


class TestExpQuadCovariance:

    def test_identical_points_equal_amplitude_squared(self):
        x = np.array([[0.3, -1.2], [0.3, -1.2]])
        cov = exp_quad_covariance(x, amplitude=1.7, length_scale=0.5).eval()
        np.testing.assert_allclose(cov, 1.7 ** 2)

    def test_infinite_length_scale_limit(self):
        rng = np.random.default_rng(0)
        x = rng.normal(size=(6, 2))
        cov = exp_quad_covariance(x, amplitude=2.0, length_scale=1e8).eval()
        np.testing.assert_allclose(cov, 4.0, rtol=1e-10)

    def test_known_value(self):
        x = np.array([[0.0], [1.0]])
        cov = exp_quad_covariance(x, amplitude=1.0, length_scale=1.0).eval()
        np.testing.assert_allclose(cov[0, 1], np.exp(-0.5))

    def test_symmetric_positive_definite_with_jitter(self):
        rng = np.random.default_rng(2)
        x = rng.normal(size=(10, 3))
        cov = exp_quad_covariance(x, amplitude=1.0, length_scale=0.8, jitter=1e-6).eval()
        np.testing.assert_allclose(cov, cov.T)
        assert np.all(np.linalg.eigvalsh(cov) > 0)

    def test_jitter_on_diagonal_only(self):
        x = np.array([[0.0], [5.0]])
        plain = exp_quad_covariance(x, 1.0, 1.0).eval()
        jittered = exp_quad_covariance(x, 1.0, 1.0, jitter=0.1).eval()
        np.testing.assert_allclose(jittered - plain, np.diag([0.1, 0.1]), atol=1e-12)

    def test_cross_covariance_shape(self):
        x = np.zeros((5, 2))
        x_new = np.ones((3, 2))
        cov = exp_quad_covariance(x, 1.0, 1.0, x_new=x_new).eval()
        assert cov.shape == (5, 3)
        np.testing.assert_allclose(cov, np.exp(-1.0))


class TestBind:

    @pytest.mark.parametrize('spec', [LinearRegressionSpec(), GaussianProcessSpec()])
    def test_valid_data(self, spec, regression_data):
        bound = spec.bind(regression_data)
        assert set(bound) == {'x', 'y', 'x_test'}
        assert bound['x'].dtype == np.float64

    def test_missing_slot(self, regression_data):
        del regression_data['x_test']
        with pytest.raises(CompileError, match="'x_test' is not bound"):
            LinearRegressionSpec().bind(regression_data)

    def test_wrong_ndim(self, regression_data):
        regression_data['y'] = regression_data['y'].reshape(-1, 1)
        with pytest.raises(CompileError, match='dimension'):
            LinearRegressionSpec().bind(regression_data)

    def test_row_mismatch(self, regression_data):
        regression_data['y'] = regression_data['y'][:-1]
        with pytest.raises(CompileError, match='rows'):
            LinearRegressionSpec().bind(regression_data)

    def test_column_mismatch(self, regression_data):
        regression_data['x_test'] = regression_data['x_test'][:, :1]
        with pytest.raises(CompileError, match='columns'):
            GaussianProcessSpec().bind(regression_data)

    def test_non_finite(self, regression_data):
        regression_data['x'][3, 1] = np.nan
        with pytest.raises(CompileError, match='non-finite'):
            LinearRegressionSpec().bind(regression_data)

    def test_empty(self, regression_data):
        regression_data['x_test'] = np.empty((0, 2))
        with pytest.raises(CompileError, match='empty'):
            LinearRegressionSpec().bind(regression_data)


class TestLinearRegressionSpec:

    def test_build(self, regression_data):
        model = LinearRegressionSpec().build(regression_data,
                                             predictor_names=['displacement', 'weight'])

        assert free_names(model) == {'alpha', 'beta', 'sigma'}
        assert [rv.name for rv in model.observed_RVs] == ['y']
        assert list(model.coords['predictor']) == ['displacement', 'weight']

    def test_log_density_finite(self, regression_data):
        model = LinearRegressionSpec().build(regression_data)
        logp = model.compile_logp()(model.initial_point())
        assert np.isfinite(logp)

    def test_predictor_name_count(self, regression_data):
        with pytest.raises(CompileError, match='predictor names'):
            LinearRegressionSpec().build(regression_data, predictor_names=['weight'])

    def test_add_predictive(self, regression_data):
        spec = LinearRegressionSpec()
        model = spec.build(regression_data)
        spec.add_predictive(model, regression_data, test_ids=[10, 11, 12, 13])

        assert 'y_pred' in model.named_vars
        assert list(model.coords['test_id']) == [10, 11, 12, 13]
        # Predictive variable is not observed and not part of the likelihood
        assert 'y_pred' not in {rv.name for rv in model.observed_RVs}

    def test_add_predictive_id_count(self, regression_data):
        spec = LinearRegressionSpec()
        model = spec.build(regression_data)
        with pytest.raises(CompileError, match='test ids'):
            spec.add_predictive(model, regression_data, test_ids=[1, 2])

    def test_custom_priors(self, regression_data):
        spec = LinearRegressionSpec(priors=[
            PriorSpec('alpha', 'normal', {'mu': 20.0, 'sigma': 5.0}),
            PriorSpec('beta', 'normal', {'mu': 0.0, 'sigma': 1.0}),
            PriorSpec('sigma', 'halfnormal', {'sigma': 2.0}),
        ])
        model = spec.build(regression_data)
        assert free_names(model) == {'alpha', 'beta', 'sigma'}

    def test_missing_prior(self, regression_data):
        spec = LinearRegressionSpec(priors=[PriorSpec('alpha', 'normal', {'mu': 0, 'sigma': 1})])
        with pytest.raises(CompileError, match="no prior for 'beta'"):
            spec.build(regression_data)


class TestGaussianProcessSpec:

    def test_build(self, regression_data):
        model = GaussianProcessSpec().build(regression_data)

        assert free_names(model) == {'length_scale', 'amplitude', 'sigma', 'eta'}
        assert 'f' in model.named_vars
        assert model.initial_point()['eta'].shape == (12,)

    def test_log_density_finite(self, regression_data):
        model = GaussianProcessSpec().build(regression_data)
        logp = model.compile_logp()(model.initial_point())
        assert np.isfinite(logp)

    def test_add_predictive(self, regression_data):
        spec = GaussianProcessSpec()
        model = spec.build(regression_data)
        spec.add_predictive(model, regression_data)

        assert 'y_pred' in model.named_vars
        assert len(model.coords['test_id']) == 4

    def test_requires_standardized_target(self):
        assert GaussianProcessSpec.scale_target
        assert not LinearRegressionSpec.scale_target

    def test_negative_jitter(self):
        with pytest.raises(ValueError):
            GaussianProcessSpec(jitter=-1.0)


class TestPriors:

    def test_unknown_distribution(self, regression_data):
        spec = LinearRegressionSpec(priors=[
            PriorSpec('alpha', 'laplace', {'mu': 0.0, 'b': 1.0}),
            PriorSpec('beta', 'normal', {'mu': 0.0, 'sigma': 1.0}),
            PriorSpec('sigma', 'halfnormal', {'sigma': 1.0}),
        ])
        with pytest.raises(CompileError, match="Unknown distribution 'laplace'"):
            spec.build(regression_data)

    def test_invalid_parameters(self):
        import pymc as pm

        with pm.Model():
            with pytest.raises(CompileError, match='Invalid parameters'):
                make_prior(PriorSpec('sigma', 'halfcauchy', {}))


class TestRegistry:

    def test_known_models(self):
        assert isinstance(get_model_spec('linear'), LinearRegressionSpec)
        gp = get_model_spec('gp', jitter=1e-4)
        assert isinstance(gp, GaussianProcessSpec)
        assert gp.jitter == 1e-4

    def test_unknown_model(self):
        with pytest.raises(ValueError, match='Unknown model'):
            get_model_spec('spline')

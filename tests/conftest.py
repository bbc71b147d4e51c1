"""
Pytest configuration and fixtures for reproducible testing.

This file provides centralized test configuration including:
- Random seed management for reproducibility
- A non-interactive matplotlib backend
- Shared fixtures (sample data files, tiny sampler settings, synthetic fits)
"""
import matplotlib

matplotlib.use('Agg')

import arviz as az
import numpy as np
import pytest

from mpg_bayes.config import SamplerConfig
from mpg_bayes.dataset import load_dataset, write_sample_dataset
from mpg_bayes.results import FitResult


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: runs the MCMC sampler (deselect with -m 'not slow')")


@pytest.fixture(scope="session", autouse=True)
def set_random_seeds():
    """Set random seeds at the start of test session for reproducibility."""
    np.random.seed(42)
    yield


@pytest.fixture
def sample_data_path(tmp_path):
    """Synthetic auto-mpg style file with 40 records, every 10th horsepower missing."""
    return write_sample_dataset(tmp_path / 'auto-mpg.data', n_records=40, seed=7,
                                missing_every=10)


@pytest.fixture
def sample_dataset(sample_data_path):
    return load_dataset(str(sample_data_path), verbose=False)


@pytest.fixture
def tiny_sampler_config():
    """Minimal settings: enough to exercise the plumbing, not to converge."""
    return SamplerConfig(
        n_chains=2,
        n_iter=200,
        cores=1,
        random_seed=123,
        progressbar=False,
    )


def make_fake_fit(model_name='linear', n_chains=2, n_draws=100,
                  test_ids=(3, 5, 7, 8, 9), predictors=('displacement', 'weight'),
                  pred_mean=20.0, seed=0):
    """FitResult built from synthetic draws (no sampling)."""
    rng = np.random.default_rng(seed)
    test_ids = list(test_ids)
    idata = az.from_dict(
        posterior={
            'alpha': rng.normal(23.0, 0.3, size=(n_chains, n_draws)),
            'beta': rng.normal([-2.0, -4.0], 0.3, size=(n_chains, n_draws, len(predictors))),
            'sigma': np.abs(rng.normal(4.0, 0.2, size=(n_chains, n_draws))),
        },
        posterior_predictive={
            'y_pred': rng.normal(pred_mean, 1.0, size=(n_chains, n_draws, len(test_ids))),
        },
        sample_stats={
            'diverging': np.zeros((n_chains, n_draws), dtype=bool),
        },
        coords={'predictor': list(predictors), 'test_id': test_ids},
        dims={'beta': ['predictor'], 'y_pred': ['test_id']},
    )
    return FitResult(idata, model_name=model_name, elapsed_s=1.5)


@pytest.fixture
def fake_fit():
    return make_fake_fit()


@pytest.fixture
def make_fit():
    """Factory for synthetic fits with custom shapes or test ids."""
    return make_fake_fit

"""
MPG-Bayes - Bayesian regression of automotive fuel economy

Parametric linear regression and Gaussian-process regression fitted by MCMC
(PyMC/NUTS) on the auto-mpg data, with held-out evaluation against a
least-squares baseline and ArviZ convergence diagnostics.
"""

__version__ = "0.1.0"

from .config import ExperimentConfig, SamplerConfig, AUTO_MPG_URI, AUTO_MPG_COLUMNS
from .errors import (
    MPGBayesError,
    LoadError,
    CompileError,
    SamplingError,
    SamplingTimeout,
    AlignmentError,
)

# Data
from .dataset import load_dataset, prepare_design, DesignData, write_sample_dataset
from .splitting import Split, train_test_split

# Models and sampling
from .models import (
    PriorSpec,
    DataSlot,
    ModelSpec,
    LinearRegressionSpec,
    GaussianProcessSpec,
    exp_quad_covariance,
    get_model_spec,
)
from .results import FitResult, FitStore
from .sampler import sample_posterior

# Evaluation and reporting
from .evaluation import Metrics, rmse, mae, evaluate, point_predictions, fit_ols
from .pipeline import run_experiment, format_report

__all__ = [
    "ExperimentConfig",
    "SamplerConfig",
    "AUTO_MPG_URI",
    "AUTO_MPG_COLUMNS",
    "MPGBayesError",
    "LoadError",
    "CompileError",
    "SamplingError",
    "SamplingTimeout",
    "AlignmentError",
    "load_dataset",
    "prepare_design",
    "DesignData",
    "write_sample_dataset",
    "Split",
    "train_test_split",
    "PriorSpec",
    "DataSlot",
    "ModelSpec",
    "LinearRegressionSpec",
    "GaussianProcessSpec",
    "exp_quad_covariance",
    "get_model_spec",
    "FitResult",
    "FitStore",
    "sample_posterior",
    "Metrics",
    "rmse",
    "mae",
    "evaluate",
    "point_predictions",
    "fit_ols",
    "run_experiment",
    "format_report",
]

"""
MPG-Bayes — Probabilistic Model Specifications
==============================================
Declarative PyMC model definitions for the two regression families compared
on the fuel-economy data.

Parametric linear regression:
    alpha   ~ Normal(0, 10)
    beta_k  ~ Normal(0, 10)            one slope per predictor
    sigma   ~ HalfCauchy(10)
    y       ~ Normal(alpha + x·beta, sigma)

Gaussian-process regression (non-centred / whitened latent function):
    length_scale ~ HalfStudentT(nu=4, sigma=1)
    amplitude    ~ HalfNormal(1)
    sigma        ~ HalfNormal(1)
    eta_i        ~ Normal(0, 1)        one per training point
    K_ij = amplitude² · exp(-‖x_i - x_j‖² / (2 length_scale²)) + jitter·δ_ij
    f    = cholesky(K) · eta
    y    ~ Normal(f, sigma)

Each specification declares the data slots it expects ('x', 'y', 'x_test'),
builds a ``pm.Model`` from bound data, and can extend a built model with the
held-out predictive quantity ``y_pred`` (drawn after sampling, like generated
quantities).

Usage:
    spec = get_model_spec('gp', jitter=1e-6)
    data = spec.bind({'x': x, 'y': y, 'x_test': x_test})
    model = spec.build(data)

License: MIT
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

import numpy as np
import pymc as pm
import pytensor.tensor as pt
from pytensor.tensor.slinalg import cholesky, solve_triangular

from .errors import CompileError


# ═══════════════════════════════════════════════════════════════
# Declarations
# ═══════════════════════════════════════════════════════════════

@dataclass(frozen=True)
class PriorSpec:
    """Specification for a single parameter prior distribution."""
    name: str
    distribution: str  # 'normal', 'halfnormal', 'halfcauchy', 'halfstudentt'
    params: Dict       # Distribution parameters (e.g., {'mu': 0, 'sigma': 10})


@dataclass(frozen=True)
class DataSlot:
    """A named input the model expects to be bound before building."""
    name: str
    ndim: int
    description: str = ''


PRIOR_DISTRIBUTIONS = {
    'normal': pm.Normal,
    'halfnormal': pm.HalfNormal,
    'halfcauchy': pm.HalfCauchy,
    'halfstudentt': pm.HalfStudentT,
}

REGRESSION_SLOTS = (
    DataSlot('x', 2, 'training inputs [N, K]'),
    DataSlot('y', 1, 'training targets [N]'),
    DataSlot('x_test', 2, 'held-out inputs [N_test, K]'),
)


def make_prior(prior: PriorSpec, dims: Optional[str] = None):
    """Create the PyMC random variable described by ``prior`` in the active model."""
    dist = PRIOR_DISTRIBUTIONS.get(prior.distribution)
    if dist is None:
        raise CompileError(
            f"Unknown distribution '{prior.distribution}' for '{prior.name}'; "
            f"choose from {sorted(PRIOR_DISTRIBUTIONS)}"
        )
    try:
        return dist(prior.name, dims=dims, **prior.params)
    except TypeError as exc:
        raise CompileError(f"Invalid parameters for prior '{prior.name}': {exc}") from exc


def exp_quad_covariance(x,
                        amplitude,
                        length_scale,
                        x_new=None,
                        jitter: float = 0.0):
    """Exponentiated-quadratic covariance between rows of ``x`` (and ``x_new``).

    k(x_i, x_j) = amplitude² · exp(-‖x_i - x_j‖² / (2 length_scale²))

    Args:
        x: [N, D] inputs
        amplitude: Signal standard deviation (float or tensor)
        length_scale: Length-scale shared by all input dimensions
        x_new: Optional [M, D] inputs; if given the [N, M] cross-covariance is built
        jitter: Added to the diagonal (square case only)

    Returns:
        PyTensor expression; call ``.eval()`` for a NumPy array when the
        hyperparameters are constants.
    """
    input_dim = np.shape(x)[1]
    cov_func = amplitude ** 2 * pm.gp.cov.ExpQuad(input_dim, ls=length_scale)

    if x_new is None:
        cov = cov_func(x)
        if jitter:
            cov = cov + jitter * pt.eye(np.shape(x)[0])
        return cov

    return cov_func(x, x_new)


# ═══════════════════════════════════════════════════════════════
# Model Specifications
# ═══════════════════════════════════════════════════════════════

class ModelSpec:
    """Base class: declared data slots, priors, model construction."""

    name: str = ''
    data_slots = REGRESSION_SLOTS
    # Whether the response must be standardized before fitting
    scale_target: bool = False

    def __init__(self, priors: Optional[List[PriorSpec]] = None):
        self.priors = priors or self.default_priors()
        self._prior_index = {p.name: p for p in self.priors}

    def default_priors(self) -> List[PriorSpec]:
        raise NotImplementedError

    def prior(self, name: str) -> PriorSpec:
        try:
            return self._prior_index[name]
        except KeyError:
            raise CompileError(f"Model '{self.name}' has no prior for '{name}'") from None

    def bind(self, data: Dict[str, np.ndarray]) -> Dict[str, np.ndarray]:
        """Validate ``data`` against the declared slots.

        Returns:
            Dict of float64 arrays, one per declared slot
        """
        bound = {}
        for slot in self.data_slots:
            if slot.name not in data:
                raise CompileError(f"Model '{self.name}': data slot '{slot.name}' is not bound")
            value = np.asarray(data[slot.name], dtype=np.float64)
            if value.ndim != slot.ndim:
                raise CompileError(
                    f"Model '{self.name}': slot '{slot.name}' must have {slot.ndim} "
                    f"dimension(s), got shape {value.shape}"
                )
            if value.size == 0:
                raise CompileError(f"Model '{self.name}': slot '{slot.name}' is empty")
            if not np.all(np.isfinite(value)):
                raise CompileError(f"Model '{self.name}': slot '{slot.name}' has non-finite values")
            bound[slot.name] = value

        x, y, x_test = bound['x'], bound['y'], bound['x_test']
        if x.shape[0] != y.shape[0]:
            raise CompileError(
                f"Model '{self.name}': x has {x.shape[0]} rows but y has {y.shape[0]}"
            )
        if x.shape[1] != x_test.shape[1]:
            raise CompileError(
                f"Model '{self.name}': x has {x.shape[1]} columns but x_test has {x_test.shape[1]}"
            )
        return bound

    def build(self, data: Dict[str, np.ndarray],
              predictor_names: Optional[Sequence[str]] = None) -> pm.Model:
        """Build the PyMC model (priors + likelihood) from bound data."""
        data = self.bind(data)
        n_obs, n_predictors = data['x'].shape
        coords = {
            'predictor': list(predictor_names) if predictor_names is not None
            else [f'x{k}' for k in range(n_predictors)],
            'obs': np.arange(n_obs),
        }
        if len(coords['predictor']) != n_predictors:
            raise CompileError(
                f"Model '{self.name}': {len(coords['predictor'])} predictor names "
                f"for {n_predictors} columns"
            )

        try:
            with pm.Model(coords=coords) as model:
                self._define(data)
        except (TypeError, ValueError) as exc:
            raise CompileError(f"Model '{self.name}' failed to build: {exc}") from exc
        return model

    def add_predictive(self, model: pm.Model, data: Dict[str, np.ndarray],
                       test_ids: Optional[Sequence] = None):
        """Add ``y_pred`` (predictive draws at ``x_test``) to a built model."""
        data = self.bind(data)
        n_test = data['x_test'].shape[0]
        ids = np.arange(n_test) if test_ids is None else np.asarray(test_ids)
        if len(ids) != n_test:
            raise CompileError(f"{len(ids)} test ids for {n_test} test inputs")

        try:
            with model:
                model.add_coord('test_id', ids)
                self._define_predictive(model, data)
        except (TypeError, ValueError) as exc:
            raise CompileError(f"Model '{self.name}' predictive failed to build: {exc}") from exc

    def settings(self) -> Dict:
        """Everything besides the data that changes what gets sampled."""
        return {
            'name': self.name,
            'priors': [(p.name, p.distribution, sorted(p.params.items())) for p in self.priors],
        }

    def _define(self, data: Dict[str, np.ndarray]):
        raise NotImplementedError

    def _define_predictive(self, model: pm.Model, data: Dict[str, np.ndarray]):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}(name={self.name!r}, priors={[p.name for p in self.priors]})"


class LinearRegressionSpec(ModelSpec):
    """Bayesian linear regression with weakly informative priors."""

    name = 'linear'

    def default_priors(self) -> List[PriorSpec]:
        return [
            PriorSpec('alpha', 'normal', {'mu': 0.0, 'sigma': 10.0}),
            PriorSpec('beta', 'normal', {'mu': 0.0, 'sigma': 10.0}),
            PriorSpec('sigma', 'halfcauchy', {'beta': 10.0}),
        ]

    def _define(self, data):
        alpha = make_prior(self.prior('alpha'))
        beta = make_prior(self.prior('beta'), dims='predictor')
        sigma = make_prior(self.prior('sigma'))

        mu = alpha + pt.dot(data['x'], beta)
        pm.Normal('y', mu=mu, sigma=sigma, observed=data['y'], dims='obs')

    def _define_predictive(self, model, data):
        mu_pred = model['alpha'] + pt.dot(data['x_test'], model['beta'])
        pm.Normal('y_pred', mu=mu_pred, sigma=model['sigma'], dims='test_id')


class GaussianProcessSpec(ModelSpec):
    """Latent-variable GP regression with an exponentiated-quadratic kernel.

    The latent function is parameterised through a whitening vector ``eta``
    so that NUTS explores a standard-normal geometry instead of the strongly
    correlated prior over ``f``.
    """

    name = 'gp'
    scale_target = True

    def __init__(self, priors: Optional[List[PriorSpec]] = None, jitter: float = 1e-6):
        if jitter < 0:
            raise ValueError(f"jitter must be non-negative, got {jitter}")
        self.jitter = jitter
        super().__init__(priors)

    def settings(self) -> Dict:
        return {**super().settings(), 'jitter': self.jitter}

    def default_priors(self) -> List[PriorSpec]:
        return [
            PriorSpec('length_scale', 'halfstudentt', {'nu': 4.0, 'sigma': 1.0}),
            PriorSpec('amplitude', 'halfnormal', {'sigma': 1.0}),
            PriorSpec('sigma', 'halfnormal', {'sigma': 1.0}),
            PriorSpec('eta', 'normal', {'mu': 0.0, 'sigma': 1.0}),
        ]

    def _latent_factor(self, x, amplitude, length_scale):
        K = exp_quad_covariance(x, amplitude, length_scale, jitter=self.jitter)
        # NaN instead of an exception: the sampler treats it as a divergence
        return cholesky(K, lower=True, on_error='nan')

    def _define(self, data):
        length_scale = make_prior(self.prior('length_scale'))
        amplitude = make_prior(self.prior('amplitude'))
        sigma = make_prior(self.prior('sigma'))
        eta = make_prior(self.prior('eta'), dims='obs')

        L = self._latent_factor(data['x'], amplitude, length_scale)
        f = pm.Deterministic('f', pt.dot(L, eta), dims='obs')
        pm.Normal('y', mu=f, sigma=sigma, observed=data['y'], dims='obs')

    def _define_predictive(self, model, data):
        length_scale = model['length_scale']
        amplitude = model['amplitude']

        L = self._latent_factor(data['x'], amplitude, length_scale)
        K_s = exp_quad_covariance(data['x'], amplitude, length_scale, x_new=data['x_test'])
        v = solve_triangular(L, K_s, lower=True)

        # Conditional of f at x_test given f = L·eta, taken pointwise
        f_mean = pt.dot(v.T, model['eta'])
        f_var = pt.clip(amplitude ** 2 + self.jitter - pt.sum(v ** 2, axis=0), 1e-12, np.inf)
        pm.Normal('y_pred', mu=f_mean, sigma=pt.sqrt(f_var + model['sigma'] ** 2),
                  dims='test_id')


MODEL_SPECS = {
    LinearRegressionSpec.name: LinearRegressionSpec,
    GaussianProcessSpec.name: GaussianProcessSpec,
}


def get_model_spec(name: str, **kwargs) -> ModelSpec:
    """Instantiate a registered model specification by name."""
    if name not in MODEL_SPECS:
        raise ValueError(f"Unknown model '{name}'. Available: {sorted(MODEL_SPECS)}")
    return MODEL_SPECS[name](**kwargs)

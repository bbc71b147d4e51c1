"""
MPG-Bayes — Posterior Sampling
==============================
Drives PyMC's NUTS sampler for a bound model specification and returns a
FitResult with posterior draws plus predictive draws at the held-out inputs.

Sampling itself is delegated entirely to PyMC; this module only wires the
configuration through, enforces the wall-clock budget, and maps engine
failures onto the package error types.

Usage:
    from mpg_bayes.models import get_model_spec
    from mpg_bayes.sampler import sample_posterior
    from mpg_bayes.config import SamplerConfig

    spec = get_model_spec('linear')
    fit = sample_posterior(spec, design.model_data(),
                           SamplerConfig(n_chains=4, n_iter=2000, timeout_s=600),
                           predictor_names=design.predictors,
                           test_ids=design.test_ids)

License: MIT
"""

import time
from typing import Dict, Optional, Sequence

import numpy as np
import pymc as pm
from pymc.exceptions import SamplingError as EngineSamplingError
from pymc.sampling.parallel import ParallelSamplingError

from .config import SamplerConfig
from .diagnostics import convergence_report
from .errors import SamplingError, SamplingTimeout
from .models import ModelSpec
from .results import FitResult, PREDICTIVE_VAR


class Deadline:
    """Sampler callback that aborts a run once its time budget is spent.

    PyMC calls it after every iteration (warm-up included) with the trace and
    draw; raising from it stops all chains and the partial trace is dropped.
    """

    def __init__(self, timeout_s: Optional[float]):
        self.timeout_s = timeout_s
        self.start = time.perf_counter()

    @property
    def elapsed(self) -> float:
        return time.perf_counter() - self.start

    def check(self):
        if self.timeout_s is not None and self.elapsed > self.timeout_s:
            raise SamplingTimeout(
                f"Sampling exceeded {self.timeout_s:.1f} s budget "
                f"(elapsed {self.elapsed:.1f} s); partial draws discarded"
            )

    def __call__(self, trace=None, draw=None):
        self.check()


def sample_posterior(spec: ModelSpec,
                     data: Dict[str, np.ndarray],
                     config: Optional[SamplerConfig] = None,
                     predictor_names: Optional[Sequence[str]] = None,
                     test_ids: Optional[Sequence] = None,
                     verbose: bool = True) -> FitResult:
    """Sample the posterior of ``spec`` given ``data``.

    Args:
        spec: Model specification
        data: Values for every slot the model specification declares
        config: Sampler configuration (defaults if None)
        predictor_names: Labels for the predictor dimension
        test_ids: Record ids of the held-out inputs

    Returns:
        FitResult with ``n_chains * n_draws`` kept draws per parameter and
        ``y_pred`` predictive draws, plus its convergence report

    Raises:
        CompileError: data binding or model construction failed
        SamplingError: the engine failed numerically
        SamplingTimeout: ``config.timeout_s`` was exceeded
    """
    config = config or SamplerConfig()
    data = spec.bind(data)
    model = spec.build(data, predictor_names=predictor_names)

    if verbose:
        print(f"[Sampler] Model '{spec.name}': {len(model.free_RVs)} free variables, "
              f"{data['x'].shape[0]} observations")
        print(f"[Sampler] Starting MCMC sampling...")
        print(f"  Chains: {config.n_chains}")
        print(f"  Warm-up per chain: {config.n_tune}")
        print(f"  Draws per chain: {config.n_draws}")

    deadline = Deadline(config.timeout_s)
    with model:
        step = pm.NUTS(
            target_accept=config.target_accept,
            step_scale=config.step_scale,
            max_treedepth=config.max_treedepth,
        )
        try:
            idata = pm.sample(
                draws=config.n_draws,
                tune=config.n_tune,
                chains=config.n_chains,
                cores=config.cores,
                step=step,
                random_seed=config.random_seed,
                progressbar=config.progressbar,
                callback=deadline,
                compute_convergence_checks=False,
                return_inferencedata=True,
            )
        except (EngineSamplingError, ParallelSamplingError,
                FloatingPointError, np.linalg.LinAlgError) as exc:
            raise SamplingError(f"Sampling failed for model '{spec.name}': {exc}") from exc

    deadline.check()

    spec.add_predictive(model, data, test_ids=test_ids)
    with model:
        try:
            pm.sample_posterior_predictive(
                idata,
                var_names=[PREDICTIVE_VAR],
                random_seed=config.random_seed,
                progressbar=False,
                extend_inferencedata=True,
            )
        except (FloatingPointError, np.linalg.LinAlgError) as exc:
            raise SamplingError(
                f"Predictive draws failed for model '{spec.name}': {exc}"
            ) from exc

    fit = FitResult(idata, model_name=spec.name, elapsed_s=deadline.elapsed)

    if verbose:
        print(f"[Sampler] Sampling complete in {deadline.elapsed:.1f} s")
    fit.convergence = convergence_report(fit,
                                         rhat_threshold=config.rhat_threshold,
                                         ess_ratio_threshold=config.ess_ratio_threshold,
                                         verbose=verbose)

    return fit

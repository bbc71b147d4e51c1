"""
Convergence diagnostics and plots for fitted models.

Everything here only reads a FitResult; nothing feeds back into sampling.
Plot functions return the matplotlib Figure and optionally save it as PNG.
"""

import warnings
from typing import Dict, List, Optional, Sequence

import arviz as az
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import seaborn as sns

from .evaluation import point_predictions
from .results import FitResult

sns.set_style('whitegrid')

# Per-observation latent variables of the GP model, too many to plot
LATENT_VARS = ('eta', 'f')


def default_var_names(fit: FitResult) -> List[str]:
    """Model parameters worth plotting: everything but per-observation latents."""
    return [name for name in fit.parameter_names if name not in LATENT_VARS]


def _finish(fig, save_path: Optional[str], show: bool):
    fig.tight_layout()
    if save_path:
        fig.savefig(save_path, dpi=150, bbox_inches='tight')
    if show:
        plt.show()
    return fig


def convergence_report(fit: FitResult,
                       rhat_threshold: float = 1.01,
                       ess_ratio_threshold: float = 0.1,
                       var_names: Optional[Sequence[str]] = None,
                       verbose: bool = True) -> Dict[str, Dict]:
    """Check MCMC convergence using R-hat and relative effective sample size.

    Vector parameters are reduced to their worst entry (largest R-hat,
    smallest ESS ratio).

    Returns:
        Dict per parameter with 'rhat' (None for a single chain), 'ess_ratio'
        and 'ok'
    """
    var_names = list(var_names or fit.parameter_names)
    total_samples = fit.n_chains * fit.n_draws
    ess = az.ess(fit.idata, var_names=var_names, relative=True)
    rhat = az.rhat(fit.idata, var_names=var_names) if fit.n_chains > 1 else None

    if verbose:
        print("\n[Diagnostics] Convergence Diagnostics:")
        print(f"  Model: {fit.model_name}, {fit.n_chains} chains x {fit.n_draws} draws")

    report = {}
    for var in var_names:
        ess_ratio = float(np.nanmin(ess[var].values))
        rhat_val = float(np.nanmax(rhat[var].values)) if rhat is not None else None

        ok = ess_ratio >= ess_ratio_threshold
        if rhat_val is not None:
            ok = ok and rhat_val < rhat_threshold

        report[var] = {'rhat': rhat_val, 'ess_ratio': ess_ratio, 'ok': ok}

        if verbose:
            rhat_str = f"{rhat_val:.4f}" if rhat_val is not None else "  n/a "
            status = "OK" if ok else "WARNING"
            print(f"    {var:<14} R-hat {rhat_str}  ESS {ess_ratio:.1%} "
                  f"of {total_samples}  {status}")

    bad = [var for var, entry in report.items() if not entry['ok']]
    if bad:
        warnings.warn(
            f"Model '{fit.model_name}': poor convergence for {bad} "
            f"(R-hat >= {rhat_threshold} or ESS ratio < {ess_ratio_threshold})"
        )

    n_divergent = fit.divergences
    if n_divergent:
        warnings.warn(
            f"Model '{fit.model_name}': {n_divergent} divergent transitions; "
            "consider a higher target_accept or a smaller step size"
        )
        if verbose:
            print(f"  Divergent transitions: {n_divergent}")

    return report


def plot_trace(fit: FitResult,
               var_names: Optional[Sequence[str]] = None,
               save_path: Optional[str] = None,
               show: bool = False):
    """Trace plots (chains over iterations) with marginal densities."""
    axes = az.plot_trace(fit.idata, var_names=list(var_names or default_var_names(fit)),
                         compact=True, figsize=(12, 8))
    return _finish(np.ravel(axes)[0].figure, save_path, show)


def plot_posterior(fit: FitResult,
                   var_names: Optional[Sequence[str]] = None,
                   hdi_prob: float = 0.95,
                   save_path: Optional[str] = None,
                   show: bool = False):
    """Posterior density per parameter with its highest-density interval."""
    axes = az.plot_posterior(fit.idata, var_names=list(var_names or default_var_names(fit)),
                             hdi_prob=hdi_prob, figsize=(14, 8))
    return _finish(np.ravel(axes)[0].figure, save_path, show)


def plot_intervals(fit: FitResult,
                   var_names: Optional[Sequence[str]] = None,
                   hdi_prob: float = 0.95,
                   save_path: Optional[str] = None,
                   show: bool = False):
    """Interval (forest) plot of all chains combined."""
    axes = az.plot_forest(fit.idata, var_names=list(var_names or default_var_names(fit)),
                          combined=True, hdi_prob=hdi_prob, figsize=(8, 6))
    return _finish(np.ravel(axes)[0].figure, save_path, show)


def plot_ess_ratio(fit: FitResult,
                   bins: int = 30,
                   save_path: Optional[str] = None,
                   show: bool = False):
    """Histogram of ESS / total draws over every scalar parameter entry."""
    ess = az.ess(fit.idata, relative=True)
    ratios = np.concatenate([np.ravel(ess[var].values) for var in ess.data_vars])
    ratios = ratios[np.isfinite(ratios)]

    fig, ax = plt.subplots(figsize=(8, 5))
    ax.hist(ratios, bins=bins, color='steelblue', edgecolor='white')
    for threshold in (0.1, 0.5, 1.0):
        ax.axvline(threshold, color='gray', linestyle='--', linewidth=1)
    ax.set_xlabel('Effective sample size / total draws')
    ax.set_ylabel('Parameters')
    ax.set_title(f"ESS ratio: {fit.model_name} ({len(ratios)} entries)")
    return _finish(fig, save_path, show)


def plot_predictions(fit: FitResult,
                     observed: Sequence[float],
                     inverse_target=None,
                     interval: float = 0.9,
                     save_path: Optional[str] = None,
                     show: bool = False):
    """Observed vs. predicted held-out targets with predictive intervals."""
    draws = fit.predictive_draws()
    if inverse_target is not None:
        draws = inverse_target(draws)
    predicted = point_predictions(fit, inverse_target=inverse_target)
    lower, upper = np.percentile(draws, [50 * (1 - interval), 50 * (1 + interval)], axis=0)
    observed = np.asarray(observed, dtype=np.float64)

    fig, ax = plt.subplots(figsize=(7, 7))
    ax.errorbar(observed, predicted,
                yerr=np.clip([predicted - lower, upper - predicted], 0.0, None),
                fmt='o', markersize=4, alpha=0.7, ecolor='lightgray')
    lims = [min(observed.min(), lower.min()), max(observed.max(), upper.max())]
    ax.plot(lims, lims, 'k--', linewidth=1)
    ax.set_xlabel('Observed')
    ax.set_ylabel(f'Predicted (posterior mean, {interval:.0%} interval)')
    ax.set_title(f"Held-out predictions: {fit.model_name}")
    return _finish(fig, save_path, show)


def plot_data(dataset: pd.DataFrame,
              columns: Sequence[str],
              hue: Optional[str] = None,
              save_path: Optional[str] = None,
              show: bool = False):
    """Pairwise scatter plot of the selected dataset columns."""
    grid = sns.pairplot(dataset.dropna(subset=list(columns)), vars=list(columns),
                        hue=hue, corner=True, plot_kws={'s': 15, 'alpha': 0.6})
    return _finish(grid.figure, save_path, show)

"""
Complete experiment: dataset -> split -> model fits -> evaluation -> report

Each model family (linear, GP) runs independently on the same split. A
failure in one family (package errors, an unusable design, a failed write of
the store or an artifact) is recorded on its result and the other still runs.
"""
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

import matplotlib.pyplot as plt
import pandas as pd

from .config import ExperimentConfig
from .dataset import load_dataset, prepare_design
from .diagnostics import (
    convergence_report,
    plot_data,
    plot_ess_ratio,
    plot_intervals,
    plot_posterior,
    plot_predictions,
    plot_trace,
)
from .errors import MPGBayesError
from .evaluation import Metrics, OLSBaseline, compare_coefficients, evaluate, fit_ols
from .models import get_model_spec
from .results import FitResult, FitStore
from .sampler import sample_posterior
from .splitting import Split, train_test_split


@dataclass
class FamilyResult:
    """Outcome of one model family's run."""
    model_name: str
    fit: Optional[FitResult] = None
    metrics: Optional[Metrics] = None
    baseline: Optional[OLSBaseline] = None
    comparison: Optional[Dict] = None
    convergence: Optional[Dict] = None
    artifacts: List[str] = field(default_factory=list)
    error: Optional[Exception] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class ExperimentResult:
    config: ExperimentConfig
    split: Split
    families: Dict[str, FamilyResult]

    def metrics_table(self) -> pd.DataFrame:
        """RMSE/MAE per model family plus the OLS baseline."""
        rows = []
        baseline = None
        for name, family in self.families.items():
            if family.metrics is not None:
                rows.append({'model': name, **family.metrics.as_dict()})
            if family.baseline is not None and baseline is None:
                baseline = family.baseline
        if baseline is not None:
            rows.append({'model': 'ols', **baseline.metrics.as_dict()})
        return pd.DataFrame(rows, columns=['model', 'rmse', 'mae', 'n'])


def _save_plots(family: FamilyResult, design, output_dir: Path) -> List[str]:
    output_dir.mkdir(parents=True, exist_ok=True)
    fit = family.fit
    prefix = output_dir / fit.model_name

    figures = {
        f"{prefix}_trace.png": lambda p: plot_trace(fit, save_path=p),
        f"{prefix}_posterior.png": lambda p: plot_posterior(fit, save_path=p),
        f"{prefix}_intervals.png": lambda p: plot_intervals(fit, save_path=p),
        f"{prefix}_ess.png": lambda p: plot_ess_ratio(fit, save_path=p),
        f"{prefix}_predictions.png": lambda p: plot_predictions(
            fit, design.observed_test().loc[fit.test_ids],
            inverse_target=design.inverse_target, save_path=p),
    }
    saved = []
    for path, plot in figures.items():
        plt.close(plot(path))
        saved.append(path)
    return saved


def run_model_family(name: str,
                     split: Split,
                     config: ExperimentConfig,
                     store: Optional[FitStore] = None,
                     verbose: bool = True) -> FamilyResult:
    """Fit and evaluate one model family on ``split``."""
    spec_kwargs = {'gp': {'jitter': config.jitter}}.get(name, {})
    spec = get_model_spec(name, **spec_kwargs)

    design = prepare_design(split, config.predictors, config.target,
                            standardize=config.standardize,
                            scale_target=spec.scale_target)
    data = design.model_data()

    fit = store.get(spec, data, config.sampler) if store is not None else None
    if fit is None:
        fit = sample_posterior(spec, data, config.sampler,
                               predictor_names=design.predictors,
                               test_ids=design.test_ids,
                               verbose=verbose)
        if store is not None:
            store.put(fit, spec, data, config.sampler)

    family = FamilyResult(model_name=name, fit=fit)
    family.metrics = evaluate(fit, design.observed_test(), inverse_target=design.inverse_target)
    family.baseline = fit_ols(design)
    family.convergence = fit.convergence
    if family.convergence is None:
        # Loaded from the store; a fresh fit already carries its report
        family.convergence = convergence_report(
            fit,
            rhat_threshold=config.sampler.rhat_threshold,
            ess_ratio_threshold=config.sampler.ess_ratio_threshold,
            verbose=False,
        )
    if name == 'linear':
        family.comparison = compare_coefficients(fit, family.baseline)

    if verbose:
        print(f"  RMSE: {family.metrics.rmse:.3f}   MAE: {family.metrics.mae:.3f} "
              f"(n={family.metrics.n})")

    if config.output_dir:
        family.artifacts = _save_plots(family, design, Path(config.output_dir))
        fit_path = Path(config.output_dir) / f"{name}_fit.nc"
        fit.save(str(fit_path))
        family.artifacts.append(str(fit_path))

    return family


def run_experiment(config: Optional[ExperimentConfig] = None,
                   dataset: Optional[pd.DataFrame] = None,
                   store: Optional[FitStore] = None,
                   verbose: bool = True,
                   raise_errors: bool = False) -> ExperimentResult:
    """Complete experiment pipeline.

    Args:
        config: Experiment configuration (defaults if None)
        dataset: Pre-loaded dataset; loaded from ``config.data_uri`` if None
        store: Fit store; created from ``config.store_dir`` if None and set
        raise_errors: Re-raise a model family's failure instead of recording it

    Returns:
        ExperimentResult with one FamilyResult per configured model
    """
    config = config or ExperimentConfig()

    if verbose:
        print("\n" + "=" * 70)
        print(f"FUEL-ECONOMY EXPERIMENT: {', '.join(config.models)}")
        print("=" * 70)

    if dataset is None:
        dataset = load_dataset(config.data_uri, config.column_names, verbose=verbose)
    split = train_test_split(dataset, config.train_frac, seed=config.split_seed,
                             verbose=verbose)

    if store is None and config.store_dir:
        store = FitStore(config.store_dir, verbose=verbose)

    if config.output_dir:
        output_dir = Path(config.output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        plt.close(plot_data(dataset, [config.target] + list(config.predictors),
                            save_path=str(output_dir / 'data_pairs.png')))

    families = {}
    for i, name in enumerate(config.models, 1):
        if verbose:
            print(f"\n[{i}/{len(config.models)}] Model family '{name}'...")
        try:
            families[name] = run_model_family(name, split, config, store=store, verbose=verbose)
        except (MPGBayesError, ValueError, OSError) as exc:
            if raise_errors:
                raise
            warnings.warn(f"Model family '{name}' failed: {type(exc).__name__}: {exc}")
            families[name] = FamilyResult(model_name=name, error=exc)

    return ExperimentResult(config=config, split=split, families=families)


def format_report(result: ExperimentResult) -> str:
    """Plain-text report of held-out errors and failures."""
    lines = [
        f"Train/test records: {len(result.split.train)}/{len(result.split.test)}",
        f"{'Model':<10} {'RMSE':>10} {'MAE':>10} {'n':>6}",
        "-" * 40,
    ]
    for row in result.metrics_table().itertuples(index=False):
        lines.append(f"{row.model:<10} {row.rmse:>10.3f} {row.mae:>10.3f} {int(row.n):>6}")

    for name, family in result.families.items():
        if not family.ok:
            lines.append(f"{name:<10} FAILED: {type(family.error).__name__}: {family.error}")
        if family.comparison:
            for param, entry in family.comparison.items():
                lines.append(
                    f"  {param:<22} bayes {entry['bayesian_mean']:>9.3f}  "
                    f"ols {entry['ols_estimate']:>9.3f}  {entry['agreement']}"
                )
    return "\n".join(lines)

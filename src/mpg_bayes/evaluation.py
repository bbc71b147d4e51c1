"""
Held-out evaluation of fitted models.

Point predictions are posterior means of the predictive draws; errors are
summarised by RMSE and MAE. A scikit-learn least-squares fit on the same
design serves as the frequentist baseline.
"""

from dataclasses import dataclass
from typing import Callable, Dict, Optional, Sequence, Union

import numpy as np
import pandas as pd
from sklearn.linear_model import LinearRegression

from .errors import AlignmentError
from .results import FitResult


@dataclass(frozen=True)
class Metrics:
    """Scalar error metrics on a held-out set."""
    rmse: float
    mae: float
    n: int

    def as_dict(self) -> Dict[str, float]:
        return {'rmse': self.rmse, 'mae': self.mae, 'n': self.n}


def _aligned(predicted, observed):
    predicted = np.asarray(predicted, dtype=np.float64)
    observed = np.asarray(observed, dtype=np.float64)
    if predicted.ndim != 1 or observed.ndim != 1:
        raise AlignmentError(
            f"Expected 1-D sequences, got shapes {predicted.shape} and {observed.shape}"
        )
    if len(predicted) != len(observed):
        raise AlignmentError(
            f"Predicted and observed lengths differ: {len(predicted)} vs {len(observed)}"
        )
    if len(predicted) == 0:
        raise AlignmentError("Cannot compute metrics on empty sequences")
    return predicted, observed


def rmse(predicted: Sequence[float], observed: Sequence[float]) -> float:
    """Root mean squared error."""
    predicted, observed = _aligned(predicted, observed)
    return float(np.sqrt(np.mean((predicted - observed) ** 2)))


def mae(predicted: Sequence[float], observed: Sequence[float]) -> float:
    """Mean absolute error."""
    predicted, observed = _aligned(predicted, observed)
    return float(np.mean(np.abs(predicted - observed)))


def compute_metrics(predicted: Sequence[float], observed: Sequence[float]) -> Metrics:
    predicted, observed = _aligned(predicted, observed)
    return Metrics(rmse=rmse(predicted, observed), mae=mae(predicted, observed),
                   n=len(observed))


def point_predictions(fit: FitResult,
                      inverse_target: Optional[Callable] = None) -> np.ndarray:
    """Posterior mean of the predictive draws at each held-out point.

    Args:
        fit: FitResult with predictive draws
        inverse_target: Optional map from model scale back to original units,
            applied per draw before averaging
    """
    draws = fit.predictive_draws()
    if inverse_target is not None:
        draws = inverse_target(draws)
    return draws.mean(axis=0)


def evaluate(fit: FitResult,
             observed: Union[pd.Series, Sequence[float]],
             inverse_target: Optional[Callable] = None) -> Metrics:
    """RMSE and MAE of the posterior-mean predictions against ``observed``.

    ``observed`` given as a Series indexed by record id is aligned to the
    fit's test ids; a plain sequence must already be in predictive order.
    """
    predicted = point_predictions(fit, inverse_target=inverse_target)

    if isinstance(observed, pd.Series):
        test_ids = fit.test_ids
        if len(observed) != len(test_ids) or set(observed.index) != set(test_ids):
            raise AlignmentError(
                f"Observed ids do not match the {len(test_ids)} test ids of "
                f"fit '{fit.model_name}'"
            )
        observed = observed.loc[test_ids].to_numpy()

    return compute_metrics(predicted, observed)


# ═══════════════════════════════════════════════════════════════
# Frequentist baseline
# ═══════════════════════════════════════════════════════════════

@dataclass
class OLSBaseline:
    """Ordinary least squares fit on the same design as the Bayesian models."""
    intercept: float
    coefficients: Dict[str, float]
    predictions: np.ndarray
    metrics: Metrics


def fit_ols(design) -> OLSBaseline:
    """Least-squares fit on ``design`` (a DesignData), evaluated on its test side."""
    model = LinearRegression().fit(design.x_train, design.y_train)
    predictions = design.inverse_target(model.predict(design.x_test))
    # Report coefficients in original target units
    scale = design.y_scaler.scale_[0] if design.y_scaler is not None else 1.0

    return OLSBaseline(
        intercept=float(design.inverse_target(model.intercept_)),
        coefficients=dict(zip(design.predictors, map(float, model.coef_ * scale))),
        predictions=predictions,
        metrics=compute_metrics(predictions, design.y_test),
    )


def compare_coefficients(fit: FitResult,
                         ols: OLSBaseline,
                         hdi_prob: float = 0.95) -> Dict[str, Dict]:
    """Compare linear-model posteriors with OLS point estimates.

    Checks whether each OLS coefficient falls within the Bayesian credible
    interval. Only meaningful when both were fitted on the same (unscaled
    target) design.
    """
    summary = fit.summarize(hdi_prob)
    pairs = {'alpha': ols.intercept}
    pairs.update({f'beta[{name}]': value for name, value in ols.coefficients.items()})

    comparison = {}
    for param_name, ols_est in pairs.items():
        if param_name not in summary:
            continue
        entry = summary[param_name]
        ci = (entry['ci_lower'], entry['ci_upper'])
        in_ci = ci[0] <= ols_est <= ci[1]
        comparison[param_name] = {
            'bayesian_mean': entry['mean'],
            'bayesian_ci': ci,
            'ols_estimate': ols_est,
            'ols_in_bayesian_ci': in_ci,
            'agreement': 'Good' if in_ci else 'Discrepancy',
        }
    return comparison

"""
MPG-Bayes — Posterior Results and Fit Store
===========================================
``FitResult`` is the read-only output of one sampling run: posterior draws
per parameter and chain, the held-out predictive draws, and summaries that
are computed on first use.

``FitStore`` keeps fitted results on disk so an experiment can be re-run
without re-sampling.

Problem: NUTS on the GP model takes minutes; notebooks re-run cells often.
Solution: netCDF files keyed by model name plus a hash of the model settings
(priors, GP jitter), the bound data and the sampler settings, with LRU
eviction past a size limit.

Usage:
    store = FitStore(store_dir='.cache/fits', max_size_mb=200)

    fit = store.get(spec, data, config)          # None on first call
    if fit is None:
        fit = sample_posterior(spec, data, config)
        store.put(fit, spec, data, config)

    print(store.stats())  # Hit rate, size, etc.

License: MIT
"""

import hashlib
import os
import warnings
from dataclasses import asdict
from pathlib import Path
from typing import Dict, List, Optional

import arviz as az
import numpy as np
import pandas as pd


PREDICTIVE_VAR = 'y_pred'


class FitResult:
    """Posterior draws of one model fit, with lazily computed summaries."""

    def __init__(self,
                 idata: az.InferenceData,
                 model_name: str,
                 elapsed_s: Optional[float] = None):
        """
        Args:
            idata: InferenceData with a posterior group (and, for predictions,
                a posterior_predictive group holding ``y_pred``)
            model_name: Name of the model specification that produced it
            elapsed_s: Wall-clock sampling time in seconds
        """
        if 'posterior' not in idata.groups():
            raise ValueError("InferenceData has no posterior group")

        self.idata = idata
        self.model_name = model_name
        self.elapsed_s = elapsed_s
        # Set by the sampler after a fresh run; None for fits loaded from disk
        self.convergence: Optional[Dict] = None
        self._summaries: Dict[float, pd.DataFrame] = {}

    def __repr__(self):
        return (f"FitResult(model={self.model_name!r}, chains={self.n_chains}, "
                f"draws={self.n_draws}, parameters={self.parameter_names})")

    # ── Draws ────────────────────────────────────────────────────

    @property
    def parameter_names(self) -> List[str]:
        return list(self.idata.posterior.data_vars)

    @property
    def n_chains(self) -> int:
        return int(self.idata.posterior.sizes['chain'])

    @property
    def n_draws(self) -> int:
        """Kept draws per chain."""
        return int(self.idata.posterior.sizes['draw'])

    def draws(self, name: str) -> np.ndarray:
        """Posterior draws of ``name`` as an array [chain, draw, ...]."""
        if name not in self.idata.posterior:
            raise KeyError(f"No parameter '{name}' in fit; available: {self.parameter_names}")
        return self.idata.posterior[name].values

    @property
    def has_predictions(self) -> bool:
        return ('posterior_predictive' in self.idata.groups()
                and PREDICTIVE_VAR in self.idata.posterior_predictive)

    def predictive_draws(self) -> np.ndarray:
        """Predictive draws for the held-out inputs, [chain * draw, n_test]."""
        if not self.has_predictions:
            raise ValueError(f"Fit '{self.model_name}' has no '{PREDICTIVE_VAR}' draws")
        values = self.idata.posterior_predictive[PREDICTIVE_VAR].values
        return values.reshape(-1, values.shape[-1])

    @property
    def test_ids(self) -> Optional[np.ndarray]:
        """Record ids of the held-out points, in predictive order."""
        if not self.has_predictions:
            return None
        return self.idata.posterior_predictive['test_id'].values

    @property
    def divergences(self) -> int:
        if 'sample_stats' not in self.idata.groups():
            return 0
        if 'diverging' not in self.idata.sample_stats:
            return 0
        return int(self.idata.sample_stats['diverging'].values.sum())

    # ── Summaries ────────────────────────────────────────────────

    def summary(self, hdi_prob: float = 0.95) -> pd.DataFrame:
        """ArviZ summary table (mean, sd, HDI, MCSE, ESS, R-hat); cached."""
        if hdi_prob not in self._summaries:
            self._summaries[hdi_prob] = az.summary(self.idata, hdi_prob=hdi_prob)
        return self._summaries[hdi_prob]

    def summarize(self, hdi_prob: float = 0.95) -> Dict[str, Dict]:
        """Summary statistics per (scalar-indexed) parameter as plain dicts.

        Returns:
            Dict with mean, std, credible interval, R-hat and ESS per entry
        """
        table = self.summary(hdi_prob)
        alpha = 1 - hdi_prob
        lower_col = f"hdi_{100 * alpha / 2:g}%"
        upper_col = f"hdi_{100 * (1 - alpha / 2):g}%"

        summary = {}
        for var_name in table.index:
            summary[var_name] = {
                'mean': float(table.loc[var_name, 'mean']),
                'std': float(table.loc[var_name, 'sd']),
                'ci_lower': float(table.loc[var_name, lower_col]),
                'ci_upper': float(table.loc[var_name, upper_col]),
                'rhat': float(table.loc[var_name, 'r_hat']) if 'r_hat' in table.columns else None,
                'ess': float(table.loc[var_name, 'ess_bulk']) if 'ess_bulk' in table.columns else None,
            }
        return summary

    # ── Persistence ──────────────────────────────────────────────

    def save(self, filepath: str):
        """Save draws and metadata to a netCDF file."""
        self.idata.posterior.attrs['model_name'] = self.model_name
        if self.elapsed_s is not None:
            self.idata.posterior.attrs['elapsed_s'] = float(self.elapsed_s)

        Path(filepath).parent.mkdir(parents=True, exist_ok=True)
        self.idata.to_netcdf(str(filepath))

    @classmethod
    def load(cls, filepath: str) -> 'FitResult':
        """Load a fit written by ``save``."""
        if not Path(filepath).exists():
            raise FileNotFoundError(f"Fit not found at {filepath}")
        idata = az.from_netcdf(str(filepath))
        attrs = idata.posterior.attrs
        elapsed = attrs.get('elapsed_s')
        return cls(idata,
                   model_name=str(attrs.get('model_name', Path(filepath).stem)),
                   elapsed_s=float(elapsed) if elapsed is not None else None)


class FitStore:
    """Disk store of FitResults, keyed by model name, data and sampler settings."""

    # Settings that change the draws; cores/progressbar/timeout do not
    _KEY_SETTINGS = ('n_chains', 'n_iter', 'n_warmup', 'target_accept',
                     'step_scale', 'max_treedepth', 'random_seed')

    def __init__(self, store_dir: str = '.cache/fits', max_size_mb: int = 500,
                 verbose: bool = False):
        """
        Args:
            store_dir: Directory holding the netCDF files
            max_size_mb: Maximum total size in megabytes
        """
        self.store_dir = Path(store_dir)
        self.store_dir.mkdir(parents=True, exist_ok=True)
        self.max_size_mb = max_size_mb
        self.verbose = verbose
        self.hits = 0
        self.misses = 0

    def _get_key(self, spec, data: Dict[str, np.ndarray], config) -> str:
        """MD5 over the model settings (name, priors, jitter), bound data arrays
        and sampler settings."""
        digest = hashlib.md5(repr(sorted(spec.settings().items())).encode())
        for slot in sorted(data):
            array = np.ascontiguousarray(data[slot], dtype=np.float64)
            digest.update(slot.encode())
            digest.update(str(array.shape).encode())
            digest.update(array.tobytes())
        settings = asdict(config)
        digest.update(repr([(k, settings.get(k)) for k in self._KEY_SETTINGS]).encode())
        return digest.hexdigest()

    def _path(self, model_name: str, key: str) -> Path:
        return self.store_dir / f"{model_name}-{key}.nc"

    def get(self, spec, data: Dict[str, np.ndarray], config) -> Optional[FitResult]:
        """Return the stored fit for this model/data/config, or None."""
        path = self._path(spec.name, self._get_key(spec, data, config))

        if not path.exists():
            self.misses += 1
            return None

        try:
            fit = FitResult.load(str(path))
        except (OSError, ValueError) as exc:
            warnings.warn(f"Removing unreadable stored fit {path.name}: {exc}")
            path.unlink()
            self.misses += 1
            return None

        # Update access time (for LRU)
        os.utime(path, None)
        self.hits += 1
        if self.verbose:
            print(f"[Store] Loaded '{spec.name}' fit from {path}")
        return fit

    def put(self, fit: FitResult, spec, data: Dict[str, np.ndarray], config) -> Path:
        """Store ``fit`` under its model settings, data and sampler settings."""
        path = self._path(spec.name, self._get_key(spec, data, config))
        fit.save(str(path))
        if self.verbose:
            print(f"[Store] Saved '{fit.model_name}' fit to {path}")

        self._cleanup_if_needed(keep=path)
        return path

    def _cleanup_if_needed(self, keep: Optional[Path] = None):
        """Remove least recently used files while over the size limit."""
        files = sorted(self.store_dir.glob('*.nc'), key=lambda f: f.stat().st_atime)
        total_size = sum(f.stat().st_size for f in files)

        for f in files:
            if total_size <= self.max_size_mb * 1024 * 1024:
                break
            if f == keep:
                continue
            total_size -= f.stat().st_size
            f.unlink()

    def model_names(self) -> List[str]:
        return sorted({f.name.rsplit('-', 1)[0] for f in self.store_dir.glob('*.nc')})

    def clear(self):
        """Remove every stored fit and reset statistics."""
        for f in self.store_dir.glob('*.nc'):
            f.unlink()
        self.hits = 0
        self.misses = 0

    def stats(self) -> Dict[str, float]:
        """
        Return store statistics.

        Returns:
            Dictionary with hits, misses, hit_rate, size_mb, num_entries
        """
        files = list(self.store_dir.glob('*.nc'))
        total_size = sum(f.stat().st_size for f in files)
        total_requests = self.hits + self.misses

        return {
            'hits': self.hits,
            'misses': self.misses,
            'hit_rate': self.hits / total_requests if total_requests > 0 else 0.0,
            'size_mb': total_size / (1024 * 1024),
            'num_entries': len(files),
        }

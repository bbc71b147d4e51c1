"""
MPG-Bayes — Configuration
=========================
Dataclass configuration for MCMC sampling and for a full experiment run.

Usage:
    from mpg_bayes.config import ExperimentConfig, SamplerConfig

    config = ExperimentConfig(
        predictors=['displacement', 'weight'],
        sampler=SamplerConfig(n_chains=2, n_iter=1000, random_seed=1234),
    )
    config.to_json('experiment.json')
    config = ExperimentConfig.from_json('experiment.json')

License: MIT
"""

import json
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import List, Optional, Tuple


AUTO_MPG_URI = (
    "https://archive.ics.uci.edu/ml/machine-learning-databases/"
    "auto-mpg/auto-mpg.data"
)

AUTO_MPG_COLUMNS = [
    'mpg',
    'cylinders',
    'displacement',
    'horsepower',
    'weight',
    'acceleration',
    'model_year',
    'origin',
    'car_name',
]

MODEL_FAMILIES = ('linear', 'gp')


@dataclass
class SamplerConfig:
    """Configuration for NUTS posterior sampling."""
    n_chains: int = 4                  # Number of MCMC chains
    n_iter: int = 2000                 # Iterations per chain, warm-up included
    n_warmup: Optional[int] = None     # None -> half of n_iter
    target_accept: float = 0.8         # NUTS target acceptance rate
    step_scale: float = 0.25           # Initial step size scaling
    max_treedepth: int = 10            # Maximum trajectory recursion depth

    # Computational
    cores: int = 4
    random_seed: Optional[int] = None
    timeout_s: Optional[float] = None  # Wall-clock budget for one sampling run
    progressbar: bool = True

    # Diagnostics
    rhat_threshold: float = 1.01
    ess_ratio_threshold: float = 0.1

    def __post_init__(self):
        if self.n_chains < 1:
            raise ValueError(f"n_chains must be >= 1, got {self.n_chains}")
        if self.n_iter < 2:
            raise ValueError(f"n_iter must be >= 2, got {self.n_iter}")
        if self.n_warmup is not None and not 0 <= self.n_warmup < self.n_iter:
            raise ValueError(
                f"n_warmup must lie in [0, n_iter), got {self.n_warmup} "
                f"with n_iter={self.n_iter}"
            )
        if not 0.0 < self.target_accept < 1.0:
            raise ValueError(f"target_accept must lie in (0, 1), got {self.target_accept}")
        if self.step_scale <= 0:
            raise ValueError(f"step_scale must be positive, got {self.step_scale}")
        if self.max_treedepth < 1:
            raise ValueError(f"max_treedepth must be >= 1, got {self.max_treedepth}")
        if self.timeout_s is not None and self.timeout_s <= 0:
            raise ValueError(f"timeout_s must be positive, got {self.timeout_s}")

    @property
    def n_tune(self) -> int:
        """Warm-up iterations per chain."""
        if self.n_warmup is None:
            return self.n_iter // 2
        return self.n_warmup

    @property
    def n_draws(self) -> int:
        """Kept (post warm-up) draws per chain."""
        return self.n_iter - self.n_tune


@dataclass
class ExperimentConfig:
    """Configuration for one end-to-end experiment run."""
    data_uri: str = AUTO_MPG_URI
    column_names: List[str] = field(default_factory=lambda: list(AUTO_MPG_COLUMNS))
    target: str = 'mpg'
    predictors: List[str] = field(default_factory=lambda: ['displacement', 'weight'])

    # Train/test split
    train_frac: float = 0.7
    split_seed: Optional[int] = 20180701

    # Preprocessing
    standardize: bool = True

    # Models
    models: Tuple[str, ...] = MODEL_FAMILIES
    jitter: float = 1e-6
    sampler: SamplerConfig = field(default_factory=SamplerConfig)

    # Outputs
    output_dir: Optional[str] = None
    store_dir: Optional[str] = None

    def __post_init__(self):
        if isinstance(self.sampler, dict):
            self.sampler = SamplerConfig(**self.sampler)
        self.models = tuple(self.models)
        unknown = [m for m in self.models if m not in MODEL_FAMILIES]
        if unknown:
            raise ValueError(f"Unknown model families {unknown}; choose from {MODEL_FAMILIES}")
        if not 0.0 < self.train_frac < 1.0:
            raise ValueError(f"train_frac must lie in (0, 1), got {self.train_frac}")
        missing = [c for c in [self.target] + list(self.predictors)
                   if c not in self.column_names]
        if missing:
            raise ValueError(f"Columns {missing} not among column_names")
        if self.jitter < 0:
            raise ValueError(f"jitter must be non-negative, got {self.jitter}")

    def to_dict(self) -> dict:
        config_dict = asdict(self)
        config_dict['models'] = list(self.models)
        return config_dict

    def to_json(self, filepath: str):
        """Write configuration as JSON."""
        with open(filepath, 'w') as f:
            json.dump(self.to_dict(), f, indent=2)

    @classmethod
    def from_json(cls, filepath: str) -> 'ExperimentConfig':
        """Read configuration written by ``to_json`` (unknown keys rejected)."""
        path = Path(filepath)
        if not path.exists():
            raise FileNotFoundError(f"Config not found at {filepath}")

        with open(path, 'r') as f:
            config_dict = json.load(f)

        return cls(**config_dict)

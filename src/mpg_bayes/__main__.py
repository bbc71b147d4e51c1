"""
Command-line entry point: ``python -m mpg_bayes``.

Usage:
    python -m mpg_bayes --models linear gp --chains 4 --iter 2000 --output-dir results
    python -m mpg_bayes --config experiment.json
"""
import argparse
import sys
from dataclasses import replace

from .config import ExperimentConfig, MODEL_FAMILIES
from .errors import LoadError
from .pipeline import run_experiment, format_report


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fit Bayesian linear and Gaussian-process regressions to fuel-economy data.")
    parser.add_argument("--config", help="Experiment configuration JSON")
    parser.add_argument("--data", help="Dataset URL or path (auto-mpg layout)")
    parser.add_argument("--models", nargs="+", choices=MODEL_FAMILIES)
    parser.add_argument("--chains", type=int)
    parser.add_argument("--iter", type=int, help="Iterations per chain, warm-up included")
    parser.add_argument("--seed", type=int, help="Sampler random seed")
    parser.add_argument("--timeout", type=float, help="Sampling time budget per model (s)")
    parser.add_argument("--output-dir", help="Directory for plots and fits")
    parser.add_argument("--store-dir", help="Directory for the fit cache")
    parser.add_argument("--quiet", action="store_true")
    return parser


def config_from_args(args) -> ExperimentConfig:
    config = ExperimentConfig.from_json(args.config) if args.config else ExperimentConfig()

    sampler_overrides = {
        'n_chains': args.chains,
        'n_iter': args.iter,
        'random_seed': args.seed,
        'timeout_s': args.timeout,
    }
    sampler_overrides = {k: v for k, v in sampler_overrides.items() if v is not None}
    if args.quiet:
        sampler_overrides['progressbar'] = False

    overrides = {
        'data_uri': args.data,
        'models': tuple(args.models) if args.models else None,
        'output_dir': args.output_dir,
        'store_dir': args.store_dir,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    overrides['sampler'] = replace(config.sampler, **sampler_overrides)
    return replace(config, **overrides)


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    config = config_from_args(args)

    try:
        result = run_experiment(config, verbose=not args.quiet)
    except LoadError as exc:
        print(f"[ERROR] {exc}", file=sys.stderr)
        return 2

    print()
    print(format_report(result))
    return 0 if all(f.ok for f in result.families.values()) else 1


if __name__ == '__main__':
    sys.exit(main())

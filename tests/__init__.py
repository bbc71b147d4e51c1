"""
MPG-Bayes — Test Suite
======================
Test modules:
- test_config.py: configuration validation and JSON round-trip
- test_dataset.py: loader and design-matrix preparation
- test_splitting.py: train/test partition properties
- test_models.py: model specifications and the GP covariance
- test_sampler.py: NUTS invocation, timeout, error mapping (slow)
- test_results.py: FitResult accessors, persistence, FitStore
- test_evaluation.py: RMSE/MAE, alignment, OLS baseline
- test_diagnostics.py: convergence report and plots
- test_pipeline.py: experiment orchestration and CLI
"""

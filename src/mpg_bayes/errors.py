"""
MPG-Bayes — Error Types
=======================
Every failure the pipeline reports derives from ``MPGBayesError`` so callers
can catch one family of errors around a whole experiment run.

License: MIT
"""


class MPGBayesError(Exception):
    """Base class for all package errors."""


class LoadError(MPGBayesError):
    """Dataset source unreachable, unparsable, or with the wrong column count."""


class CompileError(MPGBayesError):
    """Model specification is malformed or its data binding is invalid."""


class SamplingError(MPGBayesError):
    """Numerical failure while drawing posterior samples."""


class SamplingTimeout(SamplingError):
    """Sampling exceeded the configured time budget; partial draws are discarded."""


class AlignmentError(MPGBayesError, ValueError):
    """Predicted and observed sequences differ in length or order."""

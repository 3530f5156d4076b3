"""
Localization Error Hierarchy

All recoverable failures raised by the localization pipeline derive from
LocalizationError so callers can catch the whole family in one place.

    LocalizationError
        +-- TransformUnavailable   (transform lookup failed or timed out)
        +-- MissingConfiguration   (compulsory parameter absent at startup)
        +-- NumericDegeneracy      (singular / non-PSD covariance)
              +-- CovarianceDegeneracy
"""

from typing import Iterable


class LocalizationError(Exception):
    """Base class for localization failures."""


class TransformUnavailable(LocalizationError):
    """No transform between the requested frames at the requested time."""

    def __init__(self, target_frame: str, source_frame: str, reason: str = "") -> None:
        self.target_frame = target_frame
        self.source_frame = source_frame
        self.reason = reason
        message = f'Error during transform from "{source_frame}" frame to "{target_frame}" frame'
        if reason:
            message += f": {reason}"
        super().__init__(message)


class MissingConfiguration(LocalizationError):
    """One or more compulsory parameters were not provided."""

    def __init__(self, missing: Iterable[str]) -> None:
        self.missing = sorted(missing)
        super().__init__(
            "Could not load non-optional parameter(s): " + ", ".join(self.missing)
        )


class NumericDegeneracy(LocalizationError):
    """A covariance matrix is singular or not positive definite."""


class CovarianceDegeneracy(NumericDegeneracy):
    """Filter covariance lost symmetry or positive semi-definiteness."""

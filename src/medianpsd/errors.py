"""Exception types for PSD estimation."""

from __future__ import annotations

from typing import Any


class MedianPsdError(Exception):
    """Base exception for medianpsd errors."""


class InvalidConfigurationError(MedianPsdError, ValueError):
    """Raised when parameters or input signal cannot produce a PSD.

    Covers window length, overlap, frequency limits, signal shape and the
    case where no full window fits into the signal.
    """


class NumericDomainError(MedianPsdError, ArithmeticError):
    """Raised when aggregated power is not strictly positive before log10."""


def ensure_config(condition: Any, message: str) -> None:
    """Raise InvalidConfigurationError if condition is falsy.

    Args:
        condition: Value checked for truthiness.
        message: Error message to use if the check fails.

    Raises:
        InvalidConfigurationError: If condition is falsy.
    """
    if not condition:
        raise InvalidConfigurationError(message)

"""
medianpsd core package.

Robust (median Welch) power spectral density estimation for multichannel
time series:
- The numerical core lives in `medianpsd.spectral`
- A batch pipeline over signal files lives in `medianpsd.pipeline`
- A Typer-based CLI is provided by `medianpsd.cli`

Configuration:
- Shared, project-wide filesystem anchors live in `medianpsd.global_config`.
- Estimation parameters are described by `medianpsd.spectral.PsdConfig`.
"""

from .errors import InvalidConfigurationError, MedianPsdError, NumericDomainError
from .spectral import PsdConfig, PsdResult, compute_median_psd, load_psd_config

__all__ = [
    "InvalidConfigurationError",
    "MedianPsdError",
    "NumericDomainError",
    "PsdConfig",
    "PsdResult",
    "compute_median_psd",
    "load_psd_config",
]

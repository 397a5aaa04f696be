"""Median Welch PSD estimation package."""

from .config import PsdConfig, load_psd_config
from .methods import (
    aggregate_power,
    compute_enbw,
    compute_median_psd,
    compute_window_power,
    frequency_grid,
    hann_taper,
    next_pow2,
    segment_signal,
    to_log_density,
    window_count,
)
from .result import PsdResult

__all__ = [
    "PsdConfig",
    "PsdResult",
    "load_psd_config",
    "compute_median_psd",
    "segment_signal",
    "window_count",
    "frequency_grid",
    "hann_taper",
    "next_pow2",
    "compute_window_power",
    "compute_enbw",
    "aggregate_power",
    "to_log_density",
]

"""Median Welch power spectral density.

Pipeline: segment the signal into overlapping windows, Hann-taper and
zero-pad each window to the next power of two, compute the one-sided
periodogram power, take the median over windows and divide by the taper's
equivalent noise bandwidth (ENBW) before log10.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import numpy as np
from numpy.lib.stride_tricks import sliding_window_view
from scipy import fft, signal
from scipy.signal import windows as sp_windows

from ..errors import InvalidConfigurationError, NumericDomainError, ensure_config
from .config import PsdConfig
from .result import PsdResult

logger = logging.getLogger(__name__)


def _round_half_up(value: float) -> int:
    return int(np.floor(value + 0.5))


def next_pow2(n: int) -> int:
    """Smallest power of two >= n."""
    return 1 << (int(n) - 1).bit_length()


def window_samples(window_length: float, sampling_rate: float) -> int:
    """Window length in samples, rounded half up."""
    return _round_half_up(window_length * sampling_rate)


def window_step(n_window: int, window_overlap: float) -> int:
    """Hop between consecutive window starts in samples."""
    return _round_half_up(n_window * (1.0 - window_overlap))


def window_count(n_samples: int, n_window: int, step: int) -> int:
    """Number of full windows of n_window samples at hop step (0 if none fits)."""
    if n_window < 1 or step < 1 or n_samples < n_window:
        return 0
    return (n_samples - n_window) // step + 1


def hann_taper(n: int) -> np.ndarray:
    """Hann taper without zero end points.

    Equals 0.5 * (1 - cos(2*pi*k / (n + 1))) for k = 1..n, the form
    FieldTrip uses for its "hanning" taper. Every coefficient is positive,
    so n = 2 still gives a usable taper.
    """
    return sp_windows.hann(n + 2, sym=True)[1:-1]


def compute_enbw(taper: np.ndarray, sampling_rate: float) -> float:
    """Equivalent noise bandwidth of a taper in Hz.

    ENBW = fs * sum(w**2) / sum(w)**2, using the taper's own length.
    """
    w = np.asarray(taper, dtype=np.float64)
    return float(sampling_rate * np.sum(w**2) / np.sum(w) ** 2)


def frequency_grid(frequency_limits: Sequence[float], window_length: float) -> np.ndarray:
    """Frequencies of interest from low to high (inclusive) in steps of 1/window_length.

    Values are computed as low + k / window_length so the grid carries no
    accumulated rounding error.
    """
    low, high = (float(f) for f in frequency_limits)
    n_freqs = int(np.floor((high - low) * window_length + 1e-9)) + 1
    return low + np.arange(n_freqs) / window_length


def fft_bin_indices(frequencies: np.ndarray, sampling_rate: float, nfft: int) -> np.ndarray:
    """Nearest rfft bin for each frequency."""
    bins = np.rint(np.asarray(frequencies, dtype=np.float64) * nfft / sampling_rate).astype(int)
    ensure_config(
        bins.size == 0 or (bins.min() >= 0 and bins.max() <= nfft // 2),
        f"Frequencies outside [0, {sampling_rate / 2}] Hz",
    )
    return bins


def segment_signal(
    x: np.ndarray,
    sampling_rate: float,
    window_length: float,
    window_overlap: float,
) -> np.ndarray:
    """Cut a (channels, samples) signal into overlapping windows.

    Windows start at 0, step, 2*step, ... and only full windows are kept;
    trailing samples that do not fill a window are dropped.

    Args:
        x: Signal, shape (n_channels, n_samples) or (n_samples,).
        sampling_rate: Sampling rate in Hz.
        window_length: Window length in seconds.
        window_overlap: Overlap fraction in [0, 1).

    Returns:
        Read-only view of shape (n_windows, n_channels, n_window).

    Raises:
        InvalidConfigurationError: On invalid length/overlap or if no
            window fits into the signal.
    """
    ensure_config(window_length > 0, f"window_length must be > 0, got {window_length}")
    ensure_config(0 <= window_overlap < 1, f"window_overlap must be in [0, 1), got {window_overlap}")
    x = np.asarray(x)
    if x.ndim == 1:
        x = x[np.newaxis, :]
    ensure_config(x.ndim == 2, f"Expected a 2D (channels, samples) signal, got shape {x.shape}")

    n_window = window_samples(window_length, sampling_rate)
    ensure_config(n_window >= 1, f"window_length {window_length}s is shorter than one sample")
    step = window_step(n_window, window_overlap)
    ensure_config(step >= 1, f"window_overlap {window_overlap} leaves a step of {step} samples")
    n_windows = window_count(x.shape[1], n_window, step)
    ensure_config(
        n_windows >= 1,
        f"No full window of {n_window} samples fits into a signal of {x.shape[1]} samples",
    )

    view = sliding_window_view(x, n_window, axis=1)[:, ::step][:, :n_windows]
    return np.swapaxes(view, 0, 1)


def compute_window_power(
    windows: np.ndarray,
    sampling_rate: float,
    frequencies: np.ndarray,
    detrend: str | None = "constant",
) -> np.ndarray:
    """Single-taper periodogram power per window, channel and frequency.

    Each window is detrended (optional), multiplied by the Hann taper,
    zero-padded to the next power of two and transformed. Power is
    |X|**2 / sum(w)**2, doubled for all bins except DC and the Nyquist bin,
    so that power / ENBW is the one-sided spectral density.

    Args:
        windows: Array (..., n_window); typically (n_windows, n_channels, n_window).
        sampling_rate: Sampling rate in Hz.
        frequencies: Frequencies of interest in Hz; the nearest FFT bin is used.
        detrend: "constant", "linear" or None.

    Returns:
        Array (..., n_freqs) of non-negative power values.
    """
    windows = np.asarray(windows, dtype=np.float64)
    n_window = windows.shape[-1]
    ensure_config(n_window >= 2, f"Windows need at least 2 samples, got {n_window}")
    if detrend is not None:
        windows = signal.detrend(windows, axis=-1, type=detrend)

    taper = hann_taper(n_window)
    nfft = next_pow2(n_window)
    spectrum = fft.rfft(windows * taper, n=nfft, axis=-1)

    bins = fft_bin_indices(frequencies, sampling_rate, nfft)
    scale = np.full(bins.shape, 2.0)
    scale[bins == 0] = 1.0
    if nfft % 2 == 0:
        scale[bins == nfft // 2] = 1.0

    power = np.abs(spectrum[..., bins]) ** 2 / np.sum(taper) ** 2
    return power * scale


def aggregate_power(power: np.ndarray, average: str = "median") -> np.ndarray:
    """Collapse (n_windows, ...) power over the window axis."""
    if average == "median":
        return np.median(power, axis=0)
    if average == "mean":
        return np.mean(power, axis=0)
    raise InvalidConfigurationError(f"Unknown average: {average}")


def to_log_density(
    power: np.ndarray,
    enbw: float,
    channel_labels: Sequence[str],
    frequencies: np.ndarray,
) -> np.ndarray:
    """Divide (channels, freqs) power by ENBW and take log10.

    Raises:
        NumericDomainError: If any power value is not strictly positive.
    """
    bad = ~(np.isfinite(power) & (power > 0))
    if np.any(bad):
        chan_i, freq_i = np.argwhere(bad)[0]
        raise NumericDomainError(
            f"Non-positive power {float(power[chan_i, freq_i])} for channel "
            f"{channel_labels[chan_i]!r} at {frequencies[freq_i]:g} Hz "
            f"({int(bad.sum())} value(s) in total); log10 is undefined"
        )
    return np.log10(power / enbw)


def _validate_inputs(
    x: np.ndarray,
    sampling_rate: float,
    channel_labels: Sequence[str],
    config: PsdConfig,
) -> None:
    ensure_config(
        np.isfinite(sampling_rate) and sampling_rate > 0,
        f"sampling_rate must be a positive number, got {sampling_rate}",
    )
    ensure_config(x.ndim == 2, f"Expected a 2D (channels, samples) signal, got shape {x.shape}")
    ensure_config(x.shape[0] >= 1 and x.shape[1] >= 1, f"Signal is empty: shape {x.shape}")
    ensure_config(bool(np.all(np.isfinite(x))), "Signal contains NaN or infinite samples")
    ensure_config(
        len(channel_labels) == x.shape[0],
        f"Got {len(channel_labels)} channel label(s) for {x.shape[0]} channel(s)",
    )
    nyquist = sampling_rate / 2.0
    ensure_config(
        config.frequency_limits[1] <= nyquist,
        f"frequency_limits {config.frequency_limits} exceed the Nyquist frequency {nyquist} Hz",
    )
    n_window = window_samples(config.window_length, sampling_rate)
    ensure_config(
        n_window >= 2,
        f"window_length {config.window_length}s gives {n_window} sample(s); at least 2 are needed",
    )
    step = window_step(n_window, config.window_overlap)
    ensure_config(step >= 1, f"window_overlap {config.window_overlap} leaves a step of {step} samples")
    n_windows = window_count(x.shape[1], n_window, step)
    ensure_config(
        n_windows >= 1,
        f"Signal of {x.shape[1] / sampling_rate:g}s is shorter than window_length {config.window_length}s",
    )


def compute_median_psd(
    x: np.ndarray,
    sampling_rate: float,
    channel_labels: Sequence[str] | None = None,
    config: PsdConfig | None = None,
) -> PsdResult:
    """Compute the median Welch log10 PSD of a multichannel signal.

    All parameters are validated before any spectral computation.

    Args:
        x: Signal, shape (n_channels, n_samples); 1D is treated as one channel.
        sampling_rate: Sampling rate in Hz.
        channel_labels: One label per channel. Defaults to ch1..chN.
        config: Estimation parameters. Defaults to PsdConfig().

    Returns:
        PsdResult with log10(power / ENBW) per channel and frequency.

    Raises:
        InvalidConfigurationError: If parameters or signal are invalid.
        NumericDomainError: If aggregated power is zero or negative somewhere.
    """
    config = (config or PsdConfig()).validate()
    x = np.asarray(x, dtype=np.float64)
    if x.ndim == 1:
        x = x[np.newaxis, :]
    if channel_labels is None:
        channel_labels = [f"ch{i + 1}" for i in range(x.shape[0] if x.ndim == 2 else 0)]
    channel_labels = [str(c) for c in channel_labels]
    _validate_inputs(x, sampling_rate, channel_labels, config)

    windows = segment_signal(x, sampling_rate, config.window_length, config.window_overlap)
    frequencies = frequency_grid(config.frequency_limits, config.window_length)
    n_window = windows.shape[-1]
    logger.debug(
        "Segmented %d channel(s) into %d window(s) of %d samples (nfft=%d)",
        x.shape[0],
        windows.shape[0],
        n_window,
        next_pow2(n_window),
    )

    power = compute_window_power(windows, sampling_rate, frequencies, detrend=config.detrend)
    aggregated = aggregate_power(power, config.average)
    enbw = compute_enbw(hann_taper(n_window), sampling_rate)
    logger.debug("ENBW of %d-sample Hann taper at %g Hz: %.6g Hz", n_window, sampling_rate, enbw)
    psd = to_log_density(aggregated, enbw, channel_labels, frequencies)

    return PsdResult(
        psd=psd,
        frequencies=frequencies,
        channel_labels=tuple(channel_labels),
        n_windows=int(windows.shape[0]),
        config=config,
    )

"""Pipeline for computing median Welch PSDs from signal files and writing .npz outputs."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import librosa
import numpy as np

from ..errors import InvalidConfigurationError
from ..global_config import DERIVED_DIR, RAW_SIGNALS_DIR
from ..spectral import PsdConfig, PsdResult, compute_median_psd

logger = logging.getLogger(__name__)

PSD_OUTPUT_DIR = DERIVED_DIR / "psd"

SIGNAL_SUFFIXES = frozenset({".npy", ".wav"})


def _resolve_signal_files(files: list[Path] | None, signals_dir: Path) -> list[Path]:
    """Return list of signal paths: explicit if given, else all .npy/.wav in signals_dir."""
    if files:
        return [Path(p).resolve() for p in files]
    if not signals_dir.exists():
        return []
    return sorted(p for p in signals_dir.iterdir() if p.suffix.lower() in SIGNAL_SUFFIXES)


def _output_filename(stem: str, config: PsdConfig) -> str:
    """Build filename: <stem>_psd_<L>-<O>-<low>-<high>.npz."""
    low, high = config.frequency_limits
    return f"{stem}_psd_{config.window_length:g}-{config.window_overlap:g}-{low:g}-{high:g}.npz"


def _read_sidecar(signal_path: Path) -> dict[str, Any]:
    """Read <stem>.json next to the signal, if present."""
    sidecar = signal_path.with_suffix(".json")
    if not sidecar.exists():
        return {}
    with open(sidecar, encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"Sidecar {sidecar.name} must hold a JSON object")
    return data


def _load_signal(
    signal_path: Path, sampling_rate: float | None
) -> tuple[np.ndarray, float, list[str] | None]:
    """Load a (channels, samples) signal with its sampling rate and optional labels.

    .wav files carry their own rate. For .npy the rate comes from the sidecar
    JSON or, failing that, from sampling_rate.
    """
    meta = _read_sidecar(signal_path)
    labels = meta.get("channel_labels")
    suffix = signal_path.suffix.lower()

    if suffix == ".wav":
        x, sr = librosa.load(signal_path, sr=None, mono=False)
        fs = float(sr)
    elif suffix == ".npy":
        x = np.load(signal_path, allow_pickle=False)
        fs = meta.get("sampling_rate", sampling_rate)
        if fs is None:
            raise InvalidConfigurationError(
                f"No sampling rate for {signal_path.name}: pass one or add it to {signal_path.stem}.json"
            )
        fs = float(fs)
    else:
        raise ValueError(f"Unsupported signal file type: {signal_path.suffix}")

    x = np.asarray(x, dtype=np.float64)
    if x.ndim == 1:
        x = x[np.newaxis, :]
    return x, fs, labels


def _item_summary(signal_path: Path, out_name: str, result: PsdResult, fs: float) -> dict[str, Any]:
    return {
        "file": signal_path.name,
        "output": out_name,
        "status": "success",
        "kind": "psd",
        "sampling_rate_hz": fs,
        "n_channels": result.n_channels,
        "n_windows": result.n_windows,
        "n_freqs": int(result.frequencies.size),
        "freq_min": float(result.frequencies[0]),
        "freq_max": float(result.frequencies[-1]),
        "psd_min": float(result.psd.min()),
        "psd_max": float(result.psd.max()),
    }


def run_psd(
    *,
    signal_files: list[Path] | None = None,
    output_dir: Path = PSD_OUTPUT_DIR,
    signals_dir: Path = RAW_SIGNALS_DIR,
    config: PsdConfig | None = None,
    sampling_rate: float | None = None,
    dry_run: bool = False,
) -> dict:
    """Compute median Welch PSD for signal file(s) and write .npz to output_dir.

    If signal_files is None or empty, uses all .npy/.wav files in signals_dir.
    Output filename: <stem>_psd_<L>-<O>-<low>-<high>.npz. Same parameters
    overwrite; different parameters produce a different file.

    Returns:
        Dict with success, total, succeeded, failed, skipped, message, items, failures.
    """
    config = config or PsdConfig()
    try:
        config.validate()
    except InvalidConfigurationError as e:
        return {
            "success": False,
            "total": 0,
            "succeeded": 0,
            "failed": 0,
            "skipped": 0,
            "message": f"Invalid PSD configuration: {e}",
            "items": [],
            "failures": [],
        }

    paths = _resolve_signal_files(signal_files, signals_dir)
    if not paths:
        return {
            "success": True,
            "total": 0,
            "succeeded": 0,
            "failed": 0,
            "skipped": 0,
            "message": "No signal files to process.",
            "items": [],
            "failures": [],
        }

    output_dir = Path(output_dir)
    if not dry_run:
        output_dir.mkdir(parents=True, exist_ok=True)

    succeeded = 0
    failed = 0
    items: list[dict] = []
    failures: list[dict] = []

    for signal_path in paths:
        out_name = _output_filename(signal_path.stem, config)
        out_path = output_dir / out_name

        if not signal_path.exists():
            failed += 1
            failures.append({"item": str(signal_path), "reason": "File not found"})
            items.append({"file": signal_path.name, "status": "failed", "detail": "File not found"})
            continue

        try:
            x, fs, labels = _load_signal(signal_path, sampling_rate)
            result = compute_median_psd(x, fs, channel_labels=labels, config=config)
            if not dry_run:
                result.save(out_path)
            logger.info("Computed PSD for %s (%d window(s))", signal_path.name, result.n_windows)
            succeeded += 1
            items.append(_item_summary(signal_path, out_name, result, fs))
        except Exception as e:
            logger.warning("PSD failed for %s: %s", signal_path.name, e)
            failed += 1
            failures.append({"item": str(signal_path), "reason": str(e)})
            items.append({"file": signal_path.name, "status": "failed", "detail": str(e)})

    return {
        "success": failed == 0,
        "total": len(paths),
        "succeeded": succeeded,
        "failed": failed,
        "skipped": 0,
        "message": f"Processed {len(paths)} file(s). Succeeded: {succeeded}, failed: {failed}."
        + (" [DRY RUN]" if dry_run else ""),
        "items": items,
        "failures": failures,
    }

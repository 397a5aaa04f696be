"""CLI command for median Welch PSD computation."""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Annotated

import typer

from ...global_config import RAW_SIGNALS_DIR
from ...pipeline.psd import PSD_OUTPUT_DIR, run_psd
from ...spectral import PsdConfig, load_psd_config
from ..base import BaseCLI

app = typer.Typer(
    name="psd",
    help="Compute median Welch PSDs from signals and write .npz to data/derived/psd",
    context_settings={"allow_interspersed_args": True},
)


def _build_config(
    config_path: Path | None,
    window_length: float | None,
    overlap: float | None,
    fmin: float | None,
    fmax: float | None,
    detrend: str | None,
    average: str | None,
) -> PsdConfig:
    """Merge an optional YAML config with command-line overrides."""
    config = load_psd_config(config_path) if config_path else PsdConfig()
    low, high = config.frequency_limits
    config = config.replace(
        window_length=window_length,
        window_overlap=overlap,
        frequency_limits=(fmin if fmin is not None else low, fmax if fmax is not None else high),
        average=average.lower() if average else None,
    )
    if detrend is not None:
        mode = detrend.lower()
        config = replace(config, detrend=None if mode == "none" else mode)
    return config


@app.callback(invoke_without_command=True)
def psd(
    files: Annotated[
        list[Path],
        typer.Argument(
            help="Signal file(s) (.npy or .wav). If omitted, all signals in data/raw/signals are used.",
        ),
    ] = [],
    fs: Annotated[
        float | None,
        typer.Option("--fs", help="Sampling rate (Hz) for .npy files without a sidecar JSON."),
    ] = None,
    window_length: Annotated[
        float | None,
        typer.Option("--window-length", "-w", help="Window length in seconds. Default: 2."),
    ] = None,
    overlap: Annotated[
        float | None,
        typer.Option("--overlap", "-o", help="Window overlap fraction in [0, 1). Default: 0.5."),
    ] = None,
    fmin: Annotated[
        float | None,
        typer.Option("--fmin", help="Lower frequency limit (Hz). Default: 2."),
    ] = None,
    fmax: Annotated[
        float | None,
        typer.Option("--fmax", help="Upper frequency limit (Hz). Default: 24."),
    ] = None,
    detrend: Annotated[
        str | None,
        typer.Option("--detrend", help="Per-window detrend: constant, linear, none. Default: constant."),
    ] = None,
    average: Annotated[
        str | None,
        typer.Option("--average", "-a", help="Aggregation over windows: median, mean. Default: median."),
    ] = None,
    config_path: Annotated[
        Path | None,
        typer.Option("--config", "-c", help="YAML file with PSD parameters; options override it."),
    ] = None,
    dry_run: Annotated[
        bool,
        typer.Option("--dry-run", help="Compute without writing files."),
    ] = False,
    no_log: Annotated[
        bool,
        typer.Option("--no-log", help="Do not write a log file to data/logs/derived."),
    ] = False,
) -> None:
    """Compute median Welch log10 PSDs and write to data/derived/psd.

    .npy signals are (channels, samples) arrays; a sidecar <stem>.json may
    provide "sampling_rate" and "channel_labels". .wav files carry their own
    sampling rate.

    Output filenames: <stem>_psd_<L>-<O>-<low>-<high>.npz
    """
    cli = BaseCLI("psd")

    signal_list = list(files) if files else None

    def _run() -> dict:
        config = _build_config(config_path, window_length, overlap, fmin, fmax, detrend, average)
        return run_psd(
            signal_files=signal_list,
            output_dir=PSD_OUTPUT_DIR,
            signals_dir=RAW_SIGNALS_DIR,
            config=config,
            sampling_rate=fs,
            dry_run=dry_run,
        )

    pre_message = (
        "Computing PSD (dry-run; no files will be written)..."
        if dry_run
        else "Computing PSD for "
        + (f"{len(signal_list)} file(s)..." if signal_list else "all signals in raw folder...")
    )
    inputs_desc = (
        str([str(p) for p in signal_list]) if signal_list
        else f"all .npy/.wav in {RAW_SIGNALS_DIR}"
    )
    cli.handle_cli_operation(
        operation="psd",
        op_callable=_run,
        pre_message=pre_message,
        log_module="psd",
        log_method=(average or "median").lower(),
        log_dry_run=dry_run,
        enable_log=not no_log,
        log_context={
            "inputs": inputs_desc,
            "output_dir": str(PSD_OUTPUT_DIR),
            "config": str(config_path) if config_path else "defaults",
        },
    )

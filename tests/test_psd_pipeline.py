"""Tests for the PSD pipeline and CLI behavior."""

from __future__ import annotations

import json
import logging
import wave
from pathlib import Path

import numpy as np
import pytest
from typer.testing import CliRunner

from medianpsd.cli.main import app
from medianpsd.pipeline.psd import (
    _load_signal,
    _output_filename,
    _resolve_signal_files,
    run_psd,
)
from medianpsd.spectral import PsdConfig, PsdResult


def _write_stereo_wav(path: Path, sr: int = 128, duration_sec: float = 10.0) -> None:
    """Write a 2-channel WAV with a 10 Hz tone on the left and 6 Hz on the right."""
    t = np.arange(int(sr * duration_sec)) / sr
    left = 0.5 * np.sin(2 * np.pi * 10.0 * t)
    right = 0.5 * np.sin(2 * np.pi * 6.0 * t)
    frames = (np.stack([left, right], axis=1) * 32767).astype(np.int16)
    with wave.open(str(path), "wb") as w:
        w.setnchannels(2)
        w.setsampwidth(2)
        w.setframerate(sr)
        w.writeframes(frames.tobytes())


def _write_npy_signal(
    path: Path,
    rng: np.random.Generator,
    *,
    fs: float | None = 100.0,
    labels: list[str] | None = None,
    n_channels: int = 2,
    duration_sec: float = 10.0,
) -> np.ndarray:
    """Write a noise signal plus optional sidecar JSON."""
    x = rng.standard_normal((n_channels, int(100.0 * duration_sec)))
    np.save(path, x)
    meta = {}
    if fs is not None:
        meta["sampling_rate"] = fs
    if labels is not None:
        meta["channel_labels"] = labels
    if meta:
        path.with_suffix(".json").write_text(json.dumps(meta))
    return x


class TestPsdHelpers:
    """Unit tests for pipeline helpers."""

    def test_output_filename_format(self) -> None:
        assert _output_filename("REC-001", PsdConfig()) == "REC-001_psd_2-0.5-2-24.npz"
        config = PsdConfig(window_length=4.0, window_overlap=0.25, frequency_limits=(1.5, 40.0))
        assert _output_filename("x", config) == "x_psd_4-0.25-1.5-40.npz"

    def test_resolve_signal_files_explicit(self, tmp_path: Path) -> None:
        a = tmp_path / "a.npy"
        a.touch()
        got = _resolve_signal_files([a], tmp_path)
        assert len(got) == 1
        assert got[0].name == "a.npy"

    def test_resolve_signal_files_default_folder(self, tmp_path: Path) -> None:
        (tmp_path / "one.npy").touch()
        (tmp_path / "two.wav").touch()
        (tmp_path / "one.json").touch()
        got = _resolve_signal_files(None, tmp_path)
        assert [p.name for p in got] == ["one.npy", "two.wav"]

    def test_resolve_signal_files_nonexistent_folder(self, tmp_path: Path) -> None:
        assert _resolve_signal_files(None, tmp_path / "missing") == []

    def test_load_npy_uses_sidecar(self, tmp_path: Path, rng: np.random.Generator) -> None:
        path = tmp_path / "rec.npy"
        x = _write_npy_signal(path, rng, fs=250.0, labels=["Fz", "Cz"])
        loaded, fs, labels = _load_signal(path, sampling_rate=None)
        np.testing.assert_array_equal(loaded, x)
        assert fs == 250.0
        assert labels == ["Fz", "Cz"]

    def test_load_npy_without_rate_fails(self, tmp_path: Path, rng: np.random.Generator) -> None:
        path = tmp_path / "rec.npy"
        _write_npy_signal(path, rng, fs=None)
        with pytest.raises(ValueError, match="No sampling rate"):
            _load_signal(path, sampling_rate=None)

    def test_load_wav_keeps_channels(self, tmp_path: Path) -> None:
        path = tmp_path / "stereo.wav"
        _write_stereo_wav(path)
        x, fs, labels = _load_signal(path, sampling_rate=None)
        assert x.shape == (2, 1280)
        assert fs == 128.0
        assert labels is None


class TestRunPsd:
    """Integration-style tests for run_psd (tmp paths)."""

    def test_run_psd_writes_npz(self, tmp_path: Path, rng: np.random.Generator) -> None:
        sig_dir = tmp_path / "signals"
        sig_dir.mkdir()
        out_dir = tmp_path / "psd"
        _write_npy_signal(sig_dir / "REC01.npy", rng, labels=["O1", "O2"])

        result = run_psd(signal_files=None, output_dir=out_dir, signals_dir=sig_dir)

        assert result["success"] is True
        assert result["total"] == 1
        assert result["succeeded"] == 1
        item = result["items"][0]
        assert item["output"] == "REC01_psd_2-0.5-2-24.npz"
        assert item["n_channels"] == 2
        assert item["n_windows"] == 9
        assert item["n_freqs"] == 45
        assert item["freq_min"] == 2.0
        assert item["freq_max"] == 24.0
        saved = PsdResult.load(out_dir / item["output"])
        assert saved.channel_labels == ("O1", "O2")
        assert saved.psd.shape == (2, 45)

    def test_run_psd_wav_peaks_at_tone(self, tmp_path: Path) -> None:
        _write_stereo_wav(tmp_path / "tones.wav")
        out_dir = tmp_path / "psd"
        result = run_psd(signal_files=[tmp_path / "tones.wav"], output_dir=out_dir)
        assert result["success"] is True
        saved = PsdResult.load(out_dir / result["items"][0]["output"])
        assert saved.channel_labels == ("ch1", "ch2")
        assert saved.frequencies[np.argmax(saved.psd[0])] == 10.0
        assert saved.frequencies[np.argmax(saved.psd[1])] == 6.0

    def test_run_psd_sampling_rate_argument(self, tmp_path: Path, rng: np.random.Generator) -> None:
        _write_npy_signal(tmp_path / "raw.npy", rng, fs=None)
        result = run_psd(
            signal_files=[tmp_path / "raw.npy"],
            output_dir=tmp_path / "psd",
            sampling_rate=100.0,
        )
        assert result["success"] is True
        assert result["items"][0]["sampling_rate_hz"] == 100.0

    def test_run_psd_dry_run_writes_nothing(self, tmp_path: Path, rng: np.random.Generator) -> None:
        _write_npy_signal(tmp_path / "x.npy", rng)
        result = run_psd(signal_files=[tmp_path / "x.npy"], output_dir=tmp_path / "out", dry_run=True)
        assert result["success"] is True
        assert result["succeeded"] == 1
        assert "[DRY RUN]" in result["message"]
        assert not (tmp_path / "out").exists()

    def test_run_psd_collects_failures(self, tmp_path: Path, rng: np.random.Generator) -> None:
        _write_npy_signal(tmp_path / "good.npy", rng)
        _write_npy_signal(tmp_path / "short.npy", rng, duration_sec=1.0)
        result = run_psd(
            signal_files=[tmp_path / "good.npy", tmp_path / "short.npy", tmp_path / "gone.npy"],
            output_dir=tmp_path / "out",
        )
        assert result["success"] is False
        assert result["succeeded"] == 1
        assert result["failed"] == 2
        reasons = [f["reason"] for f in result["failures"]]
        assert "shorter than window_length" in reasons[0]
        assert reasons[1] == "File not found"

    def test_run_psd_zero_signal_reports_numeric_error(self, tmp_path: Path) -> None:
        np.save(tmp_path / "flat.npy", np.zeros((1, 1000)))
        result = run_psd(signal_files=[tmp_path / "flat.npy"], output_dir=tmp_path, sampling_rate=100.0)
        assert result["failed"] == 1
        assert "log10 is undefined" in result["failures"][0]["reason"]

    def test_run_psd_invalid_config_fails(self, tmp_path: Path) -> None:
        result = run_psd(signal_files=[], output_dir=tmp_path, config=PsdConfig(window_overlap=1.0))
        assert result["success"] is False
        assert "Invalid PSD configuration" in result["message"]

    def test_run_psd_no_files_returns_ok_empty_message(self, tmp_path: Path) -> None:
        result = run_psd(signal_files=None, output_dir=tmp_path, signals_dir=tmp_path)
        assert result["success"] is True
        assert result["total"] == 0
        assert "No signal files" in result["message"]


@pytest.mark.integration
class TestPsdCli:
    """CLI wiring through Typer."""

    def test_cli_dry_run(self, tmp_path: Path, rng: np.random.Generator) -> None:
        _write_npy_signal(tmp_path / "cli.npy", rng, fs=None)
        runner = CliRunner()
        res = runner.invoke(
            app,
            ["psd", "--fs", "100", "--dry-run", "--no-log", str(tmp_path / "cli.npy")],
        )
        assert res.exit_code == 0, res.output
        assert "✓ psd" in res.output
        assert "cli_psd_2-0.5-2-24.npz" in res.output

    def test_cli_yaml_config_and_overrides(self, tmp_path: Path, rng: np.random.Generator) -> None:
        _write_npy_signal(tmp_path / "cfg.npy", rng)
        config_path = tmp_path / "psd.yaml"
        config_path.write_text("psd:\n  window_length: 4\n  frequency_limits: [1, 20]\n")
        runner = CliRunner()
        res = runner.invoke(
            app,
            [
                "psd",
                "--config",
                str(config_path),
                "--fmax",
                "30",
                "--detrend",
                "none",
                "--dry-run",
                "--no-log",
                str(tmp_path / "cfg.npy"),
            ],
        )
        assert res.exit_code == 0, res.output
        assert "cfg_psd_4-0.5-1-30.npz" in res.output

    def test_cli_invalid_overlap_exits_nonzero(self, tmp_path: Path, rng: np.random.Generator) -> None:
        _write_npy_signal(tmp_path / "bad.npy", rng)
        runner = CliRunner()
        res = runner.invoke(
            app,
            ["psd", "--overlap", "1.5", "--dry-run", "--no-log", str(tmp_path / "bad.npy")],
        )
        assert res.exit_code == 1
        assert "window_overlap" in res.output

    def test_cli_writes_run_log_with_metadata(
        self, tmp_path: Path, rng: np.random.Generator, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        logs_dir = tmp_path / "logs"
        monkeypatch.setattr("medianpsd.cli.base.DERIVED_LOGS_DIR", logs_dir)
        root_logger = logging.getLogger()
        monkeypatch.setattr(root_logger, "level", root_logger.level)
        _write_npy_signal(tmp_path / "logged.npy", rng)
        runner = CliRunner()
        res = runner.invoke(
            app,
            ["--log-level", "DEBUG", "psd", "--dry-run", str(tmp_path / "logged.npy")],
        )
        assert res.exit_code == 0, res.output
        assert root_logger.level == logging.DEBUG

        log_files = list(logs_dir.glob("*.log"))
        assert len(log_files) == 1
        assert log_files[0].name.endswith("_psd_median_dryrun.log")
        text = log_files[0].read_text(encoding="utf-8")
        assert text.startswith("--- metadata ---\n")
        assert "command: psd" in text
        assert "medianpsd_version:" in text
        assert "config: defaults" in text
        assert "✓ psd" in text
        assert "logged_psd_2-0.5-2-24.npz" in text

    def test_cli_unknown_log_level_exits_nonzero(self, tmp_path: Path, rng: np.random.Generator) -> None:
        _write_npy_signal(tmp_path / "lvl.npy", rng)
        runner = CliRunner()
        res = runner.invoke(
            app,
            ["--log-level", "bogus", "psd", "--dry-run", "--no-log", str(tmp_path / "lvl.npy")],
        )
        assert res.exit_code != 0
        assert "Unknown log level" in res.output

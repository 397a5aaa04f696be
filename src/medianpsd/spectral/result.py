"""Result container for PSD estimates."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

import numpy as np

from .config import PsdConfig


@dataclass(frozen=True, eq=False)
class PsdResult:
    """Log10 PSD per channel on a shared frequency axis.

    Attributes:
        psd: Array (n_channels, n_freqs) of log10 power density.
        frequencies: Array (n_freqs,) in Hz, aligned with psd columns.
        channel_labels: Labels in the same order as psd rows.
        n_windows: Number of windows aggregated.
        config: Parameters the estimate was computed with.
    """

    psd: np.ndarray
    frequencies: np.ndarray
    channel_labels: tuple[str, ...]
    n_windows: int
    config: PsdConfig

    def __post_init__(self) -> None:
        psd = np.array(self.psd, dtype=np.float64)
        frequencies = np.array(self.frequencies, dtype=np.float64)
        psd.setflags(write=False)
        frequencies.setflags(write=False)
        object.__setattr__(self, "psd", psd)
        object.__setattr__(self, "frequencies", frequencies)
        object.__setattr__(self, "channel_labels", tuple(str(c) for c in self.channel_labels))

    @property
    def n_channels(self) -> int:
        return len(self.channel_labels)

    def channel(self, label: str) -> np.ndarray:
        """Return the PSD row for a channel label."""
        try:
            return self.psd[self.channel_labels.index(label)]
        except ValueError:
            raise KeyError(f"Unknown channel label: {label}") from None

    def save(self, path: Path) -> Path:
        """Write the result to a .npz file (no pickling)."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            np.savez(
                f,
                psd=self.psd,
                frequencies=self.frequencies,
                channel_labels=np.array(self.channel_labels, dtype=str),
                n_windows=np.array(self.n_windows),
                config=np.array(json.dumps(self.config.to_dict())),
            )
        return path

    @classmethod
    def load(cls, path: Path) -> PsdResult:
        """Read a result written by save()."""
        with np.load(Path(path), allow_pickle=False) as data:
            return cls(
                psd=data["psd"],
                frequencies=data["frequencies"],
                channel_labels=tuple(data["channel_labels"].tolist()),
                n_windows=int(data["n_windows"]),
                config=PsdConfig.from_mapping(json.loads(str(data["config"]))),
            )

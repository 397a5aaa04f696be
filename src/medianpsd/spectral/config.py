"""Parameters for median Welch PSD estimation.

Defaults follow the classic EEG setup: 2 s windows, 50 % overlap and a
2-24 Hz band. Values can also be read from a YAML file, either at the top
level or under a ``psd:`` section.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from numbers import Real
from pathlib import Path
from typing import Any

import yaml

from ..errors import InvalidConfigurationError, ensure_config

DETREND_TYPES = frozenset({"constant", "linear"})
AVERAGE_TYPES = frozenset({"median", "mean"})


def _is_real(value: Any) -> bool:
    return isinstance(value, Real) and not isinstance(value, bool)


@dataclass(frozen=True)
class PsdConfig:
    """Window, band and aggregation settings.

    Attributes:
        window_length: Window length in seconds.
        window_overlap: Overlap of consecutive windows as a fraction in [0, 1).
        frequency_limits: Inclusive (low, high) band in Hz.
        detrend: Per-window polynomial removal: "constant" (mean, order 0),
            "linear", or None to keep the raw samples.
        average: Aggregation over windows, "median" or "mean".
    """

    window_length: float = 2.0
    window_overlap: float = 0.5
    frequency_limits: tuple[float, float] = (2.0, 24.0)
    detrend: str | None = "constant"
    average: str = "median"

    def __post_init__(self) -> None:
        # Lists from YAML/JSON become tuples so the config stays hashable.
        if isinstance(self.frequency_limits, list):
            object.__setattr__(self, "frequency_limits", tuple(self.frequency_limits))

    def validate(self) -> PsdConfig:
        """Check the signal-independent constraints.

        Returns:
            self, to allow chaining.

        Raises:
            InvalidConfigurationError: On the first violated constraint.
        """
        ensure_config(
            _is_real(self.window_length),
            f"window_length must be a number, got {self.window_length!r}",
        )
        ensure_config(
            _is_real(self.window_overlap),
            f"window_overlap must be a number, got {self.window_overlap!r}",
        )
        ensure_config(self.window_length > 0, f"window_length must be > 0, got {self.window_length}")
        ensure_config(
            0 <= self.window_overlap < 1,
            f"window_overlap must be in [0, 1), got {self.window_overlap}",
        )
        ensure_config(
            isinstance(self.frequency_limits, tuple) and len(self.frequency_limits) == 2,
            f"frequency_limits must have two values, got {self.frequency_limits}",
        )
        low, high = self.frequency_limits
        ensure_config(
            _is_real(low) and _is_real(high),
            f"frequency_limits must be numbers, got {self.frequency_limits!r}",
        )
        ensure_config(low >= 0, f"frequency_limits must be non-negative, got {self.frequency_limits}")
        ensure_config(
            low < high,
            f"frequency_limits must be strictly increasing, got {self.frequency_limits}",
        )
        ensure_config(
            self.detrend is None or (isinstance(self.detrend, str) and self.detrend in DETREND_TYPES),
            f"Unknown detrend: {self.detrend}. Use one of: {sorted(DETREND_TYPES)} or None",
        )
        ensure_config(
            isinstance(self.average, str) and self.average in AVERAGE_TYPES,
            f"Unknown average: {self.average}. Use one of: {sorted(AVERAGE_TYPES)}",
        )
        return self

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["frequency_limits"] = list(self.frequency_limits)
        return data

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> PsdConfig:
        """Build a config from a plain mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise InvalidConfigurationError(f"Unknown PSD config key(s): {unknown}")
        return cls(**data)

    def replace(self, **overrides: Any) -> PsdConfig:
        """Return a copy with the non-None overrides applied."""
        data = self.to_dict()
        data.update({k: v for k, v in overrides.items() if v is not None})
        return PsdConfig.from_mapping(data)


def load_psd_config(path: Path) -> PsdConfig:
    """Load a PsdConfig from a YAML file.

    Args:
        path: YAML file. Either holds the fields directly or under ``psd:``.

    Returns:
        Validated PsdConfig.

    Raises:
        FileNotFoundError: If the file doesn't exist.
        yaml.YAMLError: If the YAML is invalid.
        InvalidConfigurationError: If the content is not a valid config.
    """
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise InvalidConfigurationError(f"Expected a mapping in {path}, got {type(data).__name__}")
    if "psd" in data:
        data = data["psd"] or {}
    return PsdConfig.from_mapping(data).validate()

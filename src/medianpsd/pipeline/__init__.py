"""Pipeline orchestration layer.

Pipeline modules wrap the numerical core in `medianpsd.spectral` with file
discovery, loading and output writing:
- `pipeline/psd.py` - median Welch PSD from .npy/.wav signals to .npz

Import policy:
- CLI imports only from `pipeline.*` for orchestration.
- `pipeline.*` calls `spectral.*` for computation.
- `spectral.*` must not call `pipeline.*` or do file discovery.
"""

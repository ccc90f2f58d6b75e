"""Particle seeding helpers."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from .errors import ConfigurationError


def create_box(bottom_left: Sequence[float], top_right: Sequence[float], spacing: float) -> np.ndarray:
    """
    Regular lattice of points covering an axis-aligned box.

    Points start at ``bottom_left`` and step by ``spacing`` up to and including
    ``top_right`` (a corner within a small tolerance of the last lattice line
    counts as reached).

    Returns:
        Array of shape ``(m, 2)``, ordered row by row from the bottom.
    """
    lo = np.asarray(bottom_left, dtype=np.float64)
    hi = np.asarray(top_right, dtype=np.float64)
    if lo.shape != (2,) or hi.shape != (2,):
        raise ConfigurationError("create_box expects 2D corners")
    if spacing <= 0.0:
        raise ConfigurationError(f"spacing must be positive, got {spacing}")
    if np.any(hi < lo):
        raise ConfigurationError(f"bottom_left {tuple(lo)} lies above/right of top_right {tuple(hi)}")

    counts = np.floor((hi - lo) / spacing + 1e-6).astype(np.int64) + 1
    xs = lo[0] + spacing * np.arange(counts[0])
    ys = lo[1] + spacing * np.arange(counts[1])
    gx, gy = np.meshgrid(xs, ys, indexing="xy")
    return np.stack([gx.ravel(), gy.ravel()], axis=1)

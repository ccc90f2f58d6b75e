"""
MPM plasticity - optional return mapping applied after the deformation update.
"""
from __future__ import annotations

from typing import Tuple

import numpy as np

from ....configuration import MPMConfig


class NoPlasticity:
    """Purely elastic response: keep ``F`` and track ``J = det(F)``."""

    name = "none"

    def apply(self, F: np.ndarray, J: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        return F, np.linalg.det(F)


class SnowPlasticity:
    """Snow return mapping (Stomakhin et al. 2013).

    Singular values of ``F`` are clamped to ``[1 - theta_c, 1 + theta_s]``;
    the removed volume change is moved into the plastic ratio ``J``, which is
    kept within ``[j_min, j_max]``.
    """

    name = "snow"

    def __init__(
        self,
        theta_c: float = 2.5e-2,
        theta_s: float = 4.5e-3,
        j_min: float = 0.6,
        j_max: float = 20.0,
    ):
        self.theta_c = theta_c
        self.theta_s = theta_s
        self.j_min = j_min
        self.j_max = j_max

    def apply(self, F: np.ndarray, J: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        U, sig, Vt = np.linalg.svd(F)
        clamped = np.clip(sig, 1.0 - self.theta_c, 1.0 + self.theta_s)
        J_new = np.asarray(J, dtype=np.float64) * np.prod(sig / clamped, axis=-1)
        F_new = (U * clamped[..., None, :]) @ Vt
        return F_new, np.clip(J_new, self.j_min, self.j_max)


def build_plasticity(config: MPMConfig) -> NoPlasticity | SnowPlasticity:
    if config.plasticity == "snow":
        return SnowPlasticity(
            theta_c=config.plastic_compression,
            theta_s=config.plastic_stretch,
            j_min=config.plastic_j_min,
            j_max=config.plastic_j_max,
        )
    return NoPlasticity()

"""
MPM material models - corotated elasticity with snow hardening.
"""
from __future__ import annotations

from typing import Callable, Dict, Tuple

import numpy as np

from ....configuration import MPMConfig
from ....errors import ConfigurationError

RotationExtractor = Callable[[np.ndarray], np.ndarray]


def lame_parameters(youngs_modulus: float, poisson_ratio: float) -> Tuple[float, float]:
    """Return ``(mu_0, lambda_0)`` for the given Young's modulus and Poisson ratio."""
    mu_0 = youngs_modulus / (2.0 * (1.0 + poisson_ratio))
    lambda_0 = youngs_modulus * poisson_ratio / ((1.0 + poisson_ratio) * (1.0 - 2.0 * poisson_ratio))
    return mu_0, lambda_0


def rotation_qr(F: np.ndarray) -> np.ndarray:
    """
    Orthogonal factor of the QR decomposition of each ``F``.

    The factor is sign-normalised so that the triangular factor has a
    non-negative diagonal, which makes ``Q`` a proper rotation whenever
    ``det(F) > 0``.
    """
    F = np.asarray(F, dtype=np.float64)
    Q, R = np.linalg.qr(F)
    signs = np.where(np.diagonal(R, axis1=-2, axis2=-1) < 0.0, -1.0, 1.0)
    return Q * signs[..., None, :]


def rotation_polar(F: np.ndarray) -> np.ndarray:
    """Rotational part of the polar decomposition ``F = R S`` via SVD."""
    F = np.asarray(F, dtype=np.float64)
    U, _, Vt = np.linalg.svd(F)
    # Flip the last singular direction where U V^T would be a reflection
    reflect = np.linalg.det(U @ Vt) < 0.0
    if np.any(reflect):
        U = U.copy()
        U[reflect, :, -1] *= -1.0
    return U @ Vt


ROTATION_EXTRACTORS: Dict[str, RotationExtractor] = {
    "qr": rotation_qr,
    "polar": rotation_polar,
}


def get_rotation_extractor(name: str) -> RotationExtractor:
    try:
        return ROTATION_EXTRACTORS[name]
    except KeyError:
        raise ConfigurationError(f"Unknown rotation method {name!r}") from None


class CorotatedMaterial:
    """Fixed-corotated elastic material with exponential hardening.

    The Lame parameters are computed once per material; each particle scales
    them by ``exp(hardening * (1 - J_prev))``.
    """

    def __init__(self, config: MPMConfig):
        self.config = config
        self.mu_0, self.lambda_0 = lame_parameters(config.youngs_modulus, config.poisson_ratio)
        self.rotation = get_rotation_extractor(config.rotation_method)
        if config.volume_term == "identity":
            self.volume_matrix = np.eye(2)
        else:
            self.volume_matrix = np.ones((2, 2))
        # Inverse of the quadratic kernel's second moment, D^-1 = 4 / dx^2
        self.d_inv = 4.0 * config.inv_dx * config.inv_dx

    def hardening_factor(self, J_prev: np.ndarray) -> np.ndarray:
        return np.exp(self.config.hardening * (1.0 - np.asarray(J_prev, dtype=np.float64)))

    def lame(self, J_prev: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Per-particle ``(mu, lambda)`` after hardening."""
        h = self.hardening_factor(J_prev)
        return self.mu_0 * h, self.lambda_0 * h

    def kirchhoff_stress(self, F: np.ndarray, J_prev: np.ndarray) -> np.ndarray:
        """
        Corotated Kirchhoff stress ``2 mu (F - R) F^T + lambda (J - 1) J T``.

        Args:
            F: Deformation gradients, shape ``(n, 2, 2)``
            J_prev: Hardening state per particle, shape ``(n,)``

        Returns:
            Stress tensors, shape ``(n, 2, 2)``
        """
        F = np.asarray(F, dtype=np.float64).reshape(-1, 2, 2)
        mu, lam = self.lame(J_prev)
        J = np.linalg.det(F)
        R = self.rotation(F)
        shear = 2.0 * mu[:, None, None] * ((F - R) @ np.swapaxes(F, -1, -2))
        volumetric = (lam * (J - 1.0) * J)[:, None, None] * self.volume_matrix
        return shear + volumetric

    def p2g_stress(self, F: np.ndarray, J_prev: np.ndarray, volume: np.ndarray) -> np.ndarray:
        """Stress term of the MLS-MPM affine momentum, ``-dt V D^-1 tau``."""
        scale = -self.config.dt * np.asarray(volume, dtype=np.float64) * self.d_inv
        return scale[:, None, None] * self.kirchhoff_stress(F, J_prev)

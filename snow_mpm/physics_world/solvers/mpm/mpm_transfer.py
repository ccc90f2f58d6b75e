"""
MPM transfers - particle-to-grid, grid update and grid-to-particle phases.

Every phase receives the grid and the particle state explicitly and works on
the subset of particle ids it is given, so frozen particles never reach the
grid.
"""
from __future__ import annotations

from enum import Enum
from typing import List, Tuple

import numpy as np

from ....configuration import MPMConfig
from .mpm_boundary import MPMBoundary
from .mpm_grid import MPMGrid
from .mpm_kernels import compute_transfer_weights, stencil_offsets
from .mpm_materials import CorotatedMaterial
from .mpm_plasticity import NoPlasticity, SnowPlasticity
from .mpm_state import MPMState


class SkipReason(Enum):
    """Why P2G left a particle out of the transfer."""

    DEGENERATE_DEFORMATION = "degenerate_deformation"
    NON_FINITE_VELOCITY = "non_finite_velocity"
    NON_FINITE_STRESS = "non_finite_stress"


def particle_to_grid(
    state: MPMState,
    grid: MPMGrid,
    material: CorotatedMaterial,
    particles: np.ndarray,
) -> np.ndarray:
    """
    P2G: scatter particle mass, momentum and stress onto the grid.

    Particles are read-only in this phase.

    Args:
        state: Particle state
        grid: Grid to accumulate into (expected to be reset)
        material: Constitutive model used for the stress term
        particles: Ids of the particles to transfer

    Returns:
        Ids of particles skipped because their deformation is degenerate
        (``det(F) <= 0``), their velocity or affine momentum is not finite.
        :func:`skip_reasons` tells them apart.
    """
    particles = np.asarray(particles, dtype=np.int64)
    if particles.size == 0:
        return particles

    F = state.F[particles]
    usable = deformation_is_valid(F)
    affine = np.full((particles.size, 2, 2), np.nan)
    if usable.any():
        stress = material.p2g_stress(F[usable], state.J[particles][usable], state.volume[particles][usable])
        affine[usable] = stress + state.mass[particles][usable, None, None] * state.C[particles][usable]

    valid = np.isfinite(affine).all(axis=(1, 2)) & np.isfinite(state.v[particles]).all(axis=1)
    skipped = particles[~valid]
    particles = particles[valid]
    if particles.size == 0:
        return skipped
    affine = affine[valid]

    mass = state.mass[particles]
    momentum = mass[:, None] * state.v[particles]
    weights = compute_transfer_weights(state.x[particles], grid.n_grid)

    for i, j in stencil_offsets():
        weight = weights.node_weight(i, j)
        dpos = weights.node_delta(i, j)
        contribution = weight[:, None] * (momentum + np.einsum("nab,nb->na", affine, dpos))
        gi, gj = weights.node_index(i, j)
        grid.accumulate(gi, gj, contribution, weight * mass)

    return skipped


def grid_solve(grid: MPMGrid, boundary: MPMBoundary, config: MPMConfig) -> np.ndarray:
    """
    Update grid velocities: momentum to velocity, gravity, boundary conditions.

    Returns:
        Mask of nodes that carried mass
    """
    occupied = grid.normalize()
    grid.velocity[occupied, 1] += config.dt * config.gravity
    boundary.apply(grid, occupied)
    return occupied


def grid_to_particle(
    state: MPMState,
    grid: MPMGrid,
    plasticity: NoPlasticity | SnowPlasticity,
    config: MPMConfig,
    particles: np.ndarray,
) -> np.ndarray:
    """
    G2P: gather grid velocities, rebuild the APIC matrix, advect particles and
    update their deformation gradient.

    Particles whose updated state is not finite or whose ``det(F)`` is not
    positive keep their previous position and deformation, lose their
    velocity and are deactivated.

    Returns:
        Ids of particles frozen during this phase
    """
    particles = np.asarray(particles, dtype=np.int64)
    if particles.size == 0:
        return particles

    weights = compute_transfer_weights(state.x[particles], grid.n_grid)
    new_v = np.zeros((particles.size, 2))
    new_C = np.zeros((particles.size, 2, 2))
    for i, j in stencil_offsets():
        weight = weights.node_weight(i, j)
        g_v = grid.gather_velocity(*weights.node_index(i, j))
        offset = weights.node_offset(i, j)
        new_v += weight[:, None] * g_v
        new_C += 4.0 * grid.inv_dx * weight[:, None, None] * (g_v[:, :, None] * offset[:, None, :])

    new_x = state.x[particles] + config.dt * new_v
    F = state.F[particles]
    F_trial = F + config.dt * (new_C @ F)

    ok, det = _healthy(new_x, new_v, new_C, F_trial)
    good = particles[ok]
    if good.size:
        F_new, J_new = plasticity.apply(F_trial[ok], state.J[good])
        state.x[good] = new_x[ok]
        state.v[good] = new_v[ok]
        state.C[good] = new_C[ok]
        state.F[good] = F_new
        state.J[good] = J_new

    frozen = particles[~ok]
    if frozen.size:
        freeze_particles(state, frozen)
    return frozen


def skip_reasons(state: MPMState, particles: np.ndarray) -> List[SkipReason]:
    """Classify particles returned by :func:`particle_to_grid`, checking F first."""
    valid_F = deformation_is_valid(state.F[particles])
    finite_v = np.isfinite(state.v[particles]).all(axis=1)
    reasons = []
    for ok_F, ok_v in zip(valid_F, finite_v):
        if not ok_F:
            reasons.append(SkipReason.DEGENERATE_DEFORMATION)
        elif not ok_v:
            reasons.append(SkipReason.NON_FINITE_VELOCITY)
        else:
            reasons.append(SkipReason.NON_FINITE_STRESS)
    return reasons


def freeze_particles(state: MPMState, particles: np.ndarray) -> None:
    state.v[particles] = 0.0
    state.C[particles] = 0.0
    state.active[particles] = False


def deformation_is_valid(F: np.ndarray) -> np.ndarray:
    """Mask of deformation gradients that are finite with a positive determinant."""
    valid = np.isfinite(F).all(axis=(1, 2))
    valid[valid] = np.linalg.det(F[valid]) > 0.0
    return valid


def _healthy(x: np.ndarray, v: np.ndarray, C: np.ndarray, F: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    finite = (
        np.isfinite(x).all(axis=1)
        & np.isfinite(v).all(axis=1)
        & np.isfinite(C).all(axis=(1, 2))
        & np.isfinite(F).all(axis=(1, 2))
    )
    det = np.full(F.shape[0], np.nan)
    det[finite] = np.linalg.det(F[finite])
    return finite & (det > 0.0), det

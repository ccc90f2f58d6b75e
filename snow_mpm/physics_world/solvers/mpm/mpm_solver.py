"""
MPM solver - main Material Point Method simulation engine.
"""
from __future__ import annotations

import logging
from enum import Enum
from typing import Dict, List, Optional, Sequence

import numpy as np

from ....configuration import MPMConfig
from .mpm_boundary import MPMBoundary
from .mpm_diagnostics import Diagnostic, DiagnosticKind, Severity, StepReport
from .mpm_grid import MPMGrid
from .mpm_materials import CorotatedMaterial
from .mpm_plasticity import NoPlasticity, SnowPlasticity, build_plasticity
from .mpm_state import MPMState
from .mpm_transfer import (
    SkipReason,
    freeze_particles,
    grid_solve,
    grid_to_particle,
    particle_to_grid,
    skip_reasons,
)

logger = logging.getLogger(__name__)

# Largest coordinate still inside the half-open unit domain [0, 1)
_DOMAIN_UPPER = np.nextafter(1.0, 0.0)


class SolverPhase(Enum):
    IDLE = "idle"
    RESET = "reset"
    P2G = "p2g"
    SOLVE = "solve"
    G2P = "g2p"


_PHASE_ORDER = (SolverPhase.RESET, SolverPhase.P2G, SolverPhase.SOLVE, SolverPhase.G2P)

_SKIP_DIAGNOSTICS = {
    SkipReason.DEGENERATE_DEFORMATION: (DiagnosticKind.DEGENERATE_DEFORMATION, "det(F) <= 0 or non-finite F before P2G"),
    SkipReason.NON_FINITE_VELOCITY: (DiagnosticKind.NON_FINITE_VELOCITY, "non-finite velocity before P2G"),
    SkipReason.NON_FINITE_STRESS: (DiagnosticKind.NON_FINITE_STRESS, "non-finite stress or affine matrix"),
}


class MPMSolver:
    """MLS-MPM solver for a 2D elastoplastic continuum in the unit square."""

    def __init__(
        self,
        config: Optional[MPMConfig] = None,
        state: Optional[MPMState] = None,
        plasticity: NoPlasticity | SnowPlasticity | None = None,
    ):
        self.config = config or MPMConfig()
        self.state = state if state is not None else MPMState()
        self.grid = MPMGrid(self.config.n_grid)
        self.material = CorotatedMaterial(self.config)
        self.boundary = MPMBoundary.from_config(self.config)
        self.plasticity = plasticity if plasticity is not None else build_plasticity(self.config)

        self.phase = SolverPhase.IDLE
        self.step_count = 0
        self.diagnostics: List[Diagnostic] = []
        self.phase_history: List[SolverPhase] = []
        self._out_of_domain_streak = np.zeros(self.state.n_particles, dtype=np.int64)
        # Positions at the end of the last step, used to restore non-finite ones
        self._last_positions = self.state.x.copy()

        logger.info(
            "[MPMSolver] grid=%d^2 dt=%g E=%g nu=%g rotation=%s volume_term=%s plasticity=%s",
            self.config.n_grid,
            self.config.dt,
            self.config.youngs_modulus,
            self.config.poisson_ratio,
            self.config.rotation_method,
            self.config.volume_term,
            self.plasticity.name,
        )

    def initialize_particles(
        self,
        positions: np.ndarray | Sequence[Sequence[float]],
        velocity: Optional[Sequence[float]] = None,
    ) -> np.ndarray:
        """Add particles with the configured mass and volume."""
        indices = self.state.initialize(
            positions,
            mass=self.config.particle_mass,
            volume=self.config.particle_volume,
            velocity=velocity,
        )
        self._last_positions = np.concatenate([self._last_positions, self.state.x[indices]])
        logger.info("[MPMSolver] Initialized %d particles (total %d)", len(indices), self.state.n_particles)
        return indices

    def _enter(self, phase: SolverPhase) -> None:
        if phase is not SolverPhase.IDLE:
            expected = _PHASE_ORDER[len(self.phase_history) % len(_PHASE_ORDER)]
            if phase is not expected:
                raise RuntimeError(f"MPM phase {phase.value} entered out of order (expected {expected.value})")
            self.phase_history.append(phase)
        self.phase = phase

    def _sync_streaks(self) -> None:
        n = self.state.n_particles
        if self._out_of_domain_streak.shape[0] < n:
            grown = np.zeros(n, dtype=np.int64)
            grown[: self._out_of_domain_streak.shape[0]] = self._out_of_domain_streak
            self._out_of_domain_streak = grown

    def _restore_position(self, p: int) -> None:
        """Put a particle with a non-finite position back at its last known place."""
        x = self.state.x
        fallback = self._last_positions[p] if p < self._last_positions.shape[0] else x[p]
        x[p] = np.clip(np.nan_to_num(fallback, nan=0.0), 0.0, _DOMAIN_UPPER)

    def _confine_particles(self, report: StepReport, seen: np.ndarray) -> None:
        """
        Clamp active particles that left the domain back into [0, 1).

        Runs at the start of a step and again after G2P. ``seen`` marks the
        particles found outside during the current step; a step counts once
        towards a particle's streak however often it is clamped.
        """
        state = self.state
        x = state.x
        inside = ((x >= 0.0) & (x <= _DOMAIN_UPPER)).all(axis=1)
        outside = state.active & ~inside
        if not outside.any():
            return

        ids = np.flatnonzero(outside)
        seen[ids] = True

        non_finite = ids[~np.isfinite(x[ids]).all(axis=1)]
        if non_finite.size:
            freeze_particles(state, non_finite)
            for p in non_finite:
                original = tuple(float(c) for c in x[p])
                self._restore_position(int(p))
                report.diagnostics.append(
                    Diagnostic(
                        self.step_count,
                        DiagnosticKind.OUT_OF_DOMAIN,
                        Severity.FATAL,
                        int(p),
                        f"non-finite position {original}; particle frozen at {tuple(float(c) for c in x[p])}",
                    )
                )
            ids = np.setdiff1d(ids, non_finite)

        for p in ids:
            original = tuple(float(c) for c in x[p])
            below = x[p] < 0.0
            above = x[p] > _DOMAIN_UPPER
            # Drop the velocity component that carried the particle out
            state.v[p, below & (state.v[p] < 0.0)] = 0.0
            state.v[p, above & (state.v[p] > 0.0)] = 0.0
            x[p] = np.clip(x[p], 0.0, _DOMAIN_UPPER)

            streak = int(self._out_of_domain_streak[p]) + 1
            persistent = streak > self.config.out_of_domain_patience
            report.diagnostics.append(
                Diagnostic(
                    self.step_count,
                    DiagnosticKind.OUT_OF_DOMAIN,
                    Severity.FATAL if persistent else Severity.WARNING,
                    int(p),
                    f"position {original} clamped into the domain ({streak} consecutive steps)",
                )
            )

    def step(self) -> StepReport:
        """Advance simulation by one time step."""
        report = StepReport(step=self.step_count)
        self._sync_streaks()
        self.phase_history.clear()
        seen_outside = np.zeros(self.state.n_particles, dtype=bool)

        self._enter(SolverPhase.RESET)
        self.grid.reset()
        self._confine_particles(report, seen_outside)

        self._enter(SolverPhase.P2G)
        skipped = particle_to_grid(self.state, self.grid, self.material, np.flatnonzero(self.state.active))
        if skipped.size:
            reasons = skip_reasons(self.state, skipped)
            freeze_particles(self.state, skipped)
            for p, reason in zip(skipped, reasons):
                kind, message = _SKIP_DIAGNOSTICS[reason]
                report.diagnostics.append(
                    Diagnostic(self.step_count, kind, Severity.FATAL, int(p), f"{message}; particle frozen")
                )
        report.grid_mass = self.grid.total_mass()

        self._enter(SolverPhase.SOLVE)
        grid_solve(self.grid, self.boundary, self.config)

        self._enter(SolverPhase.G2P)
        frozen = grid_to_particle(
            self.state, self.grid, self.plasticity, self.config, np.flatnonzero(self.state.active)
        )
        for p in frozen:
            report.diagnostics.append(
                Diagnostic(
                    self.step_count,
                    DiagnosticKind.DEGENERATE_DEFORMATION,
                    Severity.FATAL,
                    int(p),
                    "det(F) <= 0 or non-finite state after G2P; particle frozen",
                )
            )
        self._confine_particles(report, seen_outside)
        self._out_of_domain_streak = np.where(seen_outside, self._out_of_domain_streak + 1, 0)
        self._last_positions = self.state.x.copy()

        self._enter(SolverPhase.IDLE)
        self.step_count += 1
        self.diagnostics.extend(report.diagnostics)
        for diagnostic in report.diagnostics:
            logger.warning("[MPMSolver] %s", diagnostic)

        if self.config.debug_interval and self.step_count % self.config.debug_interval == 0:
            self._log_statistics()
        return report

    def advance(self, steps: int) -> List[StepReport]:
        """Run ``steps`` consecutive steps."""
        return [self.step() for _ in range(steps)]

    @property
    def time(self) -> float:
        return self.step_count * self.config.dt

    def statistics(self) -> Dict[str, float]:
        """Summary of the active particles for debugging."""
        state = self.state
        active = state.active
        n_active = int(active.sum())
        stats: Dict[str, float] = {
            "particles": float(state.n_particles),
            "active": float(n_active),
            "frozen": float(state.n_particles - n_active),
        }
        if n_active == 0:
            return stats
        J = state.J[active]
        speed = np.linalg.norm(state.v[active], axis=1)
        x = state.x[active]
        stats.update(
            J_min=float(J.min()),
            J_avg=float(J.mean()),
            J_max=float(J.max()),
            v_min=float(speed.min()),
            v_avg=float(speed.mean()),
            v_max=float(speed.max()),
            x_min=float(x[:, 0].min()),
            x_max=float(x[:, 0].max()),
            y_min=float(x[:, 1].min()),
            y_max=float(x[:, 1].max()),
        )
        return stats

    def _log_statistics(self) -> None:
        stats = self.statistics()
        logger.debug(
            "[MPM Step %d] Particles: %d, Frozen: %d", self.step_count, stats["particles"], stats["frozen"]
        )
        if stats["active"]:
            logger.debug(
                "  Deformation: J_avg=%.3f, J_min=%.3f, J_max=%.3f", stats["J_avg"], stats["J_min"], stats["J_max"]
            )
            logger.debug("  Velocity: v_avg=%.3f, v_min=%.3f, v_max=%.3f", stats["v_avg"], stats["v_min"], stats["v_max"])
            logger.debug(
                "  Particles range: X[%.3f, %.3f], Y[%.3f, %.3f]",
                stats["x_min"],
                stats["x_max"],
                stats["y_min"],
                stats["y_max"],
            )

"""
MPM (Material Point Method) solver module.
Provides MLS-MPM simulation of 2D elastoplastic (snow-like) materials.
"""

from .mpm_diagnostics import Diagnostic, DiagnosticKind, Severity, StepReport
from .mpm_grid import MPMGrid
from .mpm_solver import MPMSolver, SolverPhase
from .mpm_state import MPMState

__all__ = [
    'Diagnostic',
    'DiagnosticKind',
    'MPMGrid',
    'MPMSolver',
    'MPMState',
    'Severity',
    'SolverPhase',
    'StepReport',
]

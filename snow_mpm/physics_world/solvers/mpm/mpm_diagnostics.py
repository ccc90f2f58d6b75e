"""
MPM diagnostics - per-particle problem records and per-step reports.

Per-particle problems never raise inside the solver. They are collected as
``Diagnostic`` records so one bad particle cannot corrupt the others, and the
driver decides whether the run should be aborted.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List


class DiagnosticKind(Enum):
    OUT_OF_DOMAIN = "out_of_domain"
    DEGENERATE_DEFORMATION = "degenerate_deformation"
    NON_FINITE_STRESS = "non_finite_stress"
    NON_FINITE_VELOCITY = "non_finite_velocity"


class Severity(Enum):
    WARNING = "warning"
    FATAL = "fatal"


@dataclass(frozen=True)
class Diagnostic:
    step: int
    kind: DiagnosticKind
    severity: Severity
    particle: int
    message: str

    @property
    def is_fatal(self) -> bool:
        return self.severity is Severity.FATAL

    def __str__(self) -> str:
        return (
            f"[step {self.step}] {self.severity.value} {self.kind.value} "
            f"(particle {self.particle}): {self.message}"
        )


@dataclass
class StepReport:
    """Summary of a single simulation step."""

    step: int
    diagnostics: List[Diagnostic] = field(default_factory=list)
    grid_mass: float = 0.0  # total grid mass right after P2G

    @property
    def fatal(self) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.is_fatal]

    @property
    def has_fatal(self) -> bool:
        return any(d.is_fatal for d in self.diagnostics)

    def of_kind(self, kind: DiagnosticKind) -> List[Diagnostic]:
        return [d for d in self.diagnostics if d.kind is kind]

"""Exception hierarchy shared by the configuration layer and the solver."""

from __future__ import annotations

from typing import List, Optional


class SimulationError(Exception):
    """Base class for all simulation errors."""


class ConfigurationError(SimulationError, ValueError):
    """Raised when a configuration value is out of its valid range."""


class SimulationDivergedError(SimulationError):
    """Raised by the driver when a step reported fatal diagnostics."""

    def __init__(self, message: str, diagnostics: Optional[List[object]] = None):
        super().__init__(message)
        self.diagnostics = list(diagnostics or [])

import numpy as np
import pytest

from snow_mpm.configuration import MPMConfig
from snow_mpm.physics_world.solvers.mpm import MPMGrid, MPMSolver


@pytest.fixture
def config():
    return MPMConfig(n_grid=16, debug_interval=0)


@pytest.fixture
def weightless_config():
    return MPMConfig(n_grid=16, gravity=0.0, debug_interval=0)


@pytest.fixture
def grid(config):
    return MPMGrid(config.n_grid)


@pytest.fixture
def make_solver():
    def _make(positions, velocity=None, **overrides):
        overrides.setdefault("n_grid", 16)
        overrides.setdefault("debug_interval", 0)
        solver = MPMSolver(MPMConfig(**overrides))
        solver.initialize_particles(np.asarray(positions, dtype=float), velocity=velocity)
        return solver

    return _make

"""Data structures for Stokes problem configuration and preconditioner results.

Structure:
- Specifications: physical and operator coefficients (StokesSpecifications,
  PoissonSpecifications)
- Parameters: input configuration for a problem run
- Metrics: output recorded by the preconditioner
"""

from collections import deque
from dataclasses import dataclass, asdict, field
from enum import Enum
from typing import Deque, Optional, Tuple

import pandas as pd

from .errors import ConfigurationError


class TractionBcType(Enum):
    """How a traction boundary condition is interpreted."""

    TRACTION = "TRACTION"  # n . (-p I + mu (grad u + grad u^T))
    PSEUDO_TRACTION = "PSEUDO_TRACTION"  # n . (-p I + mu grad u)


# ========================================================
# Specifications
# ========================================================


@dataclass
class StokesSpecifications:
    """Physical coefficients of the Stokes problem."""

    rho: float = 0.0  # mass density
    mu: float = 1.0  # dynamic viscosity
    lambda_: float = 0.0  # drag coefficient

    def to_dataframe(self):
        return pd.DataFrame([asdict(self)])


@dataclass
class PoissonSpecifications:
    """Coefficients of the operator ``C I + D L``.

    ``C`` is either zero (the default), a constant, or the values of a
    cell-centered patch data index. ``D`` is a constant.
    """

    object_name: str = "PoissonSpecifications"
    c_constant: Optional[float] = None
    c_patch_data_id: int = -1
    d_constant: float = -1.0

    def set_c_zero(self):
        self.c_constant = None
        self.c_patch_data_id = -1

    def set_c_constant(self, c: float):
        self.c_constant = float(c)
        self.c_patch_data_id = -1

    def set_c_patch_data_id(self, idx: int):
        self.c_constant = None
        self.c_patch_data_id = idx

    def set_d_constant(self, d: float):
        self.d_constant = float(d)

    def c_is_zero(self) -> bool:
        return self.c_constant is None and self.c_patch_data_id < 0

    def c_is_constant(self) -> bool:
        return self.c_constant is not None

    def c_is_variable(self) -> bool:
        return self.c_patch_data_id >= 0

    def get_c_constant(self) -> float:
        if self.c_is_zero():
            return 0.0
        if not self.c_is_constant():
            raise ConfigurationError(f"{self.object_name}: C is not constant")
        return self.c_constant

    def get_d_constant(self) -> float:
        return self.d_constant


# ========================================================
# Parameters (Input Configuration)
# ========================================================


@dataclass
class StokesProblemParameters:
    """Input configuration for a staggered Stokes problem on a uniform grid."""

    n_cells: Tuple[int, ...] = (32, 32)
    x_lower: Tuple[float, ...] = (0.0, 0.0)
    x_upper: Tuple[float, ...] = (1.0, 1.0)
    patch_size: Optional[Tuple[int, ...]] = None
    n_workers: int = 1
    rho: float = 0.0
    mu: float = 1.0
    dt: float = 0.0  # 0 selects the steady (C = 0) velocity problem
    forcing_amplitude: float = 1.0
    solver_method: str = "direct"  # inner Poisson solves: "direct" or "bicgstab"

    @property
    def steady(self) -> bool:
        return self.dt == 0.0 or self.rho == 0.0

    def velocity_specifications(self) -> PoissonSpecifications:
        """``C = rho/dt``, ``D = -mu`` (``C`` is zero for the steady problem)."""
        spec = PoissonSpecifications(object_name="U_problem_coefs", d_constant=-self.mu)
        if not self.steady:
            spec.set_c_constant(self.rho / self.dt)
        return spec

    def to_dataframe(self):
        return pd.DataFrame([{k: str(v) if isinstance(v, tuple) else v for k, v in asdict(self).items()}])


# ========================================================
# Metrics (Output Results)
# ========================================================


MAX_WALL_TIME_HISTORY = 1000


@dataclass
class PreconditionerMetrics:
    """Bookkeeping of preconditioner applications."""

    applications: int = 0
    steady_state: bool = False
    wall_time_seconds: float = 0.0
    # Most recent applications only; the totals above cover all of them
    wall_times: Deque[float] = field(default_factory=lambda: deque(maxlen=MAX_WALL_TIME_HISTORY))

    def record(self, wall_time: float, steady_state: bool):
        self.applications += 1
        self.steady_state = steady_state
        self.wall_time_seconds += wall_time
        self.wall_times.append(wall_time)

    def reset(self):
        self.applications = 0
        self.wall_time_seconds = 0.0
        self.wall_times.clear()

    def to_dataframe(self):
        first = self.applications - len(self.wall_times) + 1
        return pd.DataFrame(
            {
                "application": range(first, self.applications + 1),
                "wall_time_seconds": list(self.wall_times),
            }
        )

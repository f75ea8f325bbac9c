"""Shared base of block preconditioners for the staggered Stokes system.

Preconditioner Hierarchy:
-------------------------
LinearSolver
└── StaggeredStokesBlockPreconditioner (abstract - problem coefficients, boundary
    │                                   strategies, velocity / pressure sub-solvers)
    └── StaggeredStokesProjectionPreconditioner
"""

import logging
import math
from typing import Optional, Sequence

from amr import HierarchyDataOps, HierarchyVector

from fv.core.helpers import equal_eps
from fv.linear_solvers.base import LinearSolver

from .bc_coefs import RobinBcCoefStrategy
from .datastructures import PoissonSpecifications
from .errors import ConfigurationError
from .nullspace import StokesNullspaceCorrection
from .physical_boundary import StaggeredStokesPhysicalBoundaryHelper

log = logging.getLogger(__name__)


class StaggeredStokesBlockPreconditioner(LinearSolver):
    """Block preconditioner acting on ``x = (U, P)``, ``b = (F_U, F_P)``.

    The velocity problem is ``(C I + D L) U = F_U`` with ``C = rho/dt`` and
    ``D = -mu``. The pressure problem derived from it is ``D_P L Phi = F_Phi``
    with ``D_P = -1`` for steady problems and ``D_P = -1/rho`` otherwise.
    """

    def __init__(self, object_name: str, needs_velocity_solver: bool = True, needs_pressure_solver: bool = True):
        super().__init__(object_name, homogeneous_bc=True)
        self.needs_velocity_solver = needs_velocity_solver
        self.needs_pressure_solver = needs_pressure_solver

        self._U_problem_coefs = PoissonSpecifications(object_name=f"{object_name}::U_problem_coefs")
        self._P_problem_coefs = PoissonSpecifications(object_name=f"{object_name}::P_problem_coefs")

        self._u_bc_coefs: Sequence[RobinBcCoefStrategy] = []
        self._p_bc_coef: Optional[RobinBcCoefStrategy] = None
        self._bc_helper: Optional[StaggeredStokesPhysicalBoundaryHelper] = None
        self._velocity_solver: Optional[LinearSolver] = None
        self._pressure_solver: Optional[LinearSolver] = None
        self._nullspace_correction: Optional[StokesNullspaceCorrection] = None

        self._hierarchy = None
        self._coarsest_ln = -1
        self._finest_ln = -1
        self._velocity_data_ops: Optional[HierarchyDataOps] = None
        self._pressure_data_ops: Optional[HierarchyDataOps] = None

    # =========================================================================
    # Configuration
    # =========================================================================

    def set_velocity_poisson_specifications(self, U_problem_coefs: PoissonSpecifications):
        """Set the velocity problem coefficients and derive the pressure problem.

        For unsteady problems the time interval must be set first, since the
        density is recovered as ``rho = C * dt``.
        """
        self._U_problem_coefs = U_problem_coefs
        self._P_problem_coefs = PoissonSpecifications(object_name=f"{self.object_name}::P_problem_coefs")
        self._P_problem_coefs.set_c_zero()
        if self.is_steady_state():
            self._P_problem_coefs.set_d_constant(-1.0)
            return
        rho = U_problem_coefs.get_c_constant() * self.get_dt()
        if not math.isfinite(rho) or rho == 0.0:
            raise ConfigurationError(
                f"{self.object_name}::set_velocity_poisson_specifications(): "
                "time interval must be set before unsteady problem coefficients"
            )
        self._P_problem_coefs.set_d_constant(-1.0 / rho)

    def get_velocity_poisson_specifications(self) -> PoissonSpecifications:
        return self._U_problem_coefs

    def get_pressure_poisson_specifications(self) -> PoissonSpecifications:
        return self._P_problem_coefs

    def is_steady_state(self) -> bool:
        coefs = self._U_problem_coefs
        return coefs.c_is_zero() or (coefs.c_is_constant() and equal_eps(coefs.get_c_constant(), 0.0))

    def set_physical_bc_coefs(self, u_bc_coefs: Sequence[RobinBcCoefStrategy], p_bc_coef: Optional[RobinBcCoefStrategy]):
        if self._hierarchy is not None and len(u_bc_coefs) != self._hierarchy.dim:
            raise ConfigurationError(
                f"{self.object_name}::set_physical_bc_coefs(): expected {self._hierarchy.dim} velocity strategies"
            )
        self._u_bc_coefs = list(u_bc_coefs)
        self._p_bc_coef = p_bc_coef

    def set_physical_boundary_helper(self, bc_helper: StaggeredStokesPhysicalBoundaryHelper):
        if bc_helper is None:
            raise ConfigurationError(f"{self.object_name}::set_physical_boundary_helper(): helper is null")
        self._bc_helper = bc_helper

    def set_velocity_sub_domain_solver(self, velocity_solver: LinearSolver):
        self._velocity_solver = velocity_solver

    def set_pressure_sub_domain_solver(self, pressure_solver: LinearSolver):
        self._pressure_solver = pressure_solver

    def set_nullspace_correction(self, nullspace_correction: Optional[StokesNullspaceCorrection]):
        self._nullspace_correction = nullspace_correction

    # =========================================================================
    # Solver state
    # =========================================================================

    def initialize_solver_state(self, x: HierarchyVector, b: HierarchyVector):
        if self.is_initialized:
            self.deallocate_solver_state()
        if x.num_components != 2 or b.num_components != 2:
            raise ConfigurationError(
                f"{self.object_name}::initialize_solver_state(): expected (velocity, pressure) vectors"
            )
        if self.needs_velocity_solver and self._velocity_solver is None:
            raise ConfigurationError(f"{self.object_name}::initialize_solver_state(): no velocity sub-domain solver")
        if self.needs_pressure_solver and self._pressure_solver is None:
            raise ConfigurationError(f"{self.object_name}::initialize_solver_state(): no pressure sub-domain solver")
        if self._u_bc_coefs and len(self._u_bc_coefs) != x.hierarchy.dim:
            raise ConfigurationError(
                f"{self.object_name}::initialize_solver_state(): expected {x.hierarchy.dim} velocity strategies"
            )

        self._hierarchy = x.hierarchy
        levels = self._hierarchy.level_range(x.coarsest_ln, x.finest_ln)
        self._coarsest_ln = levels[0]
        self._finest_ln = levels[-1]
        self._velocity_data_ops = HierarchyDataOps(self._hierarchy, self._coarsest_ln, self._finest_ln)
        self._pressure_data_ops = HierarchyDataOps(self._hierarchy, self._coarsest_ln, self._finest_ln)
        super().initialize_solver_state(x, b)

    def deallocate_solver_state(self):
        if not self.is_initialized:
            return
        self._velocity_data_ops = None
        self._pressure_data_ops = None
        super().deallocate_solver_state()

    def correct_nullspace(self, U_vec: HierarchyVector, P_vec: HierarchyVector):
        if self._nullspace_correction is not None:
            self._nullspace_correction.correct(U_vec, P_vec)

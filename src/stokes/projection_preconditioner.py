"""Projection-method preconditioner for the staggered Stokes system.

One application approximately inverts

    [ C I + D L   G ] [U]   [F_U]
    [   -D        0 ] [P] = [F_P]

by a velocity solve followed by a pressure projection:

1. U^*   := inv(C I + D L) F_U
2. F_Phi := -D U^* - F_P
   Phi   := inv(D_P L) F_Phi
3. P     := -D_U F_Phi                  (steady, C = 0)
   P     := Phi / dt - D_U F_Phi        (unsteady)
4. U     := U^* - G Phi                 (steady)
   U     := U^* + D_P G Phi             (unsteady, D_P = -1/rho)

Both sub-solves use homogeneous boundary conditions and a zero initial
guess; the preconditioner always performs exactly one application.
"""

import logging
import time

import mlflow

from amr import CellVariable, HierarchyVector

from fv.ghost_fill import GhostCellFill
from fv.operators import HierarchyMathOps

from .block_preconditioner import StaggeredStokesBlockPreconditioner
from .datastructures import PreconditionerMetrics
from .errors import ConfigurationError

log = logging.getLogger(__name__)

# Ghost cell width of the scratch fields
CELLG = 1


class StaggeredStokesProjectionPreconditioner(StaggeredStokesBlockPreconditioner):
    """Approximate Stokes inverse via one velocity solve and one pressure projection."""

    def __init__(self, object_name: str):
        super().__init__(object_name, needs_velocity_solver=True, needs_pressure_solver=True)
        # Single application with a zero initial guess
        self._initial_guess_nonzero = False
        self._max_iterations = 1

        self._Phi_var = None
        self._F_Phi_var = None
        self._Phi_scratch_idx = -1
        self._F_Phi_idx = -1
        self._Phi_bdry_fill_op = None
        self._hier_math_ops = None
        self.metrics = PreconditionerMetrics()

    @property
    def Phi_scratch_idx(self) -> int:
        return self._Phi_scratch_idx

    @property
    def F_Phi_idx(self) -> int:
        return self._F_Phi_idx

    # =========================================================================
    # Configuration contracts
    # =========================================================================

    def set_initial_guess_nonzero(self, initial_guess_nonzero: bool = True):
        if initial_guess_nonzero:
            raise ConfigurationError(
                f"{self.object_name}::set_initial_guess_nonzero(): only a zero initial guess is supported"
            )
        self._initial_guess_nonzero = False

    def set_max_iterations(self, max_iterations: int):
        if max_iterations != 1:
            raise ConfigurationError(f"{self.object_name}::set_max_iterations(): only performs a single iteration")
        self._max_iterations = 1

    # =========================================================================
    # Solver state
    # =========================================================================

    def _register_scratch_variables(self, variable_db):
        context = variable_db.get_context(f"{self.object_name}::CONTEXT")

        def lookup(name):
            variable = variable_db.get_variable(name)
            if variable is None:
                variable = CellVariable(name)
                return variable, variable_db.register_variable_and_context(variable, context, CELLG)
            idx = variable_db.map_variable_and_context_to_index(variable, context)
            if idx < 0:
                idx = variable_db.register_variable_and_context(variable, context, CELLG)
            return variable, idx

        self._Phi_var, self._Phi_scratch_idx = lookup(f"{self.object_name}::Phi")
        self._F_Phi_var, self._F_Phi_idx = lookup(f"{self.object_name}::F")

    def initialize_solver_state(self, x: HierarchyVector, b: HierarchyVector):
        if self.is_initialized:
            self.deallocate_solver_state()

        super().initialize_solver_state(x, b)
        self._register_scratch_variables(self._hierarchy.variable_db)

        for ln in range(self._coarsest_ln, self._finest_ln + 1):
            level = self._hierarchy.get_patch_level(ln)
            if not level.check_allocated(self._Phi_scratch_idx):
                level.allocate_patch_data(self._Phi_scratch_idx)
            if not level.check_allocated(self._F_Phi_idx):
                level.allocate_patch_data(self._F_Phi_idx)

        self._Phi_bdry_fill_op = GhostCellFill(self._Phi_scratch_idx, bc_coef=self._p_bc_coef, homogeneous_bc=True)
        self._Phi_bdry_fill_op.initialize_operator_state(self._hierarchy, self._coarsest_ln, self._finest_ln)
        self._hier_math_ops = HierarchyMathOps(
            f"{self.object_name}::HierarchyMathOps", self._hierarchy, self._coarsest_ln, self._finest_ln
        )
        log.debug(f"{self.object_name}: initialized on levels {self._coarsest_ln}..{self._finest_ln}")

    def deallocate_solver_state(self):
        if not self.is_initialized:
            return

        self._Phi_bdry_fill_op.deallocate_operator_state()
        self._Phi_bdry_fill_op = None
        self._hier_math_ops = None

        for ln in range(self._coarsest_ln, self._finest_ln + 1):
            level = self._hierarchy.get_patch_level(ln)
            if level.check_allocated(self._Phi_scratch_idx):
                level.deallocate_patch_data(self._Phi_scratch_idx)
            if level.check_allocated(self._F_Phi_idx):
                level.deallocate_patch_data(self._F_Phi_idx)

        super().deallocate_solver_state()
        log.debug(f"{self.object_name}: deallocated solver state")

    # =========================================================================
    # Application
    # =========================================================================

    def solve_system(self, x: HierarchyVector, b: HierarchyVector) -> bool:
        """Apply the preconditioner: ``x := P^{-1} b``. Always returns True."""
        time_start = time.time()

        deallocate_at_completion = not self.is_initialized
        if deallocate_at_completion:
            self.initialize_solver_state(x, b)

        try:
            steady_state = self.is_steady_state()

            F_U_vec = b.subvector(0, f"{self.object_name}::F_U")
            U_vec = x.subvector(0, f"{self.object_name}::U")
            P_vec = x.subvector(1, f"{self.object_name}::P")
            F_P_idx = b.component_index(1)
            U_idx = x.component_index(0)
            P_idx = x.component_index(1)
            Phi_scratch_vec = HierarchyVector(
                f"{self.object_name}::Phi_scratch", self._hierarchy, self._coarsest_ln, self._finest_ln
            ).add_component(self._Phi_var, self._Phi_scratch_idx)
            F_Phi_vec = HierarchyVector(
                f"{self.object_name}::F_Phi", self._hierarchy, self._coarsest_ln, self._finest_ln
            ).add_component(self._F_Phi_var, self._F_Phi_idx)

            # (1) Velocity sub-problem: U^* := inv(C I + D L) F_U
            self._velocity_solver.set_homogeneous_bc(True)
            if hasattr(self._velocity_solver, "set_initial_guess_nonzero"):
                self._velocity_solver.set_initial_guess_nonzero(False)
            self._velocity_solver.solve_system(U_vec, F_U_vec)

            # (2) Pressure sub-problem: Phi := inv(D_P L) (-D U^* - F_P)
            self._hier_math_ops.div(self._F_Phi_idx, -1.0, U_idx, cf_bdry_synch=True, beta=-1.0, src2_idx=F_P_idx)
            self._pressure_solver.set_homogeneous_bc(True)
            self._pressure_solver.set_initial_guess_nonzero(False)
            self._pressure_solver.solve_system(Phi_scratch_vec, F_Phi_vec)

            D_U = self._U_problem_coefs.get_d_constant()
            if steady_state:
                self._pressure_data_ops.scale(P_idx, -D_U, self._F_Phi_idx)
            else:
                self._pressure_data_ops.linear_sum(
                    P_idx, 1.0 / self.get_dt(), self._Phi_scratch_idx, -D_U, self._F_Phi_idx
                )

            # (3) Projection: U := U^* + coef G Phi
            coef = -1.0 if steady_state else self._P_problem_coefs.get_d_constant()
            self._hier_math_ops.grad(
                U_idx,
                coef,
                self._Phi_scratch_idx,
                fill_op=self._Phi_bdry_fill_op,
                fill_time=self._pressure_solver.get_solution_time(),
                cf_bdry_synch=True,
                beta=1.0,
                src2_idx=U_idx,
            )

            self.correct_nullspace(U_vec, P_vec)
        finally:
            if deallocate_at_completion:
                self.deallocate_solver_state()

        wall_time = time.time() - time_start
        self.metrics.record(wall_time, steady_state)
        log.debug(f"{self.object_name}: application {self.metrics.applications} took {wall_time:.3e}s (steady={steady_state})")
        if mlflow.active_run():
            mlflow.log_metrics({"preconditioner_wall_time": wall_time}, step=self.metrics.applications)
        return True

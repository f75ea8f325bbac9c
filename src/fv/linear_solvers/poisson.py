"""Reference Poisson/Helmholtz solvers for ``(C I + D L) x = b`` on a single level.

The patches of the level are gathered into one domain-wide array, the
operator is assembled with :func:`fv.assembly.laplacian.assemble_helmholtz`
and solved with :func:`scipy_solver`, and the solution is scattered back to
the patches.

Boundary conditions come from Robin coefficient strategies. Each boundary
location must be uniformly Dirichlet or uniformly Neumann; only homogeneous
conditions are supported, which is what the block preconditioners use.

Solver Hierarchy:
-----------------
LinearSolver
└── PoissonSolver (abstract - operator coefficients, boundary kinds, solve)
    ├── CCPoissonSolver (cell-centered scalar)
    └── SCPoissonSolver (side-centered vector, one solve per component)
"""

import logging
from abc import abstractmethod
from typing import List, Optional, Sequence, Tuple

import numpy as np

from amr import compute_physical_codim1_boxes, level_box_data, scatter_level_box_data

from ..assembly.laplacian import DIRICHLET, NEUMANN, assemble_helmholtz
from ..core.helpers import equal_eps
from .base import LinearSolver
from .scipy_solver import scipy_solver

log = logging.getLogger(__name__)


class PoissonSolver(LinearSolver):
    """Shared setup of the reference Poisson solvers.

    Parameters
    ----------
    object_name : str
        Name used in log and error messages.
    poisson_spec : PoissonSpecifications, optional
        Operator coefficients (``C`` zero or constant, ``D`` constant).
    method : str, optional
        "direct" or "bicgstab", forwarded to :func:`scipy_solver`.
    """

    def __init__(self, object_name: str, poisson_spec=None, method: str = "direct"):
        super().__init__(object_name, homogeneous_bc=True)
        self.poisson_spec = poisson_spec
        self.method = method
        self._hierarchy = None
        self._level_number = -1
        self._operators = {}

    def set_poisson_specifications(self, poisson_spec):
        self.poisson_spec = poisson_spec
        self._operators = {}

    def initialize_solver_state(self, x, b):
        if self.is_initialized:
            self.deallocate_solver_state()
        levels = x.hierarchy.level_range(x.coarsest_ln, x.finest_ln)
        if len(levels) != 1:
            raise ValueError(f"{self.object_name}::initialize_solver_state(): only single-level solves are supported")
        level = x.hierarchy.get_patch_level(levels[0])
        if not level.covers_domain():
            raise ValueError(f"{self.object_name}::initialize_solver_state(): level must cover the whole domain")
        self._hierarchy = x.hierarchy
        self._level_number = levels[0]
        super().initialize_solver_state(x, b)

    def deallocate_solver_state(self):
        if not self.is_initialized:
            return
        self._hierarchy = None
        self._level_number = -1
        self._operators = {}
        super().deallocate_solver_state()

    def solve_system(self, x, b) -> bool:
        deallocate_after_solve = not self.is_initialized
        if deallocate_after_solve:
            self.initialize_solver_state(x, b)
        if not self._homogeneous_bc:
            raise ValueError(f"{self.object_name}::solve_system(): only homogeneous boundary conditions are supported")

        results = [
            self._solve_component(x.component_index(i), b.component_index(i))
            for i in range(x.num_components)
        ]
        converged = all(results)
        self._current_iterations = 1
        log.debug(f"{self.object_name}: solved {x.name} (converged={converged})")

        if deallocate_after_solve:
            self.deallocate_solver_state()
        return converged

    def _coefficients(self) -> Tuple[float, float]:
        spec = self.poisson_spec
        if spec is None:
            raise ValueError(f"{self.object_name}: no Poisson specifications set")
        if spec.c_is_variable():
            raise ValueError(f"{self.object_name}: spatially varying C is not supported")
        return spec.get_c_constant(), spec.get_d_constant()

    def _boundary_kinds(self, bc_coef, fill_time: float) -> List[Tuple[int, int]]:
        """(lower, upper) boundary kind per axis from evaluating ``bc_coef`` on the level's boundary boxes."""
        dim = self._hierarchy.dim
        if bc_coef is None:
            return [(DIRICHLET, DIRICHLET)] * dim

        level = self._hierarchy.get_patch_level(self._level_number)
        boxes = compute_physical_codim1_boxes(self._hierarchy)[self._level_number]
        kinds = [[None, None] for _ in range(dim)]
        for patch in level.patches:
            for bdry_box in boxes[patch.patch_id]:
                alpha, beta, _ = bc_coef.set_bc_coefs(patch, bdry_box, fill_time)
                if np.all(equal_eps(alpha, 1.0)):
                    kind = DIRICHLET
                elif np.all(equal_eps(beta, 1.0)):
                    kind = NEUMANN
                else:
                    raise ValueError(
                        f"{self.object_name}: boundary location {bdry_box.location_index} "
                        "is neither uniformly Dirichlet nor uniformly Neumann"
                    )
                axis, side = bdry_box.normal_axis, 0 if bdry_box.is_lower else 1
                if kinds[axis][side] not in (None, kind):
                    raise ValueError(f"{self.object_name}: mixed conditions at location {bdry_box.location_index}")
                kinds[axis][side] = kind
        return [tuple(DIRICHLET if k is None else k for k in pair) for pair in kinds]

    def _solve(self, key, b_full: np.ndarray, x_full: np.ndarray, kinds, node_axis: Optional[int]) -> Tuple[np.ndarray, bool]:
        c, d = self._coefficients()
        level = self._hierarchy.get_patch_level(self._level_number)
        key = (key, c, d)
        if key not in self._operators:
            self._operators[key] = assemble_helmholtz(level.domain_box.shape, level.dx, kinds, c, d, node_axis)
        A, mask = self._operators[key]

        singular = equal_eps(c, 0.0) and all(
            kind == NEUMANN for pair in kinds for kind in pair
        )
        x0 = x_full.ravel()[mask] if self._initial_guess_nonzero else None
        x, converged = scipy_solver(
            A,
            b_full.ravel()[mask],
            x0=x0,
            tolerance=self._rel_residual_tol,
            max_iterations=self._max_iterations,
            method=self.method,
            remove_nullspace=singular,
        )
        out = np.zeros(b_full.size)
        out[mask] = x
        return out.reshape(b_full.shape), converged

    @abstractmethod
    def _solve_component(self, x_idx: int, b_idx: int) -> bool:
        pass


class CCPoissonSolver(PoissonSolver):
    """Cell-centered ``(C I + D L) x = b`` with one boundary strategy."""

    def __init__(self, object_name: str, poisson_spec=None, bc_coef=None, method: str = "direct"):
        super().__init__(object_name, poisson_spec, method)
        self.bc_coef = bc_coef

    def set_physical_bc_coef(self, bc_coef):
        self.bc_coef = bc_coef
        self._operators = {}

    def _solve_component(self, x_idx: int, b_idx: int) -> bool:
        kinds = self._boundary_kinds(self.bc_coef, self._solution_time)
        ln = self._level_number
        b_full = level_box_data(self._hierarchy, ln, b_idx)
        x_full = level_box_data(self._hierarchy, ln, x_idx)
        x_full, converged = self._solve(tuple(kinds), b_full, x_full, kinds, node_axis=None)
        scatter_level_box_data(self._hierarchy, ln, x_idx, x_full)
        return converged


class SCPoissonSolver(PoissonSolver):
    """Side-centered ``(C I + D L) u = f``, one strategy per velocity component.

    Component ``a`` lives on the faces normal to axis ``a``; along that axis
    the unknowns are node centered and Dirichlet boundary faces are set to zero.
    """

    def __init__(self, object_name: str, poisson_spec=None, bc_coefs: Optional[Sequence] = None, method: str = "direct"):
        super().__init__(object_name, poisson_spec, method)
        self.bc_coefs = list(bc_coefs) if bc_coefs is not None else None

    def set_physical_bc_coefs(self, bc_coefs: Sequence):
        self.bc_coefs = list(bc_coefs)
        self._operators = {}

    def _solve_component(self, x_idx: int, b_idx: int) -> bool:
        dim = self._hierarchy.dim
        bc_coefs = self.bc_coefs if self.bc_coefs is not None else [None] * dim
        if len(bc_coefs) != dim:
            raise ValueError(f"{self.object_name}: expected {dim} boundary strategies, got {len(bc_coefs)}")

        ln = self._level_number
        converged = True
        for axis in range(dim):
            kinds = self._boundary_kinds(bc_coefs[axis], self._solution_time)
            b_full = level_box_data(self._hierarchy, ln, b_idx, axis=axis)
            x_full = level_box_data(self._hierarchy, ln, x_idx, axis=axis)
            x_full, ok = self._solve((axis, tuple(kinds)), b_full, x_full, kinds, node_axis=axis)
            scatter_level_box_data(self._hierarchy, ln, x_idx, x_full, axis=axis)
            converged = converged and ok
        return converged

"""Abstract solver interfaces.

Solver Hierarchy:
-----------------
GeneralSolver (abstract - solve F[x] = b on a hierarchy vector)
└── LinearSolver (adds initial guess, iteration and tolerance control)
"""

from abc import ABC, abstractmethod


class GeneralSolver(ABC):
    """Abstract solver acting on hierarchy vectors.

    Subclasses implement solve_system(); initialize_solver_state() and
    deallocate_solver_state() bracket repeated solves with the same vector
    layout.
    """

    def __init__(self, object_name: str, homogeneous_bc: bool = False):
        self.object_name = object_name
        self._homogeneous_bc = homogeneous_bc
        self._solution_time = float("nan")
        self._current_time = float("nan")
        self._new_time = float("nan")
        self._is_initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._is_initialized

    def set_homogeneous_bc(self, homogeneous_bc: bool):
        self._homogeneous_bc = homogeneous_bc

    def get_homogeneous_bc(self) -> bool:
        return self._homogeneous_bc

    def set_solution_time(self, solution_time: float):
        self._solution_time = solution_time

    def get_solution_time(self) -> float:
        return self._solution_time

    def set_time_interval(self, current_time: float, new_time: float):
        self._current_time = current_time
        self._new_time = new_time

    def get_time_interval(self):
        return self._current_time, self._new_time

    def get_dt(self) -> float:
        return self._new_time - self._current_time

    @abstractmethod
    def solve_system(self, x, b) -> bool:
        """Solve for ``x`` given the right-hand side ``b``. Returns whether the solve succeeded."""

    def initialize_solver_state(self, x, b):
        self._is_initialized = True

    def deallocate_solver_state(self):
        self._is_initialized = False


class LinearSolver(GeneralSolver):
    """Linear solver with the usual Krylov-style controls."""

    def __init__(self, object_name: str, homogeneous_bc: bool = False):
        super().__init__(object_name, homogeneous_bc)
        self._initial_guess_nonzero = True
        self._max_iterations = 1000
        self._rel_residual_tol = 1e-10
        self._abs_residual_tol = 0.0
        self._current_iterations = 0
        self._current_residual_norm = float("nan")

    def set_initial_guess_nonzero(self, initial_guess_nonzero: bool = True):
        self._initial_guess_nonzero = initial_guess_nonzero

    def get_initial_guess_nonzero(self) -> bool:
        return self._initial_guess_nonzero

    def set_max_iterations(self, max_iterations: int):
        self._max_iterations = max_iterations

    def get_max_iterations(self) -> int:
        return self._max_iterations

    def set_relative_tolerance(self, rel_residual_tol: float):
        self._rel_residual_tol = rel_residual_tol

    def get_relative_tolerance(self) -> float:
        return self._rel_residual_tol

    def set_absolute_tolerance(self, abs_residual_tol: float):
        self._abs_residual_tol = abs_residual_tol

    def get_absolute_tolerance(self) -> float:
        return self._abs_residual_tol

    def get_num_iterations(self) -> int:
        return self._current_iterations

    def get_residual_norm(self) -> float:
        return self._current_residual_norm

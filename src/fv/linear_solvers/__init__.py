"""Linear solvers for FV method."""

from .base import GeneralSolver, LinearSolver
from .scipy_solver import scipy_solver
from .poisson import PoissonSolver, CCPoissonSolver, SCPoissonSolver

__all__ = [
    "GeneralSolver",
    "LinearSolver",
    "scipy_solver",
    "PoissonSolver",
    "CCPoissonSolver",
    "SCPoissonSolver",
]

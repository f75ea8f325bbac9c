"""Exceptions raised by the Stokes preconditioner and boundary machinery."""


class ConfigurationError(ValueError):
    """An object was configured or called in a way it does not support.

    Raised for wrong dimension counts, nonzero initial guesses or iteration
    counts other than one for single-application solvers, missing problem
    coefficients, and missing hierarchies or sub-solvers.
    """


class InvariantViolation(RuntimeError):
    """Boundary coefficients violate the pure Dirichlet / pure Neumann requirement."""

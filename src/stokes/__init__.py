"""Staggered-grid Stokes preconditioning and physical boundary handling.

Hierarchy:
----------
RobinBcCoefStrategy (boundary coefficient capability)
├── LocationIndexRobinBcCoefs
└── ExtendedRobinBcCoefStrategy
    ├── ExtendedLocationIndexRobinBcCoefs
    └── StokesBcCoefStrategy
        ├── StaggeredVelocityBcCoef
        └── StaggeredPressureBcCoef

StaggeredStokesPhysicalBoundaryHelper (normal velocity enforcement)

StaggeredStokesBlockPreconditioner
└── StaggeredStokesProjectionPreconditioner
"""

from .errors import ConfigurationError, InvariantViolation
from .datastructures import (
    TractionBcType,
    # Specifications
    StokesSpecifications,
    PoissonSpecifications,
    # Parameters / metrics
    StokesProblemParameters,
    PreconditionerMetrics,
)
from .bc_coefs import (
    RobinCoefficients,
    RobinBcCoefStrategy,
    ExtendedRobinBcCoefStrategy,
    StokesBcCoefStrategy,
    LocationIndexRobinBcCoefs,
    ExtendedLocationIndexRobinBcCoefs,
)
from .staggered_bc_coefs import StaggeredVelocityBcCoef, StaggeredPressureBcCoef
from .physical_boundary import StaggeredStokesPhysicalBoundaryHelper
from .nullspace import StokesNullspaceCorrection
from .block_preconditioner import StaggeredStokesBlockPreconditioner
from .projection_preconditioner import StaggeredStokesProjectionPreconditioner

__all__ = [
    # Errors
    "ConfigurationError",
    "InvariantViolation",
    # Data structures
    "TractionBcType",
    "StokesSpecifications",
    "PoissonSpecifications",
    "StokesProblemParameters",
    "PreconditionerMetrics",
    # Boundary coefficient strategies
    "RobinCoefficients",
    "RobinBcCoefStrategy",
    "ExtendedRobinBcCoefStrategy",
    "StokesBcCoefStrategy",
    "LocationIndexRobinBcCoefs",
    "ExtendedLocationIndexRobinBcCoefs",
    "StaggeredVelocityBcCoef",
    "StaggeredPressureBcCoef",
    # Boundary enforcement
    "StaggeredStokesPhysicalBoundaryHelper",
    # Preconditioners
    "StokesNullspaceCorrection",
    "StaggeredStokesBlockPreconditioner",
    "StaggeredStokesProjectionPreconditioner",
]

"""Robin boundary coefficient strategies.

A strategy provides, for every boundary face of a codimension-1 boundary box,
coefficients (alpha, beta, gamma) of the condition

    alpha * u + beta * du/dn = gamma

with n the outward unit normal. alpha = 1, beta = 0 is a Dirichlet condition
and alpha = 0, beta = 1 a Neumann condition.

Strategy Hierarchy:
-------------------
RobinBcCoefStrategy (abstract - coefficient evaluation)
├── LocationIndexRobinBcCoefs (one condition per boundary location)
└── ExtendedRobinBcCoefStrategy (adds homogeneous / target index control)
    ├── ExtendedLocationIndexRobinBcCoefs
    └── StokesBcCoefStrategy (adds velocity / pressure field binding)

Consumers query optional capabilities with ``extended_interface()`` and
``stokes_interface()``, which return ``None`` when the strategy does not
support them.
"""

import logging
from abc import ABC, abstractmethod
from typing import Callable, Dict, NamedTuple, Optional, Tuple, Union

import numpy as np

from amr import BoundaryBox, Patch

from .datastructures import StokesSpecifications, TractionBcType
from .errors import ConfigurationError

log = logging.getLogger(__name__)

GammaValue = Union[float, Callable]


class RobinCoefficients(NamedTuple):
    """Per-face coefficient arrays shaped like the boundary coefficient box."""

    alpha: np.ndarray
    beta: np.ndarray
    gamma: np.ndarray


class RobinBcCoefStrategy(ABC):
    """Base interface: evaluate Robin coefficients on a boundary box."""

    @abstractmethod
    def set_bc_coefs(self, patch: Patch, bdry_box: BoundaryBox, fill_time: float) -> RobinCoefficients:
        """Coefficients at the centers of the boundary faces ``bdry_box.bc_coef_box(patch.box)``."""

    def extended_interface(self) -> Optional["ExtendedRobinBcCoefStrategy"]:
        return None

    def stokes_interface(self) -> Optional["StokesBcCoefStrategy"]:
        return None


class ExtendedRobinBcCoefStrategy(RobinBcCoefStrategy):
    """Strategy that can be told to drop inhomogeneous data and which field it is filling."""

    def __init__(self):
        super().__init__()
        self._target_data_idx = -1
        self._homogeneous_bc = False

    def extended_interface(self) -> "ExtendedRobinBcCoefStrategy":
        return self

    def set_target_patch_data_index(self, target_idx: int):
        self._target_data_idx = target_idx

    def clear_target_patch_data_index(self):
        self._target_data_idx = -1

    @property
    def target_patch_data_index(self) -> int:
        return self._target_data_idx

    def set_homogeneous_bc(self, homogeneous_bc: bool):
        self._homogeneous_bc = bool(homogeneous_bc)

    @property
    def homogeneous_bc(self) -> bool:
        return self._homogeneous_bc


class StokesBcCoefStrategy(ExtendedRobinBcCoefStrategy):
    """Strategy whose coefficients may depend on the current velocity and pressure fields."""

    def __init__(self, problem_coefs: Optional[StokesSpecifications] = None):
        super().__init__()
        self._problem_coefs = problem_coefs
        self._u_target_data_idx = -1
        self._p_target_data_idx = -1
        self._traction_bc_type = TractionBcType.TRACTION

    def stokes_interface(self) -> "StokesBcCoefStrategy":
        return self

    def set_stokes_specifications(self, problem_coefs: StokesSpecifications):
        if problem_coefs is None:
            raise ConfigurationError(f"{type(self).__name__}::set_stokes_specifications(): problem coefficients are null")
        self._problem_coefs = problem_coefs

    @property
    def problem_coefs(self) -> StokesSpecifications:
        if self._problem_coefs is None:
            raise ConfigurationError(f"{type(self).__name__}: no Stokes specifications attached")
        return self._problem_coefs

    def set_target_velocity_patch_data_index(self, u_target_data_idx: int):
        self._u_target_data_idx = u_target_data_idx

    def clear_target_velocity_patch_data_index(self):
        self._u_target_data_idx = -1

    def set_target_pressure_patch_data_index(self, p_target_data_idx: int):
        self._p_target_data_idx = p_target_data_idx

    def clear_target_pressure_patch_data_index(self):
        self._p_target_data_idx = -1

    @property
    def target_velocity_patch_data_index(self) -> int:
        return self._u_target_data_idx

    @property
    def target_pressure_patch_data_index(self) -> int:
        return self._p_target_data_idx

    def bind(self, u_target_data_idx: int, p_target_data_idx: int):
        self.set_target_velocity_patch_data_index(u_target_data_idx)
        self.set_target_pressure_patch_data_index(p_target_data_idx)

    def unbind(self):
        self.clear_target_velocity_patch_data_index()
        self.clear_target_pressure_patch_data_index()

    def set_traction_bc_type(self, bc_type: TractionBcType):
        if not isinstance(bc_type, TractionBcType):
            raise ConfigurationError(f"{type(self).__name__}::set_traction_bc_type(): unknown traction type {bc_type!r}")
        self._traction_bc_type = bc_type

    def get_traction_bc_type(self) -> TractionBcType:
        return self._traction_bc_type


class LocationIndexRobinBcCoefs(RobinBcCoefStrategy):
    """One (alpha, beta, gamma) triple per boundary location index.

    ``gamma`` may be a constant or a callable ``gamma(coords, time)`` that
    receives the meshgrid of boundary face centers.
    Unset locations default to homogeneous Dirichlet conditions.
    """

    def __init__(self, object_name: str, dim: int):
        super().__init__()
        self.object_name = object_name
        self.dim = dim
        self._coefs: Dict[int, Tuple[float, float, GammaValue]] = {
            location: (1.0, 0.0, 0.0) for location in range(2 * dim)
        }

    def _check_location(self, location_index: int):
        if not 0 <= location_index < 2 * self.dim:
            raise ConfigurationError(f"{self.object_name}: invalid location index {location_index}")

    def set_dirichlet(self, location_index: int, value: GammaValue = 0.0):
        self.set_raw(location_index, 1.0, 0.0, value)

    def set_neumann(self, location_index: int, value: GammaValue = 0.0):
        self.set_raw(location_index, 0.0, 1.0, value)

    def set_raw(self, location_index: int, alpha: float, beta: float, gamma: GammaValue):
        self._check_location(location_index)
        self._coefs[location_index] = (float(alpha), float(beta), gamma)

    def set_bc_coefs(self, patch: Patch, bdry_box: BoundaryBox, fill_time: float) -> RobinCoefficients:
        coef_box = bdry_box.bc_coef_box(patch.box)
        alpha, beta, gamma = self._coefs[bdry_box.location_index]
        if callable(gamma):
            coords = patch.geometry.face_centers(coef_box, bdry_box.normal_axis)
            gamma_data = np.array(np.broadcast_to(gamma(coords, fill_time), coef_box.shape), dtype=np.float64)
        else:
            gamma_data = np.full(coef_box.shape, float(gamma))
        return RobinCoefficients(
            alpha=np.full(coef_box.shape, alpha),
            beta=np.full(coef_box.shape, beta),
            gamma=gamma_data,
        )


class ExtendedLocationIndexRobinBcCoefs(LocationIndexRobinBcCoefs, ExtendedRobinBcCoefStrategy):
    """Location-indexed conditions that zero gamma themselves when homogeneous."""

    def set_bc_coefs(self, patch: Patch, bdry_box: BoundaryBox, fill_time: float) -> RobinCoefficients:
        coefs = super().set_bc_coefs(patch, bdry_box, fill_time)
        if self.homogeneous_bc:
            coefs.gamma.fill(0.0)
        return coefs

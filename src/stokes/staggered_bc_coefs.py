"""Stokes boundary strategies built on top of per-component velocity conditions.

The user supplies one Robin strategy per velocity component. At each boundary
point the normal component's condition is either Dirichlet (``alpha ~ 1``,
a prescribed velocity) or a traction condition whose ``gamma`` is the
traction component along the component's axis.

At traction boundaries (outward normal ``n = sign e_a``, ``a`` the normal axis):

- normal velocity:     du_a/dn = -sign * sum_t du_t/dx_t   (divergence free)
- tangential velocity: du_t/dn = g_t / mu - sign * du_a/dx_t   (TRACTION)
                       du_t/dn = g_t / mu                      (PSEUDO_TRACTION)
- pressure:            p = -sign * g_a + 2 mu du_a/dx_a        (TRACTION)
                       p = -sign * g_a                         (PSEUDO_TRACTION)

Derivatives of the velocity are taken from the bound velocity field; when
no field is bound they are zero.
"""

import logging
from typing import Sequence

import numpy as np

from amr import BoundaryBox, Box, Patch

from fv.core.helpers import equal_eps

from .bc_coefs import RobinBcCoefStrategy, RobinCoefficients, StokesBcCoefStrategy
from .datastructures import StokesSpecifications, TractionBcType
from .errors import ConfigurationError

log = logging.getLogger(__name__)


def _outward_sign(bdry_box: BoundaryBox) -> float:
    return -1.0 if bdry_box.is_lower else 1.0


def tangential_divergence(patch: Patch, u_idx: int, cells: Box, axis: int) -> np.ndarray:
    """sum_t du_t/dx_t over the axes ``t != axis`` in ``cells``; zeros if ``u_idx`` is unbound."""
    out = np.zeros(cells.shape)
    if u_idx < 0:
        return out
    u_data = patch.get_patch_data(u_idx)
    for t in range(cells.dim):
        if t == axis:
            continue
        out += np.diff(u_data.view(t, cells.face_box(t)), axis=t) / patch.geometry.dx[t]
    return out


def boundary_tangential_derivative(patch: Patch, u_idx: int, coef_box: Box, axis: int, t: int) -> np.ndarray:
    """du_axis/dx_t along the boundary faces ``coef_box``; zeros if ``u_idx`` is unbound."""
    if u_idx < 0 or coef_box.shape[t] < 2:
        return np.zeros(coef_box.shape)
    faces = patch.get_patch_data(u_idx).view(axis, coef_box)
    return np.gradient(faces, patch.geometry.dx[t], axis=t)


class _StaggeredBcCoef(StokesBcCoefStrategy):
    """Common handling of the wrapped per-component velocity strategies."""

    def __init__(self, u_bc_coefs: Sequence[RobinBcCoefStrategy], problem_coefs: StokesSpecifications = None):
        super().__init__(problem_coefs)
        self.u_bc_coefs = list(u_bc_coefs)

    def set_physical_bc_coefs(self, u_bc_coefs: Sequence[RobinBcCoefStrategy]):
        self.u_bc_coefs = list(u_bc_coefs)

    def _user_coefs(self, comp: int, patch: Patch, bdry_box: BoundaryBox, fill_time: float) -> RobinCoefficients:
        if len(self.u_bc_coefs) != patch.box.dim:
            raise ConfigurationError(
                f"{type(self).__name__}: expected {patch.box.dim} velocity strategies, got {len(self.u_bc_coefs)}"
            )
        strategy = self.u_bc_coefs[comp]
        extended = strategy.extended_interface()
        if extended is None:
            coefs = strategy.set_bc_coefs(patch, bdry_box, fill_time)
        else:
            # The caller's flag is restored after evaluation
            previous = extended.homogeneous_bc
            extended.set_homogeneous_bc(self.homogeneous_bc)
            try:
                coefs = strategy.set_bc_coefs(patch, bdry_box, fill_time)
            finally:
                extended.set_homogeneous_bc(previous)
        gamma = np.zeros_like(coefs.gamma) if self.homogeneous_bc else np.array(coefs.gamma, dtype=np.float64)
        return RobinCoefficients(coefs.alpha, coefs.beta, gamma)


class StaggeredVelocityBcCoef(_StaggeredBcCoef):
    """Velocity condition for component ``comp``.

    Dirichlet user conditions pass through. Traction user conditions become
    Neumann conditions on the velocity component.
    """

    def __init__(self, comp: int, u_bc_coefs: Sequence[RobinBcCoefStrategy], problem_coefs: StokesSpecifications = None):
        super().__init__(u_bc_coefs, problem_coefs)
        self.comp = comp

    def set_bc_coefs(self, patch: Patch, bdry_box: BoundaryBox, fill_time: float) -> RobinCoefficients:
        user = self._user_coefs(self.comp, patch, bdry_box, fill_time)
        dirichlet = equal_eps(user.alpha, 1.0)
        if np.all(dirichlet):
            return user

        axis = bdry_box.normal_axis
        sign = _outward_sign(bdry_box)
        coef_box = bdry_box.bc_coef_box(patch.box)
        u_idx = self.target_velocity_patch_data_index

        if self.comp == axis:
            cells = bdry_box.interior_cell_box(patch.box)
            traction_gamma = -sign * tangential_divergence(patch, u_idx, cells, axis)
        else:
            traction_gamma = user.gamma / self.problem_coefs.mu
            if self.get_traction_bc_type() is TractionBcType.TRACTION:
                traction_gamma = traction_gamma - sign * boundary_tangential_derivative(
                    patch, u_idx, coef_box, axis, self.comp
                )

        return RobinCoefficients(
            alpha=np.where(dirichlet, 1.0, 0.0),
            beta=np.where(dirichlet, 0.0, 1.0),
            gamma=np.where(dirichlet, user.gamma, traction_gamma),
        )


class StaggeredPressureBcCoef(_StaggeredBcCoef):
    """Pressure condition implied by the normal velocity conditions.

    Homogeneous Neumann where the normal velocity is prescribed, Dirichlet
    from the normal traction elsewhere.
    """

    def set_bc_coefs(self, patch: Patch, bdry_box: BoundaryBox, fill_time: float) -> RobinCoefficients:
        axis = bdry_box.normal_axis
        user = self._user_coefs(axis, patch, bdry_box, fill_time)
        dirichlet_velocity = equal_eps(user.alpha, 1.0)

        sign = _outward_sign(bdry_box)
        p_value = -sign * user.gamma
        if self.get_traction_bc_type() is TractionBcType.TRACTION and not np.all(dirichlet_velocity):
            cells = bdry_box.interior_cell_box(patch.box)
            du_n_dn = -tangential_divergence(patch, self.target_velocity_patch_data_index, cells, axis)
            p_value = p_value + 2.0 * self.problem_coefs.mu * du_n_dn

        return RobinCoefficients(
            alpha=np.where(dirichlet_velocity, 0.0, 1.0),
            beta=np.where(dirichlet_velocity, 1.0, 0.0),
            gamma=np.where(dirichlet_velocity, 0.0, p_value),
        )

"""Enforcement of normal velocity boundary conditions on the physical domain boundary.

The helper sweeps the boundary faces of every locally owned patch that
touches the physical boundary and overwrites the normal velocity on the
faces where the velocity condition is Dirichlet. Faces with Neumann
(traction) conditions are left untouched, and pressure data is never
written.
"""

import logging
from contextlib import contextmanager
from typing import Dict, List, Optional, Sequence

import numpy as np

from amr import BoundaryBox, PatchHierarchy, compute_physical_codim1_boxes

from fv.core.helpers import equal_eps

from .bc_coefs import RobinBcCoefStrategy
from .errors import ConfigurationError, InvariantViolation

log = logging.getLogger(__name__)


class StaggeredStokesPhysicalBoundaryHelper:
    """Physical boundary utilities for staggered-grid Stokes solvers."""

    def __init__(self, hierarchy: Optional[PatchHierarchy] = None):
        self._hierarchy = None
        self._physical_codim1_boxes: Optional[List[Dict[int, List[BoundaryBox]]]] = None
        if hierarchy is not None:
            self.cache_bc_coef_data(hierarchy)

    # =========================================================================
    # Hierarchy and boundary box cache
    # =========================================================================

    @property
    def hierarchy(self) -> Optional[PatchHierarchy]:
        return self._hierarchy

    def set_hierarchy(self, hierarchy: PatchHierarchy):
        self.cache_bc_coef_data(hierarchy)

    def cache_bc_coef_data(self, hierarchy: PatchHierarchy):
        """Compute and store the physical boundary boxes of every patch of ``hierarchy``."""
        self._hierarchy = hierarchy
        self._physical_codim1_boxes = compute_physical_codim1_boxes(hierarchy)
        log.debug(f"Cached physical boundary boxes for {hierarchy.number_of_levels} level(s)")

    def clear_bc_coef_data(self):
        self._hierarchy = None
        self._physical_codim1_boxes = None

    # =========================================================================
    # Normal velocity enforcement
    # =========================================================================

    def enforce_normal_velocity_bc(
        self,
        u_data_idx: int,
        p_data_idx: int,
        u_bc_coefs: Sequence[RobinBcCoefStrategy],
        fill_time: float,
        homogeneous_bc: bool,
        coarsest_ln: int = -1,
        finest_ln: int = -1,
    ):
        """Set the normal velocity on Dirichlet boundary faces to the prescribed value.

        Parameters
        ----------
        u_data_idx : int
            Side-centered velocity data index (modified in place).
        p_data_idx : int
            Cell-centered pressure data index, bound to Stokes strategies only.
        u_bc_coefs : sequence of RobinBcCoefStrategy
            One strategy per velocity component.
        fill_time : float
            Time at which the coefficients are evaluated.
        homogeneous_bc : bool
            Whether inhomogeneous boundary data is dropped.
        coarsest_ln, finest_ln : int, optional
            Level range; ``-1`` selects the coarsest/finest level of the hierarchy.

        Raises
        ------
        ConfigurationError
            If the number of strategies differs from the dimension or no
            hierarchy is set.
        InvariantViolation
            If a boundary point is neither pure Dirichlet nor pure Neumann.
        """
        if self._hierarchy is None or self._physical_codim1_boxes is None:
            raise ConfigurationError(
                "StaggeredStokesPhysicalBoundaryHelper::enforce_normal_velocity_bc(): no hierarchy set"
            )
        if len(u_bc_coefs) != self._hierarchy.dim:
            raise ConfigurationError(
                "StaggeredStokesPhysicalBoundaryHelper::enforce_normal_velocity_bc(): "
                f"expected {self._hierarchy.dim} velocity strategies, got {len(u_bc_coefs)}"
            )

        with self.bound_bc_coef_objects(u_bc_coefs, None, u_data_idx, p_data_idx, homogeneous_bc):
            for ln in self._hierarchy.level_range(coarsest_ln, finest_ln):
                for patch in self._hierarchy.get_patch_level(ln):
                    if not patch.geometry.touches_regular_boundary:
                        continue
                    u_data = patch.get_patch_data(u_data_idx)
                    for bdry_box in self._physical_codim1_boxes[ln][patch.patch_id]:
                        axis = bdry_box.normal_axis
                        strategy = u_bc_coefs[axis]
                        alpha, beta, gamma = strategy.set_bc_coefs(patch, bdry_box, fill_time)
                        if homogeneous_bc and strategy.extended_interface() is None:
                            gamma = np.zeros_like(gamma)

                        is_dirichlet = equal_eps(alpha, 1.0)
                        valid = equal_eps(alpha + beta, 1.0) & (is_dirichlet | equal_eps(beta, 1.0))
                        if not np.all(valid):
                            raise InvariantViolation(
                                "StaggeredStokesPhysicalBoundaryHelper::enforce_normal_velocity_bc(): "
                                f"boundary location {bdry_box.location_index} on patch {patch.patch_id} "
                                f"of level {ln} is neither pure Dirichlet nor pure Neumann"
                            )
                        coef_box = bdry_box.bc_coef_box(patch.box)
                        u_data.view(axis, coef_box)[is_dirichlet] = gamma[is_dirichlet]

    # =========================================================================
    # Strategy binding
    # =========================================================================

    @staticmethod
    def setup_bc_coef_objects(
        u_bc_coefs: Sequence[RobinBcCoefStrategy],
        p_bc_coef: Optional[RobinBcCoefStrategy],
        u_target_data_idx: int,
        p_target_data_idx: int,
        homogeneous_bc: bool,
    ):
        """Prepare the strategies for a boundary fill of the velocity and pressure fields."""
        for bc_coef in [*u_bc_coefs, p_bc_coef]:
            if bc_coef is None:
                continue
            extended = bc_coef.extended_interface()
            if extended is not None:
                extended.clear_target_patch_data_index()
                extended.set_homogeneous_bc(homogeneous_bc)
            stokes = bc_coef.stokes_interface()
            if stokes is not None:
                stokes.bind(u_target_data_idx, p_target_data_idx)

    @staticmethod
    def reset_bc_coef_objects(u_bc_coefs: Sequence[RobinBcCoefStrategy], p_bc_coef: Optional[RobinBcCoefStrategy]):
        """Unbind the velocity and pressure fields from Stokes-capable strategies."""
        for bc_coef in [*u_bc_coefs, p_bc_coef]:
            if bc_coef is None:
                continue
            stokes = bc_coef.stokes_interface()
            if stokes is not None:
                stokes.unbind()

    @classmethod
    @contextmanager
    def bound_bc_coef_objects(
        cls,
        u_bc_coefs: Sequence[RobinBcCoefStrategy],
        p_bc_coef: Optional[RobinBcCoefStrategy],
        u_target_data_idx: int,
        p_target_data_idx: int,
        homogeneous_bc: bool,
    ):
        """Strategies set up for the duration of the block and reset on exit."""
        cls.setup_bc_coef_objects(u_bc_coefs, p_bc_coef, u_target_data_idx, p_target_data_idx, homogeneous_bc)
        try:
            yield
        finally:
            cls.reset_bc_coef_objects(u_bc_coefs, p_bc_coef)

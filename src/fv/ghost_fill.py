"""Ghost cell filling for cell-centered scalar fields on the patch hierarchy.

For every level in range, ghost cells are filled in three passes:
1. coarse-fine interface: piecewise constant values from the next coarser level
2. same level: copies from neighboring patches
3. physical boundary: Robin conditions from a boundary coefficient strategy,
   or linear extrapolation when no strategy is given

Corner ghost cells are not filled at physical boundaries.
"""

import logging

from amr import PatchHierarchy, compute_physical_codim1_boxes

from .core.helpers import linear_extrapolation, robin_ghost_values

log = logging.getLogger(__name__)


class GhostCellFill:
    """Fills the first ghost layer of one cell-centered patch data index."""

    def __init__(self, data_idx: int, bc_coef=None, homogeneous_bc: bool = False):
        self.data_idx = data_idx
        self.bc_coef = bc_coef
        self.homogeneous_bc = homogeneous_bc
        self.hierarchy = None
        self.levels = range(0)
        self._codim1_boxes = None
        self.is_initialized = False

    def set_homogeneous_bc(self, homogeneous_bc: bool):
        self.homogeneous_bc = homogeneous_bc

    def initialize_operator_state(self, hierarchy: PatchHierarchy, coarsest_ln: int = -1, finest_ln: int = -1):
        if self.is_initialized:
            self.deallocate_operator_state()
        self.hierarchy = hierarchy
        self.levels = hierarchy.level_range(coarsest_ln, finest_ln)
        self._codim1_boxes = compute_physical_codim1_boxes(hierarchy)
        self.is_initialized = True

    def deallocate_operator_state(self):
        self.hierarchy = None
        self._codim1_boxes = None
        self.is_initialized = False

    def fill_data(self, fill_time: float):
        if not self.is_initialized:
            raise RuntimeError("GhostCellFill::fill_data(): operator state is not initialized")
        for ln in self.levels:
            level = self.hierarchy.get_patch_level(ln)
            if ln - 1 in self.levels:
                self._fill_from_coarser(ln)
            self._fill_from_same_level(level)
            self._fill_physical_boundary(ln, fill_time)

    def _fill_from_coarser(self, ln: int):
        level = self.hierarchy.get_patch_level(ln)
        coarser = self.hierarchy.get_patch_level(ln - 1)
        ratio = level.ratio // coarser.ratio
        for patch in level:
            data = patch.get_patch_data(self.data_idx)
            for index in data.ghost_box.indices():
                if patch.box.contains(index) or not level.domain_box.contains(index):
                    continue
                coarse_index = tuple(i // ratio for i in index)
                for coarse_patch in coarser.patches:
                    if coarse_patch.box.contains(coarse_index):
                        data[index] = coarse_patch.get_patch_data(self.data_idx)[coarse_index]
                        break

    def _fill_from_same_level(self, level):
        for patch in level:
            data = patch.get_patch_data(self.data_idx)
            for other in level.patches:
                if other is patch:
                    continue
                overlap = data.ghost_box.intersect(other.box)
                if overlap is not None:
                    data.view(overlap)[...] = other.get_patch_data(self.data_idx).view(overlap)

    def _fill_physical_boundary(self, ln: int, fill_time: float):
        extended = self.bc_coef.extended_interface() if self.bc_coef is not None else None
        if extended is not None:
            extended.set_target_patch_data_index(self.data_idx)
            extended.set_homogeneous_bc(self.homogeneous_bc)
        try:
            for patch in self.hierarchy.get_patch_level(ln):
                if not patch.geometry.touches_regular_boundary:
                    continue
                data = patch.get_patch_data(self.data_idx)
                for bdry_box in self._codim1_boxes[ln][patch.patch_id]:
                    axis = bdry_box.normal_axis
                    coef_box = bdry_box.bc_coef_box(patch.box)
                    ghost_box = coef_box.shift(axis, -1) if bdry_box.is_lower else coef_box
                    interior_box = bdry_box.interior_cell_box(patch.box)
                    interior = data.view(interior_box)

                    if self.bc_coef is None:
                        inward = interior_box.shift(axis, 1 if bdry_box.is_lower else -1)
                        if patch.box.contains_box(inward):
                            data.view(ghost_box)[...] = linear_extrapolation(interior, data.view(inward))
                        else:
                            data.view(ghost_box)[...] = interior
                        continue

                    alpha, beta, gamma = self.bc_coef.set_bc_coefs(patch, bdry_box, fill_time)
                    if self.homogeneous_bc and extended is None:
                        gamma = 0.0 * gamma
                    data.view(ghost_box)[...] = robin_ghost_values(alpha, beta, gamma, interior, patch.geometry.dx[axis])
        finally:
            if extended is not None:
                extended.clear_target_patch_data_index()

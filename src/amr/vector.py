"""Hierarchy vectors and the data operations acting on them."""

from typing import Iterator, List, Optional, Tuple

import numpy as np

from .box import Box
from .hierarchy import Patch, PatchHierarchy
from .patch_data import CellData, SideData
from .variables import Variable


class HierarchyDataOps:
    """Pointwise operations on patch data indices over a range of levels.

    Operations act on the interior values of locally owned patches. Cell data
    is weighted by cell volume in reductions; cells covered by a finer level
    are excluded from the weighted mean.
    """

    def __init__(self, hierarchy: PatchHierarchy, coarsest_ln: int = -1, finest_ln: int = -1):
        self.hierarchy = hierarchy
        self.levels = hierarchy.level_range(coarsest_ln, finest_ln)

    def _patches(self) -> Iterator[Patch]:
        for ln in self.levels:
            yield from self.hierarchy.get_patch_level(ln)

    @staticmethod
    def _interiors(data) -> List[np.ndarray]:
        if isinstance(data, SideData):
            return [data.interior(axis) for axis in range(data.dim)]
        return [data.interior]

    def _views(self, patch: Patch, *indices) -> List[Tuple[np.ndarray, ...]]:
        per_index = [self._interiors(patch.get_patch_data(idx)) for idx in indices]
        return list(zip(*per_index))

    def set_to_scalar(self, dst_idx: int, value: float):
        for patch in self._patches():
            for (dst,) in self._views(patch, dst_idx):
                dst[...] = value

    def copy_data(self, dst_idx: int, src_idx: int):
        for patch in self._patches():
            for dst, src in self._views(patch, dst_idx, src_idx):
                dst[...] = src

    def scale(self, dst_idx: int, alpha: float, src_idx: int):
        for patch in self._patches():
            for dst, src in self._views(patch, dst_idx, src_idx):
                np.multiply(src, alpha, out=dst)

    def linear_sum(self, dst_idx: int, alpha: float, src1_idx: int, beta: float, src2_idx: int):
        for patch in self._patches():
            for dst, src1, src2 in self._views(patch, dst_idx, src1_idx, src2_idx):
                dst[...] = alpha * src1 + beta * src2

    def axpy(self, dst_idx: int, alpha: float, x_idx: int, y_idx: int):
        """dst := alpha * x + y"""
        self.linear_sum(dst_idx, alpha, x_idx, 1.0, y_idx)

    def dot(self, idx1: int, idx2: int) -> float:
        total = 0.0
        for patch in self._patches():
            for a, b in self._views(patch, idx1, idx2):
                total += float(np.sum(a * b))
        return total

    def max_norm(self, idx: int) -> float:
        norm = 0.0
        for patch in self._patches():
            for (a,) in self._views(patch, idx):
                if a.size:
                    norm = max(norm, float(np.max(np.abs(a))))
        return norm

    def uncovered_mask(self, patch: Patch) -> np.ndarray:
        """Cells of ``patch`` that are not covered by the next finer level in range."""
        mask = np.ones(patch.box.shape, dtype=bool)
        ln = patch.level_number
        if ln + 1 in self.levels:
            level = self.hierarchy.get_patch_level(ln)
            finer = self.hierarchy.get_patch_level(ln + 1)
            ratio = finer.ratio // level.ratio
            for box in finer.boxes:
                overlap = box.coarsen(ratio).intersect(patch.box)
                if overlap is not None:
                    mask[overlap.slices(patch.box.lower)] = False
        return mask

    def weighted_mean(self, idx: int) -> float:
        """Volume-weighted mean of cell data over the composite grid."""
        total = 0.0
        volume = 0.0
        for patch in self._patches():
            data = patch.get_patch_data(idx)
            if not isinstance(data, CellData):
                raise TypeError("weighted_mean() requires cell-centered data")
            dv = float(np.prod(patch.geometry.dx))
            mask = self.uncovered_mask(patch)
            total += float(np.sum(data.interior[mask])) * dv
            volume += float(np.count_nonzero(mask)) * dv
        return total / volume if volume > 0.0 else 0.0

    def add_scalar(self, dst_idx: int, value: float):
        for patch in self._patches():
            for (dst,) in self._views(patch, dst_idx):
                dst += value


class HierarchyVector:
    """A vector made of one or more (variable, data index) components over a level range."""

    def __init__(self, name: str, hierarchy: PatchHierarchy, coarsest_ln: int, finest_ln: int):
        self.name = name
        self.hierarchy = hierarchy
        self.coarsest_ln = coarsest_ln
        self.finest_ln = finest_ln
        self._components: List[Tuple[Variable, int]] = []

    def add_component(self, variable: Variable, data_idx: int) -> "HierarchyVector":
        self._components.append((variable, data_idx))
        return self

    @property
    def num_components(self) -> int:
        return len(self._components)

    def component_index(self, i: int) -> int:
        return self._components[i][1]

    def component_variable(self, i: int) -> Variable:
        return self._components[i][0]

    def subvector(self, i: int, name: Optional[str] = None) -> "HierarchyVector":
        variable, data_idx = self._components[i]
        vec = HierarchyVector(name or f"{self.name}[{i}]", self.hierarchy, self.coarsest_ln, self.finest_ln)
        return vec.add_component(variable, data_idx)

    def data_ops(self) -> HierarchyDataOps:
        return HierarchyDataOps(self.hierarchy, self.coarsest_ln, self.finest_ln)

    def allocate(self):
        """Allocate storage for every component on every level in range (if not yet allocated)."""
        for ln in self.hierarchy.level_range(self.coarsest_ln, self.finest_ln):
            level = self.hierarchy.get_patch_level(ln)
            for _, idx in self._components:
                if not level.check_allocated(idx):
                    level.allocate_patch_data(idx)

    def set_to_scalar(self, value: float):
        ops = self.data_ops()
        for _, idx in self._components:
            ops.set_to_scalar(idx, value)

    def max_norm(self) -> float:
        ops = self.data_ops()
        return max((ops.max_norm(idx) for _, idx in self._components), default=0.0)

    def __repr__(self):
        comps = ", ".join(f"{v.name}@{i}" for v, i in self._components)
        return f"HierarchyVector({self.name!r}, levels {self.coarsest_ln}..{self.finest_ln}, [{comps}])"


def level_box_data(hierarchy: PatchHierarchy, ln: int, idx: int, axis: Optional[int] = None) -> np.ndarray:
    """Gather the interior values of one level into a single array over the level's domain box.

    For side data, ``axis`` selects the face component and the array spans the
    domain's faces normal to ``axis``. Every patch of the level contributes,
    owned or not, since the hierarchy holds the data of all patches; entries
    not covered by any patch are zero.
    """
    level = hierarchy.get_patch_level(ln)
    domain: Box = level.domain_box if axis is None else level.domain_box.face_box(axis)
    out = np.zeros(domain.shape)
    for patch in level.patches:
        data = patch.get_patch_data(idx)
        if axis is None:
            out[patch.box.slices(domain.lower)] = data.interior
        else:
            face_box = patch.box.face_box(axis)
            out[face_box.slices(domain.lower)] = data.view(axis, face_box)
    return out


def scatter_level_box_data(hierarchy: PatchHierarchy, ln: int, idx: int, values: np.ndarray, axis: Optional[int] = None):
    """Inverse of :func:`level_box_data`: write a domain-wide array back into all patches of the level."""
    level = hierarchy.get_patch_level(ln)
    domain: Box = level.domain_box if axis is None else level.domain_box.face_box(axis)
    for patch in level.patches:
        data = patch.get_patch_data(idx)
        if axis is None:
            data.interior[...] = values[patch.box.slices(domain.lower)]
        else:
            face_box = patch.box.face_box(axis)
            data.view(axis, face_box)[...] = values[face_box.slices(domain.lower)]

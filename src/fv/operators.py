"""Discrete divergence and gradient on the staggered (MAC) patch hierarchy.

Velocity components live on the faces normal to their axis (SideData) and
scalars at cell centers (CellData):

    (D u)_i = sum_a (u_a[i + e_a] - u_a[i]) / dx_a
    (G p)_a[i] = (p[i] - p[i - e_a]) / dx_a

With ``cf_bdry_synch`` the face values of a coarse level that lie under a
finer level are replaced by the average of the coinciding fine faces, so
coarse and fine fluxes agree at coarse-fine interfaces.
"""

import logging
from typing import Optional

import numpy as np

from amr import Box, PatchHierarchy, Patch, SideData

log = logging.getLogger(__name__)


def _average_tangential(faces: np.ndarray, axis: int, ratio: int) -> np.ndarray:
    """Average groups of ``ratio`` fine faces along every axis except ``axis``."""
    out = faces
    for t in range(faces.ndim):
        if t == axis:
            continue
        shape = out.shape
        out = out.reshape(shape[:t] + (shape[t] // ratio, ratio) + shape[t + 1:]).mean(axis=t + 1)
    return out


def coarsen_fine_faces(coarse_patch: Patch, fine_patch: Patch, fine_data: SideData, axis: int, ratio: int):
    """Face box (coarse index space) covered by ``fine_patch`` and the averaged fine values on it.

    Returns ``(None, None)`` when the patches do not overlap.
    """
    region = fine_patch.box.coarsen(ratio).intersect(coarse_patch.box)
    if region is None:
        return None, None
    fine_faces = fine_data.view(axis, region.refine(ratio).face_box(axis))
    along = [slice(None)] * fine_faces.ndim
    along[axis] = slice(None, None, ratio)
    return region.face_box(axis), _average_tangential(fine_faces[tuple(along)], axis, ratio)


class HierarchyMathOps:
    """Divergence and gradient over a range of levels of a patch hierarchy."""

    def __init__(self, object_name: str, hierarchy: PatchHierarchy, coarsest_ln: int = -1, finest_ln: int = -1):
        self.object_name = object_name
        self.hierarchy = hierarchy
        self.levels = hierarchy.level_range(coarsest_ln, finest_ln)

    def _finer_level(self, ln: int):
        if ln + 1 in self.levels:
            return self.hierarchy.get_patch_level(ln + 1)
        return None

    def _synchronized_faces(self, patch: Patch, src_idx: int, axis: int, cf_bdry_synch: bool) -> np.ndarray:
        data = patch.get_patch_data(src_idx)
        faces = data.interior(axis)
        finer = self._finer_level(patch.level_number) if cf_bdry_synch else None
        if finer is None:
            return faces
        faces = faces.copy()
        ratio = finer.ratio // self.hierarchy.get_patch_level(patch.level_number).ratio
        patch_faces: Box = patch.box.face_box(axis)
        for fine_patch in finer.patches:
            face_box, values = coarsen_fine_faces(patch, fine_patch, fine_patch.get_patch_data(src_idx), axis, ratio)
            if face_box is not None:
                faces[face_box.slices(patch_faces.lower)] = values
        return faces

    def div(
        self,
        dst_idx: int,
        alpha: float,
        src_idx: int,
        cf_bdry_synch: bool = True,
        beta: float = 0.0,
        src2_idx: Optional[int] = None,
    ):
        """dst := alpha * D src + beta * src2"""
        for ln in self.levels:
            for patch in self.hierarchy.get_patch_level(ln):
                dx = patch.geometry.dx
                div = np.zeros(patch.box.shape)
                for axis in range(self.hierarchy.dim):
                    faces = self._synchronized_faces(patch, src_idx, axis, cf_bdry_synch)
                    div += np.diff(faces, axis=axis) / dx[axis]
                result = alpha * div
                if src2_idx is not None and beta != 0.0:
                    result += beta * patch.get_patch_data(src2_idx).interior
                patch.get_patch_data(dst_idx).interior[...] = result

    def grad(
        self,
        dst_idx: int,
        alpha: float,
        src_idx: int,
        fill_op=None,
        fill_time: float = 0.0,
        cf_bdry_synch: bool = True,
        beta: float = 0.0,
        src2_idx: Optional[int] = None,
    ):
        """dst := alpha * G src + beta * src2

        ``src`` needs one layer of ghost cells; they are filled by ``fill_op``
        (if given) before the gradient is evaluated.
        """
        if fill_op is not None:
            fill_op.fill_data(fill_time)

        for ln in self.levels:
            for patch in self.hierarchy.get_patch_level(ln):
                dx = patch.geometry.dx
                src = patch.get_patch_data(src_idx)
                dst = patch.get_patch_data(dst_idx)
                for axis in range(self.hierarchy.dim):
                    cells = src.view(patch.box.grow(1))
                    tangential = tuple(slice(None) if k == axis else slice(1, -1) for k in range(cells.ndim))
                    grad = np.diff(cells[tangential], axis=axis) / dx[axis]
                    result = alpha * grad
                    if src2_idx is not None and beta != 0.0:
                        result += beta * patch.get_patch_data(src2_idx).interior(axis)
                    dst.interior(axis)[...] = result

        if cf_bdry_synch:
            self.synchronize_side_data(dst_idx)

    def synchronize_side_data(self, idx: int):
        """Overwrite coarse faces under finer levels with the averaged fine faces."""
        for ln in reversed(self.levels):
            finer = self._finer_level(ln)
            if finer is None:
                continue
            level = self.hierarchy.get_patch_level(ln)
            ratio = finer.ratio // level.ratio
            for patch in level:
                data = patch.get_patch_data(idx)
                for fine_patch in finer.patches:
                    for axis in range(self.hierarchy.dim):
                        face_box, values = coarsen_fine_faces(
                            patch, fine_patch, fine_patch.get_patch_data(idx), axis, ratio
                        )
                        if face_box is not None:
                            data.view(axis, face_box)[...] = values
        log.debug(f"{self.object_name}: synchronized side data {idx} across levels {list(self.levels)}")

"""Patch data containers for cell-centered and side-centered (MAC) fields.

Both containers store their values including a layer of ghost cells. Indices
passed to the accessors are global cell indices of the owning level, not
array offsets.

Side data convention: the array for ``axis`` holds the faces normal to
``axis``. Face ``i`` along ``axis`` is the lower face of cell ``i`` (and the
upper face of cell ``i - 1``).
"""

from typing import List, Optional

import numpy as np

from .box import Box

LOWER = 0
UPPER = 1


class CellData:
    """Cell-centered scalar data on one patch."""

    def __init__(self, box: Box, ghost_width: int = 0):
        self.box = box
        self.ghost_width = ghost_width
        self.ghost_box = box.grow(ghost_width)
        self.array = np.zeros(self.ghost_box.shape, dtype=np.float64)

    def view(self, box: Optional[Box] = None) -> np.ndarray:
        """Writable view of the values on ``box`` (defaults to the patch interior)."""
        if box is None:
            box = self.box
        if not self.ghost_box.contains_box(box):
            raise IndexError(f"Box {box} outside of data box {self.ghost_box}")
        return self.array[box.slices(self.ghost_box.lower)]

    @property
    def interior(self) -> np.ndarray:
        return self.view(self.box)

    def __getitem__(self, index):
        return self.array[tuple(i - o for i, o in zip(index, self.ghost_box.lower))]

    def __setitem__(self, index, value):
        self.array[tuple(i - o for i, o in zip(index, self.ghost_box.lower))] = value

    def fill(self, value: float, box: Optional[Box] = None):
        if box is None:
            self.array.fill(value)
        else:
            self.view(box)[...] = value

    def copy_from(self, other: "CellData", box: Optional[Box] = None):
        if box is None:
            box = self.box
        self.view(box)[...] = other.view(box)


class SideData:
    """Side-centered (face-normal) vector data on one patch."""

    def __init__(self, box: Box, ghost_width: int = 0):
        self.box = box
        self.ghost_width = ghost_width
        self.ghost_box = box.grow(ghost_width)
        self.arrays: List[np.ndarray] = [
            np.zeros(self.ghost_box.face_box(axis).shape, dtype=np.float64)
            for axis in range(box.dim)
        ]

    @property
    def dim(self) -> int:
        return self.box.dim

    def face_box(self, axis: int, box: Optional[Box] = None) -> Box:
        """Face indices normal to ``axis`` bounding the cells of ``box``."""
        if box is None:
            box = self.box
        return box.face_box(axis)

    def view(self, axis: int, face_box: Optional[Box] = None) -> np.ndarray:
        """Writable view of the faces normal to ``axis`` whose indices lie in ``face_box``."""
        if face_box is None:
            face_box = self.face_box(axis)
        if not self.ghost_box.face_box(axis).contains_box(face_box):
            raise IndexError(f"Face box {face_box} outside of data box along axis {axis}")
        return self.arrays[axis][face_box.slices(self.ghost_box.lower)]

    def interior(self, axis: int) -> np.ndarray:
        return self.view(axis, self.face_box(axis))

    def get(self, index, axis: int, side: int = LOWER) -> float:
        face = list(index)
        face[axis] += side
        return self.arrays[axis][tuple(i - o for i, o in zip(face, self.ghost_box.lower))]

    def set(self, index, axis: int, value: float, side: int = LOWER):
        face = list(index)
        face[axis] += side
        self.arrays[axis][tuple(i - o for i, o in zip(face, self.ghost_box.lower))] = value

    def fill(self, value: float):
        for array in self.arrays:
            array.fill(value)

    def copy_from(self, other: "SideData"):
        for axis in range(self.dim):
            self.interior(axis)[...] = other.interior(axis)

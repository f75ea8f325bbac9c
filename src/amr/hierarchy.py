"""Block-structured patch hierarchy.

Structure
---------
PatchHierarchy
└── PatchLevel (0 = coarsest)
    └── Patch (disjoint boxes in the level's index space)
        └── patch data, one entry per allocated data index

Level ``ln`` is refined by an integer ratio with respect to level 0 and is
nested in the coarser levels. Each patch has an owner (worker rank); iterating
over a level yields only the patches owned by the hierarchy's rank.
"""

import itertools
import logging
from dataclasses import dataclass
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .box import Box
from .variables import VariableDatabase

log = logging.getLogger(__name__)


@dataclass
class PatchGeometry:
    """Cartesian geometry of one patch."""

    dx: Tuple[float, ...]
    x_origin: Tuple[float, ...]  # physical coordinate of the lower face of the level domain
    index_origin: Tuple[int, ...]  # lower cell index of the level domain
    touches_boundary: Tuple[Tuple[bool, bool], ...]  # (lower, upper) per axis

    @property
    def touches_regular_boundary(self) -> bool:
        return any(lower or upper for lower, upper in self.touches_boundary)

    def cell_centers(self, box: Box) -> List[np.ndarray]:
        """Meshgrid (``ij`` indexing) of the cell centers of ``box``."""
        axes = [
            self.x_origin[d] + (np.arange(box.lower[d], box.upper[d] + 1) - self.index_origin[d] + 0.5) * self.dx[d]
            for d in range(box.dim)
        ]
        return np.meshgrid(*axes, indexing="ij")

    def face_centers(self, face_box: Box, axis: int) -> List[np.ndarray]:
        """Meshgrid (``ij`` indexing) of the centers of the faces normal to ``axis`` in ``face_box``."""
        axes = []
        for d in range(face_box.dim):
            idx = np.arange(face_box.lower[d], face_box.upper[d] + 1) - self.index_origin[d]
            offset = 0.0 if d == axis else 0.5
            axes.append(self.x_origin[d] + (idx + offset) * self.dx[d])
        return np.meshgrid(*axes, indexing="ij")


class Patch:
    """A rectangular block of cells on one level, with its patch data."""

    def __init__(self, patch_id: int, box: Box, level_number: int, geometry: PatchGeometry, owner: int = 0):
        self.patch_id = patch_id
        self.box = box
        self.level_number = level_number
        self.geometry = geometry
        self.owner = owner
        self._data: Dict[int, object] = {}

    def check_allocated(self, idx: int) -> bool:
        return idx in self._data

    def allocate_patch_data(self, idx: int, variable_db: VariableDatabase):
        variable = variable_db.get_variable_for_index(idx)
        self._data[idx] = variable.make_patch_data(self.box, variable_db.ghost_width(idx))

    def deallocate_patch_data(self, idx: int):
        self._data.pop(idx, None)

    def get_patch_data(self, idx: int):
        try:
            return self._data[idx]
        except KeyError:
            raise KeyError(f"Patch data {idx} not allocated on patch {self.patch_id} of level {self.level_number}")

    def __repr__(self):
        return f"Patch(id={self.patch_id}, level={self.level_number}, box={self.box}, owner={self.owner})"


class PatchLevel:
    """All patches of one refinement level."""

    def __init__(
        self,
        level_number: int,
        boxes: Sequence[Box],
        ratio: int,
        hierarchy: "PatchHierarchy",
        owners: Optional[Sequence[int]] = None,
    ):
        self.level_number = level_number
        self.ratio = ratio
        self.hierarchy = hierarchy
        self.domain_box = hierarchy.domain_box.refine(ratio)
        self.dx = tuple(h / ratio for h in hierarchy.dx)
        if owners is None:
            owners = [0] * len(boxes)

        self.patches: List[Patch] = []
        for patch_id, (box, owner) in enumerate(zip(boxes, owners)):
            if not self.domain_box.contains_box(box):
                raise ValueError(f"Patch box {box} lies outside the level {level_number} domain {self.domain_box}")
            touches = tuple(
                (box.lower[d] == self.domain_box.lower[d], box.upper[d] == self.domain_box.upper[d])
                for d in range(box.dim)
            )
            geometry = PatchGeometry(
                dx=self.dx,
                x_origin=hierarchy.x_lower,
                index_origin=self.domain_box.lower,
                touches_boundary=touches,
            )
            self.patches.append(Patch(patch_id, box, level_number, geometry, owner))

        for i, a in enumerate(self.patches):
            for b in self.patches[i + 1:]:
                if a.box.intersect(b.box) is not None:
                    raise ValueError(f"Patches {a.patch_id} and {b.patch_id} overlap on level {level_number}")

    def __iter__(self) -> Iterator[Patch]:
        """Iterate over the locally owned patches."""
        rank = self.hierarchy.rank
        return (patch for patch in self.patches if patch.owner == rank)

    def __len__(self):
        return len(self.patches)

    def get_patch(self, patch_id: int) -> Patch:
        return self.patches[patch_id]

    @property
    def boxes(self) -> List[Box]:
        return [patch.box for patch in self.patches]

    def covers_domain(self) -> bool:
        return sum(box.size for box in self.boxes) == self.domain_box.size

    def check_allocated(self, idx: int) -> bool:
        return all(patch.check_allocated(idx) for patch in self.patches)

    def allocate_patch_data(self, idx: int):
        for patch in self.patches:
            patch.allocate_patch_data(idx, self.hierarchy.variable_db)

    def deallocate_patch_data(self, idx: int):
        for patch in self.patches:
            patch.deallocate_patch_data(idx)


class PatchHierarchy:
    """Nested sequence of patch levels over a Cartesian domain."""

    def __init__(self, domain_box: Box, x_lower, x_upper, rank: int = 0):
        self.domain_box = domain_box
        self.x_lower = tuple(float(x) for x in x_lower)
        self.x_upper = tuple(float(x) for x in x_upper)
        self.dx = tuple((hi - lo) / n for lo, hi, n in zip(self.x_lower, self.x_upper, domain_box.shape))
        self.rank = rank
        self.variable_db = VariableDatabase()
        self.levels: List[PatchLevel] = []

    @classmethod
    def uniform(
        cls,
        n_cells: Sequence[int],
        x_lower=None,
        x_upper=None,
        patch_size: Optional[Sequence[int]] = None,
        n_workers: int = 1,
        rank: int = 0,
    ) -> "PatchHierarchy":
        """Single-level hierarchy tiling the domain with patches of ``patch_size`` cells.

        Patches are assigned to workers round-robin.
        """
        dim = len(n_cells)
        if x_lower is None:
            x_lower = (0.0,) * dim
        if x_upper is None:
            x_upper = (1.0,) * dim
        domain = Box.from_shape(tuple(n_cells))
        hierarchy = cls(domain, x_lower, x_upper, rank=rank)
        hierarchy.add_level(tile_box(domain, patch_size), ratio=1, n_workers=n_workers)
        return hierarchy

    @property
    def dim(self) -> int:
        return self.domain_box.dim

    @property
    def number_of_levels(self) -> int:
        return len(self.levels)

    @property
    def finest_level_number(self) -> int:
        return len(self.levels) - 1

    def get_patch_level(self, ln: int) -> PatchLevel:
        return self.levels[ln]

    def add_level(self, boxes: Sequence[Box], ratio: int = 2, n_workers: int = 1, owners=None) -> PatchLevel:
        """Append a level refined by ``ratio`` with respect to the current finest level.

        ``boxes`` are given in the new level's index space and must be nested in
        the current finest level.
        """
        if self.levels:
            coarser = self.levels[-1]
            total_ratio = coarser.ratio * ratio
            for box in boxes:
                if any(l % ratio or (u + 1) % ratio for l, u in zip(box.lower, box.upper)):
                    raise ValueError(f"Box {box} is not aligned with the refinement ratio {ratio}")
                covered = box.coarsen(ratio)
                overlaps = (c.intersect(covered) for c in coarser.boxes)
                if sum(o.size for o in overlaps if o is not None) != covered.size:
                    raise ValueError(f"Box {box} is not nested in level {coarser.level_number}")
        else:
            total_ratio = ratio
        if owners is None:
            owners = [i % n_workers for i in range(len(boxes))]
        level = PatchLevel(len(self.levels), boxes, total_ratio, self, owners)
        self.levels.append(level)
        log.info(f"Added level {level.level_number} with {len(boxes)} patch(es), ratio {total_ratio}")
        return level

    def level_range(self, coarsest_ln: int = -1, finest_ln: int = -1) -> range:
        """Level numbers from ``coarsest_ln`` to ``finest_ln``; ``-1`` selects the hierarchy bounds."""
        lo = 0 if coarsest_ln == -1 else coarsest_ln
        hi = self.finest_level_number if finest_ln == -1 else finest_ln
        return range(lo, hi + 1)


def tile_box(box: Box, patch_size: Optional[Sequence[int]] = None) -> List[Box]:
    """Split ``box`` into boxes of at most ``patch_size`` cells per axis."""
    if patch_size is None:
        return [box]
    ranges = []
    for d in range(box.dim):
        starts = range(box.lower[d], box.upper[d] + 1, patch_size[d])
        ranges.append([(s, min(s + patch_size[d] - 1, box.upper[d])) for s in starts])
    return [
        Box(tuple(c[0] for c in corner), tuple(c[1] for c in corner))
        for corner in itertools.product(*ranges)
    ]

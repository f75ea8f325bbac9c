"""Physical boundary boxes.

A codimension-1 boundary box is the layer of ghost cells just outside one
patch face that lies on the physical domain boundary. Its location index is
``2 * axis + side`` with ``side = 0`` for the lower and ``1`` for the upper
face, so ``location_index // 2`` is the boundary normal axis.
"""

from dataclasses import dataclass
from typing import Dict, List

from .box import Box
from .hierarchy import PatchHierarchy


@dataclass(frozen=True)
class BoundaryBox:
    box: Box
    location_index: int

    @property
    def normal_axis(self) -> int:
        return self.location_index // 2

    @property
    def is_lower(self) -> bool:
        return self.location_index % 2 == 0

    def bc_coef_box(self, patch_box: Box) -> Box:
        """Face indices of the boundary faces of ``patch_box`` covered by this box.

        Along the normal axis the single index is the patch's lower face on the
        lower side and the face past the last cell on the upper side; the
        tangential range is trimmed to the patch.
        """
        axis = self.normal_axis
        trimmed = Box(
            tuple(self.box.lower[d] if d == axis else max(self.box.lower[d], patch_box.lower[d])
                  for d in range(patch_box.dim)),
            tuple(self.box.upper[d] if d == axis else min(self.box.upper[d], patch_box.upper[d])
                  for d in range(patch_box.dim)),
        )
        return trimmed.shift(axis, 1) if self.is_lower else trimmed

    def interior_cell_box(self, patch_box: Box) -> Box:
        """Patch cells adjacent to the boundary faces of this box."""
        coef_box = self.bc_coef_box(patch_box)
        return coef_box if self.is_lower else coef_box.shift(self.normal_axis, -1)


def compute_physical_codim1_boxes(hierarchy: PatchHierarchy) -> List[Dict[int, List[BoundaryBox]]]:
    """Per-level map from patch id to the codimension-1 boundary boxes of that patch."""
    boxes_per_level = []
    for level in hierarchy.levels:
        level_boxes = {}
        for patch in level.patches:
            patch_boxes = []
            for axis, (lower, upper) in enumerate(patch.geometry.touches_boundary):
                for side, touches in enumerate((lower, upper)):
                    if not touches:
                        continue
                    lo = list(patch.box.lower)
                    hi = list(patch.box.upper)
                    if side == 0:
                        lo[axis] = hi[axis] = patch.box.lower[axis] - 1
                    else:
                        lo[axis] = hi[axis] = patch.box.upper[axis] + 1
                    patch_boxes.append(BoundaryBox(Box(tuple(lo), tuple(hi)), 2 * axis + side))
            level_boxes[patch.patch_id] = patch_boxes
        boxes_per_level.append(level_boxes)
    return boxes_per_level

"""In-memory block-structured adaptive grid hierarchy.

Hierarchy:
----------
PatchHierarchy
├── VariableDatabase (field registry: variable + context -> patch data index)
└── PatchLevel
    └── Patch (CellData / SideData per allocated index)
"""

from .box import Box
from .patch_data import CellData, SideData, LOWER, UPPER
from .variables import Variable, CellVariable, SideVariable, VariableDatabase
from .hierarchy import Patch, PatchGeometry, PatchLevel, PatchHierarchy, tile_box
from .boundary import BoundaryBox, compute_physical_codim1_boxes
from .vector import HierarchyDataOps, HierarchyVector, level_box_data, scatter_level_box_data

__all__ = [
    # Index space
    "Box",
    "BoundaryBox",
    "compute_physical_codim1_boxes",
    # Patch data
    "CellData",
    "SideData",
    "LOWER",
    "UPPER",
    # Field registry
    "Variable",
    "CellVariable",
    "SideVariable",
    "VariableDatabase",
    # Hierarchy
    "Patch",
    "PatchGeometry",
    "PatchLevel",
    "PatchHierarchy",
    "tile_box",
    # Vectors
    "HierarchyDataOps",
    "HierarchyVector",
    "level_box_data",
    "scatter_level_box_data",
]

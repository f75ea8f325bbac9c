"""Pytest configuration and fixtures for the hierarchy, operator and Stokes tests."""

import sys
from pathlib import Path

import numpy as np
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class Fields:
    """Registered and allocated fields on a hierarchy, looked up by name."""

    def __init__(self, hierarchy, ghost_width=1):
        self.hierarchy = hierarchy
        self.ghost_width = ghost_width
        self.variables = {}
        self.idx = {}

    def add(self, name, centering="cell"):
        from amr import CellVariable, SideVariable

        var = SideVariable(name) if centering == "side" else CellVariable(name)
        db = self.hierarchy.variable_db
        idx = db.register_variable_and_context(var, db.get_context("test"), self.ghost_width)
        for level in self.hierarchy.levels:
            level.allocate_patch_data(idx)
            for patch in level.patches:
                patch.get_patch_data(idx).fill(0.0)
        self.variables[name] = var
        self.idx[name] = idx
        return idx

    def vector(self, name, *names):
        from amr import HierarchyVector

        vec = HierarchyVector(name, self.hierarchy, 0, self.hierarchy.finest_level_number)
        for n in names:
            vec.add_component(self.variables[n], self.idx[n])
        return vec

    def fill_cells(self, name, func):
        for level in self.hierarchy.levels:
            for patch in level.patches:
                coords = patch.geometry.cell_centers(patch.box)
                patch.get_patch_data(self.idx[name]).interior[...] = func(*coords)

    def fill_sides(self, name, funcs):
        for level in self.hierarchy.levels:
            for patch in level.patches:
                data = patch.get_patch_data(self.idx[name])
                for axis, func in enumerate(funcs):
                    coords = patch.geometry.face_centers(patch.box.face_box(axis), axis)
                    data.interior(axis)[...] = func(*coords)


@pytest.fixture
def hierarchy_2d():
    """Unit square, 8x8 cells split into four 4x4 patches."""
    from amr import PatchHierarchy

    return PatchHierarchy.uniform((8, 8), patch_size=(4, 4))


@pytest.fixture
def single_patch_2d():
    """Unit square, 6x6 cells in one patch."""
    from amr import PatchHierarchy

    return PatchHierarchy.uniform((6, 6))


@pytest.fixture
def two_level_2d():
    """8x8 coarse level with a refined 8x8 patch covering the lower-left quarter."""
    from amr import Box, PatchHierarchy

    hierarchy = PatchHierarchy.uniform((8, 8), patch_size=(4, 4))
    hierarchy.add_level([Box((0, 0), (7, 7))], ratio=2)
    return hierarchy


@pytest.fixture
def fields_2d(hierarchy_2d):
    return Fields(hierarchy_2d)


@pytest.fixture
def make_fields():
    """Factory for a Fields helper on an arbitrary hierarchy."""
    return Fields


@pytest.fixture
def rng():
    return np.random.default_rng(1234)

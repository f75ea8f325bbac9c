"""Variables and the field registry that maps them to patch data indices."""

import logging
from typing import Dict, List, Optional, Tuple

from .box import Box
from .patch_data import CellData, SideData

log = logging.getLogger(__name__)


class Variable:
    """Named field kind. Subclasses decide the centering of the patch data."""

    centering = None

    def __init__(self, name: str):
        self.name = name

    def make_patch_data(self, box: Box, ghost_width: int):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}({self.name!r})"


class CellVariable(Variable):
    centering = "cell"

    def make_patch_data(self, box: Box, ghost_width: int) -> CellData:
        return CellData(box, ghost_width)


class SideVariable(Variable):
    centering = "side"

    def make_patch_data(self, box: Box, ghost_width: int) -> SideData:
        return SideData(box, ghost_width)


class VariableDatabase:
    """Registry of (variable, context) pairs.

    Each registered pair gets an integer patch data index that is valid on
    every patch of every level of the hierarchy owning this database.
    """

    def __init__(self):
        self._variables: Dict[str, Variable] = {}
        self._entries: List[Tuple[Variable, str, int]] = []
        self._index: Dict[Tuple[str, str], int] = {}

    def get_context(self, name: str) -> str:
        return name

    def get_variable(self, name: str) -> Optional[Variable]:
        return self._variables.get(name)

    def register_variable_and_context(self, variable: Variable, context: str, ghost_width: int = 0) -> int:
        existing = self._variables.get(variable.name)
        if existing is not None and existing is not variable:
            raise ValueError(f"A different variable named '{variable.name}' is already registered")
        key = (variable.name, context)
        if key in self._index:
            idx = self._index[key]
            if self._entries[idx][2] != ghost_width:
                raise ValueError(
                    f"'{variable.name}' in context '{context}' already registered "
                    f"with ghost width {self._entries[idx][2]}"
                )
            return idx
        self._variables[variable.name] = variable
        idx = len(self._entries)
        self._entries.append((variable, context, ghost_width))
        self._index[key] = idx
        log.debug(f"Registered {variable!r} in context '{context}' as index {idx}")
        return idx

    def map_variable_and_context_to_index(self, variable: Variable, context: str) -> int:
        return self._index.get((variable.name, context), -1)

    def get_variable_for_index(self, idx: int) -> Variable:
        return self._entries[idx][0]

    def ghost_width(self, idx: int) -> int:
        return self._entries[idx][2]

    def __len__(self):
        return len(self._entries)

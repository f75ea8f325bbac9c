"""Nullspace correction of Stokes solutions."""

import logging
from typing import Optional, Sequence

from amr import HierarchyVector

log = logging.getLogger(__name__)


class StokesNullspaceCorrection:
    """Removes nullspace components from a velocity/pressure pair.

    Parameters
    ----------
    has_pressure_nullspace : bool
        If True, the volume-weighted mean of the pressure is removed (the
        constant pressure mode of enclosed flows).
    velocity_nullspace : sequence of HierarchyVector, optional
        Velocity modes to project out, laid out like the velocity vector.
    """

    def __init__(self, has_pressure_nullspace: bool = True, velocity_nullspace: Optional[Sequence[HierarchyVector]] = None):
        self.has_pressure_nullspace = has_pressure_nullspace
        self.velocity_nullspace = list(velocity_nullspace or [])

    def correct(self, U_vec: HierarchyVector, P_vec: HierarchyVector):
        if self.has_pressure_nullspace:
            ops = P_vec.data_ops()
            P_idx = P_vec.component_index(0)
            mean = ops.weighted_mean(P_idx)
            ops.add_scalar(P_idx, -mean)
            log.debug(f"Removed mean pressure {mean:.3e} from {P_vec.name}")

        U_idx = U_vec.component_index(0)
        ops = U_vec.data_ops()
        for mode in self.velocity_nullspace:
            mode_idx = mode.component_index(0)
            norm_sq = ops.dot(mode_idx, mode_idx)
            if norm_sq == 0.0:
                continue
            ops.axpy(U_idx, -ops.dot(U_idx, mode_idx) / norm_sq, mode_idx, U_idx)

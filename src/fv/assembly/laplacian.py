"""Sparse Laplace/Helmholtz operators on uniform Cartesian (MAC) grids.

The d-dimensional operator is the Kronecker sum of 1D second-difference
matrices. Along each axis the unknowns are either cell centered (n values)
or node centered (n + 1 face values, used along the normal axis of a
side-centered component).

Boundary treatment (homogeneous conditions):
- cell centered, Dirichlet: ghost = -interior (zero at the face)
- cell centered, Neumann:   ghost = interior (zero flux through the face)
- node centered, Dirichlet: boundary node is known (zero) and removed
- node centered, Neumann:   mirrored ghost node u[-1] = u[1]
"""

from functools import reduce

import numpy as np
from numba import njit
from scipy.sparse import csr_matrix, identity, kron

CELL = 0
NODE = 1

DIRICHLET = 0
NEUMANN = 1


@njit(cache=True)
def assemble_laplacian_1d(n, h, centering, lower_kind, upper_kind):
    """
    Assemble the 1D second-difference operator in COO form.
    Returns (row, col, data) for an m x m matrix, m = n (cell) or n + 1 (node).
    """
    m = n if centering == CELL else n + 1
    max_nnz = 3 * m
    row = np.zeros(max_nnz, dtype=np.int64)
    col = np.zeros(max_nnz, dtype=np.int64)
    data = np.zeros(max_nnz, dtype=np.float64)
    inv_h2 = 1.0 / (h * h)

    idx = 0
    for i in range(m):
        diag = -2.0
        left = 1.0
        right = 1.0

        # ––– lower end –––––––––––––––––––––––––––––––––––
        if i == 0:
            left = 0.0
            if centering == CELL:
                diag += -1.0 if lower_kind == DIRICHLET else 1.0
            elif lower_kind == NEUMANN:
                right = 2.0

        # ––– upper end –––––––––––––––––––––––––––––––––––
        if i == m - 1:
            right = 0.0
            if centering == CELL:
                diag += -1.0 if upper_kind == DIRICHLET else 1.0
            elif upper_kind == NEUMANN:
                left = 2.0 if m > 1 else 0.0

        row[idx] = i; col[idx] = i; data[idx] = diag * inv_h2; idx += 1
        if left != 0.0:
            row[idx] = i; col[idx] = i - 1; data[idx] = left * inv_h2; idx += 1
        if right != 0.0:
            row[idx] = i; col[idx] = i + 1; data[idx] = right * inv_h2; idx += 1

    return row[:idx], col[:idx], data[:idx]


def laplacian_1d(n, h, centering, lower_kind, upper_kind):
    m = n if centering == CELL else n + 1
    row, col, data = assemble_laplacian_1d(n, h, centering, lower_kind, upper_kind)
    return csr_matrix((data, (row, col)), shape=(m, m))


def unknown_mask_1d(n, centering, lower_kind, upper_kind):
    """Entries along one axis that are unknowns (node-centered Dirichlet ends are not)."""
    if centering == CELL:
        return np.ones(n, dtype=bool)
    mask = np.ones(n + 1, dtype=bool)
    if lower_kind == DIRICHLET:
        mask[0] = False
    if upper_kind == DIRICHLET:
        mask[-1] = False
    return mask


def assemble_helmholtz(n_cells, dx, kinds, c, d, node_axis=None):
    """Assemble ``c I + d L`` on a uniform grid.

    Parameters
    ----------
    n_cells : sequence of int
        Number of cells per axis.
    dx : sequence of float
        Grid spacing per axis.
    kinds : sequence of (int, int)
        (lower, upper) boundary kind per axis, DIRICHLET or NEUMANN.
    c, d : float
        Operator coefficients.
    node_axis : int, optional
        Axis along which the unknowns are node centered (the normal axis of a
        side-centered component). ``None`` for a cell-centered field.

    Returns
    -------
    A : csr_matrix
        Operator restricted to the unknowns.
    mask : np.ndarray
        Boolean mask over the full (C-ordered, flattened) grid selecting the unknowns.
    """
    dim = len(n_cells)
    centerings = [NODE if axis == node_axis else CELL for axis in range(dim)]
    sizes = [n + 1 if cen == NODE else n for n, cen in zip(n_cells, centerings)]

    n_total = int(np.prod(sizes))
    L = csr_matrix((n_total, n_total))
    for axis in range(dim):
        factors = [
            laplacian_1d(n_cells[axis], dx[axis], centerings[axis], *kinds[axis]) if k == axis
            else identity(sizes[k], format="csr")
            for k in range(dim)
        ]
        L = L + reduce(lambda a, b: kron(a, b, format="csr"), factors)

    A = (c * identity(n_total, format="csr") + d * L).tocsr()

    masks = [unknown_mask_1d(n_cells[k], centerings[k], *kinds[k]) for k in range(dim)]
    mask = reduce(np.multiply.outer, masks).ravel()
    if not mask.all():
        A = A[mask][:, mask]
    return A.tocsr(), mask

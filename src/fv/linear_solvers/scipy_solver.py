"""Scipy-based sparse linear solve (direct LU or BiCGSTAB)."""

import logging

import numpy as np
from scipy.sparse import csr_matrix
from scipy.sparse.linalg import bicgstab, spsolve

log = logging.getLogger(__name__)


def scipy_solver(
    A_csr: csr_matrix,
    b_np: np.ndarray,
    x0=None,
    tolerance=1e-10,
    max_iterations=1000,
    method="direct",
    remove_nullspace=False,
):
    """Solve A x = b using scipy.

    Parameters
    ----------
    A_csr : csr_matrix
        Sparse matrix in CSR format.
    b_np : np.ndarray
        Right-hand side vector.
    x0 : np.ndarray, optional
        Initial guess (BiCGSTAB only).
    tolerance : float, optional
        Relative convergence tolerance for BiCGSTAB (default: 1e-10).
    max_iterations : int, optional
        Maximum BiCGSTAB iterations (default: 1000).
    method : str, optional
        "direct" (sparse LU) or "bicgstab".
    remove_nullspace : bool, optional
        If True, the operator is assumed to have the constant vector as its
        nullspace: the mean is removed from the RHS and the solution. The
        direct method pins the first unknown to make the system nonsingular.

    Returns
    -------
    x_np : np.ndarray
        Solution vector.
    converged : bool
        Whether the solver reported convergence.
    """
    b = b_np.copy()
    if remove_nullspace:
        b = b - np.mean(b)

    if method == "direct":
        A = A_csr
        if remove_nullspace:
            A = A_csr.tolil()
            A[0, :] = 0.0
            A[0, 0] = 1.0
            A = A.tocsr()
            b[0] = 0.0
        x = spsolve(A.tocsc(), b)
        converged = bool(np.all(np.isfinite(x)))
    elif method == "bicgstab":
        x, info = bicgstab(A_csr, b, x0=x0, rtol=tolerance, atol=0, maxiter=max_iterations)
        if info < 0:
            raise RuntimeError(f"BiCGSTAB failed (info={info})")
        converged = info == 0
    else:
        raise ValueError(f"Unknown solver method '{method}'")

    if not converged:
        # Did not converge but we can still use the result
        log.warning(f"Linear solve ({method}) did not converge")

    # Remove nullspace component from solution if requested
    if remove_nullspace:
        x = x - np.mean(x)

    return np.asarray(x, dtype=np.float64), converged

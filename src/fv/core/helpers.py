import numpy as np

EPSILON = np.finfo(np.float64).eps
EQUAL_EPS_TOLERANCE = np.sqrt(EPSILON)


def equal_eps(a, b):
    """
    Relative floating point comparison, elementwise for arrays.
    |a - b| / max(|a|, |b|, eps) < sqrt(eps)
    """
    a = np.asarray(a, dtype=np.float64)
    b = np.asarray(b, dtype=np.float64)
    denominator = np.maximum(np.maximum(np.abs(a), np.abs(b)), EPSILON)
    result = np.abs(a - b) / denominator < EQUAL_EPS_TOLERANCE
    if result.ndim == 0:
        return bool(result)
    return result


def robin_ghost_values(alpha, beta, gamma, interior, h):
    """
    Ghost cell values for a cell-centered field so that the Robin condition
    alpha * u + beta * du/dn = gamma holds at the face between ghost and interior cell.
    The face value is the average of both cells and du/dn = (u_ghost - u_interior) / h
    (n is the outward normal, which points from the interior into the ghost cell).
    """
    denominator = 0.5 * alpha + beta / h
    return (gamma - (0.5 * alpha - beta / h) * interior) / denominator


def linear_extrapolation(interior_0, interior_1):
    """Ghost value from the two nearest interior values."""
    return 2.0 * interior_0 - interior_1

"""Numba JIT-compiled kernels for point evaluation and grid transfer.

These loops sit under the Chebyshev evaluation path of
:class:`~spectrafun.representation.Representation` and under the
matrix-free branch of the quasimatrix QR, where an ``n x n`` operator is
too large to store.
"""

import numpy as np
from numba import njit


@njit(cache=True, fastmath=True)
def clenshaw_jit(x: np.ndarray, coeffs: np.ndarray) -> np.ndarray:
    """Evaluate a Chebyshev series at many points by Clenshaw recurrence.

    Parameters
    ----------
    x : ndarray
        Evaluation points on the reference interval [-1, 1].
    coeffs : ndarray
        Chebyshev coefficients c_0, ..., c_{n-1} (real).

    Returns
    -------
    ndarray
        ``sum_k c_k T_k(x)`` at every point.
    """
    n = coeffs.shape[0]
    out = np.empty(x.shape[0])
    for i in range(x.shape[0]):
        two_x = 2.0 * x[i]
        b_k1 = 0.0
        b_k2 = 0.0
        for k in range(n - 1, 0, -1):
            b_k = coeffs[k] + two_x * b_k1 - b_k2
            b_k2 = b_k1
            b_k1 = b_k
        out[i] = coeffs[0] + x[i] * b_k1 - b_k2
    return out


@njit(cache=True)
def barycentric_interpolate_jit(x: np.ndarray, nodes: np.ndarray, values: np.ndarray,
                                weights: np.ndarray) -> np.ndarray:
    """Barycentric interpolation of one column of nodal values at many points.

    An evaluation point that coincides exactly with a node takes the
    nodal value directly.
    """
    out = np.empty(x.shape[0])
    for i in range(x.shape[0]):
        sum_numerator = 0.0
        sum_denominator = 0.0
        hit = -1
        for j in range(nodes.shape[0]):
            diff = x[i] - nodes[j]
            if diff == 0.0:
                hit = j
                break
            w_j = weights[j] / diff
            sum_numerator += w_j * values[j]
            sum_denominator += w_j
        if hit >= 0:
            out[i] = values[hit]
        else:
            out[i] = sum_numerator / sum_denominator
    return out


@njit(cache=True)
def barycentric_matrix_jit(x: np.ndarray, nodes: np.ndarray,
                           weights: np.ndarray) -> np.ndarray:
    """Dense barycentric interpolation matrix ``P`` with ``P @ f(nodes) = p(x)``."""
    m = x.shape[0]
    n = nodes.shape[0]
    P = np.zeros((m, n))
    for i in range(m):
        hit = -1
        total = 0.0
        for j in range(n):
            diff = x[i] - nodes[j]
            if diff == 0.0:
                hit = j
                break
            P[i, j] = weights[j] / diff
            total += P[i, j]
        if hit >= 0:
            for j in range(n):
                P[i, j] = 0.0
            P[i, hit] = 1.0
        else:
            for j in range(n):
                P[i, j] /= total
    return P

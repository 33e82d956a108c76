"""QR factorization of quasimatrices.

A quasimatrix is a 1-D :class:`Representation` whose trailing axis holds
``m`` functions on one interval. :func:`qr` returns ``Q``, ``R`` and ``E``
with ``A E = Q R`` in the continuous L2 inner product on the physical
interval: the columns of ``Q`` are orthonormal functions, ``R`` is
``m x m`` upper triangular with a non-negative diagonal, and ``E`` is a
column permutation.

Two algorithms are available:

- ``method='builtin'`` puts the columns in a discrete form whose Euclidean
  inner product reproduces the L2 inner product, and calls
  :func:`scipy.linalg.qr` with column pivoting. Chebyshev columns are
  sampled, moved to Gauss-Legendre points and scaled by the square roots of
  the Gauss-Legendre weights. Fourier columns are factored through their
  coefficients (in cos/sin coordinates when the columns are real), which
  keeps every column of ``Q`` band-limited.
- ``method='householder'`` applies Householder reflections to the columns
  directly, with a Clenshaw-Curtis inner product and an orthonormal
  Legendre target basis. It does not pivot.

References
----------
- Trefethen (2010), "Householder triangularization of a quasimatrix",
  IMA J. Numer. Anal. 30(4):887-897
"""

from __future__ import annotations

from typing import Tuple

import numpy as np
from scipy.linalg import qr as scipy_qr

from spectrafun.representation import Representation
from spectrafun.transforms import (
    DENSE_SIZE_LIMIT,
    Basis,
    cheb2leg_values,
    leg2cheb_values,
    legendre_weighted_operators,
    points,
    prolong,
    quadrature_weights,
    vals2coeffs,
)

_OUTPUTS = ("matrix", "vector")
_METHODS = ("builtin", "householder")


def _reference_length(basis: Basis) -> float:
    return 2.0 if basis is Basis.CHEBYSHEV else 2.0 * np.pi


def _permutation(perm: np.ndarray, output: str) -> np.ndarray:
    if output == "vector":
        return np.asarray(perm, dtype=int)
    return np.eye(len(perm))[:, perm]


def _normalize_signs(Q: np.ndarray, R: np.ndarray) -> None:
    """Make ``diag(R)`` real and non-negative by rescaling rows of R and columns of Q."""
    d = np.diag(R)
    mag = np.abs(d)
    phase = np.ones_like(d)
    nz = mag > 0
    phase[nz] = d[nz] / mag[nz]
    Q *= phase[None, :]
    R *= np.conj(phase)[:, None]
    if np.iscomplexobj(R):
        R[np.diag_indices_from(R)] = R[np.diag_indices_from(R)].real


def _builtin_chebyshev(values: np.ndarray):
    n = values.shape[0]
    if n <= DENSE_SIZE_LIMIT:
        WP, inv_WP = legendre_weighted_operators(n)
        weighted = WP @ values
    else:
        weighted = cheb2leg_values(values)
    Q, R, perm = scipy_qr(weighted, mode="economic", pivoting=True)
    _normalize_signs(Q, R)
    if n <= DENSE_SIZE_LIMIT:
        q_values = inv_WP @ Q
    else:
        q_values = leg2cheb_values(Q)
    return vals2coeffs(q_values, Basis.CHEBYSHEV), R, perm


def _real_trig_pairs(N: int):
    """Indices of wavenumber 0 and of the ``+k``/``-k`` pairs of an odd length *N*."""
    half = N // 2
    ks = np.arange(1, half + 1)
    return half, ks + half, half - ks


def _to_real_trig(c: np.ndarray) -> np.ndarray:
    """Unitary map from Fourier coefficients to cos/sin coordinates.

    Real functions have real coordinates, so a real QR on them keeps every
    column of Q (including those past the numerical rank) real-valued.
    """
    N = c.shape[0]
    zero, plus, minus = _real_trig_pairs(N)
    u = np.empty(c.shape, dtype=complex)
    u[0] = c[zero]
    u[1::2] = (c[plus] + c[minus]) / np.sqrt(2.0)
    u[2::2] = 1j * (c[plus] - c[minus]) / np.sqrt(2.0)
    return u


def _from_real_trig(u: np.ndarray) -> np.ndarray:
    N = u.shape[0]
    zero, plus, minus = _real_trig_pairs(N)
    c = np.empty(u.shape, dtype=complex)
    c[zero] = u[0]
    c[plus] = (u[1::2] - 1j * u[2::2]) / np.sqrt(2.0)
    c[minus] = (u[1::2] + 1j * u[2::2]) / np.sqrt(2.0)
    return c


def _builtin_fourier(A: Representation, n: int):
    # Parseval: the L2 product on [-pi, pi] is 2*pi times the coefficient dot
    # product, so a discrete QR of the coefficients is exact and every column
    # of Q stays band-limited. Odd lengths pair each +k with its -k.
    N = n if n % 2 else n + 1
    coeffs = A.prolong([N]).coeffs.reshape(N, -1)
    scale = np.sqrt(2.0 * np.pi)
    if A.is_real:
        u = _to_real_trig(coeffs).real
        Q, R, perm = scipy_qr(scale * u, mode="economic", pivoting=True)
        _normalize_signs(Q, R)
        return _from_real_trig(Q / scale), R, perm
    Q, R, perm = scipy_qr(scale * coeffs, mode="economic", pivoting=True)
    _normalize_signs(Q, R)
    return Q / scale, R, perm


def legendre_basis(x: np.ndarray, m: int) -> np.ndarray:
    """Orthonormal Legendre polynomials ``0..m-1`` on [-1, 1] sampled at *x*."""
    E = np.ones((len(x), m))
    if m > 1:
        E[:, 1] = x
    for k in range(2, m):
        E[:, k] = ((2 * k - 1) * x * E[:, k - 1] - (k - 1) * E[:, k - 2]) / k
    E *= np.sqrt((2 * np.arange(m) + 1) / 2.0)[None, :]
    return E


def _householder_chebyshev(values: np.ndarray, m: int):
    N = values.shape[0]
    x = points(Basis.CHEBYSHEV, N)
    w = quadrature_weights(Basis.CHEBYSHEV, N)
    tol = np.finfo(float).eps

    def inner(f, g):
        return np.sum(np.conj(f) * w * g)

    A = np.array(values, dtype=complex if np.iscomplexobj(values) else float)
    E = legendre_basis(x, m).astype(A.dtype)
    V = np.zeros_like(E)
    R = np.zeros((m, m), dtype=A.dtype)

    for k in range(m):
        e = E[:, k]
        col = A[:, k]
        ex = inner(e, col)
        aex = abs(ex)
        s = 1.0 if aex == 0 else -ex / aex
        e = s * e
        E[:, k] = e
        r = np.sqrt(abs(inner(col, col)))
        R[k, k] = r

        v = r * e - col
        for i in range(k):
            ei = E[:, i]
            v = v - inner(ei, v) * ei
        nv = np.sqrt(abs(inner(v, v)))
        if nv < tol * max(np.max(np.abs(col)), np.max(np.abs(e))):
            v = e
        else:
            v = v / nv
        V[:, k] = v

        for j in range(k + 1, m):
            Aj = A[:, j]
            Aj = Aj - 2.0 * v * inner(v, Aj)
            rkj = inner(e, Aj)
            R[k, j] = rkj
            A[:, j] = Aj - e * rkj

    for k in range(m - 1, -1, -1):
        v = V[:, k]
        for j in range(k, m):
            E[:, j] = E[:, j] - 2.0 * v * inner(v, E[:, j])
    return vals2coeffs(E, Basis.CHEBYSHEV), R


def qr(A: Representation, output: str = "matrix",
       method: str = "builtin") -> Tuple[Representation, np.ndarray, np.ndarray]:
    """QR factorization ``A E = Q R`` of a quasimatrix.

    Parameters
    ----------
    A : Representation
        A 1-D representation; its columns are the quasimatrix columns.
    output : {'matrix', 'vector'}, optional
        Return ``E`` as an ``m x m`` permutation matrix (default) or as an
        index vector ``p`` with ``A[:, p] = Q R``.
    method : {'builtin', 'householder'}, optional
        Factorization algorithm. ``'householder'`` needs Chebyshev columns
        and returns ``E`` as the identity.

    Returns
    -------
    Q : Representation
        ``m`` orthonormal columns on the interval of *A*.
    R : ndarray
        ``m x m`` upper triangular with non-negative diagonal.
    E : ndarray
        Column permutation, in the form selected by *output*.

    Notes
    -----
    The accuracy of ``Q`` is estimated as the largest per-column absolute
    accuracy of *A* divided by the vscale of ``Q``. This assumes a
    well-conditioned factorization; it is not a bound.

    Examples
    --------
    >>> import numpy as np
    >>> from spectrafun import construct
    >>> A = construct([lambda x: 1 + 0 * x, lambda x: x], [(-1, 1)])
    >>> Q, R, E = qr(A)
    >>> R.shape
    (2, 2)
    """
    if not isinstance(A, Representation):
        raise TypeError(f"qr expects a Representation, got {type(A).__name__}")
    if A.num_dimensions != 1:
        raise ValueError(
            f"qr needs a 1-D quasimatrix, got a {A.num_dimensions}-D representation"
        )
    if output not in _OUTPUTS:
        raise ValueError(f"output must be one of {_OUTPUTS}, got {output!r}")
    if method not in _METHODS:
        raise ValueError(f"method must be one of {_METHODS}, got {method!r}")

    basis = A.bases[0]
    if method == "householder" and basis is not Basis.CHEBYSHEV:
        raise ValueError("The householder method needs Chebyshev columns")

    m = A.n_columns
    if A.coeffs.size == 0:
        return A, np.zeros((m, m)), _permutation(np.arange(m), output)

    lo, hi = A.domain[0]
    width = hi - lo
    ref_length = _reference_length(basis)

    if m == 1:
        r = A.norm()
        r = float(np.ravel(r)[0])
        if r == 0:
            Q = A
        else:
            Q = Representation(
                np.asarray(A.coeffs) / r, A.domain, A.bases,
                resolved=A.resolved, is_real=A.is_real,
            )
            Q = Q._derive(Q.coeffs, accuracy=A.scale.accuracy * A.scale.vscale
                          / max(Q.scale.vscale, np.finfo(float).tiny))
        return Q, np.array([[r]]), _permutation(np.array([0]), output)

    A = A.simplify()
    n = max(A.shape[0], m)

    if basis is Basis.FOURIER:
        q_coeffs, R, perm = _builtin_fourier(A, n)
    elif method == "builtin":
        values = A.prolong([n]).values().reshape(n, m)
        q_coeffs, R, perm = _builtin_chebyshev(values)
    else:
        N = 2 * n
        values = A.prolong([N]).values().reshape(N, m)
        q_coeffs, R = _householder_chebyshev(values, m)
        q_coeffs = prolong(q_coeffs, Basis.CHEBYSHEV, n, axis=0)
        perm = np.arange(m)

    # Factorization was on the reference interval; rescale to the physical one.
    q_coeffs = q_coeffs * np.sqrt(ref_length / width)
    R = R * np.sqrt(width / ref_length)

    Q = Representation(q_coeffs, A.domain, A.bases, resolved=A.resolved,
                       is_real=A.is_real)
    column_accuracy = A.scale.accuracy * A.column_vscales()
    q_vscale = max(Q.scale.vscale, np.finfo(float).tiny)
    Q = Q._derive(Q.coeffs, accuracy=float(np.max(column_accuracy)) / q_vscale)
    return Q, R, _permutation(perm, output)

"""Values-to-coefficients transforms for Chebyshev and Fourier tensor bases.

Two bases are supported, each with its own node family on a reference
interval:

- ``Basis.CHEBYSHEV`` (algebraic): Chebyshev points of the second kind,
  ``x_k = -cos(k*pi/(n-1))`` on [-1, 1] in ascending order, coefficients of
  ``T_0, ..., T_{n-1}``.
- ``Basis.FOURIER`` (trigonometric): equispaced points
  ``t_k = -pi + 2*pi*k/n`` on [-pi, pi), coefficients of ``exp(i*w*t)``
  stored by ascending wavenumber ``w = -(n//2), ..., n - 1 - n//2``.

Every transform has a dense variant, which multiplies by an ``n x n``
operator kept in :data:`~spectrafun._cache.OPERATOR_CACHE`, and a fast
O(n log n) variant built on :mod:`scipy.fft`. Both compute the same map;
``method="auto"`` picks the dense one up to :data:`DENSE_SIZE_LIMIT`.

References
----------
- Trefethen (2013), "Approximation Theory and Approximation Practice",
  SIAM, Chapters 2-3.
- Waldvogel (2006), "Fast Construction of the Fejér and Clenshaw–Curtis
  Quadrature Rules", BIT Numer. Math. 46(2):195–202.
- Wang & Xiang (2012), "On the convergence rates of Legendre
  approximation", Math. Comp. 81(278):861-877 (Legendre barycentric weights).
"""

from __future__ import annotations

from enum import Enum

import numpy as np
from numpy.polynomial.chebyshev import chebvander

from spectrafun._cache import OPERATOR_CACHE
from spectrafun._jit import barycentric_interpolate_jit, barycentric_matrix_jit

#: Largest size for which dense operators are formed and cached.
DENSE_SIZE_LIMIT = 2048

_METHODS = ("auto", "dense", "fast")


class Basis(str, Enum):
    """Closed set of one-dimensional bases."""

    CHEBYSHEV = "chebyshev"
    FOURIER = "fourier"


_ALIASES = {
    "algebraic": Basis.CHEBYSHEV,
    "cheb": Basis.CHEBYSHEV,
    "trigonometric": Basis.FOURIER,
    "trig": Basis.FOURIER,
}


def as_basis(basis) -> Basis:
    """Normalize a basis given as :class:`Basis` or string."""
    if isinstance(basis, Basis):
        return basis
    if isinstance(basis, str):
        key = basis.lower()
        if key in _ALIASES:
            return _ALIASES[key]
        try:
            return Basis(key)
        except ValueError:
            pass
    raise ValueError(
        f"Unknown basis {basis!r}; expected 'chebyshev' or 'fourier'"
    )


def _use_dense(n: int, method: str) -> bool:
    if method not in _METHODS:
        raise ValueError(f"method must be one of {_METHODS}, got {method!r}")
    if method == "auto":
        return n <= DENSE_SIZE_LIMIT
    return method == "dense"


# ======================================================================
# Nodes and physical-domain maps
# ======================================================================

def points(basis, n: int) -> np.ndarray:
    """Reference-interval nodes for *n* samples in *basis*."""
    basis = as_basis(basis)
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    if basis is Basis.CHEBYSHEV:
        if n == 1:
            return np.zeros(1)
        m = n - 1
        # sin form is exactly antisymmetric about 0
        return np.sin(np.pi * np.arange(-m, m + 1, 2) / (2 * m))
    return -np.pi + 2.0 * np.pi * np.arange(n) / n


def wavenumbers(n: int) -> np.ndarray:
    """Ascending Fourier wavenumbers for a length-*n* coefficient vector."""
    return np.arange(n) - n // 2


def to_physical(basis, t, lo: float, hi: float):
    """Map reference coordinates to ``[lo, hi]``."""
    basis = as_basis(basis)
    t = np.asarray(t, dtype=float)
    if basis is Basis.CHEBYSHEV:
        return 0.5 * (lo + hi) + 0.5 * (hi - lo) * t
    return lo + (t + np.pi) * (hi - lo) / (2.0 * np.pi)


def to_reference(basis, x, lo: float, hi: float):
    """Map physical coordinates in ``[lo, hi]`` to the reference interval."""
    basis = as_basis(basis)
    x = np.asarray(x, dtype=float)
    if basis is Basis.CHEBYSHEV:
        return (2.0 * x - (lo + hi)) / (hi - lo)
    return -np.pi + 2.0 * np.pi * (x - lo) / (hi - lo)


def valid_length(basis, cutoff: int) -> int:
    """Smallest coefficient length in *basis* that keeps *cutoff* degrees.

    Chebyshev keeps the first *cutoff* coefficients. Fourier keeps the
    symmetric wavenumbers ``|w| < cutoff``, an odd length.
    """
    basis = as_basis(basis)
    cutoff = max(int(cutoff), 1)
    if basis is Basis.CHEBYSHEV:
        return cutoff
    return 2 * cutoff - 1


# ======================================================================
# Dense operators
# ======================================================================

def _chebyshev_cosines(n: int) -> np.ndarray:
    """``cos(j*k*pi/m)`` with ``k`` counting nodes from the right end."""
    m = n - 1
    j = np.arange(n)
    k = m - np.arange(n)
    phase = np.outer(j, k) % (2 * m)
    return np.cos(np.pi * phase / m)


def _chebyshev_vals2coeffs_matrix(n: int) -> np.ndarray:
    if n == 1:
        return np.ones((1, 1))
    m = n - 1
    C = _chebyshev_cosines(n) * (2.0 / m)
    C[:, [0, -1]] *= 0.5
    C[[0, -1], :] *= 0.5
    return C


def _chebyshev_coeffs2vals_matrix(n: int) -> np.ndarray:
    if n == 1:
        return np.ones((1, 1))
    return _chebyshev_cosines(n).T.copy()


def _fourier_phases(n: int) -> np.ndarray:
    """``exp(i*w*t_k)`` as an ``(n_points, n_modes)`` array."""
    w = wavenumbers(n)
    k = np.arange(n)
    sign = np.where(w % 2 == 0, 1.0, -1.0)
    phase = np.outer(k, w) % n
    return np.exp(2j * np.pi * phase / n) * sign


def _fourier_vals2coeffs_matrix(n: int) -> np.ndarray:
    return _fourier_phases(n).conj().T / n


def _fourier_coeffs2vals_matrix(n: int) -> np.ndarray:
    return _fourier_phases(n)


_DENSE_BUILDERS = {
    (Basis.CHEBYSHEV, "vals2coeffs"): _chebyshev_vals2coeffs_matrix,
    (Basis.CHEBYSHEV, "coeffs2vals"): _chebyshev_coeffs2vals_matrix,
    (Basis.FOURIER, "vals2coeffs"): _fourier_vals2coeffs_matrix,
    (Basis.FOURIER, "coeffs2vals"): _fourier_coeffs2vals_matrix,
}


def transform_matrix(basis, n: int, direction: str) -> np.ndarray:
    """Cached dense operator for ``direction`` in {'vals2coeffs', 'coeffs2vals'}."""
    basis = as_basis(basis)
    builder = _DENSE_BUILDERS[(basis, direction)]
    return OPERATOR_CACHE.get((basis.value, direction, n), lambda: builder(n))


def _apply_along_axis(matrix: np.ndarray, arr: np.ndarray, axis: int) -> np.ndarray:
    out = np.tensordot(matrix, arr, axes=([1], [axis]))
    return np.moveaxis(out, 0, axis)


# ======================================================================
# Fast transforms
# ======================================================================

def _split_complex(func, arr, axis):
    if np.iscomplexobj(arr):
        return func(arr.real, axis) + 1j * func(arr.imag, axis)
    return func(arr, axis)


def _endpoint_index(ndim: int, axis: int, where) -> tuple:
    idx = [slice(None)] * ndim
    idx[axis] = where
    return tuple(idx)


def _chebyshev_vals2coeffs_fast(values: np.ndarray, axis: int) -> np.ndarray:
    from scipy.fft import dct

    m = values.shape[axis] - 1
    coeffs = dct(np.flip(values, axis=axis), type=1, axis=axis) / m
    coeffs[_endpoint_index(coeffs.ndim, axis, [0, -1])] *= 0.5
    return coeffs


def _chebyshev_coeffs2vals_fast(coeffs: np.ndarray, axis: int) -> np.ndarray:
    from scipy.fft import dct

    scaled = 0.5 * coeffs
    scaled[_endpoint_index(coeffs.ndim, axis, [0, -1])] *= 2.0
    return np.flip(dct(scaled, type=1, axis=axis), axis=axis)


def _fourier_sign(n: int, ndim: int, axis: int) -> np.ndarray:
    w = np.fft.fftfreq(n, 1.0 / n).round().astype(int)
    sign = np.where(w % 2 == 0, 1.0, -1.0)
    shape = [1] * ndim
    shape[axis] = n
    return sign.reshape(shape)


def _fourier_vals2coeffs_fast(values: np.ndarray, axis: int) -> np.ndarray:
    from scipy.fft import fft, fftshift

    n = values.shape[axis]
    raw = fft(values, axis=axis) / n
    return fftshift(raw * _fourier_sign(n, values.ndim, axis), axes=axis)


def _fourier_coeffs2vals_fast(coeffs: np.ndarray, axis: int) -> np.ndarray:
    from scipy.fft import ifft, ifftshift

    n = coeffs.shape[axis]
    raw = ifftshift(coeffs, axes=axis) * _fourier_sign(n, coeffs.ndim, axis)
    return ifft(raw, axis=axis) * n


# ======================================================================
# Public transforms
# ======================================================================

def vals2coeffs(values, basis, axis: int = 0, method: str = "auto") -> np.ndarray:
    """Map nodal values to spectral coefficients along one axis.

    Parameters
    ----------
    values : array_like
        Samples at :func:`points` along ``axis``.
    basis : Basis or str
        ``'chebyshev'`` or ``'fourier'``.
    axis : int, optional
        Axis to transform. Default 0.
    method : {'auto', 'dense', 'fast'}, optional
        Dense cached operator, scipy.fft transform, or size-based choice.

    Returns
    -------
    ndarray
        Coefficients with the same shape as *values*. Chebyshev
        coefficients of real data are real; Fourier coefficients are
        complex.
    """
    basis = as_basis(basis)
    values = np.asarray(values)
    if not np.iscomplexobj(values):
        values = values.astype(float)
    n = values.shape[axis]
    if n == 1:
        return values.astype(complex) if basis is Basis.FOURIER else values.copy()
    if _use_dense(n, method):
        return _apply_along_axis(transform_matrix(basis, n, "vals2coeffs"), values, axis)
    if basis is Basis.CHEBYSHEV:
        return _split_complex(_chebyshev_vals2coeffs_fast, values, axis)
    return _fourier_vals2coeffs_fast(values, axis)


def coeffs2vals(coeffs, basis, axis: int = 0, method: str = "auto") -> np.ndarray:
    """Map spectral coefficients to nodal values along one axis.

    Inverse of :func:`vals2coeffs` up to rounding, with the same
    *basis*, *axis* and *method* conventions.
    """
    basis = as_basis(basis)
    coeffs = np.asarray(coeffs)
    if not np.iscomplexobj(coeffs):
        coeffs = coeffs.astype(float)
    n = coeffs.shape[axis]
    if n == 1:
        return coeffs.astype(complex) if basis is Basis.FOURIER else coeffs.copy()
    if _use_dense(n, method):
        return _apply_along_axis(transform_matrix(basis, n, "coeffs2vals"), coeffs, axis)
    if basis is Basis.CHEBYSHEV:
        return _split_complex(_chebyshev_coeffs2vals_fast, coeffs, axis)
    return _fourier_coeffs2vals_fast(coeffs, axis)


def tensor_vals2coeffs(values, bases, method: str = "auto") -> np.ndarray:
    """Separable transform along the leading ``len(bases)`` axes."""
    out = np.asarray(values)
    for axis, basis in enumerate(bases):
        out = vals2coeffs(out, basis, axis=axis, method=method)
    return out


def tensor_coeffs2vals(coeffs, bases, method: str = "auto") -> np.ndarray:
    """Inverse of :func:`tensor_vals2coeffs`."""
    out = np.asarray(coeffs)
    for axis, basis in enumerate(bases):
        out = coeffs2vals(out, basis, axis=axis, method=method)
    return out


# ======================================================================
# Resizing and point evaluation
# ======================================================================

def _fourier_resize(coeffs: np.ndarray, n: int, axis: int) -> np.ndarray:
    c = np.moveaxis(coeffs, axis, 0)
    n0 = c.shape[0]
    old_w = wavenumbers(n0)
    if n0 % 2 == 0 and n > n0:
        # Split the unpaired -n0/2 mode evenly between -n0/2 and +n0/2.
        half = c[:1] / 2
        c = np.concatenate([half, c[1:], half], axis=0)
        old_w = np.append(old_w, n0 // 2)
    new_w = wavenumbers(n)
    out = np.zeros((n,) + c.shape[1:], dtype=c.dtype)
    keep = (old_w >= new_w[0]) & (old_w <= new_w[-1])
    out[old_w[keep] - new_w[0]] = c[keep]
    if n % 2 == 0:
        folded = old_w == n // 2
        if folded.any():
            out[0] += c[folded].sum(axis=0)
    return np.moveaxis(out, 0, axis)


def prolong(coeffs, basis, n: int, axis: int = 0) -> np.ndarray:
    """Zero-extend or truncate coefficients along *axis* to length *n*."""
    basis = as_basis(basis)
    coeffs = np.asarray(coeffs)
    n0 = coeffs.shape[axis]
    if n < 1:
        raise ValueError(f"n must be >= 1, got {n}")
    if n == n0:
        return coeffs.copy()
    if basis is Basis.FOURIER:
        return _fourier_resize(coeffs, n, axis)
    if n < n0:
        return np.take(coeffs, np.arange(n), axis=axis).copy()
    pad = [(0, 0)] * coeffs.ndim
    pad[axis] = (0, n - n0)
    return np.pad(coeffs, pad)


def evaluation_matrix(basis, n: int, t) -> np.ndarray:
    """``(len(t), n)`` matrix of basis functions at reference points *t*.

    For an even Fourier length the unpaired mode is taken as the average of
    ``exp(-i*n/2*t)`` and ``exp(+i*n/2*t)`` so real data stay real off-grid.
    """
    basis = as_basis(basis)
    t = np.atleast_1d(np.asarray(t, dtype=float))
    if basis is Basis.CHEBYSHEV:
        return chebvander(t, n - 1)
    M = np.exp(1j * np.outer(t, wavenumbers(n)))
    if n % 2 == 0:
        M[:, 0] = np.cos(0.5 * n * t)
    return M


# ======================================================================
# Quadrature and barycentric data
# ======================================================================

def _clenshaw_curtis_weights(n: int) -> np.ndarray:
    from scipy.fft import dct

    if n == 1:
        return np.array([2.0])
    m = n - 1
    moments = np.zeros(n)
    k = np.arange(0, n, 2)
    moments[k] = 2.0 / (1.0 - k * k)
    w = dct(moments, type=1) / m
    w[[0, -1]] *= 0.5
    # Weights are symmetric, so the descending-order result needs no flip.
    return w


def quadrature_weights(basis, n: int) -> np.ndarray:
    """Quadrature weights on the reference interval for *n* nodes.

    Clenshaw–Curtis for Chebyshev points (exact for polynomials of degree
    ``< n``), trapezoid ``2*pi/n`` for Fourier points.
    """
    basis = as_basis(basis)
    if basis is Basis.CHEBYSHEV:
        return OPERATOR_CACHE.get(("chebyshev", "quadwts", n),
                                  lambda: _clenshaw_curtis_weights(n))
    return np.full(n, 2.0 * np.pi / n)


def chebyshev_barycentric_weights(n: int) -> np.ndarray:
    """Barycentric weights for Chebyshev points of the second kind."""
    if n == 1:
        return np.ones(1)
    v = np.where(np.arange(n) % 2 == 0, 1.0, -1.0)
    v[[0, -1]] *= 0.5
    return v


def barycentric_weights(basis, n: int) -> np.ndarray:
    """Barycentric weights for the *n* native points of *basis*.

    Both node families have alternating-sign weights; Chebyshev end points
    carry half weight.
    """
    basis = as_basis(basis)
    if basis is Basis.CHEBYSHEV:
        return chebyshev_barycentric_weights(n)
    return np.where(np.arange(n) % 2 == 0, 1.0, -1.0)


def _legendre_recurrence(n: int, x: np.ndarray):
    """``P_n(x)`` and ``P_n'(x)`` from the three-term recurrence."""
    p_prev = np.ones_like(x)
    p = x.copy()
    for k in range(2, n + 1):
        p_prev, p = p, ((2 * k - 1) * x * p - (k - 1) * p_prev) / k
    dp = n * (x * p - p_prev) / ((x - 1.0) * (x + 1.0))
    return p, dp


def _legendre_points(n: int) -> np.ndarray:
    from scipy.special import roots_legendre

    x, _ = roots_legendre(n)
    # Two Newton steps polish the nodes; the weights then come from P_n'
    # at the polished nodes rather than from the library's weights.
    for _ in range(2):
        p, dp = _legendre_recurrence(n, x)
        x = x - p / dp
    _, dp = _legendre_recurrence(n, x)
    w = 2.0 / ((1.0 - x) * (1.0 + x) * dp * dp)
    v = np.sqrt(2.0) / np.abs(dp)
    v[1::2] *= -1.0
    return np.stack([x, w, v])


def legendre_points(n: int):
    """Gauss–Legendre nodes, quadrature weights and barycentric weights.

    The barycentric weights are ``(-1)^k sqrt((1 - x_k^2) w_k)``, which equals
    ``(-1)^k sqrt(2) / |P_n'(x_k)|``.
    """
    x, w, v = OPERATOR_CACHE.get(("legendre", "points", n), lambda: _legendre_points(n))
    return x, w, v


# ======================================================================
# Chebyshev <-> Legendre grid transfer
# ======================================================================

def _cheb2leg_weighted(n: int) -> np.ndarray:
    xc = points(Basis.CHEBYSHEV, n)
    vc = chebyshev_barycentric_weights(n)
    xl, wl, _ = legendre_points(n)
    P = barycentric_matrix_jit(xl, xc, vc)
    return np.sqrt(wl)[:, None] * P


def _leg2cheb_unweighted(n: int) -> np.ndarray:
    xc = points(Basis.CHEBYSHEV, n)
    xl, wl, vl = legendre_points(n)
    P_inv = barycentric_matrix_jit(xc, xl, vl)
    return P_inv / np.sqrt(wl)[None, :]


def legendre_weighted_operators(n: int):
    """Cached ``(W @ P, P^-1 @ W^-1)`` for the Chebyshev/Legendre grids of size *n*.

    ``P`` interpolates Chebyshev-point values to Gauss–Legendre points and
    ``W`` scales by the square roots of the Gauss–Legendre weights, so the
    Euclidean inner product of ``W @ P @ f`` and ``W @ P @ g`` equals the
    L2 inner product on [-1, 1] for polynomials of degree ``< n``.
    """
    WP = OPERATOR_CACHE.get(("cheb2leg", n), lambda: _cheb2leg_weighted(n))
    inv_WP = OPERATOR_CACHE.get(("leg2cheb", n), lambda: _leg2cheb_unweighted(n))
    return WP, inv_WP


def _transfer_columns(values, x_to, x_from, bary_weights, pre, post):
    """Apply ``diag(post) @ P @ diag(pre)`` column by column without forming ``P``."""
    if np.iscomplexobj(values):
        return (_transfer_columns(values.real, x_to, x_from, bary_weights, pre, post)
                + 1j * _transfer_columns(values.imag, x_to, x_from, bary_weights, pre, post))
    out = np.empty((x_to.shape[0], values.shape[1]))
    for j in range(values.shape[1]):
        column = np.ascontiguousarray(values[:, j] * pre, dtype=float)
        out[:, j] = post * barycentric_interpolate_jit(x_to, x_from, column, bary_weights)
    return out


def cheb2leg_values(values: np.ndarray) -> np.ndarray:
    """Matrix-free ``W @ P @ values`` for 2-D *values* (one column per function)."""
    n = values.shape[0]
    xc = points(Basis.CHEBYSHEV, n)
    vc = chebyshev_barycentric_weights(n)
    xl, wl, _ = legendre_points(n)
    return _transfer_columns(values, xl, xc, vc, np.ones(n), np.sqrt(wl))


def leg2cheb_values(weighted: np.ndarray) -> np.ndarray:
    """Matrix-free ``P^-1 @ W^-1 @ weighted`` for 2-D *weighted*."""
    n = weighted.shape[0]
    xc = points(Basis.CHEBYSHEV, n)
    xl, wl, vl = legendre_points(n)
    return _transfer_columns(weighted, xc, xl, vl, 1.0 / np.sqrt(wl), np.ones(n))

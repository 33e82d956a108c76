"""Coefficient tail analysis and grid growth for adaptive construction.

The same analyzer serves every axis of every tensor: a multi-dimensional
coefficient tensor is collapsed to one magnitude profile per axis, and each
profile is judged on its own.

Resolution rule
---------------
For a profile ``a_0, ..., a_{n-1}`` the working threshold is::

    threshold = tol * vscale * max(1, n ** (2/3))

where the ``n ** (2/3)`` factor allows for rounding noise in the transform.
Let ``c`` be one past the last index with ``a_k > threshold``. The axis is
resolved when the negligible tail is long enough::

    n - c >= max(MIN_TAIL_WINDOW, ceil(TAIL_WINDOW_FRACTION * n))

and its cutoff is ``max(c, 1)``. Because ``c`` is measured from the
high-degree end, a small coefficient followed by a larger one never counts
as part of the tail. A length-1 axis is resolved with cutoff 1.

Each entry of a multi-dimensional profile sums the magnitudes of
``N = coeffs.size // n`` coefficients. Transform rounding noise is spread
over all ``N`` of them, each carrying about ``1/sqrt(N)`` of it, so
:func:`analyze` judges that profile against ``sqrt(N) * vscale``.
"""

from __future__ import annotations

import math
from typing import List, NamedTuple, Sequence

import numpy as np

from spectrafun.transforms import Basis, as_basis, wavenumbers

#: Minimum number of trailing negligible coefficients for a resolved axis.
MIN_TAIL_WINDOW = 3

#: Fraction of the axis length that must be negligible for a resolved axis.
TAIL_WINDOW_FRACTION = 1.0 / 8.0

#: Growth factor applied to unresolved axes.
GROWTH_FACTOR = 1.5


class TailVerdict(NamedTuple):
    """Result of analyzing one axis."""

    resolved: bool
    cutoff: int


def tail_window(n: int) -> int:
    """Number of trailing negligible coefficients required at length *n*."""
    return max(MIN_TAIL_WINDOW, math.ceil(TAIL_WINDOW_FRACTION * n))


def threshold(n: int, vscale: float, tol: float) -> float:
    """Absolute magnitude below which a coefficient of a length-*n* axis is negligible."""
    return tol * vscale * max(1.0, n ** (2.0 / 3.0))


def axis_profile(coeffs: np.ndarray, basis, axis: int) -> np.ndarray:
    """Collapse *coeffs* to a 1-D magnitude profile along *axis*.

    Absolute values are summed over every other axis (including a trailing
    column axis). For Fourier axes the ``+w`` and ``-w`` entries are folded
    together so that index ``k`` of the profile is wavenumber ``|w| = k``.
    """
    basis = as_basis(basis)
    mags = np.abs(np.asarray(coeffs))
    other = tuple(a for a in range(mags.ndim) if a != axis)
    profile = mags.sum(axis=other) if other else mags
    if basis is Basis.CHEBYSHEV:
        return profile
    n = profile.shape[0]
    folded = np.zeros(n // 2 + 1)
    np.add.at(folded, np.abs(wavenumbers(n)), profile)
    return folded


def check_tail(profile: np.ndarray, vscale: float, tol: float) -> TailVerdict:
    """Decide whether a magnitude *profile* has a resolved tail.

    Parameters
    ----------
    profile : ndarray
        Non-negative magnitudes ordered from low to high degree.
    vscale : float
        Magnitude scale of the function values.
    tol : float
        Relative tolerance.

    Returns
    -------
    TailVerdict
        ``(resolved, cutoff)``.
    """
    n = len(profile)
    if n <= 1:
        return TailVerdict(True, 1)
    big = np.nonzero(profile > threshold(n, vscale, tol))[0]
    c = int(big[-1]) + 1 if big.size else 0
    resolved = (n - c) >= tail_window(n)
    return TailVerdict(resolved, max(c, 1))


def analyze(coeffs: np.ndarray, bases: Sequence, vscale: float,
            tol: float) -> List[TailVerdict]:
    """Analyze every spatial axis of a coefficient tensor."""
    verdicts = []
    for axis, basis in enumerate(bases):
        n = coeffs.shape[axis]
        if n == 1:
            verdicts.append(TailVerdict(True, 1))
            continue
        noise = math.sqrt(coeffs.size // n)
        verdicts.append(
            check_tail(axis_profile(coeffs, basis, axis), vscale * noise, tol)
        )
    return verdicts


def accuracy_estimate(coeffs: np.ndarray, bases: Sequence, vscale: float,
                      tol: float, keep: Sequence[int] = None) -> float:
    """Relative accuracy achieved by keeping the first ``keep`` profile entries.

    The estimate is the largest discarded profile entry (or the last entry
    when nothing is discarded) relative to *vscale*, floored at *tol*. This
    is a heuristic, not a bound.
    """
    if vscale == 0:
        return tol
    worst = 0.0
    for axis, basis in enumerate(bases):
        if coeffs.shape[axis] == 1:
            continue
        profile = axis_profile(coeffs, basis, axis)
        cut = len(profile) - 1 if keep is None else min(keep[axis], len(profile) - 1)
        worst = max(worst, float(profile[cut:].max()))
    return max(tol, worst / vscale)


def next_sizes(sizes: Sequence[int], verdicts: Sequence[TailVerdict],
               max_sizes: Sequence[int]) -> List[int]:
    """Grow each unresolved axis by :data:`GROWTH_FACTOR`, capped at its maximum."""
    grown = []
    for n, verdict, cap in zip(sizes, verdicts, max_sizes):
        if verdict.resolved:
            grown.append(n)
        else:
            grown.append(min(math.ceil(GROWTH_FACTOR * n), cap))
    return grown


def cap_exceeded(sizes: Sequence[int], verdicts: Sequence[TailVerdict],
                 max_sizes: Sequence[int]) -> bool:
    """True if some unresolved axis is already at its maximum size."""
    return any(
        not verdict.resolved and n >= cap
        for n, verdict, cap in zip(sizes, verdicts, max_sizes)
    )

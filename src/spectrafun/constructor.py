"""Adaptive construction of spectral representations.

The constructor samples a function on a tensor grid, transforms the samples
to coefficients and asks the tail analyzer whether every axis is resolved.
Unresolved axes grow independently until they resolve or hit their cap::

    SAMPLING -> ANALYZING -> RESOLVED | GROWING | FAILED
    GROWING  -> SAMPLING

Non-finite samples abort construction with :class:`EvaluationError`. Reaching
the cap returns the best representation found, flagged unresolved, together
with a :class:`ResolutionFailure` warning.
"""

from __future__ import annotations

import time
import warnings
from enum import Enum
from typing import Callable, List

import numpy as np

from spectrafun._errors import (
    ConstructionCancelled,
    DegenerateInputError,
    ResolutionFailure,
)
from spectrafun._evaluate import sample
from spectrafun.happiness import accuracy_estimate, analyze, cap_exceeded, next_sizes
from spectrafun.representation import (
    DEFAULT_TOL,
    Representation,
    ScaleInfo,
    hscale_of,
    normalize_bases,
    normalize_domain,
)
from spectrafun.transforms import Basis, prolong, tensor_vals2coeffs, valid_length

#: Initial grid size per axis.
DEFAULT_MIN_SAMPLES = 17

#: Growth cap per axis for one-dimensional construction.
DEFAULT_MAX_SAMPLES_1D = 2 ** 16 + 1

#: Growth cap per axis for multi-dimensional construction.
DEFAULT_MAX_SAMPLES_ND = 513


class ConstructionState(Enum):
    """States of the adaptive construction loop."""

    SAMPLING = "sampling"
    ANALYZING = "analyzing"
    GROWING = "growing"
    RESOLVED = "resolved"
    FAILED = "failed"


def _per_axis(value, num_dimensions: int, name: str) -> List[int]:
    if np.ndim(value) == 0:
        sizes = [int(value)] * num_dimensions
    else:
        sizes = [int(v) for v in value]
        if len(sizes) != num_dimensions:
            raise DegenerateInputError(
                f"{name} has {len(sizes)} entries but the domain has "
                f"{num_dimensions} axes"
            )
    if any(n < 1 for n in sizes):
        raise ValueError(f"{name} must be >= 1 on every axis, got {sizes}")
    return sizes


class AdaptiveConstructor:
    """Build a :class:`Representation` of a function by adaptive sampling.

    Parameters
    ----------
    function : callable, number, or list of these
        Called as ``function(x1, ..., xd)`` with arrays of grid coordinates
        (or floats when evaluated point by point). A number is a constant
        function; a list of callables gives an array-valued function.
    domain : list of (float, float)
        Bounds ``[(lo, hi), ...]`` for each axis.
    bases : str or sequence of str, optional
        ``'chebyshev'`` (algebraic) or ``'fourier'`` (trigonometric, for
        periodic axes), per axis. Default is Chebyshev on every axis.
    min_samples : int or list of int, optional
        Initial grid size per axis. Default is 17.
    max_samples : int or list of int, optional
        Growth cap per axis. Default is ``2**16 + 1`` in 1-D and 513 otherwise.
    tol : float, optional
        Target relative tolerance. Default is machine epsilon.
    vectorized : bool, optional
        If True (default), try a single array call before falling back to
        point-by-point evaluation.
    fixed_length : int or list of int, optional
        Sample once at this size. The result is analyzed for its ``resolved``
        flag but never grown or trimmed.
    cancel : object with ``is_set()``, optional
        Polled before every sampling step, e.g. a :class:`threading.Event`.

    Attributes
    ----------
    state : ConstructionState or None
        Current (after :meth:`build`: terminal) state.
    history : list of tuple of int
        Grid sizes sampled, in order.
    n_evaluations : int
        Number of point evaluations of the function.
    build_time : float
        Wall-clock seconds spent in the last :meth:`build`.

    Examples
    --------
    >>> import numpy as np
    >>> ctor = AdaptiveConstructor(np.sin, [(-np.pi, np.pi)], min_samples=8)
    >>> rep = ctor.build(verbose=False)
    >>> ctor.state
    <ConstructionState.RESOLVED: 'resolved'>
    """

    def __init__(
        self,
        function: Callable,
        domain,
        bases=None,
        min_samples=DEFAULT_MIN_SAMPLES,
        max_samples=None,
        tol: float = DEFAULT_TOL,
        vectorized: bool = True,
        fixed_length=None,
        cancel=None,
    ):
        self.function = function
        self.domain = normalize_domain(domain)
        d = len(self.domain)
        self.bases = normalize_bases(bases, d)

        if max_samples is None:
            max_samples = DEFAULT_MAX_SAMPLES_1D if d == 1 else DEFAULT_MAX_SAMPLES_ND
        self.min_samples = _per_axis(min_samples, d, "min_samples")
        self.max_samples = _per_axis(max_samples, d, "max_samples")
        for axis, (lo_n, hi_n) in enumerate(zip(self.min_samples, self.max_samples)):
            if hi_n < lo_n:
                raise ValueError(
                    f"max_samples[{axis}]={hi_n} is smaller than "
                    f"min_samples[{axis}]={lo_n}"
                )
        if not tol > 0:
            raise ValueError(f"tol must be positive, got {tol}")
        self.tol = float(tol)
        self.vectorized = bool(vectorized)
        self.fixed_length = (
            None if fixed_length is None else _per_axis(fixed_length, d, "fixed_length")
        )
        self.cancel = cancel

        self.state: ConstructionState | None = None
        self.history: List[tuple] = []
        self.n_evaluations: int = 0
        self.build_time: float = 0.0

    @property
    def num_dimensions(self) -> int:
        return len(self.domain)

    def _check_cancelled(self) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise ConstructionCancelled(
                f"Construction cancelled after {len(self.history)} sampling steps "
                f"({self.n_evaluations:,} evaluations)"
            )

    def build(self, verbose: bool = True) -> Representation:
        """Run the construction loop.

        Parameters
        ----------
        verbose : bool, optional
            If True, print one progress line per trial grid. Default is True.

        Returns
        -------
        Representation
            Trimmed to the resolved cutoffs, or the last trial grid (flagged
            unresolved) if the growth cap was reached.

        Raises
        ------
        EvaluationError
            If the function returns NaN or Inf on a sample grid.
        ConstructionCancelled
            If ``cancel.is_set()`` is observed before a sampling step.
        """
        return self._run(verbose)

    def _run(self, verbose: bool) -> Representation:
        # Callers are one frame away from user code, so warnings use
        # stacklevel 3 here (4 from inside sample).
        if self.function is None:
            raise RuntimeError("Cannot build: no function assigned.")

        adaptive = self.fixed_length is None
        sizes = list(self.min_samples if adaptive else self.fixed_length)
        if verbose:
            kind = "adaptive" if adaptive else "fixed-length"
            bases = ", ".join(b.value for b in self.bases)
            print(f"Building {self.num_dimensions}D spectral approximation "
                  f"({kind}, bases: {bases})...")

        start = time.time()
        self.history = []
        self.n_evaluations = 0
        vectorized = self.vectorized

        while True:
            self.state = ConstructionState.SAMPLING
            self._check_cancelled()
            self.history.append(tuple(sizes))
            grids = Representation.grid_points(self.domain, sizes, self.bases)
            values, count, vectorized = sample(self.function, grids, vectorized,
                                               stacklevel=4)
            self.n_evaluations += count

            self.state = ConstructionState.ANALYZING
            coeffs = full = tensor_vals2coeffs(values, self.bases)
            vscale = float(np.max(np.abs(values)))
            verdicts = analyze(coeffs, self.bases, vscale, self.tol)
            resolved = all(v.resolved for v in verdicts)
            if verbose:
                marks = ", ".join(
                    f"cutoff {v.cutoff}" if v.resolved else "unresolved"
                    for v in verdicts
                )
                print(f"  n = {sizes}: {marks}")

            if not adaptive:
                self.state = (ConstructionState.RESOLVED if resolved
                              else ConstructionState.FAILED)
                break
            if resolved:
                self.state = ConstructionState.RESOLVED
                for axis, (b, v) in enumerate(zip(self.bases, verdicts)):
                    keep = min(valid_length(b, v.cutoff), coeffs.shape[axis])
                    coeffs = prolong(coeffs, b, keep, axis=axis)
                break
            if cap_exceeded(sizes, verdicts, self.max_samples):
                self.state = ConstructionState.FAILED
                warnings.warn(
                    f"Function not resolved at maximum grid size {sizes} "
                    f"(max_samples={self.max_samples}); returning the "
                    f"unresolved representation.",
                    ResolutionFailure,
                    stacklevel=3,
                )
                break
            self.state = ConstructionState.GROWING
            sizes = next_sizes(sizes, verdicts, self.max_samples)

        keep = [v.cutoff for v in verdicts] if resolved else None
        accuracy = accuracy_estimate(
            full, self.bases, vscale, self.tol, keep=keep
        )
        rep = Representation(
            coeffs,
            self.domain,
            self.bases,
            scale=ScaleInfo(vscale, hscale_of(self.domain), accuracy),
            resolved=resolved,
            is_real=not np.iscomplexobj(values),
        )
        self.build_time = time.time() - start

        if verbose:
            print(f"  Built in {self.build_time:.3f}s "
                  f"({self.n_evaluations:,} evaluations, lengths {list(rep.shape)})")
        return rep


def construct(function: Callable, domain, **options) -> Representation:
    """Build a representation of *function* on *domain*.

    Accepts the keyword options of :class:`AdaptiveConstructor`, plus
    ``verbose`` (default False).

    Examples
    --------
    >>> rep = construct(lambda x: x ** 3, [(-1, 1)])
    >>> rep.shape
    (4,)
    """
    verbose = options.pop("verbose", False)
    return AdaptiveConstructor(function, domain, **options)._run(verbose)


#: Doubled-up coordinates of the unit ball: radius, azimuth, polar angle.
BALL_DOMAIN = [(-1.0, 1.0), (-np.pi, np.pi), (-np.pi, np.pi)]

#: Bases of the doubled-up ball representation.
BALL_BASES = (Basis.CHEBYSHEV, Basis.FOURIER, Basis.FOURIER)


def _ball_to_cartesian(function: Callable) -> Callable:
    def spherical(r, lam, th):
        sin_th = np.sin(th)
        return function(r * sin_th * np.cos(lam), r * sin_th * np.sin(lam), r * np.cos(th))

    return spherical


def construct_ball(function: Callable, cartesian: bool = False,
                   **options) -> Representation:
    """Build a representation of a function on the unit ball.

    The ball is covered by the doubled-up coordinates ``r`` in ``[-1, 1]``
    (Chebyshev), azimuth ``lambda`` in ``[-pi, pi]`` (Fourier) and polar angle
    ``theta`` in ``[-pi, pi]`` (Fourier), so that every axis is either
    non-periodic on an interval or periodic.

    Parameters
    ----------
    function : callable
        ``function(r, lam, theta)``, or ``function(x, y, z)`` when
        *cartesian* is True. Spherical handles are called on the doubled-up
        coordinates and should extend smoothly to negative ``r`` and
        ``theta``.
    cartesian : bool, optional
        Compose *function* with the spherical map
        ``x = r sin(theta) cos(lam)``, ``y = r sin(theta) sin(lam)``,
        ``z = r cos(theta)``. Default is False.
    **options
        Keyword options of :class:`AdaptiveConstructor` (except ``domain``
        and ``bases``), plus ``verbose``.
    """
    if "domain" in options or "bases" in options:
        raise ValueError("construct_ball fixes the domain and bases")
    handle = function
    if cartesian and callable(function):
        handle = _ball_to_cartesian(function)
    verbose = options.pop("verbose", False)
    ctor = AdaptiveConstructor(handle, BALL_DOMAIN, BALL_BASES, **options)
    return ctor._run(verbose)


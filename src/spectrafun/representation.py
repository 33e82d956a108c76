"""Truncated Chebyshev/Fourier tensor expansions of functions on boxes.

A :class:`Representation` stores a coefficient tensor together with the
per-axis bases, the physical domain and the :class:`ScaleInfo` carried
through construction. It is immutable: every resizing operation
(:meth:`Representation.prolong`, :meth:`Representation.simplify`,
:meth:`Representation.column`) returns a new object.

A 1-D representation with a trailing column axis is a quasimatrix: its
columns are functions on the same interval, and :meth:`Representation.qr`
factorizes it.
"""

from __future__ import annotations

import os
import pickle
import warnings
from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np

from spectrafun._errors import DegenerateInputError
from spectrafun._evaluate import check_finite
from spectrafun._jit import clenshaw_jit
from spectrafun.happiness import accuracy_estimate, analyze
from spectrafun.transforms import (
    Basis,
    as_basis,
    evaluation_matrix,
    points as reference_points,
    prolong as prolong_axis,
    quadrature_weights,
    tensor_coeffs2vals,
    tensor_vals2coeffs,
    to_physical,
    to_reference,
    valid_length,
)

#: Default relative tolerance (machine epsilon for float64).
DEFAULT_TOL = 2.0 ** -52


@dataclass(frozen=True)
class ScaleInfo:
    """Magnitude, length scale and achieved relative accuracy of a representation.

    The absolute accuracy is ``accuracy * vscale``.
    """

    vscale: float
    hscale: float
    accuracy: float


def normalize_domain(domain, num_dimensions: int = None) -> List[Tuple[float, float]]:
    """Validate *domain* and return it as a list of ``(lo, hi)`` float pairs.

    A single pair ``[a, b]`` is accepted for one axis.

    Raises
    ------
    DegenerateInputError
        If the domain is empty, has the wrong number of axes, or contains an
        interval with ``lo >= hi`` or non-finite bounds.
    """
    try:
        pairs = list(domain)
    except TypeError:
        raise DegenerateInputError(f"Domain must be a sequence of (lo, hi) pairs, got {domain!r}") from None
    if len(pairs) == 2 and all(np.ndim(p) == 0 for p in pairs):
        pairs = [pairs]
    if len(pairs) == 0:
        raise DegenerateInputError("Domain must have at least one axis")
    if num_dimensions is not None and len(pairs) != num_dimensions:
        raise DegenerateInputError(
            f"Domain has {len(pairs)} axes but {num_dimensions} were expected"
        )
    out = []
    for d, bounds in enumerate(pairs):
        if np.ndim(bounds) != 1 or len(bounds) != 2:
            raise DegenerateInputError(f"domain[{d}] must be a (lo, hi) pair, got {bounds!r}")
        lo, hi = float(bounds[0]), float(bounds[1])
        if not (np.isfinite(lo) and np.isfinite(hi)):
            raise DegenerateInputError(f"domain[{d}] has non-finite bounds [{lo}, {hi}]")
        if lo >= hi:
            raise DegenerateInputError(
                f"domain[{d}]: lo={lo} must be strictly less than hi={hi}"
            )
        out.append((lo, hi))
    return out


def normalize_bases(bases, num_dimensions: int) -> Tuple[Basis, ...]:
    """Return one :class:`Basis` per axis; a single basis applies to all axes."""
    if bases is None:
        return (Basis.CHEBYSHEV,) * num_dimensions
    if isinstance(bases, (str, Basis)):
        return (as_basis(bases),) * num_dimensions
    bases = tuple(as_basis(b) for b in bases)
    if len(bases) != num_dimensions:
        raise DegenerateInputError(
            f"Got {len(bases)} bases for a {num_dimensions}-axis domain"
        )
    return bases


def hscale_of(domain) -> float:
    """Infinity norm of the domain end points."""
    return max(max(abs(lo), abs(hi)) for lo, hi in domain)


class Representation:
    """Spectral tensor representation of a (possibly array-valued) function.

    Parameters
    ----------
    coeffs : array_like
        Coefficient tensor of shape ``(n_1, ..., n_d)`` or
        ``(n_1, ..., n_d, m)`` for an array-valued function with ``m``
        columns. Fourier axes are ordered by ascending wavenumber.
    domain : list of (float, float)
        Physical bounds per axis.
    bases : sequence of {'chebyshev', 'fourier'} or str, optional
        Basis per axis. Default is Chebyshev on every axis.
    scale : ScaleInfo, optional
        Scale data; computed from the coefficients when omitted.
    resolved : bool, optional
        False if construction stopped at its size cap. Default True.
    is_real : bool, optional
        Whether the represented function is real-valued. Inferred when
        omitted.

    Examples
    --------
    >>> import numpy as np
    >>> r = Representation([0.0, 1.0], [[-1, 1]])
    >>> float(r(0.5))
    0.5
    """

    def __init__(self, coeffs, domain, bases=None, scale: ScaleInfo = None,
                 resolved: bool = True, is_real: bool = None):
        coeffs = np.array(coeffs)
        if coeffs.ndim == 0:
            coeffs = coeffs.reshape(1)
        if bases is not None and not isinstance(bases, (str, Basis)):
            ndim = len(bases)
        else:
            ndim = len(normalize_domain(domain))
        self.domain = normalize_domain(domain, ndim)
        self.bases = normalize_bases(bases, ndim)
        if coeffs.ndim not in (ndim, ndim + 1):
            raise ValueError(
                f"coeffs has {coeffs.ndim} axes; expected {ndim} or {ndim + 1} "
                f"for a {ndim}-axis domain"
            )
        if not np.iscomplexobj(coeffs):
            coeffs = coeffs.astype(float)
        check_finite(coeffs)
        coeffs.flags.writeable = False
        self.coeffs = coeffs
        self.resolved = bool(resolved)

        if is_real is None:
            is_real = self._infer_real()
        self.is_real = bool(is_real)
        if scale is None:
            vals = self.values()
            vscale = float(np.max(np.abs(vals))) if vals.size else 0.0
            scale = ScaleInfo(vscale, hscale_of(self.domain), DEFAULT_TOL)
        self.scale = scale

    def _infer_real(self) -> bool:
        if all(b is Basis.CHEBYSHEV for b in self.bases):
            return not np.iscomplexobj(self.coeffs)
        vals = tensor_coeffs2vals(self.coeffs, self.bases)
        size = np.max(np.abs(vals)) if vals.size else 0.0
        return bool(np.max(np.abs(vals.imag), initial=0.0) <= 1e-14 * max(size, 1.0))

    # ------------------------------------------------------------------
    # Shape information
    # ------------------------------------------------------------------

    @property
    def num_dimensions(self) -> int:
        return len(self.bases)

    @property
    def shape(self) -> Tuple[int, ...]:
        """Coefficient length along each spatial axis."""
        return self.coeffs.shape[: self.num_dimensions]

    @property
    def is_array_valued(self) -> bool:
        return self.coeffs.ndim == self.num_dimensions + 1

    @property
    def n_columns(self) -> int:
        return self.coeffs.shape[-1] if self.is_array_valued else 1

    @property
    def vscale(self) -> float:
        return self.scale.vscale

    @property
    def accuracy(self) -> float:
        return self.scale.accuracy

    # ------------------------------------------------------------------
    # Factories
    # ------------------------------------------------------------------

    @classmethod
    def from_values(cls, values, domain, bases=None, tol: float = DEFAULT_TOL,
                    method: str = "auto") -> "Representation":
        """Create a representation from samples on the native grid.

        Parameters
        ----------
        values : array_like
            Samples at the tensor product of :meth:`grid_points` for the
            shape of *values*, with an optional trailing column axis.
        domain : list of (float, float)
            Physical bounds per axis.
        bases : sequence of str, optional
            Basis per axis (default Chebyshev).
        tol : float, optional
            Relative tolerance used to judge resolution.
        method : {'auto', 'dense', 'fast'}, optional
            Transform variant.

        Raises
        ------
        EvaluationError
            If *values* contains NaN or Inf.
        """
        values = np.asarray(values)
        if not np.iscomplexobj(values):
            values = values.astype(float)
        domain = normalize_domain(domain)
        bases = normalize_bases(bases, len(domain))
        check_finite(values)
        coeffs = tensor_vals2coeffs(values, bases, method=method)
        vscale = float(np.max(np.abs(values))) if values.size else 0.0
        verdicts = analyze(coeffs, bases, vscale, tol)
        accuracy = accuracy_estimate(coeffs, bases, vscale, tol,
                                     keep=[v.cutoff for v in verdicts])
        return cls(coeffs, domain, bases,
                   scale=ScaleInfo(vscale, hscale_of(domain), accuracy),
                   resolved=all(v.resolved for v in verdicts),
                   is_real=not np.iscomplexobj(values))

    @classmethod
    def from_coeffs(cls, coeffs, domain, bases=None) -> "Representation":
        """Create a representation directly from a coefficient tensor."""
        return cls(coeffs, domain, bases)

    @classmethod
    def constant(cls, value, domain, bases=None) -> "Representation":
        """Representation of a constant function (one coefficient per axis)."""
        domain = normalize_domain(domain)
        bases = normalize_bases(bases, len(domain))
        coeffs = np.full((1,) * len(domain), value)
        return cls(coeffs, domain, bases,
                   scale=ScaleInfo(abs(value), hscale_of(domain), DEFAULT_TOL))

    @staticmethod
    def grid_points(domain, shape, bases=None) -> List[np.ndarray]:
        """Physical sample points along each axis for a grid of *shape*."""
        domain = normalize_domain(domain, len(shape))
        bases = normalize_bases(bases, len(shape))
        return [
            to_physical(b, reference_points(b, n), lo, hi)
            for b, n, (lo, hi) in zip(bases, shape, domain)
        ]

    # ------------------------------------------------------------------
    # Sampling and evaluation
    # ------------------------------------------------------------------

    def points(self) -> List[np.ndarray]:
        """Physical sample points of the native grid."""
        return self.grid_points(self.domain, self.shape, self.bases)

    def values(self, method: str = "auto") -> np.ndarray:
        """Values on the native grid (the inverse transform of :attr:`coeffs`)."""
        vals = tensor_coeffs2vals(self.coeffs, self.bases, method=method)
        if self.is_real and np.iscomplexobj(vals):
            vals = vals.real
        return vals

    def _clenshaw(self, t: np.ndarray) -> np.ndarray:
        t = np.ascontiguousarray(t, dtype=float)
        cols = self.coeffs.reshape(self.shape[0], -1)
        out = np.empty((t.shape[0], cols.shape[1]),
                       dtype=complex if np.iscomplexobj(cols) else float)
        for j in range(cols.shape[1]):
            col = cols[:, j]
            if np.iscomplexobj(col):
                out[:, j] = (clenshaw_jit(t, np.ascontiguousarray(col.real))
                             + 1j * clenshaw_jit(t, np.ascontiguousarray(col.imag)))
            else:
                out[:, j] = clenshaw_jit(t, np.ascontiguousarray(col))
        return out if self.is_array_valued else out[:, 0]

    def eval(self, points) -> np.ndarray:
        """Evaluate at scattered points.

        Parameters
        ----------
        points : array_like
            Shape ``(N, num_dimensions)``; for one axis a flat ``(N,)`` array
            is also accepted.

        Returns
        -------
        ndarray
            Shape ``(N,)``, or ``(N, n_columns)`` for array-valued functions.
        """
        pts = np.asarray(points, dtype=float)
        d = self.num_dimensions
        if pts.ndim == 1 and d == 1:
            pts = pts[:, None]
        if pts.ndim != 2 or pts.shape[1] != d:
            raise ValueError(
                f"points must have shape (N, {d}), got {np.shape(points)}"
            )
        refs = [
            to_reference(b, pts[:, a], lo, hi)
            for a, (b, (lo, hi)) in enumerate(zip(self.bases, self.domain))
        ]

        if d == 1 and self.bases[0] is Basis.CHEBYSHEV:
            out = self._clenshaw(refs[0])
        else:
            M = evaluation_matrix(self.bases[0], self.shape[0], refs[0])
            out = np.tensordot(M, self.coeffs, axes=([1], [0]))
            for a in range(1, d):
                M = evaluation_matrix(self.bases[a], self.shape[a], refs[a])
                out = np.einsum("pk,pk...->p...", M, out)
        if self.is_real and np.iscomplexobj(out):
            out = out.real
        return out

    def __call__(self, *coords):
        """Evaluate at broadcastable coordinate arrays, one per axis."""
        if len(coords) != self.num_dimensions:
            raise ValueError(
                f"Expected {self.num_dimensions} coordinate arrays, got {len(coords)}"
            )
        arrays = np.broadcast_arrays(*[np.asarray(c, dtype=float) for c in coords])
        shape = arrays[0].shape
        pts = np.column_stack([a.ravel() for a in arrays])
        out = self.eval(pts)
        return out.reshape(shape + out.shape[1:])

    # ------------------------------------------------------------------
    # Recomputation
    # ------------------------------------------------------------------

    def _derive(self, coeffs, resolved=None, accuracy=None) -> "Representation":
        scale = self.scale if accuracy is None else ScaleInfo(
            self.scale.vscale, self.scale.hscale, accuracy)
        return Representation(
            coeffs, self.domain, self.bases, scale=scale,
            resolved=self.resolved if resolved is None else resolved,
            is_real=self.is_real,
        )

    def prolong(self, sizes) -> "Representation":
        """Zero-extend or truncate the coefficients to per-axis *sizes*."""
        if np.ndim(sizes) == 0:
            sizes = [int(sizes)] * self.num_dimensions
        if len(sizes) != self.num_dimensions:
            raise ValueError(
                f"Expected {self.num_dimensions} sizes, got {len(sizes)}"
            )
        coeffs = np.asarray(self.coeffs)
        for axis, (b, n) in enumerate(zip(self.bases, sizes)):
            coeffs = prolong_axis(coeffs, b, int(n), axis=axis)
        return self._derive(coeffs)

    def simplify(self, tol: float = None) -> "Representation":
        """Remove negligible trailing coefficients on every resolved axis."""
        tol = self.scale.accuracy if tol is None else tol
        verdicts = analyze(np.asarray(self.coeffs), self.bases, self.scale.vscale, tol)
        sizes = [
            min(valid_length(b, v.cutoff), n) if v.resolved else n
            for b, v, n in zip(self.bases, verdicts, self.shape)
        ]
        if list(sizes) == list(self.shape):
            return self
        return self.prolong(sizes)

    def column(self, k: int) -> "Representation":
        """The *k*-th entry of an array-valued representation."""
        if not self.is_array_valued:
            if k in (0, -1):
                return self
            raise IndexError(f"column index {k} out of range for 1 column")
        if not -self.n_columns <= k < self.n_columns:
            raise IndexError(
                f"column index {k} out of range for {self.n_columns} columns"
            )
        coeffs = np.asarray(self.coeffs)[..., k]
        vals = tensor_coeffs2vals(coeffs, self.bases)
        vscale = float(np.max(np.abs(vals)))
        return Representation(
            coeffs, self.domain, self.bases,
            scale=ScaleInfo(vscale, self.scale.hscale, self.scale.accuracy),
            resolved=self.resolved, is_real=self.is_real,
        )

    def __getitem__(self, k):
        if isinstance(k, slice):
            return hstack([self.column(j) for j in range(self.n_columns)[k]])
        return self.column(k)

    def __len__(self) -> int:
        return self.n_columns

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def isfinite(self) -> bool:
        """True if every coefficient is finite."""
        return bool(np.isfinite(self.coeffs).all())

    def isequal(self, other) -> bool:
        """True if *other* has the same bases, domain and identical coefficients.

        Scale data (vscale, accuracy) is not compared.
        """
        if not isinstance(other, Representation):
            return False
        return (
            self.bases == other.bases
            and self.domain == other.domain
            and self.coeffs.shape == other.coeffs.shape
            and bool(np.array_equal(self.coeffs, other.coeffs))
        )

    def normest(self) -> float:
        """Cheap estimate of the sup norm (the vscale)."""
        return self.scale.vscale

    def column_vscales(self) -> np.ndarray:
        """Largest absolute sampled value of each column."""
        vals = np.abs(self.values()).reshape(-1, self.n_columns)
        return vals.max(axis=0)

    def sum(self):
        """Integral over the whole domain (one value per column)."""
        vals = self.values()
        for axis in range(self.num_dimensions - 1, -1, -1):
            b = self.bases[axis]
            lo, hi = self.domain[axis]
            width = (hi - lo) / 2.0 if b is Basis.CHEBYSHEV else (hi - lo) / (2.0 * np.pi)
            w = quadrature_weights(b, vals.shape[axis]) * width
            vals = np.tensordot(vals, w, axes=([axis], [0]))
        if np.ndim(vals) == 0:
            return complex(vals) if np.iscomplexobj(vals) else float(vals)
        return vals

    def _check_same_interval(self, other: "Representation") -> None:
        if not isinstance(other, Representation):
            raise TypeError(
                f"Cannot combine Representation with {type(other).__name__}"
            )
        if self.num_dimensions != 1 or other.num_dimensions != 1:
            raise ValueError("Inner products are defined for 1-D representations only")
        if self.bases != other.bases:
            raise ValueError(f"Basis mismatch: {self.bases} vs {other.bases}")
        if self.domain != other.domain:
            raise ValueError(f"Domain mismatch: {self.domain} vs {other.domain}")

    def inner_product(self, other: "Representation"):
        """Continuous inner product ``integral(conj(f_i) * g_j)`` over the interval.

        Returns a scalar when both operands have one column, otherwise the
        ``(m_f, m_g)`` Gram matrix.
        """
        self._check_same_interval(other)
        b = self.bases[0]
        lo, hi = self.domain[0]
        n = self.shape[0] + other.shape[0]
        if b is Basis.FOURIER:
            n = n + 1 if n % 2 == 0 else n
            width = (hi - lo) / (2.0 * np.pi)
        else:
            width = (hi - lo) / 2.0
        F = self.prolong([n]).values().reshape(n, -1)
        G = other.prolong([n]).values().reshape(n, -1)
        w = quadrature_weights(b, n) * width
        gram = F.conj().T @ (w[:, None] * G)
        if self.is_real and other.is_real:
            gram = gram.real
        if gram.shape == (1, 1) and not (self.is_array_valued or other.is_array_valued):
            return gram[0, 0].item()
        return gram

    def norm(self):
        """L2 norm over the interval (one value per column)."""
        gram = self.inner_product(self)
        if np.ndim(gram) == 0:
            return float(np.sqrt(abs(gram)))
        return np.sqrt(np.abs(np.diag(gram)))

    def qr(self, output: str = "matrix", method: str = "builtin"):
        """QR factorization of a quasimatrix; see :func:`spectrafun.qr.qr`."""
        from spectrafun.qr import qr

        return qr(self, output=output, method=method)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def __getstate__(self) -> dict:
        from spectrafun._version import __version__

        state = self.__dict__.copy()
        state["_spectrafun_version"] = __version__
        return state

    def __setstate__(self, state: dict) -> None:
        from spectrafun._version import __version__

        saved_version = state.pop("_spectrafun_version", None)
        if saved_version is not None and saved_version != __version__:
            warnings.warn(
                f"This object was saved with spectrafun {saved_version}, "
                f"but you are loading it with {__version__}. "
                f"Evaluation results may differ if internal data layout changed.",
                UserWarning,
                stacklevel=2,
            )
        self.__dict__.update(state)
        coeffs = np.array(self.coeffs)
        coeffs.flags.writeable = False
        self.coeffs = coeffs

    def save(self, path: str | os.PathLike) -> None:
        """Save the representation to a file with :mod:`pickle`."""
        with open(os.fspath(path), "wb") as f:
            pickle.dump(self, f, protocol=pickle.HIGHEST_PROTOCOL)

    @classmethod
    def load(cls, path: str | os.PathLike) -> "Representation":
        """Load a representation written by :meth:`save`.

        .. warning::

            This method uses :mod:`pickle` internally. Pickle can execute
            arbitrary code during deserialization. **Only load files you
            trust.**
        """
        with open(os.fspath(path), "rb") as f:
            obj = pickle.load(f)  # noqa: S301
        if not isinstance(obj, cls):
            raise TypeError(
                f"Expected a {cls.__name__} instance, got {type(obj).__name__}"
            )
        return obj

    # ------------------------------------------------------------------
    # Printing
    # ------------------------------------------------------------------

    def __repr__(self) -> str:
        return (
            f"Representation("
            f"dims={self.num_dimensions}, "
            f"shape={list(self.shape)}, "
            f"columns={self.n_columns}, "
            f"resolved={self.resolved})"
        )

    def __str__(self) -> str:
        status = "resolved" if self.resolved else "NOT resolved"
        domain_str = " x ".join(f"[{lo}, {hi}]" for lo, hi in self.domain)
        bases_str = ", ".join(b.value for b in self.bases)
        lines = [
            f"Representation ({self.num_dimensions}D, {status})",
            f"  Lengths:     {list(self.shape)}",
            f"  Bases:       {bases_str}",
            f"  Domain:      {domain_str}",
            f"  vscale:      {self.scale.vscale:.3e}",
            f"  Accuracy:    {self.scale.accuracy:.2e}",
        ]
        if self.is_array_valued:
            lines.append(f"  Columns:     {self.n_columns}")
        return "\n".join(lines)


def hstack(columns: Sequence[Representation]) -> Representation:
    """Join 1-D representations on one interval into a quasimatrix.

    Columns of differing lengths are zero-extended to the longest length.
    """
    columns = list(columns)
    if not columns:
        raise ValueError("hstack needs at least one column")
    first = columns[0]
    for col in columns[1:]:
        first._check_same_interval(col)
    if first.num_dimensions != 1:
        raise ValueError("hstack joins 1-D representations only")
    n = max(col.shape[0] for col in columns)
    blocks = [
        np.asarray(col.prolong([n]).coeffs).reshape(n, -1) for col in columns
    ]
    coeffs = np.concatenate(blocks, axis=1)
    scale = ScaleInfo(
        max(col.scale.vscale for col in columns),
        first.scale.hscale,
        max(col.scale.accuracy for col in columns),
    )
    return Representation(
        coeffs, first.domain, first.bases, scale=scale,
        resolved=all(col.resolved for col in columns),
        is_real=all(col.is_real for col in columns),
    )

"""Sampling of function handles on tensor grids."""

from __future__ import annotations

import numbers
import warnings
from typing import Callable, List, Sequence, Tuple

import numpy as np

from spectrafun._errors import EvaluationError, VectorizationFallback

# Errors that mean "this handle does not take arrays", not "this handle is broken".
_NOT_VECTORIZED = (TypeError, ValueError, IndexError)


def _is_constant(function) -> bool:
    return isinstance(function, (numbers.Number, np.number))


def _evaluate_pointwise(function: Callable, mesh: List[np.ndarray]) -> np.ndarray:
    shape = mesh[0].shape
    results = []
    for idx in np.ndindex(*shape):
        results.append(function(*[float(m[idx]) for m in mesh]))
    values = np.asarray(results)
    return values.reshape(shape + values.shape[1:])


def _fit_to_grid(out, shape: Tuple[int, ...]):
    """Return *out* shaped like the grid (plus a column axis), or None."""
    out = np.asarray(out)
    if out.shape == shape or out.shape[:-1] == shape:
        return out
    try:
        return np.broadcast_to(out, shape).copy()
    except ValueError:
        return None


def _sample_one(function, mesh: List[np.ndarray], vectorized: bool,
                stacklevel: int):
    shape = mesh[0].shape
    n_points = int(np.prod(shape))
    if _is_constant(function):
        return np.full(shape, function), 0, vectorized

    if not vectorized:
        return _evaluate_pointwise(function, mesh), n_points, False

    try:
        out = function(*mesh)
    except _NOT_VECTORIZED:
        out = None
    else:
        if np.ndim(out) == 0:
            # A handle that ignores its arguments is a constant.
            return np.full(shape, np.asarray(out)[()]), n_points, True
        out = _fit_to_grid(out, shape)
    if out is not None:
        return out, n_points, True

    warnings.warn(
        "Function did not evaluate correctly on an array of points; "
        "falling back to point-by-point evaluation. Pass vectorized=False "
        "to skip the array attempt.",
        VectorizationFallback,
        stacklevel=stacklevel + 1,
    )
    return _evaluate_pointwise(function, mesh), n_points, False


def check_finite(values: np.ndarray) -> None:
    """Raise :class:`EvaluationError` if *values* holds NaN or Inf."""
    if np.isnan(values).any():
        raise EvaluationError("Function returned NaN when evaluated")
    if np.isinf(values).any():
        raise EvaluationError("Function returned Inf when evaluated")


def sample(function, grids: Sequence[np.ndarray], vectorized: bool = True,
           stacklevel: int = 2):
    """Evaluate *function* on the tensor product of *grids*.

    Parameters
    ----------
    function : callable, number, or sequence of these
        A callable is invoked as ``function(x1, ..., xd)`` with arrays of the
        full grid shape (``indexing='ij'``), or point by point with floats if
        that fails or ``vectorized`` is False. A number is a constant
        function. A list or tuple builds an array-valued tensor whose trailing
        axis indexes the entries.
    grids : sequence of ndarray
        Physical coordinates along each axis.
    vectorized : bool, optional
        Attempt a single array call first. Default is True.
    stacklevel : int, optional
        Stack level of the fallback advisory, counted from this function as
        in :func:`warnings.warn`. Default is 2 (the caller).

    Returns
    -------
    values : ndarray
        Shape ``tuple(len(g) for g in grids)``, with a trailing column axis
        for array-valued functions.
    n_evaluations : int
        Number of point evaluations spent.
    vectorized : bool
        False if the handle had to be evaluated point by point, so later
        calls can skip the array attempt.

    Raises
    ------
    EvaluationError
        If any sampled value is NaN or Inf.
    """
    mesh = np.meshgrid(*[np.asarray(g, dtype=float) for g in grids], indexing="ij")
    if isinstance(function, (list, tuple)):
        columns = []
        total = 0
        still_vectorized = vectorized
        for f in function:
            vals, count, ok = _sample_one(f, mesh, vectorized, stacklevel)
            still_vectorized = still_vectorized and ok
            if vals.shape != mesh[0].shape:
                raise ValueError(
                    "Each entry of an array-valued function must return a scalar"
                )
            columns.append(vals)
            total += count
        values = np.stack(columns, axis=-1)
    else:
        values, total, still_vectorized = _sample_one(
            function, mesh, vectorized, stacklevel
        )

    values = np.asarray(values)
    if values.ndim > len(grids) + 1:
        raise ValueError(
            f"Function returned values of shape {values.shape[len(grids):]} per "
            f"point; at most one column axis is supported"
        )
    if not np.iscomplexobj(values):
        values = values.astype(float)
    check_finite(values)
    return values, total, still_vectorized

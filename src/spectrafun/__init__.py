"""spectrafun: Adaptive spectral representations of functions on boxes.

Provides :func:`construct` and the :class:`AdaptiveConstructor` class for
sampling a function on growing Chebyshev/Fourier tensor grids until its
coefficient tails resolve, the :class:`Representation` class holding the
resulting coefficient tensor, and :func:`qr` for the continuous QR
factorization of quasimatrices (columns of 1-D functions).

Example
-------
>>> import numpy as np
>>> from spectrafun import construct
>>> f = construct(np.sin, [(-np.pi, np.pi)], min_samples=8)
>>> f.resolved
True
>>> round(float(f(1.0)), 12)
0.841470984808
"""

from spectrafun._errors import (
    ConstructionCancelled,
    DegenerateInputError,
    EvaluationError,
    ResolutionFailure,
    VectorizationFallback,
)
from spectrafun._version import __version__
from spectrafun.constructor import (
    AdaptiveConstructor,
    ConstructionState,
    construct,
    construct_ball,
)
from spectrafun.qr import qr
from spectrafun.representation import Representation, ScaleInfo, hstack
from spectrafun.transforms import Basis

__all__ = [
    "AdaptiveConstructor",
    "Basis",
    "ConstructionCancelled",
    "ConstructionState",
    "DegenerateInputError",
    "EvaluationError",
    "Representation",
    "ResolutionFailure",
    "ScaleInfo",
    "VectorizationFallback",
    "construct",
    "construct_ball",
    "hstack",
    "qr",
    "__version__",
]

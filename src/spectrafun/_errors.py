"""Exception and warning classes raised during construction and factorization."""


class EvaluationError(ValueError):
    """The function handle produced NaN or Inf on the sampling grid."""


class DegenerateInputError(ValueError):
    """The domain is ill-formed (empty, zero-length, or inconsistent axes)."""


class ConstructionCancelled(RuntimeError):
    """Construction was cancelled before the next sampling step."""


class VectorizationFallback(UserWarning):
    """The function handle rejected array input and was evaluated point by point."""


class ResolutionFailure(UserWarning):
    """The size cap was reached before every axis resolved."""

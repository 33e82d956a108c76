"""Shared test fixtures for spectrafun tests."""

import numpy as np
import pytest

from spectrafun import AdaptiveConstructor, construct
from spectrafun._cache import OPERATOR_CACHE


# ---------------------------------------------------------------------------
# Test functions
# ---------------------------------------------------------------------------

def runge(x):
    """1 / (1 + 25 x^2)"""
    return 1.0 / (1.0 + 25.0 * x * x)


def smooth_2d(x, y):
    """exp(x) * cos(y)"""
    return np.exp(x) * np.cos(y)


class CountdownEvent:
    """Cancellation token that becomes set after ``n`` polls."""

    def __init__(self, n):
        self.remaining = n

    def is_set(self):
        self.remaining -= 1
        return self.remaining < 0


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def fresh_cache():
    """Empty the process-wide operator cache before and after a test."""
    OPERATOR_CACHE.clear()
    yield OPERATOR_CACHE
    OPERATOR_CACHE.clear()


@pytest.fixture
def sin_constructor():
    """sin(x) on [-pi, pi] from 8 samples, already built."""
    ctor = AdaptiveConstructor(np.sin, [(-np.pi, np.pi)], min_samples=8)
    ctor.build(verbose=False)
    return ctor


@pytest.fixture
def sin_rep():
    """Resolved sin(x) on [-pi, pi]."""
    return construct(np.sin, [(-np.pi, np.pi)], min_samples=8)


@pytest.fixture
def exp_cos_2d():
    """Resolved exp(x) cos(y) on [-1, 1] x [0, 2]."""
    return construct(smooth_2d, [(-1, 1), (0, 2)])


@pytest.fixture
def periodic_rep():
    """Resolved exp(sin(t)) on the periodic interval [0, 2 pi]."""
    return construct(lambda t: np.exp(np.sin(t)), [(0, 2 * np.pi)], bases="fourier")


@pytest.fixture
def poly_quasimatrix():
    """Columns 1, x, x^2 and x^3 + x on [-1, 1]."""
    return construct(
        [lambda x: 1.0 + 0.0 * x, lambda x: x, lambda x: x ** 2, lambda x: x ** 3 + x],
        [(-1, 1)],
    )


@pytest.fixture
def smooth_quasimatrix():
    """Columns exp(x), sin(3x), runge(x) and cos(x) on [0, 3]."""
    return construct(
        [np.exp, lambda x: np.sin(3 * x), runge, np.cos],
        [(0, 3)],
    )


@pytest.fixture
def fourier_quasimatrix():
    """Columns cos(t), sin(t), 1 and cos(t)^2 on [-pi, pi], Fourier basis."""
    return construct(
        [np.cos, np.sin, lambda t: 1.0 + 0.0 * t, lambda t: np.cos(t) ** 2],
        [(-np.pi, np.pi)],
        bases="fourier",
    )

"""Quick start example: resolve a 2D function and orthonormalize a quasimatrix."""

import numpy as np

from spectrafun import AdaptiveConstructor, construct, qr


def f(x, y):
    """A smooth 2D function: sin(x) * exp(-y)."""
    return np.sin(x) * np.exp(-y)


# Build adaptively
builder = AdaptiveConstructor(f, domain=[(-3, 3), (0, 2)])
rep = builder.build()
print(rep)

# Evaluate at a test point
point = (1.0, 0.5)
exact = f(*point)
approx = float(rep(*point))

print(f"\nExact:  {exact:.10f}")
print(f"Approx: {approx:.10f}")
print(f"Error:  {abs(approx - exact):.2e}")

# Orthonormalize three columns on [0, 2]
A = construct([np.exp, np.cos, lambda x: x ** 2], [(0, 2)])
Q, R, E = qr(A, output="vector")
print(f"\nPivot order: {list(E)}")
print(f"diag(R): {np.diag(R)}")
print(f"max |Q'Q - I|: {np.abs(Q.inner_product(Q) - np.eye(3)).max():.2e}")

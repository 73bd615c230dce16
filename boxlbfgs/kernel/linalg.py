"""Vector helpers of the reference step routine."""

from __future__ import annotations

from typing import Tuple

import numpy as np

from ..core import Array, BoundType


def box(l: Array, u: Array, nbd: Array, n: int) -> Tuple[Array, Array]:
    """
    Expand ``(l, u, nbd)`` into full lower/upper vectors.

    Sides marked absent by ``nbd`` become ``-inf``/``+inf``, so ``l`` and
    ``u`` may be empty placeholders when no code refers to them.
    """
    lo = np.full(n, -np.inf)
    hi = np.full(n, np.inf)
    has_lower = (nbd == BoundType.LOWER) | (nbd == BoundType.BOTH)
    has_upper = (nbd == BoundType.UPPER) | (nbd == BoundType.BOTH)
    if has_lower.any():
        lo[has_lower] = l[:n][has_lower]
    if has_upper.any():
        hi[has_upper] = u[:n][has_upper]
    return lo, hi


def projected_grad_norm(x: Array, g: Array, lo: Array, hi: Array) -> float:
    """Infinity norm of the gradient projected onto the box."""
    if x.size == 0:
        return 0.0
    pg = np.where(g < 0, np.maximum(x - hi, g), np.minimum(x - lo, g))
    return float(np.max(np.abs(pg)))


def free_variables(x: Array, g: Array, lo: Array, hi: Array) -> Array:
    """Mask of variables not held at a bound by the gradient."""
    held = ((x <= lo) & (g > 0)) | ((x >= hi) & (g < 0))
    return ~held


def two_loop(
    q: Array,
    S: Array,
    Y: Array,
    rho: Array,
    alpha: Array,
    head: int,
    col: int,
    theta: float,
) -> Array:
    """
    Apply the limited-memory inverse Hessian to ``q``.

    ``S``/``Y`` are circular ``(m, n)`` stores whose oldest pair sits at
    ``head``; ``col`` pairs are valid. The initial matrix is
    ``I / theta``. ``alpha`` receives the first-loop coefficients.
    """
    m = S.shape[0]
    order = [(head + k) % m for k in range(col)]
    q = q.copy()
    for k in reversed(order):
        alpha[k] = rho[k] * float(np.dot(S[k], q))
        q -= alpha[k] * Y[k]
    r = q / theta
    for k in order:
        beta = rho[k] * float(np.dot(Y[k], r))
        r += S[k] * (alpha[k] - beta)
    return r


__all__ = ["box", "free_variables", "projected_grad_norm", "two_loop"]

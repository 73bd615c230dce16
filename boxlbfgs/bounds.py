"""Conversion of optional box bounds into the step routine's boundary codes.

``-inf`` in the lower vector and ``+inf`` in the upper vector mean "no bound
on that side", so callers can mix bounded and free variables in one vector.
A side without any bound is handed to the step routine as an empty
placeholder; the codes guarantee it is never read.
"""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from .core import FLOAT, INT, Array, BoundType
from .errors import InvalidArgument

EMPTY = np.empty(0, dtype=FLOAT)
EMPTY.flags.writeable = False


def _as_bound(vec, name: str, n: int) -> Array:
    # float64 1-D arrays are referenced, not copied
    arr = np.asarray(vec, dtype=FLOAT)
    if arr.ndim != 1:
        raise InvalidArgument(f"{name} must be one-dimensional, got shape {arr.shape}")
    if arr.shape[0] < n:
        raise InvalidArgument(f"dim {name} = {arr.shape[0]} < dim x = {n}")
    return arr


def encode_bounds(
    n: int, lower: Optional[Array] = None, upper: Optional[Array] = None
) -> Tuple[Array, Array, Array]:
    """Return ``(l, u, nbd)`` for a problem of dimension ``n``.

    Parameters
    ----------
    n:
        Problem dimension.
    lower, upper:
        Optional bound vectors of length at least ``n``. Only the first
        ``n`` entries are used.

    Returns
    -------
    tuple
        The lower and upper vectors handed to the step routine (``EMPTY``
        for an absent side) and the int32 vector of :class:`BoundType` codes.

    Raises
    ------
    InvalidArgument
        If a supplied vector is shorter than ``n``.
    """
    nbd = np.zeros(n, dtype=INT)
    if lower is None and upper is None:
        return EMPTY, EMPTY, nbd

    l = EMPTY if lower is None else _as_bound(lower, "lower", n)
    u = EMPTY if upper is None else _as_bound(upper, "upper", n)

    has_lower = np.zeros(n, dtype=bool) if lower is None else l[:n] != -np.inf
    has_upper = np.zeros(n, dtype=bool) if upper is None else u[:n] != np.inf

    nbd[has_lower & ~has_upper] = BoundType.LOWER
    nbd[has_lower & has_upper] = BoundType.BOTH
    nbd[~has_lower & has_upper] = BoundType.UPPER
    return l, u, nbd


__all__ = ["EMPTY", "encode_bounds"]

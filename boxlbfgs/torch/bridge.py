"""Run the driver on PyTorch tensors.

The driver works on float64 NumPy vectors. Here a tensor of any shape,
dtype or device is copied into such a vector once, the objective sees
tensors shaped and typed like the caller's, and the final point is copied
back into the caller's tensor.
"""

from __future__ import annotations

from typing import Any, Callable, Optional, Tuple

import numpy as np
import torch

from ..core import FLOAT, Array
from ..driver import minimize

TensorObjective = Callable[[torch.Tensor], Tuple[Any, torch.Tensor]]


def to_vector(t: torch.Tensor) -> Array:
    """Return a fresh flat float64 NumPy copy of ``t``."""
    return t.detach().to(device="cpu", dtype=torch.float64).reshape(-1).numpy().copy()


def _as_bound(bound: Any, n: int) -> Optional[Array]:
    if bound is None:
        return None
    if isinstance(bound, torch.Tensor):
        return to_vector(bound)
    if isinstance(bound, (int, float)):
        return np.full(n, float(bound), dtype=FLOAT)
    return np.asarray(bound, dtype=FLOAT).reshape(-1)


def minimize_tensor(
    f_df: TensorObjective,
    x: torch.Tensor,
    lower: Any = None,
    upper: Any = None,
    **kwargs: Any,
) -> float:
    """
    Minimize ``f_df`` starting from the tensor ``x``, updated in place.

    Parameters
    ----------
    f_df:
        ``f_df(t) -> (value, gradient)`` where ``t`` has the shape, dtype
        and device of ``x`` and ``gradient`` has as many elements as ``x``.
    x:
        Starting point. Receives the final point, or the last evaluated
        point when the run raises.
    lower, upper:
        Bounds as tensors, arrays, scalars (applied to every element) or
        None.
    **kwargs:
        Forwarded to :func:`boxlbfgs.driver.minimize`.

    Returns
    -------
    float
        Final function value.
    """
    buf = to_vector(x)
    n = buf.shape[0]

    def f_df_vector(point: Array) -> Tuple[float, Array]:
        t = torch.from_numpy(point.copy()).to(device=x.device, dtype=x.dtype).reshape(x.shape)
        value, grad = f_df(t)
        if isinstance(value, torch.Tensor):
            value = value.item()
        return float(value), to_vector(grad)

    try:
        value = minimize(
            f_df_vector, buf, _as_bound(lower, n), _as_bound(upper, n), **kwargs
        )
    finally:
        with torch.no_grad():
            x.copy_(torch.from_numpy(buf).reshape(x.shape))
    return value


__all__ = ["TensorObjective", "minimize_tensor", "to_vector"]

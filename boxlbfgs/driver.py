"""Reverse-communication driver for L-BFGS-B style step routines.

Example
-------
>>> import numpy as np
>>> from boxlbfgs import minimize
>>> target = np.array([1.0, -2.0, 3.0])
>>> def f_df(x):
...     r = x - target
...     return float(r @ r), 2.0 * r
>>> x = np.zeros(3)
>>> value = minimize(f_df, x, lower=np.zeros(3))
>>> np.round(x, 6).tolist()
[1.0, 0.0, 3.0]
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import Any, Callable, Optional, Tuple

import numpy as np

from .bounds import encode_bounds
from .core import (
    FLOAT,
    INT,
    TASK_LEN,
    Array,
    ObjectiveAndGradient,
    OptimizeResult,
    Status,
    StopPredicate,
    Stepper,
    Task,
)
from .diagnostics import Diagnostics, is_debug_enabled
from .errors import AbnormalTermination, InvalidArgument
from .kernel import setulb
from .logging import get_logger
from .workspace import Workspace, create_workspace, validate_workspace

logger = get_logger(__name__)

_PRINT_LEVELS = {"none": -1, "last": 0, "details": 99, "all": 100, "full": 101}


def print_level_to_iprint(level: str | int) -> int:
    """
    Translate a print level into the step routine's integer verbosity.

    ``"none"`` is silent, ``"last"`` reports only the end of the run, an
    integer ``i`` reports every ``i`` iterations (clamped to ``[1, 98]``,
    non-positive values are silent), and ``"details"``, ``"all"`` and
    ``"full"`` report progressively more of every iteration.

    Raises:
        ValueError: If ``level`` is an unknown name.
    """
    if isinstance(level, (int, np.integer)) and not isinstance(level, bool):
        if level <= 0:
            return -1
        return min(int(level), 98)
    name = str(level).lower()
    if name not in _PRINT_LEVELS:
        supported = list(_PRINT_LEVELS)
        raise ValueError(
            f"Unsupported print level {level!r}. "
            f"Supported names: {supported} or a positive iteration period"
        )
    return _PRINT_LEVELS[name]


@dataclass(frozen=True)
class LBFGSBConfig:
    """
    Options of :func:`minimize`.

    Args:
        corrections: Number of correction pairs kept (history depth ``m``).
        factr: Stop when the relative reduction of ``f`` falls below
            ``factr`` times machine epsilon. Typical values: 1e12 for low
            accuracy, 1e7 for moderate, 10 for extremely high accuracy.
        pgtol: Stop when the infinity norm of the projected gradient falls
            below ``pgtol``.
        max_steps: Stop once this many iterates have been accepted.
            ``None`` means no limit.
        print_level: Verbosity handed to the step routine; see
            :func:`print_level_to_iprint`. Output goes through
            :mod:`boxlbfgs.logging` at INFO level.
    """

    corrections: int = 10
    factr: float = 1e7
    pgtol: float = 1e-5
    max_steps: Optional[int] = None
    print_level: str | int = "none"

    def validate(self) -> None:
        """Raise :class:`InvalidArgument` for out-of-range options."""
        if self.corrections <= 0:
            raise InvalidArgument("corrections must be > 0")
        if self.factr < 0:
            raise InvalidArgument("factr must be >= 0")
        if self.pgtol < 0:
            raise InvalidArgument("pgtol must be >= 0")
        if self.max_steps is not None and self.max_steps < 0:
            raise InvalidArgument("max_steps must be >= 0")
        print_level_to_iprint(self.print_level)


def _check_point(x: Any) -> Array:
    if not isinstance(x, np.ndarray):
        raise InvalidArgument(
            f"x must be a numpy.ndarray updated in place, got {type(x).__name__}"
        )
    if x.ndim != 1 or x.dtype != FLOAT:
        raise InvalidArgument(
            f"x must be a one-dimensional float64 array, got shape {x.shape} "
            f"and dtype {x.dtype}"
        )
    if not x.flags.writeable:
        raise InvalidArgument("x must be writeable")
    return x


def _stop_rule(
    max_steps: Optional[int], stop: Optional[StopPredicate]
) -> Callable[[Diagnostics], bool]:
    if max_steps is None and stop is None:
        return lambda diag: False
    if stop is None:
        return lambda diag: diag.iterations >= max_steps
    if max_steps is None:
        return lambda diag: bool(stop(diag))
    return lambda diag: diag.iterations >= max_steps or bool(stop(diag))


def _store_gradient(g: Array, grad: Any, n: int) -> None:
    grad = np.asarray(grad, dtype=FLOAT).reshape(-1)
    if grad.shape[0] != n:
        raise InvalidArgument(f"gradient has {grad.shape[0]} entries, expected {n}")
    g[:] = grad


def _check_contract(ws: Workspace, len_wa: int, len_iwa: int) -> None:
    """Verify the step routine left the workspace layout intact."""
    expected = (
        ("wa", ws.wa, len_wa, FLOAT),
        ("iwa", ws.iwa, len_iwa, INT),
        ("lsave", ws.lsave, 4, INT),
        ("isave", ws.isave, 44, INT),
        ("dsave", ws.dsave, 29, FLOAT),
    )
    for name, buf, size, dtype in expected:
        if buf.shape != (size,) or buf.dtype != dtype:
            raise AssertionError(
                f"step routine changed {name}: shape {buf.shape}, dtype {buf.dtype}"
            )
    for name, text in (("task", ws.task), ("csave", ws.csave)):
        if len(text) != TASK_LEN:
            raise AssertionError(f"step routine resized {name} to {len(text)} bytes")


def _run(
    f_df: ObjectiveAndGradient,
    x: Array,
    lower: Optional[Array],
    upper: Optional[Array],
    config: LBFGSBConfig,
    workspace: Optional[Workspace],
    stop: Optional[StopPredicate],
    step: Stepper,
) -> Tuple[float, Workspace, Status]:
    config.validate()
    x = _check_point(x)
    n = x.shape[0]
    m = config.corrections
    l, u, nbd = encode_bounds(n, lower, upper)
    if workspace is None:
        ws = create_workspace(n, m)
    else:
        validate_workspace(workspace, n, m)
        ws = workspace
    ws.set_start()

    iprint = print_level_to_iprint(config.print_level)
    should_stop = _stop_rule(config.max_steps, stop)
    diag = ws.diagnostics
    debug = is_debug_enabled()
    sizes = (ws.wa.shape[0], ws.iwa.shape[0])
    f = float("nan")
    g = np.zeros(n, dtype=FLOAT)

    logger.info("minimize: n = %d, m = %d, %d bounded variables", n, m, np.count_nonzero(nbd))
    while True:
        f = step(
            m=m, x=x, l=l, u=u, nbd=nbd, f=f, g=g,
            factr=config.factr, pgtol=config.pgtol,
            wa=ws.wa, iwa=ws.iwa, task=ws.task, iprint=iprint,
            csave=ws.csave, lsave=ws.lsave, isave=ws.isave, dsave=ws.dsave,
        )
        if debug:
            _check_contract(ws, *sizes)
        task = ws.task_code()
        logger.debug("task %s", ws.message())

        if task is Task.FG:
            value, grad = f_df(x)
            f = float(value)
            _store_gradient(g, grad, n)
        elif task is Task.NEW_X:
            if should_stop(diag):
                logger.info("minimize stopped by caller after %d iterations", diag.iterations)
                return f, ws, Status.STOPPED
        elif task is Task.CONVERGENCE:
            logger.info(
                "minimize converged: %s (f = %.6e, %d iterations, %d evaluations)",
                ws.message(), f, diag.iterations, diag.n_evaluations,
            )
            return f, ws, Status.CONVERGED
        elif task is Task.ABNORMAL:
            raise AbnormalTermination(f, ws.message())
        elif task is Task.ERROR:
            raise InvalidArgument(ws.message())
        else:
            raise AssertionError(f"step routine returned task {ws.message()!r}")


def _resolve(config: Optional[LBFGSBConfig], overrides: dict) -> LBFGSBConfig:
    config = config if config is not None else LBFGSBConfig()
    unknown = sorted(set(overrides) - {f.name for f in fields(LBFGSBConfig)})
    if unknown:
        supported = [f.name for f in fields(LBFGSBConfig)]
        raise InvalidArgument(
            f"Unknown option(s) {unknown}. Supported options: {supported}"
        )
    return replace(config, **overrides) if overrides else config


def minimize(
    f_df: ObjectiveAndGradient,
    x: Array,
    lower: Optional[Array] = None,
    upper: Optional[Array] = None,
    *,
    config: Optional[LBFGSBConfig] = None,
    workspace: Optional[Workspace] = None,
    stop: Optional[StopPredicate] = None,
    step: Optional[Stepper] = None,
    **overrides: Any,
) -> float:
    """
    Minimize ``f_df`` over the box ``lower <= x <= upper``.

    Parameters
    ----------
    f_df:
        ``f_df(x) -> (value, gradient)``. Called whenever the step routine
        requests an evaluation; ``x`` must not be kept or modified.
    x:
        Starting point, a writeable float64 vector. Holds the final point on
        return, and the last point handed to ``f_df`` if an error is raised.
    lower, upper:
        Optional bound vectors (length ``>= len(x)``). ``-inf``/``+inf``
        entries mean "unbounded on that side".
    config:
        :class:`LBFGSBConfig`; keyword ``overrides`` replace its fields,
        e.g. ``minimize(f_df, x, pgtol=1e-8, max_steps=50)``.
    workspace:
        Workspace to reuse; a fresh one is allocated when None.
    stop:
        ``stop(diagnostics) -> bool`` checked after every accepted iterate.
        Combined with ``max_steps`` by logical OR.
    step:
        Step routine with the :func:`boxlbfgs.kernel.setulb` signature.

    Returns
    -------
    float
        The function value at the final ``x``.

    Raises
    ------
    InvalidArgument
        Bad or unknown options, bounds or point, or an input error
        reported by the step routine.
    ResizeError
        ``workspace`` is too small for ``(len(x), corrections)``.
    AbnormalTermination
        The step routine gave up without converging.
    """
    f, _, _ = _run(
        f_df, x, lower, upper, _resolve(config, overrides), workspace, stop, step or setulb
    )
    return f


def minimize_result(
    f_df: ObjectiveAndGradient,
    x: Array,
    lower: Optional[Array] = None,
    upper: Optional[Array] = None,
    *,
    config: Optional[LBFGSBConfig] = None,
    workspace: Optional[Workspace] = None,
    stop: Optional[StopPredicate] = None,
    step: Optional[Stepper] = None,
    **overrides: Any,
) -> OptimizeResult:
    """Same as :func:`minimize` but return an :class:`OptimizeResult`."""
    f, ws, status = _run(
        f_df, x, lower, upper, _resolve(config, overrides), workspace, stop, step or setulb
    )
    diag = ws.diagnostics
    return OptimizeResult(
        x=x,
        fun=f,
        nit=diag.iterations,
        nfev=diag.n_evaluations,
        success=True,
        status=status,
        message=ws.message(),
        grad_norm=diag.proj_grad_norm,
    )


__all__ = [
    "LBFGSBConfig",
    "minimize",
    "minimize_result",
    "print_level_to_iprint",
]

"""Core types shared by the bound encoder, the workspace and the driver."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Callable, Optional, Tuple

import numpy as np

Array = np.ndarray
ObjectiveAndGradient = Callable[[Array], Tuple[float, Array]]
StopPredicate = Callable[..., bool]
Stepper = Callable[..., float]

FLOAT = np.float64
# FORTRAN 77 INTEGER is half the size of DOUBLE PRECISION.
INT = np.int32

TASK_LEN = 60
N_LSAVE = 4
N_ISAVE = 44
N_DSAVE = 29

START = b"START"


class BoundType(IntEnum):
    """Per-variable boundary code understood by the step routine."""

    UNBOUNDED = 0
    LOWER = 1
    BOTH = 2
    UPPER = 3


class Task(Enum):
    """Request returned by the step routine, keyed by the task's first byte."""

    START = "S"
    FG = "F"
    NEW_X = "N"
    CONVERGENCE = "C"
    ABNORMAL = "A"
    ERROR = "E"


_TASK_BY_LEAD = {ord(task.value): task for task in Task}


def decode_task(buf: bytes | bytearray) -> Task:
    """Decode the leading byte of a fixed-width task buffer.

    Raises
    ------
    AssertionError
        If the byte is not one of the known task codes. This signals a
        defect in the driver or in the step routine, not a user error.
    """
    lead = buf[0] if len(buf) else 0
    try:
        return _TASK_BY_LEAD[lead]
    except KeyError:
        raise AssertionError(
            f"step routine returned an unrecognised task {bytes(buf)!r}"
        ) from None


def fixed_width(text: bytes, width: int = TASK_LEN) -> bytearray:
    """Return ``text`` left-aligned in a space-padded buffer of ``width`` bytes."""
    if len(text) > width:
        text = text[:width]
    return bytearray(text.ljust(width, b" "))


def extract_message(buf: bytes | bytearray) -> str:
    """Return the text of a status buffer, cut at NUL and right-stripped."""
    raw = bytes(buf).split(b"\0", 1)[0]
    return raw.rstrip(b" \t\n").decode("ascii", errors="replace")


class Status(Enum):
    """How a successful run ended."""

    CONVERGED = "converged"
    STOPPED = "stopped"


@dataclass
class OptimizeResult:
    """Outcome of :func:`boxlbfgs.driver.minimize_result`.

    Attributes:
        x: Final point (the caller's array, updated in place).
        fun: Objective value at ``x``.
        nit: Number of accepted iterates.
        nfev: Number of function/gradient evaluations.
        success: Always True; failures are raised.
        status: Whether the step routine converged or the caller stopped it.
        message: Task text left by the step routine.
        grad_norm: Infinity norm of the projected gradient, if reported.
    """

    x: Array
    fun: float
    nit: int
    nfev: int
    success: bool
    status: Status
    message: str
    grad_norm: Optional[float] = None


__all__ = [
    "Array",
    "BoundType",
    "FLOAT",
    "INT",
    "N_DSAVE",
    "N_ISAVE",
    "N_LSAVE",
    "ObjectiveAndGradient",
    "OptimizeResult",
    "START",
    "Status",
    "StopPredicate",
    "Stepper",
    "TASK_LEN",
    "Task",
    "decode_task",
    "extract_message",
    "fixed_width",
]

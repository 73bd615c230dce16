"""Persistent scratch state of the step routine.

A :class:`Workspace` holds every buffer the step routine keeps between
calls. It is sized once from the problem dimension ``n`` and the correction
depth ``m`` and never grown; reuse it for problems that fit, or create a
new one when :func:`validate_workspace` raises :class:`ResizeError`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Tuple

import numpy as np

from .core import (
    FLOAT,
    INT,
    N_DSAVE,
    N_ISAVE,
    N_LSAVE,
    START,
    TASK_LEN,
    Array,
    Task,
    decode_task,
    extract_message,
    fixed_width,
)
from .errors import InvalidArgument, ResizeError

if TYPE_CHECKING:
    from .diagnostics import Diagnostics


def workspace_sizes(n: int, m: int) -> Tuple[int, int]:
    """Return the lengths of the float and integer scratch buffers."""
    return (2 * m + 4) * n + 12 * m * (m + 1), 3 * n


@dataclass(eq=False)
class Workspace:
    """Buffers of the step routine for one ``(n, m)``.

    Attributes:
        n: Problem dimension the workspace was created for.
        m: Correction depth the workspace was created for.
        wa: Float scratch, ``(2m + 4) n + 12 m (m + 1)`` entries.
        iwa: Integer scratch, ``3 n`` entries.
        task: 60-byte space-padded task string.
        csave: 60-byte space-padded secondary message string.
        lsave: Logical flags (4 entries).
        isave: Integer save array (44 entries).
        dsave: Float save array (29 entries).
    """

    n: int
    m: int
    wa: Array
    iwa: Array
    task: bytearray
    csave: bytearray
    lsave: Array
    isave: Array
    dsave: Array

    def set_start(self) -> None:
        """Reset the task string to the start request."""
        self.task[:] = fixed_width(START)

    def task_code(self) -> Task:
        return decode_task(self.task)

    def message(self) -> str:
        """Return the current task text without padding."""
        return extract_message(self.task)

    @property
    def diagnostics(self) -> "Diagnostics":
        from .diagnostics import Diagnostics

        return Diagnostics(self)


def _allocate(n: int, m: int) -> Workspace:
    len_wa, len_iwa = workspace_sizes(n, m)
    ws = Workspace(
        n=n,
        m=m,
        wa=np.zeros(len_wa, dtype=FLOAT),
        iwa=np.zeros(len_iwa, dtype=INT),
        # the step routine requires space-initialised strings
        task=bytearray(b" " * TASK_LEN),
        csave=bytearray(b" " * TASK_LEN),
        lsave=np.zeros(N_LSAVE, dtype=INT),
        isave=np.zeros(N_ISAVE, dtype=INT),
        dsave=np.zeros(N_DSAVE, dtype=FLOAT),
    )
    ws.set_start()
    return ws


def create_workspace(n: int, corrections: int = 10) -> Workspace:
    """Allocate a workspace for dimension ``n`` and ``corrections`` pairs.

    Raises
    ------
    InvalidArgument
        If ``n`` or ``corrections`` is not positive.
    """
    if corrections <= 0:
        raise InvalidArgument("corrections must be > 0")
    if n <= 0:
        raise InvalidArgument("n must be > 0")
    return _allocate(int(n), int(corrections))


def supported_dimension(ws: Workspace, m: int) -> int:
    """Largest ``n`` the buffers of ``ws`` can serve with ``m`` corrections."""
    from_wa = (ws.wa.shape[0] - 12 * m * (m + 1)) // (2 * m + 4)
    from_iwa = ws.iwa.shape[0] // 3
    return max(0, min(from_wa, from_iwa))


def validate_workspace(ws: Workspace, n: int, m: int) -> None:
    """Check that ``ws`` is large enough for dimension ``n`` and depth ``m``.

    Raises
    ------
    ResizeError
        If a scratch buffer is too small. The error carries the dimension
        to create a replacement with and the dimension ``ws`` does serve.
    """
    len_wa, len_iwa = workspace_sizes(n, m)
    if ws.wa.shape[0] < len_wa or ws.iwa.shape[0] < len_iwa:
        raise ResizeError(n, m, supported_dimension(ws, m))


__all__ = [
    "Workspace",
    "create_workspace",
    "supported_dimension",
    "validate_workspace",
    "workspace_sizes",
]

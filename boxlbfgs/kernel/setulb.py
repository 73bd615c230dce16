"""Reference reverse-communication step routine.

:func:`setulb` follows the calling contract of the L-BFGS-B routine of the
same name: every call advances the search by one request and rewrites the
task string, and everything it must remember lives in the buffers it is
handed. The method itself is a projected limited-memory BFGS: the search
direction is the two-loop recursion restricted to the variables not held
at a bound, and steps are taken along the projected path with Armijo
backtracking. Tasks, boundary codes and save-array slots match L-BFGS-B,
so the driver and :class:`~boxlbfgs.diagnostics.Diagnostics` work the same
with either routine.

Task sequence::

    START -> FG_START -> FG_LNSRCH ... -> NEW_X -> FG_LNSRCH ... -> NEW_X
          -> CONVERGENCE | ABNORMAL_TERMINATION_IN_LNSRCH | ERROR: ...
"""

from __future__ import annotations

import time

import numpy as np

from ..core import Array, BoundType, fixed_width
from ..logging import get_logger
from .linalg import box, free_variables, projected_grad_norm, two_loop

logger = get_logger(__name__)

MAXLS = 20
STPMX = 1e10
FTOL = 1e-3

CONV_GRAD = b"CONVERGENCE: NORM_OF_PROJECTED_GRADIENT_<=_PGTOL"
CONV_F = b"CONVERGENCE: REL_REDUCTION_OF_F_<=_FACTR*EPSMCH"
ABNORMAL = b"ABNORMAL_TERMINATION_IN_LNSRCH"

# lsave
_PRJCTD, _CNSTND, _BOXED, _UPDATD = range(4)
# isave
_HEAD, _COL, _IBACK, _NFREE, _NENTER, _NLEAVE = range(6)
_NINTOL, _NSKIP, _ITER, _NUPDATES, _NINT, _NFGV, _NFGV_LS = 21, 25, 29, 30, 32, 33, 35
# dsave
_THETA, _FOLD, _TOL, _DNORM, _EPSMCH, _CPU1 = range(6)
_CACHYT, _SBTIME, _LNSCHT, _TIME1, _GD, _STPMX, _SBGNRM, _STP, _GDOLD, _DTD = range(6, 16)


class _Frame:
    """Named views into the workspace buffers for one call."""

    def __init__(self, m: int, n: int, wa: Array, iwa: Array) -> None:
        mn = m * n
        self.S = wa[:mn].reshape(m, n)
        self.Y = wa[mn : 2 * mn].reshape(m, n)
        base = 2 * mn
        self.d = wa[base : base + n]
        self.t = wa[base + n : base + 2 * n]
        self.r = wa[base + 2 * n : base + 3 * n]
        small = (2 * m + 4) * n
        self.rho = wa[small : small + m]
        self.alpha = wa[small + m : small + 2 * m]
        self.free = iwa[:n]
        self.free_prev = iwa[n : 2 * n]
        self.clipped = iwa[2 * n : 3 * n]


def _set(buf: bytearray, text: bytes) -> None:
    buf[:] = fixed_width(text, len(buf))


def _input_error(m, n, l, u, nbd, factr) -> bytes | None:
    if n <= 0:
        return b"ERROR: N .LE. 0"
    if m <= 0:
        return b"ERROR: M .LE. 0"
    if factr < 0:
        return b"ERROR: FACTR .LT. 0"
    if nbd.shape[0] < n or np.any((nbd[:n] < 0) | (nbd[:n] > 3)):
        return b"ERROR: INVALID NBD"
    codes = nbd[:n]
    if np.any((codes == BoundType.LOWER) | (codes == BoundType.BOTH)) and l.shape[0] < n:
        return b"ERROR: INVALID NBD"
    if np.any((codes == BoundType.UPPER) | (codes == BoundType.BOTH)) and u.shape[0] < n:
        return b"ERROR: INVALID NBD"
    both = codes == BoundType.BOTH
    if np.any(both) and np.any(l[:n][both] > u[:n][both]):
        return b"ERROR: NO FEASIBLE SOLUTION"
    return None


def _start(m, x, l, u, nbd, f, factr, iwa, task, iprint, csave, lsave, isave, dsave):
    n = x.shape[0]
    error = _input_error(m, n, l, u, nbd, factr)
    if error is not None:
        _set(task, error)
        if iprint >= 0:
            logger.info("%s", error.decode())
        return f

    lsave[:] = 0
    isave[:] = 0
    dsave[:] = 0.0
    epsmch = float(np.finfo(float).eps)
    dsave[_EPSMCH] = epsmch
    dsave[_TOL] = factr * epsmch
    dsave[_THETA] = 1.0
    dsave[_STPMX] = STPMX
    dsave[_CPU1] = time.perf_counter()

    lo, hi = box(l, u, nbd, n)
    projected = np.clip(x, lo, hi)
    lsave[_PRJCTD] = int(np.any(projected != x))
    lsave[_CNSTND] = int(np.any(nbd[:n] != BoundType.UNBOUNDED))
    lsave[_BOXED] = int(np.all(nbd[:n] == BoundType.BOTH))
    x[:] = projected
    iwa[:n] = 1

    if iprint >= 0:
        logger.info("RUNNING THE L-BFGS-B CODE  N = %d  M = %d", n, m)
        if iprint >= 1:
            at_bound = int(np.count_nonzero((x <= lo) | (x >= hi)))
            logger.info("At X0 %d variables are exactly at the bounds", at_bound)
    _set(csave, b"")
    _set(task, b"FG_START")
    return f


def _finish(x, f, task, iprint, isave, dsave, message: bytes) -> float:
    _set(task, message)
    if iprint >= 0:
        logger.info(
            "Tit = %d  Tnf = %d  Tnint = %d  Skip = %d  Projg = %.3e  F = %.5e",
            isave[_ITER],
            isave[_NFGV],
            isave[_NINTOL],
            isave[_NSKIP],
            dsave[_SBGNRM],
            f,
        )
        logger.info("%s", message.decode())
        if iprint >= 100:
            logger.info("X = %s", np.array2string(x, precision=5))
    return f


def _reset_memory(isave, dsave, lsave) -> None:
    isave[_HEAD] = 0
    isave[_COL] = 0
    dsave[_THETA] = 1.0
    lsave[_UPDATD] = 0


def _begin_search(fr: _Frame, x, f, g, lo, hi, task, iprint, csave, lsave, isave, dsave):
    """Compute a search direction at ``x`` and request the first trial point."""
    clock = time.perf_counter()
    free = free_variables(x, g, lo, hi)
    fr.free_prev[:] = fr.free
    fr.free[:] = free
    isave[_NFREE] = int(np.count_nonzero(free))
    isave[_NENTER] = int(np.count_nonzero(free & (fr.free_prev == 0)))
    isave[_NLEAVE] = int(np.count_nonzero(~free & (fr.free_prev != 0)))
    if iprint >= 100 and isave[_ITER] > 0:
        logger.info(
            "%d variables leave; %d variables enter", isave[_NLEAVE], isave[_NENTER]
        )
    gfree = np.where(free, g, 0.0)
    now = time.perf_counter()
    dsave[_CACHYT] += now - clock
    clock = now

    col = int(isave[_COL])
    d = -two_loop(
        gfree, fr.S, fr.Y, fr.rho, fr.alpha, int(isave[_HEAD]), col, float(dsave[_THETA])
    )
    d[~free] = 0.0
    gd = float(np.dot(g, d))
    if col > 0 and not (gd < 0 and np.isfinite(gd)):
        if iprint >= 1:
            logger.info("ascent direction in projection gd = %.3e", gd)
        _reset_memory(isave, dsave, lsave)
        d = -gfree
        gd = float(np.dot(g, d))
    fr.d[:] = d
    now = time.perf_counter()
    dsave[_SBTIME] += now - clock
    clock = now

    dnorm = float(np.linalg.norm(d))
    if not (dnorm > 0 and np.isfinite(dnorm)):
        return _finish(x, f, task, iprint, isave, dsave, ABNORMAL)
    if isave[_ITER] == 0 and not lsave[_BOXED]:
        stp = min(1.0 / dnorm, dsave[_STPMX])
    else:
        stp = 1.0

    fr.t[:] = x
    fr.r[:] = g
    dsave[_FOLD] = f
    dsave[_GDOLD] = gd
    dsave[_DNORM] = dnorm
    dsave[_DTD] = dnorm * dnorm
    dsave[_STP] = stp
    isave[_IBACK] = 0
    isave[_NFGV_LS] = 0
    _trial(fr, x, lo, hi, stp, isave)
    dsave[_LNSCHT] += time.perf_counter() - clock
    _set(csave, b"FG")
    _set(task, b"FG_LNSRCH")
    return f


def _trial(fr: _Frame, x, lo, hi, stp, isave) -> None:
    """Place ``x`` on the projected path; every clipped coordinate is an interval."""
    full = fr.t + stp * fr.d
    projected = np.clip(full, lo, hi)
    fr.clipped[:] = projected != full
    isave[_NINT] = int(np.count_nonzero(fr.clipped))
    isave[_NINTOL] += isave[_NINT]
    x[:] = projected


def _initial(fr: _Frame, x, f, g, lo, hi, pgtol, task, iprint, csave, lsave, isave, dsave):
    isave[_NFGV] += 1
    if not (np.isfinite(f) and np.all(np.isfinite(g))):
        return _finish(x, f, task, iprint, isave, dsave, b"ERROR: INITIAL F OR G IS NOT FINITE")
    sbgnrm = projected_grad_norm(x, g, lo, hi)
    dsave[_SBGNRM] = sbgnrm
    if iprint >= 1:
        logger.info("At iterate %5d  f= %12.5e  |proj g|= %12.5e", 0, f, sbgnrm)
    if sbgnrm <= pgtol:
        return _finish(x, f, task, iprint, isave, dsave, CONV_GRAD)
    return _begin_search(fr, x, f, g, lo, hi, task, iprint, csave, lsave, isave, dsave)


def _line_search(fr: _Frame, x, f, g, lo, hi, task, iprint, csave, lsave, isave, dsave):
    clock = time.perf_counter()
    isave[_NFGV] += 1
    isave[_NFGV_LS] += 1
    fold = float(dsave[_FOLD])
    step = x - fr.t
    finite = bool(np.isfinite(f) and np.all(np.isfinite(g)))
    if finite and np.any(step != 0) and f <= fold + FTOL * float(np.dot(fr.r, step)):
        isave[_ITER] += 1
        dsave[_GD] = float(np.dot(g, fr.d))
        sbgnrm = projected_grad_norm(x, g, lo, hi)
        dsave[_SBGNRM] = sbgnrm
        dsave[_LNSCHT] += time.perf_counter() - clock
        _report_iterate(x, f, g, iprint, isave, dsave)
        _set(csave, b"CONVERGENCE")
        _set(task, b"NEW_X")
        return f

    isave[_IBACK] += 1
    stp = float(dsave[_STP]) * (0.5 if finite else 0.1)
    dsave[_STP] = stp
    if isave[_IBACK] < MAXLS:
        _trial(fr, x, lo, hi, stp, isave)
        if np.any(x != fr.t):
            dsave[_LNSCHT] += time.perf_counter() - clock
            return f

    # Line search failed: go back to the last accepted point.
    x[:] = fr.t
    g[:] = fr.r
    dsave[_LNSCHT] += time.perf_counter() - clock
    if isave[_COL] == 0:
        _set(csave, b"ERROR: LINE SEARCH FAILED")
        return _finish(x, fold, task, iprint, isave, dsave, ABNORMAL)
    if iprint >= 1:
        logger.info("Bad direction in the line search; refresh the lbfgs memory and restart")
    _reset_memory(isave, dsave, lsave)
    return _begin_search(fr, x, fold, g, lo, hi, task, iprint, csave, lsave, isave, dsave)


def _report_iterate(x, f, g, iprint, isave, dsave) -> None:
    it = int(isave[_ITER])
    if iprint >= 99:
        logger.info(
            "LINE SEARCH %d times; norm of step = %.5e",
            isave[_IBACK],
            dsave[_STP] * dsave[_DNORM],
        )
        logger.info("At iterate %5d  f= %12.5e  |proj g|= %12.5e", it, f, dsave[_SBGNRM])
        if iprint > 100:
            logger.info("X = %s", np.array2string(x, precision=5))
            logger.info("G = %s", np.array2string(g, precision=5))
    elif iprint > 0 and it % iprint == 0:
        logger.info("At iterate %5d  f= %12.5e  |proj g|= %12.5e", it, f, dsave[_SBGNRM])


def _next_iteration(fr: _Frame, m, x, f, g, lo, hi, pgtol, task, iprint, csave, lsave, isave, dsave):
    if dsave[_SBGNRM] <= pgtol:
        return _finish(x, f, task, iprint, isave, dsave, CONV_GRAD)
    fold = float(dsave[_FOLD])
    scale = max(abs(fold), abs(f), 1.0)
    if fold - f <= dsave[_TOL] * scale:
        return _finish(x, f, task, iprint, isave, dsave, CONV_F)

    s = x - fr.t
    y = g - fr.r
    ys = float(np.dot(y, s))
    yy = float(np.dot(y, y))
    if ys > dsave[_EPSMCH] * yy and ys > 0:
        head, col = int(isave[_HEAD]), int(isave[_COL])
        if col < m:
            slot = (head + col) % m
            isave[_COL] = col + 1
        else:
            slot = head
            isave[_HEAD] = (head + 1) % m
        fr.S[slot] = s
        fr.Y[slot] = y
        fr.rho[slot] = 1.0 / ys
        dsave[_THETA] = yy / ys
        isave[_NUPDATES] += 1
        lsave[_UPDATD] = 1
    else:
        isave[_NSKIP] += 1
    return _begin_search(fr, x, f, g, lo, hi, task, iprint, csave, lsave, isave, dsave)


def setulb(
    m: int,
    x: Array,
    l: Array,
    u: Array,
    nbd: Array,
    f: float,
    g: Array,
    factr: float,
    pgtol: float,
    wa: Array,
    iwa: Array,
    task: bytearray,
    iprint: int,
    csave: bytearray,
    lsave: Array,
    isave: Array,
    dsave: Array,
) -> float:
    """
    Advance the minimization by one reverse-communication request.

    Parameters
    ----------
    m:
        Number of correction pairs kept.
    x:
        Current point (float64, read-write). Overwritten with the point at
        which ``f`` and ``g`` are requested next.
    l, u, nbd:
        Bound vectors and :class:`~boxlbfgs.core.BoundType` codes.
    f, g:
        Function value and gradient (read-write) at ``x`` when the previous
        task was ``FG``.
    factr, pgtol:
        Relative-reduction factor (multiplied by machine epsilon) and
        projected-gradient tolerance.
    wa, iwa, lsave, isave, dsave:
        Workspace buffers; see :func:`boxlbfgs.workspace.workspace_sizes`.
    task, csave:
        60-byte space-padded status strings.
    iprint:
        Verbosity; negative is silent.

    Returns
    -------
    float
        The function value to thread into the next call.
    """
    if task.startswith(b"START"):
        return _start(m, x, l, u, nbd, f, factr, iwa, task, iprint, csave, lsave, isave, dsave)

    n = x.shape[0]
    fr = _Frame(m, n, wa, iwa)
    lo, hi = box(l, u, nbd, n)
    f = float(f)
    if task.startswith(b"FG_ST"):
        return _initial(fr, x, f, g, lo, hi, pgtol, task, iprint, csave, lsave, isave, dsave)
    if task.startswith(b"FG_LN"):
        return _line_search(fr, x, f, g, lo, hi, task, iprint, csave, lsave, isave, dsave)
    if task.startswith(b"NEW_X"):
        return _next_iteration(
            fr, m, x, f, g, lo, hi, pgtol, task, iprint, csave, lsave, isave, dsave
        )
    # CONVERGENCE, ABNORMAL, ERROR or STOP: nothing left to do.
    return f


__all__ = ["setulb"]

"""Exceptions raised by the driver and the workspace helpers."""

from __future__ import annotations


class LBFGSBError(Exception):
    """Base class of boxlbfgs failures."""


class InvalidArgument(LBFGSBError, ValueError):
    """Malformed caller input, or an input error reported by the step routine."""


class ResizeError(LBFGSBError, ValueError):
    """A workspace is too small for the requested problem.

    Attributes:
        n: Requested problem dimension.
        m: Requested correction depth.
        required_n: Dimension to pass to ``create_workspace`` to serve the
            request. This is the requested ``n`` itself, the smallest
            dimension whose freshly sized buffers fit.
        supported_n: Largest dimension the existing buffers serve at ``m``.
            Both sizing formulas are inverted with floor division, so this
            rounds down (a workspace sized for ``supported_n + 1`` would not
            fit), and it is never below 0.
    """

    def __init__(self, n: int, m: int, supported_n: int) -> None:
        self.n = n
        self.m = m
        self.required_n = n
        self.supported_n = supported_n
        super().__init__(
            f"workspace too small: got n = {n} (m = {m}), "
            f"workspace serves n <= {supported_n}"
        )


class AbnormalTermination(LBFGSBError, RuntimeError):
    """The step routine stopped without satisfying its convergence test.

    Attributes:
        f: Last function value.
        message: Status text reported by the step routine.
    """

    def __init__(self, f: float, message: str) -> None:
        self.f = f
        self.message = message
        super().__init__(f"{message} (f = {f!r})")


__all__ = ["AbnormalTermination", "InvalidArgument", "LBFGSBError", "ResizeError"]

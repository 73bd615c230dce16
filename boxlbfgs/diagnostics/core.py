"""Read-only view of the counters kept in a workspace's save arrays."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict

if TYPE_CHECKING:
    from ..workspace import Workspace

# 0-based slots of the L-BFGS-B save arrays.
_LSAVE_CONSTRAINED = 1

_ISAVE_INTERVALS = 21
_ISAVE_SKIPPED = 25
_ISAVE_ITER = 29
_ISAVE_UPDATES = 30
_ISAVE_INTERVALS_CURRENT = 32
_ISAVE_EVALS = 33
_ISAVE_EVALS_CURRENT = 35

_DSAVE_PREVIOUS_F = 1
_DSAVE_NORM_DIR = 3
_DSAVE_EPS = 4
_DSAVE_TIME_CAUCHY = 6
_DSAVE_TIME_SUBSPACE = 7
_DSAVE_TIME_LINE_SEARCH = 8
_DSAVE_SLOPE = 10
_DSAVE_PROJ_GRAD_NORM = 12
_DSAVE_SLOPE_INIT = 14


class Diagnostics:
    """
    Live accessors over a :class:`~boxlbfgs.workspace.Workspace`.

    Values are read from the workspace on every access, so a view obtained
    before a run reports the state after it. Before the first step all
    counters read as zero. Nothing here mutates the workspace.

    Parameters
    ----------
    workspace:
        Workspace to inspect.
    """

    __slots__ = ("_ws",)

    def __init__(self, workspace: "Workspace") -> None:
        self._ws = workspace

    @property
    def is_constrained(self) -> bool:
        """Whether any variable carries a bound."""
        return int(self._ws.lsave[_LSAVE_CONSTRAINED]) != 0

    @property
    def n_intervals(self) -> int:
        """
        Total number of path intervals explored while searching for steps.

        L-BFGS-B counts the breakpoint intervals of its Cauchy search. The
        reference kernel counts the coordinates clipped onto the box, summed
        over every trial point of every line search.
        """
        return int(self._ws.isave[_ISAVE_INTERVALS])

    @property
    def n_skipped_updates(self) -> int:
        return int(self._ws.isave[_ISAVE_SKIPPED])

    @property
    def iterations(self) -> int:
        """Number of accepted iterates."""
        return int(self._ws.isave[_ISAVE_ITER])

    @property
    def n_updates(self) -> int:
        """Number of correction pairs stored so far."""
        return int(self._ws.isave[_ISAVE_UPDATES])

    @property
    def n_intervals_current(self) -> int:
        """Intervals of the latest search; the reference kernel counts its last trial point."""
        return int(self._ws.isave[_ISAVE_INTERVALS_CURRENT])

    @property
    def n_evaluations(self) -> int:
        """Total number of function/gradient evaluations requested."""
        return int(self._ws.isave[_ISAVE_EVALS])

    @property
    def n_evaluations_current(self) -> int:
        """Evaluations requested by the current line search."""
        return int(self._ws.isave[_ISAVE_EVALS_CURRENT])

    @property
    def previous_f(self) -> float:
        return float(self._ws.dsave[_DSAVE_PREVIOUS_F])

    @property
    def norm_dir(self) -> float:
        """Euclidean norm of the current search direction."""
        return float(self._ws.dsave[_DSAVE_NORM_DIR])

    @property
    def eps(self) -> float:
        """Machine precision used by the step routine."""
        return float(self._ws.dsave[_DSAVE_EPS])

    @property
    def time_cauchy(self) -> float:
        """Seconds in the Cauchy search; the reference kernel times its free-variable selection."""
        return float(self._ws.dsave[_DSAVE_TIME_CAUCHY])

    @property
    def time_subspace_min(self) -> float:
        """Seconds in subspace minimization; the reference kernel times its two-loop direction."""
        return float(self._ws.dsave[_DSAVE_TIME_SUBSPACE])

    @property
    def time_line_search(self) -> float:
        return float(self._ws.dsave[_DSAVE_TIME_LINE_SEARCH])

    @property
    def slope(self) -> float:
        """Directional derivative at the current point."""
        return float(self._ws.dsave[_DSAVE_SLOPE])

    @property
    def slope_init(self) -> float:
        """Directional derivative at the start of the current line search."""
        return float(self._ws.dsave[_DSAVE_SLOPE_INIT])

    @property
    def proj_grad_norm(self) -> float:
        """Infinity norm of the projected gradient."""
        return float(self._ws.dsave[_DSAVE_PROJ_GRAD_NORM])

    def as_dict(self) -> Dict[str, Any]:
        """Return every field as a plain dictionary."""
        return {name: getattr(self, name) for name in FIELDS}

    def __repr__(self) -> str:
        return (
            f"Diagnostics(iterations={self.iterations}, "
            f"n_evaluations={self.n_evaluations}, "
            f"proj_grad_norm={self.proj_grad_norm:.3e})"
        )


FIELDS = (
    "is_constrained",
    "n_intervals",
    "n_skipped_updates",
    "iterations",
    "n_updates",
    "n_intervals_current",
    "n_evaluations",
    "n_evaluations_current",
    "previous_f",
    "norm_dir",
    "eps",
    "time_cauchy",
    "time_subspace_min",
    "time_line_search",
    "slope",
    "slope_init",
    "proj_grad_norm",
)


__all__ = ["Diagnostics", "FIELDS"]

"""End-to-end runs of the driver with the reference step routine."""

import numpy as np
import pytest

from boxlbfgs import (
    LBFGSBConfig,
    Status,
    Task,
    create_workspace,
    minimize,
    minimize_result,
)

from conftest import make_quadratic, rosenbrock


def test_unconstrained_quadratic(quadratic, target) -> None:
    """A separable quadratic is minimized from the origin."""
    x = np.zeros(5)
    ws = create_workspace(5)
    value = minimize(quadratic, x, workspace=ws)
    assert np.allclose(x, target, atol=1e-5)
    assert value < 1e-10
    assert ws.task_code() is Task.CONVERGENCE


def test_box_bounds_hold_the_solution_at_the_faces() -> None:
    """Components whose target lies outside the box end on the nearest face."""
    f_df = make_quadratic(np.array([-1.0, 1.0, 3.0]))
    x = np.ones(3)
    minimize(f_df, x, lower=np.zeros(3), upper=np.full(3, 2.0))
    assert np.allclose(x, [0.0, 1.0, 2.0], atol=1e-8)


def test_lower_bounds_only() -> None:
    f_df = make_quadratic(np.array([-1.0, -1.0, 2.0]))
    x = np.ones(3)
    minimize(f_df, x, lower=np.array([0.0, -np.inf, 0.0]))
    assert np.allclose(x, [0.0, -1.0, 2.0], atol=1e-5)


def test_upper_bounds_only() -> None:
    f_df = make_quadratic(np.array([3.0, -1.0]))
    x = np.zeros(2)
    minimize(f_df, x, upper=np.array([1.0, np.inf]))
    assert np.allclose(x, [1.0, -1.0], atol=1e-5)


def test_infeasible_start_is_projected_into_the_box() -> None:
    seen = []
    inner = make_quadratic(np.array([0.5, 0.5]))

    def f_df(x):
        seen.append(x.copy())
        return inner(x)

    x = np.array([5.0, -5.0])
    minimize(f_df, x, lower=np.zeros(2), upper=np.ones(2))
    assert np.all((seen[0] >= 0.0) & (seen[0] <= 1.0))
    assert np.allclose(x, [0.5, 0.5], atol=1e-5)


def test_ill_conditioned_quadratic(rng) -> None:
    """Curvature pairs make the method cope with badly scaled variables."""
    target = rng.normal(size=6)
    scale = np.logspace(0, 3, 6)
    x = np.zeros(6)
    minimize(make_quadratic(target, scale), x, factr=10.0)
    assert np.allclose(x, target, atol=1e-3)


def test_rosenbrock() -> None:
    x = np.array([-1.2, 1.0])
    value = minimize(rosenbrock, x)
    assert np.allclose(x, [1.0, 1.0], atol=1e-2)
    assert value < 1e-4


def test_rosenbrock_with_active_bound() -> None:
    """The constrained minimum lies on the upper bound of the first variable."""
    x = np.array([-1.2, 1.0])
    minimize(rosenbrock, x, upper=np.array([0.5, np.inf]))
    assert x[0] <= 0.5
    assert np.allclose(x, [0.5, 0.25], atol=1e-3)


@pytest.mark.parametrize("corrections", [1, 3, 17])
def test_history_depth_does_not_change_the_answer(quadratic, target, corrections) -> None:
    x = np.zeros(5)
    minimize(quadratic, x, config=LBFGSBConfig(corrections=corrections))
    assert np.allclose(x, target, atol=1e-5)


def test_result_object(quadratic, target) -> None:
    x = np.zeros(5)
    res = minimize_result(quadratic, x)
    assert res.x is x
    assert res.success
    assert res.status is Status.CONVERGED
    assert res.message.startswith("CONVERGENCE")
    assert res.nit >= 1
    assert res.nfev >= res.nit
    assert res.fun == pytest.approx(0.0, abs=1e-10)
    assert res.grad_norm <= 1e-5


def test_start_at_the_minimum_converges_without_iterating(quadratic, target) -> None:
    x = target.copy()
    res = minimize_result(quadratic, x)
    assert res.status is Status.CONVERGED
    assert res.nit == 0
    assert res.nfev == 1
    assert np.array_equal(x, target)

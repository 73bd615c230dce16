"""State-machine tests of the driver using scripted step routines."""

import numpy as np
import pytest

from boxlbfgs import (
    AbnormalTermination,
    InvalidArgument,
    Status,
    create_workspace,
    debug_context,
    minimize,
    minimize_result,
)
from boxlbfgs.core import fixed_width

from conftest import make_quadratic

_ITER = 29
_EVALS = 33


def scripted(*tasks, log=None):
    """Step routine that replays ``tasks`` and bumps the save counters."""
    remaining = list(tasks)

    def step(*, task, isave, f, **kwargs):
        if log is not None:
            log.append(dict(kwargs, f=f))
        text = remaining.pop(0)
        task[:] = fixed_width(text)
        if text.startswith(b"NEW_X"):
            isave[_ITER] += 1
        elif text.startswith(b"FG"):
            isave[_EVALS] += 1
        return f

    return step


def constant(value=3.0):
    calls = []

    def f_df(x):
        calls.append(x.copy())
        return value, np.zeros_like(x)

    return f_df, calls


def test_fg_then_convergence_returns_evaluated_value():
    f_df, calls = constant(4.5)
    step = scripted(b"FG_START", b"CONVERGENCE: NORM_OF_PROJECTED_GRADIENT_<=_PGTOL")
    assert minimize(f_df, np.zeros(2), step=step) == 4.5
    assert len(calls) == 1


def test_result_reports_convergence_message():
    f_df, _ = constant()
    step = scripted(b"FG_START", b"NEW_X", b"CONVERGENCE: REL_REDUCTION_OF_F")
    res = minimize_result(f_df, np.zeros(2), step=step)
    assert res.success
    assert res.status is Status.CONVERGED
    assert res.message == "CONVERGENCE: REL_REDUCTION_OF_F"
    assert res.nit == 1
    assert res.nfev == 1


def test_step_receives_contract_arguments():
    log = []
    f_df, _ = constant(2.0)
    step = scripted(b"FG_START", b"CONVERGENCE", log=log)
    lower = np.zeros(3)
    minimize(f_df, np.ones(3), lower=lower, step=step, corrections=4, pgtol=1e-3,
             factr=10.0, print_level="details")
    first = log[0]
    assert first["m"] == 4
    assert first["pgtol"] == 1e-3 and first["factr"] == 10.0
    assert first["iprint"] == 99
    assert first["l"] is lower
    assert first["u"].size == 0
    assert first["nbd"].tolist() == [1, 1, 1]
    assert np.isnan(first["f"])
    assert first["wa"].shape[0] == (2 * 4 + 4) * 3 + 12 * 4 * 5
    # the evaluated value is threaded into the next call
    assert log[1]["f"] == 2.0


def test_gradient_is_copied_into_the_gradient_buffer():
    log = []

    def f_df(x):
        return 1.0, np.array([1.0, -2.0])

    minimize(f_df, np.zeros(2), step=scripted(b"FG_START", b"CONVERGENCE", log=log))
    assert log[1]["g"].tolist() == [1.0, -2.0]


def test_abnormal_raises_with_value_and_message():
    f_df, _ = constant(7.0)
    step = scripted(b"FG_START", b"ABNORMAL_TERMINATION_IN_LNSRCH")
    with pytest.raises(AbnormalTermination) as excinfo:
        minimize(f_df, np.zeros(2), step=step)
    assert excinfo.value.f == 7.0
    assert excinfo.value.message == "ABNORMAL_TERMINATION_IN_LNSRCH"


def test_error_task_raises_invalid_argument():
    f_df, calls = constant()
    step = scripted(b"ERROR: NO FEASIBLE SOLUTION")
    with pytest.raises(InvalidArgument, match="NO FEASIBLE SOLUTION"):
        minimize(f_df, np.zeros(2), step=step)
    assert calls == []


@pytest.mark.parametrize("text", [b"XYZ", b"START", b""])
def test_unknown_task_is_a_contract_violation(text):
    f_df, _ = constant()
    with pytest.raises(AssertionError):
        minimize(f_df, np.zeros(2), step=scripted(text))


def test_stop_is_only_polled_at_new_iterates():
    seen = []

    def stop(diag):
        seen.append(diag.iterations)
        return False

    f_df, calls = constant()
    step = scripted(b"FG_START", b"FG_LNSRCH", b"NEW_X", b"FG_LNSRCH", b"NEW_X", b"CONVERGENCE")
    minimize(f_df, np.zeros(1), step=step, stop=stop)
    assert seen == [1, 2]
    assert len(calls) == 3


def test_stop_true_ends_run_without_further_evaluations():
    f_df, calls = constant()
    step = scripted(b"FG_START", b"NEW_X", b"FG_LNSRCH", b"CONVERGENCE")
    res = minimize_result(f_df, np.zeros(1), step=step, stop=lambda diag: True)
    assert res.status is Status.STOPPED
    assert len(calls) == 1


@pytest.mark.parametrize(
    "max_steps,stop_at,expected",
    [(None, 2, 2), (1, None, 1), (3, 5, 3), (4, 2, 2), (0, None, 1)],
)
def test_max_steps_and_stop_combine_with_or(max_steps, stop_at, expected):
    f_df, _ = constant()
    step = scripted(b"FG_START", *([b"NEW_X"] * 6), b"CONVERGENCE")
    stop = None if stop_at is None else (lambda diag: diag.iterations >= stop_at)
    ws = create_workspace(1)
    res = minimize_result(f_df, np.zeros(1), step=step, stop=stop, max_steps=max_steps,
                          workspace=ws)
    assert res.status is Status.STOPPED
    assert ws.diagnostics.iterations == expected


def test_wrong_gradient_length_is_rejected():
    def f_df(x):
        return 0.0, np.zeros(x.size + 1)

    with pytest.raises(InvalidArgument, match="gradient has 3 entries"):
        minimize(f_df, np.zeros(2), step=scripted(b"FG_START", b"CONVERGENCE"))


@pytest.mark.parametrize(
    "x",
    [[0.0, 1.0], np.zeros(3, dtype=np.float32), np.zeros((2, 2)), np.arange(3)],
)
def test_point_must_be_writeable_float64_vector(x):
    f_df, _ = constant()
    with pytest.raises(InvalidArgument):
        minimize(f_df, x, step=scripted(b"CONVERGENCE"))


def test_read_only_point_is_rejected():
    x = np.zeros(2)
    x.flags.writeable = False
    f_df, _ = constant()
    with pytest.raises(InvalidArgument, match="writeable"):
        minimize(f_df, x, step=scripted(b"CONVERGENCE"))


def test_non_positive_corrections_are_rejected():
    with pytest.raises(InvalidArgument, match="corrections"):
        minimize(make_quadratic(np.ones(2)), np.zeros(2), corrections=0)


def test_unknown_option_is_an_invalid_argument():
    f_df, calls = constant()
    with pytest.raises(InvalidArgument, match="tolerance") as excinfo:
        minimize(f_df, np.zeros(2), tolerance=1e-3, step=scripted(b"CONVERGENCE"))
    assert "pgtol" in str(excinfo.value)
    assert calls == []


def test_debug_mode_detects_resized_task_string():
    def step(*, task, f, **kwargs):
        task[:] = b"NEW_X"
        return f

    f_df, _ = constant()
    # without debug mode the short buffer still decodes
    minimize(f_df, np.zeros(1), step=step, max_steps=0)
    with debug_context(True):
        with pytest.raises(AssertionError, match="resized task"):
            minimize(f_df, np.zeros(1), step=step, max_steps=0)


def test_debug_mode_accepts_reference_step(quadratic, target):
    x = np.zeros_like(target)
    with debug_context(True):
        value = minimize(quadratic, x)
    assert value < 1e-10

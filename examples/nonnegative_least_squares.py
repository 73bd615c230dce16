"""
Example: Non-negative least squares with boxlbfgs

Fits ``A x ~= b`` subject to ``x >= 0`` by handing the residual norm and its
gradient to the reverse-communication driver. Also shows a reusable
workspace, a caller-supplied stopping rule and the iteration report.
"""

import logging

import numpy as np

from boxlbfgs import (
    Status,
    configure_logging,
    create_workspace,
    minimize_result,
)


def make_problem(rng: np.random.Generator, rows: int = 40, cols: int = 8):
    A = rng.normal(size=(rows, cols))
    truth = np.abs(rng.normal(size=cols))
    truth[::3] = 0.0
    b = A @ truth + 0.01 * rng.normal(size=rows)
    return A, b, truth


def example_nnls():
    print("=" * 60)
    print("Example 1: Non-negative least squares")
    print("=" * 60)

    rng = np.random.default_rng(7)
    A, b, truth = make_problem(rng)

    def f_df(x):
        r = A @ x - b
        return 0.5 * float(r @ r), A.T @ r

    x = np.ones(A.shape[1])
    res = minimize_result(f_df, x, lower=np.zeros_like(x), pgtol=1e-8)
    print(f"Status: {res.status.value} ({res.message})")
    print(f"Iterations: {res.nit}, evaluations: {res.nfev}")
    print(f"Recovered: {np.round(x, 3)}")
    print(f"Truth:     {np.round(truth, 3)}")
    print(f"Final objective: {res.fun:.6e}")
    print()


def example_early_stop():
    print("=" * 60)
    print("Example 2: Stopping rule and workspace reuse")
    print("=" * 60)

    rng = np.random.default_rng(11)
    A, b, _ = make_problem(rng)
    ws = create_workspace(A.shape[1], corrections=5)

    def f_df(x):
        r = A @ x - b
        return 0.5 * float(r @ r), A.T @ r

    x = np.zeros(A.shape[1])
    res = minimize_result(
        f_df,
        x,
        lower=np.zeros_like(x),
        corrections=5,
        workspace=ws,
        stop=lambda diag: diag.proj_grad_norm < 1e-2,
    )
    diag = ws.diagnostics
    print(f"Stopped by caller: {res.status is Status.STOPPED}")
    print(f"Diagnostics: {diag}")
    print(f"Intervals explored: {diag.n_intervals}, updates: {diag.n_updates}")
    print()


def example_progress_report():
    print("=" * 60)
    print("Example 3: Iteration report through logging")
    print("=" * 60)

    configure_logging(level=logging.INFO)
    try:
        target = np.array([1.0, -2.0, 3.0])

        def f_df(x):
            r = x - target
            return float(r @ r), 2.0 * r

        minimize_result(f_df, np.zeros(3), upper=np.full(3, 2.0), print_level=1)
    finally:
        configure_logging(level=logging.WARNING)
    print()


if __name__ == "__main__":
    example_nnls()
    example_early_stop()
    example_progress_report()

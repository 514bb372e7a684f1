"""MPI integration tests - spawn actual MPI processes via run_solver."""

import shutil

import numpy as np
import pytest
from mpi4py import MPI
from Laplace import SORSolver, create_field, random_field, run_solver

pytestmark = pytest.mark.skipif(shutil.which("mpiexec") is None, reason="mpiexec not found")

NB, MB = 4, 3


# Run solver once per config, reuse results
@pytest.fixture(scope="module")
def mpi_results():
    """Run all MPI configurations once."""
    return {
        (2, 4, "numpy"): run_solver(NB, MB, P=2, n_ranks=4, max_iter=12, halo_exchange="numpy"),
        (2, 4, "custom"): run_solver(NB, MB, P=2, n_ranks=4, max_iter=12, halo_exchange="custom"),
        (1, 2, "numpy"): run_solver(NB, MB, P=1, n_ranks=2, max_iter=12),
        (2, 2, "numpy"): run_solver(NB, MB, P=2, n_ranks=2, max_iter=12),
        "random": run_solver(NB, MB, P=2, n_ranks=4, max_iter=5, problem="random", seed=7),
        "early_exit": run_solver(
            NB, MB, P=2, n_ranks=4, max_iter=5000, epsilon=1e-3, early_exit=True,
            problem="random", boundary=0.0, seed=3,
        ),
    }


def emulate(field, P, Q, max_iter):
    field = field.copy()
    solver = SORSolver(field, P=P, Q=Q, max_iter=max_iter)
    solver.solve()
    return field, solver.timeseries.norm_history


@pytest.mark.parametrize("config", [(2, 4, "numpy"), (2, 4, "custom"), (1, 2, "numpy"), (2, 2, "numpy")])
def test_matches_block_emulation(mpi_results, config):
    """P x Q ranks compute exactly what P x Q virtual blocks compute."""
    P, n_ranks, _ = config
    Q = n_ranks // P
    r = mpi_results[config]
    assert "error" not in r, f"Failed: {r.get('error')}"

    expected, norms = emulate(create_field(P * NB, Q * MB), P, Q, 12)

    assert r["iterations"] == 12
    assert np.array_equal(r["field"], expected)
    assert np.allclose(r["norm_history"], norms, rtol=1e-12)


def test_random_problem(mpi_results):
    r = mpi_results["random"]
    assert "error" not in r, f"Failed: {r.get('error')}"

    expected, _ = emulate(random_field(2 * NB, 2 * MB, seed=7), 2, 2, 5)
    assert np.array_equal(r["field"], expected)


def test_exchangers_agree(mpi_results):
    """Packed buffers and vector datatypes move the same values."""
    a, b = mpi_results[(2, 4, "numpy")], mpi_results[(2, 4, "custom")]
    assert np.array_equal(a["field"], b["field"])
    assert np.array_equal(a["norm_history"], b["norm_history"])


def test_early_exit(mpi_results):
    r = mpi_results["early_exit"]
    assert "error" not in r, f"Failed: {r.get('error')}"
    assert r["converged"]
    assert r["iterations"] < 5000
    assert r["norm_history"][-1] < 1e-3
    assert np.all(r["norm_history"][:-1] >= 1e-3)


def test_launch_from_initialised_process():
    """mpiexec still starts when the calling process has already run MPI_Init."""
    assert MPI.Is_initialized()
    r = run_solver(NB, MB, P=1, n_ranks=2, max_iter=3)

    assert "error" not in r, f"Failed: {r.get('error')}"
    assert r["iterations"] == 3

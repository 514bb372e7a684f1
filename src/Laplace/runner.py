"""Run the SOR solver via mpiexec subprocess."""

import json
import os
import subprocess
import sys
import tempfile
from pathlib import Path


def run_solver(
    NB: int, MB: int, P: int = 1, n_ranks: int = 1, output: str = None,
    timeout: float = 600, **kwargs,
) -> dict:
    """Run the MPI solver with NB x MB blocks on n_ranks processes.

    Parameters
    ----------
    NB, MB : int
        Interior block size per rank.
    P : int
        Process grid width (n_ranks must be a multiple of P).
    n_ranks : int
        Number of MPI ranks.
    output : str, optional
        Path prefix for results (uses a temp dir if not provided).
    timeout : float
        Seconds before the mpiexec run is given up on.
    **kwargs
        Extra options: max_iter, epsilon, early_exit, halo_exchange,
        use_numba, problem, interior, boundary, seed

    Returns
    -------
    dict
        Config, metrics, ``field`` (gathered global field) and
        ``norm_history`` (or an 'error' key on failure).
    """
    import numpy as np
    import pandas as pd

    tmpdir = None
    if output is None:
        tmpdir = tempfile.TemporaryDirectory()
        output = str(Path(tmpdir.name) / "result")

    config = {"NB": NB, "MB": MB, "P": P, "output": output, **kwargs}
    cmd = [
        "mpiexec", "-n", str(n_ranks),
        sys.executable, "-m", "Laplace.helpers.runner_helper", json.dumps(config),
    ]

    # Python-level environment, without the variables MPI_Init set in C
    env = os.environ.copy()

    try:
        try:
            proc = subprocess.run(
                cmd, capture_output=True, text=True, timeout=timeout, env=env
            )
        except subprocess.TimeoutExpired as e:
            return {"error": f"mpiexec timed out after {e.timeout}s"}
        if proc.returncode != 0:
            return {"error": proc.stderr or proc.stdout}

        results_path = Path(f"{output}.json")
        arrays_path = Path(f"{output}.npz")
        if not results_path.exists() or not arrays_path.exists():
            return {"error": "No output file created", "stderr": proc.stderr}

        result = pd.read_json(
            results_path, orient="records", convert_dates=False
        ).iloc[0].to_dict()
        with np.load(arrays_path) as arrays:
            result["field"] = arrays["field"]
            result["norm_history"] = arrays["norm_history"]
        return result
    finally:
        if tmpdir is not None:
            tmpdir.cleanup()

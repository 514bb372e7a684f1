"""MPI worker - invoked via: mpiexec -n X python -m Laplace.helpers.runner_helper '{config}'"""

import json
import logging
import sys
from dataclasses import asdict

import numpy as np
from mpi4py import MPI

from Laplace import DistributedGrid, SORMPISolver, create_field, random_field

log = logging.getLogger(__name__)


def build_field(config: dict, nx: int, ny: int) -> np.ndarray:
    """Global initial field, identical on every rank."""
    problem = config.get("problem", "uniform")
    boundary = config.get("boundary", 10.0)
    if problem == "uniform":
        return create_field(nx, ny, interior=config.get("interior", 0.0), boundary=boundary)
    elif problem == "random":
        return random_field(nx, ny, seed=config.get("seed", 0), boundary=boundary)
    else:
        raise ValueError(f"Unknown problem: {problem}")


def main(config: dict, comm: MPI.Comm = MPI.COMM_WORLD):
    NB, MB, P = config["NB"], config["MB"], config.get("P", 1)
    leader = config.get("leader", 0)

    grid = DistributedGrid(NB, MB, P, comm, leader=leader)
    field = build_field(config, grid.nx, grid.ny)
    u = grid.scatter(field)

    solver = SORMPISolver(
        u, NB, MB, P, comm,
        halo_exchange=config.get("halo_exchange", "numpy"),
        epsilon=config.get("epsilon", 1e-6),
        max_iter=config.get("max_iter", 100),
        early_exit=config.get("early_exit", False),
        use_numba=config.get("use_numba", False),
        save_output=config.get("save_output", False),
        output_dir=config.get("output_dir", "pngs"),
        leader=leader,
    )
    if config.get("use_numba", False):
        solver.warmup()
    solver.solve()

    final = grid.gather(solver.u, template=field)

    output = config.get("output")
    if output and comm.Get_rank() == leader:
        import pandas as pd

        row = {**config, **asdict(solver.metrics), "n_ranks": comm.Get_size()}
        pd.DataFrame([row]).to_json(f"{output}.json", orient="records")
        np.savez(
            f"{output}.npz",
            field=final,
            norm_history=np.array(solver.timeseries.norm_history),
        )
        print(f"RESULT:{output}")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
    main(json.loads(sys.argv[1]))

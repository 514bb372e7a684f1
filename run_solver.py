"""
Solver Runner - runs in-process for one rank, re-launches under mpiexec otherwise.

Usage:
    python run_solver.py NB=128 MB=128 max_iter=500
    python run_solver.py +experiment=validation
    python run_solver.py +experiment=scaling
"""

import logging
import os
import subprocess
import sys
from dataclasses import asdict

import hydra
from omegaconf import DictConfig, OmegaConf

log = logging.getLogger(__name__)

# Keys forwarded to the mpiexec child
FORWARDED_KEYS = [
    "NB", "MB", "P", "n_ranks", "epsilon", "max_iter", "early_exit",
    "interior", "boundary", "save_output", "output_dir", "leader",
    "use_numba", "halo_exchange", "experiment_name",
]


def _params_from_cfg(cfg: DictConfig, n_ranks: int):
    """Build GlobalParams from the Hydra config."""
    from Laplace import GlobalParams

    return GlobalParams(**{k: cfg[k] for k in FORWARDED_KEYS if k in cfg and k != "n_ranks"},
                        n_ranks=n_ranks)


def _log_results(cfg: DictConfig, params, solver):
    """Log solver results to MLflow (leader only)."""
    from utils.mlflow.io import (
        log_metrics_dict,
        log_parameters,
        log_timeseries_metrics,
        log_timeseries_table,
        setup_mlflow_tracking,
        start_mlflow_run_context,
    )

    if not setup_mlflow_tracking(mode=cfg.mlflow.mode):
        return

    run_name = f"sor_{params.NB}x{params.MB}_p{params.n_ranks}_P{params.P}"
    with start_mlflow_run_context(
        experiment_name=params.experiment_name,
        parent_run_name=f"{params.global_shape[1]}x{params.global_shape[0]}",
        child_run_name=run_name,
        tags={"environment": params.environment},
    ):
        log_parameters(params.to_mlflow())
        log_metrics_dict(asdict(solver.metrics))
        log_timeseries_metrics(solver.timeseries)
        log_timeseries_table(solver.timeseries)


def _run(cfg: DictConfig, comm):
    """Run the MPI solver on ``comm`` (size 1 when not under mpiexec)."""
    from Laplace import DistributedGrid, SORMPISolver, create_field

    params = _params_from_cfg(cfg, comm.Get_size())
    grid = DistributedGrid(params.NB, params.MB, params.P, comm, leader=params.leader)
    field = create_field(grid.nx, grid.ny, interior=params.interior, boundary=params.boundary)

    solver = SORMPISolver(
        grid.scatter(field), params.NB, params.MB, params.P, comm,
        halo_exchange=params.halo_exchange,
        epsilon=params.epsilon,
        max_iter=params.max_iter,
        early_exit=params.early_exit,
        use_numba=params.use_numba,
        save_output=params.save_output,
        output_dir=params.output_dir,
        leader=params.leader,
    )
    solver.warmup()
    solver.solve()

    if comm.Get_rank() == params.leader:
        _log_results(cfg, params, solver)


@hydra.main(config_path="hydra-conf", config_name="config", version_base=None)
def main(cfg: DictConfig) -> None:
    """Entry point - runs in-process or spawns MPI based on n_ranks."""
    n_ranks = cfg.get("n_ranks", 1)
    log.info(f"SOR, NB={cfg.NB}, MB={cfg.MB}, P={cfg.P}, n_ranks={n_ranks}")

    if n_ranks == 1:
        from mpi4py import MPI

        _run(cfg, MPI.COMM_WORLD)
    else:
        _spawn_mpi(cfg, n_ranks)


def _spawn_mpi(cfg: DictConfig, n_ranks: int):
    """Re-launch this script under mpiexec."""
    env = os.environ.copy()
    env["MPI_SUBPROCESS"] = "1"

    cmd = ["mpiexec", "-n", str(n_ranks)]
    bind_to = cfg.get("mpi", {}).get("bind_to")
    if bind_to:
        cmd.extend(["--report-bindings", "--bind-to", str(bind_to)])
    cmd.extend([sys.executable, os.path.abspath(__file__)])

    for key in FORWARDED_KEYS:
        val = cfg.get(key)
        if val is not None:
            cmd.append(f"{key}={val}")
    cmd.append(f"mlflow.mode={cfg.mlflow.mode}")

    result = subprocess.run(cmd, capture_output=True, text=True, env=env)
    for line in (result.stdout or "").strip().split("\n"):
        if line:
            log.info(line)
    for line in (result.stderr or "").strip().split("\n"):
        if line:
            log.warning(line) if "error" in line.lower() else log.info(line)
    if result.returncode != 0:
        log.error(f"mpiexec exited with code {result.returncode}")
        sys.exit(result.returncode)


def _parse_overrides(argv: list) -> dict:
    """Parse key=value args (dotted keys nest) into a plain dict."""
    cfg_dict = {}
    for arg in argv:
        if "=" not in arg or arg.startswith("-"):
            continue
        key, val = arg.split("=", 1)
        d = cfg_dict
        for k in key.split(".")[:-1]:
            d = d.setdefault(k, {})
        low = val.lower()
        if low in ("true", "false"):
            parsed = low == "true"
        else:
            try:
                parsed = float(val) if ("." in val or "e" in low) else int(val)
            except ValueError:
                parsed = val
        d[key.split(".")[-1]] = parsed
    return cfg_dict


if __name__ == "__main__":
    if os.environ.get("MPI_SUBPROCESS"):
        from mpi4py import MPI

        logging.basicConfig(level=logging.INFO, format="[%(levelname)s] %(message)s")
        _run(OmegaConf.create(_parse_overrides(sys.argv[1:])), MPI.COMM_WORLD)
    else:
        main()

"""Data structures for solver configuration and results.

Architecture: 2x2 matrix of Params vs Metrics × Global vs Local

                 Params (input/config)         Metrics (output/results)
                 ─────────────────────         ────────────────────────
Global           GlobalParams                  GlobalMetrics
(same across     NB, MB, P, epsilon,           wall_time, mlups,
ranks / agg)     max_iter, early_exit...       converged, iterations...

Local            LocalParams                   LocalMetrics
(per-rank)       rank, row, col,               compute_times[],
                 neighbors...                  halo_times[]...
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional


# ============================================================================
# Global (identical across ranks, or aggregated on the leader)
# ============================================================================


@dataclass
class GlobalParams:
    """Run configuration - read from Hydra, logged to MLflow as params.

    Identical across all MPI ranks. NB x MB is the interior block owned by
    each rank; the global field is (P * NB) x (Q * MB).
    """

    # Required
    NB: int
    MB: int

    # Process grid
    P: int = 1
    n_ranks: int = 1

    # Termination
    epsilon: float = 1e-6
    max_iter: int = 1000
    early_exit: bool = False

    # Problem
    interior: float = 0.0
    boundary: float = 10.0

    # Collaborators
    save_output: bool = False
    output_dir: str = "pngs"
    leader: int = 0

    # Implementation
    use_numba: bool = False
    halo_exchange: str = "numpy"  # "numpy" | "custom"

    # Experiment tracking
    experiment_name: str = "default"

    # Derived at runtime (not from config)
    Q: int = field(init=False)
    omega: float = field(init=False)
    environment: str = field(init=False)

    def __post_init__(self):
        """Compute derived values after initialization."""
        self.Q = self.n_ranks // self.P if self.P > 0 else 0
        self.omega = 2.0 / (1.0 + math.pi / self.NB) if self.NB > 0 else float("nan")
        self.environment = (
            "hpc"
            if os.environ.get("LSB_JOBID") or os.environ.get("SLURM_JOB_ID")
            else "local"
        )

    @property
    def global_shape(self) -> tuple:
        """Interior shape of the global field as (rows, cols)."""
        return (self.Q * self.MB, self.P * self.NB)

    def to_mlflow(self) -> dict:
        """Convert to MLflow-compatible params dict (bools as int)."""
        return {
            k: (int(v) if isinstance(v, bool) else v)
            for k, v in self.__dict__.items()
        }


@dataclass
class GlobalMetrics:
    """Aggregated results - logged to MLflow as metrics."""

    converged: bool = False
    iterations: int = 0
    final_norm: Optional[float] = None  # sqrt of the last global reduction
    wall_time: Optional[float] = None

    # Timing breakdown (sum across all iterations)
    total_compute_time: Optional[float] = None
    total_halo_time: Optional[float] = None

    # Performance
    mlups: Optional[float] = None  # Million Lattice Updates per Second

    def to_mlflow(self) -> dict:
        """Convert to MLflow-compatible dict (no None, bools as int)."""
        return {
            k: (int(v) if isinstance(v, bool) else v)
            for k, v in self.__dict__.items()
            if v is not None
        }


# ============================================================================
# Local (per-rank)
# ============================================================================


@dataclass
class LocalParams:
    """Per-rank position in the process grid."""

    rank: int
    row: int
    col: int
    ns_rank: int = 0
    ns_size: int = 1
    ew_rank: int = 0
    ew_size: int = 1
    neighbors: Dict[str, Optional[int]] = field(default_factory=dict)

    @property
    def n_neighbors(self) -> int:
        return sum(1 for n in self.neighbors.values() if n is not None)


@dataclass
class LocalMetrics:
    """Per-rank timeseries, accumulated during solve."""

    compute_times: List[float] = field(default_factory=list)
    halo_times: List[float] = field(default_factory=list)

    # Global norm per iteration (identical on every rank)
    norm_history: List[float] = field(default_factory=list)

    def clear(self):
        """Clear all timeseries data."""
        self.compute_times.clear()
        self.halo_times.clear()
        self.norm_history.clear()

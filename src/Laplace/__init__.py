"""MPI Laplace relaxation package.

Hybrid SOR relaxation of a 2D field distributed over a Q x P grid of MPI
processes. Each iteration refreshes the one-cell ghost ring with
non-blocking transfers, sweeps the interior, and sums the squared change
over all ranks.

Solvers
-------
Sequential (no MPI):
- SORSolver: single-domain run or virtual block decomposition

Parallel (MPI):
- SORMPISolver: one block per rank
- relax: functional entry returning (iterations, final buffer)
"""

from .datastructures import (
    GlobalParams,
    GlobalMetrics,
    LocalParams,
    LocalMetrics,
)
from .errors import ConfigurationError, AllocationError
from .kernels import NumPyKernel, NumbaKernel, relaxation_factor
from .buffers import BufferPair
from .solvers import SORSolver, SORMPISolver, relax
from .mpi import DistributedGrid, ProcessGridDecomposition
from .problems import (
    create_field,
    random_field,
    local_block,
    assemble_interior,
    assemble_field,
)
from .reporting import (
    ProgressReporter,
    TimingReporter,
    NullTimingReporter,
    PNGFrameExporter,
)
from .runner import run_solver

__all__ = [
    # Data structures
    "GlobalParams",
    "GlobalMetrics",
    "LocalParams",
    "LocalMetrics",
    # Errors
    "ConfigurationError",
    "AllocationError",
    # Kernels
    "NumPyKernel",
    "NumbaKernel",
    "relaxation_factor",
    # Solvers
    "BufferPair",
    "SORSolver",
    "SORMPISolver",
    "relax",
    # Grid
    "DistributedGrid",
    "ProcessGridDecomposition",
    # Problem setup
    "create_field",
    "random_field",
    "local_block",
    "assemble_interior",
    "assemble_field",
    # Collaborators
    "ProgressReporter",
    "TimingReporter",
    "NullTimingReporter",
    "PNGFrameExporter",
    # Utilities
    "run_solver",
]

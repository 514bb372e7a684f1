"""SOR solvers.

Sequential (no MPI):
- SORSolver: single-domain run, or virtual block decomposition for validation

Parallel (MPI):
- SORMPISolver: one block per rank, halo exchange and global reduction
- relax: functional entry returning (iterations, final buffer)
"""

from .base import BaseSolver, INIT, ITERATING, DONE
from .sor import SORSolver
from .sor_mpi import SORMPISolver, relax

__all__ = [
    "BaseSolver",
    "INIT",
    "ITERATING",
    "DONE",
    "SORSolver",
    "SORMPISolver",
    "relax",
]

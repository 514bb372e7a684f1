"""MPI mixin providing common parallel solver functionality."""

from mpi4py import MPI

from ..mpi.reduction import ConvergenceAggregator


class MPISolverMixin:
    """Mixin providing common MPI functionality for parallel solvers.

    Provides shared implementations for:
    - MPI attributes (comm, rank, size)
    - Timing via MPI.Wtime()
    - Global reductions via ConvergenceAggregator (Allreduce)

    Usage:
        class MyMPISolver(MPISolverMixin, BaseSolver):
            def __init__(self, ...):
                self._init_mpi(comm)
                ...
    """

    def _init_mpi(self, comm: MPI.Comm):
        """Initialize MPI attributes. Call early in subclass __init__."""
        self.comm = comm
        self.rank = comm.Get_rank()
        self.size = comm.Get_size()
        self._aggregator = ConvergenceAggregator(comm)

    def _get_time(self) -> float:
        """Get current time using MPI.Wtime()."""
        return MPI.Wtime()

    def _reduce_sum(self, local_sum: float) -> float:
        """Sum over every rank of the communicator (blocking)."""
        return self._aggregator.reduce(local_sum)

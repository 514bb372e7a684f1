"""MPI-parallel SOR solver."""

import logging

import numpy as np
from mpi4py import MPI

from .base import BaseSolver
from .mpi_mixin import MPISolverMixin
from ..buffers import BufferPair
from ..errors import ConfigurationError
from ..mpi.decomposition import ProcessGridDecomposition, grid_coords, grid_neighbors
from ..mpi.halo import create_halo_exchanger
from ..reporting import TimingReporter

log = logging.getLogger(__name__)


class SORMPISolver(MPISolverMixin, BaseSolver):
    """Parallel SOR solver on a Q x P process grid.

    Every rank passes its own haloed (MB + 2, NB + 2) block, with the ghost
    cells on the global boundary already filled. The block is iterated in
    place: after ``solve`` it holds the final iterate (``self.u``).

    Parameters
    ----------
    matrix : np.ndarray
        This rank's C-contiguous float64 block, shape (MB + 2, NB + 2).
    NB, MB : int
        Interior width and height of the block.
    P : int
        Number of process columns; must divide the communicator size.
    comm : MPI.Comm
        Communicator spanning all P x Q processes.
    halo_exchange : str
        'numpy' for packed edge buffers (default), 'custom' for MPI datatypes.
    **kwargs
        Passed to BaseSolver (epsilon, max_iter, early_exit, save_output, ...).
    """

    def __init__(
        self,
        matrix: np.ndarray,
        NB: int,
        MB: int,
        P: int,
        comm: MPI.Comm = MPI.COMM_WORLD,
        halo_exchange: str = "numpy",
        **kwargs,
    ):
        timing_reporter = kwargs.pop("timing_reporter", None)
        super().__init__(NB, MB, **kwargs)
        self.timing_reporter = timing_reporter or TimingReporter(self.leader)
        self._init_mpi(comm)

        # Everything below up to the Split must succeed before any communication
        self.row, self.col = grid_coords(self.rank, self.size, P)
        self.P = P
        self.Q = self.size // P
        if not 0 <= self.leader < self.size:
            raise ConfigurationError(f"Leader rank {self.leader} outside 0..{self.size - 1}")
        self._check_buffer(matrix)

        self.buffers = BufferPair(matrix)
        self.halo = create_halo_exchanger(halo_exchange)
        self.halo.setup((MB, NB), grid_neighbors(self.row, self.col, P, self.Q))

        self.decomp = ProcessGridDecomposition(comm, P)
        self.u = matrix

    def _check_buffer(self, matrix: np.ndarray):
        expected = (self.MB + 2, self.NB + 2)
        if matrix.shape != expected:
            raise ConfigurationError(f"Expected buffer of shape {expected}, got {matrix.shape}")
        if matrix.dtype != np.float64 or not matrix.flags.c_contiguous:
            raise ConfigurationError("Grid buffer must be a C-contiguous float64 array")

    @property
    def n_interior(self) -> int:
        return self.size * self.NB * self.MB

    def get_rank_info(self):
        return self.decomp.get_rank_info()

    def solve(self):
        """Run the iteration loop; any MPI failure aborts every rank."""
        try:
            return super().solve()
        except MPI.Exception as e:
            log.critical(f"Rank {self.rank}: communication failed, aborting run: {e}")
            self.comm.Abort(1)
            raise

    def _export_frames(self, iteration: int):
        self._export(self.buffers.current, iteration, self.rank)

    def _sync_halos(self):
        self.halo.exchange(self.buffers.current, self.decomp.ns_comm, self.decomp.ew_comm)

    def _step(self) -> float:
        return self.kernel.step(self.buffers.next, self.buffers.current)

    def _swap(self):
        self.buffers.swap()

    def _release(self):
        self.u = self.buffers.release()
        self.halo.free()
        self.decomp.free()


def relax(
    matrix: np.ndarray,
    NB: int,
    MB: int,
    P: int,
    comm: MPI.Comm,
    epsilon: float,
    max_iter: int,
    save_output: bool = False,
    **kwargs,
):
    """Relax ``matrix`` in place on the P-column process grid of ``comm``.

    Returns
    -------
    tuple
        (iterations executed, buffer holding the final iterate). The buffer
        is ``matrix`` itself; the internal second buffer has been dropped.
    """
    solver = SORMPISolver(
        matrix, NB, MB, P, comm,
        epsilon=epsilon, max_iter=max_iter, save_output=save_output, **kwargs,
    )
    metrics = solver.solve()
    return metrics.iterations, solver.u

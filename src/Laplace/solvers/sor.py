"""Single-process SOR solver."""

import numpy as np

from .base import BaseSolver
from ..buffers import BufferPair
from ..errors import ConfigurationError
from ..mpi.decomposition import grid_neighbors
from ..problems import assemble_interior, local_block


class SORSolver(BaseSolver):
    """Sequential SOR solver over a whole global field.

    With ``P = Q = 1`` this is the plain single-domain run and the caller's
    ``field`` is iterated in place. Larger ``P`` x ``Q`` split the field into
    virtual blocks that exchange ghosts by in-memory copies, reproducing
    what the MPI solver computes on P x Q ranks without any MPI.

    Parameters
    ----------
    field : np.ndarray
        Global (ny + 2, nx + 2) field; the outer ring is the boundary.
    P, Q : int
        Virtual process columns and rows. Must divide nx and ny.
    **kwargs
        Passed to BaseSolver (epsilon, max_iter, early_exit, use_numba, ...).
    """

    def __init__(self, field: np.ndarray, P: int = 1, Q: int = 1, **kwargs):
        if field.ndim != 2 or min(field.shape) < 3:
            raise ConfigurationError(f"Field must be 2D with a halo ring, got {field.shape}")
        ny, nx = field.shape[0] - 2, field.shape[1] - 2
        if P <= 0 or Q <= 0 or nx % P or ny % Q:
            raise ConfigurationError(
                f"{nx}x{ny} interior cannot be split into {P}x{Q} blocks"
            )
        super().__init__(nx // P, ny // Q, **kwargs)

        self.field = field
        self.P = P
        self.Q = Q
        self.size = P * Q

        if self.size == 1:
            blocks = [field]
        else:
            blocks = [
                local_block(field, r // P, r % P, self.NB, self.MB)
                for r in range(self.size)
            ]
        self.buffers = [BufferPair(b) for b in blocks]
        self.neighbors = [
            grid_neighbors(r // P, r % P, P, Q) for r in range(self.size)
        ]
        self.u = None

    @property
    def n_interior(self) -> int:
        return self.size * self.NB * self.MB

    def _rank_of(self, row: int, col: int) -> int:
        return row * self.P + col

    def _export_frames(self, iteration: int):
        for r, pair in enumerate(self.buffers):
            self._export(pair.current, iteration, r)

    def _sync_halos(self):
        """Copy neighbouring interiors into each block's ghost ring."""
        if self.size == 1:
            return
        for r, (pair, nbrs) in enumerate(zip(self.buffers, self.neighbors)):
            row, col = r // self.P, r % self.P
            u = pair.current
            if nbrs["north"] is not None:
                u[0, 1:-1] = self.buffers[self._rank_of(row - 1, col)].current[-2, 1:-1]
            if nbrs["south"] is not None:
                u[-1, 1:-1] = self.buffers[self._rank_of(row + 1, col)].current[1, 1:-1]
            if nbrs["west"] is not None:
                u[1:-1, 0] = self.buffers[self._rank_of(row, col - 1)].current[1:-1, -2]
            if nbrs["east"] is not None:
                u[1:-1, -1] = self.buffers[self._rank_of(row, col + 1)].current[1:-1, 1]

    def _step(self) -> float:
        return sum(self.kernel.step(pair.next, pair.current) for pair in self.buffers)

    def _swap(self):
        for pair in self.buffers:
            pair.swap()

    def _release(self):
        finals = [pair.release() for pair in self.buffers]
        if self.size > 1:
            self.field[1:-1, 1:-1] = assemble_interior(finals, self.P, self.NB, self.MB)
        self.u = self.field

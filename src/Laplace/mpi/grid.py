"""Scatter and gather of a global field across the process grid."""

from __future__ import annotations

from typing import Optional

import numpy as np
from mpi4py import MPI

from ..problems import assemble_field, local_block
from .decomposition import grid_coords


class DistributedGrid:
    """Maps a global (Q*MB + 2, P*NB + 2) field onto per-rank haloed blocks.

    Parameters
    ----------
    NB, MB : int
        Interior block width and height owned by each rank.
    P : int
        Number of process columns.
    comm : MPI.Comm
        Communicator spanning all P x Q processes.
    leader : int
        Rank that receives gathered fields.

    Example
    -------
    >>> grid = DistributedGrid(NB=64, MB=64, P=2, comm=MPI.COMM_WORLD)
    >>> u = grid.scatter(create_field(grid.nx, grid.ny))
    >>> field = grid.gather(u)  # None except on the leader
    """

    def __init__(
        self, NB: int, MB: int, P: int, comm: MPI.Comm = MPI.COMM_WORLD, leader: int = 0
    ):
        self.NB = NB
        self.MB = MB
        self.P = P
        self.comm = comm
        self.leader = leader
        self.rank = comm.Get_rank()
        self.size = comm.Get_size()
        self.row, self.col = grid_coords(self.rank, self.size, P)
        self.Q = self.size // P

        self.nx = P * NB
        self.ny = self.Q * MB
        self.local_shape = (MB, NB)
        self.halo_shape = (MB + 2, NB + 2)

    def scatter(self, field: np.ndarray) -> np.ndarray:
        """Cut this rank's block out of a field every rank holds."""
        if field.shape != (self.ny + 2, self.nx + 2):
            raise ValueError(
                f"Field shape {field.shape} does not match grid {(self.ny + 2, self.nx + 2)}"
            )
        return local_block(field, self.row, self.col, self.NB, self.MB)

    def gather(
        self, local: np.ndarray, template: Optional[np.ndarray] = None
    ) -> Optional[np.ndarray]:
        """Assemble all interiors on the leader; other ranks get None."""
        blocks = self.comm.gather(np.ascontiguousarray(local[1:-1, 1:-1]), root=self.leader)
        if self.rank != self.leader:
            return None
        return assemble_field(blocks, self.P, self.NB, self.MB, template)

"""Row/column process-grid decomposition."""

from __future__ import annotations

from ..datastructures import LocalParams
from ..errors import ConfigurationError


def grid_coords(rank: int, size: int, P: int) -> tuple[int, int]:
    """Map a linear rank onto (row, col) of a Q x P process grid.

    Raises ConfigurationError if P does not evenly divide size.
    """
    if P <= 0:
        raise ConfigurationError(f"Process grid width must be positive, got P={P}")
    if size % P != 0:
        raise ConfigurationError(
            f"{size} processes cannot be arranged in rows of P={P}"
        )
    if not 0 <= rank < size:
        raise ConfigurationError(f"Rank {rank} outside communicator of size {size}")
    return rank // P, rank % P


def grid_neighbors(row: int, col: int, P: int, Q: int) -> dict[str, int | None]:
    """Neighbour ranks within the column (north/south) and row (east/west) groups.

    Group rank equals row index in the column group and column index in
    the row group; None marks the edge of the process grid.
    """
    return {
        "north": row - 1 if row > 0 else None,
        "south": row + 1 if row < Q - 1 else None,
        "west": col - 1 if col > 0 else None,
        "east": col + 1 if col < P - 1 else None,
    }


class ProcessGridDecomposition:
    """Splits a communicator into per-column and per-row groups.

    The column group (``ns_comm``) holds every rank sharing this rank's
    column and carries north/south traffic; the row group (``ew_comm``)
    holds every rank sharing its row and carries east/west traffic. Both
    are ordered by world rank, so group rank equals row (resp. column)
    index and group-rank +/- 1 are the geometric neighbours.

    Parameters
    ----------
    comm : MPI.Comm
        Communicator spanning all P x Q processes.
    P : int
        Number of process columns.
    """

    def __init__(self, comm, P: int):
        self.comm = comm
        self.rank = comm.Get_rank()
        self.size = comm.Get_size()
        self.P = P

        # Validation happens before any collective call
        self.row, self.col = grid_coords(self.rank, self.size, P)
        self.Q = self.size // P

        self.ns_comm = comm.Split(self.col, self.rank)
        self.ew_comm = comm.Split(self.row, self.rank)
        self.ns_rank = self.ns_comm.Get_rank()
        self.ns_size = self.ns_comm.Get_size()
        self.ew_rank = self.ew_comm.Get_rank()
        self.ew_size = self.ew_comm.Get_size()

        self.neighbors = self._find_neighbors()
        self.is_boundary = {d: n is None for d, n in self.neighbors.items()}

    def _find_neighbors(self) -> dict[str, int | None]:
        """Group-relative neighbour ranks; None on the edge of the grid."""
        return grid_neighbors(self.ns_rank, self.ew_rank, self.ew_size, self.ns_size)

    def get_rank_info(self) -> LocalParams:
        return LocalParams(
            rank=self.rank,
            row=self.row,
            col=self.col,
            ns_rank=self.ns_rank,
            ns_size=self.ns_size,
            ew_rank=self.ew_rank,
            ew_size=self.ew_size,
            neighbors=self.neighbors.copy(),
        )

    def free(self):
        """Release both sub-communicators."""
        for sub in (self.ns_comm, self.ew_comm):
            if sub is not None:
                sub.Free()
        self.ns_comm = None
        self.ew_comm = None

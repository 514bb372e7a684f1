"""Tests for the row/column process-grid decomposition."""

import pytest
from mpi4py import MPI
from Laplace import ConfigurationError, ProcessGridDecomposition
from Laplace.mpi import grid_coords, grid_neighbors


class RecordingComm:
    """Communicator stand-in that fails on any collective call."""

    def __init__(self, rank, size):
        self._rank = rank
        self._size = size
        self.calls = []

    def Get_rank(self):
        return self._rank

    def Get_size(self):
        return self._size

    def Split(self, color, key):
        self.calls.append(("Split", color, key))
        raise AssertionError("Split must not be reached")


@pytest.mark.parametrize(
    "rank,size,P,expected",
    [(0, 1, 1, (0, 0)), (5, 6, 3, (1, 2)), (3, 4, 2, (1, 1)), (7, 8, 1, (7, 0)), (2, 4, 4, (0, 2))],
)
def test_grid_coords(rank, size, P, expected):
    assert grid_coords(rank, size, P) == expected


@pytest.mark.parametrize("size,P", [(6, 4), (5, 2), (3, 0), (4, -2)])
def test_ill_formed_topology_rejected(size, P):
    with pytest.raises(ConfigurationError):
        grid_coords(0, size, P)


def test_validation_precedes_communication():
    """size % P != 0 fails before the communicator is split."""
    comm = RecordingComm(rank=0, size=6)
    with pytest.raises(ConfigurationError):
        ProcessGridDecomposition(comm, P=4)
    assert comm.calls == []


def test_neighbors_corner_and_interior():
    # 3 rows x 4 columns
    assert grid_neighbors(0, 0, 4, 3) == {"north": None, "south": 1, "west": None, "east": 1}
    assert grid_neighbors(1, 2, 4, 3) == {"north": 0, "south": 2, "west": 1, "east": 3}
    assert grid_neighbors(2, 3, 4, 3) == {"north": 1, "south": None, "west": 2, "east": None}


def test_neighbor_reciprocity():
    """If A's east neighbour is B then B's west neighbour is A, and so on."""
    P, Q = 4, 3
    opposite = {"north": "south", "south": "north", "east": "west", "west": "east"}
    for rank in range(P * Q):
        row, col = grid_coords(rank, P * Q, P)
        for direction, n in grid_neighbors(row, col, P, Q).items():
            if n is None:
                continue
            # Column-group ranks index rows, row-group ranks index columns
            nrow, ncol = (n, col) if direction in ("north", "south") else (row, n)
            assert grid_neighbors(nrow, ncol, P, Q)[opposite[direction]] == (
                row if direction in ("north", "south") else col
            )


def test_single_process_has_no_neighbors():
    decomp = ProcessGridDecomposition(MPI.COMM_SELF, P=1)
    try:
        info = decomp.get_rank_info()
        assert (info.row, info.col) == (0, 0)
        assert decomp.ns_size == decomp.ew_size == 1
        assert info.n_neighbors == 0
        assert all(decomp.is_boundary.values())
    finally:
        decomp.free()
    assert decomp.ns_comm is None and decomp.ew_comm is None

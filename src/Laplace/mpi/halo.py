"""Halo exchange implementations for the 2D haloed grid buffer.

Buffer layout is (MB + 2, NB + 2): row 0 is the north ghost row, row -1 the
south ghost row, column 0 the west ghost column, column -1 the east one.
North/south rows are contiguous and travel straight out of (and into) the
buffer. East/west columns are strided by NB + 2 and need either packing
(NumpyHaloExchanger) or a vector datatype (DatatypeHaloExchanger).
"""

from __future__ import annotations
from abc import ABC, abstractmethod

import numpy as np
from mpi4py import MPI

from ..errors import AllocationError


# Tag = direction the message travels
TAG_SOUTHWARD = 0
TAG_NORTHWARD = 1
TAG_EASTWARD = 2
TAG_WESTWARD = 3

# Request slots: 4 receives then 4 sends
RECV_NORTH, RECV_SOUTH, RECV_EAST, RECV_WEST = 0, 1, 2, 3
SEND_NORTH, SEND_SOUTH, SEND_EAST, SEND_WEST = 4, 5, 6, 7
N_REQUESTS = 8


class HaloExchanger(ABC):
    """Abstract base: non-blocking four-neighbour ghost exchange.

    Subclasses only decide how the strided east/west columns are put on
    the wire; posting, waiting and skipping of edge directions is shared.
    """

    def setup(self, local_shape: tuple[int, int], neighbors: dict):
        """Record geometry and neighbours, then prepare column transport."""
        self.MB, self.NB = local_shape
        self.neighbors = dict(neighbors)
        self._requests = [MPI.Request() for _ in range(N_REQUESTS)]
        self.n_posted = 0
        self._setup_columns()

    @abstractmethod
    def _setup_columns(self):
        """Allocate scratch buffers or create datatypes."""
        pass

    @abstractmethod
    def _column_buffers(self, arr: np.ndarray) -> tuple:
        """Return (send_west, send_east, recv_west, recv_east) buffer specs."""
        pass

    def _pack(self, arr: np.ndarray):
        """Copy outgoing columns into scratch. No-op by default."""
        pass

    def _unpack(self, arr: np.ndarray):
        """Copy received columns into the ghost columns. No-op by default."""
        pass

    def exchange(self, arr: np.ndarray, ns_comm: MPI.Comm, ew_comm: MPI.Comm):
        """Refresh the ghost border of ``arr`` from up to four neighbours.

        Returns only after every posted transfer has completed.
        """
        self._check_shape(arr)
        north = self.neighbors.get("north")
        south = self.neighbors.get("south")
        east = self.neighbors.get("east")
        west = self.neighbors.get("west")

        req = self._requests = [MPI.Request() for _ in range(N_REQUESTS)]
        send_west, send_east, recv_west, recv_east = self._column_buffers(arr)

        # Post receives
        if north is not None:
            req[RECV_NORTH] = ns_comm.Irecv(arr[0, 1:-1], source=north, tag=TAG_SOUTHWARD)
        if south is not None:
            req[RECV_SOUTH] = ns_comm.Irecv(arr[-1, 1:-1], source=south, tag=TAG_NORTHWARD)
        if east is not None:
            req[RECV_EAST] = ew_comm.Irecv(recv_east, source=east, tag=TAG_WESTWARD)
        if west is not None:
            req[RECV_WEST] = ew_comm.Irecv(recv_west, source=west, tag=TAG_EASTWARD)

        # Post sends
        if north is not None:
            req[SEND_NORTH] = ns_comm.Isend(arr[1, 1:-1], dest=north, tag=TAG_NORTHWARD)
        if south is not None:
            req[SEND_SOUTH] = ns_comm.Isend(arr[-2, 1:-1], dest=south, tag=TAG_SOUTHWARD)
        self._pack(arr)
        if east is not None:
            req[SEND_EAST] = ew_comm.Isend(send_east, dest=east, tag=TAG_EASTWARD)
        if west is not None:
            req[SEND_WEST] = ew_comm.Isend(send_west, dest=west, tag=TAG_WESTWARD)

        self.n_posted = 2 * sum(
            1 for n in (north, south, east, west) if n is not None
        )
        MPI.Request.Waitall(req)

        self._unpack(arr)

    def pending(self) -> int:
        """Number of transfers from the last exchange still in flight."""
        return sum(1 for r in self._requests if r != MPI.REQUEST_NULL)

    def get_halo_size_bytes(self, itemsize: int = 8) -> int:
        """Bytes sent plus received per exchange."""
        total = 0
        for direction, count in (("north", self.NB), ("south", self.NB),
                                 ("east", self.MB), ("west", self.MB)):
            if self.neighbors.get(direction) is not None:
                total += count * itemsize * 2
        return total

    def free(self):
        """Release transport resources. No-op by default."""
        pass

    def _check_shape(self, arr: np.ndarray):
        if arr.shape != (self.MB + 2, self.NB + 2):
            raise ValueError(
                f"Expected buffer of shape {(self.MB + 2, self.NB + 2)}, got {arr.shape}"
            )


class NumpyHaloExchanger(HaloExchanger):
    """East/west columns packed into contiguous scratch buffers."""

    def _setup_columns(self):
        """Allocate the four length-MB edge buffers, reused every exchange."""
        try:
            self.send_east = np.empty(self.MB, dtype=np.float64)
            self.send_west = np.empty(self.MB, dtype=np.float64)
            self.recv_east = np.empty(self.MB, dtype=np.float64)
            self.recv_west = np.empty(self.MB, dtype=np.float64)
        except MemoryError as e:
            raise AllocationError(f"Could not allocate edge buffers of length {self.MB}") from e

    def _column_buffers(self, arr: np.ndarray) -> tuple:
        return self.send_west, self.send_east, self.recv_west, self.recv_east

    def _pack(self, arr: np.ndarray):
        # Interior columns, not the ghosts
        self.send_west[:] = arr[1:-1, 1]
        self.send_east[:] = arr[1:-1, self.NB]

    def _unpack(self, arr: np.ndarray):
        # Edge ghosts belong to the caller and are left alone
        if self.neighbors.get("west") is not None:
            arr[1:-1, 0] = self.recv_west
        if self.neighbors.get("east") is not None:
            arr[1:-1, -1] = self.recv_east


class DatatypeHaloExchanger(HaloExchanger):
    """East/west columns described by an MPI vector datatype (zero-copy)."""

    def _setup_columns(self):
        """Create the strided column datatype."""
        self._column = MPI.DOUBLE.Create_vector(self.MB, 1, self.NB + 2)
        self._column.Commit()

        # Flat offsets of the first cell of each column
        hx = self.NB + 2
        self._offsets = {
            "send_west": hx + 1,
            "send_east": hx + self.NB,
            "recv_west": hx,
            "recv_east": hx + self.NB + 1,
        }

    def _column_buffers(self, arr: np.ndarray) -> tuple:
        if arr.dtype != np.float64 or not arr.flags.c_contiguous:
            raise ValueError("DatatypeHaloExchanger needs a C-contiguous float64 buffer")
        flat = arr.reshape(-1)
        o = self._offsets
        dt = self._column
        return (
            [flat[o["send_west"]:], 1, dt],
            [flat[o["send_east"]:], 1, dt],
            [flat[o["recv_west"]:], 1, dt],
            [flat[o["recv_east"]:], 1, dt],
        )

    def free(self):
        """Free the column datatype."""
        dt = getattr(self, "_column", None)
        if dt is not None and dt != MPI.DATATYPE_NULL and not MPI.Is_finalized():
            dt.Free()
        self._column = None

    def __del__(self):
        self.free()


def create_halo_exchanger(exchange_type: str) -> HaloExchanger:
    """Factory: 'numpy' for packed scratch buffers, 'custom' for MPI datatypes."""
    if exchange_type == "numpy":
        return NumpyHaloExchanger()
    elif exchange_type == "custom":
        return DatatypeHaloExchanger()
    else:
        raise ValueError(f"Unknown halo_exchange type: {exchange_type}")

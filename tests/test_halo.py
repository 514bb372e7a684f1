"""Tests for the halo exchange engine."""

import numpy as np
import pytest
from mpi4py import MPI
from Laplace.mpi import (
    DatatypeHaloExchanger,
    NumpyHaloExchanger,
    create_halo_exchanger,
)
from Laplace.mpi.halo import TAG_EASTWARD, TAG_NORTHWARD, TAG_SOUTHWARD, TAG_WESTWARD

NO_NEIGHBORS = {"north": None, "south": None, "east": None, "west": None}


class LoopbackComm:
    """Mock communicator: receives complete immediately from a canned inbox.

    Messages are keyed by (peer, tag). Every send is recorded with a copy
    of its payload so the test can check what left the buffer.
    """

    def __init__(self, inbox):
        self.inbox = inbox
        self.sent = {}

    def Irecv(self, buf, source, tag):
        np.copyto(buf, self.inbox[(source, tag)])
        return MPI.Request()

    def Isend(self, buf, dest, tag):
        self.sent[(dest, tag)] = np.array(buf, copy=True)
        return MPI.Request()


def make_buffer(nb, mb):
    u = np.arange((mb + 2) * (nb + 2), dtype=np.float64).reshape(mb + 2, nb + 2)
    return u


@pytest.mark.parametrize("kind", ["numpy", "custom"])
def test_boundary_rank_posts_nothing(kind):
    """Without neighbours nothing is posted and the ghost ring is untouched."""
    nb, mb = 5, 4
    halo = create_halo_exchanger(kind)
    halo.setup((mb, nb), NO_NEIGHBORS)
    u = make_buffer(nb, mb)
    before = u.copy()

    halo.exchange(u, MPI.COMM_SELF, MPI.COMM_SELF)

    assert halo.n_posted == 0
    assert halo.pending() == 0
    assert np.array_equal(u, before)
    halo.free()


def test_all_four_directions():
    """Interior rank: rows go out as-is, columns packed, ghosts refreshed."""
    nb, mb = 4, 3
    north, south, west, east = 0, 2, 1, 3
    ns = LoopbackComm({
        (north, TAG_SOUTHWARD): np.full(nb, -1.0),
        (south, TAG_NORTHWARD): np.full(nb, -2.0),
    })
    ew = LoopbackComm({
        (east, TAG_WESTWARD): np.full(mb, -3.0),
        (west, TAG_EASTWARD): np.full(mb, -4.0),
    })
    halo = NumpyHaloExchanger()
    halo.setup((mb, nb), {"north": north, "south": south, "east": east, "west": west})
    u = make_buffer(nb, mb)
    interior = u[1:-1, 1:-1].copy()
    expected_sends = {
        (north, TAG_NORTHWARD): u[1, 1:-1].copy(),
        (south, TAG_SOUTHWARD): u[-2, 1:-1].copy(),
        (east, TAG_EASTWARD): u[1:-1, nb].copy(),
        (west, TAG_WESTWARD): u[1:-1, 1].copy(),
    }

    halo.exchange(u, ns, ew)

    assert halo.n_posted == 8
    assert halo.pending() == 0
    assert np.all(u[0, 1:-1] == -1.0)
    assert np.all(u[-1, 1:-1] == -2.0)
    assert np.all(u[1:-1, -1] == -3.0)
    assert np.all(u[1:-1, 0] == -4.0)
    assert np.array_equal(u[1:-1, 1:-1], interior)
    sent = {**ns.sent, **ew.sent}
    assert sent.keys() == expected_sends.keys()
    for key, payload in expected_sends.items():
        assert np.array_equal(sent[key], payload)


def test_edge_rank_keeps_boundary_ghosts():
    """West edge rank: the west ghost column is caller-owned and kept."""
    nb, mb = 3, 3
    ew = LoopbackComm({(1, TAG_WESTWARD): np.full(mb, 7.0)})
    halo = NumpyHaloExchanger()
    halo.setup((mb, nb), {**NO_NEIGHBORS, "east": 1})
    u = make_buffer(nb, mb)
    west_before = u[:, 0].copy()

    halo.exchange(u, None, ew)

    assert halo.n_posted == 2
    assert np.array_equal(u[:, 0], west_before)
    assert np.all(u[1:-1, -1] == 7.0)


def test_datatype_offsets_point_at_columns():
    nb, mb = 4, 3
    halo = DatatypeHaloExchanger()
    halo.setup((mb, nb), NO_NEIGHBORS)
    u = make_buffer(nb, mb)
    send_west, send_east, recv_west, recv_east = halo._column_buffers(u)

    assert send_west[0][0] == u[1, 1]
    assert send_east[0][0] == u[1, nb]
    assert recv_west[0][0] == u[1, 0]
    assert recv_east[0][0] == u[1, nb + 1]
    assert np.shares_memory(send_west[0], u)
    halo.free()


def test_scratch_buffers_reused():
    nb, mb = 3, 5
    halo = NumpyHaloExchanger()
    halo.setup((mb, nb), NO_NEIGHBORS)
    scratch = [halo.send_east, halo.send_west, halo.recv_east, halo.recv_west]
    assert all(s.shape == (mb,) for s in scratch)

    u = make_buffer(nb, mb)
    for _ in range(3):
        halo.exchange(u, MPI.COMM_SELF, MPI.COMM_SELF)
    after = [halo.send_east, halo.send_west, halo.recv_east, halo.recv_west]
    assert all(a is b for a, b in zip(after, scratch))


def test_halo_size_bytes():
    halo = NumpyHaloExchanger()
    halo.setup((3, 5), {**NO_NEIGHBORS, "north": 0, "east": 1})
    assert halo.get_halo_size_bytes() == (5 + 3) * 8 * 2


def test_shape_mismatch_rejected():
    halo = NumpyHaloExchanger()
    halo.setup((3, 3), NO_NEIGHBORS)
    with pytest.raises(ValueError):
        halo.exchange(np.zeros((6, 5)), MPI.COMM_SELF, MPI.COMM_SELF)


def test_unknown_exchange_type():
    with pytest.raises(ValueError):
        create_halo_exchanger("carrier-pigeon")

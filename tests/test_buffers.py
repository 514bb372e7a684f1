"""Tests for the two-slot buffer arena."""

import numpy as np
import pytest
from Laplace import AllocationError, BufferPair


def test_initial_roles():
    """The caller's buffer starts as current; next is a zeroed twin."""
    u = np.ones((4, 5))
    pair = BufferPair(u)

    assert pair.current is u
    assert pair.next.shape == u.shape
    assert np.all(pair.next == 0.0)
    assert not np.shares_memory(pair.current, pair.next)
    assert pair.live_count == 2


def test_swap_flips_roles():
    u = np.ones((4, 4))
    pair = BufferPair(u)
    internal = pair.next

    pair.swap()
    assert pair.current is internal
    assert pair.next is u
    pair.swap()
    assert pair.current is u


@pytest.mark.parametrize("n_swaps", [0, 1, 2, 5])
def test_release_returns_final_iterate_in_caller_buffer(n_swaps):
    u = np.zeros((3, 3))
    pair = BufferPair(u)
    for k in range(n_swaps):
        pair.next[:] = k + 1
        pair.swap()

    out = pair.release()

    assert out is u
    assert np.all(u == n_swaps)
    assert pair.live_count == 1


def test_use_after_release():
    pair = BufferPair(np.zeros((3, 3)))
    pair.release()
    with pytest.raises(RuntimeError):
        pair.current
    with pytest.raises(RuntimeError):
        pair.swap()


def test_allocation_failure(monkeypatch):
    def no_memory(*args, **kwargs):
        raise MemoryError

    monkeypatch.setattr("Laplace.buffers.np.zeros_like", no_memory)
    with pytest.raises(AllocationError):
        BufferPair(np.zeros((3, 3)))

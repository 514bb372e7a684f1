"""Two-slot buffer arena for double-buffered iteration."""

from __future__ import annotations

import numpy as np

from .errors import AllocationError


class BufferPair:
    """Owns the caller's grid buffer and one internal buffer of the same shape.

    An active index selects which slot plays "current" and which plays
    "next"; ``swap`` flips it. Slot 0 always holds the caller's array.

    Parameters
    ----------
    caller_buffer : np.ndarray
        Haloed grid buffer supplied by the caller. Becomes the first
        "current" buffer.
    """

    CALLER = 0
    INTERNAL = 1

    def __init__(self, caller_buffer: np.ndarray):
        try:
            internal = np.zeros_like(caller_buffer)
        except MemoryError as e:
            raise AllocationError(
                f"Could not allocate {caller_buffer.nbytes} byte grid buffer"
            ) from e
        self._slots = [caller_buffer, internal]
        self._active = self.CALLER
        self._released = False

    @property
    def current(self) -> np.ndarray:
        self._check_live()
        return self._slots[self._active]

    @property
    def next(self) -> np.ndarray:
        self._check_live()
        return self._slots[1 - self._active]

    @property
    def active(self) -> int:
        """Slot index currently playing "current"."""
        return self._active

    @property
    def live_count(self) -> int:
        return sum(1 for s in self._slots if s is not None)

    def swap(self):
        """Exchange the current and next roles."""
        self._check_live()
        self._active = 1 - self._active

    def release(self) -> np.ndarray:
        """Drop the internal slot and return the caller's buffer.

        If the final iterate lives in the internal slot it is copied into
        the caller's buffer first, so the returned array always holds it.
        """
        self._check_live()
        caller = self._slots[self.CALLER]
        if self._active == self.INTERNAL:
            np.copyto(caller, self._slots[self.INTERNAL])
            self._active = self.CALLER
        self._slots[self.INTERNAL] = None
        self._released = True
        return caller

    def _check_live(self):
        if self._released:
            raise RuntimeError("BufferPair has already been released")

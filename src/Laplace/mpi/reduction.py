"""Global convergence reduction and termination policy."""

from __future__ import annotations

import math
from dataclasses import dataclass

import numpy as np
from mpi4py import MPI


class ConvergenceAggregator:
    """Sums the local change metric over the whole communicator.

    ``reduce`` is a blocking Allreduce, so it doubles as the per-iteration
    barrier: no rank leaves it before every rank has entered it.
    """

    def __init__(self, comm: MPI.Comm):
        self.comm = comm
        self._send = np.zeros(1)
        self._recv = np.zeros(1)

    def reduce(self, local_sum: float) -> float:
        """Return the global sum of squared changes."""
        self._send[0] = local_sum
        self.comm.Allreduce(self._send, self._recv, op=MPI.SUM)
        return float(self._recv[0])

    @staticmethod
    def norm(global_sum: float) -> float:
        """L2 norm of the change between successive global iterates."""
        return math.sqrt(global_sum)


@dataclass
class TerminationPolicy:
    """Iteration cap plus an optional threshold exit.

    The cap always applies. The threshold is only consulted when
    ``early_exit`` is set.
    """

    max_iter: int
    epsilon: float = 0.0
    early_exit: bool = False

    def __post_init__(self):
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be at least 1, got {self.max_iter}")

    def converged(self, global_norm: float) -> bool:
        return self.early_exit and global_norm < self.epsilon

    def done(self, iteration: int, global_norm: float) -> bool:
        return iteration >= self.max_iter or self.converged(global_norm)

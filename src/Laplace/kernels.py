"""SOR stencil kernels.

Both kernels sweep the interior in row-major order and read the west and
north neighbours from the destination buffer (already updated earlier in
the same sweep) and the east and south neighbours from the source buffer.
The sweep order is part of the result; neither kernel may be parallelised
over cells.
"""

import math

import numpy as np
from numba import njit


def relaxation_factor(nb: int) -> float:
    """Over-relaxation factor W = 2 / (1 + pi / nb) for interior width nb."""
    if nb <= 0:
        raise ValueError(f"Interior width must be positive, got {nb}")
    return 2.0 / (1.0 + math.pi / nb)


@njit
def _sor_sweep_numba(nm: np.ndarray, om: np.ndarray, w: float) -> float:
    """Numba JIT implementation of one hybrid SOR sweep."""
    mb = om.shape[0] - 2
    nb = om.shape[1] - 2
    c = w / 4.0
    norm = 0.0

    for j in range(1, mb + 1):
        for i in range(1, nb + 1):
            nm[j, i] = (1 - w) * om[j, i] + c * (
                nm[j, i - 1] + om[j, i + 1] + nm[j - 1, i] + om[j + 1, i]
            )
            d = nm[j, i] - om[j, i]
            norm += d * d

    return norm


def _check_buffers(nm: np.ndarray, om: np.ndarray, nb: int):
    if nm.shape != om.shape:
        raise ValueError(f"Buffer shapes differ: {nm.shape} vs {om.shape}")
    if nm.shape[1] != nb + 2:
        raise ValueError(f"Buffer width {nm.shape[1]} does not match NB={nb}")
    if nm is om or np.shares_memory(nm, om):
        raise ValueError("Source and destination buffers must not alias")


class NumPyKernel:
    """Reference SOR kernel (Python loops over NumPy arrays).

    Slow, but free of any compilation step. Used for small grids and as
    the oracle the Numba kernel is checked against.
    """

    def __init__(self, nb: int):
        self.nb = nb
        self.omega = relaxation_factor(nb)

    def step(self, nm: np.ndarray, om: np.ndarray) -> float:
        """Update the interior of ``nm`` from ``om``; return the local metric."""
        _check_buffers(nm, om, self.nb)
        w = self.omega
        c = w / 4.0
        mb = om.shape[0] - 2
        norm = 0.0

        for j in range(1, mb + 1):
            for i in range(1, self.nb + 1):
                nm[j, i] = (1 - w) * om[j, i] + c * (
                    nm[j, i - 1] + om[j, i + 1] + nm[j - 1, i] + om[j + 1, i]
                )
                d = nm[j, i] - om[j, i]
                norm += d * d

        return float(norm)

    def warmup(self, warmup_size: int = 10):
        """No-op for NumPy kernel."""
        pass


class NumbaKernel:
    """Numba JIT-compiled SOR kernel."""

    def __init__(self, nb: int):
        self.nb = nb
        self.omega = relaxation_factor(nb)

    def step(self, nm: np.ndarray, om: np.ndarray) -> float:
        """Update the interior of ``nm`` from ``om``; return the local metric."""
        _check_buffers(nm, om, self.nb)
        return float(_sor_sweep_numba(nm, om, self.omega))

    def warmup(self, warmup_size: int = 10):
        """Trigger JIT compilation with a small problem."""
        om = np.random.randn(warmup_size + 2, warmup_size + 2)
        nm = np.zeros_like(om)
        for _ in range(3):
            _sor_sweep_numba(nm, om, self.omega)
            nm, om = om, nm


def create_kernel(nb: int, use_numba: bool = False):
    """Factory: Numba kernel when requested, NumPy reference otherwise."""
    return NumbaKernel(nb) if use_numba else NumPyKernel(nb)

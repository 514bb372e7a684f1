"""MPI process grid and communication.

This package provides:
- ProcessGridDecomposition: row/column sub-communicators and neighbours
- HaloExchanger: strategies for ghost exchange (numpy/datatype)
- ConvergenceAggregator: global Allreduce of the change metric
- DistributedGrid: scatter/gather of a global field
"""

from .decomposition import ProcessGridDecomposition, grid_coords, grid_neighbors
from .halo import (
    HaloExchanger,
    NumpyHaloExchanger,
    DatatypeHaloExchanger,
    create_halo_exchanger,
)
from .reduction import ConvergenceAggregator, TerminationPolicy
from .grid import DistributedGrid

__all__ = [
    "ProcessGridDecomposition",
    "grid_coords",
    "grid_neighbors",
    "HaloExchanger",
    "NumpyHaloExchanger",
    "DatatypeHaloExchanger",
    "create_halo_exchanger",
    "ConvergenceAggregator",
    "TerminationPolicy",
    "DistributedGrid",
]

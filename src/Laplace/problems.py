"""Initial fields and block (de)composition helpers.

A global field of nx x ny interior cells is stored as an (ny + 2, nx + 2)
array whose outer ring holds the Dirichlet boundary values. Rank (row, col)
of a Q x P process grid owns interior rows row*MB .. row*MB + MB - 1 and
columns col*NB .. col*NB + NB - 1.
"""

from typing import Optional, Sequence

import numpy as np


def create_field(
    nx: int, ny: int, interior: float = 0.0, boundary: float = 10.0
) -> np.ndarray:
    """Global field with a uniform interior and a uniform boundary ring."""
    field = np.full((ny + 2, nx + 2), boundary, dtype=np.float64)
    field[1:-1, 1:-1] = interior
    return field


def random_field(
    nx: int, ny: int, seed: int = 0, boundary: float = 10.0
) -> np.ndarray:
    """Global field with a reproducible random interior in [-20, 20]."""
    rng = np.random.default_rng(seed)
    field = np.full((ny + 2, nx + 2), boundary, dtype=np.float64)
    field[1:-1, 1:-1] = rng.uniform(-20.0, 20.0, size=(ny, nx))
    return field


def local_block(
    field: np.ndarray, row: int, col: int, NB: int, MB: int
) -> np.ndarray:
    """Copy of the haloed (MB + 2, NB + 2) block owned by process (row, col).

    Ghost cells on the edge of the global field carry the boundary values;
    ghosts facing another process carry its initial interior, which the
    first halo exchange overwrites anyway.
    """
    r0, c0 = row * MB, col * NB
    block = field[r0:r0 + MB + 2, c0:c0 + NB + 2]
    if block.shape != (MB + 2, NB + 2):
        raise ValueError(
            f"Block ({row}, {col}) of size {MB}x{NB} does not fit field {field.shape}"
        )
    return np.ascontiguousarray(block, dtype=np.float64).copy()


def assemble_interior(
    blocks: Sequence[np.ndarray], P: int, NB: int, MB: int
) -> np.ndarray:
    """Stitch per-rank interiors (in rank order) into a global interior."""
    Q = len(blocks) // P
    out = np.empty((Q * MB, P * NB), dtype=np.float64)
    for rank, block in enumerate(blocks):
        row, col = rank // P, rank % P
        interior = block if block.shape == (MB, NB) else block[1:-1, 1:-1]
        out[row * MB:(row + 1) * MB, col * NB:(col + 1) * NB] = interior
    return out


def assemble_field(
    blocks: Sequence[np.ndarray],
    P: int,
    NB: int,
    MB: int,
    template: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Like assemble_interior, but keep the boundary ring of ``template``."""
    interior = assemble_interior(blocks, P, NB, MB)
    if template is None:
        field = np.zeros((interior.shape[0] + 2, interior.shape[1] + 2))
    else:
        field = template.copy()
    field[1:-1, 1:-1] = interior
    return field

"""Collaborators the iteration driver hands data to.

None of these influence the computed field. The leader rank is always
passed in explicitly.
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np

log = logging.getLogger(__name__)


class ProgressReporter:
    """Per-iteration norm line, emitted by the leader rank only."""

    def __init__(self, leader: int = 0, logger: logging.Logger = log):
        self.leader = leader
        self.logger = logger

    def report(self, rank: int, iteration: int, global_norm: float, epsilon: float):
        if rank != self.leader:
            return
        self.logger.info(
            "Iteration %d: diff_norm = %f, epsilon = %f", iteration, global_norm, epsilon
        )


class TimingReporter:
    """Min/max of the per-rank loop time, summarised on the leader.

    ``report`` is collective over ``comm``.
    """

    def __init__(self, leader: int = 0, logger: logging.Logger = log):
        self.leader = leader
        self.logger = logger

    def report(self, comm, rank: int, wall_time: float):
        from mpi4py import MPI

        t_min = comm.reduce(wall_time, op=MPI.MIN, root=self.leader)
        t_max = comm.reduce(wall_time, op=MPI.MAX, root=self.leader)
        if rank == self.leader:
            self.logger.info(
                "Measured iteration timings - MIN: %.2f ms  MAX: %.2f ms",
                t_min * 1000, t_max * 1000,
            )
        return t_min, t_max


class NullTimingReporter:
    """Timing reporter that does nothing."""

    def report(self, comm, rank: int, wall_time: float):
        return None


def frame_rgb(u: np.ndarray, lo: float = -20.0, hi: float = 20.0) -> np.ndarray:
    """Map the interior of a haloed buffer to an (MB, NB, 3) uint8 image.

    Values are scaled linearly from [lo, hi] to [0, 1] and clipped; red
    carries the value, blue its complement.
    """
    interior = u[1:-1, 1:-1]
    n = np.clip((interior - lo) / (hi - lo), 0.0, 1.0)
    r = (n * 255).astype(np.uint8)
    rgb = np.zeros(interior.shape + (3,), dtype=np.uint8)
    rgb[..., 0] = r
    rgb[..., 2] = 255 - r
    return rgb


class PNGFrameExporter:
    """Writes one PNG per rank and iteration into ``output_dir``."""

    def __init__(self, output_dir: str | Path = "pngs"):
        self.output_dir = Path(output_dir)

    def filename(self, rank: int, iteration: int) -> Path:
        return self.output_dir / f"rank_{rank}_iteration_{iteration:04d}.png"

    def export(self, u: np.ndarray, NB: int, MB: int, iteration: int, rank: int) -> Path:
        import matplotlib.image as mpimg

        rgb = frame_rgb(u)
        if rgb.shape[:2] != (MB, NB):
            raise ValueError(f"Frame {rgb.shape[:2]} does not match {MB}x{NB}")
        path = self.filename(rank, iteration)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        mpimg.imsave(path, rgb)
        return path

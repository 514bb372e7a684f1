"""Base class for SOR solvers: the INIT -> ITERATING -> DONE loop."""

import logging
import time
from abc import ABC, abstractmethod

from ..datastructures import GlobalMetrics, LocalMetrics
from ..kernels import create_kernel
from ..mpi.reduction import ConvergenceAggregator, TerminationPolicy
from ..reporting import NullTimingReporter, PNGFrameExporter, ProgressReporter

log = logging.getLogger(__name__)

INIT = "INIT"
ITERATING = "ITERATING"
DONE = "DONE"


class BaseSolver(ABC):
    """Abstract base for the sequential and MPI drivers.

    Subclasses own the buffers and supply the per-iteration hooks
    (``_sync_halos``, ``_step``, ``_swap``); the loop, the termination
    policy and all bookkeeping live here.
    """

    def __init__(
        self,
        NB: int,
        MB: int,
        epsilon: float = 1e-6,
        max_iter: int = 1000,
        early_exit: bool = False,
        use_numba: bool = False,
        save_output: bool = False,
        output_dir: str = "pngs",
        leader: int = 0,
        progress_reporter=None,
        timing_reporter=None,
        frame_exporter=None,
    ):
        self.state = INIT
        self.NB = NB
        self.MB = MB
        self.epsilon = epsilon
        self.max_iter = max_iter
        self.early_exit = early_exit
        self.save_output = save_output
        self.leader = leader

        self.policy = TerminationPolicy(max_iter, epsilon, early_exit)
        self.kernel = create_kernel(NB, use_numba)
        self.omega = self.kernel.omega

        self.progress_reporter = progress_reporter or ProgressReporter(leader)
        self.timing_reporter = timing_reporter or NullTimingReporter()
        self.frame_exporter = frame_exporter or PNGFrameExporter(output_dir)

        # Metrics containers
        self.metrics = GlobalMetrics()
        self.timeseries = LocalMetrics()

        self.export_failures = 0
        self.rank = 0
        self.comm = None

    # ------------------------------------------------------------------
    # Hooks
    # ------------------------------------------------------------------

    @abstractmethod
    def _export_frames(self, iteration: int):
        """Hand the current buffer(s) to the frame exporter."""

    @abstractmethod
    def _sync_halos(self):
        """Refresh ghost cells of the current buffer(s)."""

    @abstractmethod
    def _step(self) -> float:
        """Run the kernel current -> next; return the local metric."""

    @abstractmethod
    def _swap(self):
        """Exchange current/next roles."""

    @abstractmethod
    def _release(self):
        """Drop the internal buffer(s) and publish the final iterate."""

    @property
    @abstractmethod
    def n_interior(self) -> int:
        """Interior cells of the global field."""

    def _export(self, u, iteration: int, rank: int):
        """Export one frame; failures are logged and the loop carries on."""
        try:
            self.frame_exporter.export(u, self.NB, self.MB, iteration, rank)
        except Exception as e:
            self.export_failures += 1
            log.warning(f"Frame export failed (rank {rank}, iteration {iteration}): {e}")

    def _get_time(self) -> float:
        """Get current time. Override for MPI timing."""
        return time.perf_counter()

    def _reduce_sum(self, local_sum: float) -> float:
        """Reduce sum across ranks. Identity for sequential."""
        return local_sum

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def warmup(self, warmup_size: int = 10):
        """Warmup kernel (trigger Numba JIT if used)."""
        self.kernel.warmup(warmup_size=warmup_size)

    def solve(self) -> GlobalMetrics:
        """Iterate until the cap (or, if enabled, the threshold) is reached.

        If the loop is left by an exception the internal buffers and
        communicators are still released before it propagates.
        """
        if self.state != INIT:
            raise RuntimeError(f"solve() called in state {self.state}")
        self.timeseries.clear()
        self.state = ITERATING

        iteration = 0
        global_norm = float("inf")
        t_start = self._get_time()

        try:
            while True:
                if self.save_output:
                    self._export_frames(iteration)

                t0 = self._get_time()
                self._sync_halos()
                t1 = self._get_time()
                local_sum = self._step()
                t2 = self._get_time()

                global_norm = ConvergenceAggregator.norm(self._reduce_sum(local_sum))

                self.timeseries.halo_times.append(t1 - t0)
                self.timeseries.compute_times.append(t2 - t1)
                self.timeseries.norm_history.append(global_norm)
                self.progress_reporter.report(self.rank, iteration, global_norm, self.epsilon)

                self._swap()
                iteration += 1
                if self.policy.done(iteration, global_norm):
                    break
        except BaseException:
            self._release()
            self.state = DONE
            raise

        wall_time = self._get_time() - t_start
        self._finalize(wall_time, iteration, global_norm)
        return self.metrics

    def _finalize(self, wall_time: float, iterations: int, global_norm: float):
        """Release buffers, fill metrics and report timings."""
        self._release()
        self.state = DONE

        self.metrics.iterations = iterations
        self.metrics.converged = self.policy.converged(global_norm)
        self.metrics.final_norm = global_norm
        self.metrics.total_compute_time = sum(self.timeseries.compute_times)
        self.metrics.total_halo_time = sum(self.timeseries.halo_times)
        self._compute_metrics(wall_time, iterations)

        self.timing_reporter.report(self.comm, self.rank, wall_time)
        if self.rank == self.leader:
            log.info(
                f"Done: {iterations} iter, norm={global_norm:.3e}, time={wall_time:.3f}s"
            )

    def _compute_metrics(self, wall_time: float, iterations: int):
        """Compute performance metrics."""
        self.metrics.wall_time = wall_time
        if iterations > 0 and wall_time > 0:
            self.metrics.mlups = self.n_interior * iterations / (wall_time * 1e6)

"""
Throughput sampling: time the matmul workload and convert it to FLOP/s.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .backends import MatmulBackend, MatmulRun, Timer, backend_for
from .device import Device, Unit, device_label, unit_for
from .errors import DeviceUnavailable, InsufficientPrecision
from .workload import DEFAULT_SEED, make_workload, total_flops

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ThroughputSample:
    """Result of one benchmark run on one device."""

    device: Device
    throughput: float  # in `unit`
    unit: Unit
    elapsed_seconds: float
    iterations: int
    size: int

    @property
    def flops(self) -> int:
        """Total floating-point operations performed in the timed window."""
        return total_flops(self.size, self.iterations)


def compute_throughput(size: int, iterations: int, elapsed_seconds: float, unit: Unit) -> float:
    """Convert a timed run into throughput expressed in ``unit``."""
    if elapsed_seconds <= 0:
        raise ValueError("elapsed_seconds must be positive")
    return total_flops(size, iterations) / elapsed_seconds / unit.scale


class ThroughputSampler:
    """Run the matmul workload on a device and report its throughput."""

    def __init__(
        self,
        backend_factory: Callable[[Device], MatmulBackend] = backend_for,
        timer: Timer = time.perf_counter,
        warmup_iterations: int = 1,
        max_escalations: int = 6,
        seed: int = DEFAULT_SEED,
    ):
        """Initialize the sampler.

        Args:
            backend_factory: Maps a device to its matmul backend
            timer: Monotonic clock returning seconds
            warmup_iterations: Untimed matmuls before each timed batch
            max_escalations: How many times to double the iteration count
                when the timer reports no elapsed time
            seed: Workload seed
        """
        self.backend_factory = backend_factory
        self.timer = timer
        self.warmup_iterations = warmup_iterations
        self.max_escalations = max_escalations
        self.seed = seed

    def sample(self, device: Device, iterations: int, size: int) -> ThroughputSample:
        """Benchmark ``iterations`` ``size x size`` matmuls on ``device``.

        Raises:
            DeviceUnavailable: The backend is missing or failed to run the workload
            InsufficientPrecision: The timer never observed elapsed time
        """
        if iterations <= 0:
            raise ValueError(f"iterations must be positive, got {iterations}")
        if size <= 0:
            raise ValueError(f"size must be positive, got {size}")

        backend = self.backend_factory(device)
        if not backend.is_available():
            raise DeviceUnavailable(device, "backend not available on this host")

        try:
            workload = make_workload(size, seed=self.seed)
        except (MemoryError, ValueError) as e:
            # numpy raises ValueError for shapes it cannot address at all
            raise DeviceUnavailable(device, f"cannot allocate workload: {e}") from e

        run = self._run_until_measurable(backend, workload, iterations)
        unit = unit_for(device)
        throughput = compute_throughput(size, run.iterations, run.elapsed_seconds, unit)

        logger.info(
            "%s: %.2f %s over %.3fs (%d iterations, size %d)",
            device_label(device),
            throughput,
            unit.name,
            run.elapsed_seconds,
            run.iterations,
            size,
        )
        return ThroughputSample(
            device=device,
            throughput=throughput,
            unit=unit,
            elapsed_seconds=run.elapsed_seconds,
            iterations=run.iterations,
            size=size,
        )

    def _run_until_measurable(self, backend: MatmulBackend, workload, iterations: int) -> MatmulRun:
        """Run the workload, doubling iterations while the timer reads zero."""
        device = backend.device
        run: Optional[MatmulRun] = None

        for attempt in range(self.max_escalations + 1):
            try:
                run = backend.run_matmul(
                    workload,
                    iterations,
                    self.timer,
                    warmup_iterations=self.warmup_iterations if attempt == 0 else 0,
                )
            except (RuntimeError, MemoryError) as e:
                raise DeviceUnavailable(device, str(e)) from e

            if run.elapsed_seconds > 0:
                return run

            if attempt < self.max_escalations:
                logger.info(
                    "%s: no measurable time for %d iterations, retrying with %d",
                    device_label(device),
                    iterations,
                    iterations * 2,
                )
                iterations *= 2

        raise InsufficientPrecision(device, iterations)

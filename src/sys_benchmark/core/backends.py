"""
Per-backend execution of the matmul workload.

Each backend knows how to reach its device and how to wait for queued work,
so the sampler can time any device the same way.
"""

import logging
from dataclasses import dataclass
from typing import Callable

import torch

from .device import Cpu, Device, IndexedGpu, UnifiedGpu, device_label, torch_device
from .workload import Workload

logger = logging.getLogger(__name__)

Timer = Callable[[], float]


@dataclass(frozen=True)
class MatmulRun:
    """Raw timing of one batch of matmuls."""

    elapsed_seconds: float
    iterations: int
    checksum: float


class MatmulBackend:
    """Run dense matmuls on one device."""

    def __init__(self, device: Device):
        self.device = device

    @property
    def torch_device(self) -> torch.device:
        return torch_device(self.device)

    def is_available(self) -> bool:
        raise NotImplementedError

    def synchronize(self) -> None:
        """Block until all queued work on the device has finished."""

    def run_matmul(
        self,
        workload: Workload,
        iterations: int,
        timer: Timer,
        warmup_iterations: int = 0,
    ) -> MatmulRun:
        """Time ``iterations`` matmuls of the workload on this device.

        Args:
            workload: Input matrices
            iterations: Number of timed matmuls
            timer: Monotonic clock returning seconds
            warmup_iterations: Untimed matmuls run first

        Returns:
            MatmulRun with the elapsed time and a checksum of the last product
        """
        a, b = workload.to(self.torch_device)

        for _ in range(warmup_iterations):
            torch.matmul(a, b)
        self.synchronize()

        result = None
        start = timer()
        for _ in range(iterations):
            result = torch.matmul(a, b)
        self.synchronize()
        elapsed = timer() - start

        # consume the last product so the work is observable
        checksum = float(result.sum().item())

        logger.debug(
            "%s: %d x %dx%d matmul in %.6fs",
            device_label(self.device),
            iterations,
            workload.size,
            workload.size,
            elapsed,
        )
        return MatmulRun(elapsed_seconds=elapsed, iterations=iterations, checksum=checksum)


class CpuBackend(MatmulBackend):
    """Host CPU through torch's CPU kernels."""

    def is_available(self) -> bool:
        return True


class MpsBackend(MatmulBackend):
    """Apple unified-memory GPU through torch's MPS backend."""

    def is_available(self) -> bool:
        mps = getattr(torch.backends, "mps", None)
        return bool(mps is not None and mps.is_available())

    def synchronize(self) -> None:
        torch.mps.synchronize()


class CudaBackend(MatmulBackend):
    """Indexed CUDA GPU."""

    def is_available(self) -> bool:
        if not torch.cuda.is_available():
            return False
        return self.device.index < torch.cuda.device_count()

    def synchronize(self) -> None:
        torch.cuda.synchronize(self.torch_device)


def backend_for(device: Device) -> MatmulBackend:
    """Pick the backend implementation for a device."""
    if isinstance(device, Cpu):
        return CpuBackend(device)
    if isinstance(device, UnifiedGpu):
        return MpsBackend(device)
    if isinstance(device, IndexedGpu):
        return CudaBackend(device)
    raise TypeError(f"Unknown device: {device!r}")

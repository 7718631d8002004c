"""
Compute targets the benchmark can run against.

A device is a plain identifier: the host CPU, the single unified-memory GPU
(Apple MPS), or one of zero or more indexed CUDA GPUs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Union

import torch


@dataclass(frozen=True)
class Cpu:
    """The host CPU."""


@dataclass(frozen=True)
class UnifiedGpu:
    """The integrated accelerator sharing host memory (MPS)."""


@dataclass(frozen=True)
class IndexedGpu:
    """A discrete GPU addressed by its zero-based enumeration index."""

    index: int

    def __post_init__(self):
        if not isinstance(self.index, int) or self.index < 0:
            raise ValueError(f"GPU index must be a non-negative integer, got {self.index!r}")


Device = Union[Cpu, UnifiedGpu, IndexedGpu]

CPU = Cpu()
UNIFIED_GPU = UnifiedGpu()


class Unit(Enum):
    """Throughput units, with their scale relative to FLOP/s."""

    GFLOPS = 1e9
    TFLOPS = 1e12

    @property
    def scale(self) -> float:
        return self.value


def is_gpu(device: Device) -> bool:
    """Check whether a device is one of the GPU variants."""
    return isinstance(device, (UnifiedGpu, IndexedGpu))


def unit_for(device: Device) -> Unit:
    """GFLOPS for the CPU, TFLOPS for any GPU."""
    return Unit.TFLOPS if is_gpu(device) else Unit.GFLOPS


def device_label(device: Device) -> str:
    """Human readable name used in reports and logs."""
    if isinstance(device, Cpu):
        return "CPU"
    if isinstance(device, UnifiedGpu):
        return "MPS"
    if isinstance(device, IndexedGpu):
        return f"Cuda({device.index})"
    raise TypeError(f"Unknown device: {device!r}")


def torch_device(device: Device) -> torch.device:
    """Map a device to the torch device it executes on."""
    if isinstance(device, Cpu):
        return torch.device("cpu")
    if isinstance(device, UnifiedGpu):
        return torch.device("mps")
    if isinstance(device, IndexedGpu):
        return torch.device(f"cuda:{device.index}")
    raise TypeError(f"Unknown device: {device!r}")

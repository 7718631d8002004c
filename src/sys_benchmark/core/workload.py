"""
Dense matrix-multiplication workload used to probe throughput.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np
import torch

DEFAULT_SEED = 0


@dataclass(frozen=True)
class Workload:
    """Two square float32 matrices living on the host."""

    a: torch.Tensor
    b: torch.Tensor

    @property
    def size(self) -> int:
        return int(self.a.shape[0])

    def to(self, device: torch.device) -> Tuple[torch.Tensor, torch.Tensor]:
        """Copy both matrices to the given torch device."""
        return self.a.to(device), self.b.to(device)


def make_workload(size: int, seed: int = DEFAULT_SEED) -> Workload:
    """Generate a reproducible ``size x size`` matmul workload.

    Values come from a seeded standard normal distribution generated on the
    host, so every device multiplies exactly the same inputs.

    Args:
        size: Matrix dimension
        seed: Seed for the random generator

    Returns:
        Workload holding both input matrices
    """
    if size <= 0:
        raise ValueError(f"Workload size must be positive, got {size}")

    rng = np.random.default_rng(seed)
    a = rng.standard_normal((size, size), dtype=np.float32)
    b = rng.standard_normal((size, size), dtype=np.float32)
    return Workload(a=torch.from_numpy(a), b=torch.from_numpy(b))


def flops_per_iteration(size: int) -> int:
    """Count FLOPs for one square matmul (2*N^3: a multiply and an add per term)."""
    return 2 * size**3


def total_flops(size: int, iterations: int) -> int:
    """Count FLOPs for ``iterations`` square matmuls."""
    return flops_per_iteration(size) * iterations

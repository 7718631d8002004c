"""
Choose how GPUs are benchmarked on this host.

Apple Silicon exposes its integrated GPU through the unified-memory MPS
backend as one implicit device; everywhere else CUDA devices are enumerated
and benchmarked by index.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Union

from ..info.gpu import GpuInventory
from ..info.system import CpuStaticFacts
from .errors import CollaboratorUnavailable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunUnified:
    """Benchmark the single unified-memory GPU."""


@dataclass(frozen=True)
class RunIndexed:
    """Benchmark ``count`` indexed GPUs, ``0..count``."""

    count: int

    def __post_init__(self):
        if self.count < 0:
            raise ValueError(f"GPU count must not be negative, got {self.count}")


GpuPlan = Union[RunUnified, RunIndexed]


def supports_unified_gpu(host_facts: Optional[CpuStaticFacts]) -> bool:
    """True exactly for arm64 macOS hosts."""
    if host_facts is None:
        return False
    return host_facts.architecture == "arm64" and host_facts.os == "macos"


def select_gpu_plan(host_facts: Optional[CpuStaticFacts], inventory: GpuInventory) -> GpuPlan:
    """Pick the unified or the indexed GPU path from static host facts.

    Args:
        host_facts: Host facts, or None when they could not be collected
        inventory: GPU inventory queried for the device count on the
            indexed path

    Returns:
        RunUnified or RunIndexed(count)
    """
    if supports_unified_gpu(host_facts):
        return RunUnified()

    try:
        count = inventory.device_count()
    except CollaboratorUnavailable as e:
        logger.warning("Could not enumerate GPUs: %s", e)
        count = 0
    return RunIndexed(count)

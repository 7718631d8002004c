"""
Error types raised by the benchmark engine and its collaborators.
"""

from typing import Any


class BenchmarkError(Exception):
    """Base class for all benchmark errors."""


class DeviceUnavailable(BenchmarkError):
    """The target device cannot run the workload."""

    def __init__(self, device: Any, reason: str):
        self.device = device
        self.reason = reason
        super().__init__(f"{device} unavailable: {reason}")


class InsufficientPrecision(BenchmarkError):
    """The timer could not resolve the workload even after escalating."""

    def __init__(self, device: Any, iterations: int):
        self.device = device
        self.iterations = iterations
        super().__init__(
            f"timer reported no elapsed time on {device} after {iterations} iterations"
        )


class CollaboratorUnavailable(BenchmarkError):
    """An external information source failed or timed out."""

    def __init__(self, source: str, reason: str):
        self.source = source
        self.reason = reason
        super().__init__(f"{source}: {reason}")

"""
Core benchmark engine.
"""

from .config import BenchmarkConfig
from .errors import (
    BenchmarkError,
    CollaboratorUnavailable,
    DeviceUnavailable,
    InsufficientPrecision,
)
from .device import CPU, UNIFIED_GPU, Cpu, Device, IndexedGpu, UnifiedGpu, Unit
from .workload import Workload, flops_per_iteration, make_workload
from .backends import MatmulBackend, backend_for
from .metrics import ThroughputSample, ThroughputSampler
from .selector import GpuPlan, RunIndexed, RunUnified, select_gpu_plan
from .report import (
    Collaborators,
    Feature,
    Report,
    ReportBuilder,
    build_report,
    parse_features,
)

__all__ = [
    "BenchmarkConfig",
    "BenchmarkError",
    "CollaboratorUnavailable",
    "DeviceUnavailable",
    "InsufficientPrecision",
    "CPU",
    "UNIFIED_GPU",
    "Cpu",
    "Device",
    "IndexedGpu",
    "UnifiedGpu",
    "Unit",
    "Workload",
    "flops_per_iteration",
    "make_workload",
    "MatmulBackend",
    "backend_for",
    "ThroughputSample",
    "ThroughputSampler",
    "GpuPlan",
    "RunIndexed",
    "RunUnified",
    "select_gpu_plan",
    "Collaborators",
    "Feature",
    "Report",
    "ReportBuilder",
    "build_report",
    "parse_features",
]

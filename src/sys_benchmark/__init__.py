"""
System Benchmark

Measures CPU and GPU floating-point throughput with a dense matmul probe and
reports it together with host, battery and network facts.
"""

__version__ = "1.0.0"

from .core.config import BenchmarkConfig
from .core.metrics import ThroughputSampler
from .core.report import Report, ReportBuilder, build_report

__all__ = [
    "BenchmarkConfig",
    "Report",
    "ReportBuilder",
    "ThroughputSampler",
    "build_report",
]

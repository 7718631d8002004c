"""
Tuning parameters and timeouts for a benchmark run.
"""

from dataclasses import dataclass


@dataclass
class BenchmarkConfig:
    """Configuration for one report build.

    The iteration counts and matrix sizes only bound the runtime of a run;
    they are not calibrated for accuracy.
    """

    cpu_iterations: int = 5
    cpu_size: int = 512
    gpu_iterations: int = 20
    gpu_size: int = 1000
    warmup_iterations: int = 1
    max_escalations: int = 6
    seed: int = 0

    ping_host: str = "1.1.1.1"
    ping_timeout: float = 3.0
    public_ip_url: str = "https://api.ipify.org"
    ip_timeout: float = 5.0
    download_url: str = "https://speed.cloudflare.com/__down?bytes=10000000"
    upload_url: str = "https://speed.cloudflare.com/__up"
    upload_bytes: int = 2_000_000
    speed_timeout: float = 30.0

    def validate(self) -> "BenchmarkConfig":
        """Check value ranges, returning self so calls can be chained."""
        for name in (
            "cpu_iterations",
            "cpu_size",
            "gpu_iterations",
            "gpu_size",
            "upload_bytes",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

        for name in ("warmup_iterations", "max_escalations"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")

        for name in ("ping_timeout", "ip_timeout", "speed_timeout"):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got {getattr(self, name)}")

        return self

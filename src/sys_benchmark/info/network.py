"""
Network diagnostics: ping latency, public IP and a rough speed probe.

Every probe carries its own timeout and fails with CollaboratorUnavailable,
so one slow or unreachable endpoint only drops its own field.
"""

import ipaddress
import logging
import math
import platform
import re
import subprocess
import time
from dataclasses import dataclass, fields
from typing import Callable, List, Optional, TypeVar

import requests

from ..core.config import BenchmarkConfig
from ..core.errors import CollaboratorUnavailable

logger = logging.getLogger(__name__)

T = TypeVar("T")

_PING_TIME = re.compile(r"time[=<]\s*([\d.]+)\s*ms", re.IGNORECASE)
_CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class NetworkFacts:
    """Results of the network probes; each field is absent when its probe failed."""

    ping_ms: Optional[float] = None
    public_ip: Optional[str] = None
    download_mbps: Optional[float] = None
    upload_mbps: Optional[float] = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))


def _mbps(num_bytes: int, elapsed_seconds: float) -> float:
    return num_bytes * 8 / elapsed_seconds / 1e6


def ping_command(host: str, timeout: float, system: Optional[str] = None) -> List[str]:
    """Build a single-echo ping command line for the current platform."""
    system = (system or platform.system()).lower()
    if system == "windows":
        return ["ping", "-n", "1", "-w", str(int(timeout * 1000)), host]
    wait = str(max(1, math.ceil(timeout)))
    if system == "darwin":
        return ["ping", "-c", "1", "-t", wait, host]
    return ["ping", "-c", "1", "-W", wait, host]


def parse_ping_output(output: str) -> Optional[float]:
    """Extract the round-trip time in ms from ping output."""
    match = _PING_TIME.search(output or "")
    if not match:
        return None
    return float(match.group(1))


def measure_ping(host: str, timeout: float) -> float:
    """Round-trip latency to ``host`` in milliseconds."""
    cmd = ping_command(host, timeout)
    try:
        proc = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout + 1,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise CollaboratorUnavailable("ping", str(e)) from e

    latency = parse_ping_output(proc.stdout)
    if proc.returncode != 0 or latency is None:
        reason = (proc.stderr or proc.stdout or "no reply").strip()
        raise CollaboratorUnavailable("ping", reason)
    return latency


def fetch_public_ip(url: str, timeout: float) -> str:
    """Look up this host's public IP address."""
    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        raise CollaboratorUnavailable("public ip", str(e)) from e

    text = response.text.strip()
    try:
        return str(ipaddress.ip_address(text))
    except ValueError as e:
        raise CollaboratorUnavailable("public ip", f"unexpected response {text[:64]!r}") from e


def measure_download(url: str, timeout: float) -> float:
    """Download from ``url`` and return the observed speed in Mbps.

    The transfer stops once ``timeout`` seconds have passed, so the figure is
    a lower bound on the link speed.
    """
    received = 0
    try:
        start = time.perf_counter()
        with requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            for chunk in response.iter_content(chunk_size=_CHUNK_SIZE):
                received += len(chunk)
                if time.perf_counter() - start > timeout:
                    break
        elapsed = time.perf_counter() - start
    except requests.RequestException as e:
        raise CollaboratorUnavailable("download speed", str(e)) from e

    if received == 0 or elapsed <= 0:
        raise CollaboratorUnavailable("download speed", "no data received")
    return _mbps(received, elapsed)


def measure_upload(url: str, payload_bytes: int, timeout: float) -> float:
    """Upload ``payload_bytes`` to ``url`` and return the observed speed in Mbps."""
    payload = b"\0" * payload_bytes
    try:
        start = time.perf_counter()
        response = requests.post(url, data=payload, timeout=timeout)
        elapsed = time.perf_counter() - start
        response.raise_for_status()
    except requests.RequestException as e:
        raise CollaboratorUnavailable("upload speed", str(e)) from e

    if elapsed <= 0:
        raise CollaboratorUnavailable("upload speed", "no measurable transfer time")
    return _mbps(payload_bytes, elapsed)


def _probe(func: Callable[..., T], *args) -> Optional[T]:
    try:
        return func(*args)
    except CollaboratorUnavailable as e:
        logger.warning("Network probe failed: %s", e)
        return None


def collect_network_facts(config: Optional[BenchmarkConfig] = None) -> NetworkFacts:
    """Run every network probe in turn, keeping the ones that succeed."""
    cfg = config or BenchmarkConfig()
    ping_ms = _probe(measure_ping, cfg.ping_host, cfg.ping_timeout)
    public_ip = _probe(fetch_public_ip, cfg.public_ip_url, cfg.ip_timeout)
    download = _probe(measure_download, cfg.download_url, cfg.speed_timeout)
    upload = _probe(measure_upload, cfg.upload_url, cfg.upload_bytes, cfg.speed_timeout)
    return NetworkFacts(
        ping_ms=ping_ms,
        public_ip=public_ip,
        download_mbps=round(download, 2) if download is not None else None,
        upload_mbps=round(upload, 2) if upload is not None else None,
    )

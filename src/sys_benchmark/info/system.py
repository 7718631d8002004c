"""
Static host facts: operating system, architecture, CPU count and memory.
"""

import platform
from dataclasses import dataclass
from typing import Optional

import psutil

from ..core.errors import CollaboratorUnavailable

_OS_NAMES = {
    "darwin": "macos",
    "linux": "linux",
    "windows": "windows",
}

_ARCH_ALIASES = {
    "amd64": "x86_64",
    "x64": "x86_64",
}


@dataclass(frozen=True)
class CpuStaticFacts:
    """Host facts gathered once per report (memory values in bytes)."""

    os: str
    cpu_count: int
    total_memory: int
    used_memory: int
    total_swap: int
    used_swap: int
    os_version: Optional[str] = None
    architecture: Optional[str] = None


def normalize_os(system: str) -> str:
    """Map ``platform.system()`` output to a short OS name (e.g. ``macos``)."""
    key = (system or "").strip().lower()
    return _OS_NAMES.get(key, key or "unknown")


def normalize_arch(machine: str) -> Optional[str]:
    """Lower-case ``platform.machine()`` output; empty means unknown."""
    key = (machine or "").strip().lower()
    if not key:
        return None
    return _ARCH_ALIASES.get(key, key)


def _os_version(os_name: str) -> Optional[str]:
    if os_name == "macos":
        version = platform.mac_ver()[0]
    elif os_name == "linux":
        try:
            release = platform.freedesktop_os_release()
            version = release.get("VERSION_ID") or release.get("VERSION")
        except OSError:
            version = platform.release()
    else:
        version = platform.version()
    return version or None


def collect_host_facts() -> CpuStaticFacts:
    """Collect OS, architecture, CPU and memory facts for this host.

    Raises:
        CollaboratorUnavailable: psutil could not read CPU or memory counters
    """
    os_name = normalize_os(platform.system())

    try:
        vm = psutil.virtual_memory()
        sm = psutil.swap_memory()
        cpu_count = psutil.cpu_count(logical=True)
    except (psutil.Error, OSError, RuntimeError) as e:
        raise CollaboratorUnavailable("host inventory", str(e)) from e

    if not cpu_count:
        raise CollaboratorUnavailable("host inventory", "logical CPU count unavailable")

    return CpuStaticFacts(
        os=os_name,
        os_version=_os_version(os_name),
        architecture=normalize_arch(platform.machine()),
        cpu_count=int(cpu_count),
        total_memory=int(vm.total),
        used_memory=int(vm.used),
        total_swap=int(sm.total),
        used_swap=int(sm.used),
    )

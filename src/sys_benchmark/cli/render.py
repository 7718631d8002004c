"""
Plain-text and JSON rendering of a Report.
"""

import json
from pathlib import Path
from typing import List, Optional, Union

from ..core.device import IndexedGpu, UnifiedGpu
from ..core.report import NOT_AVAILABLE, GpuEntry, Report

_MB = 1024 * 1024


def _or_na(value) -> str:
    return NOT_AVAILABLE if value is None else str(value)


def _gpu_block(entry: GpuEntry) -> str:
    facts = entry.facts
    sample = entry.sample

    if isinstance(facts.device, UnifiedGpu):
        return (
            f"GPU: {facts.name or 'integrated'}\n"
            f"GPU FLOPS: {sample.throughput:.2f} {sample.unit.name}\n"
            f"GPU benchmark duration: {sample.elapsed_seconds:.2f} seconds\n"
        )

    index = facts.device.index if isinstance(facts.device, IndexedGpu) else "?"
    return (
        f"CUDA Device {index}:\n"
        f"Name        : {_or_na(facts.name)}\n"
        f"Total Memory: {_or_na(facts.total_memory)}\n"
        f"Free Memory : {_or_na(facts.free_memory)}\n"
        f"Used Memory : {_or_na(facts.used_memory)}\n"
        f"GPU Estimated FLOPS: {sample.throughput:.2f} {sample.unit.name}\n"
        f"GPU benchmark duration: {sample.elapsed_seconds:.2f} seconds\n"
    )


def render_plain(report: Report) -> str:
    """Render a report as human readable text."""
    parts: List[str] = []

    if report.system is not None:
        facts = report.system
        parts.append(
            "=> General:\n"
            f"OS          : {facts.os}\n"
            f"OS version  : {_or_na(facts.os_version)}\n"
        )
        parts.append(
            "=> Memory:\n"
            f"Total       : {facts.total_memory // _MB} mb\n"
            f"Used        : {facts.used_memory // _MB} mb\n"
            f"Swap Total  : {facts.total_swap // _MB} mb\n"
            f"Swap Used   : {facts.used_swap // _MB} mb\n"
        )

    if report.cpu is not None:
        facts = report.cpu.facts
        sample = report.cpu.sample
        parts.append(
            "=> CPU:\n"
            f"Architecture: {_or_na(facts.architecture)}\n"
            f"Count       : {facts.cpu_count}\n"
            f"FLOPS       : {sample.throughput:.2f} {sample.unit.name}\n"
            f"Benchmark duration: {sample.elapsed_seconds:.2f} seconds\n"
        )

    if report.gpu is not None:
        if report.gpu:
            parts.append("=> GPU:\n" + "\n".join(_gpu_block(e) for e in report.gpu))
        else:
            parts.append("=> GPU:\nNo GPU benchmarked\n")

    if report.battery is not None:
        battery = report.battery
        charge = f"{battery.charge_percent}%" if battery.charge_percent is not None else "None"
        capacity = f"{battery.wh_capacity} Wh" if battery.wh_capacity is not None else "None"
        parts.append(
            "=> Power:\n"
            f"Battery         : {battery.has_battery}\n"
            f"State of charge : {charge}\n"
            f"Charging        : {bool(battery.is_charging)}\n"
            f"Capacity        : {capacity}\n"
        )

    if report.network is not None:
        network = report.network
        lines = ["=> Network:"]
        if network.ping_ms is not None:
            lines.append(f"Internet Ping: {network.ping_ms:.2f} ms")
        if network.public_ip is not None:
            lines.append(f"Public IP: {network.public_ip}")
        if network.download_mbps is not None:
            lines.append(f"Download speed: {network.download_mbps:.2f} Mbps (minimum)")
        if network.upload_mbps is not None:
            lines.append(f"Upload speed: {network.upload_mbps:.2f} Mbps (minimum)")
        parts.append("\n".join(lines) + "\n")

    return "\n".join(parts)


def render_json(report: Report) -> str:
    """Render a report as pretty-printed JSON."""
    return json.dumps(report.to_dict(), indent=2, ensure_ascii=False)


def write_output(text: str, path: Optional[Union[str, Path]] = None) -> None:
    """Write rendered output to ``path``, or stdout when no path is given."""
    if path is None:
        print(text)
        return
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)
